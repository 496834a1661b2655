# -*- coding: utf-8 -*-
"""
Dichromat: Simulating dichromatic color perception in chromaticity space
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Frame Processing
================
Applies the protanope simulation to whole image frames and reports the
per-frame perceptual deviation.

Frames are ``(H, W, 3)`` ``uint8`` arrays as delivered by common video
readers (OpenCV yields BGR). Opening, decoding and writing video containers
is left to the caller: ``iter_simulated_frames`` accepts any iterable of
frames.

Every pixel is independent, so the kernel runs under ``numba.prange`` and
only reads the import-time constants of the model. Pixels for which the
confusion line misses the vision curve keep their original color and are
counted in ``FrameResult.failures`` instead of aborting the frame.
"""

import logging
import math
from dataclasses import dataclass
from typing import Iterable, Iterator, Literal, Tuple

import numpy as np
from numba import njit, prange

from dichromat_colorengine import (
    ArrayFloat,
    ColorSpaceEngine,
    _rgb_to_xyz_k,
    _xyy_to_xyz_k,
    _xyz_to_rgb_k,
    _xyz_to_xyy_k,
    strict_ieee_enabled,
)
from dichromat_protanope import (
    STATUS_NO_INTERSECTION,
    STATUS_OK,
    STATUS_OUT_OF_GAMUT,
    _CONF_X,
    _CONF_Y,
    _CURVE_A,
    _CURVE_B,
    _CURVE_C,
    _clamp_channel,
    _intersect_k,
    _line_k,
    _move_within_rgb_k,
    _protan_luminance_k,
)

__all__ = [
    "ChannelOrder",
    "FrameResult",
    "simulate_frame",
    "xyz_rmsd",
    "iter_simulated_frames",
]

log = logging.getLogger(__name__)

ChannelOrder = Literal["bgr", "rgb"]


@dataclass(frozen=True, eq=False)
class FrameResult:
    """Simulated frame plus statistics.

    Attributes:
        frame: Simulated ``uint8`` frame, same shape and channel order as the input.
        rmsd: Root-mean-square Euclidean XYZ distance between original and
            simulated pixels.
        out_of_gamut: Pixels whose simulated color had to be clamped.
        failures: Pixels without a curve intersection (left unchanged).
    """
    frame: np.ndarray
    rmsd: float
    out_of_gamut: int
    failures: int


# =============================================================================
# 1. PIXEL KERNEL
# =============================================================================

def _simulate_pixels(rgb: np.ndarray) -> Tuple[np.ndarray, np.ndarray, ArrayFloat]:
    """
    Simulates an (N, 3) uint8 RGB buffer.

    Returns the simulated (N, 3) uint8 buffer, the per-pixel status codes
    and the squared XYZ distance between input and output per pixel.
    """
    n = rgb.shape[0]
    out = np.empty_like(rgb)
    status = np.zeros(n, dtype=np.int8)
    sq_dist = np.zeros(n, dtype=np.float64)

    for i in prange(n):
        r = float(rgb[i, 0])
        g = float(rgb[i, 1])
        b = float(rgb[i, 2])

        X, Y, Z = _rgb_to_xyz_k(r, g, b)
        x, y, _lum = _xyz_to_xyy_k(X, Y, Z)
        m, lb = _line_k(_CONF_X, _CONF_Y, x, y)
        Yp = _protan_luminance_k(X, Y, Z)
        disc, ix = _intersect_k(_CURVE_A, _CURVE_B, _CURVE_C, m, lb)

        if disc < 0.0:
            out[i, 0] = rgb[i, 0]
            out[i, 1] = rgb[i, 1]
            out[i, 2] = rgb[i, 2]
            status[i] = STATUS_NO_INTERSECTION
        else:
            bx, by = _move_within_rgb_k(m, lb, ix, m * ix + lb)
            X2, Y2, Z2 = _xyy_to_xyz_k(bx, by, Yp)
            raw_r, raw_g, raw_b = _xyz_to_rgb_k(X2, Y2, Z2)
            cr, fr = _clamp_channel(raw_r)
            cg, fg = _clamp_channel(raw_g)
            cb, fb = _clamp_channel(raw_b)

            out[i, 0] = np.uint8(cr)
            out[i, 1] = np.uint8(cg)
            out[i, 2] = np.uint8(cb)
            if fr or fg or fb:
                status[i] = STATUS_OUT_OF_GAMUT
            else:
                status[i] = STATUS_OK

            PX, PY, PZ = _rgb_to_xyz_k(cr, cg, cb)
            sq_dist[i] = (X - PX) ** 2 + (Y - PY) ** 2 + (Z - PZ) ** 2

    return out, status, sq_dist


# Both builds share bytecode, which Numba's on-disk cache cannot tell apart,
# so neither is cached.
_simulate_pixels_fast = njit(fastmath=True, parallel=True)(_simulate_pixels)
_simulate_pixels_strict = njit(fastmath=False, parallel=True)(_simulate_pixels)


def _pixel_kernel():
    if strict_ieee_enabled():
        return _simulate_pixels_strict
    return _simulate_pixels_fast


# =============================================================================
# 2. FRAME API
# =============================================================================

def _to_rgb_view(frame: np.ndarray, channel_order: ChannelOrder) -> np.ndarray:
    if channel_order == "bgr":
        return frame[..., ::-1]
    if channel_order == "rgb":
        return frame
    raise ValueError(f"Unknown channel order: {channel_order!r} (expected 'bgr' or 'rgb')")


def simulate_frame(frame: np.ndarray, channel_order: ChannelOrder = "bgr") -> FrameResult:
    """
    Simulates protanope vision for every pixel of a frame.

    Args:
        frame: ``(H, W, 3)`` ``uint8`` image.
        channel_order: ``"bgr"`` (OpenCV default) or ``"rgb"``.

    Returns:
        ``FrameResult`` with the simulated frame in the input channel order.

    Raises:
        ValueError: On a non-uint8 frame, a wrong shape or an unknown
            channel order.
    """
    frame = np.asarray(frame)
    if frame.dtype != np.uint8:
        raise ValueError(f"Expected a uint8 frame, got dtype {frame.dtype}")
    if frame.ndim != 3 or frame.shape[-1] != 3:
        raise ValueError(f"Expected shape (H, W, 3), got {frame.shape}")

    rgb = np.ascontiguousarray(_to_rgb_view(frame, channel_order).reshape(-1, 3))
    n = rgb.shape[0]
    if n == 0:
        return FrameResult(frame=frame.copy(), rmsd=0.0, out_of_gamut=0, failures=0)

    out, status, sq_dist = _pixel_kernel()(rgb)

    simulated = np.ascontiguousarray(_to_rgb_view(out.reshape(frame.shape), channel_order))
    return FrameResult(
        frame=simulated,
        rmsd=math.sqrt(float(sq_dist.sum()) / n),
        out_of_gamut=int(np.count_nonzero(status == STATUS_OUT_OF_GAMUT)),
        failures=int(np.count_nonzero(status == STATUS_NO_INTERSECTION)),
    )


def xyz_rmsd(original_rgb: np.ndarray, simulated_rgb: np.ndarray) -> float:
    """
    Root-mean-square Euclidean XYZ distance between two RGB images.

    Args:
        original_rgb: ``(..., 3)`` RGB data on the 0..255 scale.
        simulated_rgb: Same shape as ``original_rgb``.

    Returns:
        The RMSD, 0.0 for empty input.
    """
    a = np.asarray(original_rgb, dtype=np.float64)
    b = np.asarray(simulated_rgb, dtype=np.float64)
    if a.shape != b.shape:
        raise ValueError(f"Shape mismatch: {a.shape} vs {b.shape}")
    a = a.reshape(-1, 3)
    b = b.reshape(-1, 3)
    if a.shape[0] == 0:
        return 0.0
    diff = ColorSpaceEngine.rgb_to_xyz(a) - ColorSpaceEngine.rgb_to_xyz(b)
    return float(np.sqrt(np.mean(np.sum(diff * diff, axis=1))))


def iter_simulated_frames(
    frames: Iterable[np.ndarray],
    channel_order: ChannelOrder = "bgr",
    log_every: int = 100,
) -> Iterator[Tuple[int, FrameResult]]:
    """
    Simulates a stream of frames, yielding ``(frame_index, FrameResult)``.

    A frame that cannot be processed is logged and skipped; the stream
    continues with the next frame. Progress is logged at INFO level every
    ``log_every`` frames (0 disables it).
    """
    for index, frame in enumerate(frames):
        try:
            result = simulate_frame(frame, channel_order)
        except ValueError:
            log.exception("Error processing frame #%d", index)
            continue

        if result.failures:
            log.warning(
                "Frame #%d: %d pixel(s) without vision curve intersection left unchanged",
                index, result.failures,
            )
        if log_every and index and index % log_every == 0:
            log.info("Frame: %d RMSD: %.6f", index, result.rmsd)

        yield index, result
