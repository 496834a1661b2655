# -*- coding: utf-8 -*-
"""
Dichromat: Simulating dichromatic color perception in chromaticity space
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Color Space Converter
=====================
sRGB <-> CIE XYZ (D50) <-> CIE xyY transforms used by the protanope simulator.

The module exposes two layers over the same compiled kernels:

1. A scalar value-type API (``Rgb``, ``Xyz``, ``Xyy`` and the ``rgb_to_xyz``
   family of functions) for single-pixel work.
2. ``ColorSpaceEngine``: a static, shape-safe batch API over ``(N, 3)`` or
   ``(3,)`` float arrays.

Conventions:
    - RGB channels are on the 0..255 scale. Values outside that range are
      legal *results* (out-of-gamut colors) but not legal *inputs* to the
      sRGB EOTF, which raises ``InvalidGammaInput``.
    - XYZ is relative to the D50 reference white. The RGB matrices embed a
      Bradford D65 -> D50 adaptation (Lindbloom).
    - ``xyz_to_xyy`` maps an exact black (X+Y+Z == 0) to the D50 white point
      chromaticity with Y = 0. ``xyy_to_xyz`` maps y == 0 to XYZ (0, 0, 0).
    - ``xyz_to_rgb`` never clips. Negative linear values pass through the
      linear toe of the OETF and stay negative.

References:
    - IEC 61966-2-1:1999 (sRGB Standard)
    - http://www.brucelindbloom.com/index.html?Eqn_RGB_XYZ_Matrix.html
"""

import functools
import math
from dataclasses import dataclass
from typing import Any, Callable, Final, Tuple, TypeAlias

import numpy as np
import numpy.typing as npt
from numba import njit, prange

__all__ = [
    # --- Type Aliases ---
    "ArrayFloat",

    # --- Errors ---
    "DichromatError",
    "InvalidGammaInput",

    # --- Value types ---
    "Rgb",
    "Xyz",
    "Xyy",

    # --- Constants ---
    "M_SRGB_TO_XYZ_D50",
    "M_XYZ_D50_TO_SRGB",
    "XYY_WHITE_D50",
    "XYY_RED_PRIMARY",
    "XYY_GREEN_PRIMARY",
    "XYY_BLUE_PRIMARY",
    "XYY_470",
    "XYY_575",

    # --- Configuration ---
    "set_strict_ieee",
    "strict_ieee_enabled",

    # --- Decorators ---
    "handle_shapes",

    # --- Scalar API ---
    "srgb_to_linear_gamma",
    "linear_to_srgb_gamma",
    "rgb_to_xyz",
    "xyz_to_rgb",
    "xyz_to_xyy",
    "xyy_to_xyz",

    # --- Classes ---
    "ColorSpaceEngine",
]

# --- Type Aliases ---
ArrayFloat: TypeAlias = npt.NDArray[np.floating]


# =============================================================================
# 0. ERRORS
# =============================================================================

class DichromatError(ValueError):
    """Base class for all colorimetric failures raised by this package."""


class InvalidGammaInput(DichromatError):
    """An sRGB intensity outside [0, 1] reached the sRGB EOTF.

    This is a caller bug (usually a channel that was not normalised from the
    0..255 scale), so the value is reported instead of being clamped.
    """

    def __init__(self, intensity: float) -> None:
        self.intensity = intensity
        super().__init__(
            f"sRGB intensity must lie within [0, 1], got {intensity!r}"
        )


# =============================================================================
# 1. VALUE TYPES
# =============================================================================

@dataclass(slots=True, frozen=True)
class Rgb:
    """sRGB color on the 0..255 scale. May leave that range when converted
    from another space, which marks the color as out of gamut."""
    r: float
    g: float
    b: float

    def as_array(self) -> ArrayFloat:
        return np.array([self.r, self.g, self.b], dtype=np.float64)


@dataclass(slots=True, frozen=True)
class Xyz:
    """CIE XYZ tristimulus values (D50 relative, Y of white == 1)."""
    x: float
    y: float
    z: float

    def as_array(self) -> ArrayFloat:
        return np.array([self.x, self.y, self.z], dtype=np.float64)


@dataclass(slots=True, frozen=True)
class Xyy:
    """CIE xyY: chromaticity ``(x, y)`` plus luminance ``Y``."""
    x: float
    y: float
    Y: float

    def as_array(self) -> ArrayFloat:
        return np.array([self.x, self.y, self.Y], dtype=np.float64)


# =============================================================================
# 2. CONSTANTS
# =============================================================================

# sRGB (D65) -> XYZ (D50), Bradford adapted.
M_SRGB_TO_XYZ_D50: Final[ArrayFloat] = np.array([
    [0.4360747, 0.3850649, 0.1430804],
    [0.2225045, 0.7168786, 0.0606169],
    [0.0139322, 0.0971045, 0.7141733],
], dtype=np.float64)

# XYZ (D50) -> sRGB (D65), Bradford adapted.
M_XYZ_D50_TO_SRGB: Final[ArrayFloat] = np.array([
    [ 3.1338561, -1.6168667, -0.4906146],
    [-0.9787684,  1.9161415,  0.0334540],
    [ 0.0719453, -0.2289914,  1.4052427],
], dtype=np.float64)

# D50 reference white in xyY.
XYY_WHITE_D50: Final[Xyy] = Xyy(0.3457, 0.3585, 1.0)

# sRGB primaries in xyY, obtained from RGB(255, 0, 0) etc. through the
# conversions in this module.
XYY_RED_PRIMARY: Final[Xyy] = Xyy(0.648427223687212, 0.33085610147277805, 0.2225045)
XYY_GREEN_PRIMARY: Final[Xyy] = Xyy(0.32114218947031314, 0.5978731460291832, 0.7168786)
XYY_BLUE_PRIMARY: Final[Xyy] = Xyy(0.15588297522548386, 0.06604079049922723, 0.0606169)

# Spectral locus at 470 nm and 575 nm (CIE 15).
XYY_470: Final[Xyy] = Xyy(0.12412, 0.05780, 0.090980)
XYY_575: Final[Xyy] = Xyy(0.47877, 0.52020, 0.915400)

# Plain floats for the kernels; Numba freezes globals at compile time.
_WHITE_X: Final[float] = XYY_WHITE_D50.x
_WHITE_Y: Final[float] = XYY_WHITE_D50.y

# IEC 61966-2-1 transfer function breakpoints.
_EOTF_THRESHOLD: Final[float] = 0.04045
_OETF_THRESHOLD: Final[float] = 0.0031308
_ALPHA: Final[float] = 0.055
_GAMMA: Final[float] = 2.4


# --- Runtime Configuration ---
# When True, the frame kernels run the fastmath=False build that preserves
# strict IEEE 754 semantics. The scalar API is always strict.
_STRICT_IEEE: bool = False

def set_strict_ieee(enabled: bool = True) -> None:
    """
    Toggle between fast (default) and strict IEEE 754 batch kernels.

    Args:
        enabled: If True, use strict IEEE mode.
    """
    global _STRICT_IEEE
    _STRICT_IEEE = bool(enabled)

def strict_ieee_enabled() -> bool:
    """Returns the current state of the strict IEEE toggle."""
    return _STRICT_IEEE


# =============================================================================
# 3. DECORATORS
# =============================================================================

def handle_shapes(func: Callable[..., ArrayFloat]) -> Callable[..., ArrayFloat]:
    """
    Decorator to normalize inputs to contiguous float64 (N, 3).

    Returns (3,) for a (3,) input and (N, 3) for an (N, 3) input.
    """
    @functools.wraps(func)
    def wrapper(arr: ArrayFloat, *args: Any, **kwargs: Any) -> ArrayFloat:
        arr = np.asarray(arr)
        arr_in = np.ascontiguousarray(np.atleast_2d(arr), dtype=np.float64)

        if arr_in.ndim != 2 or arr_in.shape[-1] != 3:
            raise ValueError(f"Expected shape (3,) or (N, 3), got {arr.shape}")

        res = func(arr_in, *args, **kwargs)

        if arr.ndim == 1:
            return res[0]
        return res
    return wrapper


# =============================================================================
# 4. LOW-LEVEL KERNELS (Numba)
# =============================================================================
# Scalar kernels are inlined at the Numba IR level so that the caller's
# fastmath flags apply to them inside the frame kernels.

@njit(cache=True, inline="always")
def _srgb_to_linear(v: float) -> float:
    """sRGB EOTF. Assumes 0 <= v <= 1."""
    if v < _EOTF_THRESHOLD:
        return v / 12.92
    return ((v + _ALPHA) / (1.0 + _ALPHA)) ** _GAMMA

@njit(cache=True, inline="always")
def _linear_to_srgb(v: float) -> float:
    """sRGB OETF. Defined for any real input via the linear toe."""
    if v <= _OETF_THRESHOLD:
        return v * 12.92
    return (1.0 + _ALPHA) * v ** (1.0 / _GAMMA) - _ALPHA

@njit(cache=True, inline="always")
def _rgb_to_xyz_k(r: float, g: float, b: float) -> Tuple[float, float, float]:
    """0..255 sRGB -> XYZ (D50). Channels must already be in range."""
    M = M_SRGB_TO_XYZ_D50
    lr = _srgb_to_linear(r / 255.0)
    lg = _srgb_to_linear(g / 255.0)
    lb = _srgb_to_linear(b / 255.0)
    X = M[0, 0] * lr + M[0, 1] * lg + M[0, 2] * lb
    Y = M[1, 0] * lr + M[1, 1] * lg + M[1, 2] * lb
    Z = M[2, 0] * lr + M[2, 1] * lg + M[2, 2] * lb
    return X, Y, Z

@njit(cache=True, inline="always")
def _xyz_to_rgb_k(X: float, Y: float, Z: float) -> Tuple[float, float, float]:
    """XYZ (D50) -> 0..255 sRGB, unclipped."""
    M = M_XYZ_D50_TO_SRGB
    lr = M[0, 0] * X + M[0, 1] * Y + M[0, 2] * Z
    lg = M[1, 0] * X + M[1, 1] * Y + M[1, 2] * Z
    lb = M[2, 0] * X + M[2, 1] * Y + M[2, 2] * Z
    return (255.0 * _linear_to_srgb(lr),
            255.0 * _linear_to_srgb(lg),
            255.0 * _linear_to_srgb(lb))

@njit(cache=True, inline="always")
def _xyz_to_xyy_k(X: float, Y: float, Z: float) -> Tuple[float, float, float]:
    s = X + Y + Z
    if s == 0.0:
        return _WHITE_X, _WHITE_Y, Y
    return X / s, Y / s, Y

@njit(cache=True, inline="always")
def _xyy_to_xyz_k(x: float, y: float, Y: float) -> Tuple[float, float, float]:
    if y == 0.0:
        return 0.0, 0.0, 0.0
    factor = Y / y
    return x * factor, Y, (1.0 - x - y) * factor

@njit(cache=True, inline="always")
def _round_half_away(v: float) -> float:
    """Rounds half away from zero (C ``round``), unlike Python's ``round``."""
    return math.copysign(np.floor(abs(v) + 0.5), v)


# --- Batch kernels: (N, 3) float64 in, (N, 3) float64 out ---

@njit(cache=True, parallel=True)
def _batch_rgb_to_xyz(rgb: ArrayFloat) -> ArrayFloat:
    n = rgb.shape[0]
    out = np.empty_like(rgb)
    for i in prange(n):
        c0, c1, c2 = _rgb_to_xyz_k(rgb[i, 0], rgb[i, 1], rgb[i, 2])
        out[i, 0] = c0
        out[i, 1] = c1
        out[i, 2] = c2
    return out

@njit(cache=True, parallel=True)
def _batch_xyz_to_rgb(xyz: ArrayFloat) -> ArrayFloat:
    n = xyz.shape[0]
    out = np.empty_like(xyz)
    for i in prange(n):
        c0, c1, c2 = _xyz_to_rgb_k(xyz[i, 0], xyz[i, 1], xyz[i, 2])
        out[i, 0] = c0
        out[i, 1] = c1
        out[i, 2] = c2
    return out

@njit(cache=True, parallel=True)
def _batch_xyz_to_xyy(xyz: ArrayFloat) -> ArrayFloat:
    n = xyz.shape[0]
    out = np.empty_like(xyz)
    for i in prange(n):
        c0, c1, c2 = _xyz_to_xyy_k(xyz[i, 0], xyz[i, 1], xyz[i, 2])
        out[i, 0] = c0
        out[i, 1] = c1
        out[i, 2] = c2
    return out

@njit(cache=True, parallel=True)
def _batch_xyy_to_xyz(xyy: ArrayFloat) -> ArrayFloat:
    n = xyy.shape[0]
    out = np.empty_like(xyy)
    for i in prange(n):
        c0, c1, c2 = _xyy_to_xyz_k(xyy[i, 0], xyy[i, 1], xyy[i, 2])
        out[i, 0] = c0
        out[i, 1] = c1
        out[i, 2] = c2
    return out


# =============================================================================
# 5. SCALAR API
# =============================================================================

def srgb_to_linear_gamma(intensity: float) -> float:
    """
    Linearises a gamma-encoded sRGB intensity (sRGB EOTF).

    Args:
        intensity: Encoded intensity in [0, 1].

    Returns:
        Linear intensity in [0, 1].

    Raises:
        InvalidGammaInput: If ``intensity`` is outside [0, 1] or NaN.
    """
    if not 0.0 <= intensity <= 1.0:
        raise InvalidGammaInput(intensity)
    return _srgb_to_linear(float(intensity))

def linear_to_srgb_gamma(intensity: float) -> float:
    """
    Gamma-encodes a linear intensity (sRGB OETF).

    No domain restriction: out-of-gamut linear values (negative or above 1)
    produce out-of-range encoded values on purpose.
    """
    return _linear_to_srgb(float(intensity))

def rgb_to_xyz(rgb: Rgb) -> Xyz:
    """Converts a 0..255 sRGB color to XYZ (D50)."""
    for channel in (rgb.r, rgb.g, rgb.b):
        if not 0.0 <= channel <= 255.0:
            raise InvalidGammaInput(channel / 255.0)
    return Xyz(*_rgb_to_xyz_k(float(rgb.r), float(rgb.g), float(rgb.b)))

def xyz_to_rgb(xyz: Xyz) -> Rgb:
    """Converts XYZ (D50) to 0..255 sRGB without clipping."""
    return Rgb(*_xyz_to_rgb_k(float(xyz.x), float(xyz.y), float(xyz.z)))

def xyz_to_xyy(xyz: Xyz) -> Xyy:
    """
    Converts XYZ to xyY.

    Black (X+Y+Z == 0) has no chromaticity; it is reported as the D50
    white point with zero luminance.
    """
    return Xyy(*_xyz_to_xyy_k(float(xyz.x), float(xyz.y), float(xyz.z)))

def xyy_to_xyz(xyy: Xyy) -> Xyz:
    """Converts xyY to XYZ. A chromaticity with y == 0 maps to (0, 0, 0)."""
    return Xyz(*_xyy_to_xyz_k(float(xyy.x), float(xyy.y), float(xyy.Y)))


# =============================================================================
# 6. BATCH API
# =============================================================================

def _check_rgb_range(rgb_array: ArrayFloat) -> None:
    bad = ~((rgb_array >= 0.0) & (rgb_array <= 255.0))
    if np.any(bad):
        raise InvalidGammaInput(float(rgb_array[bad][0]) / 255.0)


class ColorSpaceEngine:
    """Static utility class for batch sRGB / XYZ / xyY transformations.

    Core transforms provide a public ``@handle_shapes`` API and a ``_raw``
    fast path that assumes validated (N, 3) float64 input. Convenience
    pipelines chain the ``_raw`` variants.
    """

    @staticmethod
    def _rgb_to_xyz_raw(rgb_array: ArrayFloat) -> ArrayFloat:
        _check_rgb_range(rgb_array)
        return _batch_rgb_to_xyz(rgb_array)

    @staticmethod
    @handle_shapes
    def rgb_to_xyz(rgb_array: ArrayFloat) -> ArrayFloat:
        """
        Converts 0..255 sRGB to XYZ (D50).

        Args:
            rgb_array: Input sRGB data, shape (N, 3) or (3,).

        Raises:
            InvalidGammaInput: If any channel lies outside [0, 255].
        """
        return ColorSpaceEngine._rgb_to_xyz_raw(rgb_array)

    @staticmethod
    @handle_shapes
    def xyz_to_rgb(xyz_array: ArrayFloat) -> ArrayFloat:
        """Converts XYZ (D50) to 0..255 sRGB. Out-of-gamut values are kept."""
        return _batch_xyz_to_rgb(xyz_array)

    @staticmethod
    @handle_shapes
    def xyz_to_xyy(xyz_array: ArrayFloat) -> ArrayFloat:
        """Converts XYZ to xyY. Black rows become (0.3457, 0.3585, 0)."""
        return _batch_xyz_to_xyy(xyz_array)

    @staticmethod
    @handle_shapes
    def xyy_to_xyz(xyy_array: ArrayFloat) -> ArrayFloat:
        """Converts xyY to XYZ. Rows with y == 0 become (0, 0, 0)."""
        return _batch_xyy_to_xyz(xyy_array)

    @staticmethod
    @handle_shapes
    def rgb_to_xyy(rgb_array: ArrayFloat) -> ArrayFloat:
        """Direct conversion sRGB -> xyY."""
        return _batch_xyz_to_xyy(ColorSpaceEngine._rgb_to_xyz_raw(rgb_array))

    @staticmethod
    @handle_shapes
    def xyy_to_rgb(xyy_array: ArrayFloat) -> ArrayFloat:
        """Direct conversion xyY -> sRGB."""
        return _batch_xyz_to_rgb(_batch_xyy_to_xyz(xyy_array))
