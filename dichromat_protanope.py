# -*- coding: utf-8 -*-
"""
Dichromat: Simulating dichromatic color perception in chromaticity space
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Protanope Simulator
===================
Estimates the color a protanope perceives for a given sRGB color.

Model:
    1. The *vision curve*: a quadratic ``y = a x^2 + b x + c`` in xy
       chromaticity through the three stimuli a protanope perceives like a
       normal observer (470 nm, 575 nm and the D50 white point), fitted by
       Lagrange interpolation once at import.
    2. The *confusion line*: all chromaticities on the line through the
       protanope confusion point (0.747, 0.253) and the input color look
       identical to a protanope.
    3. The simulated chromaticity is the intersection of the confusion line
       with the vision curve, pulled back along the confusion line onto the
       sRGB gamut triangle if it falls outside.
    4. Luminance is reweighted for the weak long-wavelength response
       (Judd, J. Res. NBS 33 (1944) 407).

Root selection:
    The intersection takes the ``(-B + sqrt(disc)) / 2A`` root. With the
    fixed constants the leading coefficient ``A`` is negative, so this is the
    *smaller* x root, which is the one inside the sRGB triangle. Changing the
    anchor points can flip the sign of ``A``; the primary-color tests pin
    this behaviour.

Errors:
    - ``InvalidGammaInput``: an input channel outside [0, 255].
    - ``NoCurveIntersection``: the confusion line misses the vision curve.
    - Out-of-gamut *results* are not errors; they are rounded, clamped and
      reported through ``ProtanResult.out_of_gamut``.
"""

import math
from dataclasses import dataclass
from typing import Final, Tuple

from numba import njit

from dichromat_colorengine import (
    DichromatError,
    Rgb,
    Xyy,
    Xyz,
    XYY_470,
    XYY_575,
    XYY_BLUE_PRIMARY,
    XYY_GREEN_PRIMARY,
    XYY_RED_PRIMARY,
    XYY_WHITE_D50,
    _round_half_away,
    rgb_to_xyz,
    xyy_to_xyz,
    xyz_to_rgb,
    xyz_to_xyy,
)

__all__ = [
    # --- Errors ---
    "NoCurveIntersection",

    # --- Value types ---
    "QuadraticPolynomial",
    "Line",
    "ProtanResult",

    # --- Constants ---
    "XYY_CONFUSION_POINT",
    "VISION_CURVE",
    "STATUS_OK",
    "STATUS_OUT_OF_GAMUT",
    "STATUS_NO_INTERSECTION",

    # --- Model ---
    "lagrange_step",
    "lagrange_interpolate",
    "xyy_line",
    "confusion_line",
    "protan_luminance",
    "intersect_curve_line",
    "move_within_rgb",

    # --- Entry points ---
    "simulate",
    "get_proto_color",
]


class NoCurveIntersection(DichromatError):
    """The confusion line does not meet the vision curve (negative discriminant)."""

    def __init__(self, discriminant: float) -> None:
        self.discriminant = discriminant
        super().__init__(
            f"Confusion line does not intersect the vision curve "
            f"(discriminant={discriminant!r})"
        )


# =============================================================================
# 1. VALUE TYPES
# =============================================================================

@dataclass(slots=True, frozen=True)
class QuadraticPolynomial:
    """Coefficients of ``y = a*x**2 + b*x + c``."""
    a: float
    b: float
    c: float

    def __call__(self, x: float) -> float:
        return self.a * x * x + self.b * x + self.c


@dataclass(slots=True, frozen=True)
class Line:
    """Slope-intercept line ``y = m*x + b``."""
    m: float
    b: float

    def __call__(self, x: float) -> float:
        return self.m * x + self.b


@dataclass(slots=True, frozen=True)
class ProtanResult:
    """Outcome of a single-pixel simulation.

    Attributes:
        rgb: Rounded (half away from zero) and clamped display color.
        raw: Unrounded, unclamped color from the inverse transform.
        out_of_gamut: True if any rounded channel needed clamping, i.e. the
            confusion line never re-entered the displayable gamut.
    """
    rgb: Rgb
    raw: Rgb
    out_of_gamut: bool


# =============================================================================
# 2. VISION CURVE (Lagrange interpolation)
# =============================================================================

def lagrange_step(p0: Xyy, p1: Xyy, p2: Xyy) -> QuadraticPolynomial:
    """Partial Lagrange basis term for ``p0``, expanded into coefficients."""
    a = p0.y / ((p0.x - p1.x) * (p0.x - p2.x))
    return QuadraticPolynomial(a, a * (-p1.x - p2.x), a * p1.x * p2.x)


def lagrange_interpolate(p0: Xyy, p1: Xyy, p2: Xyy) -> QuadraticPolynomial:
    """Returns the unique quadratic through the chromaticities of three points."""
    s0 = lagrange_step(p0, p1, p2)
    s1 = lagrange_step(p1, p0, p2)
    s2 = lagrange_step(p2, p0, p1)
    return QuadraticPolynomial(
        s0.a + s1.a + s2.a,
        s0.b + s1.b + s2.b,
        s0.c + s1.c + s2.c,
    )


# Protanope confusion point in xyY.
XYY_CONFUSION_POINT: Final[Xyy] = Xyy(0.747, 0.253, 1.0)

# Protanopes see 470 nm, 575 nm and white correctly.
VISION_CURVE: Final[QuadraticPolynomial] = lagrange_interpolate(XYY_470, XYY_575, XYY_WHITE_D50)

# Judd's protan luminance weights on X, Y, Z.
_LUM_X: Final[float] = -0.460
_LUM_Y: Final[float] = 1.359
_LUM_Z: Final[float] = 0.101

# Pixel status codes shared with the frame kernels.
STATUS_OK: Final[int] = 0
STATUS_OUT_OF_GAMUT: Final[int] = 1
STATUS_NO_INTERSECTION: Final[int] = 2

# Plain floats for the kernels.
_CONF_X: Final[float] = XYY_CONFUSION_POINT.x
_CONF_Y: Final[float] = XYY_CONFUSION_POINT.y
_CURVE_A: Final[float] = VISION_CURVE.a
_CURVE_B: Final[float] = VISION_CURVE.b
_CURVE_C: Final[float] = VISION_CURVE.c
_GREEN_X: Final[float] = XYY_GREEN_PRIMARY.x


# =============================================================================
# 3. GEOMETRY KERNELS (Numba)
# =============================================================================

@njit(cache=True, inline="always")
def _line_k(x0: float, y0: float, x1: float, y1: float) -> Tuple[float, float]:
    """Slope and intercept through two points, ordered by ascending x."""
    if x0 > x1:
        x0, y0, x1, y1 = x1, y1, x0, y0
    slope = (y1 - y0) / (x1 - x0)
    return slope, y0 - slope * x0

@njit(cache=True, inline="always")
def _protan_luminance_k(X: float, Y: float, Z: float) -> float:
    return _LUM_X * X + _LUM_Y * Y + _LUM_Z * Z

@njit(cache=True, inline="always")
def _intersect_k(a: float, b: float, c: float, m: float, lb: float) -> Tuple[float, float]:
    """Returns ``(discriminant, x)``. ``x`` is meaningless if disc < 0."""
    A = a
    B = b - m
    C = c - lb
    disc = B * B - 4.0 * A * C
    if disc < 0.0:
        return disc, 0.0
    return disc, (-B + math.sqrt(disc)) / (2.0 * A)


def _edge(p0: Xyy, p1: Xyy) -> Tuple[float, float]:
    return _line_k(p0.x, p0.y, p1.x, p1.y)

_BG_M, _BG_B = _edge(XYY_BLUE_PRIMARY, XYY_GREEN_PRIMARY)
_GR_M, _GR_B = _edge(XYY_GREEN_PRIMARY, XYY_RED_PRIMARY)


@njit(cache=True, inline="always")
def _move_within_rgb_k(m: float, lb: float, x: float, y: float) -> Tuple[float, float]:
    """Pulls (x, y) back along the line (m, lb) onto the violated gamut edge."""
    if x < _GREEN_X:
        em, eb = _BG_M, _BG_B
    else:
        em, eb = _GR_M, _GR_B
    if y > em * x + eb:
        nx = (eb - lb) / (m - em)
        return nx, em * nx + eb
    return x, y

@njit(cache=True, inline="always")
def _clamp_channel(v: float) -> Tuple[float, bool]:
    """Rounds and clamps to [0, 255]; flags whether clamping was needed."""
    r = _round_half_away(v)
    if r < 0.0:
        return 0.0, True
    if r > 255.0:
        return 255.0, True
    return r, False


# =============================================================================
# 4. MODEL API
# =============================================================================

def xyy_line(p0: Xyy, p1: Xyy) -> Line:
    """
    Line through the chromaticities of two xyY points.

    The points are ordered by x first, so the result does not depend on
    argument order.

    Raises:
        DichromatError: If both points share the same x (vertical line).
    """
    if p0.x == p1.x:
        raise DichromatError(f"Cannot build a line through two points with x={p0.x!r}")
    return Line(*_line_k(float(p0.x), float(p0.y), float(p1.x), float(p1.y)))


def confusion_line(xyy: Xyy) -> Line:
    """Protanope confusion line through ``xyy``.

    The confusion point lies outside the sRGB triangle, so any displayable
    chromaticity yields a finite slope.
    """
    return xyy_line(XYY_CONFUSION_POINT, xyy)


def protan_luminance(xyz: Xyz) -> float:
    """Luminance as seen by a protanope (reduced red response)."""
    return _protan_luminance_k(float(xyz.x), float(xyz.y), float(xyz.z))


def intersect_curve_line(curve: QuadraticPolynomial, line: Line, Y: float) -> Xyy:
    """
    Intersects ``line`` with ``curve`` and attaches luminance ``Y``.

    Raises:
        NoCurveIntersection: If the discriminant is negative.
        DichromatError: If the curve is degenerate (``a == 0``).
    """
    if curve.a == 0.0:
        raise DichromatError("Vision curve is degenerate (a == 0)")
    disc, x = _intersect_k(float(curve.a), float(curve.b), float(curve.c),
                           float(line.m), float(line.b))
    if disc < 0.0:
        raise NoCurveIntersection(disc)
    return Xyy(x, line(x), Y)


def move_within_rgb(line: Line, xyy: Xyy) -> Xyy:
    """
    Moves ``xyy`` along ``line`` back onto the sRGB triangle if it lies
    beyond the blue-green or green-red edge. Luminance is kept.

    Best effort only: the result can still convert to a color outside the
    display range, which the final clamp handles.
    """
    x, y = _move_within_rgb_k(float(line.m), float(line.b), float(xyy.x), float(xyy.y))
    if x == xyy.x and y == xyy.y:
        return xyy
    return Xyy(x, y, xyy.Y)


# =============================================================================
# 5. ENTRY POINTS
# =============================================================================

def simulate(rgb: Rgb) -> ProtanResult:
    """
    Full protanope simulation of one sRGB color, with the out-of-gamut flag.

    Args:
        rgb: Input color, channels in [0, 255].

    Returns:
        ``ProtanResult`` holding the display color and diagnostics.

    Raises:
        InvalidGammaInput: If a channel is outside [0, 255].
        NoCurveIntersection: If the confusion line misses the vision curve.
    """
    xyz = rgb_to_xyz(rgb)
    xyy = xyz_to_xyy(xyz)

    line = confusion_line(xyy)
    hit = intersect_curve_line(VISION_CURVE, line, protan_luminance(xyz))
    bounded = move_within_rgb(line, hit)

    raw = xyz_to_rgb(xyy_to_xyz(bounded))
    r, r_clamped = _clamp_channel(raw.r)
    g, g_clamped = _clamp_channel(raw.g)
    b, b_clamped = _clamp_channel(raw.b)
    return ProtanResult(
        rgb=Rgb(r, g, b),
        raw=raw,
        out_of_gamut=bool(r_clamped or g_clamped or b_clamped),
    )


def get_proto_color(rgb: Rgb) -> Rgb:
    """Estimates the color perceived by a protanope for ``rgb``."""
    return simulate(rgb).rgb
