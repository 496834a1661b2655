"""
Tests for whole-frame processing.

Covers:
1. Agreement between the parallel frame kernel and the scalar pipeline
2. Channel order handling
3. RMSD statistics and out-of-gamut counting
4. Fault tolerance and logging of the frame stream
"""

import logging
from typing import Iterator

import numpy as np
import pytest

from dichromat_colorengine import Rgb, set_strict_ieee, strict_ieee_enabled
from dichromat_frames import (
    FrameResult,
    iter_simulated_frames,
    simulate_frame,
    xyz_rmsd,
)
from dichromat_protanope import simulate


@pytest.fixture
def random_frame() -> np.ndarray:
    rng = np.random.default_rng(2016)
    return rng.integers(0, 256, size=(12, 9, 3), dtype=np.uint8)


@pytest.fixture
def strict_mode() -> Iterator[None]:
    set_strict_ieee(True)
    try:
        yield
    finally:
        set_strict_ieee(False)


# =============================================================================
# KERNEL AGREEMENT
# =============================================================================


class TestFrameKernel:
    def test_matches_scalar_pipeline(self, random_frame: np.ndarray) -> None:
        result = simulate_frame(random_frame, channel_order="rgb")
        assert result.frame.shape == random_frame.shape
        assert result.frame.dtype == np.uint8
        for pixel, simulated in zip(random_frame.reshape(-1, 3), result.frame.reshape(-1, 3)):
            expected = simulate(Rgb(*(float(c) for c in pixel))).rgb
            np.testing.assert_allclose(simulated, expected.as_array(), atol=1.0)

    def test_strict_mode_counts_match_scalar_flags(
        self, random_frame: np.ndarray, strict_mode: None
    ) -> None:
        assert strict_ieee_enabled()
        result = simulate_frame(random_frame, channel_order="rgb")
        expected = sum(
            simulate(Rgb(*(float(c) for c in pixel))).out_of_gamut
            for pixel in random_frame.reshape(-1, 3)
        )
        assert result.out_of_gamut == expected
        assert result.failures == 0

    def test_strict_toggle_resets(self) -> None:
        set_strict_ieee(True)
        set_strict_ieee(False)
        assert not strict_ieee_enabled()

    def test_input_frame_untouched(self, random_frame: np.ndarray) -> None:
        before = random_frame.copy()
        simulate_frame(random_frame)
        np.testing.assert_array_equal(random_frame, before)


# =============================================================================
# CHANNEL ORDER
# =============================================================================


class TestChannelOrder:
    def test_bgr_is_reversed_rgb(self, random_frame: np.ndarray) -> None:
        as_rgb = simulate_frame(random_frame, channel_order="rgb")
        as_bgr = simulate_frame(np.ascontiguousarray(random_frame[..., ::-1]), channel_order="bgr")
        np.testing.assert_array_equal(as_bgr.frame[..., ::-1], as_rgb.frame)
        assert as_bgr.rmsd == pytest.approx(as_rgb.rmsd)

    def test_unknown_order_raises(self, random_frame: np.ndarray) -> None:
        with pytest.raises(ValueError):
            simulate_frame(random_frame, channel_order="hsv")  # type: ignore[arg-type]


# =============================================================================
# STATISTICS
# =============================================================================


class TestStatistics:
    def test_black_frame_has_zero_rmsd(self) -> None:
        result = simulate_frame(np.zeros((4, 4, 3), dtype=np.uint8))
        np.testing.assert_array_equal(result.frame, 0)
        assert result.rmsd == 0.0
        assert result.out_of_gamut == 0

    def test_rmsd_matches_metric_helper(self, random_frame: np.ndarray) -> None:
        result = simulate_frame(random_frame, channel_order="rgb")
        assert result.rmsd > 0.0
        assert result.rmsd == pytest.approx(xyz_rmsd(random_frame, result.frame), rel=1e-6)

    def test_xyz_rmsd_identical_images(self, random_frame: np.ndarray) -> None:
        assert xyz_rmsd(random_frame, random_frame) == 0.0

    def test_xyz_rmsd_shape_mismatch(self) -> None:
        with pytest.raises(ValueError):
            xyz_rmsd(np.zeros((2, 3)), np.zeros((3, 3)))

    def test_empty_frame(self) -> None:
        result = simulate_frame(np.zeros((0, 5, 3), dtype=np.uint8))
        assert isinstance(result, FrameResult)
        assert result.frame.shape == (0, 5, 3)
        assert result.rmsd == 0.0


# =============================================================================
# VALIDATION & STREAMS
# =============================================================================


class TestValidation:
    def test_rejects_float_frames(self) -> None:
        with pytest.raises(ValueError, match="uint8"):
            simulate_frame(np.zeros((2, 2, 3), dtype=np.float32))

    def test_rejects_wrong_shape(self) -> None:
        with pytest.raises(ValueError, match="shape"):
            simulate_frame(np.zeros((2, 2, 4), dtype=np.uint8))


class TestFrameStream:
    def test_bad_frame_is_skipped_and_logged(
        self, random_frame: np.ndarray, caplog: pytest.LogCaptureFixture
    ) -> None:
        frames = [random_frame, np.zeros((2, 2), dtype=np.uint8), random_frame]
        with caplog.at_level(logging.ERROR, logger="dichromat_frames"):
            results = list(iter_simulated_frames(frames))
        assert [index for index, _ in results] == [0, 2]
        assert any("frame #1" in record.getMessage() for record in caplog.records)

    def test_progress_is_logged(
        self, random_frame: np.ndarray, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.INFO, logger="dichromat_frames"):
            list(iter_simulated_frames([random_frame] * 3, log_every=1))
        progress = [r for r in caplog.records if r.getMessage().startswith("Frame: ")]
        assert len(progress) == 2

    def test_results_match_single_frame_api(self, random_frame: np.ndarray) -> None:
        (_, streamed), = list(iter_simulated_frames([random_frame], log_every=0))
        direct = simulate_frame(random_frame)
        np.testing.assert_array_equal(streamed.frame, direct.frame)
