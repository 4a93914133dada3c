import logging

import numpy as np
import pytest

from conftest import FixedClusterer, make_step
from Filters.convolution import GAUSSIAN_KERNEL, IDENTITY_KERNEL, averaging_kernel, convolve
from Filters.gradient import GradientOperator, Norm, compute_gradient
from Filters.threshold import Thresholds
from Pipelines.canny import CannyConfig, CannyPipeline, CannyResult, CannyStage, detect_edges
from Utils.errors import ConfigurationError, GridError, GridSizeError, ThresholdSelectionError

MANUAL = (50, 80)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("options,field", [
    ({"thresholds": (90, 10)}, "thresholds"),
    ({"thresholds": (-1, 10)}, "thresholds"),
    ({"thresholds": (0, 300)}, "thresholds"),
    ({"min_edge_size": -1}, "min_edge_size"),
    ({"min_edge_size": 2.5}, "min_edge_size"),
    ({"norm": "L3"}, "norm"),
    ({"operator": "roberts"}, "operator"),
    ({"smoothing_kernel": np.zeros((0, 0))}, "smoothing_kernel"),
    ({"seed": "abc"}, "seed"),
])
def test_invalid_configuration_is_rejected_eagerly(options, field):
    with pytest.raises(ConfigurationError) as exc:
        CannyConfig(**options)
    assert exc.value.field == field


def test_configuration_normalises_values():
    cfg = CannyConfig(norm="l1", thresholds=[5, 9], operator="PREWITT", min_edge_size=np.int64(3))
    assert cfg.norm is Norm.L1
    assert cfg.operator is GradientOperator.PREWITT
    assert cfg.thresholds == Thresholds(5, 9)
    assert cfg.min_edge_size == 3
    assert not cfg.automatic
    assert CannyConfig().automatic


def test_default_smoothing_kernel_is_gaussian():
    assert np.array_equal(CannyConfig().smoothing_kernel, GAUSSIAN_KERNEL)
    assert np.array_equal(CannyConfig(smoothing_kernel=None).smoothing_kernel, GAUSSIAN_KERNEL)


def test_seed_and_explicit_clusterer_are_exclusive():
    with pytest.raises(ConfigurationError) as exc:
        CannyConfig(seed=3, clusterer=FixedClusterer([1.0, 2.0, 3.0]))
    assert exc.value.field == "seed"


def test_default_contraction():
    cfg = CannyConfig()
    assert cfg.min_shape == (7, 7)
    assert cfg.contraction == (6, 6)
    assert CannyConfig(smoothing_kernel=IDENTITY_KERNEL).contraction == (2, 2)


def test_config_and_options_are_exclusive():
    with pytest.raises(ConfigurationError):
        CannyPipeline(CannyConfig(), norm="L1")


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("shape", [(6, 6), (7, 6), (6, 20), (1, 1)])
def test_undersized_input_fails_fast(shape):
    with pytest.raises(GridSizeError):
        detect_edges(np.zeros(shape, dtype=np.uint8), thresholds=MANUAL)


def test_minimum_input_gives_single_pixel():
    result = detect_edges(np.zeros((7, 7), dtype=np.uint8), thresholds=MANUAL)
    assert result.shape == (1, 1)


@pytest.mark.parametrize("bad", [np.zeros((8, 8, 3)), [[0, 300] * 5] * 10, [[1.5] * 10] * 10])
def test_malformed_input_is_rejected(bad):
    with pytest.raises(GridError):
        detect_edges(bad, thresholds=MANUAL)


def test_input_is_left_untouched(step_image):
    before = step_image.copy()
    detect_edges(step_image, thresholds=MANUAL)
    assert np.array_equal(step_image, before)
    assert step_image.flags.writeable


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("norm", ["L1", "L2"])
@pytest.mark.parametrize("thresholds", [(1, 1), (1, 10), (50, 200)])
def test_uniform_image_has_no_edges(norm, thresholds):
    result = detect_edges(np.full((10, 10), 128, dtype=np.uint8), norm=norm, thresholds=thresholds)
    assert result.shape == (4, 4)
    assert result.num_edge_pixels == 0
    assert result.num_strong_pixels == 0
    assert result.num_weak_pixels == 0


def test_step_image_gives_band_at_boundary(step_image):
    # suppressed magnitudes per row: [0, 0, 0, 0, 0, 0, 88, 88, 0, ...]
    result = detect_edges(step_image, thresholds=MANUAL, min_edge_size=1)
    assert result.shape == (4, 14)
    expected = np.zeros((4, 14), dtype=bool)
    expected[:, 6:8] = True
    assert np.array_equal(result.edges, expected)
    assert np.array_equal(result.strong, expected)
    assert result.num_weak_pixels == 0
    assert result.thresholds == Thresholds(*MANUAL)
    assert result.thresholds_computed is False


def saturated_step():
    # columns 0-4 black, 5-9 white
    img = np.zeros((10, 10), dtype=np.uint8)
    img[:, 5:] = 255
    return img


@pytest.mark.parametrize("signed", [False, True])
def test_full_contrast_step_saturates_every_column(signed):
    # every x derivative exceeds 255 and is clipped, so no pixel is a strict
    # maximum and the whole 4x4 output is one edge component
    result = detect_edges(saturated_step(), thresholds=(50, 100), min_edge_size=1, signed_gradient=signed)
    assert result.shape == (4, 4)
    assert result.edges.all()
    assert result.num_strong_pixels == 16
    assert result.kept_components == 1


def test_full_contrast_step_peaks_at_boundary_before_clipping():
    smoothed = convolve(saturated_step(), GAUSSIAN_KERNEL)
    gx = compute_gradient(smoothed, signed=True).gx
    assert (gx[:, 1] == 556).all()
    assert (gx[:, 2] == 556).all()
    assert (gx[:, [0, 3]] < 556).all()


def test_step_band_same_for_both_norms(step_image):
    l1 = detect_edges(step_image, norm="L1", thresholds=MANUAL)
    l2 = detect_edges(step_image, norm="L2", thresholds=MANUAL)
    assert np.array_equal(l1.edges, l2.edges)


def test_threshold_above_boundary_gives_nothing(step_image):
    result = detect_edges(step_image, thresholds=(89, 200))
    assert result.num_edge_pixels == 0


def test_min_edge_size_discards_whole_component(step_image):
    # the boundary band is a single component of 8 pixels
    kept = detect_edges(step_image, thresholds=MANUAL, min_edge_size=8)
    assert kept.num_edge_pixels == 8
    dropped = detect_edges(step_image, thresholds=MANUAL, min_edge_size=9)
    assert dropped.num_edge_pixels == 0
    assert dropped.num_strong_pixels == 8
    assert dropped.dropped_components == 1


def test_falling_step_needs_signed_gradient():
    falling = make_step(left=40, right=0)
    assert detect_edges(falling, thresholds=MANUAL).num_edge_pixels == 0

    signed = detect_edges(falling, thresholds=MANUAL, signed_gradient=True)
    expected = np.zeros((4, 14), dtype=bool)
    expected[:, 6:8] = True
    assert np.array_equal(signed.edges, expected)


def test_custom_smoothing_kernel_changes_contraction(step_image):
    result = detect_edges(step_image, thresholds=(10, 20), smoothing_kernel=averaging_kernel(3, 3))
    assert result.shape == (6, 16)


# ---------------------------------------------------------------------------
# Automatic thresholds
# ---------------------------------------------------------------------------

def test_automatic_thresholds_come_from_clusterer(noise_image):
    clusterer = FixedClusterer([90.9, 30.2, 150.0])
    result = detect_edges(noise_image, clusterer=clusterer)
    assert result.thresholds == Thresholds(30, 90)
    assert result.thresholds_computed is True
    assert len(clusterer.calls) == 1
    assert clusterer.calls[0]["n_points"] == 34 * 34


def test_automatic_thresholds_on_degenerate_magnitudes(step_image):
    # only magnitudes 0 and 88 survive suppression
    with pytest.raises(ThresholdSelectionError):
        detect_edges(step_image, clusterer=FixedClusterer([1.0, 2.0, 3.0]))


def test_seeded_kmeans_is_reproducible(noise_image):
    a = detect_edges(noise_image, seed=0)
    b = detect_edges(noise_image, seed=0)
    assert a.thresholds == b.thresholds
    assert np.array_equal(a.edges, b.edges)
    assert 0 <= a.thresholds.low <= a.thresholds.high <= 255


# ---------------------------------------------------------------------------
# Result invariants
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("min_edge_size", [0, 1, 5])
def test_edges_only_from_strong_or_weak(noise_image, min_edge_size):
    result = detect_edges(noise_image, thresholds=(40, 120), min_edge_size=min_edge_size)
    assert not (result.edges & ~(result.strong | result.weak)).any()
    assert not (result.strong & result.weak).any()
    assert result.num_edge_pixels == int(result.edges.sum())


def test_runs_do_not_share_state(noise_image, step_image):
    pipeline = CannyPipeline(thresholds=MANUAL)
    first = pipeline.run(step_image)
    pipeline.run(noise_image)
    again = pipeline.run(step_image)
    assert np.array_equal(first.edges, again.edges)
    assert not first.edges.flags.writeable


def test_summary_reports_counts(step_image):
    summary = detect_edges(step_image, thresholds=MANUAL).summary()
    assert summary == {
        "rows": 4, "columns": 14,
        "low_threshold": 50, "high_threshold": 80, "thresholds_computed": False,
        "edge_pixels": 8, "strong_pixels": 8, "weak_pixels": 0,
        "kept_components": 1, "dropped_components": 0,
    }


def test_canny_stage_envelope(step_image):
    env = CannyStage(CannyConfig(thresholds=MANUAL)).process({"id": "a", "payload": step_image, "meta": {}})
    assert isinstance(env["payload"], CannyResult)
    assert env["meta"]["thresholds"] == Thresholds(*MANUAL)
    assert env["meta"]["stage"] == 1


def test_thresholds_and_counts_logged_per_image(step_image, caplog):
    caplog.set_level(logging.INFO, logger="canny")
    detect_edges(step_image, thresholds=MANUAL)
    messages = [r.getMessage() for r in caplog.records if r.name == "canny" and r.levelno == logging.INFO]
    assert any("low=50 high=80 (supplied)" in m and "edges=8" in m for m in messages)
