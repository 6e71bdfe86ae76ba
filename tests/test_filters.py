"""
Smoothing filter tests: Kalman, adaptive Kalman and per-mode smoothing
"""

import numpy as np
import pytest

from vocable_gaze.config import AdaptiveKalmanConfig, KalmanConfig
from vocable_gaze.filters import AdaptiveKalmanFilter, GazeSmoother, KalmanFilter2D
from vocable_gaze.models import SmoothingMode


def _noisy_track(n=200, seed=0):
    rng = np.random.default_rng(seed)
    t = np.linspace(0, 4 * np.pi, n)
    xs = 0.5 * np.sin(t) + rng.normal(0, 0.05, n)
    ys = 0.3 * np.cos(t) + rng.normal(0, 0.05, n)
    return list(zip(xs, ys))


# ----------------------------------------------------------------------
# KalmanFilter2D
# ----------------------------------------------------------------------

def test_kalman_first_step_seeds_state():
    kf = KalmanFilter2D()
    assert not kf.is_initialized
    assert kf.step(0.25, -0.5) == pytest.approx((0.25, -0.5))
    assert kf.is_initialized
    assert kf.get_velocity() == (0.0, 0.0)


def test_kalman_predict_never_lowers_uncertainty_and_update_never_raises_it():
    kf = KalmanFilter2D()
    kf.initialize(0.0, 0.0)
    for mx, my in _noisy_track():
        before = kf.get_uncertainty()
        kf.predict()
        after_predict = kf.get_uncertainty()
        assert after_predict >= before * (1 - 1e-9)

        kf.update(mx, my)
        after_update = kf.get_uncertainty()
        assert after_update <= after_predict * (1 + 1e-9)
        assert after_update > 0


def test_kalman_covariance_stays_symmetric():
    kf = KalmanFilter2D()
    for mx, my in _noisy_track(50):
        kf.step(mx, my)
    P = kf.get_covariance()
    assert np.allclose(P, P.T)


def test_kalman_converges_to_constant_measurement():
    kf = KalmanFilter2D()
    kf.initialize(0.0, 0.0)
    for _ in range(300):
        x, y = kf.step(0.5, -0.3)
    assert x == pytest.approx(0.5, abs=1e-3)
    assert y == pytest.approx(-0.3, abs=1e-3)


def test_kalman_reset_clears_state():
    kf = KalmanFilter2D()
    for mx, my in _noisy_track(20):
        kf.step(mx, my)
    kf.reset()
    assert not kf.is_initialized
    assert kf.get_state() == (0.0, 0.0)
    assert kf.get_uncertainty() == pytest.approx(1.0)


def test_kalman_smooths_noise():
    rng = np.random.default_rng(3)
    kf = KalmanFilter2D(KalmanConfig.stable())
    raw_err, filt_err = [], []
    for _ in range(400):
        mx, my = 0.2 + rng.normal(0, 0.05), -0.1 + rng.normal(0, 0.05)
        x, y = kf.step(mx, my)
        raw_err.append(abs(mx - 0.2))
        filt_err.append(abs(x - 0.2))
    assert np.mean(filt_err[50:]) < 0.8 * np.mean(raw_err[50:])


# ----------------------------------------------------------------------
# AdaptiveKalmanFilter
# ----------------------------------------------------------------------

def test_adaptive_multiplier_bounded_and_monotonic():
    akf = AdaptiveKalmanFilter()
    cfg = akf.config
    velocities = np.linspace(0.0, 0.2, 400)
    multipliers = [akf.noise_multiplier(v) for v in velocities]
    assert all(cfg.min_multiplier <= m <= cfg.max_multiplier for m in multipliers)
    assert all(b >= a for a, b in zip(multipliers, multipliers[1:]))


def test_adaptive_multiplier_limits():
    akf = AdaptiveKalmanFilter()
    cfg = akf.config
    assert akf.noise_multiplier(0.0) == cfg.min_multiplier
    assert akf.noise_multiplier(cfg.dwell_threshold) == cfg.min_multiplier
    assert akf.noise_multiplier(cfg.saccade_threshold) == pytest.approx(cfg.max_multiplier)
    assert akf.noise_multiplier(10.0) == pytest.approx(cfg.max_multiplier)
    assert akf.noise_multiplier(float('inf')) == cfg.max_multiplier
    assert akf.noise_multiplier(float('nan')) == cfg.min_multiplier


def test_adaptive_multiplier_is_continuous_at_thresholds():
    akf = AdaptiveKalmanFilter()
    cfg = akf.config
    eps = 1e-7
    for v in (cfg.dwell_threshold, cfg.saccade_threshold):
        assert akf.noise_multiplier(v + eps) - akf.noise_multiplier(v - eps) < 1e-4


def test_adaptive_rejects_bad_config():
    with pytest.raises(ValueError):
        AdaptiveKalmanFilter(AdaptiveKalmanConfig(dwell_threshold=0.1, saccade_threshold=0.05))
    with pytest.raises(ValueError):
        AdaptiveKalmanFilter(AdaptiveKalmanConfig(min_multiplier=2.0, max_multiplier=1.0))


def test_adaptive_uncertainty_invariants():
    akf = AdaptiveKalmanFilter()
    akf.initialize(0.0, 0.0)
    for mx, my in _noisy_track(seed=1):
        before = akf.get_uncertainty()
        akf.predict()
        after_predict = akf.get_uncertainty()
        assert after_predict >= before * (1 - 1e-9)
        akf.update(mx, my)
        assert akf.get_uncertainty() <= after_predict * (1 + 1e-9)


def test_adaptive_fixation_uses_minimum_multiplier():
    akf = AdaptiveKalmanFilter()
    for _ in range(30):
        akf.step(0.1, 0.1)
    assert akf.is_fixating
    assert akf.multiplier == akf.config.min_multiplier
    assert np.allclose(akf.get_effective_noise(), akf.kalman.R / akf.config.min_multiplier)


def test_adaptive_saccade_reacts_faster_than_plain_kalman():
    kf = KalmanFilter2D()
    akf = AdaptiveKalmanFilter()
    for _ in range(100):
        kf.step(0.0, 0.0)
        akf.step(0.0, 0.0)

    kx, _ = kf.step(1.0, 0.0)
    ax, _ = akf.step(1.0, 0.0)

    assert akf.multiplier == pytest.approx(akf.config.max_multiplier)
    assert not akf.is_fixating
    assert abs(1.0 - ax) < abs(1.0 - kx)


# ----------------------------------------------------------------------
# GazeSmoother
# ----------------------------------------------------------------------

def test_smoother_none_passes_through():
    smoother = GazeSmoother()
    assert smoother.smooth(SmoothingMode.NONE, 0.3, -0.2) == (0.3, -0.2)
    assert smoother.smooth(SmoothingMode.NONE, -0.7, 0.9) == (-0.7, 0.9)


def test_smoother_lerp_moves_by_alpha():
    smoother = GazeSmoother(lerp_alpha=0.25)
    assert smoother.smooth(SmoothingMode.SIMPLE_LERP, 0.0, 0.0) == (0.0, 0.0)
    x, y = smoother.smooth(SmoothingMode.SIMPLE_LERP, 1.0, -1.0)
    assert x == pytest.approx(0.25)
    assert y == pytest.approx(-0.25)


def test_smoother_combined_blends_both_filters():
    smoother = GazeSmoother(combined_weight=0.5)
    kf = KalmanFilter2D()
    akf = AdaptiveKalmanFilter()
    for mx, my in _noisy_track(40, seed=2):
        out = smoother.smooth(SmoothingMode.COMBINED, mx, my)
        kx, ky = kf.step(mx, my)
        ax, ay = akf.step(mx, my)
        assert out[0] == pytest.approx(0.5 * ax + 0.5 * kx)
        assert out[1] == pytest.approx(0.5 * ay + 0.5 * ky)


def test_smoother_mode_change_resets_filters():
    smoother = GazeSmoother()
    for _ in range(20):
        smoother.smooth(SmoothingMode.KALMAN_FILTER, 0.0, 0.0)
    assert smoother.smooth(SmoothingMode.ADAPTIVE_KALMAN, 0.8, 0.8) == pytest.approx((0.8, 0.8))
    assert smoother.smooth(SmoothingMode.KALMAN_FILTER, -0.5, 0.4) == pytest.approx((-0.5, 0.4))
    assert smoother.last_output == pytest.approx((-0.5, 0.4))


def test_smoother_validates_parameters():
    with pytest.raises(ValueError):
        GazeSmoother(lerp_alpha=0.0)
    with pytest.raises(ValueError):
        GazeSmoother(combined_weight=1.5)
