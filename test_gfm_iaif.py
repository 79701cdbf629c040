import numpy as np
import pytest
from scipy.linalg import solve_toeplitz
from scipy.signal import lfilter

from gfm_iaif import (
    GfmIaifConfig,
    gfm_iaif,
    preframe,
    cancel_lip_radiation,
    gross_glottis,
    gross_vocal_tract,
    fine_glottis,
    fine_vocal_tract,
)
from lpc import hann, lpc
from synthesis import synthesize_vowel


@pytest.fixture
def vowel_frame():
    frame, _ = synthesize_vowel(512, seed=11)
    return frame


def _ar_process(coeffs, n_samples, seed, burn_in=1000):
    rng = np.random.default_rng(seed)
    noise = rng.normal(size=n_samples + burn_in)
    return lfilter([1], coeffs, noise)[burn_in:]


def test_default_outputs_on_voiced_frame(vowel_frame):
    av, ag, al = gfm_iaif(vowel_frame)

    assert av.shape == (49,)
    assert ag.shape == (4,)
    assert av[0] == 1.0
    assert ag[0] == 1.0
    np.testing.assert_array_equal(al, [1, -0.99])
    assert np.all(np.isfinite(av))
    assert np.all(np.isfinite(ag))


@pytest.mark.parametrize("n_vt,n_gl", [(1, 1), (4, 2), (12, 3), (30, 5)])
def test_output_orders(vowel_frame, n_vt, n_gl):
    av, ag, al = gfm_iaif(vowel_frame, n_vt=n_vt, n_gl=n_gl, d=0.9)

    assert av.shape == (n_vt + 1,)
    assert ag.shape == (n_gl + 1,)
    assert av[0] == 1.0
    assert ag[0] == 1.0
    np.testing.assert_array_equal(al, [1, -0.9])


def test_preframe_ramp():
    x = np.array([0.5, -1.0, 2.0, 0.25])
    k = 6

    x_preframe, idx = preframe(x, k)

    assert x_preframe.size == x.size + k + 1
    assert x_preframe[0] == -0.5
    assert x_preframe[k] == 0.5
    np.testing.assert_allclose(np.diff(x_preframe[:k + 1]), 1.0 / k)
    np.testing.assert_array_equal(x_preframe[idx], x)


def test_cancel_lip_radiation_integrates_both_signals():
    x = np.array([1.0, 0.0, 0.0, 2.0])
    x_preframe, _ = preframe(x, 2)

    lip_coeffs, gv, gv_preframe = cancel_lip_radiation(x, x_preframe, 0.5)

    np.testing.assert_array_equal(lip_coeffs, [1, -0.5])
    np.testing.assert_allclose(gv, [1.0, 0.5, 0.25, 2.125])
    np.testing.assert_allclose(gv_preframe, lfilter([1], [1, -0.5], x_preframe))


def test_single_order_gross_glottis_is_one_fit(vowel_frame):
    win = hann(vowel_frame.size)
    x_preframe, idx = preframe(vowel_frame, 48)
    _, gv, gv_preframe = cancel_lip_radiation(vowel_frame, x_preframe, 0.99)

    np.testing.assert_array_equal(gross_glottis(gv, gv_preframe, idx, win, 1), lpc(gv * win, 1))


def test_gross_glottis_cascades_first_order_fits(vowel_frame):
    win = hann(vowel_frame.size)
    x_preframe, idx = preframe(vowel_frame, 48)
    _, gv, gv_preframe = cancel_lip_radiation(vowel_frame, x_preframe, 0.99)

    two = gross_glottis(gv, gv_preframe, idx, win, 2)
    three = gross_glottis(gv, gv_preframe, idx, win, 3)

    assert two.shape == (3,)
    assert three.shape == (4,)
    # the third fit is cascaded onto the second-order estimate
    third = np.polydiv(three, two)
    np.testing.assert_allclose(third[1], 0.0, atol=1e-10)
    assert third[0][0] == pytest.approx(1.0)


@pytest.mark.parametrize("n", [1, 10, 512])
def test_silent_frame_gives_flat_filters(n):
    av, ag, al = gfm_iaif(np.zeros(n))

    np.testing.assert_array_equal(av, np.eye(1, 49)[0])
    np.testing.assert_array_equal(ag, [1.0, 0.0, 0.0, 0.0])
    np.testing.assert_array_equal(al, [1, -0.99])


@pytest.mark.parametrize("coeffs", [
    np.array([1.0, 0.0, 0.81]),
    np.convolve([1.0, 0.0, 0.81], [1.0, 0.0, -0.5]),
])
def test_recovers_all_pole_process(coeffs):
    x = _ar_process(coeffs, 8192, seed=21)

    av, ag, _ = gfm_iaif(x, n_vt=coeffs.size - 1, n_gl=1, d=0.01)

    assert np.max(np.abs(av - coeffs)) < 0.05
    assert abs(ag[1]) < 0.05


def test_repeated_calls_are_identical(vowel_frame):
    first = gfm_iaif(vowel_frame, n_vt=20)
    second = gfm_iaif(vowel_frame, n_vt=20)

    for a, b in zip(first, second):
        np.testing.assert_array_equal(a, b)


def test_input_frame_is_not_modified(vowel_frame):
    original = vowel_frame.copy()
    gfm_iaif(vowel_frame)
    np.testing.assert_array_equal(vowel_frame, original)


def test_explicit_hann_window_matches_default(vowel_frame):
    default = gfm_iaif(vowel_frame, n_vt=16)
    explicit = gfm_iaif(vowel_frame, n_vt=16, win=np.hanning(vowel_frame.size))

    for a, b in zip(default, explicit):
        np.testing.assert_array_equal(a, b)


def test_config_takes_precedence(vowel_frame):
    config = GfmIaifConfig(n_vt=10, n_gl=2, d=0.95)

    av, ag, al = gfm_iaif(vowel_frame, n_vt=30, config=config)

    assert av.shape == (11,)
    assert ag.shape == (3,)
    np.testing.assert_array_equal(al, [1, -0.95])


def test_config_defaults_are_independent():
    config = GfmIaifConfig(d=0.9)

    assert config.n_vt == 48
    assert config.n_gl == 3
    assert config.win is None
    np.testing.assert_allclose(config.window(8), np.hanning(8))


@pytest.mark.parametrize("frame,kwargs", [
    (np.ones(32), dict(n_vt=0)),
    (np.ones(32), dict(n_gl=0)),
    (np.ones(32), dict(n_vt=2.5)),
    (np.ones(32), dict(d=0.0)),
    (np.ones(32), dict(d=1.0)),
    (np.ones(32), dict(d=-0.5)),
    (np.ones(32), dict(win=np.ones(31))),
    (np.zeros(0), dict()),
    (np.array([0.0, np.nan, 1.0]), dict()),
    (np.ones((2, 16)), dict()),
])
def test_invalid_parameters_are_rejected(frame, kwargs):
    with pytest.raises(ValueError):
        gfm_iaif(frame, **kwargs)


def _reference_lpc(x, order):
    r = np.correlate(x, x, mode='full')[x.size - 1:x.size + order]
    return np.concatenate([[1.0], -solve_toeplitz(r[:order], r[1:order + 1])])


def _reference_gfm_iaif(x, n_vt, n_gl, d):
    # the gfmiaif.m sequence written out step by step
    win = np.hanning(x.size)
    lpf = n_vt + 1
    x_pf = np.concatenate([np.linspace(-x[0], x[0], lpf), x])

    al = np.array([1, -d])
    s_gv = lfilter([1], al, x)
    x_gv = lfilter([1], al, x_pf)

    ag1 = _reference_lpc(s_gv * win, 1)
    for i in range(n_gl - 1):
        s_v1x = lfilter(ag1, [1], x_gv)[lpf:]
        ag1 = np.convolve(ag1, _reference_lpc(s_v1x * win, 1))

    s_v1 = lfilter(ag1, [1], x_gv)[lpf:]
    av1 = _reference_lpc(s_v1 * win, n_vt)

    s_g1 = lfilter(av1, [1], x_gv)[lpf:]
    ag = _reference_lpc(s_g1 * win, n_gl)

    s_v = lfilter(ag, [1], x_gv)[lpf:]
    av = _reference_lpc(s_v * win, n_vt)
    return av, ag, al


@pytest.mark.parametrize("n_vt,n_gl", [(6, 1), (8, 3), (10, 2)])
def test_matches_step_by_step_reference(n_vt, n_gl):
    x = _ar_process(np.array([1.0, -1.3, 0.8]), 1024, seed=4)

    av, ag, al = gfm_iaif(x, n_vt=n_vt, n_gl=n_gl, d=0.9)
    av_ref, ag_ref, al_ref = _reference_gfm_iaif(x, n_vt, n_gl, 0.9)

    np.testing.assert_allclose(av, av_ref, atol=1e-6)
    np.testing.assert_allclose(ag, ag_ref, atol=1e-6)
    np.testing.assert_array_equal(al, al_ref)


def test_each_stage_cancels_previous_estimate():
    x = _ar_process(np.array([1.0, -1.3, 0.8]), 1024, seed=9)
    n_vt, n_gl = 8, 3
    win = hann(x.size)
    x_preframe, idx = preframe(x, n_vt)
    _, gv, gv_preframe = cancel_lip_radiation(x, x_preframe, 0.99)

    ag1 = gross_glottis(gv, gv_preframe, idx, win, n_gl)
    av1 = gross_vocal_tract(gv_preframe, idx, win, ag1, n_vt)
    ag = fine_glottis(gv_preframe, idx, win, av1, n_gl)
    av = fine_vocal_tract(gv_preframe, idx, win, ag, n_vt)

    np.testing.assert_array_equal(av1, lpc(lfilter(ag1, [1], gv_preframe)[n_vt + 1:] * win, n_vt))
    np.testing.assert_array_equal(ag, lpc(lfilter(av1, [1], gv_preframe)[n_vt + 1:] * win, n_gl))

    av_out, ag_out, _ = gfm_iaif(x, n_vt=n_vt, n_gl=n_gl, d=0.99)
    np.testing.assert_array_equal(av_out, av)
    np.testing.assert_array_equal(ag_out, ag)
    # the fine estimates differ from the gross ones they were derived from
    assert np.max(np.abs(ag - ag1)) > 1e-3
