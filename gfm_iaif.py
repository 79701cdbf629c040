# Iterative Adaptive Inverse Filtering with Glottal Flow Model:
# O. Perrotin and I. V. McLoughlin (2019)
#     "A spectral glottal flow model for source-filter separation of
#      speech", in IEEE International Conference on Acoustics, Speech, and
#      Signal Processing (ICASSP), Brighton, UK, May 12-17, pp. 7160-7164.

# Python version of gfmiaif.m:
# https://github.com/operrotin/GFM-IAIF/tree/master

import numbers
import numpy as np
from lpc import hann, lpc, inverse_filter, integrate, poly_mul
from constants import N_VT, N_GL, LEAK


class GfmIaifConfig:
    """
    Analysis parameters for gfm_iaif. Every default stands on its own:

    n_vt: order of LP analysis for vocal tract (48)
    n_gl: order of LP analysis for glottal source (3). A third order
          filter describes most glottis-related timbre variations
          (tenseness, effort), so 3 is the recommended value.
    d:    leaky integration coefficient (0.99)
    win:  window applied before each LP fit (Hann of frame length)
    """

    def __init__(self, n_vt=N_VT, n_gl=N_GL, d=LEAK, win=None):
        self.n_vt = n_vt
        self.n_gl = n_gl
        self.d = d
        self.win = win

    def validate(self, n):
        if n < 1:
            raise ValueError(f'frame must contain at least one sample, got {n}')
        for name in ('n_vt', 'n_gl'):
            order = getattr(self, name)
            if isinstance(order, bool) or not isinstance(order, numbers.Integral):
                raise ValueError(f'{name} must be an integer, got {order!r}')
            if order < 1:
                raise ValueError(f'{name} must be >= 1, got {order}')
        if not 0 < self.d < 1:
            raise ValueError(f'd must lie in (0, 1), got {self.d}')
        if self.win is not None and len(self.win) != n:
            raise ValueError(f'window length {len(self.win)} does not match frame length {n}')

    def window(self, n):
        if self.win is None:
            return hann(n)
        return np.asarray(self.win, dtype=np.float64)


def preframe(x, n_vt):
    """
    prepend a ramp from -x[0] to x[0] of n_vt+1 samples, so that the
    transient of each inverse filtering decays before the actual frame.
    returns the extended signal and the slice selecting the original frame
    """
    lpf = n_vt + 1
    x_preframe = np.append(np.linspace(-x[0], x[0], lpf), x)
    return x_preframe, slice(lpf, None)


def cancel_lip_radiation(x, x_preframe, d):
    # lip radiation filter, cancelled by integration with 1/[1 -d z^(-1)]
    lip_coeffs = np.array([1, -d])

    # integrated frame (for LPC estimation) and
    # integrated pre-framed frame (for envelope removal)
    gv = integrate(x, lip_coeffs)
    gv_preframe = integrate(x_preframe, lip_coeffs)
    return lip_coeffs, gv, gv_preframe


def _cancel(gv_preframe, idx, coeffs):
    # inverse filtering, then drop the pre-frame ramp
    return inverse_filter(gv_preframe, coeffs)[idx]


def gross_glottis(gv, gv_preframe, idx, win, n_gl):
    """
    glottis estimate of order n_gl built from n_gl successive 1st order fits
    """
    glott_coeffs_gross = lpc(gv * win, 1)

    for i in range(n_gl - 1):
        # cancel current estimate of glottis contribution
        v1x = _cancel(gv_preframe, idx, glott_coeffs_gross)

        glott_coeffs_gross_x = lpc(v1x * win, 1)
        glott_coeffs_gross = poly_mul(glott_coeffs_gross, glott_coeffs_gross_x)

    return glott_coeffs_gross


def gross_vocal_tract(gv_preframe, idx, win, glott_coeffs, n_vt):
    # cancel gross glottis contribution from speech signal
    v1 = _cancel(gv_preframe, idx, glott_coeffs)
    return lpc(v1 * win, n_vt)


def fine_glottis(gv_preframe, idx, win, vt_coeffs, n_gl):
    # cancel gross vocal tract contribution from speech signal
    g1 = _cancel(gv_preframe, idx, vt_coeffs)
    return lpc(g1 * win, n_gl)


def fine_vocal_tract(gv_preframe, idx, win, glott_coeffs, n_vt):
    # cancel fine glottis contribution from speech signal
    v = _cancel(gv_preframe, idx, glott_coeffs)
    return lpc(v * win, n_vt)


def _as_frame(x):
    x = np.asarray(x, dtype=np.float64)
    if x.ndim != 1:
        raise ValueError(f'frame must be one-dimensional, got shape {x.shape}')
    if not np.all(np.isfinite(x)):
        raise ValueError('frame contains NaN or infinite samples')
    return x


def gfm_iaif(x, n_vt=N_VT, n_gl=N_GL, d=LEAK, win=None, config=None):
    """
    estimate vocal tract, glottis and lip radiation LP coefficients of a
    speech frame x

    returns (vt_coeffs, glott_coeffs, lip_coeffs) of lengths n_vt+1,
    n_gl+1 and 2. If config is given, it takes precedence over the
    keyword parameters.
    """
    if config is None:
        config = GfmIaifConfig(n_vt, n_gl, d, win)

    x = _as_frame(x)
    config.validate(x.size)
    win = config.window(x.size)

    x_preframe, idx = preframe(x, config.n_vt)

    lip_coeffs, gv, gv_preframe = cancel_lip_radiation(x, x_preframe, config.d)

    glott_coeffs_gross = gross_glottis(gv, gv_preframe, idx, win, config.n_gl)
    vt_coeffs_gross = gross_vocal_tract(gv_preframe, idx, win, glott_coeffs_gross, config.n_vt)
    glott_coeffs_fine = fine_glottis(gv_preframe, idx, win, vt_coeffs_gross, config.n_gl)
    vt_coeffs_fine = fine_vocal_tract(gv_preframe, idx, win, glott_coeffs_fine, config.n_vt)

    return vt_coeffs_fine, glott_coeffs_fine, lip_coeffs
