# Linear prediction primitives used by GFM-IAIF:
# window, autocorrelation-method LPC (Levinson-Durbin) and the
# filtering operations applied between estimation steps.

import numpy as np
from scipy.signal import lfilter, correlate

# below this, a frame is treated as having no energy at all
MIN_ENERGY = np.finfo(np.float64).tiny


def hann(n):
    """
    symmetric Hann window of length n, same as MATLAB hann
    """
    if n < 1:
        raise ValueError(f'window length must be >= 1, got {n}')
    if n == 1:
        return np.ones(1)
    return np.hanning(n)


def autocorrelation(x, max_lag):
    x = np.asarray(x, dtype=np.float64)
    r = np.zeros(max_lag + 1)
    n = min(max_lag + 1, x.size)
    full = correlate(x, x, mode='full')
    r[:n] = full[x.size - 1:x.size - 1 + n]
    return r


def levinson(r, order):
    """
    Levinson-Durbin recursion on autocorrelation sequence r

    returns (a, err, k): prediction coefficients with a[0] = 1, final
    prediction error and reflection coefficients.

    a frame without energy gives a = [1, 0, ..., 0], err = 0. If the
    error vanishes before the requested order is reached, the remaining
    coefficients are left at 0.
    """
    r = np.asarray(r, dtype=np.float64)
    a = np.zeros(order + 1)
    a[0] = 1.0
    k = np.zeros(order)

    if not np.isfinite(r[0]) or r[0] <= MIN_ENERGY:
        return a, 0.0, k

    err = r[0]
    for i in range(1, order + 1):
        acc = r[i] + np.dot(a[1:i], r[i-1:0:-1])
        k_i = -acc / err
        a[1:i+1] = a[1:i+1] + k_i * a[i-1::-1]
        k[i-1] = k_i
        err *= (1 - k_i * k_i)
        if err <= 0:
            err = 0.0
            break

    return a, err, k


def lpc(x, order):
    if order < 0:
        raise ValueError(f'LPC order must be >= 0, got {order}')
    a, _, _ = levinson(autocorrelation(x, order), order)
    return a


def inverse_filter(x, coeffs):
    # residual of x under prediction filter coeffs (FIR, zero initial state)
    return lfilter(coeffs, [1.0], x)


def integrate(x, coeffs):
    # all-pole filtering with 1/coeffs, zero initial state
    return lfilter([1.0], coeffs, x)


def poly_mul(a, b):
    """
    convolve two coefficient sequences, i.e. place both filters in series
    """
    out = np.zeros(len(a) + len(b) - 1)
    for i, a_i in enumerate(a):
        for j, b_j in enumerate(b):
            out[i + j] += a_i * b_j
    return out
