import torch
import librosa
import scipy
import numpy as np
from gfm_iaif import gfm_iaif, preframe
from lpc import inverse_filter, integrate
from constants import N_VT, N_GL, LEAK, COMPLEX_TYPE

def to_log_mag(freq_response, rel_to_max=True, eps=1e-7):
    mag = torch.abs(freq_response)
    if rel_to_max:
        div = torch.max(mag)
    else:
        div = 1.0
    return 20 * torch.log10(mag / div + eps)

def envelopes(vt_coeffs, glott_coeffs, lip_coeffs, n_points, rel_to_max=True):
    """
    dB magnitude envelopes of vocal tract, glottis and lip radiation

    lip radiation is the differentiator [1 -d], so its envelope is the
    inverse of the integrator used to cancel it
    """
    vt = torch.as_tensor(freqz(vt_coeffs, n_points), dtype=COMPLEX_TYPE)
    glott = torch.as_tensor(freqz(glott_coeffs, n_points), dtype=COMPLEX_TYPE)
    lip = torch.as_tensor(freqz(lip_coeffs, n_points), dtype=COMPLEX_TYPE)
    return to_log_mag(vt, rel_to_max), to_log_mag(glott, rel_to_max), to_log_mag(1 / lip, rel_to_max)

def decompose(audio, n_vt=N_VT, n_gl=N_GL, d=LEAK, win=None):
    """
    split a frame into glottal flow derivative and glottal flow by
    cancelling the estimated vocal tract

    returns (glottal_derivative, glottal_flow, vt_coeffs, glott_coeffs, lip_coeffs)
    """
    vt_coeffs, gl_coeffs, lip_coeffs = gfm_iaif(audio, n_vt=n_vt, n_gl=n_gl, d=d, win=win)

    padded_audio, idx = preframe(np.asarray(audio, dtype=np.float64), n_vt)
    glottal_derivative = inverse_filter(padded_audio, vt_coeffs)
    glottal_flow = integrate(glottal_derivative, lip_coeffs)

    return glottal_derivative[idx], glottal_flow[idx], vt_coeffs, gl_coeffs, lip_coeffs

def freqz(coeffs, n_points):
    _, fr = scipy.signal.freqz([1], coeffs, worN=n_points, include_nyquist=True)
    return fr

def yin(frame, sr, fmin=70, fmax=500):
    return librosa.yin(frame, fmin=fmin, fmax=fmax, frame_length=frame.size, hop_length=frame.size, sr=sr, center=False, trough_threshold=0.01)[0]

def h1h2(x, f0, sr):
    # calculate distance between magnitude of first and second harmonic in dB
    nfft = x.size
    x = librosa.amplitude_to_db(np.abs(np.fft.rfft(x)))

    h1bin = int(np.round(f0 * nfft / sr))
    h2bin = int(np.round(2 * f0 * nfft / sr))

    return x[h1bin] - x[h2bin]
