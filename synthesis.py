# Synthetic voiced frames with known glottis and vocal tract, used to
# check what GFM-IAIF recovers.

import numpy as np
import torch
from glottis import Glottis
from lpc import integrate, poly_mul
from constants import SR

# neutral vowel, (Hz)
FORMANTS = (500, 1500, 2500, 3500)
BANDWIDTHS = (60, 90, 120, 150)


def formants_to_coeffs(formants, bandwidths, sr=SR):
    """
    all-pole vocal tract coefficients with one resonance (pole pair) per
    formant; the bandwidth sets the pole radius
    """
    if len(formants) != len(bandwidths):
        raise ValueError('formants and bandwidths must have the same length')

    coeffs = np.ones(1)
    for f, bw in zip(formants, bandwidths):
        r = np.exp(-np.pi * bw / sr)
        theta = 2 * np.pi * f / sr
        coeffs = poly_mul(coeffs, [1, -2 * r * np.cos(theta), r ** 2])
    return coeffs


def synthesize_vowel(n_samples, f0=120, tenseness=0.6, formants=FORMANTS, bandwidths=BANDWIDTHS,
                     sr=SR, aspiration=True, seed=0):
    """
    LF glottal flow derivative passed through the all-pole tract defined
    by formants/bandwidths

    returns (speech, vt_coeffs)
    """
    generator = torch.Generator().manual_seed(seed)

    glottis = Glottis(sr)
    source = glottis.get_waveform(tenseness, n_samples, freq=f0, aspiration=aspiration,
                                  generator=generator).numpy()

    vt_coeffs = formants_to_coeffs(formants, bandwidths, sr)
    return integrate(source, vt_coeffs), vt_coeffs
