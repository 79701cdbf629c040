import torch

# GFM-IAIF defaults
N_VT = 48
N_GL = 3
LEAK = 0.99

NPOINTS = 1025
DOUBLE_PRECISION = True
SR = 44100

REAL_TYPE = torch.float64 if DOUBLE_PRECISION else torch.float32
COMPLEX_TYPE = torch.complex128 if DOUBLE_PRECISION else torch.complex64
