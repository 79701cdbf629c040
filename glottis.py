import torch
from constants import SR, REAL_TYPE

# Glottal source using the LF-model, adapted from dood.al/pinktrombone
# to synthesize a whole frame at once / offline

class Glottis:
    def __init__(self, sample_rate: float=SR):
        self.T = 1 / sample_rate
        self.freq = 150

    def setup_lf(self, tenseness):
        tenseness = torch.as_tensor(tenseness, dtype=REAL_TYPE)
        Rd = 3 * (1 - tenseness)
        Rd = torch.clamp(Rd, 0.5, 2.7)

        Ra = -0.01 + 0.048 * Rd
        Rk = 0.224 + 0.118 * Rd
        Rg = (Rk / 4) * (0.5 + 1.2 * Rk) / (0.11 * Rd - Ra * (0.5 + 1.2 * Rk))

        Ta = Ra
        Tp = 1 / (2 * Rg)
        Te = Tp + Tp * Rk

        epsilon = 1  / Ta
        shift = torch.exp(-epsilon * (1 - Te))
        delta = 1 - shift

        rhs_integral = (1 / epsilon) * (shift - 1) + (1 - Te) * shift
        rhs_integral /= delta

        lower_integral = -(Te - Tp)/2 + rhs_integral
        upper_integral = -lower_integral

        omega = torch.pi / Tp
        s = torch.sin(omega * Te)
        y = -torch.pi * s * upper_integral / (Tp * 2)
        z = torch.log(y)
        alpha = z / (Tp / 2  - Te)
        EO = -1 / (s * torch.exp(alpha * Te))

        self.alpha = alpha
        self.EO = EO
        self.epsilon = epsilon
        self.shift = shift
        self.delta = delta
        self.Te = Te
        self.omega = omega

    def set_frequency(self, freq):
        self.freq = freq

    def get_waveform(self, tenseness, n_samples, freq=None, aspiration=True, generator=None):
        """
        glottal flow derivative of n_samples samples at constant tenseness
        in [0, 1] and frequency freq (Hz)

        pass a seeded torch.Generator to make the aspiration noise repeatable
        """
        tenseness = torch.as_tensor(tenseness, dtype=REAL_TYPE)
        if freq is None:
            freq = self.freq

        self.setup_lf(tenseness)

        # normalized position within each glottal period
        wav_len = 1 / freq
        t = torch.remainder(torch.arange(n_samples, dtype=REAL_TYPE) * self.T, wav_len) / wav_len

        result = torch.zeros(n_samples, dtype=REAL_TYPE)

        greaterIdx = t > self.Te
        lesserIdx = t <= self.Te

        result[greaterIdx] = (-torch.exp(-self.epsilon * (t[greaterIdx] - self.Te)) + self.shift) / self.delta
        result[lesserIdx] = self.EO * torch.exp(self.alpha * t[lesserIdx]) * torch.sin(self.omega * t[lesserIdx])
        result *= tenseness ** 0.25

        if aspiration:
            noise = torch.rand(n_samples, generator=generator, dtype=REAL_TYPE) - 0.5
            result += (1 - torch.sqrt(tenseness)) * 0.2 * noise * 0.2

        return result
