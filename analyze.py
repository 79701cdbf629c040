import argparse
import librosa
import numpy as np
from utils import decompose, envelopes, yin, h1h2
from gfm_iaif import GfmIaifConfig
from lpc import hann
from constants import N_VT, N_GL, LEAK, NPOINTS, SR
from tqdm import tqdm
from matplotlib import pyplot as plt
import time

FMIN, FMAX = 70, 500

class Analyzer:
    def __init__(self, sr, frame_length, n_vt=N_VT, n_gl=N_GL, d=LEAK):
        self.sr = sr
        self.config = GfmIaifConfig(n_vt, n_gl, d, hann(frame_length))
        self.config.validate(frame_length)

    def analyze_frame(self, frame, with_h1h2=True):
        c = self.config
        _, glott_flow, vt_coeffs, glott_coeffs, lip_coeffs = decompose(frame, c.n_vt, c.n_gl, c.d, c.win)

        tilt = np.nan
        if with_h1h2:
            f0 = yin(frame, sr=self.sr, fmin=FMIN, fmax=FMAX)
            # unvoiced / silent frames make yin fall back to fmax or fail
            if np.isfinite(f0) and 2 * f0 < self.sr / 2:
                tilt = h1h2(glott_flow, f0, sr=self.sr)

        return vt_coeffs, glott_coeffs, lip_coeffs, tilt

def plot_envelopes(vt_coeffs, glott_coeffs, lip_coeffs, sr, n_points=NPOINTS):
    vt, glott, lip = envelopes(vt_coeffs, glott_coeffs, lip_coeffs, n_points)
    freqs = np.linspace(0, sr / 2, n_points)

    fig, ax = plt.subplots(figsize=(10, 5))
    ax.plot(freqs, vt.numpy(), label='vocal tract')
    ax.plot(freqs, glott.numpy(), label='glottis')
    ax.plot(freqs, lip.numpy(), label='lip radiation')
    ax.set_xlabel('Frequency (Hz)')
    ax.set_ylabel('Magnitude (dB)')
    ax.legend()
    plt.show()

def main(args):
    audio, sr = librosa.load(args.input_file, sr=args.sample_rate)

    fl = args.frame_length
    hl = args.hop_length

    if audio.size < fl:
        audio = np.append(audio, np.zeros(fl - audio.size, dtype=audio.dtype))

    frames = librosa.util.frame(audio, frame_length=fl, hop_length=hl, axis=0)
    n_frames = frames.shape[0]

    analyzer = Analyzer(sr, fl, args.n_vt, args.n_gl, args.d)

    vt_coeffs = np.zeros((n_frames, args.n_vt + 1))
    glott_coeffs = np.zeros((n_frames, args.n_gl + 1))
    tilts = np.full(n_frames, np.nan)

    start = time.time()
    print("Estimating filters...")
    for i in tqdm(range(n_frames)):
        vt_coeffs[i], glott_coeffs[i], lip_coeffs, tilts[i] = analyzer.analyze_frame(frames[i, :], not args.no_h1h2)
    stop = time.time()

    print("Done. Real-time factor (vs length of input):", (stop - start) / (n_frames * hl / sr))

    silent = np.sum(np.all(vt_coeffs[:, 1:] == 0, axis=1))
    print(f"Frames: {n_frames}, silent: {silent}")
    if np.any(np.isfinite(tilts)):
        print(f"Mean H1-H2 of glottal flow: {np.nanmean(tilts):.2f} dB")
    print("Mean glottis coefficients:", np.round(np.mean(glott_coeffs, axis=0), 4))

    if args.plot_frame is not None:
        if not 0 <= args.plot_frame < n_frames:
            raise ValueError(f'plot_frame must be in [0, {n_frames}), got {args.plot_frame}')
        plot_envelopes(vt_coeffs[args.plot_frame], glott_coeffs[args.plot_frame], lip_coeffs, sr)


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument('input_file')
    parser.add_argument('-fl', '--frame_length', type=int, default=2048)
    parser.add_argument('-hl', '--hop_length', type=int, default=512)
    parser.add_argument('-sr', '--sample_rate', type=int, default=SR)
    parser.add_argument('--n_vt', type=int, default=N_VT)
    parser.add_argument('--n_gl', type=int, default=N_GL)
    parser.add_argument('-d', type=float, default=LEAK)
    parser.add_argument('--plot_frame', type=int, default=None)
    parser.add_argument('--no_h1h2', action='store_true')
    main(parser.parse_args())
