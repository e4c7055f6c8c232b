"""
Per-frame volume reconstruction.

One dark-field hologram is transformed once and propagated to every plane
of the scanned range. Each plane gives a slice of the DarkVolume (amplitude)
and of the GradVolume (squared gradient magnitude, a sharpness proxy).
Planes are independent and can be computed on a thread pool.
"""
import logging
from concurrent.futures import ThreadPoolExecutor

import numpy as np

from darkfield_functions import as_propagate, compute_spectrum, crop_frame, pad_frame
from gpu_backend import NumpyBackend
from settings import PAD

logger = logging.getLogger(__name__)


def cr_index(n_planes: int) -> int:
    '''0-based index of the classical reconstruction plane, round(Sz/2) in 1-based terms.'''
    return max(int(np.floor(n_planes / 2 + 0.5)) - 1, 0)


def gradient_energy(amp: np.ndarray) -> np.ndarray:
    gy, gx = np.gradient(amp)
    return gx ** 2 + gy ** 2


def dark_field(frame: np.ndarray, background_padded: np.ndarray, pad: int = PAD) -> np.ndarray:
    '''Padded hologram minus its padded background.'''
    return pad_frame(frame, pad) - background_padded


def build_dark_volume(frame: np.ndarray,
                      background_padded: np.ndarray,
                      distances,
                      fz,
                      backend=None,
                      workers: int = 1,
                      pad: int = PAD):
    """
    Calculates the DarkVolume and GradVolume of one hologram.

    Parameters:
    frame (2D array): Hologram (unpadded)
    background_padded (2D array): Padded background for this frame
    distances (1D array): Propagation distances (um)
    fz (2D array): Kernel from calc_fz, already on the backend's device
    backend: Numeric backend (NumPy by default)
    workers (int): Threads used for the per-distance loop

    Returns:
    dark_volume (3D array): Amplitude, (rows, cols, planes)
    grad_volume (3D array): Squared gradient of the amplitude
    cr (2D array): Amplitude at the middle plane of the range
    """
    backend = backend or NumpyBackend()
    frame = np.asarray(frame, dtype=np.float64)
    Sy, Sx = frame.shape
    Sz = len(distances)

    ft_dark = compute_spectrum(dark_field(frame, background_padded, pad), backend)

    def _plane(mm):
        obj = as_propagate(ft_dark, float(distances[mm]), fz, backend)
        amp = backend.asnumpy(backend.abs(crop_frame(obj, (Sy, Sx), pad)))
        return mm, amp, gradient_energy(amp)

    dark_volume = np.zeros((Sy, Sx, Sz), dtype=np.float64)
    grad_volume = np.zeros((Sy, Sx, Sz), dtype=np.float64)

    if workers > 1 and Sz > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            planes = list(pool.map(_plane, range(Sz)))
    else:
        planes = [_plane(mm) for mm in range(Sz)]

    # Slices are written only once every plane has been computed
    for mm, amp, grad in planes:
        dark_volume[:, :, mm] = amp
        grad_volume[:, :, mm] = grad

    cr = dark_volume[:, :, cr_index(Sz)].copy()
    return dark_volume, grad_volume, cr
