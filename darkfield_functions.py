import numpy as np
from functools import lru_cache

from gpu_backend import NumpyBackend
from settings import PAD

_NUMPY = NumpyBackend()


@lru_cache(maxsize=16)
def calc_fz(shape: tuple, dpix: float, wavelength: float, n0: float = 1.0) -> np.ndarray:
    """
    Precomputes the z-independent part of the angular spectrum transfer
    function, FZ = sqrt((n0/lambda)^2 - fx^2 - fy^2).

    Parameters:
    shape (tuple): (rows, cols) of the padded hologram
    dpix (float): Effective pixel size (um)
    wavelength (float): Wavelength (um)
    n0 (float): Background refractive index

    Returns:
    FZ (2D array): Real kernel in unshifted FFT order. Evanescent
    frequencies (fx^2 + fy^2 > (n0/lambda)^2) are exactly 0.
    """
    Ny, Nx = shape
    dfx = 1.0 / (Nx * dpix)
    dfy = 1.0 / (Ny * dpix)
    # Centered grid shifted to the FFT layout (zero frequency first)
    fx = np.fft.ifftshift((np.arange(Nx) - Nx // 2) * dfx)
    fy = np.fft.ifftshift((np.arange(Ny) - Ny // 2) * dfy)
    FX, FY = np.meshgrid(fx, fy, indexing='xy')

    arg = (n0 / wavelength) ** 2 - FX ** 2 - FY ** 2
    FZ = np.zeros(arg.shape, dtype=np.float64)
    propagating = arg >= 0
    FZ[propagating] = np.sqrt(arg[propagating])
    FZ.setflags(write=False)
    return FZ


def compute_spectrum(field, backend=_NUMPY):
    '''Unshifted 2D Fourier transform of a (padded) field.'''
    return backend.fft2(backend.asarray(field))


def as_propagate(ft_field, z: float, fz, backend=_NUMPY):
    """
    Angular spectrum propagation of an already transformed field. FZ is
    shared between calls, so propagating the same hologram to many planes
    only costs one multiplication and one inverse FFT per plane.

    Parameters:
    ft_field (2D array): Fourier transform of the field (no fftshift)
    z (float): Propagation distance (um), may be negative
    fz (2D array): Kernel from calc_fz (on the backend's device)

    Returns:
    out (2D complex array): Field at distance z
    """
    tf = backend.exp(1j * 2 * np.pi * z * fz)
    return backend.ifft2(ft_field * tf)


def pad_frame(frame, pad: int = PAD):
    '''Zero-pads a 2D frame by ``pad`` pixels on every side.'''
    return np.pad(np.asarray(frame, dtype=np.float64), ((pad, pad), (pad, pad)), mode='constant')


def crop_frame(field, shape: tuple, pad: int = PAD):
    '''Removes the padding added by pad_frame.'''
    Sy, Sx = shape
    return field[pad:pad + Sy, pad:pad + Sx]


def normalize(x: np.ndarray, scale: float = 1.0) -> np.ndarray:
    '''Normalize every value of an array to the 0-scale interval.'''
    x = x.astype(np.float64)
    min_val = np.min(x)
    x = x - min_val
    max_val = np.max(x) if np.max(x) != 0 else 1
    normalized_image = scale * x / max_val
    return normalized_image
