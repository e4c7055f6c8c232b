"""
Numeric backends for the reconstruction.

A backend is selected once per run and exposes the few array operations the
propagation needs (forward/inverse FFT and element-wise maths), so the rest
of the code never branches on CPU/GPU.
"""
import logging

import numpy as np

from errors import ResourceUnavailable

logger = logging.getLogger(__name__)


class NumpyBackend:
    name = 'numpy'

    def __init__(self):
        self.xp = np

    def asarray(self, arr, dtype=None):
        return np.asarray(arr, dtype=dtype)

    def asnumpy(self, arr) -> np.ndarray:
        return np.asarray(arr)

    def fft2(self, arr):
        return np.fft.fft2(arr)

    def ifft2(self, arr):
        return np.fft.ifft2(arr)

    def exp(self, arr):
        return np.exp(arr)

    def abs(self, arr):
        return np.abs(arr)


class CupyBackend(NumpyBackend):
    name = 'cupy'

    def __init__(self):
        try:
            import cupy as cp
        except ImportError as e:
            raise ResourceUnavailable(f'CuPy is not installed ({e}).')
        try:
            n_devices = cp.cuda.runtime.getDeviceCount()
        except Exception as e:  # CUDA runtime errors are not a common base class
            raise ResourceUnavailable(f'No usable CUDA runtime ({e}).')
        if n_devices < 1:
            raise ResourceUnavailable('No CUDA device found.')
        self.cp = cp
        self.xp = cp

    def asarray(self, arr, dtype=None):
        return self.cp.asarray(arr, dtype=dtype)

    def asnumpy(self, arr) -> np.ndarray:
        return self.cp.asnumpy(arr)

    def fft2(self, arr):
        return self.cp.fft.fft2(arr)

    def ifft2(self, arr):
        return self.cp.fft.ifft2(arr)

    def exp(self, arr):
        return self.cp.exp(arr)

    def abs(self, arr):
        return self.cp.abs(arr)


def select_backend(mode: str = 'auto'):
    """
    Returns the backend for a run.

    Parameters:
    mode (str): 'off' (NumPy), 'on' (CuPy) or 'auto' (CuPy when available)

    Returns:
    backend: NumpyBackend or CupyBackend. A GPU request that cannot be
    honoured falls back to NumPy.
    """
    if mode == 'off':
        return NumpyBackend()
    try:
        backend = CupyBackend()
    except ResourceUnavailable as e:
        if mode == 'on':
            logger.warning('[Backend] GPU requested but unavailable, using NumPy: %s', e)
        else:
            logger.debug('[Backend] GPU not available, using NumPy: %s', e)
        return NumpyBackend()
    logger.info('[Backend] Using CuPy for propagation.')
    return backend
