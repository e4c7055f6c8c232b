"""
Hologram background estimation for dark-field subtraction.

The user-facing option is one of three variants:

    GlobalMean()            mean of all holograms in the stack
    PerFrameSmoothed(sigma) heavy Gaussian low-pass of each frame itself
    ExplicitArray(data)     a supplied 2D background, or a 3D one per frame

``resolve_background`` turns the option (or the legacy 1 / 2 / array
values) into a provider that returns the padded background of any frame.
"""
import logging
from dataclasses import dataclass

import numpy as np
from scipy import ndimage

from darkfield_functions import pad_frame
from errors import ConfigurationError
from settings import *

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GlobalMean:
    pass


@dataclass(frozen=True)
class PerFrameSmoothed:
    sigma: float = DEFAULT_BACKGROUND_SIGMA


@dataclass(frozen=True)
class ExplicitArray:
    data: np.ndarray


class StaticBackground:
    '''Same padded background for every frame.'''

    def __init__(self, background: np.ndarray, pad: int = PAD):
        self.background = np.asarray(background, dtype=np.float64)
        self._padded = pad_frame(self.background, pad)
        self._padded.setflags(write=False)

    def padded(self, index: int, frame: np.ndarray) -> np.ndarray:
        return self._padded


class SmoothedBackground:
    '''Background of each frame = Gaussian low-pass of that same frame.'''

    def __init__(self, sigma: float = DEFAULT_BACKGROUND_SIGMA, pad: int = PAD):
        self.sigma = sigma
        self.pad = pad

    def padded(self, index: int, frame: np.ndarray) -> np.ndarray:
        smooth = ndimage.gaussian_filter(np.asarray(frame, dtype=np.float64), sigma=self.sigma,
                                         mode='nearest', truncate=GAUSS_TRUNCATE)
        return pad_frame(smooth, self.pad)


class PerFrameBackground:
    '''One supplied background per frame (3D array, frames on the last axis).'''

    def __init__(self, backgrounds: np.ndarray, pad: int = PAD):
        self.backgrounds = np.asarray(backgrounds, dtype=np.float64)
        self.pad = pad

    def padded(self, index: int, frame: np.ndarray) -> np.ndarray:
        return pad_frame(self.backgrounds[:, :, index], self.pad)


def default_background(n_stack_frames: int):
    '''Mean background for long stacks, per-frame smoothing for short ones.'''
    if n_stack_frames >= MEAN_BACKGROUND_MIN_FRAMES:
        return GlobalMean()
    return PerFrameSmoothed()


def _as_variant(option, n_stack_frames: int):
    if option is None:
        return default_background(n_stack_frames)
    if isinstance(option, (GlobalMean, PerFrameSmoothed, ExplicitArray)):
        return option
    arr = np.asarray(option)
    if arr.ndim == 0:
        if arr == 1:
            return GlobalMean()
        if arr == 2:
            return PerFrameSmoothed()
        raise ConfigurationError(f'Unknown background removal mode {option!r} (expected 1, 2 or an array).')
    return ExplicitArray(arr)


def resolve_background(option, stack: np.ndarray, n_frames: int):
    """
    Resolves the background option into a provider.

    Parameters:
    option: None, 1, 2, a 2D/3D array or a variant instance
    stack (3D array): Hologram stack (rows, cols, frames)
    n_frames (int): Number of frames that will be processed

    Returns:
    provider: object with a ``padded(index, frame)`` method
    """
    Sy, Sx, St = stack.shape
    variant = _as_variant(option, St)

    if isinstance(variant, GlobalMean):
        logger.debug('[Background] Mean of %d holograms', St)
        return StaticBackground(np.mean(stack, axis=2))

    if isinstance(variant, PerFrameSmoothed):
        logger.debug('[Background] Per-frame Gaussian smoothing, sigma=%s', variant.sigma)
        return SmoothedBackground(variant.sigma)

    data = np.asarray(variant.data, dtype=np.float64)
    if data.ndim == 2 and data.shape == (Sy, Sx):
        return StaticBackground(data)
    if data.ndim == 3 and data.shape[:2] == (Sy, Sx):
        if data.shape[2] < n_frames:
            raise ConfigurationError(
                f'Background stack has {data.shape[2]} frames, {n_frames} are needed.')
        return PerFrameBackground(data)
    raise ConfigurationError(
        f'Wrong background dimensionality {data.shape} (should be equal to the hologram size {(Sy, Sx)}).')
