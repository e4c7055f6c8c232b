import logging

import numpy as np
from scipy import ndimage
from skimage import filters, measure, morphology

from darkfield_functions import normalize
from settings import *

logger = logging.getLogger(__name__)


def score_image(dark_volume: np.ndarray, grad_volume: np.ndarray) -> np.ndarray:
    '''2D projection used for segmentation: max amplitude x smoothed max gradient.'''
    grad_max = ndimage.gaussian_filter(np.max(grad_volume, axis=2), sigma=SCORE_SMOOTH_SIGMA,
                                       mode='nearest', truncate=GAUSS_TRUNCATE)
    return np.max(dark_volume, axis=2) * grad_max


def _block_size(n: int) -> int:
    return max(3, 2 * (n // LOCAL_BLOCK_DIVISOR) + 1)


def binarize_score(score: np.ndarray) -> np.ndarray:
    """
    Binarizes the score image with the mean of a local and a global threshold.

    The local threshold is a scaled neighbourhood mean (robust to uneven
    illumination), the global one is Otsu's (robust to overall contrast).

    Parameters:
    score (2D array): Output of score_image

    Returns:
    bw (2D bool array): Foreground mask. A flat score gives an empty mask.
    """
    spread = np.ptp(score)
    if not np.isfinite(spread) or spread <= 0:
        return np.zeros(score.shape, dtype=bool)
    im = normalize(score)

    block = (_block_size(im.shape[0]), _block_size(im.shape[1]))
    local = filters.threshold_local(im, block_size=block, method='mean', offset=0, mode='nearest')
    local = np.clip(LOCAL_THRESHOLD_SCALE * local, 0.0, 1.0)
    glob = filters.threshold_otsu(im)
    return im > (local + glob) / 2


def segment(dark_volume: np.ndarray, grad_volume: np.ndarray, min_pix: int = DEFAULT_MIN_PIX):
    """
    2D segmentation of the objects present in one frame.

    Parameters:
    dark_volume, grad_volume (3D arrays): Volumes of the frame
    min_pix (int): Smaller groups of pixels are treated as noise

    Returns:
    labels (2D int array): 0 = background, objects numbered from 1
    count (int): Number of objects (may be 0)
    """
    bw = binarize_score(score_image(dark_volume, grad_volume))
    if min_pix > 0 and bw.any():
        bw = morphology.remove_small_objects(bw, min_size=min_pix, connectivity=2)
    labels, count = measure.label(bw, connectivity=2, return_num=True)
    logger.debug('[Segmentation] %d objects', count)
    return labels, count
