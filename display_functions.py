import logging

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.colors import ListedColormap

from settings import PROGRESS_EVERY

logger = logging.getLogger(__name__)


def _show(fig_num: int, image: np.ndarray, title: str, cmap='gray'):
    plt.figure(fig_num)
    plt.clf()
    plt.imshow(image, cmap=cmap)
    plt.axis('image')
    plt.title(title)
    plt.pause(0.01)


def plot_segmented_objects(labels: np.ndarray, count: int, tt: int, n_frames: int):
    '''Label map with white background and one jet colour per object.'''
    colors = np.vstack([[1.0, 1.0, 1.0, 1.0], plt.get_cmap('jet')(np.linspace(0, 1, max(count, 1)))])
    _show(52, labels, f'Segmented objects 2D; frame = {tt}/{n_frames}', cmap=ListedColormap(colors[:count + 1]))


def show_tmp_res(level: int, frame_result, tt: int, n_frames: int):
    """
    Shows intermediate results of frame ``tt`` (1-based).

    level 0: nothing
    level 1: progress line every 10th frame
    level 2: EDOF image of every frame
    level 3: EDOF, classical reconstruction and segmentation of every frame
    """
    if level == 1:
        if tt % PROGRESS_EVERY == 0:
            logger.info('[DarkTrack] Processed %d/%d images', tt, n_frames)
        return
    if level >= 3:
        _show(51, frame_result.cr, f'Darkfield amplitude; frame = {tt}/{n_frames}')
        plot_segmented_objects(frame_result.labels, len(frame_result.detections), tt, n_frames)
    if level >= 2:
        _show(53, frame_result.edof, f'Extended depth of focus reconstruction; frame = {tt}/{n_frames}')
