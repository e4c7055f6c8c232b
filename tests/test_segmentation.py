import numpy as np
import pytest

from parallel_rc import gradient_energy
from segmentation import binarize_score, score_image, segment


def blob_volume(blobs, shape=(64, 64), planes=5, noise=0.0, seed=0):
    '''Dark/grad volumes with Gaussian blobs given as (x, y, sigma, plane).'''
    rng = np.random.default_rng(seed)
    yy, xx = np.mgrid[0:shape[0], 0:shape[1]]
    dark = noise * rng.random(shape + (planes,))
    for x, y, s, plane in blobs:
        for p in range(planes):
            width = s * (1 + abs(p - plane))
            dark[:, :, p] += np.exp(-((xx - x) ** 2 + (yy - y) ** 2) / (2 * width ** 2)) / (1 + abs(p - plane))
    grad = np.stack([gradient_energy(dark[:, :, p]) for p in range(planes)], axis=2)
    return dark, grad


def test_two_separate_objects():
    dark, grad = blob_volume([(16, 16, 2.5, 1), (46, 40, 2.5, 3)])
    labels, count = segment(dark, grad, min_pix=10)
    assert count == 2
    assert labels.max() == 2
    assert labels[16, 16] != 0 and labels[40, 46] != 0
    assert labels[16, 16] != labels[40, 46]
    assert labels[0, 0] == 0


def test_large_threshold_removes_everything():
    dark, grad = blob_volume([(16, 16, 2.5, 1), (46, 40, 2.5, 3)])
    labels, count = segment(dark, grad, min_pix=10_000)
    assert count == 0
    assert not labels.any()


def test_flat_frame_has_no_objects():
    dark = np.zeros((32, 32, 3))
    labels, count = segment(dark, np.zeros_like(dark))
    assert count == 0
    assert labels.shape == (32, 32)


def test_binarize_flat_score():
    assert not binarize_score(np.full((10, 10), 3.0)).any()


def test_score_image_shape():
    dark, grad = blob_volume([(10, 10, 2, 0)], shape=(20, 30), planes=2)
    assert score_image(dark, grad).shape == (20, 30)


@pytest.mark.parametrize('seed', [0, 1, 2])
def test_object_count_never_grows_with_min_pix(seed):
    blobs = [(10, 12, 1.0, 0), (30, 12, 1.8, 2), (50, 14, 3.0, 4), (14, 44, 4.0, 1), (44, 46, 0.7, 3)]
    dark, grad = blob_volume(blobs, noise=0.2, seed=seed)
    counts = [segment(dark, grad, min_pix=m)[1] for m in (0, 1, 5, 10, 20, 40, 80, 160, 400)]
    assert all(a >= b for a, b in zip(counts, counts[1:]))
