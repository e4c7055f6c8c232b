import numpy as np
import pytest

from localization import Detection, localize_objects, object_depth


def test_weighted_depth_of_sharpest_pixels():
    sharpness = np.array([1.0, 1.0, 1.0, 1.0, 1.0, 1.0, 1.0, 1.0, 9.0, 3.0])
    depth = np.array([1, 1, 1, 1, 1, 1, 1, 1, 4, 6])
    # only the 9 and the 3 lie above the 80th percentile
    assert object_depth(sharpness, depth) == pytest.approx((9 * 4 + 3 * 6) / 12)


def test_degenerate_sharpness_still_gives_a_depth():
    assert object_depth(np.full(7, 2.0), np.array([3, 3, 4, 4, 5, 5, 3])) == pytest.approx(27 / 7)
    assert object_depth(np.zeros(3), np.array([2, 4, 6])) == pytest.approx(4.0)


def _volumes():
    dark = np.zeros((20, 20, 4))
    grad = np.zeros((20, 20, 4))
    labels = np.zeros((20, 20), dtype=int)
    # object 1: rows 2-5, cols 3-6, in focus in plane 2 (0-based)
    labels[2:6, 3:7] = 1
    grad[2:6, 3:7, 2] = 5.0
    grad[2:6, 3:7, 0] = 1.0
    dark[2:6, 3:7, 2] = 1.0
    dark[4, 5, 2] = 3.0
    dark[3, 4, 0] = 10.0
    # object 2: rows 12-15, cols 10-14, in focus in plane 0
    labels[12:16, 10:15] = 2
    grad[12:16, 10:15, 0] = 2.0
    dark[12:16, 10:15, 0] = 0.5
    dark[13, 11, 0] = 0.9
    dark[14, 12, 0] = 0.9
    # bright background outside any object
    dark[18, 18, :] = 50.0
    return dark, grad, labels


def test_positions_and_edof():
    dark, grad, labels = _volumes()
    edof, detections = localize_objects(dark, grad, labels, 2, frame=7)

    assert detections[0] == Detection(frame=7, label=1, x=5, y=4, z=3.0, slice_index=2)
    # ties are resolved by the first pixel in row-major order
    assert (detections[1].x, detections[1].y, detections[1].slice_index) == (11, 13, 0)
    assert detections[1].z == pytest.approx(1.0)

    np.testing.assert_array_equal(edof[2:6, 3:7], dark[2:6, 3:7, 2])
    np.testing.assert_array_equal(edof[12:16, 10:15], dark[12:16, 10:15, 0])
    assert edof[labels == 0].sum() == 0


def test_no_objects():
    dark, grad, labels = _volumes()
    edof, detections = localize_objects(dark, grad, np.zeros_like(labels), 0)
    assert detections == []
    assert not edof.any()
