from dataclasses import dataclass

import numpy as np

from settings import SHARP_PERCENTILE


@dataclass(frozen=True)
class Detection:
    frame: int          # 0-based frame index
    label: int          # label in the frame's LabelMap
    x: int              # column (pixels, 0-based)
    y: int              # row (pixels, 0-based)
    z: float            # gradient-weighted depth index (1-based, fractional)
    slice_index: int    # plane used for x, y and the EDOF (0-based)


def object_depth(sharpness: np.ndarray, depth: np.ndarray, percentile: float = SHARP_PERCENTILE) -> float:
    """
    Depth of one object from its per-pixel focus maps.

    Parameters:
    sharpness (1D array): Max gradient over z of every object pixel
    depth (1D array): 1-based plane where that maximum occurs

    Returns:
    z (float): Gradient-weighted mean depth of the sharpest pixels
    """
    q = np.percentile(sharpness, percentile, method='hazen')
    sharp = sharpness > q
    if not sharp.any():
        # every pixel equally sharp
        sharp = sharpness >= q
    w = sharpness[sharp]
    d = depth[sharp].astype(np.float64)
    total = np.sum(w)
    if total > 0:
        return float(np.sum(w * d) / total)
    return float(np.mean(d))


def localize_objects(dark_volume: np.ndarray,
                     grad_volume: np.ndarray,
                     labels: np.ndarray,
                     count: int,
                     frame: int = 0):
    """
    Finds the 3D position of every labeled object and builds the extended
    depth of focus (EDOF) image, where each object is taken from its own
    focus plane and the object-free region is 0.

    Parameters:
    dark_volume, grad_volume (3D arrays): Volumes of the frame
    labels (2D int array): Segmentation of the frame
    count (int): Number of labels
    frame (int): Frame index stored in the detections

    Returns:
    edof (2D array): EDOF reconstruction
    detections (list[Detection]): One per object, in label order
    """
    Sy, Sx, Sz = dark_volume.shape
    edof = np.zeros((Sy, Sx), dtype=np.float64)
    detections = []
    if count == 0:
        return edof, detections

    mks = np.max(grad_volume, axis=2)
    locs = np.argmax(grad_volume, axis=2) + 1

    for label in range(1, count + 1):
        mask = labels == label
        if not mask.any():
            continue
        z = object_depth(mks[mask], locs[mask])
        plane = min(max(int(np.floor(z + 0.5)) - 1, 0), Sz - 1)

        amp = dark_volume[:, :, plane]
        masked = np.where(mask, amp, -np.inf)
        y, x = np.unravel_index(np.argmax(masked), masked.shape)

        edof[mask] = amp[mask]
        detections.append(Detection(frame=frame, label=label, x=int(x), y=int(y),
                                    z=z, slice_index=plane))
    return edof, detections
