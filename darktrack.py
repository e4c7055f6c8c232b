"""
DarkTrack: 4D (space + time) localization of objects in a stack of lensless
digital in-line holographic microscopy (DIHM) holograms.

For every frame the dark-field hologram (hologram minus background) is
propagated through the object volume, objects are segmented in 2D and each
one is placed at its plane of best focus. The per-frame positions are then
linked into tracks.

Illustrative drawing (dR = prop_range, dR[0] < 0 < dR[1]):

    dR[1] dR[0]
    <---|<--|
     _______
    |   |   |              |
    |object |              |
    |volume |              | detector
    |   |   |              | plane
    |___|___|              |
         <-----------------|
               dist
"""
import logging
from dataclasses import dataclass, field
from typing import List, NamedTuple

import numpy as np

from background import resolve_background
from darkfield_functions import calc_fz
from display_functions import show_tmp_res
from errors import ConfigurationError
from gpu_backend import NumpyBackend, select_backend
from holo_io import tracks_to_dataframe
from localization import Detection, localize_objects
from options import AdvancedOptions, OpticalGeometry, SystemOptions
from parallel_rc import build_dark_volume
from segmentation import segment
from settings import PAD
from track_particles_4d import Tracker

logger = logging.getLogger(__name__)


class FrameResult(NamedTuple):
    edof: np.ndarray
    cr: np.ndarray
    labels: np.ndarray
    detections: List[Detection]


class DarkTrackResult(NamedTuple):
    out_x: np.ndarray   # (tracks, frames), um, NaN where absent
    out_y: np.ndarray
    out_z: np.ndarray
    edof: np.ndarray    # (rows, cols, frames)
    cr: np.ndarray      # (rows, cols, frames)

    def to_dataframe(self):
        return tracks_to_dataframe(self.out_x, self.out_y, self.out_z)


@dataclass
class RunContext:
    '''Frame-indexed containers filled by the reconstruction and read by the tracker.'''
    geometry: OpticalGeometry
    shape: tuple
    n_frames: int
    edof: np.ndarray = field(repr=False)
    cr: np.ndarray = field(repr=False)
    detections: list = field(repr=False)

    @classmethod
    def allocate(cls, geometry: OpticalGeometry, shape: tuple, n_frames: int) -> 'RunContext':
        Sy, Sx = shape
        return cls(geometry=geometry, shape=shape, n_frames=n_frames,
                   edof=np.zeros((Sy, Sx, n_frames)),
                   cr=np.zeros((Sy, Sx, n_frames)),
                   detections=[[] for _ in range(n_frames)])

    def store(self, tt: int, result: FrameResult) -> None:
        self.edof[:, :, tt] = result.edof
        self.cr[:, :, tt] = result.cr
        self.detections[tt] = list(result.detections)

    def physical_positions(self, tt: int) -> np.ndarray:
        '''(n, 3) x, y, z of the detections of frame tt, in um.'''
        dets = self.detections[tt]
        if not dets:
            return np.empty((0, 3))
        g = self.geometry
        x = g.pixels_to_um([d.x for d in dets])
        y = g.pixels_to_um([d.y for d in dets])
        z = g.depth_to_um([d.z for d in dets])
        return np.column_stack([x, y, z])


def reconstruct_frame(frame: np.ndarray,
                      background_padded: np.ndarray,
                      geometry: OpticalGeometry,
                      fz,
                      min_pix: int,
                      backend=None,
                      workers: int = 1,
                      frame_index: int = 0) -> FrameResult:
    """
    Volume reconstruction, segmentation and localization of one hologram.

    Returns:
    FrameResult: EDOF image, classical reconstruction, label map and detections
    """
    backend = backend or NumpyBackend()
    dark_volume, grad_volume, cr = build_dark_volume(frame, background_padded, geometry.distances,
                                                     fz, backend=backend, workers=workers)
    labels, count = segment(dark_volume, grad_volume, min_pix)
    edof, detections = localize_objects(dark_volume, grad_volume, labels, count, frame=frame_index)
    return FrameResult(edof=edof, cr=cr, labels=labels, detections=detections)


def _as_stack(holo_set) -> np.ndarray:
    holo_set = np.asarray(holo_set)
    if holo_set.ndim == 2:
        holo_set = holo_set[:, :, np.newaxis]
    if holo_set.ndim != 3 or holo_set.shape[2] == 0:
        raise ConfigurationError(f'holo_set must be a (rows, cols, frames) array, got shape {holo_set.shape}.')
    return holo_set


def dark_track(holo_set, opts, adv=None) -> DarkTrackResult:
    """
    Returns the 4D location of the objects present in a stack of holograms
    and the extended depth of focus (EDOF) reconstruction.

    Parameters:
    holo_set (3D array): Holograms, (rows, cols, frames)
    opts (SystemOptions or dict): dist (mm), prop_range (um, [lower, upper]
        relative to dist), prop_step (um), wavelength (um), pix_size (um),
        mag, optional n0 (default 1). Original key names are accepted.
    adv (AdvancedOptions or dict): Optional min_pix, show_tmp_res, n_frames,
        back_remov, use_gpu, workers, frame_forget, velocity_window.

    Returns:
    DarkTrackResult: out_x, out_y, out_z (tracks x frames, um, NaN when the
        object is not present in a frame), edof and cr (rows x cols x frames)
    """
    opts = SystemOptions.from_mapping(opts)
    adv = AdvancedOptions.from_mapping(adv)
    holo_set = _as_stack(holo_set)
    geometry = OpticalGeometry.from_options(opts)

    Sy, Sx, St = holo_set.shape
    n_frames = adv.frame_count(St)
    background = resolve_background(adv.back_remov, holo_set, n_frames)
    backend = select_backend(adv.use_gpu)
    fz = backend.asarray(calc_fz((Sy + 2 * PAD, Sx + 2 * PAD), geometry.dpix, geometry.wavelength, geometry.n0))

    logger.debug('[DarkTrack] %d frames of %dx%d, %d planes from %.2f to %.2f um',
                 n_frames, Sy, Sx, geometry.n_planes, geometry.distances[0], geometry.distances[-1])

    context = RunContext.allocate(geometry, (Sy, Sx), n_frames)
    for tt in range(n_frames):
        frame = holo_set[:, :, tt].astype(np.float64)
        result = reconstruct_frame(frame, background.padded(tt, frame), geometry, fz,
                                   adv.min_pix, backend=backend, workers=adv.workers, frame_index=tt)
        context.store(tt, result)
        logger.debug('[DarkTrack] Frame %d: %d objects', tt + 1, len(result.detections))
        show_tmp_res(adv.show_tmp_res, result, tt + 1, n_frames)

    tracker = Tracker(frame_forget=adv.frame_forget, velocity_window=adv.velocity_window,
                      min_displacement=geometry.dpix)
    for tt in range(n_frames):
        tracker.update(context.physical_positions(tt))
    out_x, out_y, out_z = tracker.to_table()

    if adv.show_tmp_res:
        logger.info('[DarkTrack] Done: %d tracks in %d frames', tracker.n_tracks, n_frames)
    return DarkTrackResult(out_x=out_x, out_y=out_y, out_z=out_z, edof=context.edof, cr=context.cr)
