"""
Loading of hologram stacks and parameter files, and export of the tracks.
"""
import logging
import os

import cv2
import numpy as np
import pandas as pd
from PIL import Image
from scipy import io as sio

from errors import ConfigurationError
from options import SystemOptions

logger = logging.getLogger(__name__)


def im2arr(path: str) -> np.ndarray:
    '''Reads an image file as a grayscale double precision 2D array.'''
    return np.asarray(Image.open(path).convert('L'), dtype=np.float64)


def read_image_stack(paths) -> np.ndarray:
    """
    Reads a sequence of hologram images.

    Parameters:
    paths (list[str]): Image files, in frame order

    Returns:
    stack (3D array): (rows, cols, frames)
    """
    frames = [im2arr(p) for p in paths]
    if not frames:
        raise ConfigurationError('No hologram images given.')
    shape = frames[0].shape
    for p, f in zip(paths, frames):
        if f.shape != shape:
            raise ConfigurationError(f'Image {p} has size {f.shape}, expected {shape}.')
    return np.stack(frames, axis=2)


def read_video_stack(video_path: str, n_frames=None) -> np.ndarray:
    """
    Reads the frames of a hologram video.

    Parameters:
    video_path (str): Video file readable by OpenCV
    n_frames (int): Stop after this many frames (default: all)

    Returns:
    stack (3D array): (rows, cols, frames), grayscale
    """
    if not os.path.isfile(video_path):
        raise ConfigurationError(f'Video not found: {video_path}')
    cap = cv2.VideoCapture(video_path)
    if not cap.isOpened():
        raise ConfigurationError(f'Could not open video: {video_path}')
    frames = []
    try:
        while n_frames is None or len(frames) < n_frames:
            ret, frame = cap.read()
            if not ret:
                break
            if frame.ndim == 3:
                frame = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
            frames.append(frame.astype(np.float64))
    finally:
        cap.release()
    if not frames:
        raise ConfigurationError(f'Could not read any frame of the video: {video_path}')
    logger.info('[IO] Read %d frames from %s', len(frames), video_path)
    return np.stack(frames, axis=2)


def _struct_to_dict(obj) -> dict:
    if isinstance(obj, dict):
        return obj
    if hasattr(obj, '_fieldnames'):
        return {name: getattr(obj, name) for name in obj._fieldnames}
    if isinstance(obj, np.ndarray) and obj.dtype.names:
        rec = obj.squeeze()
        return {name: rec[name].item() if rec[name].size == 1 else rec[name] for name in obj.dtype.names}
    raise ConfigurationError('Unsupported parameter structure in .mat file.')


def load_options_mat(path: str, variable: str = 'opts') -> SystemOptions:
    """
    Loads system parameters saved as a MATLAB struct (``opts.dist``,
    ``opts.propRange``, ``opts.lambda``, ...).

    Parameters:
    path (str): .mat file
    variable (str): Name of the struct; top-level variables are used if absent

    Returns:
    opts (SystemOptions)
    """
    mat = sio.loadmat(path, squeeze_me=True, struct_as_record=False)
    if variable in mat:
        values = _struct_to_dict(mat[variable])
    else:
        values = {k: v for k, v in mat.items() if not k.startswith('__')}
    values = {k: (v.tolist() if isinstance(v, np.ndarray) and v.ndim > 0 else v) for k, v in values.items()}
    return SystemOptions.from_mapping(values)


def tracks_to_dataframe(out_x: np.ndarray, out_y: np.ndarray, out_z: np.ndarray) -> pd.DataFrame:
    '''Long-form table (track, frame, x_um, y_um, z_um) without absent entries.'''
    n_tracks, n_frames = out_x.shape
    track, frame = np.meshgrid(np.arange(n_tracks), np.arange(n_frames), indexing='ij')
    df = pd.DataFrame({
        'track': track.ravel(),
        'frame': frame.ravel(),
        'x_um': out_x.ravel(),
        'y_um': out_y.ravel(),
        'z_um': out_z.ravel(),
    })
    return df.dropna(subset=['x_um']).reset_index(drop=True)


def save_tracks_csv(result, path: str) -> None:
    tracks_to_dataframe(result.out_x, result.out_y, result.out_z).to_csv(path, index=False)
    logger.info('[IO] Tracks saved: %s', path)
