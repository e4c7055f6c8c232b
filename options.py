"""
Configuration records for a DarkTrack run.

``SystemOptions`` holds the optical parameters of the setup (the ``opts``
record), ``AdvancedOptions`` the algorithm switches (the ``adv`` record) and
``OpticalGeometry`` the derived, unit-consistent quantities used by the
reconstruction (everything in micrometers).
"""
import math
from dataclasses import dataclass, field, fields
from typing import Any, Mapping, Optional, Tuple

import numpy as np

from errors import ConfigurationError
from settings import *


# Original option names -> attribute names
_SYSTEM_ALIASES = {
    'dist': 'dist',
    'propRange': 'prop_range',
    'propStep': 'prop_step',
    'lambda': 'wavelength',
    'pixSize': 'pix_size',
    'mag': 'mag',
    'n0': 'n0',
}

_ADVANCED_ALIASES = {
    'minPix': 'min_pix',
    'showTmpRes': 'show_tmp_res',
    'NoF': 'n_frames',
    'backRemov': 'back_remov',
    'useGPU': 'use_gpu',
    'frmeForg': 'frame_forget',
    'dxL': 'velocity_window',
}

_GPU_MODES = {0: 'off', 1: 'on', 2: 'auto', 'off': 'off', 'on': 'on', 'auto': 'auto',
              False: 'off', True: 'on'}


def _canonical(mapping: Mapping[str, Any], aliases: dict) -> dict:
    out = {}
    for key, value in mapping.items():
        name = aliases.get(key, key)
        out[name] = value
    return out


@dataclass
class SystemOptions:
    dist: float                        # mm, detector to middle of object volume
    prop_range: Tuple[float, float]    # um, relative to dist
    prop_step: float                   # um
    wavelength: float                  # um
    pix_size: float                    # um, camera pitch
    mag: float
    n0: float = DEFAULT_N0

    REQUIRED = ('dist', 'prop_range', 'prop_step', 'wavelength', 'pix_size', 'mag')

    def __post_init__(self):
        try:
            lo, hi = self.prop_range
        except (TypeError, ValueError):
            raise ConfigurationError('prop_range must be a pair [lower bound, upper bound].')
        self.prop_range = (float(lo), float(hi))
        for name in ('dist', 'prop_step', 'wavelength', 'pix_size', 'mag', 'n0'):
            value = getattr(self, name)
            try:
                value = float(value)
            except (TypeError, ValueError):
                raise ConfigurationError(f"Cannot convert '{name}'={value!r} to float.")
            if not math.isfinite(value):
                raise ConfigurationError(f"'{name}' must be finite.")
            setattr(self, name, value)
        for name in ('prop_step', 'wavelength', 'pix_size', 'mag', 'n0'):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"'{name}' must be positive.")

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> 'SystemOptions':
        '''Builds options from a dict using either the original or snake_case keys.'''
        if isinstance(mapping, cls):
            return mapping
        if mapping is None:
            raise ConfigurationError('Not enough input arguments ("opts" is missing).')
        values = _canonical(mapping, _SYSTEM_ALIASES)
        missing = [name for name in cls.REQUIRED if name not in values]
        if missing:
            raise ConfigurationError('Not enough opts parameters. Missing: ' + ', '.join(missing))
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in values.items() if k in known})

    @property
    def dpix(self) -> float:
        '''Effective pixel size in the object plane.'''
        return self.pix_size / self.mag


@dataclass
class AdvancedOptions:
    min_pix: int = DEFAULT_MIN_PIX
    show_tmp_res: int = DEFAULT_SHOW_TMP_RES
    n_frames: Optional[int] = None
    back_remov: Any = None
    use_gpu: Any = 'auto'
    workers: int = DEFAULT_WORKERS
    frame_forget: int = DEFAULT_FRAME_FORGET
    velocity_window: int = DEFAULT_VELOCITY_WINDOW

    def __post_init__(self):
        if self.use_gpu not in _GPU_MODES:
            raise ConfigurationError(f"Unknown use_gpu mode {self.use_gpu!r} (expected off/on/auto or 0/1/2).")
        self.use_gpu = _GPU_MODES[self.use_gpu]
        if int(self.show_tmp_res) not in (0, 1, 2, 3):
            raise ConfigurationError('show_tmp_res must be 0, 1, 2 or 3.')
        self.show_tmp_res = int(self.show_tmp_res)
        for name in ('min_pix', 'workers', 'frame_forget', 'velocity_window'):
            value = int(getattr(self, name))
            if value < (0 if name == 'min_pix' else 1):
                raise ConfigurationError(f"'{name}' is out of range: {value}")
            setattr(self, name, value)
        if self.n_frames is not None:
            self.n_frames = int(self.n_frames)
            if self.n_frames < 1:
                raise ConfigurationError('n_frames must be at least 1.')

    @classmethod
    def from_mapping(cls, mapping: Optional[Mapping[str, Any]]) -> 'AdvancedOptions':
        if isinstance(mapping, cls):
            return mapping
        if mapping is None:
            return cls()
        values = _canonical(mapping, _ADVANCED_ALIASES)
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ConfigurationError('Unknown advanced options: ' + ', '.join(unknown))
        return cls(**values)

    def frame_count(self, available: int) -> int:
        '''Number of frames to process out of the ``available`` ones.'''
        if self.n_frames is None:
            return available
        if self.n_frames > available:
            raise ConfigurationError(f'n_frames={self.n_frames} exceeds the {available} frames in the stack.')
        return self.n_frames


@dataclass(frozen=True)
class OpticalGeometry:
    n0: float
    wavelength: float
    dpix: float
    base_distance: float
    range_lower: float
    range_upper: float
    step: float
    distances: np.ndarray = field(repr=False, compare=False)

    @classmethod
    def from_options(cls, opts: SystemOptions) -> 'OpticalGeometry':
        base = opts.dist * 1000.0
        lo, hi = opts.prop_range
        step = opts.prop_step
        # Same sampling as lo:step:hi, tolerant to rounding of the last sample
        count = int(math.floor((hi - lo) / step + 1e-9)) + 1 if hi >= lo else 0
        if count < 1:
            raise ConfigurationError(
                f'Propagation range {opts.prop_range} with step {step} yields no samples.')
        distances = base + lo + step * np.arange(count)
        return cls(n0=opts.n0, wavelength=opts.wavelength, dpix=opts.dpix,
                   base_distance=base, range_lower=lo, range_upper=hi, step=step,
                   distances=distances)

    @property
    def n_planes(self) -> int:
        return len(self.distances)

    def depth_to_um(self, z_index):
        '''1-based depth index -> z (um), relative to the sampled window.'''
        return (np.asarray(z_index, dtype=float) - 1.0) * self.step + self.range_lower

    def pixels_to_um(self, pixels):
        return np.asarray(pixels, dtype=float) * self.dpix
