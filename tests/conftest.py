import matplotlib
matplotlib.use('Agg')

import numpy as np
import pytest

from darkfield_functions import as_propagate, calc_fz, compute_spectrum

WAVELENGTH = 0.5    # um
PIX_SIZE = 5.5      # um
MAG = 11.0          # -> 0.5 um effective pixel
DIST_MM = 0.055     # 55 um
PROP_RANGE = (-20.0, 20.0)
PROP_STEP = 5.0
DPIX = PIX_SIZE / MAG


def simulate_hologram(objects, shape=(64, 64), margin=32, sigma=1.5, absorption=0.9):
    """
    In-line hologram of small Gaussian absorbers.

    objects: iterable of (x, y, z) with x, y in pixels of the returned frame
    and z the absolute object-to-sensor distance in um.
    """
    Sy, Sx = shape
    big = (Sy + 2 * margin, Sx + 2 * margin)
    fz = calc_fz(big, DPIX, WAVELENGTH, 1.0)
    yy, xx = np.mgrid[0:big[0], 0:big[1]]
    scattered = np.zeros(big, dtype=complex)
    for x, y, z in objects:
        r2 = (xx - (x + margin)) ** 2 + (yy - (y + margin)) ** 2
        obj = -absorption * np.exp(-r2 / (2 * sigma ** 2))
        scattered += as_propagate(compute_spectrum(obj), z, fz)
    holo = np.abs(1 + scattered) ** 2
    return holo[margin:margin + Sy, margin:margin + Sx]


@pytest.fixture
def system_opts():
    return {
        'dist': DIST_MM,
        'propRange': list(PROP_RANGE),
        'propStep': PROP_STEP,
        'lambda': WAVELENGTH,
        'pixSize': PIX_SIZE,
        'mag': MAG,
    }


@pytest.fixture
def static_object_stack():
    '''Five identical frames of one object at pixel (30, 34), 5 um behind the range centre.'''
    frame = simulate_hologram([(30, 34, DIST_MM * 1000 + 5.0)])
    return np.repeat(frame[:, :, np.newaxis], 5, axis=2)
