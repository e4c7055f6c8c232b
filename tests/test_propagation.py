import numpy as np
import pytest

from darkfield_functions import as_propagate, calc_fz, compute_spectrum, crop_frame, normalize, pad_frame


def test_evanescent_frequencies_are_zero():
    shape, dpix, wavelength, n0 = (64, 48), 0.2, 0.6, 1.0
    fz = calc_fz(shape, dpix, wavelength, n0)

    fx = np.fft.fftfreq(shape[1], d=dpix)
    fy = np.fft.fftfreq(shape[0], d=dpix)
    FX, FY = np.meshgrid(fx, fy)
    evanescent = FX ** 2 + FY ** 2 > (n0 / wavelength) ** 2

    assert evanescent.any()
    assert not np.iscomplexobj(fz)
    assert np.all(fz[evanescent] == 0.0)
    np.testing.assert_allclose(fz[~evanescent], np.sqrt((n0 / wavelength) ** 2 - FX ** 2 - FY ** 2)[~evanescent])


def test_kernel_is_cached_and_read_only():
    a = calc_fz((32, 32), 0.5, 0.5, 1.0)
    b = calc_fz((32, 32), 0.5, 0.5, 1.0)
    assert a is b
    with pytest.raises(ValueError):
        a[0, 0] = 1.0


def test_zero_frequency_first_for_odd_sizes():
    fz = calc_fz((15, 9), 0.5, 0.5, 1.0)
    assert fz[0, 0] == pytest.approx(2.0)
    assert fz[0, 0] == fz.max()


def test_round_trip_single_frequency():
    N, dpix, wavelength = 64, 0.5, 0.5
    x = np.arange(N) * dpix
    X, Y = np.meshgrid(x, x)
    field = np.exp(1j * 2 * np.pi * (3 / (N * dpix)) * X + 1j * 2 * np.pi * (5 / (N * dpix)) * Y)
    fz = calc_fz((N, N), dpix, wavelength, 1.0)

    forward = as_propagate(compute_spectrum(field), 37.5, fz)
    back = as_propagate(compute_spectrum(forward), -37.5, fz)

    np.testing.assert_allclose(np.abs(forward), np.abs(field), atol=1e-10)
    np.testing.assert_allclose(np.abs(back), np.abs(field), atol=1e-10)
    np.testing.assert_allclose(back, field, atol=1e-10)


def test_zero_distance_is_identity():
    rng = np.random.default_rng(0)
    field = rng.random((20, 30))
    fz = calc_fz((20, 30), 1.0, 0.5, 1.0)
    np.testing.assert_allclose(as_propagate(compute_spectrum(field), 0.0, fz).real, field, atol=1e-12)


def test_pad_and_crop():
    frame = np.arange(12.0).reshape(3, 4)
    padded = pad_frame(frame, pad=5)
    assert padded.shape == (13, 14)
    assert padded[:5].sum() == 0
    np.testing.assert_array_equal(crop_frame(padded, frame.shape, pad=5), frame)


def test_normalize():
    out = normalize(np.array([2.0, 4.0, 6.0]))
    np.testing.assert_allclose(out, [0.0, 0.5, 1.0])
    np.testing.assert_array_equal(normalize(np.ones(3)), np.zeros(3))
