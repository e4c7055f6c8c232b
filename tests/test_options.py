import numpy as np
import pytest

from errors import ConfigurationError
from options import AdvancedOptions, OpticalGeometry, SystemOptions


def test_original_keys_are_accepted(system_opts):
    opts = SystemOptions.from_mapping(system_opts)
    assert opts.wavelength == 0.5
    assert opts.prop_range == (-20.0, 20.0)
    assert opts.n0 == 1.0
    assert opts.dpix == pytest.approx(0.5)


def test_missing_required_fields_are_reported(system_opts):
    del system_opts['lambda']
    del system_opts['mag']
    with pytest.raises(ConfigurationError, match='wavelength, mag'):
        SystemOptions.from_mapping(system_opts)


def test_none_options_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        SystemOptions.from_mapping(None)


@pytest.mark.parametrize('key,value', [('propStep', 0), ('mag', -2), ('lambda', 'red'), ('propRange', 5)])
def test_invalid_values(system_opts, key, value):
    system_opts[key] = value
    with pytest.raises(ConfigurationError):
        SystemOptions.from_mapping(system_opts)


def test_sampled_distances_include_upper_bound(system_opts):
    geometry = OpticalGeometry.from_options(SystemOptions.from_mapping(system_opts))
    np.testing.assert_allclose(geometry.distances, [35, 40, 45, 50, 55, 60, 65, 70, 75])
    assert geometry.n_planes == 9


def test_range_with_floating_step(system_opts):
    system_opts.update(propRange=[-0.3, 0.3], propStep=0.1)
    geometry = OpticalGeometry.from_options(SystemOptions.from_mapping(system_opts))
    assert geometry.n_planes == 7


def test_empty_range_is_rejected(system_opts):
    system_opts['propRange'] = [10, -10]
    with pytest.raises(ConfigurationError):
        OpticalGeometry.from_options(SystemOptions.from_mapping(system_opts))


def test_unit_conversions(system_opts):
    geometry = OpticalGeometry.from_options(SystemOptions.from_mapping(system_opts))
    assert geometry.depth_to_um(1) == pytest.approx(-20.0)
    assert geometry.depth_to_um(5.5) == pytest.approx(2.5)
    np.testing.assert_allclose(geometry.pixels_to_um([0, 10]), [0.0, 5.0])


def test_advanced_defaults_and_aliases():
    adv = AdvancedOptions.from_mapping(None)
    assert adv.min_pix == 10
    assert adv.show_tmp_res == 1
    assert adv.use_gpu == 'auto'
    assert adv.frame_count(7) == 7

    adv = AdvancedOptions.from_mapping({'minPix': 25, 'useGPU': 0, 'NoF': 3, 'showTmpRes': 0})
    assert (adv.min_pix, adv.use_gpu, adv.n_frames, adv.show_tmp_res) == (25, 'off', 3, 0)
    assert adv.frame_count(10) == 3
    with pytest.raises(ConfigurationError):
        adv.frame_count(2)


@pytest.mark.parametrize('mapping', [{'useGPU': 5}, {'showTmpRes': 4}, {'workers': 0}, {'colour': 1}])
def test_advanced_invalid(mapping):
    with pytest.raises(ConfigurationError):
        AdvancedOptions.from_mapping(mapping)
