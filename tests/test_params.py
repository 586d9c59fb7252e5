import numpy as np
import pytest

from breedlab.errors import NumericalError, StructuralInputError
from breedlab.params import annual_response, normal_density, selection_response, variance_components


def test_variance_components_partition():
    components = variance_components(30.0, 10.0, 60.0)
    assert components.vp == 100.0
    assert components.h2_narrow == pytest.approx(0.3)
    assert components.h2_broad == pytest.approx(0.4)
    assert components.share_va + components.share_vd + components.share_ve == pytest.approx(100.0)


def test_variance_components_zero_total():
    components = variance_components(0.0, 0.0, 0.0)
    assert components.h2_narrow == 0.0
    assert components.share_ve == 0.0


def test_negative_variance_component_rejected():
    with pytest.raises(StructuralInputError):
        variance_components(-1.0, 0.0, 1.0)


def test_selection_and_annual_response():
    assert selection_response(1.4, 0.3, 10.0) == pytest.approx(4.2)
    assert annual_response(1.4, 0.3, 10.0, 5.0) == pytest.approx(0.84)
    with pytest.raises(NumericalError):
        annual_response(1.4, 0.3, 10.0, 0.0)


def test_normal_density_integrates_to_one():
    x, pdf = normal_density(100.0, 25.0)
    assert x[0] == pytest.approx(80.0)
    assert x[-1] == pytest.approx(120.0)
    assert np.sum(pdf) * (x[1] - x[0]) == pytest.approx(1.0, abs=1e-3)
    assert x[np.argmax(pdf)] == pytest.approx(100.0)
