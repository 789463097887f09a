import numpy as np
import pytest

from pulsefit.errors import TemplateError
from pulsefit.template import Template


def test_template_interpolation(gauss_template, pulse_shape):
    t = np.linspace(-8, 15, 101)
    assert np.allclose(gauss_template.mean(t), pulse_shape(t), atol=1e-7)

    # derivative of a Gaussian
    deriv = -t / 1.5**2 * pulse_shape(t)
    assert np.allclose(gauss_template.mean_derivative(t), deriv, atol=1e-5)

    # no sigma given: zero spread
    assert np.all(gauss_template.sigma(t) == 0)

    assert gauss_template.lo_offset == -8.5
    assert gauss_template.hi_offset == 15.5


def test_template_outside_domain(gauss_template):
    t = np.array([-20.0, -8.6, 15.6, 30.0])
    assert np.all(gauss_template.mean(t) == 0)
    assert np.all(gauss_template.mean_derivative(t) == 0)
    assert np.array_equal(
        gauss_template.in_domain([-8.5, 0.0, 15.5, 15.6]), [True, True, True, False]
    )


def test_template_scalar(gauss_template, pulse_shape):
    val = gauss_template.mean(0.3)
    assert isinstance(val, float)
    assert val == pytest.approx(pulse_shape(0.3), abs=1e-7)
    assert gauss_template.mean(100.0) == 0.0


def test_template_is_read_only(gauss_template):
    with pytest.raises(ValueError):
        gauss_template.knots[0] = 1.0
    with pytest.raises(ValueError):
        gauss_template.mean_knots[0] = 1.0
    with pytest.raises(AttributeError):
        gauss_template.lo_offset = 0.0


def test_template_sigma():
    knots = np.linspace(-1, 1, 21)
    tmpl = Template(knots, 1 - knots**2, np.full(21, 0.1), lo_offset=-1.1, hi_offset=1.1)
    assert tmpl.sigma(0.05) == pytest.approx(0.1)
    assert tmpl.mean(0.5) == pytest.approx(0.75)
    # extrapolated between the outermost knot and the domain edge
    assert tmpl.mean(1.05) == pytest.approx(1 - 1.05**2)
    assert tmpl.sigma(1.2) == 0.0
    assert "n_knots=21" in repr(tmpl)


def test_template_validation():
    knots = np.arange(5.0)
    with pytest.raises(TemplateError):
        Template([0.0], [1.0])
    with pytest.raises(TemplateError):
        Template(knots, np.ones(4))
    with pytest.raises(TemplateError):
        Template(knots[::-1], np.ones(5))
    with pytest.raises(TemplateError):
        Template(knots, np.array([0, 1, np.nan, 1, 0]))
    with pytest.raises(TemplateError):
        Template(knots, np.ones(5), np.ones(3))
    with pytest.raises(TemplateError):
        Template(knots, np.ones(5), lo_offset=2.0, hi_offset=1.0)
    with pytest.raises(TemplateError):
        Template(knots, np.ones(5), lo_offset=-3.0)
