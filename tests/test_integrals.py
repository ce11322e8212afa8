import sys, pathlib
sys.path.insert(0, str(pathlib.Path(__file__).parent.parent))

import math

import matplotlib
matplotlib.use("Agg")

import pytest

from expression import DomainError, parse
from integrals import (
    RULES,
    IntegralValidator,
    Rule,
    Visualizer,
    approximate,
    format_values,
    left_endpoint_rule,
    midpoint_rule,
    right_endpoint_rule,
    simpsons_rule,
    trapezoidal_rule,
)


@pytest.fixture
def square():
    return parse("x^2")


def test_rules_on_x_squared(square):
    assert left_endpoint_rule(square, 0, 1, 4).value == pytest.approx(0.21875)
    assert right_endpoint_rule(square, 0, 1, 4).value == pytest.approx(0.46875)
    assert midpoint_rule(square, 0, 1, 4).value == pytest.approx(0.328125)
    assert trapezoidal_rule(square, 0, 1, 4).value == pytest.approx(0.34375)
    assert simpsons_rule(square, 0, 1, 4).value == pytest.approx(1 / 3)


def test_sample_points(square):
    left = left_endpoint_rule(square, 0, 1, 4)
    assert list(left.points) == [0.0, 0.25, 0.5, 0.75]
    assert left.delta_x == 0.25

    right = right_endpoint_rule(square, 0, 1, 4)
    assert list(right.points) == [0.25, 0.5, 0.75, 1.0]

    middle = midpoint_rule(square, 0, 1, 4)
    assert list(middle.points) == [0.125, 0.375, 0.625, 0.875]


def test_weights(square):
    assert list(trapezoidal_rule(square, 0, 1, 4).weights) == [1, 2, 2, 2, 1]
    assert list(simpsons_rule(square, 0, 1, 6).weights) == [1, 4, 2, 4, 2, 4, 1]


def test_simpson_is_exact_for_cubics():
    cubic = parse("x^3 - 2x + 1")
    # antiderivative x^4/4 - x^2 + x over [0, 2] is 4 - 4 + 2
    assert simpsons_rule(cubic, 0, 2, 2).value == pytest.approx(2.0)


def test_sine_over_half_period():
    f = parse("sin(x)")
    assert simpsons_rule(f, 0, math.pi, 100).value == pytest.approx(2.0, abs=1e-7)
    assert trapezoidal_rule(f, 0, math.pi, 100).value == pytest.approx(2.0, abs=1e-3)


def test_rules_registry_matches_enum(square):
    assert set(RULES) == set(Rule)
    for rule, rule_function in RULES.items():
        assert rule_function(square, 0, 1, 2).rule is rule


def test_invalid_intervals_are_rejected(square):
    with pytest.raises(ValueError, match="Left Endpoint Rule"):
        approximate(square, 1, 0, 4, Rule.LEFT_ENDPOINT)
    with pytest.raises(ValueError):
        approximate(square, 0, 1, 0, Rule.MIDPOINT)
    with pytest.raises(ValueError):
        approximate(square, 0, 1, 2.5, Rule.TRAPEZOIDAL)
    with pytest.raises(ValueError, match="a and b must be finite"):
        approximate(square, 0, math.inf, 4, Rule.RIGHT_ENDPOINT)


def test_simpson_requires_even_n(square):
    with pytest.raises(ValueError, match="positive even integer"):
        simpsons_rule(square, 0, 1, 3)


def test_validator_accepts_valid_arguments():
    IntegralValidator.validate(Rule.SIMPSONS, -1.0, 1.0, 10)
    IntegralValidator.validate(Rule.LEFT_ENDPOINT, 0, 1, 1)


def test_domain_error_at_sample_point():
    with pytest.raises(DomainError):
        left_endpoint_rule(parse("1/x"), 0, 1, 4)
    # the right endpoints skip x = 0
    assert right_endpoint_rule(parse("1/x"), 0, 1, 4).value > 0


def test_undefined_sample_value_is_a_domain_error():
    with pytest.raises(DomainError) as exc:
        left_endpoint_rule(parse("(x)^0.5"), -1, 1, 2)
    assert exc.value.operand == "-1.0000"


def test_describe_endpoint_rule(square):
    text = left_endpoint_rule(square, 0, 1, 4).describe()
    assert text.startswith("- - - Left Endpoint Rule - - -")
    assert "f(x) = x^2" in text
    assert "Δx = 0.2500" in text
    assert "Endpoints: [0.0000, 0.2500, 0.5000, 0.7500]" in text
    assert "0.2500*[0.0000 + 0.0625 + 0.2500 + 0.5625] = 0.2188" in text


def test_describe_weighted_rules(square):
    assert "Midpoints:" in midpoint_rule(square, 0, 1, 2).describe()

    trapezoid = trapezoidal_rule(square, 0, 1, 2).describe()
    assert "(0.5000/2)*[0.0000 + 2*0.2500 + 1.0000] = 0.3750" in trapezoid

    simpson = simpsons_rule(square, 0, 1, 2).describe()
    assert "(0.5000/3)*[0.0000 + 4*0.2500 + 1.0000] = 0.3333" in simpson


def test_format_values_parenthesizes_negatives():
    assert format_values([1.0, -2.5], ", ") == "[1.0000, (-2.5000)]"
    assert format_values(range(11), ", ").count("\n") == 1


def test_plot_is_saved(tmp_path):
    approximation = midpoint_rule(parse("1/x"), -1, 1, 4)
    target = tmp_path / "midpoint.png"
    Visualizer().plot_approximation(approximation, save_path=str(target))
    assert target.exists()


def test_trapezoid_plot_is_saved(tmp_path, square):
    target = tmp_path / "trapezoid.png"
    Visualizer().plot_approximation(trapezoidal_rule(square, 0, 2, 8), save_path=str(target))
    assert target.exists()
