#!/usr/bin/env python3
"""
Definite Integral Approximation
Endpoint, midpoint, trapezoidal and Simpson's rules over functions of x
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional

import matplotlib.pyplot as plt
import numpy as np

from expression import DomainError, ParsedExpression

logger = logging.getLogger(__name__)

ROUNDING_NOTE = (
    "NOTE: Numbers are rounded to 4 decimal places for cleaner output,\n"
    "      but the underlying calculation remains precise."
)

# ==========================================
# RULES AND VALIDATION
# ==========================================

class Rule(Enum):
    LEFT_ENDPOINT = "Left Endpoint Rule"
    RIGHT_ENDPOINT = "Right Endpoint Rule"
    MIDPOINT = "Midpoint Rule"
    TRAPEZOIDAL = "Trapezoidal Rule"
    SIMPSONS = "Simpson's Rule"


class IntegralValidator:
    """Validate the interval and subdivision count of an approximation"""

    @staticmethod
    def validate(rule: Rule, a: float, b: float, n: int):
        if rule is Rule.SIMPSONS:
            requirement = "n must be a positive even integer not equal to zero"
        else:
            requirement = "n must be a positive integer not equal to zero"
        message = f"{rule.value}: a must be less than b and {requirement}."

        if not (math.isfinite(a) and math.isfinite(b)):
            raise ValueError(f"{rule.value}: a and b must be finite numbers.")

        is_integer = isinstance(n, (int, np.integer)) and not isinstance(n, bool)
        if not (a < b and is_integer and n > 0):
            raise ValueError(message)

        if rule is Rule.SIMPSONS and n % 2 != 0:
            raise ValueError(message)

# ==========================================
# APPROXIMATIONS
# ==========================================

@dataclass
class Approximation:
    """Sample points, weights and result of one rule applied to one integral"""
    rule: Rule
    function: ParsedExpression
    a: float
    b: float
    n: int
    delta_x: float
    points: np.ndarray
    values: np.ndarray
    weights: np.ndarray
    value: float

    @property
    def point_label(self) -> str:
        return "Midpoints" if self.rule is Rule.MIDPOINT else "Endpoints"

    def describe(self) -> str:
        """Step-by-step summary of the weighted sum"""
        lines = [
            f"- - - {self.rule.value} - - -",
            f"f(x) = {self.function}",
            f"Δx = {self.delta_x:.4f}",
            f"{self.point_label}: {format_values(self.points, ', ')}",
            "",
        ]

        if self.rule is Rule.TRAPEZOIDAL or self.rule is Rule.SIMPSONS:
            divisor = 2 if self.rule is Rule.TRAPEZOIDAL else 3
            lines.append(
                f"({self.delta_x:.4f}/{divisor})*[{self._weighted_terms()}] = {self.value:.4f}"
            )
        else:
            lines.append(
                f"{self.delta_x:.4f}*{format_values(self.values, ' + ')} = {self.value:.4f}"
            )

        lines.extend(["", ROUNDING_NOTE])
        return "\n".join(lines)

    def _weighted_terms(self) -> str:
        terms = []
        last = len(self.values) - 1
        for i, (weight, value) in enumerate(zip(self.weights, self.values)):
            if i == 0 or i == last:
                term = f"{value:.4f}"
            else:
                term = f"{int(weight)}*{_parenthesize(value)}"
            if i and i % 10 == 0:
                term = "\n" + term
            terms.append(term)
        return " + ".join(terms)


def _parenthesize(value: float) -> str:
    return f"({value:.4f})" if value < 0 else f"{value:.4f}"


def format_values(values, separator: str) -> str:
    """Bracketed list of values, negatives in parentheses, ten per line"""
    parts = []
    for i, value in enumerate(values):
        part = _parenthesize(value)
        if i and i % 10 == 0:
            part = "\n" + part
        parts.append(part)
    return "[" + separator.join(parts) + "]"


def _sample(rule: Rule, a: float, b: float, n: int):
    """Sample points, weights and scale factor for a rule"""
    delta_x = (b - a) / n
    steps = np.arange(n, dtype=float)

    if rule is Rule.LEFT_ENDPOINT:
        return a + delta_x * steps, np.ones(n), delta_x
    if rule is Rule.RIGHT_ENDPOINT:
        return a + delta_x * (steps + 1), np.ones(n), delta_x
    if rule is Rule.MIDPOINT:
        return a + delta_x * (steps + 0.5), np.ones(n), delta_x

    points = np.linspace(a, b, n + 1)
    weights = np.ones(n + 1)
    if rule is Rule.TRAPEZOIDAL:
        weights[1:-1] = 2
        return points, weights, delta_x / 2

    weights[1:-1:2] = 4
    weights[2:-1:2] = 2
    return points, weights, delta_x / 3


def approximate(function: ParsedExpression, a: float, b: float, n: int, rule: Rule) -> Approximation:
    """Approximate the integral of function over [a, b] with n subdivisions"""
    IntegralValidator.validate(rule, a, b, n)

    points, weights, scale = _sample(rule, float(a), float(b), int(n))
    values = np.empty(len(points))
    for i, point in enumerate(points):
        value = function.evaluate_at(float(point))
        if not math.isfinite(value):
            raise DomainError(f"{point:.4f}", "is not in the domain of f(x)")
        values[i] = value

    result = scale * float(np.dot(weights, values))
    logger.info(f"{rule.value}: f(x) = {function} on [{a}, {b}] with n = {n} -> {result}")

    return Approximation(
        rule=rule,
        function=function,
        a=float(a),
        b=float(b),
        n=int(n),
        delta_x=(float(b) - float(a)) / int(n),
        points=points,
        values=values,
        weights=weights,
        value=result,
    )


def left_endpoint_rule(function: ParsedExpression, a: float, b: float, n: int) -> Approximation:
    return approximate(function, a, b, n, Rule.LEFT_ENDPOINT)


def right_endpoint_rule(function: ParsedExpression, a: float, b: float, n: int) -> Approximation:
    return approximate(function, a, b, n, Rule.RIGHT_ENDPOINT)


def midpoint_rule(function: ParsedExpression, a: float, b: float, n: int) -> Approximation:
    return approximate(function, a, b, n, Rule.MIDPOINT)


def trapezoidal_rule(function: ParsedExpression, a: float, b: float, n: int) -> Approximation:
    return approximate(function, a, b, n, Rule.TRAPEZOIDAL)


def simpsons_rule(function: ParsedExpression, a: float, b: float, n: int) -> Approximation:
    return approximate(function, a, b, n, Rule.SIMPSONS)


RULES: Dict[Rule, Callable[..., Approximation]] = {
    Rule.LEFT_ENDPOINT: left_endpoint_rule,
    Rule.RIGHT_ENDPOINT: right_endpoint_rule,
    Rule.MIDPOINT: midpoint_rule,
    Rule.TRAPEZOIDAL: trapezoidal_rule,
    Rule.SIMPSONS: simpsons_rule,
}

# ==========================================
# VISUALIZATION
# ==========================================

class Visualizer:
    """Create charts of approximations"""

    RESOLUTION = 400

    def plot_approximation(self, approximation: Approximation, save_path: Optional[str] = None):
        """Plot f(x) with the rectangles or panels the rule sums"""
        a, b = approximation.a, approximation.b
        xs = np.linspace(a, b, self.RESOLUTION)
        ys = [self._value_or_gap(approximation.function, x) for x in xs]

        plt.figure(figsize=(12, 6))
        plt.plot(xs, ys, linewidth=2, label=f"f(x) = {approximation.function}")

        dx = approximation.delta_x
        if approximation.rule in (Rule.LEFT_ENDPOINT, Rule.RIGHT_ENDPOINT, Rule.MIDPOINT):
            offsets = {
                Rule.LEFT_ENDPOINT: 0.0,
                Rule.RIGHT_ENDPOINT: dx,
                Rule.MIDPOINT: dx / 2,
            }
            plt.bar(approximation.points - offsets[approximation.rule], approximation.values,
                    width=dx, align='edge', alpha=0.3, edgecolor='black')
        else:
            plt.fill_between(approximation.points, approximation.values, alpha=0.3)

        plt.scatter(approximation.points, approximation.values, color='darkred', s=20, zorder=5)
        plt.title(f"{approximation.rule.value} (n = {approximation.n})", fontsize=14, fontweight='bold')
        plt.xlabel('x')
        plt.ylabel('f(x)')
        plt.grid(True, alpha=0.3)
        plt.axhline(y=0, color='black', linewidth=0.5)

        plt.text(0.02, 0.98, f'Estimate: {approximation.value:.6f}\nΔx = {dx:.4f}',
                 transform=plt.gca().transAxes, verticalalignment='top',
                 bbox=dict(boxstyle='round', facecolor='wheat', alpha=0.5))

        plt.legend()
        plt.tight_layout()

        if save_path:
            plt.savefig(save_path)
            plt.close()
            logger.info(f"Saved plot to {save_path}")
        else:
            plt.show()

    @staticmethod
    def _value_or_gap(function: ParsedExpression, x: float) -> float:
        # undefined points are drawn as gaps in the curve
        try:
            return function.evaluate_at(float(x))
        except DomainError:
            return float('nan')
