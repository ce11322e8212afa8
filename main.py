#!/usr/bin/env python3
"""
Definite Integral Approximator
Approximates integrals of f(x) over [a, b] with endpoint, midpoint, trapezoidal and Simpson's rules
"""

import logging
from datetime import datetime
from enum import IntEnum
from pathlib import Path
from typing import Dict, List, Tuple, Union

from expression import (
    DomainError,
    ExpressionError,
    ParseError,
    ParsedExpression,
    evaluate_constant_expression,
)
from integrals import Approximation, Rule, Visualizer, approximate

LOG_DIR = Path("logs")

# range of valid values for n
SUBDIVISIONS_LOWER_BOUND = 1
SUBDIVISIONS_UPPER_BOUND = 1_000

logger = logging.getLogger(__name__)

DIRECTIONS = """\
This application approximates definite integrals on a closed interval [a, b] using n subdivisions
and a chosen estimation method (Left Endpoint Rule, Right Endpoint Rule, Midpoint Rule,
Trapezoidal Rule and Simpson's Rule).
First choose a method, then enter a function, a, b and n.

Requirements:
  • x is the function's variable
  • The function, f(x), must be continuous over [a, b]
  • n must be greater than zero (and even for Simpson's Rule)
  • a must be less than b

Tips:
  • Type "pi" for π and "e" for Euler's number
  • a and b may be expressions such as pi/2 or 3*pi/2
  • Put parentheses around negative values, e.g. 10/(-5)
  • Functions: sin, cos, tan, csc, sec, cot, arcsin, arccos, arctan,
    ln, log, sinh, cosh, tanh, sqrt
"""

CONTINUITY_NOTE = """
IMPORTANT: The function must be continuous on [a, b] for the results to be correct.
           If the function is discontinuous on the interval of integration,
           the results will be inaccurate."""


class MenuOption(IntEnum):
    LEFT_ENDPOINT_RULE = 1
    RIGHT_ENDPOINT_RULE = 2
    MIDPOINT_RULE = 3
    TRAPEZOIDAL_RULE = 4
    SIMPSONS_RULE = 5
    ALL_RULES = 6
    EVALUATE = 7
    HISTORY = 8
    QUIT = 9


MENU_RULES = {
    MenuOption.LEFT_ENDPOINT_RULE: Rule.LEFT_ENDPOINT,
    MenuOption.RIGHT_ENDPOINT_RULE: Rule.RIGHT_ENDPOINT,
    MenuOption.MIDPOINT_RULE: Rule.MIDPOINT,
    MenuOption.TRAPEZOIDAL_RULE: Rule.TRAPEZOIDAL,
    MenuOption.SIMPSONS_RULE: Rule.SIMPSONS,
}

MENU = """
Choose a method:
  1 - Left Endpoint Rule
  2 - Right Endpoint Rule
  3 - Midpoint Rule
  4 - Trapezoidal Rule
  5 - Simpson's Rule
  6 - Use All Rules
  7 - Evaluate f(x) at a point
  8 - History
  9 - Quit
"""

Result = Union[Approximation, ValueError]


def setup_logging(log_dir: Path = LOG_DIR):
    """Log to a dated file and echo warnings to the console"""
    log_dir = Path(log_dir)
    log_dir.mkdir(exist_ok=True)

    console = logging.StreamHandler()
    console.setLevel(logging.WARNING)

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_dir / f'integrals_{datetime.now().strftime("%Y%m%d")}.log'),
            console,
        ]
    )


class IntegralCalculator:
    """Runs approximations and keeps the session history"""

    def __init__(self):
        self.visualizer = Visualizer()
        self.history: List[Tuple[ParsedExpression, float, float, int, Dict[Rule, Result]]] = []

    def approximate(self, function: ParsedExpression, a: float, b: float, n: int,
                    rules: List[Rule]) -> Dict[Rule, Result]:
        """Apply each rule independently; a failing rule does not stop the others"""
        results: Dict[Rule, Result] = {}
        for rule in rules:
            try:
                results[rule] = approximate(function, a, b, n, rule)
            except ValueError as e:
                logger.info(f"{rule.value} failed for f(x) = {function} on [{a}, {b}]: {e}")
                results[rule] = e

        self.history.append((function, a, b, n, results))
        return results

    def show_history(self, n: int = 10):
        """Display last n integrals"""
        for function, a, b, subdivisions, results in self.history[-n:]:
            print(f"  ∫[{a:.4f},{b:.4f}]{function}dx, n = {subdivisions}")
            for rule, result in results.items():
                if isinstance(result, Approximation):
                    print(f"      {rule.value}: {result.value:f}")
                else:
                    print(f"      {rule.value}: {result}")

# ==========================================
# INPUT HELPERS
# ==========================================

def print_integral(a: str, b: str, f: str):
    print(f"\n    ∫[{a},{b}]{f}dx\n")


def get_integer(prompt: str, lower_bound: int, upper_bound: int,
                out_of_bounds_message: str, error_message: str) -> int:
    """Read an integer in [lower_bound, upper_bound], asking again until one is given"""
    while True:
        try:
            integer = int(input(prompt).strip())
        except ValueError:
            print(f"\n[x] {error_message}\n")
            continue

        print()
        if lower_bound <= integer <= upper_bound:
            return integer
        print(f"{out_of_bounds_message}\n")


def get_function(prompt: str = "f(x): ") -> ParsedExpression:
    while True:
        text = input(prompt)
        try:
            return ParsedExpression(text)
        except ParseError as e:
            logger.info(f"Rejected function {text!r}: {e}")
            print(f"\n[x] Please enter a valid function: {e}\n")


def get_bound(prompt: str) -> float:
    """Read a number or a variable-free expression such as 3*pi/2"""
    while True:
        text = input(prompt)
        try:
            return evaluate_constant_expression(text)
        except ExpressionError as e:
            logger.info(f"Rejected bound {text!r}: {e}")
            print(f"\n[x] {e} Please enter a valid number.\n")


def get_yes_no(prompt: str) -> bool:
    while True:
        answer = input(prompt).strip().lower()
        if answer in ("y", "yes"):
            return True
        if answer in ("n", "no"):
            return False


def print_steps(function: ParsedExpression, value: float):
    """Print the reduction of f at value, one line per reduced group"""
    steps = function.steps(value)
    print(f"\nf({value:.4f}) = {next(steps)}")
    for step in steps:
        print(f"          = {step}")

# ==========================================
# MENU HANDLERS
# ==========================================

def handle_integral(calculator: IntegralCalculator, option: MenuOption):
    """Collect an integral and approximate it with the chosen rule(s)"""
    print("Enter definite integral information: ")
    print_integral("a", "b", "f(x)")
    function = get_function()
    print_integral("a", "b", str(function))
    a = get_bound("a: ")
    print_integral(str(a), "b", str(function))
    b = get_bound("b: ")
    print_integral(str(a), str(b), str(function))
    n = get_integer(
        "n: ", SUBDIVISIONS_LOWER_BOUND, SUBDIVISIONS_UPPER_BOUND,
        f"Please enter a number between {SUBDIVISIONS_LOWER_BOUND:,} and {SUBDIVISIONS_UPPER_BOUND:,}.",
        "Please enter an integer.",
    )
    show_steps = get_yes_no("Show steps (Y/N): ")

    rules = list(Rule) if option is MenuOption.ALL_RULES else [MENU_RULES[option]]
    results = calculator.approximate(function, a, b, n, rules)

    # steps for every rule come first, then the summary
    if show_steps:
        for approximation in results.values():
            if not isinstance(approximation, Approximation):
                continue
            for point in approximation.points:
                print_steps(function, float(point))
            print(f"\n{approximation.describe()}\n")

    print("\nResults:")
    for rule, result in results.items():
        if isinstance(result, Approximation):
            print(f"  [*] {rule.value}: {result.value:f}")
        else:
            print(f"  [x] {result}")

    if len(rules) == 1:
        approximation = results[rules[0]]
        if isinstance(approximation, Approximation) and get_yes_no("Plot approximation (Y/N): "):
            calculator.visualizer.plot_approximation(approximation)

    print(CONTINUITY_NOTE)


def handle_evaluation():
    """Show a function's tokens and evaluate it at one point"""
    function = get_function()
    print(f"Tokens: [{', '.join(token.text for token in function.tokens)}]")
    value = get_bound("Evaluate at: ")
    show_steps = get_yes_no("Show steps (Y/N): ")

    try:
        if show_steps:
            print_steps(function, value)
        print(f"\nf({value:.4f}) = {function.evaluate_at(value)}")
    except DomainError as e:
        logger.info(f"Domain error evaluating f(x) = {function} at {value}: {e}")
        print(f"\n  [x] Domain error: {e}")


def main():
    setup_logging()
    calculator = IntegralCalculator()

    print("=" * 60)
    print("DEFINITE INTEGRAL APPROXIMATOR")
    print("=" * 60)
    print()
    print(DIRECTIONS)

    while True:
        try:
            print(MENU)
            option = MenuOption(get_integer(
                "[#] ", MenuOption.LEFT_ENDPOINT_RULE, MenuOption.QUIT,
                "Please choose one of the above options.",
                "Please enter an integer representing one of the above options.",
            ))

            if option is MenuOption.QUIT:
                print("Terminating program.")
                logger.info("Session ended")
                break
            elif option is MenuOption.EVALUATE:
                handle_evaluation()
            elif option is MenuOption.HISTORY:
                if calculator.history:
                    print("Recent integrals:")
                    calculator.show_history()
                else:
                    print("No history yet")
            else:
                handle_integral(calculator, option)

        except (KeyboardInterrupt, EOFError):
            print("\n\nInterrupted by user")
            break

        except Exception as e:
            logger.error(f"Unexpected error in main loop: {e}")
            print(f"ERROR: {e}")
            print("Recovered, continuing...")


if __name__ == "__main__":
    main()
