#!/usr/bin/env python3
"""
Single-Variable Expression Engine
Tokenizes functions of x once and evaluates them at any number of points
"""

import logging
import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np

logger = logging.getLogger(__name__)

OPERATORS = "^*/+-"
PARENTHESES = "()"
SYMBOLS = OPERATORS + PARENTHESES

VARIABLE = "x"
CONSTANTS = {
    'e': math.e,
    'pi': math.pi,
}
FUNCTION_NAMES = (
    "sin", "cos", "tan", "csc", "sec", "cot",
    "arcsin", "arccos", "arctan",
    "ln", "log",
    "sinh", "cosh", "tanh",
    "sqrt",
)
VALID_NAMES = (VARIABLE,) + tuple(CONSTANTS) + FUNCTION_NAMES

# names that may still grow into a hyperbolic function
HYPERBOLIC_BASES = ("sin", "cos", "tan")

_NUMBER_PATTERN = re.compile(r"(?:\d+\.?\d*|\.\d+)(?:e\d+)?")

# ==========================================
# ERRORS
# ==========================================

class ExpressionError(ValueError):
    """Base class for everything the expression engine raises"""


class ParseError(ExpressionError):
    """Text could not be turned into a function of x"""


class EmptyInputError(ParseError):
    pass


class UnbalancedParenthesesError(ParseError):
    pass


class UnknownTokenError(ParseError):
    def __init__(self, token: str):
        self.token = token
        super().__init__(f'Unknown token "{token}" in expression.')


class InvalidLeadingTokenError(ParseError):
    pass


class InvalidEndingTokenError(ParseError):
    pass


class IllegalCharacterAfterFunctionError(ParseError):
    pass


class ConsecutiveOperatorsError(ParseError):
    pass


class VariableNotAllowedError(ParseError):
    pass


class DomainError(ExpressionError):
    """A function or division was evaluated outside its domain"""

    def __init__(self, operand: str, reason: str = "not in domain"):
        self.operand = operand
        self.reason = reason
        super().__init__(f"{operand} {reason}")


class ReductionStalledError(ExpressionError):
    """A token sequence could not be reduced to a single number"""

# ==========================================
# TOKENS
# ==========================================

class TokenType(Enum):
    NUMBER = "NUMBER"
    CONSTANT = "CONSTANT"
    VARIABLE = "VARIABLE"
    FUNCTION = "FUNCTION"
    OPERATOR = "OPERATOR"
    LPAREN = "LPAREN"
    RPAREN = "RPAREN"


@dataclass(frozen=True)
class Token:
    type: TokenType
    text: str
    value: Optional[float] = None

    @classmethod
    def number(cls, value: float, text: Optional[str] = None) -> "Token":
        value = float(value)
        return cls(TokenType.NUMBER, text if text is not None else repr(value), value)

    @property
    def is_operand(self) -> bool:
        return self.type in (TokenType.NUMBER, TokenType.CONSTANT, TokenType.VARIABLE)

    def __str__(self) -> str:
        return self.text


MULTIPLY = Token(TokenType.OPERATOR, "*")
NEGATIVE_ONE = Token.number(-1.0, "-1")


def format_tokens(tokens: Sequence[Token]) -> str:
    """Render tokens the way the step-by-step output shows them"""
    return "".join(
        f"{token.value:.4f}" if token.type is TokenType.NUMBER else token.text
        for token in tokens
    )

# ==========================================
# TOKENIZER
# ==========================================

class Tokenizer:
    """Turns the text of a function of x into a validated token list"""

    def tokenize(self, expression: str) -> List[Token]:
        """Convert expression string into tokens"""
        if expression is None or not expression.strip():
            raise EmptyInputError("Input must be at least one character.")

        text = "".join(expression.split()).lower()
        tokens: List[Token] = []
        text = self._check_preconditions(text, tokens)
        self._scan(text, tokens)

        last = tokens[-1] if tokens else None
        if last is None or not (last.type is TokenType.RPAREN or last.is_operand):
            raise InvalidEndingTokenError(
                f'Invalid ending token "{last}".' if last else "Invalid ending token."
            )
        return tokens

    def _check_preconditions(self, text: str, tokens: List[Token]) -> str:
        """Validate parentheses and normalize a leading sign.

        Returns the text left to scan; a leading minus is turned into
        ``-1 *`` tokens appended to ``tokens``.
        """
        depth = 0
        for char in text:
            if char == '(':
                depth += 1
            elif char == ')':
                depth -= 1
                if depth < 0:
                    raise UnbalancedParenthesesError("Closing parenthesis without an opening one.")
        if depth != 0:
            raise UnbalancedParenthesesError("Unmatching parenthesis.")

        if len(text) == 1:
            if not (_NUMBER_PATTERN.fullmatch(text) or text in (VARIABLE, 'e')):
                raise UnknownTokenError(text)
            return text

        first, second = text[0], text[1]
        if first == '-':
            if second.isdigit() or second in '.(' or self._starts_with_name(text, 1):
                tokens.extend([NEGATIVE_ONE, MULTIPLY])
                return text[1:]
            raise InvalidLeadingTokenError(f'Invalid leading token "{first}{second}".')

        if first == '+':
            if second == VARIABLE or second.isdigit():
                return text[1:]
            raise InvalidLeadingTokenError(f'Invalid leading token "{first}{second}".')

        if first in OPERATORS or first == ')':
            raise InvalidLeadingTokenError(f'Invalid leading token "{first}".')

        return text

    @staticmethod
    def _starts_with_name(text: str, start: int) -> bool:
        return any(text.startswith(name, start) for name in VALID_NAMES)

    def _scan(self, text: str, tokens: List[Token]):
        run_start = 0
        i = 0
        while i <= len(text):
            at_end = i == len(text)

            if at_end or text[i] in SYMBOLS:
                run = text[run_start:i]
                if run:
                    resume = self._flush_run(run, run_start, tokens)
                    if resume is not None:
                        # rescan what followed the numeric prefix
                        i = run_start = resume
                        continue
                if at_end:
                    break
                self._append_symbol(text, i, tokens)
                i += 1
                run_start = i
                continue

            run = text[run_start:i + 1]
            if run in VALID_NAMES:
                # wait one character for sinh, cosh and tanh
                if not (run in HYPERBOLIC_BASES and text[i + 1:i + 2] == 'h'):
                    self._append_operand(tokens, self._name_token(run))
                    run_start = i + 1
            i += 1

    def _flush_run(self, run: str, start: int, tokens: List[Token]) -> Optional[int]:
        """Emit a pending run of characters.

        A clean number is emitted whole. Otherwise the numeric prefix is
        emitted and the index where scanning must resume is returned.
        """
        if _NUMBER_PATTERN.fullmatch(run):
            self._append_operand(tokens, Token.number(float(run), run))
            return None

        split = next(
            (k for k, char in enumerate(run) if not (char.isdigit() or char == '.')),
            len(run),
        )
        numeric = run[:split]
        if not numeric or not _NUMBER_PATTERN.fullmatch(numeric):
            raise UnknownTokenError(run)

        self._append_operand(tokens, Token.number(float(numeric), numeric))
        return start + split

    def _append_symbol(self, text: str, i: int, tokens: List[Token]):
        char = text[i]
        previous = text[i - 1] if i > 0 else ''
        last = tokens[-1] if tokens else None

        if char == '(':
            # (a)(b) and 2(a)
            if last is not None and (last.type is TokenType.RPAREN or last.is_operand):
                tokens.append(MULTIPLY)
            tokens.append(Token(TokenType.LPAREN, char))
            return

        if last is not None and last.type is TokenType.FUNCTION:
            raise IllegalCharacterAfterFunctionError(
                f'Illegal character "{char}" after function name "{last.text}".'
            )

        if char == '-' and previous == '(':
            tokens.extend([NEGATIVE_ONE, MULTIPLY])
            return

        if previous and previous in SYMBOLS and previous != ')':
            raise ConsecutiveOperatorsError(
                f'Consecutive operators not allowed: "{previous}{char}".'
            )

        if char == ')':
            tokens.append(Token(TokenType.RPAREN, char))
        else:
            tokens.append(Token(TokenType.OPERATOR, char))

    @staticmethod
    def _append_operand(tokens: List[Token], token: Token):
        if tokens and (tokens[-1].type is TokenType.RPAREN or tokens[-1].is_operand):
            tokens.append(MULTIPLY)
        tokens.append(token)

    @staticmethod
    def _name_token(name: str) -> Token:
        if name == VARIABLE:
            return Token(TokenType.VARIABLE, name)
        if name in CONSTANTS:
            return Token(TokenType.CONSTANT, name)
        return Token(TokenType.FUNCTION, name)

# ==========================================
# EVALUATOR
# ==========================================

def _divide(numerator: float, denominator: float) -> float:
    with np.errstate(divide='ignore', invalid='ignore', over='ignore'):
        return float(np.true_divide(numerator, denominator))


def _power(base: float, exponent: float) -> float:
    with np.errstate(divide='ignore', invalid='ignore', over='ignore'):
        return float(np.power(base, exponent))


def enhanced_sin(argument: float) -> float:
    """Sine that is exactly 0 at every floating-point multiple of pi"""
    if math.isfinite(argument) and math.fmod(argument, math.pi) == 0:
        return 0.0
    return float(np.sin(argument))


def enhanced_cos(argument: float) -> float:
    """Cosine that is exactly 0 at every odd floating-point multiple of pi/2"""
    half_pi = math.pi / 2
    if (math.isfinite(argument) and math.fmod(argument, half_pi) == 0
            and math.fmod(argument / half_pi, 2) != 0):
        return 0.0
    return float(np.cos(argument))


class Evaluator:
    """Reduces a token sequence to a number, innermost parentheses first"""

    def __init__(self):
        self.constants = dict(CONSTANTS)

        # arguments are in radians
        self.functions = {
            # Trigonometric
            'sin': enhanced_sin,
            'cos': enhanced_cos,
            'tan': lambda a: _divide(enhanced_sin(a), enhanced_cos(a)),
            'csc': lambda a: _divide(1.0, enhanced_sin(a)),
            'sec': lambda a: _divide(1.0, enhanced_cos(a)),
            'cot': lambda a: _divide(enhanced_cos(a), enhanced_sin(a)),

            # Inverse trigonometric
            'arcsin': np.arcsin,
            'arccos': np.arccos,
            'arctan': np.arctan,

            # Logarithmic
            'ln': np.log,
            'log': np.log10,

            # Hyperbolic
            'sinh': np.sinh,
            'cosh': np.cosh,
            'tanh': np.tanh,

            # Root
            'sqrt': np.sqrt,
        }

    def evaluate(self, tokens: Sequence[Token], value: float) -> float:
        """Evaluate the token sequence with x = value"""
        working = self._substitute(tokens, value)
        for _ in self._contract(working):
            pass
        return self._final_value(working)

    def steps(self, tokens: Sequence[Token], value: float) -> Iterator[str]:
        """Yield the rendered sequence after substitution and after each reduced group"""
        working = self._substitute(tokens, value)
        yield format_tokens(working)
        for snapshot in self._contract(working):
            yield format_tokens(snapshot)

    @staticmethod
    def _substitute(tokens: Sequence[Token], value: float) -> List[Token]:
        substituted = Token.number(value)
        return [substituted if token.type is TokenType.VARIABLE else token for token in tokens]

    def _final_value(self, working: List[Token]) -> float:
        result = self._operand(working[0]) if len(working) == 1 else None
        if result is None:
            raise ReductionStalledError(f'Could not reduce "{format_tokens(working)}" to a number.')
        return result

    def _contract(self, working: List[Token]) -> Iterator[Tuple[Token, ...]]:
        """Reduce ``working`` in place, yielding a snapshot after every group"""
        while len(working) > 1:
            start, stop, parenthesized = self._innermost_group(working)
            group = working[start + 1:stop - 1] if parenthesized else working[start:stop]
            working[start:stop] = [self._reduce_group(group)]
            yield tuple(working)

    @staticmethod
    def _innermost_group(working: List[Token]) -> Tuple[int, int, bool]:
        """Rightmost '(' and the first ')' after it, as a slice"""
        start = next(
            (i for i in range(len(working) - 1, -1, -1) if working[i].type is TokenType.LPAREN),
            None,
        )
        if start is None:
            return 0, len(working), False

        end = next(
            (i for i in range(start + 1, len(working)) if working[i].type is TokenType.RPAREN),
            None,
        )
        if end is None:
            raise ReductionStalledError(f'Unclosed group in "{format_tokens(working)}".')
        return start, end + 1, True

    def _reduce_group(self, group: List[Token]) -> Token:
        # every productive pass removes at least one token
        for _ in range(len(group)):
            if len(group) == 1:
                break
            self._resolve_binary(group, '^', self._exponentiate)
            self._resolve_functions(group)
            # a function result may complete the right side of a '^'
            self._resolve_binary(group, '^', self._exponentiate)
            if self._has_pending_power_or_function(group):
                continue
            self._resolve_binary(group, '*/', self._multiply_or_divide)
            self._resolve_binary(group, '+-', self._add_or_subtract)

        value = self._operand(group[0]) if len(group) == 1 else None
        if value is None:
            raise ReductionStalledError(f'Could not reduce "{format_tokens(group)}" to a number.')
        return Token.number(value)

    def _operand(self, token: Token) -> Optional[float]:
        """Numeric value of a token, or None if it is not (yet) a number"""
        if token.type is TokenType.NUMBER:
            return token.value
        if token.type is TokenType.CONSTANT:
            return self.constants[token.text]
        return None

    def _resolve_binary(self, group: List[Token], symbols: str, combine):
        i = 1
        while i < len(group) - 1:
            token = group[i]
            if token.type is TokenType.OPERATOR and token.text in symbols:
                left = self._operand(group[i - 1])
                right = self._operand(group[i + 1])
                # operands still pending a function call are retried next pass
                if left is not None and right is not None:
                    result = combine(token.text, left, right, group[i + 1])
                    group[i - 1:i + 2] = [Token.number(result)]
                    continue
            i += 1

    @staticmethod
    def _has_pending_power_or_function(group: List[Token]) -> bool:
        return any(
            token.type is TokenType.FUNCTION
            or (token.type is TokenType.OPERATOR and token.text == '^')
            for token in group
        )

    def _resolve_functions(self, group: List[Token]):
        # right to left so sinsinx resolves the inner call before the outer one
        for i in range(len(group) - 2, -1, -1):
            token = group[i]
            if token.type is TokenType.FUNCTION:
                argument = self._operand(group[i + 1])
                if argument is not None:
                    group[i:i + 2] = [Token.number(self._apply_function(token.text, argument))]

    def _apply_function(self, name: str, argument: float) -> float:
        with np.errstate(divide='ignore', invalid='ignore', over='ignore'):
            result = float(self.functions[name](argument))
        if math.isnan(result) or math.isinf(result):
            raise DomainError(f"{argument:.4f}")
        return result

    @staticmethod
    def _exponentiate(operator: str, left: float, right: float, right_token: Token) -> float:
        return _power(left, right)

    @staticmethod
    def _multiply_or_divide(operator: str, left: float, right: float, right_token: Token) -> float:
        if operator == '*':
            return left * right
        result = _divide(left, right)
        if math.isinf(result):
            raise DomainError(right_token.text)
        return result

    @staticmethod
    def _add_or_subtract(operator: str, left: float, right: float, right_token: Token) -> float:
        return left + right if operator == '+' else left - right

# ==========================================
# PUBLIC INTERFACE
# ==========================================

_tokenizer = Tokenizer()
_evaluator = Evaluator()


class ParsedExpression:
    """A function of x, tokenized once and evaluated any number of times"""

    def __init__(self, expression: str):
        self._tokens: Tuple[Token, ...] = tuple(_tokenizer.tokenize(expression))
        self._source = "".join(expression.split())
        logger.debug(f"Parsed {self._source!r} into {len(self._tokens)} tokens")

    @property
    def tokens(self) -> Tuple[Token, ...]:
        return self._tokens

    @property
    def has_variable(self) -> bool:
        return any(token.type is TokenType.VARIABLE for token in self._tokens)

    def evaluate_at(self, value: Union[float, str]) -> float:
        """Evaluate at x = value.

        ``value`` may also be the text of an expression without x, such as
        ``"3*pi/2"``.
        """
        if isinstance(value, str):
            value = evaluate_constant_expression(value)
        return _evaluator.evaluate(self._tokens, float(value))

    def steps(self, value: Union[float, str]) -> Iterator[str]:
        """Rendered working sequence after each reduction, starting with x substituted"""
        if isinstance(value, str):
            value = evaluate_constant_expression(value)
        return _evaluator.steps(self._tokens, float(value))

    def __str__(self) -> str:
        return self._source

    def __repr__(self) -> str:
        return f"ParsedExpression({self._source!r})"


def parse(text: str) -> ParsedExpression:
    return ParsedExpression(text)


def evaluate_at(parsed: ParsedExpression, value: Union[float, str]) -> float:
    return parsed.evaluate_at(value)


def evaluate_constant_expression(text: str) -> float:
    """Evaluate an expression without x, such as pi, 3*pi/2 or e/2"""
    parsed = ParsedExpression(text)
    if parsed.has_variable:
        raise VariableNotAllowedError("Expression must not contain variables.")
    return _evaluator.evaluate(parsed.tokens, 0.0)
