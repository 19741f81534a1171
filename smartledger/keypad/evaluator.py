"""
Amount Expression Evaluator

Turns keypad input like "12.5+7.5" into integer minor units (cents).

DESIGN DECISION: The expression is tokenized and evaluated with a small
shunting-yard parser over Decimal. Nothing is ever handed to eval().

Grammar accepted (after sanitizing):
    expression := [sign] number (operator number)*
    number     := digits ["." [digits]] | "." digits
    operator   := "+" | "-" | "*" | "/"

`*` and `/` bind tighter than `+` and `-`; all four are left associative.
"""

import re
from decimal import ROUND_HALF_UP, Decimal, DivisionByZero, InvalidOperation
from typing import Union


DISPLAY_OPERATORS = {
    "×": "*",
    "÷": "/",
    "−": "-",
}

OPERATORS = "+-*/"

_PRECEDENCE = {"+": 1, "-": 1, "*": 2, "/": 2}

_DISALLOWED = re.compile(r"[^0-9+\-*/.]")
_NUMBER = re.compile(r"\d+\.?\d*|\.\d+")

_HUNDRED = Decimal(100)
_ONE = Decimal(1)


class ExpressionError(ValueError):
    """The expression is not a well-formed arithmetic expression."""
    pass


Token = Union[Decimal, str]


def sanitize(expression: str) -> str:
    """Map display operators to ASCII and drop everything else unexpected."""
    for display, ascii_op in DISPLAY_OPERATORS.items():
        expression = expression.replace(display, ascii_op)
    return _DISALLOWED.sub("", expression)


def tokenize(expression: str) -> list[Token]:
    """
    Split a sanitized expression into numbers and operators.

    A leading "+" or "-" is folded into the first number. Any other
    operator must sit between two numbers.

    Raises:
        ExpressionError: On empty input, a bare ".", doubled or dangling
            operators.
    """
    expression = sanitize(expression)
    if not expression:
        raise ExpressionError("empty expression")

    tokens: list[Token] = []
    position = 0
    sign = ""

    if expression[0] in "+-":
        sign = expression[0]
        position = 1

    expect_number = True
    while position < len(expression):
        if expect_number:
            match = _NUMBER.match(expression, position)
            if not match:
                raise ExpressionError(f"expected a number at position {position}")
            tokens.append(Decimal(sign + match.group()))
            sign = ""
            position = match.end()
            expect_number = False
        else:
            char = expression[position]
            if char not in OPERATORS:
                raise ExpressionError(f"expected an operator at position {position}")
            tokens.append(char)
            position += 1
            expect_number = True

    if expect_number:
        raise ExpressionError("expression ends with an operator")

    return tokens


def _apply(operator: str, left: Decimal, right: Decimal) -> Decimal:
    if operator == "+":
        return left + right
    if operator == "-":
        return left - right
    if operator == "*":
        return left * right
    if right == 0:
        raise ExpressionError("division by zero")
    return left / right


def evaluate_decimal(expression: str) -> Decimal:
    """
    Evaluate an expression to an exact Decimal.

    Raises:
        ExpressionError: If the expression is malformed or divides by zero
    """
    values: list[Decimal] = []
    pending: list[str] = []

    def reduce_once() -> None:
        operator = pending.pop()
        right = values.pop()
        left = values.pop()
        values.append(_apply(operator, left, right))

    try:
        for token in tokenize(expression):
            if isinstance(token, Decimal):
                values.append(token)
                continue
            while pending and _PRECEDENCE[pending[-1]] >= _PRECEDENCE[token]:
                reduce_once()
            pending.append(token)

        while pending:
            reduce_once()
    except (InvalidOperation, DivisionByZero) as e:
        raise ExpressionError(str(e)) from e

    result = values[0]
    if not result.is_finite():
        raise ExpressionError("result is not finite")
    return result


def to_minor_units(value: Decimal) -> int:
    """value * 100, rounded half-up to an integer."""
    return int((value * _HUNDRED).quantize(_ONE, rounding=ROUND_HALF_UP))


def evaluate(expression: str) -> int:
    """
    Evaluate keypad input to minor units.

    Never raises: empty, malformed, division by zero and non-finite results
    all evaluate to 0.

    Examples:
        evaluate("12.5+7.5") == 2000
        evaluate("10*3") == 3000
        evaluate("9/0") == 0
    """
    if not expression:
        return 0
    try:
        return to_minor_units(evaluate_decimal(expression))
    except (ExpressionError, InvalidOperation, OverflowError):
        return 0


def amount_to_expression(minor_units: int) -> str:
    """
    Seed string for editing an existing amount.

    1250 -> "12.5", 1200 -> "12", 0 -> "". The sign is dropped.
    """
    minor_units = abs(int(minor_units))
    if minor_units == 0:
        return ""
    text = format(Decimal(minor_units) / _HUNDRED, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def format_minor_units(minor_units: int) -> str:
    """Two-decimal display string: 1250 -> "12.50", -500 -> "-5.00"."""
    sign = "-" if minor_units < 0 else ""
    whole, cents = divmod(abs(int(minor_units)), 100)
    return f"{sign}{whole}.{cents:02d}"
