"""
Amount Keypad

State machine behind the on-screen calculator keypad used for every amount
entry (new transaction, edit, batch candidate).

Each accepted keystroke:
1. updates the expression
2. notifies the running amount (minor units) through `on_change`
3. fires a feedback cue (LIGHT for digits/operators/clear, MEDIUM for
   backspace, HEAVY for completion)

A rejected keystroke (a second "." in the same number) does nothing at all.
"""

import asyncio
from typing import Callable, Optional

from smartledger.keypad.evaluator import (
    DISPLAY_OPERATORS,
    OPERATORS,
    amount_to_expression,
    evaluate,
    format_minor_units,
)
from smartledger.keypad.feedback import FeedbackDispatcher, FeedbackWeight


KEY_CLEAR = "AC"
KEY_BACKSPACE = "DEL"
KEY_DECIMAL = "."

DIGIT_KEYS = frozenset([str(d) for d in range(10)] + ["00"])
OPERATOR_KEYS = frozenset(OPERATORS) | frozenset(DISPLAY_OPERATORS)


AmountListener = Callable[[int], None]


class AmountKeypad:
    """
    Calculator keypad producing integer minor units.

    Usage:
        keypad = AmountKeypad(on_change=form.set_amount)
        for key in "12.5+7.5":
            keypad.press(key)
        cents = await keypad.complete()   # 2000
    """

    def __init__(
        self,
        initial_minor_units: int = 0,
        on_change: Optional[AmountListener] = None,
        feedback: Optional[FeedbackDispatcher] = None,
        settle_delay_seconds: float = 0.0,
    ):
        self._expression = amount_to_expression(initial_minor_units)
        self._on_change = on_change
        self._feedback = feedback or FeedbackDispatcher()
        self._settle_delay = settle_delay_seconds

    @property
    def expression(self) -> str:
        return self._expression

    @property
    def has_operator(self) -> bool:
        # A leading sign is not a pending operation
        return any(char in OPERATORS for char in self._expression[1:])

    @property
    def amount(self) -> int:
        """Running amount: the expression up to any trailing operator."""
        return evaluate(self._without_trailing_operator())

    @property
    def preview(self) -> str:
        """'= 12.50' while an operation is pending, otherwise empty."""
        if not self.has_operator:
            return ""
        return f"= {format_minor_units(self.amount)}"

    def _without_trailing_operator(self) -> str:
        if self._expression and self._expression[-1] in OPERATORS:
            return self._expression[:-1]
        return self._expression

    def _current_number(self) -> str:
        """The numeric segment after the last operator."""
        segment = self._expression
        for operator in OPERATORS:
            segment = segment.rsplit(operator, 1)[-1]
        return segment

    def _notify(self, minor_units: int) -> None:
        if self._on_change is not None:
            self._on_change(minor_units)

    def press(self, key: str) -> bool:
        """
        Apply one key.

        Returns:
            False if the key was rejected (duplicate decimal point)

        Raises:
            ValueError: For keys the keypad does not have
        """
        if key == KEY_CLEAR:
            self.clear()
            return True
        if key == KEY_BACKSPACE:
            self.backspace()
            return True
        if key in DIGIT_KEYS:
            self._expression += key
            self._feedback.keystroke(FeedbackWeight.LIGHT)
            self._notify(evaluate(self._expression))
            return True
        if key == KEY_DECIMAL:
            if KEY_DECIMAL in self._current_number():
                return False
            self._expression += key
            self._feedback.keystroke(FeedbackWeight.LIGHT)
            self._notify(evaluate(self._expression))
            return True
        if key in OPERATOR_KEYS:
            self._press_operator(DISPLAY_OPERATORS.get(key, key))
            return True
        raise ValueError(f"Unknown keypad key: {key!r}")

    def _press_operator(self, operator: str) -> None:
        if self._expression and self._expression[-1] in OPERATORS:
            self._expression = self._expression[:-1] + operator
        else:
            self._expression += operator
        self._feedback.keystroke(FeedbackWeight.LIGHT)
        self._notify(self.amount)

    def press_many(self, keys) -> None:
        for key in keys:
            self.press(key)

    def clear(self) -> None:
        self._expression = ""
        self._feedback.keystroke(FeedbackWeight.LIGHT)
        self._notify(0)

    def backspace(self) -> None:
        self._expression = self._expression[:-1]
        self._feedback.keystroke(FeedbackWeight.MEDIUM)
        self._notify(self.amount)

    async def complete(self) -> int:
        """
        Finish entry.

        Fires the completion cue, waits the settle delay and returns the
        evaluated amount. A dangling operator makes the expression malformed,
        which evaluates to 0.
        """
        self._feedback.completion()
        minor_units = evaluate(self._expression)
        if self._settle_delay > 0:
            await asyncio.sleep(self._settle_delay)
        return minor_units
