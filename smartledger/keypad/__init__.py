"""Amount entry keypad and expression evaluation."""

from smartledger.keypad.evaluator import (
    ExpressionError,
    amount_to_expression,
    evaluate,
    evaluate_decimal,
    format_minor_units,
    sanitize,
    tokenize,
)
from smartledger.keypad.feedback import FeedbackDispatcher, FeedbackWeight, SoundCue
from smartledger.keypad.keypad import (
    KEY_BACKSPACE,
    KEY_CLEAR,
    KEY_DECIMAL,
    AmountKeypad,
)

__all__ = [
    "AmountKeypad",
    "ExpressionError",
    "FeedbackDispatcher",
    "FeedbackWeight",
    "KEY_BACKSPACE",
    "KEY_CLEAR",
    "KEY_DECIMAL",
    "SoundCue",
    "amount_to_expression",
    "evaluate",
    "evaluate_decimal",
    "format_minor_units",
    "sanitize",
    "tokenize",
]
