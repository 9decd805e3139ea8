"""
Complex-number expression calculator.

Text goes through a tokenizer, a shunting-yard parser and a tree evaluator;
results are rendered by format_value.
"""

__version__ = "0.1.0"

from .main import (
    CalculatorError,
    EvalError,
    Evaluator,
    ParseError,
    Parser,
    calculate,
    evaluate_line,
    format_value,
    parse,
    tokenize,
)

__all__ = [
    'CalculatorError',
    'EvalError',
    'Evaluator',
    'ParseError',
    'Parser',
    'calculate',
    'evaluate_line',
    'format_value',
    'parse',
    'tokenize',
]
