# Complex-number calculator: lexer, shunting-yard parser, AST, evaluator, formatter and REPL.
#
# Expressions are evaluated over Python complex numbers. Supported vocabulary:
# - binary operators + - * / % ^ (where % is accepted by the grammar but never evaluates)
# - unary + and -, parentheses, and ',' between function arguments
# - constants pi and e
# - functions sin, cos, tan, cot, sec, csc (one argument) and log(base, x), rt(n, x)
# - numeric literals [0-9.]+, optionally suffixed with 'i' for a pure-imaginary value
#
# The parser is an explicit two-stack (output/operator) machine rather than recursive descent, so
# precedence and associativity ties are settled in a single place (Parser._should_pop).
#
# Failures raise ParseError or EvalError inside the pipeline. They are turned into (ok, message)
# results once, at the line boundary (evaluate_line), so a failed line never stops the REPL.

from __future__ import annotations

import argparse
import cmath
import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from dotenv import load_dotenv
from prompt_toolkit import PromptSession
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.history import FileHistory

from .config import DEFAULT_PRECISION, Config, configure_logging, load_config

logger = logging.getLogger(__name__)

# --------------------------
# Exceptions
# --------------------------

class CalculatorError(Exception):
    """Base class for calculator errors."""
    pass

class ParseError(CalculatorError):
    """Raised when the token stream does not form exactly one expression."""
    pass

class EvalError(CalculatorError):
    """Raised when an expression tree cannot be reduced to a value."""
    pass

# --------------------------
# Tokenizer / Lexer
# --------------------------

@dataclass(frozen=True)
class Token:
    """Represents a token with type, raw text, and character position."""
    type: str
    value: str
    pos: int

    def __repr__(self) -> str:
        return f"Token({self.type}, {self.value!r}, pos={self.pos})"

_DIGITS = frozenset('0123456789')
_OPERATOR_CHARS = frozenset('+-*/%^')
_PUNCTUATION = {'(': 'LPAREN', ')': 'RPAREN', ',': 'COMMA'}

def _is_letter(ch: str) -> bool:
    return ch.isascii() and ch.isalpha()

class Lexer:
    """Tokenizer for calculator expressions.

    Produces tokens: NUMBER, IDENT, OP, LPAREN, RPAREN, COMMA, EOF.
    Never fails: characters outside the vocabulary are dropped. '-' is always an operator, there
    are no negative literals. A number directly followed by 'i' keeps the 'i' in its text.
    """
    def __init__(self, text: str):
        self.text = text
        self.pos = 0
        self.len = len(text)

    def _peek(self, n: int = 0) -> str:
        i = self.pos + n
        return self.text[i] if i < self.len else ''

    def _advance(self, n: int = 1) -> None:
        self.pos += n

    def _read_number(self) -> Token:
        start = self.pos
        while self._peek() in _DIGITS or self._peek() == '.':
            self._advance()
        if self._peek() == 'i':
            self._advance()
        return Token('NUMBER', self.text[start:self.pos], start)

    def _read_ident(self) -> Token:
        start = self.pos
        while _is_letter(self._peek()):
            self._advance()
        return Token('IDENT', self.text[start:self.pos], start)

    def tokenize(self) -> List[Token]:
        tokens: List[Token] = []
        while True:
            ch = self._peek()
            if ch == '':
                break
            if ch.isspace():
                self._advance()
            elif ch in _DIGITS or ch == '.':
                tokens.append(self._read_number())
            elif _is_letter(ch):
                tokens.append(self._read_ident())
            elif ch in _OPERATOR_CHARS:
                tokens.append(Token('OP', ch, self.pos))
                self._advance()
            elif ch in _PUNCTUATION:
                tokens.append(Token(_PUNCTUATION[ch], ch, self.pos))
                self._advance()
            else:
                logger.debug(f"Dropping unrecognized character {ch!r} at pos {self.pos}")
                self._advance()
        tokens.append(Token('EOF', '', self.pos))
        return tokens

# --------------------------
# Symbol tables
# --------------------------

# Operators map to (precedence, right_assoc). Higher number = higher precedence.
# 'u+' and 'u-' are the unary forms; the parser substitutes them wherever an operand is expected.
OPERATORS: Dict[str, Tuple[int, bool]] = {
    '+': (1, False),
    '-': (1, False),
    '*': (2, False),
    '/': (2, False),
    '%': (2, False),
    '^': (3, True),
    'u+': (4, True),
    'u-': (4, True),
}

UNARY_OPERATORS: Dict[str, str] = {'u+': '+', 'u-': '-'}

# Functions and their fixed argument counts. For log and rt the base/degree comes first.
FUNCTION_ARITY: Dict[str, int] = {
    'sin': 1,
    'cos': 1,
    'tan': 1,
    'cot': 1,
    'sec': 1,
    'csc': 1,
    'log': 2,
    'rt': 2,
}

CONSTANTS: Dict[str, complex] = {
    'pi': complex(math.pi, 0.0),
    'e': complex(math.e, 0.0),
}

# --------------------------
# AST Nodes
# --------------------------

@dataclass
class ASTNode:
    """Base AST node."""
    pass

@dataclass
class Literal(ASTNode):
    value: complex

@dataclass
class UnaryOp(ASTNode):
    op: str
    operand: ASTNode

@dataclass
class BinaryOp(ASTNode):
    op: str
    left: ASTNode
    right: ASTNode

@dataclass
class Call(ASTNode):
    name: str
    args: List[ASTNode]

# --------------------------
# Parser (shunting-yard)
# --------------------------

def _parse_number(tok: Token) -> complex:
    text = tok.value
    imaginary = text.endswith('i')
    digits = text[:-1] if imaginary else text
    try:
        magnitude = float(digits)
    except ValueError:
        raise ParseError(f"Invalid numeric literal {text!r} at pos {tok.pos}")
    if imaginary:
        return complex(0.0, magnitude)
    return complex(magnitude, 0.0)

class Parser:
    """Operator-precedence parser that reduces a token list to a single AST.

    Keeps two stacks: `output` holds finished subtrees, `ops` holds pending operators, function
    names and '(' markers. A function name waits on `ops` until its closing parenthesis (or the end
    of input) and then takes exactly its declared number of arguments from `output`.
    """

    def __init__(self, tokens: Sequence[Token]):
        self.tokens = tokens
        self.output: List[ASTNode] = []
        self.ops: List[Token] = []
        self.expect_operand = True

    def parse(self) -> ASTNode:
        self.output = []
        self.ops = []
        self.expect_operand = True
        for tok in self.tokens:
            if tok.type == 'EOF':
                break
            if tok.type == 'NUMBER':
                self.output.append(Literal(_parse_number(tok)))
                self.expect_operand = False
            elif tok.type == 'IDENT':
                self._push_identifier(tok)
            elif tok.type == 'OP':
                self._push_operator(tok)
            elif tok.type == 'LPAREN':
                self.ops.append(tok)
                self.expect_operand = True
            elif tok.type == 'RPAREN':
                self._unwind_to_lparen(tok)
                self.ops.pop()
                # '(' directly after a function name: the group is its argument list
                if self.ops and self.ops[-1].type == 'IDENT':
                    self._apply()
                self.expect_operand = False
            elif tok.type == 'COMMA':
                self._unwind_to_lparen(tok)
                self.expect_operand = True
            else:
                raise ParseError(f"Unexpected token {tok.type} {tok.value!r} at pos {tok.pos}")

        while self.ops:
            top = self.ops[-1]
            if top.type in ('LPAREN', 'RPAREN'):
                raise ParseError(f"Unmatched {top.value!r} at pos {top.pos}")
            self._apply()

        if len(self.output) != 1:
            raise ParseError(f"Expected a single expression, found {len(self.output)}")
        return self.output[0]

    def _push_identifier(self, tok: Token) -> None:
        if tok.value in CONSTANTS:
            self.output.append(Literal(CONSTANTS[tok.value]))
            self.expect_operand = False
        elif tok.value in FUNCTION_ARITY:
            self.ops.append(tok)
            self.expect_operand = True
        else:
            raise ParseError(f"Unknown identifier {tok.value!r} at pos {tok.pos}")

    def _push_operator(self, tok: Token) -> None:
        op = tok.value
        if self.expect_operand and op in ('+', '-'):
            op = 'u' + op
        while self.ops and self.ops[-1].type == 'OP' and self._should_pop(op, self.ops[-1].value):
            self._apply()
        self.ops.append(Token('OP', op, tok.pos))
        self.expect_operand = True

    @staticmethod
    def _should_pop(incoming: str, top: str) -> bool:
        prec, right_assoc = OPERATORS[incoming]
        top_prec = OPERATORS[top][0]
        if right_assoc:
            return prec < top_prec
        return prec <= top_prec

    def _unwind_to_lparen(self, tok: Token) -> None:
        """Apply pending operators down to the innermost '(' and leave it on the stack."""
        while self.ops and self.ops[-1].type != 'LPAREN':
            self._apply()
        if not self.ops:
            raise ParseError(f"Unmatched {tok.value!r} at pos {tok.pos}")

    def _apply(self) -> None:
        tok = self.ops.pop()
        if tok.type == 'IDENT':
            arity = FUNCTION_ARITY[tok.value]
            if len(self.output) < arity:
                raise ParseError(f"Function '{tok.value}' expects {arity} argument(s)")
            args = self.output[-arity:]
            del self.output[-arity:]
            self.output.append(Call(tok.value, args))
        elif tok.value in UNARY_OPERATORS:
            if not self.output:
                raise ParseError(f"Missing operand for unary {UNARY_OPERATORS[tok.value]!r} at pos {tok.pos}")
            self.output.append(UnaryOp(UNARY_OPERATORS[tok.value], self.output.pop()))
        else:
            if len(self.output) < 2:
                raise ParseError(f"Missing operand for {tok.value!r} at pos {tok.pos}")
            right = self.output.pop()
            left = self.output.pop()
            self.output.append(BinaryOp(tok.value, left, right))

# --------------------------
# Builtins
# --------------------------

_BUILTINS: Dict[str, Callable[..., complex]] = {}

def _register(name: str, func: Callable[..., complex]) -> None:
    _BUILTINS[name] = func

_register('sin', cmath.sin)
_register('cos', cmath.cos)
_register('tan', cmath.tan)
# Reciprocals are not guarded; an exact zero surfaces as ZeroDivisionError.
_register('cot', lambda x: 1 / cmath.tan(x))
_register('sec', lambda x: 1 / cmath.cos(x))
_register('csc', lambda x: 1 / cmath.sin(x))
_register('log', lambda base, x: cmath.log(x) / cmath.log(base))
_register('rt', lambda n, x: x ** (1 / n))

# Arithmetic failures raised by complex math that count as evaluation failures.
_ARITHMETIC_ERRORS = (ZeroDivisionError, OverflowError, ValueError)

# --------------------------
# Evaluator
# --------------------------

class Evaluator:
    """Reduces an AST to a complex value, children first. Holds no state between calls."""

    def eval(self, node: ASTNode) -> complex:
        """Evaluate given AST node and return the result or raise EvalError.

        Walks the tree with an explicit stack, so depth is bounded by memory rather than the
        interpreter's recursion limit. Children are reduced left to right before their parent.
        """
        values: List[complex] = []
        # (node, children_done) pairs
        pending: List[Tuple[ASTNode, bool]] = [(node, False)]
        while pending:
            current, children_done = pending.pop()
            if isinstance(current, Literal):
                values.append(current.value)
            elif children_done:
                values.append(self._combine(current, values))
            else:
                pending.append((current, True))
                for child in reversed(self._children(current)):
                    pending.append((child, False))
        return values[-1]

    @staticmethod
    def _children(node: ASTNode) -> List[ASTNode]:
        if isinstance(node, UnaryOp):
            return [node.operand]
        if isinstance(node, BinaryOp):
            return [node.left, node.right]
        if isinstance(node, Call):
            if node.name not in _BUILTINS:
                raise EvalError(f"Unknown function: {node.name}")
            return node.args
        raise EvalError(f"Unsupported AST node: {type(node).__name__}")

    def _combine(self, node: ASTNode, values: List[complex]) -> complex:
        """Pop the already-evaluated children of node off values and apply node to them."""
        if isinstance(node, UnaryOp):
            val = values.pop()
            if node.op == '-':
                return -val
            if node.op == '+':
                return val
            raise EvalError(f"Unknown unary operator: {node.op}")
        if isinstance(node, BinaryOp):
            right_val = values.pop()
            left_val = values.pop()
            return self._binary(node.op, left_val, right_val)
        if isinstance(node, Call):
            start = len(values) - len(node.args)
            args = values[start:]
            del values[start:]
            try:
                return _BUILTINS[node.name](*args)
            except _ARITHMETIC_ERRORS as e:
                raise EvalError(f"Error in function '{node.name}': {e}")
        raise EvalError(f"Unsupported AST node: {type(node).__name__}")

    @staticmethod
    def _binary(op: str, left: complex, right: complex) -> complex:
        if op == '%':
            raise EvalError("Modulo is not supported")
        if op == '/' and right == 0:
            raise EvalError("Division by zero")
        try:
            if op == '+':
                return left + right
            if op == '-':
                return left - right
            if op == '*':
                return left * right
            if op == '/':
                return left / right
            if op == '^':
                return left ** right
        except _ARITHMETIC_ERRORS as e:
            raise EvalError(f"Error evaluating binary op {op}: {e}")
        raise EvalError(f"Unknown binary operator: {op}")

# --------------------------
# Formatting and line boundary
# --------------------------

PARSE_FAILED = "Error: parse failed"
EVAL_FAILED = "Error: evaluation failed"

def format_value(value: complex, precision: int = DEFAULT_PRECISION) -> str:
    """Render a value as fixed-point text.

    A zero imaginary part prints the real part alone, otherwise "(re+imi)". The '+' is emitted
    unconditionally, so a negative imaginary part shows as "+-".
    """
    real = f"{value.real:.{precision}f}"
    if value.imag == 0.0:
        return real
    return f"({real}+{value.imag:.{precision}f}i)"

def tokenize(text: str) -> List[Token]:
    return Lexer(text).tokenize()

def parse(tokens: Sequence[Token]) -> ASTNode:
    return Parser(tokens).parse()

def calculate(text: str) -> complex:
    """Run the whole pipeline on one line. Raises ParseError or EvalError."""
    return Evaluator().eval(parse(tokenize(text)))

def evaluate_line(line: str, precision: int = DEFAULT_PRECISION) -> Tuple[bool, str]:
    """Evaluate one expression. Returns (ok, output) where output is the value or an error message."""
    try:
        ast = parse(tokenize(line))
    except ParseError as e:
        logger.debug(f"Parse failed for {line!r}: {e}")
        return False, PARSE_FAILED
    try:
        value = Evaluator().eval(ast)
    except EvalError as e:
        logger.debug(f"Evaluation failed for {line!r}: {e}")
        return False, EVAL_FAILED
    return True, format_value(value, precision)

# --------------------------
# REPL, Help
# --------------------------

_COMPLETION_WORDS = sorted(FUNCTION_ARITY) + sorted(CONSTANTS)

_HELP_TOPICS: Dict[str, str] = {
    'general': (
        "Complex calculator help:\n"
        "Evaluates one arithmetic expression per line over complex numbers.\n"
        "Examples:\n"
        "  2+3*4 -> 14.000000\n"
        "  3+4i -> (3.000000+4.000000i)\n"
        "  2^3^2 -> 512.000000\n"
        "  log(2, 8) -> 3.000000\n"
        "  -(-3) -> 3.000000\n"
        "Commands:\n"
        "  :help, help [topic]    show help (topics: operators, functions)\n"
        "  :exit, :quit           exit\n"
    ),
    'operators': (
        "Operators and precedence (high -> low):\n"
        "  unary + -   (right-assoc)\n"
        "  ^           (right-assoc, complex power)\n"
        "  * / %\n"
        "  + -\n"
        "Notes:\n"
        "  - '%' is recognized but evaluation always fails.\n"
        "  - Division by exactly zero fails.\n"
        "  - Literals are real (2.5) or pure imaginary (2.5i); build 3+4i with '+'.\n"
    ),
    'functions': (
        "Built-in functions:\n"
        + ", ".join(f"{name}/{arity}" for name, arity in FUNCTION_ARITY.items()) +
        "\nConstants: " + ", ".join(sorted(CONSTANTS)) +
        "\nlog(base, x) and rt(n, x) take the base/degree first.\n"
    ),
}

def show_help(topic: Optional[str] = None) -> str:
    """Return help text for topic or general if None."""
    if not topic:
        return _HELP_TOPICS['general']
    key = topic.lower()
    return _HELP_TOPICS.get(key, f"No help available for topic '{topic}'")

class REPL:
    """Read-Eval-Print Loop for the calculator."""

    def __init__(self, config: Optional[Config] = None):
        self.config = config or load_config()
        self.completer = WordCompleter(_COMPLETION_WORDS, ignore_case=True)
        self.session: Optional[PromptSession] = None

    def _process_command(self, line: str) -> Optional[str]:
        """Process commands starting with ':' or 'help'. Returns response string if a command, else None."""
        s = line.strip()
        if not s:
            return None
        if s.startswith(':'):
            body = s[1:].lstrip()
            if body == '':
                return "No command specified. Use :help for available commands."
            parts = body.split(None, 1)
            args = parts[1].split() if len(parts) > 1 else []
            return self._run_command(parts[0], args)
        if s.lower() == 'help' or s.lower().startswith('help '):
            parts = s.split(None, 1)
            return show_help(parts[1].strip() if len(parts) > 1 else None)
        return None

    def _run_command(self, cmd: str, args: List[str]) -> str:
        """Execute a colon command. Raises EOFError for exit/quit so the loop can shut down."""
        cmd_lower = cmd.lower()
        if cmd_lower in {'exit', 'quit'}:
            raise EOFError()
        if cmd_lower == 'help':
            return show_help(args[0] if args else None)
        return f"Unknown command: {cmd}"

    def evaluate_line(self, line: str) -> Tuple[bool, str]:
        """Evaluate a single line (either command or expression). Returns (ok, output)."""
        cmd_out = self._process_command(line)
        if cmd_out is not None:
            return True, cmd_out
        return evaluate_line(line, self.config.precision)

    def _prompt(self) -> str:
        if self.session is None:
            self.session = PromptSession(history=FileHistory(self.config.history_file))
        return self.session.prompt('> ', completer=self.completer)

    def repl_loop(self) -> None:
        """Interactive loop; Ctrl-C drops the current line, Ctrl-D or :exit quits."""
        print("Complex calculator. Type :help for help. Ctrl-D or :exit to quit.")
        while True:
            try:
                line = self._prompt()
            except KeyboardInterrupt:
                print("^C")
                continue
            except EOFError:
                print("Exiting.")
                break
            if not line.strip():
                continue
            try:
                _, out = self.evaluate_line(line)
            except EOFError:
                print("Exiting.")
                break
            print(out)

# --------------------------
# Entry point
# --------------------------

def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="blicalc",
        description="Evaluate arithmetic expressions over complex numbers. Starts a REPL when no expression is given.",
        epilog="Put '--' before expressions that begin with '-', e.g. blicalc -- -3+4",
    )
    parser.add_argument(
        "expressions",
        nargs="*",
        help="Expressions to evaluate, one result line each.",
    )
    parser.add_argument(
        "-e", "--expr",
        action="append",
        default=[],
        help="Expression to evaluate (repeatable).",
    )
    parser.add_argument(
        "--precision",
        type=int,
        help="Decimals shown in results (default: BLICALC_PRECISION or 6).",
    )
    return parser

def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    parser = _build_arg_parser()
    args = parser.parse_args(argv)
    config = load_config()
    if args.precision is not None:
        if args.precision < 0:
            parser.error("--precision must be non-negative")
        config.precision = args.precision
    configure_logging(config.log_level)

    expressions = list(args.expr) + list(args.expressions)
    if not expressions:
        REPL(config).repl_loop()
        return 0

    status = 0
    for text in expressions:
        ok, out = evaluate_line(text, config.precision)
        print(out)
        if not ok:
            status = 1
    return status

if __name__ == '__main__':
    raise SystemExit(main())
