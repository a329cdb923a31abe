"""Restricted arithmetic evaluator for calculation formulas.

Formulas are reduced to plain arithmetic text before they get here (field
tokens and built-in functions already substituted).  This module parses that
text with a small recursive-descent parser; nothing is ever handed to
``eval``.

Grammar::

    comparison := sum ( ("<" | "<=" | ">" | ">=" | "==" | "!=") sum )?
    sum        := product ( ("+" | "-") product )*
    product    := unary ( ("*" | "/") unary )*
    unary      := ("+" | "-") unary | primary
    primary    := NUMBER | "(" comparison ")"

Comparisons are only accepted when the caller asks for them (the condition
argument of ``IF``); they yield 1.0 or 0.0.

Two entry points:

  - :func:`parse_expression` is strict and raises :class:`FormulaError`
  - :func:`evaluate_expression` is lenient: it strips every character that
    is not part of plain arithmetic first and returns 0.0 on any failure
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass

from formlogic.constants import MAX_FORMULA_DEPTH, MAX_FORMULA_LENGTH

logger = logging.getLogger(__name__)

# Anything outside digits, + - * / ( ) . and whitespace is dropped before
# lenient evaluation.
_NON_ARITHMETIC = re.compile(r"[^0-9+\-*/().\s]")

_COMPARISONS = {"<", "<=", ">", ">=", "==", "!="}


class FormulaError(ValueError):
    """A formula could not be reduced or evaluated."""


class DivisionByZeroError(FormulaError):
    """A well-formed formula divided by zero for the current values."""


@dataclass(frozen=True)
class Token:
    kind: str
    value: str


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------

def tokenize(text: str) -> list[Token]:
    """Split arithmetic text into NUMBER / OP / paren tokens."""
    tokens: list[Token] = []
    pos = 0
    length = len(text)
    while pos < length:
        ch = text[pos]
        if ch.isspace():
            pos += 1
            continue
        if ch.isdigit() or ch == ".":
            start = pos
            seen_dot = False
            while pos < length and (text[pos].isdigit() or (text[pos] == "." and not seen_dot)):
                if text[pos] == ".":
                    seen_dot = True
                pos += 1
            literal = text[start:pos]
            if literal == ".":
                raise FormulaError("Lone '.' in expression")
            tokens.append(Token("NUMBER", literal))
            continue
        two = text[pos:pos + 2]
        if two in _COMPARISONS:
            tokens.append(Token("OP", two))
            pos += 2
            continue
        if ch in "+-*/<>":
            tokens.append(Token("OP", ch))
            pos += 1
            continue
        if ch in "()":
            tokens.append(Token(ch, ch))
            pos += 1
            continue
        raise FormulaError(f"Unexpected character '{ch}' in expression")
    return tokens


# ---------------------------------------------------------------------------
# Parser (evaluates while parsing)
# ---------------------------------------------------------------------------

class _Parser:
    def __init__(self, tokens: list[Token], allow_comparison: bool) -> None:
        self.tokens = tokens
        self.pos = 0
        self.depth = 0
        self.allow_comparison = allow_comparison

    def parse(self) -> float:
        if not self.tokens:
            raise FormulaError("Empty expression")
        value = self._comparison()
        if self.pos < len(self.tokens):
            raise FormulaError(f"Unexpected trailing token '{self.tokens[self.pos].value}'")
        return value

    def _comparison(self) -> float:
        left = self._sum()
        token = self._peek()
        if token is not None and token.kind == "OP" and token.value in _COMPARISONS:
            if not self.allow_comparison:
                raise FormulaError(f"Comparison '{token.value}' is not allowed here")
            self.pos += 1
            right = self._sum()
            return 1.0 if _compare(left, token.value, right) else 0.0
        return left

    def _sum(self) -> float:
        value = self._product()
        while self._match_op("+", "-"):
            op = self.tokens[self.pos - 1].value
            right = self._product()
            value = value + right if op == "+" else value - right
        return value

    def _product(self) -> float:
        value = self._unary()
        while self._match_op("*", "/"):
            op = self.tokens[self.pos - 1].value
            right = self._unary()
            if op == "*":
                value = value * right
            else:
                if right == 0:
                    raise DivisionByZeroError("Division by zero")
                value = value / right
        return value

    def _unary(self) -> float:
        if self._match_op("+", "-"):
            op = self.tokens[self.pos - 1].value
            self._enter()
            operand = self._unary()
            self.depth -= 1
            return -operand if op == "-" else operand
        return self._primary()

    def _primary(self) -> float:
        token = self._peek()
        if token is None:
            raise FormulaError("Unexpected end of expression")
        if token.kind == "NUMBER":
            self.pos += 1
            return float(token.value)
        if token.kind == "(":
            self.pos += 1
            self._enter()
            value = self._comparison()
            self.depth -= 1
            if self._peek() is None or self._peek().kind != ")":
                raise FormulaError("Expected ')' to close expression")
            self.pos += 1
            return value
        raise FormulaError(f"Unexpected token '{token.value}'")

    # --- helpers ---

    def _enter(self) -> None:
        self.depth += 1
        if self.depth > MAX_FORMULA_DEPTH:
            raise FormulaError("Expression is nested too deeply")

    def _peek(self) -> Token | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _match_op(self, *ops: str) -> bool:
        token = self._peek()
        if token is not None and token.kind == "OP" and token.value in ops:
            self.pos += 1
            return True
        return False


def _compare(left: float, op: str, right: float) -> bool:
    if op == "<":
        return left < right
    if op == "<=":
        return left <= right
    if op == ">":
        return left > right
    if op == ">=":
        return left >= right
    if op == "==":
        return left == right
    return left != right


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------

def parse_expression(text: str, *, allow_comparison: bool = False) -> float:
    """Evaluate arithmetic text strictly.

    Raises:
        FormulaError: on syntax errors, division by zero, excessive length
            or nesting, and non-finite results.
    """
    if len(text) > MAX_FORMULA_LENGTH:
        raise FormulaError(f"Expression longer than {MAX_FORMULA_LENGTH} characters")
    try:
        value = _Parser(tokenize(text), allow_comparison).parse()
    except OverflowError as exc:
        raise FormulaError("Numeric overflow") from exc
    if not math.isfinite(value):
        raise FormulaError("Expression result is not a finite number")
    return value


def sanitize(text: str) -> str:
    """Drop every character that is not digits, ``+ - * / ( ) .`` or whitespace."""
    return _NON_ARITHMETIC.sub("", text)


def evaluate_expression(text: str) -> float:
    """Evaluate arithmetic text leniently: sanitize, parse, and return 0.0 on failure."""
    sanitized = sanitize(text)
    if not sanitized.strip():
        return 0.0
    try:
        return parse_expression(sanitized)
    except FormulaError as exc:
        logger.warning("Expression evaluation error for %r: %s", text, exc)
        return 0.0
