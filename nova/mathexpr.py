"""Recursive-descent evaluator for calculator expressions.

Grammar::

    expr    := term (("+" | "-") term)*
    term    := unary (("*" | "/" | "%") unary)*
    unary   := ("+" | "-") unary | power
    power   := primary (("^" | "**") unary)?
    primary := NUMBER | CONSTANT | FUNCTION "(" args ")" | "(" expr ")"
    args    := expr ("," expr)*

Only the names in ``FUNCTIONS`` and ``CONSTANTS`` are recognised.
"""

from __future__ import annotations

import math
import re
from typing import Callable

FUNCTIONS: dict[str, Callable[..., float]] = {
    "sqrt": math.sqrt,
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
    "log": math.log,
    "ceil": math.ceil,
    "floor": math.floor,
    "round": round,
    "abs": abs,
    "min": min,
    "max": max,
    "pow": math.pow,
}

CONSTANTS: dict[str, float] = {"PI": math.pi, "E": math.e}

_TOKEN_RE = re.compile(r"\s*(?:(\d+(?:\.\d*)?|\.\d+)|(\*\*|[-+*/%^(),])|([A-Za-z_]\w*))")


class ExpressionError(ValueError):
    """Raised for malformed expressions or results that are not finite numbers."""


def _tokenize(expression: str) -> list[str]:
    tokens: list[str] = []
    pos = 0
    text = expression.rstrip()
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            raise ExpressionError(f"Unexpected character {text[pos:].strip()[:1]!r}")
        tokens.append(match.group(match.lastindex or 0))
        pos = match.end()
    return tokens


class _Parser:
    def __init__(self, tokens: list[str]) -> None:
        self._tokens = tokens
        self._pos = 0

    def _peek(self) -> str | None:
        return self._tokens[self._pos] if self._pos < len(self._tokens) else None

    def _take(self, expected: str | None = None) -> str:
        token = self._peek()
        if token is None:
            raise ExpressionError("Unexpected end of expression")
        if expected is not None and token != expected:
            raise ExpressionError(f"Expected {expected!r}, got {token!r}")
        self._pos += 1
        return token

    def parse(self) -> float:
        value = self._expr()
        if self._peek() is not None:
            raise ExpressionError(f"Unexpected token {self._peek()!r}")
        return value

    def _expr(self) -> float:
        value = self._term()
        while self._peek() in ("+", "-"):
            if self._take() == "+":
                value += self._term()
            else:
                value -= self._term()
        return value

    def _term(self) -> float:
        value = self._unary()
        while self._peek() in ("*", "/", "%"):
            op = self._take()
            rhs = self._unary()
            if op == "*":
                value *= rhs
            elif rhs == 0:
                raise ExpressionError("Division by zero")
            elif op == "/":
                value /= rhs
            else:
                value %= rhs
        return value

    def _unary(self) -> float:
        if self._peek() == "-":
            self._take()
            return -self._unary()
        if self._peek() == "+":
            self._take()
            return self._unary()
        return self._power()

    def _power(self) -> float:
        base = self._primary()
        if self._peek() in ("^", "**"):
            self._take()
            # Right-associative: 2^3^2 == 2^(3^2).
            exponent = self._unary()
            try:
                return math.pow(base, exponent)
            except (OverflowError, ValueError) as exc:
                raise ExpressionError(str(exc)) from exc
        return base

    def _primary(self) -> float:
        token = self._take()
        if token == "(":
            value = self._expr()
            self._take(")")
            return value
        if token[0].isdigit() or token[0] == ".":
            return float(token)
        if token in CONSTANTS:
            return CONSTANTS[token]
        if token in FUNCTIONS:
            self._take("(")
            args = [self._expr()]
            while self._peek() == ",":
                self._take()
                args.append(self._expr())
            self._take(")")
            try:
                return float(FUNCTIONS[token](*args))
            except (TypeError, ValueError, OverflowError) as exc:
                raise ExpressionError(f"Invalid call to {token}(): {exc}") from exc
        raise ExpressionError(f"Unknown name or token {token!r}")


def evaluate(expression: str) -> float:
    """Evaluate ``expression`` and return a finite float."""

    tokens = _tokenize(expression)
    if not tokens:
        raise ExpressionError("Empty expression")
    result = _Parser(tokens).parse()
    if not math.isfinite(result):
        raise ExpressionError("Expression did not produce a finite number")
    return result
