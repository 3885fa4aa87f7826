# =============================================================================
# Branch Evaluator — Restricted Boolean Conditions over Answers
# =============================================================================
#
# Questions and agent-selection rules carry small boolean expressions such as
#
#     context.business_path == 'existing'
#     customer_type in ['b2b', 'b2g'] and not expansion_plan == 'no'
#
# They are tokenised, parsed into a tiny AST and evaluated by a pure
# interpreter. Host code is never executed.
#
# GRAMMAR:
#   expr       := or_expr
#   or_expr    := and_expr (("or" | "||") and_expr)*
#   and_expr   := not_expr (("and" | "&&") not_expr)*
#   not_expr   := ("not" | "!") not_expr | atom
#   atom       := "(" expr ")" | comparison
#   comparison := field ("==" | "!=" | "===" | "!==") literal
#               | field ["not"] "in" "[" literal ("," literal)* "]"
#
# A leading "context." or "answers." on a field is ignored, so catalog
# conditions written against the old `context.<id>` form keep working.
#
# FAILURE POLICY: evaluate() never raises. An unparsable condition is
# logged as a data-quality issue and resolves to `on_error` (True for
# question gating, i.e. the question is asked).
# =============================================================================

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Union

from bizplan.errors import ConditionEvaluationError

logger = logging.getLogger(__name__)

_FIELD_PREFIXES = ("context.", "answers.")

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<op>===|!==|==|!=|&&|\|\||!)
  | (?P<punct>[()\[\],])
  | (?P<string>'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*")
  | (?P<number>-?\d+(?:\.\d+)?)
  | (?P<name>[A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*)
    """,
    re.VERBOSE,
)

_KEYWORD_LITERALS: dict[str, Any] = {
    "true": True,
    "True": True,
    "false": False,
    "False": False,
    "null": None,
    "None": None,
}


# ---------------------------------------------------------------------------
# AST
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Compare:
    field: str
    negated: bool
    value: Any


@dataclass(frozen=True)
class Membership:
    field: str
    negated: bool
    values: tuple[Any, ...]


@dataclass(frozen=True)
class Not:
    operand: Node


@dataclass(frozen=True)
class And:
    operands: tuple[Node, ...]


@dataclass(frozen=True)
class Or:
    operands: tuple[Node, ...]


Node = Union[Compare, Membership, Not, And, Or]


# ---------------------------------------------------------------------------
# Tokenizer & parser
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _Token:
    kind: str   # "op", "punct", "string", "number", "name", "kw"
    text: str


def _tokenize(condition: str) -> list[_Token]:
    tokens: list[_Token] = []
    pos = 0
    while pos < len(condition):
        match = _TOKEN_RE.match(condition, pos)
        if match is None:
            raise ConditionEvaluationError(
                condition, f"unexpected character {condition[pos]!r} at {pos}"
            )
        pos = match.end()
        kind = match.lastgroup
        text = match.group()
        if kind == "ws":
            continue
        if kind == "name" and text in ("and", "or", "not", "in"):
            kind = "kw"
        tokens.append(_Token(kind, text))
    return tokens


class _Parser:
    """Recursive-descent parser over the token list."""

    def __init__(self, condition: str) -> None:
        self._condition = condition
        self._tokens = _tokenize(condition)
        self._pos = 0

    def parse(self) -> Node:
        node = self._or()
        if self._peek() is not None:
            self._fail(f"unexpected token {self._peek().text!r}")
        return node

    # --- helpers ---

    def _peek(self) -> _Token | None:
        return self._tokens[self._pos] if self._pos < len(self._tokens) else None

    def _advance(self) -> _Token:
        token = self._peek()
        if token is None:
            self._fail("unexpected end of expression")
        self._pos += 1
        return token

    def _accept(self, *texts: str) -> bool:
        token = self._peek()
        if token is not None and token.kind in ("op", "punct", "kw") and token.text in texts:
            self._pos += 1
            return True
        return False

    def _expect(self, text: str) -> None:
        if not self._accept(text):
            found = self._peek().text if self._peek() else "end of expression"
            self._fail(f"expected {text!r}, found {found!r}")

    def _fail(self, reason: str):
        raise ConditionEvaluationError(self._condition, reason)

    # --- grammar ---

    def _or(self) -> Node:
        operands = [self._and()]
        while self._accept("or", "||"):
            operands.append(self._and())
        return operands[0] if len(operands) == 1 else Or(tuple(operands))

    def _and(self) -> Node:
        operands = [self._not()]
        while self._accept("and", "&&"):
            operands.append(self._not())
        return operands[0] if len(operands) == 1 else And(tuple(operands))

    def _not(self) -> Node:
        if self._accept("not", "!"):
            return Not(self._not())
        return self._atom()

    def _atom(self) -> Node:
        if self._accept("("):
            node = self._or()
            self._expect(")")
            return node
        return self._comparison()

    def _comparison(self) -> Node:
        token = self._advance()
        if token.kind != "name" or token.text in _KEYWORD_LITERALS:
            self._fail(f"expected an answer field, found {token.text!r}")
        field = _strip_prefix(token.text)

        if self._accept("==", "==="):
            return Compare(field, False, self._literal())
        if self._accept("!=", "!=="):
            return Compare(field, True, self._literal())

        negated = self._accept("not")
        if self._accept("in"):
            return Membership(field, negated, self._literal_list())
        self._fail(f"expected a comparison after {token.text!r}")

    def _literal_list(self) -> tuple[Any, ...]:
        self._expect("[")
        values = [self._literal()]
        while self._accept(","):
            values.append(self._literal())
        self._expect("]")
        return tuple(values)

    def _literal(self) -> Any:
        token = self._advance()
        if token.kind == "string":
            return _unquote(token.text)
        if token.kind == "number":
            return float(token.text) if "." in token.text else int(token.text)
        if token.kind == "name" and token.text in _KEYWORD_LITERALS:
            return _KEYWORD_LITERALS[token.text]
        self._fail(f"expected a literal, found {token.text!r}")


def _strip_prefix(name: str) -> str:
    for prefix in _FIELD_PREFIXES:
        if name.startswith(prefix):
            return name[len(prefix):]
    return name


def _unquote(text: str) -> str:
    body = text[1:-1]
    return re.sub(r"\\(.)", r"\1", body)


@lru_cache(maxsize=1024)
def parse_condition(condition: str) -> Node:
    """
    Parse a condition into its AST.

    Raises:
        ConditionEvaluationError: If the expression is not in the grammar.
    """
    return _Parser(condition).parse()


# ---------------------------------------------------------------------------
# Interpreter
# ---------------------------------------------------------------------------


def _lookup(answers: Mapping[str, Any], field: str) -> Any:
    if field in answers:
        return answers[field]
    current: Any = answers
    for part in field.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return None
        current = current[part]
    return current


def _equals(answer: Any, literal: Any) -> bool:
    if answer == literal:
        return True
    # Numeric answers are often stored as strings ("0", "12.5")
    numeric = (int, float)
    if isinstance(literal, numeric) and not isinstance(literal, bool) and isinstance(answer, str):
        try:
            return float(answer) == float(literal)
        except ValueError:
            return False
    if isinstance(answer, numeric) and not isinstance(answer, bool) and isinstance(literal, str):
        try:
            return float(literal) == float(answer)
        except ValueError:
            return False
    return False


def _is_member(answer: Any, values: tuple[Any, ...]) -> bool:
    if isinstance(answer, (list, tuple, set, frozenset)):
        return any(_is_member(item, values) for item in answer)
    return any(_equals(answer, value) for value in values)


def _interpret(node: Node, answers: Mapping[str, Any]) -> bool:
    if isinstance(node, Compare):
        return _equals(_lookup(answers, node.field), node.value) != node.negated
    if isinstance(node, Membership):
        return _is_member(_lookup(answers, node.field), node.values) != node.negated
    if isinstance(node, Not):
        return not _interpret(node.operand, answers)
    if isinstance(node, And):
        return all(_interpret(operand, answers) for operand in node.operands)
    if isinstance(node, Or):
        return any(_interpret(operand, answers) for operand in node.operands)
    raise TypeError(f"Unknown condition node: {node!r}")


def referenced_fields(condition: str) -> set[str]:
    """Answer ids a condition reads. Raises ConditionEvaluationError."""
    fields: set[str] = set()

    def walk(node: Node) -> None:
        if isinstance(node, (Compare, Membership)):
            fields.add(node.field.split(".", 1)[0])
        elif isinstance(node, Not):
            walk(node.operand)
        else:
            for operand in node.operands:
                walk(operand)

    walk(parse_condition(condition))
    return fields


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def evaluate(
    condition: str | None,
    answers: Mapping[str, Any],
    *,
    on_error: bool = True,
) -> bool:
    """
    Decide whether a condition holds for the given answers.

    Args:
        condition: Expression text. None or blank means "always applies".
        answers: Accumulated answers keyed by question id.
        on_error: Result returned when the condition cannot be evaluated.
            True (fail-open) for question gating.

    Returns:
        The truth value of the condition. Never raises.
    """
    if condition is None or not condition.strip():
        return True
    try:
        return _interpret(parse_condition(condition.strip()), answers)
    except ConditionEvaluationError as exc:
        logger.warning(
            "Branch condition data-quality issue (resolving to %s): %s",
            on_error, exc,
        )
        return on_error
    except (TypeError, ValueError) as exc:
        logger.warning(
            "Branch condition %r failed on answers (resolving to %s): %s",
            condition, on_error, exc,
        )
        return on_error
