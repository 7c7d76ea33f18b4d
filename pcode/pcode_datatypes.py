"""
Defines the core data types for the pcode interpreter.

This module provides the AST node algebra produced by the parser, the
runtime value helpers used by the evaluator, the lexical `Context` stored
in the evaluator's arena, and the hard-error exception hierarchy.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

# =================================================================
# Hard errors
# =================================================================

class PcodeError(Exception):
    """Base class for every failure that aborts a program run."""
    kind = "Error"

    def __init__(self, message: str, line: Optional[int] = None, col: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.line = line
        self.col = col


class LexError(PcodeError):
    kind = "LexError"


class UnterminatedString(LexError):
    def __init__(self, line: Optional[int] = None, col: Optional[int] = None):
        super().__init__("unterminated string literal", line, col)


class ParseError(PcodeError):
    kind = "ParseError"


class UnbalancedBlock(ParseError):
    pass


class MissingOperand(ParseError):
    pass


class ArgumentsNotAList(ParseError):
    pass


class EvalError(PcodeError):
    kind = "EvalError"


class UnknownIdentifier(EvalError):
    kind = "UnknownIdentifier"

    def __init__(self, name: str):
        super().__init__(f"couldn't find variable with identifier {name}")
        self.name = name


class NotCallable(EvalError):
    kind = "NotCallable"


class UnsupportedVariableKind(EvalError):
    kind = "UnsupportedVariableKind"


class CoercionError(EvalError):
    kind = "CoercionError"


# =================================================================
# AST Nodes
# =================================================================

class Node:
    """Base class for all AST nodes."""
    pass


def _loc_field():
    # Source location of the identifier token; not part of structural equality.
    return field(default=None, compare=False, repr=False, kw_only=True)


@dataclass
class Block(Node):
    """Statements executed in a fresh child scope."""
    children: list[Node]


@dataclass
class List(Node):
    """An argument list. Evaluated in the current scope."""
    children: list[Node]


@dataclass
class Value(Node):
    """A literal number, text or boolean."""
    raw: Union[float, str, bool]


@dataclass
class Var(Node):
    """A read reference to an identifier."""
    name: str
    loc: Optional[Dict[str, Any]] = _loc_field()


@dataclass
class Assign(Node):
    """Binds `name` in the innermost scope to the evaluated `value`."""
    name: str
    value: Node


@dataclass
class Call(Node):
    """Invokes the callable bound to `name`. Binary operators parse to this too."""
    name: str
    args: list[Node]
    loc: Optional[Dict[str, Any]] = _loc_field()


@dataclass
class Lambda(Node):
    """An unevaluated expression. Evaluates to a `Deferred`, never to its body's value."""
    body: Node


# =================================================================
# Runtime values
# =================================================================

Raw = Union[float, str, bool]


class Deferred:
    """The runtime form of a `Lambda` node: an AST fragment kept for later.

    Only a builtin that knows about deferred values may run the body, through
    `Evaluator.force`, in a scope of its choosing.
    """
    def __init__(self, body: Node):
        self.body = body

    def __repr__(self) -> str:
        return f"Deferred({self.body!r})"

    def __eq__(self, other):
        return isinstance(other, Deferred) and self.body == other.body


def is_raw(value: Any) -> bool:
    return isinstance(value, (bool, float, str))


def kind_of(value: Any) -> str:
    """Names the kind of a runtime value, as used in messages."""
    match value:
        case bool():
            return "boolean"
        case float():
            return "number"
        case str():
            return "text"
        case list():
            return "list"
        case Deferred():
            return "lambda"
    if callable(value):
        return "function"
    raise TypeError(f"not a pcode value: {type(value).__name__}")


def normalize(value: Any) -> Any:
    """Brings a host/builtin result into the runtime value algebra."""
    if value is None:
        return []
    if isinstance(value, int) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, tuple):
        return [normalize(v) for v in value]
    if isinstance(value, list):
        return [normalize(v) for v in value]
    return value


# =================================================================
# Lexical scopes
# =================================================================

class Context:
    """One lexical scope: bindings plus the arena handle of its parent.

    Contexts never hold references to each other. Lookup through the parent
    chain is done by the `Evaluator`, which owns the arena the handles index.
    """
    def __init__(self, bindings: Optional[Dict[str, Any]] = None, parent: Optional[int] = None):
        self.bindings: Dict[str, Any] = dict(bindings or {})
        self.parent = parent

    def __setitem__(self, key: str, value: Any):
        if not isinstance(key, str):
            raise TypeError(f"Context key must be a str, not {type(key)}")
        self.bindings[key] = value

    def __getitem__(self, key: str) -> Any:
        return self.bindings[key]

    def __contains__(self, key: Any) -> bool:
        return key in self.bindings

    def get(self, key: str, default: Any = None) -> Any:
        return self.bindings.get(key, default)

    def update(self, other: Union['Context', Dict[str, Any]]):
        src = other.bindings if isinstance(other, Context) else other
        for k, v in src.items():
            self[k] = v

    def keys(self):
        return self.bindings.keys()

    def __repr__(self) -> str:
        keys = ', '.join(self.bindings.keys())
        parent = f", parent=#{self.parent}" if self.parent is not None else ""
        return f"<Context bindings=[{keys}]{parent}>"
