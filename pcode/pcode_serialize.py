from __future__ import annotations

import json
from typing import Any

# YAML is already a project dependency
import yaml

from pcode.pcode_datatypes import CoercionError, Deferred, kind_of
from pcode.pcode_printer import format_number


# --------------------------
# Helpers
# --------------------------

def to_builtin(value: Any) -> Any:
    """Converts a pcode value to plain JSON/YAML-safe Python data.

    Integral numbers become ints. NaN and infinities have no JSON form, so
    they are written as their printed text.
    """
    if isinstance(value, list):
        return [to_builtin(x) for x in value]
    if isinstance(value, bool) or isinstance(value, str):
        return value
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return format_number(value)
        if value.is_integer():
            return int(value)
        return value
    if isinstance(value, Deferred) or callable(value):
        raise CoercionError(f"a {kind_of(value)} can't be serialized")
    raise CoercionError(f"can't serialize a {type(value).__name__}")


# --------------------------
# Public API
# --------------------------

def serialize(value: Any, *, fmt: str, pretty: bool = True) -> str:
    """
    Convert a pcode value into a textual representation.
    - fmt: 'json' | 'yaml'
    """
    f = (fmt or '').lower()
    built = to_builtin(value)
    if f == 'json':
        return json.dumps(built, ensure_ascii=False, indent=2 if pretty else None)
    if f == 'yaml':
        return yaml.safe_dump(built, sort_keys=False)
    raise ValueError(f"Unsupported serialization format: {fmt!r}")


__all__ = [
    "serialize",
    "to_builtin",
]
