"""
A pretty-printer for pcode values and AST nodes.
"""
import math

from pcode.pcode_datatypes import (
    Block, List as ListNode, Value, Var, Assign, Call, Lambda,
    Deferred, CoercionError, kind_of,
)

# Names that print infix when called with two arguments
INFIX_OPERATORS = {"+", "-", "*", "/", "^", "=", ">", "<", "MOD", "AND", "OR"}


def format_number(n: float) -> str:
    """Integral numbers print without a fractional part, like `12`."""
    if math.isnan(n):
        return "NaN"
    if math.isinf(n):
        return "inf" if n > 0 else "-inf"
    if n.is_integer():
        return str(int(n))
    return repr(n)


def display_text(value) -> str:
    """The text DISPLAY shows for a value. Functions and lambdas have none."""
    ensure_displayable(value)
    if isinstance(value, str):
        return value
    return Printer().pformat(value)


def ensure_displayable(value):
    """Raises CoercionError when `value` is, or holds, a function or lambda."""
    if isinstance(value, list):
        for item in value:
            ensure_displayable(item)
    elif not isinstance(value, (bool, float, str)):
        raise CoercionError(f"a {kind_of(value)} can't be displayed")


class Printer:
    """Formats pcode values and AST nodes into readable pcode source strings."""

    def __init__(self, indent_width=2):
        self._indent_char = " " * indent_width
        self._handlers = self._create_handlers()

    def pformat(self, obj, level=0):
        """Public entry point to format an object."""
        handler = self._get_handler(obj)
        return handler(obj, level)

    def pformat_program(self, node):
        """Formats a parsed root node as a sequence of top-level statements."""
        # A one-statement root block can only have come from explicit braces.
        if isinstance(node, Block) and len(node.children) != 1:
            return "\n".join(self.pformat(child) for child in node.children)
        return self.pformat(node)

    def _get_handler(self, obj):
        obj_type = type(obj)
        if obj_type in self._handlers:
            return self._handlers[obj_type]
        if callable(obj):
            return self._pformat_function
        raise CoercionError(f"can't format a {type(obj).__name__}")

    def _create_handlers(self):
        return {
            float: self._pformat_number,
            str: self._pformat_str,
            bool: self._pformat_bool,
            list: self._pformat_list,
            Deferred: self._pformat_deferred,
            Block: self._pformat_block,
            ListNode: self._pformat_args,
            Value: self._pformat_value,
            Var: self._pformat_var,
            Assign: self._pformat_assign,
            Call: self._pformat_call,
            Lambda: self._pformat_lambda,
        }

    # --- values ---

    def _pformat_number(self, obj, level):
        return format_number(obj)

    def _pformat_str(self, obj, level):
        return f'"{obj}"'

    def _pformat_bool(self, obj, level):
        return 'true' if obj else 'false'

    def _pformat_list(self, obj, level):
        return "[" + ", ".join(self.pformat(item, level) for item in obj) + "]"

    def _pformat_deferred(self, obj, level):
        return f"LAMBDA {self._operand(obj.body, level)}"

    def _pformat_function(self, obj, level):
        name = getattr(obj, 'pcode_name', None) or getattr(obj, '__name__', None) or 'function'
        return f"<function {name}>"

    # --- AST nodes ---

    def _pformat_block(self, obj, level):
        if not obj.children:
            return "{}"
        outer_indent = self._indent_char * level
        inner_indent = self._indent_char * (level + 1)
        lines = [inner_indent + self.pformat(child, level + 1) for child in obj.children]
        return "{\n" + "\n".join(lines) + f"\n{outer_indent}}}"

    def _pformat_args(self, obj, level):
        return "(" + ", ".join(self.pformat(child, level) for child in obj.children) + ")"

    def _pformat_value(self, obj, level):
        return self.pformat(obj.raw, level)

    def _pformat_var(self, obj, level):
        return obj.name

    def _pformat_assign(self, obj, level):
        return f"{obj.name} <- {self.pformat(obj.value, level)}"

    def _pformat_call(self, obj, level):
        if obj.name in INFIX_OPERATORS and len(obj.args) == 2:
            left, right = obj.args
            # Operators fold left to right, so only the right side needs grouping.
            return f"{self.pformat(left, level)} {obj.name} {self._operand(right, level)}"
        return f"{obj.name}(" + ", ".join(self.pformat(arg, level) for arg in obj.args) + ")"

    def _pformat_lambda(self, obj, level):
        return f"LAMBDA {self._operand(obj.body, level)}"

    def _operand(self, node, level):
        text = self.pformat(node, level)
        if isinstance(node, Call) and node.name in INFIX_OPERATORS and len(node.args) == 2:
            return f"({text})"
        return text
