"""
The core pcode interpreter: the context arena and the tree-walking Evaluator.
"""
import inspect
import os
import sys
from typing import Any, Dict, List, Optional

from pcode.pcode_datatypes import (
    Node, Block, List as ListNode, Value, Var, Assign, Call, Lambda,
    Context, Deferred, is_raw, kind_of, normalize,
    UnknownIdentifier, NotCallable, UnsupportedVariableKind,
)


def collapse(values: List[Any]) -> Any:
    """A sequence with exactly one value is that value; otherwise it stays a list."""
    if len(values) == 1:
        return values[0]
    return list(values)


class Evaluator:
    """Evaluates AST nodes against an append-only arena of Contexts.

    Scopes are addressed by their index in `contexts`. Index 0 is the root
    context the evaluator was created with; every block entry appends a new
    child, and nothing is removed until the evaluator itself is dropped.
    """

    def __init__(self, root: Optional[Context] = None):
        root = root if root is not None else Context()
        if root.parent is not None:
            raise ValueError("The root context cannot have a parent.")
        self.contexts: List[Context] = [root]
        self.side_effects: List[Dict[str, Any]] = []
        self.call_stack: List[Dict[str, Any]] = []
        self.current_node: Optional[Node] = None
        self.host_object = None

    def _dbg(self, *parts):
        if os.environ.get("PCODE_DEBUG"):
            print("[DBG]", *parts, file=sys.stderr)

    # --- Context arena ---

    def new_context(self, parent: int) -> int:
        """Appends an empty child of `parent` and returns its handle."""
        if not 0 <= parent < len(self.contexts):
            raise IndexError(f"no context with handle {parent}")
        self.contexts.append(Context(parent=parent))
        handle = len(self.contexts) - 1
        self._dbg("new context", handle, "parent", parent)
        return handle

    def fetch(self, scope: int, name: str) -> Any:
        """Looks `name` up in `scope`, then in each ancestor in turn."""
        handle: Optional[int] = scope
        while handle is not None:
            ctx = self.contexts[handle]
            if name in ctx:
                return ctx[name]
            handle = ctx.parent
        raise UnknownIdentifier(name)

    def assign(self, scope: int, name: str, value: Any):
        """Binds `name` in `scope` itself. Ancestors are never written to."""
        self.contexts[scope][name] = value

    # --- Evaluation ---

    async def eval(self, node: Node, scope: int = 0) -> Any:
        """Public entry point: the value of one node evaluated in `scope`."""
        return collapse(await self._eval_sequence([node], scope))

    async def _eval_sequence(self, nodes: List[Node], scope: int) -> List[Any]:
        """Evaluates nodes in order. Assignments bind but contribute no value."""
        values = []
        for node in nodes:
            if isinstance(node, Assign):
                value = await self.eval(node.value, scope)
                self._dbg("assign", node.name, "in", scope, "<-", type(value).__name__)
                self.assign(scope, node.name, value)
                continue
            values.append(await self._eval_node(node, scope))
        return values

    async def _eval_node(self, node: Node, scope: int) -> Any:
        self.current_node = node
        self._dbg("eval", type(node).__name__, "in", scope)
        match node:
            case Block(children=children):
                child = self.new_context(scope)
                return collapse(await self._eval_sequence(children, child))

            case ListNode(children=children):
                return collapse(await self._eval_sequence(children, scope))

            case Value(raw=raw):
                return raw

            case Var(name=name):
                value = self.fetch(scope, name)
                if not is_raw(value):
                    raise UnsupportedVariableKind(
                        f"{name!r} holds a {kind_of(value)}; only numbers, text and booleans can be read as variables"
                    )
                return value

            case Call(name=name, args=arg_nodes):
                arg = collapse(await self._eval_sequence(arg_nodes, scope))
                args = arg if isinstance(arg, list) else [arg]
                func = self.fetch(scope, name)
                self.current_node = node
                return await self.call(name, func, args, node)

            case Lambda(body=body):
                return Deferred(body)

        raise TypeError(f"Unknown AST node: {node!r}")

    async def call(self, name: str, func: Any, args: List[Any], call_site: Optional[Node] = None) -> Any:
        """Invokes a Function value with already-evaluated arguments."""
        if not callable(func):
            raise NotCallable(f"{name!r} is a {kind_of(func)}, not a function")
        self._dbg("call", name, "argc", len(args), [type(a).__name__ for a in args])
        self._push_frame(name, func, args, call_site)
        result = func(*args)
        if inspect.isawaitable(result):
            result = await result
        self._pop_frame()
        return normalize(result)

    async def force(self, value: Any, scope: int = 0) -> Any:
        """Runs a Deferred body in a fresh child of `scope`; other values pass through."""
        if isinstance(value, Deferred):
            child = self.new_context(scope)
            return await self.eval(value.body, child)
        return value

    def _push_frame(self, name, func, args, call_site):
        self.call_stack.append({
            'name': name,
            'func': func,
            'args': args,
            'call_site': getattr(call_site, 'loc', None),
        })

    def _pop_frame(self):
        if self.call_stack:
            self.call_stack.pop()
