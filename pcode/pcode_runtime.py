# pcode_runtime.py

import inspect
import math
import operator
from abc import ABC
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Literal, Optional, Sequence, Tuple

from pcode.pcode_datatypes import (
    Context, Node, PcodeError, EvalError, CoercionError, UnknownIdentifier,
    kind_of,
)
from pcode.pcode_lexer import Lexer
from pcode.pcode_parser import Parser, parse
from pcode.pcode_interpreter import Evaluator
from pcode.pcode_printer import Printer, display_text

# ===================================================================
# 1. Host Boundary
# ===================================================================

def pcode_api_method(func):
    """Marks a host method to be installed as a builtin in the root context."""
    func._is_pcode_api = True
    return func


class PcodeHost(ABC):
    """Base class for embeddings of the interpreter.

    `display` receives the text of every DISPLAY call and `input` supplies the
    text INPUT returns. Methods decorated with `@pcode_api_method` become
    builtins under their Python name.
    """

    def display(self, text: str) -> None:
        pass

    async def input(self, prompt: str) -> str:
        raise EvalError("this host has no input channel")


# ===================================================================
# 2. Argument Coercion
# ===================================================================

class Parameters:
    """An argument list viewed as a homogeneous shape of numbers, text or booleans.

    Coercion is strict: a number never passes as text or the other way round.
    """

    def __init__(self, args: Sequence[Any]):
        self.args = list(args)

    def numbers(self) -> List[float]:
        return [self._expect(a, "number", float) for a in self.args]

    def strings(self) -> List[str]:
        return [self._expect(a, "text", str) for a in self.args]

    def booleans(self) -> List[bool]:
        return [self._expect(a, "boolean", bool) for a in self.args]

    def shape(self, kind: str, arity: int) -> List[Any]:
        if len(self.args) != arity:
            raise CoercionError(f"expected {arity} argument(s), got {len(self.args)}")
        match kind:
            case "number":
                return self.numbers()
            case "text":
                return self.strings()
            case "boolean":
                return self.booleans()
        raise ValueError(f"unknown shape {kind!r}")

    @staticmethod
    def _expect(value, kind, py_type):
        if type(value) is not py_type:
            raise CoercionError(f"expected a {kind}, got a {kind_of(value)}")
        return value


def _ieee_div(a: float, b: float) -> float:
    if b == 0:
        if a == 0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1.0, b)
    return a / b


def _ieee_mod(a: float, b: float) -> float:
    if b == 0 or math.isinf(a):
        return math.nan
    return math.fmod(a, b)


def _ieee_pow(a: float, b: float) -> float:
    if a == 0 and b < 0:
        # pole: only an odd integer exponent keeps the sign of a signed zero
        odd = b.is_integer() and b % 2 == 1
        return math.copysign(math.inf, a) if odd else math.inf
    try:
        return math.pow(a, b)
    except OverflowError:
        return math.inf
    except ValueError:
        return math.nan


# ===================================================================
# 3. The Standard Library
# ===================================================================

Candidate = Tuple[str, Callable[..., Any]]


class StdLib:
    """Contains Python implementations for all pcode built-ins."""

    # pcode name -> method name
    NAMES = {
        "+": "_add",
        "-": "_sub",
        "*": "_mul",
        "/": "_div",
        "^": "_pow",
        "MOD": "_mod",
        ">": "_gt",
        "<": "_lt",
        "=": "_eq",
        "AND": "_and",
        "OR": "_or",
        "NOT": "_not",
        "DISPLAY": "_display",
        "INPUT": "_input",
    }

    def __init__(self, evaluator: Optional[Evaluator] = None):
        self.evaluator = evaluator

    def bindings(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {name: getattr(self, method) for name, method in self.NAMES.items()}
        out["true"] = True
        out["false"] = False
        return out

    def install(self, context: Context) -> Context:
        context.update(self.bindings())
        return context

    def _dispatch(self, op: str, args: Sequence[Any], candidates: List[Candidate], arity: int = 2):
        """Applies the first candidate shape every argument satisfies.

        When none matches, the call still succeeds: its value is a text
        describing the operation and the shapes it accepts.
        """
        params = Parameters(args)
        for kind, impl in candidates:
            try:
                operands = params.shape(kind, arity)
            except CoercionError:
                continue
            return impl(*operands)
        got = ", ".join(kind_of(a) for a in args)
        expected = " or ".join("(" + ", ".join([kind] * arity) + ")" for kind, _ in candidates)
        return f"cannot apply {op} to ({got}); expected {expected}"

    # --- Math and Logic ---
    def _add(self, *args):
        return self._dispatch("+", args, [("number", operator.add), ("text", operator.add)])
    def _sub(self, *args): return self._dispatch("-", args, [("number", operator.sub)])
    def _mul(self, *args): return self._dispatch("*", args, [("number", operator.mul)])
    def _div(self, *args): return self._dispatch("/", args, [("number", _ieee_div)])
    def _pow(self, *args): return self._dispatch("^", args, [("number", _ieee_pow)])
    def _mod(self, *args): return self._dispatch("MOD", args, [("number", _ieee_mod)])
    def _gt(self, *args): return self._dispatch(">", args, [("number", operator.gt)])
    def _lt(self, *args): return self._dispatch("<", args, [("number", operator.lt)])
    def _eq(self, *args):
        return self._dispatch("=", args, [
            ("number", operator.eq),
            ("boolean", operator.eq),
            ("text", operator.eq),
        ])
    def _and(self, *args): return self._dispatch("AND", args, [("boolean", lambda a, b: a and b)])
    def _or(self, *args): return self._dispatch("OR", args, [("boolean", lambda a, b: a or b)])
    def _not(self, *args): return self._dispatch("NOT", args, [("boolean", operator.not_)], arity=1)

    # --- Side Effects and I/O ---
    def _emit(self, topic: str, message: str):
        """Records a side-effect event for the host application."""
        if self.evaluator is not None:
            self.evaluator.side_effects.append({"topics": [topic], "message": message})

    def _host(self):
        return getattr(self.evaluator, "host_object", None)

    def _display(self, *args):
        text = " ".join(display_text(a) for a in args)
        self._emit("stdout", text)
        host = self._host()
        if host is not None:
            host.display(text)
        return text

    async def _input(self, *args):
        if len(args) > 1:
            raise EvalError(f"INPUT takes at most one prompt, got {len(args)} arguments")
        prompt = display_text(args[0]) if args else "input"
        host = self._host()
        if host is None:
            raise EvalError("INPUT needs a host input channel")
        text = host.input(prompt)
        if inspect.isawaitable(text):
            text = await text
        return str(text)


# ===================================================================
# 4. Script Execution
# ===================================================================

Token = Dict[str, Any]

@dataclass
class ExecutionResult:
    """The structured result of a script execution."""
    status: Literal['success', 'error']
    value: Any = None
    error_message: Optional[str] = None
    error_token: Optional[Token] = None
    side_effects: List[Dict] = field(default_factory=list)

    def format_error(self) -> str:
        """The error message, led by its source position when one is known."""
        if self.status != 'error':
            return ""
        message = self.error_message or "unknown failure"
        where = self.error_token or {}
        if where.get('line') is None:
            return message
        position = f"line {where['line']}"
        if where.get('col') is not None:
            position += f", col {where['col']}"
        return f"Error on {position}: {message}"


class ScriptRunner:
    """Tokenizes, parses, and executes pcode programs.

    Every `handle_script` call gets a fresh Evaluator, so nothing a program
    binds survives into the next run.
    """

    def __init__(self, host_object: Optional[PcodeHost] = None, scope: Optional[Context] = None):
        self.host_object = host_object
        self.scope = scope
        self.evaluator: Optional[Evaluator] = None

    def _install_root(self, evaluator: Evaluator) -> Context:
        """Fills the root context: stdlib, then host API methods, then the caller's scope."""
        root = evaluator.contexts[0]
        StdLib(evaluator).install(root)
        host = self.host_object
        if host is not None:
            for name, member in inspect.getmembers(host):
                if not callable(member):
                    continue
                is_api = getattr(member, "_is_pcode_api", False)
                if not is_api:
                    func = getattr(member, "__func__", None)
                    is_api = getattr(func, "_is_pcode_api", False)
                if is_api:
                    root[name] = member
        if self.scope is not None:
            root.update(self.scope)
        return root

    def _format_source_error(self, e: PcodeError, source: str) -> str:
        base = f"{e.kind}: {e.message}"
        if e.line is not None:
            ctx = self._source_context(source, e.line, e.col)
            return f"{base} (line {e.line}, col {e.col})" + (f"\n{ctx}" if ctx else "")
        return base

    def _format_runtime_error(self, e: Exception, source: str, node: Optional[Node]) -> Tuple[str, Optional[dict]]:
        match e:
            case UnknownIdentifier() as unknown:
                msg = f"UnknownIdentifier: {unknown.name}"
            case PcodeError():
                msg = f"{e.kind}: {e.message}"
            case RecursionError():
                msg = "RecursionError: program nests too deeply"
            case TypeError():
                call_name = None
                if self.evaluator is not None and self.evaluator.call_stack:
                    call_name = self.evaluator.call_stack[-1].get('name')
                msg = "TypeError: invalid-args" + (f" in ({call_name})" if call_name else "")
            case _:
                msg = f"InternalError: {e}"

        token = None
        loc = getattr(node, 'loc', None) if node is not None else None
        if loc and loc.get('line') is not None:
            line = loc.get('line'); col = loc.get('col')
            token = {'line': line, 'col': col}
            msg = f"{msg}\n(line {line}, col {col})\n{self._source_context(source, line, col)}"

        st = self._format_stacktrace()
        if st:
            msg += "\n" + st
        return msg, token

    def _source_context(self, source: str, line: int, col: Optional[int]) -> str:
        """The offending line and the one before it, with a caret under `col`."""
        lines = source.splitlines()
        if not 1 <= line <= len(lines):
            return ""
        gutter = len(str(line))
        excerpt = []
        for number in range(max(1, line - 1), line + 1):
            marker = ">" if number == line else " "
            excerpt.append(f"{marker} {str(number).rjust(gutter)} | {lines[number - 1]}")
        if col is not None:
            excerpt.append(f"  {' ' * gutter} | {' ' * max(col - 1, 0)}^")
        return "\n".join(excerpt)

    def _format_stacktrace(self) -> str:
        stack = getattr(self.evaluator, 'call_stack', None) or []
        if not stack:
            return ""
        printer = Printer()

        def fmt(arg):
            try:
                return printer.pformat(arg)
            except PcodeError:
                return repr(arg)

        frames = []
        for frame in stack:
            args_s = " ".join(fmt(a) for a in frame.get('args') or [])
            frames.append(f"({frame.get('name')}" + (f" {args_s}" if args_s else "") + ")")
        return "pcode stacktrace: " + " ".join(frames)

    def _error(self, msg: str, token: Optional[dict] = None) -> ExecutionResult:
        self.evaluator.side_effects.append({'topics': ['stderr'], 'message': msg})
        return ExecutionResult(
            status='error',
            error_message=msg,
            error_token=token,
            side_effects=self.evaluator.side_effects,
        )

    async def handle_script(self, source_code: str) -> ExecutionResult:
        """The main entry point to execute a script."""
        self.evaluator = Evaluator()
        self.evaluator.host_object = self.host_object
        self._install_root(self.evaluator)

        # 1. Tokenize and parse
        try:
            lexer = Lexer(source_code)
            tokens = lexer.tokenize()
            for message, line, col in lexer.diagnostics:
                self.evaluator.side_effects.append({
                    'topics': ['diagnostic'],
                    'message': f"{message} (line {line}, col {col})",
                })
            ast = Parser(tokens).parse()
        except PcodeError as e:
            token = {'line': e.line, 'col': e.col} if e.line is not None else None
            return self._error(self._format_source_error(e, source_code), token)
        except RecursionError:
            return self._error("RecursionError: program nests too deeply")

        # 2. Evaluate
        try:
            result = await self.evaluator.eval(ast, 0)
        except Exception as e:
            msg, token = self._format_runtime_error(e, source_code, self.evaluator.current_node)
            return self._error(msg, token)

        return ExecutionResult(
            status='success',
            value=result,
            side_effects=self.evaluator.side_effects,
        )


async def interpret(source: str, scope: Optional[Context] = None, host_object: Optional[PcodeHost] = None) -> Any:
    """Parses `source` and evaluates it in a new arena seeded with `scope`.

    Without a scope the root context holds the standard library. Hard errors
    propagate as `PcodeError`; operator mismatches come back as text values.
    """
    ast = parse(source)
    evaluator = Evaluator(scope)
    evaluator.host_object = host_object
    if scope is None:
        StdLib(evaluator).install(evaluator.contexts[0])
    return await evaluator.eval(ast, 0)
