from pcode.pcode_datatypes import (
    Context, Deferred,
    PcodeError, LexError, ParseError, EvalError,
    UnterminatedString, UnbalancedBlock, MissingOperand, ArgumentsNotAList,
    UnknownIdentifier, NotCallable, UnsupportedVariableKind, CoercionError,
)
from pcode.pcode_lexer import Lexer, tokenize
from pcode.pcode_parser import Parser, parse
from pcode.pcode_interpreter import Evaluator
from pcode.pcode_printer import Printer, display_text, ensure_displayable
from pcode.pcode_runtime import (
    ExecutionResult, Parameters, PcodeHost, ScriptRunner, StdLib,
    interpret, pcode_api_method,
)
from pcode.pcode_serialize import serialize

__all__ = [
    "Context", "Deferred",
    "PcodeError", "LexError", "ParseError", "EvalError",
    "UnterminatedString", "UnbalancedBlock", "MissingOperand", "ArgumentsNotAList",
    "UnknownIdentifier", "NotCallable", "UnsupportedVariableKind", "CoercionError",
    "Lexer", "tokenize", "Parser", "parse", "Evaluator",
    "Printer", "display_text", "ensure_displayable",
    "ExecutionResult", "Parameters", "PcodeHost", "ScriptRunner", "StdLib",
    "interpret", "pcode_api_method",
    "serialize",
]
