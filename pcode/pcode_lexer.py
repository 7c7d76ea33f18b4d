"""
Turns pcode source text into a flat token stream.

Every physical line is framed as an implicit statement block and the whole
program is wrapped in one outer block, so the parser always sees a single
enclosing `BlockOpen`/`BlockClose` pair. The right-hand side of `<-` gets its
own implicit block that is closed at the end of the line (or earlier, when an
enclosing bracket closes first).
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from pcode.pcode_datatypes import UnterminatedString

# ======================================
# Token Definition
# ======================================

def _pos_field():
    return field(default=None, compare=False, repr=False, kw_only=True)


@dataclass
class Token:
    line: Optional[int] = _pos_field()
    col: Optional[int] = _pos_field()

    @property
    def loc(self) -> Dict[str, Optional[int]]:
        return {'line': self.line, 'col': self.col}


@dataclass
class StorageArrow(Token): pass

@dataclass
class LessThan(Token): pass

@dataclass
class ArgsOpen(Token): pass

@dataclass
class ArgsClose(Token): pass

@dataclass
class BlockOpen(Token):
    # True for an explicit `{`, which always opens its own scope
    scope: bool = False

@dataclass
class BlockClose(Token): pass

@dataclass
class LambdaStart(Token): pass

@dataclass
class BinaryOperation(Token):
    symbol: str

@dataclass
class StringLiteral(Token):
    text: str

@dataclass
class Number(Token):
    value: float

@dataclass
class Identifier(Token):
    name: str


OPERATOR_CHARS = "+-*/^=>"
OPERATOR_WORDS = {"MOD", "AND", "OR"}
LAMBDA_WORD = "LAMBDA"

# Frame kinds on the lexer's bracket stack
STMT, BRACE, PAREN, ARROW = "stmt", "brace", "paren", "arrow"


# ======================================
# Main Lexer
# ======================================

class Lexer:
    """Single left-to-right scan with one character of lookahead."""

    def __init__(self, source: str):
        self.source = source
        self.pos = 0
        self.line = 1
        self.col = 1
        self.tokens: List[Token] = []
        # (kind, index of the opening token) for every open frame
        self.frames: List[Tuple[str, int]] = []
        # (message, line, col) for every character that was skipped
        self.diagnostics: List[Tuple[str, int, int]] = []

    # --- character stream ---

    def _peek(self) -> Optional[str]:
        if self.pos < len(self.source):
            return self.source[self.pos]
        return None

    def _next(self) -> str:
        c = self.source[self.pos]
        self.pos += 1
        if c == "\n":
            self.line += 1
            self.col = 1
        else:
            self.col += 1
        return c

    # --- emitting ---

    def _push(self, token: Token, line: int, col: int):
        token.line = line
        token.col = col
        self.tokens.append(token)

    def _open_statement(self, line: int, col: int):
        self.frames.append((STMT, len(self.tokens)))
        self._push(BlockOpen(), line, col)

    def _close_statement(self, line: int, col: int):
        _, index = self.frames.pop()
        if index == len(self.tokens) - 1:
            # Nothing was written into this statement; drop its opener.
            self.tokens.pop()
        else:
            self._push(BlockClose(), line, col)

    def _close_arrows(self, line: int, col: int):
        while self.frames and self.frames[-1][0] == ARROW:
            _, index = self.frames.pop()
            if index == len(self.tokens) - 1:
                # Empty right-hand side; the parser then sees the arrow with nothing after it.
                self.tokens.pop()
            else:
                self._push(BlockClose(), line, col)

    def _innermost(self) -> Optional[str]:
        for kind, _ in reversed(self.frames):
            if kind != ARROW:
                return kind
        return None

    # --- scanning ---

    def tokenize(self) -> List[Token]:
        self._push(BlockOpen(), 1, 1)
        self._open_statement(1, 1)

        while (c := self._peek()) is not None:
            line, col = self.line, self.col

            if c == "\n":
                self._next()
                if self._innermost() == PAREN:
                    continue
                self._close_arrows(line, col)
                if self.frames and self.frames[-1][0] == STMT:
                    self._close_statement(line, col)
                self._open_statement(self.line, self.col)
            elif c == "<":
                self._next()
                if self._peek() == "-":
                    self._next()
                    self._push(StorageArrow(), line, col)
                    self.frames.append((ARROW, len(self.tokens)))
                    self._push(BlockOpen(), line, col)
                else:
                    self._push(LessThan(), line, col)
            elif c == "(":
                self._next()
                self.frames.append((PAREN, len(self.tokens)))
                self._push(ArgsOpen(), line, col)
            elif c == ")":
                self._next()
                self._close_arrows(line, col)
                if self.frames and self.frames[-1][0] == PAREN:
                    self.frames.pop()
                self._push(ArgsClose(), line, col)
            elif c == "{":
                self._next()
                self.frames.append((BRACE, len(self.tokens)))
                self._push(BlockOpen(scope=True), line, col)
                self._open_statement(line, col)
            elif c == "}":
                self._next()
                self._close_arrows(line, col)
                if self.frames and self.frames[-1][0] == STMT and self._encloses(BRACE):
                    self._close_statement(line, col)
                if self.frames and self.frames[-1][0] == BRACE:
                    self.frames.pop()
                self._push(BlockClose(), line, col)
            elif c in OPERATOR_CHARS:
                self._next()
                self._push(BinaryOperation(c), line, col)
            elif c == '"':
                self._string(line, col)
            elif c.isalnum() or c == "_":
                self._word(line, col)
            elif c.isspace():
                self._next()
            else:
                self._next()
                self.diagnostics.append((f"ignoring {c!r}", line, col))

        self._close_arrows(self.line, self.col)
        if self.frames and self.frames[-1][0] == STMT:
            self._close_statement(self.line, self.col)
        self._push(BlockClose(), self.line, self.col)
        return self.tokens

    def _encloses(self, kind: str) -> bool:
        # True when the frame right under the current statement is `kind`
        return len(self.frames) >= 2 and self.frames[-2][0] == kind

    def _string(self, line: int, col: int):
        self._next()  # opening quote
        start = self.pos
        while (c := self._peek()) is not None and c != '"':
            self._next()
        if c is None:
            raise UnterminatedString(line, col)
        text = self.source[start:self.pos]
        self._next()  # closing quote
        self._push(StringLiteral(text), line, col)

    def _word(self, line: int, col: int):
        numeric = self._peek().isdigit()
        start = self.pos
        while (c := self._peek()) is not None and (c.isalnum() or c == "_" or (numeric and c == ".")):
            self._next()
        word = self.source[start:self.pos]

        if word in OPERATOR_WORDS:
            self._push(BinaryOperation(word), line, col)
            return
        if word == LAMBDA_WORD:
            self._push(LambdaStart(), line, col)
            return
        if numeric and "_" not in word:
            try:
                self._push(Number(float(word)), line, col)
                return
            except ValueError:
                pass
        self._push(Identifier(word), line, col)


def tokenize(source: str) -> List[Token]:
    """Tokenizes `source`. Raises `UnterminatedString` on an unclosed quote."""
    return Lexer(source).tokenize()
