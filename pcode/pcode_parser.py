"""
Recursive-descent parser from the token stream to a single AST root.

There is no operator precedence: a binary operator takes the node parsed
just before it as its left operand and the next node as its right operand,
so `3 / 2 * 4` folds strictly left to right. Every binary operator becomes a
two-argument `Call` of the operator's name.
"""

from typing import List, Optional

from pcode.pcode_datatypes import (
    Node, Block, List as ListNode, Value, Var, Assign, Call, Lambda,
    ParseError, UnbalancedBlock, MissingOperand, ArgumentsNotAList,
)
from pcode.pcode_lexer import (
    Token, tokenize,
    StorageArrow, LessThan, ArgsOpen, ArgsClose, BlockOpen, BlockClose, LambdaStart,
    BinaryOperation, StringLiteral, Number, Identifier,
)


def _describe(token: Optional[Token]) -> str:
    match token:
        case None:
            return "end of input"
        case BlockClose():
            return "end of block"
        case ArgsClose():
            return "')'"
        case BinaryOperation(symbol=s):
            return repr(s)
        case Identifier(name=n):
            return repr(n)
    return type(token).__name__


def _block(children: List[Node]) -> Node:
    # An implicit line or arrow block holding exactly one statement collapses to it.
    if len(children) == 1:
        return children[0]
    return Block(children)


class Parser:
    """Consumes a token list and builds one AST root.

    Tokens are stored reversed so that taking the next token is a pop from
    the end of the list.
    """

    def __init__(self, tokens: List[Token]):
        self.tokens = list(reversed(tokens))
        self._last: Optional[Token] = tokens[-1] if tokens else None

    def _peek(self) -> Optional[Token]:
        return self.tokens[-1] if self.tokens else None

    def _error(self, cls, message: str, token: Optional[Token]):
        token = token or self._last
        line = getattr(token, 'line', None)
        col = getattr(token, 'col', None)
        return cls(message, line, col)

    def parse(self) -> Node:
        if not self.tokens:
            raise ParseError("no output")
        nodes = self._parse_step([])
        if self.tokens:
            stray = self._peek()
            raise self._error(UnbalancedBlock, f"{_describe(stray)} closes a block that was never opened", stray)
        return nodes.pop()

    def _parse_until(self, closer: type, opener: Token) -> List[Node]:
        """Parses nodes until the matching closer, which is consumed."""
        nodes: List[Node] = []
        while True:
            token = self._peek()
            if token is None:
                raise self._error(UnbalancedBlock, "block was never closed", opener)
            if isinstance(token, closer):
                self.tokens.pop()
                return nodes
            if isinstance(token, (BlockClose, ArgsClose)):
                raise self._error(UnbalancedBlock, f"{_describe(token)} closes a block that was never opened", token)
            nodes = self._parse_step(nodes)

    def _parse_operand(self, message: str, after: Token) -> Node:
        """Parses exactly one node; `message` is raised when there is none."""
        token = self._peek()
        if token is None or isinstance(token, (BlockClose, ArgsClose)):
            raise self._error(MissingOperand, message, after)
        return self._parse_step([]).pop()

    def _parse_step(self, nodes: List[Node]) -> List[Node]:
        """Consumes one token (and whatever it owns), appending one node to `nodes`."""
        token = self.tokens.pop()
        match token:
            case BlockOpen(scope=True):
                nodes.append(Block(self._parse_until(BlockClose, token)))

            case BlockOpen():
                nodes.append(_block(self._parse_until(BlockClose, token)))

            case ArgsOpen():
                nodes.append(ListNode(self._parse_until(ArgsClose, token)))

            case BlockClose() | ArgsClose():
                raise self._error(UnbalancedBlock, f"{_describe(token)} closes a block that was never opened", token)

            case Identifier(name=name):
                following = self._peek()
                if following is None:
                    raise self._error(MissingOperand, f"something's gotta follow identifier {name!r}", token)
                if isinstance(following, StorageArrow):
                    arrow = self.tokens.pop()
                    value = self._parse_operand(f"nothing after the arrow assigning {name!r}", arrow)
                    nodes.append(Assign(name, value))
                elif isinstance(following, ArgsOpen):
                    args = self._parse_step([]).pop()
                    if not isinstance(args, ListNode):
                        raise self._error(ArgumentsNotAList, f"arguments to {name!r} are not a list", following)
                    nodes.append(Call(name, args.children, loc=token.loc))
                else:
                    nodes.append(Var(name, loc=token.loc))

            case StringLiteral(text=text):
                nodes.append(Value(text))

            case Number(value=value):
                nodes.append(Value(value))

            case BinaryOperation() | LessThan():
                op = token.symbol if isinstance(token, BinaryOperation) else "<"
                if not nodes:
                    raise self._error(MissingOperand, f"{op!r} has no left operand", token)
                left = nodes.pop()
                right = self._parse_operand(f"{op!r} has no right operand", token)
                nodes.append(Call(op, [left, right], loc=token.loc))

            case LambdaStart():
                nodes.append(Lambda(self._parse_operand("LAMBDA has no body", token)))

            case StorageArrow():
                raise self._error(ParseError, "arrow has no identifier to assign to", token)

        return nodes


def parse(source: str) -> Node:
    """Tokenizes and parses `source` into one AST root."""
    return Parser(tokenize(source)).parse()
