import pytest

from pcode.pcode_lexer import (
    Lexer, tokenize,
    StorageArrow, LessThan, ArgsOpen, ArgsClose, BlockOpen, BlockClose, LambdaStart,
    BinaryOperation, StringLiteral, Number, Identifier,
)
from pcode.pcode_datatypes import UnterminatedString, LexError

BO, BC = BlockOpen(), BlockClose()
SCOPE = BlockOpen(scope=True)


# Test cases: (id, source, expected tokens)
TOKEN_CASES = [
    ("sum", "3+2", [BO, BO, Number(3.0), BinaryOperation("+"), Number(2.0), BC, BC]),
    ("assign", "x <- 5", [BO, BO, Identifier("x"), StorageArrow(), BO, Number(5.0), BC, BC, BC]),
    ("blank_lines_dropped", "1\n\n2", [BO, BO, Number(1.0), BC, BO, Number(2.0), BC, BC]),
    ("newline_inside_parens", "f(1\n2)", [BO, BO, Identifier("f"), ArgsOpen(), Number(1.0), Number(2.0), ArgsClose(), BC, BC]),
    ("arrow_closed_by_paren", "f(x <- 1)", [
        BO, BO, Identifier("f"), ArgsOpen(), Identifier("x"), StorageArrow(), BO, Number(1.0), BC, ArgsClose(), BC, BC,
    ]),
    ("brace_block", "{1}", [BO, BO, SCOPE, BO, Number(1.0), BC, BC, BC, BC]),
    ("empty_arrow_dropped", "x <-", [BO, BO, Identifier("x"), StorageArrow(), BC, BC]),
    ("underscore_number_is_identifier", "1_000", [BO, BO, Identifier("1_000"), BC, BC]),
    ("less_than", "1 < 2", [BO, BO, Number(1.0), LessThan(), Number(2.0), BC, BC]),
    ("operator_words", "a MOD b AND c OR d", [
        BO, BO, Identifier("a"), BinaryOperation("MOD"), Identifier("b"), BinaryOperation("AND"),
        Identifier("c"), BinaryOperation("OR"), Identifier("d"), BC, BC,
    ]),
    ("lambda", "LAMBDA 3", [BO, BO, LambdaStart(), Number(3.0), BC, BC]),
    ("decimal", "2.75", [BO, BO, Number(2.75), BC, BC]),
    ("digit_led_identifier", "3.x", [BO, BO, Identifier("3.x"), BC, BC]),
    ("string", '"hi there"', [BO, BO, StringLiteral("hi there"), BC, BC]),
    ("multiline_string", '"a\nb"', [BO, BO, StringLiteral("a\nb"), BC, BC]),
    ("comparison_ops", "1 = 2 > 3 ^ 4", [
        BO, BO, Number(1.0), BinaryOperation("="), Number(2.0), BinaryOperation(">"),
        Number(3.0), BinaryOperation("^"), Number(4.0), BC, BC,
    ]),
    ("empty", "", [BO, BC]),
]

@pytest.mark.parametrize("source, expected", [c[1:] for c in TOKEN_CASES], ids=[c[0] for c in TOKEN_CASES])
def test_tokenize(source, expected):
    assert tokenize(source) == expected


def test_token_positions_are_one_based():
    tokens = tokenize("x <- 5\n  y")
    ident_y = [t for t in tokens if isinstance(t, Identifier) and t.name == "y"][0]
    assert (ident_y.line, ident_y.col) == (2, 3)
    arrow = [t for t in tokens if isinstance(t, StorageArrow)][0]
    assert arrow.loc == {'line': 1, 'col': 3}


def test_positions_do_not_affect_equality():
    assert Identifier("a", line=1, col=1) == Identifier("a", line=9, col=4)
    assert Identifier("a") != Identifier("b")


def test_unknown_characters_are_skipped_with_diagnostics():
    lexer = Lexer("1 # 2")
    tokens = lexer.tokenize()
    assert tokens == [BO, BO, Number(1.0), Number(2.0), BC, BC]
    assert lexer.diagnostics == [("ignoring '#'", 1, 3)]


def test_unterminated_string_reports_opening_quote():
    with pytest.raises(UnterminatedString) as exc:
        tokenize('x <- "abc')
    assert isinstance(exc.value, LexError)
    assert (exc.value.line, exc.value.col) == (1, 6)
    assert exc.value.message == "unterminated string literal"


def test_nested_braces_close_their_own_statements():
    tokens = tokenize("{\nx <- 1\n}\nx")
    # program, statement, the scoped brace, then the assignment statement inside it
    assert tokens[:4] == [BO, BO, SCOPE, BO]
    opens = sum(isinstance(t, BlockOpen) for t in tokens)
    assert opens == tokens.count(BC)
