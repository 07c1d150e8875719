"""Tokenizer tests."""

from pathlib import Path

import pytest
from conftest import check_expected_error, discover_tests

from rayc.errors import TokenizeError
from rayc.tokens import TK_ENDL, TK_EOF, TK_IDENT, TK_STRING, Token, tokenize

TOKENS_DIR = Path(__file__).parent / "01_tokens"


def render(tokens: list[Token]) -> str:
    return "\n".join(f"{tok.type} {tok.value!r}" for tok in tokens)


@pytest.mark.parametrize("source,expected", discover_tests(TOKENS_DIR))
def test_tokenize(source: str, expected: str):
    """Verify the token listing for each case file entry."""
    if expected.startswith("error:"):
        with pytest.raises(TokenizeError) as exc_info:
            tokenize(source)
        check_expected_error(exc_info.value, expected)
        return
    assert render(tokenize(source)) == expected


def test_positions_are_one_based():
    tokens = tokenize("func main()\n  x")
    main = tokens[1]
    assert (main.value, main.position, main.line, main.col) == ("main", 5, 1, 6)
    endl = tokens[4]
    assert endl.type == TK_ENDL
    assert (endl.position, endl.line, endl.col) == (11, 1, 12)
    x = tokens[5]
    assert (x.type, x.position, x.line, x.col) == (TK_IDENT, 14, 2, 3)


def test_eof_is_last_and_unique():
    tokens = tokenize("a b")
    assert tokens[-1].type == TK_EOF
    assert [t.type for t in tokens].count(TK_EOF) == 1


def test_empty_source():
    tokens = tokenize("")
    assert len(tokens) == 1
    assert tokens[0].type == TK_EOF
    assert (tokens[0].line, tokens[0].col) == (1, 1)


def test_block_comment_advances_lines():
    tokens = tokenize("/* a\nb */ x")
    x = tokens[-2]
    assert x.value == "x"
    assert (x.line, x.col) == (2, 6)


def test_string_spanning_lines():
    tokens = tokenize('"a\nb" c')
    assert tokens[0].type == TK_STRING
    assert tokens[0].value == "a\nb"
    c = tokens[1]
    assert (c.value, c.line, c.col) == ("c", 2, 4)


def test_multiline_flag_only_on_comments():
    tokens = tokenize("x // a\n/* b */")
    flags = {tok.type: tok.multiline for tok in tokens}
    assert flags["IDENTIFIER"] is None
    assert flags["COMMENT"] is False
    assert flags["OPEN_COMMENT"] is True


def test_escapes():
    tokens = tokenize(r'"\t\0\\\""')
    assert tokens[0].value == '\t\0\\"'


def test_tokens_are_immutable():
    tok = tokenize("x")[0]
    with pytest.raises(AttributeError):
        tok.value = "y"  # type: ignore[misc]


def test_repr():
    tok = tokenize("\n  main")[1]
    assert repr(tok) == "Token(IDENTIFIER, 'main', 2, 3)"


def test_error_location():
    with pytest.raises(TokenizeError) as exc_info:
        tokenize("a\n  #")
    assert (exc_info.value.line, exc_info.value.col) == (2, 3)
    assert exc_info.value.msg == "unexpected character '#'"
