"""Ray tokenizer — lexes source into a flat token list.

Comments are kept in the stream: `//` yields COMMENT, TEXT, ENDL and block
comments yield OPEN_COMMENT followed by one TEXT per non-empty line, with
ENDL between lines. The parser uses line ends and comment openers as
statement terminators.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .errors import TokenizeError

LOGGER = logging.getLogger("rayc.tokens")

# Token type constants
TK_IDENT = "IDENTIFIER"
TK_KEYWORD = "KEYWORD"
TK_NUMBER = "NUMBER"
TK_STRING = "STRING"
TK_OP = "OPERATOR"
TK_SEP = "SEPARATOR"
TK_COMMENT = "COMMENT"
TK_OPEN_COMMENT = "OPEN_COMMENT"
TK_TEXT = "TEXT"
TK_ENDL = "ENDL"
TK_EOF = "EOF"

KEYWORDS: set[str] = {
    "exit",
    "extern",
    "func",
    "import",
    "return",
    "var",
}

# Sorted by length descending for greedy matching
OPERATORS: list[str] = [
    "==",
    "=>",
    "+",
    "-",
    "*",
    "/",
    "=",
]

SEPARATORS: set[str] = {"(", ")", "{", "}", ";", ",", ":", "?"}

LINE_COMMENT = "//"
BLOCK_COMMENT = "/*"
DOC_COMMENT = "/**"
BLOCK_COMMENT_END = "*/"

ESCAPE_MAP: dict[str, str] = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "\\": "\\",
    '"': '"',
    "'": "'",
    "0": "\0",
}


@dataclass(frozen=True)
class Token:
    """A token with type, value, and position (offset plus 1-based line/col)."""

    type: str
    value: str
    position: int
    line: int
    col: int
    multiline: bool | None = None

    def __repr__(self) -> str:
        return (
            "Token("
            + self.type
            + ", "
            + repr(self.value)
            + ", "
            + str(self.line)
            + ", "
            + str(self.col)
            + ")"
        )


def _is_digit(c: str) -> bool:
    return c >= "0" and c <= "9"


def _is_alpha(c: str) -> bool:
    return (c >= "a" and c <= "z") or (c >= "A" and c <= "Z") or c == "_"


def _is_alnum(c: str) -> bool:
    return _is_alpha(c) or _is_digit(c)


def _block_comment(
    source: str, pos: int, line: int, col: int, opener: str, tokens: list[Token]
) -> tuple[int, int, int]:
    """Lex a block comment starting at pos. Returns (pos, line, col) after it."""
    tokens.append(Token(TK_OPEN_COMMENT, opener, pos, line, col, True))
    start_line = line
    start_col = col
    pos += len(opener)
    col += len(opener)
    end = source.find(BLOCK_COMMENT_END, pos)
    if end == -1:
        raise TokenizeError("unterminated block comment", start_line, start_col)
    body_lines = source[pos:end].split("\n")
    last = len(body_lines) - 1
    for i, text in enumerate(body_lines):
        if text != "":
            tokens.append(Token(TK_TEXT, text, pos, line, col, True))
        pos += len(text)
        col += len(text)
        if i < last:
            tokens.append(Token(TK_ENDL, "ENDL", pos, line, col))
            pos += 1
            line += 1
            col = 1
    return end + len(BLOCK_COMMENT_END), line, col + len(BLOCK_COMMENT_END)


def tokenize(source: str) -> list[Token]:
    """Tokenize Ray source into a flat list ending with TK_EOF."""
    tokens: list[Token] = []
    pos = 0
    line = 1
    col = 1
    length = len(source)

    while pos < length:
        c = source[pos]

        if c == "\n":
            tokens.append(Token(TK_ENDL, "ENDL", pos, line, col))
            pos += 1
            line += 1
            col = 1
            continue

        if c == " " or c == "\t" or c == "\r":
            pos += 1
            col += 1
            continue

        # Line comment: // text
        if source.startswith(LINE_COMMENT, pos):
            tokens.append(Token(TK_COMMENT, LINE_COMMENT, pos, line, col, False))
            pos += len(LINE_COMMENT)
            col += len(LINE_COMMENT)
            end = source.find("\n", pos)
            if end == -1:
                end = length
            text = source[pos:end]
            if text != "":
                tokens.append(Token(TK_TEXT, text, pos, line, col, False))
            col += len(text)
            pos = end
            continue

        # Doc comment /** ... */, but /**/ is an empty plain comment
        if source.startswith(DOC_COMMENT, pos) and not source.startswith("/**/", pos):
            pos, line, col = _block_comment(source, pos, line, col, DOC_COMMENT, tokens)
            continue

        if source.startswith(BLOCK_COMMENT, pos):
            pos, line, col = _block_comment(source, pos, line, col, BLOCK_COMMENT, tokens)
            continue

        start_pos = pos
        start_line = line
        start_col = col

        # String literal: "...", may span lines
        if c == '"':
            pos += 1
            col += 1
            chars: list[str] = []
            while pos < length and source[pos] != '"':
                ch = source[pos]
                if ch == "\\":
                    if pos + 1 >= length:
                        raise TokenizeError(
                            "unterminated string literal", start_line, start_col
                        )
                    esc = source[pos + 1]
                    if esc not in ESCAPE_MAP:
                        raise TokenizeError("invalid escape: \\" + esc, line, col)
                    chars.append(ESCAPE_MAP[esc])
                    pos += 2
                    col += 2
                    continue
                chars.append(ch)
                pos += 1
                if ch == "\n":
                    line += 1
                    col = 1
                else:
                    col += 1
            if pos >= length:
                raise TokenizeError("unterminated string literal", start_line, start_col)
            pos += 1  # skip closing "
            col += 1
            tokens.append(Token(TK_STRING, "".join(chars), start_pos, start_line, start_col))
            continue

        if _is_alpha(c):
            while pos < length and _is_alnum(source[pos]):
                pos += 1
                col += 1
            word = source[start_pos:pos]
            if word in KEYWORDS:
                tokens.append(Token(TK_KEYWORD, word, start_pos, start_line, start_col))
            else:
                tokens.append(Token(TK_IDENT, word, start_pos, start_line, start_col))
            continue

        if _is_digit(c):
            while pos < length and _is_digit(source[pos]):
                pos += 1
                col += 1
            tokens.append(
                Token(TK_NUMBER, source[start_pos:pos], start_pos, start_line, start_col)
            )
            continue

        matched = False
        for op in OPERATORS:
            if source.startswith(op, pos):
                tokens.append(Token(TK_OP, op, start_pos, start_line, start_col))
                pos += len(op)
                col += len(op)
                matched = True
                break
        if matched:
            continue

        if c in SEPARATORS:
            tokens.append(Token(TK_SEP, c, start_pos, start_line, start_col))
            pos += 1
            col += 1
            continue

        raise TokenizeError("unexpected character '" + c + "'", line, col)

    tokens.append(Token(TK_EOF, "EOF", pos, line, col))
    LOGGER.debug("tokenized %d characters into %d tokens", length, len(tokens))
    return tokens
