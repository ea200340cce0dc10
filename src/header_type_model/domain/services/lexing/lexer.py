#!/usr/bin/env python3

"""Lexer for the declaration subset.

Comments are kept as trivia on the following token so the parser can read
trailing offset annotations. Preprocessor directives (``#pragma once``,
``#include``...) are consumed and dropped.
"""

from ....infrastructure.logging import get_logger
from ...errors import LexError
from .tokens import PUNCTUATORS, SINGLE_PUNCTUATORS, Comment, CommentKind, Token, TokenKind

logger = get_logger(__name__)


class Lexer:
    """Best-effort tokenizer; only unterminated literals and comments are fatal."""

    def __init__(self, source: str, filename: str = "<input>"):
        self.source = source
        self.filename = filename
        self.pos = 0
        self.line = 1
        self.column = 1
        self.tokens: list[Token] = []
        self._pending_comments: list[Comment] = []

    def tokenize(self) -> list[Token]:
        """Tokenize the whole source.

        Returns:
            Token list terminated by an EOF token (which carries any trailing comments)

        Raises:
            LexError: On an unterminated string, character literal or block comment
        """
        while self.pos < len(self.source):
            self._skip_whitespace_and_comments()
            if self.pos >= len(self.source):
                break

            ch = self._peek()

            if ch == "#" and self._at_line_start():
                self._skip_directive()
            elif ch == '"':
                self._read_string()
            elif ch == "'":
                self._read_character()
            elif ch.isdigit() or (ch == "." and self._peek(1).isdigit()):
                self._read_number()
            elif ch.isalpha() or ch == "_":
                self._read_identifier()
            else:
                self._read_punctuation()

        self._emit(TokenKind.EOF, "", self.line, self.column)
        logger.debug(f"Lexed {len(self.tokens)} tokens from {self.filename}")
        return self.tokens

    # --- Character helpers ---

    def _peek(self, offset: int = 0) -> str:
        pos = self.pos + offset
        if pos < len(self.source):
            return self.source[pos]
        return "\0"

    def _advance(self) -> str:
        ch = self.source[self.pos]
        self.pos += 1
        if ch == "\n":
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        return ch

    def _at_line_start(self) -> bool:
        i = self.pos - 1
        while i >= 0 and self.source[i] in (" ", "\t"):
            i -= 1
        return i < 0 or self.source[i] == "\n"

    def _emit(self, kind: TokenKind, value: str, line: int, column: int) -> None:
        self.tokens.append(Token(kind, value, line, column, self._pending_comments))
        self._pending_comments = []

    # --- Whitespace, comments and directives ---

    def _skip_whitespace_and_comments(self) -> None:
        while self.pos < len(self.source):
            ch = self._peek()
            if ch in (" ", "\t", "\n", "\r", "\f", "\v"):
                self._advance()
            elif ch == "/" and self._peek(1) == "/":
                self._read_line_comment()
            elif ch == "/" and self._peek(1) == "*":
                self._read_block_comment()
            else:
                break

    def _read_line_comment(self) -> None:
        line, column = self.line, self.column
        self._advance()  # /
        self._advance()  # /
        start = self.pos
        while self.pos < len(self.source) and self._peek() != "\n":
            self._advance()
        text = self.source[start : self.pos].rstrip("\r")
        self._pending_comments.append(Comment(CommentKind.LINE, text, line, column))

    def _read_block_comment(self) -> None:
        line, column = self.line, self.column
        self._advance()  # /
        self._advance()  # *
        start = self.pos
        while self.pos < len(self.source):
            if self._peek() == "*" and self._peek(1) == "/":
                text = self.source[start : self.pos]
                self._advance()
                self._advance()
                self._pending_comments.append(Comment(CommentKind.BLOCK, text, line, column))
                return
            self._advance()
        raise LexError("Unterminated block comment", line, column)

    def _skip_directive(self) -> None:
        line = self.line
        start = self.pos
        while self.pos < len(self.source):
            if self._peek() == "\\" and self._peek(1) == "\n":
                self._advance()
                self._advance()
            elif self._peek() == "\n":
                break
            else:
                self._advance()
        logger.debug(f"{self.filename}:{line}: skipped directive {self.source[start:self.pos]!r}")

    # --- Literals ---

    def _read_quoted(self, quote: str, what: str) -> str:
        line, column = self.line, self.column
        self._advance()  # opening quote
        chars: list[str] = []
        while self.pos < len(self.source):
            ch = self._peek()
            if ch == "\n":
                break
            if ch == "\\":
                self._advance()
                if self.pos >= len(self.source):
                    break
                chars.append(_unescape(self._advance()))
                continue
            self._advance()
            if ch == quote:
                return "".join(chars)
            chars.append(ch)
        raise LexError(f"Unterminated {what}", line, column)

    def _read_string(self) -> None:
        line, column = self.line, self.column
        value = self._read_quoted('"', "string literal")
        self._emit(TokenKind.STRING, value, line, column)

    def _read_character(self) -> None:
        line, column = self.line, self.column
        value = self._read_quoted("'", "character literal")
        self._emit(TokenKind.CHARACTER, value, line, column)

    def _read_number(self) -> None:
        line, column = self.line, self.column
        start = self.pos
        is_float = False

        if self._peek() == "0" and self._peek(1) in ("x", "X", "b", "B"):
            self._advance()
            self._advance()
            while self._peek().isalnum() or self._peek() == "'":
                self._advance()
        else:
            while self._peek().isdigit() or self._peek() == "'":
                self._advance()
            if self._peek() == "." and self._peek(1) != ".":
                is_float = True
                self._advance()
                while self._peek().isdigit():
                    self._advance()
            if self._peek() in ("e", "E") and (
                self._peek(1).isdigit() or (self._peek(1) in "+-" and self._peek(2).isdigit())
            ):
                is_float = True
                self._advance()
                if self._peek() in "+-":
                    self._advance()
                while self._peek().isdigit():
                    self._advance()
            # Suffixes (u, l, ll, f...)
            while self._peek().isalpha():
                if self._peek() in ("f", "F"):
                    is_float = True
                self._advance()

        value = self.source[start : self.pos].replace("'", "")
        self._emit(TokenKind.FLOAT if is_float else TokenKind.INTEGER, value, line, column)

    # --- Identifiers and punctuation ---

    def _read_identifier(self) -> None:
        line, column = self.line, self.column
        start = self.pos
        while self.pos < len(self.source) and (self._peek().isalnum() or self._peek() == "_"):
            self._advance()
        self._emit(TokenKind.IDENTIFIER, self.source[start : self.pos], line, column)

    def _read_punctuation(self) -> None:
        line, column = self.line, self.column
        for punct in PUNCTUATORS:
            if self.source.startswith(punct, self.pos):
                for _ in punct:
                    self._advance()
                self._emit(TokenKind.PUNCTUATION, punct, line, column)
                return

        ch = self._advance()
        if ch not in SINGLE_PUNCTUATORS:
            logger.debug(f"{self.filename}:{line}:{column}: unexpected character {ch!r}")
        self._emit(TokenKind.PUNCTUATION, ch, line, column)


_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "0": "\0", "\\": "\\", "'": "'", '"': '"'}


def _unescape(ch: str) -> str:
    return _ESCAPES.get(ch, ch)


def tokenize(source: str, filename: str = "<input>") -> list[Token]:
    """Convenience wrapper around ``Lexer(source, filename).tokenize()``."""
    return Lexer(source, filename).tokenize()
