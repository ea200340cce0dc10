#!/usr/bin/env python3

"""Lexing of the declaration subset."""

from .lexer import Lexer, tokenize
from .tokens import Comment, CommentKind, Token, TokenKind

__all__ = [
    "Comment",
    "CommentKind",
    "Lexer",
    "Token",
    "TokenKind",
    "tokenize",
]
