#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Sequence, Tuple

from cb_errors import SourceScanError
from cb_lexer import Comment, Lexer, Token, TokenKind


# Closure's base file implicitly provides 'goog'; the flag marks it in a comment.
PROVIDE_GOOG_FLAG = "@provideGoog"
BOOTSTRAP_FILENAME = "base.js"
BOOTSTRAP_NAMESPACE = "goog"


@dataclass(frozen=True)
class SourceUnit:
    """
    One scanned source file: identity plus declared namespaces.

    Identity is the resolved path; two units with the same path compare
    equal whatever their namespace lists say.
    """
    path: str
    provides: Tuple[str, ...] = field(default=(), compare=False)
    requires: Tuple[str, ...] = field(default=(), compare=False)
    is_module: bool = field(default=False, compare=False)
    is_bootstrap: bool = field(default=False, compare=False)

    def __post_init__(self) -> None:
        # Accept any sequence, store tuples.
        object.__setattr__(self, "provides", tuple(self.provides))
        object.__setattr__(self, "requires", tuple(self.requires))

    @staticmethod
    def create(
        path: str,
        provides: Sequence[str] = (),
        requires: Sequence[str] = (),
        is_module: bool = False,
    ) -> "SourceUnit":
        """Create a unit, deriving the bootstrap flag from path and provides."""
        return SourceUnit(
            path=path,
            provides=tuple(provides),
            requires=tuple(requires),
            is_module=is_module,
            is_bootstrap=is_closure_base_file(path, provides),
        )

    def __str__(self) -> str:
        return f"Source {self.path}"


def is_closure_base_file(path: str, provides: Sequence[str]) -> bool:
    """True for Closure's base.js: named base.js and providing 'goog' first."""
    return (
        os.path.basename(path) == BOOTSTRAP_FILENAME
        and len(provides) > 0
        and provides[0] == BOOTSTRAP_NAMESPACE
    )


def has_provide_goog_flag(comments: Sequence[Comment]) -> bool:
    return any(c.is_block and PROVIDE_GOOG_FLAG in c.text for c in comments)


def extract_namespaces(tokens: Sequence[Token]) -> Tuple[List[str], List[str], bool]:
    """
    Find `goog.provide('ns')`, `goog.module('ns')` and `goog.require('ns')`
    calls in a token stream.

    Returns (provides, requires, is_module). Declarations are kept in source
    order; a namespace listed twice is kept once.
    """
    provides: List[str] = []
    requires: List[str] = []
    is_module = False

    for i in range(4, len(tokens)):
        tok = tokens[i]
        if tok.kind is not TokenKind.STRING:
            continue
        lparen, method, dot, goog = tokens[i - 1], tokens[i - 2], tokens[i - 3], tokens[i - 4]
        if not (
            lparen.kind is TokenKind.PUNCT and lparen.text == "("
            and method.kind is TokenKind.IDENT
            and dot.kind is TokenKind.PUNCT and dot.text == "."
            and goog.kind is TokenKind.IDENT and goog.text == "goog"
        ):
            continue
        # `x.goog.provide(...)` is a member of something else.
        if i >= 5 and tokens[i - 5].kind is TokenKind.PUNCT and tokens[i - 5].text == ".":
            continue

        if method.text in ("provide", "module"):
            if method.text == "module":
                is_module = True
            if tok.text not in provides:
                provides.append(tok.text)
        elif method.text == "require":
            if tok.text not in requires:
                requires.append(tok.text)

    return provides, requires, is_module


def unit_from_tokens(path: str, tokens: Sequence[Token], comments: Sequence[Comment]) -> SourceUnit:
    provides, requires, is_module = extract_namespaces(tokens)

    if has_provide_goog_flag(comments) and BOOTSTRAP_NAMESPACE not in provides:
        provides.append(BOOTSTRAP_NAMESPACE)

    return SourceUnit.create(path, provides, requires, is_module=is_module)


def scan_source_text(path: str, text: str) -> SourceUnit:
    """Build a SourceUnit from JavaScript source text."""
    lexer = Lexer(text, filename=path)
    tokens = lexer.tokenize()
    return unit_from_tokens(path, tokens, lexer.comments)


def read_source_text(path: str | Path) -> Tuple[Path, str]:
    """Resolve path and read it as UTF-8; unreadable files raise SourceScanError."""
    path = Path(path).resolve()
    try:
        return path, path.read_text(encoding="utf-8")
    except OSError as e:
        raise SourceScanError(f"cannot read source file: {e.strerror or e}", code="SRC-0050",
                              filename=str(path)) from e
    except UnicodeDecodeError as e:
        raise SourceScanError(f"source file is not valid UTF-8: {e.reason}", code="SRC-0050",
                              filename=str(path)) from e


def scan_source_file(path: str | Path) -> SourceUnit:
    """
    Read and scan one JavaScript file. The unit's identity is the absolute
    path of the file.
    """
    path, text = read_source_text(path)
    return scan_source_text(str(path), text)
