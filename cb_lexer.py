#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from dataclasses import dataclass
from enum import Enum, auto
from typing import List, Optional

from cb_errors import SourceScanError


# ==========================
# Tokens and lexer
# ==========================

class TokenKind(Enum):
    # Special
    EOF = auto()

    IDENT = auto()  # identifier or keyword, e.g. goog, provide, return
    NUMBER = auto()  # numeric literal, e.g. 42, 0x1F, 1e3
    STRING = auto()  # '...' or "..." literal, text is the unquoted body
    TEMPLATE = auto()  # `...` literal, text is the raw body
    REGEX = auto()  # /.../flags literal
    PUNCT = auto()  # ++, -- or any other single character: ( ) . , ; = etc.


# Keywords after which a '/' starts a regular expression, not a division.
REGEX_PRECEDING_KEYWORDS = {
    "return", "typeof", "instanceof", "in", "of", "new", "delete", "void",
    "throw", "case", "do", "else", "yield", "await",
}

# Punctuation after which a '/' is a division operator. A ')' closing an
# if/while/for/with header is the exception, see Lexer._regex_allowed.
DIVISION_PRECEDING_PUNCT = {")", "]", "}", "++", "--"}

# Keywords whose parenthesized header is followed by a statement.
HEADER_KEYWORDS = {"if", "while", "for", "with"}


@dataclass
class Token:
    kind: TokenKind
    text: str
    line: int
    column: int

    def __repr__(self) -> str:
        return f"{self.text!r}" if self.kind != TokenKind.EOF else "end-of-file"


@dataclass
class Comment:
    text: str  # body without the comment delimiters
    is_block: bool
    line: int
    column: int


def _is_ident_start(c: str) -> bool:
    return c.isalpha() or c in ("_", "$")


def _is_ident_part(c: str) -> bool:
    return c.isalnum() or c in ("_", "$")


class Lexer:
    """
    JavaScript tokenizer, sufficient to find namespace declarations.

    It recognizes identifiers, strings, template and regex literals, numbers
    and comments so that a `goog.require('x')` inside a comment or a string
    is never mistaken for a real one. It does not validate the grammar.
    """

    def __init__(self, source: str, filename: str = "<input>") -> None:
        self.source = source
        self.filename = filename
        self.length = len(source)
        self.index = 0
        self.line = 1
        self.column = 1
        self.comments: List[Comment] = []
        self._last: Optional[Token] = None
        # One entry per open '(': True when it opens a statement header.
        self._paren_stack: List[bool] = []
        self._closed_header = False

    @classmethod
    def from_source(cls, source: str) -> "Lexer":
        return cls(source)

    # --- low-level char utilities ---

    def _at_end(self) -> bool:
        return self.index >= self.length

    def _peek(self) -> str:
        if self._at_end():
            return "\0"
        return self.source[self.index]

    def _peek_next(self) -> str:
        if self.index + 1 >= self.length:
            return "\0"
        return self.source[self.index + 1]

    def _advance(self) -> str:
        c = self._peek()
        if not self._at_end():
            self.index += 1
            if c == "\n":
                self.line += 1
                self.column = 1
            else:
                self.column += 1
        return c

    def _error(self, code: str, message: str, line: int, column: int) -> SourceScanError:
        return SourceScanError(message, code=code, filename=self.filename, line=line, column=column)

    # --- main API ---

    def tokenize(self) -> List[Token]:
        tokens: List[Token] = []
        self._skip_shebang()
        while True:
            tok = self._next_token()
            tokens.append(tok)
            if tok.kind is TokenKind.EOF:
                break
            self._last = tok
        return tokens

    def _next_token(self) -> Token:
        self._skip_ws_and_comments()
        start_line, start_col = self.line, self.column

        if self._at_end():
            return Token(TokenKind.EOF, "", start_line, start_col)

        c = self._advance()

        if _is_ident_start(c):
            ident = [c]
            while _is_ident_part(self._peek()):
                ident.append(self._advance())
            return Token(TokenKind.IDENT, "".join(ident), start_line, start_col)

        if c.isdigit() or (c == "." and self._peek().isdigit()):
            digits = [c]
            while _is_ident_part(self._peek()) or self._peek() == ".":
                digits.append(self._advance())
            return Token(TokenKind.NUMBER, "".join(digits), start_line, start_col)

        if c in ("'", '"'):
            text = self._read_string_literal(c, start_line, start_col)
            return Token(TokenKind.STRING, text, start_line, start_col)

        if c == "`":
            text = self._read_template_literal(start_line, start_col)
            return Token(TokenKind.TEMPLATE, text, start_line, start_col)

        if c == "/" and self._regex_allowed():
            text = self._read_regex_literal(start_line, start_col)
            return Token(TokenKind.REGEX, text, start_line, start_col)

        if c in ("+", "-") and self._peek() == c:
            self._advance()
            return Token(TokenKind.PUNCT, c + c, start_line, start_col)

        if c == "(":
            last = self._last
            self._paren_stack.append(
                last is not None and last.kind is TokenKind.IDENT and last.text in HEADER_KEYWORDS
            )
        elif c == ")":
            self._closed_header = self._paren_stack.pop() if self._paren_stack else False

        return Token(TokenKind.PUNCT, c, start_line, start_col)

    def _regex_allowed(self) -> bool:
        last = self._last
        if last is None:
            return True
        if last.kind is TokenKind.PUNCT:
            if last.text == ")":
                return self._closed_header
            return last.text not in DIVISION_PRECEDING_PUNCT
        if last.kind is TokenKind.IDENT:
            return last.text in REGEX_PRECEDING_KEYWORDS
        return False

    def _read_string_literal(self, quote: str, start_line: int, start_col: int) -> str:
        chars: List[str] = []
        while True:
            ch = self._peek()

            if self._at_end() or ch == "\n":
                raise self._error("SRC-0010", "unterminated string literal", start_line, start_col)
            if ch == "\\":
                self._advance()
                esc = self._advance()
                if esc == "\n":
                    continue  # line continuation
                chars.append(esc)
                continue
            if ch == quote:
                self._advance()
                break

            chars.append(self._advance())

        return "".join(chars)

    def _read_template_literal(self, start_line: int, start_col: int) -> str:
        chars: List[str] = []
        # Brace depth inside ${...} substitutions.
        depth = 0
        while True:
            if self._at_end():
                raise self._error("SRC-0030", "unterminated template literal", start_line, start_col)
            ch = self._advance()
            if ch == "\\":
                chars.append(ch)
                chars.append(self._advance())
                continue
            if depth == 0 and ch == "`":
                break
            if ch == "$" and self._peek() == "{":
                chars.append(ch)
                chars.append(self._advance())
                depth += 1
                continue
            if ch == "{" and depth > 0:
                depth += 1
            elif ch == "}" and depth > 0:
                depth -= 1
            chars.append(ch)
        return "".join(chars)

    def _read_regex_literal(self, start_line: int, start_col: int) -> str:
        chars: List[str] = ["/"]
        in_class = False
        while True:
            ch = self._peek()
            if self._at_end() or ch == "\n":
                raise self._error("SRC-0040", "unterminated regular expression literal", start_line, start_col)
            chars.append(self._advance())
            if ch == "\\":
                chars.append(self._advance())
            elif ch == "[":
                in_class = True
            elif ch == "]":
                in_class = False
            elif ch == "/" and not in_class:
                break
        while _is_ident_part(self._peek()):
            chars.append(self._advance())
        return "".join(chars)

    def _skip_shebang(self) -> None:
        if self._peek() == "#" and self._peek_next() == "!":
            while self._peek() not in ("\n", "\0"):
                self._advance()

    def _skip_ws_and_comments(self) -> None:
        while True:
            c = self._peek()
            if not self._at_end() and c.isspace():
                self._advance()
                continue
            if c == "/" and self._peek_next() == "/":
                # line comment
                start_line, start_col = self.line, self.column
                self._advance()  # '/'
                self._advance()  # second '/'
                body: List[str] = []
                while not self._at_end() and self._peek() != "\n":
                    body.append(self._advance())
                self.comments.append(Comment("".join(body), False, start_line, start_col))
                continue
            if c == "/" and self._peek_next() == "*":
                # block comment
                start_line, start_col = self.line, self.column
                self._advance()  # '/'
                self._advance()  # '*'
                body = []
                while True:
                    if self._at_end():
                        raise self._error("SRC-0020", "unterminated block comment", start_line, start_col)
                    if self._peek() == "*" and self._peek_next() == "/":
                        self._advance()  # '*'
                        self._advance()  # '/'
                        break
                    body.append(self._advance())
                self.comments.append(Comment("".join(body), True, start_line, start_col))
                continue
            break
