#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set, Tuple

from cb_context import BuildContext
from cb_lexer import Comment, Lexer, Token, TokenKind
from cb_logger import BuildTimer
from cb_paths import find_js_files
from cb_source import SourceUnit, read_source_text, unit_from_tokens


# Reserved words never start a namespace reference: `this.a.b` and
# `return a.b` are not uses of `this` / `return`.
JS_KEYWORDS = {
    "break", "case", "catch", "class", "const", "continue", "debugger", "default", "delete",
    "do", "else", "export", "extends", "false", "finally", "for", "function", "if", "import",
    "in", "instanceof", "let", "new", "null", "return", "super", "switch", "this", "throw",
    "true", "try", "typeof", "var", "void", "while", "with", "yield", "await", "of",
}

# JSDoc tags whose first word is a type expression.
TYPED_JSDOC_TAGS = {
    "@const", "@define", "@extends", "@enum", "@implements", "@lends", "@param",
    "@private", "@protected", "@return", "@this", "@type", "@typedef",
}

_DOC_LINE_PREFIX_RE = re.compile(r"^[ \t]*\* ?", re.MULTILINE)
_TYPE_SEPARATOR_RE = re.compile(r" *[|,/] *")


# ==========================
# JSDoc types
# ==========================

def parse_tag_types(text: str) -> List[str]:
    return _TYPE_SEPARATOR_RE.split(text.replace("{", "").replace("}", "").strip())


def get_types_from_tag(tag: str) -> List[str]:
    parts = re.split(r" +", tag)
    if parts[0] in TYPED_JSDOC_TAGS:
        return parse_tag_types(parts[1] if len(parts) > 1 else "")
    return []


def get_jsdoc_types(jsdoc: str) -> List[str]:
    """Type expressions named by the typed tags of a JSDoc body (text between /* and */)."""
    text = _DOC_LINE_PREFIX_RE.sub("", jsdoc)
    types: List[str] = []
    for tag in text.split("@")[1:]:
        types.extend(get_types_from_tag("@" + re.sub(r"\s", " ", tag, count=1)))
    return types


def is_jsdoc(comment: Comment) -> bool:
    return comment.is_block and re.match(r"\*[^*]", comment.text) is not None


# ==========================
# Identifiers used in code
# ==========================

def _is_dot(token: Token) -> bool:
    return token.kind is TokenKind.PUNCT and token.text == "."


def get_file_ids(tokens: Sequence[Token]) -> List[str]:
    """
    Dotted identifier chains used in a token stream, in first-use order.

    `a.b.prototype.c` counts as `a.b`. Chains that start with a keyword or
    hang off another expression (`f().a.b`) are not namespace references.
    """
    ids: List[str] = []
    seen: Set[str] = set()
    i = 0
    n = len(tokens)
    while i < n:
        tok = tokens[i]
        if tok.kind is not TokenKind.IDENT or (i > 0 and _is_dot(tokens[i - 1])):
            i += 1
            continue

        parts = [tok.text]
        j = i + 1
        while j + 1 < n and _is_dot(tokens[j]) and tokens[j + 1].kind is TokenKind.IDENT:
            parts.append(tokens[j + 1].text)
            j += 2
        i = j

        if parts[0] in JS_KEYWORDS:
            continue
        if "prototype" in parts:
            parts = parts[:parts.index("prototype")]
        full_id = ".".join(parts)
        if full_id and full_id not in seen:
            seen.add(full_id)
            ids.append(full_id)
    return ids


def match_namespace(identifier: str, provides: Sequence[str]) -> Optional[str]:
    """The first provide that identifier lives under (provides are tried in the given order)."""
    for provide in provides:
        if identifier == provide:
            return provide
        if identifier.startswith(provide) and re.match(r"[^\w$]", identifier[len(provide)]):
            return provide
    return None


def match_type_namespace(type_expr: str, provides: Sequence[str]) -> Optional[str]:
    """The first provide named as a whole word inside a JSDoc type expression."""
    padded = f" {type_expr} "
    for provide in provides:
        if re.search(r"[^A-Za-z0-9_.$]" + re.escape(provide) + r"[^A-Za-z0-9_$]", padded):
            return provide
    return None


# ==========================
# Checker
# ==========================

@dataclass
class CheckedSource:
    """A source file with the parts of its syntax the checker needs."""
    unit: SourceUnit
    tokens: List[Token]
    comments: List[Comment]


@dataclass
class RequireCheckResult:
    missing_requires_map: Dict[str, List[str]] = field(default_factory=dict)
    unnecessary_requires_map: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.missing_requires_map and not self.unnecessary_requires_map

    def format(self) -> str:
        lines = [f"Missing requires: {len(self.missing_requires_map)}"]
        for path in sorted(self.missing_requires_map):
            lines.append(path)
            lines.extend("\t" + ns for ns in self.missing_requires_map[path])
        if self.missing_requires_map:
            lines.append("")

        lines.append(f"Unnecessary requires: {len(self.unnecessary_requires_map)}")
        for path in sorted(self.unnecessary_requires_map):
            lines.append(path)
            lines.extend("\t" + ns for ns in self.unnecessary_requires_map[path])
        return "\n".join(lines)


def read_checked_source(path: str | Path) -> CheckedSource:
    path, text = read_source_text(path)
    lexer = Lexer(text, filename=str(path))
    tokens = lexer.tokenize()
    return CheckedSource(
        unit=unit_from_tokens(str(path), tokens, lexer.comments),
        tokens=tokens,
        comments=lexer.comments,
    )


class RequireChecker:
    """
    Finds missing and unnecessary goog.require() calls.

    A namespace is used by a file when a dotted identifier of its code lives
    under that namespace, or (for requires only) when a JSDoc type names it.
    Namespaces are matched against every provide of the checked files and
    the extern files, longest first.
    """

    def __init__(
        self,
        js_files: Sequence[str],
        extern_files: Optional[Sequence[str]] = None,
        exclude_provides: Optional[Sequence[str]] = None,
        context: Optional[BuildContext] = None,
    ):
        self.js_files = list(js_files)
        self.extern_files = list(extern_files or [])
        self.exclude_provides = list(exclude_provides or [])
        self.context = context or BuildContext.default()

    def _read_sources(self, locators: Sequence[str]) -> List[CheckedSource]:
        sources: List[CheckedSource] = []
        seen: Set[Path] = set()
        for locator in locators:
            for path in find_js_files(locator, ignore_hidden=not self.context.scan_hidden):
                if path not in seen:
                    seen.add(path)
                    sources.append(read_checked_source(path))
        return sources

    def get_known_provides(self, sources: Sequence[CheckedSource]) -> List[str]:
        provides = {ns for source in sources for ns in source.unit.provides}
        provides.difference_update(self.exclude_provides)
        # Reverse order puts 'a.b.c' before 'a.b'.
        return sorted(provides, reverse=True)

    @staticmethod
    def get_wrong_requires_in_file(source: CheckedSource, provides: Sequence[str]) -> Tuple[List[str], List[str]]:
        """(missing requires, unnecessary requires) of one file, each sorted."""
        used: Set[str] = set()
        for identifier in get_file_ids(source.tokens):
            provide = match_namespace(identifier, provides)
            if provide is not None:
                used.add(provide)

        doc_used: Set[str] = set()
        for comment in source.comments:
            if not is_jsdoc(comment):
                continue
            for type_expr in get_jsdoc_types(comment.text):
                provide = match_type_namespace(type_expr, provides)
                if provide is not None:
                    doc_used.add(provide)

        declared = set(source.unit.provides) | set(source.unit.requires)
        missing = sorted(ns for ns in used if ns not in declared)
        unnecessary = sorted(ns for ns in source.unit.requires if ns not in used and ns not in doc_used)
        return missing, unnecessary

    def get_wrong_requires(self) -> RequireCheckResult:
        timer = BuildTimer(self.context)
        timer.start()

        sources = self._read_sources(self.js_files)
        extern_sources = self._read_sources(self.extern_files) if self.extern_files else []
        timer.tick("Search sources by JS files")

        provides = self.get_known_provides(sources + extern_sources)

        result = RequireCheckResult()
        for source in sources:
            missing, unnecessary = self.get_wrong_requires_in_file(source, provides)
            if missing:
                result.missing_requires_map[source.unit.path] = missing
            if unnecessary:
                result.unnecessary_requires_map[source.unit.path] = unnecessary

        timer.tick("Wrong requires found.")
        timer.total("Total time. Requires checked.")
        return result
