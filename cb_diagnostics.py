#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

import os
from dataclasses import dataclass
from typing import Optional

from cb_errors import BuildError, SourceScanError


DIAGNOSTIC_CODE_FAMILIES = {
    "SRC": [
        "SRC-0010",  # unterminated string literal
        "SRC-0020",  # unterminated block comment
        "SRC-0030",  # unterminated template literal
        "SRC-0040",  # unterminated regular expression literal
        "SRC-0050",  # source file not found or unreadable
    ],
    "DEP": [
        "DEP-0010",
        "DEP-0020",
        "DEP-0030",
    ],
    "MOD": [
        "MOD-0010",
        "MOD-0020",
        "MOD-0030",
        "MOD-0040",
        "MOD-0050",
        "MOD-0060",
        "MOD-0070",
        "MOD-0080",
    ],
    "CFG": [
        "CFG-0010",  # config file unreadable or not a JSON object
        "CFG-0020",  # modules not found
        "CFG-0030",  # wrong scope name
        "CFG-0040",  # empty output path
        "CFG-0050",  # empty production uri
        "CFG-0060",  # wrong renamePrefixNamespace
    ],
    "CMP": [
        "CMP-0010",  # unsupported or missing Java
        "CMP-0020",  # compiler exited with an error
        "CMP-0030",  # compiler timed out
    ],
}


@dataclass
class Diagnostic:
    kind: str  # "error" or "warning"
    message: str
    filename: Optional[str] = None  # file path

    # Primary location
    line: Optional[int] = None
    column: Optional[int] = None

    # Return the one-line header
    def format(self) -> str:
        loc = ""
        if self.filename is not None:
            loc += f"{os.path.abspath(str(self.filename))}"
        if self.line is not None:
            loc += f":{self.line}"
            if self.column is not None:
                loc += f":{self.column}"
        if loc:
            loc += ": "
        return f"{loc}{self.kind}: {self.message}"


def is_registered_code(code: str) -> bool:
    family = code.split("-", 1)[0]
    return code in DIAGNOSTIC_CODE_FAMILIES.get(family, [])


def diag_from_error(error: BuildError, kind: str = "error") -> Diagnostic:
    line = column = None
    if isinstance(error, SourceScanError):
        line = error.line
        column = error.column
    return Diagnostic(
        kind=kind,
        message=f"[{error.code}] {error.message}",
        filename=error.filename,
        line=line,
        column=column,
    )
