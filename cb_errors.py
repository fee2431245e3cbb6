#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

# cb_errors.py
from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional, Sequence

if TYPE_CHECKING:
    from cb_source import SourceUnit


class BuildError(Exception):
    """
    A fatal build error caused by the user's sources or configuration.

    Every build error carries a stable diagnostic code (see
    cb_diagnostics.DIAGNOSTIC_CODE_FAMILIES). Build errors are never retried:
    the first one aborts the build.
    """

    code = "BLD-9999"

    def __init__(self, message: str, *, code: str | None = None, filename: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.filename = filename

    def format(self) -> str:
        text = f"[{self.code}] {self.message}"
        if self.filename:
            return f"{self.filename}: {text}"
        return text

    def __str__(self) -> str:
        return self.format()


# --- dependency resolution ---

class DuplicateProvideError(BuildError):
    """Raised when the same namespace is provided by two different units."""
    code = "DEP-0010"

    def __init__(self, namespace: str, unit_a: "SourceUnit", unit_b: "SourceUnit"):
        super().__init__(
            f"namespace '{namespace}' provided more than once in sources: "
            f"{unit_a.path}, {unit_b.path}"
        )
        self.namespace = namespace
        self.unit_a = unit_a
        self.unit_b = unit_b


class UnknownNamespaceError(BuildError):
    """Raised when a require names a namespace nobody provides."""
    code = "DEP-0020"

    def __init__(self, namespace: str, required_by: Optional["SourceUnit"] = None):
        message = f"namespace '{namespace}' never provided"
        if required_by is not None:
            message += f"; required in {required_by.path}"
        super().__init__(message)
        self.namespace = namespace
        self.required_by = required_by


class CircularDependencyError(BuildError):
    """Raised when resolution revisits a namespace on the active traversal stack."""
    code = "DEP-0030"

    def __init__(self, path: Sequence[str]):
        super().__init__("encountered circular dependency: " + " -> ".join(path))
        self.path: List[str] = list(path)


# --- module tree shape ---

class RootModuleNotFoundError(BuildError):
    code = "MOD-0010"

    def __init__(self):
        super().__init__("root module not found: exactly one module must have no 'deps'")


class MultipleRootModulesError(BuildError):
    code = "MOD-0020"

    def __init__(self, names: Sequence[str]):
        super().__init__(
            "only one root module is allowed, found: " + ", ".join(f"'{n}'" for n in names)
        )
        self.names: List[str] = list(names)


class MissingModuleInputsError(BuildError):
    code = "MOD-0030"

    def __init__(self, module_name: str):
        super().__init__(f"module '{module_name}' has no 'inputs' field")
        self.module_name = module_name


class MalformedModuleDescriptorError(BuildError):
    code = "MOD-0040"

    def __init__(self, module_name: str, reason: str = "descriptor must be an object"):
        super().__init__(f"module '{module_name}' is malformed: {reason}")
        self.module_name = module_name
        self.reason = reason


class MissingBootstrapUnitError(BuildError):
    code = "MOD-0050"

    def __init__(self):
        super().__init__("no Closure base.js file found")


class AmbiguousBootstrapUnitError(BuildError):
    code = "MOD-0060"

    def __init__(self, paths: Sequence[str]):
        super().__init__(
            "more than one Closure base.js file found at these paths: " + ", ".join(paths)
        )
        self.paths: List[str] = list(paths)


class UnknownParentModuleError(BuildError):
    code = "MOD-0070"

    def __init__(self, module_name: str, parent_name: str):
        super().__init__(f"module '{module_name}' depends on undeclared module '{parent_name}'")
        self.module_name = module_name
        self.parent_name = parent_name


class UnreachableModulesError(BuildError):
    code = "MOD-0080"

    def __init__(self, names: Sequence[str]):
        super().__init__(
            "modules not reachable from the root module: " + ", ".join(f"'{n}'" for n in names)
        )
        self.names: List[str] = list(names)


# --- configuration, scanning, compiler ---

class ConfigError(BuildError):
    """Wrong module config file or global option."""
    code = "CFG-0010"


class SourceScanError(BuildError):
    """A source file could not be read or tokenized."""
    code = "SRC-0050"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        filename: Optional[str] = None,
        line: Optional[int] = None,
        column: Optional[int] = None,
    ):
        super().__init__(message, code=code, filename=filename)
        self.line = line
        self.column = column

    def format(self) -> str:
        text = f"[{self.code}] {self.message}"
        if self.filename and self.line is not None:
            return f"{self.filename}:{self.line}:{self.column}: {text}"
        if self.filename:
            return f"{self.filename}: {text}"
        return text


class CompilerError(BuildError):
    """The external compiler could not be run or reported a failure."""
    code = "CMP-0020"

    def __init__(self, message: str, *, code: str | None = None, stderr: str = ""):
        super().__init__(message, code=code)
        self.stderr = stderr
