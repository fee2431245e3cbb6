#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from __future__ import annotations

import json
import re
import subprocess
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from cb_context import BuildContext
from cb_errors import CompilerError
from cb_logger import log_debug, log_info
from cb_module import ModuleNode, render_wrapper_template
from cb_module_graph import ModuleConfig, get_module_info, get_module_uris
from cb_source import SourceUnit


# Major and minor version from the first quoted version of `java -version`.
# Newer JVMs may print a bare major ("21"), in which case minor is 0.
JAVA_VERSION_RE = re.compile(r'"(\d+)(?:\.(\d+))?', re.MULTILINE)

MIN_JAVA_VERSION = (1, 6)

MODULE_WRAPPER = (
    "%source%\n"
    "//# sourceURL=%productionUri%%name%.js"
)

MODULE_WRAPPER_WITH_SCOPE = (
    "(function(%renamePrefixNamespace%){%source%})(%globalScopeName%);\n"
    "//# sourceURL=%productionUri%%name%.js"
)

ROOT_MODULE_WRAPPER = (
    "MODULE_INFO=%moduleInfo%;\n"
    "MODULE_URIS=%moduleUris%;\n"
    "MODULE_USE_DEBUG_MODE=false;\n"
    "%source%"
)

ROOT_MODULE_WRAPPER_WITH_SCOPE = (
    "MODULE_INFO=%moduleInfo%;\n"
    "MODULE_URIS=%moduleUris%;\n"
    "MODULE_USE_DEBUG_MODE=false;\n"
    "%globalScopeName%={};\n"
    "(function(%renamePrefixNamespace%){%source%})(%globalScopeName%);"
)

# Per-module source map name, expanded by the compiler itself.
MODULE_SOURCE_MAP = "%outname%.map"


def parse_java_version(version_string: str) -> Optional[Tuple[int, int]]:
    """(major, minor) from `java -version` output, e.g. '"1.8.0_292"' -> (1, 8)."""
    match = JAVA_VERSION_RE.search(version_string or "")
    if match is None:
        return None
    return int(match.group(1)), int(match.group(2) or 0)


def format_define(name: str, value: Any) -> str:
    """Value of a --define option; strings are single-quoted."""
    if isinstance(value, bool):
        text = "true" if value else "false"
    elif isinstance(value, str):
        text = f"'{value}'"
    else:
        text = str(value)
    return f"{name}={text}"


def compact_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"))


# ==========================
# Module wrappers
# ==========================

def default_module_wrapper(module: ModuleNode, global_scope_name: str) -> str:
    """Pick the built-in wrapper for a module: root or child, with or without a scope object."""
    if global_scope_name:
        return MODULE_WRAPPER_WITH_SCOPE if module.parent is not None else ROOT_MODULE_WRAPPER_WITH_SCOPE
    return MODULE_WRAPPER if module.parent is not None else ROOT_MODULE_WRAPPER


def expand_module_wrapper(
    template: str,
    module: ModuleNode,
    config: ModuleConfig,
    module_info: Dict[str, List[str]],
    module_uris: Dict[str, str],
) -> str:
    replacements = {
        "%globalScopeName%": config.global_scope_name,
        "%moduleInfo%": compact_json(module_info),
        "%moduleUris%": compact_json(module_uris),
        "%name%": module.name,
        "%productionUri%": config.production_uri,
        "%renamePrefixNamespace%": config.rename_prefix_namespace,
        "%source%": "%s",
    }
    value = template
    for placeholder, text in replacements.items():
        value = value.replace(placeholder, text)
    return value


@dataclass
class ModuleSpec:
    """The --module / --module_wrapper pair of one module."""
    flag: str
    wrapper: str


def get_module_specs(root: ModuleNode, config: ModuleConfig, builder: Any = None) -> List[ModuleSpec]:
    """Module specs for the whole tree, parents before children."""
    module_info = get_module_info(root)
    module_uris = get_module_uris(root, config.production_uri)

    specs: List[ModuleSpec] = []
    for module in root.iter_modules():
        template = render_wrapper_template(
            module.wrapper, builder, module, default_module_wrapper(module, config.global_scope_name)
        )
        value = expand_module_wrapper(template, module, config, module_info, module_uris)
        specs.append(ModuleSpec(flag=module.get_module_flag_value(), wrapper=f"{module.name}:{value}"))
    return specs


def get_module_sources(root: ModuleNode) -> List[SourceUnit]:
    """Every module's deps in --module order; module flag counts refer to this list."""
    sources: List[SourceUnit] = []
    for module in root.iter_modules():
        sources.extend(module.get_deps())
    return sources


# ==========================
# Compiler invocation
# ==========================

class ClosureCompiler:
    """
    Runs the Closure Compiler jar through `java`.

    Arguments are passed as a list, never through a shell, so paths and
    wrapper templates need no quoting.
    """

    def __init__(
        self,
        jar_path: str,
        java: str = "java",
        jvm_flags: Optional[Sequence[str]] = None,
        compiler_flags: Optional[Sequence[str]] = None,
        defines: Optional[Dict[str, Any]] = None,
        externs: Optional[Sequence[str]] = None,
        timeout: Optional[float] = None,
        context: Optional[BuildContext] = None,
    ):
        self.jar_path = jar_path
        self.java = java
        self.jvm_flags: List[str] = list(jvm_flags or [])
        self.compiler_flags: List[str] = list(compiler_flags or [])
        self.defines: Dict[str, Any] = dict(defines or {})
        self.externs: List[str] = list(externs or [])
        self.timeout = timeout
        self.context = context or BuildContext.default()

    def get_java_version(self) -> Optional[Tuple[int, int]]:
        try:
            result = subprocess.run([self.java, "-version"], capture_output=True, text=True,
                                    timeout=self.timeout)
        except (OSError, subprocess.TimeoutExpired) as e:
            raise CompilerError(f"cannot run '{self.java} -version': {e}", code="CMP-0010") from e
        # `java -version` writes to stderr.
        return parse_java_version(result.stderr or result.stdout)

    def check_java_version(self) -> None:
        version = self.get_java_version()
        log_debug(self.context, f"Java version: {version}")
        if version is None or version < MIN_JAVA_VERSION:
            raise CompilerError(
                "Closure Compiler requires Java 1.6 or higher. Please visit http://www.java.com/getjava",
                code="CMP-0010",
            )

    def get_all_compiler_flags(self) -> List[str]:
        flags: List[str] = []
        for name, value in self.defines.items():
            flags.extend(["--define", format_define(name, value)])
        for extern in self.externs:
            flags.extend(["--externs", extern])
        flags.extend(self.compiler_flags)
        return flags

    def build_args(
        self,
        sources: Sequence[SourceUnit],
        modules: Optional[Sequence[ModuleSpec]] = None,
        module_output_path_prefix: str = "",
        source_map_path: str = "",
        extra_args: Optional[Sequence[str]] = None,
    ) -> List[str]:
        args = [self.java]
        args.extend(self.jvm_flags)
        args.extend(["-jar", self.jar_path])
        args.extend(self.get_all_compiler_flags())

        for unit in sources:
            args.extend(["--js", unit.path])

        for spec in modules or []:
            args.extend(["--module", spec.flag])
            args.extend(["--module_wrapper", spec.wrapper])

        if modules and module_output_path_prefix:
            args.extend(["--module_output_path_prefix", module_output_path_prefix])

        if source_map_path:
            args.extend(["--create_source_map", source_map_path])

        args.extend(extra_args or [])
        return args

    def compile(
        self,
        sources: Sequence[SourceUnit],
        modules: Optional[Sequence[ModuleSpec]] = None,
        module_output_path_prefix: str = "",
        source_map_path: str = "",
        extra_args: Optional[Sequence[str]] = None,
    ) -> str:
        """Run the compiler and return its stdout (the compiled source in single-output mode)."""
        self.check_java_version()
        args = self.build_args(sources, modules, module_output_path_prefix, source_map_path, extra_args)
        log_info(self.context, f"Compiling with the following command: {' '.join(args)}")

        try:
            result = subprocess.run(args, capture_output=True, text=True, timeout=self.timeout)
        except subprocess.TimeoutExpired as e:
            raise CompilerError(f"compiler timed out after {self.timeout} s", code="CMP-0030") from e
        except OSError as e:
            raise CompilerError(f"cannot run compiler: {e}", code="CMP-0020") from e

        if result.returncode != 0:
            raise CompilerError(
                f"compilation failed with exit code {result.returncode}",
                code="CMP-0020",
                stderr=result.stderr or "",
            )

        if result.stderr:
            log_info(self.context, result.stderr.rstrip())
        return result.stdout
