#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from cb_cache import SourceCache, save_cache
from cb_compiler import ClosureCompiler, MODULE_SOURCE_MAP, get_module_sources, get_module_specs
from cb_context import BuildContext
from cb_diagnostics import Diagnostic, diag_from_error
from cb_errors import BuildError
from cb_logger import BuildTimer, log_debug, log_stage
from cb_module import ModuleNode
from cb_module_graph import ModuleConfig, ModuleGraphBuilder, read_config_file
from cb_paths import SourceScanner
from cb_source import SourceUnit


SINGLE_MODULE_NAME = "main"


@dataclass
class BuildResult:
    """
    Outcome of a build.

    Contains:
      - root of the normalized module tree (a single 'main' module when no
        module config is used)
      - module config, when building modules
      - every scanned source unit
      - compiler output (single-output builds only)
      - diagnostics; on a fatal error root is None
    """
    root: Optional[ModuleNode] = None
    config: Optional[ModuleConfig] = None
    json_config: Optional[Dict[str, Any]] = None
    units: List[SourceUnit] = field(default_factory=list)
    output: str = ""
    diagnostics: List[Diagnostic] = field(default_factory=list)

    def has_errors(self) -> bool:
        return any(d.kind == "error" for d in self.diagnostics)

    def has_warnings(self) -> bool:
        return any(d.kind == "warning" for d in self.diagnostics)

    def get_ordered_units(self) -> List[SourceUnit]:
        """All units of the build, parents' deps before children's."""
        if self.root is None:
            return []
        return get_module_sources(self.root)

    def get_modules_deps(self) -> Dict[str, List[SourceUnit]]:
        """Each module's exclusive, ordered deps, by module name."""
        if self.root is None:
            return {}
        return {m.name: m.get_deps() for m in self.root.iter_modules()}


class BuildDriver:
    """
    Build pipeline:
      - scan sources (through the optional cache)
      - assemble the module tree (single 'main' module or module config)
      - resolve and normalize dependencies
      - optionally run the Closure Compiler

    Build errors are turned into diagnostics of the returned BuildResult.
    """

    def __init__(self, context: Optional[BuildContext] = None, cache: Optional[SourceCache] = None):
        self.context = context or BuildContext.default()
        self.cache = cache
        self.scanner = SourceScanner(cache=cache, context=self.context)
        self.timer = BuildTimer(self.context)

    # --- Public API ---

    def build_single(self, locators: Sequence[str], inputs: Sequence[str]) -> BuildResult:
        """Resolve the inputs into one ordered module named 'main'."""
        result = BuildResult()
        self.timer.start()
        try:
            result.root, result.units = self.load_single_module(locators, inputs)
        except BuildError as e:
            result.diagnostics.append(diag_from_error(e))
            return result
        finally:
            self._save_cache()

        self.timer.total("Total time. Dependencies resolved.")
        return result

    def build_modules(self, config_file: str, locators: Sequence[str]) -> BuildResult:
        """Resolve the modules of a config file into a normalized module tree."""
        result = BuildResult()
        self.timer.start()
        try:
            result.json_config = read_config_file(config_file)
            result.config = ModuleConfig.from_json(result.json_config, config_file)
            result.root, result.units = self.load_module_tree(result.config, locators)
        except BuildError as e:
            result.diagnostics.append(diag_from_error(e))
            return result
        finally:
            self._save_cache()

        self.timer.total("Total time. Modules resolved.")
        return result

    def compile(
        self,
        result: BuildResult,
        compiler: ClosureCompiler,
        source_map_path: str = "",
        extra_args: Optional[Sequence[str]] = None,
    ) -> BuildResult:
        """
        Run the compiler over a resolved build. Single-output builds keep
        the compiled source in result.output; module builds write one file
        per module under the config's output path.
        """
        if result.root is None or result.has_errors():
            return result

        log_stage(self.context, "Compiling")
        try:
            if result.config is None:
                result.output = compiler.compile(
                    result.get_ordered_units(),
                    source_map_path=source_map_path,
                    extra_args=extra_args,
                )
            else:
                Path(os.path.dirname(result.config.output_path_prefix)).mkdir(parents=True, exist_ok=True)
                compiler.compile(
                    result.get_ordered_units(),
                    modules=get_module_specs(result.root, result.config, self),
                    module_output_path_prefix=result.config.output_path_prefix,
                    source_map_path=MODULE_SOURCE_MAP if source_map_path else "",
                    extra_args=extra_args,
                )
        except BuildError as e:
            result.diagnostics.append(diag_from_error(e))
            return result

        self.timer.tick("JavaScript compilation succeeded.")
        return result

    # --- Pipeline stages (raise BuildError) ---

    def scan(self, locators: Sequence[str]) -> List[SourceUnit]:
        log_stage(self.context, "Scanning sources")
        units = self.scanner.scan(locators)
        self.timer.tick(f"{len(units)} sources scanned.")
        return units

    def load_single_module(self, locators: Sequence[str], inputs: Sequence[str]):
        units = self.scan(list(locators) + list(inputs))
        input_units = self.scanner.scan(inputs)

        log_stage(self.context, "Building dependency tree")
        root = ModuleNode(SINGLE_MODULE_NAME, None, units, input_units)
        root.build()
        log_debug(self.context, f"Module '{root.name}' has {len(root.deps)} source(s)")
        self.timer.tick("Dependencies resolved.")
        return root, units

    def load_module_tree(self, config: ModuleConfig, locators: Sequence[str]):
        module_inputs = [p for raw in config.modules.values() for p in raw.inputs]
        units = self.scan(list(locators) + module_inputs)

        log_stage(self.context, "Building module tree")
        root = ModuleGraphBuilder(self.scanner, self.context).build_tree(config.modules, units)
        root.build()
        for module in root.iter_modules():
            log_debug(self.context, f"Module '{module.name}': {module.get_module_flag_value()}")
        self.timer.tick("Module dependencies normalized.")
        return root, units

    def _save_cache(self) -> None:
        save_cache(self.cache, self.context)
