#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from cb_context import BuildContext
from cb_errors import (
    ConfigError,
    MalformedModuleDescriptorError,
    MissingModuleInputsError,
    MultipleRootModulesError,
    RootModuleNotFoundError,
    UnknownParentModuleError,
    UnreachableModulesError,
)
from cb_logger import log_debug
from cb_module import ModuleNode, TemplateWrapper
from cb_paths import SourceScanner
from cb_source import SourceUnit


DEFAULT_RENAME_PREFIX_NAMESPACE = "z"


@dataclass
class RawModule:
    """A module entry of the config, validated but not yet materialized."""
    name: str
    deps: List[str]
    inputs: List[str]
    wrapper: str = ""


@dataclass
class ModuleConfig:
    """
    Global options of a module config file.

    - output_path_prefix: output files are <prefix><module name>.js
    - production_uri: URI prefix the modules are served from
    - global_scope_name: optional name of the shared global scope object
    - rename_prefix_namespace: wrapper parameter name for the global scope
    """
    output_path_prefix: str
    production_uri: str
    global_scope_name: str = ""
    rename_prefix_namespace: str = DEFAULT_RENAME_PREFIX_NAMESPACE
    modules: Dict[str, RawModule] = field(default_factory=dict)
    config_file: str = ""

    @property
    def config_dir(self) -> str:
        return os.path.dirname(self.config_file) if self.config_file else os.getcwd()

    @staticmethod
    def from_json(json_config: Dict[str, Any], config_file: str = "") -> "ModuleConfig":
        """Validate the global options and the module entries of a config object."""
        config_dir = os.path.dirname(os.path.abspath(config_file)) if config_file else os.getcwd()
        name = json_config.get("globalScopeName")
        output_path = json_config.get("outputPath")
        production_uri = json_config.get("productionUri")
        rename_prefix = json_config.get("renamePrefixNamespace")

        if name and not isinstance(name, str):
            raise ConfigError("Wrong scope name.", code="CFG-0030", filename=config_file or None)
        if not (output_path and isinstance(output_path, str)):
            raise ConfigError("Empty output path.", code="CFG-0040", filename=config_file or None)
        if not (production_uri and isinstance(production_uri, str)):
            raise ConfigError("Empty production uri.", code="CFG-0050", filename=config_file or None)
        if rename_prefix and not isinstance(rename_prefix, str):
            raise ConfigError("Wrong field 'renamePrefixNamespace'.", code="CFG-0060",
                              filename=config_file or None)

        prefix = os.path.normpath(os.path.join(config_dir, output_path))
        if output_path.endswith(("/", os.sep)):
            prefix += os.sep

        return ModuleConfig(
            output_path_prefix=prefix,
            production_uri=production_uri,
            global_scope_name=name or "",
            rename_prefix_namespace=rename_prefix or DEFAULT_RENAME_PREFIX_NAMESPACE,
            modules=parse_raw_modules(json_config.get("modules"), config_dir),
            config_file=os.path.abspath(config_file) if config_file else "",
        )


def read_config_file(config_file: str | Path) -> Dict[str, Any]:
    try:
        data = json.loads(Path(config_file).read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"cannot read config file: {e.strerror or e}", code="CFG-0010",
                          filename=str(config_file)) from e
    except ValueError as e:
        raise ConfigError(f"config file is not valid JSON: {e}", code="CFG-0010",
                          filename=str(config_file)) from e
    if not isinstance(data, dict):
        raise ConfigError("Wrong config file.", code="CFG-0010", filename=str(config_file))
    return data


def _as_list(value: Any, module_name: str, field_name: str) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return list(value)
    raise MalformedModuleDescriptorError(module_name, f"'{field_name}' must be a string or a list of strings")


def parse_raw_modules(json_modules: Any, config_dir: Optional[str] = None) -> Dict[str, RawModule]:
    """
    Validate the `modules` object of a config.

    `deps` and `inputs` accept a string or a list of strings. Inputs are
    resolved relative to config_dir when given.
    """
    if not json_modules:
        raise ConfigError("Modules not found.", code="CFG-0020")
    if not isinstance(json_modules, dict):
        raise ConfigError("'modules' must be an object.", code="CFG-0020")

    raw_modules: Dict[str, RawModule] = {}
    for name, descriptor in json_modules.items():
        if not isinstance(descriptor, dict):
            raise MalformedModuleDescriptorError(name)

        deps = _as_list(descriptor.get("deps"), name, "deps")
        inputs = _as_list(descriptor.get("inputs"), name, "inputs")
        if not inputs:
            raise MissingModuleInputsError(name)

        if config_dir is not None:
            inputs = [os.path.normpath(os.path.join(config_dir, p)) for p in inputs]

        wrapper = descriptor.get("wrapper")
        raw_modules[name] = RawModule(
            name=name,
            deps=deps,
            inputs=inputs,
            wrapper=wrapper if isinstance(wrapper, str) else "",
        )
    return raw_modules


class ModuleGraphBuilder:
    """
    Turns validated RawModules into a ModuleNode tree with exactly one root.

    A module's `deps` name its parent: the module loads after it. Every
    module's inputs are scanned into its entry units; the candidate pool for
    requirement resolution is shared by all nodes.
    """

    def __init__(self, scanner: SourceScanner, context: Optional[BuildContext] = None):
        self.scanner = scanner
        self.context = context or BuildContext.default()

    @staticmethod
    def find_root(raw_modules: Dict[str, RawModule]) -> str:
        roots = [name for name, raw in raw_modules.items() if not raw.deps]
        if not roots:
            raise RootModuleNotFoundError()
        if len(roots) > 1:
            raise MultipleRootModulesError(roots)
        return roots[0]

    @staticmethod
    def children_map(raw_modules: Dict[str, RawModule]) -> Dict[str, List[str]]:
        """Invert declared deps into parent -> [children], in declaration order."""
        children: Dict[str, List[str]] = {}
        for name, raw in raw_modules.items():
            if len(raw.deps) > 1:
                raise MalformedModuleDescriptorError(
                    name, "a module may depend on one parent module only, got " + ", ".join(raw.deps)
                )
            for parent_name in raw.deps:
                if parent_name not in raw_modules:
                    raise UnknownParentModuleError(name, parent_name)
                children.setdefault(parent_name, []).append(name)
        return children

    def build_tree(self, raw_modules: Dict[str, RawModule], all_units: Sequence[SourceUnit]) -> ModuleNode:
        root_name = self.find_root(raw_modules)
        children = self.children_map(raw_modules)

        materialized: List[str] = []
        root = self._make_module(root_name, None, raw_modules, children, all_units, materialized)

        unreachable = [name for name in raw_modules if name not in materialized]
        if unreachable:
            raise UnreachableModulesError(unreachable)

        return root

    def _make_module(
        self,
        name: str,
        parent: Optional[ModuleNode],
        raw_modules: Dict[str, RawModule],
        children: Dict[str, List[str]],
        all_units: Sequence[SourceUnit],
        materialized: List[str],
    ) -> ModuleNode:
        raw = raw_modules[name]
        entry_units = self.scanner.scan(raw.inputs)
        log_debug(self.context, f"Module '{name}' has {len(entry_units)} input source(s)")

        module = ModuleNode(
            name,
            parent,
            all_units,
            entry_units,
            wrapper=TemplateWrapper(raw.wrapper) if raw.wrapper else None,
        )
        materialized.append(name)

        for child_name in children.get(name, []):
            module.add_child(
                self._make_module(child_name, module, raw_modules, children, all_units, materialized)
            )
        return module


# ==========================
# Module info
# ==========================

def get_module_info(module: ModuleNode) -> Dict[str, List[str]]:
    """{module name: [parent name]} for the whole tree; the root maps to []."""
    info: Dict[str, List[str]] = {}
    for m in module.iter_modules():
        parent = m.parent
        info[m.name] = [parent.name] if parent is not None else []
    return info


def get_module_uris(module: ModuleNode, web_uri_prefix: str) -> Dict[str, str]:
    return {m.name: f"{web_uri_prefix}{m.name}.js" for m in module.iter_modules()}


def get_module_info_by_config(json_config: Dict[str, Any]) -> Tuple[Dict[str, List[str]], Dict[str, str]]:
    """Module info and URIs read straight from a config object, without scanning sources."""
    modules = json_config.get("modules")
    if not modules:
        raise ConfigError("Wrong config file: empty list of modules", code="CFG-0020")
    if not isinstance(modules, dict):
        raise ConfigError("'modules' must be an object.", code="CFG-0020")
    production_uri = json_config.get("productionUri")
    if not production_uri:
        raise ConfigError("Wrong config file: empty production URI", code="CFG-0050")

    info: Dict[str, List[str]] = {}
    uris: Dict[str, str] = {}
    for name, descriptor in modules.items():
        deps = descriptor.get("deps") if isinstance(descriptor, dict) else None
        info[name] = _as_list(deps, name, "deps")
        uris[name] = f"{production_uri}{name}.js"
    return info, uris
