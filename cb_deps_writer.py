#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from __future__ import annotations

import json
import os
import posixpath
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from cb_context import BuildContext
from cb_logger import log_debug, log_info
from cb_module import ModuleNode, render_wrapper_template
from cb_module_graph import ModuleConfig, get_module_info, get_module_info_by_config, get_module_uris
from cb_paths import SourceScanner
from cb_source import SourceUnit


DEPS_FILE_HEADER = (
    "// This file was autogenerated by closurebuild.\n"
    "// Please do not edit.\n"
)


def _write_text(file_path: str | Path, content: str) -> None:
    path = Path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def _to_posix(path: str) -> str:
    return path.replace("\\", "/")


# ==========================
# deps.js
# ==========================

def get_deps_line(path: str, unit: SourceUnit) -> str:
    """One goog.addDependency() call; provides and requires are sorted."""
    provides = ", ".join(f"'{p}'" for p in sorted(unit.provides))
    requires = ", ".join(f"'{r}'" for r in sorted(unit.requires))
    is_module = "true" if unit.is_module else "false"
    return f"goog.addDependency('{_to_posix(path)}', [{provides}], [{requires}], {is_module});\n"


def make_deps_file(sources_map: Dict[str, SourceUnit]) -> str:
    """deps.js body in path order; units that provide nothing are left out."""
    lines = []
    for path in sorted(sources_map):
        unit = sources_map[path]
        if unit.provides:
            lines.append(get_deps_line(path, unit))
    return "".join(lines)


@dataclass
class _DepsEntry:
    locators: List[str]
    base_dir: str = ""
    path: str = ""
    prefix: str = ""


class DepsWriter:
    """
    Writes a deps.js file for the uncompiled Closure loader.

    Each source is listed under a path relative to a base directory
    (default: the current directory), optionally preceded by a prefix, or
    under an explicit path given per file.
    """

    def __init__(self, scanner: Optional[SourceScanner] = None, context: Optional[BuildContext] = None):
        self.context = context or BuildContext.default()
        self.scanner = scanner or SourceScanner(context=self.context)
        self._entries: List[_DepsEntry] = []

    def add_files(self, locators: Sequence[str], base_dir: str = "", prefix: str = "") -> None:
        self._entries.append(_DepsEntry(locators=list(locators), base_dir=base_dir, prefix=prefix))

    def add_file_with_path(self, js_file: str, path: str) -> None:
        self._entries.append(_DepsEntry(locators=[js_file], path=path))

    def get_sources_map(self) -> Dict[str, SourceUnit]:
        sources_map: Dict[str, SourceUnit] = {}
        for entry in self._entries:
            base_dir = os.path.abspath(entry.base_dir) if entry.base_dir else os.getcwd()
            for unit in self.scanner.scan(entry.locators):
                if entry.path:
                    sources_map[entry.path] = unit
                else:
                    dep_path = entry.prefix + _to_posix(os.path.relpath(unit.path, base_dir))
                    sources_map[dep_path] = unit
        return sources_map

    def generate(self) -> str:
        sources_map = self.get_sources_map()
        log_debug(self.context, f"Writing deps for {len(sources_map)} source(s)")
        return DEPS_FILE_HEADER + make_deps_file(sources_map)

    def write(self, output_file: Optional[str] = None) -> str:
        """Generate deps.js; write it to output_file when given. Returns the content."""
        content = self.generate()
        if output_file:
            _write_text(output_file, content)
            log_info(self.context, f"Wrote {output_file}")
        return content


# ==========================
# Per-module loader files
# ==========================

# Loader for uncompiled module builds: loads each dep of the module in order.
# Entries are [uri, isModule]; goog.module files go through the Closure loader.
MODULE_LOADER_TEMPLATE = """\
(function(deps, loadAsync) {
  var head = document.getElementsByTagName('head')[0];
  deps.forEach(function(dep) {
    var uri = dep[0];
    var isModule = dep[1];
    var text = isModule ? 'goog.loadModuleFromUrl(' + JSON.stringify(uri) + ');' : '';
    if (loadAsync) {
      var script = document.createElement('script');
      script.async = false;
      if (isModule) {
        script.text = text;
      } else {
        script.src = uri;
      }
      head.appendChild(script);
    } else {
      document.write(isModule ? '<script>' + text + '</script>' : '<script src="' + uri + '"></script>');
    }
  });
})(%deps%, %loadAsync%);
"""

# Root loader variant that also publishes the module graph for the module
# manager, used when no separate module info file is generated.
ROOT_MODULE_INFO_TEMPLATE = """\
var MODULE_INFO = %moduleInfo%;
var MODULE_URIS = %moduleUris%;
var MODULE_USE_DEBUG_MODE = true;
var CLOSURE_UNCOMPILED_DEFINES = %defines%;
"""


class ModuleDepsWriter:
    """
    Writes one loader file per module for uncompiled (debug) module builds.

    The file for module `name` is `<outputPath><name>.js`; it lists the
    module's deps as web URIs under the module's production URI.
    """

    def __init__(
        self,
        config: ModuleConfig,
        root: ModuleNode,
        defines: Optional[Dict[str, Any]] = None,
        load_async: bool = False,
        module_info_file_path: Optional[str] = None,
        context: Optional[BuildContext] = None,
    ):
        self.config = config
        self.root = root
        self.defines: Dict[str, Any] = dict(defines or {})
        self.load_async = load_async
        self.module_info_file_path = module_info_file_path
        self.context = context or BuildContext.default()

    def get_output_file(self, module: ModuleNode) -> str:
        return self.config.output_path_prefix + module.name + ".js"

    def get_file_uris(self, module: ModuleNode) -> List[str]:
        """Web URI of every dep of a module, relative to where its loader file is served."""
        web_uri_prefix = posixpath.dirname(self.config.production_uri + module.name + ".js")
        dep_dir = os.path.dirname(os.path.abspath(self.get_output_file(module)))
        return [
            web_uri_prefix + "/" + _to_posix(os.path.relpath(unit.path, dep_dir))
            for unit in module.get_deps()
        ]

    def get_default_template(self, module: ModuleNode) -> str:
        deps = [[uri, unit.is_module] for uri, unit in zip(self.get_file_uris(module), module.get_deps())]
        template = (
            MODULE_LOADER_TEMPLATE
            .replace("%deps%", json.dumps(deps))
            .replace("%loadAsync%", "true" if self.load_async else "false")
        )
        if module.parent is None and not self.module_info_file_path:
            template = ROOT_MODULE_INFO_TEMPLATE + template
        return template

    def get_dep_file_content(self, module: ModuleNode) -> str:
        template = render_wrapper_template(module.wrapper, self, module, self.get_default_template(module))
        replacements = {
            "%defines%": json.dumps(self.defines),
            "%moduleInfo%": json.dumps(get_module_info(self.root)),
            "%moduleUris%": json.dumps(get_module_uris(self.root, self.config.production_uri)),
            "%name%": module.name,
            "%productionUri%": self.config.production_uri,
            "%files%": json.dumps(self.get_file_uris(module)),
        }
        content = template
        for placeholder, text in replacements.items():
            content = content.replace(placeholder, text)
        return content

    def write(self) -> List[str]:
        """Write every module's loader file, and the module info file if set. Returns written paths."""
        written: List[str] = []
        if self.module_info_file_path:
            content = generate_module_info_file_content(
                get_module_info(self.root),
                get_module_uris(self.root, self.config.production_uri),
            )
            _write_text(self.module_info_file_path, content)
            written.append(self.module_info_file_path)

        for module in self.root.iter_modules():
            output_file = self.get_output_file(module)
            _write_text(output_file, self.get_dep_file_content(module))
            log_info(self.context, f"Wrote {output_file}")
            written.append(output_file)
        return written


def generate_module_info_file_content(info: Dict[str, List[str]], uris: Dict[str, str]) -> str:
    trusted_uris = "".join(
        f"    '{name}': TrustedResourceUrl.fromConstant(Const.from('{uri}')),\n"
        for name, uri in uris.items()
    )
    module_info = "".join(
        f"    '{name}': [" + ", ".join(f"'{dep}'" for dep in info[name]) + "],\n"
        for name in uris
    )

    return (
        "goog.module('moduleInfo');\n"
        "\n"
        "const Const = goog.require('goog.string.Const');\n"
        "const TrustedResourceUrl = goog.require('goog.html.TrustedResourceUrl');\n"
        "\n"
        "exports = {\n"
        "  moduleInfo: {\n" + module_info + "  },\n"
        "  trustedUris: {\n" + trusted_uris + "  },\n"
        "};"
    )


def generate_module_info_file(file_path: str, json_config: Dict[str, Any]) -> str:
    """Write a goog.module('moduleInfo') file describing the module graph of a config."""
    info, uris = get_module_info_by_config(json_config)
    content = generate_module_info_file_content(info, uris)
    _write_text(file_path, content)
    return content
