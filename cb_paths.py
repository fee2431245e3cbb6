#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

import os
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from cb_cache import SourceCache
from cb_context import BuildContext
from cb_errors import SourceScanError
from cb_logger import log_debug
from cb_source import SourceUnit, scan_source_file


JS_SUFFIX = ".js"


def find_js_files(locator: str | Path, ignore_hidden: bool = True) -> List[Path]:
    """
    Expand a locator into JavaScript file paths.

    - a file is returned as is (whatever its suffix);
    - a directory is walked recursively, in sorted order, for *.js files;
      hidden entries (leading '.') are skipped unless ignore_hidden is False.

    Raises SourceScanError if the locator does not exist.
    """
    path = Path(locator).resolve()
    if path.is_file():
        return [path]
    if not path.is_dir():
        raise SourceScanError("source path not found", code="SRC-0050", filename=str(path))

    found: List[Path] = []
    for dirpath, dirnames, filenames in os.walk(path):
        if ignore_hidden:
            dirnames[:] = [d for d in dirnames if not d.startswith(".")]
        dirnames.sort()
        for name in sorted(filenames):
            if ignore_hidden and name.startswith("."):
                continue
            if name.endswith(JS_SUFFIX):
                found.append((Path(dirpath) / name).resolve())
    return found


class SourceScanner:
    """
    Turns file/directory locators into a deduplicated list of SourceUnits.

    Units are looked up in the optional SourceCache first; a miss scans the
    file and stores the result back into the cache.
    """

    def __init__(self, cache: Optional[SourceCache] = None, context: Optional[BuildContext] = None):
        self.cache = cache
        self.context = context or BuildContext.default()
        # Units scanned during this run, by path.
        self._scanned: Dict[str, SourceUnit] = {}

    def scan(self, locators: Iterable[str | Path]) -> List[SourceUnit]:
        """
        Scan every locator. The result keeps first-seen order and holds each
        path once.
        """
        units: List[SourceUnit] = []
        seen = set()
        for locator in locators:
            for file_path in find_js_files(locator, ignore_hidden=not self.context.scan_hidden):
                key = str(file_path)
                if key in seen:
                    continue
                seen.add(key)
                units.append(self.scan_file(key))
        return units

    def scan_file(self, path: str) -> SourceUnit:
        unit = self._scanned.get(path)
        if unit is not None:
            return unit

        if self.cache is not None:
            unit = self.cache.get_source(path)
            if unit is not None:
                log_debug(self.context, f"Cache hit for {path}")

        if unit is None:
            log_debug(self.context, f"Scanning {path}")
            unit = scan_source_file(path)
            if self.cache is not None:
                self.cache.set_source(path, unit)

        self._scanned[path] = unit
        return unit
