#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

import json
import os
from pathlib import Path
from typing import Dict, Optional

from cb_context import BuildContext
from cb_logger import log_debug, log_warning
from cb_source import SourceUnit


def _mtime_ms(path: str) -> Optional[int]:
    try:
        return int(os.stat(path).st_mtime * 1000)
    except OSError:
        return None


def _is_str_list(value) -> bool:
    return isinstance(value, list) and all(isinstance(v, str) for v in value)


def save_cache(cache: Optional["SourceCache"], context: BuildContext) -> None:
    """Save cache if there is one; a write failure is only a warning."""
    if cache is None:
        return
    try:
        cache.save()
    except OSError as e:
        log_warning(context, f"Cannot save cache file {cache.file}: {e}")


class SourceCache:
    """
    Scanned-unit metadata cache, keyed by path and invalidated by mtime.

    The cache is an explicit object handed to the scanner; it is loaded from
    and saved to a JSON file of the form:

        {"/abs/a.js": {"provides": [...], "requires": [...],
                       "isModule": false, "modifiedDates": 1700000000000}}

    A missing or unreadable cache file starts an empty cache.
    """

    def __init__(self, file: str | Path, context: BuildContext | None = None):
        self.file = Path(file)
        self.context = context or BuildContext.default()
        self._modified_dates: Dict[str, int] = {}
        self._units: Dict[str, SourceUnit] = {}
        self._load()

    def __len__(self) -> int:
        return len(self._units)

    def __contains__(self, path: str) -> bool:
        return path in self._units

    def _load(self) -> None:
        if not self.file.exists():
            return
        try:
            data = json.loads(self.file.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            log_warning(self.context, f"Ignoring unreadable cache file {self.file}: {e}")
            return
        if not isinstance(data, dict):
            log_warning(self.context, f"Ignoring cache file {self.file}: not a JSON object")
            return

        for path, entry in data.items():
            if not isinstance(entry, dict):
                continue
            if "provides" not in entry or "requires" not in entry or "modifiedDates" not in entry:
                continue
            if not (_is_str_list(entry["provides"]) and _is_str_list(entry["requires"])):
                log_debug(self.context, f"Skipping malformed cache entry for {path}")
                continue
            self._modified_dates[path] = entry["modifiedDates"]
            self._units[path] = SourceUnit.create(
                path,
                entry["provides"],
                entry["requires"],
                is_module=bool(entry.get("isModule", False)),
            )
        log_debug(self.context, f"Loaded {len(self._units)} cached source(s) from {self.file}")

    def get_source(self, path: str) -> Optional[SourceUnit]:
        """Return the cached unit for path if the file is unchanged, else None."""
        unit = self._units.get(path)
        if unit is None:
            return None
        if self._modified_dates.get(path) == _mtime_ms(path):
            return unit
        log_debug(self.context, f"Cache entry for {path} is stale")
        self.remove_source(path)
        return None

    def remove_source(self, path: str) -> None:
        self._modified_dates.pop(path, None)
        self._units.pop(path, None)

    def set_source(self, path: str, unit: SourceUnit) -> None:
        self._units[path] = unit
        mtime = _mtime_ms(path)
        if mtime is not None:
            self._modified_dates[path] = mtime

    def save(self) -> None:
        """Write every entry whose file still exists to the cache file."""
        data = {}
        for path, unit in self._units.items():
            mtime = _mtime_ms(path)
            if mtime is None:
                continue
            data[path] = {
                "isModule": unit.is_module,
                "modifiedDates": mtime,
                "provides": list(unit.provides),
                "requires": list(unit.requires),
            }

        self.file.parent.mkdir(parents=True, exist_ok=True)
        self.file.write_text(json.dumps(data), encoding="utf-8")
        log_debug(self.context, f"Saved {len(data)} source(s) to cache {self.file}")
