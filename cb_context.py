"""
Options shared by the build stages.

BuildContext is created once per run (by the CLI or by the caller of
BuildDriver) and handed to the scanner, the module graph builder, the
compiler runner and the writers.
"""

#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from dataclasses import dataclass
from enum import IntEnum


class LogLevel(IntEnum):
    """Logging levels; a message is shown when its level is <= the context level."""
    SILENT = 0      # Nothing at all
    ERROR = 3       # Diagnostics only (CLI default)
    WARNING = 6     # Recoverable problems, e.g. an unreadable cache file
    INFO = 10       # Stage progress and timings (-v)
    DEBUG = 30      # Per-file and per-module detail (-vvv)


@dataclass
class BuildContext:
    """
    Cross-cutting builder options.

    Attributes:
        log_rich_format:  Prefix log lines with a timestamp and the level name.
        log_level:        Most verbose level that is printed.
        scan_hidden:      Walk hidden files and directories (leading '.') when
                          a source root is a directory.
    """
    log_rich_format: bool = False
    log_level: LogLevel = LogLevel.WARNING
    scan_hidden: bool = False

    @staticmethod
    def default() -> 'BuildContext':
        return BuildContext()
