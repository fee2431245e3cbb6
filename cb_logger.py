"""
Logging for the builder.

Every message goes to stderr, so stdout stays free for command output
(build order, deps.js, compiled code). Whether a message is printed is
decided by the BuildContext passed in.
"""

#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

import sys
import time
from typing import Optional

from cb_context import BuildContext, LogLevel


def log(context: BuildContext, log_level: LogLevel, message: str) -> None:
    """
    Print message to stderr when the context level is at least log_level.

    Args:
        context:    The build context; None prints unconditionally.
        log_level:  The level of the message.
        message:    The message to log.
    """
    if context is None:
        print(message, file=sys.stderr)
        return
    if context.log_level < log_level:
        return

    if context.log_rich_format:
        timestamp = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime())
        message = f"{timestamp} [{log_level.name}] {message}"
    print(message, file=sys.stderr)


def log_error(context: BuildContext, message: str) -> None:
    log(context, LogLevel.ERROR, message)


def log_warning(context: BuildContext, message: str) -> None:
    log(context, LogLevel.WARNING, message)


def log_info(context: BuildContext, message: str) -> None:
    log(context, LogLevel.INFO, message)


def log_debug(context: BuildContext, message: str) -> None:
    log(context, LogLevel.DEBUG, message)


def log_stage(context: BuildContext, stage: str, module: Optional[str] = None) -> None:
    """
    Announce a build stage at INFO level.

    Args:
        context: The build context.
        stage:   Stage name, e.g. "Scanning sources", "Compiling".
        module:  Output module the stage runs for, if any.
    """
    if module:
        log_info(context, f"{stage} module '{module}'")
    else:
        log_info(context, f"{stage}...")


class BuildTimer:
    """
    Wall-clock timer for build stages.

    tick() reports the time since the previous tick, total() the time since
    start(). Both log at INFO level as "<ms> ms. <label>".
    """

    def __init__(self, context: BuildContext):
        self.context = context
        self._start = 0.0
        self._prev = 0.0

    def start(self, label: Optional[str] = None) -> None:
        self._start = time.monotonic()
        self._prev = self._start
        if label:
            log_info(self.context, label)

    def tick(self, label: Optional[str] = None) -> int:
        now = time.monotonic()
        elapsed = self._ms(now - self._prev)
        self._prev = now
        self._report(elapsed, label)
        return elapsed

    def total(self, label: Optional[str] = None) -> int:
        elapsed = self._ms(time.monotonic() - self._start)
        self._report(elapsed, label)
        return elapsed

    @staticmethod
    def _ms(seconds: float) -> int:
        return int(round(seconds * 1000))

    def _report(self, elapsed: int, label: Optional[str]) -> None:
        log_info(self.context, f"{elapsed} ms." + (f" {label}" if label else ""))
