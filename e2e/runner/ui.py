# Where: e2e/runner/ui.py
# What: Plain reporter for suite output.
# Why: Keep output deterministic; one line per phase and per scenario outcome.
from __future__ import annotations

import os
import sys
import time

from e2e.runner.events import (
    EVENT_PHASE_END,
    EVENT_PHASE_START,
    EVENT_SCENARIO_END,
    EVENT_SCENARIO_START,
    EVENT_SUITE_END,
    EVENT_SUITE_START,
    STATUS_FAILED,
    STATUS_PASSED,
    Event,
)
from e2e.runner.logging import safe_print

_COLOR_RESET = "\033[0m"
_COLOR_GREEN = "\033[32m"
_COLOR_RED = "\033[31m"
_COLOR_GRAY = "\033[90m"


def _format_duration(seconds: float) -> str:
    if seconds < 60:
        return f"{seconds:.1f}s"
    total = int(seconds)
    mins = total // 60
    secs = total % 60
    return f"{mins}m{secs:02d}s"


class Reporter:
    def start(self) -> None:
        return None

    def emit(self, event: Event) -> None:
        raise NotImplementedError

    def close(self) -> None:
        return None


class PlainReporter(Reporter):
    def __init__(
        self,
        *,
        verbose: bool = False,
        color: bool | None = None,
        label_width: int = 0,
    ) -> None:
        self._verbose = verbose
        self._label_width = max(label_width, len("suite"))
        is_tty = sys.stdout.isatty()
        term = os.environ.get("TERM", "").lower()
        color_default = is_tty and term != "dumb" and not os.environ.get("NO_COLOR")
        self._color = color_default if color is None else bool(color)
        self._started: dict[str, float] = {}

    def _prefix(self, label: str) -> str:
        return f"[{label.ljust(self._label_width)}]"

    def _colorize(self, text: str, color: str) -> str:
        if not self._color:
            return text
        return f"{color}{text}{_COLOR_RESET}"

    def _status_word(self, status: str) -> str:
        if status == STATUS_PASSED:
            return self._colorize("PASS", _COLOR_GREEN)
        if status == STATUS_FAILED:
            return self._colorize("FAIL", _COLOR_RED)
        return status

    def emit(self, event: Event) -> None:
        if event.event_type == EVENT_SUITE_START:
            safe_print(f"{self._prefix('suite')} started")
            return

        if event.event_type == EVENT_SUITE_END:
            status = event.data.get("status", "")
            failed = event.data.get("failed") or []
            if status == STATUS_PASSED:
                safe_print(f"{self._prefix('suite')} [PASSED] all scenarios passed")
            elif failed:
                safe_print(
                    f"{self._prefix('suite')} [FAILED] failed scenarios: {', '.join(failed)}"
                )
            else:
                safe_print(f"{self._prefix('suite')} [FAILED] {event.message or 'aborted'}")
            return

        if event.event_type == EVENT_PHASE_START and event.phase:
            self._started[event.phase] = time.monotonic()
            safe_print(f"{self._prefix(event.phase)} start")
            return

        if event.event_type == EVENT_PHASE_END and event.phase:
            status = event.data.get("status", "")
            started = self._started.pop(event.phase, None)
            suffix = f" ({_format_duration(time.monotonic() - started)})" if started else ""
            line = f"{self._prefix(event.phase)} done ... {self._status_word(status)}{suffix}"
            if event.message:
                line = f"{line}\n  {event.message}"
            safe_print(line)
            return

        if event.event_type == EVENT_SCENARIO_START and event.scenario:
            self._started[event.scenario] = time.monotonic()
            if self._verbose:
                port = event.data.get("port")
                safe_print(f"{self._prefix(event.scenario)} started on :{port}")
            return

        if event.event_type == EVENT_SCENARIO_END and event.scenario:
            status = event.data.get("status", "")
            started = self._started.pop(event.scenario, None)
            suffix = f" ({_format_duration(time.monotonic() - started)})" if started else ""
            safe_print(f"{self._prefix(event.scenario)} {self._status_word(status)}{suffix}")
            if status == STATUS_FAILED and event.message:
                kind = event.data.get("failure_kind") or "error"
                safe_print(self._colorize(f"  [{kind}] {event.message}", _COLOR_GRAY))
                for line in event.data.get("log_tail") or []:
                    safe_print(f"  | {line}")
