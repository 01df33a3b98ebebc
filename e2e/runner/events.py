# Where: e2e/runner/events.py
# What: Event and status definitions for suite reporting.
# Why: Provide a stable, decoupled contract between execution and UI.
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

EVENT_SUITE_START = "suite_start"
EVENT_SUITE_END = "suite_end"
EVENT_SCENARIO_START = "scenario_start"
EVENT_SCENARIO_END = "scenario_end"
EVENT_PHASE_START = "phase_start"
EVENT_PHASE_END = "phase_end"

STATUS_QUEUED = "queued"
STATUS_RUNNING = "running"
STATUS_PASSED = "passed"
STATUS_FAILED = "failed"

PHASE_DEPENDENCY = "dependency"
PHASE_BUILD = "build"
PHASE_TEARDOWN = "teardown"

FAILURE_TIMEOUT = "timeout"
FAILURE_ASSERTION = "assertion"
FAILURE_EXPORTER = "exporter"
FAILURE_ERROR = "error"


@dataclass(frozen=True)
class Event:
    event_type: str
    scenario: str | None = None
    phase: str | None = None
    message: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    ts: float = field(default_factory=time.monotonic)
