# Where: e2e/runner/models.py
# What: Dataclasses for suite state, probe configuration and decoded metrics.
# Why: Keep execution inputs explicit and avoid implicit global state.
from __future__ import annotations

import subprocess
from dataclasses import dataclass, field
from pathlib import Path

from e2e.runner import constants
from e2e.runner.events import STATUS_PASSED, STATUS_QUEUED


@dataclass
class DependencyInstance:
    name: str
    image: str
    port_map: dict[str, str]
    id: str | None = None
    health: str = constants.HEALTH_UNKNOWN

    @property
    def healthy(self) -> bool:
        return self.health == constants.HEALTH_HEALTHY


@dataclass(frozen=True)
class Artifact:
    bin_dir: Path
    bin_path: Path


@dataclass(frozen=True)
class TLSConfig:
    ca_file: str
    cert_file: str
    key_file: str
    insecure_skip_verify: bool = False


@dataclass(frozen=True)
class ProbeTarget:
    target: str
    scheme: str
    tls: TLSConfig | None = None

    def __post_init__(self) -> None:
        if self.scheme not in constants.SCHEMES:
            raise ValueError(f"unsupported probe scheme: {self.scheme!r}")
        requires_tls = self.scheme in constants.TLS_SCHEMES
        if requires_tls and self.tls is None:
            raise ValueError(f"scheme {self.scheme!r} requires a TLS config ({self.target})")
        if not requires_tls and self.tls is not None:
            raise ValueError(f"scheme {self.scheme!r} must not carry a TLS config ({self.target})")


@dataclass(frozen=True)
class ScenarioConfig:
    probes: tuple[ProbeTarget, ...]

    def find(self, target: str) -> ProbeTarget | None:
        for probe in self.probes:
            if probe.target == target:
                return probe
        return None

    @property
    def targets(self) -> list[str]:
        return [probe.target for probe in self.probes]


@dataclass(frozen=True)
class ProbeScenario:
    name: str
    target: str


@dataclass
class ExporterInstance:
    port: int
    process: subprocess.Popen
    config_path: Path
    log_path: Path | None = None

    @property
    def alive(self) -> bool:
        return self.process.poll() is None


@dataclass(frozen=True)
class MetricSample:
    value: float
    labels: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class MetricFamily:
    name: str
    type: str
    samples: tuple[MetricSample, ...] = ()
    documentation: str = ""


@dataclass
class PollResult:
    families: dict[str, MetricFamily] | None = None
    error: Exception | None = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None and self.families is not None


@dataclass
class ScenarioResult:
    scenario: ProbeScenario
    port: int | None = None
    status: str = STATUS_QUEUED
    failure_kind: str | None = None
    message: str = ""
    families: dict[str, MetricFamily] | None = None
    log_path: Path | None = None
    duration: float = 0.0

    @property
    def passed(self) -> bool:
        return self.status == STATUS_PASSED


@dataclass
class SuiteResult:
    scenarios: list[ScenarioResult] = field(default_factory=list)
    setup_error: Exception | None = None
    teardown_error: Exception | None = None

    @property
    def failed(self) -> list[ScenarioResult]:
        return [result for result in self.scenarios if not result.passed]

    @property
    def ok(self) -> bool:
        return self.setup_error is None and self.teardown_error is None and not self.failed
