# Where: e2e/runner/errors.py
# What: Error hierarchy for the exporter E2E suite.
# Why: Separate fatal setup/teardown failures from per-scenario failures.
from __future__ import annotations


class HarnessError(Exception):
    """Base class for every error raised by the runner."""


class ConfigError(HarnessError):
    """Invalid suite settings or probe configuration document."""


class SetupError(HarnessError):
    """Fatal: the environment cannot support any scenario."""


class DependencyError(SetupError):
    """Broker container could not be created, become healthy, or be removed."""


class BuildError(SetupError):
    """Exporter binary could not be built or its directory removed."""


class ProvisioningError(SetupError):
    """TLS material could not be staged for a scenario."""


class ExporterError(HarnessError):
    """Exporter process could not be launched or confirmed dead."""


class ScenarioError(HarnessError):
    """A single scenario failed; sibling scenarios still run."""


class MetricsFetchError(ScenarioError):
    """Transport error or non-200 response from the probe endpoint."""


class MetricsDecodeError(ScenarioError):
    """Probe endpoint body is not a valid exposition document."""


class PollTimeoutError(ScenarioError):
    def __init__(self, url: str, timeout: float, attempts: int, last_error: Exception | None):
        self.url = url
        self.timeout = timeout
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"{url} did not converge within {timeout:g}s after {attempts} attempts; "
            f"last error: {last_error}"
        )


class MetricAssertionError(ScenarioError):
    """Decoded metrics do not match the probe metric contract."""
