# Where: e2e/runner/runner.py
# What: Orchestrates suite setup, sequential probe scenarios, and suite teardown.
# Why: Keep suite state on one explicit object instead of module-level globals.
from __future__ import annotations

import logging
import shutil
import time
from typing import Iterable

from e2e.runner import constants
from e2e.runner.assertions import assert_probe_metrics
from e2e.runner.build import ArtifactBuilder
from e2e.runner.certs import stage_tls_material
from e2e.runner.errors import ExporterError, MetricAssertionError, SetupError
from e2e.runner.events import (
    EVENT_PHASE_END,
    EVENT_PHASE_START,
    EVENT_SCENARIO_END,
    EVENT_SCENARIO_START,
    EVENT_SUITE_END,
    EVENT_SUITE_START,
    FAILURE_ASSERTION,
    FAILURE_ERROR,
    FAILURE_EXPORTER,
    FAILURE_TIMEOUT,
    PHASE_BUILD,
    PHASE_DEPENDENCY,
    PHASE_TEARDOWN,
    STATUS_FAILED,
    STATUS_PASSED,
    STATUS_RUNNING,
    Event,
)
from e2e.runner.exporter import PortAllocator, running_exporter
from e2e.runner.infra import DependencyManager
from e2e.runner.logging import LogSink, make_prefix_printer, tail_lines
from e2e.runner.models import (
    Artifact,
    ExporterInstance,
    ProbeScenario,
    ScenarioResult,
    SuiteResult,
)
from e2e.runner.poller import poll_until_converged, probe_url
from e2e.runner.probe_config import (
    TARGET_SSL,
    TARGET_TCP,
    TARGET_WS,
    TARGET_WSS,
    build_scenario_config,
    write_config,
)
from e2e.runner.settings import SuiteSettings
from e2e.runner.ui import Reporter

logger = logging.getLogger(__name__)

DEFAULT_SCENARIOS = (
    ProbeScenario("mqtt", TARGET_TCP),
    ProbeScenario("ssl", TARGET_SSL),
    ProbeScenario("ws", TARGET_WS),
    ProbeScenario("wss", TARGET_WSS),
)


class _NullReporter(Reporter):
    def emit(self, event: Event) -> None:
        return None


class SuiteRunner:
    """
    Owns the suite-wide state: broker container, built exporter, port counter.

    setup() must succeed before run_scenario(); teardown() is safe to call
    after a partial setup and always attempts every cleanup step.
    """

    def __init__(
        self,
        settings: SuiteSettings,
        *,
        reporter: Reporter | None = None,
        dependency: DependencyManager | None = None,
        builder: ArtifactBuilder | None = None,
        ports: PortAllocator | None = None,
    ) -> None:
        self.settings = settings
        self.reporter = reporter or _NullReporter()
        self.log = LogSink(settings.log_path)
        self.dependency = dependency or DependencyManager(
            name=settings.container_name,
            image=settings.image,
            port_map=settings.port_map,
            max_attempts=settings.health_max_attempts,
            interval=settings.health_interval,
        )
        self.builder = builder or ArtifactBuilder(
            settings.source_dir,
            log=self.log,
            build_cmd=settings.build_cmd,
            printer=make_prefix_printer("build") if settings.verbose else None,
        )
        self.ports = ports or PortAllocator(settings.start_port)
        self.artifact: Artifact | None = None
        self._previous: ExporterInstance | None = None

    def __enter__(self) -> SuiteRunner:
        try:
            self.setup()
        except SetupError:
            self.teardown()
            raise
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.teardown()

    def _phase(self, phase: str, func):
        self.reporter.emit(Event(EVENT_PHASE_START, phase=phase))
        try:
            value = func()
        except SetupError as e:
            self.reporter.emit(
                Event(EVENT_PHASE_END, phase=phase, message=str(e), data={"status": STATUS_FAILED})
            )
            raise
        self.reporter.emit(Event(EVENT_PHASE_END, phase=phase, data={"status": STATUS_PASSED}))
        return value

    def setup(self) -> Artifact:
        if not self.log.is_open:
            self.log.open()
        self._phase(PHASE_DEPENDENCY, self.dependency.start)
        self.artifact = self._phase(PHASE_BUILD, self.builder.build)
        return self.artifact

    def run_scenario(self, scenario: ProbeScenario) -> ScenarioResult:
        if self.artifact is None:
            raise SetupError("suite is not set up: exporter artifact missing")
        if not self.dependency.instance.healthy:
            raise SetupError(f"dependency {self.dependency.instance.name} is not healthy")
        if self._previous is not None and self._previous.alive:
            raise SetupError(
                f"exporter on :{self._previous.port} is still running; refusing to start another"
            )

        result = ScenarioResult(scenario=scenario, status=STATUS_RUNNING)
        started = time.monotonic()
        try:
            result.port = self.ports.allocate()
        except ExporterError as e:
            return self._finish(result, started, FAILURE_EXPORTER, str(e))
        self.reporter.emit(
            Event(EVENT_SCENARIO_START, scenario=scenario.name, data={"port": result.port})
        )

        work_dir = self.artifact.bin_dir / f"scenario-{result.port}"
        failure: tuple[str, str] | None = None
        log_tail: list[str] = []
        try:
            try:
                work_dir.mkdir(parents=True)
            except OSError as e:
                raise SetupError(f"Failed to create scenario directory {work_dir}: {e}") from e
            stage_tls_material(self.settings.certs_dir, work_dir)
            config_path = write_config(
                build_scenario_config(work_dir), work_dir / constants.CONFIG_FILE_NAME
            )
            result.log_path = work_dir / constants.EXPORTER_LOG_NAME

            with running_exporter(
                self.artifact.bin_path, result.port, config_path, log_path=result.log_path
            ) as instance:
                self._previous = instance
                poll = poll_until_converged(
                    probe_url(result.port),
                    scenario.target,
                    timeout=self.settings.probe_timeout,
                    interval=self.settings.probe_interval,
                )
                if poll.ok:
                    result.families = poll.families
                    assert_probe_metrics(poll.families, self.settings.metric_prefix)
                else:
                    failure = (FAILURE_TIMEOUT, str(poll.error))
        except MetricAssertionError as e:
            failure = (FAILURE_ASSERTION, str(e))
        except ExporterError as e:
            failure = (FAILURE_EXPORTER, str(e))
        except SetupError:
            raise
        except Exception as e:
            logger.exception(f"Scenario {scenario.name} raised an unexpected error")
            failure = (FAILURE_ERROR, f"{type(e).__name__}: {e}")
        finally:
            if failure is not None:
                log_tail = tail_lines(result.log_path)
            self._remove_work_dir(work_dir)

        if failure is None:
            return self._finish(result, started)
        return self._finish(result, started, *failure, log_tail=log_tail)

    def _finish(
        self,
        result: ScenarioResult,
        started: float,
        failure_kind: str | None = None,
        message: str = "",
        *,
        log_tail: list[str] | None = None,
    ) -> ScenarioResult:
        result.duration = time.monotonic() - started
        result.status = STATUS_FAILED if failure_kind else STATUS_PASSED
        result.failure_kind = failure_kind
        result.message = message
        if failure_kind:
            logger.error(f"Scenario {result.scenario.name} failed ({failure_kind}): {message}")
        self.reporter.emit(
            Event(
                EVENT_SCENARIO_END,
                scenario=result.scenario.name,
                message=message or None,
                data={
                    "status": result.status,
                    "failure_kind": failure_kind,
                    "log_tail": log_tail or [],
                },
            )
        )
        return result

    def _remove_work_dir(self, work_dir) -> None:
        try:
            shutil.rmtree(work_dir)
        except FileNotFoundError:
            pass
        except OSError as e:
            raise SetupError(f"Failed to remove scenario directory {work_dir}: {e}") from e

    def teardown(self) -> None:
        """Remove the artifact directory, then stop the broker; re-raise the first failure."""
        errors: list[SetupError] = []
        self.reporter.emit(Event(EVENT_PHASE_START, phase=PHASE_TEARDOWN))
        for step in (self.builder.cleanup, self.dependency.stop):
            try:
                step()
            except SetupError as e:
                logger.error(f"Teardown step failed: {e}")
                errors.append(e)
        self.artifact = None
        self.log.close()
        self.reporter.emit(
            Event(
                EVENT_PHASE_END,
                phase=PHASE_TEARDOWN,
                message="; ".join(str(e) for e in errors) or None,
                data={"status": STATUS_FAILED if errors else STATUS_PASSED},
            )
        )
        if errors:
            raise errors[0]


def run_suite(
    settings: SuiteSettings,
    scenarios: Iterable[ProbeScenario] = DEFAULT_SCENARIOS,
    *,
    reporter: Reporter | None = None,
    runner: SuiteRunner | None = None,
) -> SuiteResult:
    reporter = reporter or _NullReporter()
    runner = runner or SuiteRunner(settings, reporter=reporter)
    result = SuiteResult()

    reporter.start()
    reporter.emit(Event(EVENT_SUITE_START))
    try:
        runner.setup()
        for scenario in scenarios:
            scenario_result = runner.run_scenario(scenario)
            result.scenarios.append(scenario_result)
            if settings.fail_fast and not scenario_result.passed:
                break
    except SetupError as e:
        logger.error(f"Suite aborted: {e}")
        result.setup_error = e
    finally:
        try:
            runner.teardown()
        except SetupError as e:
            result.teardown_error = e
        reporter.emit(
            Event(
                EVENT_SUITE_END,
                message=str(result.setup_error or result.teardown_error or "") or None,
                data={
                    "status": STATUS_PASSED if result.ok else STATUS_FAILED,
                    "failed": [r.scenario.name for r in result.failed],
                },
            )
        )
        reporter.close()
    return result
