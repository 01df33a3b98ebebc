# Where: e2e/runner/tests/test_ui.py
# What: Unit tests for PlainReporter output.
# Why: Failure lines must carry the failure kind and the exporter log tail.
from __future__ import annotations

from e2e.runner.events import (
    EVENT_PHASE_END,
    EVENT_PHASE_START,
    EVENT_SCENARIO_END,
    EVENT_SCENARIO_START,
    EVENT_SUITE_END,
    FAILURE_TIMEOUT,
    PHASE_BUILD,
    STATUS_FAILED,
    STATUS_PASSED,
    Event,
)
from e2e.runner.ui import PlainReporter


def test_scenario_pass_line(capsys) -> None:
    reporter = PlainReporter(color=False, label_width=4)

    reporter.emit(Event(EVENT_SCENARIO_START, scenario="mqtt", data={"port": 65534}))
    reporter.emit(Event(EVENT_SCENARIO_END, scenario="mqtt", data={"status": STATUS_PASSED}))

    out = capsys.readouterr().out.splitlines()
    assert len(out) == 1
    assert out[0].startswith("[mqtt ] PASS (")


def test_verbose_reports_scenario_port(capsys) -> None:
    reporter = PlainReporter(verbose=True, color=False)

    reporter.emit(Event(EVENT_SCENARIO_START, scenario="wss", data={"port": 65531}))

    assert capsys.readouterr().out == "[wss  ] started on :65531\n"


def test_scenario_failure_includes_kind_and_log_tail(capsys) -> None:
    reporter = PlainReporter(color=False)

    reporter.emit(
        Event(
            EVENT_SCENARIO_END,
            scenario="ssl",
            message="did not converge",
            data={
                "status": STATUS_FAILED,
                "failure_kind": FAILURE_TIMEOUT,
                "log_tail": ["level=error msg=\"tls handshake\""],
            },
        )
    )

    out = capsys.readouterr().out.splitlines()
    assert out[0] == "[ssl  ] FAIL"
    assert out[1] == "  [timeout] did not converge"
    assert out[2] == '  | level=error msg="tls handshake"'


def test_phase_failure_prints_message(capsys) -> None:
    reporter = PlainReporter(color=False)

    reporter.emit(Event(EVENT_PHASE_START, phase=PHASE_BUILD))
    reporter.emit(
        Event(
            EVENT_PHASE_END,
            phase=PHASE_BUILD,
            message="Build failed with exit code 1",
            data={"status": STATUS_FAILED},
        )
    )

    out = capsys.readouterr().out.splitlines()
    assert out[0] == "[build] start"
    assert out[1].startswith("[build] done ... FAIL (")
    assert out[2] == "  Build failed with exit code 1"


def test_suite_end_lists_failed_scenarios(capsys) -> None:
    reporter = PlainReporter(color=False)

    reporter.emit(
        Event(EVENT_SUITE_END, data={"status": STATUS_FAILED, "failed": ["ssl", "wss"]})
    )

    assert capsys.readouterr().out == "[suite] [FAILED] failed scenarios: ssl, wss\n"


def test_color_wraps_status_words(capsys) -> None:
    reporter = PlainReporter(color=True)

    reporter.emit(Event(EVENT_SCENARIO_END, scenario="ws", data={"status": STATUS_PASSED}))

    assert "\033[32mPASS\033[0m" in capsys.readouterr().out
