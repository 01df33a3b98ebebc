# Where: e2e/runner/tests/test_exporter.py
# What: Unit tests for exporter port allocation and process supervision.
# Why: Ports must never repeat within a suite and processes must never outlive a scenario.
from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from e2e.runner import exporter
from e2e.runner.errors import ExporterError


class _FakeProcess:
    def __init__(self, cmd, *, stdin=None, stdout=None, stderr=None, survive_kill=False) -> None:
        self.cmd = list(cmd)
        self.stdout = stdout
        self.pid = 4242
        self.returncode: int | None = None
        self.killed = False
        self._survive_kill = survive_kill

    def poll(self):
        return self.returncode

    def kill(self) -> None:
        self.killed = True
        if not self._survive_kill:
            self.returncode = -9

    def wait(self, timeout=None):
        if self.returncode is None:
            raise subprocess.TimeoutExpired(self.cmd, timeout)
        return self.returncode


@pytest.fixture
def popen(monkeypatch):
    launched: list[_FakeProcess] = []

    def _popen(cmd, **kwargs):
        proc = _FakeProcess(cmd, **kwargs)
        launched.append(proc)
        return proc

    monkeypatch.setattr(exporter.subprocess, "Popen", _popen)
    return launched


def test_port_allocator_decrements_from_start(monkeypatch):
    monkeypatch.setattr(exporter, "_port_available", lambda port: True)
    ports = exporter.PortAllocator(65534)

    allocated = [ports.allocate() for _ in range(4)]

    assert allocated == [65534, 65533, 65532, 65531]
    assert ports.allocated == allocated


def test_port_allocator_skips_bound_ports(monkeypatch):
    monkeypatch.setattr(exporter, "_port_available", lambda port: port != 65533)
    ports = exporter.PortAllocator(65534)

    assert [ports.allocate(), ports.allocate()] == [65534, 65532]


def test_port_allocator_exhaustion_raises(monkeypatch):
    monkeypatch.setattr(exporter, "_port_available", lambda port: False)
    ports = exporter.PortAllocator(1030, floor=1024)

    with pytest.raises(ExporterError, match="No free exporter port"):
        ports.allocate()


def test_launch_passes_listen_address_and_config(popen, tmp_path):
    config = tmp_path / "config.yml"
    instance = exporter.launch(Path("/tmp/bin/emqx-exporter"), 65534, config)

    assert popen[0].cmd == [
        "/tmp/bin/emqx-exporter",
        "--web.listen-address",
        ":65534",
        "--config.file",
        str(config),
    ]
    assert instance.port == 65534
    assert instance.alive


def test_launch_redirects_output_to_log(popen, tmp_path):
    log_path = tmp_path / "exporter.log"
    instance = exporter.launch(Path("/bin/true"), 65534, tmp_path / "c.yml", log_path=log_path)

    assert log_path.exists()
    assert instance.log_path == log_path
    assert popen[0].stdout.closed


def test_launch_failure_raises_exporter_error(monkeypatch, tmp_path):
    def _popen(cmd, **kwargs):
        raise FileNotFoundError(cmd[0])

    monkeypatch.setattr(exporter.subprocess, "Popen", _popen)

    with pytest.raises(ExporterError, match="Failed to launch"):
        exporter.launch(Path("/missing"), 65534, tmp_path / "c.yml")


def test_terminate_kills_and_confirms_exit(popen, tmp_path):
    instance = exporter.launch(Path("/bin/exporter"), 65534, tmp_path / "c.yml")

    exporter.terminate(instance)

    assert popen[0].killed
    assert not instance.alive


def test_terminate_raises_when_process_survives(monkeypatch, tmp_path):
    proc = _FakeProcess(["exporter"], survive_kill=True)
    monkeypatch.setattr(exporter.subprocess, "Popen", lambda cmd, **kwargs: proc)
    instance = exporter.launch(Path("/bin/exporter"), 65534, tmp_path / "c.yml")

    with pytest.raises(ExporterError, match="still alive"):
        exporter.terminate(instance, timeout=0.1)


def test_running_exporter_terminates_on_error(popen, tmp_path):
    with pytest.raises(RuntimeError, match="assertion blew up"):
        with exporter.running_exporter(Path("/bin/exporter"), 65534, tmp_path / "c.yml"):
            raise RuntimeError("assertion blew up")

    assert popen[0].killed
    assert popen[0].poll() is not None


def test_sibling_instances_are_independent(popen, tmp_path):
    first = exporter.launch(Path("/bin/exporter"), 65534, tmp_path / "a" / "config.yml")
    second = exporter.launch(Path("/bin/exporter"), 65533, tmp_path / "b" / "config.yml")

    exporter.terminate(first)

    assert not first.alive
    assert second.alive
    assert first.config_path != second.config_path
