# Where: e2e/runner/exporter.py
# What: Port allocation and process supervision for exporter instances.
# Why: One exporter per scenario, each on its own port, always killed on scenario exit.
from __future__ import annotations

import logging
import socket
import subprocess
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from e2e.runner import constants
from e2e.runner.errors import ExporterError
from e2e.runner.models import ExporterInstance

logger = logging.getLogger(__name__)


def _port_available(port: int) -> bool:
    # Bind to 0.0.0.0 so we catch conflicts with services bound to all interfaces.
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind(("0.0.0.0", port))
        except OSError:
            return False
    return True


class PortAllocator:
    """
    Hands out strictly decreasing listen ports starting at ``start``.

    Single-threaded suites only; parallel scenarios would need disjoint ranges.
    """

    def __init__(self, start: int = constants.EXPORTER_START_PORT, *, floor: int = 1024) -> None:
        self._next = start
        self._floor = floor
        self.allocated: list[int] = []

    def allocate(self) -> int:
        while self._next > self._floor:
            port = self._next
            self._next -= 1
            if _port_available(port):
                self.allocated.append(port)
                return port
            logger.warning(f"Port {port} is still bound, skipping")
        raise ExporterError(f"No free exporter port left above {self._floor}")


def launch(
    binary: Path,
    port: int,
    config_path: Path,
    *,
    log_path: Path | None = None,
) -> ExporterInstance:
    """Start the exporter without waiting for readiness."""
    cmd = [
        str(binary),
        "--web.listen-address",
        f":{port}",
        "--config.file",
        str(config_path),
    ]
    log_file = open(log_path, "w", encoding="utf-8") if log_path else subprocess.DEVNULL
    try:
        process = subprocess.Popen(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=log_file,
            stderr=subprocess.STDOUT,
        )
    except OSError as e:
        raise ExporterError(f"Failed to launch exporter {binary}: {e}") from e
    finally:
        if log_path:
            log_file.close()
    logger.info(f"Exporter started on :{port} (pid={process.pid})")
    return ExporterInstance(port=port, process=process, config_path=config_path, log_path=log_path)


def terminate(
    instance: ExporterInstance, *, timeout: float = constants.EXPORTER_KILL_TIMEOUT
) -> None:
    """Kill the process and confirm it has exited before its port is considered released."""
    process = instance.process
    if process.poll() is None:
        process.kill()
    try:
        process.wait(timeout=timeout)
    except subprocess.TimeoutExpired as e:
        raise ExporterError(
            f"Exporter on :{instance.port} (pid={process.pid}) still alive {timeout:g}s after kill"
        ) from e
    logger.info(f"Exporter on :{instance.port} terminated")


@contextmanager
def running_exporter(
    binary: Path,
    port: int,
    config_path: Path,
    *,
    log_path: Path | None = None,
) -> Iterator[ExporterInstance]:
    instance = launch(binary, port, config_path, log_path=log_path)
    try:
        yield instance
    finally:
        terminate(instance)
