# Where: e2e/runner/logging.py
# What: Log sinks and subprocess streaming helpers for suite runs.
# Why: Ensure full build/exporter logs are always persisted while keeping console output optional.
from __future__ import annotations

import subprocess
import threading
from pathlib import Path
from typing import Callable, TextIO

_OUTPUT_LOCK = threading.Lock()


def safe_print(message: str = "", *, prefix: str | None = None) -> None:
    with _OUTPUT_LOCK:
        if prefix:
            print(f"{prefix} {message}", flush=True)
        else:
            print(message, flush=True)


class LogSink:
    def __init__(self, path: Path) -> None:
        self.path = path
        self._file: TextIO | None = None
        self._lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return self._file is not None

    def open(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file = self.path.open("w", encoding="utf-8")

    def close(self) -> None:
        if self._file:
            self._file.close()
            self._file = None

    def write_line(self, line: str) -> None:
        if self._file is None:
            raise RuntimeError("LogSink is not open")
        with self._lock:
            self._file.write(f"{line}\n")
            self._file.flush()


def make_prefix_printer(label: str) -> Callable[[str], None]:
    prefix = f"[{label}]"

    def _printer(line: str) -> None:
        safe_print(line, prefix=prefix)

    return _printer


def run_and_stream(
    cmd: list[str],
    *,
    cwd: Path,
    log: LogSink,
    printer: Callable[[str], None] | None = None,
) -> int:
    rendered_cmd = f"$ {' '.join(cmd)}"
    log.write_line(rendered_cmd)
    if printer:
        printer(rendered_cmd)
    proc = subprocess.Popen(
        cmd,
        cwd=str(cwd),
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        bufsize=1,
        errors="replace",
    )
    assert proc.stdout is not None
    for raw_line in proc.stdout:
        line = raw_line.rstrip("\n")
        log.write_line(line)
        if printer:
            printer(line)
    return proc.wait()


def tail_lines(path: Path | None, *, lines: int = 40) -> list[str]:
    if path is None or not path.exists():
        return []
    try:
        content = path.read_text(encoding="utf-8", errors="replace").splitlines()
    except OSError:
        return []
    return content[-lines:] if len(content) > lines else content
