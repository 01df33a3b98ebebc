# Where: e2e/runner/build.py
# What: Builds the exporter binary once per suite into a private temp directory.
# Why: Every scenario reuses one read-only artifact; the directory is removed exactly once.
from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path
from typing import Callable

from e2e.runner import constants
from e2e.runner.errors import BuildError
from e2e.runner.logging import LogSink, run_and_stream
from e2e.runner.models import Artifact

logger = logging.getLogger(__name__)


class ArtifactBuilder:
    def __init__(
        self,
        source_dir: Path,
        *,
        log: LogSink,
        build_cmd: tuple[str, ...] = constants.DEFAULT_BUILD_CMD,
        bin_name: str = constants.EXPORTER_BIN_NAME,
        tmp_root: str = constants.BIN_DIR_ROOT,
        printer: Callable[[str], None] | None = None,
    ) -> None:
        self.source_dir = source_dir
        self.build_cmd = build_cmd
        self.bin_name = bin_name
        self.tmp_root = tmp_root
        self.artifact: Artifact | None = None
        self._log = log
        self._printer = printer

    def build(self) -> Artifact:
        if self.artifact is not None:
            return self.artifact
        if not self.source_dir.is_dir():
            raise BuildError(f"Exporter source directory not found: {self.source_dir}")

        try:
            bin_dir = Path(tempfile.mkdtemp(prefix=constants.BIN_DIR_PREFIX, dir=self.tmp_root))
        except OSError as e:
            raise BuildError(f"Failed to create artifact directory: {e}") from e
        bin_path = bin_dir / self.bin_name
        cmd = [token.replace("{output}", str(bin_path)) for token in self.build_cmd]

        logger.info(f"Building {self.bin_name} into {bin_dir}")
        try:
            rc = run_and_stream(cmd, cwd=self.source_dir, log=self._log, printer=self._printer)
        except OSError as e:
            shutil.rmtree(bin_dir, ignore_errors=True)
            raise BuildError(f"Failed to run build command {cmd[0]!r}: {e}") from e
        if rc != 0 or not bin_path.is_file():
            shutil.rmtree(bin_dir, ignore_errors=True)
            raise BuildError(f"Build failed with exit code {rc}: {' '.join(cmd)}")

        self.artifact = Artifact(bin_dir=bin_dir, bin_path=bin_path)
        return self.artifact

    def cleanup(self) -> None:
        if self.artifact is None:
            return
        bin_dir = self.artifact.bin_dir
        try:
            shutil.rmtree(bin_dir)
        except FileNotFoundError:
            pass
        except OSError as e:
            raise BuildError(f"Failed to remove artifact directory {bin_dir}: {e}") from e
        logger.info(f"Removed artifact directory {bin_dir}")
        self.artifact = None
