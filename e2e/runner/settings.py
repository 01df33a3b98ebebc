# Where: e2e/runner/settings.py
# What: Suite settings resolved from defaults, .env.test, environment and CLI flags.
# Why: Keep every tunable in one explicit object passed to the runner.
from __future__ import annotations

import os
import shlex
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Mapping

from dotenv import dotenv_values

from e2e.runner import constants
from e2e.runner.errors import ConfigError

E2E_ROOT = Path(__file__).resolve().parent.parent
PROJECT_ROOT = E2E_ROOT.parent
ENV_FILE = E2E_ROOT / ".env.test"


@dataclass(frozen=True)
class SuiteSettings:
    source_dir: Path
    certs_dir: Path
    build_cmd: tuple[str, ...] = constants.DEFAULT_BUILD_CMD
    image: str = constants.EMQX_IMAGE
    container_name: str = constants.EMQX_CONTAINER_NAME
    port_map: dict[str, str] = field(default_factory=lambda: dict(constants.EMQX_PORT_MAP))
    start_port: int = constants.EXPORTER_START_PORT
    probe_timeout: float = constants.PROBE_TIMEOUT
    probe_interval: float = constants.PROBE_INTERVAL
    health_max_attempts: int = constants.HEALTH_MAX_ATTEMPTS
    health_interval: float = constants.HEALTH_INTERVAL
    metric_prefix: str = constants.METRIC_PREFIX
    log_path: Path = E2E_ROOT / constants.SUITE_LOG_NAME
    fail_fast: bool = False
    verbose: bool = False


def _env_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{key} must be a number, got {raw!r}") from exc


def _env_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{key} must be an integer, got {raw!r}") from exc


def _merged_env(environ: Mapping[str, str] | None, env_file: Path | None) -> dict[str, str]:
    merged: dict[str, str] = {}
    if env_file is not None and env_file.exists():
        merged.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
    merged.update(os.environ if environ is None else environ)
    return merged


def load_settings(
    args=None,
    *,
    environ: Mapping[str, str] | None = None,
    env_file: Path | None = ENV_FILE,
) -> SuiteSettings:
    """Resolve settings: defaults < .env.test < environment < CLI flags."""
    env = _merged_env(environ, env_file)

    source_dir = Path(env.get("EXPORTER_SOURCE_DIR") or PROJECT_ROOT)
    certs_raw = env.get("EXPORTER_CERTS_DIR")
    build_raw = env.get("EXPORTER_BUILD_CMD", "").strip()
    settings = SuiteSettings(
        source_dir=source_dir,
        certs_dir=Path(certs_raw) if certs_raw else source_dir / constants.DEFAULT_CERTS_SUBDIR,
        build_cmd=tuple(shlex.split(build_raw)) if build_raw else constants.DEFAULT_BUILD_CMD,
        image=env.get("EMQX_IMAGE") or constants.EMQX_IMAGE,
        container_name=env.get("EMQX_CONTAINER_NAME") or constants.EMQX_CONTAINER_NAME,
        start_port=_env_int(env, "EXPORTER_START_PORT", constants.EXPORTER_START_PORT),
        probe_timeout=_env_float(env, "PROBE_TIMEOUT", constants.PROBE_TIMEOUT),
        probe_interval=_env_float(env, "PROBE_INTERVAL", constants.PROBE_INTERVAL),
        health_max_attempts=_env_int(env, "HEALTH_MAX_ATTEMPTS", constants.HEALTH_MAX_ATTEMPTS),
        health_interval=_env_float(env, "HEALTH_INTERVAL", constants.HEALTH_INTERVAL),
        metric_prefix=env.get("METRIC_PREFIX") or constants.METRIC_PREFIX,
    )

    if args is not None:
        overrides = {}
        if getattr(args, "source_dir", None):
            overrides["source_dir"] = Path(args.source_dir)
            if not certs_raw and not getattr(args, "certs_dir", None):
                overrides["certs_dir"] = Path(args.source_dir) / constants.DEFAULT_CERTS_SUBDIR
        if getattr(args, "certs_dir", None):
            overrides["certs_dir"] = Path(args.certs_dir)
        if getattr(args, "image", None):
            overrides["image"] = args.image
        overrides["fail_fast"] = bool(getattr(args, "fail_fast", False))
        overrides["verbose"] = bool(getattr(args, "verbose", False))
        settings = replace(settings, **overrides)

    _validate(settings)
    return settings


def _validate(settings: SuiteSettings) -> None:
    if not 1024 < settings.start_port <= 65535:
        raise ConfigError(f"EXPORTER_START_PORT out of range: {settings.start_port}")
    if settings.probe_timeout <= 0 or settings.probe_interval <= 0:
        raise ConfigError("PROBE_TIMEOUT and PROBE_INTERVAL must be positive")
    if settings.health_max_attempts < 1 or settings.health_interval <= 0:
        raise ConfigError("HEALTH_MAX_ATTEMPTS and HEALTH_INTERVAL must be positive")
    if "{output}" not in " ".join(settings.build_cmd):
        raise ConfigError("EXPORTER_BUILD_CMD must contain the {output} placeholder")
