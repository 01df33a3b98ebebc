# Where: e2e/runner/probe_config.py
# What: Builds, writes and reads the exporter probe configuration document.
# Why: Every scenario launches the exporter against the same four transport/TLS combinations.
from __future__ import annotations

from pathlib import Path

import yaml

from e2e.runner import constants
from e2e.runner.errors import ConfigError, ProvisioningError
from e2e.runner.models import ProbeTarget, ScenarioConfig, TLSConfig

TARGET_TCP = "127.0.0.1:1883"
TARGET_SSL = "127.0.0.1:8883"
TARGET_WS = "127.0.0.1:8083/mqtt"
TARGET_WSS = "127.0.0.1:38084/mqtt"


def scenario_tls_config(work_dir: Path) -> TLSConfig:
    certs = work_dir / constants.CERTS_DIR_NAME
    # The test certificate is self-signed.
    return TLSConfig(
        ca_file=str(certs / constants.CA_CERT_FILE),
        cert_file=str(certs / constants.CLIENT_CERT_FILE),
        key_file=str(certs / constants.CLIENT_KEY_FILE),
        insecure_skip_verify=True,
    )


def build_scenario_config(work_dir: Path) -> ScenarioConfig:
    tls = scenario_tls_config(work_dir)
    return ScenarioConfig(
        probes=(
            ProbeTarget(TARGET_TCP, constants.SCHEME_TCP),
            ProbeTarget(TARGET_SSL, constants.SCHEME_SSL, tls),
            ProbeTarget(TARGET_WS, constants.SCHEME_WS),
            ProbeTarget(TARGET_WSS, constants.SCHEME_WSS, tls),
        )
    )


def to_document(config: ScenarioConfig) -> dict:
    probes = []
    for probe in config.probes:
        entry: dict = {"target": probe.target, "scheme": probe.scheme}
        if probe.tls is not None:
            entry["tls_config"] = {
                "insecure_skip_verify": probe.tls.insecure_skip_verify,
                "ca_file": probe.tls.ca_file,
                "cert_file": probe.tls.cert_file,
                "key_file": probe.tls.key_file,
            }
        probes.append(entry)
    return {"probes": probes}


def from_document(data: dict) -> ScenarioConfig:
    if not isinstance(data, dict):
        raise ConfigError("probe config must be a map")
    raw_probes = data.get("probes")
    if not isinstance(raw_probes, list):
        raise ConfigError("probe config field 'probes' must be a list")

    probes = []
    for index, raw in enumerate(raw_probes):
        prefix = f"probes[{index}]"
        if not isinstance(raw, dict):
            raise ConfigError(f"{prefix} must be a map")
        target = str(raw.get("target") or "").strip()
        if not target:
            raise ConfigError(f"{prefix}.target is required")
        scheme = str(raw.get("scheme") or constants.SCHEME_TCP).strip()

        tls = None
        raw_tls = raw.get("tls_config")
        if raw_tls is not None:
            if not isinstance(raw_tls, dict):
                raise ConfigError(f"{prefix}.tls_config must be a map")
            tls = TLSConfig(
                ca_file=str(raw_tls.get("ca_file", "")),
                cert_file=str(raw_tls.get("cert_file", "")),
                key_file=str(raw_tls.get("key_file", "")),
                insecure_skip_verify=bool(raw_tls.get("insecure_skip_verify", False)),
            )
        try:
            probes.append(ProbeTarget(target, scheme, tls))
        except ValueError as exc:
            raise ConfigError(f"{prefix}: {exc}") from exc
    return ScenarioConfig(probes=tuple(probes))


def write_config(config: ScenarioConfig, path: Path) -> Path:
    document = to_document(config)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(document, f, sort_keys=False)
        path.chmod(0o644)
    except OSError as e:
        raise ProvisioningError(f"Failed to write probe config {path}: {e}") from e
    return path


def load_config(path: Path) -> ScenarioConfig:
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"invalid probe config {path}: {exc}") from exc
    return from_document(data)
