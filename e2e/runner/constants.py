# Where: e2e/runner/constants.py
# What: Fixed defaults for the exporter E2E suite.
# Why: Keep broker, port and timing values in one place for runner and tests.
from __future__ import annotations

EXPORTER_BIN_NAME = "emqx-exporter"
BIN_DIR_PREFIX = f"{EXPORTER_BIN_NAME}-test-bindir-"
BIN_DIR_ROOT = "/tmp"
DEFAULT_BUILD_CMD = ("go", "build", "-o", "{output}")
DEFAULT_CERTS_SUBDIR = "config/example/certs"
CONFIG_FILE_NAME = "config.yml"
EXPORTER_LOG_NAME = "exporter.log"
SUITE_LOG_NAME = ".suite.log"

# Dependency (EMQX broker) container.
EMQX_IMAGE = "docker.io/emqx/emqx-enterprise:5.3"
EMQX_CONTAINER_NAME = "emqx-for-emqx-exporter-test"
EMQX_HEALTHCHECK = ["CMD", "curl", "-f", "http://localhost:18083/status"]
MANAGED_LABEL = "com.emqx-exporter-e2e.managed"
EMQX_PORT_MAP = {
    "18084/tcp": "18084",
    "18083/tcp": "18083",
    "1883/tcp": "1883",
    "8883/tcp": "8883",
    "8083/tcp": "8083",
    # CI runners hold 8084 already.
    "8084/tcp": "38084",
}
HOST_BIND_IP = "127.0.0.1"

HEALTH_STARTING = "starting"
HEALTH_HEALTHY = "healthy"
HEALTH_UNHEALTHY = "unhealthy"
HEALTH_UNKNOWN = "unknown"
HEALTH_MAX_ATTEMPTS = 60
HEALTH_INTERVAL = 1.0

# Exporter processes.
EXPORTER_START_PORT = 65534
EXPORTER_KILL_TIMEOUT = 5.0

# Convergence polling.
PROBE_TIMEOUT = 10.0
PROBE_INTERVAL = 0.5
PROBE_REQUEST_TIMEOUT = 2.0
PROBE_PATH = "/probe"

# Probe schemes.
SCHEME_TCP = "tcp"
SCHEME_SSL = "ssl"
SCHEME_WS = "ws"
SCHEME_WSS = "wss"
SCHEMES = (SCHEME_TCP, SCHEME_SSL, SCHEME_WS, SCHEME_WSS)
TLS_SCHEMES = (SCHEME_SSL, SCHEME_WSS)

# TLS bundle staged into each scenario.
CA_CERT_FILE = "cacert.pem"
CLIENT_CERT_FILE = "client-cert.pem"
CLIENT_KEY_FILE = "client-key.pem"
TLS_BUNDLE = (CA_CERT_FILE, CLIENT_CERT_FILE, CLIENT_KEY_FILE)
CERTS_DIR_NAME = "certs"

# Metric contract.
METRIC_PREFIX = "emqx"
METRIC_DURATION_SUFFIX = "mqtt_probe_duration_seconds"
METRIC_SUCCESS_SUFFIX = "mqtt_probe_success"
METRIC_TYPE_GAUGE = "gauge"
