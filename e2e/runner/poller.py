# Where: e2e/runner/poller.py
# What: Fetches and decodes /probe metrics, retrying until they converge or a deadline passes.
# Why: A freshly started exporter and its first probe against the broker are
#      eventually consistent; assertions must tolerate bounded convergence.
from __future__ import annotations

import logging
import time

import requests
from prometheus_client.parser import text_string_to_metric_families

from e2e.runner import constants
from e2e.runner.errors import (
    MetricsDecodeError,
    MetricsFetchError,
    PollTimeoutError,
    ScenarioError,
)
from e2e.runner.models import MetricFamily, MetricSample, PollResult

logger = logging.getLogger(__name__)


def probe_url(port: int, host: str = "127.0.0.1") -> str:
    return f"http://{host}:{port}{constants.PROBE_PATH}"


def decode_metric_families(text: str) -> dict[str, MetricFamily]:
    families: dict[str, MetricFamily] = {}
    try:
        for family in text_string_to_metric_families(text):
            if family.name in families:
                raise MetricsDecodeError(f"duplicate metric family: {family.name}")
            families[family.name] = MetricFamily(
                name=family.name,
                type=family.type,
                samples=tuple(
                    MetricSample(value=sample.value, labels=dict(sample.labels))
                    for sample in family.samples
                ),
                documentation=family.documentation,
            )
    except (ValueError, TypeError, IndexError) as e:
        raise MetricsDecodeError(f"invalid exposition text: {e}") from e
    return families


def fetch_metric_families(
    url: str,
    target: str,
    *,
    timeout: float = constants.PROBE_REQUEST_TIMEOUT,
) -> dict[str, MetricFamily]:
    try:
        with requests.Session() as session:
            session.trust_env = False
            response = session.get(url, params={"target": target}, timeout=timeout)
    except requests.exceptions.RequestException as e:
        raise MetricsFetchError(f"{url}?target={target}: {e}") from e
    if response.status_code != 200:
        raise MetricsFetchError(
            f"{url}?target={target}: HTTP {response.status_code} {response.reason}"
        )
    return decode_metric_families(response.text)


def poll_until_converged(
    url: str,
    target: str,
    *,
    timeout: float = constants.PROBE_TIMEOUT,
    interval: float = constants.PROBE_INTERVAL,
    request_timeout: float = constants.PROBE_REQUEST_TIMEOUT,
) -> PollResult:
    """
    Poll ``url?target=<target>`` until a response decodes cleanly.

    Transport errors, non-200 responses and decode errors are retried every
    ``interval`` seconds. Once ``timeout`` has elapsed the result carries a
    PollTimeoutError wrapping the last underlying error; nothing is raised.
    """
    deadline = time.monotonic() + timeout
    attempts = 0
    last_err: ScenarioError | None = None
    while True:
        attempts += 1
        try:
            families = fetch_metric_families(url, target, timeout=request_timeout)
            return PollResult(families=families, attempts=attempts)
        except (MetricsFetchError, MetricsDecodeError) as e:
            last_err = e
            logger.debug(f"Probe attempt {attempts} for {target} not ready: {e}")
        if time.monotonic() + interval > deadline:
            break
        time.sleep(interval)
    return PollResult(
        error=PollTimeoutError(f"{url}?target={target}", timeout, attempts, last_err),
        attempts=attempts,
    )
