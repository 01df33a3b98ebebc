# Where: e2e/runner/assertions.py
# What: Checks decoded probe metrics against the exporter's probe metric contract.
# Why: Report mismatches together with the full decoded family, not just a boolean.
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable

from e2e.runner import constants
from e2e.runner.errors import MetricAssertionError
from e2e.runner.models import MetricFamily


@dataclass(frozen=True)
class MetricCheck:
    name: str
    passed: bool
    message: str
    family: MetricFamily | None = None


@dataclass(frozen=True)
class MetricRule:
    name: str
    type: str
    description: str
    predicate: Callable[[float], bool]


def probe_metric_rules(prefix: str = constants.METRIC_PREFIX) -> list[MetricRule]:
    return [
        MetricRule(
            name=f"{prefix}_{constants.METRIC_DURATION_SUFFIX}",
            type=constants.METRIC_TYPE_GAUGE,
            description="non-zero",
            predicate=lambda value: value != 0,
        ),
        MetricRule(
            name=f"{prefix}_{constants.METRIC_SUCCESS_SUFFIX}",
            type=constants.METRIC_TYPE_GAUGE,
            description="equal to 1",
            predicate=lambda value: value == 1,
        ),
    ]


def describe_family(family: MetricFamily | None) -> str:
    if family is None:
        return "<missing>"
    lines = [f"name={family.name} type={family.type} samples={len(family.samples)}"]
    for sample in family.samples:
        labels = ",".join(f'{k}="{v}"' for k, v in sorted(sample.labels.items()))
        lines.append(f"  {{{labels}}} {sample.value!r}")
    return "\n".join(lines)


def check_rule(families: dict[str, MetricFamily], rule: MetricRule) -> MetricCheck:
    family = families.get(rule.name)
    if family is None:
        return MetricCheck(rule.name, False, f"metric {rule.name} not found")
    if family.name != rule.name:
        return MetricCheck(rule.name, False, f"name {family.name!r} != {rule.name!r}", family)
    if family.type != rule.type:
        return MetricCheck(rule.name, False, f"type {family.type!r} != {rule.type!r}", family)
    if not family.samples:
        return MetricCheck(rule.name, False, "family has no samples", family)
    value = family.samples[0].value
    try:
        finite = math.isfinite(value)
    except TypeError:
        finite = False
    if not finite:
        return MetricCheck(
            rule.name, False, f"first sample {value!r} is not a finite number", family
        )
    if not rule.predicate(value):
        return MetricCheck(
            rule.name, False, f"first sample {value!r} is not {rule.description}", family
        )
    return MetricCheck(rule.name, True, "ok", family)


def validate_probe_metrics(
    families: dict[str, MetricFamily],
    prefix: str = constants.METRIC_PREFIX,
) -> list[MetricCheck]:
    return [check_rule(families, rule) for rule in probe_metric_rules(prefix)]


def assert_probe_metrics(
    families: dict[str, MetricFamily],
    prefix: str = constants.METRIC_PREFIX,
) -> None:
    failures = [check for check in validate_probe_metrics(families, prefix) if not check.passed]
    if not failures:
        return
    details = "\n".join(
        f"- {check.name}: {check.message}\n{describe_family(check.family)}" for check in failures
    )
    raise MetricAssertionError(f"probe metrics mismatch:\n{details}")
