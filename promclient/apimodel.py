"""Data types of the HTTP query API and decoders for their JSON form."""

from __future__ import annotations

import enum
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Union


class _StrEnum(str, enum.Enum):
    def __str__(self) -> str:
        return self.value

    def __format__(self, spec: str) -> str:
        return format(self.value, spec)


class ErrorType(_StrEnum):
    """Kinds of errors reported by the API."""

    BAD_DATA = "bad_data"
    TIMEOUT = "timeout"
    CANCELED = "canceled"
    EXEC = "execution"
    BAD_RESPONSE = "bad_response"
    SERVER = "server_error"
    CLIENT = "client_error"


class AlertState(_StrEnum):
    """State of an alert."""

    FIRING = "firing"
    INACTIVE = "inactive"
    PENDING = "pending"


class HealthStatus(_StrEnum):
    """Health of a scrape target."""

    GOOD = "up"
    UNKNOWN = "unknown"
    BAD = "down"


class RuleType(_StrEnum):
    """Type of a rule."""

    RECORDING = "recording"
    ALERTING = "alerting"


RULE_HEALTH_GOOD = "ok"
RULE_HEALTH_UNKNOWN = "unknown"
RULE_HEALTH_BAD = "err"


def _coerce(enum_type: type[_StrEnum], value: str) -> Any:
    try:
        return enum_type(value)
    except ValueError:
        return value


class APIError(Exception):
    """An error reported by the API or detected in its response."""

    def __init__(self, type: ErrorType | str, msg: str, detail: str = "") -> None:
        self.type = _coerce(ErrorType, type) if isinstance(type, str) else type
        self.msg = msg
        self.detail = detail
        super().__init__(str(self))

    def __str__(self) -> str:
        return f"{self.type}: {self.msg}"


@dataclass(frozen=True)
class Scalar:
    """A scalar query result; timestamp in milliseconds."""

    value: float
    timestamp: int


@dataclass(frozen=True)
class Sample:
    """One sample of an instant vector; timestamp in milliseconds."""

    metric: Mapping[str, str]
    value: float
    timestamp: int


@dataclass(frozen=True)
class SampleStream:
    """A series of a range result: (timestamp in ms, value) pairs."""

    metric: Mapping[str, str]
    values: tuple[tuple[int, float], ...] = ()


QueryValue = Union[Scalar, list[Sample], list[SampleStream]]


@dataclass(frozen=True)
class AlertManager:
    """A configured Alertmanager."""

    url: str


@dataclass(frozen=True)
class AlertManagersResult:
    """Active and dropped Alertmanagers."""

    active: tuple[AlertManager, ...] = ()
    dropped: tuple[AlertManager, ...] = ()


@dataclass(frozen=True)
class ConfigResult:
    """The loaded configuration as YAML text."""

    yaml: str = ""


@dataclass(frozen=True)
class SnapshotResult:
    """Name of a created snapshot directory."""

    name: str = ""


@dataclass(frozen=True)
class Alert:
    """An active alert."""

    active_at: datetime | None = None
    annotations: Mapping[str, str] = field(default_factory=dict)
    labels: Mapping[str, str] = field(default_factory=dict)
    state: AlertState | str = ""
    value: float = 0.0


@dataclass(frozen=True)
class AlertingRule:
    """An alerting rule."""

    name: str = ""
    query: str = ""
    duration: float = 0.0
    labels: Mapping[str, str] = field(default_factory=dict)
    annotations: Mapping[str, str] = field(default_factory=dict)
    alerts: tuple[Alert, ...] = ()
    health: str = ""
    last_error: str = ""


@dataclass(frozen=True)
class RecordingRule:
    """A recording rule."""

    name: str = ""
    query: str = ""
    labels: Mapping[str, str] = field(default_factory=dict)
    health: str = ""
    last_error: str = ""


Rule = Union[AlertingRule, RecordingRule]


@dataclass(frozen=True)
class RuleGroup:
    """A group of rules, in the order the server returned them."""

    name: str = ""
    file: str = ""
    interval: float = 0.0
    rules: tuple[Rule, ...] = ()


@dataclass(frozen=True)
class RulesResult:
    """All loaded rule groups."""

    groups: tuple[RuleGroup, ...] = ()


@dataclass(frozen=True)
class ActiveTarget:
    """An active scrape target."""

    discovered_labels: Mapping[str, str] = field(default_factory=dict)
    labels: Mapping[str, str] = field(default_factory=dict)
    scrape_url: str = ""
    last_error: str = ""
    last_scrape: datetime | None = None
    health: HealthStatus | str = ""


@dataclass(frozen=True)
class DroppedTarget:
    """A target dropped during relabelling."""

    discovered_labels: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class TargetsResult:
    """Active and dropped scrape targets."""

    active: tuple[ActiveTarget, ...] = ()
    dropped: tuple[DroppedTarget, ...] = ()


_RFC3339 = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?"
    r"(?:([Zz])|([+-])(\d{2}):(\d{2}))"
)


def parse_time(value: str) -> datetime:
    """Parse an RFC 3339 timestamp into an aware datetime (microsecond precision)."""
    if not isinstance(value, str):
        raise ValueError(f"cannot parse {value!r} as RFC 3339 time")
    match = _RFC3339.fullmatch(value)
    if match is None:
        raise ValueError(f"cannot parse {value!r} as RFC 3339 time")
    year, month, day, hour, minute, second, frac, zulu, sign, off_h, off_m = match.groups()
    if zulu:
        tz = timezone.utc
    else:
        offset = timedelta(hours=int(off_h), minutes=int(off_m))
        tz = timezone(-offset if sign == "-" else offset)
    micro = int((frac or "").ljust(6, "0")[:6])
    return datetime(
        int(year), int(month), int(day), int(hour), int(minute), int(second), micro, tzinfo=tz
    )


def _object(data: Any) -> Mapping[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data


def _list(data: Any) -> list[Any]:
    if data is None:
        return []
    if not isinstance(data, list):
        raise ValueError(f"expected a JSON array, got {type(data).__name__}")
    return data


def _str(obj: Mapping[str, Any], key: str) -> str:
    value = obj.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a string")
    return value


def _float(obj: Mapping[str, Any], key: str) -> float:
    value = obj.get(key)
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"field {key!r} must be a number")
    return float(value)


def _labels(data: Any) -> dict[str, str]:
    labels = _object(data)
    for name, value in labels.items():
        if not isinstance(value, str):
            raise ValueError(f"label {name!r} must have a string value")
    return dict(labels)


def _time(obj: Mapping[str, Any], key: str) -> datetime | None:
    value = obj.get(key)
    return None if value is None else parse_time(value)


def _timestamp_ms(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"timestamp must be a number, got {value!r}")
    try:
        return int(Decimal(str(value)) * 1000)
    except InvalidOperation:
        raise ValueError(f"invalid timestamp {value!r}") from None


def _pair(data: Any) -> tuple[int, float]:
    pair = _list(data)
    if len(pair) != 2:
        raise ValueError("sample pair must have two elements")
    timestamp, value = pair
    if not isinstance(value, str):
        raise ValueError("sample value must be a quoted string")
    return _timestamp_ms(timestamp), float(value)


def decode_query_result(data: Any) -> QueryValue:
    """Decode ``{"resultType": ..., "result": ...}`` into a scalar, vector or matrix."""
    obj = _object(data)
    result_type = obj.get("resultType")
    result = obj.get("result")
    if result_type == "scalar":
        timestamp, value = _pair(result)
        return Scalar(value, timestamp)
    if result_type == "vector":
        samples = []
        for item in _list(result):
            entry = _object(item)
            timestamp, value = _pair(entry.get("value"))
            samples.append(Sample(_labels(entry.get("metric")), value, timestamp))
        return samples
    if result_type == "matrix":
        return [
            SampleStream(
                _labels(_object(item).get("metric")),
                tuple(_pair(p) for p in _list(_object(item).get("values"))),
            )
            for item in _list(result)
        ]
    raise ValueError(f'unexpected value type "{result_type}"')


def _check_rule_type(obj: Mapping[str, Any], expected: RuleType) -> None:
    rule_type = _str(obj, "type")
    if not rule_type:
        raise ValueError("type field not present in rule")
    if rule_type != expected.value:
        raise ValueError(f"expected rule of type {expected} but got {rule_type}")


def _decode_alert(data: Any) -> Alert:
    obj = _object(data)
    return Alert(
        active_at=_time(obj, "activeAt"),
        annotations=_labels(obj.get("annotations")),
        labels=_labels(obj.get("labels")),
        state=_coerce(AlertState, _str(obj, "state")),
        value=_float(obj, "value"),
    )


def _decode_alerting_rule(data: Any) -> AlertingRule:
    obj = _object(data)
    _check_rule_type(obj, RuleType.ALERTING)
    return AlertingRule(
        name=_str(obj, "name"),
        query=_str(obj, "query"),
        duration=_float(obj, "duration"),
        labels=_labels(obj.get("labels")),
        annotations=_labels(obj.get("annotations")),
        alerts=tuple(_decode_alert(a) for a in _list(obj.get("alerts"))),
        health=_str(obj, "health"),
        last_error=_str(obj, "lastError"),
    )


def _decode_recording_rule(data: Any) -> RecordingRule:
    obj = _object(data)
    _check_rule_type(obj, RuleType.RECORDING)
    return RecordingRule(
        name=_str(obj, "name"),
        query=_str(obj, "query"),
        labels=_labels(obj.get("labels")),
        health=_str(obj, "health"),
        last_error=_str(obj, "lastError"),
    )


def decode_rule(data: Any) -> Rule:
    """Decode a rule as alerting rule, else as recording rule."""
    for decoder in (_decode_alerting_rule, _decode_recording_rule):
        try:
            return decoder(data)
        except ValueError:
            continue
    raise ValueError("failed to decode JSON into an alerting or recording rule")


def decode_rule_group(data: Any) -> RuleGroup:
    """Decode a rule group, keeping the order of its rules."""
    obj = _object(data)
    return RuleGroup(
        name=_str(obj, "name"),
        file=_str(obj, "file"),
        interval=_float(obj, "interval"),
        rules=tuple(decode_rule(r) for r in _list(obj.get("rules"))),
    )


def decode_rules_result(data: Any) -> RulesResult:
    """Decode the data of the rules endpoint."""
    obj = _object(data)
    return RulesResult(tuple(decode_rule_group(g) for g in _list(obj.get("groups"))))


def _decode_alert_manager(data: Any) -> AlertManager:
    return AlertManager(_str(_object(data), "url"))


def decode_alert_managers_result(data: Any) -> AlertManagersResult:
    """Decode the data of the alertmanagers endpoint."""
    obj = _object(data)
    return AlertManagersResult(
        active=tuple(_decode_alert_manager(a) for a in _list(obj.get("activeAlertManagers"))),
        dropped=tuple(_decode_alert_manager(a) for a in _list(obj.get("droppedAlertManagers"))),
    )


def _decode_active_target(data: Any) -> ActiveTarget:
    obj = _object(data)
    return ActiveTarget(
        discovered_labels=_labels(obj.get("discoveredLabels")),
        labels=_labels(obj.get("labels")),
        scrape_url=_str(obj, "scrapeUrl"),
        last_error=_str(obj, "lastError"),
        last_scrape=_time(obj, "lastScrape"),
        health=_coerce(HealthStatus, _str(obj, "health")),
    )


def decode_targets_result(data: Any) -> TargetsResult:
    """Decode the data of the targets endpoint."""
    obj = _object(data)
    return TargetsResult(
        active=tuple(_decode_active_target(t) for t in _list(obj.get("activeTargets"))),
        dropped=tuple(
            DroppedTarget(_labels(_object(t).get("discoveredLabels")))
            for t in _list(obj.get("droppedTargets"))
        ),
    )