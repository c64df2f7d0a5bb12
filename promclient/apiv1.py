"""Bindings for version 1 of the HTTP query API."""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Protocol
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from .apiclient import Client
from .apimodel import (
    AlertManagersResult,
    APIError,
    ConfigResult,
    ErrorType,
    QueryValue,
    RulesResult,
    SnapshotResult,
    TargetsResult,
    decode_alert_managers_result,
    decode_query_result,
    decode_rules_result,
    decode_targets_result,
)

STATUS_API_ERROR = 422
_STATUS_BAD_REQUEST = 400
_STATUS_NO_CONTENT = 204

API_PREFIX = "/api/v1"

EP_ALERT_MANAGERS = API_PREFIX + "/alertmanagers"
EP_QUERY = API_PREFIX + "/query"
EP_QUERY_RANGE = API_PREFIX + "/query_range"
EP_LABEL_VALUES = API_PREFIX + "/label/:name/values"
EP_SERIES = API_PREFIX + "/series"
EP_TARGETS = API_PREFIX + "/targets"
EP_RULES = API_PREFIX + "/rules"
EP_SNAPSHOT = API_PREFIX + "/admin/tsdb/snapshot"
EP_DELETE_SERIES = API_PREFIX + "/admin/tsdb/delete_series"
EP_CLEAN_TOMBSTONES = API_PREFIX + "/admin/tsdb/clean_tombstones"
EP_CONFIG = API_PREFIX + "/status/config"
EP_FLAGS = API_PREFIX + "/status/flags"


@dataclass(frozen=True)
class Range:
    """A sliced time range: its bounds and the step between two slices."""

    start: datetime
    end: datetime
    step: timedelta


class _DataClient(Protocol):
    def url(self, ep: str, args: Mapping[str, str] | None = None) -> str: ...

    def do(self, method: str, url: str) -> Any: ...


def _is_api_error(code: int) -> bool:
    # The codes the server sends together with an error body.
    return code in (STATUS_API_ERROR, _STATUS_BAD_REQUEST)


def _error_type_and_msg(code: int) -> tuple[ErrorType, str]:
    kind = code // 100
    if kind == 4:
        return ErrorType.CLIENT, f"client error: {code}"
    if kind == 5:
        return ErrorType.SERVER, f"server error: {code}"
    return ErrorType.BAD_RESPONSE, f"bad response code {code}"


class APIClient:
    """Wraps a plain client and unpacks the API's response envelope.

    ``do`` returns the decoded ``data`` member of a successful response and
    raises :class:`APIError` for error responses and malformed bodies.
    """

    def __init__(self, client: Client) -> None:
        self._client = client

    def url(self, ep: str, args: Mapping[str, str] | None = None) -> str:
        """Return the URL of endpoint ``ep``."""
        return self._client.url(ep, args)

    def do(self, method: str, url: str) -> Any:
        """Perform a request and return the decoded ``data`` of the response."""
        resp = self._client.do(method, url)
        code = resp.status_code
        body = resp.body or b""

        if code // 100 != 2 and not _is_api_error(code):
            error_type, msg = _error_type_and_msg(code)
            raise APIError(error_type, msg, body.decode("utf-8", "replace"))

        result: Mapping[str, Any] = {}
        if code != _STATUS_NO_CONTENT:
            try:
                decoded = json.loads(body)
            except ValueError as exc:
                raise APIError(ErrorType.BAD_RESPONSE, str(exc)) from None
            if not isinstance(decoded, dict):
                raise APIError(
                    ErrorType.BAD_RESPONSE,
                    f"cannot decode JSON {type(decoded).__name__} as response envelope",
                )
            result = decoded

        status = result.get("status")
        if _is_api_error(code) and status == "error":
            raise APIError(result.get("errorType") or "", result.get("error") or "")
        if _is_api_error(code) != (status == "error"):
            raise APIError(ErrorType.BAD_RESPONSE, "inconsistent body for response code")
        return result.get("data")


def _format_time(t: datetime) -> str:
    """Format ``t`` as RFC 3339 with trailing fractional zeros removed."""
    if t.tzinfo is None:
        t = t.astimezone()
    text = (
        f"{t.year:04d}-{t.month:02d}-{t.day:02d}"
        f"T{t.hour:02d}:{t.minute:02d}:{t.second:02d}"
    )
    if t.microsecond:
        text += "." + f"{t.microsecond:06d}".rstrip("0")
    offset = t.utcoffset() or timedelta(0)
    seconds = int(offset.total_seconds())
    if seconds == 0:
        return text + "Z"
    sign = "-" if seconds < 0 else "+"
    minutes = abs(seconds) // 60
    return f"{text}{sign}{minutes // 60:02d}:{minutes % 60:02d}"


def _with_query(
    url: str,
    add: Iterable[tuple[str, str]] = (),
    replace: Mapping[str, str] | None = None,
) -> str:
    """Return ``url`` with parameters added or replaced, encoded sorted by key."""
    parts = urlsplit(url)
    values: dict[str, list[str]] = {}
    for key, value in parse_qsl(parts.query, keep_blank_values=True):
        values.setdefault(key, []).append(value)
    for key, value in add:
        values.setdefault(key, []).append(value)
    for key, value in (replace or {}).items():
        values[key] = [value]
    query = urlencode([(key, value) for key in sorted(values) for value in values[key]])
    return urlunsplit(parts._replace(query=query))


def _object(data: Any) -> Mapping[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data


def _string_map(data: Any) -> dict[str, str]:
    obj = _object(data)
    for key, value in obj.items():
        if not isinstance(value, str):
            raise ValueError(f"value of {key!r} must be a string")
    return dict(obj)


def _string_list(data: Any) -> list[str]:
    if data is None:
        return []
    if not isinstance(data, list) or not all(isinstance(v, str) for v in data):
        raise ValueError("expected a JSON array of strings")
    return list(data)


def _string_field(obj: Mapping[str, Any], key: str) -> str:
    value = obj.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a string")
    return value


class API:
    """Methods of the v1 query API.

    ``client`` is either an :class:`~promclient.apiclient.Client`, which is
    wrapped in an :class:`APIClient`, or any object with ``url(ep, args)``
    and ``do(method, url)`` where ``do`` returns the decoded response data.
    """

    def __init__(self, client: Client | _DataClient) -> None:
        self._client: _DataClient = APIClient(client) if isinstance(client, Client) else client

    def _url(self, ep: str, args: Mapping[str, str] | None = None) -> str:
        return self._client.url(ep, args)

    def alert_managers(self) -> AlertManagersResult:
        """Return the state of Alertmanager discovery."""
        data = self._client.do("GET", self._url(EP_ALERT_MANAGERS))
        return decode_alert_managers_result(data)

    def clean_tombstones(self) -> None:
        """Remove deleted data from disk and clean up tombstones."""
        self._client.do("POST", self._url(EP_CLEAN_TOMBSTONES))

    def config(self) -> ConfigResult:
        """Return the loaded configuration."""
        data = self._client.do("GET", self._url(EP_CONFIG))
        return ConfigResult(yaml=_string_field(_object(data), "yaml"))

    def delete_series(
        self, matches: Iterable[str], start_time: datetime, end_time: datetime
    ) -> None:
        """Delete the data of the matched series within a time range."""
        url = _with_query(
            self._url(EP_DELETE_SERIES),
            add=[("match[]", m) for m in matches],
            replace={"start": _format_time(start_time), "end": _format_time(end_time)},
        )
        self._client.do("POST", url)

    def flags(self) -> dict[str, str]:
        """Return the flag values the server was started with."""
        return _string_map(self._client.do("GET", self._url(EP_FLAGS)))

    def label_values(self, label: str) -> list[str]:
        """Return all values of the label ``label``."""
        data = self._client.do("GET", self._url(EP_LABEL_VALUES, {"name": label}))
        return _string_list(data)

    def query(self, query: str, ts: datetime | None = None) -> QueryValue:
        """Evaluate ``query`` at ``ts``; without ``ts`` the server picks the time."""
        params = {"query": query}
        if ts is not None:
            params["time"] = _format_time(ts)
        url = _with_query(self._url(EP_QUERY), replace=params)
        return decode_query_result(self._client.do("GET", url))

    def query_range(self, query: str, rng: Range) -> QueryValue:
        """Evaluate ``query`` over the range ``rng``."""
        url = _with_query(
            self._url(EP_QUERY_RANGE),
            replace={
                "query": query,
                "start": _format_time(rng.start),
                "end": _format_time(rng.end),
                "step": f"{rng.step.total_seconds():.3f}",
            },
        )
        return decode_query_result(self._client.do("GET", url))

    def series(
        self, matches: Iterable[str], start_time: datetime, end_time: datetime
    ) -> list[dict[str, str]]:
        """Return the label sets of the series matched within a time range."""
        url = _with_query(
            self._url(EP_SERIES),
            add=[("match[]", m) for m in matches],
            replace={"start": _format_time(start_time), "end": _format_time(end_time)},
        )
        data = self._client.do("GET", url)
        if data is None:
            return []
        if not isinstance(data, list):
            raise ValueError("expected a JSON array of label sets")
        return [_string_map(item) for item in data]

    def snapshot(self, skip_head: bool = False) -> SnapshotResult:
        """Create a snapshot of the current data and return its name."""
        url = _with_query(
            self._url(EP_SNAPSHOT), replace={"skip_head": "true" if skip_head else "false"}
        )
        data = self._client.do("POST", url)
        return SnapshotResult(name=_string_field(_object(data), "name"))

    def rules(self) -> RulesResult:
        """Return the loaded alerting and recording rules."""
        return decode_rules_result(self._client.do("GET", self._url(EP_RULES)))

    def targets(self) -> TargetsResult:
        """Return the state of target discovery."""
        return decode_targets_result(self._client.do("GET", self._url(EP_TARGETS)))