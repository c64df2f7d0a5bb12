"""Push metric samples to a Graphite server over its plaintext protocol."""

from __future__ import annotations

import enum
import logging
import math
import socket
import threading
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import TextIO

from .collector import _format_float

DEFAULT_INTERVAL = 15.0
METRIC_NAME_LABEL = "__name__"
_MILLISECONDS_PER_SECOND = 1000


class ErrorHandling(enum.IntEnum):
    """How a push reacts to errors while gathering metrics."""

    CONTINUE_ON_ERROR = 0
    ABORT_ON_ERROR = 1


@dataclass(frozen=True)
class Sample:
    """One sample: its labels (including ``__name__``), value and timestamp in ms."""

    labels: Mapping[str, str] = field(default_factory=dict)
    value: float = 0.0
    timestamp: int | None = None


Gatherer = Callable[[], Iterable[Sample]]


def _replace_invalid_char(c: str) -> str:
    if c == " ":
        return "."
    if ("a" <= c <= "z") or ("A" <= c <= "Z") or ("0" <= c <= "9") or c in "_:-":
        return c
    return "_"


def sanitize(s: str) -> str:
    """Make ``s`` safe as a Graphite path component.

    Spaces become dots, other disallowed characters become underscores, and
    runs of underscores collapse into one.
    """
    out: list[str] = []
    prev_underscore = False
    for c in s:
        c = _replace_invalid_char(c)
        if c == "_":
            if prev_underscore:
                continue
            prev_underscore = True
        else:
            prev_underscore = False
        out.append(c)
    return "".join(out)


def format_metric(labels: Mapping[str, str]) -> str:
    """Return the dotted Graphite path for a label set, labels sorted."""
    name = labels.get(METRIC_NAME_LABEL)
    label_strings = sorted(
        f"{label} {value}" for label, value in labels.items() if label != METRIC_NAME_LABEL
    )
    if not label_strings:
        return sanitize(name) if name is not None else ""
    parts = [sanitize(name or "")]
    parts.extend(sanitize(s) for s in label_strings)
    return ".".join(parts)


def _format_value(v: float) -> str:
    v = float(v)
    if math.isnan(v):
        return "NaN"
    if math.isinf(v):
        return "+Inf" if v > 0 else "-Inf"
    return _format_float(v)


def _to_seconds(ms: int) -> int:
    ms = int(ms)
    if ms < 0:
        return -((-ms) // _MILLISECONDS_PER_SECOND)
    return ms // _MILLISECONDS_PER_SECOND


def write_metrics(out: TextIO, samples: Iterable[Sample], prefix: str, now: int) -> None:
    """Write ``samples`` as Graphite plaintext lines to ``out``.

    ``now`` (milliseconds since the epoch) is used for samples without a
    timestamp of their own.
    """
    for sample in samples:
        timestamp = now if sample.timestamp is None else sample.timestamp
        out.write(
            f"{prefix}.{format_metric(sample.labels)} "
            f"{_format_value(sample.value)} {_to_seconds(timestamp)}\n"
        )
        flush = getattr(out, "flush", None)
        if flush is not None:
            flush()


def _split_address(url: str) -> tuple[str, int]:
    host, sep, port = url.rpartition(":")
    if not sep or not port:
        raise ValueError(f"address {url!r}: missing port")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    try:
        return host or "localhost", int(port)
    except ValueError:
        raise ValueError(f"address {url!r}: invalid port") from None


class Bridge:
    """Pushes gathered samples to a Graphite server at a fixed interval."""

    def __init__(
        self,
        url: str,
        gatherer: Gatherer,
        prefix: str = "",
        interval: float | None = None,
        timeout: float | None = None,
        logger: logging.Logger | None = None,
        error_handling: ErrorHandling = ErrorHandling.CONTINUE_ON_ERROR,
    ) -> None:
        if not url:
            raise ValueError("missing URL")
        self.url = url
        self.gatherer = gatherer
        self.prefix = prefix or ""
        self.interval = float(interval) if interval else DEFAULT_INTERVAL
        self.timeout = float(timeout) if timeout else DEFAULT_INTERVAL
        self.logger = logger
        self.error_handling = ErrorHandling(error_handling)

    def push(self) -> None:
        """Gather samples and send them to the Graphite server once."""
        error: Exception | None = None
        samples: list[Sample] = []
        try:
            samples = list(self.gatherer())
        except Exception as exc:  # noqa: BLE001 - handled per error_handling
            error = exc
        if error is not None or not samples:
            if self.error_handling is ErrorHandling.ABORT_ON_ERROR:
                if error is not None:
                    raise error
                return
            if self.logger is not None:
                self.logger.warning("continue on error: %s", error)

        host, port = _split_address(self.url)
        now = int(time.time() * _MILLISECONDS_PER_SECOND)
        with socket.create_connection((host, port), timeout=self.timeout) as conn:
            with conn.makefile("w", encoding="utf-8", newline="\n") as stream:
                write_metrics(stream, samples, self.prefix, now)

    def run(self, stop_event: threading.Event) -> None:
        """Push at every interval until ``stop_event`` is set."""
        while not stop_event.wait(self.interval):
            try:
                self.push()
            except Exception as exc:  # noqa: BLE001 - the loop keeps running
                if self.logger is not None:
                    self.logger.error("error pushing to Graphite: %s", exc)