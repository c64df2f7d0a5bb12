"""Core metric and collector abstractions."""

from __future__ import annotations

import enum
import math
from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .desc import Desc


class ValueType(enum.IntEnum):
    """Kind of a simple metric value."""

    COUNTER = 1
    GAUGE = 2
    UNTYPED = 3


@dataclass(frozen=True)
class LabelPair:
    """A label name with its value."""

    name: str
    value: str


def _format_float(v: float) -> str:
    """Format like the shortest %g representation used in text dumps."""
    if math.isnan(v):
        return "nan"
    if math.isinf(v):
        return "inf" if v > 0 else "-inf"
    if v == 0:
        return "-0" if math.copysign(1.0, v) < 0 else "0"
    sign, digits, exponent = Decimal(repr(float(v))).normalize().as_tuple()
    text = "".join(str(d) for d in digits)
    exp10 = len(digits) + exponent - 1
    prefix = "-" if sign else ""
    if exp10 < -4 or exp10 >= 6:
        mantissa = text[0] + ("." + text[1:] if len(text) > 1 else "")
        return f"{prefix}{mantissa}e{'-' if exp10 < 0 else '+'}{abs(exp10):02d}"
    if exp10 < 0:
        return f"{prefix}0.{'0' * (-exp10 - 1)}{text}"
    if len(text) <= exp10 + 1:
        return prefix + text + "0" * (exp10 + 1 - len(text))
    return f"{prefix}{text[:exp10 + 1]}.{text[exp10 + 1:]}"


def _escape(s: str) -> str:
    out = []
    for byte in s.encode("utf-8", "surrogateescape"):
        ch = chr(byte)
        if ch == "\n":
            out.append("\\n")
        elif ch == "\r":
            out.append("\\r")
        elif ch == "\t":
            out.append("\\t")
        elif ch == '"':
            out.append('\\"')
        elif ch == "\\":
            out.append("\\\\")
        elif 0x20 <= byte < 0x7F:
            out.append(ch)
        else:
            out.append(f"\\{byte:03o}")
    return "".join(out)


@dataclass(frozen=True)
class MetricData:
    """A written sample: value type, value and its label pairs."""

    value_type: ValueType
    value: float
    labels: tuple[LabelPair, ...] = ()

    def __str__(self) -> str:
        parts = [
            f'label:<name:"{_escape(p.name)}" value:"{_escape(p.value)}" > '
            for p in self.labels
        ]
        parts.append(f"{self.value_type.name.lower()}:<value:{_format_float(self.value)} > ")
        return "".join(parts)


class Metric(ABC):
    """A single sample value with its descriptor."""

    @abstractmethod
    def desc(self) -> Desc:
        """Return the descriptor of this metric."""

    @abstractmethod
    def write(self) -> MetricData:
        """Return the current state of this metric."""


class Collector(ABC):
    """Anything that can describe and collect metrics."""

    @abstractmethod
    def describe(self) -> Iterator[Desc]:
        """Yield every descriptor this collector may produce."""

    @abstractmethod
    def collect(self) -> Iterator[Metric]:
        """Yield the metrics collected now."""


class SelfCollector(Metric, Collector):
    """A metric that collects itself."""

    def describe(self) -> Iterator[Desc]:
        yield self.desc()

    def collect(self) -> Iterator[Metric]:
        yield self


def describe_by_collect(collector: Collector) -> Iterator[Desc]:
    """Yield the descriptors of the metrics ``collector`` collects right now."""
    for metric in collector.collect():
        yield metric.desc()