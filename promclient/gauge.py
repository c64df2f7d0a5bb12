"""Gauges: metrics whose value can go up and down."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field

from .collector import MetricData, SelfCollector, ValueType
from .desc import Desc


def _build_fq_name(namespace: str, subsystem: str, name: str) -> str:
    if not name:
        return ""
    return "_".join(part for part in (namespace, subsystem, name) if part)


@dataclass
class GaugeOpts:
    """Options for creating a gauge."""

    name: str
    help: str = ""
    namespace: str = ""
    subsystem: str = ""
    const_labels: Mapping[str, str] = field(default_factory=dict)

    @property
    def fq_name(self) -> str:
        """The fully qualified metric name."""
        return _build_fq_name(self.namespace, self.subsystem, self.name)

    def make_desc(self) -> Desc:
        """Build the descriptor of a metric without variable labels."""
        return Desc(self.fq_name, self.help, None, self.const_labels)


class Gauge(SelfCollector):
    """A numerical value that can arbitrarily go up and down."""

    def __init__(self, opts: GaugeOpts) -> None:
        self._desc = opts.make_desc()
        self._labels = self._desc.const_label_pairs
        self._value = 0.0
        self._lock = threading.Lock()

    def desc(self) -> Desc:
        return self._desc

    def set(self, value: float) -> None:
        """Set the gauge to ``value``."""
        with self._lock:
            self._value = float(value)

    def set_to_current_time(self) -> None:
        """Set the gauge to the current Unix time in seconds."""
        self.set(time.time_ns() / 1e9)

    def inc(self) -> None:
        """Increase the gauge by one."""
        self.add(1)

    def dec(self) -> None:
        """Decrease the gauge by one."""
        self.add(-1)

    def add(self, value: float) -> None:
        """Add ``value`` (which may be negative) to the gauge."""
        with self._lock:
            self._value += float(value)

    def sub(self, value: float) -> None:
        """Subtract ``value`` (which may be negative) from the gauge."""
        self.add(float(value) * -1)

    def write(self) -> MetricData:
        with self._lock:
            value = self._value
        return MetricData(ValueType.GAUGE, value, self._labels)


class GaugeFunc(SelfCollector):
    """A gauge whose value is obtained by calling a function at collect time."""

    def __init__(self, opts: GaugeOpts, function: Callable[[], float]) -> None:
        self._desc = opts.make_desc()
        self._function = function

    def desc(self) -> Desc:
        return self._desc

    def write(self) -> MetricData:
        return MetricData(
            ValueType.GAUGE, float(self._function()), self._desc.const_label_pairs
        )