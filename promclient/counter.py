"""Counters: metrics whose value only ever goes up."""

from __future__ import annotations

import math
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field

from .collector import MetricData, SelfCollector, ValueType
from .desc import Desc

_UINT64_LIMIT = 2**64


def _build_fq_name(namespace: str, subsystem: str, name: str) -> str:
    if not name:
        return ""
    return "_".join(part for part in (namespace, subsystem, name) if part)


@dataclass
class CounterOpts:
    """Options for creating a counter."""

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


class Counter(SelfCollector):
    """A monotonically increasing value.

    Whole-number increments are tracked separately from fractional ones;
    both parts are summed when the counter is written.
    """

    def __init__(self, opts: CounterOpts) -> None:
        self._desc = opts.make_desc()
        self._labels = self._desc.const_label_pairs
        self._float_part = 0.0
        self._int_part = 0
        self._lock = threading.Lock()

    def desc(self) -> Desc:
        return self._desc

    def inc(self) -> None:
        """Increase the counter by one."""
        with self._lock:
            self._int_part = (self._int_part + 1) % _UINT64_LIMIT

    def add(self, value: float) -> None:
        """Increase the counter by ``value``; negative values raise ValueError."""
        value = float(value)
        if value < 0:
            raise ValueError("counter cannot decrease in value")
        with self._lock:
            if math.isfinite(value) and value.is_integer() and value < _UINT64_LIMIT:
                self._int_part = (self._int_part + int(value)) % _UINT64_LIMIT
            else:
                self._float_part += value

    def write(self) -> MetricData:
        with self._lock:
            total = self._float_part + float(self._int_part)
        return MetricData(ValueType.COUNTER, total, self._labels)


class CounterFunc(SelfCollector):
    """A counter whose value is obtained by calling a function at collect time."""

    def __init__(self, opts: CounterOpts, function: Callable[[], float]) -> None:
        self._desc = opts.make_desc()
        self._function = function

    def desc(self) -> Desc:
        return self._desc

    def write(self) -> MetricData:
        return MetricData(
            ValueType.COUNTER, float(self._function()), self._desc.const_label_pairs
        )