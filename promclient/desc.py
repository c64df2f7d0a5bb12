"""Metric descriptors: the immutable metadata every metric carries."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping

from .collector import LabelPair
from .fnv import hash_add, hash_add_byte, hash_new

SEPARATOR_BYTE = 255
RESERVED_LABEL_PREFIX = "__"

_METRIC_NAME_RE = re.compile(r"[a-zA-Z_:][a-zA-Z0-9_:]*")
_LABEL_NAME_RE = re.compile(r"[a-zA-Z_][a-zA-Z0-9_]*")


def is_valid_metric_name(name: str) -> bool:
    """Tell whether ``name`` is a legal metric name."""
    return bool(name) and _METRIC_NAME_RE.fullmatch(name) is not None


def is_valid_label_name(name: str) -> bool:
    """Tell whether ``name`` is a legal, non-reserved label name."""
    return (
        bool(name)
        and _LABEL_NAME_RE.fullmatch(name) is not None
        and not name.startswith(RESERVED_LABEL_PREFIX)
    )


def _quote(s: str) -> str:
    out = ['"']
    for ch in s:
        code = ord(ch)
        if ch == '"':
            out.append('\\"')
        elif ch == "\\":
            out.append("\\\\")
        elif ch == "\n":
            out.append("\\n")
        elif ch == "\t":
            out.append("\\t")
        elif ch == "\r":
            out.append("\\r")
        elif 0xDC80 <= code <= 0xDCFF:
            out.append(f"\\x{code - 0xDC00:02x}")
        elif ch.isprintable():
            out.append(ch)
        elif code < 0x80:
            out.append(f"\\x{code:02x}")
        elif code < 0x10000:
            out.append(f"\\u{code:04x}")
        else:
            out.append(f"\\U{code:08x}")
    out.append('"')
    return "".join(out)


def _label_text(value: str | bytes) -> str:
    """Return ``value`` as text, raising ValueError if it is not valid UTF-8."""
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError:
            shown = raw.decode("utf-8", "surrogateescape")
            raise ValueError(f"label value {_quote(shown)} is not valid UTF-8") from None
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        raise ValueError(f"label value {_quote(value)} is not valid UTF-8") from None
    return value


class Desc:
    """Descriptor of a metric: name, help, constant and variable labels.

    Construction never raises; problems are kept in ``err`` and reported
    when the descriptor is registered.
    """

    def __init__(
        self,
        fq_name: str,
        help: str,
        variable_labels: Iterable[str] | None = None,
        const_labels: Mapping[str, str | bytes] | None = None,
    ) -> None:
        self.fq_name = fq_name
        self.help = help
        self.variable_labels: tuple[str, ...] = tuple(variable_labels or ())
        self.const_label_pairs: tuple[LabelPair, ...] = ()
        self.id = 0
        self.dim_hash = 0
        self.err: Exception | None = None
        try:
            self._build(dict(const_labels or {}))
        except ValueError as exc:
            self.err = exc

    def _build(self, const_labels: dict[str, str | bytes]) -> None:
        fq_name = self.fq_name
        if not is_valid_metric_name(fq_name):
            raise ValueError(f"{_quote(fq_name)} is not a valid metric name")

        const_names = sorted(const_labels)
        for name in const_names:
            if not is_valid_label_name(name):
                raise ValueError(
                    f"{_quote(name)} is not a valid label name for metric {_quote(fq_name)}"
                )
        values = [_label_text(fq_name)]
        values.extend(_label_text(const_labels[name]) for name in const_names)

        label_names = list(const_names)
        name_set = set(const_names)
        for name in self.variable_labels:
            if not is_valid_label_name(name):
                raise ValueError(
                    f"{_quote(name)} is not a valid label name for metric {_quote(fq_name)}"
                )
            # The prefix keeps a variable label from matching a constant one.
            label_names.append("$" + name)
            name_set.add(name)
        if len(label_names) != len(name_set):
            raise ValueError("duplicate label names")

        value_hash = hash_new()
        for value in values:
            value_hash = hash_add_byte(hash_add(value_hash, value), SEPARATOR_BYTE)

        dim_hash = hash_add_byte(hash_add(hash_new(), self.help), SEPARATOR_BYTE)
        for name in sorted(label_names):
            dim_hash = hash_add_byte(hash_add(dim_hash, name), SEPARATOR_BYTE)

        self.id = value_hash
        self.dim_hash = dim_hash
        self.const_label_pairs = tuple(
            LabelPair(name, value) for name, value in zip(const_names, values[1:])
        )

    def __str__(self) -> str:
        const = ",".join(f"{p.name}={_quote(p.value)}" for p in self.const_label_pairs)
        variable = " ".join(self.variable_labels)
        return (
            f"Desc{{fqName: {_quote(self.fq_name or '')}, help: {_quote(self.help or '')}, "
            f"constLabels: {{{const}}}, variableLabels: [{variable}]}}"
        )

    __repr__ = __str__


def new_invalid_desc(err: Exception) -> Desc:
    """Return a descriptor that carries only ``err``; registering it fails."""
    desc = Desc.__new__(Desc)
    desc.fq_name = ""
    desc.help = ""
    desc.variable_labels = ()
    desc.const_label_pairs = ()
    desc.id = 0
    desc.dim_hash = 0
    desc.err = err
    return desc