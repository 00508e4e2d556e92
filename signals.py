"""
signals.py

Helpers for building, comparing and (de)serializing circuit signals.

Scalars are decimal strings or ints and compare by numeric value, so "42"
and 42 are the same signal value; arrays compare element-wise at any depth.
"""

import hashlib
import json
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from errors import InvalidSignals
from models import CircuitSignals, SignalValue


def signals(pairs: Iterable[Tuple[str, SignalValue]]) -> CircuitSignals:
    """
    Create a signals map from (name, value) pairs.

        inputs = signals([("a", 3), ("b", "5")])
    """
    return {str(k): v for k, v in pairs}


def signal_array(values: Iterable[Any]) -> List[SignalValue]:
    """Create a one-dimensional signal array of decimal strings."""
    return [str(v) for v in values]


class SignalBuilder:
    """
    Fluent builder for input signals.

        SignalBuilder().add("a", 3).add_array("arr", [1, 2]).build()
    """

    def __init__(self):
        self._signals: CircuitSignals = {}

    def add(self, name: str, value: Any) -> "SignalBuilder":
        self._signals[name] = str(value)
        return self

    def add_array(self, name: str, values: Iterable[Any]) -> "SignalBuilder":
        self._signals[name] = signal_array(values)
        return self

    def add_2d_array(self, name: str, rows: Iterable[Iterable[Any]]) -> "SignalBuilder":
        self._signals[name] = [signal_array(row) for row in rows]
        return self

    def build(self) -> CircuitSignals:
        return dict(self._signals)


def _validate(value: Any, path: str) -> None:
    if isinstance(value, bool):
        raise InvalidSignals(f"{path}: booleans are not signal values")
    if isinstance(value, (str, int)):
        return
    if isinstance(value, list):
        for i, v in enumerate(value):
            _validate(v, f"{path}[{i}]")
        return
    raise InvalidSignals(f"{path}: unsupported value of type {type(value).__name__}")


def parse_signals(text: str) -> CircuitSignals:
    """
    Parse a JSON object of signals. Leaves must be strings or integers.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise InvalidSignals(f"malformed JSON: {e}") from e
    if not isinstance(data, dict):
        raise InvalidSignals("signals must be a JSON object")
    for name, value in data.items():
        _validate(value, name)
    return data


def serialize_signals(sigs: CircuitSignals) -> str:
    return json.dumps(sigs, indent=2)


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    text = str(value).strip()
    try:
        return int(text, 16) if text.lower().startswith("0x") else int(text)
    except ValueError:
        return None


def signals_equal(actual: SignalValue, expected: SignalValue) -> bool:
    """
    Compare two signal values: scalars numerically across string/int
    encodings, arrays element-wise with equal lengths.
    """
    if isinstance(actual, list) or isinstance(expected, list):
        if not (isinstance(actual, list) and isinstance(expected, list)):
            return False
        return len(actual) == len(expected) and all(signals_equal(a, e) for a, e in zip(actual, expected))
    a, e = _as_int(actual), _as_int(expected)
    if a is None or e is None:
        return str(actual) == str(expected)
    return a == e


def signal_to_string(value: SignalValue) -> str:
    if isinstance(value, list):
        return "[" + ", ".join(signal_to_string(v) for v in value) + "]"
    return str(value)


def compare_outputs(actual: CircuitSignals, expected: CircuitSignals) -> List[str]:
    """
    Return one diagnostic line per expected signal that is missing or differs.
    """
    errors: List[str] = []
    for name, exp in expected.items():
        if name not in actual:
            errors.append(f"Signal '{name}' not found in outputs")
        elif not signals_equal(actual[name], exp):
            errors.append(
                f"Signal '{name}': expected {signal_to_string(exp)}, got {signal_to_string(actual[name])}"
            )
    return errors


def field_to_bytes(value: str) -> bytes:
    """
    Big-endian bytes of a field element given as decimal or 0x-hex string.
    Decimal values are encoded on 16 bytes when they fit, else on the
    minimal byte length.
    """
    if value.startswith("0x"):
        return bytes.fromhex(value[2:])
    n = int(value)
    if n < 0:
        raise ValueError("field elements are non-negative")
    length = 16 if n < 1 << 128 else (n.bit_length() + 7) // 8
    return n.to_bytes(length, "big")


def bytes_to_field(data: Sequence[int]) -> str:
    """
    Decimal string for inputs of at most 16 bytes, 0x-hex otherwise.
    """
    data = bytes(data)
    if len(data) <= 16:
        return str(int.from_bytes(data, "big"))
    return "0x" + data.hex()


def hash_to_field(message: bytes) -> str:
    """SHA-256 of the message rendered through bytes_to_field."""
    return bytes_to_field(hashlib.sha256(message).digest())
