"""
Canonical JSON serialization for request signing.

Produces the same string a JavaScript platform computes for a parsed request
body: object keys sorted, no whitespace, numbers in JavaScript
number-to-string form. Both sides hash this string, so any divergence here
breaks every signature.
"""

import math
from decimal import Decimal
from typing import Any

_SHORT_ESCAPES = {
    '"': '\\"',
    "\\": "\\\\",
    "\b": "\\b",
    "\t": "\\t",
    "\n": "\\n",
    "\f": "\\f",
    "\r": "\\r",
}


def _escape_char(char: str) -> str:
    escaped = _SHORT_ESCAPES.get(char)
    if escaped is not None:
        return escaped
    code = ord(char)
    # Control characters and lone surrogates use \uXXXX, as well-formed JSON.stringify does
    if code < 0x20 or 0xD800 <= code <= 0xDFFF:
        return f"\\u{code:04x}"
    return char


class StableCanonicalizer:
    """
    Deterministic JSON serializer with sorted object keys.

    Produces output by:
    1. Sorting object keys by UTF-16 code units
    2. Using no whitespace between tokens
    3. Formatting numbers the way JavaScript prints them
    4. Refusing cycles, NaN/Infinity and non-JSON types
    """

    def canonicalize(self, value: Any) -> str:
        """
        Canonicalize a Python value to its stable JSON string.

        Args:
            value: Any JSON-compatible Python value

        Returns:
            Canonical JSON string

        Raises:
            ValueError: If the value contains a cycle or a non-finite float
            TypeError: If the value contains a type JSON cannot represent
        """
        return self._canonicalize_value(value, set())

    def _canonicalize_value(self, value: Any, path: set[int]) -> str:
        """Canonicalize any JSON value."""
        if value is None:
            return "null"
        elif isinstance(value, bool):
            return "true" if value else "false"
        elif isinstance(value, str):
            return self._canonicalize_string(value)
        elif isinstance(value, int):
            return str(value)
        elif isinstance(value, float):
            return self._canonicalize_float(value)
        elif isinstance(value, dict):
            return self._with_cycle_check(value, path, self._canonicalize_object)
        elif isinstance(value, (list, tuple)):
            return self._with_cycle_check(value, path, self._canonicalize_array)
        else:
            raise TypeError(f"Cannot canonicalize type: {type(value).__name__}")

    def _with_cycle_check(self, container: Any, path: set[int], render: Any) -> str:
        marker = id(container)
        if marker in path:
            raise ValueError("Cannot canonicalize a cyclic structure")
        path.add(marker)
        try:
            return render(container, path)
        finally:
            path.discard(marker)

    def _canonicalize_object(self, obj: dict[str, Any], path: set[int]) -> str:
        """Canonicalize a dictionary with keys sorted by UTF-16 code units."""
        for key in obj:
            if not isinstance(key, str):
                raise TypeError(f"Object keys must be strings, got {type(key).__name__}")

        # Big-endian UTF-16 bytes compare in code unit order, matching Array.prototype.sort
        sorted_keys = sorted(obj.keys(), key=lambda k: k.encode("utf-16-be", "surrogatepass"))

        members = (f"{self._canonicalize_string(key)}:{self._canonicalize_value(obj[key], path)}" for key in sorted_keys)
        return "{" + ",".join(members) + "}"

    def _canonicalize_array(self, arr: list[Any] | tuple[Any, ...], path: set[int]) -> str:
        """Canonicalize an array, preserving element order."""
        elements = [self._canonicalize_value(item, path) for item in arr]
        return "[" + ",".join(elements) + "]"

    def _canonicalize_string(self, s: str) -> str:
        """Escape and quote a string the way JSON.stringify does."""
        return '"' + "".join(_escape_char(char) for char in s) + '"'

    def _canonicalize_float(self, n: float) -> str:
        """
        Format a float the way JavaScript's Number.prototype.toString does.

        Integral values print without a fraction, small and large magnitudes
        switch to exponent form at the same thresholds as JavaScript.
        """
        if math.isnan(n) or math.isinf(n):
            raise ValueError(f"Cannot canonicalize {n}: not valid JSON")

        if n == 0.0:
            return "0"

        if n.is_integer() and abs(n) < 2**53:
            return str(int(n))

        # repr() yields the shortest digit string that round-trips
        sign, digit_tuple, exponent = Decimal(repr(abs(n))).as_tuple()
        digits = "".join(str(d) for d in digit_tuple).rstrip("0")
        exponent += len(digit_tuple) - len(digits)

        k = len(digits)
        point = exponent + k
        prefix = "-" if n < 0 else ""

        if k <= point <= 21:
            return prefix + digits + "0" * (point - k)
        if 0 < point <= 21:
            return prefix + digits[:point] + "." + digits[point:]
        if -6 < point <= 0:
            return prefix + "0." + "0" * (-point) + digits

        e = point - 1
        mantissa = digits[0] + ("." + digits[1:] if k > 1 else "")
        return f"{prefix}{mantissa}e{'+' if e > 0 else '-'}{abs(e)}"


_canonicalizer = StableCanonicalizer()


def canonicalize(value: Any) -> str:
    """Return the canonical JSON string hashed into every signature."""
    return _canonicalizer.canonicalize(value)
