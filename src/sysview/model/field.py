"""Type-erased scalar values returned by model queries.

A ``Field`` pairs a value with a ``FieldKind`` tag so that any model field can
be returned from a single ``query()`` call and compared or summed with other
values of the same kind. Operations across kinds are never meaningful: they
indicate a broken FieldId/model pairing and raise ``FieldTypeError``.
"""

from __future__ import annotations

from enum import Enum

from sysview.core.schemas import PidState


class FieldTypeError(TypeError):
    """A Field operation or conversion was applied to an unsupported kind.

    This is a programming error: correctly constructed FieldIds can only
    produce fields of the kind their model declares.
    """


class FieldIdError(ValueError):
    """A field path could not be parsed or does not name a model field."""


class FieldKind(str, Enum):
    """Tag of a Field value."""

    U32 = "u32"
    U64 = "u64"
    I32 = "i32"
    I64 = "i64"
    F64 = "f64"
    STR = "str"
    PID_STATE = "pid_state"

    @property
    def is_integer(self) -> bool:
        return self in _INT_RANGES

    @property
    def is_numeric(self) -> bool:
        return self.is_integer or self is FieldKind.F64


_INT_RANGES: dict[FieldKind, tuple[int, int]] = {
    FieldKind.U32: (0, 2**32 - 1),
    FieldKind.U64: (0, 2**64 - 1),
    FieldKind.I32: (-(2**31), 2**31 - 1),
    FieldKind.I64: (-(2**63), 2**63 - 1),
}


class Field:
    """A tagged scalar value.

    Equality and ordering are only defined between fields of the same kind.
    Cross-kind equality is False and cross-kind ordering is "incomparable":
    ``partial_cmp`` returns None and every rich comparison returns False.
    """

    __slots__ = ("kind", "value")

    kind: FieldKind
    value: int | float | str | PidState

    def __init__(self, kind: FieldKind, value: int | float | str | PidState) -> None:
        value = _check_value(kind, value)
        object.__setattr__(self, "kind", kind)
        object.__setattr__(self, "value", value)

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError("Field is immutable")

    def __repr__(self) -> str:
        return f"Field({self.kind.name}, {self.value!r})"

    def __str__(self) -> str:
        return str(self.value)

    def __hash__(self) -> int:
        return hash((self.kind, self.value))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Field):
            return NotImplemented
        return self.kind is other.kind and self.value == other.value

    def partial_cmp(self, other: Field) -> int | None:
        """Three-way compare: -1, 0, 1, or None when the kinds differ."""
        if self.kind is not other.kind:
            return None
        lhs, rhs = self.value, other.value
        if self.kind is FieldKind.PID_STATE:
            lhs, rhs = lhs.rank, rhs.rank  # type: ignore[union-attr]
        if lhs < rhs:  # type: ignore[operator]
            return -1
        if lhs > rhs:  # type: ignore[operator]
            return 1
        if lhs == rhs:
            return 0
        # NaN
        return None

    def __lt__(self, other: Field) -> bool:
        return self.partial_cmp(other) == -1

    def __le__(self, other: Field) -> bool:
        return self.partial_cmp(other) in (-1, 0)

    def __gt__(self, other: Field) -> bool:
        return self.partial_cmp(other) == 1

    def __ge__(self, other: Field) -> bool:
        return self.partial_cmp(other) in (0, 1)

    def __add__(self, other: Field) -> Field:
        if not isinstance(other, Field):
            return NotImplemented
        if self.kind is not other.kind or self.kind is FieldKind.PID_STATE:
            raise FieldTypeError(
                f"Operation for unsupported types: {self.kind.value} + {other.kind.value}"
            )
        return Field(self.kind, self.value + other.value)  # type: ignore[operator]

    def __float__(self) -> float:
        if not self.kind.is_numeric:
            raise FieldTypeError(f"Cannot convert {self.kind.value} field to float")
        return float(self.value)  # type: ignore[arg-type]

    def __int__(self) -> int:
        if not self.kind.is_integer:
            raise FieldTypeError(f"Cannot convert {self.kind.value} field to int")
        return int(self.value)  # type: ignore[arg-type]

    def to_str(self) -> str:
        """Return the value of a STR field."""
        if self.kind is not FieldKind.STR:
            raise FieldTypeError(f"Cannot convert {self.kind.value} field to str")
        return self.value  # type: ignore[return-value]


def _check_value(kind: FieldKind, value: object) -> int | float | str | PidState:
    if kind.is_integer:
        if isinstance(value, bool) or not isinstance(value, int):
            raise FieldTypeError(f"{kind.value} field requires an int, got {value!r}")
        low, high = _INT_RANGES[kind]
        if not low <= value <= high:
            raise FieldTypeError(f"{value} out of range for {kind.value} field")
        return value
    if kind is FieldKind.F64:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise FieldTypeError(f"f64 field requires a number, got {value!r}")
        return float(value)
    if kind is FieldKind.STR:
        if not isinstance(value, str) or isinstance(value, PidState):
            raise FieldTypeError(f"str field requires a str, got {value!r}")
        return value
    if not isinstance(value, PidState):
        raise FieldTypeError(f"pid_state field requires a PidState, got {value!r}")
    return value
