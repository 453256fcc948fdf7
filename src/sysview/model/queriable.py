"""Field addressing and generic queries over models.

Every model type has a closed FieldId type enumerating the fields that can be
queried on it:

- ``LeafFieldId`` enums name scalar fields of models without sub-models.
- ``CompositeFieldId`` subclasses name either a scalar field of the model or a
  sub-model together with a nested FieldId for that sub-model ("subquery").
- ``VecFieldId`` / ``MapFieldId`` subclasses address one element of a list or
  dict of sub-models by index or key, again with a nested FieldId.

Each FieldId converts to and from a dotted path string such as
``cpu.usage_pct`` or ``3.cpu.usage_pct`` so that sort and filter columns can
be named from text. Parse failures raise ``FieldIdError``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from functools import cmp_to_key
from typing import Any, ClassVar

from sysview.model.field import Field, FieldIdError, FieldKind, FieldTypeError


class FieldId:
    """Base class of all field identifiers."""

    def resolve(self, target: Any) -> Field | None:
        """Return the addressed field of ``target`` or None if it is absent."""
        raise NotImplementedError

    def to_path(self) -> str:
        raise NotImplementedError

    @classmethod
    def from_path(cls, path: str) -> FieldId:
        raise NotImplementedError

    @classmethod
    def all_variants(cls) -> list[FieldId]:
        """Every field reachable without choosing a collection index or key."""
        raise NotImplementedError

    def __str__(self) -> str:
        return self.to_path()


class LeafFieldId(FieldId, Enum):
    """FieldId of a model that only has scalar fields.

    Members are declared as ``NAME = ("attribute", FieldKind.X)``; the
    attribute name is also the path string.
    """

    def __init__(self, attr: str, kind: FieldKind) -> None:
        self.attr = attr
        self.kind = kind

    def resolve(self, target: Any) -> Field | None:
        value = getattr(target, self.attr)
        if value is None:
            return None
        return Field(self.kind, value)

    def to_path(self) -> str:
        return self.attr

    @classmethod
    def from_path(cls, path: str) -> LeafFieldId:
        for member in cls:
            if member.attr == path:
                return member
        raise FieldIdError(
            f"Unable to find a variant of {cls.__name__} matching string `{path}`."
        )

    @classmethod
    def all_variants(cls) -> list[FieldId]:
        return list(cls)

    def __str__(self) -> str:
        return self.attr


@dataclass(frozen=True)
class CompositeFieldId(FieldId):
    """FieldId of a model with sub-models.

    Subclasses declare ``LEAVES`` (path -> kind of a scalar attribute of the
    same name) and ``SUBQUERIES`` (path -> (attribute, FieldId type of the
    sub-model)). A leaf variant has no subquery; a sub-model variant requires
    one of the matching type.
    """

    LEAVES: ClassVar[dict[str, FieldKind]] = {}
    SUBQUERIES: ClassVar[dict[str, tuple[str, type[FieldId]]]] = {}

    variant: str
    subquery: FieldId | None = None

    def __post_init__(self) -> None:
        name = type(self).__name__
        if self.variant in self.LEAVES:
            if self.subquery is not None:
                raise FieldIdError(f"{name}.{self.variant} is a scalar field and takes no subquery")
        elif self.variant in self.SUBQUERIES:
            _, sub_type = self.SUBQUERIES[self.variant]
            if not isinstance(self.subquery, sub_type):
                raise FieldIdError(
                    f"{name}.{self.variant} requires a {sub_type.__name__} subquery, "
                    f"got {self.subquery!r}"
                )
        else:
            raise FieldIdError(f"{name} has no field `{self.variant}`")

    def resolve(self, target: Any) -> Field | None:
        if self.subquery is None:
            value = getattr(target, self.variant)
            if value is None:
                return None
            return Field(self.LEAVES[self.variant], value)
        attr, _ = self.SUBQUERIES[self.variant]
        sub = getattr(target, attr)
        if sub is None:
            return None
        return self.subquery.resolve(sub)

    def to_path(self) -> str:
        if self.subquery is None:
            return self.variant
        return f"{self.variant}.{self.subquery.to_path()}"

    @classmethod
    def from_path(cls, path: str) -> CompositeFieldId:
        if path in cls.LEAVES:
            return cls(path)
        head, dot, rest = path.partition(".")
        if dot and head in cls.SUBQUERIES:
            _, sub_type = cls.SUBQUERIES[head]
            return cls(head, sub_type.from_path(rest))
        raise FieldIdError(
            f"Unable to find a variant of {cls.__name__} matching string `{path}`."
        )

    @classmethod
    def all_variants(cls) -> list[FieldId]:
        variants: list[FieldId] = [cls(leaf) for leaf in cls.LEAVES]
        for name, (_, sub_type) in cls.SUBQUERIES.items():
            variants.extend(cls(name, sub) for sub in sub_type.all_variants())
        return variants


@dataclass(frozen=True)
class VecFieldId(FieldId):
    """Index into a list of sub-models, serialized as ``<idx>.<nested path>``."""

    ELEMENT: ClassVar[type[FieldId]]

    idx: int
    subquery: FieldId

    def resolve(self, target: Sequence[Any]) -> Field | None:
        if not 0 <= self.idx < len(target):
            return None
        return self.subquery.resolve(target[self.idx])

    def to_path(self) -> str:
        return f"{self.idx}.{self.subquery.to_path()}"

    @classmethod
    def from_path(cls, path: str) -> VecFieldId:
        head, dot, rest = path.partition(".")
        if not dot:
            raise FieldIdError(
                f"Unable to find a variant of the given enum matching string `{path}`."
            )
        if not head.isdigit():
            raise FieldIdError(f"Invalid index `{head}` in field path `{path}`")
        return cls(int(head), cls.ELEMENT.from_path(rest))

    @classmethod
    def all_variants(cls) -> list[FieldId]:
        return []


@dataclass(frozen=True)
class MapFieldId(FieldId):
    """Key into a dict of sub-models, serialized as ``<key>.<nested path>``.

    Keys may contain dots (e.g. VLAN interfaces such as ``eth0.100``); parsing
    takes the shortest key whose remainder is a valid nested path. ``KEY_TYPE``
    converts the key segment back into the dict's key type.
    """

    ELEMENT: ClassVar[type[FieldId]]
    KEY_TYPE: ClassVar[type] = str

    key: Any
    subquery: FieldId

    def resolve(self, target: Mapping[Any, Any]) -> Field | None:
        element = target.get(self.key)
        if element is None:
            return None
        return self.subquery.resolve(element)

    def to_path(self) -> str:
        return f"{self.key}.{self.subquery.to_path()}"

    @classmethod
    def from_path(cls, path: str) -> MapFieldId:
        pos = path.find(".")
        while pos > 0:
            head, rest = path[:pos], path[pos + 1 :]
            try:
                key = cls.KEY_TYPE(head)
            except ValueError as e:
                raise FieldIdError(f"Invalid key `{head}` in field path `{path}`") from e
            try:
                return cls(key, cls.ELEMENT.from_path(rest))
            except FieldIdError:
                pos = path.find(".", pos + 1)
        raise FieldIdError(
            f"Unable to find a variant of {cls.__name__} matching string `{path}`."
        )

    @classmethod
    def all_variants(cls) -> list[FieldId]:
        return []


class Queriable:
    """Mixin for models that can be queried with their own FieldId type."""

    FIELD_ID: ClassVar[type[FieldId]]

    def query(self, field_id: FieldId) -> Field | None:
        if not isinstance(field_id, self.FIELD_ID):
            raise FieldTypeError(
                f"{type(self).__name__} cannot be queried with {type(field_id).__name__}"
            )
        return field_id.resolve(self)


class Recursive:
    """Mixin for models that are nodes of a tree of their own type."""

    def get_depth(self) -> int:
        raise NotImplementedError


def query(target: Any, field_id: FieldId) -> Field | None:
    """Query a model, or a list/dict of models, for a single field."""
    if isinstance(target, Queriable):
        return target.query(field_id)
    return field_id.resolve(target)


def compare_optional(lhs: Field | None, rhs: Field | None) -> int | None:
    """Order optional fields: absent values come before present ones."""
    if lhs is None or rhs is None:
        return (lhs is not None) - (rhs is not None)
    return lhs.partial_cmp(rhs)


def sort_queriables(items: list[Any], field_id: FieldId, reverse: bool = False) -> None:
    """Sort ``items`` in place by the value of ``field_id``.

    Incomparable pairs (different kinds, NaN) compare equal, so they keep
    their relative order in both directions.
    """

    def _cmp(lhs: Any, rhs: Any) -> int:
        order = compare_optional(query(lhs, field_id), query(rhs, field_id)) or 0
        return -order if reverse else order

    items.sort(key=cmp_to_key(_cmp))


def field_paths(field_ids: Iterable[FieldId]) -> list[str]:
    """Path strings of ``field_ids``, e.g. column headers."""
    return [field_id.to_path() for field_id in field_ids]
