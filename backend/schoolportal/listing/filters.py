"""Translate request query parameters into record store predicates.

A :class:`FilterSpec` is always ``scope AND filter1 AND filter2 ...``. The
scope comes from the authenticated caller and is fixed server side; request
parameters can only narrow it. Unknown parameters and empty values are
ignored, malformed values are rejected with :class:`InvalidFilterError`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple

from .errors import InvalidFilterError, ScopeViolationError

_OPERATORS = ("eq", "in", "gte", "lte", "lt")


def _clean_string(value: Any) -> str:
    return str(value).strip() if value is not None else ""


@dataclass(frozen=True)
class Condition:
    field: str
    op: str
    value: Any

    def __post_init__(self) -> None:
        if self.op not in _OPERATORS:
            raise ValueError(f"Unsupported operator: {self.op}")

    def to_query(self) -> Dict[str, Any]:
        if self.op == "eq":
            return {self.field: self.value}
        return {self.field: {f"${self.op}": self.value}}

    def matches(self, document: Mapping[str, Any]) -> bool:
        actual = document.get(self.field)

        # Equality against an array field means membership, as in MongoDB.
        if self.op == "eq":
            if isinstance(actual, (list, tuple)):
                return self.value in actual
            return actual == self.value

        if self.op == "in":
            candidates = list(self.value)
            if isinstance(actual, (list, tuple)):
                return any(item in candidates for item in actual)
            return actual in candidates

        if actual is None:
            return False
        try:
            if self.op == "gte":
                return actual >= self.value
            if self.op == "lte":
                return actual <= self.value
            return actual < self.value
        except TypeError:
            return False


@dataclass(frozen=True)
class Scope:
    """The always-applied restriction tying visible records to the caller."""

    conditions: Tuple[Condition, ...] = ()
    unrestricted: bool = False

    def __post_init__(self) -> None:
        if not self.conditions and not self.unrestricted:
            raise ScopeViolationError("A scoped list needs at least one scope condition.")

    @classmethod
    def owned_by(cls, field_name: str, value: Any) -> "Scope":
        if value is None or _clean_string(value) == "":
            raise ScopeViolationError(f"Scope value for '{field_name}' is empty.")
        return cls((Condition(field_name, "eq", value),))

    @classmethod
    def everything(cls) -> "Scope":
        """No caller restriction: admin-only endpoints and lookups by id."""

        return cls((), unrestricted=True)

    def with_condition(self, condition: Condition) -> "Scope":
        return Scope(self.conditions + (condition,), unrestricted=self.unrestricted)

    @property
    def fields(self) -> frozenset:
        return frozenset(condition.field for condition in self.conditions)


@dataclass(frozen=True)
class FilterSpec:
    scope: Scope
    conditions: Tuple[Condition, ...] = field(default_factory=tuple)

    def all_conditions(self) -> Tuple[Condition, ...]:
        return self.scope.conditions + self.conditions

    def to_query(self) -> Dict[str, Any]:
        clauses = [condition.to_query() for condition in self.all_conditions()]
        if not clauses:
            return {}
        if len(clauses) == 1:
            return clauses[0]
        return {"$and": clauses}

    def matches(self, document: Mapping[str, Any]) -> bool:
        return all(condition.matches(document) for condition in self.all_conditions())

    def narrowed(self, *conditions: Condition) -> "FilterSpec":
        return FilterSpec(self.scope, self.conditions + tuple(conditions))


class FieldFilter:
    """Equality filter on one request parameter, optionally enumerated."""

    def __init__(
        self,
        param: str,
        field_name: str,
        *,
        choices: Sequence[str] | None = None,
    ) -> None:
        self.param = param
        self.field = field_name
        self.choices = tuple(choices) if choices is not None else None

    @property
    def params(self) -> Tuple[str, ...]:
        return (self.param,)

    def build(self, args: Mapping[str, Any]) -> List[Condition]:
        value = _clean_string(args.get(self.param))
        if not value:
            return []
        if self.choices is not None and value not in self.choices:
            raise InvalidFilterError(
                f"{self.param} must be one of: {', '.join(self.choices)}.",
                field=self.param,
            )
        return [Condition(self.field, "eq", value)]


def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_date_param(raw: str, *, param: str) -> Tuple[datetime, bool]:
    """Parse an ISO date or datetime.

    Returns the parsed value and whether it was a bare date.
    """

    text = raw.strip()
    if len(text) == 10:
        try:
            return datetime.combine(date.fromisoformat(text), time.min), True
        except ValueError:
            raise InvalidFilterError(
                f"{param} must be a date in YYYY-MM-DD format.", field=param
            ) from None

    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return _to_naive_utc(datetime.fromisoformat(text)), False
    except ValueError:
        raise InvalidFilterError(
            f"{param} must be an ISO 8601 date or datetime.", field=param
        ) from None


class DateRangeFilter:
    """Inclusive ``[start, end]`` range over a datetime field.

    A bare ``end`` date covers that whole day.
    """

    def __init__(
        self,
        field_name: str,
        *,
        start_param: str = "startDate",
        end_param: str = "endDate",
    ) -> None:
        self.field = field_name
        self.start_param = start_param
        self.end_param = end_param

    @property
    def params(self) -> Tuple[str, ...]:
        return (self.start_param, self.end_param)

    def build(self, args: Mapping[str, Any]) -> List[Condition]:
        start_raw = _clean_string(args.get(self.start_param))
        end_raw = _clean_string(args.get(self.end_param))

        conditions: List[Condition] = []
        start = end = None

        if start_raw:
            start, _ = parse_date_param(start_raw, param=self.start_param)
            conditions.append(Condition(self.field, "gte", start))

        if end_raw:
            end, is_bare_date = parse_date_param(end_raw, param=self.end_param)
            if is_bare_date:
                conditions.append(Condition(self.field, "lt", end + timedelta(days=1)))
            else:
                conditions.append(Condition(self.field, "lte", end))

        if start is not None and end is not None and start > end:
            raise InvalidFilterError(
                f"{self.start_param} must not be after {self.end_param}.",
                field=self.start_param,
            )

        return conditions


def build_filter_spec(
    args: Mapping[str, Any],
    filters: Iterable[FieldFilter | DateRangeFilter],
    scope: Scope,
) -> FilterSpec:
    """Combine the caller's scope with every recognized, non-empty filter."""

    if not isinstance(scope, Scope):
        raise ScopeViolationError("List queries require an explicit Scope.")

    conditions: List[Condition] = []
    for definition in filters:
        if definition.field in scope.fields:
            raise ScopeViolationError(
                f"Filter on '{definition.field}' would override the caller scope."
            )
        conditions.extend(definition.build(args))

    return FilterSpec(scope, tuple(conditions))


__all__ = [
    "Condition",
    "DateRangeFilter",
    "FieldFilter",
    "FilterSpec",
    "Scope",
    "build_filter_spec",
    "parse_date_param",
]
