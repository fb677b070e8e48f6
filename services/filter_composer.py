"""
Filter Composer
===============
Composes search text, facets, a date range and role scope into a single
predicate over a record set.

Matching rule per record:
    text AND facet(f1) AND facet(f2) ... AND date_range AND role_scope

- Multi-value facets are OR'd internally, AND'd across facets
- Empty criteria mean "unconstrained", never "match nothing"
- Records keep their original relative order (stable filter, no re-sort)

The entity's searchable/facet/date fields are declared by the caller via
RecordSchema. Records may be dicts or objects with attributes.
"""

import dataclasses
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

# URL query parameter names
TEXT_PARAM = "q"
FROM_PARAM = "from"
TO_PARAM = "to"


# =============================================================================
# VALUE OBJECTS
# =============================================================================

@dataclass(frozen=True)
class DateRange:
    """Inclusive date range. Either end may be open."""
    start: Optional[date] = None
    end: Optional[date] = None

    def __post_init__(self):
        # Bounds are calendar days; datetime bounds keep only their date
        if self.start is not None:
            object.__setattr__(self, "start", _as_date(self.start))
        if self.end is not None:
            object.__setattr__(self, "end", _as_date(self.end))
        if self.start is not None and self.end is not None and self.start > self.end:
            raise ValueError(f"Date range start {self.start} is after end {self.end}")

    @property
    def is_open(self) -> bool:
        return self.start is None and self.end is None

    def contains(self, value: Any) -> bool:
        """Fails closed: a missing value is outside every active range."""
        if value is None:
            return False
        day = _as_date(value)
        if self.start is not None and day < self.start:
            return False
        if self.end is not None and day > self.end:
            return False
        return True


@dataclass(frozen=True)
class RecordSchema:
    """Per-entity field declaration supplied by the caller."""
    search_fields: Tuple[str, ...] = ()
    facet_fields: Mapping[str, str] = field(default_factory=dict)
    date_field: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "search_fields", tuple(self.search_fields))
        object.__setattr__(self, "facet_fields", MappingProxyType(dict(self.facet_fields)))

    def facet_field(self, facet: str) -> str:
        # Facets without an explicit mapping read the field of the same name
        return self.facet_fields.get(facet, facet)


@dataclass(frozen=True)
class FilterCriteria:
    """
    Immutable query value. Build a new one per query.

    role_scope is derived from the caller's role (see with_role_scope),
    never taken from request input.
    """
    text: str = ""
    facets: Mapping[str, frozenset] = field(default_factory=dict)
    date_range: Optional[DateRange] = None
    role_scope: Optional[Callable[[Any], bool]] = None

    def __post_init__(self):
        object.__setattr__(self, "text", (self.text or "").strip())
        normalized = {
            name: frozenset(
                _facet_key(v) for v in _facet_values(values) if v is not None and v != ""
            )
            for name, values in (self.facets or {}).items()
        }
        object.__setattr__(self, "facets", MappingProxyType(normalized))

    @property
    def is_empty(self) -> bool:
        return (
            not self.text
            and not any(self.facets.values())
            and (self.date_range is None or self.date_range.is_open)
            and self.role_scope is None
        )

    def with_role_scope(self, role) -> "FilterCriteria":
        """Copy of these criteria with the role's record-level predicate injected."""
        from services.visibility import record_scope_for
        return dataclasses.replace(self, role_scope=record_scope_for(role))


# =============================================================================
# MATCHING
# =============================================================================

def _field(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def _facet_key(value: Any) -> str:
    if isinstance(value, Enum):
        value = value.value
    return str(value)


def _facet_values(values: Any) -> Iterable[Any]:
    # A lone string or enum is one value, not a sequence of characters
    if values is None:
        return ()
    if isinstance(values, (str, Enum)):
        return (values,)
    return values


def _as_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def text_match(record: Any, text: str, schema: RecordSchema) -> bool:
    if not text:
        return True
    needle = text.casefold()
    for name in schema.search_fields:
        value = _field(record, name)
        if value and needle in str(value).casefold():
            return True
    return False


def facet_match(record: Any, facet: str, allowed: frozenset, schema: RecordSchema) -> bool:
    if not allowed:
        return True
    value = _field(record, schema.facet_field(facet))
    if value is None:
        return False
    return _facet_key(value) in allowed


def date_range_match(record: Any, date_range: Optional[DateRange], schema: RecordSchema) -> bool:
    if date_range is None or date_range.is_open:
        return True
    if schema.date_field is None:
        raise ValueError("Date range filter requires a schema date_field")
    return date_range.contains(_field(record, schema.date_field))


def matches(record: Any, criteria: FilterCriteria, schema: RecordSchema) -> bool:
    """True when the record satisfies every criteria group."""
    if not text_match(record, criteria.text, schema):
        return False
    for facet, allowed in criteria.facets.items():
        if not facet_match(record, facet, allowed, schema):
            return False
    if not date_range_match(record, criteria.date_range, schema):
        return False
    if criteria.role_scope is not None and not criteria.role_scope(record):
        return False
    return True


def apply(records: Iterable[Any], criteria: FilterCriteria, schema: RecordSchema) -> List[Any]:
    """
    Return the records matching all criteria, original order preserved.

    Pure: same inputs always give the same output; inputs are not modified.
    """
    return [r for r in records if matches(r, criteria, schema)]


def sort_records(records: Iterable[Any], key: str, descending: bool = False) -> List[Any]:
    """
    Stable sort on one field. Records missing the field always sort last.
    """
    records = list(records)
    present = [r for r in records if _field(r, key) is not None]
    missing = [r for r in records if _field(r, key) is None]
    present.sort(key=lambda r: _field(r, key), reverse=descending)
    return present + missing


# =============================================================================
# QUERY STRING ENCODING
# =============================================================================

def _split_values(raw: Optional[str]) -> List[str]:
    """Comma-joined multi-value parameter -> list, blanks dropped."""
    if not raw:
        return []
    return [v.strip() for v in raw.split(",") if v.strip()]


def _parse_date(raw: Optional[str], param: str) -> Optional[date]:
    if not raw or not raw.strip():
        return None
    try:
        value = raw.strip()
        if "T" in value:
            return datetime.fromisoformat(value).date()
        return date.fromisoformat(value)
    except ValueError:
        raise ValueError(f"Invalid date for '{param}': {raw!r}")


def criteria_from_query(
    params: Mapping[str, Any],
    facet_names: Sequence[str],
) -> FilterCriteria:
    """
    Build FilterCriteria from URL query parameters.

    Args:
        params: Mapping with .get() (a Django QueryDict works)
        facet_names: Facet parameters this page understands

    Query shape:
        q=text  stage=PROPOSAL,NEGOTIATION  owner_id=1,2  from=2026-01-01  to=2026-01-31

    Absent or blank parameters leave that criterion unconstrained.

    Raises:
        ValueError: If from/to is not an ISO date or from > to
    """
    facets: Dict[str, List[str]] = {}
    for name in facet_names:
        values = _split_values(params.get(name))
        if values:
            facets[name] = values

    start = _parse_date(params.get(FROM_PARAM), FROM_PARAM)
    end = _parse_date(params.get(TO_PARAM), TO_PARAM)
    date_range = DateRange(start=start, end=end) if (start or end) else None

    return FilterCriteria(
        text=params.get(TEXT_PARAM) or "",
        facets=facets,
        date_range=date_range,
    )


def to_query_params(criteria: FilterCriteria) -> Dict[str, str]:
    """
    Encode criteria back to query parameters (role scope is never encoded).
    Multi-value facets are sorted so the output is deterministic.
    """
    params: Dict[str, str] = {}
    if criteria.text:
        params[TEXT_PARAM] = criteria.text
    for name, values in criteria.facets.items():
        if values:
            params[name] = ",".join(sorted(values))
    if criteria.date_range is not None:
        if criteria.date_range.start is not None:
            params[FROM_PARAM] = criteria.date_range.start.isoformat()
        if criteria.date_range.end is not None:
            params[TO_PARAM] = criteria.date_range.end.isoformat()
    return params
