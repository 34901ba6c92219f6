"""Report scope filtering applied before aggregation.

Two independent axes are combined with AND semantics:
1. A date range (first day of the earliest selected month to the last day of
   the latest one) used when fetching rows from the database
2. A per-record month membership check, because the range for January and
   March also spans February

An owner filter is translated into the set of properties that owner holds
shares in and then intersected with any explicit property filter.
"""

import calendar
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional, TypeVar

from rentledger.services.errors import ValidationError
from rentledger.services.parsers import parse_month_name
from rentledger.services.records import OwnershipMap

logger = logging.getLogger(__name__)

R = TypeVar("R")


@dataclass(frozen=True)
class ScopeFilter:
    """Immutable report scope.

    Empty months means the whole year; empty property_ids / owner_ids mean
    no restriction on that axis.
    """

    year: int
    months: frozenset[int] = field(default_factory=frozenset)
    property_ids: frozenset[int] = field(default_factory=frozenset)
    owner_ids: frozenset[int] = field(default_factory=frozenset)

    def __post_init__(self):
        # Accept any iterable from callers but store frozensets
        object.__setattr__(self, "months", frozenset(self.months))
        object.__setattr__(self, "property_ids", frozenset(self.property_ids))
        object.__setattr__(self, "owner_ids", frozenset(self.owner_ids))

        if not isinstance(self.year, int) or not 1900 <= self.year <= 9999:
            raise ValidationError(f"year out of range: {self.year!r}")
        invalid = sorted(m for m in self.months if not isinstance(m, int) or not 1 <= m <= 12)
        if invalid:
            raise ValidationError(f"months must be between 1 and 12, got {invalid}")

    @classmethod
    def from_month_names(
        cls,
        year: int,
        month_names: Iterable[str],
        property_ids: Iterable[int] = (),
        owner_ids: Iterable[int] = (),
    ) -> "ScopeFilter":
        """Build a scope from Spanish month names as submitted by the report form.

        Raises:
            ValidationError: If a month name is not recognized
        """
        try:
            months = frozenset(parse_month_name(name) for name in month_names)
        except ValueError as e:
            raise ValidationError(str(e)) from e
        return cls(
            year=year,
            months=months,
            property_ids=frozenset(property_ids),
            owner_ids=frozenset(owner_ids),
        )

    @property
    def selected_months(self) -> tuple[int, ...]:
        """Selected months in order (all twelve when none selected)."""
        return tuple(sorted(self.months)) if self.months else tuple(range(1, 13))

    def date_range(self) -> tuple[date, date]:
        """Fetch-boundary range covering the earliest to latest selected month."""
        months = self.selected_months
        first, last = months[0], months[-1]
        last_day = calendar.monthrange(self.year, last)[1]
        return date(self.year, first, 1), date(self.year, last, last_day)

    def contains_date(self, value: date) -> bool:
        """True when value falls in the scope year and one of its selected months."""
        start, end = self.date_range()
        if not start <= value <= end:
            return False
        return value.month in self.selected_months


class ReportFilterEngine:
    """Narrow payments and expenses to a report scope."""

    def resolve_property_ids(
        self,
        scope: ScopeFilter,
        ownership_map: Optional[OwnershipMap] = None,
    ) -> Optional[frozenset[int]]:
        """Translate the scope's owner and property filters into one property set.

        Returns:
            Allowed property ids, or None when neither filter is active
        """
        allowed: Optional[frozenset[int]] = scope.property_ids or None

        if scope.owner_ids:
            owned = frozenset(
                property_id
                for property_id, entries in (ownership_map or {}).items()
                if any(entry.owner_id in scope.owner_ids for entry in entries)
            )
            allowed = owned if allowed is None else allowed & owned

        return allowed

    def matches(self, record, scope: ScopeFilter, allowed: Optional[frozenset[int]]) -> bool:
        """Check one record (anything with .date and .property_id) against the scope."""
        if not scope.contains_date(record.date):
            return False
        if allowed is None:
            return True
        return record.property_id is not None and record.property_id in allowed

    def narrow(
        self,
        records: Iterable[R],
        scope: ScopeFilter,
        ownership_map: Optional[OwnershipMap] = None,
    ) -> list[R]:
        """Return the records inside the scope, preserving input order."""
        allowed = self.resolve_property_ids(scope, ownership_map)
        source = list(records)
        result = [record for record in source if self.matches(record, scope, allowed)]
        logger.debug(
            "Narrowed %d record(s) to %d for year=%d months=%s properties=%s",
            len(source),
            len(result),
            scope.year,
            list(scope.selected_months),
            sorted(allowed) if allowed is not None else "all",
        )
        return result


def narrow(
    records: Iterable[R],
    scope: ScopeFilter,
    ownership_map: Optional[OwnershipMap] = None,
) -> list[R]:
    """Module-level shortcut for ReportFilterEngine().narrow."""
    return ReportFilterEngine().narrow(records, scope, ownership_map)
