"""
Table filtering and CSV export for a branch's traders.

Everything here is a pure projection of ``TraderRecord`` lists; nothing touches
the store.
"""
import csv
import io
from collections import Counter
from datetime import date
from typing import Dict, Iterable, List, Optional

from .schemas import TraderRecord, TraderStatus
from .utils.normalize import parse_optional_datetime

ALL_CATEGORIES = "All Categories"

EXPORT_COLUMNS = [
    "ID",
    "Name",
    "Branch ID",
    "Status",
    "Last Activity",
    "Call-Back Date",
    "Description",
    "Reviews",
    "Rating",
    "Website",
    "Phone",
    "Address",
    "Main Category",
    "Owner Name",
    "Owner Profile Link",
    "Categories",
    "Workday Timing",
    "Closed On",
    "Notes",
    "Total Assets",
    "Est. Annual Revenue",
    "Est. Company Value",
    "Employee Count",
]


def _format_date(value: Optional[str], fmt: str) -> str:
    parsed = parse_optional_datetime(value)
    return parsed.strftime(fmt) if parsed else ""


def _split_categories(categories: Optional[str]) -> List[str]:
    if not categories:
        return []
    return [c.strip() for c in categories.split(",") if c.strip()]


def list_categories(traders: Iterable[TraderRecord]) -> List[str]:
    found = set()
    for trader in traders:
        if trader.main_category and trader.main_category.strip():
            found.add(trader.main_category.strip())
        found.update(_split_categories(trader.categories))
    return [ALL_CATEGORIES] + sorted(found, key=lambda c: (c.lower(), c))


def _matches_category(trader: TraderRecord, wanted: str) -> bool:
    main = (trader.main_category or "").strip().lower()
    return main == wanted or wanted in [c.lower() for c in _split_categories(trader.categories)]


def _matches_search(trader: TraderRecord, term: str) -> bool:
    fields = [
        trader.name,
        trader.description,
        trader.main_category,
        trader.address,
        trader.categories,
        trader.owner_name,
        trader.notes,
        _format_date(trader.call_back_date, "%d/%m/%Y"),
    ]
    return any(term in f.lower() for f in fields if f)


def filter_traders(
    traders: Iterable[TraderRecord],
    search: Optional[str] = None,
    category: Optional[str] = None,
) -> List[TraderRecord]:
    """Apply the dashboard's category filter and free-text search."""
    result = list(traders)
    if category and category != ALL_CATEGORIES:
        wanted = category.strip().lower()
        result = [t for t in result if _matches_category(t, wanted)]
    if search and search.strip():
        term = search.strip().lower()
        result = [t for t in result if _matches_search(t, term)]
    return result


def count_by_status(traders: Iterable[TraderRecord]) -> Dict[str, int]:
    counts = Counter(t.status for t in traders)
    return {status.value: counts.get(status.value, 0) for status in TraderStatus}


def _cell(value) -> str:
    return "" if value is None else str(value)


def export_traders_csv(traders: Iterable[TraderRecord]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\r\n")
    writer.writerow(EXPORT_COLUMNS)
    for t in traders:
        writer.writerow([
            t.id,
            t.name,
            t.branch_id,
            t.status,
            _format_date(t.last_activity, "%d/%m/%Y %H:%M:%S"),
            _format_date(t.call_back_date, "%d/%m/%Y"),
            _cell(t.description),
            _cell(t.reviews),
            _cell(t.rating),
            _cell(t.website),
            _cell(t.phone),
            _cell(t.address),
            _cell(t.main_category),
            _cell(t.owner_name),
            _cell(t.owner_profile_link),
            _cell(t.categories),
            _cell(t.workday_timing),
            _cell(t.temporarily_closed_on),
            _cell(t.notes),
            _cell(t.total_assets),
            _cell(t.estimated_annual_revenue),
            _cell(t.estimated_company_value),
            _cell(t.employee_count),
        ])
    return buffer.getvalue()


def export_filename(branch_id: str, today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"traders_export_{branch_id}_{today.isoformat()}.csv"
