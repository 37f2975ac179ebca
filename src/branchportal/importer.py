"""
Bulk import pipeline: CSV tokenising, flexible header mapping and duplicate
resolution.

Uploaded files come from many tools (Google Maps scrapers, Companies House
exports, hand-made spreadsheets) so column names vary. Each canonical field
lists the header names it accepts; matching is case-insensitive and exact.
"""
import csv
import io
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set

from .errors import CsvParseError, UploadLimitExceededError
from .schemas import FinancialUpdate, TraderDraft, TraderStatus
from .utils.normalize import normalize_phone

logger = logging.getLogger(__name__)

TRADER_HEADER_SYNONYMS: Dict[str, List[str]] = {
    "name": ["Name", "Trader Name", "Company Name", "Business Name"],
    "status": ["Status"],
    "last_activity": ["Last Activity", "LastActivity", "Last Activity Date", "Last Contacted"],
    "call_back_date": ["Call-Back Date", "Call Back Date", "Callback Date"],
    "description": ["Description"],
    "reviews": ["Reviews", "Reviews (Trades Made)", "Review Count"],
    "rating": ["Rating"],
    "website": ["Website", "Web Site", "URL"],
    "phone": ["Phone", "Phone Number", "Telephone", "Tel"],
    "address": ["Address", "Full Address"],
    "main_category": ["Main Category", "Main_category", "Category"],
    "owner_name": ["Owner Name", "Owner", "Owner Nar", "Owner_name"],
    "owner_profile_link": ["Owner Profile Link", "Owner_profile_link", "Owner Profile"],
    "categories": ["Categories"],
    "workday_timing": ["Workday Timing", "Workday_timing", "Opening Hours", "Hours"],
    "temporarily_closed_on": ["Temporarily Closed On", "Closed On", "Closed_on"],
    "notes": ["Notes"],
    "total_assets": ["Total Assets"],
    "estimated_annual_revenue": ["Est. Annual Revenue", "Estimated Annual Revenue"],
    "estimated_company_value": ["Est. Company Value", "Estimated Company Value"],
    "employee_count": ["Employee Count", "Employees"],
}

FINANCIAL_HEADER_SYNONYMS: Dict[str, List[str]] = {
    "name": ["Name", "Trader Name", "Company Name"],
    "total_assets": ["Total Assets"],
    "estimated_annual_revenue": ["Est. Annual Revenue", "Estimated Annual Revenue"],
    "estimated_company_value": ["Est. Company Value", "Estimated Company Value"],
    "employee_count": ["Employee Count", "Employees"],
}


@dataclass
class ResolveResult:
    accepted: List[TraderDraft] = field(default_factory=list)
    skipped: int = 0
    skipped_phones: List[str] = field(default_factory=list)


def read_csv_rows(text: str) -> List[Dict[str, str]]:
    """Tokenise CSV text into header -> value dicts.

    Header names are trimmed and blank lines skipped. Broken quoting aborts
    the whole file with the offending line number.
    """
    if text.startswith("\ufeff"):
        text = text[1:]
    reader = csv.reader(io.StringIO(text), strict=True)
    headers: Optional[List[str]] = None
    rows: List[Dict[str, str]] = []
    while True:
        # a quoted field may span lines; errors name the line the record starts on
        record_start = reader.line_num + 1
        try:
            record = next(reader)
        except StopIteration:
            break
        except csv.Error as exc:
            raise CsvParseError(record_start, str(exc)) from exc
        if not any(cell.strip() for cell in record):
            continue
        if headers is None:
            headers = [h.strip() for h in record]
            continue
        row = {}
        for idx, value in enumerate(record[:len(headers)]):
            if headers[idx]:
                row[headers[idx]] = value
        rows.append(row)
    return rows


def check_upload_limit(rows: Sequence, limit: int) -> None:
    if len(rows) > limit:
        raise UploadLimitExceededError(len(rows), limit)


def get_row_value(row: Mapping[str, object], names: Iterable[str]) -> Optional[str]:
    """Return the first non-blank value among ``names`` (case-insensitive)."""
    for name in names:
        wanted = name.lower()
        for key, value in row.items():
            if key is None or key.strip().lower() != wanted:
                continue
            if value is None:
                continue
            text = str(value).strip()
            if text:
                return text
    return None


def _to_float(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value.replace(",", ""))
    except ValueError:
        return None


def map_row(row: Mapping[str, object], synonyms: Mapping[str, List[str]] = TRADER_HEADER_SYNONYMS) -> Optional[TraderDraft]:
    """Map one tokenised row onto a ``TraderDraft``; ``None`` when it has no name."""
    values = {field_name: get_row_value(row, names) for field_name, names in synonyms.items()}
    if not values.get("name"):
        return None

    if "rating" in values:
        values["rating"] = _to_float(values["rating"])
    if "status" in values:
        values["status"] = TraderStatus.parse(values["status"])

    known = TraderDraft.model_fields
    return TraderDraft(**{k: v for k, v in values.items() if k in known})


def map_financial_row(row: Mapping[str, object]) -> Optional[FinancialUpdate]:
    values = {field_name: get_row_value(row, names) for field_name, names in FINANCIAL_HEADER_SYNONYMS.items()}
    if not values.get("name"):
        return None
    return FinancialUpdate(**values)


def map_rows(rows: Iterable[Mapping[str, object]]) -> List[TraderDraft]:
    drafts = []
    dropped = 0
    for row in rows:
        draft = map_row(row)
        if draft is None:
            dropped += 1
            continue
        drafts.append(draft)
    if dropped:
        logger.info("Dropped %s row(s) without a usable name", dropped)
    return drafts


def resolve_batch(existing_phones: Set[str], drafts: Iterable[TraderDraft]) -> ResolveResult:
    """Decide which drafts to insert, in input order.

    A draft whose normalized phone is already stored, or was accepted earlier
    in this batch, is skipped. Drafts without a phone are always accepted.
    The returned drafts carry the normalized phone (``None`` when empty).
    """
    result = ResolveResult()
    seen: Set[str] = set()
    for draft in drafts:
        phone = normalize_phone(draft.phone)
        if phone and (phone in existing_phones or phone in seen):
            result.skipped += 1
            result.skipped_phones.append(phone)
            continue
        if phone:
            seen.add(phone)
        result.accepted.append(draft.model_copy(update={"phone": phone or None}))
    return result
