"""
Branch-scoped trader service: read/projection, single-record CRUD, bulk flows
and tasks.

Every trader lives in exactly one branch partition (``branch_id``). Phone
numbers are stored normalized and act as the duplicate key inside a branch.
The duplicate check and the write are not one transaction: two overlapping
imports running at the same moment can both insert the same phone.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload, sessionmaker

from . import config
from .batch_writer import BatchResult, BatchedWriter, DeleteTrader, InsertTrader, UpdateTrader
from .errors import (
    DuplicatePhoneError,
    ImportValidationError,
    TaskNotFoundError,
    TraderNotFoundError,
    TraderServiceError,
)
from .importer import (
    check_upload_limit,
    map_financial_row,
    map_rows,
    read_csv_rows,
    resolve_batch,
)
from .models import Trader, TraderTask
from .models.trader import new_id
from .schemas import (
    FinancialUpdate,
    TaskCreate,
    TaskRecord,
    TaskUpdate,
    TraderDraft,
    TraderForm,
    TraderRecord,
    TraderStatus,
)
from .seed_data import SEED_TRADERS
from .utils.normalize import (
    EPOCH,
    format_iso,
    normalize_phone,
    parse_activity_datetime,
    parse_optional_datetime,
    to_iso_string,
    utcnow,
)

logger = logging.getLogger(__name__)


@dataclass
class BulkAddResult:
    added: List[TraderRecord] = field(default_factory=list)
    skipped: int = 0
    dropped: int = 0
    success_count: int = 0
    failure_count: int = 0
    error: Optional[str] = None


@dataclass
class FinancialUpdateResult:
    updated_count: int = 0
    not_found_count: int = 0
    not_found_names: List[str] = field(default_factory=list)
    failure_count: int = 0
    error: Optional[str] = None


def project_task(task: TraderTask) -> TaskRecord:
    return TaskRecord(
        id=task.id,
        trader_id=task.trader_id,
        title=task.title,
        due_date=to_iso_string(task.due_date) or format_iso(utcnow()),
        completed=bool(task.completed),
    )


def project_trader(trader: Trader) -> TraderRecord:
    """Convert a stored row into the external Trader shape.

    Timestamps become ISO strings, absent values become explicit ``None`` and a
    missing or unreadable ``last_activity`` becomes the Unix epoch.
    """
    return TraderRecord(
        id=trader.id,
        branch_id=trader.branch_id,
        name=trader.name or "N/A",
        status=trader.status or TraderStatus.INACTIVE.value,
        last_activity=to_iso_string(trader.last_activity) or format_iso(EPOCH),
        call_back_date=to_iso_string(trader.call_back_date),
        description=trader.description,
        reviews=trader.reviews,
        rating=trader.rating,
        website=trader.website,
        phone=trader.phone,
        address=trader.address,
        main_category=trader.main_category,
        owner_name=trader.owner_name,
        owner_profile_link=trader.owner_profile_link,
        categories=trader.categories,
        workday_timing=trader.workday_timing,
        temporarily_closed_on=trader.temporarily_closed_on,
        notes=trader.notes,
        total_assets=trader.total_assets,
        estimated_annual_revenue=trader.estimated_annual_revenue,
        estimated_company_value=trader.estimated_company_value,
        employee_count=trader.employee_count,
        tasks=[project_task(task) for task in trader.tasks],
    )


def draft_to_values(draft: TraderDraft) -> Dict:
    """Column values for a bulk-inserted trader (historical activity date kept)."""
    values = draft.model_dump(exclude={"status", "last_activity", "call_back_date", "phone"})
    values.update(
        id=new_id(),
        name=draft.name.strip() or "Unnamed Trader",
        status=(draft.status or TraderStatus.NEW_LEAD).value,
        last_activity=parse_activity_datetime(draft.last_activity),
        call_back_date=parse_optional_datetime(draft.call_back_date),
        phone=normalize_phone(draft.phone) or None,
    )
    return values


def _form_values(form: TraderForm) -> Dict:
    values = form.model_dump(exclude={"status", "phone", "call_back_date"})
    values["status"] = form.status.value if form.status else None
    values["call_back_date"] = parse_optional_datetime(form.call_back_date)
    return values


class TraderService:
    """Trader operations for any branch, backed by a SQLAlchemy session factory."""

    def __init__(
        self,
        session_factory: sessionmaker,
        writer: Optional[BatchedWriter] = None,
        max_upload_rows: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.writer = writer or BatchedWriter(session_factory)
        self.max_upload_rows = max_upload_rows or config.get_max_upload_rows()

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    def _load_traders(self, branch_id: str) -> List[TraderRecord]:
        with self.session_factory() as session:
            rows = session.execute(
                select(Trader)
                .where(Trader.branch_id == branch_id)
                .options(selectinload(Trader.tasks))
                .order_by(Trader.created_at, Trader.name)
            ).scalars().all()
            return [project_trader(row) for row in rows]

    def get_traders(self, branch_id: str) -> List[TraderRecord]:
        """
        Load every trader of a branch.

        An empty branch is seeded with the demo data set once and read again.

        Args:
            branch_id: Base branch identifier, e.g. ``PURLEY``

        Returns:
            List of traders in the external shape

        Raises:
            TraderServiceError: on any store failure; no partial results
        """
        try:
            if self.count_traders(branch_id):
                traders = self._load_traders(branch_id)
                logger.info("[getTraders] Found %s traders for branch %s.", len(traders), branch_id)
                return traders

            logger.info("[getTraders] Branch %s is empty. Seeding initial data...", branch_id)
            seeded = self.bulk_add_traders(branch_id, SEED_TRADERS)
            if seeded.failure_count:
                raise TraderServiceError(f"Seeding branch {branch_id} failed: {seeded.error}")
            traders = self._load_traders(branch_id)
            logger.info("[getTraders] Re-read branch %s after seeding. Found %s traders.", branch_id, len(traders))
            return traders
        except Exception as exc:
            logger.exception("Failed to get traders for branch %s", branch_id)
            raise TraderServiceError("Failed to get traders from database.") from exc

    def count_traders(self, branch_id: str) -> int:
        with self.session_factory() as session:
            return session.execute(
                select(func.count()).select_from(Trader).where(Trader.branch_id == branch_id)
            ).scalar_one()

    def _get_trader_row(self, session: Session, branch_id: str, trader_id: str) -> Trader:
        trader = session.get(Trader, trader_id)
        if trader is None or trader.branch_id != branch_id:
            raise TraderNotFoundError(branch_id, trader_id)
        return trader

    def get_trader(self, branch_id: str, trader_id: str) -> TraderRecord:
        with self.session_factory() as session:
            return project_trader(self._get_trader_row(session, branch_id, trader_id))

    # ------------------------------------------------------------------
    # Single-record CRUD
    # ------------------------------------------------------------------

    def _check_duplicate_phone(self, session: Session, branch_id: str, phone: Optional[str], current_id: Optional[str] = None) -> None:
        if not phone:
            return
        matches = session.execute(
            select(Trader.id).where(Trader.branch_id == branch_id, Trader.phone == phone)
        ).scalars().all()
        if any(trader_id != current_id for trader_id in matches):
            raise DuplicatePhoneError(phone)

    def _commit(self, session: Session, action: str) -> None:
        try:
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception("[TRADER_SERVICE_ERROR] Could not %s", action)
            raise TraderServiceError(f"Could not {action}. Reason: {exc}") from exc

    def add_trader(self, branch_id: str, form: TraderForm) -> TraderRecord:
        phone = normalize_phone(form.phone) or None
        with self.session_factory() as session:
            values = _form_values(form)
            values["status"] = values["status"] or TraderStatus.NEW_LEAD.value
            self._check_duplicate_phone(session, branch_id, phone)
            trader = Trader(
                id=new_id(),
                branch_id=branch_id,
                phone=phone,
                last_activity=utcnow(),
                tasks=[],
                **values,
            )
            session.add(trader)
            self._commit(session, "add trader")
            logger.info("Added trader %s to branch %s", trader.id, branch_id)
            return project_trader(trader)

    def update_trader(self, branch_id: str, trader_id: str, form: TraderForm) -> TraderRecord:
        """Merge ``form`` onto the stored trader.

        Fields left out of the form keep their stored value; fields sent as
        ``None`` are cleared. ``name`` and ``status`` are never cleared.
        """
        sent = form.model_fields_set
        with self.session_factory() as session:
            trader = self._get_trader_row(session, branch_id, trader_id)
            if "phone" in sent:
                phone = normalize_phone(form.phone) or None
                self._check_duplicate_phone(session, branch_id, phone, current_id=trader_id)
                trader.phone = phone
            for key, value in _form_values(form).items():
                if key not in sent:
                    continue
                if value is None and key in ("name", "status"):
                    continue
                setattr(trader, key, value)
            trader.last_activity = utcnow()
            self._commit(session, "update trader")
            return project_trader(trader)

    def delete_trader(self, branch_id: str, trader_id: str) -> None:
        """Delete a trader together with its tasks in one commit."""
        with self.session_factory() as session:
            trader = self._get_trader_row(session, branch_id, trader_id)
            session.delete(trader)
            self._commit(session, "delete trader and their tasks")
            logger.info("Deleted trader %s from branch %s", trader_id, branch_id)

    # ------------------------------------------------------------------
    # Bulk flows
    # ------------------------------------------------------------------

    def _existing_phones(self, branch_id: str) -> Set[str]:
        try:
            with self.session_factory() as session:
                phones = session.execute(
                    select(Trader.phone).where(Trader.branch_id == branch_id, Trader.phone.is_not(None))
                ).scalars().all()
        except SQLAlchemyError as exc:
            logger.exception("Failed to read existing phone numbers for branch %s", branch_id)
            raise TraderServiceError("Failed to read existing traders from database.") from exc
        return {normalize_phone(p) for p in phones if p}

    def bulk_add_traders(self, branch_id: str, drafts: Iterable[TraderDraft]) -> BulkAddResult:
        """
        Insert drafts that do not collide on phone number.

        Args:
            branch_id: Target branch
            drafts: Traders to create, in file/request order

        Returns:
            BulkAddResult with the created traders, the duplicate-skip count and
            per-chunk success/failure counts
        """
        drafts = list(drafts)
        resolved = resolve_batch(self._existing_phones(branch_id), drafts)
        operations = [InsertTrader(draft_to_values(draft)) for draft in resolved.accepted]
        batch = self.writer.write(branch_id, operations)

        logger.info(
            "Bulk add for branch %s: %s received, %s added, %s duplicates skipped, %s failed",
            branch_id, len(drafts), batch.success_count, resolved.skipped, batch.failure_count,
        )
        return BulkAddResult(
            added=[project_trader(trader) for trader in batch.applied],
            skipped=resolved.skipped,
            success_count=batch.success_count,
            failure_count=batch.failure_count,
            error=batch.error,
        )

    def import_traders_csv(self, branch_id: str, text: str) -> BulkAddResult:
        """Parse an uploaded CSV and bulk add its rows.

        The whole file is rejected (nothing written) when it is malformed or has
        more data rows than the upload limit.
        """
        rows = read_csv_rows(text)
        check_upload_limit(rows, self.max_upload_rows)
        drafts = map_rows(rows)
        if not drafts:
            raise ImportValidationError(
                "No valid trader data found. Ensure the file has a header row and a 'Name' column."
            )
        result = self.bulk_add_traders(branch_id, drafts)
        result.dropped = len(rows) - len(drafts)
        return result

    def bulk_delete_traders(self, branch_id: str, trader_ids: Iterable[str]) -> BatchResult:
        trader_ids = list(dict.fromkeys(trader_ids))
        if not trader_ids:
            return BatchResult(error="No trader IDs provided for deletion.")
        if len(trader_ids) > self.writer.chunk_size:
            logger.warning(
                "Deleting %s traders from branch %s spans several chunks; the delete is not atomic.",
                len(trader_ids), branch_id,
            )
        result = self.writer.write(branch_id, [DeleteTrader(trader_id) for trader_id in trader_ids])
        logger.info(
            "Bulk delete for branch %s: %s deleted, %s failed",
            branch_id, result.success_count, result.failure_count,
        )
        return result

    def bulk_update_financials(self, branch_id: str, updates: Iterable[FinancialUpdate]) -> FinancialUpdateResult:
        """Update financial estimates of traders matched by exact name."""
        updates = list(updates)
        check_upload_limit(updates, self.max_upload_rows)

        with self.session_factory() as session:
            rows = session.execute(
                select(Trader.id, Trader.name)
                .where(Trader.branch_id == branch_id)
                .order_by(Trader.created_at)
            ).all()
        ids_by_name: Dict[str, str] = {}
        for trader_id, name in rows:
            ids_by_name.setdefault(name, trader_id)

        operations = []
        not_found: List[str] = []
        for update in updates:
            trader_id = ids_by_name.get(update.name)
            if trader_id is None:
                not_found.append(update.name)
                continue
            changes = update.changed_fields()
            if not changes:
                logger.debug("No financial columns for %s; nothing to update", update.name)
                continue
            operations.append(UpdateTrader(trader_id, changes))

        batch = self.writer.write(branch_id, operations)
        if not_found:
            logger.info("Financial update for branch %s: traders not found by name: %s", branch_id, not_found)
        return FinancialUpdateResult(
            updated_count=batch.success_count,
            not_found_count=len(not_found),
            not_found_names=not_found,
            failure_count=batch.failure_count,
            error=batch.error,
        )

    def import_financials_csv(self, branch_id: str, text: str) -> FinancialUpdateResult:
        rows = read_csv_rows(text)
        check_upload_limit(rows, self.max_upload_rows)
        updates = [u for u in (map_financial_row(row) for row in rows) if u is not None]
        if not updates:
            raise ImportValidationError(
                "No valid data found. Ensure the CSV has a 'Name' column and at least one financial data column."
            )
        return self.bulk_update_financials(branch_id, updates)

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def _get_task_row(self, session: Session, branch_id: str, trader_id: str, task_id: str) -> TraderTask:
        task = session.get(TraderTask, task_id)
        if task is None or task.trader_id != trader_id or task.branch_id != branch_id:
            raise TaskNotFoundError(trader_id, task_id)
        return task

    def list_tasks(self, branch_id: str, trader_id: str) -> List[TaskRecord]:
        with self.session_factory() as session:
            trader = self._get_trader_row(session, branch_id, trader_id)
            return [project_task(task) for task in trader.tasks]

    def create_task(self, branch_id: str, trader_id: str, task: TaskCreate) -> TaskRecord:
        with self.session_factory() as session:
            self._get_trader_row(session, branch_id, trader_id)
            row = TraderTask(
                id=new_id(),
                trader_id=trader_id,
                branch_id=branch_id,
                title=task.title,
                due_date=parse_optional_datetime(task.due_date),
                completed=task.completed,
            )
            session.add(row)
            self._commit(session, "create task")
            return project_task(row)

    def update_task(self, branch_id: str, trader_id: str, task_id: str, changes: TaskUpdate) -> TaskRecord:
        with self.session_factory() as session:
            row = self._get_task_row(session, branch_id, trader_id, task_id)
            for key, value in changes.model_dump(exclude_unset=True, exclude_none=True).items():
                if key == "due_date":
                    value = parse_optional_datetime(value)
                setattr(row, key, value)
            self._commit(session, "update task")
            return project_task(row)

    def delete_task(self, branch_id: str, trader_id: str, task_id: str) -> None:
        with self.session_factory() as session:
            row = self._get_task_row(session, branch_id, trader_id, task_id)
            session.delete(row)
            self._commit(session, "delete task")
