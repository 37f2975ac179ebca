"""
Chunked writes against the trader store.

A logical request (bulk add, bulk delete, financial update) is split into
chunks of at most ``chunk_size`` operations. Each chunk is one transaction:
it commits completely or is rolled back and counted as failed. Chunks are
independent, so a failure in chunk N leaves chunks 1..N-1 applied and chunks
N+1.. are still attempted. Nothing is retried.

Callers must treat bulk results as partial: always report both counts.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from . import config
from .errors import TraderNotFoundError, TraderServiceError
from .models import Trader

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    success_count: int = 0
    failure_count: int = 0
    error: Optional[str] = None
    applied: List[Any] = field(default_factory=list)


class WriteOperation:
    """One store mutation; ``apply`` runs inside the chunk's transaction."""

    def apply(self, session: Session, branch_id: str) -> Any:
        raise NotImplementedError


def _load_trader(session: Session, branch_id: str, trader_id: str) -> Trader:
    trader = session.get(Trader, trader_id)
    if trader is None or trader.branch_id != branch_id:
        raise TraderNotFoundError(branch_id, trader_id)
    return trader


class InsertTrader(WriteOperation):
    def __init__(self, values: Dict[str, Any]):
        self.values = values

    def apply(self, session, branch_id):
        # an explicit empty task list keeps the instance usable after the session closes
        trader = Trader(branch_id=branch_id, tasks=[], **self.values)
        session.add(trader)
        return trader


class UpdateTrader(WriteOperation):
    def __init__(self, trader_id: str, changes: Dict[str, Any]):
        self.trader_id = trader_id
        self.changes = changes

    def apply(self, session, branch_id):
        trader = _load_trader(session, branch_id, self.trader_id)
        for key, value in self.changes.items():
            setattr(trader, key, value)
        return trader.id


class DeleteTrader(WriteOperation):
    """Delete a trader and, through the cascade, its tasks."""

    def __init__(self, trader_id: str):
        self.trader_id = trader_id

    def apply(self, session, branch_id):
        trader = _load_trader(session, branch_id, self.trader_id)
        session.delete(trader)
        return self.trader_id


class BatchedWriter:

    def __init__(self, session_factory: sessionmaker, chunk_size: Optional[int] = None):
        self.session_factory = session_factory
        self.chunk_size = chunk_size or config.get_batch_chunk_size()

    def write(self, branch_id: str, operations: Iterable[WriteOperation]) -> BatchResult:
        ops = list(operations)
        result = BatchResult()
        total_chunks = (len(ops) + self.chunk_size - 1) // self.chunk_size

        for index, start in enumerate(range(0, len(ops), self.chunk_size), 1):
            chunk = ops[start:start + self.chunk_size]
            session = self.session_factory()
            try:
                applied = [op.apply(session, branch_id) for op in chunk]
                session.commit()
            except (SQLAlchemyError, TraderServiceError) as exc:
                session.rollback()
                result.failure_count += len(chunk)
                if result.error is None:
                    result.error = str(exc)
                logger.error(
                    "Chunk %s/%s for branch %s failed (%s operations): %s",
                    index, total_chunks, branch_id, len(chunk), exc,
                )
                continue
            finally:
                session.close()

            result.success_count += len(chunk)
            result.applied.extend(applied)
            logger.info("Chunk %s/%s for branch %s committed (%s operations)", index, total_chunks, branch_id, len(chunk))

        return result
