from sqlalchemy import func, select

from branchportal.batch_writer import BatchedWriter, DeleteTrader, InsertTrader, UpdateTrader
from branchportal.models import Trader, TraderTask


def _count(session_factory, model=Trader):
    with session_factory() as session:
        return session.execute(select(func.count()).select_from(model)).scalar_one()


def _insert(trader_id, name=None):
    return InsertTrader({"id": trader_id, "name": name or trader_id})


def test_writes_in_chunks(session_factory):
    writer = BatchedWriter(session_factory, chunk_size=2)
    result = writer.write("PURLEY", [_insert(f"t{i}") for i in range(5)])

    assert result.success_count == 5
    assert result.failure_count == 0
    assert result.error is None
    assert len(result.applied) == 5
    assert _count(session_factory) == 5


def test_empty_write_is_a_no_op(session_factory):
    result = BatchedWriter(session_factory, chunk_size=2).write("PURLEY", [])
    assert (result.success_count, result.failure_count, result.error) == (0, 0, None)


def test_failed_chunk_counts_wholly_and_keeps_earlier_chunks(session_factory):
    writer = BatchedWriter(session_factory, chunk_size=2)
    ops = [_insert("a"), _insert("b"), _insert("c"), DeleteTrader("missing")]
    result = writer.write("PURLEY", ops)

    assert result.success_count == 2
    assert result.failure_count == 2
    assert "not found" in result.error
    with session_factory() as session:
        ids = set(session.execute(select(Trader.id)).scalars())
    assert ids == {"a", "b"}


def test_later_chunks_still_run_after_a_failure(session_factory):
    writer = BatchedWriter(session_factory, chunk_size=2)
    ops = [_insert("a"), DeleteTrader("missing"), _insert("b")]
    result = writer.write("PURLEY", ops)

    assert result.success_count == 1
    assert result.failure_count == 2
    with session_factory() as session:
        ids = set(session.execute(select(Trader.id)).scalars())
    assert ids == {"b"}


def test_update_and_delete_respect_branch(session_factory):
    writer = BatchedWriter(session_factory, chunk_size=10)
    writer.write("PURLEY", [_insert("a")])

    other = writer.write("DOVER", [UpdateTrader("a", {"notes": "x"})])
    assert other.failure_count == 1

    same = writer.write("PURLEY", [UpdateTrader("a", {"notes": "x"})])
    assert same.success_count == 1
    with session_factory() as session:
        assert session.get(Trader, "a").notes == "x"


def test_delete_cascades_tasks(session_factory):
    writer = BatchedWriter(session_factory, chunk_size=10)
    writer.write("PURLEY", [_insert("a")])
    with session_factory() as session:
        session.add(TraderTask(trader_id="a", branch_id="PURLEY", title="Call back"))
        session.commit()
    assert _count(session_factory, TraderTask) == 1

    result = writer.write("PURLEY", [DeleteTrader("a")])
    assert result.success_count == 1
    assert _count(session_factory) == 0
    assert _count(session_factory, TraderTask) == 0
