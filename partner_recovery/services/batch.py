"""
Partner Recovery — Batch executor.

Applies one in-memory mutation to an unbounded set of owned records in
fixed-size chunks. Each chunk is loaded, mutated, and written with a single
flush; chunks run one after another inside the caller's transaction, so
nothing is visible to other sessions until that transaction commits.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterator, Sequence
from typing import TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.sql import ColumnElement

from partner_recovery.errors import RecoveryTimeout

logger = logging.getLogger("recovery.batch")

T = TypeVar("T")


def chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    """Yield consecutive slices of at most ``size`` items."""
    if size < 1:
        raise ValueError("chunk size must be >= 1")
    for start in range(0, len(items), size):
        yield items[start:start + size]


async def apply_in_chunks(
    session: AsyncSession,
    model,
    where: ColumnElement[bool],
    mutate: Callable[[object], None],
    chunk_size: int = 100,
) -> int:
    """
    Apply ``mutate`` to every ``model`` row matching ``where``.

    The target ids are fixed up front, so a mutation that moves a row out
    of the filter cannot make it skip or repeat. Returns the number of rows
    mutated.
    """
    ids = list((await session.execute(select(model.id).where(where).order_by(model.id))).scalars())
    if not ids:
        return 0

    for chunk in chunked(ids, chunk_size):
        rows = (await session.execute(select(model).where(model.id.in_(chunk)))).scalars().all()
        for row in rows:
            mutate(row)
        await session.flush()

    logger.debug("Updated %d %s row(s) in chunks of %d", len(ids), model.__tablename__, chunk_size)
    return len(ids)


async def run_atomic(
    session_factory: async_sessionmaker,
    work: Callable[[AsyncSession], Awaitable[T]],
    timeout: float,
) -> T:
    """
    Run ``work`` in one transaction bounded by ``timeout`` seconds.

    Any exception, including the deadline, rolls back everything ``work``
    wrote. A deadline surfaces as :class:`RecoveryTimeout`.
    """

    async def _transaction() -> T:
        async with session_factory() as session:
            async with session.begin():
                return await work(session)

    try:
        return await asyncio.wait_for(_transaction(), timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise RecoveryTimeout(timeout) from exc
