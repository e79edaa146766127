"""
Tests for the batch executor — chunking, chunked mutation, atomic runs with deadlines.
"""

import asyncio

import pytest

from partner_recovery.errors import RecoveryTimeout
from partner_recovery.models import Lead
from partner_recovery.schemas import PartnerRole
from partner_recovery.services.batch import apply_in_chunks, chunked, run_atomic


class TestChunked:
    def test_even_split(self):
        assert list(chunked([1, 2, 3, 4], 2)) == [[1, 2], [3, 4]]

    def test_remainder_in_last_chunk(self):
        assert list(chunked(list(range(5)), 2)) == [[0, 1], [2, 3], [4]]

    def test_empty(self):
        assert list(chunked([], 100)) == []

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            list(chunked([1], 0))


class TestApplyInChunks:
    async def test_mutates_every_matching_row(self, seed, session_factory, fetch):
        agent = await seed.profile(PartnerRole.SALES_AGENT)
        other = await seed.profile(PartnerRole.SALES_AGENT)
        await seed.leads(5, agent=agent)
        await seed.leads(2, agent=other)
        await seed.commit()

        def _tag(lead):
            lead.status = "MOVED"

        async with session_factory() as session:
            async with session.begin():
                count = await apply_in_chunks(session, Lead, Lead.agent_id == agent.id, _tag, chunk_size=2)

        assert count == 5
        moved = await fetch(Lead, Lead.status == "MOVED")
        assert len(moved) == 5
        assert {lead.agent_id for lead in moved} == {agent.id}

    async def test_mutation_leaving_filter_is_not_repeated(self, seed, session_factory, fetch):
        """Rows moved out of the filter mid-run are still each touched exactly once."""
        agent = await seed.profile(PartnerRole.SALES_AGENT)
        manager = await seed.profile(PartnerRole.BRANCH_MANAGER)
        await seed.leads(7, agent=agent)
        await seed.commit()

        touched = []

        def _move(lead):
            touched.append(lead.id)
            lead.agent_id = None
            lead.manager_id = manager.id

        async with session_factory() as session:
            async with session.begin():
                count = await apply_in_chunks(session, Lead, Lead.agent_id == agent.id, _move, chunk_size=3)

        assert count == 7
        assert len(touched) == len(set(touched)) == 7
        assert len(await fetch(Lead, Lead.manager_id == manager.id)) == 7

    async def test_no_rows(self, session_factory):
        async with session_factory() as session:
            async with session.begin():
                count = await apply_in_chunks(session, Lead, Lead.agent_id == 999, lambda r: None)
        assert count == 0


class TestRunAtomic:
    async def test_commits_on_success(self, session_factory, fetch):
        async def _work(session):
            session.add(Lead(customer_name="Committed", extra_data={}))
            return "done"

        result = await run_atomic(session_factory, _work, timeout=5)

        assert result == "done"
        assert len(await fetch(Lead)) == 1

    async def test_rolls_back_on_error(self, session_factory, fetch):
        async def _work(session):
            session.add(Lead(customer_name="Doomed", extra_data={}))
            await session.flush()
            raise RuntimeError("constraint violated")

        with pytest.raises(RuntimeError):
            await run_atomic(session_factory, _work, timeout=5)

        assert await fetch(Lead) == []

    async def test_timeout_rolls_back(self, session_factory, fetch):
        async def _slow(session):
            session.add(Lead(customer_name="Too slow", extra_data={}))
            await session.flush()
            await asyncio.sleep(5)

        with pytest.raises(RecoveryTimeout) as exc_info:
            await run_atomic(session_factory, _slow, timeout=0.05)

        assert exc_info.value.timeout == 0.05
        assert "timed out" in str(exc_info.value)
        assert await fetch(Lead) == []
