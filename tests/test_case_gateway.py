"""Tests for the case reference gateway and the case repository beneath it."""

import pytest
from bson import ObjectId

from courtroom.app.core.exceptions import DatabaseError
from courtroom.app.models.domain.case import CaseSnapshot, CaseStatus


class TestCaseRepository:
    @pytest.mark.asyncio
    async def test_find_by_id(self, case_repository, add_case):
        case_id = add_case("Riley Chen", "user-2", court_session_id="64f1c0ffee0000000000aaaa")

        record = await case_repository.find_by_id(case_id)

        assert record.case_id == case_id
        assert record.civilian_name == "Riley Chen"
        assert record.court_session_id == "64f1c0ffee0000000000aaaa"

    @pytest.mark.asyncio
    async def test_find_missing_case(self, case_repository):
        assert await case_repository.find_by_id(str(ObjectId())) is None

    @pytest.mark.asyncio
    async def test_update_leaves_unset_fields_alone(self, case_repository, add_case, stored_case):
        case_id = add_case(status="scheduled", court_session_id="64f1c0ffee0000000000aaaa")

        matched = await case_repository.update_status_and_link(case_id, status=CaseStatus.IN_PROGRESS)

        assert matched is True
        stored = stored_case(case_id)
        assert stored["status"] == "in_progress"
        assert stored["courtSessionID"] == "64f1c0ffee0000000000aaaa"

    @pytest.mark.asyncio
    async def test_store_failure_raises_database_error(self, case_repository, cases_collection):
        cases_collection.fail_on("find_one", RuntimeError("connection reset"))

        with pytest.raises(DatabaseError):
            await case_repository.find_by_id(str(ObjectId()))


class TestCaseGateway:
    @pytest.mark.asyncio
    async def test_snapshot(self, case_gateway, add_case):
        case_id = add_case("Jordan Blake", "user-1")

        assert await case_gateway.snapshot(case_id) == CaseSnapshot("Jordan Blake", "user-1")

    @pytest.mark.asyncio
    async def test_snapshot_failure_is_swallowed(self, case_gateway, add_case, cases_collection):
        case_id = add_case()
        cases_collection.fail_on("find_one", RuntimeError("connection reset"))

        assert await case_gateway.snapshot(case_id) is None

    @pytest.mark.asyncio
    async def test_snapshots_skip_unreadable_cases(self, case_gateway, add_case):
        known = add_case("Riley Chen", "user-2")

        snapshots = await case_gateway.snapshots([known, str(ObjectId()), "not-an-id", known])

        assert snapshots == {known: CaseSnapshot("Riley Chen", "user-2")}

    @pytest.mark.asyncio
    async def test_malformed_id_is_skipped(self, case_gateway, cases_collection):
        assert await case_gateway.link("not-an-id", "64f1c0ffee0000000000aaaa") is False
        assert "update_one" not in cases_collection.calls

    @pytest.mark.asyncio
    async def test_link_and_unlink(self, case_gateway, add_case, stored_case):
        case_id = add_case()

        assert await case_gateway.link(case_id, "64f1c0ffee0000000000aaaa") is True
        assert stored_case(case_id)["courtSessionID"] == "64f1c0ffee0000000000aaaa"

        assert await case_gateway.unlink(case_id) is True
        assert stored_case(case_id)["courtSessionID"] == ""

    @pytest.mark.asyncio
    async def test_release_resets_status_and_link(self, case_gateway, add_case, stored_case):
        case_id = add_case(status="in_progress", court_session_id="64f1c0ffee0000000000aaaa")

        await case_gateway.release(case_id)

        stored = stored_case(case_id)
        assert stored["status"] == "scheduled"
        assert stored["courtSessionID"] == ""

    @pytest.mark.asyncio
    async def test_write_failure_is_swallowed(self, case_gateway, add_case, cases_collection, stored_case):
        case_id = add_case()
        cases_collection.fail_on("update_one", RuntimeError("write concern error"))

        results = await case_gateway.set_status_all([case_id, case_id], CaseStatus.IN_PROGRESS)

        assert results == [False, False]
        assert stored_case(case_id)["status"] == "scheduled"
