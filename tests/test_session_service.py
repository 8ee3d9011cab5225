"""
Tests for the session lifecycle service.

Covers scheduling, listing, editing, starting, docket progression, ending
and deleting sessions against the in-memory database, including the case
side effects and optimistic revision checks.
"""

import asyncio

import pytest
from bson import ObjectId

from courtroom.app.core.exceptions import (
    DatabaseError,
    ErrorCode,
    ResourceError,
    SessionManagementError,
    ValidationError
)
from courtroom.app.models.api.session_schemas import SessionCreateRequest, SessionUpdateRequest
from courtroom.app.models.domain.docket import DocketEntryStatus
from courtroom.app.models.domain.session import SessionStatus

COMMUNITY = "64f1c0ffee0000000000c0de"


def create_request(*case_ids, **overrides) -> SessionCreateRequest:
    payload = {
        "communityID": COMMUNITY,
        "title": "Morning traffic court",
        "judgeID": "judge-1",
        "judgeName": "Judge Rivera",
        "docket": [{"courtCaseID": case_id} for case_id in case_ids],
    }
    payload.update(overrides)
    return SessionCreateRequest.model_validate(payload)


class TestCreateSession:
    @pytest.mark.asyncio
    async def test_create_enriches_docket_and_links_cases(
        self, session_service, sessions_collection, add_case, stored_case
    ):
        case_a = add_case("Jordan Blake", "user-1")
        case_b = add_case("Riley Chen", "user-2")

        session = await session_service.create_session(create_request(case_a, case_b))

        assert session.status == SessionStatus.SCHEDULED
        assert session.docket.case_ids() == [case_a, case_b]
        assert session.docket.get(case_a).snapshot.civilian_name == "Jordan Blake"
        assert session.docket.get(case_b).snapshot.owner_user_id == "user-2"
        assert all(e.status == DocketEntryStatus.PENDING for e in session.docket)

        assert stored_case(case_a)["courtSessionID"] == session.session_id
        assert stored_case(case_b)["courtSessionID"] == session.session_id

        document = sessions_collection.raw({"_id": ObjectId(session.session_id)})
        assert document["__v"] == 0
        assert document["courtSession"]["communityID"] == COMMUNITY
        assert [d["order"] for d in document["courtSession"]["docket"]] == [0, 1]

    @pytest.mark.asyncio
    async def test_unreadable_case_keeps_submitted_snapshot(self, session_service):
        missing = str(ObjectId())
        request = create_request(docket=[{
            "courtCaseID": missing,
            "civilianName": "Submitted Name",
            "userID": "user-9",
        }])

        session = await session_service.create_session(request)

        entry = session.docket.get(missing)
        assert entry.snapshot.civilian_name == "Submitted Name"
        assert entry.snapshot.owner_user_id == "user-9"

    @pytest.mark.asyncio
    async def test_case_write_failure_does_not_fail_create(
        self, session_service, cases_collection, add_case
    ):
        case_a = add_case()
        cases_collection.fail_on("update_one", RuntimeError("cases offline"))

        session = await session_service.create_session(create_request(case_a))

        stored = await session_service.get_session(session.session_id)
        assert stored.docket.case_ids() == [case_a]

    @pytest.mark.asyncio
    async def test_duplicate_docket_case_rejected(self, session_service, add_case):
        case_a = add_case()

        with pytest.raises(ValidationError):
            await session_service.create_session(create_request(case_a, case_a))

    @pytest.mark.asyncio
    async def test_store_failure_raises_database_error(self, session_service, sessions_collection):
        sessions_collection.fail_on("insert_one", RuntimeError("write refused"))

        with pytest.raises(DatabaseError):
            await session_service.create_session(create_request())


class TestGetAndListSessions:
    @pytest.mark.asyncio
    async def test_malformed_id_is_bad_request(self, session_service):
        with pytest.raises(ValidationError) as exc_info:
            await session_service.get_session("not-an-id")

        assert exc_info.value.error_code == ErrorCode.INVALID_IDENTIFIER
        assert exc_info.value.http_status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_id_is_not_found(self, session_service):
        with pytest.raises(SessionManagementError) as exc_info:
            await session_service.get_session(str(ObjectId()))

        assert exc_info.value.http_status_code == 404

    @pytest.mark.asyncio
    async def test_list_pages_newest_first(self, session_service):
        created = []
        for index in range(23):
            session = await session_service.create_session(create_request(title=f"Session {index}"))
            created.append(session.session_id)

        page = await session_service.list_sessions(COMMUNITY, page=1, limit=10)

        assert [s.session_id for s in page.items] == list(reversed(created))[10:20]
        assert page.total_count == 23
        assert page.total_pages == 3
        assert page.has_prev and page.has_next

    @pytest.mark.asyncio
    async def test_list_default_limit_and_other_communities_excluded(self, session_service):
        for _ in range(12):
            await session_service.create_session(create_request())
        await session_service.create_session(create_request(communityID="other-community"))

        page = await session_service.list_sessions(COMMUNITY, page=-1, limit=0)

        assert page.page == 0
        assert page.limit == 10
        assert len(page.items) == 10
        assert page.total_count == 12

    @pytest.mark.asyncio
    async def test_list_filters_by_any_status_and_department(self, session_service):
        scheduled = await session_service.create_session(create_request(departmentID="dept-1"))
        started = await session_service.create_session(create_request(departmentID="dept-1"))
        await session_service.start_session(started.session_id)
        ended = await session_service.create_session(create_request(departmentID="dept-2"))
        await session_service.end_session(ended.session_id)

        page = await session_service.list_sessions(COMMUNITY, status="scheduled, in_progress")
        assert {s.session_id for s in page.items} == {scheduled.session_id, started.session_id}

        page = await session_service.list_sessions(COMMUNITY, department_id="dept-2")
        assert [s.session_id for s in page.items] == [ended.session_id]

    @pytest.mark.asyncio
    async def test_list_unknown_status_rejected(self, session_service):
        with pytest.raises(ValidationError):
            await session_service.list_sessions(COMMUNITY, status="scheduled,adjourned")

    @pytest.mark.asyncio
    async def test_list_requires_community(self, session_service):
        with pytest.raises(ValidationError):
            await session_service.list_sessions(" ")

    @pytest.mark.asyncio
    async def test_list_count_failure_degrades(self, session_service, sessions_collection):
        for _ in range(3):
            await session_service.create_session(create_request())
        sessions_collection.fail_on("count_documents", RuntimeError("count timed out"))

        page = await session_service.list_sessions(COMMUNITY)

        assert len(page.items) == 3
        assert page.total_count == 3
        assert page.count_degraded is True

    @pytest.mark.asyncio
    async def test_list_find_failure_raises(self, session_service, sessions_collection):
        sessions_collection.fail_on("find", RuntimeError("cursor died"))

        with pytest.raises(DatabaseError):
            await session_service.list_sessions(COMMUNITY)

    @pytest.mark.asyncio
    async def test_list_reads_unknown_stored_statuses(self, session_service, store_session):
        stored_id = store_session(
            [{"courtCaseID": str(ObjectId()), "status": "heard"}],
            status="adjourned",
            community_id="community-9"
        )

        page = await session_service.list_sessions("community-9")

        assert [s.session_id for s in page.items] == [stored_id]
        session = page.items[0]
        assert session.status == SessionStatus.SCHEDULED
        assert [e.status for e in session.docket] == [DocketEntryStatus.PENDING]


class TestEditSession:
    @pytest.mark.asyncio
    async def test_replacing_docket_unlinks_removed_and_links_new(
        self, session_service, add_case, stored_case
    ):
        case_a = add_case("Jordan Blake")
        case_b = add_case("Riley Chen")
        case_c = add_case("Avery Lee")
        session = await session_service.create_session(create_request(case_a, case_b))

        update = SessionUpdateRequest.model_validate({
            "title": "Afternoon traffic court",
            "docket": [{"courtCaseID": case_c}, {"courtCaseID": case_b}],
        })
        edited = await session_service.edit_session(session.session_id, update)

        assert edited.title == "Afternoon traffic court"
        assert edited.docket.case_ids() == [case_c, case_b]
        assert edited.docket.get(case_c).snapshot.civilian_name == "Avery Lee"
        assert stored_case(case_a)["courtSessionID"] == ""
        assert stored_case(case_b)["courtSessionID"] == session.session_id
        assert stored_case(case_c)["courtSessionID"] == session.session_id

        reloaded = await session_service.get_session(session.session_id)
        assert reloaded.title == "Afternoon traffic court"
        assert reloaded.docket.case_ids() == [case_c, case_b]
        assert reloaded.version == 1

    @pytest.mark.asyncio
    async def test_edit_without_docket_keeps_docket(self, session_service, add_case):
        case_a = add_case()
        session = await session_service.create_session(create_request(case_a))

        edited = await session_service.edit_session(
            session.session_id,
            SessionUpdateRequest(title="")
        )

        assert edited.title == "Morning traffic court"
        assert edited.docket.case_ids() == [case_a]

    @pytest.mark.asyncio
    async def test_edit_started_session_rejected(self, session_service, add_case, stored_case):
        case_a = add_case()
        case_b = add_case()
        session = await session_service.create_session(create_request(case_a))
        await session_service.start_session(session.session_id)

        update = SessionUpdateRequest.model_validate({"docket": [{"courtCaseID": case_b}]})
        with pytest.raises(SessionManagementError) as exc_info:
            await session_service.edit_session(session.session_id, update)

        assert exc_info.value.error_code == ErrorCode.SESSION_INVALID_STATE
        assert exc_info.value.http_status_code == 400
        assert stored_case(case_b)["courtSessionID"] == ""

        reloaded = await session_service.get_session(session.session_id)
        assert reloaded.docket.case_ids() == [case_a]


class TestStartAndDocket:
    @pytest.mark.asyncio
    async def test_start_marks_cases_in_progress(self, session_service, add_case, stored_case):
        case_a = add_case()
        session = await session_service.create_session(create_request(case_a))

        started = await session_service.start_session(session.session_id)

        assert started.status == SessionStatus.IN_PROGRESS
        assert started.started_at is not None
        assert stored_case(case_a)["status"] == "in_progress"

    @pytest.mark.asyncio
    async def test_start_twice_rejected(self, session_service):
        session = await session_service.create_session(create_request())
        await session_service.start_session(session.session_id)

        with pytest.raises(SessionManagementError) as exc_info:
            await session_service.start_session(session.session_id)

        assert exc_info.value.http_status_code == 400

    @pytest.mark.asyncio
    async def test_activation_keeps_single_active_entry(self, session_service, add_case):
        case_a, case_b, case_c = add_case(), add_case(), add_case()
        session = await session_service.create_session(create_request(case_a, case_b, case_c))
        await session_service.start_session(session.session_id)

        await session_service.activate_entry(session.session_id, case_a)
        await session_service.activate_entry(session.session_id, case_b, skip=True)
        result = await session_service.activate_entry(session.session_id, case_c)

        statuses = {e.case_id: e.status for e in result.docket}
        assert statuses == {
            case_a: DocketEntryStatus.PENDING,
            case_b: DocketEntryStatus.COMPLETED,
            case_c: DocketEntryStatus.ACTIVE,
        }

        reloaded = await session_service.get_session(session.session_id)
        assert reloaded.docket.active_entry.case_id == case_c

    @pytest.mark.asyncio
    async def test_activate_case_not_on_docket(self, session_service, add_case):
        session = await session_service.create_session(create_request(add_case()))

        with pytest.raises(SessionManagementError) as exc_info:
            await session_service.activate_entry(session.session_id, str(ObjectId()))

        assert exc_info.value.error_code == ErrorCode.DOCKET_ENTRY_NOT_FOUND
        assert exc_info.value.http_status_code == 404

    @pytest.mark.asyncio
    async def test_activate_malformed_case_id(self, session_service):
        session = await session_service.create_session(create_request())

        with pytest.raises(ValidationError):
            await session_service.activate_entry(session.session_id, "case-1")

    @pytest.mark.asyncio
    async def test_complete_entry(self, session_service, add_case):
        case_a = add_case()
        session = await session_service.create_session(create_request(case_a))
        await session_service.activate_entry(session.session_id, case_a)

        result = await session_service.complete_entry(session.session_id, case_a)

        assert result.docket.get(case_a).status == DocketEntryStatus.COMPLETED
        assert result.docket.active_entry is None


class TestEndSession:
    @pytest.mark.asyncio
    async def test_end_releases_unheard_cases(self, session_service, add_case, stored_case):
        heard, active, waiting = add_case(), add_case(), add_case()
        session = await session_service.create_session(create_request(heard, active, waiting))
        await session_service.start_session(session.session_id)
        await session_service.activate_entry(session.session_id, heard)
        await session_service.activate_entry(session.session_id, active)

        result = await session_service.end_session(session.session_id)

        assert result.session.status == SessionStatus.CANCELLED
        assert result.unresolved_count == 2
        assert sorted(result.unresolved_case_ids) == sorted([active, waiting])

        for case_id in (active, waiting):
            assert stored_case(case_id)["status"] == "scheduled"
            assert stored_case(case_id)["courtSessionID"] == ""
        assert stored_case(heard)["courtSessionID"] == session.session_id

        reloaded = await session_service.get_session(session.session_id)
        assert not any(e.status.is_open for e in reloaded.docket)
        assert reloaded.ended_at is not None

    @pytest.mark.asyncio
    async def test_clean_end_completes(self, session_service, add_case):
        case_a = add_case()
        session = await session_service.create_session(create_request(case_a))
        await session_service.start_session(session.session_id)
        await session_service.activate_entry(session.session_id, case_a)
        await session_service.complete_entry(session.session_id, case_a)

        result = await session_service.end_session(session.session_id)

        assert result.session.status == SessionStatus.COMPLETED
        assert result.unresolved_count == 0

    @pytest.mark.asyncio
    async def test_end_scheduled_session_is_allowed(self, session_service, add_case):
        session = await session_service.create_session(create_request(add_case()))

        result = await session_service.end_session(session.session_id)

        assert result.session.status == SessionStatus.CANCELLED
        assert result.unresolved_count == 1

    @pytest.mark.asyncio
    async def test_end_store_failure_releases_nothing(
        self, session_service, sessions_collection, add_case, stored_case
    ):
        case_a = add_case()
        session = await session_service.create_session(create_request(case_a))
        await session_service.start_session(session.session_id)
        sessions_collection.fail_on("update_one", RuntimeError("write concern error"))

        with pytest.raises(DatabaseError):
            await session_service.end_session(session.session_id)

        assert stored_case(case_a)["status"] == "in_progress"
        assert stored_case(case_a)["courtSessionID"] == session.session_id

        sessions_collection.clear_failures()
        reloaded = await session_service.get_session(session.session_id)
        assert reloaded.status == SessionStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_end_stored_docket_with_repeated_case(
        self, session_service, store_session, add_case, stored_case, sessions_collection
    ):
        session_oid = ObjectId()
        case_a = add_case(status="in_progress", court_session_id=str(session_oid))
        session_id = store_session(
            [
                {"courtCaseID": case_a, "status": "active"},
                {"courtCaseID": case_a, "status": "pending"},
            ],
            session_id=session_oid
        )

        result = await session_service.end_session(session_id)

        assert result.session.status == SessionStatus.CANCELLED
        assert result.unresolved_case_ids == [case_a, case_a]
        assert stored_case(case_a)["status"] == "scheduled"
        assert stored_case(case_a)["courtSessionID"] == ""

        stored = sessions_collection.raw({"_id": session_oid})["courtSession"]
        assert [e["status"] for e in stored["docket"]] == ["unresolved", "unresolved"]
        assert stored["status"] == "cancelled"

    @pytest.mark.asyncio
    async def test_end_stored_docket_with_blank_case_id(
        self, session_service, store_session, add_case, stored_case
    ):
        session_oid = ObjectId()
        case_b = add_case(status="in_progress", court_session_id=str(session_oid))
        session_id = store_session(
            [
                {"courtCaseID": "", "status": "pending"},
                {"courtCaseID": case_b, "status": "pending"},
            ],
            session_id=session_oid
        )

        result = await session_service.end_session(session_id)

        assert result.session.status == SessionStatus.CANCELLED
        assert result.unresolved_count == 2
        assert stored_case(case_b)["courtSessionID"] == ""

    @pytest.mark.asyncio
    async def test_activate_on_stored_docket_with_repeated_case(self, session_service, store_session):
        case_a, case_b = str(ObjectId()), str(ObjectId())
        session_id = store_session([
            {"courtCaseID": case_a, "status": "pending"},
            {"courtCaseID": case_a, "status": "pending"},
            {"courtCaseID": case_b, "status": "active"},
        ])

        session = await session_service.activate_entry(session_id, case_a)

        assert [e.status for e in session.docket] == [
            DocketEntryStatus.ACTIVE,
            DocketEntryStatus.PENDING,
            DocketEntryStatus.COMPLETED,
        ]


class TestDeleteSession:
    @pytest.mark.asyncio
    async def test_delete_unlinks_cases(self, session_service, add_case, stored_case):
        case_a = add_case()
        session = await session_service.create_session(create_request(case_a))

        await session_service.delete_session(session.session_id)

        assert stored_case(case_a)["courtSessionID"] == ""
        with pytest.raises(SessionManagementError) as exc_info:
            await session_service.get_session(session.session_id)
        assert exc_info.value.http_status_code == 404

    @pytest.mark.asyncio
    async def test_delete_started_session_rejected(self, session_service):
        session = await session_service.create_session(create_request())
        await session_service.start_session(session.session_id)

        with pytest.raises(SessionManagementError) as exc_info:
            await session_service.delete_session(session.session_id)

        assert exc_info.value.error_code == ErrorCode.SESSION_INVALID_STATE


class TestRevisionChecks:
    @pytest.mark.asyncio
    async def test_stale_write_conflicts(self, session_service, session_repository):
        session = await session_service.create_session(create_request())
        first = await session_repository.get_session_by_id(session.session_id)
        second = await session_repository.get_session_by_id(session.session_id)

        first.start()
        assert await session_repository.update_session(first, ["status", "started_at"]) == 1

        second.edit(title="Stale edit")
        with pytest.raises(SessionManagementError) as exc_info:
            await session_repository.update_session(second, ["title"])

        assert exc_info.value.error_code == ErrorCode.SESSION_VERSION_CONFLICT
        assert exc_info.value.http_status_code == 409

    @pytest.mark.asyncio
    async def test_version_check_can_be_disabled(self, session_service, session_repository):
        session = await session_service.create_session(create_request())
        first = await session_repository.get_session_by_id(session.session_id)
        second = await session_repository.get_session_by_id(session.session_id)

        await session_repository.update_session(first, ["title"])
        await session_repository.update_session(second, ["title"], enforce_version=False)

        reloaded = await session_repository.get_session_by_id(session.session_id)
        assert reloaded.version == 2

    @pytest.mark.asyncio
    async def test_update_of_deleted_session_is_not_found(self, session_service, session_repository):
        session = await session_service.create_session(create_request())
        loaded = await session_repository.get_session_by_id(session.session_id)
        await session_service.delete_session(session.session_id)

        with pytest.raises(SessionManagementError) as exc_info:
            await session_repository.update_session(loaded, ["title"])

        assert exc_info.value.http_status_code == 404


class TestDeadline:
    @pytest.mark.asyncio
    async def test_slow_store_times_out(self, session_service, session_repository, monkeypatch):
        monkeypatch.setenv("DATABASE__QUERY_TIMEOUT_SECONDS", "0.05")

        async def slow_get(session_id):
            await asyncio.sleep(1)

        monkeypatch.setattr(session_repository, "get_session_by_id", slow_get)

        with pytest.raises(ResourceError) as exc_info:
            await session_service.get_session(str(ObjectId()))

        assert exc_info.value.error_code == ErrorCode.RESOURCE_TIMEOUT
        assert exc_info.value.http_status_code == 504
