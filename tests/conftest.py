"""Shared fixtures: services wired to one in-memory database."""

from datetime import datetime, timezone
from typing import Optional

import pytest
from bson import ObjectId

from courtroom.app.repositories.mongodb.case_repository import CaseRepository
from courtroom.app.repositories.mongodb.chat_repository import ChatRepository
from courtroom.app.repositories.mongodb.session_repository import SessionRepository
from courtroom.app.services.case_gateway import CaseGateway
from courtroom.app.services.chat_service import ChatService
from courtroom.app.services.roster_service import RosterService
from courtroom.app.services.session_service import SessionService
from courtroom.app.utils.logging import setup_logging
from courtroom.config.settings import Settings
from tests.fakes import FakeDatabase


@pytest.fixture(scope="session", autouse=True)
def quiet_logging():
    setup_logging(level="WARNING")


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def database() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def sessions_collection(database, settings):
    return database[settings.database.sessions_collection]


@pytest.fixture
def cases_collection(database, settings):
    return database[settings.database.cases_collection]


@pytest.fixture
def chat_collection(database, settings):
    return database[settings.database.chat_collection]


@pytest.fixture
def session_repository(database, settings) -> SessionRepository:
    return SessionRepository(database=database, settings=settings)


@pytest.fixture
def case_repository(database, settings) -> CaseRepository:
    return CaseRepository(database=database, settings=settings)


@pytest.fixture
def chat_repository(database, settings) -> ChatRepository:
    return ChatRepository(database=database, settings=settings)


@pytest.fixture
def case_gateway(case_repository) -> CaseGateway:
    return CaseGateway(case_repository=case_repository)


@pytest.fixture
def session_service(session_repository, case_gateway, settings) -> SessionService:
    return SessionService(
        session_repository=session_repository,
        case_gateway=case_gateway,
        settings=settings
    )


@pytest.fixture
def roster_service(session_repository, settings) -> RosterService:
    return RosterService(session_repository=session_repository, settings=settings)


@pytest.fixture
def chat_service(chat_repository, session_repository, settings) -> ChatService:
    return ChatService(
        chat_repository=chat_repository,
        session_repository=session_repository,
        settings=settings
    )


@pytest.fixture
def add_case(cases_collection):
    """Insert a court case record and return its id."""

    def _add_case(
        civilian_name: str = "Jordan Blake",
        user_id: str = "user-1",
        status: str = "scheduled",
        court_session_id: Optional[str] = None
    ) -> str:
        case_id = ObjectId()
        cases_collection.documents.append({
            "_id": case_id,
            "courtCase": {
                "civilianName": civilian_name,
                "userID": user_id,
                "status": status,
                "courtSessionID": court_session_id or "",
                "updatedAt": datetime(2026, 1, 1, tzinfo=timezone.utc),
            },
        })
        return str(case_id)

    return _add_case


@pytest.fixture
def stored_case(cases_collection):
    """The ``courtCase`` subdocument of a stored case."""

    def _stored_case(case_id: str) -> dict:
        return cases_collection.raw({"_id": ObjectId(case_id)})["courtCase"]

    return _stored_case


@pytest.fixture
def store_session(sessions_collection):
    """Insert a raw session document, as older writers stored them, and return its id."""

    def _store_session(
        docket: list,
        status: str = "in_progress",
        community_id: str = "64f1c0ffee0000000000c0de",
        session_id: Optional[ObjectId] = None
    ) -> str:
        session_id = session_id or ObjectId()
        sessions_collection.documents.append({
            "_id": session_id,
            "courtSession": {
                "communityID": community_id,
                "title": "Stored session",
                "docket": docket,
                "status": status,
                "participants": [],
                "createdAt": datetime(2024, 5, 1, 9, 0),
            },
        })
        return str(session_id)

    return _store_session
