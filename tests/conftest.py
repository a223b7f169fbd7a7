from __future__ import annotations

import json

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from app.models.video_models import Hypothesis, Video  # noqa: F401
from app.reconciliation.applier import ensure_video_columns
from app.storage.video_repository import VideoRepository

USER = "user-1"
OTHER_USER = "user-2"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def repo(session):
    return VideoRepository(session)


@pytest.fixture
def videos(repo):
    """Three videos for USER plus one for OTHER_USER sharing a session id."""
    ensure_video_columns(repo)
    with repo.transaction():
        ids = {
            "hook": repo.insert(
                {
                    "user_id": USER,
                    "name": "Hook Test A",
                    "session_id": "SESS-1",
                    "views": 1000,
                    "clicks": 50,
                    "metrics_json": json.dumps({"initiatest": 2, "notes": "seed"}),
                }
            ),
            "live": repo.insert(
                {
                    "user_id": USER,
                    "title": "Live Friday",
                    "session_id": "sess-2",
                    "video_type": "live",
                }
            ),
            "third": repo.insert({"user_id": USER, "name": "Third Cut"}),
            "foreign": repo.insert(
                {"user_id": OTHER_USER, "name": "Hook Test A", "session_id": "SESS-1"}
            ),
        }
    return ids
