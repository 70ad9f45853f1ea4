"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
Database fixtures use a throwaway SQLite file per test.
"""
import os
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

# Module-level engine in civicbook.db.database must not need a server
os.environ.setdefault("DATABASE_URL", "sqlite://")


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (SQLite database)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


# ============================================================================
# Payload fixtures
# ============================================================================


@pytest.fixture
def quiz_payload():
    """A two-question graded quiz (multiple-choice + true-false)."""
    return {
        "questions": [
            {
                "id": "q1",
                "kind": "multiple-choice",
                "text": "Which branch of government makes laws?",
                "options": [
                    {"id": "a", "text": "The executive"},
                    {"id": "b", "text": "The legislature"},
                    {"id": "c", "text": "The judiciary"},
                ],
                "correctOptionId": "b",
                "explanation": "Legislatures pass laws.",
            },
            {
                "id": "q2",
                "kind": "true-false",
                "text": "Citizens may petition their representatives.",
                "correctBool": True,
            },
        ],
        "randomize": False,
        "passScore": 50,
    }


@pytest.fixture
def reflection_payload():
    return {
        "prompt": "How does this chapter relate to your community?",
        "guidingQuestions": ["What have you seen?", "What would you change?"],
        "minResponseLength": 100,
        "maxResponseLength": 2000,
        "sharingOptions": ["private", "peers", "public"],
    }


@pytest.fixture
def cta_payload():
    return {
        "actionType": "link",
        "text": "Ready to act?",
        "buttonText": "Join a group",
        "url": "/community/groups",
        "trackingId": "cta_1",
    }


@pytest.fixture
def discussion_payload():
    return {
        "topic": "Local budgets",
        "initialPrompt": "Who decides how your town spends money?",
        "supportingPoints": ["Budget hearings", "Ward councils"],
        "discussionForumId": 7,
    }


@pytest.fixture
def poll_payload():
    return {
        "question": "Which reform matters most?",
        "options": [
            {"id": "a", "text": "Electoral reform"},
            {"id": "b", "text": "Judicial independence"},
            {"id": "c", "text": "Budget transparency"},
        ],
        "allowMultiple": False,
        "showResults": "after-vote",
    }


# ============================================================================
# Database fixtures
# ============================================================================


@pytest.fixture
def engine(tmp_path):
    """SQLite file database with all tables created."""
    from civicbook.db.database import build_engine, init_db

    db_engine = build_engine(f"sqlite:///{tmp_path / 'civicbook.db'}")
    init_db(db_engine)
    yield db_engine
    db_engine.dispose()


@pytest.fixture
def session_factory(engine):
    from civicbook.db.database import build_session_factory

    return build_session_factory(engine)


@pytest.fixture
def book(session_factory):
    """A book with one chapter, two sections and a discussion topic."""
    from civicbook.db.database import session_scope
    from civicbook.db.models import Book, Chapter, DiscussionTopic, Section

    with session_scope(session_factory) as session:
        book = Book(id=1, title="Citizens and the State")
        chapter = Chapter(id=1, book_id=1, number=1, title="Foundations")
        first = Section(id=1, chapter_id=1, number=1, title="What Government Does", content="")
        second = Section(id=2, chapter_id=1, number=2, title="Forum Topic: Budgets", content="")
        topic = DiscussionTopic(id=5, title="Budgets & <Accountability>", section_id=2)
        session.add_all([book, chapter, first, second, topic])
    return book


@pytest.fixture
def repository(session_factory):
    from civicbook.db.repository import ElementRepository

    return ElementRepository(session_factory)


@pytest.fixture
def service(repository):
    from civicbook.service import InteractiveElementService

    return InteractiveElementService(repository=repository, sleep=lambda seconds: None)


@pytest.fixture
def make_element(service, book):
    """Create an element in section 1 (or another section) through the service."""
    def _make(element_type, payload, **overrides):
        draft = {
            "section_id": 1,
            "element_type": element_type,
            "title": f"{element_type} element",
            "payload": payload,
            "completion_type": "graded",
            "points_value": 10,
        }
        draft.update(overrides)
        return service.create_element(draft)
    return _make
