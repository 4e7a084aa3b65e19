"""Pytest configuration and shared fixtures."""
import json
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from shared.models.entities import Base
# Import all models to ensure they are registered with Base.metadata
from shared.models.entities import *


@pytest.fixture(scope="function")
def db_engine():
    """
    In-memory SQLite engine shared by every session of a test.

    StaticPool keeps a single connection so sessions opened by workflows see
    the same database as the test's own session.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    """Session factory bound to the test database."""
    return sessionmaker(bind=db_engine, autocommit=False, autoflush=False)


@pytest.fixture(scope="function")
def db_session(session_factory):
    """
    Create a test database session with in-memory SQLite.

    This fixture creates a fresh database for each test function,
    ensuring test isolation.
    """
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def sample_outcome_data():
    """Scorer response for an outline that passes every default threshold."""
    return {
        "safety_score": 0.9,
        "specificity_score": 0.8,
        "confidence": 0.8,
        "actionable": True,
        "target_age_range": [8, 12],
        "topic": "Fractions",
        "domains": ["math", "arithmetic"],
        "matches_taxonomy": True,
        "reasoning": "Clear, age-appropriate math topic",
        "requirements": ["Compare fractions with like denominators"],
        "suggestions": [],
        "errors": [],
        "missing_info": [],
        "flags": [],
    }


@pytest.fixture
def sample_outcome(sample_outcome_data):
    from shared.models.domain import ValidationOutcome

    return ValidationOutcome(**sample_outcome_data)


@pytest.fixture
def sample_blocks_data():
    """Block generation response with two lessons."""
    return {
        "lessons": [
            {
                "title": "What is a fraction?",
                "blocks": [
                    {"type": "explanation", "content": "A fraction is a part of a whole."},
                    {"type": "question", "content": "What is half of 4?"},
                ],
            },
            {
                "title": "Comparing fractions",
                "blocks": [
                    {"type": "explanation", "content": "Same denominator, compare numerators."},
                ],
            },
        ],
        "metadata": {
            "topic": "Fractions",
            "domains": ["math"],
            "age_range": [8, 12],
            "complexity": "simple",
        },
    }


@pytest.fixture
def valid_lesson_code():
    return (
        "import math\n"
        "\n"
        "\n"
        "def render():\n"
        "    return [{\"type\": \"explanation\", \"content\": f\"Pi is about {math.pi:.2f}\"}]\n"
    )


@pytest.fixture
def invalid_lesson_code():
    return "import os\n\n\ndef render():\n    return os.listdir('.')\n"


@pytest.fixture
def mock_llm_service(mocker):
    """Mock LLMService returning JSON for whatever payload the test sets."""
    service = mocker.Mock()
    service.model_id = "test-model"

    def set_payload(payload):
        text = payload if isinstance(payload, str) else json.dumps(payload)
        service.call.return_value = {"output_text": text, "reasoning": None}
        service.parse_json_response.side_effect = lambda raw: json.loads(raw)

    service.set_payload = set_payload
    return service
