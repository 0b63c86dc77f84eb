"""Test configuration."""
import os
from typing import Callable, Generator, Optional

import pytest
from dotenv import load_dotenv
from faker import Faker
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

# Set test environment before any imports
os.environ["ENV"] = "test"
load_dotenv(".env.test")

# Import after environment setup
from dailyword.models.base import init_db
from dailyword.models.models import WordDetails, WordPool

fake = Faker()


@pytest.fixture
def engine(tmp_path) -> Generator[Engine, None, None]:
    """File-backed SQLite engine so that separate sessions can race."""
    engine = create_engine(f"sqlite:///{tmp_path / 'dailyword-test.db'}")
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker:
    """Session factory bound to the test engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """Create a fresh database session for each test."""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def add_word(db: Session) -> Callable[..., WordPool]:
    """Factory inserting a word with an optional enrichment status."""

    def _add_word(
        word_id: int,
        text: Optional[str] = None,
        tier: Optional[int] = None,
        status: Optional[str] = "ready",
        enabled: bool = True,
    ) -> WordPool:
        word = WordPool(
            id=word_id,
            word=text or f"word{word_id}",
            tier=tier,
            enabled=enabled,
            source="test",
        )
        db.add(word)
        if status is not None:
            db.add(WordDetails(word_pool_id=word_id, status=status))
        db.commit()
        return word

    return _add_word


@pytest.fixture
def user_id() -> str:
    """Random user identifier."""
    return fake.uuid4()
