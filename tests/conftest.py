from collections.abc import AsyncIterator, Awaitable, Callable

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from backend.models import Base, Learner, Word
from backend.progression.policy import LevelPolicy


@pytest_asyncio.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def make_learner(db_session: AsyncSession) -> Callable[..., Awaitable[Learner]]:
    async def _make(**overrides: object) -> Learner:
        fields: dict = {
            "name": "Test Learner",
            "learning_language": "Spanish",
            "native_language": "English",
            "current_level": "A1",
            "current_batch": 1,
        }
        fields.update(overrides)
        learner = Learner(**fields)
        db_session.add(learner)
        await db_session.commit()
        return learner

    return _make


@pytest_asyncio.fixture
async def make_words(db_session: AsyncSession) -> Callable[..., Awaitable[list[Word]]]:
    """Create ``count`` words in a level; the first ``learned`` are marked learned.

    Batch numbers follow creation order, continuing after ``start``.
    """

    async def _make(
        learner: Learner,
        count: int,
        level: str = "A1",
        learned: int = 0,
        start: int = 0,
        policy: LevelPolicy | None = None,
    ) -> list[Word]:
        policy = policy or LevelPolicy()
        words = [
            Word(
                learner_id=learner.id,
                original=f"{level.lower()}-word-{start + i}",
                translation=f"translation {start + i}",
                learning_language=learner.learning_language,
                native_language=learner.native_language,
                proficiency_level=level,
                batch_number=policy.batch_for_position(start + i),
                learned=i < learned,
            )
            for i in range(count)
        ]
        db_session.add_all(words)
        await db_session.commit()
        return words

    return _make
