"""Tests for the embedded-words migration script."""

import json

import pytest
from sqlalchemy import select

from backend.models.learner import EMBEDDED_WORDS_SCHEMA, NORMALIZED_WORDS_SCHEMA
from backend.models.word import Word
from scripts.migrate_words import migrate_words


def _legacy(count: int, level: str = "A1", learned: int = 0, prefix: str = "palabra") -> list[dict]:
    return [
        {
            "original": f"{prefix}{i}",
            "translation": f"word {i}",
            "proficiencyLevel": level,
            "learned": i < learned,
        }
        for i in range(count)
    ]


async def _words_of(session, learner_id: int) -> list[Word]:
    stmt = select(Word).where(Word.learner_id == learner_id).order_by(Word.id)
    return list((await session.execute(stmt)).scalars().all())


@pytest.mark.asyncio
async def test_migrates_embedded_words(db_session, make_learner) -> None:
    entries = _legacy(60, learned=55) + _legacy(2, level="A2", prefix="nivel")
    entries.append({"translation": "no original"})
    entries.append(dict(entries[0]))
    learner = await make_learner(legacy_words=json.dumps(entries), words_schema_version=EMBEDDED_WORDS_SCHEMA)

    report = await migrate_words(db_session)

    assert report.learners_processed == 1
    assert report.words_created == 62
    assert report.duplicates_skipped == 1
    assert len(report.word_failures) == 1

    await db_session.refresh(learner)
    assert learner.words_schema_version == NORMALIZED_WORDS_SCHEMA
    assert learner.legacy_words is None
    assert learner.current_batch == 2

    words = await _words_of(db_session, learner.id)
    a1 = [w for w in words if w.proficiency_level == "A1"]
    assert [w.batch_number for w in a1].count(1) == 50
    assert [w.batch_number for w in a1].count(2) == 10
    assert sum(w.learned for w in a1) == 55
    assert {w.batch_number for w in words if w.proficiency_level == "A2"} == {1}


@pytest.mark.asyncio
async def test_rerun_is_a_no_op(db_session, make_learner) -> None:
    await make_learner(legacy_words=json.dumps(_legacy(5)), words_schema_version=EMBEDDED_WORDS_SCHEMA)
    await migrate_words(db_session)

    report = await migrate_words(db_session)

    assert report.learners_processed == 0
    assert report.learners_skipped == 1
    assert report.words_created == 0


@pytest.mark.asyncio
async def test_resumes_after_interrupted_run(db_session, make_learner, make_words) -> None:
    learner = await make_learner(
        legacy_words=json.dumps(_legacy(3, prefix="a1-word-") + _legacy(60, prefix="extra")),
        words_schema_version=EMBEDDED_WORDS_SCHEMA,
    )
    await make_words(learner, 3)

    report = await migrate_words(db_session)

    assert report.duplicates_skipped == 3
    assert report.words_created == 60
    words = await _words_of(db_session, learner.id)
    assert len(words) == 63
    assert [w.batch_number for w in words].count(1) == 50
    assert [w.batch_number for w in words].count(2) == 13


@pytest.mark.asyncio
async def test_failed_learner_does_not_stop_others(db_session, make_learner) -> None:
    broken = await make_learner(name="Broken", legacy_words="{not json", words_schema_version=EMBEDDED_WORDS_SCHEMA)
    healthy = await make_learner(
        name="Healthy", legacy_words=json.dumps(_legacy(4)), words_schema_version=EMBEDDED_WORDS_SCHEMA
    )

    report = await migrate_words(db_session)

    assert report.learners_failed == 1
    assert report.learners_processed == 1
    await db_session.refresh(broken)
    await db_session.refresh(healthy)
    assert broken.words_schema_version == EMBEDDED_WORDS_SCHEMA
    assert healthy.words_schema_version == NORMALIZED_WORDS_SCHEMA
    assert len(await _words_of(db_session, healthy.id)) == 4


@pytest.mark.asyncio
async def test_dry_run_persists_nothing(db_session, make_learner) -> None:
    learner = await make_learner(legacy_words=json.dumps(_legacy(4)), words_schema_version=EMBEDDED_WORDS_SCHEMA)

    report = await migrate_words(db_session, dry_run=True)

    assert report.words_created == 4
    await db_session.refresh(learner)
    assert learner.words_schema_version == EMBEDDED_WORDS_SCHEMA
    assert await _words_of(db_session, learner.id) == []
