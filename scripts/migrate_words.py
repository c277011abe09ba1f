"""Move learners' embedded word lists into the normalized words table.

Each learner is migrated and committed independently, so the script can be
re-run after an interruption: learners already on the normalized schema are
skipped, and words that already exist are not inserted twice. A malformed
word is reported and skipped without failing its learner.

Usage:
    python -m scripts.migrate_words
    python -m scripts.migrate_words --dry-run -v
"""

import argparse
import asyncio
import json
import logging
from collections import Counter
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.config import settings
from backend.database import async_session, engine
from backend.models import Base
from backend.models.learner import NORMALIZED_WORDS_SCHEMA, Learner
from backend.models.word import Word
from backend.progression.policy import PROFICIENCY_LEVELS, LevelPolicy

logger = logging.getLogger(__name__)


@dataclass
class MigrationReport:
    learners_processed: int = 0
    learners_skipped: int = 0
    learners_failed: int = 0
    words_created: int = 0
    duplicates_skipped: int = 0
    word_failures: list[str] = field(default_factory=list)


def _parse_legacy_word(entry: object) -> tuple[str, str, str, bool]:
    """Return (original, translation, level, learned) or raise ValueError."""
    if not isinstance(entry, dict):
        raise ValueError(f"expected an object, got {type(entry).__name__}")
    original = entry.get("original")
    translation = entry.get("translation")
    if not isinstance(original, str) or not original.strip():
        raise ValueError("missing original")
    if not isinstance(translation, str):
        raise ValueError(f"missing translation for '{original}'")
    level = entry.get("proficiencyLevel") or entry.get("proficiency_level") or "A1"
    if level not in PROFICIENCY_LEVELS:
        raise ValueError(f"unknown level {level!r} for '{original}'")
    return original.strip(), translation.strip(), level, bool(entry.get("learned", False))


async def migrate_learner(
    session: AsyncSession,
    learner: Learner,
    policy: LevelPolicy,
    report: MigrationReport,
) -> None:
    """Migrate one learner's embedded words. The caller commits."""
    entries = json.loads(learner.legacy_words) if learner.legacy_words else []
    if not isinstance(entries, list):
        raise ValueError("legacy_words is not a JSON array")

    # Words left by an interrupted earlier run count towards batch positions
    stmt = select(Word.proficiency_level, Word.original).where(
        Word.learner_id == learner.id, Word.learning_language == learner.learning_language
    )
    rows = (await session.execute(stmt)).all()
    existing = {(level, original) for level, original in rows}
    level_sizes = Counter(level for level, _ in rows)

    created = 0
    for position, entry in enumerate(entries):
        try:
            original, translation, level, learned = _parse_legacy_word(entry)
        except ValueError as e:
            logger.error("Learner %d: skipping word %d: %s", learner.id, position, e)
            report.word_failures.append(f"learner {learner.id} word {position}: {e}")
            continue

        if (level, original) in existing:
            report.duplicates_skipped += 1
            continue

        session.add(
            Word(
                learner_id=learner.id,
                original=original,
                translation=translation,
                learning_language=learner.learning_language,
                native_language=learner.native_language,
                proficiency_level=level,
                batch_number=policy.batch_for_position(level_sizes[level]),
                learned=learned,
            )
        )
        existing.add((level, original))
        level_sizes[level] += 1
        created += 1

    await session.flush()

    learned_stmt = select(Word.id).where(
        Word.learner_id == learner.id,
        Word.learning_language == learner.learning_language,
        Word.proficiency_level == learner.current_level,
        Word.learned.is_(True),
    )
    learned_in_level = len((await session.execute(learned_stmt)).all())
    learner.current_batch = policy.current_batch(learned_in_level)
    learner.words_schema_version = NORMALIZED_WORDS_SCHEMA
    learner.legacy_words = None

    report.words_created += created
    logger.info(
        "Learner %d: migrated %d words, current batch %d",
        learner.id,
        created,
        learner.current_batch,
    )


async def migrate_words(
    session: AsyncSession,
    policy: LevelPolicy | None = None,
    dry_run: bool = False,
) -> MigrationReport:
    """Migrate every learner still on the embedded-words schema."""
    policy = policy or LevelPolicy.from_settings(settings)
    report = MigrationReport()

    learners = (await session.execute(select(Learner).order_by(Learner.id))).scalars().all()
    learner_ids = [learner.id for learner in learners]
    for learner_id in learner_ids:
        learner = await session.get(Learner, learner_id)
        if learner is None or learner.words_schema_version >= NORMALIZED_WORDS_SCHEMA:
            report.learners_skipped += 1
            continue

        try:
            await migrate_learner(session, learner, policy, report)
            if dry_run:
                await session.rollback()
            else:
                await session.commit()
            report.learners_processed += 1
        except (SQLAlchemyError, ValueError) as e:
            await session.rollback()
            report.learners_failed += 1
            logger.error("Learner %d: migration failed: %s", learner_id, e)

    logger.info(
        "Migration %s: %d learners processed, %d skipped, %d failed; "
        "%d words created, %d duplicates skipped, %d bad words",
        "dry run" if dry_run else "complete",
        report.learners_processed,
        report.learners_skipped,
        report.learners_failed,
        report.words_created,
        report.duplicates_skipped,
        len(report.word_failures),
    )
    return report


async def main_async(args: argparse.Namespace) -> MigrationReport:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with async_session() as session:
        return await migrate_words(session, dry_run=args.dry_run)


def main() -> None:
    parser = argparse.ArgumentParser(description="Migrate embedded word lists to the words table")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Run the migration but roll back every learner",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    report = asyncio.run(main_async(args))
    print(
        f"Processed {report.learners_processed} learners "
        f"({report.learners_skipped} skipped, {report.learners_failed} failed), "
        f"created {report.words_created} words."
    )
    if report.learners_failed:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
