"""Generate the next batch of vocabulary for a learner.

Usage:
    python -m scripts.generate_words 1
    python -m scripts.generate_words 1 --batches 3 -v
"""

import argparse
import asyncio
import logging

from backend.cache.word_cache import WordCache
from backend.config import settings
from backend.database import async_session, engine
from backend.errors import GenerationMalformed, LearnerNotFound
from backend.llm_client import get_llm_client
from backend.models import Base
from backend.progression.policy import LevelPolicy
from backend.repository import WordRepository
from ingestion.generator import LLMWordGenerator
from ingestion.pipeline import VocabularyIngestion


async def main_async(args: argparse.Namespace) -> int:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    llm = get_llm_client()
    cache = WordCache.from_settings(settings)
    created = 0
    async with async_session() as session:
        ingestion = VocabularyIngestion(
            repo=WordRepository(session),
            cache=cache,
            policy=LevelPolicy.from_settings(settings),
            generator=LLMWordGenerator(llm),
            max_rounds=settings.generation_max_rounds,
        )
        for _ in range(args.batches):
            result = await ingestion.generate_batch(args.learner_id)
            if result.level_full:
                print(f"Level {result.level} is already full for learner {args.learner_id}.")
                break
            created += result.created
            print(f"Created {result.created} {result.language} words in {result.level} batch(es) {result.batch_numbers}.")

    usage = llm.usage()
    logging.info("Tokens used: %d in, %d out", usage["input_tokens"], usage["output_tokens"])
    return created


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate vocabulary batches for a learner")
    parser.add_argument("learner_id", type=int, help="Learner to generate words for")
    parser.add_argument(
        "--batches",
        type=int,
        default=1,
        help="Number of batches to generate (default: 1)",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        created = asyncio.run(main_async(args))
    except LearnerNotFound as e:
        logging.error("%s", e)
        raise SystemExit(1) from e
    except GenerationMalformed as e:
        logging.error("Generation failed, nothing was saved: %s", e)
        raise SystemExit(2) from e
    print(f"Done. {created} words created.")


if __name__ == "__main__":
    main()
