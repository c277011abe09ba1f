"""API routes for level progression and streaks."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from backend.api.schemas import (
    LevelProgressItem,
    LevelProgressResponse,
    LevelUpResponse,
    StreakResponse,
)
from backend.container import get_progression_service
from backend.database import get_session
from backend.errors import InsufficientProgress, LearnerNotFound, NoNextLevel
from backend.progression.policy import LEVEL_DETAILS
from backend.progression.service import ProgressionService
from backend.progression.streak import StreakTracker

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/learners", tags=["progress"])


@router.get("/{learner_id}/level-progress", response_model=LevelProgressResponse)
async def get_level_progress(
    learner_id: int,
    service: ProgressionService = Depends(get_progression_service),
) -> LevelProgressResponse:
    """Progress through every level for a learner."""
    try:
        report = await service.get_level_progress(learner_id)
    except LearnerNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e

    return LevelProgressResponse(
        current_level=report.current_level,
        next_level=report.next_level,
        can_progress_to_next=report.can_progress_to_next,
        levels=[
            LevelProgressItem(
                level=entry.level,
                name=LEVEL_DETAILS[entry.level]["name"],
                description=LEVEL_DETAILS[entry.level]["description"],
                learned_words=entry.learned_words,
                total_words=entry.total_words,
                target_words=entry.target_words,
                percentage=entry.percentage,
                can_progress=entry.can_progress,
                is_completed=entry.is_completed,
                is_accessible=entry.is_accessible,
                is_current=entry.is_current,
            )
            for entry in report.levels
        ],
    )


@router.post("/{learner_id}/level-progress", response_model=LevelUpResponse)
async def progress_level(
    learner_id: int,
    service: ProgressionService = Depends(get_progression_service),
) -> LevelUpResponse:
    """Move the learner to the next level once the current one is complete."""
    try:
        outcome = await service.progress_level(learner_id)
    except LearnerNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e

    if isinstance(outcome, InsufficientProgress):
        raise HTTPException(
            status_code=400,
            detail={
                "error": "insufficient_progress",
                "message": f"Learn all words in {outcome.level} before moving on",
                "level": outcome.level,
                "required": outcome.required,
                "current": outcome.current,
                "remaining": outcome.remaining,
            },
        )
    if isinstance(outcome, NoNextLevel):
        raise HTTPException(
            status_code=400,
            detail={
                "error": "no_next_level",
                "message": f"{outcome.level} is the highest level",
                "level": outcome.level,
            },
        )

    return LevelUpResponse(
        previous_level=outcome.previous_level,
        new_level=outcome.new_level,
        learned_words=outcome.learned_words,
    )


@router.get("/{learner_id}/streak", response_model=StreakResponse)
async def get_streak(
    learner_id: int,
    db: AsyncSession = Depends(get_session),
) -> StreakResponse:
    """Current and longest learning streak."""
    tracker = StreakTracker(db)
    try:
        await tracker.reset_if_lapsed(learner_id)
        streak = await tracker.get_streak(learner_id)
    except LearnerNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e

    return StreakResponse(
        current_streak=streak.current_streak,
        longest_streak=streak.longest_streak,
        last_active_date=streak.last_active_date,
        today_completed=streak.today_completed,
    )
