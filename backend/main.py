"""
Activity Tracker - FastAPI Backend
Activity logging, statistics, streaks, goals and achievements
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from achievements import (
    AwardStore, award_store, evaluate_achievements, get_achievement_types,
    get_user_achievements, initialize_achievements
)
from activities import ActivityStore, activity_store
from aggregation import Aggregator, aggregator
from config import get_config_summary, get_server_config
from database import Database, db, ensure_tables
from errors import AwardBatchError, NotFound, StoreUnavailable, TrackerError
from goals import GoalStore, get_goal_progress, goal_store
from logger import logger, set_level
from models import (
    ActivityDefinition, ActivityDefinitionCreate, ActivityEntry, ActivityEntryCreate,
    ActivityEntryUpdate, ActivityStats, AchievementCheckResponse, AchievementDefinition,
    AwardedAchievement, Goal, GoalCreate, GoalProgress, GoalUpdate, HealthStatus,
    LogEntryResponse, StreakSummary, SumResponse
)
from notifications import Notifier, notifier
from periods import localize
from streaks import get_streak_summary


VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    set_level(get_server_config().log_level)

    await db.connect()
    await ensure_tables(db)
    achievement_result = await initialize_achievements(award_store)
    logger.info(achievement_result["message"])
    logger.info(f"Server started (version {VERSION})")
    yield
    logger.info("Server shutting down")
    await db.disconnect()


app = FastAPI(
    title="Activity Tracker",
    description="Personal activity tracking with goals, streaks and achievements",
    version=VERSION,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_server_config().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TrackerError)
async def tracker_error_handler(request: Request, exc: TrackerError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# ============================================
# DEPENDENCIES
# ============================================

def get_database() -> Database:
    return db


def get_activity_store() -> ActivityStore:
    return activity_store


def get_aggregator() -> Aggregator:
    return aggregator


def get_award_store() -> AwardStore:
    return award_store


def get_goal_store() -> GoalStore:
    return goal_store


def get_notifier() -> Notifier:
    return notifier


async def _notify_awards(user_id: int, earned: List[AwardedAchievement], notes: Notifier) -> None:
    if not earned:
        return
    try:
        await notes.notify_achievements(user_id, earned)
    except StoreUnavailable as e:
        logger.warning(f"Achievement notifications not saved for user {user_id}: {e.detail}")


async def _award_after_logging(
    user_id: int,
    activity_id: int,
    awards: AwardStore,
    source: Aggregator,
    notes: Notifier
) -> List[AwardedAchievement]:
    """Evaluate and notify after a ledger write. The write itself already succeeded."""
    try:
        earned = await evaluate_achievements(user_id, activity_id, store=awards, source=source)
    except AwardBatchError as e:
        logger.warning(f"Partial achievement evaluation for user {user_id}: {e.detail}")
        earned = e.awarded
    except StoreUnavailable as e:
        logger.warning(f"Achievement evaluation skipped for user {user_id}: {e.detail}")
        return []

    await _notify_awards(user_id, earned, notes)
    return earned


# ============================================
# HEALTH & STATUS
# ============================================

@app.get("/health", response_model=HealthStatus)
@app.get("/api/health", response_model=HealthStatus)
async def health_check(database: Database = Depends(get_database)):
    """Check API and database health."""
    try:
        await database.fetch_val("SELECT 1")
        database_status = "connected"
    except StoreUnavailable:
        database_status = "disconnected"

    return HealthStatus(
        status="healthy" if database_status == "connected" else "degraded",
        version=VERSION,
        database=database_status
    )


@app.get("/api/config")
async def get_configuration():
    """Effective configuration, without secrets."""
    return get_config_summary()


# ============================================
# ACTIVITIES
# ============================================

@app.get("/api/users/{user_id}/activities", response_model=List[ActivityDefinition])
async def list_activities(user_id: int, store: ActivityStore = Depends(get_activity_store)):
    return await store.list_activities(user_id)


@app.post("/api/users/{user_id}/activities", response_model=ActivityDefinition, status_code=201)
async def create_activity(
    user_id: int,
    data: ActivityDefinitionCreate,
    store: ActivityStore = Depends(get_activity_store)
):
    return await store.create_activity(user_id, data)


@app.delete("/api/activities/{activity_id}")
async def delete_activity(activity_id: int, store: ActivityStore = Depends(get_activity_store)):
    if not await store.delete_activity(activity_id):
        raise NotFound("Activity", activity_id)
    return {"success": True}


@app.get("/api/users/{user_id}/activities/{activity_id}/stats", response_model=ActivityStats)
async def get_stats(user_id: int, activity_id: int, source: Aggregator = Depends(get_aggregator)):
    """Today, this week, this month and this year totals."""
    return await source.get_stats(user_id, activity_id)


@app.get("/api/users/{user_id}/activities/{activity_id}/streak", response_model=StreakSummary)
async def get_streak(user_id: int, activity_id: int, source: Aggregator = Depends(get_aggregator)):
    return await get_streak_summary(user_id, activity_id, source=source)


@app.get("/api/users/{user_id}/activities/{activity_id}/sum", response_model=SumResponse)
async def get_sum(
    user_id: int,
    activity_id: int,
    start: datetime,
    end: datetime,
    source: Aggregator = Depends(get_aggregator)
):
    """Total over ``[start, end)``. Naive timestamps are read in the tracker timezone."""
    start = localize(start, source.tz)
    end = localize(end, source.tz)
    total = await source.sum_counts(user_id, activity_id, start, end)
    return SumResponse(activity_id=activity_id, start=start, end=end, total=total)


# ============================================
# LOG ENTRIES
# ============================================

@app.get("/api/users/{user_id}/activities/{activity_id}/logs", response_model=List[ActivityEntry])
async def list_logs(
    user_id: int,
    activity_id: int,
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    store: ActivityStore = Depends(get_activity_store)
):
    return await store.list_entries(user_id, activity_id, limit, offset)


@app.post(
    "/api/users/{user_id}/activities/{activity_id}/logs",
    response_model=LogEntryResponse,
    status_code=201
)
async def log_activity(
    user_id: int,
    activity_id: int,
    data: ActivityEntryCreate,
    store: ActivityStore = Depends(get_activity_store),
    awards: AwardStore = Depends(get_award_store),
    source: Aggregator = Depends(get_aggregator),
    notes: Notifier = Depends(get_notifier)
):
    """Record an entry, then award any achievements it unlocks."""
    entry = await store.log_entry(user_id, activity_id, data)
    earned = await _award_after_logging(user_id, activity_id, awards, source, notes)
    return LogEntryResponse(entry=entry, new_achievements=earned)


@app.patch("/api/logs/{log_id}", response_model=LogEntryResponse)
async def update_log(
    log_id: int,
    data: ActivityEntryUpdate,
    store: ActivityStore = Depends(get_activity_store),
    awards: AwardStore = Depends(get_award_store),
    source: Aggregator = Depends(get_aggregator),
    notes: Notifier = Depends(get_notifier)
):
    entry = await store.update_entry(log_id, data)
    earned = await _award_after_logging(entry.owner_user_id, entry.activity_id, awards, source, notes)
    return LogEntryResponse(entry=entry, new_achievements=earned)


@app.delete("/api/logs/{log_id}")
async def delete_log(log_id: int, store: ActivityStore = Depends(get_activity_store)):
    if not await store.delete_entry(log_id):
        raise NotFound("Log entry", log_id)
    return {"success": True}


# ============================================
# ACHIEVEMENTS
# ============================================

@app.get("/api/achievements/types", response_model=List[AchievementDefinition])
async def list_achievement_types(awards: AwardStore = Depends(get_award_store)):
    """Get all achievement definitions."""
    return await get_achievement_types(awards)


@app.get("/api/users/{user_id}/achievements", response_model=List[AwardedAchievement])
async def list_user_achievements(user_id: int, awards: AwardStore = Depends(get_award_store)):
    return await get_user_achievements(user_id, awards)


@app.post("/api/users/{user_id}/achievements/check", response_model=AchievementCheckResponse)
async def check_achievements(
    user_id: int,
    activity_id: Optional[int] = None,
    awards: AwardStore = Depends(get_award_store),
    source: Aggregator = Depends(get_aggregator),
    notes: Notifier = Depends(get_notifier)
):
    """Evaluate achievements now; ``activity_id`` enables activity-specific ones."""
    try:
        earned = await evaluate_achievements(user_id, activity_id, store=awards, source=source)
    except AwardBatchError as e:
        await _notify_awards(user_id, e.awarded, notes)
        raise

    await _notify_awards(user_id, earned, notes)
    return AchievementCheckResponse(new_achievements=earned, count=len(earned))


# ============================================
# GOALS
# ============================================

@app.get("/api/users/{user_id}/goals", response_model=List[Goal])
async def list_goals(
    user_id: int,
    activity_id: Optional[int] = None,
    goals: GoalStore = Depends(get_goal_store)
):
    return await goals.list_goals(user_id, activity_id)


@app.post("/api/users/{user_id}/goals", response_model=Goal, status_code=201)
async def create_goal(user_id: int, data: GoalCreate, goals: GoalStore = Depends(get_goal_store)):
    return await goals.create_goal(user_id, data)


@app.get("/api/goals/{goal_id}", response_model=Goal)
async def get_goal(goal_id: int, goals: GoalStore = Depends(get_goal_store)):
    return await goals.require_goal(goal_id)


@app.patch("/api/goals/{goal_id}", response_model=Goal)
async def update_goal(goal_id: int, data: GoalUpdate, goals: GoalStore = Depends(get_goal_store)):
    return await goals.update_goal(goal_id, data)


@app.delete("/api/goals/{goal_id}")
async def delete_goal(goal_id: int, goals: GoalStore = Depends(get_goal_store)):
    if not await goals.delete_goal(goal_id):
        raise NotFound("Goal", goal_id)
    return {"success": True}


@app.get("/api/goals/{goal_id}/progress", response_model=GoalProgress)
async def goal_progress(
    goal_id: int,
    goals: GoalStore = Depends(get_goal_store),
    source: Aggregator = Depends(get_aggregator)
):
    return await get_goal_progress(goal_id, store=goals, source=source)


# ============================================
# NOTIFICATIONS
# ============================================

@app.get("/api/users/{user_id}/notifications")
async def list_notifications(
    user_id: int,
    unread_only: bool = False,
    limit: int = Query(default=20, ge=1, le=100),
    notes: Notifier = Depends(get_notifier)
):
    return await notes.get_user_notifications(user_id, unread_only, limit)


@app.post("/api/notifications/{notification_id}/read")
async def read_notification(notification_id: int, notes: Notifier = Depends(get_notifier)):
    notification = await notes.mark_notification_read(notification_id)
    if not notification:
        raise NotFound("Notification", notification_id)
    return notification


# ============================================
# RUN SERVER
# ============================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
