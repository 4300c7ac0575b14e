"""
Activity Tracker - Pydantic Models (v2 syntax)
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field


# ============================================
# ENUMS
# ============================================

class AchievementCategory(str, Enum):
    TOTAL_COUNT = "total_count"
    ACTIVITY_SPECIFIC = "activity_specific"
    STREAK = "streak"
    ACTIVITY_VARIETY = "activity_variety"


class PeriodType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class NotificationType(str, Enum):
    ACHIEVEMENT = "achievement"
    GOAL = "goal"


# ============================================
# ACTIVITY MODELS
# ============================================

class ActivityDefinitionBase(BaseModel):
    display_name: str = Field(min_length=1, max_length=100)
    unit: Optional[str] = None
    category: Optional[str] = None
    is_public: bool = False


class ActivityDefinitionCreate(ActivityDefinitionBase):
    pass


class ActivityDefinition(ActivityDefinitionBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    owner_user_id: int
    created_at: Optional[datetime] = None


class ActivityEntryBase(BaseModel):
    count: float = Field(ge=0)
    notes: Optional[str] = None


class ActivityEntryCreate(ActivityEntryBase):
    occurred_at: Optional[datetime] = None


class ActivityEntryUpdate(BaseModel):
    count: Optional[float] = Field(default=None, ge=0)
    occurred_at: Optional[datetime] = None
    notes: Optional[str] = None


class ActivityEntry(ActivityEntryBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    activity_id: int
    owner_user_id: int
    occurred_at: datetime


# ============================================
# ACHIEVEMENT MODELS
# ============================================

class AchievementDefinition(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    category: AchievementCategory
    threshold: float
    name: str
    description: Optional[str] = None
    icon: str = "award"


class AwardedAchievement(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    achievement_definition_id: int
    activity_id: Optional[int] = None
    earned_at: datetime
    custom_message: Optional[str] = None

    # Filled from the definition when returned to a client
    name: Optional[str] = None
    description: Optional[str] = None
    icon: Optional[str] = None


class AchievementCheckResponse(BaseModel):
    new_achievements: List[AwardedAchievement]
    count: int


# ============================================
# GOAL MODELS
# ============================================

class GoalBase(BaseModel):
    activity_id: int
    target_count: float = Field(ge=0)
    period_type: PeriodType
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class GoalCreate(GoalBase):
    pass


class GoalUpdate(BaseModel):
    target_count: Optional[float] = Field(default=None, ge=0)
    period_type: Optional[PeriodType] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class Goal(GoalBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    owner_user_id: int
    activity_name: Optional[str] = None
    unit: Optional[str] = None


class GoalProgress(BaseModel):
    """Derived on every request, never stored."""

    goal: Goal
    current_count: float
    target_count: float
    progress_percent: int = Field(ge=0, le=100)
    remaining: float = Field(ge=0)
    completed: bool
    window_start: datetime
    window_end: datetime


# ============================================
# API RESPONSE MODELS
# ============================================

class ActivityStats(BaseModel):
    today: float = 0
    week: float = 0
    month: float = 0
    year: float = 0
    unit: str = "units"


class StreakSummary(BaseModel):
    activity_id: int
    longest_streak: int = 0
    current_streak: int = 0


class SumResponse(BaseModel):
    activity_id: int
    start: datetime
    end: datetime
    total: float


class LogEntryResponse(BaseModel):
    entry: ActivityEntry
    new_achievements: List[AwardedAchievement] = []


class HealthStatus(BaseModel):
    status: str = "healthy"
    version: str = "1.0.0"
    database: str = "connected"
