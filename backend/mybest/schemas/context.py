"""Pydantic models for the per-request user context and its condensed form."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

GoalStatus = Literal['active', 'completed', 'paused']


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Availability(CamelModel):
    days: List[str] = Field(default_factory=list)
    time_preference: Optional[str] = None
    minutes_per_session: Optional[int] = None


class PhysicalStats(CamelModel):
    height: Optional[float] = None
    weight: Optional[float] = None
    age: Optional[int] = None


class UserProfile(CamelModel):
    name: Optional[str] = None
    motivation: Optional[str] = None
    interests: List[str] = Field(default_factory=list)
    lifestyle: Optional[str] = None
    past_experience: Optional[str] = None
    personality: Optional[str] = None
    availability: Optional[Availability] = None
    limitations: List[str] = Field(default_factory=list)
    short_term_goal: Optional[str] = None
    long_term_goal: Optional[str] = None
    physical_stats: Optional[PhysicalStats] = None


class ConversationTurn(CamelModel):
    role: str
    content: str


class Goal(CamelModel):
    id: str
    title: str = ''
    type: str = 'custom'
    description: Optional[str] = None
    current_level: Optional[str] = None
    target_level: Optional[str] = None
    status: GoalStatus = 'active'
    progress: int = Field(default=0, ge=0, le=100)
    created_at: Optional[datetime] = None
    ai_conversation: List[ConversationTurn] = Field(default_factory=list)


class SessionLog(CamelModel):
    id: str
    session_title: str = 'Training Session'
    completed_at: Optional[datetime] = None
    metrics_result: Optional[Dict[str, Any]] = None
    user_feedback: Optional[str] = None
    ai_feedback: Optional[str] = None
    energy_level: Optional[int] = Field(default=None, ge=1, le=10)


class ContextStats(CamelModel):
    total_sessions: int = 0
    completed_this_week: int = 0
    current_streak: int = 0
    average_energy_level: Optional[float] = None


class UserContext(CamelModel):
    user_id: str
    email: Optional[str] = None
    profile: UserProfile
    goals: List[Goal] = Field(default_factory=list)
    recent_sessions: List[SessionLog] = Field(default_factory=list)
    stats: ContextStats = Field(default_factory=ContextStats)
    summary: Optional[str] = None
    last_updated: datetime
    onboarding_completed: bool = False

    def active_goals(self) -> List[Goal]:
        return [g for g in self.goals if g.status == 'active']


class CondensedContext(CamelModel):
    name: str
    summary: str
    current_goals: List[str] = Field(default_factory=list)
    recent_performance: str
    key_traits: List[str] = Field(default_factory=list)
