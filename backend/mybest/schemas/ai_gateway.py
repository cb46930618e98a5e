from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from mybest.schemas.context import CondensedContext, UserContext, UserProfile


class GatewayModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatMessage(BaseModel):
    role: Literal['system', 'user', 'assistant']
    content: str


class ChatRequest(GatewayModel):
    messages: List[ChatMessage] = Field(..., min_length=1)
    mode: Literal['onboarding', 'coach', 'goal', 'free'] = 'free'
    # Injected into the system message for coach/goal modes.
    condensed_context: Optional[CondensedContext] = None
    partial_profile: Optional[UserProfile] = None  # onboarding progress
    current_question: int = Field(default=1, ge=1)
    goal_type: Optional[str] = None
    goal_title: Optional[str] = None
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, gt=0)
    provider: Optional[str] = None  # pin to one provider; model fallback only
    model: Optional[str] = None
    api_keys: Optional[Dict[str, str]] = None


class ChatResponse(GatewayModel):
    message: str
    provider: str  # "gemini" / "openai" / ... or "stub"
    model: str
    fallback: bool = False


class ExtractProfileRequest(GatewayModel):
    conversation: List[ChatMessage] = Field(..., min_length=1)
    api_keys: Optional[Dict[str, str]] = None


class ExtractProfileResponse(GatewayModel):
    profile: Dict[str, Any]
    provider: str
    model: str


class ContextRequest(GatewayModel):
    identity: Dict[str, Any]
    profile: Optional[Dict[str, Any]] = None
    goals: List[Dict[str, Any]] = Field(default_factory=list)
    sessions: List[Dict[str, Any]] = Field(default_factory=list)
    stats: Optional[Dict[str, Any]] = None
    stored_fingerprint: Optional[str] = None
    goal_id: Optional[str] = None


class ContextResponse(GatewayModel):
    context: UserContext
    condensed: CondensedContext
    summary: str
    fingerprint: str
    summary_changed: bool
    onboarding_context: Optional[str] = None
    goal_context: Optional[str] = None


class PlanSchedule(GatewayModel):
    days: List[str] = Field(default_factory=list)
    minutes_per_session: int = Field(default=30, gt=0, le=480)


class GeneratePlanRequest(GatewayModel):
    goal_id: Optional[str] = None
    goal_title: str = Field(..., min_length=1)
    goal_type: str = 'custom'
    experience_level: Optional[str] = None
    schedule: PlanSchedule = Field(default_factory=PlanSchedule)
    condensed_context: Optional[CondensedContext] = None
    # Skips the summarising call when the goal chat already produced one.
    goal_summary: Optional[Dict[str, Any]] = None
    goal_conversation: List[ChatMessage] = Field(default_factory=list)
    api_keys: Optional[Dict[str, str]] = None


class GeneratePlanResponse(GatewayModel):
    plan: Dict[str, Any]
    goal_summary: Dict[str, Any]
    provider: str
    model: str
    fallback: bool = False


class SessionTask(GatewayModel):
    name: str
    type: str = 'task'
    description: Optional[str] = None
    target: Optional[Dict[str, Any]] = None


class SessionCoachRequest(GatewayModel):
    identity: Dict[str, Any] = Field(default_factory=dict)
    profile: Optional[Dict[str, Any]] = None
    sessions: List[Dict[str, Any]] = Field(default_factory=list)
    session_title: str = Field(..., min_length=1)
    tasks: List[SessionTask] = Field(default_factory=list)
    previous_feedback: Optional[str] = None  # briefing only
    results: Dict[str, Any] = Field(default_factory=dict)  # feedback only
    targets: Dict[str, Any] = Field(default_factory=dict)  # feedback only
    user_feedback: Optional[str] = None  # feedback only
    api_keys: Optional[Dict[str, str]] = None


class SessionCoachResponse(GatewayModel):
    message: str
    analysis: Optional[Dict[str, Any]] = None
    provider: str
    model: str
    fallback: bool = False
