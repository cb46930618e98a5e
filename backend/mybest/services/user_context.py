"""User context: build, condense, summarise.

``build_user_context`` turns loosely-typed rows from the data store into a
UserContext.  Two projections are derived from it:

- ``summarize_for_prompt`` → CondensedContext, small and ephemeral, injected
  into system prompts;
- ``generate_ai_summary`` → the longer text persisted on the profile, rebuilt
  only when ``needs_summary_refresh`` says the material data changed.

Everything here is pure and synchronous.
"""

from __future__ import annotations

import hashlib
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Mapping, Sequence

from pydantic import ValidationError

from mybest.schemas.context import (
    Availability,
    CondensedContext,
    ContextStats,
    ConversationTurn,
    Goal,
    PhysicalStats,
    SessionLog,
    UserContext,
    UserProfile,
)

logger = logging.getLogger(__name__)

RECENT_WINDOW_DAYS = 7
FEEDBACK_PREVIEW_CHARS = 100
_GOAL_STATUSES = {'active', 'completed', 'paused'}


# ---------------------------------------------------------------------------
# Row parsing helpers
# ---------------------------------------------------------------------------

def _json_field(value: Any, default: Any = None) -> Any:
    """Decode a JSON-string column; already-decoded values pass through."""
    if value is None:
        return default
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            return default
    return value


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _text_field(value: Any) -> str | None:
    """A text column that may hold a JSON-encoded string."""
    decoded = _json_field(value, default=value)
    if isinstance(decoded, (list, tuple)):
        return ', '.join(str(v) for v in decoded if v) or None
    if isinstance(decoded, dict):
        return _text(value)
    return _text(decoded)


def _string_list(value: Any) -> list[str]:
    decoded = _json_field(value, default=[])
    if isinstance(decoded, str):
        decoded = [decoded]
    if not isinstance(decoded, (list, tuple, set)):
        return []
    items = [str(v).strip() for v in decoded if v is not None and str(v).strip()]
    return list(dict.fromkeys(items))


def _int_or_none(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _as_utc(value: Any) -> datetime | None:
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _availability(value: Any) -> Availability | None:
    decoded = _json_field(value)
    if not isinstance(decoded, Mapping):
        return None
    minutes = _int_or_none(decoded.get('minutesPerSession', decoded.get('minutes_per_session')))
    return Availability(
        days=_string_list(decoded.get('days')),
        time_preference=_text(decoded.get('timePreference', decoded.get('time_preference'))),
        minutes_per_session=minutes,
    )


def _physical_stats(value: Any) -> PhysicalStats | None:
    decoded = _json_field(value)
    if not isinstance(decoded, Mapping):
        return None
    try:
        return PhysicalStats.model_validate(decoded)
    except ValidationError:
        logger.debug('Ignoring malformed physical_stats: %r', decoded)
        return None


def _conversation(value: Any) -> list[ConversationTurn]:
    decoded = _json_field(value, default=[])
    if not isinstance(decoded, list):
        return []
    turns = []
    for item in decoded:
        if isinstance(item, Mapping) and item.get('content'):
            turns.append(ConversationTurn(role=str(item.get('role', 'user')), content=str(item['content'])))
    return turns


def _parse_profile(identity: Mapping[str, Any], row: Mapping[str, Any] | None) -> UserProfile:
    row = row or {}
    return UserProfile(
        name=_text(row.get('name')) or _text(identity.get('full_name')) or 'Friend',
        motivation=_text(row.get('motivation')),
        interests=_string_list(row.get('interests')),
        lifestyle=_text(row.get('lifestyle')),
        past_experience=_text(row.get('past_experience')),
        personality=_text_field(row.get('personality')),
        availability=_availability(row.get('weekly_availability')),
        limitations=_string_list(row.get('limitations')),
        short_term_goal=_text(row.get('short_term_goal')),
        long_term_goal=_text(row.get('long_term_goal')),
        physical_stats=_physical_stats(row.get('physical_stats')),
    )


def _parse_goal(row: Mapping[str, Any]) -> Goal:
    status = (_text(row.get('status')) or '').lower()
    progress = _int_or_none(row.get('progress')) or 0
    return Goal(
        id=str(row.get('id', '')),
        title=_text(row.get('title')) or 'Untitled goal',
        type=_text(row.get('type')) or 'custom',
        description=_text(row.get('description')),
        current_level=_text(row.get('current_level')),
        target_level=_text(row.get('target_level')),
        status=status if status in _GOAL_STATUSES else 'active',
        progress=min(max(progress, 0), 100),
        created_at=_as_utc(row.get('created_at')),
        ai_conversation=_conversation(row.get('ai_conversation')),
    )


def _parse_session(row: Mapping[str, Any]) -> SessionLog:
    energy = _int_or_none(row.get('energy_level'))
    if energy is not None and not 1 <= energy <= 10:
        energy = None
    metrics = _json_field(row.get('metrics_result'))
    title = row.get('title')
    if title is None and isinstance(row.get('sessions'), Mapping):
        title = row['sessions'].get('title')
    return SessionLog(
        id=str(row.get('id', '')),
        session_title=_text(title) or 'Training Session',
        completed_at=_as_utc(row.get('completed_at')),
        metrics_result=metrics if isinstance(metrics, dict) else None,
        user_feedback=_text(row.get('user_feedback')),
        ai_feedback=_text(row.get('ai_feedback')),
        energy_level=energy,
    )


def _latest_first(sessions: list[SessionLog]) -> list[SessionLog]:
    floor = datetime.min.replace(tzinfo=timezone.utc)
    return sorted(sessions, key=lambda s: s.completed_at or floor, reverse=True)


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------

def build_user_context(
    identity: Mapping[str, Any],
    profile_row: Mapping[str, Any] | None,
    goal_rows: Iterable[Mapping[str, Any]] | None,
    session_rows: Iterable[Mapping[str, Any]] | None,
    stats: Mapping[str, Any] | None,
    now: datetime | None = None,
) -> UserContext:
    """
    Assemble a UserContext; absent columns become None, never errors.

    Only sessions completed within RECENT_WINDOW_DAYS of ``now`` are kept.
    """
    now = now or datetime.now(timezone.utc)
    stats = stats or {}
    parsed = [_parse_session(r) for r in (session_rows or [])]
    sessions = _latest_first(filter_recent_sessions(parsed, now=now))

    energy_levels = [s.energy_level for s in sessions if s.energy_level is not None]
    average_energy = sum(energy_levels) / len(energy_levels) if energy_levels else None

    return UserContext(
        user_id=str(identity.get('id', '')),
        email=_text(identity.get('email')),
        profile=_parse_profile(identity, profile_row),
        goals=[_parse_goal(r) for r in (goal_rows or [])],
        recent_sessions=sessions,
        stats=ContextStats(
            total_sessions=_int_or_none(stats.get('total_sessions', stats.get('totalSessions'))) or 0,
            completed_this_week=_int_or_none(stats.get('completed_this_week', stats.get('completedThisWeek'))) or 0,
            current_streak=_int_or_none(stats.get('current_streak', stats.get('currentStreak'))) or 0,
            average_energy_level=average_energy,
        ),
        summary=_text((profile_row or {}).get('ai_context_summary')),
        last_updated=now,
        onboarding_completed=bool((profile_row or {}).get('onboarding_completed')),
    )


def filter_recent_sessions(
    sessions: Sequence[SessionLog],
    days: int = RECENT_WINDOW_DAYS,
    now: datetime | None = None,
) -> list[SessionLog]:
    """Sessions completed within the last ``days`` days."""
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=days)
    if cutoff.tzinfo is None:
        cutoff = cutoff.replace(tzinfo=timezone.utc)
    return [s for s in sessions if s.completed_at is not None and s.completed_at >= cutoff]


# ---------------------------------------------------------------------------
# Condensed prompt context
# ---------------------------------------------------------------------------

def summarize_for_prompt(context: UserContext) -> CondensedContext:
    """Token-bounded projection of ``context`` for system prompts."""
    profile, stats = context.profile, context.stats

    traits: list[str] = []
    if profile.personality:
        traits.append(profile.personality)
    if profile.lifestyle:
        traits.append(profile.lifestyle)
    if stats.current_streak > 3:
        traits.append('consistent')
    if stats.average_energy_level is not None and stats.average_energy_level >= 7:
        traits.append('high-energy')

    if context.recent_sessions:
        recent = f'{len(context.recent_sessions)} sessions in last {RECENT_WINDOW_DAYS} days.'
        latest_feedback = context.recent_sessions[0].ai_feedback
        if latest_feedback:
            recent += f' Latest: {latest_feedback[:FEEDBACK_PREVIEW_CHARS]}'
    else:
        recent = 'No recent sessions.'

    active = context.active_goals()
    parts: list[str] = []
    if profile.motivation:
        parts.append(f'Motivation: {profile.motivation[:100]}')
    if profile.availability and profile.availability.days:
        parts.append(f"Available: {', '.join(profile.availability.days)}")
    if profile.limitations:
        parts.append(f"Limitations: {', '.join(profile.limitations)}")
    if active:
        parts.append(f'Working on {len(active)} active goal(s).')

    return CondensedContext(
        name=profile.name or 'Friend',
        summary=' '.join(parts),
        current_goals=[f'{g.title} ({g.type}, {g.progress}%)' for g in active],
        recent_performance=recent,
        key_traits=list(dict.fromkeys(traits)),
    )


# ---------------------------------------------------------------------------
# Persisted summary
# ---------------------------------------------------------------------------

def generate_ai_summary(context: UserContext) -> str:
    """Longer, newline-joined summary stored on the user profile."""
    profile, stats = context.profile, context.stats
    parts = [f'User: {profile.name or "Friend"}']

    if profile.motivation:
        parts.append(f"Why they're here: {profile.motivation}")
    if profile.interests:
        parts.append(f"Interests: {', '.join(profile.interests)}")
    if profile.personality:
        parts.append(f'Personality: {profile.personality}')
    if profile.lifestyle:
        parts.append(f'Lifestyle: {profile.lifestyle}')
    if profile.past_experience:
        parts.append(f'Past experience: {profile.past_experience}')

    availability = profile.availability
    if availability:
        if availability.days:
            when = f' ({availability.time_preference})' if availability.time_preference else ''
            parts.append(f"Available: {', '.join(availability.days)}{when}")
        if availability.minutes_per_session:
            parts.append(f'Session length: {availability.minutes_per_session} minutes')

    if profile.limitations:
        parts.append(f"Physical considerations: {', '.join(profile.limitations)}")
    if profile.short_term_goal:
        parts.append(f'Short-term goal: {profile.short_term_goal}')
    if profile.long_term_goal:
        parts.append(f'Long-term vision: {profile.long_term_goal}')

    active = context.active_goals()
    if active:
        parts.append('\nActive Goals:')
        for g in active:
            parts.append(
                f'- {g.title} ({g.type}): {g.progress}% complete, level: {g.current_level or "not set"}'
            )

    if stats.total_sessions > 0:
        parts.append(
            f'\nActivity: {stats.total_sessions} total sessions, '
            f'{stats.completed_this_week} this week, {stats.current_streak} day streak'
        )

    if context.recent_sessions:
        latest = context.recent_sessions[0]
        if latest.ai_feedback:
            parts.append(f'Latest feedback: {latest.ai_feedback}')
        if stats.average_energy_level is not None:
            parts.append(f'Average energy: {stats.average_energy_level:.1f}/10')

    return '\n'.join(parts)


def summary_fingerprint(context: UserContext) -> str:
    """SHA-256 over the profile and goal fields the persisted summary depends on."""
    material = {
        'profile': context.profile.model_dump(mode='json'),
        'goals': sorted(
            (
                {
                    'id': g.id,
                    'title': g.title,
                    'type': g.type,
                    'status': g.status,
                    'progress': g.progress,
                    'current_level': g.current_level,
                }
                for g in context.goals
            ),
            key=lambda g: g['id'],
        ),
    }
    encoded = json.dumps(material, sort_keys=True, ensure_ascii=False)
    return hashlib.sha256(encoded.encode('utf-8')).hexdigest()


def needs_summary_refresh(context: UserContext, stored_fingerprint: str | None) -> bool:
    return stored_fingerprint != summary_fingerprint(context)


# ---------------------------------------------------------------------------
# Use-case specific fragments
# ---------------------------------------------------------------------------

def build_onboarding_context(partial_profile: UserProfile | None) -> str:
    """Progress note for the onboarding interview prompt."""
    parts: list[str] = []
    if partial_profile is not None:
        if partial_profile.name:
            parts.append(f"User's name: {partial_profile.name}")
        if partial_profile.motivation:
            parts.append(f'Their motivation: {partial_profile.motivation}')
        if partial_profile.interests:
            parts.append(f"Interests so far: {', '.join(partial_profile.interests)}")
        if partial_profile.availability and partial_profile.availability.days:
            parts.append(f"Available: {', '.join(partial_profile.availability.days)}")

    if not parts:
        return 'New user, just starting onboarding.'
    return 'Current onboarding progress:\n' + '\n'.join(parts)


def build_goal_chat_context(context: UserContext, goal_id: str) -> str:
    goal = next((g for g in context.goals if g.id == goal_id), None)
    if goal is None:
        return 'Goal not found.'

    profile = context.profile
    parts = [f'User: {profile.name or "Friend"}']
    if profile.personality:
        parts.append(f'Personality: {profile.personality}')
    if profile.availability and profile.availability.days:
        parts.append(f"Available: {', '.join(profile.availability.days)}")

    parts.append(f'\nGoal: {goal.title}')
    parts.append(f'Type: {goal.type}')
    parts.append(f'Current level: {goal.current_level or "Not assessed"}')
    parts.append(f'Target: {goal.target_level or "Not set"}')
    parts.append(f'Progress: {goal.progress}%')

    if goal.ai_conversation:
        parts.append('\nPrevious conversation:')
        for turn in goal.ai_conversation[-5:]:
            parts.append(f'{turn.role}: {turn.content[:200]}')

    if context.recent_sessions:
        parts.append('\nRecent training:')
        for s in context.recent_sessions[:3]:
            feedback = s.ai_feedback[:FEEDBACK_PREVIEW_CHARS] if s.ai_feedback else 'No feedback'
            parts.append(f'- {s.session_title}: {feedback}')

    return '\n'.join(parts)


def build_session_context(
    context: UserContext,
    session_title: str,
    tasks: Iterable[Mapping[str, Any]],
    previous_sessions: Sequence[SessionLog] | None = None,
) -> str:
    """Context block for one training session; defaults to the recent sessions."""
    profile = context.profile
    parts = [f'User: {profile.name or "Friend"}']
    if profile.limitations:
        parts.append(f"Limitations to consider: {', '.join(profile.limitations)}")

    parts.append(f"\nToday's session: {session_title}")
    parts.append('Tasks:')
    for i, task in enumerate(tasks, 1):
        parts.append(f"{i}. {task.get('name', '')} ({task.get('type') or 'task'})")

    previous = context.recent_sessions if previous_sessions is None else previous_sessions
    if previous:
        parts.append('\nPrevious performance:')
        for s in previous[:3]:
            if s.ai_feedback:
                parts.append(f'- {s.ai_feedback[:FEEDBACK_PREVIEW_CHARS]}')

    return '\n'.join(parts)
