"""
Training plan generation.

The plan comes from one model call shaped by ``build_plan_generation_prompt``.
When no provider answers, or the reply holds no JSON plan, the injected
``default_plan`` template supplies a deterministic one so the user always
leaves with something to train on.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from mybest.schemas.context import CondensedContext
from mybest.services.ai_gateway.base import (
    GatewayError,
    GenerationOptions,
    Message,
    MessageLike,
    coerce_messages,
)
from mybest.services.ai_gateway.extraction import extract_json
from mybest.services.ai_gateway.fallback import FallbackChain
from mybest.services.ai_gateway.prompts import GOAL_SUMMARY_PROMPT, build_plan_generation_prompt
from mybest.services.profile_extraction import conversation_text
from mybest.services.validation import WEEKDAYS, parse_days

logger = logging.getLogger(__name__)

PLAN_OPTIONS = GenerationOptions(temperature=0.7, max_output_tokens=2048)
GOAL_SUMMARY_OPTIONS = GenerationOptions(temperature=0.3, max_output_tokens=1024)
DEFAULT_PLAN_PROVIDER = 'default-plan'
DEFAULT_PLAN_MODEL = 'fallback'

DEFAULT_TRAINING_DAYS = ['monday', 'wednesday', 'friday']
MAX_DEFAULT_SESSIONS = 6
_PLAN_KEYS = ('microCycle', 'macroCycle', 'micro_cycle', 'macro_cycle')

# (goal_title, goal_type, days, minutes_per_session) -> plan dict
PlanTemplate = Callable[[str, str, Sequence[str], int], Dict[str, Any]]

_EMPTY_CONTEXT = CondensedContext(name='Friend', summary='', recent_performance='No recent sessions.')


@dataclass
class PlanGeneration:
    plan: Dict[str, Any]
    goal_summary: Dict[str, Any]
    provider: str
    model: str
    fallback: bool = False


def skeleton_plan(
    goal_title: str,
    goal_type: str,
    days: Sequence[str],
    minutes_per_session: int,
) -> Dict[str, Any]:
    """Goal-agnostic two-week plan laid out on the available days."""
    training_days = [d for d in WEEKDAYS if d in set(days)] or DEFAULT_TRAINING_DAYS
    slots = [(week, day) for week in range(2) for day in training_days][:MAX_DEFAULT_SESSIONS]

    sessions: List[Dict[str, Any]] = []
    for n, (week, day) in enumerate(slots, 1):
        sessions.append({
            'dayOffset': week * 7 + WEEKDAYS.index(day),
            'dayOfWeek': day,
            'title': f'Training Session {n}',
            'description': f'Build foundational skills and habits for {goal_title}',
            'durationMinutes': minutes_per_session,
            'tasks': [
                {'name': 'Warm-up & preparation', 'type': 'time',
                 'target': {'value': 5, 'unit': 'minutes'}},
                {'name': 'Core skill practice', 'type': 'time',
                 'target': {'value': max(int(minutes_per_session * 0.6), 1), 'unit': 'minutes'}},
                {'name': 'Review & cool-down', 'type': 'time',
                 'target': {'value': 5, 'unit': 'minutes'}},
            ],
        })

    return {
        'microCycle': {
            'title': f'2-Week {goal_title} Foundation',
            'durationDays': 14,
            'description': f'Build foundational skills and habits for {goal_title}',
            'sessions': sessions,
        },
        'macroCycle': {
            'title': f'3-Month {goal_title} Journey',
            'durationMonths': 3,
            'phases': [
                {'name': 'Foundation', 'weeks': 4, 'focus': 'Learn fundamentals and build consistency'},
                {'name': 'Development', 'weeks': 4, 'focus': 'Refine technique and increase intensity'},
                {'name': 'Mastery', 'weeks': 4, 'focus': 'Advanced skills and measurable results'},
            ],
        },
        'goalType': goal_type,
    }


async def summarize_goal(
    conversation: Iterable[MessageLike],
    chain: Optional[FallbackChain],
    credentials: Optional[Mapping[str, str]] = None,
) -> Optional[Dict[str, Any]]:
    """Goal-chat transcript → ``goalSummary`` dict, or None when unavailable."""
    if chain is None or not credentials:
        return None

    messages = [
        Message('system', GOAL_SUMMARY_PROMPT),
        Message('user', f'Here is the goal conversation:\n\n{conversation_text(conversation)}'),
    ]
    try:
        result = await chain.chat(messages, GOAL_SUMMARY_OPTIONS, credentials)
    except GatewayError as exc:
        logger.warning('Goal summary via model failed: %s', exc)
        return None

    data = extract_json(result.text)
    summary = (data or {}).get('goalSummary')
    if not isinstance(summary, dict):
        logger.warning('No goalSummary in reply from %s/%s', result.provider.value, result.model)
        return None
    return summary


async def generate_plan(
    goal_title: str,
    goal_type: str,
    days: Iterable[str],
    minutes_per_session: int,
    chain: Optional[FallbackChain],
    credentials: Optional[Mapping[str, str]] = None,
    condensed: Optional[CondensedContext] = None,
    goal_summary: Optional[Mapping[str, Any]] = None,
    goal_conversation: Iterable[MessageLike] = (),
    experience_level: Optional[str] = None,
    default_plan: PlanTemplate = skeleton_plan,
) -> PlanGeneration:
    # free-form day answers ("weekends", "tue") resolve like validated ones
    available = parse_days(' '.join(days))
    goal_conversation = coerce_messages(goal_conversation)

    summary = dict(goal_summary) if goal_summary else None
    if summary is None and goal_conversation:
        summary = await summarize_goal(goal_conversation, chain, credentials)
    if summary is None:
        summary = {'title': goal_title, 'type': goal_type, 'currentLevel': experience_level or 'beginner'}

    if chain is not None and credentials:
        messages = [
            Message('system', build_plan_generation_prompt(
                summary, condensed or _EMPTY_CONTEXT, available, minutes_per_session,
            )),
            Message('user', f'Please generate my training plan for "{goal_title}" in JSON format.'),
        ]
        try:
            result = await chain.chat(messages, PLAN_OPTIONS, credentials)
        except GatewayError as exc:
            logger.warning('Plan generation via model failed: %s', exc)
        else:
            plan = extract_json(result.text)
            if plan is not None and any(key in plan for key in _PLAN_KEYS):
                logger.info('Plan for %r generated by %s/%s', goal_title, result.provider.value, result.model)
                return PlanGeneration(
                    plan=plan, goal_summary=summary, provider=result.provider.value, model=result.model,
                )
            logger.warning('No JSON plan in reply from %s/%s', result.provider.value, result.model)

    logger.info('Using default plan for %r', goal_title)
    return PlanGeneration(
        plan=default_plan(goal_title, goal_type, available, minutes_per_session),
        goal_summary=summary,
        provider=DEFAULT_PLAN_PROVIDER,
        model=DEFAULT_PLAN_MODEL,
        fallback=True,
    )
