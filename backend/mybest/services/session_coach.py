"""
Session coaching: a short briefing before training and feedback after it.

Both calls append ``build_session_context`` to the session prompt.  Post-session
replies carry a JSON analysis after ``ANALYSIS_MARKER``; it is split off so the
user only sees the prose.  When no provider answers a canned message is used.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from mybest.schemas.context import UserContext
from mybest.services.ai_gateway.base import GatewayError, GenerationOptions, Message
from mybest.services.ai_gateway.extraction import extract_json
from mybest.services.ai_gateway.fallback import FallbackChain
from mybest.services.ai_gateway.prompts import (
    ANALYSIS_MARKER,
    build_post_session_prompt,
    build_pre_session_prompt,
)
from mybest.services.user_context import build_session_context

logger = logging.getLogger(__name__)

BRIEFING_OPTIONS = GenerationOptions(temperature=0.7, max_output_tokens=300)
FEEDBACK_OPTIONS = GenerationOptions(temperature=0.5, max_output_tokens=800)

CANNED_BRIEFING = (
    "Time for {title}! Take it one task at a time and focus on clean technique "
    "over speed. You've got this! 💪"
)
CANNED_FEEDBACK = (
    "Session logged, nice work showing up today! Compare your results with the "
    "targets and pick one thing to sharpen next time."
)


@dataclass
class SessionCoaching:
    message: str
    analysis: Optional[Dict[str, Any]]
    provider: str
    model: str
    fallback: bool = False


def split_analysis(text: str) -> Tuple[str, Optional[Dict[str, Any]]]:
    """Separate the prose from the JSON analysis that follows the marker."""
    prose, marker, tail = text.partition(ANALYSIS_MARKER)
    if not marker:
        return text.strip(), None
    return prose.strip(), extract_json(tail)


async def _ask(
    system_text: str,
    user_text: str,
    options: GenerationOptions,
    chain: Optional[FallbackChain],
    credentials: Optional[Mapping[str, str]],
):
    if chain is None or not credentials:
        return None
    messages = [Message('system', system_text), Message('user', user_text)]
    try:
        return await chain.chat(messages, options, credentials)
    except GatewayError as exc:
        logger.warning('Session coaching unavailable: %s', exc)
        return None


async def brief_session(
    context: UserContext,
    session_title: str,
    tasks: Sequence[Mapping[str, Any]],
    chain: Optional[FallbackChain],
    credentials: Optional[Mapping[str, str]] = None,
    previous_feedback: Optional[str] = None,
) -> SessionCoaching:
    system_text = (
        build_pre_session_prompt(session_title, tasks, previous_feedback)
        + '\n\nUSER CONTEXT:\n'
        + build_session_context(context, session_title, tasks)
    )
    result = await _ask(system_text, f"I'm about to start {session_title}.", BRIEFING_OPTIONS, chain, credentials)
    if result is None:
        return SessionCoaching(
            message=CANNED_BRIEFING.format(title=session_title),
            analysis=None, provider='stub', model='stub', fallback=True,
        )
    return SessionCoaching(
        message=result.text.strip(), analysis=None, provider=result.provider.value, model=result.model,
    )


async def review_session(
    context: UserContext,
    session_title: str,
    tasks: Sequence[Mapping[str, Any]],
    results: Mapping[str, Any],
    targets: Mapping[str, Any],
    chain: Optional[FallbackChain],
    credentials: Optional[Mapping[str, str]] = None,
    user_feedback: Optional[str] = None,
) -> SessionCoaching:
    system_text = (
        build_post_session_prompt(results, targets, user_feedback)
        + '\n\nUSER CONTEXT:\n'
        + build_session_context(context, session_title, tasks)
    )
    result = await _ask(system_text, f'I just finished {session_title}.', FEEDBACK_OPTIONS, chain, credentials)
    if result is None:
        return SessionCoaching(message=CANNED_FEEDBACK, analysis=None, provider='stub', model='stub', fallback=True)

    message, analysis = split_analysis(result.text)
    if analysis is None:
        logger.warning('No session analysis in reply from %s/%s', result.provider.value, result.model)
    return SessionCoaching(
        message=message, analysis=analysis, provider=result.provider.value, model=result.model,
    )
