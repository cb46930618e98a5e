"""
Onboarding conversation → structured profile dict.

A low-temperature model call does the real work.  When no provider answers,
or the reply holds no JSON object, a keyword scan over the user's turns
produces a rougher profile so onboarding can still complete.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional

from mybest.services.ai_gateway.base import (
    GatewayError,
    GenerationOptions,
    Message,
    MessageLike,
    coerce_messages,
)
from mybest.services.ai_gateway.extraction import extract_json
from mybest.services.ai_gateway.fallback import FallbackChain
from mybest.services.ai_gateway.prompts import PROFILE_EXTRACTION_PROMPT
from mybest.services.validation import parse_days

logger = logging.getLogger(__name__)

EXTRACTION_OPTIONS = GenerationOptions(temperature=0.1, max_output_tokens=1024)
KEYWORD_PROVIDER = 'keyword-extraction'
KEYWORD_MODEL = 'fallback'

_NAME_PATTERNS = [
    re.compile(r"my name is ([^\W\d_]+)"),
    re.compile(r"i'm ([^\W\d_]+)"),
    re.compile(r"call me ([^\W\d_]+)"),
    re.compile(r"name's ([^\W\d_]+)"),
    re.compile(r"^([^\W\d_]+)$"),
]

INTEREST_KEYWORDS = [
    'darts', 'running', 'fitness', 'gym', 'yoga', 'swimming', 'cycling',
    'reading', 'writing', 'coding', 'gaming', 'cooking', 'music', 'art', 'sports',
    'basketball', 'football', 'soccer', 'tennis', 'golf', 'chess', 'meditation',
    'hiking', 'climbing',
]

_SEDENTARY = ('sedentary', 'desk job', 'sit all day')
_ACTIVE = ('active', 'always moving')
_BEGINNER = ('beginner', 'never', 'new to')
_INTERMEDIATE = ('some experience', 'used to')
_EXPERIENCED = ('experienced', 'years')

GOAL_MIN_CHARS = 10


@dataclass
class ProfileExtraction:
    profile: Dict[str, Any]
    provider: str
    model: str


def conversation_text(conversation: Iterable[MessageLike]) -> str:
    return '\n\n'.join(f'{m.role.upper()}: {m.content}' for m in coerce_messages(conversation))


def _contains_any(text: str, needles: Iterable[str]) -> bool:
    return any(n in text for n in needles)


def _extract_name(user_turns: List[str]) -> Optional[str]:
    for turn in user_turns[:3]:
        lowered = turn.strip().lower()
        for pattern in _NAME_PATTERNS:
            match = pattern.search(lowered)
            if match:
                return match.group(1).capitalize()
    return None


def _interests(text: str) -> List[str]:
    words = set(re.findall(r'[a-z]+', text))
    return [k for k in INTEREST_KEYWORDS if k in words]


def _time_preference(text: str) -> str:
    if 'morning' in text:
        return 'morning'
    if 'afternoon' in text:
        return 'afternoon'
    if 'evening' in text or 'night' in text:
        return 'evening'
    return 'flexible'


def _lifestyle(text: str) -> str:
    if _contains_any(text, _SEDENTARY):
        return 'sedentary'
    if _contains_any(text, _ACTIVE):
        return 'active'
    return 'mixed'


def _experience(text: str) -> Optional[str]:
    if _contains_any(text, _BEGINNER):
        return 'beginner'
    if _contains_any(text, _INTERMEDIATE):
        return 'intermediate'
    if _contains_any(text, _EXPERIENCED):
        return 'experienced'
    return None


def extract_profile_keywords(conversation: Iterable[MessageLike]) -> Dict[str, Any]:
    """Best-effort profile from the user's own words; no network."""
    user_turns = [m.content for m in coerce_messages(conversation) if m.role == 'user']
    text = ' '.join(turn.lower() for turn in user_turns)

    # Goals are usually answered in the second half of the interview.
    long_answers = [t.strip() for t in user_turns[len(user_turns) // 2:] if len(t.strip()) > GOAL_MIN_CHARS]
    short_term = long_answers[0] if long_answers else None
    long_term = long_answers[1] if len(long_answers) > 1 else None

    interests = _interests(text)
    return {
        'name': _extract_name(user_turns),
        'motivation': None,
        'interests': interests or None,
        'lifestyle': _lifestyle(text),
        'pastExperience': _experience(text),
        'personality': None,
        'availability': {
            'days': parse_days(text),
            'timePreference': _time_preference(text),
        },
        'limitations': [],
        'shortTermGoal': short_term,
        'longTermGoal': long_term,
    }


async def extract_profile(
    conversation: Iterable[MessageLike],
    chain: Optional[FallbackChain],
    credentials: Optional[Mapping[str, str]] = None,
) -> ProfileExtraction:
    conversation = coerce_messages(conversation)

    if chain is not None and credentials:
        messages = [
            Message('system', PROFILE_EXTRACTION_PROMPT),
            Message(
                'user',
                f'Here is the onboarding conversation:\n\n{conversation_text(conversation)}'
                '\n\nExtract the profile JSON:',
            ),
        ]
        try:
            result = await chain.chat(messages, EXTRACTION_OPTIONS, credentials)
        except GatewayError as exc:
            logger.warning('Profile extraction via model failed: %s', exc)
        else:
            profile = extract_json(result.text)
            if profile is not None:
                logger.info('Profile extracted by %s/%s', result.provider.value, result.model)
                return ProfileExtraction(profile=profile, provider=result.provider.value, model=result.model)
            logger.warning('No JSON profile in reply from %s/%s', result.provider.value, result.model)

    logger.info('Using keyword-based profile extraction')
    return ProfileExtraction(
        profile=extract_profile_keywords(conversation),
        provider=KEYWORD_PROVIDER,
        model=KEYWORD_MODEL,
    )
