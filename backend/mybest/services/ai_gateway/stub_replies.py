"""
Deterministic chat replies used when every provider failed or none is
configured, so the conversation keeps moving without any API key.
"""
from __future__ import annotations

from typing import Iterable

from mybest.services.ai_gateway.base import MessageLike, coerce_messages

_ONBOARDING_REPLIES = [
    "Nice to meet you! 🎉 Now, what's the main thing you want to improve? "
    "It could be anything: sports like darts or running, fitness goals, "
    "learning a new skill, or building better habits.",
    "Great choice! To create the perfect plan for you, I need to understand "
    "where you're starting from. What's your experience level?\n\n"
    "- Complete beginner\n- Some experience\n- Intermediate\n- Advanced",
    "Got it! Now let's talk about your schedule. How many days per week can you "
    "dedicate to training? And roughly how much time per session?",
    "Perfect! One more thing: what's your personality like when it comes to challenges?\n\n"
    "- Tenacious (love pushing through)\n- Analytical (prefer structured progress)\n"
    "- Playful (learn through fun)\n- Goal-driven (focused on results)",
    "Awesome! I have everything I need. I'm setting up your personalized journey now! 🚀\n\n"
    "Ready to start your transformation?",
]

_COACH_REPLY = (
    "I can't reach my coaching brain right now, but your plan and progress are safe. "
    "Keep going with today's session and check back with me in a little while! 💪"
)


def fallback_reply(messages: Iterable[MessageLike], context: str = 'onboarding') -> str:
    """Pick a canned reply from the number of user turns so far."""
    if context != 'onboarding':
        return _COACH_REPLY
    user_turns = sum(1 for m in coerce_messages(messages) if m.role == 'user')
    step = max(user_turns - 1, 0)
    return _ONBOARDING_REPLIES[min(step, len(_ONBOARDING_REPLIES) - 1)]
