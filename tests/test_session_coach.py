"""Tests for pre-session briefings and post-session feedback."""

import json

import pytest

from conftest import FakeChain
from mybest.services.ai_gateway.base import AllProvidersFailed
from mybest.services.ai_gateway.prompts import ANALYSIS_MARKER
from mybest.services.session_coach import (
    CANNED_FEEDBACK,
    brief_session,
    review_session,
    split_analysis,
)
from mybest.services.user_context import build_user_context

KEYS = {"anthropic": "sk-ant"}
TASKS = [{"name": "Double 16 practice", "type": "reps"}]


@pytest.fixture
def context():
    return build_user_context({"id": "u", "full_name": "Sam"}, {"limitations": '["sore wrist"]'}, [], [], {})


def test_split_analysis():
    analysis = {"performanceRating": 7, "hitTargets": False}
    prose, parsed = split_analysis(f"Solid work today.\n\n{ANALYSIS_MARKER}\n{json.dumps(analysis)}")

    assert prose == "Solid work today."
    assert parsed == analysis


def test_split_analysis_without_marker():
    assert split_analysis("  Good job!  ") == ("Good job!", None)


@pytest.mark.asyncio
async def test_briefing_includes_session_context(context):
    chain = FakeChain(reply="  Focus on a smooth release today.  ")

    coaching = await brief_session(context, "Finishing drills", TASKS, chain, KEYS, "Keep the elbow still.")

    assert coaching.message == "Focus on a smooth release today."
    assert coaching.fallback is False
    system = chain.calls[0]["messages"][0].content
    assert "FROM LAST SESSION: Keep the elbow still." in system
    assert "Limitations to consider: sore wrist" in system
    assert "1. Double 16 practice (reps)" in system


@pytest.mark.asyncio
async def test_briefing_falls_back_when_nothing_answers(context):
    chain = FakeChain(error=AllProvidersFailed("all failed"))

    coaching = await brief_session(context, "Finishing drills", TASKS, chain, KEYS)

    assert coaching.fallback is True
    assert coaching.provider == "stub"
    assert coaching.message.startswith("Time for Finishing drills!")


@pytest.mark.asyncio
async def test_feedback_splits_prose_and_analysis(context):
    reply = f'Great effort.\n{ANALYSIS_MARKER}\n```json\n{{"performanceRating": 8, "hitTargets": true}}\n```'
    chain = FakeChain(reply=reply)

    coaching = await review_session(context, "Finishing drills", TASKS, {"hits": 12}, {"hits": 10}, chain, KEYS)

    assert coaching.message == "Great effort."
    assert coaching.analysis == {"performanceRating": 8, "hitTargets": True}
    assert '"hits": 12' in chain.calls[0]["messages"][0].content


@pytest.mark.asyncio
async def test_feedback_without_credentials_is_canned(context):
    chain = FakeChain(reply="unused")

    coaching = await review_session(context, "Finishing drills", TASKS, {}, {}, chain, {})

    assert coaching.message == CANNED_FEEDBACK
    assert coaching.analysis is None
    assert chain.calls == []
