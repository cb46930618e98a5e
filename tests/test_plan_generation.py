"""Tests for training plan generation and its default plan."""

import json

import pytest

from conftest import FakeChain
from mybest.services.ai_gateway.base import AllProvidersFailed
from mybest.services.plan_generation import (
    DEFAULT_PLAN_PROVIDER,
    generate_plan,
    skeleton_plan,
    summarize_goal,
)

KEYS = {"openai": "sk-test"}

MODEL_PLAN = {
    "microCycle": {"title": "2-Week Darts Foundation", "sessions": [{"dayOffset": 0, "title": "Grip"}]},
    "macroCycle": {"title": "3-Month Darts Mastery", "phases": []},
}


def test_skeleton_plan_uses_available_days_in_calendar_order():
    plan = skeleton_plan("Chess", "custom", ["friday", "tuesday"], 40)

    sessions = plan["microCycle"]["sessions"]
    assert [s["dayOfWeek"] for s in sessions] == ["tuesday", "friday", "tuesday", "friday"]
    assert [s["dayOffset"] for s in sessions] == [1, 4, 8, 11]
    assert all(s["durationMinutes"] == 40 for s in sessions)
    assert sessions[0]["tasks"][1]["target"] == {"value": 24, "unit": "minutes"}
    assert plan["macroCycle"]["title"] == "3-Month Chess Journey"
    assert [p["name"] for p in plan["macroCycle"]["phases"]] == ["Foundation", "Development", "Mastery"]


def test_skeleton_plan_caps_sessions_and_defaults_days():
    every_day = skeleton_plan("Yoga", "custom", ["monday", "tuesday", "wednesday", "thursday", "friday"], 30)
    assert len(every_day["microCycle"]["sessions"]) == 6

    no_days = skeleton_plan("Yoga", "custom", [], 30)
    assert [s["dayOfWeek"] for s in no_days["microCycle"]["sessions"][:3]] == ["monday", "wednesday", "friday"]


@pytest.mark.asyncio
async def test_model_plan_is_extracted_from_fenced_reply():
    chain = FakeChain(reply=f"Here you go!\n```json\n{json.dumps(MODEL_PLAN)}\n```")

    generation = await generate_plan(
        "Darts accuracy", "darts", ["weekends"], 45, chain, KEYS, experience_level="intermediate",
    )

    assert generation.fallback is False
    assert generation.plan == MODEL_PLAN
    assert generation.provider == "openai"
    assert generation.goal_summary == {"title": "Darts accuracy", "type": "darts", "currentLevel": "intermediate"}
    call = chain.calls[0]
    assert call["options"].temperature == 0.7
    assert call["options"].max_output_tokens == 2048
    assert "Schedule sessions ONLY on available days: saturday, sunday" in call["messages"][0].content


@pytest.mark.asyncio
async def test_reply_without_a_plan_uses_default():
    chain = FakeChain(reply='Sure! {"note": "no plan here"}')

    generation = await generate_plan("Chess", "custom", ["mon"], 30, chain, KEYS)

    assert generation.fallback is True
    assert generation.provider == DEFAULT_PLAN_PROVIDER
    assert generation.plan["microCycle"]["sessions"][0]["dayOfWeek"] == "monday"


@pytest.mark.asyncio
async def test_exhausted_chain_uses_injected_default():
    chain = FakeChain(error=AllProvidersFailed("all failed"))
    seen = []

    def template(goal_title, goal_type, days, minutes):
        seen.append((goal_title, goal_type, list(days), minutes))
        return {"microCycle": {"title": "canned"}}

    generation = await generate_plan("5k run", "running", ["tue", "thu"], 25, chain, KEYS, default_plan=template)

    assert generation.plan == {"microCycle": {"title": "canned"}}
    assert seen == [("5k run", "running", ["tuesday", "thursday"], 25)]


@pytest.mark.asyncio
async def test_no_credentials_never_calls_the_chain():
    chain = FakeChain(reply=json.dumps(MODEL_PLAN))

    generation = await generate_plan("Chess", "custom", [], 30, chain, {})

    assert generation.fallback is True
    assert chain.calls == []


@pytest.mark.asyncio
async def test_goal_conversation_is_summarised_first():
    summary = {"title": "Sub-25 5k", "type": "running", "currentLevel": "beginner"}
    reply = json.dumps({"goalSummary": summary, "readyForPlan": True, **MODEL_PLAN})
    chain = FakeChain(reply=reply)
    conversation = [
        {"role": "assistant", "content": "What's the longest distance you've run recently?"},
        {"role": "user", "content": "About 3k"},
    ]

    generation = await generate_plan("5k", "running", ["sat"], 30, chain, KEYS, goal_conversation=conversation)

    assert generation.goal_summary == summary
    assert len(chain.calls) == 2
    assert '"goalSummary"' in chain.calls[0]["messages"][0].content
    assert "USER: About 3k" in chain.calls[0]["messages"][1].content
    assert '"title": "Sub-25 5k"' in chain.calls[1]["messages"][0].content


@pytest.mark.asyncio
async def test_given_goal_summary_skips_summarising():
    chain = FakeChain(reply=json.dumps(MODEL_PLAN))

    generation = await generate_plan(
        "5k", "running", [], 30, chain, KEYS,
        goal_summary={"title": "5k"}, goal_conversation=[{"role": "user", "content": "hi"}],
    )

    assert generation.goal_summary == {"title": "5k"}
    assert len(chain.calls) == 1


@pytest.mark.asyncio
async def test_summarize_goal_without_summary_key():
    assert await summarize_goal([{"role": "user", "content": "hi"}], FakeChain(reply='{"other": 1}'), KEYS) is None
    assert await summarize_goal([{"role": "user", "content": "hi"}], None, KEYS) is None
