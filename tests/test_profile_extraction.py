"""Tests for onboarding profile extraction."""

import pytest

from conftest import FakeChain
from mybest.services.ai_gateway.base import AllProvidersFailed, ProviderIdentity
from mybest.services.ai_gateway.prompts import PROFILE_EXTRACTION_PROMPT
from mybest.services.profile_extraction import (
    KEYWORD_PROVIDER,
    extract_profile,
    extract_profile_keywords,
)

CONVERSATION = [
    {"role": "assistant", "content": "Hi! What's your name?"},
    {"role": "user", "content": "My name is alex"},
    {"role": "assistant", "content": "What do you want to improve?"},
    {"role": "user", "content": "Darts and running, I have a desk job"},
    {"role": "assistant", "content": "Which days work?"},
    {"role": "user", "content": "weekends in the morning"},
    {"role": "assistant", "content": "What does success look like in two weeks?"},
    {"role": "user", "content": "Hitting a 60 consistently"},
    {"role": "assistant", "content": "And in six months?"},
    {"role": "user", "content": "Playing in the local league"},
]


def test_keyword_extraction():
    profile = extract_profile_keywords(CONVERSATION)

    assert profile["name"] == "Alex"
    assert profile["interests"] == ["darts", "running"]
    assert profile["lifestyle"] == "sedentary"
    assert profile["availability"] == {"days": ["saturday", "sunday"], "timePreference": "morning"}
    assert profile["shortTermGoal"] == "weekends in the morning"
    assert profile["longTermGoal"] == "Hitting a 60 consistently"
    assert profile["limitations"] == []


def test_keyword_extraction_on_sparse_conversation():
    profile = extract_profile_keywords([{"role": "user", "content": "Sam"}])

    assert profile["name"] == "Sam"
    assert profile["interests"] is None
    assert profile["availability"]["days"] == []
    assert profile["availability"]["timePreference"] == "flexible"
    assert profile["pastExperience"] is None


@pytest.mark.asyncio
async def test_model_extraction_used_when_json_returned():
    chain = FakeChain(
        reply='Here you go: {"name": "Alex", "interests": ["darts"]}',
        provider=ProviderIdentity.GEMINI,
        model="gemini-2.0-flash",
    )

    result = await extract_profile(CONVERSATION, chain, {"gemini": "g"})

    assert result.profile == {"name": "Alex", "interests": ["darts"]}
    assert (result.provider, result.model) == ("gemini", "gemini-2.0-flash")
    call = chain.calls[0]
    assert call["options"].temperature == 0.1
    assert call["messages"][0].content == PROFILE_EXTRACTION_PROMPT
    assert "USER: My name is alex" in call["messages"][1].content


@pytest.mark.asyncio
async def test_model_failure_falls_back_to_keywords():
    chain = FakeChain(error=AllProvidersFailed("down"))

    result = await extract_profile(CONVERSATION, chain, {"gemini": "g"})

    assert result.provider == KEYWORD_PROVIDER
    assert result.model == "fallback"
    assert result.profile["name"] == "Alex"


@pytest.mark.asyncio
async def test_reply_without_json_falls_back_to_keywords():
    chain = FakeChain(reply="I'm not sure what you mean.")
    result = await extract_profile(CONVERSATION, chain, {"openai": "o"})
    assert result.provider == KEYWORD_PROVIDER


@pytest.mark.asyncio
async def test_no_credentials_skips_the_model():
    chain = FakeChain(reply="{}")
    result = await extract_profile(CONVERSATION, chain, {})

    assert result.provider == KEYWORD_PROVIDER
    assert chain.calls == []
