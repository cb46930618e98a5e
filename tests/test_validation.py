"""Tests for heuristic and model-assisted answer validation."""

import json

import pytest

from conftest import FakeChain
from mybest.schemas.validation import BatchValidationItem, HistoryTurn, ValidationResult
from mybest.services.ai_gateway.base import AllProvidersFailed
from mybest.services.validation import (
    EMPTY_REPROMPT,
    REPROMPTS,
    RETRY_PREFIX,
    InputValidator,
    heuristic_validation,
    normalise_model_verdict,
    parse_days,
)

PERMISSIVE_CONTEXTS = [
    "free_text",
    "interests",
    "personality",
    "physical_info",
    "experience_level",
    "goal_description",
    "duration",
    "time_available",
    "something_new",
]

KEYS = {"openai": "sk-test"}


# ---- heuristics ----


@pytest.mark.parametrize("context", PERMISSIVE_CONTEXTS + ["name", "days_available", "yes_no", "number"])
@pytest.mark.parametrize("text", ["", "   ", "\n\t"])
def test_blank_input_is_always_invalid(context, text):
    result = heuristic_validation(text, context)

    assert result.is_valid is False
    assert result.follow_up_question == EMPTY_REPROMPT
    assert result.confidence == 1.0


@pytest.mark.parametrize("context", PERMISSIVE_CONTEXTS)
@pytest.mark.parametrize("text", ["blue", "x", "42", "I don't know, maybe later?"])
def test_permissive_contexts_accept_any_non_empty_input(context, text):
    result = heuristic_validation(text, context)

    assert result.is_valid is True
    assert result.parsed_value is not None


def test_unknown_context_gets_catch_all_confidence():
    result = heuristic_validation("whatever", "favourite_colour")
    assert result.parsed_value == {"raw": "whatever"}
    assert result.confidence == 0.7


def test_weekdays_expand_to_monday_through_friday():
    result = heuristic_validation("weekdays", "days_available")

    assert result.is_valid
    assert result.parsed_value["days"] == ["monday", "tuesday", "wednesday", "thursday", "friday"]


def test_abbreviation_and_weekends_without_duplicates():
    result = heuristic_validation("I'm free on mon and weekends", "days_available")

    assert result.parsed_value["days"] == ["monday", "saturday", "sunday"]
    assert result.parsed_value["raw"] == "I'm free on mon and weekends"


@pytest.mark.parametrize(
    "text,expected",
    [
        ("everyday", 7),
        ("daily", 7),
        ("any day works", 7),
        ("Tues and Thurs evenings", 2),
        ("saturday, Saturday, sat", 1),
        ("Mondays", 1),
    ],
)
def test_day_parsing(text, expected):
    assert len(parse_days(text)) == expected


def test_days_come_out_in_calendar_order():
    assert parse_days("friday then monday then wed") == ["monday", "wednesday", "friday"]


def test_days_without_any_day_reference_reprompt():
    result = heuristic_validation("blue", "days_available")

    assert result.is_valid is False
    assert result.follow_up_question == REPROMPTS["days_available"]


@pytest.mark.parametrize("text", ["Y", "yes", "Yeah", " of course "])
def test_affirmatives(text):
    result = heuristic_validation(text, "yes_no")
    assert result.parsed_value == {"value": True}
    assert result.confidence == 1.0


@pytest.mark.parametrize("text", ["nah", "No", "not really"])
def test_negatives(text):
    assert heuristic_validation(text, "yes_no").parsed_value == {"value": False}


def test_maybe_is_not_yes_or_no():
    result = heuristic_validation("maybe", "yes_no")
    assert result.is_valid is False
    assert result.follow_up_question == REPROMPTS["yes_no"]


@pytest.mark.parametrize("text,value", [("3", 3), (" 12 ", 12), ("-2", -2)])
def test_integers(text, value):
    assert heuristic_validation(text, "number").parsed_value == {"value": value}


@pytest.mark.parametrize("text", ["three", "3.5", "3 days", "1e3"])
def test_non_integers_rejected(text):
    assert heuristic_validation(text, "number").is_valid is False


@pytest.mark.parametrize("text", ["Alex", "Mary-Jane O'Neil", "José"])
def test_names_accepted(text):
    result = heuristic_validation(text, "name")
    assert result.parsed_value == {"name": text}
    assert result.confidence == 0.95


@pytest.mark.parametrize("text", ["A", "R2D2", "alex@example.com", "--", "x" * 51])
def test_names_rejected(text):
    result = heuristic_validation(text, "name")
    assert result.is_valid is False
    assert result.follow_up_question == REPROMPTS["name"]


def test_interests_split_on_commas_and_semicolons():
    result = heuristic_validation("darts, running; chess, darts", "interests")
    assert result.parsed_value["interests"] == ["darts", "running", "chess"]


@pytest.mark.parametrize("text", ["none", "No", "nothing", "N/A", "na", "none."])
def test_physical_info_negations_mean_no_limitations(text):
    assert heuristic_validation(text, "physical_info").parsed_value == {"limitations": []}


def test_physical_info_free_text_becomes_one_limitation():
    result = heuristic_validation("bad left knee", "physical_info")
    assert result.parsed_value == {"limitations": ["bad left knee"]}


def test_exact_matches_outrank_default_acceptance():
    exact = heuristic_validation("yes", "yes_no").confidence
    catch_all = heuristic_validation("yes", "unheard_of_context").confidence
    assert exact > catch_all


def test_free_text_ranks_below_exact_matches():
    free = heuristic_validation("I like long walks", "free_text").confidence

    assert free < heuristic_validation("yes", "yes_no").confidence
    assert free < heuristic_validation("Alex", "name").confidence


@pytest.mark.asyncio
async def test_free_text_is_summarised_by_the_model():
    chain = FakeChain(reply='{"isValid": true, "parsedValue": {"summary": "walking"}, "confidence": 0.9}')

    result = await InputValidator(chain, KEYS).validate("I like long walks", "free_text")

    assert result.parsed_value == {"summary": "walking"}
    assert len(chain.calls) == 1


def test_reprompt_prefixed_after_repeated_failures():
    first = heuristic_validation("blue", "days_available", previous_attempts=1)
    later = heuristic_validation("blue", "days_available", previous_attempts=2)

    assert not first.follow_up_question.startswith(RETRY_PREFIX)
    assert later.follow_up_question == RETRY_PREFIX + REPROMPTS["days_available"]


def test_result_contract_is_enforced():
    with pytest.raises(ValueError):
        ValidationResult(is_valid=False, confidence=0.5)
    with pytest.raises(ValueError):
        ValidationResult(is_valid=True, confidence=0.5)


# ---- model verdict normalisation ----


def test_model_verdict_invalid_without_question_gets_reprompt():
    result = normalise_model_verdict({"isValid": False, "confidence": 0.8}, "blue", "days_available")
    assert result.follow_up_question == REPROMPTS["days_available"]


def test_model_verdict_valid_without_value_keeps_raw():
    result = normalise_model_verdict({"isValid": True}, " five ", "number")
    assert result.parsed_value == {"raw": "five"}
    assert result.confidence == 0.5


def test_model_verdict_confidence_clamped_and_scalar_wrapped():
    result = normalise_model_verdict({"isValid": True, "parsedValue": 5, "confidence": 3}, "five", "number")
    assert result.parsed_value == {"value": 5}
    assert result.confidence == 1.0


# ---- InputValidator ----


@pytest.mark.asyncio
async def test_model_verdict_is_used_when_available():
    verdict = {
        "isValid": True,
        "parsedValue": {"value": 5},
        "followUpQuestion": None,
        "confidence": 0.92,
        "reasoning": "'five' is 5",
    }
    chain = FakeChain(reply=f"```json\n{json.dumps(verdict)}\n```")
    validator = InputValidator(chain, KEYS)

    result = await validator.validate("five", "number", "How many days a week?")

    assert result.is_valid is True
    assert result.parsed_value == {"value": 5}
    assert result.confidence == 0.92
    call = chain.calls[0]
    assert call["options"].temperature == 0.3
    assert call["options"].max_output_tokens == 500
    assert call["messages"][0].role == "system"
    assert "CONTEXT TYPE: number" in call["messages"][0].content
    assert call["messages"][-1].content == "five"


@pytest.mark.asyncio
async def test_exhausted_chain_degrades_to_heuristics():
    chain = FakeChain(error=AllProvidersFailed("all failed"))
    validator = InputValidator(chain, KEYS)

    result = await validator.validate("blue", "days_available", "Which days can you train?")

    assert result.is_valid is False
    assert result.follow_up_question == REPROMPTS["days_available"]
    assert len(chain.calls) == 1


@pytest.mark.asyncio
async def test_unparseable_model_reply_degrades_to_heuristics():
    chain = FakeChain(reply="Sure, that's a valid answer!")
    result = await InputValidator(chain, KEYS).validate("weekends", "days_available")

    assert result.parsed_value["days"] == ["saturday", "sunday"]


@pytest.mark.asyncio
async def test_blank_input_never_reaches_the_model():
    chain = FakeChain(reply="{}")
    result = await InputValidator(chain, KEYS).validate("  ", "free_text")

    assert result.is_valid is False
    assert chain.calls == []


@pytest.mark.asyncio
async def test_exact_heuristic_match_skips_the_model():
    chain = FakeChain(reply="{}")
    validator = InputValidator(chain, KEYS)

    assert (await validator.validate("yes", "yes_no")).parsed_value == {"value": True}
    assert (await validator.validate("Alex", "name")).parsed_value == {"name": "Alex"}
    assert chain.calls == []


@pytest.mark.asyncio
async def test_no_credentials_uses_heuristics_without_calling():
    chain = FakeChain(reply="{}")
    result = await InputValidator(chain, {}).validate("maybe", "yes_no")

    assert result.is_valid is False
    assert chain.calls == []


@pytest.mark.asyncio
async def test_history_and_attempt_note_are_sent():
    chain = FakeChain(reply='{"isValid": false, "followUpQuestion": "Which weekdays exactly?", "confidence": 0.7}')
    history = [
        HistoryTurn(role="assistant", content="Which days can you train?"),
        HistoryTurn(role="user", content="blue"),
    ]

    result = await InputValidator(chain, KEYS).validate("green", "days_available", "Which days?", 2, history)

    assert result.follow_up_question == RETRY_PREFIX + "Which weekdays exactly?"
    messages = chain.calls[0]["messages"]
    assert "attempt #3" in messages[0].content
    assert [m.content for m in messages[1:]] == ["Which days can you train?", "blue", "green"]


@pytest.mark.asyncio
async def test_model_attempt_returns_none_when_unavailable():
    assert await InputValidator(None, KEYS).attempt_model_validation("five", "number") is None

    failing = InputValidator(FakeChain(error=AllProvidersFailed("all failed")), KEYS)
    assert await failing.attempt_model_validation("five", "number") is None

    chatty = InputValidator(FakeChain(reply="Looks fine to me."), KEYS)
    assert await chatty.attempt_model_validation("five", "number") is None


@pytest.mark.asyncio
async def test_model_attempt_keeps_only_recent_history():
    chain = FakeChain(reply='{"isValid": true, "parsedValue": {"value": 3}, "confidence": 0.9}')
    history = [HistoryTurn(role="user" if i % 2 else "assistant", content=f"turn {i}") for i in range(6)]

    result = await InputValidator(chain, KEYS).attempt_model_validation("three", "number", "How many?", 0, history)

    assert result.parsed_value == {"value": 3}
    contents = [m.content for m in chain.calls[0]["messages"][1:]]
    assert contents == ["turn 2", "turn 3", "turn 4", "turn 5", "three"]


@pytest.mark.asyncio
async def test_validate_batch_reports_invalid_fields():
    validator = InputValidator(None)
    items = [
        BatchValidationItem(field="name", input="Alex", context="name"),
        BatchValidationItem(field="days", input="blue", context="days_available"),
        BatchValidationItem(field="ready", input="yep", context="yes_no"),
    ]

    result = await validator.validate_batch(items)

    assert result.all_valid is False
    assert result.invalid_fields == ["days"]
    assert result.results["ready"].parsed_value == {"value": True}
