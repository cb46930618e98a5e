"""
AI gateway router: /api/ai/*

Chat, answer validation, profile extraction, plan generation, session coaching
and context building.  Provider failures never reach the client: chat and
session coaching answer with a canned reply, validation degrades to
heuristics, extraction degrades to keyword matching, plans degrade to the
default plan.
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status

from mybest.core.config import Settings, get_settings
from mybest.schemas.ai_gateway import (
    ChatRequest,
    ChatResponse,
    ContextRequest,
    ContextResponse,
    ExtractProfileRequest,
    ExtractProfileResponse,
    GeneratePlanRequest,
    GeneratePlanResponse,
    SessionCoachRequest,
    SessionCoachResponse,
)
from mybest.schemas.context import CondensedContext
from mybest.schemas.validation import (
    BatchValidateRequest,
    BatchValidationResult,
    ValidateRequest,
    ValidationResult,
)
from mybest.services.ai_gateway.base import (
    DEFAULT_MAX_OUTPUT_TOKENS,
    DEFAULT_TEMPERATURE,
    GatewayError,
    GenerationOptions,
    ProviderIdentity,
    coerce_messages,
)
from mybest.services.ai_gateway.factory import (
    configured_providers,
    get_fallback_chain,
    provider_order,
    resolve_credentials,
)
from mybest.services.ai_gateway.fallback import FallbackChain
from mybest.services.ai_gateway.prompts import (
    build_coach_prompt,
    build_goal_chat_prompt,
    build_onboarding_prompt,
    with_system_prompt,
)
from mybest.services.ai_gateway.stub_replies import fallback_reply
from mybest.services.plan_generation import generate_plan
from mybest.services.profile_extraction import extract_profile
from mybest.services.session_coach import brief_session, review_session
from mybest.services.user_context import (
    build_goal_chat_context,
    build_onboarding_context,
    build_user_context,
    generate_ai_summary,
    needs_summary_refresh,
    summarize_for_prompt,
    summary_fingerprint,
)
from mybest.services.validation import InputValidator

logger = logging.getLogger(__name__)

router = APIRouter(prefix='/api/ai', tags=['ai'])

_EMPTY_CONTEXT = CondensedContext(name='Friend', summary='', recent_performance='No recent sessions.')


def _system_prompt(payload: ChatRequest) -> Optional[str]:
    condensed = payload.condensed_context or _EMPTY_CONTEXT
    if payload.mode == 'onboarding':
        collected = {}
        if payload.partial_profile is not None:
            collected = payload.partial_profile.model_dump(by_alias=True, exclude_none=True, exclude_defaults=True)
        return build_onboarding_prompt(payload.current_question, collected)
    if payload.mode == 'coach':
        return build_coach_prompt(condensed)
    if payload.mode == 'goal':
        return build_goal_chat_prompt(
            payload.goal_type or 'custom', payload.goal_title or 'New goal', condensed,
        )
    return None


@router.get('/providers')
def providers_debug(config: Settings = Depends(get_settings)):
    """Which providers are configured and in what order. Never returns keys."""
    credentials = resolve_credentials(config=config)
    return {
        'order': [p.value for p in provider_order(config)],
        'configured': configured_providers(credentials, config),
        'model_overrides': config.model_overrides(),
        'deadline_seconds': config.AI_DEADLINE_SECONDS,
        'backoff_seconds': config.AI_RATE_LIMIT_BACKOFF_SECONDS,
    }


@router.post('/chat', response_model=ChatResponse)
async def chat(
    payload: ChatRequest,
    chain: FallbackChain = Depends(get_fallback_chain),
    config: Settings = Depends(get_settings),
):
    """
    Send a conversation to the first provider that answers.

    - mode selects the system prompt (onboarding / coach / goal / none).
    - provider pins the call to one provider; otherwise every configured
      provider is tried in order.
    - When nothing answers, a canned reply is returned with fallback=true.
    """
    credentials = resolve_credentials(payload.api_keys, config)
    messages = [m.model_dump() for m in payload.messages]

    try:
        messages = coerce_messages(messages)
        pinned = ProviderIdentity(payload.provider.lower()) if payload.provider else None
        system_text = _system_prompt(payload)
        if system_text:
            messages = with_system_prompt(messages, system_text)
        options = GenerationOptions(
            temperature=payload.temperature if payload.temperature is not None else DEFAULT_TEMPERATURE,
            max_output_tokens=payload.max_tokens or DEFAULT_MAX_OUTPUT_TOKENS,
        )
        logger.info(
            'chat — mode=%s messages=%d pinned=%s configured=%s',
            payload.mode, len(messages), payload.provider, ','.join(sorted(credentials)) or '-',
        )
        result = await chain.chat(
            messages, options, credentials, provider=pinned, model=payload.model,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except GatewayError as exc:
        logger.warning('chat — no provider answered, using canned reply: %s', exc)
        reply_context = 'onboarding' if payload.mode == 'onboarding' else 'coach'
        return ChatResponse(
            message=fallback_reply(messages, context=reply_context),
            provider='stub',
            model='stub',
            fallback=True,
        )

    logger.info('chat OK — provider=%s model=%s reply_len=%d', result.provider.value, result.model, len(result.text))
    return ChatResponse(message=result.text, provider=result.provider.value, model=result.model)


@router.post('/validate', response_model=ValidationResult)
async def validate_answer(
    payload: ValidateRequest,
    chain: FallbackChain = Depends(get_fallback_chain),
    config: Settings = Depends(get_settings),
):
    validator = InputValidator(chain, resolve_credentials(payload.api_keys, config))
    result = await validator.validate(
        payload.input,
        payload.context,
        payload.question,
        payload.previous_attempts,
        payload.conversation_history,
    )
    logger.info(
        'validate — context=%s attempt=%d valid=%s confidence=%.2f',
        payload.context, payload.previous_attempts, result.is_valid, result.confidence,
    )
    return result


@router.post('/validate/batch', response_model=BatchValidationResult)
async def validate_answers(
    payload: BatchValidateRequest,
    chain: FallbackChain = Depends(get_fallback_chain),
    config: Settings = Depends(get_settings),
):
    validator = InputValidator(chain, resolve_credentials(payload.api_keys, config))
    return await validator.validate_batch(payload.items)


@router.post('/extract-profile', response_model=ExtractProfileResponse)
async def extract_profile_route(
    payload: ExtractProfileRequest,
    chain: FallbackChain = Depends(get_fallback_chain),
    config: Settings = Depends(get_settings),
):
    credentials = resolve_credentials(payload.api_keys, config)
    try:
        extraction = await extract_profile([m.model_dump() for m in payload.conversation], chain, credentials)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return ExtractProfileResponse(
        profile=extraction.profile, provider=extraction.provider, model=extraction.model,
    )


@router.post('/context', response_model=ContextResponse)
def build_context(payload: ContextRequest):
    """Build the per-request context plus its condensed and persisted projections."""
    context = build_user_context(
        payload.identity, payload.profile, payload.goals, payload.sessions, payload.stats,
    )
    fingerprint = summary_fingerprint(context)
    onboarding = None if context.onboarding_completed else build_onboarding_context(context.profile)
    goal_context = build_goal_chat_context(context, payload.goal_id) if payload.goal_id else None
    return ContextResponse(
        context=context,
        condensed=summarize_for_prompt(context),
        summary=generate_ai_summary(context),
        fingerprint=fingerprint,
        summary_changed=needs_summary_refresh(context, payload.stored_fingerprint),
        onboarding_context=onboarding,
        goal_context=goal_context,
    )


@router.post('/generate-plan', response_model=GeneratePlanResponse)
async def generate_plan_route(
    payload: GeneratePlanRequest,
    chain: FallbackChain = Depends(get_fallback_chain),
    config: Settings = Depends(get_settings),
):
    """
    Micro and macro training plan for one goal.

    - goalSummary is used as-is when given; otherwise goalConversation is
      summarised first.
    - fallback=true means the default plan was used.
    """
    credentials = resolve_credentials(payload.api_keys, config)
    logger.info('generate-plan — goal=%r type=%s days=%s', payload.goal_title, payload.goal_type, payload.schedule.days)
    try:
        generation = await generate_plan(
            payload.goal_title,
            payload.goal_type,
            payload.schedule.days,
            payload.schedule.minutes_per_session,
            chain,
            credentials,
            condensed=payload.condensed_context,
            goal_summary=payload.goal_summary,
            goal_conversation=[m.model_dump() for m in payload.goal_conversation],
            experience_level=payload.experience_level,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return GeneratePlanResponse(
        plan=generation.plan,
        goal_summary=generation.goal_summary,
        provider=generation.provider,
        model=generation.model,
        fallback=generation.fallback,
    )


def _session_context(payload: SessionCoachRequest):
    return build_user_context(payload.identity, payload.profile, [], payload.sessions, None)


def _coaching_response(coaching) -> SessionCoachResponse:
    return SessionCoachResponse(
        message=coaching.message,
        analysis=coaching.analysis,
        provider=coaching.provider,
        model=coaching.model,
        fallback=coaching.fallback,
    )


@router.post('/session/briefing', response_model=SessionCoachResponse)
async def session_briefing(
    payload: SessionCoachRequest,
    chain: FallbackChain = Depends(get_fallback_chain),
    config: Settings = Depends(get_settings),
):
    coaching = await brief_session(
        _session_context(payload),
        payload.session_title,
        [t.model_dump() for t in payload.tasks],
        chain,
        resolve_credentials(payload.api_keys, config),
        previous_feedback=payload.previous_feedback,
    )
    return _coaching_response(coaching)


@router.post('/session/feedback', response_model=SessionCoachResponse)
async def session_feedback(
    payload: SessionCoachRequest,
    chain: FallbackChain = Depends(get_fallback_chain),
    config: Settings = Depends(get_settings),
):
    coaching = await review_session(
        _session_context(payload),
        payload.session_title,
        [t.model_dump() for t in payload.tasks],
        payload.results,
        payload.targets,
        chain,
        resolve_credentials(payload.api_keys, config),
        user_feedback=payload.user_feedback,
    )
    logger.info('session feedback — provider=%s analysis=%s', coaching.provider, coaching.analysis is not None)
    return _coaching_response(coaching)
