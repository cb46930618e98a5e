"""
Prompt library: pure functions from structured records to prompt text.

Nothing here talks to a provider; callers pass the result to the fallback
chain as the leading system message (see ``with_system_prompt``).
"""
from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List, Mapping

from mybest.schemas.context import CondensedContext
from mybest.schemas.validation import STRICT_CONTEXTS
from mybest.services.ai_gateway.base import Message, MessageLike, coerce_messages

# ───────────────────────────────────────────────────────────────────
# Validation
# ───────────────────────────────────────────────────────────────────

CONTEXT_DESCRIPTIONS: Dict[str, str] = {
    'name': (
        "A person's name. Should be a reasonable name (1-50 characters). "
        "Can be first name, full name, or nickname."
    ),
    'days_available': (
        'Days of the week when the user is available. Valid values: monday, tuesday, '
        'wednesday, thursday, friday, saturday, sunday (or abbreviations like mon, tue, wed). '
        "Can also accept 'weekdays', 'weekends', 'everyday'."
    ),
    'time_available': (
        "Time slots when user is available. Should include times like '9am-5pm', "
        "'mornings', 'evenings', 'after work', specific hours."
    ),
    'experience_level': (
        'Experience level in an activity. Valid: beginner, some experience, intermediate, '
        "advanced, expert, professional. Also accept descriptive answers like 'never done it', "
        "'been doing it for years'."
    ),
    'goal_description': (
        'A goal or objective the user wants to achieve. Should be something '
        'trainable/improvable. Extract the core goal.'
    ),
    'number': "A numeric value. Parse numbers from text like 'five' = 5, 'a dozen' = 12.",
    'yes_no': (
        'A yes or no response. Accept variations: yeah, yep, nope, nah, sure, '
        'definitely, not really.'
    ),
    'duration': (
        "A time duration. Parse: '30 minutes', 'half hour', '1 hour', '90 mins', "
        "'an hour and a half'."
    ),
    'personality': (
        'Personality traits or motivation style. Extract key traits: determined, '
        'analytical, playful, competitive, patient, etc.'
    ),
    'interests': 'Hobbies, interests, or activities. Extract as a list of distinct interests.',
    'physical_info': (
        "Physical information: height, weight, injuries, limitations. Extract what's provided."
    ),
    'free_text': 'Open-ended response. Always valid. Summarize the key points.',
}

_GENERIC_DESCRIPTION = 'Any relevant answer to the question asked.'

VALIDATION_PROMPT = """\
You are validating user input for an AI coaching app.

CONTEXT TYPE: {context}
EXPECTED: {expected}
QUESTION ASKED: "{question}"
USER INPUT: Will be provided in the user message
{attempt_note}
YOUR TASK:
1. Determine if the input is valid for this context
2. If valid, extract structured data
3. If invalid, provide a helpful follow-up question

RULES:
{strictness}
- Be friendly and encouraging in follow-up questions
- Never be condescending or rude
- If the input is close but unclear, ask for clarification
- For free_text, always mark as valid but extract key information

RESPOND WITH VALID JSON ONLY (no markdown, no explanation outside JSON):
{{
  "isValid": boolean,
  "parsedValue": {{ extracted structured data, or null if invalid }},
  "followUpQuestion": "string or null - friendly question to get valid input",
  "confidence": number between 0 and 1,
  "reasoning": "brief explanation of your decision"
}}"""


def build_validation_prompt(context: str, question: str, previous_attempts: int = 0) -> str:
    if previous_attempts > 0:
        attempt_note = (
            f'NOTE: This is attempt #{previous_attempts + 1}. User has already given '
            f'{previous_attempts} invalid response(s). Be more helpful and specific in your follow-up.\n'
        )
    else:
        attempt_note = ''

    if context in STRICT_CONTEXTS:
        strictness = '- This is a STRICT context. The input MUST match the expected format.'
    else:
        strictness = (
            '- This is a FLEXIBLE context. Be lenient but ensure the response is '
            'relevant to the question.'
        )

    return VALIDATION_PROMPT.format(
        context=context,
        expected=CONTEXT_DESCRIPTIONS.get(context, _GENERIC_DESCRIPTION),
        question=question,
        attempt_note=attempt_note,
        strictness=strictness,
    )


# ───────────────────────────────────────────────────────────────────
# Coaching chat
# ───────────────────────────────────────────────────────────────────

COACH_PROMPT = """\
You are an expert AI coach in the "My Best" app. You have full context about this user.

USER: {name}
{summary}

CURRENT GOALS:
{goals}

RECENT ACTIVITY:
{recent}

KEY TRAITS:
{traits}

YOUR ROLE:
- Answer questions about their training
- Provide motivation and support
- Give specific, actionable advice
- Reference their actual data and progress
- Suggest adjustments when appropriate

GUIDELINES:
- Be specific, not generic
- Reference their actual goals and performance
- Be encouraging but honest
- Keep responses focused (3-5 sentences unless more detail needed)
- Adapt your tone to their personality"""


def build_coach_prompt(condensed: CondensedContext) -> str:
    return COACH_PROMPT.format(
        name=condensed.name,
        summary=condensed.summary,
        goals='\n'.join(condensed.current_goals) or 'No active goals yet.',
        recent=condensed.recent_performance,
        traits=', '.join(condensed.key_traits) or 'Still learning about them',
    )


GOAL_QUESTIONS: Dict[str, List[str]] = {
    'darts': [
        'Do you have your own darts and dartboard?',
        'Have you ever played before, even casually?',
        "What's your typical score range (if you've played)?",
        'Do you want to focus on accuracy, consistency, or specific techniques?',
        'Are you interested in competitive play or just personal improvement?',
    ],
    'running': [
        "What's the longest distance you've run recently?",
        'Do you have any races or events you are training for?',
        'What terrain do you usually run on (road, trail, treadmill)?',
        'Do you have proper running shoes?',
        'Any history of running-related injuries?',
    ],
    'bodyweight': [
        'Can you currently do a push-up with good form?',
        'What about pull-ups, can you do any?',
        'Do you have access to any equipment (pull-up bar, resistance bands)?',
        'Are there specific movements you want to master (muscle-ups, handstands)?',
        'How flexible are you currently?',
    ],
    'weightloss': [
        "What's your current weight and goal weight?",
        'Have you tried losing weight before? What happened?',
        'How would you describe your current eating habits?',
        'Do you have any dietary restrictions or preferences?',
        'Are you open to tracking what you eat?',
    ],
    'football': [
        'What position do you play or want to play?',
        'Do you play on a team currently?',
        'What aspect of your game do you want to improve most?',
        'How often do you get to practice with others?',
        'Do you have access to a field or space to train?',
    ],
    'custom': [
        'What specifically do you want to achieve?',
        'What does success look like to you?',
        'What resources do you currently have for this goal?',
        "What's been your biggest challenge so far?",
        "How will you know when you've succeeded?",
    ],
}

GOAL_CHAT_PROMPT = """\
You are an expert AI coach helping a user define their goal and create a training plan.

USER CONTEXT:
{summary}
Key traits: {traits}
Recent performance: {recent}

GOAL:
Type: {goal_type}
Title: {goal_title}

SUGGESTED QUESTIONS (adapt based on conversation):
{questions}

GUIDELINES:
- Ask one or two questions at a time, not a wall of text
- Build on their answers naturally
- Be specific to {goal_type}
- After 3-5 exchanges, summarize what you've learned and confirm
- Don't repeat questions they've already answered"""


def build_goal_chat_prompt(goal_type: str, goal_title: str, condensed: CondensedContext) -> str:
    questions = GOAL_QUESTIONS.get(goal_type, GOAL_QUESTIONS['custom'])
    return GOAL_CHAT_PROMPT.format(
        summary=condensed.summary,
        traits=', '.join(condensed.key_traits) or 'Not yet known',
        recent=condensed.recent_performance,
        goal_type=goal_type,
        goal_title=goal_title,
        questions='\n'.join(f'{i}. {q}' for i, q in enumerate(questions, 1)),
    )


# ───────────────────────────────────────────────────────────────────
# Onboarding
# ───────────────────────────────────────────────────────────────────

ONBOARDING_QUESTION_COUNT = 10

ONBOARDING_PROMPT = """\
You are an empathetic and motivating AI coach for the "My Best" personal development app. \
You're conducting an onboarding interview to get to know the user.

YOUR PERSONALITY:
- Warm, encouraging, but not cheesy
- Genuinely curious about the user
- Use emojis sparingly (1-2 per message max)
- Keep responses concise (2-4 sentences unless asking options)

CURRENT PROGRESS:
Question {current} of {total}
{collected}

IMPORTANT RULES:
- NEVER accept invalid or nonsense answers
- If someone answers "blue" when you ask for days, ask again for the days of the week
- Be helpful and patient, not condescending
- If they want to skip, acknowledge it gracefully

QUESTIONS SEQUENCE:
1. Name (required)
2. What brought you here / motivation
3. Interests and hobbies
4. Current lifestyle (active/sedentary)
5. Past experience with self-improvement
6. Personality / how they handle challenges
7. Available days and times (required)
8. Physical limitations (optional, can skip)
9. Short-term success vision (2 weeks)
10. Long-term vision (3-6 months)

Respond naturally as if you're having a conversation."""


def build_onboarding_prompt(current_question: int, collected: Mapping[str, Any]) -> str:
    lines = [
        f'- {key}: {json.dumps(value, ensure_ascii=False)}'
        for key, value in collected.items()
        if value is not None
    ]
    collected_text = 'Already collected:\n' + '\n'.join(lines) if lines else 'Just starting.'
    return ONBOARDING_PROMPT.format(
        current=current_question,
        total=ONBOARDING_QUESTION_COUNT,
        collected=collected_text,
    )


PROFILE_EXTRACTION_PROMPT = """\
You are extracting structured data from an onboarding conversation.

Given the conversation below, extract the user's profile information into JSON.

IMPORTANT: You MUST respond with ONLY valid JSON, no other text. No markdown, no explanation.

Extract these fields (use null if not mentioned):
{
  "name": "user's name",
  "motivation": "why they want to improve",
  "interests": ["array", "of", "interests"],
  "lifestyle": "active/sedentary/mixed or description",
  "pastExperience": "their past self-improvement experience",
  "personality": "how they handle challenges",
  "availability": {
    "days": ["monday", "tuesday", etc],
    "timePreference": "morning/afternoon/evening/flexible"
  },
  "limitations": ["physical", "limitations"] or [],
  "shortTermGoal": "2 week goal",
  "longTermGoal": "3-6 month vision"
}

Respond with ONLY the JSON object, nothing else."""


# ───────────────────────────────────────────────────────────────────
# Goal summary & plan generation
# ───────────────────────────────────────────────────────────────────

GOAL_SUMMARY_PROMPT = """\
Based on the conversation, create a structured summary for plan generation.

RESPOND WITH VALID JSON:
{
  "goalSummary": {
    "title": "Refined goal title",
    "type": "goal type",
    "currentLevel": "beginner/intermediate/advanced",
    "targetLevel": "what they want to achieve",
    "specificObjectives": ["list", "of", "specific", "objectives"],
    "equipment": ["available", "equipment"],
    "constraints": ["any", "limitations", "or", "constraints"],
    "preferences": {
      "sessionLength": "preferred minutes",
      "intensity": "low/medium/high",
      "focus": "what to prioritize"
    }
  },
  "planRecommendation": {
    "microCycleDuration": "2-4 weeks",
    "macroCycleDuration": "2-3 months",
    "sessionsPerWeek": number,
    "focusAreas": ["what", "to", "focus", "on"],
    "milestones": ["key", "milestones", "to", "hit"]
  },
  "readyForPlan": boolean,
  "additionalQuestionsNeeded": ["if not ready, what else to ask"]
}"""

PLAN_GENERATION_PROMPT = """\
You are creating a personalized training plan for a user.

USER CONTEXT:
{summary}
Available: {days}
Session length: {minutes} minutes

GOAL DETAILS:
{goal}

CREATE TWO PLANS:

1. MICRO CYCLE (2-4 weeks):
- Immediate, actionable sessions
- Specific tasks with measurable targets
- Foundation building

2. MACRO CYCLE (2-3 months):
- Long-term roadmap
- Phase breakdown
- Progressive milestones

RESPOND WITH VALID JSON:
{{
  "microCycle": {{
    "title": "Plan title",
    "durationDays": number,
    "description": "What this plan achieves",
    "sessions": [
      {{
        "dayOffset": 0,
        "dayOfWeek": "monday",
        "title": "Session title",
        "description": "What we're working on",
        "durationMinutes": number,
        "tasks": [
          {{
            "name": "Task name",
            "description": "Detailed instructions",
            "type": "reps" | "time" | "input" | "media_required",
            "target": {{ "value": number, "unit": "reps" | "minutes" | "seconds" | "score" }},
            "tips": "Coaching tips"
          }}
        ]
      }}
    ],
    "expectedOutcomes": ["What user will achieve"]
  }},
  "macroCycle": {{
    "title": "3-Month Journey title",
    "durationMonths": 3,
    "phases": [
      {{
        "name": "Phase name",
        "weeks": number,
        "focus": "What to focus on",
        "objectives": ["specific", "objectives"],
        "milestones": ["measurable", "milestones"]
      }}
    ],
    "ultimateGoal": "End result description"
  }},
  "aiReasoning": "Why this plan was designed this way"
}}

IMPORTANT:
- Schedule sessions ONLY on available days: {days}
- Respect the {minutes} minute session limit
- Include rest days
- Progressive overload / difficulty increase
- Be specific with numbers and targets
- Tasks should be measurable"""


def build_plan_generation_prompt(
    goal_summary: Mapping[str, Any],
    condensed: CondensedContext,
    days: Iterable[str],
    minutes_per_session: int,
) -> str:
    return PLAN_GENERATION_PROMPT.format(
        summary=condensed.summary,
        days=', '.join(days) or 'flexible',
        minutes=minutes_per_session,
        goal=json.dumps(dict(goal_summary), indent=2, ensure_ascii=False),
    )


# ───────────────────────────────────────────────────────────────────
# Sessions
# ───────────────────────────────────────────────────────────────────

ANALYSIS_MARKER = '---JSON---'

PRE_SESSION_PROMPT = """\
You are giving a pre-session briefing to a user about to start their training.

SESSION: {title}

TASKS TODAY:
{tasks}
{previous}
Give a brief (2-3 sentences), encouraging message that:
1. Reminds them of the focus
2. Gives one key tip
3. Motivates them

Be specific to the training, not generic."""

POST_SESSION_PROMPT = """\
You are providing feedback after a training session.

TARGETS:
{targets}

ACTUAL RESULTS:
{results}
{user_feedback}
Provide constructive feedback (3-5 sentences) that:
1. Acknowledges what went well
2. Points out areas for improvement (if any)
3. Gives specific advice for next time
4. Encourages them

Be specific to their actual performance, not generic praise.

Also output a structured analysis:

{marker}
{{
  "performanceRating": 1-10,
  "hitTargets": boolean,
  "strengths": ["what", "they", "did", "well"],
  "improvements": ["what", "to", "work", "on"],
  "recommendation": "specific action for next session"
}}"""


def build_pre_session_prompt(
    session_title: str,
    tasks: Iterable[Mapping[str, Any]],
    previous_feedback: str | None = None,
) -> str:
    lines = []
    for i, task in enumerate(tasks, 1):
        description = task.get('description')
        lines.append(f"{i}. {task.get('name', '')}" + (f' - {description}' if description else ''))
    previous = f'\nFROM LAST SESSION: {previous_feedback}\n' if previous_feedback else ''
    return PRE_SESSION_PROMPT.format(title=session_title, tasks='\n'.join(lines), previous=previous)


def build_post_session_prompt(
    results: Mapping[str, Any],
    targets: Mapping[str, Any],
    user_feedback: str | None = None,
) -> str:
    return POST_SESSION_PROMPT.format(
        targets=json.dumps(dict(targets), indent=2, ensure_ascii=False),
        results=json.dumps(dict(results), indent=2, ensure_ascii=False),
        user_feedback=f'\nUSER SAID: "{user_feedback}"\n' if user_feedback else '',
        marker=ANALYSIS_MARKER,
    )


# ───────────────────────────────────────────────────────────────────
# Context injection
# ───────────────────────────────────────────────────────────────────

def with_system_prompt(messages: Iterable[MessageLike], system_text: str) -> List[Message]:
    """Prepend ``system_text`` to the (single) leading system message."""
    coerced = coerce_messages(messages)
    rest = [m for m in coerced if m.role != 'system']
    existing = next((m.content for m in coerced if m.role == 'system'), '')
    merged = f'{system_text}\n\n{existing}' if existing else system_text
    return [Message(role='system', content=merged)] + rest
