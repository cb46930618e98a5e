"""Quick smoke test against a running gateway (uvicorn main:app)."""
import httpx

base = 'http://127.0.0.1:8000'

# 1. Health
r = httpx.get(f'{base}/health')
print(f'1. Health: {r.status_code} — {r.json()}')

# 2. Provider diagnostics
r = httpx.get(f'{base}/api/ai/providers')
providers = r.json()
print(f'2. Providers: {r.status_code} — order={providers["order"]} configured={providers["configured"]}')

# 3. Heuristic validation (no model call needed)
r = httpx.post(f'{base}/api/ai/validate', json={
    'input': "I'm free on mon and weekends",
    'context': 'days_available',
    'question': 'Which days can you train?',
})
print(f'3. Validate days: {r.status_code} — {r.json().get("parsedValue")}')

r = httpx.post(f'{base}/api/ai/validate', json={'input': 'blue', 'context': 'days_available'})
print(f'   Validate nonsense: valid={r.json()["isValid"]} follow-up={r.json().get("followUpQuestion")!r}')

# 4. Chat (canned reply when nothing is configured)
r = httpx.post(f'{base}/api/ai/chat', json={
    'messages': [{'role': 'user', 'content': 'Alex'}],
    'mode': 'onboarding',
}, timeout=90)
chat = r.json()
print(f'4. Chat: {r.status_code} — provider={chat["provider"]} model={chat["model"]} fallback={chat["fallback"]}')
print(f'   {chat["message"][:80]}...')

# 5. Profile extraction
r = httpx.post(f'{base}/api/ai/extract-profile', json={
    'conversation': [
        {'role': 'assistant', 'content': "What's your name?"},
        {'role': 'user', 'content': 'My name is Alex'},
        {'role': 'assistant', 'content': 'Which days work?'},
        {'role': 'user', 'content': 'weekends, mornings'},
    ],
}, timeout=90)
print(f'5. Extract profile: {r.status_code} — via {r.json()["provider"]}')

# 6. Context
r = httpx.post(f'{base}/api/ai/context', json={
    'identity': {'id': 'smoke-user', 'full_name': 'Smoke Test'},
    'profile': {'interests': '["darts"]', 'onboarding_completed': True},
    'goals': [{'id': 'g1', 'title': 'Darts accuracy', 'type': 'darts', 'progress': 10}],
})
print(f'6. Context: {r.status_code} — goals={r.json()["condensed"]["currentGoals"]}')

# 7. Plan generation (default plan when nothing is configured)
r = httpx.post(f'{base}/api/ai/generate-plan', json={
    'goalTitle': 'Darts accuracy',
    'goalType': 'darts',
    'schedule': {'days': ['mon', 'thu'], 'minutesPerSession': 30},
}, timeout=90)
plan = r.json()
print(f'7. Generate plan: {r.status_code} — via {plan["provider"]} fallback={plan["fallback"]}')

# 8. Session briefing
r = httpx.post(f'{base}/api/ai/session/briefing', json={
    'identity': {'id': 'smoke-user', 'full_name': 'Smoke Test'},
    'sessionTitle': 'Doubles Focus',
    'tasks': [{'name': 'Double 20 practice', 'type': 'reps'}],
}, timeout=90)
print(f'8. Session briefing: {r.status_code} — {r.json()["message"][:60]}')

print('\n=== ALL SMOKE TESTS PASSED ===')
