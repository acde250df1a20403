"""
HTTP surface tests using Flask's test client

The engine is wired with an in-memory repository and a scripted generation
client, so no model or network is needed.
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import json

import pytest

from app import create_app
from questionnaire.core.question_repository import InMemoryQuestionRepository
from questionnaire.errors import SessionCreationFailed
from questionnaire.service import build_engine
from questionnaire.settings import Settings


class ScriptedGenerationClient:
    def __init__(self, outputs=None):
        self.outputs = list(outputs or [])

    def generate(self, prompt, system_prompt=None):
        if not self.outputs:
            return "plain text"
        return self.outputs.pop(0)


class FailingResolver:
    def resolve(self, language):
        raise SessionCreationFailed("Question repository unavailable")


QUESTIONS = [
    {'id': 'q1', 'language': 'en', 'type': 'freetext', 'text': 'How are you?',
     'approved': True, 'status': 'approved'},
    {'id': 'q2', 'language': 'en', 'type': 'choice', 'text': 'How often do you rest?',
     'approved': True, 'status': 'approved',
     'options': [{'text': t, 'approved': True, 'status': 'approved', 'sort_order': i}
                 for i, t in enumerate(["Never", "Often"])]},
]


@pytest.fixture
def generation_client():
    return ScriptedGenerationClient()


@pytest.fixture
def engine(generation_client):
    config = Settings(SUBMISSIONS_DIR="", GENERATION_BACKEND="gemini")
    return build_engine(
        config,
        generation_client=generation_client,
        repository=InMemoryQuestionRepository(QUESTIONS)
    )


@pytest.fixture
def client(engine):
    app = create_app(engine)
    app.config['TESTING'] = True
    return app.test_client()


def post_json(client, url, payload):
    return client.post(url, data=json.dumps(payload), content_type='application/json')


def test_health(client):
    response = client.get('/api/health')

    assert response.status_code == 200
    assert response.get_json() == {'status': 'ok'}


def test_start_session(client):
    response = post_json(client, '/api/start-session', {'language': 'en'})

    assert response.status_code == 200
    data = response.get_json()
    assert data['totalQuestions'] == 2
    assert data['sessionId']

    print("✓ Start session endpoint test passed")


def test_start_session_defaults_to_english(client):
    response = client.post('/api/start-session')

    assert response.status_code == 200
    assert response.get_json()['totalQuestions'] == 2


def test_start_session_no_questions(client):
    response = post_json(client, '/api/start-session', {'language': 'de'})

    assert response.status_code == 422
    assert response.get_json()['success'] is False


def test_start_session_repository_down(engine):
    engine.resolver = FailingResolver()
    app = create_app(engine)

    response = post_json(app.test_client(), '/api/start-session', {'language': 'en'})

    assert response.status_code == 503


def test_chat_flow(client, generation_client):
    session_id = post_json(client, '/api/start-session', {'language': 'en'}).get_json()['sessionId']

    data = post_json(client, '/api/chat', {'sessionId': session_id, 'action': 'init_questionnaire'}).get_json()
    assert data['action'] == 'ask_readiness'

    data = post_json(client, '/api/chat', {
        'sessionId': session_id, 'action': 'confirm_readiness', 'userMessage': 'yes'
    }).get_json()
    assert data['action'] == 'ask_question'
    assert data['questionId'] == 'q1'
    assert data['nextQuestionText'] == 'How are you?'
    assert 'nextQuestion' not in data

    generation_client.outputs.append(json.dumps({'action': 'ask_question', 'confirmedAnswer': 'Good'}))
    data = post_json(client, '/api/chat', {
        'sessionId': session_id, 'action': 'answer', 'userMessage': 'Good', 'currentQuestionId': 'q1'
    }).get_json()
    assert data['questionId'] == 'q2'
    assert data['currentQuestionIndex'] == 1
    assert data['responses']['q1']['answer'] == 'Good'

    responses = client.get(f'/api/session/{session_id}/responses').get_json()
    assert responses['responses']['q1']['rawTranscript'] == 'Good'
    assert responses['totalQuestions'] == 2

    data = post_json(client, '/api/chat', {'sessionId': session_id, 'action': 'submit_final_responses'}).get_json()
    assert data['action'] == 'submitted'
    assert 'How are you? - Good' in data['assistantMessage']

    assert client.get(f'/api/session/{session_id}/responses').status_code == 404

    print("✓ Chat flow test passed")


def test_chat_unknown_session(client):
    response = post_json(client, '/api/chat', {'sessionId': 'nope', 'action': 'answer', 'userMessage': 'x'})

    assert response.status_code == 404
    assert 'nope' in response.get_json()['error']


def test_chat_missing_fields(client):
    assert post_json(client, '/api/chat', {'action': 'answer'}).status_code == 400
    assert post_json(client, '/api/chat', {'sessionId': 'abc'}).status_code == 400
    assert post_json(client, '/api/chat', {
        'sessionId': 'abc', 'action': 'answer', 'userMessage': 42
    }).status_code == 400
