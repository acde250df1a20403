"""
Flask Web Application for the Conversational Questionnaire

JSON API over the Dialogue Engine. Session state lives in the engine's
SessionStore; this module only translates HTTP to engine calls.
"""

import logging
import os

from flask import Flask, jsonify, request

from questionnaire.errors import (
    NoEligibleQuestions,
    QuestionnaireError,
    SessionCreationFailed,
    SessionNotFound,
)
from questionnaire.service import build_engine
from questionnaire.settings import settings

logger = logging.getLogger(__name__)


def _error(message, status):
    return jsonify({'success': False, 'error': message}), status


def create_app(engine=None):
    """
    Create the Flask app

    Args:
        engine: DialogueEngine to serve (built from settings if None)
    """
    app = Flask(__name__)
    app.config['ENGINE'] = engine if engine is not None else build_engine(settings)

    @app.errorhandler(SessionNotFound)
    def handle_session_not_found(e):
        return _error(str(e), 404)

    @app.errorhandler(NoEligibleQuestions)
    def handle_no_questions(e):
        return _error(str(e), 422)

    @app.errorhandler(SessionCreationFailed)
    def handle_creation_failed(e):
        return _error(str(e), 503)

    @app.errorhandler(QuestionnaireError)
    def handle_questionnaire_error(e):
        logger.error(f"Unhandled questionnaire error: {type(e).__name__} - {e}")
        return _error(str(e), 500)

    @app.route('/api/health', methods=['GET'])
    def health():
        return jsonify({'status': 'ok'})

    @app.route('/api/start-session', methods=['POST'])
    def start_session():
        """Create a session for the requested language"""
        data = request.get_json(silent=True) or {}
        language = str(data.get('language') or 'en').strip()
        if not language:
            return _error("language must be a non-empty string", 400)

        started = app.config['ENGINE'].start_session(language)
        logger.info(f"Session started: {started.session_id} ({language}, {started.total_questions} questions)")
        return jsonify(started.to_dict())

    @app.route('/api/chat', methods=['POST'])
    def chat():
        """One dialogue turn"""
        data = request.get_json(silent=True) or {}
        session_id = data.get('sessionId')
        action = data.get('action')

        if not session_id:
            return _error("sessionId is required", 400)
        if not action:
            return _error("action is required", 400)

        utterance = data.get('userMessage', data.get('utterance')) or ""
        if not isinstance(utterance, str):
            return _error("userMessage must be a string", 400)

        result = app.config['ENGINE'].turn(
            session_id=session_id,
            action=action,
            utterance=utterance,
            current_question_id=data.get('currentQuestionId'),
            question_id_to_re_answer=data.get('questionIdToReAnswer')
        )
        return jsonify(result.to_dict())

    @app.route('/api/session/<session_id>/responses', methods=['GET'])
    def session_responses(session_id):
        """Current responses and progress"""
        return jsonify(app.config['ENGINE'].get_responses(session_id))

    return app


if __name__ == '__main__':
    logging.basicConfig(
        level=settings.log_level.upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    app = create_app()

    print("\n" + "=" * 60)
    print("CONVERSATIONAL QUESTIONNAIRE - API SERVER")
    print("=" * 60)
    print(f"\nBackend: {settings.generation_backend}")
    print("Listening on: http://localhost:5000")
    print("\nPress Ctrl+C to stop the server")
    print("=" * 60 + "\n")

    app.run(debug=os.environ.get('FLASK_DEBUG') == '1', host='0.0.0.0', port=5000)
