"""
Console Test Harness for the Dialogue Engine

Drives one questionnaire session from the terminal using the configured
generation backend (see questionnaire/settings.py).
"""

import logging
import sys

from questionnaire.errors import QuestionnaireError
from questionnaire.service import build_engine
from questionnaire.settings import settings
from questionnaire.utils.dialogue_states import ClientAction, ReplyAction

logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

EXIT_COMMANDS = {'quit', 'exit', 'stop'}


def print_separator(char="=", length=60):
    print(char * length)


def next_action(turn_result):
    """Client action implied by the last reply"""
    if turn_result.action == ReplyAction.ASK_READINESS.value:
        return ClientAction.CONFIRM_READINESS
    if turn_result.state == 'awaiting_readiness':
        return ClientAction.CONFIRM_READINESS
    if turn_result.predicted_option:
        return ClientAction.CONFIRM_VAGUE_ANSWER
    return ClientAction.ANSWER


def print_debug_info(turn_result):
    if not turn_result.debug:
        return
    print("-" * 60)
    for key, value in turn_result.debug.items():
        print(f"{key}: {value}")
    print("-" * 60)


def main():
    """Run console session"""
    print_separator()
    print("CONVERSATIONAL QUESTIONNAIRE - CONSOLE TEST")
    print_separator()

    language = input("Language code [en]: ").strip() or "en"
    show_debug = '--debug' in sys.argv

    try:
        engine = build_engine(settings)
        started = engine.start_session(language)
    except (QuestionnaireError, ValueError) as e:
        print(f"\nFailed to start session: {e}")
        return 1

    session_id = started.session_id
    print(f"\nSession {session_id} with {started.total_questions} questions")
    print("Type 'repeat' to hear the question again, 'explain' for help with it, 'submit' to finish, 'quit' to exit\n")

    result = engine.turn(session_id, ClientAction.INIT_QUESTIONNAIRE.value)

    while True:
        print(f"\nAssistant: {result.assistant_message}\n")
        if show_debug:
            print_debug_info(result)

        if result.action == ReplyAction.SUBMITTED.value:
            break

        try:
            user_input = input("> ").strip()
        except (KeyboardInterrupt, EOFError):
            print("\n\nSession interrupted by user")
            break

        if user_input.lower() in EXIT_COMMANDS:
            break

        if user_input.lower() == 'submit' or (result.state == 'completed' and not user_input):
            action = ClientAction.SUBMIT_FINAL_RESPONSES
        elif user_input.lower() == 'repeat':
            action = ClientAction.REPEAT_QUESTION
        elif user_input.lower() == 'explain':
            action = ClientAction.EXPLAIN
        elif not user_input:
            print("Please enter a response.")
            continue
        else:
            action = next_action(result)

        try:
            result = engine.turn(
                session_id,
                action.value,
                utterance=user_input,
                current_question_id=result.question_id
            )
        except QuestionnaireError as e:
            print(f"\nERROR: {e}")
            break

    print_separator()
    print("Console test complete")
    print_separator()
    return 0


if __name__ == '__main__':
    sys.exit(main())
