import pytest

from features.cooking.session import CookingPolicy, CookingSession, SpeechState
from features.cooking.speech_gate import (
    is_routine_preference_question,
    record_spoken,
    relates_to_step,
    should_suppress,
    step_speech_block_reason,
    user_confirmed_completion,
)

POLICY = CookingPolicy()
NOW = 10_000_000


def _state(**kwargs) -> SpeechState:
    return SpeechState(**kwargs)


@pytest.mark.parametrize("state", [
    _state(last_spoken_key="stop! the pan is smoking.", last_spoken_at_ms=NOW - 1),
    _state(waiting_for_answer=True, last_question_at_ms=NOW - 1),
    _state(last_question_at_ms=NOW - 1),
])
def test_urgent_text_is_never_suppressed(state):
    assert should_suppress(state, "Stop! The pan is smoking.", NOW, POLICY) is None
    assert should_suppress(state, "Is the knife near the edge?", NOW, POLICY) is None


def test_duplicate_recent():
    state = _state()
    record_spoken(state, "Flip the pancake now.", NOW)

    assert should_suppress(state, "flip the  pancake now.", NOW + 1000, POLICY) == "duplicate_recent"
    later = NOW + POLICY.speech_repeat_cooldown_ms
    assert should_suppress(state, "Flip the pancake now.", later, POLICY) is None


def test_awaiting_answer_blocks_statements():
    state = _state()
    record_spoken(state, "Are the eggs cracked?", NOW)

    assert state.waiting_for_answer
    assert should_suppress(state, "Whisk the eggs.", NOW + 1000, POLICY) == "awaiting_answer"


def test_question_repeat_too_soon_while_waiting():
    state = _state()
    record_spoken(state, "Are the eggs cracked?", NOW)

    assert should_suppress(state, "Is the bowl ready?", NOW + 1000, POLICY) == "question_repeat_too_soon"
    later = NOW + POLICY.question_repeat_cooldown_ms
    assert should_suppress(state, "Is the bowl ready?", later, POLICY) == "awaiting_answer"


def test_routine_preference_question():
    state = _state()
    assert is_routine_preference_question("What kind of milk do you have?")
    assert not is_routine_preference_question("What kind of milk")
    assert should_suppress(state, "What kind of milk do you have?", NOW, POLICY) == "routine_preference_question"


def test_question_gap_too_short():
    state = _state(last_question_at_ms=NOW - 60_000)
    assert should_suppress(state, "Is the pan hot yet?", NOW, POLICY) == "question_gap_too_short"

    state = _state(last_question_at_ms=NOW - POLICY.min_question_gap_ms)
    assert should_suppress(state, "Is the pan hot yet?", NOW, POLICY) is None


def test_statement_passes():
    assert should_suppress(_state(), "Pour one ladle of batter.", NOW, POLICY) is None


def test_step_block_reasons():
    session = CookingSession(locked_step="Whisk the eggs in the bowl.", frame_allows_advance=False)

    assert step_speech_block_reason(session, "Now pour the batter into the pan.", NOW, POLICY) == (
        "blocked_next_step_until_visual_completion"
    )

    session.last_routine_speech_at_ms = NOW - 1000
    assert step_speech_block_reason(session, "Keep whisking the eggs.", NOW, POLICY) == (
        "step_waiting_repeat_suppressed"
    )

    session.last_routine_speech_at_ms = NOW - POLICY.routine_speak_min_gap_ms
    assert step_speech_block_reason(session, "Keep whisking the eggs.", NOW, POLICY) is None


def test_step_block_skips_urgent_questions_and_open_gate():
    session = CookingSession(locked_step="Whisk the eggs in the bowl.", frame_allows_advance=False)
    assert step_speech_block_reason(session, "Watch out, hot oil!", NOW, POLICY) is None
    assert step_speech_block_reason(session, "Ready for the pan?", NOW, POLICY) is None

    session.frame_allows_advance = True
    assert step_speech_block_reason(session, "Now pour the batter into the pan.", NOW, POLICY) is None


def test_relates_to_step():
    assert relates_to_step("Whisk the eggs.", "Keep whisking those eggs.")
    assert not relates_to_step("Whisk the eggs.", "Preheat the oven.")


@pytest.mark.parametrize("message, waiting, question, expected", [
    ("I'm done!", False, "", True),
    ("All done, thanks", False, "", True),
    ("We're done here", False, "", True),
    ("It's not done yet", False, "", False),
    ("I'm not finished", True, "Are you finished?", False),
    ("yes", True, "Is the dish finished?", True),
    ("Yep.", True, "Ready to wrap up?", True),
    ("yes", False, "Is the dish finished?", False),
    ("yes", True, "Is the pan hot?", False),
    ("yes please and more salt", True, "Are you done?", False),
    ("", True, "Are you done?", False),
])
def test_user_confirmed_completion(message, waiting, question, expected):
    assert user_confirmed_completion(message, waiting, question) is expected
