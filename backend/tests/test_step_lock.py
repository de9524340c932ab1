import re

import pytest

from features.cooking.schemas import FrameAssessment
from features.cooking.session import CookingSession
from features.cooking.step_lock import (
    clear_step,
    ingest_frame_assessment,
    is_same_step,
    is_step_too_broad,
    propose_step,
    sanitize_step,
)


def _assessment(status: str) -> FrameAssessment:
    return FrameAssessment(observation="bowl on bench", step_status=status, confidence=0.9, reason="visible")


@pytest.mark.parametrize("raw", [
    "Next step: Grab 2 eggs",
    "Step 3) Whisk the batter until smooth! Then rest it.",
    "- Pour one ladle of batter into the pan",
    "one two three four five six seven eight nine ten eleven twelve thirteen fourteen",
    "\n\n  Flip the pancake?\nsecond line",
    "...",
    "",
])
def test_sanitize_step_is_empty_or_short_sentence(raw):
    step = sanitize_step(raw)
    if step:
        assert step[-1] in ".!?"
        assert len(re.sub(r"[.!?]+$", "", step).split()) <= 12


def test_sanitize_step_strips_labels():
    assert sanitize_step("Next step: Grab 2 eggs") == "Grab 2 eggs."
    assert sanitize_step("Step 2: Crack the eggs.") == "Crack the eggs."
    assert sanitize_step("Whisk now! Then rest.") == "Whisk now!"


def test_sanitize_step_truncates_long_text():
    step = sanitize_step(" ".join(f"word{i}" for i in range(20)))
    assert step == " ".join(f"word{i}" for i in range(12)) + "."


@pytest.mark.parametrize("step", [
    "Analyze the ingredients.",
    "Gather all ingredients.",
    "Mix flour, then add milk.",
    "Add flour, sugar, salt.",
    "Add milk and eggs and sugar.",
    "1) Grab the flour.",
])
def test_broad_steps_are_rejected(step):
    assert is_step_too_broad(step)


def test_single_action_is_not_broad():
    assert not is_step_too_broad("Grab 2 eggs.")
    assert not is_step_too_broad("Crack the eggs into a bowl.")


def test_is_same_step():
    assert is_same_step("Grab 2 eggs.", "grab 2 eggs")
    assert is_same_step("Whisk the eggs.", "Whisk eggs gently.")
    assert not is_same_step("Grab 2 eggs.", "Crack the eggs into a bowl.")
    assert not is_same_step("", "Grab 2 eggs.")


def test_empty_step_is_blocked():
    session = CookingSession()
    result = propose_step(session, "pancakes", "  \n ")

    assert result["ok"] is False
    assert result["reason"] == "empty_step"
    assert session.locked_step is None


def test_broad_step_is_rejected_with_observation():
    session = CookingSession()
    result = propose_step(session, "pancakes", "Gather the ingredients")

    assert result["reason"] == "step_too_broad"
    assert "suggested_format" in result
    assert session.locked_step is None
    assert session.recent_observations[-1].startswith("step_rejected:")


def test_same_step_is_idempotent():
    session = CookingSession()
    propose_step(session, "pancakes", "Grab 2 eggs.")
    again = propose_step(session, "pancakes", "Grab 2 eggs.")

    assert again == {"ok": True, "step_locked": "Grab 2 eggs.", "advanced": False}
    assert session.completed_step_keys == set()
    assert session.completed_steps == []


def test_different_step_is_gated_until_frame_complete():
    session = CookingSession(dish="pancakes")
    propose_step(session, "pancakes", "Grab 2 eggs.")
    ingest_frame_assessment(session, _assessment("in_progress"), 1000)

    result = propose_step(session, "pancakes", "Crack the eggs into a bowl.")

    assert result["ok"] is False
    assert result["reason"] == "current_step_not_visually_complete"
    assert result["current_step"] == "Grab 2 eggs."
    assert result["requested_next_step"] == "Crack the eggs into a bowl."
    assert result["frame_status"] == "in_progress"
    assert session.locked_step == "Grab 2 eggs."
    assert session.pending_step == "Crack the eggs into a bowl."
    assert session.recent_observations[-1].startswith("step_gate_blocked:")


def test_pancake_session_advances_after_complete_frame():
    session = CookingSession(dish="pancakes")
    assert session.locked_step is None

    first = propose_step(session, "pancakes", "Grab 2 eggs.")
    assert first["ok"] is True
    assert first["advanced"] is False
    assert session.locked_step == "Grab 2 eggs."

    ingest_frame_assessment(session, _assessment("complete"), 1000)
    assert session.frame_allows_advance is True

    second = propose_step(session, "pancakes", "Crack the eggs into a bowl.")
    assert second["ok"] is True
    assert second["advanced"] is True
    assert session.locked_step == "Crack the eggs into a bowl."
    assert "grab 2 eggs" in session.completed_step_keys
    assert session.completed_steps == ["Grab 2 eggs."]


def test_frame_without_locked_step_allows_advance():
    session = CookingSession()
    ingest_frame_assessment(session, _assessment("unclear"), 1000)
    assert session.frame_allows_advance is True


def test_clear_step():
    session = CookingSession()
    propose_step(session, "pancakes", "Grab 2 eggs.")
    clear_step(session)

    assert session.locked_step is None
    assert session.pending_step is None
