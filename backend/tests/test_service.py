import asyncio
import logging
from types import SimpleNamespace

import pytest

from core.exceptions import VoiceOutputError
from features.cooking.service import CookingHub
from features.recipe.store import RecipeStore


class FakeBroadcaster:
    def __init__(self):
        self.messages = []

    async def broadcast(self, message):
        self.messages.append(message)

    def types(self):
        return [message["type"] for message in self.messages]


class FakeTTS:
    def __init__(self, fail=False):
        self.fail = fail

    async def synthesize(self, text):
        if self.fail:
            raise RuntimeError("TTS request failed (500)")
        return {"mimeType": "audio/mpeg", "base64": "bXAz"}


class ScriptedResponses:
    def __init__(self):
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        return SimpleNamespace(id=f"resp_{len(self.calls)}", output=[], output_text="")


def _hub(tmp_path, tts=None, require_voice=True):
    broadcaster = FakeBroadcaster()
    hub = CookingHub(
        client=SimpleNamespace(responses=ScriptedResponses()),
        model="test-model",
        tts=tts or FakeTTS(),
        recipes=RecipeStore(str(tmp_path / "recipes.yaml")),
        broadcaster=broadcaster,
        require_voice=require_voice,
    )
    return hub, broadcaster


def test_speak_broadcasts_audio(tmp_path):
    hub, broadcaster = _hub(tmp_path)

    assert asyncio.run(hub.speak(" Flip it now. ")) is True

    speech = broadcaster.messages[0]
    assert speech["type"] == "speech"
    assert speech["text"] == "Flip it now."
    assert speech["audioBase64"] == "bXAz"
    assert speech["mimeType"] == "audio/mpeg"


def test_speak_failure_raises_when_voice_required(tmp_path):
    hub, _ = _hub(tmp_path, tts=FakeTTS(fail=True))

    with pytest.raises(VoiceOutputError):
        asyncio.run(hub.speak("Flip it now."))


def test_speak_failure_reports_error_when_voice_optional(tmp_path):
    hub, broadcaster = _hub(tmp_path, tts=FakeTTS(fail=True), require_voice=False)

    assert asyncio.run(hub.speak("Flip it now.")) is False
    assert broadcaster.types() == ["error"]


def test_overlay_expires_after_ttl(tmp_path):
    hub, broadcaster = _hub(tmp_path)

    async def scenario():
        await hub.set_overlay("FLIP NOW", "urgent", 1)
        assert hub.overlay["expiresAt"].endswith("Z")
        await asyncio.sleep(1.2)

    asyncio.run(scenario())

    assert hub.overlay is None
    assert broadcaster.types() == ["overlay_set", "overlay_clear"]


def test_overlay_without_ttl_stays(tmp_path):
    hub, _ = _hub(tmp_path)

    asyncio.run(hub.set_overlay("Whisk gently", "normal", None))

    assert hub.overlay == {"text": "Whisk gently", "priority": "normal", "expiresAt": None}


def test_panel_and_state(tmp_path):
    hub, broadcaster = _hub(tmp_path)

    async def scenario():
        await hub.set_panel("Pancakes", "Grab 2 eggs.")
        hub.timers.set_timer(60, "rest")
        await asyncio.sleep(0)
        state = hub.state_snapshot()
        await hub.shutdown()
        return state

    state = asyncio.run(scenario())

    assert hub.panel["nextStep"] == "Grab 2 eggs."
    assert [timer["label"] for timer in state["activeTimers"]] == ["rest"]
    assert broadcaster.types()[0] == "panel_set"
    assert "state" in broadcaster.types()


def test_start_session_publishes_state(tmp_path):
    hub, broadcaster = _hub(tmp_path)

    async def scenario():
        result = await hub.start_session("Pancakes")
        await hub.shutdown()
        return result

    assert asyncio.run(scenario()) == {"restoredRecipe": False}
    assert broadcaster.messages[-1]["type"] == "state"
    assert broadcaster.messages[-1]["state"]["dish"] == "Pancakes"


def test_ready_event(tmp_path):
    hub, _ = _hub(tmp_path)
    event = hub.ready_event()

    assert event["type"] == "ready"
    assert event["captureIntervalMs"] == 10000
    assert event["panel"] is None


class FailingBroadcaster(FakeBroadcaster):
    async def broadcast(self, message):
        raise ConnectionError("socket closed")


def test_background_task_failure_is_logged_and_released(tmp_path, caplog):
    hub, _ = _hub(tmp_path)
    hub.broadcaster = FailingBroadcaster()

    async def scenario():
        hub._on_timers_changed([])
        assert len(hub._tasks) == 1
        await asyncio.sleep(0.01)
        return len(hub._tasks)

    with caplog.at_level(logging.ERROR, logger="features.cooking.service"):
        remaining = asyncio.run(scenario())

    assert remaining == 0
    assert "백그라운드 작업 실패 (publish-state): socket closed" in caplog.text


def test_shutdown_cancels_background_tasks(tmp_path):
    hub, _ = _hub(tmp_path)

    async def scenario():
        task = hub._spawn(asyncio.sleep(10), "slow")
        await hub.shutdown()
        return task

    task = asyncio.run(scenario())

    assert task.cancelled()
    assert hub._tasks == set()
