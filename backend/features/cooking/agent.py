# features/cooking/agent.py
"""
Cooking Agent - 비전 기반 조리 세션 오케스트레이터

모든 이벤트(세션 시작 / 프레임 / 사용자 메시지 / 타이머)는 SessionQueue에 들어가
하나씩 실행되고, 각 이벤트는 도구 호출 루프가 끝날 때까지 진행된다.

outputs (화면/음성 출력 협력자):
    async speak(message) -> bool
    async set_overlay(text, priority, ttl_seconds)
    async clear_overlay()
    async set_panel(cooking, next_step)
    async clear_panel()
recipes: RecipeStore 와 같은 find_by_dish / lookup_by_dish / save_completed_recipe
timers: TimerManager 와 같은 set_timer / cancel_timer / list_active_timers / clear_all
"""
import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from core.exceptions import RecipeStoreError, ToolLoopExceededError
from features.cooking import prompts
from features.cooking.queue import SessionQueue
from features.cooking.schemas import FrameAssessment, TimerFiredEvent, VisionFrame
from features.cooking.session import CookingPolicy, CookingSession
from features.cooking.speech_gate import (
    is_question,
    is_urgent,
    record_spoken,
    should_suppress,
    step_speech_block_reason,
    user_confirmed_completion,
)
from features.cooking.step_lock import clear_step, ingest_frame_assessment, propose_step
from features.cooking.tools import (
    TOOLS,
    parse_arguments,
    read_number_arg,
    read_optional_number_arg,
    read_priority_arg,
    read_string_arg,
)
from features.cooking.vision import (
    HISTORY_PROMPT_WINDOW,
    build_vision_history_text,
    format_history_entry,
    parse_frame_assessment,
)
from features.recipe.catalog import normalize_dish_key
from services.llm import get_function_calls, get_output_text, image_input, text_input
from utils.helpers import now_ms, parse_timestamp_ms

logger = logging.getLogger(__name__)

ToolHandler = Callable[[Dict[str, Any]], Awaitable[Dict[str, Any]]]


def _join_or(items: List[str], separator: str, empty: str) -> str:
    return separator.join(items) if items else empty


class CookingAgent:
    """조리모드 Agent - 단계 잠금 + 발화 게이트 + 도구 호출 루프"""

    def __init__(
        self,
        client,
        model: str,
        session: CookingSession,
        timers,
        outputs,
        recipes,
        policy: Optional[CookingPolicy] = None,
        verbose: bool = False,
        clock: Callable[[], int] = now_ms,
    ):
        self.client = client
        self.model = model
        self.session = session
        self.timers = timers
        self.outputs = outputs
        self.recipes = recipes
        self.policy = policy or CookingPolicy()
        self.verbose = verbose
        self.clock = clock
        self.queue = SessionQueue()

        self._handlers: Dict[str, ToolHandler] = {
            "speak": self._tool_speak,
            "stay_silent": self._tool_stay_silent,
            "set_timer": self._tool_set_timer,
            "cancel_timer": self._tool_cancel_timer,
            "update_plan": self._tool_update_plan,
            "update_state": self._tool_update_state,
            "lookup_recipe": self._tool_lookup_recipe,
            "set_panel": self._tool_set_panel,
            "clear_panel": self._tool_clear_panel,
            "set_overlay": self._tool_set_overlay,
            "clear_overlay": self._tool_clear_overlay,
            "complete_recipe": self._tool_complete_recipe,
        }

    # ─────────────────────────────────────────────
    # 이벤트 (모두 세션 큐를 거침)
    # ─────────────────────────────────────────────
    def initialize_with_recipe_idea(self, recipe_idea: str):
        return self.queue.submit(lambda: self._initialize(recipe_idea), "session_start")

    def process_frame(self, frame: VisionFrame):
        return self.queue.submit(lambda: self._process_frame(frame), "frame")

    def handle_user_message(self, message: str):
        return self.queue.submit(lambda: self._handle_user_message(message), "user_message")

    def handle_timer_fired(self, event: TimerFiredEvent):
        return self.queue.submit(lambda: self._handle_timer_fired(event), "timer_fired")

    async def reset_session(self):
        """진행 중인 작업은 중단하지 않고 상태만 초기화"""
        self.timers.clear_all()
        self.session.reset()
        await self.outputs.clear_overlay()
        await self.outputs.clear_panel()
        logger.info("[Cook Agent] 세션 초기화")

    async def _initialize(self, recipe_idea: str) -> Dict[str, Any]:
        session = self.session
        try:
            prior = await self.recipes.find_by_dish(recipe_idea)
        except RecipeStoreError as e:
            logger.warning(f"[Cook Agent] 저장 레시피 조회 실패: {e}")
            prior = None

        session.dish = recipe_idea
        session.reset_step_tracking()
        session.plan = recipe_idea
        session.active_dish_key = normalize_dish_key(recipe_idea)
        session.recipe_saved = False
        session.completion_confirmed = False
        session.speech.waiting_for_answer = False
        session.speech.last_question_text = ""
        session.record_conversation("user", recipe_idea)

        if prior:
            cooks = "cook" if prior.times_cooked == 1 else "cooks"
            session.add_observation(
                f'Loaded saved recipe for "{prior.dish}" ({prior.times_cooked} previous {cooks}).'
            )
            startup = prompts.STARTUP_WITH_PRIOR_RECIPE.format(
                recipe_idea=recipe_idea,
                dish=prior.dish,
                times_cooked=prior.times_cooked,
                completed_at=prior.completed_at,
                recipe=prior.recipe_text,
            )
        else:
            startup = prompts.STARTUP_WITHOUT_PRIOR_RECIPE.format(recipe_idea=recipe_idea)

        logger.info(f"[Cook Agent] 세션 시작: {recipe_idea} (저장 레시피: {'있음' if prior else '없음'})")
        await self._send_turn(text_input(startup))
        return {"restoredRecipe": prior is not None}

    async def _process_frame(self, frame: VisionFrame):
        session = self.session
        assessment = await self._analyze_frame(frame)
        entry = ingest_frame_assessment(session, assessment, parse_timestamp_ms(frame.taken_at))
        session.add_observation(f"vision: {format_history_entry(session.vision_history, entry)}")

        summary = self._build_frame_summary(frame, assessment)
        await self._send_turn(image_input(summary, frame.mime_type, frame.base64))

    async def _handle_user_message(self, message: str):
        speech = self.session.speech
        if user_confirmed_completion(message, speech.waiting_for_answer, speech.last_question_text):
            self.session.completion_confirmed = True
            logger.info("[Cook Agent] 사용자 완료 확인")
        speech.waiting_for_answer = False
        speech.last_question_text = ""

        self.session.record_conversation("user", message)
        await self._send_turn(text_input(prompts.USER_UPDATE_TEMPLATE.format(message=message)))

    async def _handle_timer_fired(self, event: TimerFiredEvent):
        self.session.active_timers = self.timers.list_active_timers()
        self.session.add_observation(
            f'Timer "{event["label"]}" fired at {event["firedAt"]} '
            f'(duration {event["durationSeconds"]}s).'
        )
        await self._send_turn(text_input(prompts.TIMER_EVENT_TEMPLATE.format(label=event["label"])))

    # ─────────────────────────────────────────────
    # 비전 판정
    # ─────────────────────────────────────────────
    async def _analyze_frame(self, frame: VisionFrame) -> FrameAssessment:
        """단일 프레임 판정. 모델 호출/파싱 실패는 안전한 기본값으로"""
        session = self.session
        history = session.vision_history
        last_frame = format_history_entry(history, history[-1]) if history else "(none yet)"
        context = prompts.VISION_CONTEXT_TEMPLATE.format(
            taken_at=frame.taken_at,
            plan=session.plan or "(none yet)",
            locked_step=session.locked_step or "(not set yet)",
            pending_step=session.pending_step or "(none)",
            completed_steps=_join_or(session.completed_steps, " | ", "(none yet)"),
            history=build_vision_history_text(history, HISTORY_PROMPT_WINDOW),
            last_frame=last_frame,
        )

        output_text = ""
        try:
            response = await self.client.responses.create(
                model=self.model,
                instructions=prompts.VISION_ANALYSIS_PROMPT,
                store=False,
                input=image_input(context, frame.mime_type, frame.base64),
            )
            output_text = get_output_text(response)
        except Exception as e:
            logger.warning(f"[Cook Agent] 프레임 판정 실패: {e}")

        return parse_frame_assessment(output_text, has_locked_step=bool(session.locked_step))

    def _build_frame_summary(self, frame: VisionFrame, assessment: FrameAssessment) -> str:
        session = self.session
        if not session.locked_step:
            gate_line = "No locked step exists yet. Set the first step when ready."
        elif session.frame_allows_advance:
            gate_line = (
                f'Locked step appears complete: "{session.locked_step}". '
                "You may advance exactly one step now."
            )
        else:
            gate_line = (
                f'Locked step still in progress: "{session.locked_step}". '
                "Do not advance to a new step."
            )

        timers = [f"{timer['label']} ({timer['endsAt']})" for timer in session.active_timers]
        return prompts.FRAME_TURN_TEMPLATE.format(
            taken_at=frame.taken_at,
            plan=session.plan or "(none yet)",
            dish=session.dish or "(not set yet)",
            locked_step=session.locked_step or "(not set yet)",
            pending_step=session.pending_step or "(none)",
            observation=assessment.observation,
            status=assessment.step_status,
            confidence=assessment.confidence,
            reason=assessment.reason,
            history=build_vision_history_text(session.vision_history),
            gate_line=gate_line,
            completed_steps=_join_or(session.completed_steps, " | ", "(none yet)"),
            timers=_join_or(timers, ", ", "(none)"),
            observations=_join_or(session.recent_observations[-8:], " | ", "(none)"),
        )

    # ─────────────────────────────────────────────
    # 도구 호출 루프
    # ─────────────────────────────────────────────
    async def _create_response(self, input_items: List[Dict[str, Any]], tool_choice: Optional[str] = None):
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "instructions": prompts.SYSTEM_PROMPT,
            "tools": TOOLS,
            "store": True,
            "input": input_items,
        }
        if self.session.previous_response_id:
            kwargs["previous_response_id"] = self.session.previous_response_id
        if tool_choice:
            kwargs["tool_choice"] = tool_choice

        response = await self.client.responses.create(**kwargs)
        self.session.previous_response_id = response.id
        return response

    async def _send_turn(self, input_items: List[Dict[str, Any]]):
        response = await self._create_response(input_items, tool_choice="auto")
        await self._resolve_response(response)

    async def _resolve_response(self, response):
        """도구 호출이 없을 때까지 반복 (최대 max_tool_rounds)"""
        for round_index in range(self.policy.max_tool_rounds):
            calls = get_function_calls(response)
            if not calls:
                text = get_output_text(response)
                if text:
                    # 자동 발화하지 않고 기록만
                    self.session.record_conversation("assistant", text)
                    self.session.add_observation(f"assistant_note: {text}")
                    if self.verbose:
                        logger.info(f"[assistant] {text}")
                return

            results = []
            for call in calls:
                results.append(await self._execute_function_call(call))

            logger.debug(f"[Cook Agent] round {round_index + 1}: {[call.name for call in calls]}")
            response = await self._create_response(results)

        logger.error(f"[Cook Agent] 도구 호출 루프 {self.policy.max_tool_rounds}회 초과")
        raise ToolLoopExceededError(self.policy.max_tool_rounds)

    async def _execute_function_call(self, call) -> Dict[str, str]:
        args = parse_arguments(call.arguments)
        handler = self._handlers.get(call.name)

        if handler is None:
            result = {"ok": False, "error": f"Unknown tool: {call.name}"}
        else:
            try:
                result = await handler(args)
            except ValueError as e:  # ToolArgumentError 포함
                result = {"ok": False, "error": str(e)}

        self.session.record_conversation(
            "tool", f"{call.name}({call.arguments}) => {json.dumps(result, ensure_ascii=False)}"
        )
        return {
            "type": "function_call_output",
            "call_id": call.call_id,
            "output": json.dumps(result, ensure_ascii=False),
        }

    # ─────────────────────────────────────────────
    # 도구 구현
    # ─────────────────────────────────────────────
    async def _tool_speak(self, args: Dict[str, Any]) -> Dict[str, Any]:
        message = read_string_arg(args, "message")
        now = self.clock()

        reason = (
            step_speech_block_reason(self.session, message, now, self.policy)
            or should_suppress(self.session.speech, message, now, self.policy)
        )
        if reason:
            logger.debug(f"[Cook Agent] 발화 억제 ({reason}): {message}")
            return {"ok": True, "suppressed": True, "reason": reason}

        voiced = await self.outputs.speak(message)
        if not voiced:
            return {"ok": False, "error": "voice_output_failed"}

        record_spoken(self.session.speech, message, now)
        self.session.record_conversation("assistant", message)
        if not is_question(message) and not is_urgent(message):
            self.session.last_routine_speech_at_ms = now
        if self.verbose:
            logger.info(f"[assistant:speak] {message}")
        return {"ok": True}

    async def _tool_stay_silent(self, args: Dict[str, Any]) -> Dict[str, Any]:
        reason = read_string_arg(args, "reason")
        self.session.add_observation(f"stay_silent: {reason}")
        return {"ok": True, "silent": True}

    async def _tool_set_timer(self, args: Dict[str, Any]) -> Dict[str, Any]:
        duration = read_number_arg(args, "duration_seconds")
        label = read_string_arg(args, "label")
        timer = self.timers.set_timer(duration, label)
        self.session.active_timers = self.timers.list_active_timers()
        return {"ok": True, "timer": timer}

    async def _tool_cancel_timer(self, args: Dict[str, Any]) -> Dict[str, Any]:
        label = read_string_arg(args, "label")
        cancelled = self.timers.cancel_timer(label)
        self.session.active_timers = self.timers.list_active_timers()
        return {"ok": cancelled}

    async def _tool_update_plan(self, args: Dict[str, Any]) -> Dict[str, Any]:
        self.session.update_plan(read_string_arg(args, "changes"))
        return {"ok": True}

    async def _tool_update_state(self, args: Dict[str, Any]) -> Dict[str, Any]:
        self.session.add_observation(read_string_arg(args, "observation"))
        return {"ok": True}

    async def _tool_lookup_recipe(self, args: Dict[str, Any]) -> Dict[str, Any]:
        dish = read_string_arg(args, "dish")
        try:
            lookup = await self.recipes.lookup_by_dish(dish)
        except RecipeStoreError as e:
            return {"ok": False, "found": False, "query": dish, "error": str(e)}
        result = lookup.to_tool_result()
        if lookup.found:
            self.session.add_observation(
                f'recipe_lookup: "{dish}" -> "{result["dish"]}" ({result["matchType"]})'
            )
        else:
            self.session.add_observation(f'recipe_lookup: no match for "{dish}"')
        return result

    async def _tool_set_panel(self, args: Dict[str, Any]) -> Dict[str, Any]:
        cooking = read_string_arg(args, "cooking")
        next_step = read_string_arg(args, "next_step")
        result = propose_step(self.session, cooking, next_step, self.policy)
        if result["ok"]:
            await self.outputs.set_panel(cooking, self.session.locked_step)
        return result

    async def _tool_clear_panel(self, args: Dict[str, Any]) -> Dict[str, Any]:
        await self.outputs.clear_panel()
        clear_step(self.session)
        return {"ok": True}

    async def _tool_set_overlay(self, args: Dict[str, Any]) -> Dict[str, Any]:
        text = read_string_arg(args, "text")
        priority = read_priority_arg(args, "priority")
        ttl_seconds = read_optional_number_arg(args, "ttl_seconds")
        await self.outputs.set_overlay(text, priority, ttl_seconds)
        return {"ok": True}

    async def _tool_clear_overlay(self, args: Dict[str, Any]) -> Dict[str, Any]:
        await self.outputs.clear_overlay()
        return {"ok": True}

    async def _tool_complete_recipe(self, args: Dict[str, Any]) -> Dict[str, Any]:
        dish = args.get("dish")
        recipe = args.get("recipe")
        if not isinstance(dish, str) or not isinstance(recipe, str) or not dish.strip() or not recipe.strip():
            return {"ok": False, "saved": False, "error": "Both dish and recipe are required."}
        dish, recipe = dish.strip(), recipe.strip()
        session = self.session

        dish_key = normalize_dish_key(dish)
        if not dish_key:
            return {"ok": False, "saved": False, "error": "Could not normalize dish name."}
        if not session.active_dish_key:
            return {"ok": False, "saved": False, "error": "No active cooking session."}
        if dish_key != session.active_dish_key:
            return {
                "ok": False,
                "saved": False,
                "error": f'Dish "{dish}" does not match active session dish.',
            }
        if session.recipe_saved:
            return {"ok": True, "saved": False, "reason": "already_saved_for_session"}
        if not session.completion_confirmed:
            return {
                "ok": False,
                "saved": False,
                "error": "Recipe can only be saved after user confirms the dish is finished.",
            }

        try:
            saved = await self.recipes.save_completed_recipe(dish, recipe)
        except RecipeStoreError as e:
            logger.warning(f"[Cook Agent] 레시피 저장 실패: {e}")
            return {"ok": False, "saved": False, "error": str(e)}
        session.recipe_saved = True
        session.completion_confirmed = False
        cooks = "cook" if saved.times_cooked == 1 else "cooks"
        session.add_observation(
            f'Saved completed recipe "{saved.dish}" ({saved.times_cooked} total {cooks}).'
        )
        return {"ok": True, "saved": True, "recipe": saved.model_dump()}
