"""
Game session controller: tracks one module attempt and applies the
completion, break and mistake policies on every reported answer.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional
from uuid import uuid4

from api.schemas.game_schemas import GamePayload, GameTemplate
from api.schemas.profile_schemas import (
    SINGLE_QUESTION_MODULE_TYPES,
    CurriculumModule,
    SessionPerformanceLog,
    StressLevel,
)
from api.services.collaborators import AppStage, BuddyContext, BuddySpeech, Navigator
from api.services.profile_store import ProfileStore
from api.utils.common import iso_format
from api.utils.logger import get_logger

logger = get_logger(__name__)

TARGET_QUESTIONS = 5
MAX_MISTAKES_FOR_BREAK = 2
BREAK_MODULE_ID = "break_time"

NEXT_QUESTION_PRAISE_DELAY = 0.5
BREAK_EXIT_DELAY = 2.0
COMPLETION_EXIT_DELAY = 3.0

Schedule = Callable[[float, Callable[[], None]], None]


class SessionState(str, Enum):
    AWAITING_ANSWER = "AWAITING_ANSWER"
    PROCESSING = "PROCESSING"
    MODULE_COMPLETE = "MODULE_COMPLETE"
    BREAK_OFFERED = "BREAK_OFFERED"


@dataclass
class SessionStats:
    correct_count: int = 0
    mistake_count: int = 0
    consecutive_errors: int = 0
    questions_answered: int = 0
    start_time: float = field(default_factory=time.time)


def call_later(delay: float, fn: Callable[[], None]) -> None:
    """Default scheduler: run fn on the current event loop after delay seconds."""
    asyncio.get_running_loop().call_later(delay, fn)


def derive_stress_level(mistakes: int, break_threshold: int) -> StressLevel:
    if mistakes >= break_threshold:
        return StressLevel.HIGH
    if mistakes > 0:
        return StressLevel.MEDIUM
    return StressLevel.LOW


class GameSession:
    """
    Counter-driven controller for one active module.

    `handle_level_complete` is guarded: after the first call, further calls are
    ignored until the caller presents a new question and calls
    `reset_processing_flag()`.
    """

    def __init__(
        self,
        *,
        profile_store: ProfileStore,
        buddy_context: BuddyContext,
        speech: BuddySpeech,
        navigator: Navigator,
        trigger_break_offer: Callable[[], None],
        target_questions: int = TARGET_QUESTIONS,
        max_mistakes_for_break: int = MAX_MISTAKES_FOR_BREAK,
        schedule: Schedule = call_later,
        clock: Callable[[], float] = time.time,
    ):
        self.profile_store = profile_store
        self.buddy_context = buddy_context
        self.speech = speech
        self.navigator = navigator
        self.trigger_break_offer = trigger_break_offer
        self.target_questions = target_questions
        self.max_mistakes_for_break = max_mistakes_for_break
        self._schedule = schedule
        self._clock = clock

        self.active_module: Optional[CurriculumModule] = profile_store.active_module
        self.game_data: Optional[GamePayload] = None
        self.stats = SessionStats(start_time=clock())
        self._processing = False
        self._state = SessionState.AWAITING_ANSWER

    # ----- lifecycle -----

    def start(self, module: Optional[CurriculumModule]) -> None:
        """Begin a fresh attempt at `module` with zeroed stats."""
        self.active_module = module
        self.game_data = None
        self.stats = SessionStats(start_time=self._clock())
        self._processing = False
        self._state = SessionState.AWAITING_ANSWER
        logger.info("session started module_id=%s", module.id if module else None)

    def set_game_data(self, game_data: Optional[GamePayload]) -> None:
        self.game_data = game_data

    def reset_processing_flag(self) -> None:
        self._processing = False
        if self._state == SessionState.PROCESSING:
            self._state = SessionState.AWAITING_ANSWER

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_processing(self) -> bool:
        return self._processing

    # ----- entry point -----

    def handle_level_complete(self, success: bool) -> None:
        if self._processing:
            logger.debug("duplicate level completion ignored")
            return
        self._processing = True
        self._state = SessionState.PROCESSING

        if success:
            self._handle_success()
        else:
            self._handle_failure()

    # ----- policies -----

    @property
    def _is_break_activity(self) -> bool:
        module_is_break = self.active_module is not None and self.active_module.id == BREAK_MODULE_ID
        return module_is_break or bool(self.game_data and self.game_data.is_break)

    def _is_module_complete(self, answered: int) -> bool:
        if self.active_module is not None and self.active_module.type in SINGLE_QUESTION_MODULE_TYPES:
            return answered >= 1
        is_story = self.game_data is not None and self.game_data.template == GameTemplate.STORY
        return answered >= self.target_questions or is_story

    def _handle_success(self) -> None:
        self.profile_store.add_token()
        s = self.stats
        s.correct_count += 1
        s.questions_answered += 1
        s.consecutive_errors = 0
        self._notify(self.buddy_context.correct_answer, s.correct_count)

        if self._is_break_activity:
            self._state = SessionState.MODULE_COMPLETE
            self._say("That was fun! Feeling better!", priority="medium", emotion="happy")
            self._schedule(BREAK_EXIT_DELAY, self._go_to_curriculum)
            return

        if self._is_module_complete(s.questions_answered):
            self._complete_module()
        else:
            self._state = SessionState.AWAITING_ANSWER
            if self._buddy is not None:
                self._schedule(
                    NEXT_QUESTION_PRAISE_DELAY,
                    lambda: self._say("Nice!", priority="low", emotion="happy"),
                )

    def _handle_failure(self) -> None:
        s = self.stats
        s.mistake_count += 1
        s.consecutive_errors += 1
        self._notify(self.buddy_context.wrong_answer, s.consecutive_errors)

        if s.mistake_count >= self.max_mistakes_for_break:
            self._offer_break()

    def _complete_module(self) -> None:
        s = self.stats
        self._state = SessionState.MODULE_COMPLETE
        module = self.active_module

        if module is not None:
            self.profile_store.mark_module_complete(module.id)
            record = SessionPerformanceLog(
                id=f"log_{uuid4().hex}",
                module_id=module.id,
                module_title=module.title,
                timestamp=iso_format(datetime.now(timezone.utc).replace(tzinfo=None)),
                duration_seconds=max(0.0, self._clock() - s.start_time),
                correct_count=s.correct_count,
                mistake_count=s.mistake_count,
                stress_level=derive_stress_level(s.mistake_count, self.max_mistakes_for_break),
            )
            self.profile_store.log_session_performance(record)

        if s.mistake_count >= self.max_mistakes_for_break:
            self._offer_break()
        else:
            self._say("Amazing! You finished!", priority="high", emotion="excited")
            self._schedule(COMPLETION_EXIT_DELAY, self._go_to_curriculum)

    # ----- collaborator calls (fire-and-forget) -----

    @property
    def _buddy(self):
        return self.profile_store.buddy

    def _offer_break(self) -> None:
        if self._state != SessionState.MODULE_COMPLETE:
            self._state = SessionState.BREAK_OFFERED
        self._notify(self.trigger_break_offer)

    def _go_to_curriculum(self) -> None:
        self._notify(self.navigator.set_stage, AppStage.CURRICULUM_GENERATION)

    def _say(self, text: str, *, priority: str, emotion: Optional[str] = None) -> None:
        if self._buddy is None:
            return
        self._notify(self.speech.speak, text, None, priority, emotion)

    def _notify(self, fn: Callable, *args) -> None:
        try:
            fn(*args)
        except Exception:
            logger.exception("session collaborator %s failed", getattr(fn, "__name__", fn))
