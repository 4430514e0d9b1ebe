"""
Shared profile state: the child's profile, curriculum, generated content
mirrored in memory, progress and session logs.

Executors write generated content here; the pack loader and the prefetcher
observe it through listeners.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as DBSession

from api.models.models import CompletedModule, SessionLogRecord
from api.schemas.profile_schemas import (
    Buddy,
    Curriculum,
    CurriculumModule,
    SessionPerformanceLog,
    UserProfile,
)
from api.services.collaborators import AppStage
from api.utils.logger import get_logger
from infra.cache.store import CachedPack

logger = get_logger(__name__)

Listener = Callable[[str, Any], None]


class ProfileStore:
    """In-memory profile state with optional durable progress."""

    def __init__(
        self,
        *,
        profile: Optional[UserProfile] = None,
        buddy: Optional[Buddy] = None,
        session_factory: Optional[Callable[[], DBSession]] = None,
    ):
        self.profile = profile
        self.buddy = buddy
        self.curriculum: Optional[Curriculum] = None
        self.active_module: Optional[CurriculumModule] = None
        self.stage: AppStage = AppStage.DASHBOARD
        self.module_contents: Dict[str, CachedPack] = {}
        self.completed_module_ids: List[str] = []
        self.tokens: int = 0
        self.session_logs: List[SessionPerformanceLog] = []
        self._session_factory = session_factory
        self._listeners: List[Listener] = []

    # ----- observers -----

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, field: str, value: Any) -> None:
        for listener in list(self._listeners):
            try:
                listener(field, value)
            except Exception:
                logger.exception("profile listener failed field=%s", field)

    # ----- mutators -----

    def set_profile(self, profile: UserProfile) -> None:
        self.profile = profile
        self._notify("profile", profile)

    def set_buddy(self, buddy: Optional[Buddy]) -> None:
        self.buddy = buddy
        self._notify("buddy", buddy)

    def set_curriculum(self, curriculum: Curriculum) -> None:
        self.curriculum = curriculum
        logger.info("curriculum set branch=%s modules=%s", curriculum.branch, len(curriculum.all_modules()))
        self._notify("curriculum", curriculum)

    def set_active_module(self, module: Optional[CurriculumModule]) -> None:
        self.active_module = module
        self._notify("active_module", module)

    def set_stage(self, stage: AppStage) -> None:
        self.stage = stage
        self._notify("stage", stage)

    def cache_module_content(self, module_id: str, pack: CachedPack) -> None:
        self.module_contents = {**self.module_contents, module_id: pack}
        self._notify("module_contents", module_id)

    def mark_module_complete(self, module_id: str) -> None:
        if module_id in self.completed_module_ids:
            return
        self.completed_module_ids = [*self.completed_module_ids, module_id]
        self._persist(CompletedModule(module_id=module_id))
        self._notify("completed_module_ids", module_id)

    def add_token(self) -> None:
        self.tokens += 1
        self._notify("tokens", self.tokens)

    def spend_tokens(self, amount: int) -> None:
        self.tokens = max(0, self.tokens - amount)
        self._notify("tokens", self.tokens)

    def log_session_performance(self, record: SessionPerformanceLog) -> None:
        self.session_logs = [*self.session_logs, record]
        self._persist(
            SessionLogRecord(
                id=record.id,
                module_id=record.module_id,
                module_title=record.module_title,
                timestamp=record.timestamp,
                duration_seconds=record.duration_seconds,
                correct_count=record.correct_count,
                mistake_count=record.mistake_count,
                stress_level=record.stress_level.value,
            )
        )
        logger.info(
            "session logged module_id=%s correct=%s mistakes=%s stress=%s",
            record.module_id, record.correct_count, record.mistake_count, record.stress_level.value,
        )
        self._notify("session_logs", record)

    def _persist(self, row: Any) -> None:
        if self._session_factory is None:
            return
        try:
            with self._session_factory() as db:
                db.merge(row)
                db.commit()
        except SQLAlchemyError as e:
            # Progress is mirrored in memory; a failed write must not break the session.
            logger.warning("failed to persist %s: %s", type(row).__name__, e, exc_info=True)

    def load_progress(self) -> None:
        """Rehydrate completed modules and session logs from the database."""
        if self._session_factory is None:
            return
        with self._session_factory() as db:
            self.completed_module_ids = [r.module_id for r in db.query(CompletedModule).order_by(CompletedModule.completed_at.asc()).all()]
            self.session_logs = [
                SessionPerformanceLog(
                    id=r.id,
                    module_id=r.module_id,
                    module_title=r.module_title,
                    timestamp=r.timestamp,
                    duration_seconds=r.duration_seconds,
                    correct_count=r.correct_count,
                    mistake_count=r.mistake_count,
                    stress_level=r.stress_level,
                )
                for r in db.query(SessionLogRecord).order_by(SessionLogRecord.timestamp.asc()).all()
            ]
