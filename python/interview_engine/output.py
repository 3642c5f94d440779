"""
Session record persistence.

Implements the Persistence collaborator: an ordered, in-memory session record
(questions in served order with insert-after support) optionally flushed to a
JSON file per session.

Stored questions are the same objects the orchestrator holds, so enrichment
made while a question is staged is visible in the next flush.

Output files are named: {session_id}_session.json

Last Grunted: 10/19/2026
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional

import aiofiles
import aiofiles.os
from pydantic import ValidationError

from .models import EvaluationResult, Question, SessionOutcome, SessionRecord, utc_timestamp


__all__ = [
    "JsonSessionStore",
    "SessionRecordStore",
    "SessionStoreError",
    "load_session_record",
]


logger = logging.getLogger(__name__)


class SessionStoreError(Exception):
    """Raised when reading or writing a session record fails."""

    def __init__(self, path: Path, cause: Exception) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"Session store I/O failed for {path}: {cause}")


class SessionRecordStore:
    """
    In-memory ordered session record.

    Example:
        >>> store = SessionRecordStore(record)
        >>> await store.insert_question(question)
        >>> await store.insert_question(followup, insert_after_id=question.id)
        >>> [q.id for q in store.record.questions]
        ['q_1', 'q_1_followup_1']
    """

    def __init__(self, record: SessionRecord) -> None:
        self.record = record

    async def insert_question(self, question: Question, insert_after_id: Optional[str] = None) -> None:
        existing = self.record.index_of(question.id)
        if existing >= 0:
            self.record.questions.pop(existing)

        if insert_after_id is None:
            self.record.questions.append(question)
        else:
            anchor = self.record.index_of(insert_after_id)
            if anchor < 0:
                logger.warning(
                    "Insert anchor %s missing; appending %s",
                    insert_after_id,
                    question.id,
                )
                self.record.questions.append(question)
            else:
                self.record.questions.insert(anchor + 1, question)
        await self._changed()

    async def delete_question(self, question_id: str) -> None:
        index = self.record.index_of(question_id)
        if index < 0:
            logger.warning("Delete of unknown question %s ignored", question_id)
            return
        self.record.questions.pop(index)
        await self._changed()

    async def record_answer(
        self,
        question_id: str,
        answer: str,
        evaluation: Optional[EvaluationResult],
    ) -> None:
        question = self.record.find(question_id)
        if question is None:
            logger.warning("Answer for unknown question %s not recorded", question_id)
            return
        # The orchestrator writes the fields on the shared object; only copies need them here
        if question.candidate_answer is None and question.is_asked:
            question.candidate_answer = answer
        if evaluation is not None and question.evaluation is None and question.is_asked:
            question.evaluation = evaluation
        await self._changed()

    async def mark_chunk_ready(self, chunk_index: int) -> None:
        if chunk_index not in self.record.ready_chunks:
            self.record.ready_chunks.append(chunk_index)
            self.record.ready_chunks.sort()
        await self._changed()

    async def complete_session(
        self,
        outcome: SessionOutcome,
        closing_message: Optional[str] = None,
    ) -> None:
        """Stamp the outcome and end time and flush."""
        self.record.outcome = outcome
        self.record.closing_message = closing_message
        self.record.ended_at = utc_timestamp()
        await self._changed()

    def summary(self) -> dict[str, Any]:
        """Outcome summary dispatched to output routes."""
        return {
            "session_id": self.record.session_id,
            "interview_id": self.record.interview_id,
            "interview_type": self.record.interview_type.value,
            "candidate_name": self.record.candidate_name,
            "started_at": self.record.started_at,
            "ended_at": self.record.ended_at,
            "outcome": self.record.outcome.value if self.record.outcome else None,
            "questions_answered": len(self.record.answered),
            "average_score": self.record.average_score,
            "closing_message": self.record.closing_message,
        }

    async def _changed(self) -> None:
        """Hook for subclasses that persist outside memory."""


class JsonSessionStore(SessionRecordStore):
    """
    Session record mirrored to ``{output_dir}/{session_id}_session.json``.

    Every mutation rewrites the file with aiofiles. Flushes are serialized and
    land through an atomic rename, so readers never see a partial record.

    Raises:
        SessionStoreError: If the directory or file cannot be written.
    """

    def __init__(self, record: SessionRecord, output_dir: Path) -> None:
        super().__init__(record)
        self.output_dir = Path(output_dir)
        self._flush_lock = asyncio.Lock()
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise SessionStoreError(self.output_dir, e) from e

    @property
    def path(self) -> Path:
        return self.output_dir / f"{self.record.session_id}_session.json"

    async def _changed(self) -> None:
        await self.flush()

    async def flush(self) -> Path:
        """Write the record to a temp file, then atomically replace the target."""
        async with self._flush_lock:
            data = self.record.model_dump(mode="json")
            data["_meta"] = {"written_at": utc_timestamp(), "version": "1.0"}
            tmp_path = self.path.with_name(self.path.name + ".tmp")
            try:
                async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                    await f.write(json.dumps(data, indent=2, ensure_ascii=False))
                await aiofiles.os.replace(tmp_path, self.path)
            except OSError as e:
                raise SessionStoreError(self.path, e) from e
        logger.debug("Flushed session record to %s", self.path)
        return self.path


async def load_session_record(path: Path) -> SessionRecord:
    """
    Load a session record written by JsonSessionStore.

    Raises:
        SessionStoreError: If the file is unreadable or invalid.
    """
    path = Path(path)
    try:
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            data = json.loads(await f.read())
    except (OSError, json.JSONDecodeError) as e:
        raise SessionStoreError(path, e) from e

    data.pop("_meta", None)
    try:
        return SessionRecord.model_validate(data)
    except ValidationError as e:
        raise SessionStoreError(path, e) from e
