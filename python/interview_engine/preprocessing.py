"""
Chunked preprocessing pipeline.

Prepares main questions ahead of the live turn cycle in fixed-size chunks:
ideal answer (or rubric) with sources, narrated audio, and for technical
questions the medium/hard depth siblings, each enriched the same way. A chunk
becomes ready only after every question in it (siblings included) has been
processed. At most one chunk is processed at a time.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .collaborators import (
    DepthQuestionGenerator,
    Evaluator,
    Narrator,
    Persistence,
    call_with_timeout,
)
from .models import Difficulty, Question, QuestionCategory
from .orchestrator import QueueOrchestrator


__all__ = ["ChunkPreprocessor"]


logger = logging.getLogger(__name__)


class ChunkPreprocessor:
    """
    Background preparation of Q1 chunks.

    Queue state is only touched through the orchestrator
    (``enrich_question`` / ``stage_depth_questions``); readiness is mirrored
    to persistence through ``mark_chunk_ready``.

    Example:
        >>> pre = ChunkPreprocessor(orchestrator, evaluator, narrator, depth, store)
        >>> await pre.preprocess_chunk(0)      # synchronous first batch
        >>> pre.schedule(1)                    # background next batch
        >>> await pre.wait_until_ready(1, timeout=1.0)
        True
    """

    def __init__(
        self,
        orchestrator: QueueOrchestrator,
        evaluator: Evaluator,
        narrator: Optional[Narrator],
        depth_generator: Optional[DepthQuestionGenerator],
        persistence: Persistence,
        *,
        collaborator_timeout: float = 30.0,
        narration_timeout: float = 20.0,
    ) -> None:
        self._orchestrator = orchestrator
        self._evaluator = evaluator
        self._narrator = narrator
        self._depth_generator = depth_generator
        self._persistence = persistence
        self.collaborator_timeout = collaborator_timeout
        self.narration_timeout = narration_timeout

        self._ready: set[int] = set()
        self._events: dict[int, asyncio.Event] = {}
        self._tasks: dict[int, asyncio.Task[None]] = {}
        self._lock = asyncio.Lock()
        self._active_chunk: Optional[int] = None

    @property
    def ready_chunks(self) -> list[int]:
        return sorted(self._ready)

    @property
    def active_chunk(self) -> Optional[int]:
        """Chunk currently being processed, if any."""
        return self._active_chunk

    def is_ready(self, chunk_index: int) -> bool:
        return chunk_index in self._ready

    def _event(self, chunk_index: int) -> asyncio.Event:
        event = self._events.get(chunk_index)
        if event is None:
            event = asyncio.Event()
            self._events[chunk_index] = event
        return event

    async def preprocess_chunk(self, chunk_index: int) -> None:
        """Process one chunk; a no-op when it is already ready."""
        async with self._lock:
            if chunk_index in self._ready:
                return
            self._active_chunk = chunk_index
            try:
                questions = self._orchestrator.chunk_questions(chunk_index)
                logger.info(
                    "Preprocessing chunk %d (%d questions)",
                    chunk_index,
                    len(questions),
                )
                for question in questions:
                    await self._prepare(question)

                await self._persistence.mark_chunk_ready(chunk_index)
                self._ready.add(chunk_index)
                self._event(chunk_index).set()
                logger.info("Chunk %d ready", chunk_index)
            finally:
                self._active_chunk = None

    async def _enrich(self, question: Question) -> None:
        ideal = await call_with_timeout(
            self._evaluator.generate_ideal_answer(question.text),
            self.collaborator_timeout,
            None,
            f"Ideal answer for {question.id}",
        )

        audio_ref = None
        if self._narrator is not None:
            audio_ref = await call_with_timeout(
                self._narrator.synthesize(question.text),
                self.narration_timeout,
                None,
                f"Narration for {question.id}",
            )

        self._orchestrator.enrich_question(question, ideal=ideal, audio_ref=audio_ref)

    async def _prepare(self, question: Question) -> None:
        await self._enrich(question)

        if (
            self._depth_generator is None
            or not self._orchestrator.depth_enabled
            or question.category != QuestionCategory.TECHNICAL
            or not question.has_criteria
            or question.is_asked
        ):
            return

        depth = await call_with_timeout(
            self._depth_generator.generate_depth_questions(question.text, question.ideal_answer or ""),
            self.collaborator_timeout,
            None,
            f"Depth questions for {question.id}",
        )
        if not depth:
            return

        texts: dict[Difficulty, str] = {}
        for key, text in depth.items():
            try:
                texts[Difficulty(str(key).lower())] = text
            except ValueError:
                logger.debug("Ignoring unknown depth tier '%s' for %s", key, question.id)
        for sibling in await self._orchestrator.stage_depth_questions(question, texts):
            await self._enrich(sibling)

    async def _run(self, chunk_index: int) -> None:
        try:
            await self.preprocess_chunk(chunk_index)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001 - background job must not kill the session
            logger.error("Preprocessing chunk %d failed: %s", chunk_index, exc, exc_info=True)

    def schedule(self, chunk_index: int) -> Optional[asyncio.Task[None]]:
        """
        Start background preprocessing of a chunk.

        Returns the running task, or None when the chunk does not exist or is
        already ready. Repeated calls never start a second job for the same chunk.
        """
        if chunk_index < 0 or chunk_index >= self._orchestrator.chunk_count:
            return None
        if chunk_index in self._ready:
            return None
        task = self._tasks.get(chunk_index)
        if task is not None and not task.done():
            return task
        task = asyncio.create_task(self._run(chunk_index))
        self._tasks[chunk_index] = task
        logger.debug("Scheduled preprocessing for chunk %d", chunk_index)
        return task

    async def wait_until_ready(self, chunk_index: int, timeout: float) -> bool:
        """
        Wait for a chunk's readiness flag, scheduling it if needed.

        Returns:
            True when ready, False if ``timeout`` elapsed first.
        """
        if chunk_index in self._ready:
            return True
        self.schedule(chunk_index)
        try:
            await asyncio.wait_for(self._event(chunk_index).wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def cancel(self) -> None:
        """Cancel any in-flight chunk jobs."""
        pending = [task for task in self._tasks.values() if not task.done()]
        for task in pending:
            task.cancel()
        for task in pending:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks.clear()
