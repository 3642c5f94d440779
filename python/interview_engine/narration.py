"""
Question narration adapter.

Pre-renders question audio with the OpenAI speech API and stores it as files
under an audio directory. Any failure returns None so the session narrates the
question live instead.

Environment:
    NARRATION_MODEL: Speech model (default: gpt-4o-mini-tts)
    NARRATION_VOICE: Voice name (default: alloy)
"""

from __future__ import annotations

import logging
import os
import uuid
from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os
from openai import AsyncOpenAI


__all__ = ["OpenAiNarrator"]


logger = logging.getLogger(__name__)


class OpenAiNarrator:
    """
    Narrator collaborator backed by OpenAI text-to-speech.

    Example:
        >>> narrator = OpenAiNarrator(Path("./output/audio/sess_1"))
        >>> handle = await narrator.synthesize("Explain database indexing.")
        >>> await narrator.release([handle])
    """

    def __init__(
        self,
        audio_dir: Path,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
        voice: Optional[str] = None,
    ) -> None:
        self.audio_dir = Path(audio_dir)
        self._client = client
        self.model = model or os.environ.get("NARRATION_MODEL", "gpt-4o-mini-tts")
        self.voice = voice or os.environ.get("NARRATION_VOICE", "alloy")

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI()
        return self._client

    async def synthesize(self, text: str) -> Optional[str]:
        """Render ``text`` to an mp3 file and return its path, or None."""
        if not text.strip():
            return None
        try:
            response = await self._get_client().audio.speech.create(
                model=self.model,
                voice=self.voice,
                input=text,
            )
            await aiofiles.os.makedirs(self.audio_dir, exist_ok=True)
            path = self.audio_dir / f"{uuid.uuid4().hex}.mp3"
            async with aiofiles.open(path, "wb") as f:
                await f.write(response.content)
        except Exception as exc:  # noqa: BLE001 - null handle means live narration
            logger.warning("Narration failed, falling back to live speech: %s", exc)
            return None
        logger.debug("Narrated %d chars to %s", len(text), path)
        return str(path)

    async def release(self, handles: list[str]) -> None:
        """Delete stored audio files; missing files are ignored."""
        removed = 0
        for handle in handles:
            try:
                await aiofiles.os.remove(handle)
                removed += 1
            except FileNotFoundError:
                continue
            except OSError as exc:
                logger.warning("Could not delete narration audio %s: %s", handle, exc)
        logger.info("Released %d narration files", removed)
