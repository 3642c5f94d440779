"""
Interview spec loading.

A spec is named by a filesystem path or by the name of a bundled spec under
``specs/`` ("technical", "behavioral.json"). INTERVIEW_SPEC_PATH supplies the
value when no argument is given; a spec is always required.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from interview_platform.spec_models import InterviewSpec


logger = logging.getLogger(__name__)

PLATFORM_NAME = "Interview Engine"
SPECS_DIR = Path(__file__).resolve().parent / "specs"


def bundled_specs() -> tuple[str, ...]:
    """Names of the specs shipped with the package."""
    return tuple(sorted(p.stem for p in SPECS_DIR.glob("*.json")))


def resolve_spec_path(spec_path: str | None = None) -> Path:
    """
    Turn an explicit value or INTERVIEW_SPEC_PATH into an absolute path.

    Existing filesystem paths win; otherwise a bundled spec of that name is
    used when one exists. The returned path may not exist.
    """
    raw = (spec_path or os.environ.get("INTERVIEW_SPEC_PATH") or "").strip()
    if not raw:
        raise RuntimeError(
            "Interview spec path is required. Set INTERVIEW_SPEC_PATH or pass --interview-spec."
        )

    candidate = Path(raw).expanduser()
    if candidate.exists():
        return candidate.resolve()

    bundled = SPECS_DIR / (raw if raw.endswith(".json") else f"{raw}.json")
    if candidate.parent == Path(".") and bundled.exists():
        return bundled
    return candidate.resolve()


def _read_spec_json(path: Path) -> Any:
    if not path.exists():
        raise RuntimeError(
            f"Interview spec file not found at '{path}'. "
            f"Provide a valid --interview-spec path or one of: {', '.join(bundled_specs())}."
        )
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise RuntimeError(f"Failed to read interview spec '{path}': {exc}") from exc
    except json.JSONDecodeError as exc:
        raise RuntimeError(f"Interview spec at '{path}' is not valid JSON: {exc}") from exc


def load_interview_spec(spec_path: str | None = None) -> tuple[InterviewSpec, Path]:
    """
    Load and strictly validate an interview spec.

    Returns:
        (validated spec, resolved path)

    Raises:
        RuntimeError: Missing value, unreadable file, bad JSON or failed validation.
    """
    path = resolve_spec_path(spec_path)
    raw_spec = _read_spec_json(path)
    try:
        spec = InterviewSpec.model_validate(raw_spec)
    except ValidationError as exc:
        raise RuntimeError(f"Interview spec validation failed for '{path}': {exc}") from exc

    logger.info(
        "Loaded interview spec %s (%s) from %s",
        spec.interview_id,
        spec.interview_type.value,
        path,
    )
    return spec, path
