#!/usr/bin/env python3
"""
Scripted Interview Simulator.

Drives the interview service end to end with canned candidate answers from a
variant's sample question set, exactly as a browser client would: create a
session, begin, then post a final transcript and submit for every question
until the session completes.

Usage:
    # Start the service first:
    uv run python run_interview_service.py --interview-spec technical

    # In another terminal, run the simulator:
    uv run python simulate_interview.py

    # With custom options:
    uv run python simulate_interview.py --service-url http://localhost:8780 --variant behavioral
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from typing import Any, Final, Optional

import httpx

from variants import VariantPlugin, available_variants, load_variant

# =============================================================================
# Logging Configuration
# =============================================================================

logger: logging.Logger = logging.getLogger(__name__)


# =============================================================================
# Exit Codes
# =============================================================================

EXIT_SUCCESS: Final[int] = 0
EXIT_CONNECTION_ERROR: Final[int] = 1
EXIT_SERVICE_UNHEALTHY: Final[int] = 2
EXIT_SESSION_ERROR: Final[int] = 3
EXIT_INTERRUPTED: Final[int] = 130  # Standard SIGINT exit code


# =============================================================================
# Configuration
# =============================================================================

DEFAULT_SERVICE_URL: Final[str] = "http://127.0.0.1:8780"
DEFAULT_CANDIDATE_NAME: Final[str] = "Sarah Chen"
DEFAULT_VARIANT: Final[str] = "technical"

# Answer used for generated follow-up and depth questions
GENERIC_ANSWER: Final[str] = (
    "I would start from the requirements, pick the simplest design that meets "
    "them, and measure before optimizing further."
)
END_REQUEST_ANSWER: Final[str] = "No, I think that's everything, thank you."

MAX_TURNS: Final[int] = 50
TURN_DELAY_SECONDS: Final[float] = 0.0


# =============================================================================
# Answer selection
# =============================================================================

def answer_for(question: dict[str, Any], variant: VariantPlugin) -> str:
    """Pick the scripted answer for a question, falling back to a generic one."""
    if question.get("category") == "interruption":
        return END_REQUEST_ANSWER
    scripted = variant.scripted_answer(str(question.get("id", "")))
    return scripted or GENERIC_ANSWER


# =============================================================================
# Simulation Runner
# =============================================================================

async def run_simulation(
    service_url: str,
    candidate_name: str,
    variant_id: str,
    client: Optional[httpx.AsyncClient] = None,
    turn_delay: float = TURN_DELAY_SECONDS,
) -> tuple[int, dict[str, Any]]:
    """
    Run a scripted interview against the service.

    Args:
        service_url: Base URL of the interview service.
        candidate_name: Candidate display name.
        variant_id: Variant whose scripted answers are used.
        client: Optional pre-built client (tests bind one to the ASGI app).
        turn_delay: Seconds to wait between turns.

    Returns:
        (exit code, final session status)
    """
    variant = load_variant(variant_id)
    owns_client = client is None
    http = client or httpx.AsyncClient(base_url=service_url, timeout=60.0)
    final_status: dict[str, Any] = {}

    try:
        logger.info("Checking interview service health...")
        try:
            resp = await http.get("/health")
        except httpx.ConnectError:
            logger.error("Cannot connect to service at %s. Is it running?", service_url)
            logger.error("Start it with: uv run python run_interview_service.py --interview-spec <spec>")
            return EXIT_CONNECTION_ERROR, final_status
        if resp.status_code != 200:
            logger.error("Service not healthy: %d", resp.status_code)
            return EXIT_SERVICE_UNHEALTHY, final_status
        logger.info("Service healthy: %s", resp.json())

        logger.info("\n%s", "=" * 60)
        logger.info("Starting %s interview for: %s", variant.display_name, candidate_name)
        logger.info("%s\n", "=" * 60)

        try:
            resp = await http.post(
                "/sessions",
                json={
                    "candidate_name": candidate_name,
                    "consent": True,
                    "use_sample_questions": True,
                },
            )
        except httpx.RequestError as exc:
            logger.error("Failed to create session: %s", exc)
            return EXIT_SESSION_ERROR, final_status
        if resp.status_code != 200:
            logger.error("Failed to create session: %s", resp.text)
            return EXIT_SESSION_ERROR, final_status

        session_id = resp.json()["session_id"]
        logger.info("Session ready: %s", session_id)

        resp = await http.post(f"/sessions/{session_id}/begin")
        if resp.status_code != 200:
            logger.error("Failed to begin session: %s", resp.text)
            return EXIT_SESSION_ERROR, final_status
        status = resp.json()["session"]

        for turn in range(1, MAX_TURNS + 1):
            if status.get("screen") == "complete":
                break
            question = status.get("current_question")
            if not question:
                await asyncio.sleep(0.05)
                status = (await http.get(f"/sessions/{session_id}")).json()["session"]
                continue

            answer = answer_for(question, variant)
            truncated = f"{question['text'][:80]}..." if len(question["text"]) > 80 else question["text"]
            logger.info("\n[%d] Q (%s): %s", turn, question.get("id"), truncated)
            logger.info("    A: %s", answer)

            await http.post(
                f"/sessions/{session_id}/transcript",
                json={"text": answer, "is_final": True},
            )
            resp = await http.post(f"/sessions/{session_id}/submit")
            if resp.status_code != 200:
                logger.warning("Submit failed: %s", resp.text)
            status = resp.json().get("session", status)

            if turn_delay:
                await asyncio.sleep(turn_delay)
        else:
            logger.warning("Turn limit reached; ending session %s", session_id)
            resp = await http.post(f"/sessions/{session_id}/end", json={})
            status = resp.json().get("session", status)

        final_status = status
        logger.info("\n%s", "=" * 60)
        logger.info("Interview simulation complete!")
        logger.info("Outcome: %s", status.get("outcome"))
        logger.info("Questions asked: %s", status.get("queues", {}).get("questions_asked"))
        logger.info("Closing: %s", status.get("closing_message"))
        logger.info("%s", "=" * 60)
        return EXIT_SUCCESS, final_status
    finally:
        if owns_client:
            await http.aclose()


def main(
    service_url: str | None = None,
    candidate_name: str | None = None,
    variant_id: str | None = None,
) -> int:
    """
    Main entry point for the interview simulator.

    Returns:
        Exit code indicating success or failure.
    """
    resolved_url = service_url or os.environ.get("SERVICE_URL", DEFAULT_SERVICE_URL)
    resolved_candidate = candidate_name or os.environ.get("CANDIDATE_NAME", DEFAULT_CANDIDATE_NAME)
    resolved_variant = variant_id or os.environ.get("VARIANT_ID", DEFAULT_VARIANT)

    logger.info("=" * 60)
    logger.info("Interview Simulator")
    logger.info("=" * 60)
    logger.info("Target: %s", resolved_url)
    logger.info("Candidate: %s", resolved_candidate)
    logger.info("Variant: %s", resolved_variant)
    logger.info("")

    try:
        exit_code, _ = asyncio.run(
            run_simulation(
                service_url=resolved_url,
                candidate_name=resolved_candidate,
                variant_id=resolved_variant,
            )
        )
        return exit_code
    except KeyboardInterrupt:
        logger.info("\nSimulation interrupted")
        return EXIT_INTERRUPTED


def cli() -> None:
    """Command-line interface entry point with argument parsing."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Drive the interview service with scripted candidate answers.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run with defaults
    uv run python simulate_interview.py

    # Behavioral variant against a custom service URL
    uv run python simulate_interview.py --service-url http://localhost:9000 --variant behavioral

Environment Variables:
    SERVICE_URL      Interview service URL (default: http://127.0.0.1:8780)
    CANDIDATE_NAME   Candidate name (default: Sarah Chen)
    VARIANT_ID       Variant for scripted answers (default: technical)
        """,
    )
    parser.add_argument(
        "--service-url",
        type=str,
        default=None,
        help=f"Interview service URL (default: {DEFAULT_SERVICE_URL})",
    )
    parser.add_argument(
        "--candidate",
        type=str,
        default=None,
        dest="candidate_name",
        help=f"Candidate name (default: {DEFAULT_CANDIDATE_NAME})",
    )
    parser.add_argument(
        "--variant",
        type=str,
        default=None,
        choices=available_variants(),
        help=f"Variant id (default: {DEFAULT_VARIANT})",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    exit_code = main(
        service_url=args.service_url,
        candidate_name=args.candidate_name,
        variant_id=args.variant,
    )
    sys.exit(exit_code)


if __name__ == "__main__":
    cli()
