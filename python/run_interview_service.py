#!/usr/bin/env python3
"""
Launch the interview service for one interview spec.
"""

from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path

import uvicorn


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run the interview engine HTTP service for a specific interview spec.",
    )
    parser.add_argument(
        "--interview-spec",
        required=True,
        help="Interview spec JSON path, or a bundled spec name (technical, behavioral).",
    )
    parser.add_argument("--host", default="0.0.0.0", help="Service bind host.")
    parser.add_argument("--port", type=int, default=8780, help="Service bind port.")
    parser.add_argument(
        "--output-dir",
        default=None,
        help="Override session record directory. Default: python/output.",
    )
    parser.add_argument("--log-level", default="info", help="Uvicorn log level.")
    return parser.parse_args()


def main() -> None:
    args = parse_args()

    os.environ["INTERVIEW_SPEC_PATH"] = args.interview_spec
    os.environ["SERVICE_HOST"] = args.host
    os.environ["SERVICE_PORT"] = str(args.port)
    if args.output_dir:
        os.environ["SESSION_OUTPUT_DIR"] = str(Path(args.output_dir).expanduser())

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    from interview_platform import load_interview_spec  # Import after env config
    from interview_service import create_app, load_service_config

    config = load_service_config()
    spec, spec_path = load_interview_spec(config.interview_spec_path)
    app = create_app(spec, output_dir=config.output_dir)

    print(
        f"Starting interview service interview={spec.interview_id} type={spec.interview_type.value} "
        f"bind=http://{config.host}:{config.port} output_dir={config.output_dir} "
        f"interview_spec={spec_path}"
    )
    uvicorn.run(app, host=config.host, port=config.port, log_level=args.log_level)


if __name__ == "__main__":
    main()
