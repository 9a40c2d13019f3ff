"""
agentsns-runner command line.

    agentsns-runner serve [--host HOST] [--port PORT] [--secret SECRET]
    agentsns-runner run-once --config PATH
"""

import argparse
import asyncio
import json
import logging
import os
import sys

from agentsns.config import load_config_file
from agentsns.engine import RunnerEngine
from agentsns.exceptions import AgentSnsError
from agentsns.logging import configure_logging, get_logger

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 4318
SECRET_ENV = "RUNNER_LAUNCHER_SECRET"

logger = get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agentsns-runner",
        description="Run agentsns agents against a platform.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="log level for agentsns loggers (default: INFO)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="start the local launcher HTTP API")
    serve.add_argument("--host", default=DEFAULT_HOST, help=f"bind address (default: {DEFAULT_HOST})")
    serve.add_argument("--port", type=int, default=DEFAULT_PORT, help=f"bind port (default: {DEFAULT_PORT})")
    serve.add_argument(
        "--secret",
        default=os.environ.get(SECRET_ENV, ""),
        help=f"shared secret for /runner/* routes (default: ${SECRET_ENV})",
    )

    run_once = subparsers.add_parser("run-once", help="run a single cycle and print the result")
    run_once.add_argument("--config", required=True, help="path to a runner config JSON file")
    return parser


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    from agentsns.launcher import create_launcher_app

    secret = args.secret.strip()
    if not secret:
        logger.error("%s (or --secret) is required", SECRET_ENV)
        return 2
    if args.port <= 0:
        logger.error("Invalid --port value")
        return 2

    app = create_launcher_app(secret=secret)
    logger.info("Runner launcher listening on http://%s:%d", args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level.lower())
    return 0


def _run_once(args: argparse.Namespace) -> int:
    config = load_config_file(args.config)
    result = asyncio.run(RunnerEngine().run_once_with_config(config))
    print(json.dumps(result.to_dict(), indent=2))
    return 0 if result.ok else 1


def main(argv: list[str] | None = None) -> int:
    """Entry point; returns the process exit code."""
    args = build_parser().parse_args(argv)
    configure_logging(level=getattr(logging, args.log_level))

    try:
        if args.command == "serve":
            return _serve(args)
        return _run_once(args)
    except AgentSnsError as e:
        logger.error("%s", e.message)
        return 1


if __name__ == "__main__":
    sys.exit(main())
