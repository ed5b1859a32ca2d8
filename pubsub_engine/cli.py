"""
Command-line runner for load-test scripts.

Runs every scenario of a script for a number of concurrent virtual users and
prints the collected metrics as JSON.
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from dotenv import load_dotenv

from .config.script_loader import load_script, attach_processor
from .config.settings import ENGINE_NAME
from .exceptions import BaseEngineException
from .models.context import ExecutionContext
from .services.engine import PubSubEngine
from .utils.error_handler import get_error_metrics
from .utils.events import EventEmitter
from .utils.logger import configure_root_logger
from .utils.metrics_collector import MetricsCollector

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pubsub-engine", description="Pub/Sub load-test engine")
    sub = parser.add_subparsers(dest="command", required=True)
    run = sub.add_parser("run", help="Run the scenarios of a script")
    run.add_argument("script", help="Path to a JSON load-test script")
    run.add_argument("--vus", type=int, default=1, help="Virtual users per scenario")
    run.add_argument("--dry-run", action="store_true", help="Render messages without publishing")
    run.add_argument("--processor", default=None, help="Module providing custom step functions")
    run.add_argument("--log-level", default="INFO", help="Logging level")
    return parser


async def close_publishers(contexts: List[ExecutionContext]):
    """Stop every topic handle off the event loop; one failing close does not skip the rest"""
    for context in contexts:
        close = getattr(context.publisher, 'close', None)
        if close is None:
            continue
        try:
            await asyncio.to_thread(close)
        except Exception as e:
            logger.error(f"Failed to close topic handle for scenario {context.scenario_id}: {e}")


async def run_script(script: dict, vus: int, events: EventEmitter) -> List[Optional[BaseException]]:
    """Run each scenario ``vus`` times concurrently; returns one error slot per run"""
    engine = PubSubEngine(script, events)
    scenarios = [engine.create_scenario(spec) for spec in script.get('scenarios') or []]

    contexts = []
    runs = []
    for scenario in scenarios:
        for _ in range(max(0, vus)):
            context = ExecutionContext(vars=dict(script['config'].get('variables') or {}))
            contexts.append(context)
            runs.append(scenario(context))

    results = await asyncio.gather(*runs, return_exceptions=True)
    await close_publishers(contexts)

    return [result if isinstance(result, BaseException) else None for result in results]


def _cmd_run(args: argparse.Namespace) -> int:
    script = attach_processor(load_script(args.script), args.processor)
    if args.dry_run:
        engines = script['config'].setdefault('engines', {})
        engines.setdefault(ENGINE_NAME, {})['dryrun'] = True

    events = EventEmitter()
    collector = MetricsCollector().attach(events)

    errors = asyncio.run(run_script(script, args.vus, events))
    failed = [e for e in errors if e is not None]

    summary = collector.snapshot()
    summary['virtual_users'] = len(errors)
    summary['failed_virtual_users'] = len(failed)
    summary['errors'] = get_error_metrics()
    print(json.dumps(summary, indent=2, default=str))

    if failed:
        logger.error(f"{len(failed)} of {len(errors)} virtual user(s) failed; first error: {failed[0]}")
        return 1
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_root_logger(args.log_level)

    try:
        if args.command == "run":
            return _cmd_run(args)
    except BaseEngineException as e:
        e.log_error(logger)
        return 2
    parser.error(f"unknown command {args.command}")
    return 2


if __name__ == "__main__":
    sys.exit(main())
