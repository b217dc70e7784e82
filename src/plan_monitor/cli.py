from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from .client import HttpJobClient, MockJobBackend, MockJobClient
from .config import get_api_settings, get_layout_config, get_mock_settings, get_polling_settings, load_config
from .console import PlanConsole
from .constants import DEFAULT_DOMAIN
from .errors import SyncError
from .io_utils import _load_document
from .layout import build_layout, find_cycle
from .logging_utils import configure_logging, pretty
from .models import JobSnapshot, Task
from .synchronizer import PollingSynchronizer, TerminationReason


def _load_cli_config(args: argparse.Namespace) -> Optional[dict[str, Any]]:
    path = Path(args.config).expanduser() if args.config else None
    config, err = load_config(path)
    if err:
        sys.stderr.write(f"Invalid config: {err}\n")
        return None
    return config


def _tasks_from_document(data: Any) -> list[Task]:
    """Accept a bare task list, a plan object or a full status payload."""
    if isinstance(data, dict) and "status" in data:
        snapshot = JobSnapshot.from_dict(data)
        return list(snapshot.tasks or ())
    if isinstance(data, dict) and isinstance(data.get("plan"), dict):
        data = data["plan"]
    if isinstance(data, dict):
        data = data.get("tasks")
    if not isinstance(data, list):
        raise ValueError("expected a task list, a plan with 'tasks', or a status payload")
    return [Task.from_dict(item) for item in data if isinstance(item, dict)]


async def _run_watch(args: argparse.Namespace, config: dict[str, Any]) -> int:
    api = get_api_settings(config)
    polling = get_polling_settings(config)

    client: Any
    if args.mock:
        client = MockJobClient(MockJobBackend(seconds_per_task=get_mock_settings(config).seconds_per_task))
    else:
        client = HttpJobClient(args.api_url or api.base_url, timeout_seconds=api.timeout_seconds)

    fetch_timeout = polling.fetch_timeout_seconds
    if args.no_fetch_timeout:
        fetch_timeout = None
    elif args.fetch_timeout is not None:
        fetch_timeout = args.fetch_timeout

    console = PlanConsole()
    sync = PollingSynchronizer(
        client,
        interval_seconds=args.interval or polling.interval_seconds,
        fetch_timeout_seconds=fetch_timeout,
        layout_config=get_layout_config(config),
        listeners=[console],
    )
    try:
        try:
            await sync.start(args.query, args.domain, args.solution)
        except SyncError as exc:
            logger.debug("Watch aborted: {}", exc)
            return 1
        await sync.wait_terminated()
    finally:
        await sync.aclose()
        if isinstance(client, HttpJobClient):
            await client.aclose()

    console.print_layout(sync.current_plan_layout())
    return 0 if sync.termination_reason is TerminationReason.COMPLETED else 1


def _watch(args: argparse.Namespace) -> int:
    if args.interval is not None and args.interval <= 0:
        sys.stderr.write("--interval must be positive\n")
        return 1
    if args.fetch_timeout is not None and args.fetch_timeout <= 0:
        sys.stderr.write("--fetch-timeout must be positive\n")
        return 1
    config = _load_cli_config(args)
    if config is None:
        return 1
    try:
        return asyncio.run(_run_watch(args, config))
    except KeyboardInterrupt:
        sys.stderr.write("Interrupted\n")
        return 130


def _layout(args: argparse.Namespace) -> int:
    config = _load_cli_config(args)
    if config is None:
        return 1
    try:
        tasks = _tasks_from_document(_load_document(Path(args.file).expanduser()))
    except ValueError as exc:
        sys.stderr.write(f"{exc}\n")
        return 1

    cycle = find_cycle(tasks)
    if cycle:
        logger.warning("Dependency cycle: {}", " -> ".join(cycle))

    plan_layout = build_layout(tasks, get_layout_config(config))
    if args.format == "json":
        sys.stdout.write(pretty(plan_layout.to_dict()) + "\n")
        return 0

    console = PlanConsole()
    if args.format == "tree":
        console.print_tree(tasks)
    else:
        console.print_layout(plan_layout)
    return 0


def _mock_server(args: argparse.Namespace) -> int:
    import uvicorn

    from .server import create_app

    config = _load_cli_config(args)
    if config is None:
        return 1
    backend = MockJobBackend(seconds_per_task=get_mock_settings(config).seconds_per_task)
    uvicorn.run(create_app(backend), host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Follow a chat job's task plan as it executes")
    parser.add_argument("--config", default=None, help="Config file (default: .plan_monitor/config.yaml)")
    parser.add_argument("--log-level", default="WARNING", help="Log level (default: WARNING)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    watch = subparsers.add_parser("watch", help="Start a chat job and follow its plan until it finishes")
    watch.add_argument("query")
    watch.add_argument("--domain", default=DEFAULT_DOMAIN)
    watch.add_argument("--solution", default=None, help="Optional solution hint sent with the query")
    source = watch.add_mutually_exclusive_group()
    source.add_argument("--api-url", default=None, help="Backend base URL (overrides config)")
    source.add_argument("--mock", action="store_true", help="Use the in-process mock backend")
    watch.add_argument("--interval", type=float, default=None, help="Polling interval in seconds")
    timeouts = watch.add_mutually_exclusive_group()
    timeouts.add_argument("--fetch-timeout", type=float, default=None, help="Per-fetch timeout in seconds")
    timeouts.add_argument("--no-fetch-timeout", action="store_true", help="Disable the per-fetch timeout")
    watch.set_defaults(func=_watch)

    layout_cmd = subparsers.add_parser("layout", help="Lay out a task list from a JSON/YAML file")
    layout_cmd.add_argument("file")
    layout_cmd.add_argument("--format", default="table", choices=["table", "json", "tree"])
    layout_cmd.set_defaults(func=_layout)

    mock = subparsers.add_parser("mock-server", help="Serve the mock chat backend")
    mock.add_argument("--host", default="127.0.0.1")
    mock.add_argument("--port", default=8000, type=int)
    mock.set_defaults(func=_mock_server)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    handler = getattr(args, "func", None)
    if handler is None:
        parser.print_help()
        return 1
    return int(handler(args) or 0)


if __name__ == "__main__":
    raise SystemExit(main())
