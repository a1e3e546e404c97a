"""Command-line helpers for inspecting and editing persisted flags."""

from __future__ import annotations

import argparse
import asyncio
import inspect
import json
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator, Sequence

from pydantic import ValidationError
from redis.asyncio import Redis

from flag_engine.core.bucketing import bucket
from flag_engine.core.models import FlagDefinition
from flag_engine.log import configure_logging
from flag_engine.services.engine import FlagEngine
from flag_engine.services.persistence import RedisSnapshotStore
from flag_engine.settings import settings


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flag-engine",
        description="Inspect and edit feature flags stored in Redis",
    )
    parser.add_argument("--redis-url", help="Redis URL, defaults to FLAG_ENGINE_REDIS_URL")
    parser.add_argument("--log-level", default="WARNING", help="Log level for engine output")
    subparsers = parser.add_subparsers(dest="command")

    bucket_parser = subparsers.add_parser("bucket", help="Print the rollout bucket of subjects")
    bucket_parser.add_argument("subjects", nargs="+", help="Subject identifiers")
    bucket_parser.set_defaults(handler=_handle_bucket)

    list_parser = subparsers.add_parser("list", help="List every registered flag")
    list_parser.set_defaults(handler=_handle_list)

    evaluate_parser = subparsers.add_parser("evaluate", help="Evaluate a flag for a subject")
    evaluate_parser.add_argument("key", help="Flag key")
    evaluate_parser.add_argument("--subject", help="Subject identifier")
    evaluate_parser.add_argument("--group", action="append", default=[], help="Group membership, repeatable")
    evaluate_parser.set_defaults(handler=_handle_evaluate)

    set_parser = subparsers.add_parser("set", help="Create or replace a flag")
    set_parser.add_argument("key", help="Flag key")
    set_parser.add_argument("--value", default="true", help="Flag value, parsed as JSON when possible")
    set_parser.add_argument("--disabled", action="store_true", help="Turn the master switch off")
    set_parser.add_argument("--rollout", type=int, help="Rollout percentage, clamped to 0-100")
    set_parser.add_argument("--group", action="append", help="Allowed group, repeatable")
    set_parser.add_argument("--user", action="append", help="Allowed subject, repeatable")
    set_parser.add_argument("--expires-in-days", type=float, help="Expire the flag after this many days")
    set_parser.set_defaults(handler=_handle_set)

    remove_parser = subparsers.add_parser("remove", help="Remove a flag")
    remove_parser.add_argument("key", help="Flag key")
    remove_parser.set_defaults(handler=_handle_remove)

    clear_parser = subparsers.add_parser("clear", help="Remove every flag and the stored snapshot")
    clear_parser.set_defaults(handler=_handle_clear)

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP admin API")
    serve_parser.set_defaults(handler=_handle_serve)

    return parser


def _connect(url: str) -> Redis:
    return Redis.from_url(url)


@asynccontextmanager
async def _open_engine(
    args: argparse.Namespace,
    subject_id: str | None = None,
    groups: Sequence[str] | None = None,
) -> AsyncIterator[FlagEngine]:
    redis = _connect(args.redis_url or settings.redis_url)
    engine = FlagEngine(RedisSnapshotStore(redis, settings.storage_key))
    try:
        await engine.initialize(subject_id, groups)
        yield engine
    finally:
        await engine.aclose()
        await redis.aclose()


def _parse_value(raw: str) -> Any:
    try:
        return json.loads(raw)
    except ValueError:
        return raw


async def _handle_bucket(args: argparse.Namespace) -> int:
    for subject in args.subjects:
        print(f"{subject}\t{bucket(subject)}")
    return 0


async def _handle_list(args: argparse.Namespace) -> int:
    async with _open_engine(args) as engine:
        for definition in sorted(engine.get_all_flags(), key=lambda item: item.key):
            print(json.dumps(definition.to_storage(), sort_keys=True))
    return 0


async def _handle_evaluate(args: argparse.Namespace) -> int:
    async with _open_engine(args, args.subject, args.group) as engine:
        evaluation = engine.evaluate(args.key)
        print(
            args.key,
            "enabled" if evaluation.enabled else "disabled",
            f"reason={evaluation.reason.value}",
        )
    return 0


async def _handle_set(args: argparse.Namespace) -> int:
    expires_at = None
    if args.expires_in_days is not None:
        expires_at = datetime.now(timezone.utc) + timedelta(days=args.expires_in_days)
    try:
        definition = FlagDefinition(
            key=args.key,
            value=_parse_value(args.value),
            enabled=not args.disabled,
            rollout_percentage=args.rollout,
            user_groups=frozenset(args.group) if args.group else None,
            user_ids=frozenset(args.user) if args.user else None,
            expires_at=expires_at,
        )
    except ValidationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    async with _open_engine(args) as engine:
        engine.set_flag(definition)
    print("Stored", json.dumps(definition.to_storage(), sort_keys=True))
    return 0


async def _handle_remove(args: argparse.Namespace) -> int:
    async with _open_engine(args) as engine:
        removed = engine.remove_flag(args.key)
    if not removed:
        print(f"Flag not found: {args.key}", file=sys.stderr)
        return 1
    print("Removed", args.key)
    return 0


async def _handle_clear(args: argparse.Namespace) -> int:
    async with _open_engine(args) as engine:
        engine.clear()
    print("Cleared all flags")
    return 0


def _handle_serve(args: argparse.Namespace) -> int:  # pragma: no cover - starts a server
    import uvicorn

    if args.redis_url:
        settings.redis_url = args.redis_url
    uvicorn.run(
        "flag_engine.web.application:get_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        workers=settings.workers_count,
        reload=settings.reload,
    )
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    handler = getattr(args, "handler", None)
    if handler is None:
        parser.print_help()
        return 1
    configure_logging(args.log_level)
    if inspect.iscoroutinefunction(handler):
        return asyncio.run(handler(args))
    return handler(args)


if __name__ == "__main__":  # pragma: no cover - manual execution guard
    raise SystemExit(main())
