"""Command-line entry point for Inbox Scheduler."""

from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import datetime
from pathlib import Path

from inbox_scheduler.core import (
    AppSettings,
    CredentialBundle,
    ScheduleRequest,
    configure_logging,
    load_app_settings,
)
from inbox_scheduler.core.datetime_utils import display_epoch_ms, now_ms, to_epoch_ms
from inbox_scheduler.core.errors import SchedulingError
from inbox_scheduler.core.models import ScheduledAction
from inbox_scheduler.scheduling import SchedulerRegistry
from inbox_scheduler.storage import SqliteActionRepository
from inbox_scheduler.transport import GmailClient


def build_parser() -> argparse.ArgumentParser:
    """Create and configure the CLI argument parser."""
    parser = argparse.ArgumentParser(description="Inbox Scheduler deferred sending")
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to a .env file containing configuration overrides.",
    )
    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("info", help="Show configuration summary.")

    list_parser = subparsers.add_parser("list", help="List scheduled drafts.")
    list_parser.add_argument("--owner", required=True, help="Owner identity.")

    cancel_parser = subparsers.add_parser("cancel", help="Cancel a pending draft.")
    cancel_parser.add_argument("--owner", required=True, help="Owner identity.")
    cancel_parser.add_argument("--id", dest="action_id", required=True)

    schedule_parser = subparsers.add_parser(
        "schedule", help="Schedule an existing draft for later sending."
    )
    schedule_parser.add_argument("--owner", required=True, help="Owner identity.")
    schedule_parser.add_argument("--account", required=True, help="Sending account.")
    schedule_parser.add_argument("--thread-id", required=True)
    schedule_parser.add_argument("--draft-id", required=True)
    when = schedule_parser.add_mutually_exclusive_group(required=True)
    when.add_argument(
        "--at",
        type=datetime.fromisoformat,
        help="Due time as ISO 8601; naive values are treated as UTC.",
    )
    when.add_argument(
        "--in-seconds", type=int, help="Due time relative to now, in seconds."
    )
    schedule_parser.add_argument("--subject", default="")
    schedule_parser.add_argument("--to", default="")
    schedule_parser.add_argument("--access-token", required=True)
    schedule_parser.add_argument("--refresh-token", default="")
    schedule_parser.add_argument("--client-id", default="")
    schedule_parser.add_argument("--client-secret", default="")

    subparsers.add_parser(
        "worker", help="Restore wake timers and send drafts as they fall due."
    )
    return parser


def execute(args: argparse.Namespace, settings: AppSettings) -> int:
    """Execute the requested CLI command and return an exit code."""
    command = args.command or "info"
    if command == "info":
        print("Inbox Scheduler is ready.")
        print(f"Database path: {settings.storage.db_path}")
        print(f"Gmail API: {settings.gmail.api_base}")
        return 0
    if command == "list":
        return asyncio.run(_run_list(settings, args.owner))
    if command == "cancel":
        return asyncio.run(_run_cancel(settings, args.owner, args.action_id))
    if command == "schedule":
        return asyncio.run(_run_schedule(settings, args))
    if command == "worker":
        try:
            asyncio.run(_run_worker(settings))
        except KeyboardInterrupt:
            print("Worker stopped.")
        return 0
    return 2


def main() -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args()

    settings = load_app_settings(env_file=args.env_file)
    configure_logging(settings.logging)
    sys.exit(execute(args, settings))


def _registry(
    settings: AppSettings, repository: SqliteActionRepository
) -> SchedulerRegistry:
    return SchedulerRegistry(
        repository, GmailClient(settings.gmail), settings.scheduler
    )


async def _run_list(settings: AppSettings, owner: str) -> int:
    with SqliteActionRepository(settings.storage) as repository:
        registry = _registry(settings, repository)
        try:
            actions = await registry.get(owner).list()
        finally:
            await registry.close()

    if not actions:
        print("No scheduled drafts found.")
        return 0
    _print_actions(actions)
    return 0


async def _run_cancel(settings: AppSettings, owner: str, action_id: str) -> int:
    with SqliteActionRepository(settings.storage) as repository:
        registry = _registry(settings, repository)
        try:
            cancelled = await registry.get(owner).cancel(action_id)
        finally:
            await registry.close()

    if not cancelled:
        print(f"Action {action_id} not found or already processed.")
        return 1
    print(f"Cancelled {action_id}.")
    return 0


async def _run_schedule(settings: AppSettings, args: argparse.Namespace) -> int:
    if args.at is not None:
        due_at = to_epoch_ms(args.at)
    else:
        due_at = now_ms() + args.in_seconds * 1000
    request = ScheduleRequest(
        user_id=args.owner,
        account_email=args.account,
        thread_id=args.thread_id,
        draft_id=args.draft_id,
        due_at=due_at,
        subject=args.subject,
        to=args.to,
        credentials=CredentialBundle(
            access_token=args.access_token,
            refresh_token=args.refresh_token,
            client_id=args.client_id,
            client_secret=args.client_secret,
        ),
    )
    with SqliteActionRepository(settings.storage) as repository:
        registry = _registry(settings, repository)
        try:
            action = await registry.get(args.owner).schedule(request)
        except SchedulingError as exc:
            print(f"Schedule failed: {exc}")
            return 1
        finally:
            await registry.close()

    print(f"Scheduled {action.id} for {display_epoch_ms(action.due_at)}.")
    return 0


async def _run_worker(settings: AppSettings) -> None:
    with SqliteActionRepository(settings.storage) as repository:
        registry = _registry(settings, repository)
        restored = await registry.restore()
        print(f"Worker running; {restored} owner(s) with pending drafts.")
        try:
            await asyncio.Event().wait()
        finally:
            await registry.close()


def _print_actions(actions: list[ScheduledAction]) -> None:
    print(f"Showing {len(actions)} scheduled draft(s):")
    header = f"{'ID':<32}  {'Status':<9}  {'Due':<24}  Subject"
    print(header)
    print("-" * len(header))
    for action in actions:
        due_text = display_epoch_ms(action.due_at) or "-"
        subject = action.subject or "(no subject)"
        print(f"{action.id:<32}  {action.status.value:<9}  {due_text:<24}  {subject}")
        if action.error:
            print(f"{'':<32}  error: {action.error}")


if __name__ == "__main__":
    main()
