"""Command-line interface for the user directory manager."""

from __future__ import annotations
import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Awaitable, Callable, Optional, Sequence

import anyio

from userdir.cache import CacheStatus
from userdir.config import ConfigurationError, Settings, config_path_from_env, load_settings
from userdir.coordinator import MutationOutcome
from userdir.dialogs import AddOpen, ConfirmDelete, EditOpen
from userdir.models import FormData, User
from userdir.notifications import CollectingNotifier
from userdir.session import DirectorySession

logger = logging.getLogger("userdir.main")

_KNOWN_COMMANDS = {"console", "list", "add", "edit", "delete", "serve-stub"}

Prompt = Callable[[str], Awaitable[str]]


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="User directory management utilities")
    parser.add_argument("--config", default=None, help="Path to a YAML settings file")
    parser.add_argument("--api-url", default=None, help="Override the collection endpoint URL")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="console")

    subparsers.add_parser("console", help="Launch the interactive directory console")

    list_parser = subparsers.add_parser("list", help="Print the directory")
    list_parser.add_argument("--search", default="", help="Only show users matching this text")

    add_parser = subparsers.add_parser("add", help="Create a user")
    add_parser.add_argument("--name", required=True)
    add_parser.add_argument("--email", required=True)
    add_parser.add_argument("--department", required=True)

    edit_parser = subparsers.add_parser("edit", help="Update an existing user")
    edit_parser.add_argument("user_id", type=int)
    edit_parser.add_argument("--name", default=None)
    edit_parser.add_argument("--email", default=None)
    edit_parser.add_argument("--department", default=None)

    delete_parser = subparsers.add_parser("delete", help="Delete a user")
    delete_parser.add_argument("user_id", type=int)

    stub_parser = subparsers.add_parser("serve-stub", help="Run the in-memory stub backend")
    stub_parser.add_argument("--host", default="127.0.0.1", help="Bind address for the stub")
    stub_parser.add_argument("--port", type=int, default=8000, help="Port for the stub (default: 8000)")

    args_list = list(argv) if argv is not None else sys.argv[1:]
    if not any(arg in _KNOWN_COMMANDS for arg in args_list):
        if not any(flag in args_list for flag in ("-h", "--help")):
            args_list = [*args_list, "console"]

    return parser.parse_args(args_list)


def _load_settings(args: argparse.Namespace) -> Settings:
    config_path = Path(args.config).expanduser() if args.config else config_path_from_env()
    settings = load_settings(config_path)
    return settings.with_overrides(api_url=args.api_url)


def _print_users(users: Sequence[User]) -> None:
    if not users:
        print("No users found.")
        return

    print(f"{len(users)} user(s) found:")
    print(f"{'ID':>4}  {'Name':<24}  {'Email':<32}  Department")
    print("-" * 80)
    for user in users:
        user_id = "-" if user.id is None else str(user.id)
        print(f"{user_id:>4}  {user.name:<24}  {user.email:<32}  {user.company.name}")


def _print_notifications(notifier: CollectingNotifier) -> None:
    for notification in notifier.drain():
        marker = "!" if notification.is_destructive else "*"
        print(f"{marker} {notification.title}")


async def _load(session: DirectorySession) -> bool:
    snapshot = await session.cache.refresh()
    return snapshot.status == CacheStatus.READY


async def _finish(outcome: MutationOutcome) -> int:
    await outcome.settled()
    return 0 if outcome.ok else 1


async def _run_list(session: DirectorySession, search: str) -> int:
    ok = await _load(session)
    _print_users(session.visible_users(search))
    return 0 if ok else 1


async def _run_add(session: DirectorySession, form: FormData) -> int:
    missing = form.missing_fields()
    if missing:
        print(f"Missing required fields: {', '.join(missing)}")
        return 2
    session.dialogs.open_add()
    session.dialogs.update_form(name=form.name, email=form.email, department=form.department)
    outcome = await session.coordinator.submit_active()
    return await _finish(outcome)


async def _run_edit(session: DirectorySession, user_id: int, changes: dict) -> int:
    if not await _load(session):
        return 1
    user = session.find_user(user_id)
    if user is None:
        print(f"User #{user_id} was not found.")
        return 1
    session.dialogs.open_edit(user)
    form = session.dialogs.update_form(**{key: value for key, value in changes.items() if value is not None})
    missing = form.missing_fields()
    if missing:
        session.dialogs.cancel()
        print(f"Missing required fields: {', '.join(missing)}")
        return 2
    outcome = await session.coordinator.submit_active()
    return await _finish(outcome)


async def _run_delete(session: DirectorySession, user_id: int) -> int:
    if not await _load(session):
        return 1
    user = session.find_user(user_id)
    if user is None:
        print(f"User #{user_id} was not found.")
        return 1
    session.dialogs.open_delete(user)
    outcome = await session.coordinator.confirm_delete()
    return await _finish(outcome)


async def _stdin_prompt(text: str) -> str:
    return await anyio.to_thread.run_sync(input, text, abandon_on_cancel=True)


async def _fill_form(session: DirectorySession, prompt: Prompt) -> bool:
    """Prompt for each field of the open form; blank input keeps the current value."""

    state = session.dialogs.state
    if not isinstance(state, (AddOpen, EditOpen)):
        return False
    for field_name, label in (("name", "Name"), ("email", "Email"), ("department", "Department")):
        current = getattr(state.form, field_name)
        suffix = f" [{current}]" if current else ""
        value = (await prompt(f"{label}{suffix}: ")).strip()
        if value:
            session.dialogs.update_form(**{field_name: value})
    missing = state.form.missing_fields()
    if missing:
        print(f"Missing required fields: {', '.join(missing)}")
        return False
    return True


async def _submit_until_closed(session: DirectorySession, notifier: CollectingNotifier, prompt: Prompt) -> None:
    while session.dialogs.is_open:
        if not await _fill_form(session, prompt):
            answer = (await prompt("Try again? [y/N]: ")).strip().lower()
            if answer != "y":
                session.dialogs.cancel()
                print("Cancelled.")
            continue
        outcome = await session.coordinator.submit_active()
        _print_notifications(notifier)
        if outcome.ok:
            await outcome.settled()
            return
        answer = (await prompt("Retry with the same details? [y/N]: ")).strip().lower()
        if answer != "y":
            session.dialogs.cancel()
            print("Cancelled.")


async def _confirm_until_closed(session: DirectorySession, notifier: CollectingNotifier, prompt: Prompt) -> None:
    state = session.dialogs.state
    if not isinstance(state, ConfirmDelete):
        return
    question = f"Delete {state.record.name} <{state.record.email}>? [y/N]: "
    while isinstance(session.dialogs.state, ConfirmDelete):
        answer = (await prompt(question)).strip().lower()
        if answer != "y":
            session.dialogs.cancel()
            print("Cancelled.")
            return
        outcome = await session.coordinator.confirm_delete()
        _print_notifications(notifier)
        if outcome.ok:
            await outcome.settled()
            return
        question = "Retry? [y/N]: "


async def _select_user(session: DirectorySession, prompt: Prompt) -> Optional[User]:
    raw = (await prompt("User ID: ")).strip()
    try:
        user_id = int(raw)
    except ValueError:
        print("Please enter a numeric user ID.")
        return None
    user = session.find_user(user_id)
    if user is None:
        print(f"User #{user_id} is not in the current list.")
    return user


async def _run_console(
    session: DirectorySession,
    notifier: CollectingNotifier,
    prompt: Prompt = _stdin_prompt,
) -> None:
    """Provide an interactive directory console for operators."""

    print("User Directory Console")
    print("Press Ctrl+C at any time to exit.\n")

    search = ""
    await session.cache.refresh()
    _print_notifications(notifier)

    while True:
        print("Select an option:")
        print("  1) List users")
        print("  2) Search")
        print("  3) Add a user")
        print("  4) Edit a user")
        print("  5) Delete a user")
        print("  6) Reload from server")
        print("  7) Exit")

        choice = (await prompt("Enter choice [1-7]: ")).strip()

        if choice == "1":
            snapshot = session.cache.get()
            if snapshot.status == CacheStatus.ERROR:
                print(f"Showing last known data ({snapshot.error}).")
            _print_users(session.visible_users(search))
        elif choice == "2":
            search = await prompt("Search (blank to clear): ")
            _print_users(session.visible_users(search))
        elif choice == "3":
            session.dialogs.open_add()
            await _submit_until_closed(session, notifier, prompt)
        elif choice == "4":
            user = await _select_user(session, prompt)
            if user is not None:
                session.dialogs.open_edit(user)
                await _submit_until_closed(session, notifier, prompt)
        elif choice == "5":
            user = await _select_user(session, prompt)
            if user is not None:
                session.dialogs.open_delete(user)
                await _confirm_until_closed(session, notifier, prompt)
        elif choice == "6":
            await session.cache.refresh()
            _print_notifications(notifier)
        elif choice == "7":
            print("Goodbye!")
            return
        else:
            print("Invalid selection. Please choose a number from the menu.\n")

        print()


def _serve_stub(*, host: str, port: int) -> None:
    from userdir import create_stub_app
    import uvicorn

    logger.info("Starting stub collection API on http://%s:%s/users", host, port)
    uvicorn.run(create_stub_app(), host=host, port=port, log_level="info")


async def _dispatch(args: argparse.Namespace, settings: Settings) -> int:
    notifier = CollectingNotifier()
    async with DirectorySession(settings, notifier=notifier) as session:
        try:
            if args.command == "list":
                return await _run_list(session, args.search)
            if args.command == "add":
                form = FormData(name=args.name, email=args.email, department=args.department)
                return await _run_add(session, form)
            if args.command == "edit":
                changes = {"name": args.name, "email": args.email, "department": args.department}
                return await _run_edit(session, args.user_id, changes)
            if args.command == "delete":
                return await _run_delete(session, args.user_id)
            try:
                await _run_console(session, notifier)
            except EOFError:
                print("\nExiting directory console.")
            return 0
        finally:
            _print_notifications(notifier)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    args = _parse_args(argv)
    try:
        settings = _load_settings(args)
    except ConfigurationError as exc:
        print(f"Invalid configuration: {exc}")
        return 2

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    if args.command == "serve-stub":
        _serve_stub(host=args.host, port=args.port)
        return 0

    try:
        return asyncio.run(_dispatch(args, settings))
    except KeyboardInterrupt:
        print("\nExiting directory console." if args.command == "console" else "\nInterrupted.")
        return 130


if __name__ == "__main__":
    sys.exit(main())
