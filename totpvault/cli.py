"""Command-line interface for TOTPVault.

A thin presentation layer over :class:`~totpvault.manager.CredentialManager`:
enroll and remove accounts, print the current codes once, or watch them
refresh every second.
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
from pathlib import Path
from typing import Dict, Optional

from . import config
from .errors import TotpVaultError
from .io.backends import JsonFileBackend
from .manager import CredentialManager
from .otp.totp_engine import HASH_ALGORITHMS
from .scheduler.refresh_scheduler import CodeResult, CodeSnapshot

log = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="totpvault", description="Keep TOTP secrets and show their current codes.")
    parser.add_argument(
        "--store",
        help=f"Path to the account file (defaults to ${config.STORE_PATH_ENV} or ~/{config.STORE_DIR_NAME}/{config.STORE_FILE_NAME}).",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("list", help="List enrolled accounts.")

    add_parser = subparsers.add_parser("add", help="Enroll a new account from a Base32 secret.")
    add_parser.add_argument("--name", required=True, help="Label shown next to the code.")
    add_parser.add_argument("--secret", help="Base32 secret (prompted for when omitted).")
    add_parser.add_argument("--digits", type=int, default=config.DEFAULT_DIGITS, help="Code length (defaults to 6).")
    add_parser.add_argument("--period", type=int, default=config.DEFAULT_PERIOD, help="Window length in seconds (defaults to 30).")
    add_parser.add_argument(
        "--algorithm",
        choices=sorted(HASH_ALGORITHMS),
        default=config.DEFAULT_ALGORITHM,
        help="HMAC hash (defaults to SHA1).",
    )

    remove_parser = subparsers.add_parser("remove", help="Remove an account by id.")
    remove_parser.add_argument("account_id", help="Id printed by 'totpvault list'.")

    subparsers.add_parser("codes", help="Print the current code for every account.")

    watch_parser = subparsers.add_parser("watch", help="Print fresh codes every second until interrupted.")
    watch_parser.add_argument("--ticks", type=int, help="Stop after this many refreshes.")

    return parser


def _prompt_secret(secret: Optional[str]) -> str:
    if secret:
        return secret
    entered = getpass.getpass("Enter Base32 secret: ")
    if not entered.strip():
        raise ValueError("Secret may not be empty.")
    return entered


def format_code(code: str) -> str:
    """Group a code in threes for readability, e.g. ``123 456``."""

    return " ".join(code[i : i + 3] for i in range(0, len(code), 3))


def _format_result(result: CodeResult, default_period: int) -> str:
    if result.ok:
        text = format_code(result.code or "")
        if result.period is not None and result.period != default_period:
            text += f" ({result.seconds_remaining}s)"
        return text
    return f"<error: {result.error.value}>"


def render_snapshot(snapshot: CodeSnapshot, names: Dict[str, str]) -> str:
    lines = [
        f"{names.get(account_id, account_id)}: {_format_result(result, snapshot.period)}"
        for account_id, result in snapshot.codes.items()
    ]
    if not lines:
        lines.append("No accounts yet. Use 'totpvault add' to enroll one.")
    lines.append(f"{snapshot.seconds_remaining}s remaining")
    return "\n".join(lines)


async def handle_list(manager: CredentialManager) -> None:
    accounts = await manager.list_accounts()
    if not accounts:
        print("No accounts yet. Use 'totpvault add' to enroll one.")
    for account in accounts:
        print(f"{account.id}  {account.name}")


async def handle_add(manager: CredentialManager, name: str, secret: Optional[str], digits: int, period: int, algorithm: str) -> None:
    secret_text = _prompt_secret(secret)
    account = await manager.add_account(name, secret_text, algorithm=algorithm, digits=digits, period=period)
    print(f"Added {account.name} with id {account.id}.")


async def handle_remove(manager: CredentialManager, account_id: str) -> None:
    if await manager.remove_account(account_id):
        print(f"Removed {account_id}.")
    else:
        print(f"No account with id {account_id}; nothing removed.")


async def handle_codes(manager: CredentialManager) -> None:
    names = {account.id: account.name for account in await manager.list_accounts()}
    snapshot = await manager.refresh()
    print(render_snapshot(snapshot, names))


async def handle_watch(manager: CredentialManager, ticks: Optional[int]) -> None:
    names = {account.id: account.name for account in await manager.list_accounts()}
    done = asyncio.Event()
    seen = 0

    def show(snapshot: CodeSnapshot) -> None:
        nonlocal seen
        print(render_snapshot(snapshot, names))
        print()
        seen += 1
        if ticks is not None and seen >= ticks:
            done.set()

    unsubscribe = manager.subscribe(show)
    try:
        async with manager:
            await done.wait()
    finally:
        unsubscribe()


async def _dispatch(args: argparse.Namespace, manager: CredentialManager) -> None:
    if args.command == "list":
        await handle_list(manager)
    elif args.command == "add":
        await handle_add(manager, args.name, args.secret, args.digits, args.period, args.algorithm)
    elif args.command == "remove":
        await handle_remove(manager, args.account_id)
    elif args.command == "codes":
        await handle_codes(manager)
    elif args.command == "watch":
        await handle_watch(manager, args.ticks)


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )
    store_path = Path(args.store).expanduser() if args.store else config.default_store_path()
    log.debug("Using account file %s", store_path)
    manager = CredentialManager(JsonFileBackend(store_path))

    try:
        asyncio.run(_dispatch(args, manager))
    except (TotpVaultError, ValueError) as exc:
        print(f"Error: {exc}")
        return 1
    except KeyboardInterrupt:
        print("Stopped.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
