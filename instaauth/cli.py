"""
InstaAuth CLI
=============
Log in, inspect and log out a persisted session from the terminal.

Usage:
    python -m instaauth login
    python -m instaauth login --session session.json
    python -m instaauth status
    python -m instaauth logout
"""

import argparse
import os
import sys
from typing import Optional

from rich.box import ROUNDED
from rich.console import Console
from rich.prompt import Prompt
from rich.table import Table

from .auth import AuthEngine
from .config import AuthConfig
from .log_config import LogConfig
from .models.challenge import ChallengeChannel
from .result import LoginOutcome, TwoFactorOutcome

DEFAULT_SESSION_FILE = "session.json"

console = Console()


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="instaauth",
        description="Instagram Private API session manager",
    )
    parser.add_argument("--env", default=".env", help="Path to .env file (default: .env)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--session", default=None, help="Session file (default: IG_SESSION_FILE or session.json)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    p_login = subparsers.add_parser("login", help="Log in and save the session")
    p_login.add_argument("-u", "--username", default=None, help="Instagram username")
    p_login.add_argument("--no-password-save", action="store_true", help="Do not store the password")

    subparsers.add_parser("status", help="Show the saved session")
    subparsers.add_parser("logout", help="Log out the saved session")

    return parser


def build_engine(config: AuthConfig, session_file: str) -> AuthEngine:
    """Engine from config; restores the session file when it exists."""
    engine = AuthEngine.from_config(config)
    if os.path.exists(session_file):
        with open(session_file, "r", encoding="utf-8") as f:
            engine.restore(f.read()).unwrap()
    return engine


def _ask(label: str, password: bool = False, default: Optional[str] = None) -> str:
    try:
        return Prompt.ask(f"  [bold cyan]{label}[/]", password=password, default=default, console=console)
    except (KeyboardInterrupt, EOFError):
        console.print("\n  [dim]Cancelled.[/]")
        sys.exit(1)


def _resolve_two_factor(engine: AuthEngine):
    info = engine.get_two_factor_info().value
    if info is not None and info.obfuscated_phone_number:
        console.print(f"  [dim]Code sent to {info.obfuscated_phone_number}[/]")
    while True:
        result = engine.two_factor_login(_ask("Two-factor code"))
        if result.outcome != TwoFactorOutcome.INVALID_CODE:
            return result
        console.print(f"  [yellow]{result.message}[/]")


def _resolve_challenge(engine: AuthEngine):
    methods = engine.challenge_get_verify_methods().unwrap()
    channels = methods.channels or [ChallengeChannel.EMAIL]
    if len(channels) > 1:
        choice = _ask("Send code via", default=channels[0].value)
        try:
            channel = ChallengeChannel(choice.strip().lower())
        except ValueError:
            channel = channels[0]
    else:
        channel = channels[0]

    sent = engine.challenge_request_code(channel).unwrap()
    if sent.contact_point:
        console.print(f"  [dim]Code sent to {sent.contact_point}[/]")
    return engine.challenge_verify_code(_ask("Security code").strip())


def cmd_login(args, config: AuthConfig, session_file: str) -> int:
    if args.username:
        config.username = args.username
    if not config.username:
        config.username = _ask("Username")
    if not config.password:
        config.password = _ask("Password", password=True)

    engine = AuthEngine.from_config(config)
    result = engine.login()

    if result.outcome == LoginOutcome.TWO_FACTOR_REQUIRED:
        result = _resolve_two_factor(engine)
    elif result.outcome == LoginOutcome.CHALLENGE_REQUIRED:
        console.print("  [yellow]Instagram requires a security check.[/]")
        result = _resolve_challenge(engine)

    if not engine.is_authenticated():
        console.print(f"  [red]✗ Login failed ({result.outcome.value}): {result.message}[/]")
        return 1

    engine.session_store.save(session_file, include_password=not args.no_password_save)
    user = engine.current_session().logged_in_user
    console.print(f"  [green]✓ Logged in as @{user.username} (ID: {user.pk})[/]")
    console.print(f"  [dim]Session saved to: {session_file}[/]")
    return 0


def cmd_status(args, config: AuthConfig, session_file: str) -> int:
    if not os.path.exists(session_file):
        console.print(f"  [yellow]No session file: {session_file}[/]")
        return 1

    engine = build_engine(config, session_file)
    session = engine.current_session()
    device = engine.session_store.device
    user = session.logged_in_user

    table = Table(title="Session", box=ROUNDED, border_style="cyan", show_header=False)
    table.add_column("Field", style="bold cyan")
    table.add_column("Value")
    table.add_row("Authenticated", "yes" if engine.is_authenticated() else "no")
    table.add_row("Username", session.username or "-")
    table.add_row("User ID", str(user.pk) if user else "-")
    table.add_row("Rank token", session.rank_token or "-")
    table.add_row("Device", f"{device.manufacturer} {device.model}")
    table.add_row("Device ID", device.device_id)
    table.add_row("Cookies", ", ".join(c.name for c in engine.session_store.cookies()) or "-")
    console.print(table)
    return 0


def cmd_logout(args, config: AuthConfig, session_file: str) -> int:
    if not os.path.exists(session_file):
        console.print(f"  [yellow]No session file: {session_file}[/]")
        return 1

    engine = build_engine(config, session_file)
    result = engine.logout()
    if not result.value:
        console.print(f"  [red]✗ Logout failed: {result.message or 'not confirmed'}[/]")
        return 1

    engine.session_store.save(session_file)
    console.print("  [green]✓ Logged out[/]")
    return 0


COMMANDS = {
    "login": cmd_login,
    "status": cmd_status,
    "logout": cmd_logout,
}


def main(argv=None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    config = AuthConfig.from_env(args.env)
    if args.debug:
        LogConfig.configure_debug()
    else:
        LogConfig.configure(level=config.log_level)

    session_file = args.session or config.session_file or DEFAULT_SESSION_FILE

    try:
        return COMMANDS[args.command](args, config, session_file)
    except Exception as e:
        console.print(f"  [red]Error: {e}[/]")
        if args.debug:
            raise
        return 1


if __name__ == "__main__":
    sys.exit(main())
