"""CLI commands for Zhuzh.

Drives the conversational engine from a terminal against the configured
backend.

Commands:
    zhuzh ask "add 4h to GCN" --as ryan   - One message (replies continue across calls)
    zhuzh chat --as ryan                  - Interactive conversation
    zhuzh people                          - List people in the directory
    zhuzh projects                        - List active projects
    zhuzh init                            - Write a starter config and directory
"""

from __future__ import annotations

import argparse
import asyncio
from datetime import timedelta
from pathlib import Path

from rich.console import Console
from rich.table import Table

from .config import AppConfig
from .core import create_assistant
from .core.backends import create_backend
from .core.backends.local import LocalBackend
from .core.conversation import JsonConversationStore
from .core.models import CallerIdentity, Person, Project, Reply, Role

console = Console()

CONVERSATIONS_FILE = "conversations.json"
EXIT_WORDS = {"quit", "exit", "bye"}


def load_config(args: argparse.Namespace) -> AppConfig:
    """Load configuration for the data path given on the command line."""
    config = AppConfig.load(Path(args.data_path).resolve())
    if getattr(args, "backend", None):
        config.backend = args.backend
    return config


def print_reply(reply: Reply) -> None:
    """Print a reply's text (Slack mrkdwn is shown as-is)."""
    console.print(reply.text, markup=False, highlight=False)
    session_id = reply.metadata.get("session_id")
    if reply.blocks and session_id and any(b["type"] == "actions" for b in reply.blocks):
        console.print(f"[dim](buttons; session {session_id})[/dim]")


async def _identify(assistant, reference: str, org_id: str | None) -> CallerIdentity | None:
    caller = await assistant.identify(reference, org_id)
    if caller is None:
        console.print(f"[red]Error:[/red] No one in the directory matches '{reference}'.")
    return caller


# =============================================================================
# Conversation commands
# =============================================================================


def ask(args: argparse.Namespace) -> int:
    """Send one message, continuing any pending prompt.

    Args:
        args: Parsed arguments (text, as_user, channel)

    Returns:
        Exit code (0 for success)
    """
    config = load_config(args)
    store = JsonConversationStore(
        config.data_path / ".zhuzh" / CONVERSATIONS_FILE,
        ttl=timedelta(minutes=config.conversation.ttl_minutes),
    )
    assistant = create_assistant(config, store=store)

    async def _run() -> int:
        try:
            caller = await _identify(assistant, args.as_user, config.default_org_id)
            if caller is None:
                return 1
            reply = await assistant.respond(" ".join(args.text), caller, args.channel)
            print_reply(reply)
            return 0
        finally:
            await assistant.close()

    return asyncio.run(_run())


def chat(args: argparse.Namespace) -> int:
    """Interactive conversation with the expiry sweeper running.

    Args:
        args: Parsed arguments (as_user, channel)

    Returns:
        Exit code (0 for success)
    """
    config = load_config(args)
    assistant = create_assistant(config)

    async def _run() -> int:
        async with assistant:
            caller = await _identify(assistant, args.as_user, config.default_org_id)
            if caller is None:
                return 1
            console.print(
                f"[bold]Zhuzh[/bold] chatting as [cyan]{caller.name}[/cyan]. "
                "Type 'help' for commands, 'quit' to leave."
            )
            while True:
                try:
                    line = await asyncio.to_thread(console.input, "[bold]> [/bold]")
                except EOFError:
                    break
                text = line.strip()
                if not text:
                    continue
                if text.lower() in EXIT_WORDS:
                    break
                print_reply(await assistant.respond(text, caller, args.channel))
        return 0

    return asyncio.run(_run())


# =============================================================================
# Directory commands
# =============================================================================


def _directory_org(config: AppConfig, backend) -> str | None:
    org_id = config.default_org_id or backend.default_org_id
    if org_id is None:
        console.print(
            "[yellow]No organization configured.[/yellow] "
            "Set ZHUZH_DEFAULT_ORG_ID or org_id in .zhuzh/directory.yaml."
        )
    return org_id


def show_people(args: argparse.Namespace) -> int:
    """List active people.

    Args:
        args: Parsed arguments

    Returns:
        Exit code (0 for success)
    """
    config = load_config(args)
    backend = create_backend(config)

    async def _fetch() -> list[Person] | None:
        try:
            org_id = _directory_org(config, backend)
            return await backend.find_active_users(org_id) if org_id else None
        finally:
            await backend.close()

    people = asyncio.run(_fetch())
    if people is None:
        return 1
    if not people:
        console.print("[dim]No people in the directory yet.[/dim]")
        return 0

    table = Table(title="People")
    table.add_column("Name", style="cyan")
    table.add_column("Title")
    table.add_column("Role")
    table.add_column("Aliases", style="dim")
    table.add_column("Timer", justify="center")

    for person in sorted(people, key=lambda p: p.name.lower()):
        role = f"[bold]{person.role.value}[/bold]" if person.role.is_elevated else person.role.value
        table.add_row(
            person.name,
            person.job_title or "-",
            role,
            ", ".join(person.alias_list) or "-",
            "✓" if person.time_tracking_enabled else "",
        )

    console.print(table)
    return 0


def show_projects(args: argparse.Namespace) -> int:
    """List active projects.

    Args:
        args: Parsed arguments

    Returns:
        Exit code (0 for success)
    """
    config = load_config(args)
    backend = create_backend(config)

    async def _fetch() -> list[tuple[Project, float]] | None:
        try:
            org_id = _directory_org(config, backend)
            if not org_id:
                return None
            projects = await backend.find_active_projects(org_id)
            return [(p, await backend.project_hours_used(p.id)) for p in projects]
        finally:
            await backend.close()

    rows = asyncio.run(_fetch())
    if rows is None:
        return 1
    if not rows:
        console.print("[dim]No active projects.[/dim]")
        return 0

    table = Table(title="Projects")
    table.add_column("Project", style="cyan")
    table.add_column("Client")
    table.add_column("Status")
    table.add_column("Aliases", style="dim")
    table.add_column("Budget", justify="right")
    table.add_column("Used", justify="right")

    for project, used in sorted(rows, key=lambda r: r[0].name.lower()):
        pct = round(used / project.budget_hours * 100) if project.budget_hours else 0
        if pct >= 100:
            used_str = f"[red]{used:g}h ({pct}%)[/red]"
        elif pct >= 75:
            used_str = f"[yellow]{used:g}h ({pct}%)[/yellow]"
        else:
            used_str = f"{used:g}h ({pct}%)"
        table.add_row(
            project.name,
            project.detail,
            project.status,
            ", ".join(project.alias_list) or "-",
            f"{project.budget_hours:g}h",
            used_str,
        )

    console.print(table)
    return 0


def init_project(args: argparse.Namespace) -> int:
    """Write .zhuzh/config.yaml and a starter directory.yaml.

    Existing files are left untouched.

    Args:
        args: Parsed arguments (org_id, owner)

    Returns:
        Exit code (0 for success)
    """
    data_path = Path(args.data_path).resolve()
    config = AppConfig.load(data_path)

    if config.config_file.exists():
        console.print(f"[dim]{config.config_file} already exists.[/dim]")
    else:
        config.default_org_id = args.org_id
        config.save()
        console.print(f"[green]✓[/green] Wrote {config.config_file}")

    backend = LocalBackend(data_path)
    if backend.directory_file.exists():
        console.print(f"[dim]{backend.directory_file} already exists.[/dim]")
        return 0

    backend.org_id = args.org_id
    backend.add_person(
        Person(
            id="u1",
            name=args.owner,
            role=Role.ADMIN,
            org_id=args.org_id,
            time_tracking_enabled=True,
        )
    )
    backend.add_project(
        Project(id="p1", name="Internal", aliases="admin, ops", org_id=args.org_id)
    )
    backend.save_directory()
    console.print(f"[green]✓[/green] Wrote {backend.directory_file}")
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser.

    Returns:
        Configured ArgumentParser
    """
    parser = argparse.ArgumentParser(
        prog="zhuzh",
        description="Zhuzh: conversational resource planning assistant",
    )
    parser.add_argument(
        "--data",
        "-d",
        dest="data_path",
        default=".",
        help="Directory holding the .zhuzh/ folder (default: current directory)",
    )
    parser.add_argument(
        "--backend",
        "-b",
        choices=["local", "memory", "supabase"],
        help="Override the configured backend",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # =========================================================================
    # Conversation commands
    # =========================================================================
    def add_identity_args(p: argparse.ArgumentParser) -> None:
        p.add_argument(
            "--as",
            dest="as_user",
            required=True,
            help="Person to act as (id, Slack id, or name)",
        )
        p.add_argument(
            "--channel",
            "-c",
            default="cli",
            help="Channel id for conversation state (default: cli)",
        )

    ask_parser = subparsers.add_parser("ask", help="Send one message to Zhuzh")
    ask_parser.add_argument(
        "text",
        nargs="+",
        help='Message, e.g. "add 4h to GCN for Ryan next week" or a reply like "2"',
    )
    add_identity_args(ask_parser)
    ask_parser.set_defaults(func=ask)

    chat_parser = subparsers.add_parser("chat", help="Chat with Zhuzh interactively")
    add_identity_args(chat_parser)
    chat_parser.set_defaults(func=chat)

    # =========================================================================
    # Directory commands
    # =========================================================================
    people_parser = subparsers.add_parser("people", help="List people")
    people_parser.set_defaults(func=show_people)

    projects_parser = subparsers.add_parser("projects", help="List active projects")
    projects_parser.set_defaults(func=show_projects)

    init_parser = subparsers.add_parser("init", help="Create starter config and directory")
    init_parser.add_argument(
        "--org-id",
        default="default",
        help="Organization id (default: default)",
    )
    init_parser.add_argument(
        "--owner",
        default="Admin",
        help="Name of the first (admin) person",
    )
    init_parser.set_defaults(func=init_project)

    return parser


def run_cli(args: list[str] | None = None) -> int:
    """Run the CLI.

    Args:
        args: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    parsed = parser.parse_args(args)

    if not hasattr(parsed, "func"):
        parser.print_help()
        return 0

    try:
        return parsed.func(parsed)
    except KeyboardInterrupt:
        console.print("\n[dim]Cancelled.[/dim]")
        return 130
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        return 1


__all__ = [
    "ask",
    "chat",
    "create_parser",
    "init_project",
    "run_cli",
    "show_people",
    "show_projects",
]
