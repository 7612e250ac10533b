"""
main.py — codeforge Entry Point

Usage:
    codeforge run PROJECT_ID "build a landing page"   # persist request, run the agent
    codeforge history PROJECT_ID                      # show stored messages
    codeforge --log-level DEBUG run ...               # verbose logging
    codeforge --config path/to/config.yaml run ...
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

console = Console()


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="codeforge",
        description="codeforge — sandbox-backed coding agent",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: $CODEFORGE_CONFIG or config/config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override log level from config",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    run_p = sub.add_parser("run", help="Run the code agent on a request")
    run_p.add_argument("project_id", help="Project the request and result belong to")
    run_p.add_argument("request", help="What to build or change")

    hist_p = sub.add_parser("history", help="Show a project's stored messages")
    hist_p.add_argument("project_id")
    hist_p.add_argument("--limit", type=int, default=20)

    return parser.parse_args(argv)


def bootstrap(args: argparse.Namespace):
    """
    Load config, validate it fully, and set up logging.
    Returns (settings, log) ready for use.

    Exits with code 1 (after printing a clear message) if:
      - config.yaml has invalid values (Pydantic ValidationError)
      - cross-field problems are found (ConfigError from validate_all())
    """
    from pydantic import ValidationError

    from codeforge.config.settings import ConfigError, load_settings
    from codeforge.observability.logger import get_logger, setup_logging

    try:
        settings = load_settings(args.config)
    except ValidationError as exc:
        problems = "\n".join(
            f"  • {'.'.join(str(p) for p in e['loc']) or '?'}: {e['msg']}"
            for e in exc.errors()
        )
        print(
            f"\n❌  Config validation failed:\n\n{problems}\n\n"
            f"    Fix config/config.yaml or your .env file and restart.\n",
            file=sys.stderr,
        )
        sys.exit(1)
    except (OSError, ValueError, TypeError) as exc:
        print(f"\n❌  Failed to load config: {type(exc).__name__}: {exc}\n", file=sys.stderr)
        sys.exit(1)

    # history only reads the local store, so it needs no API keys
    if args.command == "run":
        try:
            settings.validate_all()
        except ConfigError as exc:
            print(str(exc), file=sys.stderr)
            sys.exit(1)

    setup_logging(
        level=args.log_level or settings.log_level,
        log_dir=settings.log_dir,
        json_format=settings.logging.json_format,
        console_output=settings.logging.console_output,
        max_bytes=settings.logging.max_file_size_mb * 1024 * 1024,
        backup_count=settings.logging.backup_count,
    )
    return settings, get_logger("codeforge.main")


async def _cmd_run(settings, log, project_id: str, request: str) -> int:
    from codeforge.agent.outcome import ERROR_MESSAGE
    from codeforge.agent.workflow import CodeAgentWorkflow, TriggerEvent
    from codeforge.brain import LLMClientFactory
    from codeforge.exceptions import CodeForgeError, LLMError
    from codeforge.memory.store import MessageRole, MessageStore, MessageType
    from codeforge.sandbox.e2b_sandbox import E2BSandboxProvider

    store = MessageStore(settings.storage.sqlite_path)
    await store.init()
    try:
        await store.create_message(project_id, request, MessageRole.USER, MessageType.RESULT)

        workflow = CodeAgentWorkflow.from_settings(
            settings,
            llm_client=LLMClientFactory.from_settings(settings),
            sandbox_provider=E2BSandboxProvider.from_settings(settings),
            store=store,
        )
        log.info(
            "codeforge.run_requested",
            project_id=project_id,
            llm_provider=settings.default_llm_provider,
            llm_model=settings.default_llm_model,
        )
        with console.status("[dim]Agent working in the sandbox...[/]"):
            outcome = await workflow.run(TriggerEvent(project_id=project_id, value=request))
    except (CodeForgeError, LLMError) as e:
        log.error("codeforge.run_failed", error=str(e), error_type=type(e).__name__)
        console.print(f"[red]❌ Run failed: {type(e).__name__}: {e}[/]")
        return 1
    finally:
        await store.close()

    if outcome.is_error:
        console.print(Panel(ERROR_MESSAGE, title="Error", style="red"))
        return 1

    files = Table(box=box.SIMPLE, show_header=False)
    for path in sorted(outcome.files):
        files.add_row(path)
    console.print(Panel(outcome.summary, title=f"[bold]{outcome.title}[/]", border_style="green"))
    console.print(f"[bold]Preview:[/] {outcome.url}")
    console.print(files)
    return 0


async def _cmd_history(settings, project_id: str, limit: int) -> int:
    from codeforge.memory.store import MessageStore

    store = MessageStore(settings.storage.sqlite_path)
    await store.init()
    try:
        messages = await store.get_messages(project_id, limit=limit, newest_first=False)
    finally:
        await store.close()

    if not messages:
        console.print(f"[dim]No messages for project {project_id}.[/]")
        return 0

    table = Table(box=box.ROUNDED, title=f"Project {project_id}")
    table.add_column("Role", style="cyan")
    table.add_column("Type")
    table.add_column("Content")
    table.add_column("Fragment", style="dim")
    for m in messages:
        fragment = f"{m.fragment.title} · {m.fragment.sandbox_url}" if m.fragment else ""
        table.add_row(m.role.value, m.type.value, m.content, fragment)
    console.print(table)
    return 0


async def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    settings, log = bootstrap(args)

    Path(settings.storage.sqlite_path).expanduser().parent.mkdir(parents=True, exist_ok=True)

    if args.command == "run":
        return await _cmd_run(settings, log, args.project_id, args.request)
    return await _cmd_history(settings, args.project_id, args.limit)


def run() -> None:
    """Console-script entry point."""
    load_dotenv(dotenv_path=Path.cwd() / ".env")
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    run()
