"""Command-line interface for running system administration tasks."""

import argparse
import os
import sys
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.text import Text

from tinypenguin import __version__
from tinypenguin.clients.inference import InferenceClient, InferenceConfig
from tinypenguin.config import Settings, get_settings
from tinypenguin.errors import TransportError
from tinypenguin.models.task import TaskEvent
from tinypenguin.services.finetuning import DEFAULT_MIN_RATING, convert_log
from tinypenguin.services.rating import PromptRatingProvider
from tinypenguin.services.task import TaskManager
from tinypenguin.utils.logging import LogConfig, get_logger, setup_logging

logger = get_logger(__name__)

EXAMPLES = """
Examples:
  tinypenguin run "Create a new user named john"
  tinypenguin run "Install nginx package"
  tinypenguin --tools=false run "Just provide advice"
  tinypenguin --debug run "Check current users"
  tinypenguin convert tool_calls.log finetuning_data.jsonl --min-rating 4
"""

STATUS_STYLES = {"success": "green", "error": "red", "denied": "yellow"}


def _str_to_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise argparse.ArgumentTypeError(f"expected a boolean, got {value!r}")


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tinypenguin",
        description="tinypenguin - A CLI tool for AI-powered system administration",
        epilog=EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--url", default=settings.tinyllama_url, help="API URL (Ollama compatible)")
    parser.add_argument("--model", default=settings.model, help="Model name to use")
    parser.add_argument(
        "--tools",
        type=_str_to_bool,
        nargs="?",
        const=True,
        default=settings.tools_enabled,
        help="Enable tool calling (default: true)",
    )
    parser.add_argument(
        "--debug",
        type=_str_to_bool,
        nargs="?",
        const=True,
        default=settings.debug,
        help="Enable debug output to diagnose tool calling issues",
    )

    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Run a task with the given query")
    run_parser.add_argument("query", nargs="+", help="Natural-language task description")

    cancel_parser = subparsers.add_parser("cancel", help="Cancel a task by ID")
    cancel_parser.add_argument("--task-id", required=True, help="Task ID to cancel")

    subparsers.add_parser("list", help="List all tasks")
    subparsers.add_parser("models", help="List models available at the endpoint")

    convert_parser = subparsers.add_parser("convert", help="Convert the tool call log to fine-tuning data")
    convert_parser.add_argument("log_file", type=Path, help="Path to tool_calls.log")
    convert_parser.add_argument(
        "output_file", type=Path, nargs="?", default=Path("finetuning_data.jsonl"), help="Output JSONL file"
    )
    convert_parser.add_argument(
        "--min-rating", type=int, default=DEFAULT_MIN_RATING, help="Only include rated examples >= N"
    )

    serve_parser = subparsers.add_parser("serve", help="Serve the task flow over HTTP")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Interface to bind")
    serve_parser.add_argument("--port", type=int, default=50051, help="The server port")

    return parser


class TaskCLI:
    """Renders task events on the terminal."""

    def __init__(self, settings: Settings, console: Console | None = None):
        """Initialize task CLI."""
        self.settings = settings
        self.console = console or Console()

    def run_task(self, query: str) -> int:
        """Run one task and return the process exit code."""
        manager = TaskManager.from_settings(self.settings, rating_provider=PromptRatingProvider(self.console))
        self.console.print(f"🚀 Starting task: {query}", markup=False)

        if self.settings.debug:
            if self.settings.tools_enabled:
                names = manager.tools_registry.get_tool_names()
                self.console.print(f"[dim]🔧 Tools enabled: {len(names)} tool(s) available: {', '.join(names)}[/dim]")
            else:
                self.console.print("[dim]⚠️  Tools are disabled - model will only provide text responses[/dim]")

        try:
            for event in manager.run(query):
                self.render(event)
        except TransportError as e:
            self.console.print(f"[red]❌ Failed to get response from model: {escape(str(e))}[/red]")
            return 1
        finally:
            manager.client.close()

        return 0

    def render(self, event: TaskEvent) -> None:
        """Print a single task event."""
        if event.type == "started":
            self.console.print(f"[dim]🤖 {event.message}[/dim]")

        elif event.type == "tool_call":
            self.console.print(f"🛠️  Executing tool: [bold]{event.tool_name}[/bold]")
            if event.command:
                self.console.print(f"[yellow]💡 {escape(event.message)}: {escape(event.command)}[/yellow]")
            elif self.settings.debug and event.message:
                self.console.print(f"[dim]🐛 Arguments: {escape(event.message)}[/dim]")

        elif event.type == "tool_result" and event.result:
            style = STATUS_STYLES.get(event.result.status, "white")
            status = f"[{style}]{event.result.status}[/{style}]"
            self.console.print(f"📊 Tool result: {status} - {escape(event.result.message)}")
            if event.result.output:
                self.console.print(Panel(Text(event.result.output.rstrip()), title="📤 Output", border_style=style))

        elif event.type == "rating":
            self.console.print(f"⭐ {event.message}")

        elif event.type == "suggestion":
            if event.result and event.result.status == "denied":
                self.console.print(f"[yellow]⛔ {escape(event.message)}[/yellow]")
                self.console.print(f"[yellow]{event.result.message}[/yellow]")
            else:
                self.console.print(f"💡 {event.message}", markup=False)
                self.console.print(
                    "[dim]⚠️  Note: Model should use tool_calls format instead of JSON in content.[/dim]"
                )
                self.console.print(f"💬 To execute this command, you can run: {event.command}", markup=False)

        elif event.type == "answer":
            self.console.print(
                Panel(Markdown(event.message), title="[bold green]💬 Answer[/bold green]", border_style="green")
            )

        elif event.type == "error":
            self.console.print(f"[red]❌ {escape(event.message)}[/red]")

        elif event.type == "completed":
            logger.debug("Task completed")

    def list_models(self) -> int:
        client = InferenceClient(InferenceConfig.from_settings(self.settings))
        try:
            models = client.list_models()
        except TransportError as e:
            self.console.print(f"[red]❌ Failed to list models: {escape(str(e))}[/red]")
            return 1
        finally:
            client.close()

        if not models:
            self.console.print("[yellow]No models available[/yellow]")
            return 0
        for model in models:
            marker = " [green](selected)[/green]" if model.name == self.settings.model else ""
            self.console.print(f"• {model.name}{marker}")
        return 0

    def convert(self, log_file: Path, output_file: Path, min_rating: int) -> int:
        if not log_file.is_file():
            self.console.print(f"[red]❌ Log file '{log_file}' not found[/red]")
            return 1

        self.console.print(f"🔄 Converting {log_file} to fine-tuning format...")
        try:
            stats = convert_log(log_file, output_file, min_rating=min_rating)
        except OSError as e:
            self.console.print(f"[red]❌ Conversion failed: {e}[/red]")
            return 1

        self.console.print(
            Panel(
                f"✅ Converted: {stats.converted} examples\n"
                f"⚠️  Skipped: {stats.skipped} entries\n"
                f"📝 Old format (reconstructed): {stats.reconstructed} entries\n"
                f"📄 Output file: {output_file}\n"
                f"⭐ Minimum rating filter: {min_rating}+",
                title="[green]Conversion complete[/green]",
                border_style="green",
            )
        )
        return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    base_settings = get_settings()
    parser = build_parser(base_settings)
    args = parser.parse_args(argv)

    settings = base_settings.model_copy(
        update={
            "tinyllama_url": args.url,
            "model": args.model,
            "tools_enabled": args.tools,
            "debug": args.debug,
        }
    )
    setup_logging(LogConfig(level=settings.effective_log_level))

    console = Console()
    cli = TaskCLI(settings, console)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "run":
        return cli.run_task(" ".join(args.query))

    if args.command == "cancel":
        # Tasks finish within a single invocation, so there is never anything to cancel
        console.print(f"Cancelling task: {args.task_id}")
        return 0

    if args.command == "list":
        console.print("Listing tasks:")
        return 0

    if args.command == "models":
        return cli.list_models()

    if args.command == "convert":
        return cli.convert(args.log_file, args.output_file, args.min_rating)

    if args.command == "serve":
        import uvicorn

        # The app builds its own settings from the environment
        os.environ.update(
            {
                "TINYLLAMA_URL": settings.tinyllama_url,
                "MODEL": settings.model,
                "TOOLS_ENABLED": str(settings.tools_enabled).lower(),
            }
        )
        get_settings.cache_clear()
        uvicorn.run("tinypenguin.main:app", host=args.host, port=args.port, log_level=settings.log_level.lower())
        return 0

    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    sys.exit(main())
