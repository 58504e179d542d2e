"""CLI commands for Bizzi."""

import asyncio
import json

import typer
from loguru import logger
from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table
from rich.text import Text

from bizzi import __logo__, __version__

app = typer.Typer(
    name="bizzi",
    help=f"{__logo__} Bizzi - AI cofounder chat pipeline",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} Bizzi v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(None, "--version", "-v", callback=version_callback, is_eager=True),
    logs: bool = typer.Option(False, "--logs/--no-logs", help="Show Bizzi runtime logs"),
):
    """Bizzi - AI cofounder chat pipeline."""
    if logs:
        logger.enable("bizzi")
    else:
        logger.disable("bizzi")


def _print_envelope(envelope: dict, render_markdown: bool, show_meta: bool) -> None:
    """Render a response envelope with consistent terminal styling."""
    content = envelope.get("response_text") or ""
    body = Markdown(content) if render_markdown else Text(content)
    console.print()
    console.print(f"[cyan]{__logo__} Bizzi[/cyan]")
    console.print(body)
    for action in envelope.get("actions", []):
        extra = {k: v for k, v in action.items() if k not in ("kind", "label")}
        console.print(f"  [magenta]{action['kind']}[/magenta] {action['label']} [dim]{extra}[/dim]")
    if envelope.get("follow_up_prompt"):
        console.print(f"[dim]{envelope['follow_up_prompt']}[/dim]")
    if show_meta:
        console.print_json(json.dumps(envelope.get("meta", {}), default=str))
    console.print()


# ============================================================================
# Registry / classification
# ============================================================================


@app.command()
def intents():
    """List registered intents and their capabilities."""
    from bizzi.intents.registry import get_registry

    table = Table(title="Intents")
    table.add_column("Key", style="cyan")
    table.add_column("Category", style="green")
    table.add_column("Module")
    table.add_column("Label", style="yellow")
    table.add_column("Fetch")
    table.add_column("Cache")
    table.add_column("Finalize")

    for d in get_registry():
        table.add_row(
            d.key,
            d.category,
            d.module,
            d.label,
            "✓" if d.has_recipe else "✗",
            "✓" if d.has_cache_key else "✗",
            "✓" if d.has_post_process else "✗",
        )
    console.print(table)


@app.command()
def classify(
    message: str = typer.Argument(..., help="Message to classify"),
    route: str = typer.Option("", "--route", "-r", help="Current client route, e.g. /dashboard/accounting"),
    thread_id: str = typer.Option(None, "--thread-id", help="Email thread hint"),
    account_id: str = typer.Option(None, "--account-id", help="Email account hint"),
    intent: str = typer.Option(None, "--intent", "-i", help="Force an intent key"),
):
    """Score a message against every intent without touching the store or model."""
    from bizzi.intents.registry import get_registry
    from bizzi.pipeline.classifier import ClassifierWeights, IntentClassifier
    from bizzi.pipeline.types import RequestHints
    from bizzi.settings import get_settings

    registry = get_registry()
    classifier = IntentClassifier(registry, ClassifierWeights.from_settings(get_settings()))
    result = classifier.classify(
        message,
        route,
        RequestHints(thread_id=thread_id, account_id=account_id),
        forced=intent,
    )
    c = result.value

    table = Table(title=f"Candidates for: {message}")
    table.add_column("Intent", style="cyan")
    table.add_column("Base", justify="right")
    table.add_column("Bonus", justify="right")
    table.add_column("Score", justify="right", style="green")
    for cand in c.candidates:
        table.add_row(cand.key, f"{cand.base:.2f}", f"{cand.bonus:.2f}", f"{cand.score:.2f}")
    console.print(table)

    console.print(f"Resolved: [bold cyan]{c.key}[/bold cyan] ({registry.label(c.key)})")
    if c.forced:
        console.print("[dim]forced by --intent[/dim]")
    if c.ambiguous:
        options = ", ".join(f"{o.intent} ({o.label})" for o in c.options)
        console.print(f"[yellow]Ambiguous: would ask between {options}[/yellow]")
    if result.error:
        console.print(f"[red]Predicate errors:[/red] {result.error.detail}")


# ============================================================================
# Full pipeline
# ============================================================================


@app.command()
def ask(
    message: str = typer.Argument(..., help="Message to send"),
    user_id: str = typer.Option(None, "--user", "-u", help="User id"),
    business_id: str = typer.Option(None, "--business", "-b", help="Business id"),
    route: str = typer.Option("", "--route", "-r", help="Current client route"),
    intent: str = typer.Option(None, "--intent", "-i", help="Force an intent key"),
    depth: str = typer.Option(None, "--depth", help="brief | standard | deep | comprehensive | max"),
    markdown: bool = typer.Option(True, "--markdown/--no-markdown", help="Render output as Markdown"),
    meta: bool = typer.Option(False, "--meta", help="Print the envelope meta block"),
):
    """Run one turn through the full pipeline using the configured store and model."""
    from bizzi.pipeline.orchestrator import ConversationPipeline
    from bizzi.pipeline.types import ChatRequest, InvalidRequest
    from bizzi.providers.litellm_provider import LiteLLMProvider
    from bizzi.settings import get_settings
    from bizzi.storage.database import create_all_tables, dispose_engine, get_engine
    from bizzi.storage.store import SqlStore

    settings = get_settings()
    if not settings.api_key:
        console.print("[yellow]Warning: BIZZI_API_KEY is not set; relying on provider env vars.[/yellow]")

    async def run_once() -> dict | None:
        engine = get_engine(settings)
        try:
            try:
                await create_all_tables(engine)
            except Exception as e:
                logger.warning(f"Database auto-migrate skipped: {e}")
            provider = LiteLLMProvider(settings.api_key, settings.api_base, default_model=settings.model)
            pipeline = ConversationPipeline.from_settings(settings, SqlStore(engine), provider)
            request = ChatRequest(
                user_id=user_id,
                business_id=business_id,
                message=message,
                intent=intent,
                route=route,
                depth=depth,
            )
            try:
                envelope = await pipeline.run(request)
            except InvalidRequest as e:
                console.print(f"[red]Error: {e.code}[/red]")
                return None
            return envelope.to_dict()
        finally:
            await dispose_engine()

    with console.status("[dim]Bizzi is thinking...[/dim]", spinner="dots"):
        envelope = asyncio.run(run_once())
    if envelope is None:
        raise typer.Exit(code=1)
    _print_envelope(envelope, render_markdown=markdown, show_meta=meta)


# ============================================================================
# Serve (FastAPI HTTP)
# ============================================================================


@app.command()
def serve(
    host: str = typer.Option(None, "--host", help="Bind host (default from settings)"),
    port: int = typer.Option(None, "--port", "-p", help="Bind port (default from settings)"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on code changes"),
):
    """Start the Bizzi HTTP API server (FastAPI + Uvicorn)."""
    import uvicorn

    from bizzi.settings import get_settings

    settings = get_settings()
    host = host or settings.host
    port = port or settings.port
    console.print(f"{__logo__} Starting Bizzi API on {host}:{port} ...")
    uvicorn.run(
        "bizzi.api.app:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
    )


if __name__ == "__main__":
    app()
