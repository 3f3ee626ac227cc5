"""CLI commands for reply suggestions and style analysis."""

from __future__ import annotations

import json
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from reply_assist.cli.contacts_cmd import open_message_store
from reply_assist.config import load_config
from reply_assist.llm.client import LLMClient
from reply_assist.pipeline import GenerationFailedError, SuggestionPipeline
from reply_assist.sources.imessage import StoreUnavailableError
from reply_assist.store.context_store import ContextStore

console = Console()

THREAD_WINDOW = 20


def _build_llm(provider: Optional[str], model: Optional[str]) -> LLMClient:
    config = load_config()
    try:
        return LLMClient(
            provider=provider or config["provider"],
            model=model or config.get("model"),
            timeout=config.get("timeout", 60),
        )
    except ValueError as exc:
        raise click.ClickException(str(exc))


@click.command("suggest")
@click.argument("identifier")
@click.option("--context", "additional_context", default=None, help="Extra context for this reply")
@click.option("--provider", type=click.Choice(["gemini", "claude"]), default=None)
@click.option("--model", default=None)
def suggest(identifier: str, additional_context: Optional[str], provider: Optional[str], model: Optional[str]):
    """Suggest three replies to the latest messages with IDENTIFIER.

    \b
    Examples:
        reply-assist suggest +15551234567
        reply-assist suggest +15551234567 --context "I'm running 10 minutes late"
    """
    llm = _build_llm(provider, model)
    console.print(f"[dim]Using {llm.provider} / {llm.model}[/dim]")

    message_store = open_message_store()
    context_store = ContextStore()
    pipeline = SuggestionPipeline(
        llm, context_store, message_store=message_store, directory=message_store.directory,
    )
    try:
        messages = message_store.get_thread(identifier, limit=THREAD_WINDOW)
        if not messages:
            console.print(f"[yellow]No messages found for {identifier}[/yellow]")
            return
        with console.status("[bold green]Drafting replies..."):
            result = pipeline.generate_suggestions(identifier, messages, additional_context)
    except (StoreUnavailableError, GenerationFailedError) as exc:
        raise click.ClickException(str(exc))
    finally:
        message_store.close()
        context_store.close()

    body = "\n\n".join(f"[bold]{i}.[/bold] {escape(s)}" for i, s in enumerate(result.suggestions, 1))
    console.print(Panel(body, title="[bold green]Suggestions[/bold green]", border_style="green"))


@click.command("analyze")
@click.argument("identifier")
@click.option("--save", is_flag=True, help="Store the result in the contact's context")
@click.option("--provider", type=click.Choice(["gemini", "claude"]), default=None)
@click.option("--model", default=None)
def analyze(identifier: str, save: bool, provider: Optional[str], model: Optional[str]):
    """Analyze how IDENTIFIER writes: formality, message length, emoji use."""
    llm = _build_llm(provider, model)

    message_store = open_message_store()
    context_store = ContextStore()
    pipeline = SuggestionPipeline(llm, context_store, message_store=message_store)
    try:
        with console.status("[bold green]Analyzing style..."):
            result = pipeline.analyze_style(identifier)
        if save:
            # Fallback results keep whatever formality the user already set
            context_store.upsert_contact(
                identifier,
                formality_level=result.formality_level if result.classified else None,
                communication_style=json.dumps(result.to_dict()),
            )
    except StoreUnavailableError as exc:
        raise click.ClickException(str(exc))
    finally:
        message_store.close()
        context_store.close()

    table = Table(title=f"Style: {identifier}", show_header=False)
    table.add_row("Formality", result.formality_level)
    table.add_row("Avg length", f"{result.avg_message_length} chars")
    table.add_row("Emoji / message", f"{result.emoji_frequency:.2f}")
    table.add_row("Analysis", escape(result.analysis))
    console.print(table)
    if save and result.classified:
        console.print("[green]✓[/green] Saved to contact context")
    elif save:
        console.print("[yellow]Saved metrics only; formality left unchanged[/yellow]")
