"""CLI commands for contact context and user status entries."""

from __future__ import annotations

from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from reply_assist.store.context_store import ContextStore
from reply_assist.store.schema import FORMALITY_LEVELS

console = Console()


# ══════════════════════════════════════════════════════════════════
# Contact context
# ══════════════════════════════════════════════════════════════════


@click.group("context")
def context_cli():
    """Relationship notes about the people you text."""
    pass


@context_cli.command("show")
@click.argument("identifier", required=False)
def show(identifier: Optional[str]):
    """Show context for IDENTIFIER, or every contact with saved context."""
    store = ContextStore()
    try:
        rows = [store.get_contact(identifier)] if identifier else store.list_contacts()
    finally:
        store.close()

    rows = [r for r in rows if r]
    if not rows:
        console.print("[dim]No saved context[/dim]")
        return

    table = Table(title="Contact context")
    for col in ("Handle", "Name", "Relationship", "Formality", "Background"):
        table.add_column(col)
    for r in rows:
        table.add_row(
            r.phone_number,
            escape(r.name or ""),
            escape(r.relationship_type or ""),
            r.formality_level or "",
            escape(r.background_context or ""),
        )
    console.print(table)


@context_cli.command("set")
@click.argument("identifier")
@click.option("--name", default=None)
@click.option("--relationship", default=None, help="e.g. friend, coworker, mom")
@click.option("--formality", type=click.Choice(FORMALITY_LEVELS), default=None)
@click.option("--background", default=None, help="Free-text background")
def set_context(
    identifier: str,
    name: Optional[str],
    relationship: Optional[str],
    formality: Optional[str],
    background: Optional[str],
):
    """Save context for IDENTIFIER. Options you leave out keep their old values."""
    store = ContextStore()
    try:
        contact = store.upsert_contact(
            identifier,
            name=name,
            relationship_type=relationship,
            formality_level=formality,
        )
        if background is not None:
            contact = store.update_background(identifier, background)
    finally:
        store.close()

    console.print(f"[green]✓[/green] Saved context for {contact.name or contact.phone_number}")


@context_cli.command("history")
@click.argument("identifier")
@click.option("--limit", default=20)
def history(identifier: str, limit: int):
    """Show past background notes for IDENTIFIER."""
    store = ContextStore()
    try:
        contact = store.get_contact(identifier)
        entries = store.get_context_history(contact.id, limit=limit) if contact else []
    finally:
        store.close()

    if not entries:
        console.print("[dim]No history[/dim]")
        return
    for e in entries:
        console.print(f"[dim]{e.created_at}[/dim] {escape(e.context_text)}")


# ══════════════════════════════════════════════════════════════════
# User status
# ══════════════════════════════════════════════════════════════════


@click.group("status")
def status_cli():
    """Facts about your own situation (traveling, busy, sick, ...)."""
    pass


@status_cli.command("list")
def list_status():
    """Show active status entries."""
    store = ContextStore()
    try:
        entries = store.list_active_user_context()
    finally:
        store.close()

    if not entries:
        console.print("[dim]No active status[/dim]")
        return

    table = Table(title="Active status")
    for col in ("ID", "Type", "Content", "Until"):
        table.add_column(col)
    for e in entries:
        table.add_row(str(e.id), escape(e.context_type), escape(e.content), e.end_date or "")
    console.print(table)


@status_cli.command("add")
@click.argument("content")
@click.option("--type", "context_type", default="general", help="Category, e.g. travel or work")
@click.option("--start", default=None, help="ISO-8601 start (UTC if no offset)")
@click.option("--until", "end", default=None, help="ISO-8601 end (UTC if no offset); a bare date lasts through that day")
def add_status(content: str, context_type: str, start: Optional[str], end: Optional[str]):
    """Add a status entry.

    \b
    Examples:
        reply-assist status add "In Tokyo this week" --type travel --until 2026-10-25
    """
    store = ContextStore()
    try:
        entry = store.add_user_context(context_type, content, start_date=start, end_date=end)
    except ValueError as exc:
        raise click.BadParameter(str(exc))
    finally:
        store.close()
    console.print(f"[green]✓[/green] Added status #{entry.id}")


@status_cli.command("delete")
@click.argument("entry_id", type=int)
def delete_status(entry_id: int):
    """Delete status entry ENTRY_ID."""
    store = ContextStore()
    try:
        store.delete_user_context(entry_id)
    finally:
        store.close()
    console.print(f"[green]✓[/green] Deleted status #{entry_id}")
