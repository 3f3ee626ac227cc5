"""CLI commands for browsing conversations in chat.db."""

from __future__ import annotations

from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from reply_assist.sources.contacts import ContactDirectory
from reply_assist.sources.imessage import MessageStore, StoreUnavailableError

console = Console()


def open_message_store() -> MessageStore:
    return MessageStore(directory=ContactDirectory())


def _format_time(dt) -> str:
    return dt.astimezone().strftime("%Y-%m-%d %H:%M") if dt else ""


@click.command("contacts")
@click.option("--search", "-s", default=None, help="Filter by handle or chat name")
@click.option("--limit", default=50, help="Max conversations to show")
def contacts(search: Optional[str], limit: int):
    """List conversations, most recent first.

    \b
    Examples:
        reply-assist contacts
        reply-assist contacts --search 555
    """
    store = open_message_store()
    try:
        if search:
            matches = store.search_contacts(search, limit=limit)
            table = Table(title=f"Contacts matching '{search}'")
            table.add_column("Handle")
            table.add_column("Chat name")
            for c in matches:
                table.add_row(c.identifier, escape(c.display_name or ""))
        else:
            previews = store.list_thread_previews()[:limit]
            table = Table(title="Conversations")
            table.add_column("", width=1)
            table.add_column("Contact")
            table.add_column("Handle", style="dim")
            table.add_column("Last message")
            table.add_column("When", style="dim")
            for p in previews:
                preview = (p.last_message or "(attachment)").replace("\n", " ")
                if p.last_is_from_me:
                    preview = f"You: {preview}"
                table.add_row(
                    "[blue]●[/blue]" if p.unread else "",
                    escape(p.contact.resolved_name),
                    p.contact.identifier,
                    escape(preview[:60]),
                    _format_time(p.last_sent_at),
                )
    except StoreUnavailableError as exc:
        raise click.ClickException(str(exc))
    finally:
        store.close()

    console.print(table)


@click.command("thread")
@click.argument("identifier")
@click.option("--limit", default=30, help="Number of recent messages")
def thread(identifier: str, limit: int):
    """Show the most recent messages with IDENTIFIER (phone number or email)."""
    store = open_message_store()
    try:
        messages = store.get_thread(identifier, limit=limit)
    except StoreUnavailableError as exc:
        raise click.ClickException(str(exc))
    finally:
        store.close()

    if not messages:
        console.print(f"[yellow]No messages found for {identifier}[/yellow]")
        return

    for msg in messages:
        who = "[green]You[/green]" if msg.is_from_me else f"[cyan]{identifier}[/cyan]"
        text = escape(msg.text) if msg.text else "[dim](no text)[/dim]"
        console.print(f"[dim]{_format_time(msg.sent_at)}[/dim] {who}: {text}")
