"""reply-assist CLI — draft iMessage replies with your own context."""

import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from reply_assist.cli.contacts_cmd import contacts, thread
from reply_assist.cli.context_cmd import context_cli, status_cli
from reply_assist.cli.suggest_cmd import analyze, suggest
from reply_assist.config import config_path, load_config, save_config, store_api_key

console = Console()


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
def cli(verbose: bool):
    """reply-assist — suggest iMessage replies using your contacts and notes."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


@cli.command("set-key")
@click.argument("provider", type=click.Choice(["gemini", "claude"]))
@click.option("--key", prompt=True, hide_input=True, help="API key")
def set_key(provider, key):
    """Store an API key in macOS Keychain.

    Examples:

        reply-assist set-key gemini

        reply-assist set-key claude
    """
    if store_api_key(provider, key):
        console.print(f"[green]✓[/green] {provider} API key stored in Keychain")
    else:
        console.print("[red]Failed to store key in Keychain[/red]")


@cli.command("config")
@click.option("--provider", type=click.Choice(["gemini", "claude"]), default=None)
@click.option("--model", default=None, help="Model name for the provider")
@click.option("--timeout", type=int, default=None, help="LLM request timeout in seconds")
def config_cmd(provider, model, timeout):
    """Show or update default LLM settings."""
    config = load_config()
    updates = {"provider": provider, "model": model, "timeout": timeout}
    updates = {k: v for k, v in updates.items() if v is not None}
    if updates:
        config.update(updates)
        save_config(config)
        console.print(f"[green]✓[/green] Saved {config_path()}")

    for key, value in config.items():
        console.print(f"  {key}: [cyan]{value}[/cyan]")


cli.add_command(contacts)
cli.add_command(thread)
cli.add_command(suggest)
cli.add_command(analyze)
cli.add_command(context_cli)
cli.add_command(status_cli)


if __name__ == "__main__":
    cli()
