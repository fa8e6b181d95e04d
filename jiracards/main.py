"""jiracards CLI: drive the connector operations from a terminal."""

import asyncio
import json
import logging
from typing import Annotated

import typer
from rich import print as rprint
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from jiracards.errors import BACKEND_STATUS_HEADER, ConnectorError
from jiracards.extractor import extract_identifiers
from jiracards.handlers import CardConnector
from jiracards.models import Card, Credentials
from jiracards.providers.jira import JiraProvider
from jiracards.settings import CONFIG_PATH, ConfigError, ConnectorSettings, get_settings

app = typer.Typer(help="jiracards: turn Jira issue keys in text into cards", no_args_is_help=True)

ProfileOpt = Annotated[
    str | None,
    typer.Option("--profile", "-P", help="Profile name from ~/.config/jiracards/config.toml"),
]
BaseUrlOpt = Annotated[
    str | None,
    typer.Option("--base-url", envvar="JIRA_BASE_URL", help="Jira base URL, e.g. https://jira.acme.com"),
]
TokenOpt = Annotated[
    str | None,
    typer.Option("--token", envvar="JIRA_TOKEN", help="Jira bearer token", show_default=False),
]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log backend calls")] = False,
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(show_path=False)],
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_settings(profile: str | None) -> ConnectorSettings:
    try:
        return get_settings(profile=profile)
    except ConfigError as exc:
        rprint(f"[red]{exc}[/red]")
        raise typer.Exit(1) from None


def _credentials(base_url: str | None, token: str | None) -> Credentials:
    # same priority as the connector: token before base URL
    if not token:
        rprint("[red]Missing Jira token. Pass --token or set JIRA_TOKEN.[/red]")
        raise typer.Exit(1)
    if not base_url:
        rprint("[red]Missing Jira base URL. Pass --base-url or set JIRA_BASE_URL.[/red]")
        raise typer.Exit(1)
    return Credentials(base_url=base_url, authorization=token)


async def _with_connector(settings: ConnectorSettings, operation):
    async with JiraProvider(settings) as provider:
        return await operation(CardConnector(settings, provider))


def _run(settings: ConnectorSettings, operation):
    """Run one connector operation, turning ConnectorError into a red message and exit 1."""
    try:
        return asyncio.run(_with_connector(settings, operation))
    except ConnectorError as exc:
        detail = f" ({BACKEND_STATUS_HEADER}: {exc.backend_status})" if exc.backend_status is not None else ""
        rprint(f"[red]Error {exc.status_code}: {exc}{detail}[/red]")
        raise typer.Exit(1) from None


def _card_table(card: Card) -> Table:
    table = Table(title=card.header.title)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    for field in card.body.fields:
        table.add_row(field.title, field.description)
    if card.body.description:
        table.add_row("Description", card.body.description)
    for action in card.actions:
        table.add_row(action.label, f"[dim]{action.type} {action.url}[/dim]")
    return table


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command("extract")
def extract_cmd(
    text: Annotated[str, typer.Argument(help="Free text to scan, or - for stdin")],
    profile: ProfileOpt = None,
) -> None:
    """Print issue keys found in text, one per line."""
    settings = _load_settings(profile)
    if text == "-":
        text = typer.get_text_stream("stdin").read()
    for identifier in extract_identifiers(text, settings.issue_pattern):
        typer.echo(identifier)


@app.command("cards")
def cards_cmd(
    text: Annotated[str, typer.Argument(help="Free text containing issue keys, or - for stdin")],
    profile: ProfileOpt = None,
    base_url: BaseUrlOpt = None,
    token: TokenOpt = None,
    lang: Annotated[str | None, typer.Option("--lang", "-l", help="Accept-Language value")] = None,
    routing_prefix: Annotated[str, typer.Option("--routing-prefix", help="Prefix for action URLs")] = "",
    as_json: Annotated[bool, typer.Option("--json", help="Emit cards as JSON")] = False,
) -> None:
    """Fetch every issue mentioned in text and render its card."""
    settings = _load_settings(profile)
    credentials = _credentials(base_url, token)
    if text == "-":
        text = typer.get_text_stream("stdin").read()
    identifiers = extract_identifiers(text, settings.issue_pattern)

    cards = _run(
        settings,
        lambda connector: connector.cards_for(
            identifiers, credentials, language=lang, routing_prefix=routing_prefix
        ),
    )

    if as_json:
        typer.echo(json.dumps({"cards": [c.model_dump(mode="json") for c in cards]}, indent=2))
        return
    if not cards:
        rprint("[dim]No matching issues.[/dim]")
        return
    for card in cards:
        rprint(_card_table(card))


@app.command("test-auth")
def test_auth_cmd(profile: ProfileOpt = None, base_url: BaseUrlOpt = None, token: TokenOpt = None) -> None:
    """Check that the Jira token is accepted."""
    settings = _load_settings(profile)
    credentials = _credentials(base_url, token)
    _run(settings, lambda connector: connector.probe(credentials))
    rprint(f"[green]✓[/green] Jira accepted the token for {credentials.base_url}")


@app.command("comment")
def comment_cmd(
    issue_id: Annotated[str, typer.Argument(help="Issue id or key (e.g. 10001 or APF-27)")],
    body: Annotated[str, typer.Argument(help="Comment text")],
    profile: ProfileOpt = None,
    base_url: BaseUrlOpt = None,
    token: TokenOpt = None,
) -> None:
    """Add a comment to an issue."""
    settings = _load_settings(profile)
    credentials = _credentials(base_url, token)
    _run(settings, lambda connector: connector.comment(issue_id, credentials, body))
    rprint(f"[green]✓[/green] Commented on {issue_id}")


@app.command("watch")
def watch_cmd(
    issue_id: Annotated[str, typer.Argument(help="Issue id or key")],
    profile: ProfileOpt = None,
    base_url: BaseUrlOpt = None,
    token: TokenOpt = None,
) -> None:
    """Add the token's user as a watcher of an issue."""
    settings = _load_settings(profile)
    credentials = _credentials(base_url, token)
    _run(settings, lambda connector: connector.watch(issue_id, credentials))
    rprint(f"[green]✓[/green] Watching {issue_id}")


@app.command("config-show")
def config_show(profile: ProfileOpt = None) -> None:
    """Show resolved configuration (masks secrets)."""
    settings = _load_settings(profile)

    def mask(val: str | None) -> str:
        if val is None:
            return "[dim](not set)[/dim]"
        if len(val) <= 5:
            return "***"
        return f"...{val[-5:]}"

    table = Table(title=f"jiracards configuration ({CONFIG_PATH})")
    table.add_column("Field", style="bold")
    table.add_column("Value")

    table.add_row("profile", settings.profile or "[dim](none)[/dim]")
    table.add_row("concurrency_limit", str(settings.concurrency_limit))
    table.add_row("max_connections", str(settings.max_connections))
    table.add_row("request_timeout", f"{settings.request_timeout}s")
    table.add_row("issue_pattern", escape(settings.issue_pattern))
    table.add_row("default_language", settings.default_language)
    table.add_row(
        "connector_jwt_key",
        mask(settings.connector_jwt_key.get_secret_value() if settings.connector_jwt_key else None),
    )
    table.add_row("connector_jwt_algorithm", settings.connector_jwt_algorithm)
    table.add_row("connector_jwt_audience", settings.connector_jwt_audience or "[dim](not set)[/dim]")
    table.add_row("connector_auth_disabled", str(settings.connector_auth_disabled))

    rprint(table)
