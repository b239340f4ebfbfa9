"""Command-line shell for the QuickFix issue store.

The shell plays the part of the host application: it opens the store,
binds a session to it, runs one action and saves pending changes on the
way out.

Usage:
    quickfix issues --tag Work --status open    # List issues
    quickfix new-issue --tag Work --title "Fix login"
    quickfix edit 3f2a9c1e --priority high --closed
    quickfix awards --earned                    # Show earned awards
    quickfix award "First Steps"                # One award in detail
    quickfix watch                              # Follow changes from other processes
    quickfix init-config                        # Create config file
"""

import asyncio
import contextlib
import signal
import sys
from collections.abc import AsyncIterator, Awaitable, Callable
from pathlib import Path
from typing import Any

import click
import tomli_w

from quickfix import __version__
from quickfix.config import Settings, get_config_path, load_settings_with_toml
from quickfix.core import (
    AwardEvaluator,
    IssueStore,
    SessionContext,
    SortType,
    StoreChange,
    StoreEvent,
    create_sample_data,
)
from quickfix.models import Award, Filter, Issue, Priority, Status, Tag
from quickfix.storage import MEMORY_DATABASE, RemoteChangeMonitor, SQLiteAdapter
from quickfix.utils.logging import bind_store_context, clear_store_context, get_logger, setup_logging

logger = get_logger(__name__)

PRIORITY_CHOICES = {priority.name.lower(): priority for priority in Priority}

SessionAction = Callable[[SessionContext], Awaitable[Any]]


def get_default_config() -> dict[str, Any]:
    """Get default configuration for init-config."""
    return {
        "storage": {
            "database_path": str(Settings().database_path),
            "in_memory": False,
            "remote_poll_interval_seconds": 2.0,
        },
        "store": {
            "save_delay_seconds": 3.0,
            "recent_days": 7,
        },
        "logging": {
            "level": "WARNING",
            "format": "json",
        },
        "metrics": {
            "enabled": False,
            "host": "127.0.0.1",
            "port": 9090,
        },
    }


def load_cli_settings(options: dict[str, Any]) -> Settings:
    """Merge CLI options over env, config file and defaults."""
    config_path = options.get("config_path")
    return load_settings_with_toml(
        Path(config_path) if config_path else None,
        database_path=options.get("database_path"),
        log_level=options.get("log_level"),
    )


def create_adapter(settings: Settings) -> SQLiteAdapter:
    return SQLiteAdapter(MEMORY_DATABASE if settings.in_memory else settings.database_path)


@contextlib.asynccontextmanager
async def open_session(settings: Settings) -> AsyncIterator[SessionContext]:
    """Open the store and yield a session bound to it.

    Pending changes are saved when the block exits.
    """
    store = IssueStore(create_adapter(settings), save_delay_seconds=settings.save_delay_seconds)
    await store.initialize()
    try:
        yield SessionContext(store=store, recent_days=settings.recent_days)
    finally:
        await store.close()


def configure_logging(ctx: click.Context, settings: Settings) -> None:
    """Set up logging and tag records with the database and command."""
    setup_logging(settings, use_stderr=True)
    bind_store_context(MEMORY_DATABASE if settings.in_memory else settings.database_path, ctx.info_name)


def run_with_session(ctx: click.Context, action: SessionAction) -> Any:
    """Run ``action`` against a freshly opened session."""
    settings = load_cli_settings(ctx.obj)
    configure_logging(ctx, settings)

    async def _run() -> Any:
        async with open_session(settings) as session:
            return await action(session)

    return asyncio.run(_run())


def short_id(entity: Issue | Tag) -> str:
    return str(entity.id)[:8]


def find_issue(store: IssueStore, ref: str) -> Issue:
    """Resolve an issue from an identifier prefix."""
    matches = [issue for issue in store.fetch_issues() if str(issue.id).startswith(ref.lower())]
    if not matches:
        raise click.ClickException(f"No issue matches '{ref}'")
    if len(matches) > 1:
        raise click.ClickException(f"'{ref}' matches {len(matches)} issues; use a longer identifier")
    return matches[0]


def find_tag(store: IssueStore, ref: str) -> Tag:
    """Resolve a tag from its name (case-insensitive) or an identifier prefix."""
    tags = store.fetch_tags()
    matches = [tag for tag in tags if tag.name.lower() == ref.lower()]
    if not matches:
        matches = [tag for tag in tags if str(tag.id).startswith(ref.lower())]
    if not matches:
        raise click.ClickException(f"No tag matches '{ref}'")
    if len(matches) > 1:
        raise click.ClickException(f"'{ref}' matches {len(matches)} tags; use the tag identifier")
    return matches[0]


def format_issue_row(store: IssueStore, issue: Issue) -> str:
    marker = "!" if issue.priority == Priority.HIGH else " "
    created = issue.creation_date.astimezone().strftime("%Y-%m-%d")
    closed = "  CLOSED" if issue.completed else ""
    return f"{short_id(issue)} {marker} {issue.title}  [{store.tag_list_text(issue)}]  {created}{closed}"


def echo_issues(session: SessionContext) -> None:
    issues = session.issues_for_selected_filter()
    if not issues:
        click.echo("No issues.")
        return
    for issue in issues:
        click.echo(format_issue_row(session.store, issue))


def fail(message: str) -> None:
    click.echo(click.style(message, fg="red"), err=True)
    sys.exit(1)


@click.group()
@click.option(
    "--config",
    type=click.Path(dir_okay=False),
    help="Override global config file path",
)
@click.option(
    "--database",
    type=click.Path(dir_okay=False),
    help="Override database file path",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Override log level",
)
@click.version_option(version=__version__, prog_name="quickfix")
@click.pass_context
def main(ctx: click.Context, config: str | None, database: str | None, log_level: str | None) -> None:
    """QuickFix issue tracker.

    Configuration is loaded from (in priority order):
    1. CLI arguments
    2. Environment variables (QUICKFIX_*)
    3. Global config file (~/.config/quickfix/config.toml)
    4. Built-in defaults
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["database_path"] = database
    ctx.obj["log_level"] = log_level
    ctx.call_on_close(clear_store_context)


@main.command()
@click.option("--recent", is_flag=True, help="Only issues modified in the recent window")
@click.option("--tag", "tag_ref", help="Only issues with this tag")
@click.option("--search", default="", help="Text to find in title or description")
@click.option("--token", "tokens", multiple=True, help="Required tag (repeatable)")
@click.option("--priority", type=click.Choice(list(PRIORITY_CHOICES)), help="Only this priority")
@click.option("--status", type=click.Choice([status.value for status in Status]), help="Only open or closed issues")
@click.option("--sort", "sort_by", type=click.Choice(["created", "modified"]), default="created", show_default=True)
@click.option("--oldest-first", is_flag=True, help="Sort oldest to newest")
@click.pass_context
def issues(
    ctx: click.Context,
    recent: bool,
    tag_ref: str | None,
    search: str,
    tokens: tuple[str, ...],
    priority: str | None,
    status: str | None,
    sort_by: str,
    oldest_first: bool,
) -> None:
    """List issues matching the given filters."""

    async def _list(session: SessionContext) -> None:
        store = session.store
        if tag_ref:
            session.selected_filter = Filter.for_tag(find_tag(store, tag_ref))
        elif recent:
            session.selected_filter = Filter.recent_issues(days=session.recent_days)

        session.filter_text = search
        session.filter_tokens = [find_tag(store, token) for token in tokens]
        session.filter_enabled = priority is not None or status is not None
        session.filter_priority = PRIORITY_CHOICES[priority] if priority else None
        session.filter_status = Status(status) if status else Status.ALL
        session.sort_type = SortType.DATE_MODIFIED if sort_by == "modified" else SortType.DATE_CREATED
        session.sort_newest_first = not oldest_first

        echo_issues(session)

    run_with_session(ctx, _list)


@main.command()
@click.argument("issue_ref")
@click.pass_context
def show(ctx: click.Context, issue_ref: str) -> None:
    """Show one issue with its tags."""

    async def _show(session: SessionContext) -> None:
        store = session.store
        issue = find_issue(store, issue_ref)
        modified = issue.modification_date.astimezone().strftime("%Y-%m-%d %H:%M")

        click.echo(click.style(issue.title or "(untitled)", bold=True))
        click.echo(f"Modified: {modified}")
        click.echo(f"Status:   {issue.status}")
        click.echo(f"Priority: {issue.priority.label}")
        click.echo(f"Tags:     {store.tag_list_text(issue)}")
        missing = store.missing_tags(issue)
        if missing:
            click.echo(f"Add tags: {', '.join(tag.name for tag in missing)}")
        if issue.content:
            click.echo()
            click.echo(issue.content)

    run_with_session(ctx, _show)


@main.command()
@click.pass_context
def tags(ctx: click.Context) -> None:
    """List tags with their open issue counts."""

    async def _tags(session: SessionContext) -> None:
        for tag_filter in session.tag_filters():
            count = session.store.active_issue_count(tag_filter)
            click.echo(f"{str(tag_filter.id)[:8]}  {tag_filter.name}  ({count} open)")

    run_with_session(ctx, _tags)


@main.command()
@click.argument("query")
@click.pass_context
def suggest(ctx: click.Context, query: str) -> None:
    """Suggest tags for a search starting with "#"."""

    async def _suggest(session: SessionContext) -> None:
        session.filter_text = query
        for tag in session.suggested_filter_tokens:
            click.echo(tag.name)

    run_with_session(ctx, _suggest)


@main.command("new-issue")
@click.option("--tag", "tag_ref", help="Tag to attach")
@click.option("--title", help="Title (defaults to 'New Issue')")
@click.pass_context
def new_issue(ctx: click.Context, tag_ref: str | None, title: str | None) -> None:
    """Create an issue."""

    async def _new(session: SessionContext) -> None:
        if tag_ref:
            session.selected_filter = Filter.for_tag(find_tag(session.store, tag_ref))
        issue = await session.new_issue()
        if title is not None:
            session.store.update(issue, title=title)
        click.echo(short_id(issue))

    run_with_session(ctx, _new)


@main.command("new-tag")
@click.option("--name", help="Tag name (defaults to 'New Tag')")
@click.pass_context
def new_tag(ctx: click.Context, name: str | None) -> None:
    """Create a tag."""

    async def _new(session: SessionContext) -> None:
        tag = await session.new_tag()
        if name is not None:
            session.rename_tag(tag, name)
        click.echo(short_id(tag))

    run_with_session(ctx, _new)


@main.command("rename-tag")
@click.argument("tag_ref")
@click.argument("name")
@click.pass_context
def rename_tag(ctx: click.Context, tag_ref: str, name: str) -> None:
    """Rename a tag."""

    async def _rename(session: SessionContext) -> None:
        session.rename_tag(find_tag(session.store, tag_ref), name)

    run_with_session(ctx, _rename)


@main.command()
@click.argument("issue_ref")
@click.option("--title", help="New title")
@click.option("--content", help="New description")
@click.option("--priority", type=click.Choice(list(PRIORITY_CHOICES)), help="New priority")
@click.option("--closed/--open", "completed", default=None, help="Close or reopen the issue")
@click.pass_context
def edit(
    ctx: click.Context,
    issue_ref: str,
    title: str | None,
    content: str | None,
    priority: str | None,
    completed: bool | None,
) -> None:
    """Change fields of an issue."""
    changes: dict[str, Any] = {}
    if title is not None:
        changes["title"] = title
    if content is not None:
        changes["content"] = content
    if priority is not None:
        changes["priority"] = PRIORITY_CHOICES[priority]
    if completed is not None:
        changes["completed"] = completed
    if not changes:
        raise click.UsageError("Nothing to change")

    async def _edit(session: SessionContext) -> None:
        session.store.update(find_issue(session.store, issue_ref), **changes)

    run_with_session(ctx, _edit)


@main.command("tag")
@click.argument("issue_ref")
@click.argument("tag_ref")
@click.pass_context
def tag_issue(ctx: click.Context, issue_ref: str, tag_ref: str) -> None:
    """Attach a tag to an issue."""

    async def _tag(session: SessionContext) -> None:
        store = session.store
        store.add_tag(find_issue(store, issue_ref), find_tag(store, tag_ref))

    run_with_session(ctx, _tag)


@main.command("untag")
@click.argument("issue_ref")
@click.argument("tag_ref")
@click.pass_context
def untag_issue(ctx: click.Context, issue_ref: str, tag_ref: str) -> None:
    """Detach a tag from an issue."""

    async def _untag(session: SessionContext) -> None:
        store = session.store
        store.remove_tag(find_issue(store, issue_ref), find_tag(store, tag_ref))

    run_with_session(ctx, _untag)


@main.command("delete-issue")
@click.argument("issue_ref")
@click.pass_context
def delete_issue(ctx: click.Context, issue_ref: str) -> None:
    """Delete an issue."""

    async def _delete(session: SessionContext) -> bool:
        return await session.delete(find_issue(session.store, issue_ref))

    if not run_with_session(ctx, _delete):
        fail("Issue could not be deleted. See the log for details.")


@main.command("delete-tag")
@click.argument("tag_ref")
@click.pass_context
def delete_tag(ctx: click.Context, tag_ref: str) -> None:
    """Delete a tag; its issues are kept."""

    async def _delete(session: SessionContext) -> bool:
        return await session.delete(find_tag(session.store, tag_ref))

    if not run_with_session(ctx, _delete):
        fail("Tag could not be deleted. See the log for details.")


@main.command()
@click.option("--earned", "earned_only", is_flag=True, help="Only awards already unlocked")
@click.pass_context
def awards(ctx: click.Context, earned_only: bool) -> None:
    """Show every award and whether it is unlocked."""

    async def _awards(session: SessionContext) -> None:
        evaluator = AwardEvaluator(session.store)
        catalog = evaluator.earned_awards() if earned_only else Award.all_awards()
        for award in catalog:
            earned = evaluator.has_earned(award)
            title = click.style(evaluator.award_title(award), fg="green" if earned else None)
            click.echo(f"{title}  {award.description}")

    run_with_session(ctx, _awards)


@main.command()
@click.argument("name", required=False)
@click.pass_context
def award(ctx: click.Context, name: str | None) -> None:
    """Show one award in detail (the first in the catalog by default)."""
    if name is None:
        selected = Award.example()
    else:
        matches = [a for a in Award.all_awards() if a.name.casefold() == name.casefold()]
        if not matches:
            fail(f"No award named '{name}'")
        selected = matches[0]

    async def _award(session: SessionContext) -> None:
        evaluator = AwardEvaluator(session.store)
        click.echo(evaluator.award_title(selected))
        click.echo(f"Name:        {selected.name}")
        click.echo(f"Description: {selected.description}")
        click.echo(f"Requires:    {selected.value} {selected.criterion}")
        click.echo(f"Color:       {selected.color}")
        click.echo(f"Image:       {selected.image}")

    run_with_session(ctx, _award)


@main.command()
@click.confirmation_option(prompt="Replace all tags and issues with sample data?")
@click.pass_context
def samples(ctx: click.Context) -> None:
    """Replace everything with generated sample data."""

    async def _samples(session: SessionContext) -> bool:
        if not await session.store.delete_all():
            return False
        return await create_sample_data(session.store)

    if not run_with_session(ctx, _samples):
        fail("Sample data could not be created. See the log for details.")
    click.echo("Sample data created.")


@main.command()
@click.confirmation_option(prompt="Delete all tags and issues?")
@click.pass_context
def reset(ctx: click.Context) -> None:
    """Delete every tag and issue."""

    async def _reset(session: SessionContext) -> bool:
        return await session.store.delete_all()

    if not run_with_session(ctx, _reset):
        fail("Store could not be reset. See the log for details.")
    click.echo("All tags and issues deleted.")


@main.command("init-config")
@click.pass_context
def init_config(ctx: click.Context) -> None:
    """Create global configuration file with defaults."""
    config_path = Path(ctx.obj.get("config_path") or get_config_path())

    if config_path.exists():
        click.echo(f"Config file already exists: {config_path}")
        if not click.confirm("Overwrite?"):
            sys.exit(0)

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "wb") as f:
        tomli_w.dump(get_default_config(), f)

    click.echo(f"Created config file: {config_path}")


@main.command("check-db")
@click.pass_context
def check_db(ctx: click.Context) -> None:
    """Verify the database opens and report what it holds."""
    settings = load_cli_settings(ctx.obj)
    configure_logging(ctx, settings)

    async def _check() -> dict[str, int]:
        adapter = create_adapter(settings)
        await adapter.initialize()
        try:
            return {
                "issues": await adapter.count("issues"),
                "open": await adapter.count("issues", "completed = ?", (False,)),
                "tags": await adapter.count("tags"),
            }
        finally:
            await adapter.close()

    location = MEMORY_DATABASE if settings.in_memory else settings.database_path
    click.echo(f"Database ({location})... ", nl=False)
    try:
        counts = asyncio.run(_check())
    except Exception as e:
        click.echo(click.style("FAILED", fg="red"))
        click.echo(f"  Error: {e}")
        sys.exit(1)

    click.echo(click.style("OK", fg="green"))
    click.echo(f"  {counts['issues']} issues ({counts['open']} open), {counts['tags']} tags")


@main.command()
@click.pass_context
def watch(ctx: click.Context) -> None:
    """Print the issue list whenever another process changes the store."""
    settings = load_cli_settings(ctx.obj)
    configure_logging(ctx, settings)

    async def _watch() -> None:
        if settings.metrics_enabled:
            from prometheus_client import start_http_server

            start_http_server(settings.metrics_port, addr=settings.metrics_host)
            logger.info("metrics_server_started", host=settings.metrics_host, port=settings.metrics_port)

        async with open_session(settings) as session:
            store = session.store

            def on_change(change: StoreChange) -> None:
                if change.event != StoreEvent.REMOTE:
                    return
                click.echo(f"--- {change.event.value} ---")
                echo_issues(session)

            unsubscribe = store.subscribe(on_change)
            monitor = RemoteChangeMonitor(
                store.adapter,
                on_change=store.apply_remote_change,
                interval_seconds=settings.remote_poll_interval_seconds,
            )

            shutdown_event = asyncio.Event()
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, shutdown_event.set)

            echo_issues(session)
            try:
                await monitor.run(shutdown_event)
            finally:
                unsubscribe()

    asyncio.run(_watch())
