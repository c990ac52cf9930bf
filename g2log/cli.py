"""g2log CLI."""

from __future__ import annotations

import asyncio
import json
import shutil
import uuid
from pathlib import Path
from typing import Annotated, Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.rule import Rule
from rich.table import Table

from . import __version__
from .core.config import (
    DEFAULT_PROMPT_TEMPLATE,
    ConfigError,
    ProviderProfile,
    Settings,
    load_settings,
    resolve_config_path,
    save_settings,
)
from .core.errors import GitLogError
from .core.logging_system import SessionLogger
from .core.timing_logger import (
    clear_timing_context,
    close_timing_file,
    configure_timing_file,
    set_timing_context,
)
from .gitlog.reader import (
    CollectedLogs,
    collect_logs,
    find_git_repositories,
    find_git_repository,
    read_repo_log,
)
from .render.html import open_in_browser, save_html
from .render.terminal import (
    default_output_name,
    render_markdown,
    summary_title,
    write_summary_file,
)
from .streaming.event_emitter import CollectingSink, ConsoleSink, LiveSink
from .summary.orchestrator import SummaryOrchestrator

load_dotenv()

app = typer.Typer(
    name="g2log",
    help="📝 g2log: turn git commit logs into an AI work summary",
    add_completion=False,
)
config_app = typer.Typer(
    name="config",
    help="Inspect and edit the g2log configuration file",
    add_completion=False,
)
app.add_typer(config_app, name="config")

console = Console()
err_console = Console(stderr=True)

RAW_LOG_TITLE = "Git commit log"

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", help="Config file (default: $G2LOG_CONFIG_PATH or ~/.g2log/config.jsonc)"),
]
ProfileOption = Annotated[
    Optional[str],
    typer.Option("--profile", "-p", help="Profile to modify (default: the current profile)"),
]


def _load(config_path: Optional[Path]) -> Settings:
    try:
        return load_settings(config_path)
    except ConfigError as exc:
        err_console.print(f"[red]Config error:[/red] {exc}")
        raise typer.Exit(1) from exc


def _save(settings: Settings, config_path: Optional[Path]) -> Path:
    try:
        return save_settings(settings, config_path)
    except ConfigError as exc:
        err_console.print(f"[red]Config error:[/red] {exc}")
        raise typer.Exit(1) from exc


def _config_path(ctx: typer.Context) -> Optional[Path]:
    return (ctx.obj or {}).get("config_path")


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"g2log {__version__}")
        raise typer.Exit()


# ── Summary run ──────────────────────────────────────────────────────────────


def _read_logs(
    settings: Settings,
    *,
    author: str,
    since: str,
    until: str,
    local: bool,
) -> CollectedLogs:
    if settings.repositories and not local:
        console.print(f"[cyan]Reading {len(settings.repositories)} configured repositories...[/cyan]")
        collected = collect_logs(settings.repositories, author=author, since=since, until=until)
        for alias, reason in collected.failures.items():
            err_console.print(f"[yellow]Skipped {alias}:[/yellow] {reason}")
        return collected

    repo_path = find_git_repository(Path.cwd())
    if repo_path is None:
        raise GitLogError(f"Not inside a git repository: {Path.cwd()}", path=str(Path.cwd()))
    console.print(f"[cyan]Reading git log from[/cyan] {repo_path}...")
    repo_log = read_repo_log(repo_path, author=author, since=since, until=until)
    return CollectedLogs(
        text=repo_log.text,
        commit_count=repo_log.commit_count,
        repo_count=1 if repo_log.text.strip() else 0,
    )


def _save_summary(
    text: str,
    *,
    settings_dir: Path,
    output: Optional[Path],
    html: bool,
    open_browser: bool,
    author: str,
    since: str,
    until: str,
) -> Path:
    if html or open_browser:
        target = output or settings_dir / default_output_name(author, since, until, extension="html")
        saved = save_html(text, target, title=summary_title(author))
        if open_browser and not open_in_browser(saved):
            err_console.print(f"[yellow]Could not open a browser; open {saved} manually.[/yellow]")
        return saved
    target = output or settings_dir / default_output_name(author, since, until)
    return write_summary_file(text, target, author=author, since=since, until=until)


def _write_session_log(request_id: str, config_dir: Path) -> Optional[Path]:
    text = SessionLogger.dump(request_id)
    if not text:
        return None
    log_path = config_dir / "logs" / "last_error.log"
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        log_path.write_text(text + "\n", encoding="utf-8")
    except OSError as exc:
        err_console.print(f"[yellow]Could not write debug log:[/yellow] {exc}")
        return None
    return log_path


def _run_summary(
    settings: Settings,
    *,
    request_id: str,
    config_path: Optional[Path],
    author: str,
    since: str,
    until: str,
    local: bool,
    output: Optional[Path],
    html: bool,
    open_browser: bool,
    profile: Optional[str],
    no_stream: bool,
    show_prompt: bool,
) -> None:
    try:
        collected = _read_logs(settings, author=author, since=since, until=until, local=local)
    except GitLogError as exc:
        err_console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1) from exc

    who = author or "all authors"
    if collected.empty:
        notice = f"No commits found for {who} between {since} and {until}."
        console.print(f"[yellow]{notice}[/yellow]")
        if output:
            output.parent.mkdir(parents=True, exist_ok=True)
            output.write_text(notice + "\n", encoding="utf-8")
        return

    console.print(
        f"[green]✓[/green] {collected.commit_count} commits from {collected.repo_count} "
        f"{'repository' if collected.repo_count == 1 else 'repositories'}"
    )

    sink: LiveSink = CollectingSink() if no_stream else ConsoleSink(console)
    orchestrator = SummaryOrchestrator(settings, sink=sink, profile_name=profile)
    try:
        prepared = orchestrator.prepare(collected.text, author=author, since=since, until=until)
    except ConfigError as exc:
        err_console.print(f"[red]Config error:[/red] {exc}")
        raise typer.Exit(1) from exc

    if show_prompt:
        console.print(Rule("[dim]Prompt[/dim]"))
        console.print(prepared.prompt, markup=False, highlight=False)
    console.print(Rule(f"[dim]{summary_title(author)} ({since} to {until})[/dim]"))

    outcome = asyncio.run(orchestrator.run(prepared))
    if not outcome.ok:
        render_markdown(
            outcome.error.to_markdown(template=settings.error_template, endpoint=prepared.request.url),
            err_console,
        )
        console.print(Rule("[dim]Raw commit log[/dim]"))
        console.print(collected.text, markup=False, highlight=False)
        if output:
            write_summary_file(collected.text, output, author=author, since=since, until=until, title=RAW_LOG_TITLE)
            console.print(f"\n[dim]Raw log saved to {output}[/dim]")
        log_path = _write_session_log(request_id, resolve_config_path(config_path).parent)
        if log_path is not None:
            err_console.print(f"[dim]Debug log written to {log_path}[/dim]")
        raise typer.Exit(1)

    if no_stream:
        render_markdown(outcome.text, console)
    saved = _save_summary(
        outcome.text,
        settings_dir=resolve_config_path(config_path).parent,
        output=output,
        html=html,
        open_browser=open_browser,
        author=author,
        since=since,
        until=until,
    )
    console.print(f"\n[dim]Summary saved to {saved}[/dim]")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    author: Annotated[Optional[str], typer.Option("--author", "-a", help="Only commits by this author")] = None,
    since: Annotated[Optional[str], typer.Option("--since", help="Start of the range (any git date, e.g. 2024-03-01)")] = None,
    until: Annotated[Optional[str], typer.Option("--until", help="End of the range (any git date)")] = None,
    local: Annotated[bool, typer.Option("--local", help="Only the repository in the working directory")] = False,
    output: Annotated[Optional[Path], typer.Option("--output", "-o", help="Save the summary to this file")] = None,
    html: Annotated[bool, typer.Option("--html", help="Save the summary as an HTML page")] = False,
    open_browser: Annotated[bool, typer.Option("--open", help="Save as HTML and open it in the browser")] = False,
    profile: Annotated[Optional[str], typer.Option("--profile", help="Provider profile to use for this run")] = None,
    no_stream: Annotated[bool, typer.Option("--no-stream", help="Render the summary once at the end")] = False,
    show_prompt: Annotated[bool, typer.Option("--show-prompt", help="Print the prompt sent to the model")] = False,
    debug: Annotated[bool, typer.Option("--debug", help="Write debug logs to stderr")] = False,
    config: ConfigOption = None,
    version: Annotated[
        Optional[bool],
        typer.Option("--version", callback=_version_callback, is_eager=True, help="Show the version and exit"),
    ] = None,
):
    """
    Summarize git commits with an AI model.

    Examples:\\n
      g2log --since 2024-03-01 --until 2024-03-07\\n
      g2log --author "Jane Doe" --local --html\\n
      g2log config set-key sk-...
    """
    ctx.ensure_object(dict)["config_path"] = config
    if ctx.invoked_subcommand is not None:
        return

    settings = _load(config)
    request_id = uuid.uuid4().hex[:12]
    tokens = SessionLogger.bind(request_id, "DEBUG" if debug else settings.log_level)
    SessionLogger.get_logger()
    timing_on = settings.enable_timing_log and configure_timing_file(settings.timing_log_file)
    set_timing_context(request_id, bool(timing_on))
    try:
        _run_summary(
            settings,
            request_id=request_id,
            config_path=config,
            author=(author if author is not None else settings.default_author).strip(),
            since=since or settings.default_since,
            until=until or settings.default_until,
            local=local,
            output=output,
            html=html,
            open_browser=open_browser,
            profile=profile,
            no_stream=no_stream,
            show_prompt=show_prompt,
        )
    finally:
        clear_timing_context()
        close_timing_file()
        SessionLogger.unbind(tokens)
        SessionLogger.discard(request_id)


# ── config subcommands ───────────────────────────────────────────────────────


@config_app.callback()
def config_main(ctx: typer.Context, config: ConfigOption = None):
    """Inspect and edit the g2log configuration file."""
    if config is not None:
        ctx.ensure_object(dict)["config_path"] = config


def _masked_dump(settings: Settings) -> dict:
    data = settings.model_dump(mode="json")
    for name, profile in settings.profiles.items():
        data["profiles"][name]["api_key"] = "***" if profile.api_key.plain else ""
    return data


@config_app.command("show")
def config_show(ctx: typer.Context):
    """Print the configuration with API keys masked."""
    config_path = _config_path(ctx)
    settings = _load(config_path)
    console.print(f"[dim]{resolve_config_path(config_path)}[/dim]")
    console.print_json(json.dumps(_masked_dump(settings), ensure_ascii=False))


@config_app.command("remove")
def config_remove(
    ctx: typer.Context,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation")] = False,
):
    """Delete the configuration directory with its logs and saved summaries."""
    config_dir = resolve_config_path(_config_path(ctx)).parent
    if not config_dir.exists():
        console.print(f"[yellow]Nothing to remove:[/yellow] {config_dir} does not exist")
        return
    if not yes and not typer.confirm(f"Delete {config_dir} and everything in it?"):
        console.print("Aborted.")
        raise typer.Exit(1)
    try:
        shutil.rmtree(config_dir)
    except OSError as exc:
        err_console.print(f"[red]Error:[/red] cannot remove {config_dir}: {exc}")
        raise typer.Exit(1) from exc
    console.print(f"[green]✓[/green] Removed {config_dir}")


@config_app.command("profiles")
def config_profiles(ctx: typer.Context):
    """List provider profiles."""
    settings = _load(_config_path(ctx))
    table = Table(title="Profiles", show_header=True, header_style="bold magenta")
    table.add_column("", width=1)
    table.add_column("Name", style="cyan")
    table.add_column("Model")
    table.add_column("Base URL")
    table.add_column("Key", style="green")
    for name, profile in settings.profiles.items():
        table.add_row(
            "*" if name == settings.current_profile else "",
            name,
            profile.model or "[dim]-[/dim]",
            profile.api_base_url or "[dim]-[/dim]",
            "set" if profile.api_key.plain else "[dim]missing[/dim]",
        )
    console.print(table)


@config_app.command("use")
def config_use(ctx: typer.Context, name: Annotated[str, typer.Argument(help="Profile name")]):
    """Make NAME the current profile."""
    config_path = _config_path(ctx)
    settings = _load(config_path)
    try:
        settings.use_profile(name)
    except ConfigError as exc:
        err_console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1) from exc
    _save(settings, config_path)
    console.print(f"[green]✓[/green] Current profile: [bold]{name}[/bold]")


@config_app.command("set-key")
def config_set_key(
    ctx: typer.Context,
    key: Annotated[str, typer.Argument(help="API key")],
    profile: ProfileOption = None,
):
    """Store the API key of a profile."""
    config_path = _config_path(ctx)
    settings = _load(config_path)
    settings.set_api_key(key, profile=profile)
    _save(settings, config_path)
    console.print(f"[green]✓[/green] API key saved for [bold]{profile or settings.current_profile}[/bold]")


@config_app.command("set")
def config_set(
    ctx: typer.Context,
    field: Annotated[str, typer.Argument(help="Profile field (model, api_base_url, ...) or setting (verify_tls, ...)")],
    value: Annotated[str, typer.Argument(help="New value; 'null' clears optional values")],
    profile: ProfileOption = None,
):
    """Set a profile field or a top-level setting."""
    config_path = _config_path(ctx)
    settings = _load(config_path)
    try:
        if field == "api_key":
            settings.set_api_key(value, profile=profile)
        elif field in ProviderProfile.model_fields:
            settings.set_profile_field(field, value, profile=profile)
        else:
            settings.set_field(field, value)
    except ConfigError as exc:
        err_console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1) from exc
    _save(settings, config_path)
    console.print(f"[green]✓[/green] {field} updated")


@config_app.command("set-author")
def config_set_author(ctx: typer.Context, name: Annotated[str, typer.Argument(help="Default author filter")]):
    """Set the author used when --author is omitted."""
    config_path = _config_path(ctx)
    settings = _load(config_path)
    settings.default_author = name.strip()
    _save(settings, config_path)
    console.print(f"[green]✓[/green] Default author: [bold]{settings.default_author}[/bold]")


@config_app.command("set-range")
def config_set_range(
    ctx: typer.Context,
    since: Annotated[Optional[str], typer.Option("--since", help="Default start of the range")] = None,
    until: Annotated[Optional[str], typer.Option("--until", help="Default end of the range")] = None,
):
    """Set the default time range."""
    if since is None and until is None:
        err_console.print("[red]Error:[/red] pass --since and/or --until")
        raise typer.Exit(1)
    config_path = _config_path(ctx)
    settings = _load(config_path)
    if since is not None:
        settings.default_since = since
    if until is not None:
        settings.default_until = until
    _save(settings, config_path)
    console.print(f"[green]✓[/green] Default range: {settings.default_since} to {settings.default_until}")


@config_app.command("add-repo")
def config_add_repo(
    ctx: typer.Context,
    alias: Annotated[str, typer.Argument(help="Name shown in the summary")],
    path: Annotated[Path, typer.Argument(help="Repository path")],
):
    """Register a repository for multi-repository summaries."""
    config_path = _config_path(ctx)
    settings = _load(config_path)
    try:
        resolved = settings.add_repository(alias, path)
    except ConfigError as exc:
        err_console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1) from exc
    if find_git_repository(resolved) is None:
        err_console.print(f"[yellow]Warning:[/yellow] {resolved} is not a git repository")
    _save(settings, config_path)
    console.print(f"[green]✓[/green] Added repository: [bold]{alias}[/bold] → {resolved}")


@config_app.command("remove-repo")
def config_remove_repo(ctx: typer.Context, alias: Annotated[str, typer.Argument(help="Repository alias")]):
    """Remove a registered repository."""
    config_path = _config_path(ctx)
    settings = _load(config_path)
    try:
        settings.remove_repository(alias)
    except ConfigError as exc:
        err_console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1) from exc
    _save(settings, config_path)
    console.print(f"[green]✓[/green] Removed repository: [bold]{alias}[/bold]")


@config_app.command("repos")
def config_repos(ctx: typer.Context):
    """List registered repositories."""
    settings = _load(_config_path(ctx))
    if not settings.repositories:
        console.print("[yellow]No repositories registered.[/yellow]")
        console.print("[dim]Use 'g2log config add-repo ALIAS PATH' or 'g2log config find'[/dim]")
        return
    table = Table(title="Repositories", show_header=True, header_style="bold magenta")
    table.add_column("Alias", style="cyan")
    table.add_column("Path")
    for alias, repo_path in settings.repositories.items():
        table.add_row(alias, repo_path)
    console.print(table)


@config_app.command("find")
def config_find(
    ctx: typer.Context,
    root: Annotated[Path, typer.Argument(help="Directory to search")] = Path("."),
    max_depth: Annotated[int, typer.Option("--max-depth", help="How deep to search")] = 3,
    add: Annotated[bool, typer.Option("--add", help="Register every repository found")] = False,
):
    """Find git repositories below ROOT."""
    try:
        found = find_git_repositories(root, max_depth=max_depth)
    except GitLogError as exc:
        err_console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1) from exc
    if not found:
        console.print(f"[yellow]No git repositories found under {root}.[/yellow]")
        return
    for repo_path in found:
        console.print(f"  {repo_path.name}  [dim]{repo_path}[/dim]")
    if add:
        config_path = _config_path(ctx)
        settings = _load(config_path)
        for repo_path in found:
            alias = settings.unique_repository_alias(repo_path.name, repo_path)
            if alias != repo_path.name:
                err_console.print(
                    f"[yellow]Warning:[/yellow] alias '{repo_path.name}' is taken; registered {repo_path} as '{alias}'"
                )
            settings.add_repository(alias, repo_path)
        _save(settings, config_path)
        console.print(f"[green]✓[/green] Registered {len(found)} repositories")


@config_app.command("set-prompt-template")
def config_set_prompt_template(
    ctx: typer.Context,
    file: Annotated[Path, typer.Argument(help="Text file containing the prompt template")],
):
    """Replace the prompt template with the contents of FILE."""
    try:
        template = file.expanduser().read_text(encoding="utf-8")
    except OSError as exc:
        err_console.print(f"[red]Error:[/red] cannot read {file}: {exc}")
        raise typer.Exit(1) from exc
    if not template.strip():
        err_console.print(f"[red]Error:[/red] {file} is empty")
        raise typer.Exit(1)
    config_path = _config_path(ctx)
    settings = _load(config_path)
    settings.prompt_template = template
    _save(settings, config_path)
    console.print("[green]✓[/green] Prompt template updated")


@config_app.command("reset-prompt-template")
def config_reset_prompt_template(ctx: typer.Context):
    """Restore the built-in prompt template."""
    config_path = _config_path(ctx)
    settings = _load(config_path)
    settings.prompt_template = DEFAULT_PROMPT_TEMPLATE
    _save(settings, config_path)
    console.print("[green]✓[/green] Prompt template reset")


if __name__ == "__main__":
    app()
