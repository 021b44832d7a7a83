"""Avventura CLI - typer application entry point."""

from __future__ import annotations

import asyncio
import atexit
import json
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, NoReturn

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from avventura.backend import BackendError, StoryStoreClient
from avventura.config import AppConfig, ConfigError, load_config
from avventura.generation import StoryGenerator, extract_steps
from avventura.graph import (
    StoryGraph,
    StoryGraphError,
    parse_steps,
    redirect_dangling_paths,
    suggest_paths_for,
    validate_story_graph,
)
from avventura.observability import (
    close_file_logging,
    configure_logging,
    get_logger,
    story_context,
)
from avventura.prompts import TemplateNotFoundError, TemplateParseError
from avventura.providers import ProviderError, create_chat_model
from avventura.session import SessionContext, SessionStore

if TYPE_CHECKING:
    from avventura.generation import GenerationResult
    from avventura.graph import ValidationReport
    from avventura.models import Step

# Load environment variables from .env file
load_dotenv()

log = get_logger(__name__)

app = typer.Typer(
    name="avventura",
    help="Avventura: author, validate and play branching adventure stories.",
    no_args_is_help=True,
)
play_app = typer.Typer(help="Play a story as a single player.", no_args_is_help=True)
app.add_typer(play_app, name="play")

console = Console()

# Failures reported as a one-line error and exit code 1
_HANDLED_ERRORS = (
    StoryGraphError,
    BackendError,
    ProviderError,
    ConfigError,
    TemplateNotFoundError,
    TemplateParseError,
)

# Global state set by the callback, used by commands
_verbose: int = 0
_config_path: Path | None = None


@app.callback()
def main(
    verbose: Annotated[
        int,
        typer.Option(
            "-v",
            "--verbose",
            count=True,
            help="Increase verbosity: -v for INFO, -vv for DEBUG.",
        ),
    ] = 0,
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Config file (default: ./avventura.yaml, then ~/.config/avventura/config.yaml).",
            envvar="AVVENTURA_CONFIG",
        ),
    ] = None,
    log_dir: Annotated[
        Path | None,
        typer.Option(
            "--log-dir",
            help="Also write every log event to {log_dir}/debug.jsonl.",
        ),
    ] = None,
) -> None:
    """Avventura: author, validate and play branching adventure stories."""
    global _verbose, _config_path
    _verbose = verbose
    _config_path = config

    if log_dir is not None:
        configure_logging(verbosity=verbose, log_to_file=True, log_dir=log_dir)
        atexit.register(close_file_logging)
    else:
        configure_logging(verbosity=verbose)


# =============================================================================
# Helpers
# =============================================================================


def _fail(error: Exception | str) -> NoReturn:
    """Print an error and exit with status 1."""
    console.print(f"[red]Error:[/red] {escape(str(error))}")
    raise typer.Exit(1)


def _get_config() -> AppConfig:
    try:
        return load_config(_config_path)
    except ConfigError as e:
        _fail(e)


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        _fail(f"Cannot read {path}: {e.strerror}")


def _load_graph_file(path: Path, start_step: int) -> StoryGraph:
    try:
        return StoryGraph.from_json(_read_text(path), start_step=start_step)
    except StoryGraphError as e:
        _fail(e)


def _write_or_echo(graph: StoryGraph, output: Path | None) -> None:
    """Write interchange JSON to *output*, or to stdout when not given."""
    if output is None:
        typer.echo(graph.to_json())
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(graph.to_json() + "\n", encoding="utf-8")
    console.print(f"[green]✓[/green] Wrote {len(graph)} steps to [bold]{output}[/bold]")


def _print_report(report: ValidationReport) -> None:
    if not report.defects:
        console.print("[green]✓[/green] No defects found")
        return

    table = Table(title="Defects")
    table.add_column("Step", justify="right")
    table.add_column("Severity")
    table.add_column("Code")
    table.add_column("Message")
    for defect in report.defects:
        severity = "[red]fatal[/red]" if defect.is_fatal else "[yellow]warning[/yellow]"
        table.add_row(str(defect.step), severity, defect.code, escape(str(defect)))
    console.print(table)

    colour = "red" if report.has_fatal else "yellow"
    console.print(f"[{colour}]{report.summary}[/{colour}]")


def _print_step(step: Step) -> None:
    console.print(f"[bold]Step {step.step}[/bold]")
    console.print(escape(step.desc))
    console.print()
    for number, (option, target) in enumerate(zip(step.options, step.paths, strict=False), 1):
        console.print(f"  {number}. {escape(option)} [dim](→ {target})[/dim]")


# =============================================================================
# Story file commands
# =============================================================================


@app.command()
def version() -> None:
    """Show version information."""
    from avventura import __version__

    console.print(f"Avventura v{__version__}")


@app.command()
def validate(
    file: Annotated[Path, typer.Argument(help="Story JSON file (array of steps).")],
    start: Annotated[
        int | None,
        typer.Option("--start", "-s", min=1, help="Start step (default from config)."),
    ] = None,
    fix_dangling: Annotated[
        bool,
        typer.Option("--fix-dangling", help="Point paths to missing steps at the start step."),
    ] = False,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write the (repaired) story here."),
    ] = None,
) -> None:
    """Check a story file for structural defects.

    Exits with status 1 if any defect is fatal.
    """
    start_step = start if start is not None else _get_config().start_step
    graph = _load_graph_file(file, start_step)

    if fix_dangling:
        redirects = redirect_dangling_paths(graph)
        for r in redirects:
            console.print(
                f"[yellow]![/yellow] Step {r.step} option {r.index + 1}: "
                f"{r.old_target} → {r.new_target}"
            )

    report = validate_story_graph(graph)
    console.print(f"[dim]{len(graph)} steps, start step {graph.start_step}[/dim]")
    _print_report(report)

    if output is not None:
        _write_or_echo(graph, output)

    if report.has_fatal:
        raise typer.Exit(1)


@app.command()
def show(
    file: Annotated[Path, typer.Argument(help="Story JSON file (array of steps).")],
) -> None:
    """List the steps of a story file."""
    graph = _load_graph_file(file, _get_config().start_step)

    table = Table(title=f"{file.name} ({len(graph)} steps)")
    table.add_column("Step", justify="right", style="bold")
    table.add_column("Description")
    table.add_column("Options")
    for number in graph:
        step = graph.require(number)
        choices = "\n".join(
            f"{escape(o)} → {p}" for o, p in zip(step.options, step.paths, strict=False)
        )
        table.add_row(str(step.step), escape(step.desc), choices)
    console.print(table)


@app.command()
def suggest(
    file: Annotated[Path, typer.Argument(help="Story JSON file (array of steps).")],
    step: Annotated[int, typer.Argument(help="Step the new paths leave from.")],
    count: Annotated[
        int,
        typer.Option("--count", "-n", help="How many step numbers to suggest (1-3)."),
    ] = 3,
) -> None:
    """Suggest unused step numbers for new paths out of STEP."""
    graph = _load_graph_file(file, _get_config().start_step)
    try:
        suggestions = suggest_paths_for(graph, step, count)
    except ValueError as e:
        _fail(e)
    typer.echo(" ".join(str(n) for n in suggestions))


@app.command()
def extract(
    file: Annotated[Path, typer.Argument(help="Raw LLM output containing a step array.")],
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write the story here instead of stdout."),
    ] = None,
) -> None:
    """Extract and validate the story contained in raw LLM output."""
    config = _get_config()
    try:
        graph = StoryGraph.load(extract_steps(_read_text(file)), start_step=config.start_step)
    except StoryGraphError as e:
        _fail(e)

    report = validate_story_graph(graph)
    if report.defects:
        console.print(f"[yellow]![/yellow] {report.summary}; run 'avventura validate' for details")
    _write_or_echo(graph, output)
    if report.has_fatal:
        raise typer.Exit(1)


# =============================================================================
# Backend commands
# =============================================================================


@app.command()
def stories() -> None:
    """List the stories on the backend."""
    config = _get_config()

    async def _list() -> None:
        async with StoryStoreClient(config.api_base_url) as client:
            summaries = await client.list_stories()
        if not summaries:
            console.print("[dim]No stories[/dim]")
            return
        table = Table(title="Stories")
        table.add_column("Name", style="bold")
        table.add_column("Slug")
        table.add_column("Description")
        for s in summaries:
            table.add_row(escape(s.name), s.slug, escape(s.description))
        console.print(table)

    try:
        asyncio.run(_list())
    except _HANDLED_ERRORS as e:
        _fail(e)


@app.command()
def pull(
    story: Annotated[str, typer.Argument(help="Story name on the backend.")],
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write the story here instead of stdout."),
    ] = None,
) -> None:
    """Download a story from the backend."""
    config = _get_config()

    async def _pull() -> StoryGraph:
        async with StoryStoreClient(config.api_base_url) as client:
            return await client.fetch_graph(story, start_step=config.start_step)

    try:
        with story_context(story):
            graph = asyncio.run(_pull())
    except _HANDLED_ERRORS as e:
        _fail(e)
    _write_or_echo(graph, output)


@app.command()
def push(
    story: Annotated[str, typer.Argument(help="Story name on the backend.")],
    file: Annotated[Path, typer.Argument(help="Story JSON file (array of steps).")],
    force: Annotated[
        bool,
        typer.Option("--force", help="Upload even if the story has fatal defects."),
    ] = False,
) -> None:
    """Replace every step of a backend story with FILE."""
    config = _get_config()
    graph = _load_graph_file(file, config.start_step)

    async def _push() -> None:
        async with StoryStoreClient(config.api_base_url) as client:
            await client.replace_steps(story, graph, force=force)

    try:
        with story_context(story):
            asyncio.run(_push())
    except _HANDLED_ERRORS as e:
        _fail(e)
    console.print(f"[green]✓[/green] Pushed {len(graph)} steps to [bold]{escape(story)}[/bold]")


@app.command("add-step")
def add_step(
    story: Annotated[str, typer.Argument(help="Story name on the backend.")],
    file: Annotated[Path, typer.Argument(help="JSON file holding one step object.")],
) -> None:
    """Insert or replace one step of a backend story."""
    config = _get_config()
    text = _read_text(file)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        _fail(f"{file} is not valid JSON: {e.msg}")

    async def _add() -> Step:
        [step] = parse_steps([data])
        async with StoryStoreClient(config.api_base_url) as client:
            await client.add_step(story, step)
        return step

    try:
        with story_context(story):
            step = asyncio.run(_add())
    except _HANDLED_ERRORS as e:
        _fail(e)
    console.print(f"[green]✓[/green] Saved step {step.step} to [bold]{escape(story)}[/bold]")


@app.command()
def generate(
    story: Annotated[str, typer.Argument(help="Story name on the backend.")],
    premise: Annotated[str, typer.Argument(help="What the story is about.")],
    from_step: Annotated[
        int | None,
        typer.Option("--from-step", help="Continue the backend story below this step."),
    ] = None,
    depth: Annotated[
        int,
        typer.Option("--depth", "-d", min=1, help="Levels of story to generate."),
    ] = 5,
    provider: Annotated[
        str | None,
        typer.Option("--provider", help="LLM provider (default from config)."),
    ] = None,
    model: Annotated[
        str | None,
        typer.Option("--model", help="LLM model (default from config or provider)."),
    ] = None,
    fix_dangling: Annotated[
        bool,
        typer.Option("--fix-dangling", help="Point generated paths to missing steps at start."),
    ] = False,
    push_result: Annotated[
        bool,
        typer.Option("--push", help="Upload the result to the backend."),
    ] = False,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write the story here instead of stdout."),
    ] = None,
) -> None:
    """Generate a story, or new branches of one, with an LLM."""
    config = _get_config()

    async def _generate() -> GenerationResult:
        chat_model = create_chat_model(provider or config.provider, model or config.model)
        generator = StoryGenerator(chat_model)
        async with StoryStoreClient(config.api_base_url) as client:
            if from_step is None:
                result = await generator.generate_story(
                    premise,
                    levels=depth,
                    start_step=config.start_step,
                    redirect_dangling=fix_dangling,
                )
            else:
                graph = await client.fetch_graph(story, start_step=config.start_step)
                result = await generator.generate_from_step(
                    graph, from_step, premise, depth=depth, redirect_dangling=fix_dangling
                )
            if push_result:
                await client.replace_steps(story, result.graph)
        return result

    with console.status("[dim]Generating...[/dim]"):
        try:
            with story_context(story, from_step=from_step):
                result = asyncio.run(_generate())
        except _HANDLED_ERRORS as e:
            _fail(e)

    console.print(
        f"[green]✓[/green] {len(result.new_steps)} new steps "
        f"in {result.attempts} attempt(s); {result.report.summary}"
    )
    if result.skipped:
        skipped = ", ".join(str(s.step) for s in result.skipped)
        console.print(f"[yellow]![/yellow] Skipped generated steps: {skipped}")
    if push_result:
        console.print(f"[green]✓[/green] Pushed to [bold]{escape(story)}[/bold]")
    _write_or_echo(result.graph, output)


# =============================================================================
# Play commands
# =============================================================================


def _session_store() -> SessionStore:
    return SessionStore(_get_config().session_path)


def _require_session(store: SessionStore) -> SessionContext:
    session = SessionContext.resume(store)
    if session is None:
        _fail("No game in progress. Run 'avventura play start' first.")
    return session


@play_app.command("start")
def play_start(
    story: Annotated[str, typer.Argument(help="Story name on the backend.")],
    player: Annotated[str, typer.Argument(help="Player name.")],
    token: Annotated[
        str,
        typer.Option("--token", help="Session token issued by the backend.", envvar="AVVENTURA_TOKEN"),
    ],
) -> None:
    """Start a new game and show the first step."""
    config = _get_config()
    store = SessionStore(config.session_path)

    async def _start() -> Step:
        async with StoryStoreClient(config.api_base_url) as client:
            graph = await client.fetch_graph(story, start_step=config.start_step)
            await client.start_game(story, player, start_step=config.start_step)
        session = SessionContext.start(store, token, story, start_step=config.start_step)
        return session.current(graph)

    try:
        with story_context(story, player=player):
            step = asyncio.run(_start())
    except _HANDLED_ERRORS as e:
        _fail(e)
    _print_step(step)


@play_app.command("show")
def play_show() -> None:
    """Show the current step of the game in progress."""
    config = _get_config()
    session = _require_session(SessionStore(config.session_path))

    async def _show() -> Step:
        async with StoryStoreClient(config.api_base_url) as client:
            graph = await client.fetch_graph(session.story_name, start_step=config.start_step)
        return session.current(graph)

    try:
        with story_context(session.story_name):
            step = asyncio.run(_show())
    except _HANDLED_ERRORS as e:
        _fail(e)
    _print_step(step)


@play_app.command("choose")
def play_choose(
    option: Annotated[int, typer.Argument(min=1, help="Option number shown by 'play show'.")],
) -> None:
    """Pick an option of the current step and move on."""
    config = _get_config()
    store = SessionStore(config.session_path)
    session = _require_session(store)

    async def _choose() -> Step:
        async with StoryStoreClient(config.api_base_url) as client:
            graph = await client.fetch_graph(session.story_name, start_step=config.start_step)
            current = session.current(graph)
            if option > len(current.paths):
                raise ValueError(f"Step {current.step} has {len(current.paths)} option(s)")
            target = current.paths[option - 1]
            step = graph.require(target, context=f"option {option} of step {current.step}")
            game_id = await client.game_id_for_session(session.token)
            await client.advance_game(game_id, target)
        session.advance(store, target, graph)
        return step

    try:
        with story_context(session.story_name, step=session.current_step):
            step = asyncio.run(_choose())
    except (*_HANDLED_ERRORS, ValueError) as e:
        _fail(e)
    _print_step(step)


@play_app.command("reset")
def play_reset() -> None:
    """Forget the game in progress."""
    store = _session_store()
    session = SessionContext.resume(store)
    if session is None:
        console.print("[dim]No game in progress[/dim]")
        return
    session.clear(store)
    console.print(f"[green]✓[/green] Left [bold]{escape(session.story_name)}[/bold]")


if __name__ == "__main__":
    app()
