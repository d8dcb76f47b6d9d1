"""kubetriage CLI — Entry point for the cluster analyzer."""

import dataclasses
import logging
import signal
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel

from kubetriage import __app_name__, __version__
from kubetriage.ai.explainer import ExplanationStage
from kubetriage.ai.providers import PROVIDERS
from kubetriage.analyzers import list_filters, normalize_filter
from kubetriage.cache import list_backends
from kubetriage.config import (
    DEFAULT_LANGUAGE,
    DEFAULT_MAX_CONCURRENCY,
    Settings,
    load_settings,
    save_settings,
)
from kubetriage.core.pipeline import AnalysisOptions, build_explanation_stage, run_analysis
from kubetriage.errors import KubeTriageError
from kubetriage.kube import ClusterClient
from kubetriage.models import STATE_OK, AnalysisRun, ObjectRef, ProviderConfig, RunContext
from kubetriage.output import render_json, render_text

# ---------------------------------------------------------------------------
# App & Console
# ---------------------------------------------------------------------------

app = typer.Typer(
    name=__app_name__,
    help="🔎 kubetriage — find and explain problems in your Kubernetes cluster.",
    add_completion=False,
    rich_markup_mode="rich",
)
filters_app = typer.Typer(help="Manage the analyzers that run by default.")
cache_app = typer.Typer(help="Inspect the explanation cache.")
auth_app = typer.Typer(help="Manage AI provider credentials.")
app.add_typer(filters_app, name="filters")
app.add_typer(cache_app, name="cache")
app.add_typer(auth_app, name="auth")

console = Console()
err_console = Console(stderr=True)

_OUTPUT_FORMATS: tuple[str, ...] = ("text", "json")

# ---------------------------------------------------------------------------
# Version callback
# ---------------------------------------------------------------------------


def _version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold cyan]{__app_name__}[/bold cyan] v{__version__}")
        raise typer.Exit()


# ---------------------------------------------------------------------------
# Global options
# ---------------------------------------------------------------------------


@app.callback()
def main(
    ctx: typer.Context,
    version: Optional[bool] = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-v",
        help="Show the application version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    config: Optional[str] = typer.Option(  # noqa: UP007
        None,
        "--config",
        help="Settings file (default: ~/.kubetriage.yaml or $KUBETRIAGE_CONFIG).",
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Show debug logging."),
) -> None:
    """kubetriage — detect and explain broken Kubernetes workloads."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )
    ctx.obj = {"config": config}


def _fail(message: str) -> None:
    err_console.print(f"[bold red]✗[/bold red] {message}")
    raise typer.Exit(code=1)


def _settings(ctx: typer.Context) -> Settings:
    try:
        return load_settings((ctx.obj or {}).get("config"))
    except KubeTriageError as exc:
        _fail(str(exc))


def _make_client(kubeconfig: Optional[str], kube_context: Optional[str]) -> ClusterClient:  # noqa: UP007
    return ClusterClient.from_kubeconfig(kubeconfig, kube_context)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command(name="analyze")
def analyze(
    ctx: typer.Context,
    namespace: str = typer.Option("", "--namespace", "-n", help="Namespace to analyze."),
    filters: Optional[list[str]] = typer.Option(  # noqa: UP007
        None,
        "--filter",
        "-f",
        help="Run only these analyzers (e.g. Pod, Service). Repeatable.",
    ),
    resources: Optional[list[str]] = typer.Option(  # noqa: UP007
        None,
        "--resource",
        "-r",
        help="Analyze only this object (Kind/namespace/name). Repeatable.",
    ),
    explain: bool = typer.Option(False, "--explain", "-e", help="Explain the problems with AI."),
    interactive: bool = typer.Option(
        False,
        "--interactive",
        "-i",
        help="Ask follow-up questions about the report. Only valid with --explain.",
    ),
    backend: Optional[str] = typer.Option(  # noqa: UP007
        None, "--backend", "-b", help="AI provider to use (default from settings)."
    ),
    output: str = typer.Option("text", "--output", "-o", help="Output format: text or json."),
    language: Optional[str] = typer.Option(  # noqa: UP007
        None, "--language", "-l", help=f"Language of the explanation (default {DEFAULT_LANGUAGE})."
    ),
    no_cache: bool = typer.Option(False, "--no-cache", "-c", help="Do not read cached explanations."),
    anonymize: bool = typer.Option(
        False,
        "--anonymize",
        "-a",
        help="Mask object names and labels before sending them to the AI provider.",
    ),
    max_concurrency: int = typer.Option(
        DEFAULT_MAX_CONCURRENCY,
        "--max-concurrency",
        "-m",
        help="Maximum number of analyzers querying the API server at once.",
    ),
    kubeconfig: Optional[str] = typer.Option(None, "--kubeconfig", help="Path to a kubeconfig."),  # noqa: UP007
    kube_context: Optional[str] = typer.Option(  # noqa: UP007
        None, "--kube-context", help="Kubernetes context to use."
    ),
) -> None:
    """Find problems in the cluster and optionally explain them."""

    # --- Validate output format ---
    output = output.lower()
    if output not in _OUTPUT_FORMATS:
        _fail(f"Invalid --output value: {output}. Must be one of: {', '.join(_OUTPUT_FORMATS)}")
    if interactive and not explain:
        _fail("--interactive can only be used with --explain")

    settings = _settings(ctx)

    try:
        options = AnalysisOptions(
            namespace=namespace,
            filters=list(filters or []),
            refs=[ObjectRef.parse(raw, namespace) for raw in resources or []],
            explain=explain,
            backend=backend,
            language=language,
            no_cache=no_cache,
            anonymize=anonymize,
            max_concurrency=max_concurrency,
        )
        client = _make_client(kubeconfig, kube_context)
        stage = build_explanation_stage(settings, options) if explain else None
    except KubeTriageError as exc:
        _fail(str(exc))

    # --- Run pipeline, cancellable with Ctrl+C ---
    run_ctx = RunContext()
    previous = signal.signal(signal.SIGINT, lambda *_: run_ctx.cancel())
    try:
        if output == "text":
            with console.status("[bold]Analyzing cluster…[/bold]"):
                run = run_analysis(client, settings, options, run_ctx, stage)
        else:
            run = run_analysis(client, settings, options, run_ctx, stage)
    except KubeTriageError as exc:
        _fail(str(exc))
    finally:
        signal.signal(signal.SIGINT, previous)

    # --- Output ---
    if output == "json":
        print(render_json(run))
    else:
        _print_rich(run)

    if interactive and stage is not None:
        _interactive(stage, run, output)


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


def _print_rich(run: AnalysisRun) -> None:
    """Render the run as text framed by Rich panels."""
    scope = run.namespace or "all namespaces"
    console.print(
        Panel(
            f"[bold]Scope:[/bold] {scope}",
            title=f"🔎 {__app_name__}",
            subtitle=f"v{__version__}",
            border_style="cyan",
        )
    )
    console.print(render_text(run), markup=False, highlight=False)
    console.print()
    _print_summary(run)


def _interactive(stage: ExplanationStage, run: AnalysisRun, output: str) -> None:
    """Answer follow-up questions about the report until the user types exit."""
    # The provider gets the unmasked report; follow_up masks the whole prompt.
    view = dataclasses.replace(run, anonymize=False)
    context = render_json(view) if output == "json" else render_text(view)
    session = RunContext()

    console.print("Interactive mode enabled [type exit to close.]", markup=False)
    while True:
        query = typer.prompt(">", default="", show_default=False).strip()
        if not query:
            continue
        if "exit" in query:
            return
        try:
            answer = stage.follow_up(session, run, context, query)
        except KubeTriageError as exc:
            _fail(str(exc))
        console.print(answer, markup=False, highlight=False)


def _print_summary(run: AnalysisRun) -> None:
    """Print the run status and problem count."""
    ok = run.status == STATE_OK
    color = "green" if ok else "red"
    summary_lines = [
        f"[bold]Status:[/bold]   [bold {color}]{run.status}[/bold {color}]",
        f"[bold]Objects:[/bold]  {len(run.results)}",
        f"[bold]Problems:[/bold] {run.problem_count}",
    ]
    if run.errors:
        summary_lines.append(f"[bold yellow]Errors:[/bold yellow]   {len(run.errors)}")
    console.print(Panel("\n".join(summary_lines), title="📊 Summary", border_style=color))


# ---------------------------------------------------------------------------
# filters
# ---------------------------------------------------------------------------


@filters_app.command(name="list")
def filters_list(ctx: typer.Context) -> None:
    """List active and unused analyzers."""
    settings = _settings(ctx)
    active, unused = list_filters(settings.active_filters)
    console.print("[yellow]Active:[/yellow]")
    for kind in active:
        console.print(f"> [green]{kind}[/green]")
    if unused:
        console.print("[yellow]Unused:[/yellow]")
        for kind in unused:
            console.print(f"> [red]{kind}[/red]")


@filters_app.command(name="add")
def filters_add(ctx: typer.Context, names: list[str] = typer.Argument(..., help="Analyzer kinds.")) -> None:
    """Add analyzers to the default active set."""
    settings = _settings(ctx)
    active, _ = list_filters(settings.active_filters)
    for name in names:
        kind = normalize_filter(name)
        if kind is None:
            _fail(f"Unknown analyzer: {name}")
        if kind not in active:
            active.append(kind)
    settings.active_filters = active
    save_settings(settings)
    console.print(f"[green]✔[/green] Active filters: {', '.join(active)}")


@filters_app.command(name="remove")
def filters_remove(ctx: typer.Context, names: list[str] = typer.Argument(..., help="Analyzer kinds.")) -> None:
    """Remove analyzers from the default active set."""
    settings = _settings(ctx)
    active, _ = list_filters(settings.active_filters)
    for name in names:
        kind = normalize_filter(name)
        if kind is None or kind not in active:
            _fail(f"Analyzer is not active: {name}")
        active.remove(kind)
    if not active:
        _fail("At least one analyzer must stay active")
    settings.active_filters = active
    save_settings(settings)
    console.print(f"[green]✔[/green] Active filters: {', '.join(active)}")


# ---------------------------------------------------------------------------
# cache
# ---------------------------------------------------------------------------


@cache_app.command(name="list")
def cache_list(ctx: typer.Context) -> None:
    """Show the active cache backend and the unused ones."""
    settings = _settings(ctx)
    console.print("[yellow]Active:[/yellow]")
    console.print(f"> [green]{settings.cache.type}[/green]")
    console.print("[yellow]Unused:[/yellow]")
    for name in list_backends():
        if name != settings.cache.type:
            console.print(f"> [red]{name}[/red]")


# ---------------------------------------------------------------------------
# auth
# ---------------------------------------------------------------------------


@auth_app.command(name="list")
def auth_list(ctx: typer.Context) -> None:
    """List configured AI providers."""
    settings = _settings(ctx)
    console.print(f"[yellow]Default:[/yellow] {settings.default_provider}")
    console.print("[yellow]Configured:[/yellow]")
    for provider in settings.providers:
        model = provider.model or "default model"
        console.print(f"> [green]{provider.name}[/green] ({model}, {provider.target_language})")
    unused = [name for name in PROVIDERS if name not in settings.provider_names()]
    if unused:
        console.print("[yellow]Available:[/yellow]")
        for name in unused:
            console.print(f"> [red]{name}[/red]")


@auth_app.command(name="add")
def auth_add(
    ctx: typer.Context,
    backend: str = typer.Option("openai", "--backend", "-b", help="Provider name."),
    password: str = typer.Option("", "--password", "-p", help="API key for the provider."),
    model: str = typer.Option("", "--model", help="Model to use."),
    language: str = typer.Option(DEFAULT_LANGUAGE, "--language", "-l", help="Explanation language."),
    base_url: Optional[str] = typer.Option(None, "--base-url", help="Endpoint override."),  # noqa: UP007
    default: bool = typer.Option(False, "--default", help="Make this the default provider."),
) -> None:
    """Configure (or replace) an AI provider."""
    if backend not in PROVIDERS:
        _fail(f"Unknown AI provider: {backend}. Must be one of: {', '.join(PROVIDERS)}")
    settings = _settings(ctx)
    settings.upsert_provider(
        ProviderConfig(
            name=backend,
            credential=password,
            model=model,
            target_language=language,
            base_url=base_url,
        )
    )
    if default or len(settings.providers) == 1:
        settings.default_provider = backend
    save_settings(settings)
    console.print(f"[green]✔[/green] {backend} added to {settings.path}")


@auth_app.command(name="remove")
def auth_remove(
    ctx: typer.Context,
    backend: str = typer.Argument(..., help="Provider name."),
) -> None:
    """Remove a configured AI provider."""
    settings = _settings(ctx)
    try:
        settings.remove_provider(backend)
    except KubeTriageError as exc:
        _fail(str(exc))
    save_settings(settings)
    console.print(f"[green]✔[/green] {backend} removed")
