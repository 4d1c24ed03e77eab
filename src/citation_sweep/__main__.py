"""CLI entry point for citation-sweep."""

import logging
import signal
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import click
import yaml

from .adapters.backend import BackendAdapters, create_backend_adapters
from .adapters.readers import build_reader_registry
from .config import Settings, enabled_providers, load_settings, parse_provider, provider_profiles
from .domain.cancellation import CancellationToken
from .domain.models import Provider
from .domain.orchestrator import CitationOrchestrator, LookupStatus, RunResult, RunStatus
from .domain.progress import ProgressLogHandler, get_progress_tracker
from .domain.registry import ConfigError

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)

    # Mirror records into the live feed an observer reads from the tracker
    root = logging.getLogger()
    if not any(isinstance(h, ProgressLogHandler) for h in root.handlers):
        root.addHandler(ProgressLogHandler(get_progress_tracker(), level))


@contextmanager
def cancel_on_interrupt(token: CancellationToken) -> Iterator[CancellationToken]:
    """Route Ctrl-C to the token instead of raising KeyboardInterrupt."""

    def handler(signum: int, frame: object) -> None:
        logger.warning("Interrupt received, cancelling...")
        token.cancel()

    previous = signal.signal(signal.SIGINT, handler)
    try:
        yield token
    finally:
        signal.signal(signal.SIGINT, previous)


def resolve_providers(names: tuple[str, ...]) -> list[Provider] | None:
    if not names:
        return None
    try:
        return [parse_provider(name) for name in names]
    except ConfigError as e:
        raise click.BadParameter(str(e), param_hint="--provider") from e


def build_orchestrator(
    settings: Settings, with_backend: bool = True
) -> tuple[CitationOrchestrator, BackendAdapters | None]:
    """Wire readers, backend adapters and the orchestrator from settings.

    Returns the orchestrator and the backend adapters, which the caller closes.
    """
    enabled = enabled_providers(settings)
    profiles = provider_profiles(settings)
    readers = build_reader_registry(enabled, profiles)
    backend = create_backend_adapters(settings.backend) if with_backend else None
    orchestrator = CitationOrchestrator(
        auth=backend.auth if backend else None,
        vehicles=backend.vehicles if backend else None,
        readers=readers,
        sink=backend.sink if backend else None,
        profiles=profiles,
        enabled_providers=enabled,
        max_workers=settings.run.max_workers,
        sink_workers=settings.run.sink_workers,
    )
    return orchestrator, backend


def format_run_result(result: RunResult) -> list[str]:
    lines = [f"status: {result.status.value}"]
    if result.reason:
        lines.append(f"reason: {result.reason}")
    summary = result.summary
    if summary is not None:
        lines += [
            f"vehicles: {summary.total_vehicles}",
            f"providers: {summary.total_providers}",
            f"successful: {summary.successful_operations}",
            f"failed: {summary.failed_operations}",
            f"citations: {summary.total_citations}",
            f"duration: {summary.duration_seconds:.1f}s",
        ]
    if result.dispatch is not None:
        lines.append(f"dispatched: {result.dispatch.submitted}")
        lines.append(f"dispatch_failures: {result.dispatch.failed}")
    return lines


def write_report(path: Path, result: RunResult) -> None:
    report = {
        "status": result.status.value,
        "reason": result.reason,
        "summary": result.summary.to_dict() if result.summary else None,
        "errors": [
            {
                "tag": e.tag,
                "state": e.state,
                "provider": e.provider.value,
                "code": e.code,
                "message": e.message,
                "timestamp": e.timestamp.isoformat(),
            }
            for e in result.errors
        ],
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(report, sort_keys=False, allow_unicode=True))


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option("-c", "--config", type=click.Path(exists=True), help="Config file path")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config: str | None) -> None:
    """Citation sweep - collect parking citations for a vehicle fleet."""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = Path(config) if config else None


@cli.command()
@click.option("-p", "--provider", "provider_names", multiple=True, help="Restrict to provider (repeatable)")
@click.option("--report", type=click.Path(dir_okay=False, path_type=Path), help="Write a YAML run report")
@click.pass_context
def run(ctx: click.Context, provider_names: tuple[str, ...], report: Path | None) -> None:
    """Sweep every fleet vehicle against every enabled provider."""
    settings = load_settings(ctx.obj["config_path"])
    providers = resolve_providers(provider_names)

    try:
        orchestrator, backend = build_orchestrator(settings)
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(2)

    try:
        with cancel_on_interrupt(CancellationToken()) as token:
            result = orchestrator.run(providers, token)
    finally:
        backend.close()

    for line in format_run_result(result):
        click.echo(line)
    if report:
        write_report(report, result)
        click.echo(f"report: {report}")

    if result.status == RunStatus.FATAL:
        sys.exit(1)


@cli.command()
@click.argument("plate")
@click.option("-p", "--provider", "provider_name", required=True, help="Provider to query")
@click.option("--state", default=None, help="Plate state (default from config)")
@click.option("--timeout", type=float, default=None, help="Seconds before giving up")
@click.pass_context
def lookup(
    ctx: click.Context, plate: str, provider_name: str, state: str | None, timeout: float | None
) -> None:
    """Look up citations for a single plate."""
    settings = load_settings(ctx.obj["config_path"])
    (provider,) = resolve_providers((provider_name,))
    try:
        orchestrator, _ = build_orchestrator(settings, with_backend=False)
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(2)
    if provider not in orchestrator.readers:
        raise click.BadParameter(f"No reader available for {provider.display_name}", param_hint="--provider")

    with cancel_on_interrupt(CancellationToken()) as token:
        result = orchestrator.lookup(
            provider,
            plate,
            state=state or settings.run.default_state,
            timeout=timeout or settings.run.lookup_timeout,
            token=token,
        )

    click.echo(f"status: {result.status.value}")
    for citation in result.citations:
        issued = citation.issue_date.date().isoformat() if citation.issue_date else "unknown"
        click.echo(
            f"{citation.reference}  {issued}  {citation.amount} {citation.currency}  "
            f"{citation.address or ''}"
        )
    if result.error is not None:
        click.echo(f"Error: {result.error.message}", err=True)

    if result.status in (LookupStatus.FAILED, LookupStatus.TIMED_OUT):
        sys.exit(1)


@cli.command()
@click.pass_context
def providers(ctx: click.Context) -> None:
    """List providers with their limits."""
    settings = load_settings(ctx.obj["config_path"])
    try:
        profiles = provider_profiles(settings)
        enabled = set(enabled_providers(settings))
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(2)
    readers = build_reader_registry()

    for provider in Provider:
        profile = profiles[provider]
        flags = [
            "enabled" if provider in enabled else "disabled",
            "reader" if provider in readers else "no-reader",
        ]
        click.echo(
            f"{provider.value}: {profile.display_name} "
            f"(concurrency={profile.max_concurrency}, delay={profile.min_delay}s, "
            f"{profile.transport.value}) {' '.join(flags)}"
        )


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
