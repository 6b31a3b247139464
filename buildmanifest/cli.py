"""
buildmanifest CLI.

Command-line interface used by the build pipeline. The exit status reports
validation success (0) or failure (1).
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .core.config import Config, get_config
from .core.exceptions import BuildManifestError
from .core.logging import setup_logging
from .loader import ManifestLoader, check_version_progression
from .models import ResolvedManifest

app = typer.Typer(
    name="buildmanifest",
    help="Validate and normalize Android build manifests",
    add_completion=False,
)

console = Console()


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        from . import __version__
        console.print(f"buildmanifest v{__version__}")
        raise typer.Exit()


@app.callback()
def callback(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """buildmanifest: Android build manifest resolver."""


def _load_config() -> Config:
    """Read tool settings from the environment, exiting with status 1 if they are invalid."""
    try:
        return get_config()
    except ValueError as e:
        console.print(f"[bold red]✗ Invalid BMF_* environment setting: {escape(str(e))}[/bold red]")
        raise typer.Exit(1)


def _settings(verbose: bool = False, require_keystore: bool = False) -> Config:
    config = _load_config()
    updates: dict[str, object] = {}
    if verbose:
        updates["log_level"] = "DEBUG"
    if require_keystore:
        updates["require_keystore"] = True
    if updates:
        config = config.model_copy(update=updates)
    setup_logging(config)
    return config


def _resolve(
    config: Config,
    manifest: Path,
    credentials: Path | None,
    previous_version_code: int | None = None,
) -> ResolvedManifest:
    """Load the manifest, turning any configuration error into exit status 1."""
    try:
        resolved = ManifestLoader(config).load(manifest, credentials)
        if previous_version_code is not None:
            check_version_progression(previous_version_code, resolved.build_config)
    except BuildManifestError as e:
        console.print(f"[bold red]✗ {escape(str(e))}[/bold red]")
        raise typer.Exit(1)
    return resolved


MANIFEST_ARGUMENT = typer.Argument(
    ...,
    help="Path to the build manifest (.properties or .json)",
    exists=True,
    file_okay=True,
    dir_okay=False,
    resolve_path=True,
)
CREDENTIALS_OPTION = typer.Option(
    None,
    "--credentials",
    "-c",
    help="Signing credentials file (defaults to key.properties next to the manifest)",
)


@app.command()
def validate(
    manifest: Path = MANIFEST_ARGUMENT,
    credentials: Optional[Path] = CREDENTIALS_OPTION,
    previous_version_code: Optional[int] = typer.Option(
        None,
        "--previous-version-code",
        help="versionCode of the last release; the manifest must exceed it",
    ),
    require_keystore: bool = typer.Option(
        False,
        "--require-keystore",
        help="Fail when the signing keystore file does not exist",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        help="Enable verbose logging",
    ),
) -> None:
    """Validate a manifest and print a summary."""
    config = _settings(verbose=verbose, require_keystore=require_keystore)
    resolved = _resolve(config, manifest, credentials, previous_version_code)
    build = resolved.build_config

    console.print(Panel.fit(
        f"[bold blue]{escape(build.application_id)}[/bold blue]\n"
        f"{escape(build.version_name)} ({build.version_code})",
        border_style="blue",
    ))

    table = Table(title="Build Configuration")
    table.add_column("Property", style="cyan")
    table.add_column("Value")

    table.add_row("Namespace", build.effective_namespace)
    table.add_row("Min SDK", str(build.min_sdk))
    table.add_row("Target SDK", str(build.target_sdk))
    table.add_row("Compile SDK", str(build.compile_sdk))
    table.add_row("NDK", build.ndk_version or "-")
    table.add_row("Java", f"{resolved.compile_options.source_compatibility} / jvm {resolved.compile_options.effective_jvm_target}")
    table.add_row("Desugaring", str(resolved.compile_options.core_library_desugaring))
    table.add_row("Build Types", ", ".join(bt.name for bt in resolved.build_types) or "-")
    table.add_row(
        "Signing",
        f"[green]{escape(resolved.signing.key_alias)}[/green]" if resolved.signing else "[yellow]debug/unsigned[/yellow]",
    )
    console.print(table)

    if resolved.dependencies:
        console.print("\n[bold]Dependencies:[/bold]")
        for dep in resolved.dependencies:
            console.print(f"  • {escape(dep.gradle_notation)}")

    console.print("\n[bold green]✓ Manifest is valid[/bold green]")


@app.command()
def export(
    manifest: Path = MANIFEST_ARGUMENT,
    credentials: Optional[Path] = CREDENTIALS_OPTION,
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Write the normalized manifest here instead of stdout",
    ),
) -> None:
    """Export the normalized manifest as JSON for the packaging step.

    Signing secrets are always masked in the output.
    """
    config = _settings()
    resolved = _resolve(config, manifest, credentials)
    text = resolved.to_json(indent=config.json_indent or None)

    if output is None:
        typer.echo(text)
        return

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text + "\n", encoding="utf-8")
    console.print(f"[bold green]✓ Wrote[/bold green] {escape(str(output))}")


@app.command("show-config")
def show_config() -> None:
    """Show the current tool configuration."""
    cfg = _load_config()

    table = Table(title="Current Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("Log Level", cfg.log_level)
    table.add_row("Credentials File", cfg.credentials_filename)
    table.add_row("Require Keystore", str(cfg.require_keystore))
    table.add_row("JSON Indent", str(cfg.json_indent))

    console.print(table)

    console.print("\n[dim]Configure via environment variables:[/dim]")
    console.print("  BMF_LOG_LEVEL, BMF_CREDENTIALS_FILE, BMF_REQUIRE_KEYSTORE, BMF_JSON_INDENT")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
