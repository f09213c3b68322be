"""
harness-builder CLI.

Command-line interface for customizing and re-signing instrumentation-server
packages.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .core.config import Config, RetentionPolicy, get_config
from .core.exceptions import HarnessBuilderError
from .core.logging import setup_logging
from .models import AndroidApp, BuildConfiguration
from .orchestration import BuildResult, PackageRebuildPipeline

app = typer.Typer(
    name="harness-builder",
    help="Customize the prebuilt instrumentation server for an application under test",
    add_completion=False,
)

console = Console()


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        from . import __version__
        console.print(f"harness-builder v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """harness-builder: per-application instrumentation server packages."""
    pass


def _configure(verbose: bool) -> Config:
    config = get_config()
    if verbose:
        config = config.model_copy(update={"log_level": "DEBUG"})
    setup_logging(config)
    return config


def _signing_options(
    build_config: BuildConfiguration,
    config: Config,
    keystore: Optional[Path],
    alias: Optional[str],
    storepass: Optional[str],
) -> BuildConfiguration:
    return (
        build_config.with_keystore_path(keystore)
        .with_keystore_alias(alias or config.signing.default_alias)
        .with_keystore_password(storepass or config.signing.default_password.get_secret_value())
    )


def _print_result(title: str, result: BuildResult) -> None:
    table = Table(title=title)
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Run ID", result.run_id)
    if result.base_package:
        table.add_row("Target package", result.base_package)
    table.add_row("Signature algorithm", result.signature_algorithm)
    table.add_row("Removed entries", ", ".join(result.removed_entries) or "-")
    table.add_row("Output", str(result.output_path))

    console.print(table)


def _fail(error: HarnessBuilderError) -> None:
    console.print(f"\n[bold red]✗ Failed ({error.category.value})[/bold red]")
    console.print(f"Error: {error}")
    raise typer.Exit(1)


@app.command()
def build(
    package: Optional[str] = typer.Option(
        None,
        "--package",
        "-p",
        help="Package name of the application under test (e.g., com.example.app)",
    ),
    aut: Optional[Path] = typer.Option(
        None,
        "--aut",
        help="APK of the application under test; its package is read with aapt",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Signed package destination"),
    keystore: Optional[Path] = typer.Option(None, "--keystore", help="Keystore to sign with"),
    alias: Optional[str] = typer.Option(None, "--alias", help="Key alias in the keystore"),
    storepass: Optional[str] = typer.Option(None, "--storepass", help="Keystore password"),
    manifest_template: Optional[str] = typer.Option(
        None, "--manifest-template", help="Manifest template resource or path"
    ),
    harness_template: Optional[str] = typer.Option(
        None, "--harness-template", help="Prebuilt harness package resource or path"
    ),
    harness_version: Optional[str] = typer.Option(
        None, "--harness-version", help="Version of the prebuilt harness package"
    ),
    retention: Optional[RetentionPolicy] = typer.Option(
        None, "--retention", help="What happens to scratch files after the build"
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Enable verbose logging"),
) -> None:
    """Build a signed instrumentation server for one application under test."""
    config = _configure(verbose)

    if (package is None) == (aut is None):
        console.print("[red]Pass exactly one of --package or --aut[/red]")
        raise typer.Exit(2)

    pipeline = PackageRebuildPipeline(config)
    try:
        if aut is not None:
            target = AndroidApp.from_apk(aut, pipeline.locator.aapt(), pipeline.runner)
        else:
            target = AndroidApp(base_package=package)

        build_config = BuildConfiguration().with_application_under_test(target)
        build_config = _signing_options(build_config, config, keystore, alias, storepass)
        if output is not None:
            build_config = build_config.with_output_path(output)
        if manifest_template:
            build_config = build_config.with_manifest_template(manifest_template)
        if harness_template:
            build_config = build_config.with_harness_template(harness_template)
        if harness_version:
            build_config = build_config.with_harness_version(harness_version)
        if retention is not None:
            build_config = build_config.with_retention(retention)

        console.print(Panel.fit(
            f"[bold blue]harness-builder[/bold blue]\nTarget package: {target.base_package}",
            border_style="blue",
        ))
        result = pipeline.build(build_config)
    except HarnessBuilderError as e:
        _fail(e)

    console.print("\n[bold green]✓ Instrumentation server built[/bold green]\n")
    _print_result("Build Results", result)


@app.command()
def resign(
    apk_path: Path = typer.Argument(
        ...,
        help="Package to re-sign",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Signed package destination"),
    keystore: Optional[Path] = typer.Option(None, "--keystore", help="Keystore to sign with"),
    alias: Optional[str] = typer.Option(None, "--alias", help="Key alias in the keystore"),
    storepass: Optional[str] = typer.Option(None, "--storepass", help="Keystore password"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable verbose logging"),
) -> None:
    """Strip old signatures from a package and sign it again."""
    config = _configure(verbose)

    build_config = _signing_options(BuildConfiguration(), config, keystore, alias, storepass)
    if output is not None:
        build_config = build_config.with_output_path(output)

    try:
        result = PackageRebuildPipeline(config).resign(apk_path, build_config)
    except HarnessBuilderError as e:
        _fail(e)

    console.print("\n[bold green]✓ Package re-signed[/bold green]\n")
    _print_result("Resign Results", result)


if __name__ == "__main__":
    app()
