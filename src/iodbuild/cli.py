"""iodbuild CLI - build signed Install on Demand packages."""

from __future__ import annotations

from pathlib import Path

import typer

from iodbuild import __version__
from iodbuild.config import build_config
from iodbuild.errors import IodBuildError
from iodbuild.orchestrator import run_build, run_keygen
from iodbuild.ui import Reporter

cli = typer.Typer(
    name="iodbuild",
    help="Build signed Install on Demand package files and the local package index.",
    add_completion=False,
)


def _version_option_callback(value: bool) -> None:
    """Handle eager --version option."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@cli.command()
def build(
    force: bool = typer.Option(
        False,
        "--force",
        help="Build packages even if they're already up to date.",
    ),
    source: Path | None = typer.Option(
        None,
        "--source",
        help="Package source directory (default: ./packageSource).",
    ),
    output: Path | None = typer.Option(
        None,
        "--output",
        help="Package output directory (default: ./output).",
    ),
    downloads: Path | None = typer.Option(
        None,
        "--downloads",
        help="Installer download cache (default: ./download-cache).",
    ),
    packages: list[str] | None = typer.Option(
        None,
        "--packages",
        help="Package names, directories or package-list files; comma-separated or repeated.",
    ),
    package_list: Path | None = typer.Option(
        None,
        "--package-list",
        help="Package-list file with 'build' globs (default: <source>/package-list.json5).",
    ),
    all_packages: bool = typer.Option(
        False,
        "--all",
        help="Build every package found under the source directory.",
    ),
    key: Path | None = typer.Option(
        None,
        "--key",
        help="Private key file (default: ~/.gpii/iod-package-key).",
    ),
    pubkey: Path | None = typer.Option(
        None,
        "--pubkey",
        help="Public key file (default: <key>.pub).",
    ),
    keygen: bool = typer.Option(
        False,
        "--keygen",
        help="Generate a new key pair instead of building.",
    ),
    keypass: str | None = typer.Option(
        None,
        "--keypass",
        help="Key passphrase, or env:NAME / file:PATH to read it from elsewhere.",
    ),
    config_file: Path | None = typer.Option(
        None,
        "--config",
        help="YAML file with option defaults (default: ./iodbuild.yaml or $IODBUILD_CONFIG).",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Only print errors and the key fingerprint.",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        help="Show iodbuild version and exit.",
        is_eager=True,
        callback=_version_option_callback,
    ),
) -> None:
    """Build the selected packages, or generate a signing key with --keygen."""
    reporter = Reporter(quiet=quiet)
    try:
        config = build_config(
            {
                "force": force or None,
                "source": source,
                "output": output,
                "downloads": downloads,
                "packages": packages or None,
                "package_list": package_list,
                "all": all_packages or None,
                "key": key,
                "pubkey": pubkey,
                "keygen": keygen or None,
                "keypass": keypass,
                "quiet": quiet or None,
            },
            config_file=config_file,
        )
        reporter = Reporter(quiet=config.quiet)
        if config.keygen:
            run_keygen(config, reporter=reporter)
        else:
            run_build(config, reporter=reporter)
    except IodBuildError as e:
        reporter.error(e.message, e.context_lines())
        raise typer.Exit(1) from e


def main() -> None:
    """Console script entry point."""
    cli()


if __name__ == "__main__":
    main()
