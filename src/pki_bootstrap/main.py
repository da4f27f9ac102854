"""
Application entry point — the `pki-bootstrap` command line.

Composition root: creates concrete adapters, injects them into the setup
pipeline, and renders the outcome for the operator.

This is the ONLY place where concrete classes are instantiated.
Everything else depends on Protocol interfaces.

Responsibilities:
  1. Load and validate application settings from the environment
  2. Configure structlog (stderr, level from settings)
  3. Parse the command line with click
  4. Create concrete adapter instances and run the pipeline
  5. Render errors and warnings as indented blocks on stderr; map to exit codes
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Sequence
from pathlib import Path

import click
import structlog
from pydantic import ValidationError

from pki_bootstrap import __version__
from pki_bootstrap.adapters.http_client import CertificateRevoker
from pki_bootstrap.adapters.installer import FileInstaller
from pki_bootstrap.adapters.pem_loader import CryptographySignatureVerifier, PemArtifactLoader
from pki_bootstrap.adapters.puppet_config import PuppetConfigResolver
from pki_bootstrap.config import AppSettings
from pki_bootstrap.domain.models import SetupRequest
from pki_bootstrap.domain.validation import ConsistencyValidator
from pki_bootstrap.pipeline import run_setup
from pki_bootstrap.railway import ErrorCode, LoggingExecutionContext, ValidationErrorSet

PROG_NAME = "pki-bootstrap"

_HEADINGS = {
    ErrorCode.CONFIGURATION_ERROR: "Configuration error:",
    ErrorCode.INSTALLATION_ERROR: "Installation error:",
}


def configure_structlog(log_level: str = "WARNING") -> None:
    """
    Configure structlog for human-readable console logging on stderr.

    stdout is left to help and version output.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.WARNING)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


# ─────────────────────── Rendering ───────────────────────


def _heading(code: ErrorCode) -> str:
    return _HEADINGS.get(code, "Error:")


def render_errors(errors: ValidationErrorSet) -> None:
    """Print errors grouped under a heading per kind, in the order they were found."""
    current: str | None = None
    for error in errors:
        heading = _heading(error.code)
        if heading != current:
            click.echo(heading, err=True)
            current = heading
        click.echo(f"    {error.message}", err=True)


def render_warnings(warnings: Sequence[str]) -> None:
    if not warnings:
        return
    click.echo("Warning:", err=True)
    for warning in warnings:
        click.echo(f"    {warning}", err=True)
    click.echo("", err=True)


# ─────────────────────── Wiring ───────────────────────


type _SetupAdapters = tuple[
    PemArtifactLoader,
    ConsistencyValidator,
    PuppetConfigResolver,
    FileInstaller,
]


def _create_adapters(settings: AppSettings) -> _SetupAdapters:
    """Instantiate the setup adapters from application settings."""
    loader = PemArtifactLoader()
    validator = ConsistencyValidator(verifier=CryptographySignatureVerifier())
    resolver = PuppetConfigResolver(confdir=settings.resolved_confdir())
    installer = FileInstaller()
    return loader, validator, resolver, installer


def _path_option(name: str, help_text: str):
    return click.option(
        name,
        type=click.Path(path_type=Path),
        default=None,
        help=help_text,
    )


# ─────────────────────── Commands ───────────────────────


@click.group(name=PROG_NAME)
@click.version_option(__version__, "--version", message="%(version)s")
def cli() -> None:
    """Manage the certificate authority material of a configuration-management server."""


@cli.command()
@_path_option("--cert-bundle", "Path to PEM encoded bundle")
@_path_option("--private-key", "Path to PEM encoded key")
@_path_option("--crl-chain", "Path to PEM encoded chain")
@_path_option("--config", "Path to puppet.conf")
@click.version_option(__version__, "--version", message="%(version)s")
@click.pass_context
def setup(
    ctx: click.Context,
    cert_bundle: Path | None,
    private_key: Path | None,
    crl_chain: Path | None,
    config: Path | None,
) -> None:
    """Install an externally issued CA certificate bundle, key and CRL chain."""
    if cert_bundle is None or private_key is None:
        click.echo("Error:", err=True)
        click.echo("Missing required argument", err=True)
        click.echo("    Both --cert-bundle and --private-key are required", err=True)
        click.echo("", err=True)
        click.echo(ctx.get_help(), err=True)
        ctx.exit(1)

    settings: AppSettings = ctx.obj
    loader, validator, resolver, installer = _create_adapters(settings)
    request = SetupRequest(
        cert_bundle=cert_bundle,
        private_key=private_key,
        crl_chain=crl_chain,
        config=config,
    )

    result = LoggingExecutionContext(operation="CaSetup").execute(
        lambda: run_setup(
            request,
            loader=loader,
            validator=validator,
            resolver=resolver,
            installer=installer,
            on_warnings=render_warnings,
        )
    )

    ctx.exit(result.either(on_success=lambda _: 0, on_failure=_fail))


@cli.command()
@click.option(
    "--certname",
    "certnames",
    multiple=True,
    required=True,
    help="Name of a certificate to revoke; may be repeated",
)
@_path_option("--config", "Path to puppet.conf")
@click.pass_context
def revoke(ctx: click.Context, certnames: tuple[str, ...], config: Path | None) -> None:
    """Revoke certificates through the CA service."""
    settings: AppSettings = ctx.obj
    resolver = PuppetConfigResolver(confdir=settings.resolved_confdir())

    result = LoggingExecutionContext(operation="CaRevoke").execute(
        lambda: resolver.load_settings(config).flat_map(
            lambda puppet: CertificateRevoker(
                puppet,
                timeout=settings.http_timeout_seconds,
                retries=settings.http_retries,
            ).revoke(certnames)
        )
    )

    def report(revoked: list[str]) -> int:
        for name in revoked:
            click.echo(f"Revoked certificate for {name}")
        return 0

    ctx.exit(result.either(on_success=report, on_failure=_fail))


def _fail(errors: ValidationErrorSet) -> int:
    render_errors(errors)
    return 1


# ─────────────────────── Entry points ───────────────────────


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line and return its exit status."""
    try:
        settings = AppSettings()
    except ValidationError as e:
        click.echo("Configuration error:", err=True)
        click.echo(f"    {e}", err=True)
        return 1

    configure_structlog(settings.log_level)

    try:
        status = cli.main(
            args=list(argv) if argv is not None else None,
            prog_name=PROG_NAME,
            standalone_mode=False,
            obj=settings,
        )
    except click.ClickException as e:
        e.show()
        return 1
    except click.Abort:
        click.echo("Aborted!", err=True)
        return 1
    return status if isinstance(status, int) else 0


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
