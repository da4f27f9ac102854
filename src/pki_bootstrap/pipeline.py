"""
Pipeline — the setup railway, from command-line paths to installed files.

Domain layer — this is PURE ORCHESTRATION. All I/O is injected via ports
(Protocol interfaces).

The pipeline connects stages via flat_map, forming a railway:

  check_readable(input files)
    → load(request)                 (bundle, key, optional CRL chain)
      → validate(loaded)            (hard errors accumulate; warnings reported)
        → resolve(config)           (cacert / cakey / cacrl)
          → install(validated, destinations)

Each stage returns Result[T]. The first failing stage short-circuits the rest,
so nothing is written unless every check before the installer passed.
"""

from __future__ import annotations

from collections.abc import Callable

from pki_bootstrap.domain.models import (
    CaDestinations,
    InstallReport,
    SetupRequest,
    ValidatedArtifacts,
)
from pki_bootstrap.domain.ports import ArtifactInstaller, ArtifactLoader, DestinationResolver
from pki_bootstrap.domain.validation import ConsistencyValidator
from pki_bootstrap.railway import Result


def _ignore_warnings(warnings: tuple[str, ...]) -> None:
    return None


def _install_at_resolved_destinations(
    validated: ValidatedArtifacts,
    request: SetupRequest,
    resolver: DestinationResolver,
    installer: ArtifactInstaller,
) -> Result[InstallReport]:
    def install(destinations: CaDestinations) -> Result[InstallReport]:
        return installer.install(validated, destinations)

    return resolver.resolve(request.config).flat_map(install)


def run_setup(
    request: SetupRequest,
    loader: ArtifactLoader,
    validator: ConsistencyValidator,
    resolver: DestinationResolver,
    installer: ArtifactInstaller,
    on_warnings: Callable[[tuple[str, ...]], None] = _ignore_warnings,
) -> Result[InstallReport]:
    """
    Execute one CA setup run.

    `on_warnings` receives the validator's non-blocking findings once
    validation has passed, before the host configuration is read.

    Returns Result[InstallReport] on success, or the Failure of the first
    failing stage with every error that stage found.
    """
    return (
        loader.check_readable(request.input_files)
        .flat_map(lambda _: loader.load(request))
        .flat_map(validator.validate)
        .peek(lambda validated: on_warnings(validated.warnings))
        .flat_map(
            lambda validated: _install_at_resolved_destinations(
                validated, request, resolver, installer
            )
        )
    )
