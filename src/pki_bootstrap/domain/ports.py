"""
Ports — Protocol-based interfaces for infrastructure adapters.

These define WHAT the setup flow needs (contracts) without specifying
HOW it's done (implementation). Following hexagonal architecture:

  Domain ← Ports (protocols) ← Adapters (implementations)

Each port is a Protocol (structural typing) so adapters satisfy
the contract simply by implementing the methods — no inheritance.

Setup flow:
  1. ArtifactLoader      → readable files, decoded via a PemParser
  2. ConsistencyValidator (domain/validation.py, pure)
  3. DestinationResolver → cacert / cakey / cacrl paths from host config
  4. ArtifactInstaller   → writes the three files
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Protocol, runtime_checkable

from pki_bootstrap.domain.models import (
    CaDestinations,
    Certificate,
    Crl,
    InstallReport,
    LoadedArtifacts,
    PrivateKey,
    SetupRequest,
    ValidatedArtifacts,
)
from pki_bootstrap.railway.result import Result


@runtime_checkable
class PemParser(Protocol):
    """
    Port: decode a single PEM block into a domain model.

    This is the only place X.509 parsing happens. Implementations raise
    (ValueError, TypeError...) on undecodable input; the loader turns that
    into a DECODE_ERROR for the offending block.
    """

    def parse_certificate(self, block: bytes) -> Certificate: ...

    def parse_private_key(self, block: bytes) -> PrivateKey: ...

    def parse_crl(self, block: bytes) -> Crl: ...


@runtime_checkable
class SignatureVerifier(Protocol):
    """
    Port: cryptographic signature checks between already decoded objects.

    Optional for the validator; when absent only name-based checks run.
    """

    def certificate_signed_by(self, certificate: Certificate, issuer: Certificate) -> bool: ...

    def crl_signed_by(self, crl: Crl, issuer: Certificate) -> bool: ...


@runtime_checkable
class ArtifactLoader(Protocol):
    """
    Port: read and decode the three input files.

    check_readable reports every missing/unreadable file before load is tried.
    """

    def check_readable(self, paths: Sequence[Path]) -> Result[tuple[Path, ...]]: ...

    def load(self, request: SetupRequest) -> Result[LoadedArtifacts]: ...


@runtime_checkable
class DestinationResolver(Protocol):
    """Port: resolve install paths from an optional host configuration file."""

    def resolve(self, config_path: Path | None) -> Result[CaDestinations]: ...


@runtime_checkable
class ArtifactInstaller(Protocol):
    """
    Port: write validated artifacts to their destinations.

    Called only after validation found no hard errors; performs no checks.
    """

    def install(
        self,
        artifacts: ValidatedArtifacts,
        destinations: CaDestinations,
    ) -> Result[InstallReport]: ...
