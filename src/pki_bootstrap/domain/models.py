"""
Domain models — immutable data structures for CA material and setup flow.

These are pure value objects. Certificates, keys and CRLs are decoded by an
adapter (see adapters/pem_loader.py) into these models, so the validation
logic works on plain data and can be tested without the X.509 parser.

All models are frozen dataclasses (immutable) following functional principles.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path


@dataclass(frozen=True, slots=True)
class Certificate:
    """
    An X.509 certificate reduced to what the setup checks need.

    Names are RFC 4514 strings. `public_key_info` is the DER encoded
    SubjectPublicKeyInfo, which is what a private key is matched against.
    `pem` is the canonical PEM encoding written on install.
    """

    subject: str
    issuer: str
    serial_number: int
    not_valid_before: datetime
    not_valid_after: datetime
    public_key_info: bytes = field(repr=False)
    pem: bytes = field(repr=False)
    is_ca: bool | None = None
    key_usage: frozenset[str] = frozenset()
    subject_key_identifier: str | None = None
    authority_key_identifier: str | None = None

    @property
    def is_self_signed(self) -> bool:
        return self.subject == self.issuer


@dataclass(frozen=True, slots=True)
class CertificateBundle:
    """Certificates in file order. Not required to be sorted leaf-to-root."""

    certificates: tuple[Certificate, ...]

    def __iter__(self) -> Iterator[Certificate]:
        return iter(self.certificates)

    def __len__(self) -> int:
        return len(self.certificates)

    def subject_index(self) -> dict[str, list[Certificate]]:
        """Map each subject name to the certificates carrying it, in file order."""
        index: dict[str, list[Certificate]] = {}
        for cert in self.certificates:
            index.setdefault(cert.subject, []).append(cert)
        return index


@dataclass(frozen=True, slots=True)
class PrivateKey:
    """
    Opaque asymmetric key material.

    Only exposes whether it belongs to a certificate and its PEM form.
    """

    algorithm: str
    public_key_info: bytes = field(repr=False)
    pem: bytes = field(repr=False)

    def matches(self, certificate: Certificate) -> bool:
        return self.public_key_info == certificate.public_key_info


@dataclass(frozen=True, slots=True)
class RevokedEntry:
    serial_number: int
    revocation_date: datetime
    reason: str | None = None


@dataclass(frozen=True, slots=True)
class Crl:
    """A certificate revocation list and its revoked entries, in file order."""

    issuer: str
    last_update: datetime
    pem: bytes = field(repr=False)
    next_update: datetime | None = None
    authority_key_identifier: str | None = None
    revoked: tuple[RevokedEntry, ...] = ()

    def revokes(self, serial_number: int) -> bool:
        return any(entry.serial_number == serial_number for entry in self.revoked)


class CrlUsage(Enum):
    """How a TLS client consults CRLs: not at all, for the peer only, or for the whole chain."""

    NONE = "none"
    LEAF = "leaf"
    CHAIN = "chain"


@dataclass(frozen=True, slots=True)
class SetupRequest:
    """Paths given on the command line for one setup run."""

    cert_bundle: Path
    private_key: Path
    crl_chain: Path | None = None
    config: Path | None = None

    @property
    def input_files(self) -> tuple[Path, ...]:
        """Every file that must be readable before anything is parsed."""
        files = [self.cert_bundle, self.private_key]
        if self.crl_chain is not None:
            files.append(self.crl_chain)
        if self.config is not None:
            files.append(self.config)
        return tuple(files)


@dataclass(frozen=True, slots=True)
class LoadedArtifacts:
    """
    Decoded input files.

    `crls` is None when no CRL chain was given, which is not the same as an
    empty chain: the validator warns about the former.
    """

    bundle: CertificateBundle
    key: PrivateKey
    crls: tuple[Crl, ...] | None = None


@dataclass(frozen=True, slots=True)
class ValidatedArtifacts:
    """Artifacts that passed every hard check, plus the non-blocking findings."""

    bundle: CertificateBundle
    key: PrivateKey
    leaf: Certificate
    crls: tuple[Crl, ...] = ()
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class CaDestinations:
    """Where the CA certificate bundle, key and CRL chain are installed."""

    cacert: Path
    cakey: Path
    cacrl: Path

    def __iter__(self) -> Iterator[Path]:
        return iter((self.cacert, self.cakey, self.cacrl))


@dataclass(frozen=True, slots=True)
class InstallReport:
    """Outcome of a successful install."""

    written: tuple[Path, ...]
    certificates: int = 0
    crls: int = 0


@dataclass(frozen=True, slots=True)
class HttpResponse:
    """Just the bits of an HTTP response the CA commands care about."""

    code: int
    body: str = ""
