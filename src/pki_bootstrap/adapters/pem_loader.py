"""
PEM artifact loader adapter — file access, PEM framing and X.509 decoding.

Adapter layer — implements the ArtifactLoader, PemParser and SignatureVerifier
ports using:
  - pathlib/os: existence and readability checks before any parse
  - re: splitting concatenated PEM blocks
  - cryptography (PyCA): certificate, private key and CRL decoding

Pipeline:
  paths
    → check_readable()        (every unreadable file reported together)
    → read bytes → split PEM blocks by label
    → CryptographyPemParser   (one block → one domain model)
    → LoadedArtifacts

The bundle, key and CRL files are decoded independently and their errors
accumulated, so one run lists every broken block in every file.
"""

from __future__ import annotations

import os
import re
from collections.abc import Callable, Sequence
from pathlib import Path

import structlog
from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import dsa, ec, ed448, ed25519, rsa
from cryptography.x509.extensions import ExtensionNotFound

from pki_bootstrap.domain.models import (
    Certificate,
    CertificateBundle,
    Crl,
    LoadedArtifacts,
    PrivateKey,
    RevokedEntry,
    SetupRequest,
)
from pki_bootstrap.domain.ports import PemParser
from pki_bootstrap.railway import ErrorCode, Result, ResultFailures

log = structlog.get_logger()

_PEM_BLOCK = re.compile(
    rb"-----BEGIN ([A-Z0-9 ]+)-----\r?\n.*?-----END \1-----",
    re.DOTALL,
)
_PEM_BEGIN = re.compile(rb"-----BEGIN [A-Z0-9 ]+-----")

CERTIFICATE_LABEL = b"CERTIFICATE"
CRL_LABEL = b"X509 CRL"
PRIVATE_KEY_SUFFIX = b"PRIVATE KEY"

_SIGNING_KEY_TYPES: tuple[tuple[type, str], ...] = (
    (rsa.RSAPrivateKey, "RSA"),
    (dsa.DSAPrivateKey, "DSA"),
    (ec.EllipticCurvePrivateKey, "EC"),
    (ed25519.Ed25519PrivateKey, "Ed25519"),
    (ed448.Ed448PrivateKey, "Ed448"),
)

_KEY_USAGE_FLAGS = (
    "digital_signature",
    "content_commitment",
    "key_encipherment",
    "data_encipherment",
    "key_agreement",
    "key_cert_sign",
    "crl_sign",
)


# ─────────────────────── PEM Framing ───────────────────────


def split_pem_blocks(data: bytes) -> list[tuple[bytes, bytes]]:
    """Return (label, block) pairs in file order; each block spans BEGIN through END."""
    return [(match.group(1), match.group(0)) for match in _PEM_BLOCK.finditer(data)]


def has_unterminated_block(data: bytes) -> bool:
    """True when some BEGIN marker has no matching END marker."""
    return len(_PEM_BEGIN.findall(data)) > len(_PEM_BLOCK.findall(data))


# ─────────────────────── X.509 Metadata Extraction ───────────────────────


def _spki(public_key: object) -> bytes:
    return public_key.public_bytes(  # type: ignore[attr-defined, no-any-return]
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def _extract_ski(cert: x509.Certificate) -> str | None:
    """Extract Subject Key Identifier extension as hex string, or None if absent."""
    try:
        ext = cert.extensions.get_extension_for_class(x509.SubjectKeyIdentifier)
        return ext.value.digest.hex()
    except (ExtensionNotFound, ValueError):
        return None


def _extract_aki(extensions: x509.Extensions) -> str | None:
    """Extract Authority Key Identifier extension as hex string, or None if absent."""
    try:
        ext = extensions.get_extension_for_class(x509.AuthorityKeyIdentifier)
        if ext.value.key_identifier is not None:
            return ext.value.key_identifier.hex()
        return None
    except (ExtensionNotFound, ValueError):
        return None


def _extract_is_ca(cert: x509.Certificate) -> bool | None:
    try:
        return cert.extensions.get_extension_for_class(x509.BasicConstraints).value.ca
    except ExtensionNotFound:
        return None


def _extract_key_usage(cert: x509.Certificate) -> frozenset[str]:
    try:
        usage = cert.extensions.get_extension_for_class(x509.KeyUsage).value
    except ExtensionNotFound:
        return frozenset()
    return frozenset(flag for flag in _KEY_USAGE_FLAGS if getattr(usage, flag))


def _extract_revocation_reason(revoked: x509.RevokedCertificate) -> str | None:
    try:
        return revoked.extensions.get_extension_for_class(x509.CRLReason).value.reason.value
    except (ExtensionNotFound, ValueError):
        return None


# ─────────────────────── cryptography-backed ports ───────────────────────


class CryptographyPemParser:
    """
    Decode PEM blocks with PyCA cryptography.

    Implements the PemParser port. Every model carries a canonical PEM
    re-encoding so installed files are byte-for-byte reproducible.
    """

    def parse_certificate(self, block: bytes) -> Certificate:
        cert = x509.load_pem_x509_certificate(block)
        return Certificate(
            subject=cert.subject.rfc4514_string(),
            issuer=cert.issuer.rfc4514_string(),
            serial_number=cert.serial_number,
            not_valid_before=cert.not_valid_before_utc,
            not_valid_after=cert.not_valid_after_utc,
            public_key_info=_spki(cert.public_key()),
            pem=cert.public_bytes(serialization.Encoding.PEM),
            is_ca=_extract_is_ca(cert),
            key_usage=_extract_key_usage(cert),
            subject_key_identifier=_extract_ski(cert),
            authority_key_identifier=_extract_aki(cert.extensions),
        )

    def parse_private_key(self, block: bytes) -> PrivateKey:
        key = serialization.load_pem_private_key(block, password=None)
        algorithm = next(
            (name for key_type, name in _SIGNING_KEY_TYPES if isinstance(key, key_type)),
            None,
        )
        if algorithm is None:
            raise TypeError(f"unsupported key type {type(key).__name__}")
        return PrivateKey(
            algorithm=algorithm,
            public_key_info=_spki(key.public_key()),
            pem=key.private_bytes(
                serialization.Encoding.PEM,
                serialization.PrivateFormat.PKCS8,
                serialization.NoEncryption(),
            ),
        )

    def parse_crl(self, block: bytes) -> Crl:
        crl = x509.load_pem_x509_crl(block)
        return Crl(
            issuer=crl.issuer.rfc4514_string(),
            last_update=crl.last_update_utc,
            next_update=crl.next_update_utc,
            authority_key_identifier=_extract_aki(crl.extensions),
            revoked=tuple(
                RevokedEntry(
                    serial_number=revoked.serial_number,
                    revocation_date=revoked.revocation_date_utc,
                    reason=_extract_revocation_reason(revoked),
                )
                for revoked in crl
            ),
            pem=crl.public_bytes(serialization.Encoding.PEM),
        )


class CryptographySignatureVerifier:
    """
    Verify certificate and CRL signatures with PyCA cryptography.

    Implements the SignatureVerifier port by re-decoding the canonical PEM
    carried on each model.
    """

    def certificate_signed_by(self, certificate: Certificate, issuer: Certificate) -> bool:
        subject_cert = x509.load_pem_x509_certificate(certificate.pem)
        issuer_cert = x509.load_pem_x509_certificate(issuer.pem)
        try:
            subject_cert.verify_directly_issued_by(issuer_cert)
        except (InvalidSignature, ValueError, TypeError):
            return False
        return True

    def crl_signed_by(self, crl: Crl, issuer: Certificate) -> bool:
        crl_obj = x509.load_pem_x509_crl(crl.pem)
        issuer_cert = x509.load_pem_x509_certificate(issuer.pem)
        try:
            return crl_obj.is_signature_valid(issuer_cert.public_key())  # type: ignore[arg-type]
        except TypeError:
            return False


# ─────────────────────── Public Loader Class ───────────────────────


class PemArtifactLoader:
    """
    Read and decode the certificate bundle, private key and CRL chain.

    Implements the ArtifactLoader port. A file that cannot be read is reported
    as `Could not read file '<path>'` and never parsed.
    """

    def __init__(self, parser: PemParser | None = None) -> None:
        self._parser = parser or CryptographyPemParser()

    def check_readable(self, paths: Sequence[Path]) -> Result[tuple[Path, ...]]:
        """Report every missing or unreadable file at once."""
        checks = [
            Result.success(path)
            if path.is_file() and os.access(path, os.R_OK)
            else ResultFailures.unreadable_file(path)
            for path in paths
        ]
        return Result.collect(checks).map(tuple)

    def load(self, request: SetupRequest) -> Result[LoadedArtifacts]:
        """Decode all inputs, accumulating decode errors across the three files."""
        loads: list[Result[object]] = [
            self.load_certificates(request.cert_bundle),
            self.load_private_key(request.private_key),
        ]
        if request.crl_chain is not None:
            loads.append(self.load_crls(request.crl_chain))

        return Result.collect(loads).map(
            lambda values: LoadedArtifacts(
                bundle=CertificateBundle(values[0]),
                key=values[1],
                crls=values[2] if len(values) > 2 else None,
            )
        )

    def load_certificates(self, path: Path) -> Result[tuple[Certificate, ...]]:
        return self._load_all(
            path, CERTIFICATE_LABEL, "certificate", "certificates", self._parser.parse_certificate
        )

    def load_crls(self, path: Path) -> Result[tuple[Crl, ...]]:
        return self._load_all(path, CRL_LABEL, "CRL", "CRLs", self._parser.parse_crl)

    def load_private_key(self, path: Path) -> Result[PrivateKey]:
        return self._read_blocks(path).flat_map(
            lambda blocks: self._decode_single_key(path, blocks)
        )

    # ─────────────────────── internals ───────────────────────

    def _read_blocks(self, path: Path) -> Result[list[tuple[bytes, bytes]]]:
        """Read a file and split it into PEM blocks, rejecting broken framing."""
        return (
            self.check_readable([path])
            .flat_map(
                lambda _: Result.from_computation(
                    path.read_bytes,
                    ErrorCode.INPUT_ACCESS_ERROR,
                    f"Could not read file '{path}'",
                )
            )
            .ensure(
                lambda data: not has_unterminated_block(data),
                ErrorCode.DECODE_ERROR,
                f"Malformed PEM framing in '{path}'",
            )
            .map(split_pem_blocks)
        )

    def _load_all[M](
        self,
        path: Path,
        label: bytes,
        kind: str,
        plural: str,
        decode: Callable[[bytes], M],
    ) -> Result[tuple[M, ...]]:
        def decode_blocks(blocks: list[tuple[bytes, bytes]]) -> Result[tuple[M, ...]]:
            wanted = [block for block_label, block in blocks if block_label == label]
            if not wanted:
                return ResultFailures.decode_error(
                    f"Could not detect any {plural} within '{path}'"
                )
            decoded = [
                Result.from_computation(
                    lambda block=block: decode(block),
                    ErrorCode.DECODE_ERROR,
                    f"Could not parse {kind} #{number} in '{path}'",
                )
                for number, block in enumerate(wanted, start=1)
            ]
            return Result.collect(decoded).map(tuple)

        return (
            self._read_blocks(path)
            .flat_map(decode_blocks)
            .peek(
                lambda items: log.info(
                    "loader.loaded", kind=plural, path=str(path), count=len(items)
                )
            )
        )

    def _decode_single_key(
        self,
        path: Path,
        blocks: list[tuple[bytes, bytes]],
    ) -> Result[PrivateKey]:
        keys = [block for label, block in blocks if label.endswith(PRIVATE_KEY_SUFFIX)]
        if not keys:
            return ResultFailures.decode_error(f"Could not find a private key in '{path}'")
        if len(keys) > 1:
            return ResultFailures.decode_error(
                f"Found {len(keys)} private keys in '{path}', expected exactly one"
            )
        return Result.from_computation(
            lambda: self._parser.parse_private_key(keys[0]),
            ErrorCode.DECODE_ERROR,
            f"Could not parse private key in '{path}'",
        ).peek(
            lambda key: log.info(
                "loader.loaded", kind="private key", path=str(path), algorithm=key.algorithm
            )
        )
