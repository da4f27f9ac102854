"""
Shared test fixtures and helpers for the pki-bootstrap test suite.

Builds a small, real PKI with PyCA cryptography (EC P-256 keys):

  root CA "foo" (self-signed)
    └── intermediate CA "bar" — the CA being installed; its key is the private key

plus one CRL per CA, and writes the usual setup inputs into tmp_path:

  bundle.pem   bar, foo
  key.pem      bar's key (PKCS#8)
  chain.pem    bar's CRL, foo's CRL
  puppet.conf  [master] cadir = <tmp>/ca
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
import structlog
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

ROOT_NAME = "foo"
LEAF_NAME = "bar"


# ─────────────────────── PKI builders ───────────────────────


def make_key() -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(ec.SECP256R1())


def make_name(common_name: str) -> x509.Name:
    return x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])


def create_cert(
    subject_key: ec.EllipticCurvePrivateKey,
    name: str,
    signer_key: ec.EllipticCurvePrivateKey | None = None,
    signer_cert: x509.Certificate | None = None,
    *,
    ca: bool = True,
    not_before: datetime | None = None,
    not_after: datetime | None = None,
) -> x509.Certificate:
    """
    Create a certificate for `name`, self-signed unless a signer is given.

    CA certificates get basicConstraints CA:TRUE and keyCertSign/cRLSign, all critical.
    """
    now = datetime.now(UTC)
    signer_key = signer_key or subject_key
    issuer = signer_cert.subject if signer_cert is not None else make_name(name)
    key_usage = x509.KeyUsage(
        digital_signature=not ca,
        content_commitment=False,
        key_encipherment=False,
        data_encipherment=False,
        key_agreement=False,
        key_cert_sign=ca,
        crl_sign=ca,
        encipher_only=False,
        decipher_only=False,
    )
    return (
        x509.CertificateBuilder()
        .subject_name(make_name(name))
        .issuer_name(issuer)
        .public_key(subject_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before or now - timedelta(seconds=1))
        .not_valid_after(not_after or now + timedelta(hours=100))
        .add_extension(x509.BasicConstraints(ca=ca, path_length=None), critical=True)
        .add_extension(key_usage, critical=True)
        .add_extension(
            x509.SubjectKeyIdentifier.from_public_key(subject_key.public_key()),
            critical=False,
        )
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(signer_key.public_key()),
            critical=False,
        )
        .sign(signer_key, hashes.SHA256())
    )


def create_crl(
    cert: x509.Certificate,
    key: ec.EllipticCurvePrivateKey,
    revoked: Sequence[x509.Certificate] = (),
    *,
    last_update: datetime | None = None,
    next_update: datetime | None = None,
) -> x509.CertificateRevocationList:
    """Create a CRL issued by `cert`, revoking the given certificates."""
    now = datetime.now(UTC)
    builder = (
        x509.CertificateRevocationListBuilder()
        .issuer_name(cert.subject)
        .last_update(last_update or now - timedelta(seconds=1))
        .next_update(next_update or now + timedelta(hours=100))
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(key.public_key()),
            critical=False,
        )
        .add_extension(x509.CRLNumber(0), critical=False)
    )
    for victim in revoked:
        builder = builder.add_revoked_certificate(
            x509.RevokedCertificateBuilder()
            .serial_number(victim.serial_number)
            .revocation_date(now - timedelta(seconds=1))
            .build()
        )
    return builder.sign(key, hashes.SHA256())


def cert_pem(*certs: x509.Certificate) -> bytes:
    return b"".join(cert.public_bytes(serialization.Encoding.PEM) for cert in certs)


def crl_pem(*crls: x509.CertificateRevocationList) -> bytes:
    return b"".join(crl.public_bytes(serialization.Encoding.PEM) for crl in crls)


def key_pem(key: ec.EllipticCurvePrivateKey) -> bytes:
    return key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )


@dataclass(frozen=True)
class Pki:
    root_key: ec.EllipticCurvePrivateKey
    root_cert: x509.Certificate
    leaf_key: ec.EllipticCurvePrivateKey
    leaf_cert: x509.Certificate
    root_crl: x509.CertificateRevocationList
    leaf_crl: x509.CertificateRevocationList


def build_pki() -> Pki:
    root_key = make_key()
    root_cert = create_cert(root_key, ROOT_NAME)
    leaf_key = make_key()
    leaf_cert = create_cert(leaf_key, LEAF_NAME, root_key, root_cert)
    return Pki(
        root_key=root_key,
        root_cert=root_cert,
        leaf_key=leaf_key,
        leaf_cert=leaf_cert,
        root_crl=create_crl(root_cert, root_key),
        leaf_crl=create_crl(leaf_cert, leaf_key),
    )


# ─────────────────────── Fixtures ───────────────────────


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Undo any global structlog configuration a test installed."""
    yield
    structlog.reset_defaults()


@pytest.fixture(scope="session")
def pki() -> Pki:
    """One PKI per test session; key generation is the slow part."""
    return build_pki()


@dataclass(frozen=True)
class SetupFiles:
    bundle: Path
    key: Path
    chain: Path
    config: Path
    cadir: Path

    @property
    def cacert(self) -> Path:
        return self.cadir / "ca_crt.pem"

    @property
    def cakey(self) -> Path:
        return self.cadir / "ca_key.pem"

    @property
    def cacrl(self) -> Path:
        return self.cadir / "ca_crl.pem"

    def argv(self, *, crl_chain: bool = True) -> list[str]:
        args = [
            "setup",
            "--cert-bundle", str(self.bundle),
            "--private-key", str(self.key),
            "--config", str(self.config),
        ]  # fmt: skip
        if crl_chain:
            args += ["--crl-chain", str(self.chain)]
        return args


@pytest.fixture()
def setup_files(tmp_path: Path, pki: Pki) -> SetupFiles:
    """Valid setup inputs, with a puppet.conf pointing cadir into tmp_path."""
    cadir = tmp_path / "ca"
    files = SetupFiles(
        bundle=tmp_path / "bundle.pem",
        key=tmp_path / "key.pem",
        chain=tmp_path / "chain.pem",
        config=tmp_path / "puppet.conf",
        cadir=cadir,
    )
    files.bundle.write_bytes(cert_pem(pki.leaf_cert, pki.root_cert))
    files.key.write_bytes(key_pem(pki.leaf_key))
    files.chain.write_bytes(crl_pem(pki.leaf_crl, pki.root_crl))
    files.config.write_text(f"[master]\n  cadir = {cadir}\n", encoding="utf-8")
    return files
