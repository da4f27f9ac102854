"""
Consistency validation — cross-checks a certificate bundle, a private key and
an optional CRL chain before anything is installed.

Domain layer — PURE LOGIC over domain models. Signature checks are delegated
to an injected SignatureVerifier so the rules here can be exercised with
hand-built fixtures.

Every check returns its own Result and the checks are gathered with
Result.collect(), so a bad bundle is reported in full in one pass:

  key matches a certificate   ─┐
  every issuer is in bundle   ─┤
  leaf chain ends in a root   ─┤
  every CRL has an issuer     ─┼─→ Result.collect → Result[ValidatedArtifacts]
  signatures verify           ─┤
  no bundle cert is revoked   ─┘

Currency findings (expired CRLs, missing CRL chain, ...) are warnings: they are
returned with the validated artifacts and never block installation.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import UTC, datetime

import structlog

from pki_bootstrap.domain.models import (
    Certificate,
    CertificateBundle,
    Crl,
    LoadedArtifacts,
    PrivateKey,
    ValidatedArtifacts,
)
from pki_bootstrap.domain.ports import SignatureVerifier
from pki_bootstrap.railway import Result, ResultFailures

log = structlog.get_logger()

KEY_MISMATCH = "Private key and certificate bundle are not matched"
NO_CRL_CHAIN = "No CRL chain given; full CRL chain checking will not be possible"

type _SubjectIndex = dict[str, list[Certificate]]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _outcome[T](value: T, messages: Sequence[str]) -> Result[T]:
    return Result.collect(ResultFailures.consistency_error(m) for m in messages).map(
        lambda _: value
    )


# ─────────────────────── Hard checks ───────────────────────


def find_leaf(bundle: CertificateBundle, key: PrivateKey) -> Certificate | None:
    """The first certificate whose public key belongs to the private key."""
    return next((cert for cert in bundle if key.matches(cert)), None)


def check_key_match(bundle: CertificateBundle, key: PrivateKey) -> Result[Certificate]:
    leaf = find_leaf(bundle, key)
    if leaf is None:
        return ResultFailures.consistency_error(KEY_MISMATCH)
    return Result.success(leaf)


def check_chain_closure(bundle: CertificateBundle, index: _SubjectIndex) -> Result[int]:
    """Every certificate that is not self-signed has its issuer somewhere in the bundle."""
    messages = [
        f"Could not find issuer '{cert.issuer}' of certificate "
        f"'{cert.subject}' in the certificate bundle"
        for cert in bundle
        if not cert.is_self_signed and cert.issuer not in index
    ]
    return _outcome(len(bundle), messages)


def check_chain_termination(leaf: Certificate, index: _SubjectIndex) -> Result[Certificate]:
    """
    Walk issuer links from the leaf until a self-signed certificate.

    Returns the root. An issuer missing from the bundle ends the walk quietly
    since check_chain_closure already reports it; revisiting a subject is a cycle.
    """
    current = leaf
    seen = {leaf.subject}
    while not current.is_self_signed:
        issuers = index.get(current.issuer)
        if not issuers:
            return Result.success(current)
        current = issuers[0]
        if current.subject in seen:
            return ResultFailures.consistency_error(
                f"Certificate chain of '{leaf.subject}' does not end in a self-signed certificate"
            )
        seen.add(current.subject)
    return Result.success(current)


def check_crl_attribution(crls: Sequence[Crl], index: _SubjectIndex) -> Result[int]:
    messages = [
        f"Could not find issuer '{crl.issuer}' of CRL #{number} in the certificate bundle"
        for number, crl in enumerate(crls, start=1)
        if crl.issuer not in index
    ]
    return _outcome(len(crls), messages)


def check_signatures(
    bundle: CertificateBundle,
    crls: Sequence[Crl],
    index: _SubjectIndex,
    verifier: SignatureVerifier,
) -> Result[int]:
    """
    Certificates and CRLs must be signed by a certificate carrying their issuer name.

    Objects whose issuer is not in the bundle are skipped; the closure and
    attribution checks report those.
    """
    messages: list[str] = []
    for cert in bundle:
        candidates = index.get(cert.issuer, [])
        if candidates and not any(verifier.certificate_signed_by(cert, c) for c in candidates):
            messages.append(
                f"Certificate '{cert.subject}' is not signed by issuer '{cert.issuer}'"
            )
    for number, crl in enumerate(crls, start=1):
        candidates = index.get(crl.issuer, [])
        if candidates and not any(verifier.crl_signed_by(crl, c) for c in candidates):
            messages.append(f"CRL #{number} is not signed by issuer '{crl.issuer}'")
    return _outcome(len(bundle) + len(crls), messages)


def check_revocation(bundle: CertificateBundle, crls: Sequence[Crl]) -> Result[int]:
    """No certificate of the bundle may be listed in a CRL published by its issuer."""
    messages = [
        f"Certificate '{cert.subject}' has been revoked by '{crl.issuer}'"
        for cert in bundle
        for crl in crls
        if crl.issuer == cert.issuer and crl.revokes(cert.serial_number)
    ]
    return _outcome(len(bundle), messages)


# ─────────────────────── Warnings ───────────────────────


def crl_warnings(
    crls: Sequence[Crl] | None,
    bundle: CertificateBundle,
    now: datetime,
) -> list[str]:
    if crls is None:
        return [NO_CRL_CHAIN]

    warnings = [
        f"CRL #{number} from '{crl.issuer}' expired at {crl.next_update.isoformat()}"
        for number, crl in enumerate(crls, start=1)
        if crl.next_update is not None and crl.next_update < now
    ]
    published = {crl.issuer for crl in crls}
    subjects = {cert.subject for cert in bundle}
    for issuer in dict.fromkeys(cert.issuer for cert in bundle):
        if issuer in subjects and issuer not in published:
            warnings.append(f"No CRL given for issuer '{issuer}'")
    return warnings


def certificate_warnings(
    bundle: CertificateBundle,
    leaf: Certificate | None,
    now: datetime,
) -> list[str]:
    warnings: list[str] = []
    for cert in bundle:
        if now < cert.not_valid_before:
            warnings.append(
                f"Certificate '{cert.subject}' is not valid until "
                f"{cert.not_valid_before.isoformat()}"
            )
        elif now > cert.not_valid_after:
            warnings.append(
                f"Certificate '{cert.subject}' expired at {cert.not_valid_after.isoformat()}"
            )
    if leaf is not None:
        if leaf.is_ca is not True:
            warnings.append(f"Certificate '{leaf.subject}' is not marked as a CA")
        if leaf.key_usage and "key_cert_sign" not in leaf.key_usage:
            warnings.append(
                f"Certificate '{leaf.subject}' key usage does not allow certificate signing"
            )
    return warnings


# ─────────────────────── Validator ───────────────────────


class ConsistencyValidator:
    """
    Validate loaded CA material.

    The leaf is whichever certificate matches the private key, regardless
    of where it sits in the bundle file.
    """

    def __init__(
        self,
        verifier: SignatureVerifier | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._verifier = verifier
        self._clock = clock

    def validate(self, artifacts: LoadedArtifacts) -> Result[ValidatedArtifacts]:
        bundle, key = artifacts.bundle, artifacts.key
        crls = artifacts.crls or ()
        index = bundle.subject_index()
        leaf = find_leaf(bundle, key)
        now = self._clock()

        checks: list[Result[object]] = [
            check_key_match(bundle, key),
            check_chain_closure(bundle, index),
            check_crl_attribution(crls, index),
            check_revocation(bundle, crls),
        ]
        if leaf is not None:
            checks.append(check_chain_termination(leaf, index))
        if self._verifier is not None:
            checks.append(check_signatures(bundle, crls, index, self._verifier))

        warnings = crl_warnings(artifacts.crls, bundle, now) + certificate_warnings(
            bundle, leaf, now
        )
        for warning in warnings:
            log.info("validator.finding", finding=warning)

        # check_key_match comes first, so on success its value is the leaf
        outcome = Result.collect(checks).map(lambda values: values[0])
        if outcome.is_failure():
            log.info("validator.failed", errors=len(outcome.errors()), warnings=len(warnings))
            return Result.failure_from(*outcome.errors())

        matched: Certificate = outcome.value()
        log.info(
            "validator.complete",
            leaf=matched.subject,
            certificates=len(bundle),
            crls=len(crls),
            warnings=len(warnings),
        )
        return Result.success(
            ValidatedArtifacts(
                bundle=bundle,
                key=key,
                leaf=matched,
                crls=crls,
                warnings=tuple(warnings),
            )
        )
