"""
Installer adapter — writes validated CA material to its destinations.

Adapter layer — implements the ArtifactInstaller port.

Install is done in two phases so a failed write leaves the trust store as it was:

  1. stage   cacert → cakey → cacrl into temporary files next to each
             destination (parent directories are created); stop at the first
             failure and remove what was staged
  2. commit  rename every staged file over its destination

Only a failure during the rename phase can leave a partial install; that
case is reported with the list of files already replaced.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

import structlog

from pki_bootstrap.domain.models import CaDestinations, InstallReport, ValidatedArtifacts
from pki_bootstrap.railway import ErrorCode, Result, ResultFailures

log = structlog.get_logger()

CERT_MODE = 0o644
KEY_MODE = 0o640


def _terminated(pem: bytes) -> bytes:
    return pem if pem.endswith(b"\n") else pem + b"\n"


def render(artifacts: ValidatedArtifacts) -> tuple[bytes, bytes, bytes]:
    """The exact bytes of cacert, cakey and cacrl, blocks kept in input order."""
    return (
        b"".join(_terminated(cert.pem) for cert in artifacts.bundle),
        _terminated(artifacts.key.pem),
        b"".join(_terminated(crl.pem) for crl in artifacts.crls),
    )


def _stage(destination: Path, data: bytes, mode: int) -> Path:
    destination.parent.mkdir(parents=True, exist_ok=True)
    fd, name = tempfile.mkstemp(
        dir=destination.parent, prefix=f".{destination.name}.", suffix=".tmp"
    )
    staged = Path(name)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.chmod(staged, mode)
    except BaseException:
        staged.unlink(missing_ok=True)
        raise
    return staged


def _commit(staged: Path, destination: Path) -> Path:
    os.replace(staged, destination)
    return destination


def _discard(staged: list[Path]) -> None:
    for path in staged:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            log.warning("installer.cleanup_failed", path=str(path), error=str(e))


class FileInstaller:
    """
    Write the CA certificate bundle, private key and CRL chain.

    Files are truncated and rewritten on every run; identical input yields
    byte-identical output. An empty CRL file is written when no chain was given.
    """

    def __init__(self, cert_mode: int = CERT_MODE, key_mode: int = KEY_MODE) -> None:
        self._cert_mode = cert_mode
        self._key_mode = key_mode

    def install(
        self,
        artifacts: ValidatedArtifacts,
        destinations: CaDestinations,
    ) -> Result[InstallReport]:
        cacert, cakey, cacrl = render(artifacts)
        plan = [
            (destinations.cacert, cacert, self._cert_mode),
            (destinations.cakey, cakey, self._key_mode),
            (destinations.cacrl, cacrl, self._cert_mode),
        ]

        staged: list[Path] = []
        for destination, data, mode in plan:
            result = Result.from_computation(
                lambda d=destination, b=data, m=mode: _stage(d, b, m),
                ErrorCode.INSTALLATION_ERROR,
                f"Could not write '{destination}'",
            )
            if result.is_failure():
                _discard(staged)
                log.info("installer.stage_failed", path=str(destination))
                return Result.failure_from(*result.errors())
            staged.append(result.value())

        written: list[Path] = []
        targets = [destination for destination, _, _ in plan]
        for position, (temporary, destination) in enumerate(zip(staged, targets, strict=True)):
            result = Result.from_computation(
                lambda t=temporary, d=destination: _commit(t, d),
                ErrorCode.INSTALLATION_ERROR,
                f"Could not replace '{destination}'",
            )
            if result.is_failure():
                _discard(staged[position:])
                log.error(
                    "installer.commit_failed",
                    path=str(destination),
                    already_written=[str(p) for p in written],
                )
                if not written:
                    return Result.failure_from(*result.errors())
                replaced = ", ".join(f"'{p}'" for p in written)
                partial = ResultFailures.installation_error(
                    f"Partial install, already replaced: {replaced}"
                )
                return Result.failure_from(*result.errors(), *partial.errors())
            written.append(result.value())
            log.info("installer.written", path=str(destination))

        return Result.success(
            InstallReport(
                written=tuple(written),
                certificates=len(artifacts.bundle),
                crls=len(artifacts.crls),
            )
        )
