"""
HTTP adapter — talks to the CA service over mutually trusted HTTPS via httpx.

Adapter layer — used by the `revoke` command.

  PuppetSettings
    → make_ssl_context(localcacert, certificate_revocation, hostcrl)
    → ca_connection(url, context)          (httpx.Client)
    → CaConnection.put(body, url)          (tenacity retry on transient errors)
    → HttpResponse(code, body)

Transport failures are captured into Result failures; HTTP status codes are
returned as data and interpreted by the caller (see CertificateRevoker).
"""

from __future__ import annotations

import dataclasses
import json
import ssl
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

import httpx
import structlog
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from pki_bootstrap.config import PuppetSettings
from pki_bootstrap.domain.models import CrlUsage, HttpResponse
from pki_bootstrap.railway import ErrorCode, Result, ResultFailures

log = structlog.get_logger()

HEADERS = {
    "User-Agent": "PkiBootstrap",
    "Content-Type": "application/json",
    "Accept": "application/json",
}

REVOKE_BODY = json.dumps({"desired_state": "revoked"})

_DEFAULT_WAIT = wait_exponential(multiplier=1, min=0.1, max=30)


@dataclass(frozen=True, slots=True)
class CaUrl:
    """A CA service endpoint, `https://host:port/puppet-ca/v1/<type>/<name>`."""

    host: str
    port: int
    resource_type: str | None = None
    resource_name: str | None = None
    protocol: str = "https"
    endpoint: str = "puppet-ca"
    version: str = "v1"

    @property
    def full_url(self) -> str:
        parts = (self.endpoint, self.version, self.resource_type, self.resource_name)
        path = "/".join(part for part in parts if part)
        return f"{self.protocol}://{self.host}:{self.port}/{path}"

    def for_resource(self, resource_type: str, resource_name: str) -> CaUrl:
        return dataclasses.replace(
            self, resource_type=resource_type, resource_name=resource_name
        )


def make_ca_url(
    host: str,
    port: int,
    resource_type: str | None = None,
    resource_name: str | None = None,
) -> CaUrl:
    return CaUrl(host, port, resource_type, resource_name)


def make_ssl_context(
    bundle: Path,
    crl_usage: CrlUsage,
    crl_path: Path | None = None,
) -> ssl.SSLContext:
    """
    A client context trusting only `bundle`.

    With CRL checking on, every CRL in `crl_path` is loaded and either the
    peer certificate (leaf) or the whole chain is checked against them.
    Raises OSError/ssl.SSLError when a file is missing or unreadable.
    """
    context = ssl.create_default_context(cafile=str(bundle))
    if crl_usage is CrlUsage.NONE:
        return context
    if crl_path is None:
        raise ValueError("CRL checking requires a CRL file")
    context.load_verify_locations(cafile=str(crl_path))
    if crl_usage is CrlUsage.CHAIN:
        context.verify_flags |= ssl.VERIFY_CRL_CHECK_CHAIN
    else:
        context.verify_flags |= ssl.VERIFY_CRL_CHECK_LEAF
    return context


class CaConnection:
    """
    HTTP verbs against one CA URL on an open client, each returning a Result.

    Retries on timeouts and network errors only; any HTTP status is a response.
    """

    def __init__(
        self,
        client: httpx.Client,
        url: CaUrl,
        retries: int = 3,
        wait: wait_base = _DEFAULT_WAIT,
    ) -> None:
        self._client = client
        self._url = url
        self._retries = retries
        self._wait = wait

    def put(self, body: str, url_override: CaUrl | None = None) -> Result[HttpResponse]:
        url = url_override or self._url
        retrying = Retrying(
            stop=stop_after_attempt(self._retries),
            wait=self._wait,
            retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
            reraise=True,
        )
        return Result.from_computation(
            lambda: retrying(self._do_put, url, body),
            ErrorCode.EXTERNAL_SERVICE_ERROR,
            f"Could not connect to the CA at '{url.full_url}'",
        )

    def _do_put(self, url: CaUrl, body: str) -> HttpResponse:
        """HTTP call with retry — exceptions caught by from_computation."""
        response = self._client.put(url.full_url, content=body, headers=HEADERS)
        log.info("ca.request", method="PUT", url=url.full_url, status=response.status_code)
        return HttpResponse(code=response.status_code, body=response.text)


@contextmanager
def ca_connection(
    url: CaUrl,
    context: ssl.SSLContext,
    timeout: int = 30,
    retries: int = 3,
    wait: wait_base = _DEFAULT_WAIT,
) -> Iterator[CaConnection]:
    with httpx.Client(verify=context, timeout=timeout) as client:
        yield CaConnection(client, url, retries=retries, wait=wait)


def _revocation_outcome(certname: str, response: HttpResponse) -> Result[str]:
    if response.code in (200, 204):
        log.info("ca.revoked", certname=certname)
        return Result.success(certname)
    if response.code == 404:
        return ResultFailures.not_found("certificate", certname)
    return ResultFailures.external_service_error(
        f"When attempting to revoke certificate '{certname}', received: "
        f"code: {response.code}, body: {response.body}"
    )


class CertificateRevoker:
    """
    Revoke certificates through the CA service's certificate_status endpoint.

    Trust comes from the host settings: `localcacert` is the CA bundle and,
    unless `certificate_revocation` is off, `hostcrl` holds the CRLs.
    """

    def __init__(
        self,
        settings: PuppetSettings,
        timeout: int = 30,
        retries: int = 3,
        wait: wait_base = _DEFAULT_WAIT,
    ) -> None:
        self._settings = settings
        self._timeout = timeout
        self._retries = retries
        self._wait = wait

    def revoke(self, certnames: Sequence[str]) -> Result[list[str]]:
        """Revoke every name; failures for individual names are accumulated."""
        settings = self._settings
        return Result.from_computation(
            lambda: make_ssl_context(
                settings.localcacert, settings.certificate_revocation, settings.hostcrl
            ),
            ErrorCode.CONFIGURATION_ERROR,
            f"Could not load CA trust from '{settings.localcacert}'",
        ).flat_map(lambda context: self._revoke_all(context, certnames))

    def _revoke_all(self, context: ssl.SSLContext, certnames: Sequence[str]) -> Result[list[str]]:
        url = make_ca_url(self._settings.ca_server, self._settings.ca_port)
        with ca_connection(
            url, context, timeout=self._timeout, retries=self._retries, wait=self._wait
        ) as connection:
            return Result.collect(
                connection.put(REVOKE_BODY, url.for_resource("certificate_status", name))
                .flat_map(lambda response, name=name: _revocation_outcome(name, response))
                for name in certnames
            )
