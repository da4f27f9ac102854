"""
Host configuration adapter — resolves CA paths from a puppet.conf style file.

Adapter layer — implements the DestinationResolver port.

Resolution:
  built-in defaults (derived from $confdir)
    ← [main] overrides
      ← [master] overrides
        ← [server] overrides
  → $confdir / $ssldir / $certdir / $cadir / $server interpolation
  → PuppetSettings (pydantic) → CaDestinations

The file is read line by line. Section headers and settings may be indented,
and trailing `{owner = ...}` metadata after a value is ignored.
Every problem found (unreadable file, malformed lines, unresolvable
variables, bad values) is accumulated into one CONFIGURATION_ERROR failure.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from pathlib import Path

import structlog
from pydantic import ValidationError

from pki_bootstrap.config import PuppetSettings, default_confdir
from pki_bootstrap.domain.models import CaDestinations
from pki_bootstrap.railway import ErrorCode, Result, ResultFailures

log = structlog.get_logger()

_SECTION = re.compile(r"^\s*\[(\w+)\]")
_SETTING = re.compile(r"^\s*(\w+)\s*=\s*([^\s{#]+)")
_IGNORED = re.compile(r"^\s*(#.*)?$")
_VARIABLE = re.compile(r"\$([a-z_]+)")

SECTIONS = ("main", "master", "server")

DEFAULTS: dict[str, str] = {
    "ssldir": "$confdir/ssl",
    "cadir": "$ssldir/ca",
    "certdir": "$ssldir/certs",
    "server": "puppet",
    "cacert": "$cadir/ca_crt.pem",
    "cakey": "$cadir/ca_key.pem",
    "cacrl": "$cadir/ca_crl.pem",
    "localcacert": "$certdir/ca.pem",
    "hostcrl": "$ssldir/crl.pem",
    "certificate_revocation": "true",
    "ca_server": "$server",
    "ca_port": "8140",
}

# Settings other settings may refer to, in the order they are resolved.
INTERPOLATABLE = ("confdir", "ssldir", "cadir", "certdir", "server")


def _outcome[T](value: T, messages: Sequence[str]) -> Result[T]:
    return Result.collect(ResultFailures.configuration_error(m) for m in messages).map(
        lambda _: value
    )


def parse_text(text: str, source: Path | str) -> Result[dict[str, dict[str, str]]]:
    """
    Split puppet.conf text into {section: {setting: value}}.

    Settings before any header belong to [main].
    """
    sections: dict[str, dict[str, str]] = {}
    messages: list[str] = []
    current = "main"
    for number, line in enumerate(text.splitlines(), start=1):
        if section := _SECTION.match(line):
            current = section.group(1)
        elif setting := _SETTING.match(line):
            sections.setdefault(current, {})[setting.group(1)] = setting.group(2)
        elif not _IGNORED.match(line):
            messages.append(f"Could not parse line {number} of '{source}': '{line.strip()}'")
    return _outcome(sections, messages)


def layered_overrides(sections: dict[str, dict[str, str]]) -> dict[str, str]:
    overrides: dict[str, str] = {}
    for name in SECTIONS:
        overrides.update(sections.get(name, {}))
    return overrides


def interpolate(
    overrides: dict[str, str],
    confdir: Path,
) -> Result[dict[str, str]]:
    """Apply overrides on top of the defaults and expand $variables."""
    raw = {**DEFAULTS, **overrides}
    resolved: dict[str, str] = {"confdir": overrides.get("confdir", str(confdir))}
    messages: list[str] = []

    def expand(match: re.Match[str]) -> str:
        name = match.group(1)
        return resolved[name] if name in INTERPOLATABLE and name in resolved else match.group(0)

    ordered = [name for name in INTERPOLATABLE if name in raw]
    ordered += [name for name in raw if name not in INTERPOLATABLE]
    for name in ordered:
        value = _VARIABLE.sub(expand, raw[name])
        if unresolved := _VARIABLE.search(value):
            messages.append(
                f"Could not parse {unresolved.group(0)} in '{raw[name]}' for setting "
                f"'{name}', valid settings to be interpolated are "
                "$confdir, $ssldir, $certdir, $cadir or $server"
            )
        resolved[name] = value

    return _outcome(resolved, messages)


def _invalid_setting(values: dict[str, str], error: Mapping[str, object]) -> str:
    loc = error["loc"]
    name = str(loc[0]) if isinstance(loc, tuple) and loc else "setting"
    reason = str(error["msg"]).removeprefix("Value error, ")
    return f"Could not parse {name} setting '{values.get(name, '')}': {reason}"


def build_settings(values: dict[str, str]) -> Result[PuppetSettings]:
    """Validate interpolated values into PuppetSettings, one error per bad setting."""
    try:
        return Result.success(PuppetSettings.model_validate(values))
    except ValidationError as e:
        return Result.failure_from(
            *(
                ResultFailures.configuration_error(_invalid_setting(values, error), e).error()
                for error in e.errors()
            )
        )


class PuppetConfigResolver:
    """
    Resolve host settings and CA install destinations.

    Implements the DestinationResolver port. Without an explicit config path
    `<confdir>/puppet.conf` is used when it exists; otherwise the built-in
    defaults apply unmodified.
    """

    def __init__(self, confdir: Path | None = None) -> None:
        self._confdir = confdir if confdir is not None else default_confdir()

    def resolve(self, config_path: Path | None) -> Result[CaDestinations]:
        return self.load_settings(config_path).map(
            lambda settings: CaDestinations(
                cacert=settings.cacert,
                cakey=settings.cakey,
                cacrl=settings.cacrl,
            )
        )

    def load_settings(self, config_path: Path | None) -> Result[PuppetSettings]:
        path = config_path if config_path is not None else self._confdir / "puppet.conf"
        if config_path is None and not path.is_file():
            log.info("config.defaults", confdir=str(self._confdir))
            overrides: Result[dict[str, str]] = Result.success({})
        else:
            overrides = (
                Result.from_computation(
                    lambda: path.read_text(encoding="utf-8"),
                    ErrorCode.CONFIGURATION_ERROR,
                    f"Could not read host configuration '{path}'",
                )
                .flat_map(lambda text: parse_text(text, path))
                .map(layered_overrides)
            )

        return (
            overrides.flat_map(lambda values: interpolate(values, self._confdir))
            .flat_map(build_settings)
            .peek(
                lambda settings: log.info(
                    "config.resolved",
                    cacert=str(settings.cacert),
                    cakey=str(settings.cakey),
                    cacrl=str(settings.cacrl),
                )
            )
        )
