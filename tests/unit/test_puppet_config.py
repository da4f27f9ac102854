"""
Unit tests for the host configuration adapter (puppet.conf resolution).

Test categories:
  - Parsing: sections, comments, metadata, malformed lines
  - Layering: [main] < [master] < [server]
  - Interpolation: $confdir / $ssldir / $cadir / $certdir / $server
  - Resolution: defaults, explicit file, missing file, every error accumulated
"""

from __future__ import annotations

from pathlib import Path

import pytest

from pki_bootstrap.adapters.puppet_config import (
    PuppetConfigResolver,
    build_settings,
    interpolate,
    layered_overrides,
    parse_text,
)
from pki_bootstrap.domain.models import CaDestinations, CrlUsage
from pki_bootstrap.railway import ErrorCode, ResultAssertions

# ─────────────────────── Fixtures ───────────────────────


@pytest.fixture()
def confdir(tmp_path: Path) -> Path:
    path = tmp_path / "puppet"
    path.mkdir()
    return path


@pytest.fixture()
def resolver(confdir: Path) -> PuppetConfigResolver:
    return PuppetConfigResolver(confdir=confdir)


def _write_conf(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


# ─────────────────────── Parsing ───────────────────────


class TestParseText:
    def test_sections_and_settings(self) -> None:
        text = "[main]\nssldir = /ssl\n\n  [master]\n    cadir = /ca  # trailing\n"
        sections = ResultAssertions.assert_success(parse_text(text, "puppet.conf"))
        assert sections == {"main": {"ssldir": "/ssl"}, "master": {"cadir": "/ca"}}

    def test_settings_before_any_section_belong_to_main(self) -> None:
        sections = ResultAssertions.assert_success(parse_text("server = ca.example\n", "x"))
        assert sections == {"main": {"server": "ca.example"}}

    def test_comments_blank_lines_and_metadata_are_ignored(self) -> None:
        text = "# comment\n\n[main]\n  cacert = /ca/ca_crt.pem {owner = service}\n"
        sections = ResultAssertions.assert_success(parse_text(text, "x"))
        assert sections["main"]["cacert"] == "/ca/ca_crt.pem"

    def test_every_malformed_line_is_reported(self) -> None:
        """
        GIVEN two lines that are neither settings, headers nor comments
        WHEN parsed
        THEN both are reported with their line numbers.
        """
        result = parse_text("[main]\nthis is wrong\nok = yes\n= nope\n", "puppet.conf")
        errors = ResultAssertions.assert_failure(result, ErrorCode.CONFIGURATION_ERROR)
        assert [e.message for e in errors] == [
            "Could not parse line 2 of 'puppet.conf': 'this is wrong'",
            "Could not parse line 4 of 'puppet.conf': '= nope'",
        ]


class TestLayering:
    def test_later_sections_override_earlier(self) -> None:
        overrides = layered_overrides(
            {
                "main": {"cadir": "/main", "ssldir": "/ssl"},
                "master": {"cadir": "/master"},
                "server": {"cadir": "/server"},
            }
        )
        assert overrides == {"cadir": "/server", "ssldir": "/ssl"}

    def test_unrelated_sections_are_ignored(self) -> None:
        assert layered_overrides({"agent": {"cadir": "/agent"}}) == {}


# ─────────────────────── Interpolation ───────────────────────


class TestInterpolate:
    def test_defaults_follow_confdir(self) -> None:
        values = ResultAssertions.assert_success(interpolate({}, Path("/etc/pp")))
        assert values["ssldir"] == "/etc/pp/ssl"
        assert values["cadir"] == "/etc/pp/ssl/ca"
        assert values["cacert"] == "/etc/pp/ssl/ca/ca_crt.pem"
        assert values["cakey"] == "/etc/pp/ssl/ca/ca_key.pem"
        assert values["cacrl"] == "/etc/pp/ssl/ca/ca_crl.pem"
        assert values["localcacert"] == "/etc/pp/ssl/certs/ca.pem"
        assert values["hostcrl"] == "/etc/pp/ssl/crl.pem"
        assert values["ca_server"] == "puppet"

    def test_overridden_ssldir_flows_into_dependents(self) -> None:
        values = ResultAssertions.assert_success(interpolate({"ssldir": "/srv/ssl"}, Path("/c")))
        assert values["cadir"] == "/srv/ssl/ca"
        assert values["cacert"] == "/srv/ssl/ca/ca_crt.pem"

    def test_server_interpolates_into_ca_server(self) -> None:
        values = ResultAssertions.assert_success(
            interpolate({"server": "master.example"}, Path("/c"))
        )
        assert values["ca_server"] == "master.example"

    def test_unknown_variable(self) -> None:
        result = interpolate({"cacert": "$foo/ca.pem"}, Path("/c"))
        ResultAssertions.assert_failure(result, ErrorCode.CONFIGURATION_ERROR)
        assert result.error().message == (
            "Could not parse $foo in '$foo/ca.pem' for setting 'cacert', valid settings "
            "to be interpolated are $confdir, $ssldir, $certdir, $cadir or $server"
        )

    def test_every_unknown_variable_is_reported(self) -> None:
        result = interpolate({"cacert": "$foo/a", "cakey": "$bar/b"}, Path("/c"))
        ResultAssertions.assert_failure_count(result, 2)


# ─────────────────────── Settings ───────────────────────


class TestBuildSettings:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("true", CrlUsage.CHAIN),
            ("chain", CrlUsage.CHAIN),
            ("Leaf", CrlUsage.LEAF),
            ("false", CrlUsage.NONE),
        ],
    )
    def test_certificate_revocation_values(self, raw: str, expected: CrlUsage) -> None:
        values = ResultAssertions.assert_success(
            interpolate({"certificate_revocation": raw}, Path("/c"))
        )
        settings = ResultAssertions.assert_success(build_settings(values))
        assert settings.certificate_revocation is expected

    def test_values_become_typed_settings(self) -> None:
        values = ResultAssertions.assert_success(interpolate({"ca_port": "8141"}, Path("/c")))
        settings = ResultAssertions.assert_success(build_settings(values))
        assert settings.ca_port == 8141
        assert settings.cacert == Path("/c/ssl/ca/ca_crt.pem")

    def test_bad_revocation_and_port_are_both_reported(self) -> None:
        """
        GIVEN an unknown certificate_revocation mode and a non-numeric ca_port
        WHEN the settings are built
        THEN both are reported as configuration errors naming the setting.
        """
        values = ResultAssertions.assert_success(
            interpolate({"certificate_revocation": "maybe", "ca_port": "x"}, Path("/c"))
        )
        result = build_settings(values)
        errors = ResultAssertions.assert_failure(result, ErrorCode.CONFIGURATION_ERROR)
        assert len(errors) == 2
        assert errors[0].message == (
            "Could not parse certificate_revocation setting 'maybe': "
            "expected true, chain, leaf or false"
        )
        assert errors[1].message.startswith("Could not parse ca_port setting 'x': ")

    @pytest.mark.parametrize("port", ["0", "70000"])
    def test_port_out_of_range(self, port: str) -> None:
        values = ResultAssertions.assert_success(interpolate({"ca_port": port}, Path("/c")))
        result = build_settings(values)
        ResultAssertions.assert_failure(result, ErrorCode.CONFIGURATION_ERROR)
        assert result.error().message.startswith(f"Could not parse ca_port setting '{port}': ")


# ─────────────────────── Resolver ───────────────────────


class TestPuppetConfigResolver:
    def test_defaults_when_no_config_exists(
        self, resolver: PuppetConfigResolver, confdir: Path
    ) -> None:
        destinations = ResultAssertions.assert_success(resolver.resolve(None))
        assert destinations == CaDestinations(
            cacert=confdir / "ssl" / "ca" / "ca_crt.pem",
            cakey=confdir / "ssl" / "ca" / "ca_key.pem",
            cacrl=confdir / "ssl" / "ca" / "ca_crl.pem",
        )

    def test_confdir_puppet_conf_used_when_present(
        self, resolver: PuppetConfigResolver, confdir: Path, tmp_path: Path
    ) -> None:
        _write_conf(confdir / "puppet.conf", f"[server]\ncadir = {tmp_path}/ca\n")
        destinations = ResultAssertions.assert_success(resolver.resolve(None))
        assert destinations.cacert == tmp_path / "ca" / "ca_crt.pem"

    def test_explicit_config(self, resolver: PuppetConfigResolver, tmp_path: Path) -> None:
        """
        GIVEN a config whose [master] section sets cadir
        WHEN resolved
        THEN the three destinations live in that cadir.
        """
        config = _write_conf(tmp_path / "puppet.conf", f"[master]\n  cadir = {tmp_path}/ca\n")
        destinations = ResultAssertions.assert_success(resolver.resolve(config))
        assert list(destinations) == [
            tmp_path / "ca" / "ca_crt.pem",
            tmp_path / "ca" / "ca_key.pem",
            tmp_path / "ca" / "ca_crl.pem",
        ]

    def test_explicit_file_settings_win(
        self, resolver: PuppetConfigResolver, tmp_path: Path
    ) -> None:
        config = _write_conf(
            tmp_path / "puppet.conf",
            "[main]\ncacert = /a/crt.pem\ncakey = /a/key.pem\ncacrl = /a/crl.pem\n",
        )
        destinations = ResultAssertions.assert_success(resolver.resolve(config))
        assert destinations == CaDestinations(
            Path("/a/crt.pem"), Path("/a/key.pem"), Path("/a/crl.pem")
        )

    def test_load_settings_exposes_client_trust(
        self, resolver: PuppetConfigResolver, tmp_path: Path
    ) -> None:
        config = _write_conf(
            tmp_path / "puppet.conf",
            "[main]\nserver = ca.example\nca_port = 8141\ncertificate_revocation = leaf\n",
        )
        settings = ResultAssertions.assert_success(resolver.load_settings(config))
        assert settings.ca_server == "ca.example"
        assert settings.ca_port == 8141
        assert settings.certificate_revocation is CrlUsage.LEAF

    def test_missing_explicit_config(self, resolver: PuppetConfigResolver, tmp_path: Path) -> None:
        missing = tmp_path / "absent.conf"
        result = resolver.resolve(missing)
        ResultAssertions.assert_failure(result, ErrorCode.CONFIGURATION_ERROR)
        assert result.error().message.startswith(f"Could not read host configuration '{missing}'")

    def test_malformed_config(self, resolver: PuppetConfigResolver, tmp_path: Path) -> None:
        config = _write_conf(tmp_path / "puppet.conf", "[main]\n!!!\n")
        ResultAssertions.assert_failure_message_contains(
            resolver.resolve(config), "Could not parse line 2"
        )

    def test_invalid_values_are_reported_together(
        self, resolver: PuppetConfigResolver, tmp_path: Path
    ) -> None:
        config = _write_conf(
            tmp_path / "puppet.conf", "[main]\nca_port = 0\ncertificate_revocation = often\n"
        )
        errors = ResultAssertions.assert_failure(
            resolver.load_settings(config), ErrorCode.CONFIGURATION_ERROR
        )
        assert [e.message.split(":")[0] for e in errors] == [
            "Could not parse certificate_revocation setting 'often'",
            "Could not parse ca_port setting '0'",
        ]
