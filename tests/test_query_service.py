"""End-to-end tests for the query service against a throwaway registry."""

import shutil
from dataclasses import replace
from unittest.mock import MagicMock, patch

import pytest

from conftest import T1, T3, utc
from registry.errors import (
    ManifestUnreadable,
    MirrorUnavailable,
    NoVersionsFound,
    PackageNotFound,
    VersionNotFound,
)
from registry.service import RegistryQueryService, when
from versioning.models import PackageRequest, ResolutionMode

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


@requires_git
class TestQuery:
    def test_latest(self, demo_registry, registry_config):
        result = RegistryQueryService(registry_config).query("Demo")
        assert result.version == "0.2.0"
        assert result.timestamp == utc(T3)
        assert result.yanked is False
        assert result.registry == "General"

    def test_exact_yanked_reports_introduction(self, demo_registry, registry_config):
        result = RegistryQueryService(registry_config).query("Demo", "0.1.0")
        assert result.version == "0.1.0"
        assert result.timestamp == utc(T1)
        assert result.yanked is True
        assert result.requested_spec == "0.1.0"

    def test_partial(self, demo_registry, registry_config):
        result = RegistryQueryService(registry_config).query("Demo", "0.2")
        assert result.version == "0.2.0"

    def test_partial_all_yanked(self, demo_registry, registry_config):
        with pytest.raises(VersionNotFound) as excinfo:
            RegistryQueryService(registry_config).query("Demo", "0.1")
        assert excinfo.value.specifier == "0.1"

    def test_unknown_version(self, demo_registry, registry_config):
        with pytest.raises(VersionNotFound) as excinfo:
            RegistryQueryService(registry_config).query("Demo", "0.3.0")
        assert excinfo.value.package == "Demo"
        assert excinfo.value.specifier == "0.3.0"
        assert "0.3.0" in str(excinfo.value)

    def test_unknown_package(self, demo_registry, registry_config):
        with pytest.raises(PackageNotFound) as excinfo:
            RegistryQueryService(registry_config).query("Nope")
        assert excinfo.value.package == "Nope"

    def test_empty_manifest(self, demo_registry, registry_config):
        demo_registry.add_manifest("Empty", "# nothing yet\n", T3 + 60)
        with pytest.raises(NoVersionsFound):
            RegistryQueryService(registry_config).query("Empty")

    def test_latest_version(self, demo_registry, registry_config):
        assert RegistryQueryService(registry_config).latest_version("Demo") == "0.2.0"

    def test_clone_failure_propagates(self, tmp_path, registry_config):
        config = replace(registry_config, url=str(tmp_path / "missing"))
        with pytest.raises(MirrorUnavailable) as excinfo:
            RegistryQueryService(config).query("Demo")
        assert excinfo.value.package == "Demo"

    def test_when_helper(self, demo_registry, registry_config):
        assert when("Demo@0.1.0", registry_config) == utc(T1)
        assert when("Demo", registry_config) == utc(T3)

    def test_reads_pinned_to_captured_tip(self, demo_registry, registry_config):
        service = RegistryQueryService(registry_config)
        path = service.mirror.ensure()
        pinned = service.mirror.tip_commit(path)
        with patch("registry.service.find_introduction_time", return_value=utc(T3)) as mock_find:
            service.query("Demo")
        assert mock_find.call_args[0][3] == pinned


class TestManifestRace:
    def _service(self):
        mirror = MagicMock()
        mirror.ensure_fresh.return_value = "/mirror"
        mirror.tip_commit.return_value = "abc123"
        config = MagicMock()
        config.name = "General"
        return RegistryQueryService(config, mirror=mirror)

    @patch("registry.service.read_manifest_text", side_effect=ManifestUnreadable("gone"))
    @patch("registry.service.locate_package", side_effect=["D/Demo/Versions.toml", None])
    def test_vanished_manifest_is_package_not_found(self, _locate, _read):
        with pytest.raises(PackageNotFound):
            self._service().query("Demo")

    @patch("registry.service.read_manifest_text", side_effect=ManifestUnreadable("corrupt"))
    @patch("registry.service.locate_package", return_value="D/Demo/Versions.toml")
    def test_unreadable_manifest_propagates(self, _locate, _read):
        with pytest.raises(ManifestUnreadable) as excinfo:
            self._service().query("Demo", "1.0")
        assert excinfo.value.package == "Demo"
        assert excinfo.value.specifier == "1.0"


class TestQueryMany:
    def _request(self, name, spec=None):
        return PackageRequest(package=name, specifier=spec, mode=ResolutionMode.LATEST)

    def test_errors_isolated_and_order_kept(self):
        service = RegistryQueryService(MagicMock(), mirror=MagicMock())

        def fake_query(package, spec):
            if package == "Bad":
                raise PackageNotFound("missing", package=package)
            return MagicMock(package=package)

        with patch.object(RegistryQueryService, "query", side_effect=fake_query):
            entries = service.query_many(
                [self._request("A"), self._request("Bad"), self._request("C")], max_workers=3
            )
        assert [e.request.package for e in entries] == ["A", "Bad", "C"]
        assert [e.ok for e in entries] == [True, False, True]
        assert isinstance(entries[1].error, PackageNotFound)

    def test_accepts_string_tokens(self):
        service = RegistryQueryService(MagicMock(), mirror=MagicMock())
        with patch.object(RegistryQueryService, "query", return_value=MagicMock()) as mock_query:
            service.query_many(["A@1.0", "B"], max_workers=1)
        assert sorted(c.args for c in mock_query.call_args_list) == [("A", "1.0"), ("B", None)]

    def test_clone_failure_fails_every_entry(self):
        mirror = MagicMock()
        mirror.ensure.side_effect = MirrorUnavailable("offline")
        service = RegistryQueryService(MagicMock(), mirror=mirror)
        entries = service.query_many(["A", "B"])
        assert all(isinstance(e.error, MirrorUnavailable) for e in entries)

    def test_unusable_cache_root_fails_every_entry(self, tmp_path, registry_config):
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        config = replace(registry_config, cache_root=str(blocker / "cache"))
        entries = RegistryQueryService(config).query_many(["Demo", "Demo@0.1.0"])
        assert [e.request.package for e in entries] == ["Demo", "Demo"]
        assert all(isinstance(e.error, MirrorUnavailable) for e in entries)

    def test_empty_batch(self):
        assert RegistryQueryService(MagicMock(), mirror=MagicMock()).query_many([]) == []

    @pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")
    def test_real_batch(self, demo_registry, registry_config):
        entries = RegistryQueryService(registry_config).query_many(["Demo", "Demo@0.1.0", "Nope"], 2)
        assert entries[0].result.version == "0.2.0"
        assert entries[1].result.timestamp == utc(T1)
        assert entries[2].error.kind == "PackageNotFound"
