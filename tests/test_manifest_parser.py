"""Tests for manifest location, reading and parsing."""

import shutil

import pytest

from registry.errors import ManifestUnreadable, NoVersionsFound
from registry.manifest import (
    is_version_yanked,
    locate_package,
    manifest_path,
    parse_versions,
    read_manifest_text,
)

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")

MANIFEST = """\
["1.0.0"]
git-tree-sha1 = "1111"

["1.0.1"]
git-tree-sha1 = "2222"
yanked = true

["1.1.0"]
git-tree-sha1 = "3333"
"""


class TestManifestPath:
    def test_uppercase_first_letter_directory(self):
        assert manifest_path("example") == "E/example/Versions.toml"
        assert manifest_path("JSON") == "J/JSON/Versions.toml"

    @pytest.mark.parametrize("name", ["", "   ", "a/b", "a\\b", ".", ".."])
    def test_unusable_names(self, name):
        assert manifest_path(name) is None


class TestParseVersions:
    def test_order_preserved_with_yanked(self):
        entries = parse_versions(MANIFEST, include_yanked=True)
        assert [e.version for e in entries] == ["1.0.0", "1.0.1", "1.1.0"]
        assert [e.yanked for e in entries] == [False, True, False]

    def test_exclude_yanked_keeps_relative_order(self):
        entries = parse_versions(MANIFEST, include_yanked=False)
        assert [e.version for e in entries] == ["1.0.0", "1.1.0"]

    def test_yanked_marker_whitespace_tolerant(self):
        text = '["2.0.0"]\nyanked=true\n\n["2.0.1"]\nyanked   =   true\n["2.0.2"]\n'
        entries = parse_versions(text)
        assert [e.yanked for e in entries] == [True, True, False]

    def test_yanked_false_is_not_yanked(self):
        entries = parse_versions('["1.0.0"]\nyanked = false\n')
        assert entries[0].yanked is False

    def test_trailing_whitespace_and_crlf(self):
        entries = parse_versions('["1.0.0"]  \r\ngit-tree-sha1 = "x"\r\n')
        assert [e.version for e in entries] == ["1.0.0"]

    def test_prerelease_and_build_suffixes(self):
        entries = parse_versions('["1.0.0-rc1"]\n["1.0.0+build.5"]\n')
        assert [e.version for e in entries] == ["1.0.0-rc1", "1.0.0+build.5"]

    def test_indented_header_is_not_a_section(self):
        with pytest.raises(NoVersionsFound):
            parse_versions('  ["1.0.0"]\n')

    @pytest.mark.parametrize("text", ["", "\n\n", "git-tree-sha1 = \"x\"\n", "[deps]\n"])
    def test_no_sections_raises(self, text):
        with pytest.raises(NoVersionsFound):
            parse_versions(text)

    def test_all_yanked_filtered_is_empty_not_error(self):
        assert parse_versions('["1.0.0"]\nyanked = true\n', include_yanked=False) == []


class TestIsVersionYanked:
    def test_direct_lookup(self):
        assert is_version_yanked(MANIFEST, "1.0.1") is True
        assert is_version_yanked(MANIFEST, "1.0.0") is False

    def test_unknown_version(self):
        assert is_version_yanked(MANIFEST, "9.9.9") is False


@requires_git
class TestMirrorReads:
    def test_locate_and_read(self, registry_builder):
        sha = registry_builder.add_manifest("Example", MANIFEST, 1600000000)
        repo = registry_builder.path
        rel = locate_package(repo, "Example", sha)
        assert rel == "E/Example/Versions.toml"
        assert read_manifest_text(repo, rel, sha) == MANIFEST

    def test_locate_missing_package(self, registry_builder):
        sha = registry_builder.add_manifest("Example", MANIFEST, 1600000000)
        assert locate_package(registry_builder.path, "Missing", sha) is None
        assert locate_package(registry_builder.path, "example", sha) is None

    def test_locate_with_unknown_revision(self, registry_builder):
        registry_builder.add_manifest("Example", MANIFEST, 1600000000)
        assert locate_package(registry_builder.path, "Example", "0" * 40) is None

    def test_read_missing_path_raises(self, registry_builder):
        sha = registry_builder.add_manifest("Example", MANIFEST, 1600000000)
        with pytest.raises(ManifestUnreadable):
            read_manifest_text(registry_builder.path, "M/Missing/Versions.toml", sha)
