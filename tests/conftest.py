"""Shared fixtures: isolated environment and throwaway git registries."""

import os
import subprocess
from datetime import datetime, timezone

import pytest

from common import http_client
from config import RegistryConfig

T1 = 1600000000
T2 = 1600086400
T3 = 1600172800


def _git(args, cwd, env=None):
    full_env = dict(os.environ)
    full_env.update(env or {})
    result = subprocess.run(
        ["git", "-c", "user.name=Registrator", "-c", "user.email=registrator@example.com",
         "-c", "commit.gpgsign=false", *args],
        cwd=cwd, env=full_env, capture_output=True, text=True, check=True,
    )
    return result.stdout.strip()


class RegistryBuilder:
    """Build a tiny registry repository with fully controlled commit dates."""

    def __init__(self, path):
        self.path = str(path)
        os.makedirs(self.path, exist_ok=True)
        _git(["init", "-q"], self.path)
        _git(["symbolic-ref", "HEAD", "refs/heads/master"], self.path)

    def write(self, rel_path, text):
        full = os.path.join(self.path, *rel_path.split("/"))
        os.makedirs(os.path.dirname(full), exist_ok=True)
        with open(full, "w", encoding="utf-8") as fh:
            fh.write(text)

    def commit(self, message, epoch, tz="+0000", author_epoch=None):
        date = f"{epoch} {tz}"
        author_date = date if author_epoch is None else f"{author_epoch} {tz}"
        _git(["add", "-A"], self.path)
        _git(["commit", "-q", "-m", message], self.path,
             env={"GIT_AUTHOR_DATE": author_date, "GIT_COMMITTER_DATE": date})
        return _git(["rev-parse", "HEAD"], self.path)

    def head(self):
        return _git(["rev-parse", "HEAD"], self.path)

    def add_manifest(self, package, text, epoch, tz="+0000", author_epoch=None):
        self.write(f"{package[0].upper()}/{package}/Versions.toml", text)
        return self.commit(f"New version: {package}", epoch, tz, author_epoch)


def utc(epoch):
    return datetime.fromtimestamp(epoch, tz=timezone.utc)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Keep tests away from the user's config, cache, depot and tokens."""
    for var in ("PKGWHEN_CONFIG", "PKGWHEN_CACHE_DIR", "PKGWHEN_LOG_LEVEL", "GITHUB_TOKEN"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "xdg-cache"))
    monkeypatch.setenv("JULIA_DEPOT_PATH", str(tmp_path / "depot"))
    http_client.clear_cache()
    yield
    http_client.clear_cache()


@pytest.fixture
def registry_builder(tmp_path):
    return RegistryBuilder(tmp_path / "upstream")


@pytest.fixture
def demo_registry(registry_builder):
    """Upstream with package Demo: 0.1.0 at T1, yanked at T2, 0.2.0 added at T3."""
    b = registry_builder
    b.write("Registry.toml", 'name = "General"\nrepo = "https://example.invalid/General.git"\n')
    b.add_manifest("Demo", '["0.1.0"]\ngit-tree-sha1 = "aaa"\n', T1)
    b.add_manifest("Demo", '["0.1.0"]\ngit-tree-sha1 = "aaa"\nyanked = true\n', T2)
    b.add_manifest(
        "Demo",
        '["0.1.0"]\ngit-tree-sha1 = "aaa"\nyanked = true\n\n["0.2.0"]\ngit-tree-sha1 = "bbb"\n',
        T3,
    )
    return b


@pytest.fixture
def registry_config(tmp_path, registry_builder):
    return RegistryConfig(
        name="General",
        url=registry_builder.path,
        cache_root=str(tmp_path / "cache"),
        depot_paths=(str(tmp_path / "depot"),),
    )
