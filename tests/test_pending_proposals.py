"""Tests for the pending registration lookup (gh CLI and REST fallback)."""

import json
import subprocess
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

from repository.github import (
    GitHubProposalClient,
    find_pending_proposals,
    proposal_from_record,
    search_query,
)

GH_RECORD = {
    "number": 101,
    "title": "New version: Example v1.2.0",
    "createdAt": "2024-03-01T12:00:00Z",
    "labels": [{"name": "automerge"}, {"name": "new version"}],
    "author": {"login": "JuliaRegistrator"},
}

REST_ITEM = {
    "number": 102,
    "title": "New version: Example v1.3.0",
    "created_at": "2024-03-02T08:30:00Z",
    "labels": [{"name": "AutoMerge"}],
    "user": {"login": "someone"},
}


def completed(stdout="", returncode=0, stderr=""):
    return subprocess.CompletedProcess(args=["gh"], returncode=returncode, stdout=stdout, stderr=stderr)


class TestProposalFromRecord:
    def test_gh_shape(self):
        p = proposal_from_record(GH_RECORD)
        assert p.number == 101
        assert p.author == "JuliaRegistrator"
        assert p.created_at == datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
        assert p.automerge is True

    def test_rest_shape_and_case_sensitive_label(self):
        p = proposal_from_record(REST_ITEM)
        assert p.author == "someone"
        assert p.created_at == datetime(2024, 3, 2, 8, 30, tzinfo=timezone.utc)
        assert p.automerge is False

    def test_missing_fields(self):
        assert proposal_from_record({"title": "no number"}) is None
        p = proposal_from_record({"number": 5})
        assert p.author == "unknown"
        assert p.created_at is None
        assert p.labels == []


class TestGhCli:
    @patch("repository.github.subprocess.run")
    @patch("repository.github.shutil.which", return_value="/usr/bin/gh")
    def test_uses_gh_when_available(self, _which, mock_run):
        mock_run.return_value = completed(json.dumps([GH_RECORD]))
        proposals = GitHubProposalClient("JuliaRegistries/General").find_pending("Example")
        assert [p.number for p in proposals] == [101]
        cmd = mock_run.call_args[0][0]
        assert cmd[:3] == ["gh", "pr", "list"]
        assert search_query("Example", "JuliaRegistries/General") in cmd
        assert "number,title,createdAt,labels,author" in cmd

    @patch("repository.github.subprocess.run", return_value=completed("", returncode=1, stderr="auth"))
    @patch("repository.github.shutil.which", return_value="/usr/bin/gh")
    def test_gh_failure_is_empty(self, _which, _run):
        assert GitHubProposalClient("JuliaRegistries/General").find_pending("Example") == []

    @patch("repository.github.subprocess.run", side_effect=subprocess.TimeoutExpired("gh", 30))
    @patch("repository.github.shutil.which", return_value="/usr/bin/gh")
    def test_gh_timeout_is_empty(self, _which, _run):
        assert GitHubProposalClient("JuliaRegistries/General").find_pending("Example") == []

    @patch("repository.github.subprocess.run", return_value=completed("not json"))
    @patch("repository.github.shutil.which", return_value="/usr/bin/gh")
    def test_gh_garbage_is_empty(self, _which, _run):
        assert GitHubProposalClient("JuliaRegistries/General").find_pending("Example") == []

    @patch("repository.github.subprocess.run", return_value=completed("   \n"))
    @patch("repository.github.shutil.which", return_value="/usr/bin/gh")
    def test_gh_no_output(self, _which, _run):
        assert GitHubProposalClient("JuliaRegistries/General").find_pending("Example") == []


class TestRestFallback:
    @patch("repository.github.get_json", return_value=(200, {}, {"items": [REST_ITEM]}))
    @patch("repository.github.shutil.which", return_value=None)
    def test_rest_search(self, _which, mock_get_json):
        client = GitHubProposalClient("JuliaRegistries/General", token="ghp_secret")
        proposals = client.find_pending("Example")
        assert [p.number for p in proposals] == [102]
        url = mock_get_json.call_args[0][0]
        assert url.startswith("https://api.github.com/search/issues?q=")
        assert mock_get_json.call_args[1]["headers"]["Authorization"] == "Bearer ghp_secret"

    @patch("repository.github.get_json", return_value=(403, {}, None))
    @patch("repository.github.shutil.which", return_value=None)
    def test_rest_error_is_empty(self, _which, _get):
        assert GitHubProposalClient("JuliaRegistries/General").find_pending("Example") == []

    @patch("repository.github.shutil.which", return_value=None)
    def test_token_from_environment(self, _which, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "env_token")
        assert GitHubProposalClient("a/b")._get_headers()["Authorization"] == "Bearer env_token"


class TestFindPendingProposals:
    def test_no_repo_means_no_lookup(self):
        with patch("repository.github.GitHubProposalClient") as mock_client:
            assert find_pending_proposals("Example", None) == []
        mock_client.assert_not_called()

    def test_delegates(self):
        with patch("repository.github.GitHubProposalClient") as mock_client:
            mock_client.return_value.find_pending.return_value = ["p"]
            assert find_pending_proposals("Example", "a/b") == ["p"]
        mock_client.assert_called_once_with("a/b")
