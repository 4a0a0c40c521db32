"""
Pytest configuration and shared fixtures.
"""

import json
import os
import shutil
import stat
import subprocess
from pathlib import Path

import pytest

from src.deployed_changes.data_models import ChangeRequest, VersionReference


@pytest.fixture
def sample_version():
    """A parsed version reference."""
    return VersionReference(
        branch="master",
        build_date="20200101T000000Z",
        content_hash="abc1234",
        raw="master-20200101T000000Z-gabc1234",
    )


@pytest.fixture
def make_request(tmp_path, sample_version):
    """Factory for change requests rooted in a temporary directory."""

    def _make(service="billing", location=None, version=None):
        return ChangeRequest(
            service=service,
            location=Path(location) if location else tmp_path,
            version=version or sample_version,
        )

    return _make


@pytest.fixture
def sample_log():
    """History text as emitted by git log, newest commit first."""
    return (
        "commit 2222222222222222222222222222222222222222\n"
        "BILL-42 Fix rounding of invoice totals\n"
        "\n"
        "Reviewed by: alice\n"
        "Approved by: bob\n"
        "commit 1111111111111111111111111111111111111111\n"
        "BILL-41 Add VAT line items\n"
        "\n"
        "Longer explanation of the change.\n"
        "Reviewed by: carol\n"
    )


@pytest.fixture
def services_file(tmp_path):
    """A small service table on disk."""
    path = tmp_path / "services.json"
    path.write_text(
        json.dumps(
            {
                "billing": {"repo": "payments/billing", "description": "Billing"},
                "notifier": "platform/notifier",
            }
        )
    )
    return path


@pytest.fixture
def fake_git(tmp_path):
    """Write an executable shell script to stand in for git."""

    def _write(body: str, name: str = "fake-git") -> str:
        script = tmp_path / name
        script.write_text("#!/bin/sh\n" + body + "\n")
        script.chmod(script.stat().st_mode | stat.S_IEXEC)
        return str(script)

    return _write


def _git(repo: Path, *args: str) -> str:
    env = dict(os.environ, GIT_CONFIG_NOSYSTEM="1", HOME=str(repo.parent))
    completed = subprocess.run(
        [
            "git",
            "-c",
            "user.name=Test User",
            "-c",
            "user.email=test@example.com",
            "-c",
            "commit.gpgsign=false",
            *args,
        ],
        cwd=repo,
        env=env,
        check=True,
        capture_output=True,
        text=True,
    )
    return completed.stdout.strip()


@pytest.fixture
def git_repo(tmp_path):
    """A real repository on master with a deployed base commit and two later ones.

    Returns (path, base_sha).
    """
    if shutil.which("git") is None:
        pytest.skip("git is not installed")

    repo = tmp_path / "repo"
    repo.mkdir()
    _git(repo, "init", "-q")
    _git(repo, "symbolic-ref", "HEAD", "refs/heads/master")
    _git(repo, "commit", "-q", "--allow-empty", "-m", "Initial import")
    base_sha = _git(repo, "rev-parse", "--short", "HEAD")
    _git(
        repo,
        "commit",
        "-q",
        "--allow-empty",
        "-m",
        "BILL-41 Add VAT line items",
        "-m",
        "Reviewed by: carol",
    )
    _git(
        repo,
        "commit",
        "-q",
        "--allow-empty",
        "-m",
        "BILL-42 Fix rounding",
        "-m",
        "Approved by: bob",
    )
    return repo, base_sha
