"""Tests for the git history query executor."""

import sys

import pytest

from src.deployed_changes.config import ChangesConfig
from src.deployed_changes.data_models import Failure, HistoryQueryError, LogParseError
from src.deployed_changes.history_query import LOG_FORMAT, HistoryQueryExecutor
from src.deployed_changes.version_parser import parse_version

posix_only = pytest.mark.skipif(
    sys.platform == "win32", reason="fake git scripts need a POSIX shell"
)


class TestBuildCommand:
    """Test command construction."""

    def test_default_command(self, make_request):
        """Test the range runs from the deployed hash to the upstream branch."""
        executor = HistoryQueryExecutor(ChangesConfig())

        command = executor.build_command(make_request())

        assert command == ["git", "log", LOG_FORMAT, "abc1234..master", "--"]

    def test_configured_branch_and_binary(self, make_request):
        """Test upstream branch and git binary come from config."""
        config = ChangesConfig(upstream_branch="main", git_executable="/usr/bin/git")
        executor = HistoryQueryExecutor(config)

        command = executor.build_command(make_request())

        assert command[0] == "/usr/bin/git"
        assert command[3] == "abc1234..main"


@posix_only
class TestRunWithFakeGit:
    """Test run() against scripts standing in for git."""

    @pytest.mark.asyncio
    async def test_success_parses_output(self, make_request, fake_git):
        """Test captured output is parsed oldest first with trailers filtered."""
        git = fake_git(
            "printf 'commit bbb\\nPROJ-2 second\\nReviewed by: a\\n"
            "commit aaa\\nPROJ-1 first\\n'"
        )
        executor = HistoryQueryExecutor(ChangesConfig(git_executable=git))

        result = await executor.run(make_request())

        assert not isinstance(result, Failure)
        assert [c.hash for c in result] == ["aaa", "bbb"]
        assert result[1].ticket_lines == ["PROJ-2 second"]
        assert result[1].message_lines == ["PROJ-2 second", "Reviewed by: a"]

    @pytest.mark.asyncio
    async def test_receives_revision_range(self, make_request, fake_git, tmp_path):
        """Test git is invoked in the repository with the expected arguments."""
        args_file = tmp_path / "args.txt"
        git = fake_git(f'echo "$@" > {args_file}; pwd >> {args_file}')
        repo = tmp_path / "checkout"
        repo.mkdir()
        executor = HistoryQueryExecutor(ChangesConfig(git_executable=git))

        result = await executor.run(make_request(location=repo))

        assert result == []
        recorded = args_file.read_text().splitlines()
        assert recorded[0].startswith("log --pretty=format:commit %H%n%B abc1234..master")
        assert recorded[1].endswith("checkout")

    @pytest.mark.asyncio
    async def test_empty_output_is_no_changes(self, make_request, fake_git):
        """Test an empty range yields an empty sequence, not a failure."""
        executor = HistoryQueryExecutor(ChangesConfig(git_executable=fake_git("true")))

        assert await executor.run(make_request()) == []

    @pytest.mark.asyncio
    async def test_nonzero_exit_is_failure(self, make_request, fake_git):
        """Test a failing git yields a Failure naming service and version."""
        git = fake_git("echo 'fatal: bad revision abc1234..master' >&2; exit 128")
        executor = HistoryQueryExecutor(ChangesConfig(git_executable=git))

        result = await executor.run(make_request(service="billing"))

        assert isinstance(result, Failure)
        assert result.service == "billing"
        assert result.version == "master-20200101T000000Z-gabc1234"
        assert isinstance(result.cause, HistoryQueryError)
        assert "status 128" in result.message
        assert "fatal: bad revision" in result.message
        assert "billing" in result.message

    @pytest.mark.asyncio
    async def test_timeout_is_failure(self, make_request, fake_git):
        """Test a hung query is killed and reported."""
        git = fake_git("exec sleep 5")
        executor = HistoryQueryExecutor(
            ChangesConfig(git_executable=git, query_timeout=0.2)
        )

        result = await executor.run(make_request())

        assert isinstance(result, Failure)
        assert "timed out after 0.2s" in result.message

    @pytest.mark.asyncio
    async def test_output_overflow_is_failure(self, make_request, fake_git):
        """Test output beyond the size bound is reported."""
        git = fake_git("exec head -c 500000 /dev/zero")
        executor = HistoryQueryExecutor(
            ChangesConfig(git_executable=git, max_output_bytes=1024)
        )

        result = await executor.run(make_request())

        assert isinstance(result, Failure)
        assert "exceeded 1024 bytes" in result.message

    @pytest.mark.asyncio
    async def test_undecodable_output_is_failure(self, make_request, fake_git):
        """Test a log parse failure is wrapped like a process failure."""
        git = fake_git("printf 'commit abc\\n\\377\\376\\n'")
        executor = HistoryQueryExecutor(ChangesConfig(git_executable=git))

        result = await executor.run(make_request())

        assert isinstance(result, Failure)
        assert isinstance(result.cause, LogParseError)

    @pytest.mark.asyncio
    async def test_missing_git_binary_is_failure(self, make_request, tmp_path):
        """Test a git binary that cannot be started."""
        config = ChangesConfig(git_executable=str(tmp_path / "no-such-git"))

        result = await HistoryQueryExecutor(config).run(make_request())

        assert isinstance(result, Failure)
        assert "could not start" in result.message


class TestRunEdgeCases:
    """Test run() paths that never start a process."""

    @pytest.mark.asyncio
    async def test_missing_repository_is_failure(self, make_request, tmp_path):
        """Test a location that does not exist."""
        request = make_request(location=tmp_path / "absent")

        result = await HistoryQueryExecutor().run(request)

        assert isinstance(result, Failure)
        assert "repository not found" in result.message

    @pytest.mark.asyncio
    async def test_empty_content_hash_is_failure(self, make_request, tmp_path):
        """Test an empty hash is refused instead of querying from HEAD."""
        config = ChangesConfig(git_executable=str(tmp_path / "must-not-run"))
        request = make_request(version=parse_version("master-2020-g"))

        result = await HistoryQueryExecutor(config).run(request)

        assert isinstance(result, Failure)
        assert "empty content hash" in result.message


class TestRunWithRealGit:
    """Test run() against a real repository."""

    @pytest.mark.asyncio
    async def test_commits_since_deployed_hash(self, git_repo, make_request):
        """Test commits after the deployed hash are returned oldest first."""
        repo, base_sha = git_repo
        version = parse_version(f"master-20200101T000000Z-g{base_sha}")
        request = make_request(location=repo, version=version)

        result = await HistoryQueryExecutor().run(request)

        assert not isinstance(result, Failure)
        assert [c.ticket_lines for c in result] == [
            ["BILL-41 Add VAT line items"],
            ["BILL-42 Fix rounding"],
        ]
        assert result[0].message_lines == [
            "BILL-41 Add VAT line items",
            "Reviewed by: carol",
        ]
        assert all(len(c.hash) == 40 for c in result)

    @pytest.mark.asyncio
    async def test_unknown_hash_is_failure(self, git_repo, make_request):
        """Test a hash that is not in the repository."""
        repo, _ = git_repo
        version = parse_version("master-20200101T000000Z-g0000000000")
        request = make_request(location=repo, version=version)

        result = await HistoryQueryExecutor().run(request)

        assert isinstance(result, Failure)
        assert isinstance(result.cause, HistoryQueryError)
