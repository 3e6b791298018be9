from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import patch

import pytest

from workflow.git import CloneOptions, GitClient
from workflow.models import ConfigurationError, NetworkError, ValidationError

COMMIT = "0123456789abcdef0123456789abcdef01234567"


class FakeProcess:
    def __init__(self, returncode=0, stdout=b"", stderr=b""):
        self.returncode = returncode
        self._stdout = stdout
        self._stderr = stderr

    async def communicate(self):
        return self._stdout, self._stderr


class FakeGit:
    def __init__(self, clone_fails=False, open_fails=False, log_output=None):
        self.calls = []
        self.clone_fails = clone_fails
        self.open_fails = open_fails
        self.log_output = log_output

    async def __call__(self, program, *args, stdout=None, stderr=None, env=None):
        self.calls.append((list(args), env))
        if "clone" in args:
            if self.clone_fails:
                return FakeProcess(128, stderr=b"repository not found")
            target = Path(args[-1])
            (target / ".git").mkdir(parents=True)
            (target / ".git" / "config").write_text("cfg")
            (target / "deploy.yaml").write_text("name: deploy")
            (target / "nested").mkdir()
            (target / "nested" / "more.yml").write_text("name: more")
            return FakeProcess()
        if "--git-dir" in args:
            if self.open_fails:
                return FakeProcess(128, stderr=b"not a git repository")
            return FakeProcess(stdout=b".git\n")
        if "rev-parse" in args:
            return FakeProcess(stdout=(COMMIT + "\n").encode())
        if "log" in args:
            return FakeProcess(stdout=self.log_output)
        return FakeProcess(1, stderr=b"unexpected")

    def call_with(self, word):
        return next((args, env) for args, env in self.calls if word in args)


def patched(fake):
    return patch("workflow.git.asyncio.create_subprocess_exec", new=fake)


@pytest.mark.asyncio
async def test_clone_into_new_directory(tmp_path):
    fake = FakeGit()
    destination = tmp_path / "workflows"
    with patched(fake):
        commit = await GitClient().clone_repository("repo-url", destination, CloneOptions())
    assert commit == COMMIT
    assert (destination / "deploy.yaml").read_text() == "name: deploy"
    assert (destination / "nested" / "more.yml").exists()
    assert not (destination / ".git").exists()
    assert not (destination / "temp_clone").exists()


@pytest.mark.asyncio
async def test_clone_clears_existing_contents(tmp_path):
    (tmp_path / "old.yaml").write_text("old")
    (tmp_path / "olddir").mkdir()
    with patched(FakeGit()):
        await GitClient().clone_repository("repo-url", tmp_path, CloneOptions())
    names = sorted(p.name for p in tmp_path.iterdir())
    assert names == ["deploy.yaml", "nested"]


@pytest.mark.asyncio
async def test_clone_with_ssh_key_sets_branch_and_ssh_command(tmp_path):
    fake = FakeGit()
    options = CloneOptions(ssh_key="/keys/id_test", branch="main")
    with patched(fake):
        commit = await GitClient().clone_repository("repo-url", tmp_path / "w", options)
    assert commit == COMMIT
    args, env = fake.call_with("clone")
    assert args[args.index("--branch") + 1] == "main"
    assert "/keys/id_test" in env["GIT_SSH_COMMAND"]


@pytest.mark.asyncio
async def test_clone_without_ssh_key_uses_default_authentication(tmp_path):
    fake = FakeGit()
    with patched(fake):
        commit = await GitClient().clone_repository("repo-url", tmp_path / "w", CloneOptions(branch="main"))
    assert commit == COMMIT
    args, env = fake.call_with("clone")
    assert "--branch" not in args
    assert env is None


@pytest.mark.asyncio
async def test_clone_failure_raises_network_error(tmp_path):
    with patched(FakeGit(clone_fails=True)):
        with pytest.raises(NetworkError) as info:
            await GitClient().clone_repository("repo-url", tmp_path / "w", CloneOptions())
    assert "repository not found" in str(info.value)


@pytest.mark.asyncio
async def test_get_commit_info_parses_log(tmp_path):
    output = f"{COMMIT}\x00Ada\x00ada@example.com\x001700000000\x00Add workflows\n\n".encode()
    fake = FakeGit(log_output=output)
    with patched(fake):
        info = await GitClient().get_commit_info(tmp_path, None)
    assert info.id == COMMIT
    assert info.short_id == COMMIT[:8]
    assert info.message == "Add workflows\n"
    assert (info.author_name, info.author_email) == ("Ada", "ada@example.com")
    assert info.timestamp == datetime.fromtimestamp(1700000000, timezone.utc)
    args, _ = fake.call_with("log")
    assert "HEAD" in args


@pytest.mark.asyncio
async def test_get_commit_info_for_given_commit(tmp_path):
    output = f"{COMMIT}\x00Ada\x00ada@example.com\x001700000000\x00msg\n\n".encode()
    fake = FakeGit(log_output=output)
    with patched(fake):
        info = await GitClient().get_commit_info(tmp_path, COMMIT)
    args, _ = fake.call_with("log")
    assert f"{COMMIT}^{{commit}}" in args
    assert info.id == COMMIT


@pytest.mark.asyncio
async def test_get_commit_info_rejects_invalid_id(tmp_path):
    with patched(FakeGit()):
        with pytest.raises(ValidationError):
            await GitClient().get_commit_info(tmp_path, "not-a-commit")


@pytest.mark.asyncio
async def test_get_commit_info_on_non_repository(tmp_path):
    with patched(FakeGit(open_fails=True)):
        with pytest.raises(ConfigurationError):
            await GitClient().get_commit_info(tmp_path, None)


@pytest.mark.asyncio
async def test_missing_git_executable_is_network_error(tmp_path):
    client = GitClient(executable=str(tmp_path / "no-such-git"))
    with pytest.raises(NetworkError):
        await client.clone_repository("repo-url", tmp_path / "w", CloneOptions())