"""Git access through the git command-line client."""

from __future__ import annotations

import asyncio
import os
import re
import shlex
import shutil
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from workflow.models import ConfigurationError, FileSystemError, NetworkError, ValidationError

_LOG_FORMAT = "%H%x00%an%x00%ae%x00%at%x00%B"
_COMMIT_ID = re.compile(r"[0-9a-fA-F]{1,40}")


@dataclass(frozen=True)
class CloneOptions:
    """How to clone: an optional SSH key and branch."""

    ssh_key: Optional[str] = None
    branch: Optional[str] = None


@dataclass(frozen=True)
class CommitInfo:
    """Details of one commit."""

    id: str
    short_id: str
    message: str
    author_name: str
    author_email: str
    timestamp: datetime


class _GitFailure(Exception):
    pass


class GitClient:
    """Clones repositories and reads commits by running git."""

    def __init__(self, executable: str = "git") -> None:
        self.executable = executable

    async def _git(self, *args: str, env: Optional[dict[str, str]] = None) -> str:
        try:
            process = await asyncio.create_subprocess_exec(
                self.executable,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
            )
        except OSError as exc:
            raise _GitFailure(str(exc)) from exc
        stdout, stderr = await process.communicate()
        if process.returncode != 0:
            raise _GitFailure(stderr.decode(errors="replace").strip() or f"git exited with {process.returncode}")
        return stdout.decode(errors="replace")

    async def clone_repository(
        self, url: str, destination: Union[str, Path], options: CloneOptions
    ) -> str:
        """Replace the destination's contents with the repository's files; return the HEAD commit id."""
        destination = Path(destination)
        if destination.exists():
            print("Clearing existing contents of the workflows directory...")
            _clear_directory(destination)
            print("Existing contents cleared.")
        else:
            try:
                destination.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise FileSystemError(f"Failed to create workflows directory {destination}: {exc}") from exc

        print(f"Cloning workflows from {url}...")

        temp_dir = destination / "temp_clone"
        if temp_dir.exists():
            try:
                shutil.rmtree(temp_dir)
            except OSError as exc:
                raise FileSystemError(str(exc)) from exc

        if options.ssh_key:
            env = dict(os.environ)
            env["GIT_SSH_COMMAND"] = f"ssh -i {shlex.quote(options.ssh_key)} -o IdentitiesOnly=yes"
            branch_args = ["--branch", options.branch] if options.branch else []
            try:
                await self._git("clone", *branch_args, "--", url, str(temp_dir), env=env)
            except _GitFailure as exc:
                raise NetworkError(f"Failed to clone {url} with SSH key: {exc}") from exc
        else:
            try:
                await self._git("clone", "--", url, str(temp_dir))
            except _GitFailure as exc:
                raise NetworkError(f"Failed to clone {url} with default authentication: {exc}") from exc

        try:
            commit_id = (await self._git("-C", str(temp_dir), "rev-parse", "HEAD")).strip()
        except _GitFailure as exc:
            raise NetworkError(str(exc)) from exc

        print(f"Repository cloned successfully (commit {commit_id}).")

        try:
            if temp_dir.is_dir():
                for path in temp_dir.iterdir():
                    if path.name.startswith("."):
                        continue
                    target = destination / path.name
                    if path.is_file():
                        shutil.copyfile(path, target)
                    elif path.is_dir():
                        if target.exists():
                            shutil.rmtree(target)
                        shutil.move(str(path), str(target))
            if temp_dir.exists():
                shutil.rmtree(temp_dir)
        except OSError as exc:
            raise FileSystemError(str(exc)) from exc

        return commit_id

    async def get_commit_info(
        self, repo_path: Union[str, Path], commit_id: Optional[str] = None
    ) -> CommitInfo:
        """Describe the given commit, or HEAD when no id is given."""
        repo = str(repo_path)
        try:
            await self._git("-C", repo, "rev-parse", "--git-dir")
        except _GitFailure as exc:
            raise ConfigurationError(f"Failed to open repository: {exc}") from exc

        if commit_id is not None:
            if not _COMMIT_ID.fullmatch(commit_id):
                raise ValidationError(f"Invalid commit ID: {commit_id}")
            revision, failure = f"{commit_id}^{{commit}}", "Failed to find commit"
        else:
            revision, failure = "HEAD", "Failed to get HEAD"

        try:
            output = await self._git("-C", repo, "log", "-1", f"--format={_LOG_FORMAT}", revision, "--")
        except _GitFailure as exc:
            raise NetworkError(f"{failure}: {exc}") from exc

        parts = output.split("\x00", 4)
        if len(parts) != 5:
            raise NetworkError(f"{failure}: unexpected git output")
        full_id, author_name, author_email, seconds, body = parts
        message = body[:-1] if body.endswith("\n") else body
        try:
            timestamp = datetime.fromtimestamp(int(seconds), timezone.utc)
        except ValueError:
            timestamp = datetime.fromtimestamp(0, timezone.utc)
        full_id = full_id.strip()
        return CommitInfo(
            id=full_id,
            short_id=full_id[:8],
            message=message,
            author_name=author_name,
            author_email=author_email,
            timestamp=timestamp,
        )


def _clear_directory(directory: Path) -> None:
    try:
        entries = list(directory.iterdir())
    except OSError:
        return
    for path in entries:
        if path.is_file():
            try:
                path.unlink()
            except OSError as exc:
                print(f"Warning: could not remove file {path}: {exc}")
        elif path.is_dir():
            try:
                shutil.rmtree(path)
            except OSError as exc:
                print(f"Warning: could not remove directory {path}: {exc}")