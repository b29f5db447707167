import logging
import os
import subprocess
from pathlib import Path

from .constants import APP_NAME

logger = logging.getLogger(APP_NAME)

_FIELD_SEP = "\x1f"


class GitRepo:
    """A read-mostly wrapper around the Git command-line interface.

    Provides the handful of queries the monitor needs: branch status with
    ahead/behind counters, local and upstream heads, and the upstream head's
    author. The only write is `fetch`, which refreshes remote-tracking refs.

    Attributes:
        path (Path): The file system path to the repository root.
    """

    def __init__(self, path: Path):
        """Initializes the GitRepo instance.

        Args:
            path (Path): The path to the repository root directory.

        Raises:
            ValueError: If the specified path does not contain a .git directory.
        """
        self.path = path
        if not (self.path / ".git").exists():
            raise ValueError(f"Not a git repository: {self.path}")

    def _run(
        self, args: list[str], capture: bool = True, env: dict | None = None
    ) -> str:
        """Executes a Git command within the repository context.

        Args:
            args (list[str]): A list of arguments to pass to the git command.
            capture (bool, optional):   Whether to capture and return stdout.
                                        Defaults to True.
            env (Optional[dict], optional): Environment variables to pass to the
                                            subprocess. Defaults to None.

        Returns:
            str:    The stripped stdout of the command if capture is True,
                    otherwise an empty string.

        Raises:
            RuntimeError: If the git command returns a non-zero exit code.
        """
        try:
            res = subprocess.run(
                ["git", *args],
                cwd=self.path,
                capture_output=capture,
                text=True,
                check=True,
                env=env,
            )
            return res.stdout.strip() if capture else ""
        except subprocess.CalledProcessError as e:
            raise RuntimeError(f"Git error: {e.stderr or e}") from e

    def status_branch_porcelain(self) -> str:
        """Returns `git status --porcelain --branch` output.

        The first line is the `## branch...upstream [ahead N, behind M]` header;
        every following line is a changed or untracked path.

        Returns:
            str: The raw porcelain text.
        """
        return self._run(["status", "--porcelain", "--branch"])

    def fetch(self, remote: str = "origin") -> None:
        """Refreshes remote-tracking refs without touching the working tree.

        Args:
            remote (str): The remote to fetch from.
        """
        env = os.environ.copy()
        env["GIT_TERMINAL_PROMPT"] = "0"
        env["GIT_SSH_COMMAND"] = "ssh -o BatchMode=yes"
        self._run(["fetch", "--quiet", remote], env=env)

    def rev_parse(self, rev: str) -> str | None:
        """Resolves a revision (tag, branch, relative ref) to a full SHA-1 hash.

        Args:
            rev (str): The revision to parse (e.g., 'HEAD', '@{u}').

        Returns:
            Optional[str]:  The full SHA-1 hash,
                            or None if the revision could not be resolved.
        """
        try:
            return self._run(["rev-parse", "--verify", "--quiet", rev])
        except Exception as e:
            logger.debug(f"rev-parse failed for '{rev}': {e}")
            return None

    def commit_info(self, rev: str) -> tuple[str, str, str]:
        """Reads author name, author email and subject of a commit.

        Args:
            rev (str): The commit to inspect.

        Returns:
            tuple[str, str, str]: (author_name, author_email, subject).

        Raises:
            RuntimeError: If the revision does not exist.
        """
        fmt = "%an%x1f%ae%x1f%s"
        output = self._run(["log", "-1", f"--format={fmt}", rev])
        parts = output.split(_FIELD_SEP)
        parts += [""] * (3 - len(parts))
        return parts[0], parts[1], parts[2]


def global_identity() -> tuple[str, str]:
    """Reads `user.name` and `user.email` from the global git config.

    Returns:
        tuple[str, str]: (name, email); empty strings where unset.
    """
    values = []
    for key in ("user.name", "user.email"):
        try:
            res = subprocess.run(
                ["git", "config", "--global", "--get", key],
                capture_output=True,
                text=True,
                check=False,
            )
            values.append(res.stdout.strip())
        except OSError as e:
            logger.debug(f"Could not read git config {key}: {e}")
            values.append("")
    return values[0], values[1]
