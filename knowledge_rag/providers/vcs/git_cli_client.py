"""Git client that shells out to the ``git`` executable.

Runs ``git clone --depth 1`` through ``asyncio.create_subprocess_exec`` so
the event loop stays free while the clone runs.  HTTPS credentials are
embedded in the clone URL and interactive prompting is disabled, so a bad
token fails fast instead of hanging on a password prompt.

Failures are classified from git's stderr into authentication, not-found
and network errors.  Credentials are scrubbed from every message.
"""

from __future__ import annotations

import asyncio
import os
import shutil
from pathlib import Path
from urllib.parse import quote, urlsplit, urlunsplit

import structlog

from knowledge_rag.interfaces.vcs_client import IVCSClient
from knowledge_rag.models.repository import RepositoryCredentials
from knowledge_rag.utils.errors import (
    AuthenticationFailedError,
    ConfigurationError,
    KnowledgeBaseError,
    NetworkError,
    RepositoryNotFoundError,
)

logger = structlog.get_logger(logger_name=__name__)

_AUTH_MARKERS = (
    "authentication failed",
    "could not read username",
    "could not read password",
    "invalid username or password",
    "access denied",
    "permission denied",
    "the requested url returned error: 401",
    "the requested url returned error: 403",
)

_NOT_FOUND_MARKERS = (
    "repository not found",
    "does not appear to be a git repository",
    "does not exist",
    "the requested url returned error: 404",
    "not found",
)


def authenticated_url(repo_url: str, credentials: RepositoryCredentials) -> str:
    """Return *repo_url* with the credentials placed in its userinfo part.

    Non-HTTP(S) URLs and anonymous credentials are returned unchanged.
    """
    parts = urlsplit(repo_url)
    if parts.scheme not in ("http", "https") or credentials.is_anonymous:
        return repo_url
    token = credentials.token.get_secret_value()
    user = quote(credentials.username or "git", safe="")
    userinfo = f"{user}:{quote(token, safe='')}" if token else user
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    return urlunsplit((parts.scheme, f"{userinfo}@{host}", parts.path, parts.query, parts.fragment))


def classify_clone_failure(stderr: str) -> type[KnowledgeBaseError]:
    """Map git's stderr onto an error class."""
    lowered = stderr.lower()
    if any(marker in lowered for marker in _AUTH_MARKERS):
        return AuthenticationFailedError
    if any(marker in lowered for marker in _NOT_FOUND_MARKERS):
        return RepositoryNotFoundError
    return NetworkError


class GitCLIClient(IVCSClient):
    """Shallow-clones repositories with the system ``git`` binary.

    Parameters
    ----------
    timeout:
        Seconds before a running clone is killed and reported as a
        :class:`NetworkError`.
    git_executable:
        Name or path of the git binary.
    """

    def __init__(self, timeout: float = 300.0, git_executable: str = "git") -> None:
        self._timeout = timeout
        self._git = git_executable

    async def clone(self, repo_url: str, destination: Path, credentials: RepositoryCredentials) -> None:
        git_path = shutil.which(self._git)
        if not git_path:
            raise ConfigurationError(
                message="git executable not found on PATH",
                provider_name=self.get_provider_name(),
            )

        url = authenticated_url(repo_url, credentials)
        env = {**os.environ, "GIT_TERMINAL_PROMPT": "0", "GIT_ASKPASS": "echo"}
        logger.info("git_clone_started", repo_url=repo_url, destination=str(destination))

        proc = await asyncio.create_subprocess_exec(
            git_path, "clone", "--depth", "1", "--quiet", url, str(destination),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=env,
        )
        try:
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            await self._kill(proc)
            raise NetworkError(
                message=f"git clone timed out after {self._timeout}s: {repo_url}",
                provider_name=self.get_provider_name(),
            ) from exc
        except asyncio.CancelledError:
            await self._kill(proc)
            raise

        if proc.returncode != 0:
            detail = self._scrub(stderr.decode("utf-8", errors="replace").strip(), credentials)
            error_cls = classify_clone_failure(detail)
            logger.warning(
                "git_clone_failed",
                repo_url=repo_url,
                returncode=proc.returncode,
                error_type=error_cls.__name__,
                stderr=detail[:500],
            )
            raise error_cls(
                message=f"git clone of {repo_url} failed: {detail[:500]}",
                provider_name=self.get_provider_name(),
            )

        logger.info("git_clone_complete", repo_url=repo_url)

    def get_provider_name(self) -> str:
        return "git"

    def is_available(self) -> bool:
        return shutil.which(self._git) is not None

    @staticmethod
    async def _kill(proc: asyncio.subprocess.Process) -> None:
        if proc.returncode is None:
            proc.kill()
            await proc.wait()

    @staticmethod
    def _scrub(text: str, credentials: RepositoryCredentials) -> str:
        token = credentials.token.get_secret_value()
        if token:
            text = text.replace(token, "***").replace(quote(token, safe=""), "***")
        return text
