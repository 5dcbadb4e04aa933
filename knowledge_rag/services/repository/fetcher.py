"""Repository fetch: clone into an exclusive directory, list files, clean up.

Every clone gets its own fresh directory from ``tempfile.mkdtemp`` under
``clone_root``, so concurrent fetches never share a path.  A failed clone
removes its directory before the error propagates; a successful one is
removed by :meth:`RepositoryFetcher.cleanup`, which the callers run in a
``finally`` block (or via the :meth:`RepositoryFetcher.checkout` context
manager).
"""

from __future__ import annotations

import asyncio
import os
import re
import shutil
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import structlog

from knowledge_rag.interfaces.vcs_client import IVCSClient
from knowledge_rag.models.repository import FetchedRepository, RepositoryCredentials
from knowledge_rag.utils.errors import InvalidArgumentError

logger = structlog.get_logger(logger_name=__name__)

_SEGMENT_SPLIT = re.compile(r"[/:]")
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def derive_project_name(repo_url: str) -> str:
    """Return the last path segment of *repo_url* without a trailing ``.git``.

    >>> derive_project_name("https://github.com/acme/widgets.git")
    'widgets'
    >>> derive_project_name("https://github.com/acme/widgets/")
    'widgets'

    Raises
    ------
    InvalidArgumentError
        If no non-empty name remains.
    """
    trimmed = (repo_url or "").strip().rstrip("/")
    name = _SEGMENT_SPLIT.split(trimmed)[-1] if trimmed else ""
    if name.endswith(".git"):
        name = name[: -len(".git")]
    if not name:
        raise InvalidArgumentError(message=f"Cannot derive a project name from '{repo_url}'")
    return name


class RepositoryFetcher:
    """Clones repositories and enumerates their regular files.

    Parameters
    ----------
    vcs:
        Client that performs the clone.
    clone_root:
        Parent directory for per-fetch working directories.
    ignored_dirs:
        Directory names pruned from the walk (``.git`` is always pruned).
    max_file_bytes:
        Files larger than this are skipped; ``0`` disables the limit.
    """

    def __init__(
        self,
        vcs: IVCSClient,
        clone_root: str | Path,
        ignored_dirs: list[str] | None = None,
        max_file_bytes: int = 0,
    ) -> None:
        self._vcs = vcs
        self._clone_root = Path(clone_root)
        self._ignored_dirs = frozenset(ignored_dirs or ()) | {".git"}
        self._max_file_bytes = max_file_bytes

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def clone(self, repo_url: str, credentials: RepositoryCredentials) -> Path:
        """Clone *repo_url* into a new exclusive directory and return it.

        The directory is removed before any error (including cancellation)
        propagates.
        """
        if not repo_url or not repo_url.strip():
            raise InvalidArgumentError(message="Repository URL must not be empty")

        working_dir = self._allocate(repo_url)
        try:
            await self._vcs.clone(repo_url, working_dir, credentials)
        except BaseException:
            await self.cleanup(working_dir)
            raise
        return working_dir

    async def enumerate_files(self, working_dir: Path) -> list[Path]:
        """Return the sorted regular files under *working_dir* (see :meth:`_walk`)."""
        files = await asyncio.to_thread(self._walk, working_dir)
        logger.info("repository_files_enumerated", working_dir=str(working_dir), files=len(files))
        return files

    async def fetch(self, repo_url: str, credentials: RepositoryCredentials) -> FetchedRepository:
        """Clone and enumerate in one step.  The caller owns cleanup of the result."""
        working_dir = await self.clone(repo_url, credentials)
        try:
            files = await self.enumerate_files(working_dir)
        except BaseException:
            await self.cleanup(working_dir)
            raise
        return FetchedRepository(repo_url=repo_url, working_dir=working_dir, files=files)

    @asynccontextmanager
    async def checkout(
        self, repo_url: str, credentials: RepositoryCredentials
    ) -> AsyncIterator[FetchedRepository]:
        """Fetch a repository for the duration of an ``async with`` block."""
        repo = await self.fetch(repo_url, credentials)
        try:
            yield repo
        finally:
            await self.cleanup(repo.working_dir)

    async def cleanup(self, working_dir: Path) -> None:
        """Remove *working_dir*.  Runs to completion even if the caller is cancelled."""
        await asyncio.shield(asyncio.to_thread(self._remove_tree, working_dir))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _allocate(self, repo_url: str) -> Path:
        self._clone_root.mkdir(parents=True, exist_ok=True)
        try:
            prefix = _UNSAFE_CHARS.sub("_", derive_project_name(repo_url))[:40]
        except InvalidArgumentError:
            prefix = "repo"
        working_dir = Path(tempfile.mkdtemp(prefix=f"{prefix}-", dir=self._clone_root))
        logger.debug("clone_dir_allocated", working_dir=str(working_dir))
        return working_dir

    def _walk(self, working_dir: Path) -> list[Path]:
        """Walk the tree without following links.

        Ignored directories are pruned, and symlinks and oversized files
        are skipped.
        """
        found: list[Path] = []
        for dirpath, dirnames, filenames in os.walk(working_dir, followlinks=False):
            dirnames[:] = [d for d in dirnames if d not in self._ignored_dirs]
            for filename in filenames:
                path = Path(dirpath) / filename
                if path.is_symlink() or not path.is_file():
                    continue
                if self._max_file_bytes and path.stat().st_size > self._max_file_bytes:
                    logger.debug("repository_file_skipped_size", path=str(path))
                    continue
                found.append(path)
        return sorted(found)

    @staticmethod
    def _remove_tree(working_dir: Path) -> None:
        if not working_dir.exists():
            return
        shutil.rmtree(working_dir)
        logger.info("clone_dir_removed", working_dir=str(working_dir))
