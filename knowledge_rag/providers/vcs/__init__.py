"""Version-control client adapters."""

from knowledge_rag.providers.vcs.git_cli_client import GitCLIClient

__all__ = ["GitCLIClient"]
