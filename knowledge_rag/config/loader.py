"""YAML configuration loader with environment variable overrides.

Configuration is layered (later layers win):

  1. config/config.yaml  -- static defaults checked into the repo
  2. .env file           -- local developer overrides
  3. Environment vars    -- deploy-time values

The YAML file carries the values that are awkward as env vars: the list
of directories skipped during a repository walk and the RAG system
prompt template.
"""

from pathlib import Path

import yaml

from knowledge_rag.config.settings import Settings

_DEFAULT_IGNORED_DIRS = [".git", "node_modules", "target", "build", "dist", "__pycache__", ".venv", ".idea"]

_DEFAULT_SYSTEM_PROMPT = (
    "Use the information from the DOCUMENTS section to provide accurate answers "
    "but act as if you knew this information innately. "
    "If unsure, simply state that you don't know.{language_clause}\n"
    "DOCUMENTS:\n{documents}"
)


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.
        settings: Settings instance to take overrides from.  A fresh one is
                  built from the environment when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    defaults = {
        "repository": {"ignored_dirs": list(_DEFAULT_IGNORED_DIRS)},
        "rag": {"system_prompt": _DEFAULT_SYSTEM_PROMPT},
    }
    _deep_merge(defaults, yaml_config)

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "llm": {
            "available_providers": settings.get_available_llm_providers(),
        },
        "rag": {
            "top_k": settings.rag_top_k,
            "reply_language": settings.rag_reply_language,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(defaults, env_overrides)
    return defaults


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
