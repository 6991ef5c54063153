"""Runtime settings from the environment and project config from YAML."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

import yaml
from pydantic import BaseModel

from audit_review.models import ProjectConfig, PullRequestRef

DEFAULT_GRAPHQL_URL = "https://api.github.com/graphql"


class Settings(BaseModel):
    github_token: str = ""
    data_dir: Path = Path(".")
    config_file: Path = Path("config.yaml")
    port: int = 3000
    cache_ttl_seconds: float = 30.0
    graphql_url: str = DEFAULT_GRAPHQL_URL


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build settings from environment variables.

    ``CONFIG_FILE`` wins over ``CONFIG_DIR``; both default to the data dir.
    """
    env = os.environ if environ is None else environ

    data_dir = Path(env["APP_DATA_DIR"]).resolve() if env.get("APP_DATA_DIR") else Path.cwd()
    if env.get("CONFIG_FILE"):
        config_file = Path(env["CONFIG_FILE"]).resolve()
    elif env.get("CONFIG_DIR"):
        config_file = Path(env["CONFIG_DIR"]).resolve() / "config.yaml"
    else:
        config_file = data_dir / "config.yaml"

    return Settings(
        github_token=env.get("GITHUB_TOKEN", ""),
        data_dir=data_dir,
        config_file=config_file,
        port=int(env.get("PORT") or 3000),
        cache_ttl_seconds=float(env.get("CACHE_TTL_SECONDS") or 30),
        graphql_url=env.get("GITHUB_GRAPHQL_URL") or DEFAULT_GRAPHQL_URL,
    )


def load_project_config(config_file: str | Path) -> ProjectConfig | None:
    """Load the project config. Returns None when the file does not exist yet.

    JSON config files from older setups load unchanged (JSON is YAML).
    """
    path = Path(config_file)
    if not path.exists():
        return None

    raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not raw:
        return ProjectConfig()

    repositories = [PullRequestRef.model_validate(r) for r in raw.get("repositories") or []]
    return ProjectConfig(name=raw.get("name") or "Audit Review", repositories=repositories)


def dump_project_config(config: ProjectConfig) -> str:
    raw = {
        "name": config.name,
        "repositories": [r.model_dump(exclude_defaults=True) for r in config.repositories],
    }
    return yaml.safe_dump(raw, sort_keys=False, allow_unicode=True)
