"""File-backed persistence for project config, assignments and researcher lists."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path

from audit_review.config import dump_project_config, load_project_config
from audit_review.models import ProjectConfig, PullRequestRef, ResearchersConfig

logger = logging.getLogger(__name__)

ASSIGNMENTS_FILE = "assignments.json"


class DataStore:
    """Reads and writes everything the dashboard remembers between restarts."""

    def __init__(self, data_dir: str | Path, config_file: str | Path | None = None) -> None:
        self.data_dir = Path(data_dir)
        self.config_file = Path(config_file) if config_file else self.data_dir / "config.yaml"

    # --- Project config ---

    def load_project(self) -> ProjectConfig:
        return load_project_config(self.config_file) or ProjectConfig()

    def save_project(self, config: ProjectConfig) -> None:
        self.config_file.parent.mkdir(parents=True, exist_ok=True)
        self.config_file.write_text(dump_project_config(config), encoding="utf-8")

    def add_repository(self, ref: PullRequestRef) -> list[PullRequestRef]:
        """Append a pull request. Raises ValueError if it is already configured."""
        config = self.load_project()
        if any(r.same_target(ref) for r in config.repositories):
            raise ValueError(f"PR already exists: {ref.key}")
        config.repositories.append(ref)
        self.save_project(config)
        logger.info("Added PR %s", ref.key)
        return config.repositories

    def remove_repository(self, index: int) -> list[PullRequestRef]:
        """Remove the pull request at *index*. Raises IndexError if out of range."""
        config = self.load_project()
        if index < 0 or index >= len(config.repositories):
            raise IndexError(f"Invalid PR index: {index}")
        removed = config.repositories.pop(index)
        self.save_project(config)
        logger.info("Removed PR %s", removed.key)
        return config.repositories

    def replace_repositories(self, repositories: list[PullRequestRef]) -> None:
        config = self.load_project()
        config.repositories = list(repositories)
        self.save_project(config)
        logger.info("Updated all PRs (%d total)", len(repositories))

    def set_single_repository(self, ref: PullRequestRef) -> None:
        """Make *ref* the only configured pull request."""
        config = self.load_project()
        config.repositories = [ref]
        config.name = f"{ref.repo}_Review"
        self.save_project(config)

    # --- Assignments ---

    def _assignments_path(self) -> Path:
        return self.data_dir / ASSIGNMENTS_FILE

    def load_assignments(self) -> dict[str, str]:
        path = self._assignments_path()
        if not path.exists():
            return {}
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.exception("Failed to read assignments from %s", path)
            return {}
        return {str(k): str(v) for k, v in raw.items()}

    def save_assignments(self, urls: Iterable[str], owner: str) -> dict[str, str]:
        assignments = self.load_assignments()
        for url in urls:
            assignments[url] = owner
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._assignments_path().write_text(json.dumps(assignments, indent=2), encoding="utf-8")
        return assignments

    # --- Researchers ---

    def _researchers_path(self, ref: PullRequestRef) -> Path:
        return self.data_dir / f"researchers-{ref.owner}-{ref.repo}-{ref.number}.json"

    def load_researchers(self, ref: PullRequestRef) -> ResearchersConfig:
        path = self._researchers_path(ref)
        if not path.exists():
            return ResearchersConfig()
        try:
            return ResearchersConfig.model_validate_json(path.read_text(encoding="utf-8"))
        except ValueError:
            logger.exception("Failed to read researchers from %s", path)
            return ResearchersConfig()

    def save_researchers(self, ref: PullRequestRef, researchers: ResearchersConfig) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._researchers_path(ref).write_text(researchers.model_dump_json(indent=2), encoding="utf-8")
