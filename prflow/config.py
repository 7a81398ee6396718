"""Configuration management for prflow."""

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field

from prflow.process_limits import DEFAULT_NICE_VALUE

CONFIG_FILENAME = ".prflow.yaml"


class RetryConfig(BaseModel):
    """Backoff settings for hosting-provider calls."""

    min_delay: float = Field(default=1.0, gt=0)
    max_delay: float = Field(default=30.0, gt=0)
    max_attempts: int = Field(default=3, ge=1)
    jitter: bool = True


class Config(BaseModel):
    """prflow configuration.

    Project-level settings (see ``Project``) override the ``auto_pr_*``
    values here when they are set.
    """

    auto_pr_on_review_enabled: bool = False
    auto_pr_draft: bool = True
    pr_auto_description_enabled: bool = False
    pr_auto_description_prompt: Optional[str] = None
    open_pr_in_browser: bool = True
    state_dir: Path = Path(".prflow")
    retry: RetryConfig = Field(default_factory=RetryConfig)
    nice_value: int = DEFAULT_NICE_VALUE

    def resolve_auto_pr_enabled(self, project_value: Optional[bool]) -> bool:
        """Whether auto-PR on review is on, with a project override taking precedence.

        Args:
            project_value: The project's setting, or None to inherit

        Returns:
            Effective setting
        """
        if project_value is not None:
            return project_value
        return self.auto_pr_on_review_enabled

    def resolve_auto_pr_draft(self, project_value: Optional[bool]) -> bool:
        """Whether auto-created PRs are drafts, with a project override taking precedence."""
        if project_value is not None:
            return project_value
        return self.auto_pr_draft

    def get_state_dir(self, base: Optional[Path] = None) -> Path:
        """State directory, resolved against ``base`` when relative."""
        if self.state_dir.is_absolute():
            return self.state_dir
        return (base or Path.cwd()) / self.state_dir


def find_config_file(start_path: Path) -> Optional[Path]:
    """Find .prflow.yaml by walking up the directory tree.

    Args:
        start_path: Directory to start searching from

    Returns:
        Path to config file, or None if not found
    """
    current = start_path.resolve()

    while True:
        config_file = current / CONFIG_FILENAME
        if config_file.exists():
            return config_file

        parent = current.parent
        if parent == current:
            break
        current = parent

    return None


def load_config(path: Optional[Path] = None) -> Config:
    """Load configuration from .prflow.yaml.

    Args:
        path: Directory to start searching from (default: current directory)

    Returns:
        Loaded configuration (or defaults if no file is found or it is empty)
    """
    if path is None:
        path = Path.cwd()

    config_file = find_config_file(path)

    if config_file is None:
        return Config()

    with open(config_file, "r") as f:
        data = yaml.safe_load(f)

    if data is None:
        return Config()

    return Config(**data)
