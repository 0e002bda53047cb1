"""Registry configuration files.

Example (YAML):

    directory: ./plugins
    branch: ""
    source_root: ~/.cache/plugsmith/src
    workers: 4
    env:
      GREETING: hello
    plugins:
      - github.com/user/greeter@v1.2.0
      - key: ./local/audit as audit
        update: true
"""

import json
import os
import sys
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from plugsmith.core.errors import ConfigError

SOURCE_ROOT_ENV = "PLUGSMITH_SOURCE_ROOT"


def _default_source_root() -> Path:
    env = os.environ.get(SOURCE_ROOT_ENV)
    if env:
        return Path(env).expanduser()
    return Path.home() / ".cache" / "plugsmith" / "src"


class PluginEntry(BaseModel):
    """A plugin to register."""

    key: str = Field(..., min_length=1)
    update: bool = False


class RegistryConfig(BaseModel):
    """Settings for building a Registry."""

    directory: Path = Field(..., description="Directory plugin archives are written to")
    branch: str = ""
    source_root: Path = Field(default_factory=_default_source_root)
    search_paths: list[Path] = []
    dedupe_depth: int = Field(default=3, ge=3)
    workers: int = Field(default=4, ge=1)
    python: str = Field(default_factory=lambda: sys.executable)
    git: str = "git"
    env: dict[str, str] = {}
    plugins: list[PluginEntry] = []

    model_config = {"extra": "forbid"}

    @field_validator("plugins", mode="before")
    @classmethod
    def _expand_plain_keys(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [{"key": item} if isinstance(item, str) else item for item in value]
        return value

    @field_validator("directory", mode="before")
    @classmethod
    def _directory_not_empty(cls, value: Any) -> Any:
        if value is None or not str(value).strip():
            raise ValueError("directory cannot be empty")
        return value

    @field_validator("source_root", "directory")
    @classmethod
    def _expand_user(cls, value: Path) -> Path:
        return value.expanduser()


def load_config(path: Path) -> RegistryConfig:
    """Load a registry configuration from YAML or JSON.

    Relative ``directory`` and ``search_paths`` entries are kept relative
    to the working directory, like plugin keys.

    Raises:
        ConfigError: If the file is missing, unparsable or invalid
    """
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}", path=str(path))

    try:
        content = path.read_text()
        if path.suffix == ".json":
            data = json.loads(content)
        else:
            data = yaml.safe_load(content)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigError(f"Failed to parse {path}: {e}", path=str(path)) from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config {path} must be a mapping", path=str(path))

    try:
        return RegistryConfig(**data)
    except ValidationError as e:
        errors = [f"{'.'.join(str(x) for x in err['loc'])}: {err['msg']}" for err in e.errors()]
        raise ConfigError(f"Invalid config {path}: {'; '.join(errors)}", path=str(path)) from e
