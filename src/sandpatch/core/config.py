"""Application state and configuration."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import platformdirs
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from sandpatch.core.base import BaseConfig, BaseState
from sandpatch.core.log import Logger
from sandpatch.core.yaml_settings import YamlWithIncludesSettingsSource

# Modules reachable from templates, e.g. {platformdirs.user_log_dir}
TEMPLATE_NAMESPACE = {
    'os': os,
    'platformdirs': platformdirs,
    'Path': Path,
}


class WorkspaceConfig(BaseConfig):
    """Working tree and commit identity settings."""

    repository_path: Path = Field(
        default_factory=Path.cwd,
        description="Root of the git working tree to operate on",
    )
    committer_name: str = Field(
        default="sandpatch",
        description="Author and committer name for attempt commits",
    )
    committer_email: str = Field(
        default="sandpatch@localhost",
        description="Author and committer email for attempt commits",
    )
    commit_message: str = Field(
        default="workspace change",
        description="Commit message for attempts without a memo",
    )
    stash_message: str = Field(
        default="workspace change attempt",
        description="Stash message for failed attempts without a memo",
    )


class Config(BaseConfig):
    """Configuration loaded from YAML/env/CLI."""

    logger: Logger | None = Field(
        default=None,
        description="Logger configuration and runtime instance",
    )
    workspace: WorkspaceConfig = Field(
        default_factory=WorkspaceConfig,
        description="Working tree settings",
    )
    log_level: str = Field(
        default="info",
        alias="log-level",
        description=(
            "Default log level: trace, debug, info, warn, error, fatal"
        ),
    )
    log_root: Path = Field(
        default_factory=(
            lambda: Path(platformdirs.user_state_dir("sandpatch"))
        ),
        description=(
            "Root directory for log files "
            "(supports {platformdirs.*} templates)"
        ),
    )
    commands: dict[str, dict[str, str]] = Field(
        default_factory=dict,
        description=(
            "Command template overrides by category; "
            "commands.git replaces entries of the git backend's defaults"
        ),
    )

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode='after')
    def _setup_logger(self) -> Config:
        """Initialize the global logger from the loaded settings."""
        from sandpatch.core.log import setup_logger

        self.log_root = Path(expand_template(str(self.log_root), self))
        if self.logger is None:
            self.logger = Logger(level=self.log_level)

        self.logger = setup_logger(
            log_root=self.log_root,
            run_name=self.workspace.repository_path.name or "workspace",
            level=self.logger.level,
            console=self.logger.console,
            file=self.logger.file,
            logfire=self.logger.logfire,
        )
        return self


class ApplyState(BaseState):
    """Runtime state of the apply command."""

    attempted: int = Field(default=0, description="Attempts run so far")
    failed: int = Field(default=0, description="Attempts that failed")
    status: str = Field(
        default="pending",
        description="pending, running, complete, failed",
    )


class Runtime(BaseModel):
    """Runtime state, one section per command."""

    apply: ApplyState = Field(default_factory=ApplyState)


class State(BaseSettings):
    """Configuration plus runtime state, as passed to commands.

    Loads from init arguments, layered YAML files, .env and
    SANDPATCH_* environment variables, in that priority order.
    """

    config: Config = Field(
        default_factory=Config,
        description="Configuration (from YAML/env/CLI)",
    )
    runtime: Runtime = Field(
        default_factory=Runtime,
        description="Runtime state (mutates while a command runs)",
    )
    include: list[str] | None = Field(
        default=None,
        description=(
            "Additional YAML files to deep-merge over the defaults. "
            "Use --include on the CLI or include: in YAML files."
        ),
    )

    model_config = SettingsConfigDict(
        yaml_file="sandpatch.yaml",
        env_file=".env",
        env_prefix="SANDPATCH_",
        env_nested_delimiter="__",
        cli_parse_args=True,
        cli_implicit_flags=True,
        cli_use_class_docs_for_groups=True,
        arbitrary_types_allowed=True,
        extra='ignore',
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            YamlWithIncludesSettingsSource(settings_cls),
            dotenv_settings,
            env_settings,
            file_secret_settings,
        )

    @model_validator(mode="after")
    def substitute_templates(self) -> State:
        """Expand {config.*} and {platformdirs.*} in string fields."""
        _substitute(self.config, self)
        return self


_TEMPLATE = re.compile(r'\{([A-Za-z_][A-Za-z0-9._]*)\}')


def expand_template(value: str, root: Any) -> str:
    """Replace {dotted.path} references in value.

    The first path component names either a TEMPLATE_NAMESPACE module
    or an attribute of root. Callables found at the end of the path
    are called; platformdirs functions get the application name, so
    {platformdirs.user_log_dir} expands to sandpatch's log directory.
    Unresolvable references are left as they are.
    """
    def replace(match):
        parts = match.group(1).split(".")
        obj = TEMPLATE_NAMESPACE.get(parts[0], root)
        if obj is not root:
            parts = parts[1:]
        try:
            for part in parts:
                obj = getattr(obj, part)
            if callable(obj):
                if match.group(1).startswith("platformdirs."):
                    obj = obj('sandpatch', appauthor=False)
                else:
                    obj = obj()
        except (AttributeError, TypeError):
            return match.group(0)
        return str(obj)

    return _TEMPLATE.sub(replace, value)


def _substitute(obj: Any, root: Any) -> None:
    """Expand templates in place throughout a model, dict or list."""
    if isinstance(obj, BaseModel):
        # Logger sinks format their own {log_root}/{run_name} paths
        if isinstance(obj, Logger):
            return
        for name in obj.__class__.model_fields:
            value = getattr(obj, name)
            new_value = _expand(value, root)
            if new_value is not value:
                setattr(obj, name, new_value)
    elif isinstance(obj, dict):
        for key in obj:
            obj[key] = _expand(obj[key], root)
    elif isinstance(obj, list):
        for i, item in enumerate(obj):
            obj[i] = _expand(item, root)


def _expand(value: Any, root: Any) -> Any:
    if isinstance(value, str):
        expanded = expand_template(value, root)
        return value if expanded == value else expanded
    if isinstance(value, Path):
        expanded = expand_template(str(value), root)
        return value if expanded == str(value) else Path(expanded)
    if isinstance(value, (BaseModel, dict, list)):
        _substitute(value, root)
    return value


__all__ = ["State", "Config", "WorkspaceConfig", "BaseConfig", "BaseState"]
