"""YAML configuration loading with include directive support."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import yaml
from platformdirs import user_config_dir
from pydantic_settings import BaseSettings, YamlConfigSettingsSource

from sandpatch.core.log import logger

DEFAULTS_FILE = Path(__file__).parent.parent / "defaults" / "default.yaml"


def _cli_includes(argv: list[str]) -> list[str]:
    """Values of every --include option in argv."""
    includes = []
    args = iter(argv[1:])
    for arg in args:
        if arg == "--include":
            value = next(args, None)
            if value is not None:
                includes.append(value)
        elif arg.startswith("--include="):
            includes.append(arg.split("=", 1)[1])
    return includes


def merge_layers(base: dict, override: dict) -> dict:
    """Merge override into a copy of base; override wins on conflicts."""
    result = base.copy()
    for key, value in override.items():
        if isinstance(result.get(key), dict) and isinstance(value, dict):
            result[key] = merge_layers(result[key], value)
        else:
            result[key] = value
    return result


class YamlWithIncludesSettingsSource(YamlConfigSettingsSource):
    """YAML settings source layering several files.

    Files are deep-merged in this order, later ones winning:
    package defaults, user config dir, ./sandpatch.yaml, then any
    --include files from the command line. Each file may carry an
    include: key naming further files, resolved relative to it.
    """

    def __init__(self, settings_cls: type[BaseSettings], yaml_file=None):
        base = yaml_file or settings_cls.model_config.get("yaml_file")
        includes = _cli_includes(sys.argv)
        if base and includes:
            base = ([base] if isinstance(base, str) else list(base))
            yaml_file = base + includes
        else:
            yaml_file = includes or base
        super().__init__(settings_cls, yaml_file)

    def _read_files(self, files, deep_merge: bool = False):
        """Layer the candidate files into one settings dict.

        Layers are always deep-merged, whatever deep_merge says: a
        user file setting one workspace key must not drop the
        defaults for the others.
        """
        candidates = [
            DEFAULTS_FILE,
            Path(user_config_dir("sandpatch", appauthor=False))
            / "sandpatch.yaml",
        ]
        if files:
            if isinstance(files, (str, os.PathLike)):
                files = [files]
            candidates.extend(Path(f).expanduser() for f in files)

        result = {}
        seen = set()
        for path in candidates:
            resolved = path.resolve()
            if resolved in seen:
                continue
            seen.add(resolved)
            if not path.is_file():
                logger.debug(
                    "Configuration file not found (skipping)",
                    file=str(path),
                )
                continue
            with logger.span("Configuration loading", file=str(path)):
                result = merge_layers(result, self.load_file(path, set()))
        return result

    def load_file(self, filepath: Path, visited: set[Path]) -> dict:
        """Load one YAML file with its include: directives resolved.

        Raises:
            ValueError: On a circular include
        """
        filepath = filepath.resolve()
        if filepath in visited:
            raise ValueError(f"Circular include: {filepath}")
        visited = visited | {filepath}

        with open(filepath, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        includes = data.pop("include", None) or []
        if isinstance(includes, str):
            includes = [includes]

        merged = {}
        for inc in includes:
            inc_path = Path(inc).expanduser()
            if not inc_path.is_absolute():
                inc_path = filepath.parent / inc_path
            merged = merge_layers(merged, self.load_file(inc_path, visited))

        # The including file overrides what it includes
        return merge_layers(merged, data)
