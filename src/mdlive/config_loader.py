"""Load MdliveConfig from mdlive.yaml / mdlive.toml if present.

Merges file config with CLI kwargs. CLI overrides file.
"""

from __future__ import annotations

import tomllib
from dataclasses import fields
from pathlib import Path

import yaml

from mdlive._errors import ConfigError
from mdlive.config import MdliveConfig

_PATH_FIELDS = frozenset({"markdown", "template", "output", "static_dir"})
_KNOWN_FIELDS = frozenset(f.name for f in fields(MdliveConfig))


def load_config(root: Path | None = None, **overrides: object) -> MdliveConfig:
    """Load MdliveConfig, optionally merging a config file found in *root*.

    Looks for mdlive.yaml, mdlive.yml, or mdlive.toml in root (default: the
    current directory).  Overrides whose value is ``None`` are ignored so
    unset CLI flags never mask file values.  Relative paths stay relative to
    the working directory, like the CLI flags.

    Raises:
        ConfigError: If the config file is malformed or names unknown keys.

    """
    root = Path.cwd() if root is None else root
    file_config = _read_config_file(root)
    merged = {**file_config, **{k: v for k, v in overrides.items() if v is not None}}

    unknown = sorted(set(merged) - _KNOWN_FIELDS)
    if unknown:
        msg = f"Unknown config keys: {', '.join(unknown)}"
        raise ConfigError(msg)

    for name in _PATH_FIELDS & merged.keys():
        if not isinstance(merged[name], Path):
            merged[name] = Path(str(merged[name]))

    return MdliveConfig(**merged)  # type: ignore[arg-type]


def _read_config_file(root: Path) -> dict[str, object]:
    """Read config from yaml/toml if present. Returns empty dict otherwise."""
    for name in ("mdlive.yaml", "mdlive.yml"):
        path = root / name
        if path.is_file():
            return _parse_yaml(path)
    toml_path = root / "mdlive.toml"
    if toml_path.is_file():
        return _parse_toml(toml_path)
    return {}


def _parse_yaml(path: Path) -> dict[str, object]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        msg = f"Failed to read {path}: {exc}"
        raise ConfigError(msg) from exc
    return _flatten_mdlive_section(data, path)


def _parse_toml(path: Path) -> dict[str, object]:
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as exc:
        msg = f"Failed to read {path}: {exc}"
        raise ConfigError(msg) from exc
    return _flatten_mdlive_section(data, path)


def _flatten_mdlive_section(data: object, path: Path) -> dict[str, object]:
    """Extract mdlive.* keys into top-level config."""
    if not isinstance(data, dict):
        msg = f"{path} must contain a mapping"
        raise ConfigError(msg)
    result: dict[str, object] = {k: v for k, v in data.items() if k != "mdlive"}
    section = data.get("mdlive")
    if isinstance(section, dict):
        result.update(section)
    return result
