#!/usr/bin/env python3

import os
import json
import tomllib
from pathlib import Path

import logging
import sys

import toml
import yaml

from .exit_codes import ConfigError

# Root logging goes to stderr; stdout is reserved for tables and JSONL
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s: %(message)s",
    handlers=[logging.StreamHandler(sys.stderr)]
)
logger = logging.getLogger("taskaudit")

CONFIG_NAMES = ('config.json', 'config.toml', 'config.yaml', 'config.yml')
ENV_PREFIX = "TASKAUDIT_"
TASK_STATES_FILE = "taskauditconfig.yml"


def _config_dir() -> Path:
    # HOME may change between calls (tests, sudo -E)
    return Path.home() / '.taskaudit'


def get_config_path() -> Path:
    """
    Where settings are read from and written to.

    TASKAUDIT_CONFIG wins when it names an existing file. Otherwise the
    first non-empty ~/.taskaudit/config.{json,toml,yaml,yml}, falling back
    to ~/.taskaudit/config.json for a first save.
    """
    explicit = os.environ.get('TASKAUDIT_CONFIG')
    if explicit and Path(explicit).exists():
        return Path(explicit)

    config_dir = _config_dir()
    for name in CONFIG_NAMES:
        candidate = config_dir / name
        if candidate.is_file() and candidate.stat().st_size > 0:
            return candidate
    return config_dir / CONFIG_NAMES[0]


def _read_settings(path: Path) -> dict:
    suffix = path.suffix.lower()
    if suffix == '.toml':
        with open(path, 'rb') as f:
            return tomllib.load(f)
    with open(path, 'r', encoding='utf-8') as f:
        if suffix in ('.yaml', '.yml'):
            return yaml.safe_load(f) or {}
        return json.load(f)


def _write_settings(path: Path, config: dict) -> None:
    suffix = path.suffix.lower()
    with open(path, 'w', encoding='utf-8') as f:
        if suffix == '.toml':
            toml.dump(config, f)
        elif suffix in ('.yaml', '.yml'):
            yaml.safe_dump(config, f, default_flow_style=False)
        else:
            json.dump(config, f, indent=2)


def load_config() -> dict:
    """Defaults, overlaid with the settings file, overlaid with TASKAUDIT_* variables."""
    config = get_default_config()
    path = get_config_path()
    if path.exists():
        try:
            config = merge_configs(config, _read_settings(path))
        except (OSError, ValueError, yaml.YAMLError) as e:
            # A broken settings file should not stop an audit
            logger.error(f"Ignoring unreadable config {path}: {e}")
    return apply_env_overrides(config)


def save_config(config: dict) -> Path:
    """Write config in the format implied by the settings path. Returns that path."""
    path = get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    _write_settings(path, config)
    logger.info(f"Configuration saved to {path}")
    return path


def get_default_config() -> dict:
    return {
        "general": {
            "working_directory": "",  # empty: current directory
            "max_concurrent_operations": 0,  # 0: logical core count
            "walk_workers": 2,
            "report_path": "report.md",
        },
        "database": {
            "path": "",  # empty: <working_directory>/taskaudit.db
        },
        "logging": {
            "level": "INFO",
            "format": "%(levelname)s: %(message)s"
        },
    }


def get_working_dir(config) -> Path:
    """Directory that holds temp_repos/ and, by default, the database."""
    configured = config.get("general", {}).get("working_directory") or ""
    if configured:
        return Path(configured).expanduser()
    return Path.cwd()


def configure_logging(config, verbose: bool = False) -> None:
    """Apply logging settings from config; verbose forces DEBUG."""
    settings = config.get("logging", {})
    level = "DEBUG" if verbose else str(settings.get("level", "INFO")).upper()
    root = logging.getLogger()
    root.setLevel(getattr(logging, level, logging.INFO))
    formatter = logging.Formatter(settings.get("format", "%(levelname)s: %(message)s"))
    for handler in root.handlers:
        handler.setFormatter(formatter)


def merge_configs(base_config, override_config):
    """
    Overlay override_config on base_config, section by section.

    Nested mappings merge recursively; anything else in the override
    replaces the base value. Neither argument is modified.
    """
    merged = dict(base_config)
    for key, value in override_config.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = merge_configs(current, value)
        else:
            merged[key] = value
    return merged


def _coerce(name: str, raw: str, like):
    """Convert an environment string to the type of the value it replaces."""
    if isinstance(like, bool):
        return raw.strip().lower() in ('1', 'true', 'yes', 'on')
    if isinstance(like, int):
        try:
            return int(raw)
        except ValueError:
            logger.warning(f"Ignoring {name}={raw!r}: not an integer")
            return like
    return raw


def apply_env_overrides(config):
    """
    Override settings from TASKAUDIT_<SECTION>_<KEY> variables.

    TASKAUDIT_GENERAL_MAX_CONCURRENT_OPERATIONS=8 sets
    general.max_concurrent_operations. Only keys that already exist are
    touched, so TASKAUDIT_CONFIG and TASKAUDIT_DB pass through unharmed.
    """
    for name, raw in os.environ.items():
        if not name.startswith(ENV_PREFIX):
            continue
        dotted = name[len(ENV_PREFIX):].lower()
        for section, settings in config.items():
            if not isinstance(settings, dict) or not dotted.startswith(section + '_'):
                continue
            key = dotted[len(section) + 1:]
            if key in settings and not isinstance(settings[key], dict):
                settings[key] = _coerce(name, raw, settings[key])
                logger.debug(f"{name} overrides {section}.{key}")
                break
    return config


def load_task_states(path=None):
    """
    Load approved task states from a YAML file.

    Format:
        task_states:
          gitversion:
            - {setup_version: "3", execute_version: "3", spec_version: "6.0.3"}
          other_tasks:
            copyfiles: ["1", "2"]

    A missing file yields no states.

    Returns:
        dict: task name -> list of ValidState

    Raises:
        ConfigError: if the file cannot be parsed
    """
    from .domain.task import VERSIONING_TOOL, GenericState, TaskFamily, VersioningState

    path = Path(path) if path else Path.cwd() / TASK_STATES_FILE
    if not path.exists():
        return {}

    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to parse config file {path}: {e}")

    if not isinstance(data, dict):
        raise ConfigError(f"Failed to parse config file {path}: expected a mapping")
    section = data.get("task_states") or {}
    if not isinstance(section, dict):
        raise ConfigError(f"Failed to parse config file {path}: task_states must be a mapping")

    def entries(name, values):
        if not isinstance(values, list):
            raise ConfigError(
                f"Failed to parse config file {path}: states for {name} must be a list"
            )
        return values

    states = {}
    try:
        gitversion = [
            VersioningState(
                str(entry["setup_version"]),
                str(entry["execute_version"]),
                str(entry["spec_version"]),
            )
            for entry in entries(VERSIONING_TOOL, section.get("gitversion") or [])
        ]
        if gitversion:
            states[VERSIONING_TOOL] = gitversion

        for task, values in (section.get("other_tasks") or {}).items():
            task = str(task)
            if TaskFamily.of(task) is TaskFamily.VERSIONING:
                raise ConfigError(
                    f"Failed to parse config file {path}: {task} states belong under gitversion, not other_tasks"
                )
            states[task.lower()] = [GenericState(str(v)) for v in entries(task, values or [])]
    except (KeyError, TypeError, AttributeError) as e:
        raise ConfigError(f"Failed to parse config file {path}: invalid task state ({e})")

    return states
