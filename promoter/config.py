import os
from pathlib import Path

import yaml

from promoter.exceptions import ConfigError

# =========================
# 🔧 Configurations
# =========================
SERVICE = "ts-csp-s3-file-sync"
REMOTE = "origin"
CONFIG_FILENAME = ".promoter.yaml"
CONFIG_ENV_VAR = "PROMOTER_CONFIG"

# Values files, relative to the repository root
FILES = {
    "qa": "envs/integration/env-2a/{service}-qa-values.yaml",
    "qa_box_dev": "envs/box-dev/us-dev-2/{service}-qa-values.yaml",
    "stage": "envs/stage/stg-1/{service}-values.yaml",
    "prod": "envs/prod/prd-1/{service}-values.yaml",
}

FILE_LABELS = {
    "qa": "QA",
    "qa_box_dev": "QA",
    "stage": "Stage",
    "prod": "Production",
}

# Managed fields. "quoted" reads the string after the last `key: "..."`,
# "job_stage" the string after `value: "..."`, "bare" the token after `name: `.
FIELD_STYLES = ("quoted", "job_stage", "bare")

FIELDS = {
    "qa_ruleset": {"line": 8, "style": "quoted", "key_path": None},
    "job_stage": {"line": 11, "style": "job_stage", "key_path": None},
    "ruleset_name": {"line": 25, "style": "bare", "key_path": None},
}

BASE_BRANCHES = {
    "qa-update": "main",
    "qa-to-stage": "master",
    "qa-promote-prod": "master",
    "stage-to-prod": "main",
}


def find_config_file(repo_path: Path, explicit=None):
    """Explicit path, then $PROMOTER_CONFIG, then .promoter.yaml in the repo."""
    if explicit:
        path = Path(explicit)
        if not path.is_file():
            raise ConfigError(f"Config file not found: {path}")
        return path
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        path = Path(env_path)
        if not path.is_file():
            raise ConfigError(f"Config file from ${CONFIG_ENV_VAR} not found: {path}")
        return path
    path = repo_path / CONFIG_FILENAME
    return path if path.is_file() else None


def load_config(repo_path: Path, explicit=None, service=None, remote=None) -> dict:
    """
    Build the effective configuration: module defaults, overridden by the
    YAML config file, overridden by command-line values.
    """
    config = {
        "service": SERVICE,
        "remote": REMOTE,
        "files": dict(FILES),
        "fields": {name: dict(spec) for name, spec in FIELDS.items()},
        "base_branches": dict(BASE_BRANCHES),
    }

    config_file = find_config_file(repo_path, explicit)
    if config_file:
        try:
            overrides = yaml.safe_load(config_file.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_file}: {e}")
        if not isinstance(overrides, dict):
            raise ConfigError(f"{config_file} must contain a mapping")
        _merge(config, overrides, config_file)

    if service:
        config["service"] = service
    if remote:
        config["remote"] = remote

    config["paths"] = {
        role: repo_path / template.format(service=config["service"])
        for role, template in config["files"].items()
    }
    return config


def _section(overrides, key, source):
    section = overrides.get(key) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"{source}: '{key}' must be a mapping")
    return section


def _merge(config, overrides, source):
    for key in ("service", "remote"):
        if key in overrides:
            config[key] = str(overrides[key])

    for role, template in _section(overrides, "files", source).items():
        if role not in config["files"]:
            raise ConfigError(f"{source}: unknown file role '{role}'")
        if not isinstance(template, str):
            raise ConfigError(f"{source}: file '{role}' must be a path string")
        config["files"][role] = template

    for name, spec in _section(overrides, "fields", source).items():
        if name not in config["fields"]:
            raise ConfigError(f"{source}: unknown field '{name}'")
        spec = spec or {}
        if not isinstance(spec, dict):
            raise ConfigError(f"{source}: field '{name}' must be a mapping of line, key_path and style")
        unknown = set(spec) - {"line", "key_path", "style"}
        if unknown:
            raise ConfigError(f"{source}: unknown settings for field '{name}': {', '.join(sorted(map(str, unknown)))}")
        config["fields"][name].update(spec)
        line = config["fields"][name]["line"]
        if isinstance(line, bool) or not isinstance(line, int) or line < 1:
            raise ConfigError(f"{source}: field '{name}' line must be a positive integer, got {line!r}")
        key_path = config["fields"][name]["key_path"]
        if key_path is not None and not isinstance(key_path, str):
            raise ConfigError(f"{source}: field '{name}' key_path must be a dotted string")
        style = config["fields"][name]["style"]
        if style not in FIELD_STYLES:
            raise ConfigError(f"{source}: field '{name}' has unknown style '{style}'")

    for name, workflow in _section(overrides, "workflows", source).items():
        if name not in config["base_branches"]:
            raise ConfigError(f"{source}: unknown workflow '{name}'")
        workflow = workflow or {}
        if not isinstance(workflow, dict):
            raise ConfigError(f"{source}: workflow '{name}' must be a mapping")
        if "base_branch" in workflow:
            config["base_branches"][name] = str(workflow["base_branch"])
