#!/usr/bin/env python3
"""
Stale Bot Configuration

Resolution and validation of the per-repository stale configuration, plus
loading of the runner file that lists the repositories to visit.

A per-repository configuration looks like this (YAML):

    daysUntilStale: 60
    exemptLabels:
      - pinned
      - security
    markComment: >
      {{ mention }} is this still relevant?
    pulls:
      daysUntilStale: 30

Values under ``pulls`` or ``issues`` override the top-level value for that
item type only. Validation never raises: problems are collected into a
ConfigValidationError that is handed back next to a best-effort value.
"""

import copy
import logging
import os
from typing import List, Optional, Tuple

import yaml


logger = logging.getLogger(__name__)


# Upper bound on mutating calls a single run may issue, whatever the config says
MAX_ACTIONS_PER_RUN = 30

ITEM_TYPES = ('pulls', 'issues')

DEFAULT_MARK_COMMENT = (
    'Is this still relevant? If so, what is blocking it? '
    'Is there anything you can do to help move it forward?'
    '\n\nThis issue has been automatically marked as stale '
    'because it has not had recent activity. '
    'It will be closed if no further activity occurs.'
)

DEFAULTS = {
    'daysUntilStale': 60,
    'onlyLabels': [],
    'exemptLabels': ['pinned', 'security'],
    'exemptProjects': False,
    'exemptMilestones': False,
    'exemptAssignees': False,
    'perform': True,
    'markComment': DEFAULT_MARK_COMMENT,
    'limitPerRun': MAX_ACTIONS_PER_RUN,
}

# Recognised keys that have no default; absent means "not configured"
OPTIONAL_DEFAULTS = {
    'staleLabel': 'stale',
    'daysUntilClose': False,
    'unmarkComment': False,
    'closeComment': False,
}

# Keys that may appear inside a `pulls` or `issues` override
TYPE_KEYS = (
    'daysUntilStale', 'daysUntilClose', 'onlyLabels', 'exemptLabels',
    'exemptProjects', 'exemptMilestones', 'exemptAssignees', 'staleLabel',
    'markComment', 'unmarkComment', 'closeComment', 'limitPerRun', 'perform',
)

DEFAULT_MAX_WORKERS = 4
MAX_WORKERS_LIMIT = 32


class ConfigurationError(Exception):
    """Raised when the runner configuration is invalid or missing required fields."""


class ConfigValidationError(Exception):
    """
    Collected validation problems of a stale configuration.

    Never raised by resolve_config; it is returned so the caller can report it
    and carry on with the normalized configuration.
    """

    def __init__(self, details: List[str]):
        super().__init__('; '.join(details))
        self.details = list(details)


# =============================================================================
# Field validators
#
# Each validator returns (normalized_value, error_message_or_None).
# =============================================================================


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _validate_days(key: str, value):
    if _is_number(value) and value >= 0:
        return value, None
    return None, f'"{key}" must be a number'


def _validate_days_or_false(key: str, value):
    if value is False:
        return False, None
    if _is_number(value) and value >= 0:
        return value, None
    return None, f'"{key}" must be a number or false'


def _validate_labels(key: str, value):
    if value is None:
        return [], None
    if isinstance(value, str):
        return [value], None
    if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
        return list(value), None
    return None, f'"{key}" must be a string or an array of strings'


def _validate_boolean(key: str, value):
    if isinstance(value, bool):
        return value, None
    return None, f'"{key}" must be a boolean'


def _validate_string(key: str, value):
    if isinstance(value, str):
        return value, None
    return None, f'"{key}" must be a string'


def _validate_string_or_false(key: str, value):
    if value is False or isinstance(value, str):
        return value, None
    return None, f'"{key}" must be a string or false'


def _validate_limit(key: str, value):
    if isinstance(value, int) and not isinstance(value, bool) and 1 <= value <= MAX_ACTIONS_PER_RUN:
        return value, None
    # Whole-valued floats (e.g. 10.0 from YAML) are still integers
    if isinstance(value, float) and value.is_integer() and 1 <= value <= MAX_ACTIONS_PER_RUN:
        return int(value), None
    return None, f'"{key}" must be an integer between 1 and {MAX_ACTIONS_PER_RUN}'


def _validate_only(key: str, value):
    if value is None or value in ITEM_TYPES:
        return value, None
    return None, f'"{key}" must be one of [{", ".join(ITEM_TYPES)}, null]'


VALIDATORS = {
    'daysUntilStale': _validate_days,
    'daysUntilClose': _validate_days_or_false,
    'onlyLabels': _validate_labels,
    'exemptLabels': _validate_labels,
    'exemptProjects': _validate_boolean,
    'exemptMilestones': _validate_boolean,
    'exemptAssignees': _validate_boolean,
    'staleLabel': _validate_string,
    'markComment': _validate_string_or_false,
    'unmarkComment': _validate_string_or_false,
    'closeComment': _validate_string_or_false,
    'limitPerRun': _validate_limit,
    'perform': _validate_boolean,
    'only': _validate_only,
    '_extends': _validate_string,
}


def _fallback_for(key: str):
    if key in DEFAULTS:
        return copy.deepcopy(DEFAULTS[key])
    return None


def _validate_type_override(item_type: str, raw, errors: List[str]) -> dict:
    """
    Validate the nested override for one item type.

    Defaults are never written into the override; invalid or unknown keys are
    dropped so the top-level value applies for that field.
    """
    if not isinstance(raw, dict):
        errors.append(f'"{item_type}" must be an object')
        return {}

    override = {}
    for key, value in raw.items():
        if key not in TYPE_KEYS:
            errors.append(f'"{key}" is not allowed in "{item_type}"')
            continue
        normalized, error = VALIDATORS[key](f'{item_type}.{key}', value)
        if error:
            errors.append(error)
            continue
        override[key] = normalized
    return override


def validate_stale_config(raw: Optional[dict]) -> Tuple[dict, Optional[ConfigValidationError]]:
    """
    Validate a raw stale configuration and apply defaults.

    Args:
        raw: Parsed configuration mapping (may be None or empty)

    Returns:
        Tuple of (normalized values, ConfigValidationError or None)
    """
    errors = []
    values = copy.deepcopy(DEFAULTS)

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        return values, ConfigValidationError(['configuration must be an object'])

    for key, value in raw.items():
        if key in ITEM_TYPES:
            if value is not None:
                values[key] = _validate_type_override(key, value, errors)
            continue

        validator = VALIDATORS.get(key)
        if validator is None:
            logger.debug(f"Ignoring unknown configuration key '{key}'")
            continue

        normalized, error = validator(key, value)
        if error:
            errors.append(error)
            fallback = _fallback_for(key)
            if fallback is not None:
                values[key] = fallback
            continue
        values[key] = normalized

    return values, (ConfigValidationError(errors) if errors else None)


class StaleConfig:
    """
    Two-level stale configuration for a single repository.

    Top-level values act as defaults; a `pulls` or `issues` override wins for
    its own item type. `value_for` is the only lookup the engine uses.
    """

    def __init__(self, values: dict, owner: str, repo: str):
        self.values = values
        self.owner = owner
        self.repo = repo

    @property
    def full_name(self) -> str:
        return f'{self.owner}/{self.repo}'

    @property
    def only(self) -> Optional[str]:
        return self.values.get('only')

    def value_for(self, item_type: str, key: str):
        """Return the type-specific value for key if set, otherwise the top-level one."""
        override = self.values.get(item_type)
        if isinstance(override, dict) and key in override:
            return override[key]
        if key in self.values:
            return self.values[key]
        return OPTIONAL_DEFAULTS.get(key)

    def __getitem__(self, key):
        return self.values[key]

    def __setitem__(self, key, value):
        self.values[key] = value

    def __contains__(self, key):
        return key in self.values

    def __repr__(self):
        return f'StaleConfig({self.full_name}, {self.values!r})'


def resolve_config(
    raw: Optional[dict],
    owner: str,
    repo: str
) -> Tuple[StaleConfig, Optional[ConfigValidationError]]:
    """
    Validate a raw configuration and attach the repository identity.

    Args:
        raw: Parsed per-repository configuration
        owner: Repository owner (user or organization login)
        repo: Repository name

    Returns:
        Tuple of (StaleConfig, ConfigValidationError or None)
    """
    values, error = validate_stale_config(raw)
    return StaleConfig(values, owner, repo), error


# =============================================================================
# Runner configuration
# =============================================================================


def get_validated_max_workers(config: dict) -> int:
    """
    Number of items a run handles concurrently.

    `max_workers` in the runner file must be a whole number; anything else
    means DEFAULT_MAX_WORKERS. The result always lies in 1..MAX_WORKERS_LIMIT.
    """
    if 'max_workers' not in config:
        return DEFAULT_MAX_WORKERS

    requested = config['max_workers']
    try:
        workers = int(requested)
    except (TypeError, ValueError):
        logger.warning(
            f"max_workers must be a whole number, got {requested!r}; "
            f"handling {DEFAULT_MAX_WORKERS} items at a time"
        )
        return DEFAULT_MAX_WORKERS

    bounded = max(1, min(workers, MAX_WORKERS_LIMIT))
    if bounded != workers:
        logger.warning(f"max_workers {workers} adjusted to {bounded} (limit 1..{MAX_WORKERS_LIMIT})")
    return bounded


def split_repository_name(full_name: str) -> Tuple[str, str]:
    """Split "owner/repo" into its parts, raising ConfigurationError when malformed."""
    if not isinstance(full_name, str):
        raise ConfigurationError(f"Repository name must be a string, got {full_name!r}")
    parts = full_name.strip().split('/')
    if len(parts) != 2 or not all(parts):
        raise ConfigurationError(
            f"Invalid repository '{full_name}'. Expected 'owner/repo' format."
        )
    return parts[0], parts[1]


def get_repository_entries(config: dict) -> List[dict]:
    """
    Normalize the `repositories` list of the runner file.

    Entries are either "owner/repo" strings or mappings with `name` and an
    optional `config`. The shared top-level `config` block is the base for
    every repository; per-repository keys replace shared ones.

    Returns:
        List of dicts with `owner`, `repo` and `config` (None when unconfigured)
    """
    shared = config.get('config')
    entries = []

    for entry in config.get('repositories') or []:
        if isinstance(entry, dict):
            name = entry.get('name')
            own = entry.get('config')
        else:
            name = entry
            own = None

        owner, repo = split_repository_name(name)

        if own is not None and not isinstance(own, dict):
            raise ConfigurationError(f"'config' of repository '{name}' must be a mapping")

        if shared is None and own is None:
            repo_config = None
        else:
            repo_config = dict(shared or {})
            repo_config.update(own or {})

        entries.append({'owner': owner, 'repo': repo, 'config': repo_config})

    return entries


def validate_config(config: dict) -> None:
    """
    Validate the runner configuration.

    Args:
        config: Configuration dictionary to validate

    Raises:
        ConfigurationError: If required keys are missing or malformed
    """
    if not config:
        raise ConfigurationError("Configuration is empty")

    if not isinstance(config, dict):
        raise ConfigurationError("Configuration must be a mapping")

    github_section = config.get('github') or {}
    if not isinstance(github_section, dict):
        raise ConfigurationError("'github' section must be a mapping")

    if not github_section.get('token') and not os.environ.get('GITHUB_TOKEN'):
        raise ConfigurationError(
            "Missing GitHub token. Set 'github.token' or the GITHUB_TOKEN environment variable."
        )

    repositories = config.get('repositories')
    if not repositories:
        raise ConfigurationError(
            "No repositories configured. Add 'owner/repo' entries to 'repositories' list."
        )
    if not isinstance(repositories, list):
        raise ConfigurationError("'repositories' must be a list")

    shared = config.get('config')
    if shared is not None and not isinstance(shared, dict):
        raise ConfigurationError("'config' section must be a mapping")

    # Raises on malformed names
    get_repository_entries(config)


def load_config(config_path: str) -> dict:
    """
    Read the runner file and check it with validate_config.

    Missing files and YAML syntax errors propagate unchanged so the CLI can
    report them separately from ConfigurationError.
    """
    with open(config_path, encoding='utf-8') as stream:
        runner = yaml.safe_load(stream)
    logger.debug(f"Loaded runner configuration from {config_path}")
    validate_config(runner)
    return runner
