"""Generate ServerConfig.json and apply environment overrides to it."""

import json
import logging
import math
import os
from pathlib import Path

from .errors import ConfigurationError, DocumentError

DEFAULT_CONFIG = {
    'ServerName': 'Nomad Server',
    'Port': 25565,
    'QueryPort': 27015,
    'MaxPlayers': 32,
    'Password': '',
    'AdminPassword': '',
    'PvPEnabled': True,
    'WhitelistEnabled': False,
    'MaxBuildingsPerPlayer': 500,
    'StartingMoney': 1000,
    'MoneyMultiplier': 1.0,
    'XpMultiplier': 1.0,
    'LootRespawnMultiplier': 1.0,
    'NpcSpawnCount': 50,
    'AnimalSpawnCount': 100,
    'DayLengthMinutes': 60,
    'AutoSaveIntervalMinutes': 10,
    'RestartIntervalHours': 24,
}

TRUE_VALUES = {'true', '1', 'yes', 'on'}
FALSE_VALUES = {'false', '0', 'no', 'off'}


def save_document(path, document):
    """Replace the document at ``path`` wholesale."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + '.tmp')
    with open(tmp_path, 'w', encoding='utf-8') as f:
        json.dump(document, f, indent=2)
        f.write('\n')
    os.replace(tmp_path, path)


def load_document(path):
    try:
        with open(path, 'r', encoding='utf-8') as f:
            document = json.load(f)
    except json.JSONDecodeError as e:
        raise DocumentError(f"{path} is not valid JSON: {e}")
    except OSError as e:
        raise DocumentError(f"Could not read {path}: {e}")

    if not isinstance(document, dict):
        raise DocumentError(f"{path} must contain a JSON object, got {type(document).__name__}")
    return document


def ensure_default_document(path):
    """Write the built-in defaults if no document exists yet."""
    path = Path(path)
    if path.exists():
        logging.info(f"Using existing config {path}")
        return False
    logging.info(f"Config {path} not found, writing defaults.")
    save_document(path, DEFAULT_CONFIG)
    return True


def _check_typed(key, value, current):
    """Validate an already-typed JSON value against ``current``."""
    if current is None:
        return value
    # bool is checked first since it is a subclass of int
    if isinstance(current, bool):
        ok = isinstance(value, bool)
    elif isinstance(current, int):
        ok = isinstance(value, int) and not isinstance(value, bool)
    elif isinstance(current, float):
        ok = isinstance(value, (int, float)) and not isinstance(value, bool)
        if ok:
            value = float(value)
    else:
        ok = isinstance(value, type(current))
    if not ok:
        raise ConfigurationError(
            f"Invalid value {value!r} for {key}: expected {type(current).__name__}"
        )
    return value


def coerce_override(key, raw, current):
    """Convert an environment string to the JSON type of ``current``."""
    if not isinstance(raw, str):
        value = _check_typed(key, raw, current)
    else:
        try:
            if isinstance(current, bool):
                lowered = raw.strip().lower()
                if lowered in TRUE_VALUES:
                    value = True
                elif lowered in FALSE_VALUES:
                    value = False
                else:
                    raise ValueError(raw)
            elif isinstance(current, int):
                value = int(raw)
            elif isinstance(current, float):
                value = float(raw)
            else:
                value = raw
        except ValueError:
            raise ConfigurationError(
                f"Invalid value {raw!r} for {key}: expected {type(current).__name__}"
            )

    if isinstance(value, float) and not math.isfinite(value):
        raise ConfigurationError(f"Invalid value {raw!r} for {key}: must be a finite number")
    return value


def merge_overrides(document, overrides, template=DEFAULT_CONFIG):
    """Return a new document with ``overrides`` applied.

    Keys from ``template`` missing in ``document`` are restored, keys present
    in ``document`` are kept, and only keys named in ``overrides`` change.
    """
    merged = dict(template)
    merged.update(document)
    for key, raw in overrides.items():
        current = merged.get(key, template.get(key))
        merged[key] = coerce_override(key, raw, current)
    return merged


def synthesize_config(settings):
    """Ensure the config document exists and apply the env overrides to it."""
    path = settings.config_document
    ensure_default_document(path)

    document = load_document(path)
    merged = merge_overrides(document, settings.overrides)

    for key in sorted(settings.overrides):
        shown = '********' if 'Password' in key else merged[key]
        logging.info(f"  {key} = {shown}")

    save_document(path, merged)
    logging.info(f"{path} updated.")
    return merged
