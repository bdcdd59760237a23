"""Environment configuration, read once at startup."""

import math
import os
from dataclasses import dataclass, field
from pathlib import Path

from .errors import ConfigurationError

DEFAULT_CONTAINER_ROOT = '/home/container'
DEFAULT_ARIA2C_SPLIT = 16
DEFAULT_GRACE_SECONDS = 5.0
DEFAULT_API_PORT = 9081

# Environment variable -> configuration document key
OVERRIDE_VARIABLES = {
    'SERVER_PORT': 'Port',
    'QUERY_PORT': 'QueryPort',
    'MAX_PLAYERS': 'MaxPlayers',
    'SERVER_NAME': 'ServerName',
    'SERVER_PASSWORD': 'Password',
    'ADMIN_PASSWORD': 'AdminPassword',
    'PVP_ENABLED': 'PvPEnabled',
    'STARTING_MONEY': 'StartingMoney',
    'MONEY_MULTIPLIER': 'MoneyMultiplier',
    'XP_MULTIPLIER': 'XpMultiplier',
    'NPC_SPAWN_COUNT': 'NpcSpawnCount',
    'AUTOSAVE_INTERVAL': 'AutoSaveIntervalMinutes',
}


def _get(environ, name):
    """Return the variable's value, treating empty strings as unset."""
    value = environ.get(name)
    if value is None or value == '':
        return None
    return value


def _get_int(environ, name, default):
    value = _get(environ, name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")


def _get_float(environ, name, default, minimum=None):
    value = _get(environ, name)
    if value is None:
        return default
    try:
        number = float(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(number) or (minimum is not None and number < minimum):
        raise ConfigurationError(f"{name} must be a finite number >= {minimum}, got {value!r}")
    return number


@dataclass(frozen=True)
class EggSettings:
    container_root: Path = Path(DEFAULT_CONTAINER_ROOT)
    download_url: str = None
    aria2c_split: int = DEFAULT_ARIA2C_SPLIT
    overrides: dict = field(default_factory=dict)
    owner_uid: int = None
    owner_gid: int = None
    grace_seconds: float = DEFAULT_GRACE_SECONDS
    discord_webhook_url: str = None
    api_enabled: bool = False
    api_port: int = DEFAULT_API_PORT
    api_key: str = None
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls, environ=None):
        """Build settings from a snapshot of the process environment."""
        environ = dict(os.environ if environ is None else environ)

        overrides = {}
        for variable, key in OVERRIDE_VARIABLES.items():
            value = _get(environ, variable)
            if value is not None:
                overrides[key] = value

        return cls(
            container_root=Path(_get(environ, 'CONTAINER_ROOT') or DEFAULT_CONTAINER_ROOT),
            download_url=_get(environ, 'NOMAD_DOWNLOAD_URL'),
            aria2c_split=_get_int(environ, 'ARIA2C_SPLIT', DEFAULT_ARIA2C_SPLIT),
            overrides=overrides,
            owner_uid=_get_int(environ, 'PUID', None),
            owner_gid=_get_int(environ, 'PGID', None),
            grace_seconds=_get_float(environ, 'STARTUP_GRACE_SECONDS', DEFAULT_GRACE_SECONDS,
                                      minimum=0),
            discord_webhook_url=_get(environ, 'DISCORD_WEBHOOK_URL'),
            api_enabled=(_get(environ, 'SERVER_API_ENABLED') or 'false').lower() == 'true',
            api_port=_get_int(environ, 'SERVER_API_PORT', DEFAULT_API_PORT),
            api_key=_get(environ, 'SERVER_API_KEY'),
            log_level=(_get(environ, 'LOG_LEVEL') or 'INFO').upper(),
        )

    @property
    def install_dir(self):
        return self.container_root / 'Nomad'

    @property
    def wine_prefix(self):
        return self.container_root / '.wine'

    @property
    def archive_path(self):
        return self.container_root / 'nomad.zip'

    @property
    def server_exe(self):
        return self.install_dir / 'Nomad.exe'

    @property
    def config_document(self):
        return self.install_dir / 'ServerConfig.json'

    @property
    def wine_config_dir(self):
        return (self.wine_prefix / 'drive_c' / 'users' / 'container'
                / 'Saved Games' / 'Nomad' / 'Config')

    @property
    def server_port(self):
        """Port for the default launch command."""
        try:
            return int(self.overrides.get('Port', 25565))
        except ValueError:
            return 25565
