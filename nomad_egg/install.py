"""Installation steps: extraction, Wine prefix, verification and directories."""

import logging
import os
import subprocess
from pathlib import Path

from .errors import ExtractionError, InstallationError


def format_size(num_bytes):
    """Human readable size, like ``du -h``."""
    size = float(num_bytes)
    for unit in ('B', 'K', 'M', 'G'):
        if size < 1024 or unit == 'G':
            break
        size /= 1024
    if unit == 'B':
        return f"{int(size)}B"
    return f"{size:.1f}{unit}"


def ensure_directory(path):
    """Create directory if it doesn't exist."""
    Path(path).mkdir(parents=True, exist_ok=True)


def ensure_provisioned(label, exists, create):
    """Run ``create`` only when ``exists()`` is false.

    Returns True if the resource was created on this call.
    """
    if exists():
        logging.info(f"{label} already exists.")
        return False
    logging.info(f"Creating {label}...")
    create()
    logging.info(f"{label} created.")
    return True


def extract_archive(archive, install_dir, run=subprocess.run):
    """Unpack the server archive into ``install_dir``, overwriting files."""
    archive = Path(archive)
    logging.info("Extracting Nomad installer...")

    if not archive.is_file():
        raise ExtractionError(f"Installer file not found at {archive}")

    logging.info(f"Installer size: {format_size(archive.stat().st_size)}")
    ensure_directory(install_dir)

    result = run(['unzip', '-q', '-o', str(archive), '-d', str(install_dir)], check=False)
    if result.returncode != 0:
        raise ExtractionError(f"Failed to extract installer (unzip exit code {result.returncode})")

    logging.info("Extraction completed.")


def wine_environment(settings):
    """Variables every Wine invocation in the container needs."""
    return {
        'WINEPREFIX': str(settings.wine_prefix),
        'WINEARCH': 'win64',
        'WINEDLLOVERRIDES': 'winemenubuilder.exe=d',
        'DISPLAY': ':0.0',
    }


def initialize_wine(settings, run=subprocess.run):
    """Create the Wine prefix on first start; an existing prefix is reused."""

    def create_prefix():
        env = dict(os.environ, **wine_environment(settings))
        # Skip the Mono and Gecko installer prompts
        env['WINEDLLOVERRIDES'] = 'mscoree,mshtml='
        result = run(['wineboot', '-u'], env=env, stderr=subprocess.DEVNULL, check=False)
        if result.returncode != 0:
            logging.warning(f"wineboot exited with code {result.returncode}")
        run(['wineserver', '-w'], env=env, check=False)

    logging.info("Initializing Wine environment...")
    return ensure_provisioned(
        f"Wine prefix {settings.wine_prefix}",
        settings.wine_prefix.is_dir,
        create_prefix,
    )


def is_installed(settings):
    return settings.server_exe.is_file()


def verify_installation(settings):
    logging.info("Verifying installation...")
    if not is_installed(settings):
        raise InstallationError(
            f"Nomad.exe not found at {settings.server_exe}. Installation verification failed!"
        )
    size = format_size(settings.server_exe.stat().st_size)
    logging.info(f"Found Nomad.exe ({size}). Installation verified.")


def cleanup_archive(archive):
    """Remove the installer once the install is verified."""
    archive = Path(archive)
    if not archive.is_file():
        return
    logging.info(f"Removing installer file ({format_size(archive.stat().st_size)})...")
    archive.unlink()
    logging.info("Cleanup completed.")


def setup_config_directory(settings):
    """Create the Wine-side save/config directory and fix its ownership."""
    config_dir = settings.wine_config_dir
    logging.info(f"Setting up configuration directory {config_dir}...")
    ensure_directory(config_dir)

    for root, dirs, files in os.walk(config_dir):
        for name in [root] + [os.path.join(root, f) for f in files + dirs]:
            try:
                os.chmod(name, 0o755)
            except OSError as e:
                logging.debug(f"Could not chmod {name}: {e}")

    chown_if_configured(settings, config_dir)
    logging.info("Configuration directory ready.")


def chown_if_configured(settings, path):
    """chown ``path`` to PUID:PGID when both are set."""
    if settings.owner_uid is None or settings.owner_gid is None:
        return
    try:
        os.chown(path, settings.owner_uid, settings.owner_gid)
    except OSError as e:
        logging.warning(f"Could not change owner of {path}: {e}")


def detect_internal_ip(run=subprocess.run):
    """Return the container's source address for outbound traffic."""
    try:
        result = run(['ip', 'route', 'get', '1'], capture_output=True, text=True, check=False)
    except OSError as e:
        logging.warning(f"Could not run ip: {e}")
        return None

    fields = result.stdout.split()
    if result.returncode == 0 and 'src' in fields:
        index = fields.index('src')
        if index + 1 < len(fields):
            return fields[index + 1]

    logging.warning("Could not determine internal IP address.")
    return None
