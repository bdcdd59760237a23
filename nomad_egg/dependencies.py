"""Check that the external tools the entrypoint shells out to are installed."""

import logging
import shutil

from .errors import ConfigurationError

REQUIRED_EXECUTABLES = ('wget', 'unzip', 'wine64', 'wineboot', 'wineserver', 'xvfb-run')


def find_missing(names, which=shutil.which):
    """Return every name in ``names`` that is not on PATH, in order."""
    return [name for name in names if which(name) is None]


def check_dependencies(names=REQUIRED_EXECUTABLES, which=shutil.which):
    """Raise ConfigurationError naming all missing executables."""
    logging.info("Checking required executables...")
    missing = find_missing(names, which)
    if missing:
        raise ConfigurationError(
            f"Missing required executables: {', '.join(missing)}. "
            "Rebuild the image with these tools installed."
        )
    logging.info(f"All {len(names)} required executables found.")
