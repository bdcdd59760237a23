"""Download the server archive, trying each download tool in turn."""

import logging
import shutil
import subprocess

from .errors import ConfigurationError, TransferError


class FetchStrategy:
    """One way of downloading ``url`` to ``dest`` with an external tool."""

    name = None
    executable = None

    def available(self, which=shutil.which):
        return which(self.executable) is not None

    def command(self, url, dest):
        raise NotImplementedError


class Aria2cStrategy(FetchStrategy):
    """Multi-connection download; the archive host uses a self-signed cert."""

    name = 'aria2c'
    executable = 'aria2c'

    def __init__(self, split=16):
        self.split = split

    def command(self, url, dest):
        return [
            'aria2c',
            '--check-certificate=false',
            f'--max-connection-per-server={self.split}',
            f'--split={self.split}',
            '--min-split-size=1M',
            '--file-allocation=none',
            '--summary-interval=1',
            '--allow-overwrite=true',
            f'--out={dest.name}',
            f'--dir={dest.parent}',
            url,
        ]


class WgetStrategy(FetchStrategy):
    name = 'wget'
    executable = 'wget'

    def command(self, url, dest):
        return ['wget', '--no-check-certificate', '--show-progress', '-q', '-O', str(dest), url]


def default_strategies(settings):
    return [Aria2cStrategy(split=settings.aria2c_split), WgetStrategy()]


def fetch_archive(url, dest, strategies, run=subprocess.run, which=shutil.which):
    """Download ``url`` to ``dest`` unless ``dest`` already exists.

    Returns True when a download happened and False when an existing archive
    was reused. An existing file is trusted as-is.
    """
    if dest.exists():
        logging.info(f"Installer file already exists at {dest}, skipping download.")
        return False

    if not url:
        raise ConfigurationError(
            "NOMAD_DOWNLOAD_URL environment variable is not set! "
            "Please set this variable in your egg configuration."
        )

    logging.info(f"Downloading Nomad installer from {url}")
    dest.parent.mkdir(parents=True, exist_ok=True)

    for strategy in strategies:
        if not strategy.available(which):
            logging.info(f"{strategy.name} not found on PATH, skipping.")
            continue

        logging.info(f"Using {strategy.name} for download...")
        result = run(strategy.command(url, dest), check=False)
        if result.returncode == 0:
            logging.info(f"Download completed with {strategy.name}.")
            return True

        logging.warning(f"{strategy.name} failed with exit code {result.returncode}.")

    # A partial file would be trusted as complete on the next start
    dest.unlink(missing_ok=True)
    raise TransferError(f"Failed to download installer from {url}")
