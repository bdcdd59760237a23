"""Container entrypoint: install Nomad, write its config and run it under Wine."""

import getpass
import logging
import os
import shutil
import subprocess
import sys

from .config_document import synthesize_config
from .dependencies import check_dependencies
from .errors import EggError
from .fetch import default_strategies, fetch_archive
from .install import (
    chown_if_configured,
    cleanup_archive,
    detect_internal_ip,
    extract_archive,
    initialize_wine,
    is_installed,
    setup_config_directory,
    verify_installation,
    wine_environment,
)
from .notify import GREEN, RED, send_discord_notification
from .settings import EggSettings
from .supervisor import ServerSupervisor, resolve_launch_command

BANNER = "=" * 42


def configure_logging(level='INFO'):
    # Configure logging to stdout for the panel console
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format='[%(asctime)s] %(levelname)s in %(module)s: %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )


def print_banner(title):
    print(BANNER, flush=True)
    print(f"   {title}", flush=True)
    print(BANNER, flush=True)


def prepare_environment(settings, run=subprocess.run):
    """Export the Wine variables and INTERNAL_IP for everything we launch."""
    os.environ.update(wine_environment(settings))

    internal_ip = detect_internal_ip(run)
    if internal_ip:
        os.environ['INTERNAL_IP'] = internal_ip

    try:
        user = getpass.getuser()
    except (KeyError, OSError):
        user = str(os.getuid())
    logging.info(f"Container User: {user}")
    logging.info(f"Working Directory: {os.getcwd()}")
    logging.info(f"Internal IP: {internal_ip}")


def install_server(settings, run=subprocess.run, which=shutil.which):
    """Download, extract and prepare Wine when Nomad.exe is not present.

    Returns True if an installation was performed.
    """
    logging.info("Looking for Nomad installation...")
    if is_installed(settings):
        logging.info(f"Nomad server is already installed in {settings.install_dir}")
        return False

    logging.info("Nomad server not found. Starting installation...")
    fetch_archive(settings.download_url, settings.archive_path,
                  default_strategies(settings), run=run, which=which)
    extract_archive(settings.archive_path, settings.install_dir, run=run)
    initialize_wine(settings, run=run)
    verify_installation(settings)
    logging.info("Installation completed successfully!")
    cleanup_archive(settings.archive_path)

    send_discord_notification(
        settings.discord_webhook_url,
        f"Nomad server installed in {settings.install_dir}",
        title="Installation Complete",
        color=GREEN,
    )
    return True


def configure_server(settings):
    setup_config_directory(settings)
    document = synthesize_config(settings)
    chown_if_configured(settings, settings.config_document)
    return document


def run_entrypoint(settings, args, run=subprocess.run, which=shutil.which,
                   supervisor_factory=ServerSupervisor):
    """Take the container from any state to a running server.

    Returns the server's exit code.
    """
    check_dependencies(which=which)
    install_server(settings, run=run, which=which)
    configure_server(settings)

    print_banner("Starting Nomad Server")
    logging.info(f"Server executable: {settings.server_exe}")
    logging.info(f"Config file: {settings.config_document}")
    logging.debug(f"Received arguments: {args} ({len(args)})")

    command = resolve_launch_command(args, settings)
    supervisor = supervisor_factory(settings)
    exit_code = supervisor.run(command)

    send_discord_notification(
        settings.discord_webhook_url,
        f"Nomad server exited with code {exit_code}",
        title="Server Stopped",
        color=GREEN if exit_code == 0 else RED,
    )
    return exit_code


def main(argv=None):
    """Main entrypoint function."""
    args = sys.argv[1:] if argv is None else list(argv)

    print_banner("Nomad Server - Pterodactyl Edition")

    settings = None
    try:
        settings = EggSettings.from_env()
        configure_logging(settings.log_level)

        try:
            os.chdir(settings.container_root)
        except OSError as e:
            logging.error(f"Cannot enter {settings.container_root}: {e}")
            return 1

        prepare_environment(settings)
        return run_entrypoint(settings, args)
    except EggError as e:
        if not logging.getLogger().handlers:
            configure_logging()
        logging.error(f"[{e.label}] {e}")
        send_discord_notification(
            settings.discord_webhook_url if settings else None,
            f"Nomad entrypoint failed: {e}",
            title="Startup Failed",
            color=RED,
        )
        return e.exit_code


if __name__ == '__main__':
    sys.exit(main())
