"""Pterodactyl entrypoint for running the Nomad dedicated server under Wine."""

__version__ = '1.0.0'
