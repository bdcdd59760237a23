"""Launch the server under a virtual display and wait for it to exit."""

import logging
import shlex
import signal
import subprocess
import sys
import time

import psutil

from .errors import ConfigurationError

READY_MARKER = 'Nomad server started'

DISPLAY_WRAPPER = [
    'xvfb-run',
    '--auto-servernum',
    '--server-args=-screen 0 640x480x24:32',
]

# Startup lines that mean "no command given": the image's own entrypoint path
PLACEHOLDER_COMMANDS = {'/entrypoint.sh'}


def default_command(settings):
    return ['wine64', 'Nomad/Nomad.exe', '-port', str(settings.server_port),
            '-batchmode', '-nographics']


def resolve_launch_command(args, settings):
    """Pick the startup command passed by the panel, or the built-in default."""
    args = list(args or [])

    if len(args) == 1 and any(c.isspace() for c in args[0].strip()):
        try:
            args = shlex.split(args[0])
        except ValueError as e:
            raise ConfigurationError(f"Cannot parse startup command {args[0]!r}: {e}")

    if not args or not args[0].strip() or args[0] in PLACEHOLDER_COMMANDS:
        logging.info("No startup command from Pterodactyl. Using default.")
        return default_command(settings)

    return args


def exit_status(returncode):
    """Map Popen's negative signal codes to the shell's 128+N convention."""
    if returncode < 0:
        return 128 - returncode
    return returncode


class ServerSupervisor:
    """Owns the single server child process for this container run."""

    LAUNCHING = 'launching'
    RUNNING = 'running'
    EXITED = 'exited'

    def __init__(self, settings, wrapper=DISPLAY_WRAPPER, popen=subprocess.Popen,
                 sleep=time.sleep, stdout=None):
        self.settings = settings
        self.wrapper = list(wrapper)
        self.popen = popen
        self.sleep = sleep
        self.stdout = stdout
        self.process = None
        self.state = self.LAUNCHING
        self.exit_code = None
        self.received_signal = None

    def launch(self, command):
        full_command = self.wrapper + list(command)
        logging.info(f"Final startup command: {' '.join(full_command)}")
        self.process = self.popen(full_command, start_new_session=True)
        self.state = self.RUNNING
        logging.info(f"Server process started (PID {self.process.pid}).")
        return self.process.pid

    def announce_ready(self):
        """Print the readiness line the panel watches for, after the grace period."""
        self.sleep(self.settings.grace_seconds)
        if self.received_signal is not None:
            logging.info("Server is shutting down, not reporting ready.")
            return
        print(READY_MARKER, file=self.stdout or sys.stdout, flush=True)

    def wait(self):
        returncode = self.process.wait()
        self.exit_code = exit_status(returncode)
        self.state = self.EXITED
        logging.info(f"Server process exited with code {self.exit_code}.")
        return self.exit_code

    def forward_signal(self, sig, _frame=None):
        """Deliver ``sig`` to the server and everything it spawned."""
        self.received_signal = sig
        if self.process is None:
            logging.info(f"Received signal {signal.Signals(sig).name} before launch, forwarding once started.")
            return
        if self.process.poll() is not None:
            return
        logging.info(f"Received signal {signal.Signals(sig).name}, forwarding to server.")
        try:
            parent = psutil.Process(self.process.pid)
            targets = parent.children(recursive=True) + [parent]
        except psutil.NoSuchProcess:
            return
        for proc in targets:
            try:
                proc.send_signal(sig)
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue

    def install_signal_handlers(self):
        for sig in (signal.SIGTERM, signal.SIGINT):
            signal.signal(sig, self.forward_signal)

    def run(self, command):
        self.install_signal_handlers()
        self.launch(command)
        if self.received_signal is not None:
            self.forward_signal(self.received_signal)
        self.announce_ready()
        return self.wait()
