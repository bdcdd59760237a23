"""Shared fixtures: settings rooted in tmp_path and a recording subprocess.run."""

from __future__ import annotations

import logging
import subprocess

import pytest

from nomad_egg.settings import EggSettings


class FakeRun:
    """Stands in for subprocess.run; records argv and returns scripted codes."""

    def __init__(self, returncodes=None, effects=None, stdout=""):
        self.calls = []
        self.returncodes = returncodes or {}
        self.effects = effects or {}
        self.stdout = stdout

    def __call__(self, args, **kwargs):
        self.calls.append(list(args))
        program = args[0]
        effect = self.effects.get(program)
        if effect is not None:
            effect(args)
        return subprocess.CompletedProcess(args, self.returncodes.get(program, 0),
                                           stdout=self.stdout, stderr="")

    @property
    def programs(self):
        return [call[0] for call in self.calls]


def which_all(name):
    return f"/usr/bin/{name}"


@pytest.fixture
def settings(tmp_path):
    return EggSettings(
        container_root=tmp_path,
        download_url="https://files.example.com/Nomad.zip",
        grace_seconds=0,
    )


@pytest.fixture
def fake_run():
    return FakeRun()


@pytest.fixture
def make_run():
    return FakeRun


@pytest.fixture
def which():
    return which_all


@pytest.fixture(autouse=True)
def restore_root_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
