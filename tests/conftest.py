"""Pytest configuration and fixtures."""

from __future__ import annotations

import json
import stat
import sys
from dataclasses import dataclass, field
from pathlib import Path

import pytest

# Project root
PROJECT_ROOT = Path(__file__).parent.parent

# Add src to the Python path
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

FIXTURES_DIR = PROJECT_ROOT / "tests" / "fixtures"
FAKE_DOCKER_PATH = FIXTURES_DIR / "fake_docker.py"

CONTAINER_ID = "3f4e5a6b7c8d" + "9e0f1a2b3c4d5e6f7a8b9c0d1e2f3a4b5c6d7e8f9a0b1c2d3e4f5a6b7"
IMAGE_ID = "sha256:" + "ab12cd34ef56" + "7890ab12cd34ef567890ab12cd34ef567890ab12cd34ef567890"


@dataclass
class FakeDocker:
    """Handle on the fake docker CLI of one test."""

    path: str
    state_file: Path
    state: dict = field(default_factory=dict)

    def set_state(self, **state) -> None:
        self.state = state
        self.state_file.write_text(json.dumps(state), encoding="utf-8")

    def read_state(self) -> dict:
        return json.loads(self.state_file.read_text(encoding="utf-8"))


@pytest.fixture
def fake_docker(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> FakeDocker:
    """An executable fake docker CLI with an empty catalog."""
    if sys.platform == "win32":
        pytest.skip("fake docker CLI needs a POSIX shell")

    wrapper = tmp_path / "com.docker.cli"
    wrapper.write_text(
        f'#!/bin/sh\nexec "{sys.executable}" "{FAKE_DOCKER_PATH}" "$@"\n',
        encoding="utf-8",
    )
    wrapper.chmod(wrapper.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

    state_file = tmp_path / "state.json"
    monkeypatch.setenv("FAKE_DOCKER_STATE", str(state_file))

    docker = FakeDocker(path=str(wrapper), state_file=state_file)
    docker.set_state(containers=[], images=[], volumes=[])
    return docker


@pytest.fixture
def populated_docker(fake_docker: FakeDocker) -> FakeDocker:
    """Fake docker CLI knowing one container, one image and one volume."""
    fake_docker.set_state(
        containers=[json.dumps({"ID": CONTAINER_ID, "Names": "web_server"})],
        images=[json.dumps({"ID": IMAGE_ID, "Tag": "v1", "Repository": "myapp"})],
        volumes=[json.dumps({"Name": "pgdata"})],
    )
    return fake_docker


@pytest.fixture(autouse=True)
def clean_config(monkeypatch: pytest.MonkeyPatch):
    """Start every test from the default configuration."""
    for name in ("DOCKER_COM_DOCKER_CLI", "MOBYCLI_DEEPLINK_SCHEME", "MOBYCLI_LOG_DEBUG"):
        monkeypatch.delenv(name, raising=False)

    from mobycli.config import reload_config
    reload_config()
    yield
    reload_config()
