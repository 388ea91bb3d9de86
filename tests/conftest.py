"""Shared fixtures for xctools tests."""

import json
from pathlib import Path

import pytest

from xctools import ENV_DERIVED_DATA, CommandError


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep a developer's DerivedData override out of the tests."""
    monkeypatch.delenv(ENV_DERIVED_DATA, raising=False)


class FakeRunner:
    """Command runner returning canned stdout keyed by program name.

    Programs without an entry fail like a missing binary would.
    """

    def __init__(self, outputs: dict[str, str] | None = None):
        self.outputs = outputs or {}
        self.calls: list[list[str]] = []

    def __call__(self, command: list[str]) -> str:
        self.calls.append(command)
        program = command[0]
        if program not in self.outputs:
            raise CommandError(" ".join(command), -1, "not found")
        return self.outputs[program]


@pytest.fixture
def fake_runner():
    return FakeRunner


def write_workspace_state(path: Path, dependencies: list[tuple[str, str]]) -> None:
    """Write a workspace-state.json listing (name, location) pairs."""
    state = {
        "object": {
            "dependencies": [
                {"packageRef": {"name": name, "location": location}}
                for name, location in dependencies
            ]
        },
        "version": 6,
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(state), encoding="utf-8")


@pytest.fixture
def derived_data(tmp_path: Path) -> Path:
    """A DerivedData base holding one built app with two packages.

    "Widget" ships a LICENSE file, "Gadget" has none.
    """
    base = tmp_path / "DerivedData"
    artifacts = base / "MyApp-abcdefghijklmnop"
    source_packages = artifacts / "SourcePackages"
    write_workspace_state(
        source_packages / "workspace-state.json",
        [
            ("Widget", "https://github.com/acme/widget"),
            ("Gadget", "https://github.com/gizmo/gadget.git"),
        ],
    )
    widget = source_packages / "checkouts" / "Widget"
    widget.mkdir(parents=True)
    (widget / "LICENSE").write_text("MIT License\n", encoding="utf-8")
    (widget / "README.md").write_text("# Widget\n", encoding="utf-8")
    gadget = source_packages / "checkouts" / "Gadget"
    gadget.mkdir(parents=True)
    (gadget / "Package.swift").write_text("// swift\n", encoding="utf-8")
    return base


@pytest.fixture
def workspace_state():
    return write_workspace_state
