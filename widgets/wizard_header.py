# widgets/wizard_header.py
from __future__ import annotations
from typing import Optional

import pyfiglet
from textual.app import ComposeResult
from textual.containers import Vertical
from textual.widgets import Static

from state import Step, WizardMode

_BANNER = pyfiglet.figlet_format("OCNE Cluster", font="small").rstrip("\n")

_STEP_NAMES = {
    Step.CREDENTIALS: "Account Access",
    Step.NETWORKING: "Networking",
    Step.CLUSTER_SPEC: "Cluster Specification",
}


def progress_line(mode: WizardMode, step: Optional[Step]) -> str:
    """Subtitle under the banner, e.g. ``Create cluster · Step 2 of 3 · Networking``."""
    action = "Edit cluster" if mode is WizardMode.EDIT else "Create cluster"
    if step is None:
        return action
    return f"{action} · Step {int(step)} of {int(Step.last())} · {_STEP_NAMES[step]}"


class WizardHeader(Vertical):
    """Oracle-red banner with the session's mode and step position."""

    DEFAULT_CSS = """
    WizardHeader {
        height: auto;
        width: 100%;
        padding: 0 2;
    }
    WizardHeader #banner {
        color: #c74634;
        text-style: bold;
    }
    WizardHeader #progress {
        color: $accent;
    }
    """

    def __init__(self, mode: WizardMode = WizardMode.NEW, step: Optional[Step] = None) -> None:
        super().__init__()
        self.mode = mode
        self.step = step

    def compose(self) -> ComposeResult:
        yield Static(_BANNER, id="banner")
        yield Static(progress_line(self.mode, self.step), id="progress")
