# screens/base.py
from __future__ import annotations
from typing import Dict, Tuple

from textual.screen import Screen
from textual.widgets import Select, Static

from cloud.resolver import RemoteResult


def escape_markup(text: str) -> str:
    # keep OCIDs and YAML snippets from being read as markup
    return text.replace("[", "\\[")


class StepScreen(Screen):
    """Shared plumbing for the wizard step screens."""

    BINDINGS = [
        ("escape", "go_back", "Back"),
    ]

    POLL_INTERVAL = 0.5

    def __init__(self) -> None:
        super().__init__()
        self._shown_options: Dict[str, Tuple] = {}

    @property
    def wizard(self):
        return self.app.wizard

    @property
    def session(self):
        return self.app.wizard.session

    def on_mount(self) -> None:
        self.refresh_options()
        self.set_interval(self.POLL_INTERVAL, self.refresh_options)

    def refresh_options(self) -> None:
        """Re-read remote option lists; called until pending lookups settle."""

    def sync_select(self, select_id: str, result: RemoteResult, current: str = "") -> None:
        if result.is_pending:
            return
        options = tuple((o.label, o.value) for o in result.options)
        if self._shown_options.get(select_id) == options:
            return
        self._shown_options[select_id] = options
        sel = self.query_one(f"#{select_id}", Select)
        sel.set_options(options)
        if current and current in {value for _, value in options}:
            sel.value = current

    def show_errors(self) -> None:
        errors = self.session.errors
        text = "\n".join(f"[red]Error: {escape_markup(e)}[/red]" for e in errors)
        self.query_one("#err_msg", Static).update(text)

    def action_go_back(self) -> None:
        if self.wizard.retreat():
            self.app.pop_screen()
