# screens/s01_credentials.py
from __future__ import annotations
import asyncio
from typing import List, Optional

from textual.app import ComposeResult
from textual.containers import Horizontal, VerticalScroll
from textual.widgets import Button, Footer, Input, Label, Select, Static, Tree
from textual.widgets.tree import TreeNode

from cloud.compartments import CompartmentNode
from cloud.regions import OCI_REGIONS
from cloud.resolver import RemoteResult, ResourceKind
from screens.base import StepScreen, escape_markup
from widgets.wizard_header import WizardHeader


class CredentialsScreen(StepScreen):
    """Step 1: cloud credential, region and target compartment."""

    def __init__(self) -> None:
        super().__init__()
        self._compartment_query = ""
        self._tree_shown: Optional[List[CompartmentNode]] = None

    def compose(self) -> ComposeResult:
        config = self.session.config
        yield WizardHeader(self.session.mode, self.session.step)
        with VerticalScroll(id="form"):
            yield Static("Step 1: Account Access", classes="title")
            yield Label("Cloud Credential:")
            yield Input(value=self.session.credential_token,
                        placeholder="cloud credential id", id="inp_credential")
            yield Label("Region:")
            regions = OCI_REGIONS if config.region in OCI_REGIONS else [config.region, *OCI_REGIONS]
            yield Select([(r, r) for r in regions], value=config.region,
                         allow_blank=False, id="sel_region")
            yield Label("Compartment:")
            yield Select([], prompt="Choose compartment…", id="sel_compartment")
            yield Input(placeholder="filter compartments by name", id="inp_compartment_filter")
            yield Tree("Compartments", id="tree_compartment")
            yield Input(value=config.compartment_id,
                        placeholder="ocid1.compartment.oc1..", id="inp_compartment")
            yield Static("", id="compartment_name", classes="hint")
            yield Static("", id="err_msg")
        with Horizontal(id="nav_buttons"):
            yield Button("Cancel", id="btn_cancel", variant="default")
            yield Button("Next →", id="btn_next", variant="primary")
        yield Footer()

    def refresh_options(self) -> None:
        resolver = self.wizard.resolver
        result = resolver.resolve(ResourceKind.COMPARTMENTS)
        flat = RemoteResult.ready(resolver.flat_compartments()) if result.is_ready else result
        self.sync_select("sel_compartment", flat, self.session.config.compartment_id)
        self._show_tree()
        if result.is_failed:
            hint = f"[yellow]Compartments unavailable: {escape_markup(result.message)}[/yellow]"
        else:
            hint = escape_markup(resolver.compartment_name(self.session.config.compartment_id) or "")
        self.query_one("#compartment_name", Static).update(hint)

    # -- compartment browser -------------------------------------------------

    def _show_tree(self) -> None:
        nodes = self.wizard.resolver.compartment_tree(
            self.session.config.compartment_id, self._compartment_query
        )
        if nodes == self._tree_shown:
            return
        self._tree_shown = nodes
        tree = self.query_one("#tree_compartment", Tree)
        tree.clear()
        tree.root.expand()
        for node in nodes:
            self._add_tree_node(tree.root, node)

    def _add_tree_node(self, parent: TreeNode, node: CompartmentNode) -> None:
        if not node.is_visible:
            return
        label = escape_markup(node.name or node.id)
        if node.is_selected:
            label = f"[b]{label}[/b]"
        if not node.children:
            parent.add_leaf(label, data=node.id)
            return
        branch = parent.add(label, data=node.id, expand=node.is_expanded)
        for child in node.children:
            self._add_tree_node(branch, child)

    def _choose_compartment(self, compartment_id: str) -> None:
        self.wizard.set_compartment(compartment_id)
        self.query_one("#inp_compartment", Input).value = compartment_id
        select = self.query_one("#sel_compartment", Select)
        if compartment_id in {value for _, value in self._shown_options.get("sel_compartment", ())}:
            select.value = compartment_id
        self.refresh_options()

    def on_tree_node_selected(self, event: Tree.NodeSelected) -> None:
        if isinstance(event.node.data, str) and event.node.data:
            self._choose_compartment(event.node.data)

    # -- inputs ------------------------------------------------------------------

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id == "inp_credential":
            self.wizard.set_credential(event.value.strip())
        elif event.input.id == "inp_compartment":
            self.wizard.set_compartment(event.value.strip())
        elif event.input.id == "inp_compartment_filter":
            self._compartment_query = event.value
            self._show_tree()

    def on_select_changed(self, event: Select.Changed) -> None:
        if not isinstance(event.value, str):
            return
        if event.select.id == "sel_region":
            self.wizard.set_region(event.value)
        elif event.select.id == "sel_compartment" and event.value != self.session.config.compartment_id:
            self._choose_compartment(event.value)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "btn_cancel":
            self.app.cancel()
        elif event.button.id == "btn_next":
            event.button.disabled = True
            asyncio.create_task(self._advance())

    async def _advance(self) -> None:
        ok = await self.wizard.advance()
        self.query_one("#btn_next", Button).disabled = False
        self.show_errors()
        if ok:
            from screens.s02_networking import NetworkingScreen
            self.app.push_screen(NetworkingScreen())
