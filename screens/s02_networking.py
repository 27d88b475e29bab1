# screens/s02_networking.py
from __future__ import annotations
import asyncio
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.widgets import Button, Footer, Input, Label, Select, Static

from cloud.resolver import ResourceKind
from logger import log
from screens.base import StepScreen
from state import VcnCreationMode
from widgets.wizard_header import WizardHeader

# input id -> config attribute for the existing-network identifiers
SUBNET_INPUTS = {
    "inp_cp_subnet": "control_plane_subnet",
    "inp_lb_subnet": "load_balancer_subnet",
    "inp_worker_subnet": "worker_node_subnet",
}


class NetworkingScreen(StepScreen):
    """Step 2: quick-create a VCN or point at existing network resources."""

    def compose(self) -> ComposeResult:
        config = self.session.config
        yield WizardHeader(self.session.mode, self.session.step)
        with VerticalScroll(id="form"):
            yield Static("Step 2: Networking", classes="title")
            yield Label("Virtual Cloud Network:")
            yield Select(
                [("Create a VCN for me", VcnCreationMode.QUICK.value),
                 ("Use an existing VCN", VcnCreationMode.EXISTING.value)],
                value=self.session.vcn_creation_mode.value,
                allow_blank=False, id="sel_vcn_mode",
            )
            with Vertical(id="existing_fields"):
                yield Label("VCN Compartment:")
                yield Input(value=self.session.vcn_compartment,
                            placeholder="ocid1.compartment.oc1..", id="inp_vcn_compartment")
                yield Label("VCN:")
                yield Select([], prompt="Choose VCN…", id="sel_vcn")
                yield Input(value=config.vcn_id, placeholder="ocid1.vcn.oc1..", id="inp_vcn")
                yield Label("Control Plane Subnet:")
                yield Input(value=config.control_plane_subnet,
                            placeholder="ocid1.subnet.oc1..", id="inp_cp_subnet")
                yield Label("Load Balancer Subnet:")
                yield Input(value=config.load_balancer_subnet,
                            placeholder="ocid1.subnet.oc1..", id="inp_lb_subnet")
                yield Label("Worker Node Subnet:")
                yield Input(value=config.worker_node_subnet,
                            placeholder="ocid1.subnet.oc1..", id="inp_worker_subnet")
                yield Static("", id="subnet_hint", classes="hint")
            yield Static("", id="err_msg")
        with Horizontal(id="nav_buttons"):
            yield Button("← Back", id="btn_back", variant="default")
            yield Button("Cancel", id="btn_cancel", variant="default")
            yield Button("Next →", id="btn_next", variant="primary")
        yield Footer()

    def on_mount(self) -> None:
        # StepScreen.on_mount also runs and starts the option polling
        self._toggle_existing()

    def _toggle_existing(self) -> None:
        existing = self.session.vcn_creation_mode is VcnCreationMode.EXISTING
        self.query_one("#existing_fields").display = existing

    def refresh_options(self) -> None:
        resolver = self.wizard.resolver
        self.sync_select("sel_vcn", resolver.resolve(ResourceKind.VCNS), self.session.config.vcn_id)
        subnets = resolver.resolve(ResourceKind.SUBNETS)
        if subnets.is_failed:
            hint = f"[yellow]Subnets unavailable: {subnets.message}[/yellow]"
        else:
            hint = "\n".join(f"{o.label}: {o.value}" for o in subnets.options)
        self.query_one("#subnet_hint", Static).update(hint)

    def on_select_changed(self, event: Select.Changed) -> None:
        if not isinstance(event.value, str):
            return
        if event.select.id == "sel_vcn_mode":
            self.wizard.set_vcn_creation_mode(VcnCreationMode(event.value))
            self._toggle_existing()
        elif event.select.id == "sel_vcn":
            self.wizard.set_vcn(event.value)
            self.query_one("#inp_vcn", Input).value = event.value

    def on_input_changed(self, event: Input.Changed) -> None:
        value = event.value.strip()
        if event.input.id == "inp_vcn_compartment":
            self.wizard.set_vcn_compartment(value)
        elif event.input.id == "inp_vcn":
            self.wizard.set_vcn(value)
        elif event.input.id in SUBNET_INPUTS:
            setattr(self.session.config, SUBNET_INPUTS[event.input.id], value)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "btn_back":
            self.action_go_back()
        elif event.button.id == "btn_cancel":
            self.app.cancel()
        elif event.button.id == "btn_next":
            event.button.disabled = True
            asyncio.create_task(self._advance())

    async def _advance(self) -> None:
        ok = await self.wizard.advance()
        self.query_one("#btn_next", Button).disabled = False
        self.show_errors()
        if ok:
            log.info("Step 2: networking mode %s", self.session.vcn_creation_mode.value)
            from screens.s03_cluster_spec import ClusterSpecScreen
            self.app.push_screen(ClusterSpecScreen())
