# screens/s04_finish.py
from __future__ import annotations
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import Screen
from textual.widgets import Button, Footer, Static

from logger import log
from state import VcnCreationMode, WizardSession
from widgets.wizard_header import WizardHeader


class FinishScreen(Screen):
    """Summary of the submitted cluster."""

    def compose(self) -> ComposeResult:
        yield WizardHeader(self.app.state.mode)
        with Vertical(id="content"):
            yield Static("Cluster Submitted", classes="title")
            yield Static(self._build_summary(self.app.state), id="summary")
        with Horizontal(id="nav_buttons"):
            yield Button("✓ Exit", id="btn_exit", variant="success")
        yield Footer()

    def _build_summary(self, state: WizardSession) -> str:
        config = state.config
        lines = ["[bold]Configuration Summary[/bold]\n"]
        lines.append(f"  Cluster Name         : [cyan]{config.cluster_name}[/cyan]")
        lines.append(f"  Region               : {config.region}")
        lines.append(f"  Compartment          : {config.compartment_id}")
        if state.vcn_creation_mode is VcnCreationMode.QUICK:
            lines.append("  Network              : quick-create VCN")
        else:
            lines.append(f"  VCN                  : {config.vcn_id}")
        lines.append(f"  OCNE / Kubernetes    : {config.ocne_version} / {config.kubernetes_version}")
        lines.append(
            f"  Control Plane        : {config.num_control_plane_nodes} x {config.control_plane_shape}"
        )
        lines.append(f"  Workers              : {config.num_worker_nodes} x {config.node_shape}")
        lines.append(f"  Image                : {config.image_id or config.image_display_name}")
        lines.append(f"  Node Pools           : {len(config.node_pools)}")
        lines.append(f"  Manifests            : {len(config.apply_yamls)}")
        return "\n".join(lines)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "btn_exit":
            log.info("Wizard complete, exiting")
            self.app.exit()
