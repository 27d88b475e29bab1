# app.py
from textual.app import App
from wizard.machine import Wizard
from logger import log


class ClusterWizard(App):
    """OCNE on OCI cluster creation wizard."""

    CSS = """
    Screen {
        background: $surface;
    }
    .title {
        text-style: bold;
        color: $accent;
        margin-bottom: 1;
    }
    .hint {
        color: $text-muted;
    }
    #content {
        margin: 1 2;
    }
    #form {
        margin: 1 2;
    }
    #nav_buttons {
        dock: bottom;
        height: 3;
        align: center middle;
        margin: 1 2;
    }
    .row_buttons {
        height: 3;
    }
    Button {
        margin: 0 1;
    }
    #err_msg {
        margin-top: 1;
        color: $error;
    }
    DataTable {
        height: 8;
    }
    TextArea {
        height: 8;
    }
    Tree {
        height: 10;
    }
    Input {
        margin-bottom: 1;
    }
    """

    def __init__(self, wizard: Wizard) -> None:
        super().__init__()
        self.wizard = wizard
        log.info("ClusterWizard started")

    @property
    def state(self):
        return self.wizard.session

    async def on_mount(self) -> None:
        from screens.s01_credentials import CredentialsScreen
        from screens.s02_networking import NetworkingScreen
        from screens.s03_cluster_spec import ClusterSpecScreen
        # an edit session may resume past step 1; stack the earlier steps for Back
        for step, screen in enumerate(
            (CredentialsScreen, NetworkingScreen, ClusterSpecScreen), 1
        ):
            if step > self.state.step:
                break
            await self.push_screen(screen())

    def cancel(self) -> None:
        self.wizard.cancel()
        self.exit()
