# wizard/backend.py
from __future__ import annotations
import asyncio
import json
from pathlib import Path
from typing import Any, Optional, Protocol, Union

from logger import log
from messages import Catalog, DEFAULT_CATALOG
from state import ClusterConfig

CONFIG_PATH = Path("/etc/ocne-wizard/cluster_config.json")


class SubmissionError(Exception):
    """Backend refused the cluster; ``payload`` is whatever it sent back."""

    def __init__(self, payload: Any = None) -> None:
        super().__init__(self._extract(payload) or "submission failed")
        self.payload = payload

    @staticmethod
    def _extract(payload: Any) -> Optional[str]:
        if isinstance(payload, dict):
            message = payload.get("message")
            if isinstance(message, str) and message.strip():
                return message
        elif isinstance(payload, str) and payload.strip():
            return payload
        return None

    @property
    def message(self) -> Optional[str]:
        return self._extract(self.payload)

    def display(self, t: Catalog = DEFAULT_CATALOG) -> str:
        if self.message:
            return t("submit.failed", message=self.message)
        return t("submit.unknown")


class ClusterBackend(Protocol):
    async def submit(self, config: ClusterConfig, cluster_name: str) -> None:
        """Accept the cluster or raise SubmissionError."""
        ...


class JsonFileBackend:
    """Hands the finished config to the provisioner by writing it as JSON."""

    def __init__(self, path: Union[str, Path] = CONFIG_PATH) -> None:
        self.path = Path(path)

    async def submit(self, config: ClusterConfig, cluster_name: str) -> None:
        payload = json.dumps(
            {"name": cluster_name, "ociocneEngineConfig": config.to_dict()},
            indent=2,
        )
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(
                None,
                lambda: (
                    self.path.parent.mkdir(parents=True, exist_ok=True),
                    self.path.write_text(payload),
                ),
            )
        except OSError as e:
            log.error("Failed to write cluster config: %s", e)
            raise SubmissionError({"message": str(e), "code": "WriteFailed"}) from e
        log.info("Cluster config for %s written to %s", cluster_name, self.path)


def load_config(path: Union[str, Path]) -> ClusterConfig:
    """Read a config written by JsonFileBackend (or a bare config mapping)."""
    data = json.loads(Path(path).read_text())
    if isinstance(data, dict) and isinstance(data.get("ociocneEngineConfig"), dict):
        config = ClusterConfig.from_dict(data["ociocneEngineConfig"])
        if not config.cluster_name and data.get("name"):
            config.cluster_name = data["name"]
        return config
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a JSON object")
    return ClusterConfig.from_dict(data)
