# cloud/provider.py
"""Boundary to the service that answers OCI metadata lookups.

The wizard only needs ``request(token, resource, params, endpoint)``. The
catalog provider below serves answers from a YAML file, which is how the CLI
runs without a live metadata service and how the tests stub one.
"""
from __future__ import annotations
import asyncio
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Protocol, Union

import yaml

from logger import log


class MetadataError(Exception):
    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code

    def __str__(self) -> str:
        return f"{self.code}: {self.message}" if self.code else self.message


class MetadataProvider(Protocol):
    async def request(
        self,
        token: str,
        resource: str,
        params: Mapping[str, str],
        endpoint: Optional[str] = None,
    ) -> Any:
        ...


class CatalogMetadataProvider:
    """Answers lookups from a mapping of resource -> value.

    A value may be a list of rules ``{"when": {param: value}, "value": ...}``;
    the first rule whose ``when`` matches the request parameters wins.
    Resources under an endpoint are looked up as ``"<endpoint>/<resource>"``
    first, then by bare resource name.
    """

    def __init__(
        self,
        catalog: Mapping[str, Any],
        tokens: Optional[Iterable[str]] = None,
        latency: float = 0.0,
    ) -> None:
        self.catalog = dict(catalog)
        self.tokens = set(tokens) if tokens is not None else None
        self.latency = latency
        self.calls: list = []

    @classmethod
    def from_file(cls, path: Union[str, Path], **kwargs: Any) -> "CatalogMetadataProvider":
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path}: metadata catalog must be a mapping")
        tokens = data.pop("tokens", None)
        log.info("Loaded metadata catalog %s (%d resources)", path, len(data))
        kwargs.setdefault("tokens", tokens)
        return cls(data, **kwargs)

    async def request(
        self,
        token: str,
        resource: str,
        params: Mapping[str, str],
        endpoint: Optional[str] = None,
    ) -> Any:
        self.calls.append((token, resource, dict(params), endpoint))
        if self.latency:
            await asyncio.sleep(self.latency)
        if self.tokens is not None and token not in self.tokens:
            raise MetadataError("credential is not authorized", code="NotAuthenticated")

        entry = self._lookup(resource, endpoint)
        if _is_rule_list(entry):
            for rule in entry:
                when: Dict[str, Any] = rule.get("when") or {}
                if all(params.get(k) == v for k, v in when.items()):
                    return rule.get("value")
            raise MetadataError(f"no {resource} for {dict(params)}", code="NotFound")
        return entry

    def _lookup(self, resource: str, endpoint: Optional[str]) -> Any:
        if endpoint and f"{endpoint}/{resource}" in self.catalog:
            return self.catalog[f"{endpoint}/{resource}"]
        if resource in self.catalog:
            return self.catalog[resource]
        raise MetadataError(f"unknown resource {resource}", code="NotFound")


def _is_rule_list(entry: Any) -> bool:
    return (
        isinstance(entry, list)
        and bool(entry)
        and all(isinstance(r, dict) and "value" in r for r in entry)
    )
