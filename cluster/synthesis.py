# cluster/synthesis.py
"""Conversion between the flat persisted config and the editable lists.

The backend record keeps node pools as one JSON string per pool and manifests
as one raw body per attachment. The wizard edits them as ``NodePool`` and
``ManifestAttachment`` entries; ``deserialize`` runs once when a session
starts and ``serialize`` right before submission.
"""
from __future__ import annotations
import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

from cluster.editor import random_name
from logger import log
from state import (
    ClusterConfig, EntryList, ManifestAttachment, NodePool,
    VcnCreationMode, WizardSession,
)

# (attribute, wire key) in encoding order
NODE_POOL_FIELDS = (
    ("name", "name"),
    ("replicas", "replicas"),
    ("memory", "memory"),
    ("ocpus", "ocpus"),
    ("volume_size", "volumeSize"),
    ("shape", "shape"),
)
NUMERIC_FIELDS = ("ocpus", "memory", "replicas", "volume_size")

_LEADING_INT = re.compile(r"\s*[+-]?\d+")


class DecodePolicy(str, Enum):
    STRICT = "strict"   # first corrupt entry aborts the whole decode
    SKIP = "skip"       # corrupt entries are dropped and reported


class ConfigDecodeError(Exception):
    def __init__(self, collection: str, index: int, reason: str) -> None:
        super().__init__(f"{collection} entry {index}: {reason}")
        self.collection = collection
        self.index = index
        self.reason = reason


@dataclass
class DecodeProblem:
    collection: str   # "node pool" | "manifest"
    index: int        # 1-based position in the persisted list
    reason: str


@dataclass
class DecodeResult:
    node_pools: EntryList[NodePool] = field(default_factory=EntryList)
    manifests: EntryList[ManifestAttachment] = field(default_factory=EntryList)
    problems: List[DecodeProblem] = field(default_factory=list)


def coerce_int(value: Any) -> Any:
    """parseInt-style coercion: leading integer of a truthy value, else None.

    Falsy values ("" / 0 / None) pass through unchanged.
    """
    if not value or isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    m = _LEADING_INT.match(str(value))
    return int(m.group()) if m else None


def decode_node_pool(blob: Any, index: int = 1) -> NodePool:
    if not isinstance(blob, str):
        raise ConfigDecodeError("node pool", index, f"expected a string, got {type(blob).__name__}")
    try:
        data = json.loads(blob)
    except json.JSONDecodeError as e:
        raise ConfigDecodeError("node pool", index, str(e)) from e
    if not isinstance(data, dict):
        raise ConfigDecodeError("node pool", index, "expected a JSON object")

    data = dict(data)
    values: Dict[str, Any] = {}
    for attr, key in NODE_POOL_FIELDS:
        values[attr] = data.pop(key, None)
    if not values["name"]:
        values["name"] = f"pool-{random_name()}"
    return NodePool(extra=data, **values)


def encode_node_pool(pool: NodePool) -> str:
    data: Dict[str, Any] = {}
    for attr, key in NODE_POOL_FIELDS:
        value = getattr(pool, attr)
        if value is not None:
            data[key] = value
    for key, value in pool.extra.items():
        data.setdefault(key, value)
    return json.dumps(data, separators=(",", ":"))


def deserialize(
    config: ClusterConfig, policy: DecodePolicy = DecodePolicy.SKIP
) -> DecodeResult:
    result = DecodeResult()

    def _reject(problem: DecodeProblem) -> None:
        if policy is DecodePolicy.STRICT:
            raise ConfigDecodeError(problem.collection, problem.index, problem.reason)
        log.warning(
            "Dropping unreadable %s entry %d: %s",
            problem.collection, problem.index, problem.reason,
        )
        result.problems.append(problem)

    for index, blob in enumerate(config.node_pools or [], 1):
        try:
            result.node_pools.add(decode_node_pool(blob, index))
        except ConfigDecodeError as e:
            _reject(DecodeProblem(e.collection, e.index, e.reason))

    for index, body in enumerate(config.apply_yamls or [], 1):
        if not isinstance(body, str):
            _reject(DecodeProblem("manifest", index, f"expected a string, got {type(body).__name__}"))
            continue
        # display names are not persisted, so every load gets fresh ones
        result.manifests.add(ManifestAttachment(name=random_name(), body=body))

    log.info(
        "Loaded %d node pools and %d manifests from config",
        len(result.node_pools), len(result.manifests),
    )
    return result


def serialize(
    config: ClusterConfig,
    node_pools: Iterable[NodePool],
    manifests: Iterable[ManifestAttachment],
) -> ClusterConfig:
    """Write the editable lists back into ``config`` (in place)."""
    blobs: List[str] = []
    for pool in node_pools:
        for attr in NUMERIC_FIELDS:
            setattr(pool, attr, coerce_int(getattr(pool, attr)))
        blobs.append(encode_node_pool(pool))
    config.node_pools = blobs
    config.apply_yamls = [m.body for m in manifests]
    return config


def synthesize_derived_fields(
    session: WizardSession, verrazzano_versions: Optional[Mapping[str, str]] = None
) -> ClusterConfig:
    config = session.config
    config.display_name = config.cluster_name
    config.quick_create_vcn = session.vcn_creation_mode is VcnCreationMode.QUICK
    # an explicit tag is an override and is kept
    if not config.verrazzano_tag:
        tag = (verrazzano_versions or {}).get(config.verrazzano_version)
        if tag:
            config.verrazzano_tag = tag
    return config
