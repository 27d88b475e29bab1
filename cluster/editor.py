# cluster/editor.py
from __future__ import annotations
import random
import string
from typing import Optional, TypeVar

from logger import log
from state import DEFAULT_SHAPE, EntryList, ManifestAttachment, NodePool

NAME_LENGTH = 5
BASE36 = string.digits + string.ascii_lowercase

T = TypeVar("T")


def _base36(number: int) -> str:
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(BASE36[rem])
    return "".join(reversed(digits))


def random_name(length: int = NAME_LENGTH, rng: Optional[random.Random] = None) -> str:
    """Fixed-length base-36 name built from as many random samples as needed."""
    rng = rng or random
    name = ""
    while len(name) < length:
        chunk = _base36(rng.getrandbits(52))
        name += chunk[: length - len(name)]
    return name


def add_node_pool(pools: EntryList[NodePool], rng: Optional[random.Random] = None) -> NodePool:
    pool = NodePool(
        name=f"pool-{random_name(rng=rng)}",
        replicas=1,
        memory=32,
        ocpus=2,
        volume_size=100,
        shape=DEFAULT_SHAPE,
    )
    pools.add(pool)
    log.info("Added node pool %s (%d total)", pool.name, len(pools))
    return pool


def add_manifest(
    manifests: EntryList[ManifestAttachment], rng: Optional[random.Random] = None
) -> ManifestAttachment:
    manifest = ManifestAttachment(name=f"yaml-{random_name(rng=rng)}", body="")
    manifests.add(manifest)
    log.info("Added manifest %s (%d total)", manifest.name, len(manifests))
    return manifest


def remove_entry(entries: EntryList[T], entry: T) -> None:
    entries.remove(entry)
    log.info("Removed %s (%d left)", getattr(entry, "name", entry), len(entries))
