# cloud/resolver.py
"""Cascading OCI metadata lookups with a per-session cache.

Each resource kind is keyed by the session values it depends on
(credential, region, compartment, ...). ``resolve`` never blocks: it returns
the cached result, or dispatches a fetch and returns PENDING. A fetch that
settles after one of its key values changed is discarded.
"""
from __future__ import annotations
import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple

from cloud.compartments import (
    CompartmentNode, build_compartment_tree, compartment_name, flatten_compartments,
)
from cloud.filters import DEFAULT_IMAGE_FILTER, ImageFilter
from cloud.provider import MetadataError, MetadataProvider
from logger import log
from state import RemoteOption, WizardSession
from validators import is_well_formed_ocid

OCNE_ENDPOINT = "/meta/ocne"


class ResourceKind(str, Enum):
    COMPARTMENTS = "compartments"
    IMAGES = "nodeImages"
    SHAPES = "nodeShapes"
    VCNS = "vcnIds"
    SUBNETS = "subnets"
    OCNE_VERSIONS = "ocneVersions"
    OCNE_METADATA = "metadata"
    VERRAZZANO_VERSIONS = "verrazzanoVersions"


class Dependency(str, Enum):
    CREDENTIAL = "credential"
    REGION = "region"
    COMPARTMENT = "compartment"
    VCN_COMPARTMENT = "vcnCompartment"
    VCN = "vcn"
    OCNE_VERSION = "ocneVersion"


# values chosen from lists fetched under the upstream value
DOWNSTREAM: Dict[Dependency, Tuple[Dependency, ...]] = {
    Dependency.CREDENTIAL: (Dependency.COMPARTMENT, Dependency.VCN_COMPARTMENT),
    Dependency.REGION: (Dependency.VCN, Dependency.OCNE_VERSION),
    Dependency.VCN_COMPARTMENT: (Dependency.VCN,),
}


class Payload(str, Enum):
    LIST = "list"           # ["a", "b"] -> label == value
    MAPPING = "mapping"     # {"label": "value"}
    KEYS = "keys"           # {"label": ...} -> label == value == key
    TREE = "tree"           # compartment tree
    OBJECT = "object"       # OCNE metadata, projected via metadata_options()


@dataclass(frozen=True)
class ResourceSpec:
    kind: ResourceKind
    key: Tuple[Dependency, ...]
    params: Tuple[Tuple[str, Dependency], ...] = ()
    payload: Payload = Payload.LIST
    endpoint: Optional[str] = None


_C, _R = Dependency.CREDENTIAL, Dependency.REGION

SPECS: Dict[ResourceKind, ResourceSpec] = {
    ResourceKind.COMPARTMENTS: ResourceSpec(
        ResourceKind.COMPARTMENTS, (_C,), payload=Payload.TREE,
    ),
    ResourceKind.IMAGES: ResourceSpec(
        ResourceKind.IMAGES, (_C, _R, Dependency.COMPARTMENT),
        (("compartment", Dependency.COMPARTMENT), ("region", _R)),
    ),
    ResourceKind.SHAPES: ResourceSpec(
        ResourceKind.SHAPES, (_C, _R, Dependency.COMPARTMENT),
        (("compartment", Dependency.COMPARTMENT), ("region", _R)),
    ),
    ResourceKind.VCNS: ResourceSpec(
        ResourceKind.VCNS, (_C, _R, Dependency.VCN_COMPARTMENT),
        (("compartment", Dependency.VCN_COMPARTMENT), ("region", _R)),
        payload=Payload.MAPPING,
    ),
    ResourceKind.SUBNETS: ResourceSpec(
        ResourceKind.SUBNETS, (_C, _R, Dependency.VCN_COMPARTMENT, Dependency.VCN),
        (("compartment", Dependency.VCN_COMPARTMENT), ("region", _R), ("vcn", Dependency.VCN)),
        payload=Payload.MAPPING,
    ),
    ResourceKind.OCNE_VERSIONS: ResourceSpec(
        ResourceKind.OCNE_VERSIONS, (_C, _R), (("region", _R),),
        endpoint=OCNE_ENDPOINT,
    ),
    ResourceKind.OCNE_METADATA: ResourceSpec(
        ResourceKind.OCNE_METADATA, (_C, _R, Dependency.OCNE_VERSION),
        (("region", _R), ("ocneVersion", Dependency.OCNE_VERSION)),
        payload=Payload.OBJECT, endpoint=OCNE_ENDPOINT,
    ),
    ResourceKind.VERRAZZANO_VERSIONS: ResourceSpec(
        ResourceKind.VERRAZZANO_VERSIONS, (_C, _R), (("region", _R),),
        payload=Payload.KEYS, endpoint=OCNE_ENDPOINT,
    ),
}

# option lists carried inside the OCNE metadata payload
METADATA_FIELDS = ("kubernetesVersions", "etcd", "coredns", "tigeraOperator")


class Status(str, Enum):
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class RemoteResult:
    status: Status
    options: Tuple[RemoteOption, ...] = ()
    raw: Any = None
    message: str = ""

    @classmethod
    def pending(cls) -> "RemoteResult":
        return cls(Status.PENDING)

    @classmethod
    def ready(cls, options=(), raw: Any = None) -> "RemoteResult":
        return cls(Status.READY, tuple(options), raw)

    @classmethod
    def failed(cls, message: str) -> "RemoteResult":
        return cls(Status.FAILED, message=message)

    @property
    def is_pending(self) -> bool:
        return self.status is Status.PENDING

    @property
    def is_ready(self) -> bool:
        return self.status is Status.READY

    @property
    def is_failed(self) -> bool:
        return self.status is Status.FAILED

    @property
    def values(self) -> List[Any]:
        return [o.value for o in self.options]


CacheKey = Tuple[ResourceKind, Tuple[str, ...]]


def dependency_value(session: WizardSession, dep: Dependency) -> str:
    if dep is Dependency.CREDENTIAL:
        return session.credential_token
    if dep is Dependency.REGION:
        return session.config.region
    if dep is Dependency.COMPARTMENT:
        return session.config.compartment_id
    if dep is Dependency.VCN_COMPARTMENT:
        return session.vcn_compartment
    if dep is Dependency.VCN:
        return session.config.vcn_id
    return session.config.ocne_version


def _satisfied(dep: Dependency, value: Any) -> bool:
    if not isinstance(value, str) or not value:
        return False
    if dep in (Dependency.COMPARTMENT, Dependency.VCN_COMPARTMENT):
        return is_well_formed_ocid(value, "compartment")
    return True


def affected_by(dep: Dependency) -> Set[Dependency]:
    """``dep`` plus every dependency whose value is scoped by it."""
    seen: Set[Dependency] = set()
    todo = [dep]
    while todo:
        d = todo.pop()
        if d not in seen:
            seen.add(d)
            todo.extend(DOWNSTREAM.get(d, ()))
    return seen


class MetadataResolver:
    def __init__(
        self,
        session: WizardSession,
        provider: MetadataProvider,
        image_filter: ImageFilter = DEFAULT_IMAGE_FILTER,
    ) -> None:
        self.session = session
        self.provider = provider
        self.image_filter = image_filter
        self._inflight: Dict[CacheKey, asyncio.Task] = {}

    @property
    def cache(self) -> Dict[CacheKey, RemoteResult]:
        return self.session.remote_cache

    # -- keys --------------------------------------------------------------

    def current_key(self, kind: ResourceKind) -> Optional[Tuple[str, ...]]:
        """Key values for ``kind`` from the session, or None if unsatisfied."""
        values = []
        for dep in SPECS[kind].key:
            value = dependency_value(self.session, dep)
            if not _satisfied(dep, value):
                return None
            values.append(value)
        return tuple(values)

    # -- lookups -----------------------------------------------------------

    def resolve(self, kind: ResourceKind, retry_failed: bool = False) -> RemoteResult:
        """Cached result for the current key, or PENDING while a fetch runs.

        A FAILED result is served from the cache so polling does not loop;
        ``retry_failed`` drops it and fetches again (user-triggered retries).
        """
        key = self.current_key(kind)
        if key is None:
            return RemoteResult.ready()
        cache_key = (kind, key)
        cached = self.cache.get(cache_key)
        if cached is not None and cached.is_failed and retry_failed:
            log.info("Retrying %s after: %s", kind.value, cached.message)
            cached = None
        if cached is not None:
            return cached

        log.info("Fetching %s for %s", kind.value, key[1:] or "(credential)")
        self.cache[cache_key] = RemoteResult.pending()
        task = asyncio.get_running_loop().create_task(self._fetch(kind, key))
        self._inflight[cache_key] = task
        return self.cache[cache_key]

    def peek(self, kind: ResourceKind) -> Optional[RemoteResult]:
        key = self.current_key(kind)
        if key is None:
            return None
        return self.cache.get((kind, key))

    async def wait(self, kind: ResourceKind, retry_failed: bool = False) -> RemoteResult:
        """Resolve ``kind`` and wait until the current key has settled."""
        result = self.resolve(kind, retry_failed)
        while result.is_pending:
            task = self._inflight.get((kind, self.current_key(kind)))
            if task is not None:
                await task
            else:
                await asyncio.sleep(0)
            result = self.resolve(kind)
        return result

    def metadata_options(self, name: str) -> RemoteResult:
        result = self.resolve(ResourceKind.OCNE_METADATA)
        if not result.is_ready:
            return result
        values = (result.raw or {}).get(name) if isinstance(result.raw, dict) else None
        return RemoteResult.ready(_list_options(values or []), values)

    # -- compartments ------------------------------------------------------

    def _compartment_root(self) -> Any:
        result = self.peek(ResourceKind.COMPARTMENTS)
        return result.raw if result is not None and result.is_ready else None

    def flat_compartments(self) -> List[RemoteOption]:
        return flatten_compartments(self._compartment_root())

    def compartment_tree(
        self, selected_id: str = "", query: str = ""
    ) -> List[CompartmentNode]:
        return build_compartment_tree(self._compartment_root(), selected_id, query)

    def compartment_name(self, compartment_id: str) -> Optional[str]:
        return compartment_name(self._compartment_root(), compartment_id)

    # -- invalidation ------------------------------------------------------

    def invalidate(self, dep: Dependency) -> int:
        affected = affected_by(dep)
        stale = [k for k in self.cache if affected & set(SPECS[k[0]].key)]
        for cache_key in stale:
            del self.cache[cache_key]
            self._inflight.pop(cache_key, None)
        if stale:
            log.debug("Invalidated %d cached lookups after %s changed", len(stale), dep.value)
        return len(stale)

    # -- fetch -------------------------------------------------------------

    async def _fetch(self, kind: ResourceKind, key: Tuple[str, ...]) -> None:
        spec = SPECS[kind]
        cache_key = (kind, key)
        task = asyncio.current_task()
        values = dict(zip(spec.key, key))
        params = {name: values[dep] for name, dep in spec.params}
        try:
            payload = await self.provider.request(
                values[Dependency.CREDENTIAL], kind.value, params, spec.endpoint
            )
            result = self._to_result(spec, payload)
        except MetadataError as e:
            log.warning("Fetching %s failed: %s", kind.value, e)
            result = RemoteResult.failed(str(e))
        except Exception as e:
            log.error("Unexpected error fetching %s: %s", kind.value, e)
            result = RemoteResult.failed(str(e) or type(e).__name__)

        if self._inflight.get(cache_key) is not task:
            log.debug("Discarding superseded %s response for %s", kind.value, key[1:])
            return
        del self._inflight[cache_key]
        if self.current_key(kind) != key:
            # key moved on without an invalidate(); drop the placeholder too
            self.cache.pop(cache_key, None)
            log.debug("Discarding stale %s response for %s", kind.value, key[1:])
            return
        self.cache[cache_key] = result

    def _to_result(self, spec: ResourceSpec, payload: Any) -> RemoteResult:
        if spec.payload is Payload.TREE:
            if not isinstance(payload, dict):
                return RemoteResult.failed("compartment tree must be an object")
            return RemoteResult.ready(flatten_compartments(payload), payload)
        if spec.payload is Payload.OBJECT:
            if not isinstance(payload, dict):
                return RemoteResult.failed(f"{spec.kind.value} must be an object")
            return RemoteResult.ready((), payload)
        if spec.payload in (Payload.MAPPING, Payload.KEYS):
            if payload is None:
                payload = {}
            if not isinstance(payload, dict):
                return RemoteResult.failed(f"{spec.kind.value} must be a mapping")
            if spec.payload is Payload.KEYS:
                return RemoteResult.ready(_list_options(payload.keys()), payload)
            return RemoteResult.ready(
                [RemoteOption(label=str(k), value=v) for k, v in payload.items()], payload
            )

        if payload is None:
            payload = []
        if not isinstance(payload, list):
            return RemoteResult.failed(f"{spec.kind.value} must be a list")
        if spec.kind is ResourceKind.IMAGES:
            payload = self.image_filter.apply(payload)
        return RemoteResult.ready(_list_options(payload), payload)


def _list_options(values) -> List[RemoteOption]:
    # selections land in string config fields
    return [RemoteOption(label=str(v), value=str(v)) for v in values]
