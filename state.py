# state.py
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, Generic, Iterator, List, Optional, TypeVar, Union

DEFAULT_REGION = "us-ashburn-1"
DEFAULT_SHAPE = "VM.Standard.E4.Flex"

T = TypeVar("T")


class WizardMode(str, Enum):
    NEW = "new"
    EDIT = "edit"


class WizardOutcome(str, Enum):
    ACTIVE = "active"
    SUBMITTED = "submitted"
    CANCELLED = "cancelled"


class VcnCreationMode(str, Enum):
    QUICK = "Quick"
    EXISTING = "Existing"


class Step(IntEnum):
    CREDENTIALS = 1
    NETWORKING = 2
    CLUSTER_SPEC = 3

    @classmethod
    def last(cls) -> "Step":
        return max(cls)


# (attribute, wire key) in the order the backend record lists them
CONFIG_FIELDS = (
    ("cluster_name", "clusterName"),
    ("display_name", "displayName"),
    ("region", "region"),
    ("compartment_id", "compartmentId"),
    ("cloud_credential_id", "cloudCredentialId"),
    ("vcn_id", "vcnId"),
    ("quick_create_vcn", "quickCreateVcn"),
    ("control_plane_subnet", "controlPlaneSubnet"),
    ("worker_node_subnet", "workerNodeSubnet"),
    ("load_balancer_subnet", "loadBalancerSubnet"),
    ("node_shape", "nodeShape"),
    ("control_plane_shape", "controlPlaneShape"),
    ("num_worker_nodes", "numWorkerNodes"),
    ("num_control_plane_nodes", "numControlPlaneNodes"),
    ("image_display_name", "imageDisplayName"),
    ("image_id", "imageId"),
    ("skip_ocne_install", "skipOcneInstall"),
    ("install_calico", "installCalico"),
    ("ocne_version", "ocneVersion"),
    ("kubernetes_version", "kubernetesVersion"),
    ("etcd_image_tag", "etcdImageTag"),
    ("coredns_image_tag", "corednsImageTag"),
    ("tigera_image_tag", "tigeraImageTag"),
    ("verrazzano_version", "verrazzanoVersion"),
    ("verrazzano_tag", "verrazzanoTag"),
    ("pod_cidr", "podCidr"),
    ("cluster_cidr", "clusterCidr"),
    ("node_pools", "nodePools"),
    ("apply_yamls", "applyYamls"),
)


@dataclass
class ClusterConfig:
    """Flat cluster record exchanged with the provisioning backend."""

    cluster_name: str = ""
    display_name: str = ""
    region: str = DEFAULT_REGION
    compartment_id: str = ""
    cloud_credential_id: str = ""
    vcn_id: str = ""
    quick_create_vcn: bool = True
    control_plane_subnet: str = ""
    worker_node_subnet: str = ""
    load_balancer_subnet: str = ""
    node_shape: str = DEFAULT_SHAPE
    control_plane_shape: str = DEFAULT_SHAPE
    num_worker_nodes: Union[int, str, None] = 1
    num_control_plane_nodes: Union[int, str, None] = 1
    image_display_name: str = ""
    image_id: str = ""
    skip_ocne_install: bool = False
    install_calico: bool = True
    ocne_version: str = ""
    kubernetes_version: str = ""
    etcd_image_tag: str = ""
    coredns_image_tag: str = ""
    tigera_image_tag: str = ""
    verrazzano_version: str = ""
    verrazzano_tag: str = ""
    pod_cidr: str = ""
    cluster_cidr: str = ""
    # one JSON blob per node pool / one body per manifest
    node_pools: List[str] = field(default_factory=list)
    apply_yamls: List[str] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for attr, key in CONFIG_FIELDS:
            value = getattr(self, attr)
            data[key] = list(value) if isinstance(value, list) else value
        for key, value in self.extra.items():
            data.setdefault(key, value)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClusterConfig":
        known = {key: attr for attr, key in CONFIG_FIELDS}
        config = cls()
        for key, value in data.items():
            attr = known.get(key)
            if attr is None:
                config.extra[key] = value
            elif attr in ("node_pools", "apply_yamls"):
                setattr(config, attr, list(value or []))
            else:
                setattr(config, attr, value)
        return config


@dataclass
class NodePool:
    name: str = ""
    replicas: Union[int, str, None] = 1
    ocpus: Union[int, str, None] = 2
    memory: Union[int, str, None] = 32        # GB
    volume_size: Union[int, str, None] = 100  # GB
    shape: str = DEFAULT_SHAPE
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ManifestAttachment:
    name: str = ""   # display only, never persisted
    body: str = ""

    @property
    def size(self) -> int:
        return len(self.body.encode("utf-8"))


@dataclass(frozen=True)
class RemoteOption:
    label: str
    value: Any


class EntryList(Generic[T]):
    """Ordered list of editable entries keyed by object identity.

    Insertion order is the display order; add and remove are O(1).
    """

    def __init__(self, entries: Optional[List[T]] = None) -> None:
        self._entries: Dict[int, T] = {}
        for entry in entries or []:
            self.add(entry)

    def add(self, entry: T) -> T:
        self._entries[id(entry)] = entry
        return entry

    def remove(self, entry: T) -> None:
        if self._entries.get(id(entry)) is not entry:
            raise ValueError("entry is not in this list")
        del self._entries[id(entry)]

    def __contains__(self, entry: object) -> bool:
        return self._entries.get(id(entry)) is entry

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._entries.values()))

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, index: int) -> T:
        return list(self._entries.values())[index]

    def __repr__(self) -> str:
        return f"EntryList({list(self._entries.values())!r})"


@dataclass
class WizardSession:
    mode: WizardMode = WizardMode.NEW
    step: int = Step.CREDENTIALS
    outcome: WizardOutcome = WizardOutcome.ACTIVE
    credential_token: str = ""
    config: ClusterConfig = field(default_factory=ClusterConfig)
    node_pools: EntryList[NodePool] = field(default_factory=EntryList)
    manifests: EntryList[ManifestAttachment] = field(default_factory=EntryList)
    vcn_creation_mode: VcnCreationMode = VcnCreationMode.QUICK
    vcn_compartment: str = ""   # browsing scope for VCN/subnet lookups, not persisted
    # (kind, key values) -> cloud.resolver.RemoteResult; written by the resolver only
    remote_cache: Dict[Any, Any] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)

    @property
    def is_new(self) -> bool:
        return self.mode is WizardMode.NEW

    @property
    def is_finished(self) -> bool:
        return self.outcome is not WizardOutcome.ACTIVE
