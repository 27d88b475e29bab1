# messages.py
"""User-facing message catalog.

Every error the engine reports is looked up here by a stable key, so a
translated catalog can be dropped in without touching the validators.
"""
from __future__ import annotations
from pathlib import Path
from typing import Dict, Mapping, Optional, Union

import yaml

from logger import log

EN: Dict[str, str] = {
    "credential.required": "A cloud credential must be selected.",
    "compartment.invalid": "Compartment OCID must start with ocid1.compartment or ocid1.tenancy.",
    "vcn.invalid": "VCN OCID must start with ocid1.vcn.",
    "controlPlaneSubnet.invalid": "Control plane subnet OCID must start with ocid1.subnet.",
    "loadBalancerSubnet.invalid": "Load balancer subnet OCID must start with ocid1.subnet.",
    "workerNodeSubnet.invalid": "Worker node subnet OCID must start with ocid1.subnet.",
    "nodeShape.required": "A worker node shape must be selected.",
    "controlPlaneShape.required": "A control plane shape must be selected.",
    "image.required": "A node image must be selected.",
    "nodePool.nameRequired": "Node pool {index} needs a name.",
    "nodePool.nameDuplicate": "Node pool name '{name}' is used more than once.",
    "nodePool.replicasInvalid": "Node pool '{name}' replicas must be a whole number of 0 or more.",
    "verrazzanoVersion.unknown": "Unknown Verrazzano Version",
    "clusterName.required": "Cluster Name is required",
    "clusterCidr.required": "Cluster CIDR is required",
    "ocneVersion.required": "OCNE Version is required",
    "etcdImageTag.required": "ETCD Image Tag is required",
    "corednsImageTag.required": "CoreDNS Image Tag is required",
    "tigeraImageTag.required": "Tigera Operator Image Tag is required",
    "kubernetesVersion.required": "Kubernetes Version is required",
    "podCidr.required": "Pod CIDR is required",
    "clusterCidr.invalid": "Cluster CIDR {value} is not a valid IPv4 network.",
    "podCidr.invalid": "Pod CIDR {value} is not a valid IPv4 network.",
    "imageOverride.required": "Node Image Override is required when skipping OCNE installation",
    "controlPlaneReplicas.required": "Control Plane replicas must be a positive number.",
    "controlPlaneReplicas.even": "Control Plane replicas cannot be an even number.",
    "manifests.tooLarge": "Combined additional YAML manifests may not exceed 500kb in size.",
    "manifest.invalidYaml": "Manifest '{name}' is not valid YAML: {reason}",
    "remote.failed": "Failed to fetch {resource} from OCI: {message}",
    "entry.decodeFailed": "Saved {collection} entry {index} could not be read and was dropped: {reason}",
    "submit.failed": "The cluster could not be saved: {message}",
    "submit.unknown": "The cluster could not be saved.",
}


class Catalog:
    """Pure key -> text lookup with str.format placeholders."""

    def __init__(self, strings: Optional[Mapping[str, str]] = None) -> None:
        self._strings: Dict[str, str] = dict(EN)
        if strings:
            self._strings.update(strings)

    def __call__(self, key: str, **params: object) -> str:
        template = self._strings.get(key)
        if template is None:
            log.warning("No message text for key %s", key)
            return key
        return template.format(**params) if params else template

    def __contains__(self, key: str) -> bool:
        return key in self._strings

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "Catalog":
        """Overlay a YAML mapping of key: text on top of the English strings."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path}: message catalog must be a mapping")
        log.info("Loaded %d message overrides from %s", len(data), path)
        return cls({str(k): str(v) for k, v in data.items()})


DEFAULT_CATALOG = Catalog()
