# validators.py
from __future__ import annotations
import ipaddress
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import yaml

from messages import Catalog, DEFAULT_CATALOG
from state import Step, VcnCreationMode, WizardSession

MANIFEST_SIZE_LIMIT = 500_000  # bytes, all manifest bodies together

# identifier kind -> accepted OCID prefixes
OCID_PREFIXES: Dict[str, Tuple[str, ...]] = {
    "compartment": ("ocid1.compartment", "ocid1.tenancy"),
    "tenancy": ("ocid1.tenancy",),
    "user": ("ocid1.user",),
    "vcn": ("ocid1.vcn",),
    "subnet": ("ocid1.subnet",),
    "image": ("ocid1.image",),
}

Validator = Callable[[WizardSession, Catalog], List[str]]

_MISSING = object()


def is_well_formed_ocid(value: Any, kind: str) -> bool:
    if not isinstance(value, str):
        return False
    return value.startswith(OCID_PREFIXES[kind])


def validate_cidr(cidr: str) -> Tuple[bool, str]:
    try:
        ipaddress.IPv4Network(cidr, strict=False)
    except ValueError as e:
        return False, str(e)
    return True, ""


def as_int(value: Any) -> Optional[int]:
    """Integer value of an int or an integer-looking string, else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _read(obj: Any, *path: str) -> Any:
    # unreadable counts as absent
    for name in path:
        obj = getattr(obj, name, _MISSING)
        if obj is _MISSING:
            return None
    return obj


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() != ""
    return True


def validate_credentials(session: WizardSession, t: Catalog = DEFAULT_CATALOG) -> List[str]:
    errors: List[str] = []
    if not _present(_read(session, "credential_token")):
        errors.append(t("credential.required"))
    if not is_well_formed_ocid(_read(session, "config", "compartment_id"), "compartment"):
        errors.append(t("compartment.invalid"))
    return errors


NETWORK_IDENTIFIERS = (
    ("vcn_id", "vcn", "vcn.invalid"),
    ("control_plane_subnet", "subnet", "controlPlaneSubnet.invalid"),
    ("load_balancer_subnet", "subnet", "loadBalancerSubnet.invalid"),
    ("worker_node_subnet", "subnet", "workerNodeSubnet.invalid"),
)


def validate_networking(session: WizardSession, t: Catalog = DEFAULT_CATALOG) -> List[str]:
    errors: List[str] = []
    if _read(session, "vcn_creation_mode") is not VcnCreationMode.EXISTING:
        return errors
    for attr, kind, key in NETWORK_IDENTIFIERS:
        if not is_well_formed_ocid(_read(session, "config", attr), kind):
            errors.append(t(key))
    return errors


def validate_cluster_spec(session: WizardSession, t: Catalog = DEFAULT_CATALOG) -> List[str]:
    errors: List[str] = []
    config = _read(session, "config")
    if not _present(_read(config, "node_shape")):
        errors.append(t("nodeShape.required"))
    if not _present(_read(config, "control_plane_shape")):
        errors.append(t("controlPlaneShape.required"))
    if not _present(_read(config, "image_display_name")):
        errors.append(t("image.required"))

    seen = set()
    for index, pool in enumerate(_read(session, "node_pools") or [], 1):
        name = _read(pool, "name")
        if not _present(name):
            errors.append(t("nodePool.nameRequired", index=index))
        elif name in seen:
            errors.append(t("nodePool.nameDuplicate", name=name))
        else:
            seen.add(name)
        replicas = as_int(_read(pool, "replicas"))
        if replicas is None or replicas < 0:
            errors.append(t("nodePool.replicasInvalid", name=name or index))
    return errors


# (config attribute, message key) checked for presence in this order
REQUIRED_FIELDS = (
    ("verrazzano_version", "verrazzanoVersion.unknown"),
    ("cluster_name", "clusterName.required"),
    ("cluster_cidr", "clusterCidr.required"),
    ("ocne_version", "ocneVersion.required"),
    ("etcd_image_tag", "etcdImageTag.required"),
    ("coredns_image_tag", "corednsImageTag.required"),
    ("tigera_image_tag", "tigeraImageTag.required"),
    ("kubernetes_version", "kubernetesVersion.required"),
    ("pod_cidr", "podCidr.required"),
)

CIDR_FIELDS = {
    "cluster_cidr": "clusterCidr.invalid",
    "pod_cidr": "podCidr.invalid",
}


def manifest_size(session: WizardSession) -> int:
    total = 0
    for manifest in _read(session, "manifests") or []:
        body = _read(manifest, "body")
        if isinstance(body, str):
            total += len(body.encode("utf-8"))
    return total


def validate_submission(session: WizardSession, t: Catalog = DEFAULT_CATALOG) -> List[str]:
    """Cross-field checks run once, right before the config is submitted."""
    errors: List[str] = []
    config = _read(session, "config")

    for attr, key in REQUIRED_FIELDS:
        value = _read(config, attr)
        if not _present(value):
            errors.append(t(key))
        elif attr in CIDR_FIELDS:
            ok, _ = validate_cidr(str(value).strip())
            if not ok:
                errors.append(t(CIDR_FIELDS[attr], value=value))

    if _read(config, "skip_ocne_install") and not _present(_read(config, "image_id")):
        errors.append(t("imageOverride.required"))

    replicas = as_int(_read(config, "num_control_plane_nodes"))
    if replicas is None or replicas < 1:
        errors.append(t("controlPlaneReplicas.required"))
    elif replicas % 2 == 0:
        # etcd needs an odd member count for quorum
        errors.append(t("controlPlaneReplicas.even"))

    if manifest_size(session) > MANIFEST_SIZE_LIMIT:
        errors.append(t("manifests.tooLarge"))

    for manifest in _read(session, "manifests") or []:
        body = _read(manifest, "body")
        if not isinstance(body, str):
            continue
        try:
            list(yaml.safe_load_all(body))
        except yaml.YAMLError as e:
            reason = str(e).splitlines()[0] if str(e) else type(e).__name__
            errors.append(t("manifest.invalidYaml", name=_read(manifest, "name"), reason=reason))
    return errors


STEP_VALIDATORS: Dict[Step, Sequence[Validator]] = {
    Step.CREDENTIALS: (validate_credentials,),
    Step.NETWORKING: (validate_networking,),
    Step.CLUSTER_SPEC: (validate_cluster_spec,),
}


def validate_step(step: int, session: WizardSession, t: Catalog = DEFAULT_CATALOG) -> List[str]:
    errors: List[str] = []
    for validator in STEP_VALIDATORS.get(Step(step), ()):
        errors.extend(validator(session, t))
    return errors


def validate_all(session: WizardSession, t: Catalog = DEFAULT_CATALOG) -> List[str]:
    """Every step's rules plus the submission pass, in step order."""
    errors: List[str] = []
    for step in Step:
        errors.extend(validate_step(step, session, t))
    errors.extend(validate_submission(session, t))
    return errors


def validate_upgrade(session: WizardSession, t: Catalog = DEFAULT_CATALOG) -> List[str]:
    if not _present(_read(session, "config", "kubernetes_version")):
        return [t("kubernetesVersion.required")]
    return []
