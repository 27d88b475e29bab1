import sys, os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from cloud.provider import CatalogMetadataProvider
from state import ManifestAttachment, NodePool, WizardSession
from wizard.machine import Wizard

CREDENTIAL = "cattle-global-data:cc-test"
COMPARTMENT = "ocid1.compartment.oc1..apps"
NETWORK_COMPARTMENT = "ocid1.compartment.oc1..network"

CATALOG = {
    "compartments": {
        "id": "ocid1.tenancy.oc1..root",
        "name": "root",
        "compartments": [
            {
                "id": COMPARTMENT,
                "name": "apps",
                "compartments": [{"id": "ocid1.compartment.oc1..apps-dev", "name": "apps-dev"}],
            },
            {"id": NETWORK_COMPARTMENT, "name": "network"},
        ],
    },
    "nodeImages": [
        "Oracle-Linux-8.8-2023.09.26-0",
        "Oracle-Linux-8.8-aarch64-2023.09.26-0",
        "Oracle-Linux-9.2-2023.09.26-0",
        "Oracle-Linux-8.7-2023.05.24-0",
    ],
    "nodeShapes": ["VM.Standard.E4.Flex", "VM.Standard3.Flex"],
    "vcnIds": [
        {"when": {"compartment": NETWORK_COMPARTMENT},
         "value": {"shared-vcn": "ocid1.vcn.oc1.iad.shared"}},
    ],
    "subnets": [
        {"when": {"vcn": "ocid1.vcn.oc1.iad.shared"},
         "value": {"cp": "ocid1.subnet.oc1.iad.cp", "workers": "ocid1.subnet.oc1.iad.w"}},
    ],
    "/meta/ocne/ocneVersions": ["1.7", "1.6"],
    "/meta/ocne/metadata": [
        {"when": {"ocneVersion": "1.7"},
         "value": {
             "kubernetesVersions": ["v1.28.3"],
             "etcd": ["3.5.10"],
             "coredns": ["v1.10.1"],
             "tigeraOperator": ["v1.29.0"],
         }},
    ],
    "/meta/ocne/verrazzanoVersions": {
        "v1.6.7": "ghcr.io/verrazzano/verrazzano-platform-operator:v1.6.7",
    },
}


class RecordingBackend:
    """Stands in for the provisioning backend; raises ``error`` if set."""

    def __init__(self, error=None):
        self.error = error
        self.calls = []

    async def submit(self, config, cluster_name):
        self.calls.append((config.to_dict(), cluster_name))
        if self.error is not None:
            raise self.error


@pytest.fixture
def state():
    return WizardSession()


@pytest.fixture
def provider():
    return CatalogMetadataProvider(CATALOG, tokens=[CREDENTIAL])


@pytest.fixture
def backend():
    return RecordingBackend()


@pytest.fixture
def wizard(provider, backend):
    return Wizard.start(provider, backend)


def fill_valid(session):
    """Make every field the submission checks look valid."""
    session.credential_token = CREDENTIAL
    c = session.config
    c.compartment_id = COMPARTMENT
    c.cluster_name = "demo"
    c.cluster_cidr = "10.96.0.0/16"
    c.pod_cidr = "10.244.0.0/16"
    c.ocne_version = "1.7"
    c.kubernetes_version = "v1.28.3"
    c.etcd_image_tag = "3.5.10"
    c.coredns_image_tag = "v1.10.1"
    c.tigera_image_tag = "v1.29.0"
    c.verrazzano_version = "v1.6.7"
    c.image_display_name = "Oracle-Linux-8.8-2023.09.26-0"
    c.num_control_plane_nodes = 3
    session.node_pools.add(NodePool(name="pool-a"))
    session.manifests.add(ManifestAttachment(name="m1", body="apiVersion: v1\nkind: Namespace\n"))
    return session


@pytest.fixture
def valid_session(state):
    return fill_valid(state)


@pytest.fixture
def ready_wizard(wizard):
    fill_valid(wizard.session)
    return wizard
