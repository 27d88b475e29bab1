# tests/test_machine.py
import pytest

from cloud.provider import CatalogMetadataProvider, MetadataError
from cloud.resolver import ResourceKind
from cluster.synthesis import ConfigDecodeError, DecodePolicy
from conftest import CATALOG, COMPARTMENT, CREDENTIAL, RecordingBackend, fill_valid
from messages import DEFAULT_CATALOG as t
from state import ClusterConfig, Step, VcnCreationMode, WizardMode, WizardOutcome
from wizard.backend import SubmissionError
from wizard.machine import Wizard

VPO_TAG = CATALOG["/meta/ocne/verrazzanoVersions"]["v1.6.7"]


def _step1(wizard, credential=CREDENTIAL, compartment=COMPARTMENT):
    wizard.set_credential(credential)
    wizard.set_compartment(compartment)


# -- starting ----------------------------------------------------------------

def test_new_session_defaults(wizard):
    s = wizard.session
    assert s.step == Step.CREDENTIALS
    assert s.mode is WizardMode.NEW
    assert s.outcome is WizardOutcome.ACTIVE
    assert s.vcn_creation_mode is VcnCreationMode.QUICK
    assert s.errors == []

def test_edit_session_restores_credential_and_network_mode(provider, backend):
    config = ClusterConfig(
        cloud_credential_id=CREDENTIAL,
        compartment_id=COMPARTMENT,
        quick_create_vcn=False,
        node_pools=['{"name":"pool-x","replicas":2}'],
        apply_yamls=["kind: Namespace"],
    )
    wizard = Wizard.start(provider, backend, config=config, mode=WizardMode.EDIT)
    s = wizard.session
    assert s.credential_token == CREDENTIAL
    assert s.vcn_creation_mode is VcnCreationMode.EXISTING
    assert [p.name for p in s.node_pools] == ["pool-x"]
    assert [m.body for m in s.manifests] == ["kind: Namespace"]

def test_skip_decode_reports_dropped_entries(provider, backend):
    config = ClusterConfig(node_pools=["{bad", '{"name":"ok"}'])
    wizard = Wizard.start(provider, backend, config=config, mode=WizardMode.EDIT)
    assert [p.name for p in wizard.session.node_pools] == ["ok"]
    assert len(wizard.session.errors) == 1
    assert "node pool entry 1" in wizard.session.errors[0]

def test_strict_decode_refuses_to_start(provider, backend):
    config = ClusterConfig(apply_yamls=[None])
    with pytest.raises(ConfigDecodeError):
        Wizard.start(provider, backend, config=config, decode_policy=DecodePolicy.STRICT)


# -- step 1 ------------------------------------------------------------------

async def test_step1_reports_both_errors_and_stays(wizard):
    wizard.set_compartment("ocid2.compartment.x")
    assert await wizard.advance() is False
    assert wizard.session.errors == [t("credential.required"), t("compartment.invalid")]
    assert wizard.session.step == Step.CREDENTIALS

async def test_step1_success_fills_credential_and_image(wizard):
    _step1(wizard)
    assert await wizard.advance() is True
    s = wizard.session
    assert s.step == Step.NETWORKING
    assert s.errors == []
    assert s.config.cloud_credential_id == CREDENTIAL
    assert s.config.image_display_name == "Oracle-Linux-8.8-2023.09.26-0"
    # entering networking starts its lookups
    assert wizard.resolver.peek(ResourceKind.SHAPES) is not None

async def test_step1_remote_failure_blocks(wizard):
    _step1(wizard, credential="not-authorized")
    assert await wizard.advance() is False
    assert wizard.session.step == Step.CREDENTIALS
    assert wizard.session.errors == [
        t("remote.failed", resource="nodeImages",
          message="NotAuthenticated: credential is not authorized"),
    ]

class OutageProvider(CatalogMetadataProvider):
    """Fails the first request for each resource in ``flaky``, then recovers."""

    def __init__(self, flaky):
        super().__init__(CATALOG, tokens=[CREDENTIAL])
        self.flaky = set(flaky)

    async def request(self, token, resource, params, endpoint=None):
        if resource in self.flaky:
            self.flaky.discard(resource)
            self.calls.append((token, resource, dict(params), endpoint))
            raise MetadataError("temporarily unavailable", code="ServiceUnavailable")
        return await super().request(token, resource, params, endpoint)

    def requests_for(self, resource):
        return [c for c in self.calls if c[1] == resource]

async def test_next_retries_failed_image_lookup(backend):
    provider = OutageProvider(["nodeImages"])
    wizard = Wizard.start(provider, backend)
    _step1(wizard)

    assert await wizard.advance() is False
    assert wizard.session.errors == [
        t("remote.failed", resource="nodeImages",
          message="ServiceUnavailable: temporarily unavailable"),
    ]

    assert await wizard.advance() is True
    assert wizard.session.step == Step.NETWORKING
    assert wizard.session.errors == []
    assert len(provider.requests_for("nodeImages")) == 2

async def test_next_retries_failed_verrazzano_lookup(backend):
    provider = OutageProvider(["verrazzanoVersions"])
    wizard = Wizard.start(provider, backend)
    _step1(wizard)
    assert await wizard.advance() is False
    assert await wizard.advance() is True
    assert len(provider.requests_for("verrazzanoVersions")) == 2

async def test_next_refetches_failed_compartment_tree(backend):
    provider = OutageProvider(["compartments"])
    wizard = Wizard.start(provider, backend)
    _step1(wizard)
    failed = await wizard.resolver.wait(ResourceKind.COMPARTMENTS)
    assert failed.is_failed
    # polling alone keeps the failure
    assert wizard.resolver.resolve(ResourceKind.COMPARTMENTS) is failed

    wizard.set_compartment("bad")
    await wizard.advance()
    result = await wizard.resolver.wait(ResourceKind.COMPARTMENTS)
    assert result.is_ready
    assert len(provider.requests_for("compartments")) == 2

async def test_edit_mode_keeps_chosen_image(provider, backend):
    config = ClusterConfig(
        cloud_credential_id=CREDENTIAL,
        compartment_id=COMPARTMENT,
        image_display_name="Oracle-Linux-8.7-2023.05.24-0",
    )
    wizard = Wizard.start(provider, backend, config=config, mode=WizardMode.EDIT)
    assert await wizard.advance() is True
    assert wizard.session.config.image_display_name == "Oracle-Linux-8.7-2023.05.24-0"

async def test_new_mode_replaces_image_with_first_offered(provider, backend):
    config = ClusterConfig(image_display_name="Oracle-Linux-8.7-2023.05.24-0")
    wizard = Wizard.start(provider, backend, config=config, credential_token=CREDENTIAL)
    wizard.set_compartment(COMPARTMENT)
    assert await wizard.advance() is True
    assert wizard.session.config.image_display_name == "Oracle-Linux-8.8-2023.09.26-0"


# -- steps 2 and 3 -------------------------------------------------------------

async def test_existing_network_missing_subnet_gives_one_error(wizard):
    _step1(wizard)
    await wizard.advance()
    wizard.set_vcn_creation_mode(VcnCreationMode.EXISTING)
    c = wizard.session.config
    wizard.set_vcn("ocid1.vcn.oc1..v")
    c.control_plane_subnet = "ocid1.subnet.oc1..cp"
    c.worker_node_subnet = "ocid1.subnet.oc1..w"
    assert await wizard.advance() is False
    assert wizard.session.errors == [t("loadBalancerSubnet.invalid")]
    assert wizard.session.step == Step.NETWORKING

async def test_walk_to_cluster_spec_prefetches_ocne_versions(wizard):
    _step1(wizard)
    assert await wizard.advance()
    assert await wizard.advance()
    assert wizard.session.step == Step.CLUSTER_SPEC
    assert wizard.resolver.peek(ResourceKind.OCNE_VERSIONS) is not None

async def test_retreat(wizard):
    wizard.session.errors = ["old"]
    assert wizard.retreat() is False
    assert wizard.session.errors == []

    _step1(wizard)
    await wizard.advance()
    assert wizard.retreat() is True
    assert wizard.session.step == Step.CREDENTIALS


# -- invalidation ----------------------------------------------------------------

async def test_region_change_drops_region_scoped_lookups(wizard):
    _step1(wizard)
    await wizard.resolver.wait(ResourceKind.IMAGES)
    await wizard.resolver.wait(ResourceKind.COMPARTMENTS)
    wizard.set_region("us-ashburn-1")
    assert wizard.resolver.peek(ResourceKind.IMAGES) is not None

    wizard.set_region("eu-frankfurt-1")
    assert wizard.resolver.peek(ResourceKind.IMAGES) is None
    assert wizard.resolver.peek(ResourceKind.COMPARTMENTS) is not None

async def test_vcn_creation_mode_does_not_invalidate(wizard):
    _step1(wizard)
    await wizard.resolver.wait(ResourceKind.SHAPES)
    wizard.set_vcn_creation_mode(VcnCreationMode.EXISTING)
    assert wizard.resolver.peek(ResourceKind.SHAPES) is not None


# -- finalize ----------------------------------------------------------------------

async def test_finalize_submits_once(ready_wizard, backend):
    await ready_wizard.resolver.wait(ResourceKind.VERRAZZANO_VERSIONS)
    assert await ready_wizard.finalize() is True
    assert await ready_wizard.finalize() is True
    assert len(backend.calls) == 1

    record, name = backend.calls[0]
    assert name == "demo"
    assert record["displayName"] == "demo"
    assert record["quickCreateVcn"] is True
    assert record["verrazzanoTag"] == VPO_TAG
    assert record["nodePools"] == [
        '{"name":"pool-a","replicas":1,"memory":32,"ocpus":2,"volumeSize":100,"shape":"VM.Standard.E4.Flex"}'
    ]
    assert record["applyYamls"] == ["apiVersion: v1\nkind: Namespace\n"]
    assert ready_wizard.session.outcome is WizardOutcome.SUBMITTED

async def test_finalize_blocked_by_validation(wizard, backend):
    assert await wizard.finalize() is False
    assert t("clusterName.required") in wizard.session.errors
    assert backend.calls == []
    assert wizard.session.outcome is WizardOutcome.ACTIVE

async def test_advance_on_last_step_submits(ready_wizard, backend):
    ready_wizard.session.step = Step.CLUSTER_SPEC
    assert await ready_wizard.advance() is True
    assert ready_wizard.session.outcome is WizardOutcome.SUBMITTED
    assert len(backend.calls) == 1

@pytest.mark.parametrize("payload, expected", [
    ({"message": "quota exceeded", "code": "LimitExceeded"},
     t("submit.failed", message="quota exceeded")),
    ("service unavailable", t("submit.failed", message="service unavailable")),
    ({"code": "InternalError"}, t("submit.unknown")),
    (None, t("submit.unknown")),
])
async def test_backend_error_is_shown_and_retry_allowed(provider, payload, expected):
    backend = RecordingBackend(error=SubmissionError(payload))
    wizard = Wizard.start(provider, backend)
    fill_valid(wizard.session)

    assert await wizard.finalize() is False
    assert wizard.session.errors == [expected]
    assert wizard.session.outcome is WizardOutcome.ACTIVE

    backend.error = None
    assert await wizard.finalize() is True
    assert len(backend.calls) == 2

async def test_upgrade_needs_kubernetes_version(provider, backend):
    wizard = Wizard.start(provider, backend)
    assert await wizard.upgrade() is False
    assert wizard.session.errors == [t("kubernetesVersion.required")]
    assert backend.calls == []

    fill_valid(wizard.session)
    assert await wizard.upgrade() is True
    assert len(backend.calls) == 1


# -- cancel ------------------------------------------------------------------------

async def test_cancel_is_terminal(ready_wizard, backend):
    ready_wizard.cancel()
    s = ready_wizard.session
    assert s.outcome is WizardOutcome.CANCELLED
    assert await ready_wizard.advance() is False
    assert await ready_wizard.finalize() is False
    assert ready_wizard.retreat() is False
    assert backend.calls == []
