# wizard/machine.py
from __future__ import annotations
from typing import Dict, List, Optional, Tuple

from cloud.filters import DEFAULT_IMAGE_FILTER, ImageFilter
from cloud.provider import MetadataProvider
from cloud.resolver import Dependency, MetadataResolver, RemoteResult, ResourceKind
from cluster.synthesis import (
    DecodePolicy, deserialize, serialize, synthesize_derived_fields,
)
from logger import log
from messages import Catalog, DEFAULT_CATALOG
from state import (
    ClusterConfig, Step, VcnCreationMode, WizardMode, WizardOutcome, WizardSession,
)
from validators import validate_all, validate_step, validate_upgrade
from wizard.backend import ClusterBackend, SubmissionError

# lookups started (not awaited) when a step is entered
ENTRY_PREFETCH: Dict[Step, Tuple[ResourceKind, ...]] = {
    Step.CREDENTIALS: (ResourceKind.COMPARTMENTS,),
    Step.NETWORKING: (ResourceKind.SHAPES, ResourceKind.VCNS, ResourceKind.SUBNETS),
    Step.CLUSTER_SPEC: (ResourceKind.OCNE_VERSIONS, ResourceKind.OCNE_METADATA),
}


class Wizard:
    """Step transitions, cache invalidation and submission for one session."""

    def __init__(
        self,
        session: WizardSession,
        resolver: MetadataResolver,
        backend: ClusterBackend,
        catalog: Catalog = DEFAULT_CATALOG,
    ) -> None:
        self.session = session
        self.resolver = resolver
        self.backend = backend
        self.t = catalog

    @classmethod
    def start(
        cls,
        provider: MetadataProvider,
        backend: ClusterBackend,
        *,
        config: Optional[ClusterConfig] = None,
        mode: WizardMode = WizardMode.NEW,
        credential_token: Optional[str] = None,
        start_step: Step = Step.CREDENTIALS,
        decode_policy: DecodePolicy = DecodePolicy.SKIP,
        image_filter: ImageFilter = DEFAULT_IMAGE_FILTER,
        catalog: Catalog = DEFAULT_CATALOG,
    ) -> "Wizard":
        config = config or ClusterConfig()
        # strict policy: ConfigDecodeError propagates and no session exists
        decoded = deserialize(config, decode_policy)

        session = WizardSession(
            mode=mode,
            step=Step(start_step),
            credential_token=credential_token if credential_token is not None
            else config.cloud_credential_id,
            config=config,
            node_pools=decoded.node_pools,
            manifests=decoded.manifests,
        )
        if mode is WizardMode.EDIT and not config.quick_create_vcn:
            session.vcn_creation_mode = VcnCreationMode.EXISTING
        session.errors = [
            catalog("entry.decodeFailed", collection=p.collection, index=p.index, reason=p.reason)
            for p in decoded.problems
        ]
        log.info("Wizard session started (mode=%s, step=%d)", mode.value, session.step)
        resolver = MetadataResolver(session, provider, image_filter)
        return cls(session, resolver, backend, catalog)

    # -- key mutations -----------------------------------------------------

    def _set(self, dep: Dependency, target, attr: str, value: str) -> None:
        if getattr(target, attr) == value:
            return
        setattr(target, attr, value)
        self.resolver.invalidate(dep)

    def set_credential(self, token: str) -> None:
        self._set(Dependency.CREDENTIAL, self.session, "credential_token", token)

    def set_region(self, region: str) -> None:
        self._set(Dependency.REGION, self.session.config, "region", region)

    def set_compartment(self, compartment_id: str) -> None:
        self._set(Dependency.COMPARTMENT, self.session.config, "compartment_id", compartment_id)

    def set_vcn_compartment(self, compartment_id: str) -> None:
        self._set(Dependency.VCN_COMPARTMENT, self.session, "vcn_compartment", compartment_id)

    def set_vcn(self, vcn_id: str) -> None:
        self._set(Dependency.VCN, self.session.config, "vcn_id", vcn_id)

    def set_ocne_version(self, version: str) -> None:
        self._set(Dependency.OCNE_VERSION, self.session.config, "ocne_version", version)

    def set_vcn_creation_mode(self, mode: VcnCreationMode) -> None:
        self.session.vcn_creation_mode = VcnCreationMode(mode)

    # -- transitions -------------------------------------------------------

    def prefetch(self, step: Optional[int] = None, retry_failed: bool = False) -> None:
        for kind in ENTRY_PREFETCH.get(Step(step or self.session.step), ()):
            self.resolver.resolve(kind, retry_failed)

    async def advance(self) -> bool:
        s = self.session
        if s.is_finished:
            return False
        if s.step >= Step.last():
            return await self.finalize()

        # failed lookups of the current step are fetched again on every attempt
        self.prefetch(retry_failed=True)

        errors = validate_step(s.step, s, self.t)
        if not errors and s.step == Step.CREDENTIALS:
            errors = await self._confirm_credentials()
        if errors:
            s.errors = errors
            log.info("Step %d: %d validation errors", s.step, len(errors))
            return False

        s.step += 1
        s.errors = []
        log.info("Advanced to step %d", s.step)
        self.prefetch()
        return True

    async def _confirm_credentials(self) -> List[str]:
        s = self.session
        images = await self.resolver.wait(ResourceKind.IMAGES, retry_failed=True)
        if images.is_failed:
            return [self._remote_error(ResourceKind.IMAGES, images)]
        versions = await self.resolver.wait(ResourceKind.VERRAZZANO_VERSIONS, retry_failed=True)
        if versions.is_failed:
            return [self._remote_error(ResourceKind.VERRAZZANO_VERSIONS, versions)]

        s.config.cloud_credential_id = s.credential_token
        if images.options and (s.is_new or not s.config.image_display_name):
            s.config.image_display_name = images.options[0].value
        log.info(
            "Step 1: %d images, %d Verrazzano versions for %s",
            len(images.options), len(versions.options), s.config.region,
        )
        return []

    def _remote_error(self, kind: ResourceKind, result: RemoteResult) -> str:
        return self.t("remote.failed", resource=kind.value, message=result.message)

    def retreat(self) -> bool:
        s = self.session
        s.errors = []
        if s.is_finished or s.step <= Step.CREDENTIALS:
            return False
        s.step -= 1
        log.info("Back to step %d", s.step)
        return True

    async def finalize(self) -> bool:
        s = self.session
        if s.outcome is WizardOutcome.SUBMITTED:
            return True
        if s.outcome is WizardOutcome.CANCELLED:
            return False

        errors = validate_all(s, self.t)
        if errors:
            s.errors = errors
            log.info("Finalize blocked by %d validation errors", len(errors))
            return False

        versions = self.resolver.peek(ResourceKind.VERRAZZANO_VERSIONS)
        table = versions.raw if versions is not None and versions.is_ready else None
        synthesize_derived_fields(s, table)
        serialize(s.config, s.node_pools, s.manifests)

        try:
            await self.backend.submit(s.config, s.config.cluster_name)
        except SubmissionError as e:
            s.errors = [e.display(self.t)]
            log.warning("Submission of %s failed: %s", s.config.cluster_name, e)
            return False

        s.outcome = WizardOutcome.SUBMITTED
        s.errors = []
        log.info("Cluster %s submitted", s.config.cluster_name)
        return True

    async def upgrade(self) -> bool:
        """Direct save of an existing cluster, skipping the step gates."""
        errors = validate_upgrade(self.session, self.t)
        if errors:
            self.session.errors = errors
            return False
        return await self.finalize()

    def cancel(self) -> None:
        if self.session.outcome is WizardOutcome.ACTIVE:
            self.session.outcome = WizardOutcome.CANCELLED
            self.session.errors = []
            log.info("Wizard cancelled at step %d", self.session.step)
