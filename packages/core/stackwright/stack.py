"""Stack orchestrator: binds one StackConfig to one Provider and deploys it in order."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from pydantic import BaseModel

from stackwright import naming
from stackwright.errors import ProviderAPIError
from stackwright.models import (
    ResourceKind,
    ResourceStatus,
    StackConfig,
    StackDeploymentResult,
    StackResources,
    StackStatus,
)
from stackwright.providers.base import (
    AppServiceHandle,
    CDNHandle,
    DatabaseHandle,
    DNSZoneHandle,
    ResourceGroupHandle,
    ResourceHandle,
    StaticWebAppHandle,
    StorageHandle,
)

if TYPE_CHECKING:
    from stackwright.providers.base import Provider

logger = logging.getLogger(__name__)

# Each later resource may need an earlier one's identity. DNS zones are not deployed
# automatically; callers create them through `stack.dns_zone`.
DEPLOY_ORDER: tuple[ResourceKind, ...] = (
    ResourceKind.RESOURCE_GROUP,
    ResourceKind.DATABASE,
    ResourceKind.STATIC_WEB_APP,
    ResourceKind.APP_SERVICE,
    ResourceKind.CDN,
    ResourceKind.STORAGE,
)


class Stack:
    """A deployable set of resource handles derived from one StackConfig.

    Handles are built eagerly, so a missing field or credential fails here rather than
    halfway through deploy(). deploy() is not idempotent: calling it again recreates
    every resource from the start of the sequence.
    """

    resource_group: ResourceGroupHandle
    database: DatabaseHandle | None
    static_web_app: StaticWebAppHandle | None
    app_service: AppServiceHandle | None
    cdn: CDNHandle | None
    dns_zone: DNSZoneHandle | None
    storage: StorageHandle | None

    def __init__(self, name: str, provider: Provider, config: StackConfig):
        self.name = name
        self.provider = provider
        self.config = config
        self._state = "ready"
        self._resource_status: dict[str, ResourceStatus] = {}
        self.initialize_resources()

    def initialize_resources(self) -> None:
        """Build one handle per declared kind; undeclared kinds stay None."""
        group = self.config.resource_group
        scope = group.name
        scoped = self.provider.scoped_config(group.location)

        for kind in ResourceKind:
            spec = self.config.spec_for(kind)
            handle = None
            if spec is not None:
                if kind is ResourceKind.CDN and not spec.origin:
                    spec = spec.model_copy(update={"origin": naming.cdn_origin(self.provider.kind, self.config)})
                handle = self.provider.build_handle(kind, spec.name, scope, spec, scoped)
            setattr(self, kind.value, handle)

    def handles(self) -> list[tuple[ResourceKind, ResourceHandle]]:
        """Declared handles, in ResourceKind order."""
        return [(kind, getattr(self, kind.value)) for kind in ResourceKind if getattr(self, kind.value) is not None]

    async def deploy(self) -> StackDeploymentResult:
        """Create every declared resource in DEPLOY_ORDER, stopping at the first failure.

        Failures are reported in the result, never raised; whatever was created before the
        failure stays in place and is listed in `resources`.
        """
        start = time.monotonic()
        created: dict[str, BaseModel] = {}
        errors: list[str] = []
        self._state = "deploying"
        self._resource_status = {}
        logger.info("Deploying stack %s to %s", self.name, self.provider.kind.value)

        for kind in DEPLOY_ORDER:
            handle: ResourceHandle | None = getattr(self, kind.value)
            if handle is None:
                continue
            self._set_status(kind, "creating")
            try:
                created[kind.value] = await handle.create()
            except ProviderAPIError as exc:
                logger.error("Creating %s %r failed: %s", kind.value, handle.name, exc)
                errors.append(str(exc))
            except Exception as exc:
                logger.exception("Creating %s %r failed", kind.value, handle.name)
                errors.append(str(exc) or type(exc).__name__)
            if errors:
                self._set_status(kind, "failed", errors[-1])
                break
            self._set_status(kind, "ready")
            logger.info("Created %s %s", kind.value, handle.name)

        duration = time.monotonic() - start
        self._state = "failed" if errors else "ready"
        logger.info("Stack %s %s in %.2fs", self.name, "failed" if errors else "deployed", duration)
        return StackDeploymentResult(
            success=not errors,
            resources=StackResources(**created),
            errors=errors,
            duration=duration,
        )

    async def destroy(self) -> None:
        """Delete the resource group / project; children go with it provider-side."""
        self._state = "destroying"
        for kind in self._resource_status:
            self._resource_status[kind] = self._resource_status[kind].model_copy(
                update={"status": "deleting", "error": None}
            )
        logger.info("Destroying stack %s", self.name)
        await self.resource_group.delete()

    def get_status(self) -> StackStatus:
        """Snapshot of the last deploy/destroy; no provider call is made."""
        return StackStatus(
            name=self.name,
            provider=self.provider.kind,
            state=self._state,
            resources=dict(self._resource_status),
        )

    def export_config(self) -> str:
        return self.config.to_json()

    def _set_status(self, kind: ResourceKind, status: str, error: str | None = None) -> None:
        self._resource_status[kind.value] = ResourceStatus(type=kind, status=status, error=error)

    def __repr__(self) -> str:
        return f"Stack(name={self.name!r}, provider={self.provider.kind.value!r})"
