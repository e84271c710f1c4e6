"""Provider and resource-handle contracts.

A Provider binds credentials to a family of resource handles. A handle is the live
interface to one resource of one kind: it describes each call as an Operation, hands it
to the injected Executor and maps the reply onto a result model. Handles keep no state
between calls; anything they need to know is recomputed from their inputs or looked up.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import BaseModel

from stackwright.errors import ConfigurationError, UnsupportedOperationError
from stackwright.executor import Executor, Operation, default_executor
from stackwright.models import (
    AppServiceResult,
    AppServiceSpec,
    CDNResult,
    CDNSpec,
    DatabaseResult,
    DatabaseSpec,
    DNSRecord,
    DNSZoneResult,
    DNSZoneSpec,
    DomainResult,
    ProviderConfig,
    ProviderKind,
    ResourceGroupResult,
    ResourceGroupSpec,
    ResourceKind,
    StackConfig,
    StaticWebAppResult,
    StaticWebAppSpec,
    StorageFile,
    StorageResult,
    StorageSpec,
)

if TYPE_CHECKING:
    from stackwright.stack import Stack

logger = logging.getLogger(__name__)

_STACK_ONLY = "Use create_stack() for full stack deployment"


class ResourceHandle(ABC):
    """Uniform lifecycle for one resource: create, delete, and kind-specific calls."""

    kind: ClassVar[ResourceKind]

    def __init__(self, name: str, scope: str, config: ProviderConfig, spec: BaseModel, executor: Executor):
        self.name = name
        self.scope = scope
        self.config = config
        self.spec = spec
        self._executor = executor

    @property
    def provider(self) -> ProviderKind:
        return self.config.provider

    @abstractmethod
    async def create(self) -> BaseModel: ...

    @abstractmethod
    async def delete(self) -> None: ...

    async def _call(
        self,
        action: str,
        *,
        command: list[str] | None = None,
        method: str | None = None,
        path: str | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        op = Operation(
            provider=self.config.provider,
            kind=self.kind,
            action=action,
            name=self.name,
            scope=self.scope,
            params=params or {},
            command=command or [],
            method=method,
            path=path,
        )
        return await self._executor.execute(op)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, scope={self.scope!r})"


class ResourceGroupHandle(ResourceHandle):
    kind = ResourceKind.RESOURCE_GROUP
    spec: ResourceGroupSpec

    @property
    def location(self) -> str:
        return self.spec.location

    @abstractmethod
    async def create(self) -> ResourceGroupResult: ...

    @abstractmethod
    async def exists(self) -> bool: ...


class DatabaseHandle(ResourceHandle):
    kind = ResourceKind.DATABASE
    spec: DatabaseSpec

    @abstractmethod
    async def create(self) -> DatabaseResult: ...

    @abstractmethod
    async def get_connection_string(self) -> str: ...

    @abstractmethod
    async def create_database(self, db_name: str) -> None: ...

    @abstractmethod
    async def create_user(self, username: str, password: str) -> None: ...


class WebAppHandle(ResourceHandle):
    """Operations shared by static sites and app services."""

    @abstractmethod
    async def deploy(self, source_dir: str) -> None: ...

    @abstractmethod
    async def add_custom_domain(self, domain: str) -> DomainResult: ...

    @abstractmethod
    async def remove_custom_domain(self, domain: str) -> None: ...

    @abstractmethod
    async def list_custom_domains(self) -> list[DomainResult]: ...


class StaticWebAppHandle(WebAppHandle):
    kind = ResourceKind.STATIC_WEB_APP
    spec: StaticWebAppSpec

    @abstractmethod
    async def create(self) -> StaticWebAppResult: ...


class AppServiceHandle(WebAppHandle):
    kind = ResourceKind.APP_SERVICE
    spec: AppServiceSpec

    @abstractmethod
    async def create(self) -> AppServiceResult: ...

    @abstractmethod
    async def set_environment_variables(self, variables: dict[str, str]) -> None: ...

    @abstractmethod
    async def get_environment_variables(self) -> dict[str, str]: ...

    @abstractmethod
    async def restart(self) -> None: ...

    @abstractmethod
    async def get_logs(self, lines: int | None = None) -> str: ...


class CDNHandle(ResourceHandle):
    kind = ResourceKind.CDN
    spec: CDNSpec

    def __init__(self, name: str, scope: str, config: ProviderConfig, spec: CDNSpec, executor: Executor):
        if not spec.origin:
            raise ConfigurationError(f"CDN {name!r} has no origin")
        super().__init__(name, scope, config, spec, executor)

    @property
    def origin(self) -> str:
        return self.spec.origin or ""

    @abstractmethod
    async def create(self) -> CDNResult: ...

    @abstractmethod
    async def purge_cache(self, paths: list[str] | None = None) -> None: ...

    @abstractmethod
    async def add_custom_domain(self, domain: str) -> None: ...


class DNSZoneHandle(ResourceHandle):
    kind = ResourceKind.DNS_ZONE
    spec: DNSZoneSpec

    @abstractmethod
    async def create(self) -> DNSZoneResult: ...

    @abstractmethod
    async def add_record(self, record: DNSRecord) -> None: ...

    @abstractmethod
    async def remove_record(self, record: DNSRecord) -> None: ...

    @abstractmethod
    async def list_records(self) -> list[DNSRecord]: ...


class StorageHandle(ResourceHandle):
    kind = ResourceKind.STORAGE
    spec: StorageSpec

    @abstractmethod
    async def create(self) -> StorageResult: ...

    @abstractmethod
    async def upload_file(self, local_path: str, remote_path: str) -> str: ...

    @abstractmethod
    async def download_file(self, remote_path: str, local_path: str) -> None: ...

    @abstractmethod
    async def delete_file(self, remote_path: str) -> None: ...

    @abstractmethod
    async def list_files(self, prefix: str | None = None) -> list[StorageFile]: ...

    @abstractmethod
    def get_public_url(self, remote_path: str) -> str: ...


class Provider(ABC):
    """Factory for resource handles and stacks of one cloud.

    Holds only its frozen config and the executor, so a single instance can deploy any
    number of stacks concurrently.
    """

    kind: ClassVar[ProviderKind]
    default_region: ClassVar[str]
    handle_types: ClassVar[dict[ResourceKind, type[ResourceHandle]]]

    def __init__(self, config: ProviderConfig, executor: Executor | None = None):
        if config.provider is not self.kind:
            raise ConfigurationError(f"{type(self).__name__} cannot be built from a {config.provider.value} config")
        self.validate_credentials(config)
        self._config = config
        if executor is None:
            # Dry runs are opt-in: pass a DryRunExecutor explicitly
            executor = default_executor(config)
        self._executor = executor

    @classmethod
    @abstractmethod
    def validate_credentials(cls, config: ProviderConfig) -> None:
        """Raise ConfigurationError if a credential this provider needs is missing."""

    @property
    def config(self) -> ProviderConfig:
        return self._config

    @property
    def executor(self) -> Executor:
        return self._executor

    def scoped_config(self, location: str | None) -> ProviderConfig:
        """Config for resources inside a group/project: their region is the group's location.

        Matches the Terraform module, where every resource sits at `var.location`. The
        provider-wide region applies only when no location is known.
        """
        if not location or location == self._config.region:
            return self._config
        if self._config.region:
            logger.warning(
                "%s resources go to the group location %s, not the provider region %s",
                self.kind.value,
                location,
                self._config.region,
            )
        return self._config.model_copy(update={"region": location})

    def build_handle(
        self,
        kind: ResourceKind,
        name: str,
        scope: str,
        spec: BaseModel,
        config: ProviderConfig | None = None,
    ) -> ResourceHandle:
        handle_type = self.handle_types.get(kind)
        if handle_type is None:
            raise ConfigurationError(f"{self.kind.value} has no {kind.value} implementation")
        return handle_type(name, scope, config or self._config, spec, self._executor)

    def create_resource_group(self, name: str, location: str) -> ResourceGroupHandle:
        spec = ResourceGroupSpec(name=name, location=location)
        handle = self.build_handle(ResourceKind.RESOURCE_GROUP, name, name, spec, self.scoped_config(location))
        return handle  # type: ignore[return-value]

    # Every other resource needs a group/project name as scope, which only a Stack knows.

    def create_database(self, name: str, spec: DatabaseSpec) -> DatabaseHandle:
        raise UnsupportedOperationError(_STACK_ONLY)

    def create_static_web_app(self, name: str, spec: StaticWebAppSpec) -> StaticWebAppHandle:
        raise UnsupportedOperationError(_STACK_ONLY)

    def create_app_service(self, name: str, spec: AppServiceSpec) -> AppServiceHandle:
        raise UnsupportedOperationError(_STACK_ONLY)

    def create_cdn(self, name: str, origin: str) -> CDNHandle:
        raise UnsupportedOperationError(_STACK_ONLY)

    def create_dns_zone(self, name: str) -> DNSZoneHandle:
        raise UnsupportedOperationError(_STACK_ONLY)

    def create_storage(self, name: str) -> StorageHandle:
        raise UnsupportedOperationError(_STACK_ONLY)

    def create_stack(self, name: str, config: StackConfig) -> Stack:
        from stackwright.stack import Stack

        return Stack(name, self, config)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(region={self._config.region!r})"
