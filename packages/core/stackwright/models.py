"""Stack models: the declarative input and the provider-assigned output of a deployment.

A StackConfig says what should exist. Resource handles turn each declared spec into a
result once the provider has created it. Nothing in here talks to a cloud.
"""

from __future__ import annotations

import json
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, ClassVar, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Tier(str, Enum):
    """Abstract capacity level, mapped to a concrete SKU per provider in stackwright.tiers."""

    FREE = "free"
    BASIC = "basic"
    STANDARD = "standard"
    PREMIUM = "premium"


class ProviderKind(str, Enum):
    AZURE = "azure"
    DIGITALOCEAN = "digitalocean"


class ResourceKind(str, Enum):
    RESOURCE_GROUP = "resource_group"
    DATABASE = "database"
    STATIC_WEB_APP = "static_web_app"
    APP_SERVICE = "app_service"
    CDN = "cdn"
    DNS_ZONE = "dns_zone"
    STORAGE = "storage"


DatabaseEngine = Literal["postgresql", "mysql", "mariadb"]
Runtime = Literal["node", "python", "dotnet", "java", "php"]


class ProviderConfig(BaseModel):
    """Credentials and defaults for one provider. Frozen once a Provider holds it."""

    model_config = ConfigDict(frozen=True)

    provider: ProviderKind
    credentials: dict[str, str] = Field(default_factory=dict)
    region: str | None = None
    tags: dict[str, str] = Field(default_factory=dict)

    def credential(self, key: str) -> str:
        return self.credentials.get(key, "") or ""


# Resource specs


class ResourceGroupSpec(BaseModel):
    name: str
    location: str
    tags: dict[str, str] = Field(default_factory=dict)


class DatabaseSpec(BaseModel):
    name: str
    engine: DatabaseEngine = "postgresql"
    version: str
    tier: Tier = Tier.BASIC
    storage_gb: int = 32
    admin_username: str
    admin_password: str
    allowed_ips: list[str] = Field(default_factory=list)


class StaticWebAppSpec(BaseModel):
    name: str
    build_command: str
    output_directory: str
    install_command: str | None = None
    repository_url: str | None = None
    branch: str = "main"
    tier: Tier = Tier.FREE


class AppServiceSpec(BaseModel):
    name: str
    runtime: Runtime
    runtime_version: str
    tier: Tier = Tier.BASIC
    environment_variables: dict[str, str] = Field(default_factory=dict)
    always_on: bool = False
    http_port: int = 3000


class CDNSpec(BaseModel):
    name: str
    # None means "front the stack's compute resource"
    origin: str | None = None


class DNSZoneSpec(BaseModel):
    name: str


class StorageSpec(BaseModel):
    name: str
    public: bool = True


_SPEC_FIELDS: dict[ResourceKind, str] = {kind: kind.value for kind in ResourceKind}


class StackConfig(BaseModel):
    """Everything a stack is made of. Absent optional specs are skipped entirely."""

    resource_group: ResourceGroupSpec
    database: DatabaseSpec | None = None
    static_web_app: StaticWebAppSpec | None = None
    app_service: AppServiceSpec | None = None
    cdn: CDNSpec | None = None
    dns_zone: DNSZoneSpec | None = None
    storage: StorageSpec | None = None

    def spec_for(self, kind: ResourceKind) -> BaseModel | None:
        return getattr(self, _SPEC_FIELDS[kind])

    def declared_kinds(self) -> list[ResourceKind]:
        return [kind for kind in ResourceKind if self.spec_for(kind) is not None]

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def to_yaml(self) -> str:
        return yaml.dump(self.to_dict(), default_flow_style=False, sort_keys=False, allow_unicode=True)

    @classmethod
    def from_yaml(cls, yaml_str: str) -> StackConfig:
        data = yaml.safe_load(yaml_str)
        return cls.model_validate(data)

    @classmethod
    def from_file(cls, path: str | Path) -> StackConfig:
        p = Path(path)
        text = p.read_text()
        if p.suffix in (".yaml", ".yml"):
            return cls.from_yaml(text)
        return cls.model_validate_json(text)


# Results


class ResourceGroupResult(BaseModel):
    OUTPUT_FIELDS: ClassVar[tuple[str, ...]] = ("id", "name")

    id: str
    name: str
    location: str


class DatabaseResult(BaseModel):
    OUTPUT_FIELDS: ClassVar[tuple[str, ...]] = ("id", "host", "port", "admin_username", "connection_string")

    id: str
    name: str
    host: str
    port: int
    admin_username: str
    connection_string: str


class StaticWebAppResult(BaseModel):
    OUTPUT_FIELDS: ClassVar[tuple[str, ...]] = ("id", "default_hostname")

    id: str
    name: str
    default_hostname: str
    repository_url: str | None = None


class AppServiceResult(BaseModel):
    OUTPUT_FIELDS: ClassVar[tuple[str, ...]] = ("id", "hostname")

    id: str
    name: str
    hostname: str
    state: Literal["Running", "Stopped"] = "Running"


class CDNResult(BaseModel):
    OUTPUT_FIELDS: ClassVar[tuple[str, ...]] = ("id", "endpoint")

    id: str
    name: str
    endpoint: str


class DNSZoneResult(BaseModel):
    OUTPUT_FIELDS: ClassVar[tuple[str, ...]] = ("id", "name_servers")

    id: str
    name: str
    name_servers: list[str] = Field(default_factory=list)


class StorageResult(BaseModel):
    OUTPUT_FIELDS: ClassVar[tuple[str, ...]] = ("id", "endpoint")

    id: str
    name: str
    endpoint: str


RESULT_TYPES: dict[ResourceKind, type[BaseModel]] = {
    ResourceKind.RESOURCE_GROUP: ResourceGroupResult,
    ResourceKind.DATABASE: DatabaseResult,
    ResourceKind.STATIC_WEB_APP: StaticWebAppResult,
    ResourceKind.APP_SERVICE: AppServiceResult,
    ResourceKind.CDN: CDNResult,
    ResourceKind.DNS_ZONE: DNSZoneResult,
    ResourceKind.STORAGE: StorageResult,
}


class DomainResult(BaseModel):
    hostname: str
    status: Literal["Validating", "Ready", "Failed"] = "Validating"
    validation_token: str | None = None
    ssl_state: Literal["Disabled", "Enabled", "Pending"] = "Pending"


class DNSRecord(BaseModel):
    type: Literal["A", "AAAA", "CNAME", "TXT", "MX", "SRV"]
    name: str
    value: str
    ttl: int = 3600
    priority: int | None = None

    @model_validator(mode="after")
    def _srv_value_shape(self) -> DNSRecord:
        # SRV values are "weight port target"; priority travels separately
        if self.type == "SRV":
            parts = self.value.split()
            if len(parts) != 3 or not (parts[0].isdigit() and parts[1].isdigit()):
                raise ValueError(f"SRV record value must be 'weight port target', got {self.value!r}")
        return self


class StorageFile(BaseModel):
    name: str
    size: int
    last_modified: datetime
    url: str


# Deployment outcome


class StackResources(BaseModel):
    """Results of the kinds that were created; a field is None when it was not."""

    resource_group: ResourceGroupResult | None = None
    database: DatabaseResult | None = None
    static_web_app: StaticWebAppResult | None = None
    app_service: AppServiceResult | None = None
    cdn: CDNResult | None = None
    storage: StorageResult | None = None

    def kinds(self) -> list[ResourceKind]:
        return [ResourceKind(k) for k, v in self if v is not None]

    def get(self, kind: ResourceKind) -> BaseModel | None:
        return getattr(self, kind.value, None)


class StackDeploymentResult(BaseModel):
    success: bool
    resources: StackResources = Field(default_factory=StackResources)
    errors: list[str] = Field(default_factory=list)
    duration: float = 0.0  # seconds

    @model_validator(mode="after")
    def _errors_match_success(self) -> StackDeploymentResult:
        if self.success == bool(self.errors):
            raise ValueError("errors must be non-empty exactly when success is false")
        return self


class ResourceStatus(BaseModel):
    type: ResourceKind
    status: Literal["creating", "ready", "updating", "deleting", "failed"]
    error: str | None = None


class StackStatus(BaseModel):
    name: str
    provider: ProviderKind
    state: Literal["deploying", "ready", "failed", "destroying"]
    resources: dict[str, ResourceStatus] = Field(default_factory=dict)

    @field_validator("resources")
    @classmethod
    def _keys_are_kinds(cls, v: dict[str, ResourceStatus]) -> dict[str, ResourceStatus]:
        for key in v:
            ResourceKind(key)
        return v
