"""Azure bindings for resource groups, flexible servers, Static Web Apps, App Service,
Azure CDN, Azure DNS and Blob Storage, all driven through the `az` CLI.

Authentication is whatever `az login` left behind; a subscription id in the credentials
pins every command to that subscription.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from stackwright import naming
from stackwright.executor import Executor
from stackwright.models import (
    AppServiceResult,
    CDNResult,
    DatabaseResult,
    DNSRecord,
    DNSZoneResult,
    DomainResult,
    ProviderConfig,
    ProviderKind,
    ResourceGroupResult,
    ResourceKind,
    StaticWebAppResult,
    StorageFile,
    StorageResult,
    StorageSpec,
)
from stackwright.providers.base import (
    AppServiceHandle,
    CDNHandle,
    DatabaseHandle,
    DNSZoneHandle,
    Provider,
    ResourceGroupHandle,
    StaticWebAppHandle,
    StorageHandle,
)
from stackwright.tiers import azure_flexible_sku_tier, size_for

logger = logging.getLogger(__name__)

AZURE_NAME_SERVERS = (
    "ns1-01.azure-dns.com",
    "ns2-01.azure-dns.net",
    "ns3-01.azure-dns.org",
    "ns4-01.azure-dns.info",
)
BLOB_CONTAINER = "files"
CDN_SKU = "Standard_Microsoft"

_AZ_RUNTIMES = {"node": "NODE", "python": "PYTHON", "dotnet": "DOTNETCORE", "java": "JAVA", "php": "PHP"}


def _domain_status(value: Any) -> str:
    value = str(value or "")
    if value.lower() == "ready":
        return "Ready"
    if value.lower() == "failed":
        return "Failed"
    return "Validating"


def _items(reply: dict[str, Any]) -> list[dict[str, Any]]:
    value = reply.get("value", [])
    return [item for item in value if isinstance(item, dict)] if isinstance(value, list) else []


class _AzureCommands:
    """az command construction shared by every Azure handle."""

    config: ProviderConfig
    name: str
    scope: str

    @property
    def region(self) -> str:
        return self.config.region or naming.DEFAULT_AZURE_LOCATION

    def _az(self, *args: str) -> list[str]:
        cmd = ["az", *args]
        subscription = self.config.credential("subscription_id")
        if subscription:
            cmd += ["--subscription", subscription]
        return cmd + ["--output", "json"]

    def _in_group(self, *args: str) -> list[str]:
        return self._az(*args, "--resource-group", self.scope)

    def _resource_id(self, resource_type: str, name: str | None = None) -> str:
        subscription = self.config.credential("subscription_id") or "current"
        return (
            f"/subscriptions/{subscription}/resourceGroups/{self.scope}"
            f"/providers/{resource_type}/{name or self.name}"
        )

    def _tag_args(self, extra: dict[str, str] | None = None) -> list[str]:
        tags = {**self.config.tags, **(extra or {})}
        if not tags:
            return []
        return ["--tags", *[f"{k}={v}" for k, v in sorted(tags.items())]]


class AzureResourceGroup(_AzureCommands, ResourceGroupHandle):
    async def create(self) -> ResourceGroupResult:
        cmd = self._az("group", "create", "--name", self.name, "--location", self.location)
        cmd += self._tag_args(self.spec.tags)
        reply = await self._call("create", command=cmd)
        subscription = self.config.credential("subscription_id") or "current"
        return ResourceGroupResult(
            id=reply.get("id") or f"/subscriptions/{subscription}/resourceGroups/{self.name}",
            name=self.name,
            location=reply.get("location") or self.location,
        )

    async def delete(self) -> None:
        # Deleting the group cascades to everything inside it
        await self._call("delete", command=self._az("group", "delete", "--name", self.name, "--yes", "--no-wait"))

    async def exists(self) -> bool:
        reply = await self._call("exists", command=self._az("group", "exists", "--name", self.name))
        return bool(reply.get("value", True))


class AzureDatabase(_AzureCommands, DatabaseHandle):
    """PostgreSQL or MySQL flexible server."""

    @property
    def _flavour(self) -> str:
        return naming.azure_database_flavour(self.spec.engine)

    @property
    def host(self) -> str:
        return naming.azure_database_host(self.spec.engine, self.name)

    @property
    def port(self) -> int:
        return naming.AZURE_DATABASE_PORTS[self.spec.engine]

    async def create(self) -> DatabaseResult:
        spec = self.spec
        sku = size_for(ProviderKind.AZURE, ResourceKind.DATABASE, spec.tier)
        cmd = self._in_group(
            self._flavour, "flexible-server", "create",
            "--name", self.name,
            "--location", self.region,
            "--admin-user", spec.admin_username,
            "--admin-password", spec.admin_password,
            "--sku-name", sku,
            "--tier", azure_flexible_sku_tier(sku),
            "--storage-size", str(spec.storage_gb),
            "--version", spec.version,
            "--public-access", "None",
            "--yes",
        )  # fmt: skip
        reply = await self._call("create", command=cmd)

        for rule_name, address in naming.azure_firewall_rules(spec.allowed_ips):
            await self._call(
                "firewall",
                command=self._in_group(
                    self._flavour, "flexible-server", "firewall-rule", "create",
                    "--name", self.name,
                    "--rule-name", rule_name,
                    "--start-ip-address", address,
                    "--end-ip-address", address,
                ),
            )  # fmt: skip

        host = reply.get("host") or self.host
        resource_type = f"Microsoft.DBfor{'PostgreSQL' if self._flavour == 'postgres' else 'MySQL'}/flexibleServers"
        return DatabaseResult(
            id=reply.get("id") or self._resource_id(resource_type),
            name=self.name,
            host=host,
            port=self.port,
            admin_username=spec.admin_username,
            connection_string=naming.azure_database_url(spec.engine, spec.admin_username, host),
        )

    async def delete(self) -> None:
        await self._call(
            "delete", command=self._in_group(self._flavour, "flexible-server", "delete", "--name", self.name, "--yes")
        )

    async def get_connection_string(self) -> str:
        return naming.azure_database_url(self.spec.engine, self.spec.admin_username, self.host)

    async def create_database(self, db_name: str) -> None:
        await self._call(
            "create_database",
            command=self._in_group(
                self._flavour, "flexible-server", "db", "create",
                "--server-name", self.name,
                "--database-name", db_name,
            ),
        )  # fmt: skip

    async def create_user(self, username: str, password: str) -> None:
        quoted = password.replace("'", "''")
        if self._flavour == "postgres":
            sql = f"CREATE USER \"{username}\" WITH PASSWORD '{quoted}';"
        else:
            sql = f"CREATE USER '{username}'@'%' IDENTIFIED BY '{quoted}';"
        await self._call(
            "create_user",
            command=self._az(
                self._flavour, "flexible-server", "execute",
                "--name", self.name,
                "--admin-user", self.spec.admin_username,
                "--admin-password", self.spec.admin_password,
                "--querytext", sql,
            ),
        )  # fmt: skip


class AzureStaticWebApp(_AzureCommands, StaticWebAppHandle):
    async def create(self) -> StaticWebAppResult:
        spec = self.spec
        cmd = self._in_group(
            "staticwebapp", "create",
            "--name", self.name,
            "--location", naming.azure_static_site_location(self.config.region),
            "--sku", size_for(ProviderKind.AZURE, ResourceKind.STATIC_WEB_APP, spec.tier),
        )  # fmt: skip
        if spec.repository_url:
            cmd += [
                "--source", spec.repository_url,
                "--branch", spec.branch,
                "--app-location", "/",
                "--output-location", spec.output_directory,
            ]  # fmt: skip
            token = self.config.credential("github_token")
            if token:
                cmd += ["--token", token]
        reply = await self._call("create", command=cmd)
        return StaticWebAppResult(
            id=reply.get("id") or self._resource_id("Microsoft.Web/staticSites"),
            name=self.name,
            default_hostname=reply.get("defaultHostname")
            or naming.compute_hostname(ProviderKind.AZURE, self.kind, self.name),
            repository_url=spec.repository_url,
        )

    async def delete(self) -> None:
        await self._call("delete", command=self._in_group("staticwebapp", "delete", "--name", self.name, "--yes"))

    async def deploy(self, source_dir: str) -> None:
        logger.info("Deploying %s to static web app %s", source_dir, self.name)
        await self._call(
            "deploy",
            command=["swa", "deploy", source_dir, "--app-name", self.name, "--resource-group", self.scope,
                     "--env", "production"],
        )  # fmt: skip

    async def add_custom_domain(self, domain: str) -> DomainResult:
        reply = await self._call(
            "add_domain",
            command=self._in_group("staticwebapp", "hostname", "set", "--name", self.name, "--hostname", domain),
        )
        return DomainResult(
            hostname=domain,
            status=_domain_status(reply.get("status")),
            validation_token=reply.get("validationToken"),
            ssl_state="Pending",
        )

    async def remove_custom_domain(self, domain: str) -> None:
        await self._call(
            "remove_domain",
            command=self._in_group(
                "staticwebapp", "hostname", "delete", "--name", self.name, "--hostname", domain, "--yes"
            ),
        )

    async def list_custom_domains(self) -> list[DomainResult]:
        reply = await self._call(
            "list_domains", command=self._in_group("staticwebapp", "hostname", "list", "--name", self.name)
        )
        domains = []
        for item in _items(reply):
            status = _domain_status(item.get("status"))
            domains.append(
                DomainResult(
                    hostname=item.get("domainName") or item.get("name", ""),
                    status=status,
                    validation_token=item.get("validationToken"),
                    ssl_state="Enabled" if status == "Ready" else "Pending",
                )
            )
        return domains


class AzureAppService(_AzureCommands, AppServiceHandle):
    """Linux web app on its own App Service plan."""

    @property
    def plan_name(self) -> str:
        return naming.azure_plan_name(self.name)

    async def create(self) -> AppServiceResult:
        spec = self.spec
        await self._call(
            "create_plan",
            command=self._in_group(
                "appservice", "plan", "create",
                "--name", self.plan_name,
                "--location", self.region,
                "--sku", size_for(ProviderKind.AZURE, ResourceKind.APP_SERVICE, spec.tier),
                "--is-linux",
            ),
        )  # fmt: skip
        reply = await self._call(
            "create",
            command=self._in_group(
                "webapp", "create",
                "--plan", self.plan_name,
                "--name", self.name,
                "--runtime", f"{_AZ_RUNTIMES[spec.runtime]}:{spec.runtime_version}",
            ),
        )  # fmt: skip
        if spec.environment_variables:
            await self.set_environment_variables(spec.environment_variables)
        if spec.always_on:
            await self._call(
                "configure",
                command=self._in_group("webapp", "config", "set", "--name", self.name, "--always-on", "true"),
            )
        return AppServiceResult(
            id=reply.get("id") or self._resource_id("Microsoft.Web/sites"),
            name=self.name,
            hostname=reply.get("defaultHostName") or naming.compute_hostname(ProviderKind.AZURE, self.kind, self.name),
            state="Stopped" if reply.get("state") == "Stopped" else "Running",
        )

    async def delete(self) -> None:
        await self._call("delete", command=self._in_group("webapp", "delete", "--name", self.name))
        await self._call(
            "delete_plan", command=self._in_group("appservice", "plan", "delete", "--name", self.plan_name, "--yes")
        )

    async def deploy(self, source_dir: str) -> None:
        """Push a zip package built from source_dir."""
        logger.info("Deploying %s to app service %s", source_dir, self.name)
        await self._call(
            "deploy",
            command=self._in_group("webapp", "deploy", "--name", self.name, "--src-path", source_dir, "--type", "zip"),
        )

    async def set_environment_variables(self, variables: dict[str, str]) -> None:
        settings = [f"{k}={v}" for k, v in sorted(variables.items())]
        await self._call(
            "set_env",
            command=self._in_group("webapp", "config", "appsettings", "set", "--name", self.name, "--settings", *settings),
        )

    async def get_environment_variables(self) -> dict[str, str]:
        reply = await self._call(
            "get_env", command=self._in_group("webapp", "config", "appsettings", "list", "--name", self.name)
        )
        return {item["name"]: str(item.get("value", "")) for item in _items(reply) if "name" in item}

    async def restart(self) -> None:
        await self._call("restart", command=self._in_group("webapp", "restart", "--name", self.name))

    async def get_logs(self, lines: int | None = None) -> str:
        reply = await self._call(
            "logs", command=self._in_group("webapp", "log", "deployment", "show", "--name", self.name)
        )
        messages = [str(item.get("message", "")) for item in _items(reply)]
        if lines is not None:
            messages = messages[-lines:] if lines > 0 else []
        return "\n".join(messages)

    async def add_custom_domain(self, domain: str) -> DomainResult:
        await self._call(
            "add_domain",
            command=self._in_group(
                "webapp", "config", "hostname", "add", "--webapp-name", self.name, "--hostname", domain
            ),
        )
        # Hostname binding is verified by Azure before `add` returns; TLS is bound separately
        return DomainResult(hostname=domain, status="Ready", ssl_state="Disabled")

    async def remove_custom_domain(self, domain: str) -> None:
        await self._call(
            "remove_domain",
            command=self._in_group(
                "webapp", "config", "hostname", "delete", "--webapp-name", self.name, "--hostname", domain
            ),
        )

    async def list_custom_domains(self) -> list[DomainResult]:
        reply = await self._call(
            "list_domains",
            command=self._in_group("webapp", "config", "hostname", "list", "--webapp-name", self.name),
        )
        return [
            DomainResult(
                hostname=item.get("name", ""),
                status="Ready",
                ssl_state="Enabled" if str(item.get("sslState", "")).endswith("Enabled") else "Disabled",
            )
            for item in _items(reply)
        ]


class AzureCDN(_AzureCommands, CDNHandle):
    """Azure CDN endpoint in a per-endpoint profile."""

    @property
    def profile_name(self) -> str:
        return naming.azure_cdn_profile_name(self.name)

    def _endpoint(self, *args: str) -> list[str]:
        return self._in_group("cdn", *args, "--profile-name", self.profile_name)

    async def create(self) -> CDNResult:
        await self._call(
            "create_profile",
            command=self._in_group("cdn", "profile", "create", "--name", self.profile_name, "--sku", CDN_SKU),
        )
        reply = await self._call(
            "create",
            command=self._endpoint(
                "endpoint", "create",
                "--name", self.name,
                "--origin", self.origin,
                "--origin-host-header", self.origin,
            ),
        )  # fmt: skip
        return CDNResult(
            id=reply.get("id") or self._resource_id(f"Microsoft.Cdn/profiles/{self.profile_name}/endpoints"),
            name=self.name,
            endpoint=reply.get("hostName") or f"{self.name}.azureedge.net",
        )

    async def delete(self) -> None:
        await self._call("delete", command=self._endpoint("endpoint", "delete", "--name", self.name))
        await self._call(
            "delete_profile", command=self._in_group("cdn", "profile", "delete", "--name", self.profile_name)
        )

    async def purge_cache(self, paths: list[str] | None = None) -> None:
        await self._call(
            "purge",
            command=self._endpoint("endpoint", "purge", "--name", self.name, "--content-paths", *(paths or ["/*"])),
        )

    async def add_custom_domain(self, domain: str) -> None:
        await self._call(
            "add_domain",
            command=self._endpoint(
                "custom-domain", "create",
                "--endpoint-name", self.name,
                "--hostname", domain,
                "--name", domain.replace(".", "-"),
            ),
        )  # fmt: skip


def _record_args(record: DNSRecord) -> list[str]:
    if record.type == "A":
        return ["--ipv4-address", record.value]
    if record.type == "AAAA":
        return ["--ipv6-address", record.value]
    if record.type == "CNAME":
        return ["--cname", record.value]
    if record.type == "TXT":
        return ["--value", record.value]
    if record.type == "MX":
        return ["--exchange", record.value, "--preference", str(record.priority or 10)]
    # SRV values are "weight port target"
    weight, port, target = record.value.split()
    return ["--priority", str(record.priority or 0), "--weight", weight, "--port", port, "--target", target]


def _parse_record_set(item: dict[str, Any]) -> list[DNSRecord]:
    rtype = str(item.get("type", "")).rsplit("/", 1)[-1]
    name = item.get("name", "@")
    ttl = int(item.get("TTL") or item.get("ttl") or 3600)
    if rtype == "A":
        values = [(r.get("ipv4Address", ""), None) for r in item.get("ARecords", [])]
    elif rtype == "AAAA":
        values = [(r.get("ipv6Address", ""), None) for r in item.get("AAAARecords", [])]
    elif rtype == "CNAME":
        values = [((item.get("CNAMERecord") or {}).get("cname", ""), None)]
    elif rtype == "TXT":
        values = [("".join(r.get("value", [])), None) for r in item.get("TXTRecords", [])]
    elif rtype == "MX":
        values = [(r.get("exchange", ""), r.get("preference")) for r in item.get("MXRecords", [])]
    elif rtype == "SRV":
        values = [
            (f"{r.get('weight', 0)} {r.get('port', 0)} {r.get('target', '')}", r.get("priority"))
            for r in item.get("SRVRecords", [])
        ]
    else:
        # NS and SOA sets are managed by Azure
        return []
    return [DNSRecord(type=rtype, name=name, value=v, ttl=ttl, priority=p) for v, p in values]


class AzureDNSZone(_AzureCommands, DNSZoneHandle):
    def _records(self, record_type: str, *args: str) -> list[str]:
        return self._in_group("network", "dns", "record-set", record_type.lower(), *args, "--zone-name", self.name)

    async def create(self) -> DNSZoneResult:
        reply = await self._call(
            "create", command=self._in_group("network", "dns", "zone", "create", "--name", self.name)
        )
        return DNSZoneResult(
            id=reply.get("id") or self._resource_id("Microsoft.Network/dnszones"),
            name=self.name,
            name_servers=list(reply.get("nameServers") or AZURE_NAME_SERVERS),
        )

    async def delete(self) -> None:
        await self._call(
            "delete", command=self._in_group("network", "dns", "zone", "delete", "--name", self.name, "--yes")
        )

    async def add_record(self, record: DNSRecord) -> None:
        verb = "set-record" if record.type == "CNAME" else "add-record"
        await self._call(
            "add_record",
            command=self._records(
                record.type, verb, "--record-set-name", record.name, "--ttl", str(record.ttl), *_record_args(record)
            ),
        )

    async def remove_record(self, record: DNSRecord) -> None:
        await self._call(
            "remove_record",
            command=self._records(record.type, "remove-record", "--record-set-name", record.name, *_record_args(record)),
        )

    async def list_records(self) -> list[DNSRecord]:
        reply = await self._call(
            "list_records", command=self._in_group("network", "dns", "record-set", "list", "--zone-name", self.name)
        )
        records: list[DNSRecord] = []
        for item in _items(reply):
            records.extend(_parse_record_set(item))
        return records


class AzureStorage(_AzureCommands, StorageHandle):
    """StorageV2 account with a single blob container."""

    def __init__(self, name: str, scope: str, config: ProviderConfig, spec: StorageSpec, executor: Executor):
        # Raises ConfigurationError for names no account name can be derived from
        self.account_name = naming.azure_storage_account_name(name)
        super().__init__(name, scope, config, spec, executor)

    @property
    def endpoint(self) -> str:
        return f"https://{self.account_name}.blob.core.windows.net"

    def _blob(self, *args: str) -> list[str]:
        return self._az(
            "storage", "blob", *args, "--account-name", self.account_name, "--container-name", BLOB_CONTAINER
        )

    async def create(self) -> StorageResult:
        reply = await self._call(
            "create",
            command=self._in_group(
                "storage", "account", "create",
                "--name", self.account_name,
                "--location", self.region,
                "--sku", "Standard_LRS",
                "--kind", "StorageV2",
                "--allow-blob-public-access", "true" if self.spec.public else "false",
            ),
        )  # fmt: skip
        await self._call(
            "create_container",
            command=self._az(
                "storage", "container", "create",
                "--name", BLOB_CONTAINER,
                "--account-name", self.account_name,
                "--public-access", "blob" if self.spec.public else "off",
            ),
        )  # fmt: skip
        endpoints = reply.get("primaryEndpoints") or {}
        return StorageResult(
            id=reply.get("id") or self._resource_id("Microsoft.Storage/storageAccounts", self.account_name),
            name=self.name,
            endpoint=str(endpoints.get("blob") or self.endpoint).rstrip("/"),
        )

    async def delete(self) -> None:
        await self._call(
            "delete", command=self._in_group("storage", "account", "delete", "--name", self.account_name, "--yes")
        )

    async def upload_file(self, local_path: str, remote_path: str) -> str:
        await self._call("upload", command=self._blob("upload", "--name", remote_path, "--file", local_path, "--overwrite"))
        return self.get_public_url(remote_path)

    async def download_file(self, remote_path: str, local_path: str) -> None:
        await self._call("download", command=self._blob("download", "--name", remote_path, "--file", local_path))

    async def delete_file(self, remote_path: str) -> None:
        await self._call("delete_file", command=self._blob("delete", "--name", remote_path))

    async def list_files(self, prefix: str | None = None) -> list[StorageFile]:
        args = ["list"] + (["--prefix", prefix] if prefix else [])
        reply = await self._call("list", command=self._blob(*args))
        files = []
        for item in _items(reply):
            props = item.get("properties") or {}
            modified = props.get("lastModified")
            files.append(
                StorageFile(
                    name=item.get("name", ""),
                    size=int(props.get("contentLength") or 0),
                    last_modified=modified or datetime.fromtimestamp(0, tz=timezone.utc),
                    url=self.get_public_url(item.get("name", "")),
                )
            )
        return files

    def get_public_url(self, remote_path: str) -> str:
        return f"{self.endpoint}/{BLOB_CONTAINER}/{remote_path.lstrip('/')}"


class AzureProvider(Provider):
    kind = ProviderKind.AZURE
    default_region = naming.DEFAULT_AZURE_LOCATION
    handle_types = {
        ResourceKind.RESOURCE_GROUP: AzureResourceGroup,
        ResourceKind.DATABASE: AzureDatabase,
        ResourceKind.STATIC_WEB_APP: AzureStaticWebApp,
        ResourceKind.APP_SERVICE: AzureAppService,
        ResourceKind.CDN: AzureCDN,
        ResourceKind.DNS_ZONE: AzureDNSZone,
        ResourceKind.STORAGE: AzureStorage,
    }

    @classmethod
    def validate_credentials(cls, config: ProviderConfig) -> None:
        # Ambient `az login` credentials are enough; subscription_id is optional.
        return None
