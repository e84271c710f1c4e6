"""DigitalOcean bindings: Projects, Managed Databases, App Platform, Spaces CDN, DNS and Spaces.

Everything except Spaces goes through the v2 REST API. Spaces is S3-compatible and is driven
with the `aws` CLI pointed at the regional Spaces endpoint.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

from stackwright import naming
from stackwright.errors import ConfigurationError, ProviderAPIError
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
from stackwright.tiers import size_for

logger = logging.getLogger(__name__)

# The API has no MariaDB engine; MariaDB workloads run on MySQL clusters.
_ENGINE_SLUGS = {"postgresql": "pg", "mysql": "mysql", "mariadb": "mysql"}
_RECORD_TYPES = frozenset({"A", "AAAA", "CNAME", "TXT", "MX", "SRV"})
CDN_TTL = 3600

# Project resource URN type -> API collection it is deleted from
_URN_COLLECTIONS = {"dbaas": "/v2/databases", "app": "/v2/apps", "domain": "/v2/domains"}


def _spaces_command(region: str, *args: str) -> list[str]:
    return ["aws", *args, "--endpoint-url", f"https://{region}.digitaloceanspaces.com"]


class _RestCalls:
    """Id lookup shared by handles whose follow-up calls need a DigitalOcean id."""

    name: str
    scope: str
    _call: Callable[..., Any]

    async def _find(self, path: str, collection: str, match: Callable[[dict[str, Any]], bool]) -> dict[str, Any] | None:
        reply = await self._call("lookup", method="GET", path=path, params={"per_page": 200})
        if collection not in reply:
            return None
        for item in reply[collection]:
            if isinstance(item, dict) and match(item):
                return item
        raise ProviderAPIError(
            f"{self.name!r} not found in {path}",
            provider=ProviderKind.DIGITALOCEAN.value,
            operation="lookup",
            status=404,
        )

    async def _lookup_id(
        self, path: str, collection: str, match: Callable[[dict[str, Any]], bool], fallback: str
    ) -> str:
        # An empty reply (dry run) carries no listing; use the id create() would have reported.
        item = await self._find(path, collection, match)
        return str(item["id"]) if item else fallback

    async def _project_id(self) -> str:
        """Id of the project the handle's scope names."""
        return await self._lookup_id("/v2/projects", "projects", _named(self.scope), f"do-project-{self.scope}")

    async def _assign_to_project(self, urn: str) -> None:
        # For resources whose create call takes no project_id
        project_id = await self._project_id()
        await self._call(
            "assign_project", method="POST", path=f"/v2/projects/{project_id}/resources", params={"resources": [urn]}
        )


def _named(name: str) -> Callable[[dict[str, Any]], bool]:
    return lambda item: item.get("name") == name


def _app_named(name: str) -> Callable[[dict[str, Any]], bool]:
    return lambda item: (item.get("spec") or {}).get("name") == name


def _strip_scheme(url: str) -> str:
    return url.split("://", 1)[-1].rstrip("/")


def _split_urn(urn: str) -> tuple[str, str]:
    """("dbaas", "9cc1") from "do:dbaas:9cc1"."""
    _, _, rest = urn.partition(":")
    resource_type, _, resource_id = rest.partition(":")
    return resource_type, resource_id


class DigitalOceanProject(_RestCalls, ResourceGroupHandle):
    """A Project stands in for a resource group.

    The API refuses to delete a project that still holds resources, so delete() removes
    the databases, apps, domains and Spaces buckets assigned to it first. Anything else
    (droplets, volumes) is left alone and the final project delete reports the conflict.
    CDN endpoints never join a project; those fronting its apps or buckets go too.
    """

    async def create(self) -> ResourceGroupResult:
        reply = await self._call(
            "create",
            method="POST",
            path="/v2/projects",
            params={
                "name": self.name,
                "description": f"Project for {self.name}",
                "purpose": "Web Application",
                "environment": "Production",
            },
        )
        project = reply.get("project") or {}
        return ResourceGroupResult(
            id=project.get("id") or f"do-project-{self.name}",
            name=self.name,
            location=self.location,
        )

    async def delete(self) -> None:
        project_id = await self._lookup_id("/v2/projects", "projects", _named(self.name), f"do-project-{self.name}")
        reply = await self._call(
            "list_resources", method="GET", path=f"/v2/projects/{project_id}/resources", params={"per_page": 200}
        )
        urns = [str(item["urn"]) for item in reply.get("resources", []) if isinstance(item, dict) and item.get("urn")]
        await self._delete_cdn_endpoints(urns)
        for urn in urns:
            await self._delete_member(urn)
        await self._call("delete", method="DELETE", path=f"/v2/projects/{project_id}")

    @property
    def _spaces_region(self) -> str:
        return self.config.region or naming.DEFAULT_DO_REGION

    async def _member_origins(self, urns: list[str]) -> set[str]:
        origins: set[str] = set()
        for urn in urns:
            resource_type, resource_id = _split_urn(urn)
            if resource_type == "space":
                origins.add(naming.do_spaces_host(resource_id, self._spaces_region))
            elif resource_type == "app":
                reply = await self._call("get_app", method="GET", path=f"/v2/apps/{resource_id}")
                ingress = (reply.get("app") or {}).get("default_ingress")
                if ingress:
                    origins.add(_strip_scheme(ingress))
        return origins

    async def _delete_cdn_endpoints(self, urns: list[str]) -> None:
        # CDN endpoints cannot join a project; remove the ones fronting its apps and buckets
        origins = await self._member_origins(urns)
        if not origins:
            return
        reply = await self._call("list_cdn", method="GET", path="/v2/cdn/endpoints", params={"per_page": 200})
        for endpoint in reply.get("endpoints", []):
            if isinstance(endpoint, dict) and endpoint.get("origin") in origins:
                await self._call("delete_resource", method="DELETE", path=f"/v2/cdn/endpoints/{endpoint['id']}")

    async def _delete_member(self, urn: str) -> None:
        resource_type, resource_id = _split_urn(urn)
        if resource_type == "space":
            await self._call(
                "delete_resource",
                command=_spaces_command(self._spaces_region, "s3", "rb", f"s3://{resource_id}", "--force"),
            )
        elif resource_type in _URN_COLLECTIONS:
            await self._call(
                "delete_resource", method="DELETE", path=f"{_URN_COLLECTIONS[resource_type]}/{resource_id}"
            )
        else:
            logger.warning("Project %s holds %s, which is not deleted with the stack", self.name, urn)

    async def exists(self) -> bool:
        try:
            await self._find("/v2/projects", "projects", _named(self.name))
        except ProviderAPIError as exc:
            if exc.status == 404:
                return False
            raise
        return True


class DigitalOceanDatabase(_RestCalls, DatabaseHandle):
    """Managed database cluster, one node."""

    @property
    def region(self) -> str:
        return self.config.region or naming.DEFAULT_DO_REGION

    def _fallback_id(self) -> str:
        return f"do-db-{self.name}"

    async def _cluster_id(self) -> str:
        return await self._lookup_id("/v2/databases", "databases", _named(self.name), self._fallback_id())

    async def create(self) -> DatabaseResult:
        spec = self.spec
        project_id = await self._project_id()
        reply = await self._call(
            "create",
            method="POST",
            path="/v2/databases",
            params={
                "name": self.name,
                "engine": _ENGINE_SLUGS[spec.engine],
                "version": spec.version,
                "region": self.region,
                "size": size_for(ProviderKind.DIGITALOCEAN, ResourceKind.DATABASE, spec.tier),
                "num_nodes": 1,
                "storage_size_mib": spec.storage_gb * 1024,
                "project_id": project_id,
            },
        )
        cluster = reply.get("database") or {}
        cluster_id = cluster.get("id") or self._fallback_id()

        if spec.admin_username != "doadmin":
            await self._call(
                "create_user",
                method="POST",
                path=f"/v2/databases/{cluster_id}/users",
                params={"name": spec.admin_username},
            )
        if spec.allowed_ips:
            await self._call(
                "firewall",
                method="PUT",
                path=f"/v2/databases/{cluster_id}/firewall",
                params={"rules": [{"type": "ip_addr", "value": ip} for ip in spec.allowed_ips]},
            )

        connection = cluster.get("connection") or {}
        host = connection.get("host") or naming.do_database_host(self.name)
        return DatabaseResult(
            id=cluster_id,
            name=self.name,
            host=host,
            port=naming.DO_DATABASE_PORT,
            admin_username=spec.admin_username,
            connection_string=naming.do_database_url(spec.engine, spec.admin_username, host),
        )

    async def delete(self) -> None:
        cluster_id = await self._cluster_id()
        await self._call("delete", method="DELETE", path=f"/v2/databases/{cluster_id}")

    async def get_connection_string(self) -> str:
        return naming.do_database_url(self.spec.engine, self.spec.admin_username, naming.do_database_host(self.name))

    async def create_database(self, db_name: str) -> None:
        cluster_id = await self._cluster_id()
        await self._call("create_database", method="POST", path=f"/v2/databases/{cluster_id}/dbs", params={"name": db_name})

    async def create_user(self, username: str, password: str) -> None:
        if password:
            logger.warning("DigitalOcean generates database passwords; ignoring the one given for %s", username)
        cluster_id = await self._cluster_id()
        await self._call("create_user", method="POST", path=f"/v2/databases/{cluster_id}/users", params={"name": username})


def _domain_result(spec_domain: dict[str, Any], live: dict[str, dict[str, Any]]) -> DomainResult:
    hostname = spec_domain.get("domain", "")
    phase = str((live.get(hostname) or {}).get("phase", "")).upper()
    if phase == "ACTIVE":
        return DomainResult(hostname=hostname, status="Ready", ssl_state="Enabled")
    if phase == "ERROR":
        return DomainResult(hostname=hostname, status="Failed", ssl_state="Disabled")
    return DomainResult(hostname=hostname, status="Validating", ssl_state="Pending")


class _AppPlatform(_RestCalls):
    """App Platform apps. Static sites and services are both apps; domains live in the app spec."""

    config: ProviderConfig
    _call: Callable[..., Any]
    fallback_prefix = "do-app"

    @property
    def region(self) -> str:
        return naming.do_app_region(self.config.region)

    async def _app_id(self) -> str:
        return await self._lookup_id("/v2/apps", "apps", _app_named(self.name), f"{self.fallback_prefix}-{self.name}")

    async def _app(self, app_id: str) -> dict[str, Any]:
        reply = await self._call("get", method="GET", path=f"/v2/apps/{app_id}")
        return reply.get("app") or {}

    async def _update_spec(self, app_id: str, app_spec: dict[str, Any]) -> None:
        await self._call("update", method="PUT", path=f"/v2/apps/{app_id}", params={"spec": app_spec})

    async def _create_app(self, app_spec: dict[str, Any]) -> tuple[str, str]:
        project_id = await self._project_id()
        reply = await self._call(
            "create", method="POST", path="/v2/apps", params={"spec": app_spec, "project_id": project_id}
        )
        app = reply.get("app") or {}
        hostname = _strip_scheme(app.get("default_ingress") or "") or naming.compute_hostname(
            ProviderKind.DIGITALOCEAN, self.kind, self.name
        )
        return app.get("id") or f"{self.fallback_prefix}-{self.name}", hostname

    async def delete(self) -> None:
        app_id = await self._app_id()
        await self._call("delete", method="DELETE", path=f"/v2/apps/{app_id}")

    async def deploy(self, source_dir: str) -> None:
        # App Platform builds from the linked repository; source_dir only names the checkout.
        logger.info("Triggering App Platform build of %s for %s", self.name, source_dir)
        app_id = await self._app_id()
        await self._call("deploy", method="POST", path=f"/v2/apps/{app_id}/deployments", params={"force_build": True})

    async def add_custom_domain(self, domain: str) -> DomainResult:
        app_id = await self._app_id()
        app_spec = dict((await self._app(app_id)).get("spec") or {"name": self.name})
        domains = [d for d in app_spec.get("domains", []) if d.get("domain") != domain]
        app_spec["domains"] = domains + [{"domain": domain, "type": "ALIAS"}]
        await self._update_spec(app_id, app_spec)
        return DomainResult(hostname=domain, status="Validating", ssl_state="Pending")

    async def remove_custom_domain(self, domain: str) -> None:
        app_id = await self._app_id()
        app_spec = dict((await self._app(app_id)).get("spec") or {"name": self.name})
        app_spec["domains"] = [d for d in app_spec.get("domains", []) if d.get("domain") != domain]
        await self._update_spec(app_id, app_spec)

    async def list_custom_domains(self) -> list[DomainResult]:
        app = await self._app(await self._app_id())
        live = {d.get("spec", {}).get("domain", ""): d for d in app.get("domains", []) if isinstance(d, dict)}
        return [_domain_result(d, live) for d in (app.get("spec") or {}).get("domains", [])]


class DigitalOceanStaticSite(_AppPlatform, StaticWebAppHandle):
    def app_spec(self) -> dict[str, Any]:
        spec = self.spec
        site: dict[str, Any] = {
            "name": self.name,
            "source_dir": "/",
            "build_command": spec.build_command,
            "output_dir": spec.output_directory,
        }
        if spec.repository_url:
            site["github"] = {
                "repo": spec.repository_url.removeprefix("https://github.com/"),
                "branch": spec.branch,
                "deploy_on_push": True,
            }
        return {"name": self.name, "region": self.region, "static_sites": [site]}

    async def create(self) -> StaticWebAppResult:
        app_id, hostname = await self._create_app(self.app_spec())
        return StaticWebAppResult(
            id=app_id,
            name=self.name,
            default_hostname=hostname,
            repository_url=self.spec.repository_url,
        )


def _envs(variables: dict[str, str]) -> list[dict[str, str]]:
    return [{"key": k, "value": v, "scope": "RUN_AND_BUILD_TIME"} for k, v in sorted(variables.items())]


class DigitalOceanAppService(_AppPlatform, AppServiceHandle):
    fallback_prefix = "do-app-service"

    def app_spec(self) -> dict[str, Any]:
        spec = self.spec
        service = {
            "name": self.name,
            "instance_size_slug": size_for(ProviderKind.DIGITALOCEAN, ResourceKind.APP_SERVICE, spec.tier),
            "instance_count": 1,
            "http_port": spec.http_port,
            "envs": _envs(spec.environment_variables),
        }
        return {"name": self.name, "region": self.region, "services": [service]}

    async def create(self) -> AppServiceResult:
        app_id, hostname = await self._create_app(self.app_spec())
        return AppServiceResult(id=app_id, name=self.name, hostname=hostname)

    async def set_environment_variables(self, variables: dict[str, str]) -> None:
        app_id = await self._app_id()
        app_spec = dict((await self._app(app_id)).get("spec") or self.app_spec())
        services = [dict(s) for s in app_spec.get("services", [])] or [self.app_spec()["services"][0]]
        merged = {e["key"]: e.get("value", "") for e in services[0].get("envs", [])}
        merged.update(variables)
        services[0]["envs"] = _envs(merged)
        app_spec["services"] = services
        await self._update_spec(app_id, app_spec)

    async def get_environment_variables(self) -> dict[str, str]:
        app = await self._app(await self._app_id())
        services = (app.get("spec") or {}).get("services") or [{}]
        return {e["key"]: str(e.get("value", "")) for e in services[0].get("envs", []) if "key" in e}

    async def restart(self) -> None:
        app_id = await self._app_id()
        await self._call("restart", method="POST", path=f"/v2/apps/{app_id}/restart")

    async def get_logs(self, lines: int | None = None) -> str:
        """Signed URLs of the service's run logs, one per line; the API does not inline log text."""
        app_id = await self._app_id()
        params: dict[str, Any] = {"type": "RUN", "follow": "false"}
        if lines is not None:
            params["tail_lines"] = lines
        reply = await self._call(
            "logs", method="GET", path=f"/v2/apps/{app_id}/components/{self.name}/logs", params=params
        )
        urls = list(reply.get("historic_urls") or [])
        if reply.get("live_url"):
            urls.append(reply["live_url"])
        return "\n".join(urls)


class DigitalOceanCDN(_RestCalls, CDNHandle):
    """Spaces CDN endpoint. It joins no project; the project delete finds it by origin."""

    def _fallback_id(self) -> str:
        return f"do-cdn-{self.name}"

    async def _endpoint_id(self) -> str:
        return await self._lookup_id(
            "/v2/cdn/endpoints", "endpoints", lambda item: item.get("origin") == self.origin, self._fallback_id()
        )

    async def create(self) -> CDNResult:
        reply = await self._call(
            "create", method="POST", path="/v2/cdn/endpoints", params={"origin": self.origin, "ttl": CDN_TTL}
        )
        endpoint = reply.get("endpoint") or {}
        return CDNResult(
            id=endpoint.get("id") or self._fallback_id(),
            name=self.name,
            endpoint=endpoint.get("endpoint") or f"{self.name}.cdn.digitaloceanspaces.com",
        )

    async def delete(self) -> None:
        endpoint_id = await self._endpoint_id()
        await self._call("delete", method="DELETE", path=f"/v2/cdn/endpoints/{endpoint_id}")

    async def purge_cache(self, paths: list[str] | None = None) -> None:
        endpoint_id = await self._endpoint_id()
        await self._call(
            "purge", method="DELETE", path=f"/v2/cdn/endpoints/{endpoint_id}/cache", params={"files": paths or ["*"]}
        )

    async def add_custom_domain(self, domain: str) -> None:
        endpoint_id = await self._endpoint_id()
        await self._call(
            "add_domain", method="PUT", path=f"/v2/cdn/endpoints/{endpoint_id}", params={"custom_domain": domain}
        )


def _record_body(record: DNSRecord) -> dict[str, Any]:
    body: dict[str, Any] = {"type": record.type, "name": record.name, "data": record.value, "ttl": record.ttl}
    if record.type == "SRV":
        weight, port, target = record.value.split()
        body.update(data=target, weight=int(weight), port=int(port), priority=record.priority or 0)
    elif record.priority is not None or record.type == "MX":
        body["priority"] = record.priority if record.priority is not None else 10
    return body


def _record_from_api(item: dict[str, Any]) -> DNSRecord:
    value = str(item.get("data", ""))
    if item.get("type") == "SRV":
        value = f"{item.get('weight', 0)} {item.get('port', 0)} {value}"
    return DNSRecord(
        type=item["type"],
        name=item.get("name", "@"),
        value=value,
        ttl=int(item.get("ttl") or 3600),
        priority=item.get("priority"),
    )


class DigitalOceanDNSZone(_RestCalls, DNSZoneHandle):
    @property
    def _records_path(self) -> str:
        return f"/v2/domains/{self.name}/records"

    async def create(self) -> DNSZoneResult:
        await self._call("create", method="POST", path="/v2/domains", params={"name": self.name})
        await self._assign_to_project(f"do:domain:{self.name}")
        # Domains are addressed by name; DigitalOcean assigns no separate id.
        return DNSZoneResult(id=self.name, name=self.name, name_servers=list(naming.DO_NAME_SERVERS))

    async def delete(self) -> None:
        await self._call("delete", method="DELETE", path=f"/v2/domains/{self.name}")

    async def add_record(self, record: DNSRecord) -> None:
        await self._call("add_record", method="POST", path=self._records_path, params=_record_body(record))

    async def remove_record(self, record: DNSRecord) -> None:
        reply = await self._call("list_records", method="GET", path=self._records_path, params={"per_page": 200})
        matches = [
            item
            for item in reply.get("domain_records", [])
            if item.get("type") in _RECORD_TYPES and _record_from_api(item).model_dump(exclude={"ttl", "priority"})
            == record.model_dump(exclude={"ttl", "priority"})
        ]
        if not matches and "domain_records" in reply:
            raise ProviderAPIError(
                f"No {record.type} record {record.name!r} -> {record.value!r} in {self.name}",
                provider=ProviderKind.DIGITALOCEAN.value,
                operation="remove_record",
                status=404,
            )
        for item in matches:
            await self._call("remove_record", method="DELETE", path=f"{self._records_path}/{item['id']}")

    async def list_records(self) -> list[DNSRecord]:
        reply = await self._call("list_records", method="GET", path=self._records_path, params={"per_page": 200})
        return [_record_from_api(item) for item in reply.get("domain_records", []) if item.get("type") in _RECORD_TYPES]


class DigitalOceanSpaces(_RestCalls, StorageHandle):
    """Spaces bucket, driven through the S3-compatible `aws` CLI; project membership goes through the API."""

    @property
    def region(self) -> str:
        return self.config.region or naming.DEFAULT_DO_REGION

    @property
    def endpoint(self) -> str:
        return f"https://{naming.do_spaces_host(self.name, self.region)}"

    def _aws(self, *args: str) -> list[str]:
        return _spaces_command(self.region, *args)

    def _s3_uri(self, remote_path: str = "") -> str:
        return f"s3://{self.name}/{remote_path.lstrip('/')}"

    async def create(self) -> StorageResult:
        acl = "public-read" if self.spec.public else "private"
        await self._call("create", command=self._aws("s3api", "create-bucket", "--bucket", self.name, "--acl", acl))
        await self._assign_to_project(f"do:space:{self.name}")
        return StorageResult(id=f"do-spaces-{self.name}", name=self.name, endpoint=self.endpoint)

    async def delete(self) -> None:
        await self._call("delete", command=self._aws("s3", "rb", self._s3_uri(), "--force"))

    async def upload_file(self, local_path: str, remote_path: str) -> str:
        cmd = self._aws("s3", "cp", local_path, self._s3_uri(remote_path))
        if self.spec.public:
            cmd += ["--acl", "public-read"]
        await self._call("upload", command=cmd)
        return self.get_public_url(remote_path)

    async def download_file(self, remote_path: str, local_path: str) -> None:
        await self._call("download", command=self._aws("s3", "cp", self._s3_uri(remote_path), local_path))

    async def delete_file(self, remote_path: str) -> None:
        await self._call("delete_file", command=self._aws("s3", "rm", self._s3_uri(remote_path)))

    async def list_files(self, prefix: str | None = None) -> list[StorageFile]:
        args = ["s3api", "list-objects-v2", "--bucket", self.name, "--output", "json"]
        if prefix:
            args += ["--prefix", prefix]
        reply = await self._call("list", command=self._aws(*args))
        return [
            StorageFile(
                name=item["Key"],
                size=int(item.get("Size") or 0),
                last_modified=item.get("LastModified") or datetime.fromtimestamp(0, tz=timezone.utc),
                url=self.get_public_url(item["Key"]),
            )
            for item in reply.get("Contents", [])
            if "Key" in item
        ]

    def get_public_url(self, remote_path: str) -> str:
        return f"{self.endpoint}/{remote_path.lstrip('/')}"


class DigitalOceanProvider(Provider):
    kind = ProviderKind.DIGITALOCEAN
    default_region = naming.DEFAULT_DO_REGION
    handle_types = {
        ResourceKind.RESOURCE_GROUP: DigitalOceanProject,
        ResourceKind.DATABASE: DigitalOceanDatabase,
        ResourceKind.STATIC_WEB_APP: DigitalOceanStaticSite,
        ResourceKind.APP_SERVICE: DigitalOceanAppService,
        ResourceKind.CDN: DigitalOceanCDN,
        ResourceKind.DNS_ZONE: DigitalOceanDNSZone,
        ResourceKind.STORAGE: DigitalOceanSpaces,
    }

    @classmethod
    def validate_credentials(cls, config: ProviderConfig) -> None:
        if not config.credential("api_token"):
            raise ConfigurationError("DigitalOcean API token is required")
