"""digitalocean provider emitters, one per resource kind."""

from __future__ import annotations

from stackwright import naming
from stackwright.exporter.hcl import Block, Expr
from stackwright.exporter.terraform import ResourceDescription, Variable
from stackwright.models import ProviderKind, ResourceKind, StackConfig
from stackwright.providers.digitalocean import CDN_TTL
from stackwright.tiers import size_for

PROVIDER = ProviderKind.DIGITALOCEAN
REQUIRED_PROVIDER = {"source": "digitalocean/digitalocean", "version": "~> 2.0"}

_PROJECT_ID = Expr("digitalocean_project.main.id")
# DigitalOcean tags are flat strings
_TAG_LIST = Expr('[for k, v in var.tags : "${k}:${v}"]')


def _ingress_host(resource: str) -> Expr:
    return Expr(f'trimprefix({resource}.default_ingress, "https://")')


def preamble(config: StackConfig) -> tuple[list[Block], list[Variable]]:
    terraform = Block("terraform").block(
        Block("required_providers").attr("digitalocean", dict(REQUIRED_PROVIDER))
    )
    provider = Block("provider", ("digitalocean",)).attr("token", Expr("var.do_token"))
    variables = [Variable("do_token", "DigitalOcean API token", sensitive=True)]
    if config.storage is not None:
        provider.attr("spaces_access_id", Expr("var.spaces_access_id"))
        provider.attr("spaces_secret_key", Expr("var.spaces_secret_key"))
        variables += [
            Variable("spaces_access_id", "Spaces access key", sensitive=True),
            Variable("spaces_secret_key", "Spaces secret key", sensitive=True),
        ]
    return [terraform, provider], variables


def resource_group(config: StackConfig) -> ResourceDescription:
    spec = config.resource_group
    block = (
        Block("resource", ("digitalocean_project", "main"))
        .attr("name", Expr("var.resource_group_name"))
        .attr("description", Expr('"Project for ${var.resource_group_name}"'))
        .attr("purpose", "Web Application")
        .attr("environment", "Production")
    )
    variables = [
        Variable("resource_group_name", "Project name", default=spec.name),
        Variable("location", "Datacenter region for databases and Spaces", default=spec.location),
        Variable("tags", "Tags applied to databases, as key:value", type="map(string)", default=dict(spec.tags)),
    ]
    if config.static_web_app is not None or config.app_service is not None:
        variables.append(
            Variable("app_region", "App Platform region", default=naming.do_app_region(spec.location))
        )
    return ResourceDescription(
        kind=ResourceKind.RESOURCE_GROUP,
        blocks=[block],
        variables=variables,
        outputs={
            "id": Expr("digitalocean_project.main.id"),
            "name": Expr("digitalocean_project.main.name"),
        },
    )


def database(config: StackConfig) -> ResourceDescription:
    spec = config.database
    cluster = (
        Block("resource", ("digitalocean_database_cluster", "database"))
        .attr("name", Expr("var.db_name"))
        .attr("engine", spec.engine)
        .attr("version", spec.version)
        .attr("size", Expr("var.db_size"))
        .attr("region", Expr("var.location"))
        .attr("node_count", 1)
        .attr("storage_size_mib", spec.storage_gb * 1024)
        .attr("project_id", _PROJECT_ID)
        .attr("tags", _TAG_LIST)
    )
    blocks = [cluster]
    cluster_id = Expr("digitalocean_database_cluster.database.id")
    if spec.admin_username != "doadmin":
        blocks.append(
            Block("resource", ("digitalocean_database_user", "database"))
            .attr("cluster_id", cluster_id)
            .attr("name", Expr("var.db_admin_username"))
        )
    if spec.allowed_ips:
        firewall = Block("resource", ("digitalocean_database_firewall", "database")).attr("cluster_id", cluster_id)
        for ip in spec.allowed_ips:
            firewall.block(Block("rule").attr("type", "ip_addr").attr("value", ip))
        blocks.append(firewall)

    host = "digitalocean_database_cluster.database.host"
    port = "digitalocean_database_cluster.database.port"
    return ResourceDescription(
        kind=ResourceKind.DATABASE,
        blocks=blocks,
        variables=[
            Variable("db_name", "Database cluster name", default=spec.name),
            Variable("db_size", "Database cluster size slug", default=size_for(PROVIDER, ResourceKind.DATABASE, spec.tier)),
            Variable("db_admin_username", "Database user the application connects as", default=spec.admin_username),
        ],
        outputs={
            "id": cluster_id,
            "host": Expr(host),
            "port": Expr(port),
            "admin_username": Expr("var.db_admin_username"),
            "connection_string": Expr(
                f'"{spec.engine}://${{var.db_admin_username}}@${{{host}}}:${{{port}}}/defaultdb?sslmode=require"'
            ),
        },
    )


def static_web_app(config: StackConfig) -> ResourceDescription:
    spec = config.static_web_app
    site = (
        Block("static_site")
        .attr("name", Expr("var.static_site_name"))
        .attr("source_dir", "/")
        .attr("build_command", spec.build_command)
        .attr("output_dir", spec.output_directory)
    )
    if spec.repository_url:
        site.block(
            Block("github")
            .attr("repo", spec.repository_url.removeprefix("https://github.com/"))
            .attr("branch", spec.branch)
            .attr("deploy_on_push", True)
        )
    app = (
        Block("resource", ("digitalocean_app", "static_web_app"))
        .attr("project_id", _PROJECT_ID)
        .block(
            Block("spec")
            .attr("name", Expr("var.static_site_name"))
            .attr("region", Expr("var.app_region"))
            .block(site)
        )
    )
    return ResourceDescription(
        kind=ResourceKind.STATIC_WEB_APP,
        blocks=[app],
        variables=[Variable("static_site_name", "App Platform static site name", default=spec.name)],
        outputs={
            "id": Expr("digitalocean_app.static_web_app.id"),
            "default_hostname": _ingress_host("digitalocean_app.static_web_app"),
        },
    )


def app_service(config: StackConfig) -> ResourceDescription:
    spec = config.app_service
    service = (
        Block("service")
        .attr("name", Expr("var.app_name"))
        .attr("instance_size_slug", Expr("var.app_size"))
        .attr("instance_count", 1)
        .attr("http_port", spec.http_port)
    )
    for key, value in sorted(spec.environment_variables.items()):
        service.block(Block("env").attr("key", key).attr("value", value).attr("scope", "RUN_AND_BUILD_TIME"))
    app = (
        Block("resource", ("digitalocean_app", "app_service"))
        .attr("project_id", _PROJECT_ID)
        .block(
            Block("spec")
            .attr("name", Expr("var.app_name"))
            .attr("region", Expr("var.app_region"))
            .block(service)
        )
    )
    return ResourceDescription(
        kind=ResourceKind.APP_SERVICE,
        blocks=[app],
        variables=[
            Variable("app_name", "App Platform service name", default=spec.name),
            Variable(
                "app_size",
                "App Platform instance size slug",
                default=size_for(PROVIDER, ResourceKind.APP_SERVICE, spec.tier),
            ),
        ],
        outputs={
            "id": Expr("digitalocean_app.app_service.id"),
            "hostname": _ingress_host("digitalocean_app.app_service"),
        },
    )


def cdn(config: StackConfig) -> ResourceDescription:
    if config.cdn.origin:
        origin: Expr | str = config.cdn.origin
    else:
        # Validates that a compute origin exists
        naming.cdn_origin(PROVIDER, config)
        if naming.origin_kind(config) is ResourceKind.STATIC_WEB_APP:
            origin = _ingress_host("digitalocean_app.static_web_app")
        else:
            origin = _ingress_host("digitalocean_app.app_service")
    block = Block("resource", ("digitalocean_cdn", "cdn")).attr("origin", origin).attr("ttl", CDN_TTL)
    # Spaces CDN endpoints are keyed by origin and carry no name of their own
    return ResourceDescription(
        kind=ResourceKind.CDN,
        blocks=[block],
        outputs={
            "id": Expr("digitalocean_cdn.cdn.id"),
            "endpoint": Expr("digitalocean_cdn.cdn.endpoint"),
        },
    )


def _project_member(label: str, urn: str) -> Block:
    # For resources that take no project_id of their own
    return (
        Block("resource", ("digitalocean_project_resources", label))
        .attr("project", _PROJECT_ID)
        .attr("resources", [Expr(urn)])
    )


def dns_zone(config: StackConfig) -> ResourceDescription:
    block = Block("resource", ("digitalocean_domain", "dns_zone")).attr("name", Expr("var.dns_zone_name"))
    return ResourceDescription(
        kind=ResourceKind.DNS_ZONE,
        blocks=[block, _project_member("dns_zone", "digitalocean_domain.dns_zone.urn")],
        variables=[Variable("dns_zone_name", "Domain name", default=config.dns_zone.name)],
        outputs={
            "id": Expr("digitalocean_domain.dns_zone.id"),
            "name_servers": list(naming.DO_NAME_SERVERS),
        },
    )


def storage(config: StackConfig) -> ResourceDescription:
    spec = config.storage
    block = (
        Block("resource", ("digitalocean_spaces_bucket", "storage"))
        .attr("name", Expr("var.storage_name"))
        .attr("region", Expr("var.location"))
        .attr("acl", "public-read" if spec.public else "private")
    )
    return ResourceDescription(
        kind=ResourceKind.STORAGE,
        blocks=[block, _project_member("storage", "digitalocean_spaces_bucket.storage.urn")],
        variables=[Variable("storage_name", "Spaces bucket name", default=spec.name)],
        outputs={
            "id": Expr("digitalocean_spaces_bucket.storage.id"),
            "endpoint": Expr('"https://${digitalocean_spaces_bucket.storage.bucket_domain_name}"'),
        },
    )


EMITTERS = {
    ResourceKind.RESOURCE_GROUP: resource_group,
    ResourceKind.DATABASE: database,
    ResourceKind.STATIC_WEB_APP: static_web_app,
    ResourceKind.APP_SERVICE: app_service,
    ResourceKind.CDN: cdn,
    ResourceKind.DNS_ZONE: dns_zone,
    ResourceKind.STORAGE: storage,
}
