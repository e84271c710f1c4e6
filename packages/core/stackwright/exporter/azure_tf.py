"""azurerm emitters, one per resource kind."""

from __future__ import annotations

from stackwright import naming
from stackwright.exporter.hcl import Block, Expr
from stackwright.exporter.terraform import ResourceDescription, Variable
from stackwright.models import ProviderKind, ResourceKind, StackConfig
from stackwright.providers.azure import BLOB_CONTAINER, CDN_SKU
from stackwright.tiers import azure_flexible_sku_name, size_for

PROVIDER = ProviderKind.AZURE
REQUIRED_PROVIDER = {"source": "hashicorp/azurerm", "version": "= 4.14.0"}

_RG_NAME = Expr("azurerm_resource_group.main.name")
_RG_LOCATION = Expr("azurerm_resource_group.main.location")
_TAGS = Expr("var.tags")
_SERVER_TYPES = {"postgres": "azurerm_postgresql_flexible_server", "mysql": "azurerm_mysql_flexible_server"}


def _in_group(resource_type: str, label: str, name: Expr | str) -> Block:
    return (
        Block("resource", (resource_type, label))
        .attr("name", name)
        .attr("resource_group_name", _RG_NAME)
        .attr("location", _RG_LOCATION)
    )


def preamble(config: StackConfig) -> tuple[list[Block], list[Variable]]:
    terraform = Block("terraform").block(
        Block("required_providers").attr("azurerm", dict(REQUIRED_PROVIDER))
    )
    provider = (
        Block("provider", ("azurerm",))
        .block(Block("features"))
        .attr("subscription_id", Expr("var.subscription_id"))
    )
    variables = [
        Variable(
            "subscription_id",
            "Azure subscription; null falls back to ARM_SUBSCRIPTION_ID",
            default=Expr("null"),
        )
    ]
    return [terraform, provider], variables


def resource_group(config: StackConfig) -> ResourceDescription:
    spec = config.resource_group
    block = (
        Block("resource", ("azurerm_resource_group", "main"))
        .attr("name", Expr("var.resource_group_name"))
        .attr("location", Expr("var.location"))
        .attr("tags", _TAGS)
    )
    return ResourceDescription(
        kind=ResourceKind.RESOURCE_GROUP,
        blocks=[block],
        variables=[
            Variable("resource_group_name", "Resource group name", default=spec.name),
            Variable("location", "Azure region for every resource", default=spec.location),
            Variable("tags", "Tags applied to every resource", type="map(string)", default=dict(spec.tags)),
        ],
        outputs={
            "id": Expr("azurerm_resource_group.main.id"),
            "name": Expr("azurerm_resource_group.main.name"),
        },
    )


def database(config: StackConfig) -> ResourceDescription:
    spec = config.database
    flavour = naming.azure_database_flavour(spec.engine)
    server_type = _SERVER_TYPES[flavour]
    server = f"{server_type}.database"

    block = (
        _in_group(server_type, "database", Expr("var.db_name"))
        .attr("version", spec.version)
        .attr("sku_name", Expr("var.db_size"))
        .attr("administrator_login", Expr("var.db_admin_username"))
        .attr("administrator_password", Expr("var.db_admin_password"))
    )
    if flavour == "postgres":
        block.attr("storage_mb", spec.storage_gb * 1024)
    else:
        block.block(Block("storage").attr("size_gb", spec.storage_gb))
    block.attr("tags", _TAGS)

    blocks = [block]
    for rule_name, address in naming.azure_firewall_rules(spec.allowed_ips):
        rule = Block("resource", (f"{server_type}_firewall_rule", rule_name.replace("-", "_"))).attr("name", rule_name)
        if flavour == "postgres":
            rule.attr("server_id", Expr(f"{server}.id"))
        else:
            rule.attr("resource_group_name", _RG_NAME).attr("server_name", Expr(f"{server}.name"))
        rule.attr("start_ip_address", address).attr("end_ip_address", address)
        blocks.append(rule)

    port = naming.AZURE_DATABASE_PORTS[spec.engine]
    if flavour == "postgres":
        url = f'"postgresql://${{var.db_admin_username}}@${{{server}.fqdn}}:{port}/postgres?sslmode=require"'
    else:
        url = f'"mysql://${{var.db_admin_username}}@${{{server}.fqdn}}:{port}/mysql?ssl-mode=REQUIRED"'

    sku = size_for(PROVIDER, ResourceKind.DATABASE, spec.tier)
    return ResourceDescription(
        kind=ResourceKind.DATABASE,
        blocks=blocks,
        variables=[
            Variable("db_name", "Database server name", default=spec.name),
            Variable("db_size", "Flexible server SKU", default=azure_flexible_sku_name(sku)),
            Variable("db_admin_username", "Database administrator login", default=spec.admin_username),
            Variable("db_admin_password", "Database administrator password", sensitive=True),
        ],
        outputs={
            "id": Expr(f"{server}.id"),
            "host": Expr(f"{server}.fqdn"),
            "port": port,
            "admin_username": Expr("var.db_admin_username"),
            "connection_string": Expr(url),
        },
    )


def static_web_app(config: StackConfig) -> ResourceDescription:
    spec = config.static_web_app
    location = naming.azure_static_site_location(config.resource_group.location)
    block = (
        Block("resource", ("azurerm_static_web_app", "static_web_app"))
        .attr("name", Expr("var.static_site_name"))
        .attr("resource_group_name", _RG_NAME)
        .attr("location", location)
        .attr("sku_tier", Expr("var.static_site_size"))
        .attr("sku_size", Expr("var.static_site_size"))
    )
    variables = [
        Variable("static_site_name", "Static Web App name", default=spec.name),
        Variable(
            "static_site_size",
            "Static Web App SKU tier",
            default=size_for(PROVIDER, ResourceKind.STATIC_WEB_APP, spec.tier),
        ),
    ]
    if spec.repository_url:
        # azurerm needs url, branch and token together
        block.attr("repository_url", spec.repository_url)
        block.attr("repository_branch", spec.branch)
        block.attr("repository_token", Expr("var.static_site_repository_token"))
        variables.append(
            Variable("static_site_repository_token", "Token Azure uses to link the repository", sensitive=True)
        )
    block.attr("tags", _TAGS)
    return ResourceDescription(
        kind=ResourceKind.STATIC_WEB_APP,
        blocks=[block],
        variables=variables,
        outputs={
            "id": Expr("azurerm_static_web_app.static_web_app.id"),
            "default_hostname": Expr("azurerm_static_web_app.static_web_app.default_host_name"),
        },
    )


def app_service(config: StackConfig) -> ResourceDescription:
    spec = config.app_service
    plan = (
        _in_group("azurerm_service_plan", "app_service", Expr('"${var.app_name}-plan"'))
        .attr("os_type", "Linux")
        .attr("sku_name", Expr("var.app_size"))
        .attr("tags", _TAGS)
    )
    site_config = (
        Block("site_config")
        .attr("always_on", spec.always_on)
        .block(Block("application_stack").attr(f"{spec.runtime}_version", spec.runtime_version))
    )
    app = (
        _in_group("azurerm_linux_web_app", "app_service", Expr("var.app_name"))
        .attr("service_plan_id", Expr("azurerm_service_plan.app_service.id"))
        .attr("app_settings", dict(spec.environment_variables))
        .block(site_config)
        .attr("tags", _TAGS)
    )
    return ResourceDescription(
        kind=ResourceKind.APP_SERVICE,
        blocks=[plan, app],
        variables=[
            Variable("app_name", "App Service name", default=spec.name),
            Variable(
                "app_size",
                "App Service plan SKU",
                default=size_for(PROVIDER, ResourceKind.APP_SERVICE, spec.tier),
            ),
        ],
        outputs={
            "id": Expr("azurerm_linux_web_app.app_service.id"),
            "hostname": Expr("azurerm_linux_web_app.app_service.default_hostname"),
        },
    )


def _cdn_origin(config: StackConfig) -> Expr | str:
    if config.cdn.origin:
        return config.cdn.origin
    # Validates that a compute origin exists
    naming.cdn_origin(PROVIDER, config)
    if naming.origin_kind(config) is ResourceKind.STATIC_WEB_APP:
        return Expr("azurerm_static_web_app.static_web_app.default_host_name")
    return Expr("azurerm_linux_web_app.app_service.default_hostname")


def cdn(config: StackConfig) -> ResourceDescription:
    spec = config.cdn
    origin = _cdn_origin(config)
    profile = (
        Block("resource", ("azurerm_cdn_profile", "cdn"))
        .attr("name", Expr('"${var.cdn_name}-profile"'))
        .attr("resource_group_name", _RG_NAME)
        .attr("location", "global")
        .attr("sku", CDN_SKU)
        .attr("tags", _TAGS)
    )
    endpoint = (
        Block("resource", ("azurerm_cdn_endpoint", "cdn"))
        .attr("name", Expr("var.cdn_name"))
        .attr("profile_name", Expr("azurerm_cdn_profile.cdn.name"))
        .attr("resource_group_name", _RG_NAME)
        .attr("location", "global")
        .attr("origin_host_header", origin)
        .block(Block("origin").attr("name", "origin").attr("host_name", origin))
    )
    return ResourceDescription(
        kind=ResourceKind.CDN,
        blocks=[profile, endpoint],
        variables=[Variable("cdn_name", "CDN endpoint name", default=spec.name)],
        outputs={
            "id": Expr("azurerm_cdn_endpoint.cdn.id"),
            "endpoint": Expr("azurerm_cdn_endpoint.cdn.fqdn"),
        },
    )


def dns_zone(config: StackConfig) -> ResourceDescription:
    block = (
        Block("resource", ("azurerm_dns_zone", "dns_zone"))
        .attr("name", Expr("var.dns_zone_name"))
        .attr("resource_group_name", _RG_NAME)
        .attr("tags", _TAGS)
    )
    return ResourceDescription(
        kind=ResourceKind.DNS_ZONE,
        blocks=[block],
        variables=[Variable("dns_zone_name", "DNS zone (domain) name", default=config.dns_zone.name)],
        outputs={
            "id": Expr("azurerm_dns_zone.dns_zone.id"),
            "name_servers": Expr("azurerm_dns_zone.dns_zone.name_servers"),
        },
    )


def storage(config: StackConfig) -> ResourceDescription:
    spec = config.storage
    account = (
        _in_group("azurerm_storage_account", "storage", Expr("var.storage_name"))
        .attr("account_tier", "Standard")
        .attr("account_replication_type", "LRS")
        .attr("account_kind", "StorageV2")
        .attr("allow_nested_items_to_be_public", spec.public)
        .attr("tags", _TAGS)
    )
    container = (
        Block("resource", ("azurerm_storage_container", "storage"))
        .attr("name", BLOB_CONTAINER)
        .attr("storage_account_id", Expr("azurerm_storage_account.storage.id"))
        .attr("container_access_type", "blob" if spec.public else "private")
    )
    return ResourceDescription(
        kind=ResourceKind.STORAGE,
        blocks=[account, container],
        variables=[
            Variable(
                "storage_name",
                "Storage account name (3-24 lowercase letters and digits)",
                default=naming.azure_storage_account_name(spec.name),
            )
        ],
        outputs={
            "id": Expr("azurerm_storage_account.storage.id"),
            "endpoint": Expr('trimsuffix(azurerm_storage_account.storage.primary_blob_endpoint, "/")'),
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
