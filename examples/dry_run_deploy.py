"""Dry-run deployment example.

Deploys the same stack to Azure and DigitalOcean with recording executors, then prints
the results and the provider calls a live deployment would have made.
"""

import asyncio

from stackwright import ProviderConfig, ProviderKind, StackConfig, multi_provider_deploy
from stackwright.executor import DryRunExecutor

config = StackConfig.from_yaml(
    """
resource_group:
  name: acme
  location: nyc3
database:
  name: acme-db
  version: "15"
  admin_username: admin
  admin_password: change-me
app_service:
  name: acme-api
  runtime: node
  runtime_version: 18-lts
  environment_variables:
    NODE_ENV: production
"""
)

providers = [
    ProviderConfig(provider="digitalocean", credentials={"api_token": "dop_v1_example"}),
    ProviderConfig(provider="azure"),
]
executors = {kind: DryRunExecutor() for kind in ProviderKind}

results = asyncio.run(multi_provider_deploy("acme", config, providers, executors))

for kind, result in results.items():
    print(f"{kind.value}: {'ok' if result.success else 'failed'} in {result.duration:.2f}s")
    for resource_kind in result.resources.kinds():
        res = result.resources.get(resource_kind)
        print(f"  {resource_kind.value}: {res.name} ({res.id})")
    print("  calls:")
    for op in executors[kind].operations:
        print(f"    {op.describe()}")
    print()
