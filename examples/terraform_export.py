"""Export a stack to a Terraform module example.

No credentials needed: synthesis never talks to a provider.
"""

from stackwright import StackConfig, generate_terraform_module, write_terraform_files

stack_yaml = """
resource_group:
  name: acme
  location: nyc3
  tags:
    env: prod
database:
  name: acme-db
  engine: postgresql
  version: "15"
  tier: standard
  admin_username: admin
  admin_password: change-me
static_web_app:
  name: acme-web
  build_command: npm run build
  output_directory: dist
  repository_url: https://github.com/acme/web
cdn:
  name: acme-cdn
storage:
  name: acme-files
  public: false
"""

config = StackConfig.from_yaml(stack_yaml)

for provider in ("digitalocean", "azure"):
    module = generate_terraform_module(provider, config)
    print(f"--- {provider}: main.tf ---")
    print(module.main_tf[:600] + "...\n")
    print(f"--- {provider}: terraform.tfvars ---")
    print(module.terraform_tfvars)

# Paths and contents only; write them wherever you like
files = write_terraform_files(generate_terraform_module("digitalocean", config), "./infra")
for path in files:
    print(f"  {path}")
