import typer

from stackwright_cli import __version__
from stackwright_cli.commands.deploy_cmd import deploy
from stackwright_cli.commands.destroy_cmd import destroy
from stackwright_cli.commands.info_cmd import detect, tiers
from stackwright_cli.commands.init_cmd import init
from stackwright_cli.commands.terraform_cmd import export, terraform
from stackwright_cli.utils import setup_logging


def _version_callback(value: bool) -> None:
    if value:
        print(f"stackwright {__version__}")
        raise typer.Exit()


app = typer.Typer(
    name="stackwright",
    help="Declare a web stack once; deploy it or generate Terraform for Azure and DigitalOcean",
    no_args_is_help=True,
)


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", "-V", help="Show version", callback=_version_callback, is_eager=True
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["json"] = json_output
    setup_logging(verbose)


app.command()(init)
app.command()(deploy)
app.command()(destroy)
app.command()(terraform)
app.command()(export)
app.command()(detect)
app.command()(tiers)
