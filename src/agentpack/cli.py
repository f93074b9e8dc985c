import logging
import os

import click

from agentpack import __version__
from agentpack.commands.install import install
from agentpack.commands.list import list_installed_packages
from agentpack.commands.save import save
from agentpack.commands.uninstall import uninstall

CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])

# Enable debug logging if AGENTPACK_DEBUG environment variable is set
if os.getenv("AGENTPACK_DEBUG"):
    logging.basicConfig(level=logging.DEBUG, format="[DEBUG %(name)s:%(lineno)d] %(message)s")


@click.group(invoke_without_command=True, context_settings=CONTEXT_SETTINGS)
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Install AI assistant configuration packages into workspaces."""
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


cli.add_command(install)
cli.add_command(list_installed_packages)
cli.add_command(save)
cli.add_command(uninstall)


if __name__ == "__main__":
    cli()
