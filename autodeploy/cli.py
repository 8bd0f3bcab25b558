#!/usr/bin/env python3

import click

from autodeploy import __version__
from autodeploy.commands.versions import versions_cmd, tag_name_cmd
from autodeploy.commands.release import run_cmd, create_branches_cmd


@click.group()
@click.version_option(version=__version__)
def cli():
    """autodeploy - Component version coordination for auto-deploy branches.

    Resolves the component versions pinned upstream, writes them to each
    packager's auto-deploy branch and tags the branch heads.
    """
    pass


cli.add_command(versions_cmd)
cli.add_command(tag_name_cmd)
cli.add_command(run_cmd)
cli.add_command(create_branches_cmd)


def main():
    cli()

if __name__ == "__main__":
    main()
