"""
Read-only commands: component versions and tag names.
"""

import click

from ..cli_utils import add_common_options, release_config, standard_command
from ..domain.project import PROFILES, get_profile
from ..domain.tag import AutoDeployBranch, build_tag_name
from ..services.component_versions import ComponentVersionResolver
from ..services.sanitizer import versions_for


@click.command('versions')
@click.argument('commit')
@click.option('--format', 'packager', type=click.Choice(sorted(PROFILES)),
              help='Sanitize for a packager (default: raw resolved versions)')
@add_common_options('security', 'pretty', 'verbose')
@standard_command
def versions_cmd(commit, packager, security, pretty, verbose):
    """Show component versions of the upstream project at COMMIT.

    \b
    Examples:
        # Versions as pinned upstream
        autodeploy versions 36b70d9ce7c73ca001be48727d35d49813d2cc4f
        # As the container packager expects them
        autodeploy versions master --format cng --pretty
    """
    config = release_config(security=security, verbose=verbose)
    versions = ComponentVersionResolver(config).resolve(commit)

    if packager:
        versions = versions_for(versions, get_profile(packager))

    if pretty:
        from rich.console import Console
        from rich.table import Table

        table = Table(title=f"Component versions at {commit}", show_header=True)
        table.add_column("Component", style="cyan")
        table.add_column("Version")
        for key, value in versions.items():
            table.add_row(key, value)
        Console().print(table)
        return None

    return versions


@click.command('tag-name')
@click.argument('branch')
@click.option('--upstream-ref', required=True, help='Upstream commit being released')
@click.option('--timestamp', required=True, help='Commit time of the branch head (ISO 8601)')
@click.option('--packager-ref', help='Packager branch head, for packagers that include it')
@standard_command
def tag_name_cmd(branch, upstream_ref, timestamp, packager_ref):
    """Print the auto-deploy tag name for BRANCH.

    \b
    Examples:
        autodeploy tag-name 12-9-auto-deploy-20200226 \\
            --upstream-ref 36b70d9ce7c --timestamp 2019-07-02T10:14
    """
    try:
        parsed = AutoDeployBranch.parse(branch)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint='BRANCH')

    return {'tag': build_tag_name(parsed, timestamp, upstream_ref, packager_ref)}
