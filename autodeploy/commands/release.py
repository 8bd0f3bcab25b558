"""
Release commands for autodeploy.

Provides the mutating steps of the auto-deploy cycle:
- run: propagate component versions and tag every packager
- create-branches: cut a new auto-deploy branch everywhere
"""

import json
import sys

import click

from ..cli_utils import add_common_options, release_config, standard_command
from ..domain.project import PROFILES
from ..domain.tag import AutoDeployBranch
from ..domain.version import Version
from ..exit_codes import (
    PARTIAL_SUCCESS,
    SUCCESS,
    CommandError,
    PartialSuccessError,
    exit_code_for_summary,
)
from ..services.auto_deploy_service import AutoDeployOptions, AutoDeployService
from ..services.branch_service import BranchService


@click.command('run')
@click.argument('branch')
@click.option('--commit', help='Upstream commit to release (default: latest passing commit on BRANCH upstream)')
@click.option('--packager', '-p', 'packagers', multiple=True, type=click.Choice(sorted(PROFILES)),
              help='Packager to release (repeatable, default: all)')
@click.option('--parallel', '-j', type=int, default=None,
              help='Packagers processed at once (default: general.max_workers)')
@add_common_options('dry_run', 'security', 'pretty', 'verbose')
@standard_command
def run_cmd(branch, commit, packagers, parallel, dry_run, security, pretty, verbose):
    """Propagate component versions to BRANCH and tag each packager.

    Running twice against the same upstream commit is safe: the second run
    finds nothing to commit and every branch head already tagged.

    \b
    Examples:
        # Preview a run
        autodeploy run 12-9-auto-deploy-20200226 --dry-run
        # Release only the Omnibus packager from a given commit
        autodeploy run 12-9-auto-deploy-20200226 -p omnibus --commit 36b70d9ce7c
    """
    config = release_config(dry_run=dry_run, security=security, verbose=verbose)
    if not AutoDeployBranch.parse(branch).is_auto_deploy:
        raise ValueError(f"{branch} is not an auto-deploy branch")

    options = AutoDeployOptions(
        branch=branch,
        commit=commit,
        packagers=tuple(packagers) or tuple(PROFILES),
        parallel=parallel or config.max_workers,
    )
    service = AutoDeployService(config)
    progress_iter = service.run(options)

    if pretty:
        _output_pretty(service, progress_iter, config.dry_run, "Auto-deploy", [("Branch", branch)])
    else:
        _output_json(service, progress_iter)

    _raise_for_result(service.last_result)
    return None


@click.command('create-branches')
@click.option('--branch', help='Branch name (default: derived from --version and today)')
@click.option('--version', 'version', help='Milestone version, e.g. 12.9')
@add_common_options('dry_run', 'security', 'pretty', 'verbose')
@standard_command
def create_branches_cmd(branch, version, dry_run, security, pretty, verbose):
    """Create an auto-deploy branch on the upstream project and every packager.

    \b
    Examples:
        autodeploy create-branches --version 12.9 --dry-run
        autodeploy create-branches --branch 12-9-auto-deploy-20200226
    """
    if not branch and not version:
        raise click.UsageError("Provide --branch or --version")

    config = release_config(dry_run=dry_run, security=security, verbose=verbose)
    if not branch:
        branch = AutoDeployBranch.name_for(Version.parse(version)).name

    service = BranchService(config)
    progress_iter = service.create_branches(branch)

    if pretty:
        _output_pretty(service, progress_iter, config.dry_run, "Create branches", [("Branch", branch)])
    else:
        _output_json(service, progress_iter)

    _raise_for_result(service.last_result)
    return None


def _raise_for_result(result):
    if result is None:
        return

    exit_code = exit_code_for_summary(result.successful + result.skipped, result.failed)
    if exit_code == PARTIAL_SUCCESS:
        raise PartialSuccessError(
            f"{result.failed} of {result.total} failed",
            succeeded=result.successful,
            failed=result.failed,
        )
    if exit_code != SUCCESS:
        raise CommandError(f"All {result.failed} failed", exit_code)


def _output_json(service, progress_iter):
    """JSONL details on stdout, progress on stderr."""
    for progress in progress_iter:
        print(progress, file=sys.stderr)

    result = service.last_result
    if result:
        for detail in result.details:
            print(json.dumps(detail.to_dict()), flush=True)
        print(json.dumps(result.to_dict()), flush=True)


def _output_pretty(service, progress_iter, dry_run, title, extra_headers=None):
    """Rich formatted output for any service that yields progress and produces OperationSummary."""
    from rich.console import Console
    from rich.progress import Progress, SpinnerColumn, TextColumn
    from rich.table import Table

    console = Console()
    mode = "[bold yellow]DRY RUN[/bold yellow] " if dry_run else ""

    console.print(f"\n{mode}[bold]{title}[/bold]")
    for label, value in extra_headers or []:
        console.print(f"[bold]{label}:[/bold] {value}")
    console.print()

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task("Processing...", total=None)

        for message in progress_iter:
            progress.update(task, description=message)
            progress.console.print(message)

    result = service.last_result
    if not result:
        console.print(f"[red]{title} failed - no result[/red]")
        return

    table = Table(title=f"{mode}{title} Summary", show_header=True)
    table.add_column("Project", style="cyan")
    table.add_column("Status")
    table.add_column("Action")

    styles = {'success': 'green', 'dry_run': 'yellow', 'skipped': 'yellow', 'failed': 'red'}
    for detail in result.details:
        style = styles.get(detail.status.value, 'white')
        table.add_row(detail.project, f"[{style}]{detail.status.value}[/{style}]", detail.action)

    console.print(table)

    if result.errors:
        console.print(f"\n[red]Errors ({len(result.errors)}):[/red]")
        for error in result.errors:
            console.print(f"  [red]•[/red] {error}")
