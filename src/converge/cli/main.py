"""Main CLI entry point."""

import sys
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from converge.cloud.ec2 import EC2Cloud
from converge.config.parser import Config, ConfigValidationError
from converge.orchestrator.executor import ExecutionStatus, ReconcileExecutor, RunResult
from converge.targets import AWSAPITarget, ReconcileContext, TerraformTarget
from converge.terraform.writer import TerraformWriter
from converge.utils.aws_client import AWSClientManager
from converge.utils.errors import ReconcileError
from converge.utils.logging import LogContext, get_logger, setup_logging

console = Console()
logger = get_logger(__name__)

STATUS_STYLES = {
    ExecutionStatus.SUCCESS: "[green]✓ applied[/green]",
    ExecutionStatus.NO_CHANGE: "[dim]no change[/dim]",
    ExecutionStatus.PLANNED: "[cyan]~ planned[/cyan]",
    ExecutionStatus.SKIPPED: "[yellow]- skipped[/yellow]",
    ExecutionStatus.FAILED: "[red]✗ failed[/red]",
}


@click.group()
@click.option('--profile', help='AWS profile to use')
@click.option('--region', help='AWS region (defaults to the project region)')
@click.option('--log-level', default='info', type=click.Choice(['debug', 'info', 'warning', 'error']))
@click.option('--config', 'config_path', default='converge.yaml', help='Path to declaration file')
@click.pass_context
def cli(ctx, profile, region, log_level, config_path):
    """Converge declared cloud resources."""
    ctx.ensure_object(dict)
    ctx.obj['profile'] = profile
    ctx.obj['region'] = region
    ctx.obj['log_level'] = log_level
    ctx.obj['config_path'] = config_path

    setup_logging(log_level)


def load_config(config_path: str) -> Config:
    """Load and validate configuration file."""
    try:
        return Config(config_path).load()
    except FileNotFoundError:
        console.print(f"[red]Error:[/red] Configuration file not found: {config_path}")
        sys.exit(1)
    except ConfigValidationError as e:
        console.print("[red]Configuration validation failed:[/red]\n")
        console.print(str(e))
        sys.exit(1)


def create_cloud(config: Config, profile: Optional[str], region: Optional[str]) -> EC2Cloud:
    """Create the EC2 collaborator for the configured account and region."""
    try:
        client_manager = AWSClientManager(profile=profile, region=region or config.project.region)
        return EC2Cloud.from_client_manager(
            client_manager,
            filter_tags=config.tag_manager().owner_filter_tags()
        )
    except Exception as e:
        console.print(f"[red]Error creating AWS session:[/red] {e}")
        sys.exit(1)


def print_progress(key: str, status: ExecutionStatus, message: Optional[str]) -> None:
    if status == ExecutionStatus.IN_PROGRESS:
        return
    line = f"  {STATUS_STYLES.get(status, status.value)} {key}"
    if message:
        line += f": {message}"
    console.print(line)


def print_changes(result: RunResult) -> None:
    """Display a table of per-field changes."""
    table = Table(title="Changes")
    table.add_column("Resource", style="cyan")
    table.add_column("Status")
    table.add_column("Field")
    table.add_column("From", style="red")
    table.add_column("To", style="green")

    for key, resource_result in sorted(result.results.items()):
        status = STATUS_STYLES.get(resource_result.status, resource_result.status.value)
        changes = resource_result.changes
        if changes is None or changes.is_empty():
            table.add_row(key, status, "", "", "")
            continue
        if changes.create:
            status += " [green](create)[/green]"
        for index, (field_name, values) in enumerate(changes.describe().items()):
            table.add_row(
                key if index == 0 else "",
                status if index == 0 else "",
                field_name,
                "" if values['from'] is None else str(values['from']),
                str(values['to'])
            )

    console.print(table)


def print_summary(result: RunResult, title: str) -> None:
    """Display run summary and failed resources; exits 1 on failure."""
    counts = "\n".join(
        f"{status.value.replace('_', ' ').capitalize()}: {result.count(status)}"
        for status in STATUS_STYLES
        if result.count(status)
    )
    if result.is_success():
        console.print(Panel.fit(
            f"[green]✓ {title} complete[/green]\n\n{counts}\nDuration: {result.duration:.2f}s",
            title=title,
            border_style="green"
        ))
        return

    console.print(Panel.fit(
        f"[red]✗ {title} failed[/red]\n\n{counts}\nDuration: {result.duration:.2f}s",
        title=title,
        border_style="red"
    ))
    console.print("\n[bold]Failed Resources:[/bold]")
    for key in result.get_failed_keys():
        error = result.results[key].error
        console.print(f"  [red]✗[/red] {key}: {error.to_user_message() if error else 'unknown error'}")
    sys.exit(1)


def run_graph(
    config: Config,
    context: ReconcileContext,
    dry_run: bool,
    parallel: bool,
    show_progress: bool = True
) -> RunResult:
    executor = ReconcileExecutor(context, progress_callback=print_progress if show_progress else None)
    operation = "plan" if dry_run else "apply"
    try:
        with LogContext(logger, operation=operation, target=context.target.name):
            return executor.run(config.build_graph(), dry_run=dry_run, parallel=parallel)
    except ReconcileError as e:
        console.print(f"[red]Error:[/red] {e.to_user_message()}")
        sys.exit(1)


@cli.command()
@click.option('--parallel/--sequential', default=True, help='Reconcile independent resources in parallel')
@click.pass_context
def plan(ctx, parallel):
    """Show what apply would change, without changing anything."""
    cfg = load_config(ctx.obj['config_path'])
    cloud = create_cloud(cfg, ctx.obj.get('profile'), ctx.obj.get('region'))

    console.print(Panel.fit(
        f"[bold]Planning {cfg.project.name}[/bold]\n"
        f"Region: {ctx.obj.get('region') or cfg.project.region}",
        title="Plan",
        border_style="cyan"
    ))

    result = run_graph(cfg, ReconcileContext(AWSAPITarget(cloud)), dry_run=True, parallel=parallel)
    console.print()
    print_changes(result)
    print_summary(result, "Plan")


@cli.command()
@click.option('--parallel/--sequential', default=True, help='Reconcile independent resources in parallel')
@click.option('--yes', '-y', is_flag=True, help='Skip confirmation prompt')
@click.pass_context
def apply(ctx, parallel, yes):
    """Converge live resources to the declaration."""
    cfg = load_config(ctx.obj['config_path'])
    cloud = create_cloud(cfg, ctx.obj.get('profile'), ctx.obj.get('region'))

    console.print(Panel.fit(
        f"[bold]Applying {cfg.project.name}[/bold]\n"
        f"Region: {ctx.obj.get('region') or cfg.project.region}\n"
        f"Mode: {'parallel' if parallel else 'sequential'}",
        title="Apply",
        border_style="cyan"
    ))

    if not yes and not click.confirm("Apply changes to live resources?"):
        console.print("[yellow]Cancelled[/yellow]")
        return

    result = run_graph(cfg, ReconcileContext(AWSAPITarget(cloud)), dry_run=False, parallel=parallel)
    console.print()
    print_changes(result)
    print_summary(result, "Apply")


@cli.command()
@click.option('--out', '-o', type=click.Path(dir_okay=False), help='Write Terraform JSON here instead of stdout')
@click.option('--check-existing', is_flag=True, help='Observe and validate against live state before emitting')
@click.option('--offline', is_flag=True, help='Do not contact AWS; shared resources are not discovered')
@click.pass_context
def render(ctx, out, check_existing, offline):
    """Render the declaration as Terraform JSON."""
    cfg = load_config(ctx.obj['config_path'])
    region = ctx.obj.get('region') or cfg.project.region
    cloud = None if offline else create_cloud(cfg, ctx.obj.get('profile'), ctx.obj.get('region'))

    writer = TerraformWriter(region=region)
    target = TerraformTarget(writer, cloud=cloud, check_existing=check_existing)
    # Stdout carries the document when no --out is given
    result = run_graph(cfg, ReconcileContext(target), dry_run=False, parallel=False, show_progress=bool(out))

    if result.has_failures():
        print_summary(result, "Render")

    if out:
        path = writer.write(out)
        console.print(f"[green]✓[/green] Wrote {path}")
    else:
        click.echo(writer.render(), nl=False)


if __name__ == '__main__':
    cli()
