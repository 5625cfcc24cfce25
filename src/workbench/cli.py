"""
Workbench CLI - Main entry point.

Provides commands for:
- Listing node types and their settings schema
- Validating workflow files
- Executing workflows
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click

from node_sdk.errors import WorkflowEngineError
from workflow_runtime import NodeStatus, WorkflowExecutionEngine, WorkflowGraph

from workbench.bootstrap import build_registry
from workbench.config import get_settings
from workbench.observability import setup_logging


logger = logging.getLogger("workbench")


def _load_graph(path: str, registry) -> WorkflowGraph:
    """Read a workflow file; exits with status 1 if it cannot be parsed."""
    try:
        return WorkflowGraph.from_json(Path(path).read_text(encoding="utf-8"), registry)
    except (WorkflowEngineError, ValueError) as e:
        click.echo(f"Error: cannot load workflow {path}: {e}", err=True)
        sys.exit(1)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option("-q", "--quiet", is_flag=True, help="Suppress output")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, quiet: bool):
    """Workbench - Dataflow workflow validation and execution."""
    ctx.ensure_object(dict)
    settings = get_settings()
    setup_logging(settings)

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    elif quiet:
        logging.getLogger().setLevel(logging.ERROR)

    ctx.obj["settings"] = settings
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet


def _registry(ctx: click.Context):
    if "registry" not in ctx.obj:
        ctx.obj["registry"] = build_registry(ctx.obj["settings"])
    return ctx.obj["registry"]


# ==============================================================================
# Node Commands
# ==============================================================================

@cli.group()
def nodes():
    """Inspect registered node types."""
    pass


@nodes.command("list")
@click.option("--category", "-c", help="Only show nodes of this category")
@click.pass_context
def nodes_list(ctx: click.Context, category: Optional[str]):
    """List registered node types."""
    registry = _registry(ctx)
    shown = 0
    for group, factories in sorted(registry.get_factories_by_category().items()):
        if category and group.lower() != category.lower():
            continue
        for factory in factories:
            metadata = factory.get_node_metadata()
            in_ports, out_ports = factory.get_port_counts()
            click.echo(
                f"{metadata.id:<22} {group:<14} {in_ports}->{out_ports}  "
                f"{metadata.name}: {factory.get_node_short_description()}"
            )
            shown += 1

    if shown == 0:
        click.echo(f"No node types found{f' in category {category}' if category else ''}", err=True)
        sys.exit(1)


@nodes.command("schema")
@click.argument("type_id")
@click.pass_context
def nodes_schema(ctx: click.Context, type_id: str):
    """
    Print the settings JSON schema of a node type.

    TYPE_ID: Node type id (e.g., 'filter')
    """
    registry = _registry(ctx)
    factory = registry.find_factory(type_id)
    if factory is None:
        click.echo(f"Error: Unknown node type: '{type_id}'", err=True)
        sys.exit(1)
    click.echo(json.dumps(factory.get_node_schema(), indent=2))


# ==============================================================================
# Workflow Commands
# ==============================================================================

@cli.group()
def workflow():
    """Validate and execute workflow files."""
    pass


@workflow.command("validate")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def workflow_validate(ctx: click.Context, file: str):
    """
    Validate a workflow file.

    Checks edges, ports and cycles, and that every node type is known.
    Prints the execution order on success.
    """
    graph = _load_graph(file, _registry(ctx))
    try:
        warnings = graph.validate()
    except WorkflowEngineError as e:
        click.echo(f"Invalid workflow: {e}", err=True)
        sys.exit(1)

    if warnings:
        for warning in warnings:
            click.echo(f"Invalid workflow: {warning}", err=True)
        sys.exit(1)

    click.echo(f"Workflow is valid: {len(graph)} nodes, {len(graph.edges)} edges")
    click.echo("Execution order: " + " -> ".join(graph.execution_order()))


@workflow.command("run")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--node", "-n", "node_id", help="Run only this node and its stale ancestors")
@click.option(
    "--output", "-o",
    type=click.Path(dir_okay=False),
    help="Write the workflow with its results to this file",
)
@click.pass_context
def workflow_run(ctx: click.Context, file: str, node_id: Optional[str], output: Optional[str]):
    """
    Execute a workflow file and print the run report as JSON.

    Examples:

        # Run everything
        workbench workflow run flow.json -o flow.out.json

        # Re-run one node, reusing results stored in the file
        workbench workflow run flow.out.json --node group_and_aggregate-1
    """
    settings = ctx.obj["settings"]
    registry = _registry(ctx)
    graph = _load_graph(file, registry)

    def on_status(changed_id: str, status: NodeStatus, outputs, error, dashboard) -> None:
        if status == NodeStatus.ERROR:
            click.echo(f"Node {changed_id} failed: {error}", err=True)

    engine = WorkflowExecutionEngine(
        registry,
        on_node_status_change=on_status,
        settings=settings.engine_settings(),
        workflow_id=Path(file).stem,
    )
    try:
        engine.set_graph(graph)
        if node_id:
            report = asyncio.run(engine.execute_node_with_dependencies(node_id))
        else:
            report = asyncio.run(engine.execute_workflow())
    except WorkflowEngineError as e:
        click.echo(f"Invalid workflow: {e}", err=True)
        sys.exit(1)

    if output:
        document = graph.to_document(format_version=settings.workflow_format_version)
        Path(output).write_text(document.to_json(indent=2), encoding="utf-8")
        if not ctx.obj["quiet"]:
            click.echo(f"Results written to {output}", err=True)

    click.echo(json.dumps(report.to_dict(), indent=2))
    if not report.is_success:
        sys.exit(1)


def main():
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
