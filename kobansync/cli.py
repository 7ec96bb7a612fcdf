"""Command line interface for running kobansync workers and inspecting workflows."""

from __future__ import annotations

import asyncio
import importlib
import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import typer
import yaml

from kobansync import KobanSync, get_store, load_config
from kobansync.contracts import EntityKind
from kobansync.shop import InMemoryShop, ShopGateway

app = typer.Typer(help="CLI for kobansync workflows")

# Command groups
worker_app = typer.Typer(help="Commands for running workers")
workflow_app = typer.Typer(help="Commands for inspecting workflow runs")
checkpoint_app = typer.Typer(help="Commands for inspecting entity checkpoints")
trigger_app = typer.Typer(help="Commands for scheduling sync workflows")

app.add_typer(worker_app, name="worker")
app.add_typer(workflow_app, name="workflow")
app.add_typer(checkpoint_app, name="checkpoint")
app.add_typer(trigger_app, name="trigger")

_options: dict = {"config": None}


@app.callback()
def main(
    config: Optional[Path] = typer.Option(None, help="Path to the YAML config file"),
    log_level: str = typer.Option("INFO", help="Logging level"),
) -> None:
    """kobansync CLI entry point."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    _options["config"] = str(config) if config else None


def _load_shop(shop: Optional[str], fixtures: Optional[Path]) -> ShopGateway:
    """Build the shop gateway from ``module:attr`` or a YAML/JSON fixture file."""
    if shop:
        module_name, _, attr = shop.partition(":")
        if not attr:
            raise typer.BadParameter("expected module:attribute", param_hint="--shop")
        target = getattr(importlib.import_module(module_name), attr)
        return target() if callable(target) else target
    if fixtures:
        with open(fixtures) as f:
            data = yaml.safe_load(f) or {}
        return InMemoryShop.from_dict(data)
    return InMemoryShop()


def _store():
    if _options["config"]:
        return get_store(config=load_config(_options["config"]))
    return get_store()


def _build_sync(shop: Optional[ShopGateway] = None) -> KobanSync:
    config = load_config(_options["config"])
    return KobanSync(config, shop or InMemoryShop(), store=_store())


@worker_app.command("run")
def worker_run(
    shop: Optional[str] = typer.Option(None, help="Shop gateway as module:attribute"),
    fixtures: Optional[Path] = typer.Option(None, help="YAML/JSON file with shop entities"),
    lifespan: Optional[float] = typer.Option(None, help="Stop after this many seconds"),
) -> None:
    """
    Run a worker process executing queued Koban sync jobs.

    Example:
        kobansync worker run --shop myshop.gateway:build_gateway
        kobansync worker run --fixtures shop.yaml --lifespan 60
    """
    sync = _build_sync(_load_shop(shop, fixtures))
    worker = sync.worker()
    typer.echo(f"Starting worker for: {', '.join(worker.job_names)}")
    asyncio.run(worker.start(lifespan=lifespan))


@workflow_app.command("list")
def workflow_list() -> None:
    """
    List recorded workflow runs with their current status.

    Example:
        kobansync workflow list
        # Output: wkf_3f2a...    payment_complete    42    success    1
    """
    repo = _store()
    workflows = asyncio.run(repo.list_workflows())
    if not workflows:
        typer.echo("No workflows found")
        return
    for wf in workflows:
        typer.echo(f"{wf.workflow_id}\t{wf.event}\t{wf.entity_id}\t{wf.status}\t{wf.attempts}")


@workflow_app.command("show")
def workflow_show(workflow_id: str) -> None:
    """Show one workflow run with its step history."""
    repo = _store()
    wf = asyncio.run(repo.get_workflow(workflow_id))
    if wf is None:
        typer.echo("Workflow not found")
        raise typer.Exit(code=1)
    typer.echo(f"Workflow {wf.workflow_id}: {wf.status}")
    typer.echo(f"Event: {wf.event} entity={wf.entity_id} attempts={wf.attempts}")
    if wf.failed_step:
        typer.echo(f"Failed step: {wf.failed_step}")
    if wf.message:
        typer.echo(f"Message: {wf.message}")
    for step in wf.steps:
        typer.echo(
            f"- [{step.attempt}] {step.step_name}: {step.status}"
            + (f" ({step.message})" if step.message else "")
        )


@workflow_app.command("purge")
def workflow_purge(
    days: int = typer.Option(30, help="Delete runs not updated for this many days"),
) -> None:
    """Delete old workflow runs from the history."""
    repo = _store()
    older_than = datetime.now(timezone.utc) - timedelta(days=days)
    count = asyncio.run(repo.purge_workflows(older_than))
    typer.echo(f"Purged {count} workflow(s)")


@checkpoint_app.command("show")
def checkpoint_show(kind: EntityKind, entity_id: int) -> None:
    """Print every Koban meta value stored for an entity."""
    store = _store()
    items = asyncio.run(store.items(kind, entity_id))
    if not items:
        typer.echo("No meta found")
        return
    typer.echo(json.dumps(items, indent=2, sort_keys=True))


def _report(workflow_id: Optional[str]) -> None:
    if workflow_id is None:
        typer.echo("Skipped")
    else:
        typer.echo(f"Scheduled workflow: {workflow_id}")


@trigger_app.command("payment")
def trigger_payment(order_id: int) -> None:
    """Schedule the payment completion sync for an order."""
    _report(asyncio.run(_build_sync().on_payment_complete(order_id)))


@trigger_app.command("address")
def trigger_address(
    customer_id: int,
    address_type: str = typer.Option("billing", help="billing or shipping"),
) -> None:
    """Schedule the billing address sync for a customer."""
    _report(asyncio.run(_build_sync().on_customer_save_address(customer_id, address_type)))


@trigger_app.command("product")
def trigger_product(product_id: int) -> None:
    """Schedule the product sync."""
    _report(asyncio.run(_build_sync().on_product_update(product_id)))


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
