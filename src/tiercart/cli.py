import json
import logging
import sys
from decimal import Decimal, InvalidOperation

import click

from . import __version__ as VERSION
from .catalog import Catalog, preset_tiers
from .config import refresh_config
from .engine import CartEngine
from .errors import TierCartError
from .snapshot import SnapshotStore, describe_drift
from .tiers import TIER_PRESETS, check_tier_table, format_discount, format_money, next_tier, quote
from .types import PriceTier

logger = logging.getLogger(__name__)


def _emit_structured_error(
    message: str, *, code: str, category: str, actionable: bool = True, as_json: bool = False, exit_code: int = 2
):
    payload = {
        "ok": False,
        "error": {
            "code": code,
            "category": category,
            "message": message,
            "actionable": actionable,
        },
    }
    if as_json:
        click.echo(json.dumps(payload, indent=2, sort_keys=True))
    else:
        click.echo(f"tiercart error [{category}:{code}]: {message}")
    sys.exit(exit_code)


def _read_json(path: str):
    with open(path, "r", encoding="utf-8") as handle:
        try:
            return json.load(handle)
        except json.JSONDecodeError as exc:
            raise click.BadParameter(f"{path} is not valid JSON: {exc}") from exc


def _load_tier_file(path: str) -> list[PriceTier]:
    data = _read_json(path)
    rows = data.get("price_tiers") if isinstance(data, dict) else data
    if not isinstance(rows, list):
        raise click.BadParameter(f"{path} must contain a list of tiers or an object with 'price_tiers'")
    return sorted((PriceTier.from_dict(row) for row in rows), key=lambda tier: tier.min_quantity)


def _money_formatter(config):
    def money(amount):
        return format_money(amount, config.currency_symbol, config.decimal_places)

    return money


def _parse_amount(ctx, param, value):
    try:
        amount = Decimal(value)
    except InvalidOperation:
        raise click.BadParameter(f"{value!r} is not a valid amount") from None
    if not amount.is_finite() or amount < 0:
        raise click.BadParameter("amount must be a non-negative number")
    return amount


@click.group(invoke_without_command=True)
@click.pass_context
@click.option("--version", is_flag=True, help="Show the version and exit.")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def main(ctx, version, verbose):
    """tiercart: tiered volume pricing and cart tools"""
    config = refresh_config()
    ctx.obj = {"config": config}
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, config.log_level, logging.WARNING),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    if version:
        click.echo(f"tiercart version {VERSION}")
        return
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@main.command(name="quote")
@click.argument("base_price", callback=_parse_amount)
@click.argument("quantity", type=click.IntRange(min=1))
@click.option("--tiers", "tiers_path", type=click.Path(exists=True, dir_okay=False), help="JSON file with a tier table")
@click.option("--preset", type=click.Choice(sorted(TIER_PRESETS)), help="Use a built-in tier table")
@click.option("--json", "json_output", is_flag=True, help="Emit machine-readable output")
@click.pass_context
def quote_command(ctx, base_price, quantity, tiers_path, preset, json_output):
    """Quote QUANTITY units at BASE_PRICE through a tier table."""
    config = ctx.obj["config"]
    try:
        if tiers_path:
            table = _load_tier_file(tiers_path)
        else:
            table = list(preset_tiers(preset or config.default_tiers))
        result = quote(base_price, quantity, table, config.minor_unit)
    except TierCartError as exc:
        _emit_structured_error(
            exc.explanation, code=exc.error_code, category=exc.category, actionable=exc.actionable, as_json=json_output
        )

    hint = next_tier(table, quantity)
    if json_output:
        click.echo(
            json.dumps(
                {
                    "quantity": quantity,
                    "base_price": str(result.base_price),
                    "effective_price": str(result.effective_price),
                    "discount_percent": str(result.discount_percent),
                    "tier": result.tier.to_dict() if result.tier else None,
                    "subtotal": str(result.subtotal),
                    "savings": str(result.savings),
                    "next_tier": None
                    if hint is None
                    else {
                        "min_quantity": hint.min_quantity,
                        "items_needed": hint.items_needed,
                        "discount_percent": str(hint.discount_percent),
                    },
                },
                indent=2,
                sort_keys=True,
            )
        )
        return

    money = _money_formatter(config)
    click.echo(f"Tier: {result.tier.label() if result.tier else 'none'} ({format_discount(result.discount_percent)})")
    click.echo(f"Unit price: {money(result.effective_price)} (base {money(result.base_price)})")
    click.echo(f"Subtotal: {money(result.subtotal)}")
    click.echo(f"Savings: {money(result.savings)}")
    if hint is not None and hint.items_needed:
        click.echo(f"Add {hint.items_needed} more for {format_discount(hint.discount_percent)}")


@main.group()
def tiers():
    """Tier table diagnostics."""


@tiers.command("check")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
def tiers_check(path):
    """Report gaps and overlaps in a tier file or catalog."""
    data = _read_json(path)
    try:
        if isinstance(data, dict) and "products" in data:
            tables = [(product.id, product.price_tiers) for product in Catalog.from_dict(data)]
        else:
            tables = [(path, _load_tier_file(path))]
    except TierCartError as exc:
        _emit_structured_error(
            exc.explanation, code=exc.error_code, category=exc.category, actionable=exc.actionable
        )

    problems = 0
    for name, table in tables:
        issues = check_tier_table(table)
        if not issues:
            click.echo(f"OK: {name}")
            continue
        problems += len(issues)
        for issue in issues:
            click.echo(f"{issue.code}: {name}: {issue.message}")
    sys.exit(1 if problems else 0)


@main.group()
def cart():
    """Persisted cart snapshot commands."""


def _engine_for(catalog_path, config) -> CartEngine:
    if not catalog_path:
        return CartEngine(minor_unit=config.minor_unit)
    catalog = Catalog.from_file(catalog_path, default_tiers=preset_tiers(config.default_tiers))
    return CartEngine(tier_source=catalog.tiers_for, minor_unit=config.minor_unit, product_lookup=catalog.get)


@cart.command("show")
@click.argument("snapshot_path", required=False)
@click.option("--catalog", "catalog_path", type=click.Path(exists=True, dir_okay=False), help="Catalog JSON used to price lines")
@click.pass_context
def cart_show(ctx, snapshot_path, catalog_path):
    """Print the repriced lines of a cart snapshot."""
    config = ctx.obj["config"]
    store = SnapshotStore(snapshot_path or config.snapshot_path)
    if not store.exists():
        click.echo(f"Error: no cart snapshot at {store.path}")
        sys.exit(2)
    try:
        engine = _engine_for(catalog_path, config)
        engine.load(store.read())
    except TierCartError as exc:
        _emit_structured_error(
            exc.explanation, code=exc.error_code, category=exc.category, actionable=exc.actionable
        )

    money = _money_formatter(config)
    for line in engine.lines:
        label = line.product.name or line.product.id
        tier = line.tier_applied.label() if line.tier_applied else "no tier"
        click.echo(f"{label} x{line.quantity} @ {money(line.effective_price)} [{tier}] = {money(line.subtotal)}")
    click.echo(f"Items: {engine.total_quantity}")
    click.echo(f"Total: {money(engine.total)}")
    click.echo(f"Savings: {money(engine.total_savings)}")


@cart.command("recompute")
@click.argument("snapshot_path", required=False)
@click.option("--catalog", "catalog_path", type=click.Path(exists=True, dir_okay=False), help="Catalog JSON used to price lines")
@click.option("--write", is_flag=True, help="Rewrite the snapshot with recomputed values")
@click.pass_context
def cart_recompute(ctx, snapshot_path, catalog_path, write):
    """Recompute a snapshot's prices and aggregates and report drift."""
    config = ctx.obj["config"]
    store = SnapshotStore(snapshot_path or config.snapshot_path)
    if not store.exists():
        click.echo(f"Error: no cart snapshot at {store.path}")
        sys.exit(2)
    try:
        raw = store.read()
        engine = _engine_for(catalog_path, config)
        state = engine.load(raw)
    except TierCartError as exc:
        _emit_structured_error(
            exc.explanation, code=exc.error_code, category=exc.category, actionable=exc.actionable
        )

    drift = describe_drift(raw, state)
    for entry in drift:
        click.echo(f"DRIFT: {entry}")
    if not drift:
        click.echo("Snapshot aggregates are consistent.")
    if write:
        store.write(state)
        click.echo(f"Wrote recomputed snapshot to {store.path}")


if __name__ == "__main__":
    main()
