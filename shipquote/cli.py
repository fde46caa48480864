"""Command line interface for quoting carts and buying labels."""

import argparse
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from shipquote.config import EngineConfig, is_mock_mode
from shipquote.easypost_client import EasyPostError
from shipquote.errors import MissingFieldsError, QuoteInputError


def get_client(config: EngineConfig):
    if is_mock_mode():
        from shipquote.mock import MockEasyPostClient

        return MockEasyPostClient(currency=config.currency)

    from shipquote.easypost_client import EasyPostClient

    return EasyPostClient(currency=config.currency)


def setup_database() -> None:
    from shipquote.db.migrations import run_migrations

    try:
        run_migrations()
    except Exception as e:
        # Tables might already exist
        logging.getLogger(__name__).warning("Migration failed: %s", e)


def render_quote(console: Console, result) -> None:
    if result.freight:
        console.print(Panel.fit(
            f"[bold yellow]Freight required[/bold yellow]\n{result.message}\n"
            f"[dim]Reason: {result.freight_reason}[/dim]",
            border_style="yellow",
        ))
        return
    if result.install_only:
        console.print(Panel.fit(
            f"[bold]Install only[/bold]\n{', '.join(result.install_only_items)}",
            border_style="blue",
        ))
        return

    packages = Table(title="Packages")
    packages.add_column("#", justify="right")
    packages.add_column("Weight (lb)", justify="right")
    packages.add_column("Box (in)")
    packages.add_column("Item")
    for i, package in enumerate(result.packages, start=1):
        dims = package.dimensions
        packages.add_row(
            str(i),
            f"{package.weight_value:g}",
            f"{dims.length:g} x {dims.width:g} x {dims.height:g}",
            package.origin_item_ref or "combined",
        )
    console.print(packages)

    rates = Table(title=f"Rates ({result.cache_source})")
    rates.add_column("Carrier")
    rates.add_column("Service")
    rates.add_column("Days", justify="right")
    rates.add_column("Price", justify="right")
    best_id = result.best_rate.rate_id if result.best_rate else None
    for rate in result.rates:
        marker = " [green]*[/green]" if rate.rate_id == best_id else ""
        rates.add_row(
            rate.carrier,
            rate.service,
            str(rate.delivery_days) if rate.delivery_days is not None else "-",
            f"{rate.amount:.2f} {rate.currency}{marker}",
        )
    console.print(rates)

    if result.missing_products:
        console.print(f"[yellow]Products not found:[/yellow] {', '.join(result.missing_products)}")


def cmd_quote(args, console: Console) -> int:
    from shipquote.db.database import get_db_session
    from shipquote.quoting import QuoteService

    payload = json.loads(Path(args.file).read_text())
    config = EngineConfig.from_env()

    with get_db_session() as db:
        service = QuoteService(db, get_client(config), config)
        try:
            result = service.quote(payload.get("cart") or [], payload.get("destination") or payload.get("to"))
        except MissingFieldsError as e:
            console.print(f"[red]Missing fields:[/red] {', '.join(e.missing_fields)}")
            return 2
        except QuoteInputError as e:
            console.print(f"[red]Invalid request:[/red] {e.message}")
            return 2
        except EasyPostError as e:
            console.print(f"[red]Provider error:[/red] {e.message}")
            return 1

    render_quote(console, result)
    return 0


def cmd_purchase(args, console: Console) -> int:
    from shipquote.db.database import get_db_session
    from shipquote.labels import LabelPurchaseOrchestrator, PurchaseRequest

    config = EngineConfig.from_env()
    with get_db_session() as db:
        orchestrator = LabelPurchaseOrchestrator(db, get_client(config), config)
        outcome = orchestrator.purchase(PurchaseRequest(
            order_id=args.order,
            manual_trigger=args.confirm,
            rate_id=args.rate_id,
        ))

    if not outcome.success:
        detail = f"\n[dim]{', '.join(outcome.missing_fields)}[/dim]" if outcome.missing_fields else ""
        console.print(Panel.fit(
            f"[bold red]{outcome.error_code}[/bold red]\n{outcome.error}{detail}",
            border_style="red",
        ))
        return 1

    result = outcome.result
    title = "Label already purchased" if outcome.already_purchased else "Label purchased"
    console.print(Panel.fit(
        f"[bold green]{title}[/bold green]\n"
        f"Carrier: {result.carrier} {result.service}\n"
        f"Tracking: {result.tracking_number}\n"
        f"Label: {result.label_url}\n"
        f"Cost: {result.cost} {result.currency}",
        border_style="green",
    ))
    if outcome.side_tasks and outcome.side_tasks.failed:
        console.print(f"[yellow]Follow-up tasks failed:[/yellow] {', '.join(outcome.side_tasks.failed)}")
    return 0


def cmd_seed(args, console: Console) -> int:
    from shipquote.db.database import get_db_session
    from shipquote.db.seed import seed_demo_data

    with get_db_session() as db:
        counts = seed_demo_data(db)
    console.print(f"Seeded {counts['products']} products and {counts['orders']} orders")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="shipquote", description="Shipping quotes and labels")
    sub = parser.add_subparsers(dest="command", required=True)

    quote = sub.add_parser("quote", help="Quote a cart from a JSON file")
    quote.add_argument("file", help='JSON with {"cart": [...], "destination": {...}}')
    quote.set_defaults(handler=cmd_quote)

    purchase = sub.add_parser("purchase", help="Buy a label for an order")
    purchase.add_argument("order", help="Order id or order number")
    purchase.add_argument("--rate-id", default=None)
    purchase.add_argument(
        "--confirm",
        action="store_true",
        help="Approve spending money on this label",
    )
    purchase.set_defaults(handler=cmd_purchase)

    seed = sub.add_parser("seed", help="Load demo products and orders")
    seed.set_defaults(handler=cmd_seed)
    return parser


def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    logging.basicConfig(level=logging.WARNING)
    console = Console()

    args = build_parser().parse_args(argv)
    if is_mock_mode():
        console.print("[yellow]Running in mock mode - no API keys required.[/yellow]")

    setup_database()
    sys.exit(args.handler(args, console))


if __name__ == "__main__":
    main()
