from __future__ import annotations

from decimal import Decimal

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table
import typer

from sharetrack.adapters.db.facade import DB
from sharetrack.calculation.service import InvoiceCalculationService
from sharetrack.core.config import configure_logging, load_config_from_env
from sharetrack.domain.money import to_decimal
from sharetrack.domain.participants import parse_participant
from sharetrack.domain.types import ShareRequest
from sharetrack.errors import SharingError
from sharetrack.sharing.service import ExpenseSharingService

# Load environment variables from .env
load_dotenv()

app = typer.Typer(
    help="sharetrack: shared credit-card expense splitting.",
    no_args_is_help=True,
)


@app.callback()
def main_callback(ctx: typer.Context) -> None:
    """Load config, configure logging and open the database."""
    config = load_config_from_env()
    configure_logging(config.log_level)
    ctx.obj = DB(config.database_url)


def _services(ctx: typer.Context) -> tuple[ExpenseSharingService, InvoiceCalculationService]:
    sharing = ExpenseSharingService(ctx.obj)
    return sharing, InvoiceCalculationService(sharing)


def _parse_share(value: str, responsible: set[str]) -> ShareRequest:
    """Parse ``user:<id>=<fraction>`` or ``contact:<id>=<fraction>``."""
    ref, sep, raw_percentage = value.partition("=")
    if not sep:
        raise typer.BadParameter(f"Expected <participant>=<fraction>, got {value!r}")
    try:
        participant = parse_participant(ref)
        percentage = to_decimal(raw_percentage.strip())
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e
    return ShareRequest(
        participant=participant,
        percentage=percentage,
        responsible=ref.strip() in responsible,
    )


def _fail(error: SharingError) -> typer.Exit:
    typer.echo(f"Error: {error}", err=True)
    return typer.Exit(code=1)


@app.command("init-db")
def init_db(ctx: typer.Context) -> None:
    """Create database tables."""
    db: DB = ctx.obj
    db.create_schema()
    typer.echo("Schema created")


@app.command("split")
def split(
    ctx: typer.Context,
    item_id: int = typer.Argument(..., help="Invoice item to split"),
    share: list[str] = typer.Option(  # noqa: B008
        ..., "--share", help="participant=fraction, e.g. user:2=0.5 or contact:7=0.25"
    ),
    responsible: list[str] = typer.Option(  # noqa: B008
        [], "--responsible", help="Participant marked as responsible, e.g. user:2"
    ),
) -> None:
    """Replace the shares of an item. The last --share absorbs rounding."""
    sharing, _ = _services(ctx)
    flagged = {ref.strip() for ref in responsible}
    requests = [_parse_share(value, flagged) for value in share]
    try:
        shares = sharing.create_shares_from_requests(item_id, requests)
    except SharingError as e:
        raise _fail(e) from e

    for item_share in shares:
        typer.echo(
            f"{item_share.participant}\t{item_share.percentage}\t{item_share.amount}"
        )


@app.command("unshare")
def unshare(
    ctx: typer.Context,
    item_id: int = typer.Argument(..., help="Invoice item to unshare"),
) -> None:
    """Remove every share of an item."""
    sharing, _ = _services(ctx)
    try:
        removed = sharing.remove_shares(item_id)
    except SharingError as e:
        raise _fail(e) from e
    typer.echo(f"Removed {removed} shares")


@app.command("recalculate")
def recalculate(ctx: typer.Context) -> None:
    """Re-derive every share amount from its percentage and item amount."""
    sharing, _ = _services(ctx)
    modified = sharing.recalculate_all_shares()
    typer.echo(f"Items recalculated: {modified}")


@app.command("invoice-summary")
def invoice_summary(
    ctx: typer.Context,
    invoice_id: int = typer.Argument(..., help="Invoice to summarize"),
) -> None:
    """Show what the card owner and every other participant owe."""
    db: DB = ctx.obj
    _, calculation = _services(ctx)
    invoice = db.get_invoice(invoice_id)
    if invoice is None:
        typer.echo(f"Error: Invoice {invoice_id} not found", err=True)
        raise typer.Exit(code=1)

    owner_id = invoice.owner_user_id
    console = Console()
    console.print(f"Invoice {invoice_id} ({invoice.month:%Y-%m})")
    console.print(f"Total: {invoice.total_amount}")
    console.print(f"Shared: {calculation.calculate_total_shared_amount(invoice)}")
    console.print(f"Unshared: {calculation.calculate_unshared_amount(invoice)}")
    console.print(f"Owner share: {calculation.calculate_user_share(invoice, owner_id)}")

    table = Table(title="Other participants")
    table.add_column("Name")
    table.add_column("Email")
    table.add_column("Total", justify="right")
    others_total = Decimal("0.00")
    for participant in calculation.calculate_other_participant_shares(
        invoice, owner_id
    ):
        table.add_row(participant.name, participant.email, str(participant.total_amount))
        others_total += participant.total_amount
    table.add_row("", "", str(others_total), end_section=True)
    console.print(table)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
