"""Command-line interface for the WTX referral pipeline."""

from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from wtx.investments.service import investment_request_service
from wtx.logging_config import configure_logging, get_logger
from wtx.notifications.inbox import AdminInbox
from wtx.referral.gateway import referral_gateway
from wtx.referral.registry import build_link
from wtx.settings import settings
from wtx.storage.db import db
from wtx.storage.models import Investor

# Configure logging
configure_logging()
logger = get_logger(__name__)

app = typer.Typer(
    name="wtx",
    help="WTX Energy - referral attribution and submission pipeline",
    no_args_is_help=True,
)

# Rich console for pretty output
console = Console()


@app.command("init")
def init_database() -> None:
    """Initialize the database and create tables."""
    console.print("[bold blue]Initializing database...[/bold blue]")
    db.create_tables()
    console.print("[bold green]✓[/bold green] Database initialized successfully")


@app.command("investor-add")
def add_investor(
    name: Annotated[str, typer.Option("--name", "-n", help="Investor name")],
    email: Annotated[str, typer.Option("--email", "-e", help="Investor email")],
) -> None:
    """Register an investor who can refer prospects."""
    with db.session() as session:
        investor = Investor(name=name.strip(), email=email.strip().lower())
        session.add(investor)
        session.flush()
        console.print(f"[bold green]✓[/bold green] Investor created with ID: [bold]{investor.id}[/bold]")


@app.command("issue-code")
def issue_code(
    investor_id: Annotated[int, typer.Argument(help="Investor ID")],
) -> None:
    """Show an investor's referral code and link, creating it if needed."""
    code = referral_gateway.get_or_create_referral_code(investor_id)
    if code is None:
        console.print(f"[bold red]✗[/bold red] No referral code available for investor {investor_id}")
        raise typer.Exit(1)

    console.print(f"  Code: [bold]{code}[/bold]")
    console.print(f"  Link: {build_link(code)}")


@app.command("stats")
def show_stats(
    investor_id: Annotated[int, typer.Argument(help="Investor ID")],
) -> None:
    """Show an investor's referral funnel."""
    stats = referral_gateway.get_referral_stats(investor_id)
    if stats is None:
        console.print("[bold red]✗[/bold red] Could not load referral stats")
        raise typer.Exit(1)

    table = Table(title=f"Referrals of investor {investor_id}")
    table.add_column("Status", style="cyan")
    table.add_column("Count", justify="right")
    for key, value in stats.items():
        table.add_row(key.replace("_", " "), str(value))
    console.print(table)


def _submissions_table(submissions: list[dict], title: str) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Email")
    table.add_column("Referrer")
    table.add_column("Code")
    table.add_column("Status")
    table.add_column("New", justify="center")
    table.add_column("Created At")

    for submission in submissions:
        table.add_row(
            str(submission["id"]),
            submission["full_name"],
            submission["email"],
            submission["referrer_name"] or "-",
            submission["referral_code"],
            submission["status"],
            "" if submission["viewed"] else "●",
            submission["created_at"].strftime("%Y-%m-%d %H:%M"),
        )
    return table


@app.command("submissions")
def list_submissions(
    status: Annotated[str | None, typer.Option("--status", "-s", help="Filter by status")] = None,
    search: Annotated[str | None, typer.Option("--search", "-q", help="Name, email, referrer or code")] = None,
    limit: Annotated[int, typer.Option("--limit", "-l", help="Max rows")] = settings.submissions_page_size,
) -> None:
    """List referral submissions without marking them viewed."""
    submissions = referral_gateway.get_referral_submissions(limit=limit, status=status, search=search)
    if not submissions:
        console.print("[yellow]No submissions found[/yellow]")
        return

    console.print(_submissions_table(submissions, "Referral submissions"))
    unviewed = referral_gateway.get_unviewed_referral_submissions_count()
    console.print(f"  Unviewed: [bold]{unviewed}[/bold]")


@app.command("inbox")
def open_inbox() -> None:
    """Open the submissions inbox, marking the listed submissions viewed."""
    inbox = AdminInbox(
        fetch=referral_gateway.get_referral_submissions,
        ledger=referral_gateway.intake.ledger,
        on_viewed=lambda count: console.print(f"  Marked [bold]{count}[/bold] as viewed"),
    )
    with inbox:
        if not inbox.items:
            console.print("[yellow]Inbox is empty[/yellow]")
            return
        console.print(_submissions_table(inbox.items, "Referral inbox"))

    pending_requests = investment_request_service.unviewed_count()
    console.print(f"  Unviewed investment requests: [bold]{pending_requests}[/bold]")


@app.command("triage")
def triage_submission(
    submission_id: Annotated[int, typer.Argument(help="Submission ID")],
    status: Annotated[str, typer.Argument(help="reviewed, contacted, approved or rejected")],
    notes: Annotated[str | None, typer.Option("--notes", help="Replace admin notes")] = None,
) -> None:
    """Move a submission to a new triage status."""
    result = referral_gateway.update_referral_submission_status(submission_id, status)
    if not result.success:
        console.print(f"[bold red]✗[/bold red] {result.error}")
        raise typer.Exit(1)

    if notes is not None:
        notes_result = referral_gateway.update_referral_submission_notes(submission_id, notes)
        if not notes_result.success:
            console.print(f"[bold red]✗[/bold red] {notes_result.error}")
            raise typer.Exit(1)

    console.print(f"[bold green]✓[/bold green] Submission {submission_id} is now [bold]{status}[/bold]")


@app.command("activate")
def activate_referral(
    referral_id: Annotated[int, typer.Argument(help="Referral ID")],
) -> None:
    """Record that a referred prospect became an investor."""
    result = referral_gateway.mark_referral_active_investor(referral_id)
    if not result.success:
        console.print(f"[bold red]✗[/bold red] {result.error}")
        raise typer.Exit(1)
    console.print(f"[bold green]✓[/bold green] Referral {referral_id} is now an active investor")


@app.command("serve")
def serve(
    host: Annotated[str, typer.Option("--host", help="Bind address")] = "127.0.0.1",
    port: Annotated[int, typer.Option("--port", "-p", help="Port")] = 8000,
    reload: Annotated[bool, typer.Option("--reload", help="Reload on code changes")] = False,
) -> None:
    """Run the HTTP API."""
    import uvicorn

    console.print(f"[bold blue]Serving on http://{host}:{port}[/bold blue]")
    uvicorn.run("wtx.api.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
