from __future__ import annotations

import click
from flask import Flask

from tenderhub.db import get_db


def register_tender_cli(app: Flask) -> None:
    from tenderhub.tenders.workflow import get_workflow

    @app.cli.group("tenders")
    def tenders_group() -> None:
        """Tender maintenance commands."""

    @tenders_group.command("recount-bids")
    def recount_bids() -> None:
        corrections = get_workflow().recount_bids(get_db())
        for item in corrections:
            click.echo(f"{item['tender_number']}: {item['bid_count']} -> {item['actual']}")
        click.echo(f"{len(corrections)} tender(s) corrected.")

    @tenders_group.command("close-expired")
    @click.option("--limit", default=200, show_default=True, type=click.IntRange(1, 5000))
    def close_expired(limit: int) -> None:
        closed = get_workflow().close_expired(get_db(), limit=limit)
        for tender in closed:
            click.echo(f"closed {tender['tender_number']}")
        click.echo(f"{len(closed)} tender(s) closed.")
