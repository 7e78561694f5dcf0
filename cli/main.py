import asyncio

import typer
import uvicorn

from backend.app.config import settings

app = typer.Typer(help="Feedback Board - collect, search and upvote feedback")


@app.command()
def start(reload: bool = typer.Option(False, help="Restart on code changes.")) -> None:
    """Start the feedback board API server."""
    typer.echo(f"Starting Feedback Board on {settings.host}:{settings.port}...")
    uvicorn.run(
        "backend.app.main:app",
        host=settings.host,
        port=settings.port,
        reload=reload,
    )


@app.command("init-db")
def init_db() -> None:
    """Create the database schema (and sample data when enabled)."""
    asyncio.run(_init_db())
    typer.echo(f"Database ready at {settings.db_path}")


@app.command()
def reconcile() -> None:
    """Recompute upvote counters from the vote ledger."""
    corrections = asyncio.run(_reconcile())
    if not corrections:
        typer.echo("All upvote counters match the vote ledger.")
        return
    for feedback_id, old, new in corrections:
        typer.echo(f"feedback {feedback_id}: {old} -> {new}")
    typer.echo(f"Fixed {len(corrections)} counter(s).")


async def _init_db() -> None:
    from backend.app.db import engine
    from backend.app.db import init_db as create_and_seed

    try:
        await create_and_seed()
    finally:
        # Pooled connections are bound to this event loop
        await engine.dispose()


async def _reconcile() -> list[tuple[int, int, int]]:
    from backend.app.db import async_session, engine
    from backend.app.services.feedback_service import reconcile_upvotes

    try:
        async with async_session() as session:
            return await reconcile_upvotes(session)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    app()
