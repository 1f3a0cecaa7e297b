import asyncio

from rich.console import Console
from rich.table import Table

from content_search.exception import ValidationError
from db.database import init_db
from orchestrator.orchestrator_manager import orchestrator_manager

console = Console()


def render(results) -> None:
    table = Table(show_lines=False)
    table.add_column("Score", justify="right", style="green")
    table.add_column("Match", style="cyan")
    table.add_column("Name", style="bold")
    table.add_column("Category")
    table.add_column("Summary", overflow="fold")

    for r in results:
        table.add_row(
            f"{r.score:.2f}",
            r.search_type,
            r.item.name,
            getattr(r.item, "category", "folder"),
            (getattr(r.item, "summary", None) or "")[:120],
        )
    console.print(table)


async def run() -> None:
    console.print("[bold cyan]Initializing database and search services...[/bold cyan]")
    await init_db()
    engine = orchestrator_manager.get_services().search_engine
    console.print("[green]Ready.[/green] Type 'exit' to quit.\n")

    user_id = console.input("[bold magenta]User id:[/bold magenta] ").strip()

    while True:
        query = console.input("[bold magenta]Search:[/bold magenta] ")
        if query.lower().strip() in ["exit", "quit", "bye"]:
            console.print("[yellow]Goodbye![/yellow]")
            break

        try:
            results = await engine.search(user_id, query)
        except ValidationError as e:
            console.print(f"[yellow]{e}[/yellow]")
            continue

        if not results:
            console.print("[dim]No results.[/dim]\n")
            continue
        render(results)


if __name__ == "__main__":
    asyncio.run(run())
