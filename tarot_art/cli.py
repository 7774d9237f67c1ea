"""CLI entry point for the tarot card art cache."""

import logging
import sys
from concurrent.futures import TimeoutError as FutureTimeout
from pathlib import Path

import questionary
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from tarot_art.assets import Embedded, LocalFile, Unavailable
from tarot_art.cards import TOTAL_CARDS, get_card_by_id, get_cards
from tarot_art.config import Settings
from tarot_art.manifest import ManifestationListener, ManifestationResult
from tarot_art.service import CardImageService

console = Console()

ACTIONS = ["status", "reveal", "manifest", "clear"]
CARD_SUBSETS = ["all", "major", "minor", "sample"]


class ProgressListener(ManifestationListener):
    """Drives a rich progress bar from manifestation events."""

    def __init__(self, progress: Progress):
        self.progress = progress
        self.task = None

    def on_start(self, total: int) -> None:
        self.task = self.progress.add_task("Manifesting deck", total=total)

    def on_progress(self, index: int, total: int, card_name: str) -> None:
        self.progress.update(self.task, description=f"Manifesting {card_name}")

    def on_card_complete(self, card_id, path, success: bool) -> None:
        self.progress.update(self.task, advance=1)

    def on_error(self, error: Exception, card_name: str) -> None:
        self.progress.console.print(f"[red]✗ {card_name}:[/red] {error}")


def prompt_for_options() -> dict:
    """Interactively prompt user for the action and its options."""
    action = questionary.select("Action:", choices=ACTIONS, default="status").ask()
    if action is None:  # User pressed Ctrl+C
        sys.exit(0)

    options: dict = {"action": action, "card_id": None, "card_subset": "all", "cards_file": None}

    if action == "reveal":
        idx_str = questionary.text(
            f"Card id (0-{TOTAL_CARDS}):",
            instruction=f"(0-{TOTAL_CARDS - 1} for cards, {TOTAL_CARDS} for card back)",
        ).ask()
        if idx_str is None:
            sys.exit(0)
        try:
            options["card_id"] = int(idx_str.strip())
        except ValueError:
            console.print(f"[red]Invalid id. Must be an integer 0-{TOTAL_CARDS}.[/red]")
            sys.exit(1)
        if not 0 <= options["card_id"] <= TOTAL_CARDS:
            console.print(f"[red]Id must be between 0 and {TOTAL_CARDS}.[/red]")
            sys.exit(1)

    if action == "manifest":
        subset = questionary.select("Cards to manifest:", choices=CARD_SUBSETS, default="all").ask()
        if subset is None:
            sys.exit(0)
        options["card_subset"] = subset

    if action in ("reveal", "manifest"):
        cards_file_str = questionary.text(
            "Custom cards YAML file:",
            instruction="(leave empty for built-in cards)",
            default="",
        ).ask()
        if cards_file_str is None:
            sys.exit(0)
        options["cards_file"] = Path(cards_file_str.strip()) if cards_file_str.strip() else None

    if action == "clear":
        confirmed = questionary.confirm("Delete all generated card images?", default=False).ask()
        if not confirmed:
            sys.exit(0)

    return options


def show_status(service: CardImageService) -> None:
    stats = service.generation_stats()
    table = Table(title="Card art")
    table.add_column("Source")
    table.add_column("Cards", justify="right")
    table.add_row("Bundled", str(stats.bundled_count))
    table.add_row("Generated", str(stats.filesystem_count))
    table.add_row("Missing", str(service.missing_count(get_cards("all"))))
    table.add_row("Card back", "yes" if stats.has_card_back else "no")
    console.print(table)
    console.print(f"  Storage: {service.files.root}")


def reveal(service: CardImageService, card_id: int, cards_file: Path | None) -> None:
    if card_id == TOTAL_CARDS:
        handle = service.acquire_card_back()
        label = "Card back"
    else:
        card = get_card_by_id(card_id, cards_file=cards_file)
        label = card.name
        with console.status(f"[bold cyan]Revealing {card.name}...[/bold cyan]"):
            handle = service.acquire_for_card(card).result()

    match handle:
        case Embedded(ref=ref):
            console.print(f"[bold green]{label}[/bold green] is bundled: {ref}")
        case LocalFile(path=path):
            console.print(f"[bold green]{label}[/bold green] ready at {path}")
        case Unavailable():
            console.print(f"[red]{label} could not be revealed. Try again later.[/red]")


def manifest(service: CardImageService, card_subset: str, cards_file: Path | None) -> ManifestationResult:
    cards = get_cards(card_subset, cards_file=cards_file)
    console.print(f"[bold]{service.missing_count(cards)} of {len(cards)} cards still hidden[/bold]")

    with Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        console=console,
    ) as progress:
        future = service.start_manifestation(cards, ProgressListener(progress))
        while True:
            try:
                result = future.result(timeout=0.5)
                break
            except FutureTimeout:
                continue
            except KeyboardInterrupt:
                progress.console.print("[yellow]Stopping after the current card...[/yellow]")
                service.cancel_manifestation()

    status = "[yellow]Cancelled[/yellow]" if result.cancelled else "[bold green]Done![/bold green]"
    console.print(f"\n{status} {result.success_count} manifested, {result.failed_count} failed")
    return result


def run_action(
    action: str,
    card_id: int | None = None,
    card_subset: str = "all",
    cards_file: Path | None = None,
    settings: Settings | None = None,
) -> None:
    """Execute one CLI action against a freshly built service."""
    service = CardImageService(settings or Settings())

    match action:
        case "status":
            show_status(service)
        case "reveal":
            reveal(service, card_id, cards_file)
        case "manifest":
            manifest(service, card_subset, cards_file)
        case "clear":
            service.clear_all()
            console.print("[bold green]Cleared all generated card images.[/bold green]")
        case _:
            raise ValueError(f"Unknown action: {action!r}")


def main() -> None:
    """Reveal, manifest or inspect cached tarot card art."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    options = prompt_for_options()
    run_action(**options)


if __name__ == "__main__":
    main()
