#!/usr/bin/env python3
"""
Command Line Interface for ExamNotebook.

COMMANDS:
- chat:    Ask the assistant a question (optionally about a document)
- search:  Search the exam document corpus with filters
- suggest: Autocomplete a partial query
- filters: Show the filter options present in the corpus
- history: Show or clear recent searches
- keys:    List, add, remove, rotate or test Gemini API keys
"""
import argparse
import logging
import sys
from datetime import datetime
from typing import Optional

from rich import box
from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from configs import ConfigurationError, validate_configuration
from examnotebook.llm import KeyRing, NotConfiguredError, SendResult
from examnotebook.models import DateRange, SearchFilters
from examnotebook.search import SearchHistory, SearchIndex, subject_name
from examnotebook.store import DocumentStore, KeyRingStore

console = Console()

HEALTH_STYLES = {
    "active": "green",
    "limited": "yellow",
    "error": "red",
    "unknown": "dim",
}


# ============================================================
# RENDERING
# ============================================================

def print_header():
    """Print the application header."""
    console.print(Panel.fit(
        "[bold blue]📚 ExamNotebook[/bold blue]\n[dim]Exam archive study assistant[/dim]",
        border_style="blue",
    ))


def print_keys(ring: KeyRing):
    table = Table(title="Gemini API keys", box=box.ROUNDED)
    table.add_column("#", justify="right", style="cyan")
    table.add_column("Key")
    table.add_column("Health")
    table.add_column("Requests", justify="right")
    table.add_column("Errors", justify="right")
    table.add_column("Last used")
    table.add_column("Last error", overflow="fold")

    for index, slot in enumerate(ring.slots):
        stats = slot.stats
        marker = " ◀" if index == ring.current_index else ""
        last_used = stats.last_used_at.strftime("%Y-%m-%d %H:%M:%S") if stats.last_used_at else "-"
        table.add_row(
            f"{index + 1}{marker}",
            slot.masked_key,
            f"[{HEALTH_STYLES[stats.health.value]}]{stats.health.value}[/]",
            str(stats.request_count),
            str(stats.error_count),
            last_used,
            escape(stats.last_error or ""),
        )

    console.print(table)
    fallback = "[green]on[/green]" if ring.fallback_enabled else "[red]off[/red]"
    console.print(f"Fallback: {fallback}")


def print_result(result: SendResult):
    if result.success:
        console.print(Panel(
            Markdown(result.message),
            title=f"✓ Answer (key #{result.used_slot_index + 1}, {result.attempts} attempt(s))",
            border_style="green",
        ))
        tokens = result.usage.get("totalTokenCount")
        if tokens:
            console.print(f"[dim]Tokens used: {tokens}[/dim]")
    else:
        console.print(Panel(
            escape(result.error or "Unknown error"),
            title=f"✗ All keys failed ({result.attempts} attempt(s))",
            border_style="red",
        ))


def print_documents(documents, query: str):
    if not documents:
        console.print("[yellow]No matching documents.[/yellow]")
        return

    table = Table(title=f"{len(documents)} document(s)", box=box.SIMPLE_HEAVY)
    table.add_column("Name")
    table.add_column("Subject")
    table.add_column("Type")
    table.add_column("Exam")
    table.add_column("Uploaded")

    for document in documents:
        exam_info = document.exam_info
        exam = " ".join(str(v) for v in (exam_info.get("examType"), exam_info.get("year")) if v)
        name = Text.from_markup(
            escape(SearchIndex.highlight(document.name, query))
            .replace("<mark>", "[bold yellow]")
            .replace("</mark>", "[/bold yellow]")
        ) if query else document.name
        table.add_row(
            name,
            subject_name(document.subject) if document.subject else "-",
            document.type or "-",
            exam or "-",
            document.upload_date.strftime("%Y-%m-%d") if document.upload_date else "-",
        )

    console.print(table)


# ============================================================
# COMMANDS
# ============================================================

def cmd_chat(args) -> int:
    store = KeyRingStore()
    ring = store.load()
    document = None
    if args.document is not None:
        documents = DocumentStore().load()
        if not 0 <= args.document < len(documents):
            console.print(f"[red]No document at position {args.document}[/red]")
            return 1
        document = documents[args.document]

    try:
        with console.status("Asking Gemini..."):
            result = ring.send_with_context(args.message, document)
    except NotConfiguredError as e:
        console.print(f"[red]❌ {e}[/red]\n   Add one with: python cli.py keys add <KEY>")
        return 1

    store.save(ring)
    print_result(result)
    return 0 if result.success else 2


def _parse_date(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def cmd_search(args) -> int:
    date_range = None
    if args.date_from or args.date_to:
        try:
            date_range = DateRange(start=_parse_date(args.date_from), end=_parse_date(args.date_to))
        except ValueError:
            console.print("[red]Usage: --from/--to take ISO dates, e.g. 2023-06-15[/red]")
            return 1

    documents = DocumentStore().load()
    index = SearchIndex()
    index.build(documents)

    filters = SearchFilters(
        subject=args.subject,
        date_range=date_range,
        file_type=args.type,
        exam_type=args.exam_type,
    )
    query = " ".join(args.query)
    results = index.search(query, filters, documents)
    SearchHistory().save(query)
    print_documents(results, query)
    return 0


def cmd_suggest(args) -> int:
    documents = DocumentStore().load()
    for suggestion in SearchIndex().suggestions(args.partial, documents, args.limit):
        console.print(f"• {suggestion}")
    return 0


def cmd_filters(args) -> int:
    options = SearchIndex.available_filters(DocumentStore().load())
    table = Table(box=box.MINIMAL)
    table.add_column("Filter", style="cyan")
    table.add_column("Values")
    table.add_row("Subjects", ", ".join(f"{subject_name(s)} ({s})" for s in options.subjects) or "-")
    table.add_row("File types", ", ".join(options.file_types) or "-")
    table.add_row("Exam types", ", ".join(options.exam_types) or "-")
    table.add_row("Years", ", ".join(str(y) for y in options.years) or "-")
    console.print(table)
    return 0


def cmd_history(args) -> int:
    history = SearchHistory()
    if args.clear:
        history.clear()
        console.print("[green]✓ Search history cleared[/green]")
        return 0
    entries = history.entries()
    if not entries:
        console.print("[dim]No recent searches.[/dim]")
    for position, entry in enumerate(entries, start=1):
        console.print(f"{position:>2}. {entry}")
    return 0


def cmd_keys(args) -> int:
    store = KeyRingStore()
    ring = store.load()

    if args.action == "add":
        if not args.value:
            console.print("[red]Usage: keys add <KEY>[/red]")
            return 1
        index = ring.add_credential(args.value.strip())
        store.save(ring)
        console.print(f"[green]✓ Added key #{index + 1}[/green]")
    elif args.action == "remove":
        if args.value is None or not args.value.isdigit():
            console.print("[red]Usage: keys remove <NUMBER>[/red]")
            return 1
        index = int(args.value) - 1
        if not 0 <= index < len(ring):
            console.print(f"[red]No key #{args.value}[/red]")
            return 1
        ring.remove_credential(index)
        store.save(ring)
        console.print(f"[green]✓ Removed key #{args.value}[/green]")
    elif args.action == "rotate":
        if ring.rotate() is None:
            console.print("[yellow]Need at least 2 keys to rotate.[/yellow]")
        else:
            store.save(ring)
            console.print(f"[green]✓ Now using key #{ring.current_index + 1}[/green]")
    elif args.action == "test":
        try:
            with console.status("Testing connection..."):
                connected = ring.test_connection()
        except NotConfiguredError as e:
            console.print(f"[red]❌ {e}[/red]")
            return 1
        store.save(ring)
        console.print("[green]✓ Connected[/green]" if connected else "[red]✗ Connection failed[/red]")

    print_keys(ring)
    return 0


# ============================================================
# ENTRY POINT
# ============================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="ExamNotebook - study assistant for the exam archive",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python cli.py chat "Tóm tắt đề thi giữa kỳ"
  python cli.py search toan 2023 --subject toanHoc
  python cli.py keys add AIzaSy...
  python cli.py keys list
        """
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    chat = sub.add_parser("chat", help="Ask the assistant a question")
    chat.add_argument("message")
    chat.add_argument("-d", "--document", type=int, help="Corpus position of a document to discuss")
    chat.set_defaults(func=cmd_chat)

    search = sub.add_parser("search", help="Search exam documents")
    search.add_argument("query", nargs="*", default=[])
    search.add_argument("--subject", help="Subject code, e.g. toanHoc")
    search.add_argument("--type", help="File type, e.g. pdf")
    search.add_argument("--exam-type", help="Exam type, e.g. final")
    search.add_argument("--from", dest="date_from", help="Uploaded on or after (ISO date)")
    search.add_argument("--to", dest="date_to", help="Uploaded on or before (ISO date)")
    search.set_defaults(func=cmd_search)

    suggest = sub.add_parser("suggest", help="Autocomplete a partial query")
    suggest.add_argument("partial")
    suggest.add_argument("--limit", type=int, default=10)
    suggest.set_defaults(func=cmd_suggest)

    filters = sub.add_parser("filters", help="Show available filter values")
    filters.set_defaults(func=cmd_filters)

    history = sub.add_parser("history", help="Show recent searches")
    history.add_argument("--clear", action="store_true")
    history.set_defaults(func=cmd_history)

    keys = sub.add_parser("keys", help="Manage Gemini API keys")
    keys.add_argument("action", choices=["list", "add", "remove", "rotate", "test"])
    keys.add_argument("value", nargs="?", help="Key to add, or key number to remove")
    keys.set_defaults(func=cmd_keys)

    return parser


def main(argv=None) -> int:
    """Main entry point for the CLI."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="[%(levelname)s] %(name)s: %(message)s",
    )
    # httpx logs full request URLs, which carry the API key
    logging.getLogger("httpx").setLevel(logging.WARNING)

    try:
        validate_configuration(skip_api_check=True)
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        return 1

    print_header()
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
