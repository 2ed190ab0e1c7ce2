#!/usr/bin/env python3
"""
Command-line interface for the receipt ledger.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from receipt_ledger.app import ReceiptApp
from receipt_ledger.errors import ReceiptLedgerError
from receipt_ledger.schema import RECEIPT_FIELDS, ReceiptRecord, format_amount
from receipt_ledger.settings import PRESET_MODELS, THEMES, known_models
from receipt_ledger.workflow import ScanState


def _confirm(prompt: str) -> bool:
    try:
        answer = input(f"{prompt} [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def _print_record(record: ReceiptRecord) -> None:
    print(f"  date:        {record.date}")
    print(f"  amount:      {format_amount(record.amount)}")
    print(f"  payee:       {record.payee}")
    print(f"  description: {record.description}")


def _field_changes(args) -> Dict[str, str]:
    return {
        name: getattr(args, name)
        for name in RECEIPT_FIELDS
        if getattr(args, name, None) is not None
    }


def _add_field_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--date", help="Date (YYYY/MM/DD)")
    parser.add_argument("--amount", help="Total amount")
    parser.add_argument("--payee", help="Store / payee name")
    parser.add_argument("--description", help="What it was for")


def cmd_scan(app: ReceiptApp, args) -> int:
    path = Path(args.file)
    workflow = app.new_workflow()

    print(f"[INFO] Analyzing {path.name} with {workflow.model_id}...")
    asyncio.run(workflow.scan(path, args.mime))

    if workflow.state == ScanState.FAILED:
        print(f"[ERROR] {workflow.error}")
        return 1

    if workflow.document is not None and workflow.document.truncated:
        print(f"[WARN] PDF has {workflow.document.page_count} pages; only page 1 was read")

    changes = _field_changes(args)
    if changes:
        workflow.edit_review(**changes)

    print("[OK] Extracted:")
    _print_record(workflow.review)
    missing = [f for f in workflow.extraction.missing_fields if f not in changes]
    if missing:
        print(f"[WARN] Not found on receipt: {', '.join(missing)}")

    if not args.yes and not _confirm("Save to history?"):
        workflow.abandon()
        print("[INFO] Discarded")
        return 0

    stored = workflow.commit()
    print(f"[OK] Saved {stored.id}")
    return 0


def cmd_list(app: ReceiptApp, args) -> int:
    records = app.ledger.records
    if not records:
        print("No receipts yet.")
        return 0
    for record in records:
        print(
            f"{record.id[:8]}  {record.date:<10}  {format_amount(record.amount):>10}  "
            f"{record.payee}  {record.description}"
        )
    print(f"Total: {format_amount(app.ledger.total())}")
    return 0


def _resolve_id(app: ReceiptApp, prefix: str) -> str:
    """Allow the short ids shown by `list`."""
    matches = [r.id for r in app.ledger if r.id.startswith(prefix)]
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        raise ReceiptLedgerError(f"Id prefix {prefix!r} is ambiguous")
    return prefix


def cmd_show(app: ReceiptApp, args) -> int:
    record = app.ledger.get(_resolve_id(app, args.id))
    print(f"[{record.id}]")
    _print_record(record)
    return 0


def cmd_edit(app: ReceiptApp, args) -> int:
    changes = _field_changes(args)
    if not changes:
        print("[ERROR] Nothing to change; pass --date/--amount/--payee/--description")
        return 1
    record = app.ledger.get(_resolve_id(app, args.id))
    updated = app.ledger.replace(record, record.edited(**changes))
    print(f"[OK] Updated {updated.id}")
    _print_record(updated)
    return 0


def cmd_delete(app: ReceiptApp, args) -> int:
    record = app.ledger.get(_resolve_id(app, args.id))
    if not args.yes and not _confirm(f"Delete {record.payee} ({format_amount(record.amount)})?"):
        return 0
    app.ledger.remove(record)
    print(f"[OK] Deleted {record.id}")
    return 0


def cmd_clear(app: ReceiptApp, args) -> int:
    if not args.yes and not _confirm("Delete ALL history?"):
        return 0
    app.clear_history()
    print("[OK] History cleared")
    return 0


def cmd_total(app: ReceiptApp, args) -> int:
    print(format_amount(app.ledger.total()))
    return 0


def cmd_export(app: ReceiptApp, args) -> int:
    out_path = app.ledger.write_csv(Path(args.output))
    print(f"[OK] Wrote {out_path}")
    return 0


def cmd_models(app: ReceiptApp, args) -> int:
    if args.refresh:
        models = asyncio.run(app.refresh_models())
        print(f"[OK] Fetched {len(models)} model(s)")

    settings = app.settings
    names = {m.id: m.display_name for m in settings.available_models}
    for model_id in known_models(settings):
        marker = "*" if model_id == settings.model else " "
        label = "preset" if model_id in PRESET_MODELS else names.get(model_id) or ""
        print(f"{marker} {model_id:<32} {label}")
    if settings.is_custom_model:
        print(f"* {settings.model:<32} custom")
    return 0


def cmd_config(app: ReceiptApp, args) -> int:
    if args.delete_key:
        app.settings_store.delete_api_key()
        print("[OK] API key deleted")

    if any(v is not None for v in (args.api_key, args.model, args.theme)):
        app.settings_store.save(api_key=args.api_key, model=args.model, theme=args.theme)
        print("[OK] Settings saved")

    settings = app.settings
    print(f"API key: {settings.masked_api_key()}")
    print(f"Model:   {settings.model}{' (custom)' if settings.is_custom_model else ''}")
    print(f"Theme:   {settings.theme}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="receipt-ledger",
        description="Scan receipts with Gemini into a local expense ledger",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Save your API key once
  receipt-ledger config --api-key AIza... --model gemini-2.0-flash

  # Scan a photo or PDF, review, and save
  receipt-ledger scan ./receipt.jpg

  # Export history as CSV (receipt_history_YYYY-MM-DD.csv)
  receipt-ledger export --output ./exports
        """,
    )
    parser.add_argument("--data", help="Data file (default: $RECEIPT_LEDGER_DATA or ~/.receipt_ledger.json)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("scan", help="Scan a receipt image or PDF")
    p.add_argument("file")
    p.add_argument("--mime", help="MIME type (guessed from the file name by default)")
    _add_field_options(p)
    p.add_argument("--yes", "-y", action="store_true", help="Save without asking")
    p.set_defaults(func=cmd_scan)

    p = sub.add_parser("list", help="List saved receipts, newest first")
    p.set_defaults(func=cmd_list)

    p = sub.add_parser("show", help="Show one receipt")
    p.add_argument("id")
    p.set_defaults(func=cmd_show)

    p = sub.add_parser("edit", help="Edit a saved receipt")
    p.add_argument("id")
    _add_field_options(p)
    p.set_defaults(func=cmd_edit)

    p = sub.add_parser("delete", help="Delete a saved receipt")
    p.add_argument("id")
    p.add_argument("--yes", "-y", action="store_true")
    p.set_defaults(func=cmd_delete)

    p = sub.add_parser("clear", help="Delete all history")
    p.add_argument("--yes", "-y", action="store_true")
    p.set_defaults(func=cmd_clear)

    p = sub.add_parser("total", help="Print the sum of all amounts")
    p.set_defaults(func=cmd_total)

    p = sub.add_parser("export", help="Export history to CSV")
    p.add_argument("--output", default=".", help="Output directory (default: .)")
    p.set_defaults(func=cmd_export)

    p = sub.add_parser("models", help="List known models")
    p.add_argument("--refresh", action="store_true", help="Fetch the model list from the provider")
    p.set_defaults(func=cmd_models)

    p = sub.add_parser("config", help="Show or change settings")
    p.add_argument("--api-key")
    p.add_argument("--model")
    p.add_argument("--theme", choices=THEMES)
    p.add_argument("--delete-key", action="store_true", help="Forget the stored API key")
    p.set_defaults(func=cmd_config)

    return parser


def main(argv: Optional[List[str]] = None, app: Optional[ReceiptApp] = None) -> int:
    """Main CLI entrypoint."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        app = app or ReceiptApp.from_path(args.data)
        return args.func(app, args)
    except (ReceiptLedgerError, FileNotFoundError) as e:
        print(f"[ERROR] {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
