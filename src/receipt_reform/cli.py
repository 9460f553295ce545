"""Command line entry point.

Usage:
    receipt-reform extract receipt.jpg --json
    receipt-reform extract bill.pdf --date 2024-03-01 --html bill.html
    receipt-reform extract receipt.png --print
"""

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from receipt_reform.core.config import DEFAULT_MODEL, ExportConfig, ExtractionConfig
from receipt_reform.core.exceptions import ReceiptReformError
from receipt_reform.core.extractor import ReceiptExtractor
from receipt_reform.core.intake import load_document
from receipt_reform.export.renderer import BrowserSurface, PrintExporter, PrintRenderer
from receipt_reform.export.view import format_currency
from receipt_reform.session.session import ReceiptSession, SessionState

logger = logging.getLogger("receipt_reform")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="receipt-reform",
        description="Extract receipts and invoices into editable, printable records",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    extract = subparsers.add_parser("extract", help="Extract a record from an image or PDF")
    extract.add_argument("file", type=Path, help="Receipt image or PDF (at most 10MB)")
    extract.add_argument("--date", help="Correct the document date before output")
    extract.add_argument(
        "--json",
        action="store_true",
        help="Print the record as JSON (the clipboard format)",
    )
    extract.add_argument(
        "--print",
        dest="open_print",
        action="store_true",
        help="Open the print document in the default browser",
    )
    extract.add_argument("--html", type=Path, help="Write the print document to this file")
    extract.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    extract.add_argument(
        "--model",
        default=DEFAULT_MODEL,
        help=f"Model to use for extraction (default: {DEFAULT_MODEL})",
    )
    return parser


def run_extract(args: argparse.Namespace) -> int:
    document = load_document(args.file)
    extractor = ReceiptExtractor(config=ExtractionConfig(model=args.model))
    session = ReceiptSession(extractor=extractor, export_config=ExportConfig())

    state = session.process(document)
    if state is not SessionState.READY:
        print(f"Error: {session.error_message}", file=sys.stderr)
        return 1

    if args.date:
        session.edit_date(args.date)

    record = session.record
    assert record is not None

    if args.json:
        print(session.clipboard_json())
    else:
        config = session.export_config
        status = "Review Needed" if record.needs_review(config.review_threshold) else "Verified"
        total = format_currency(record.total, record.currency, config.locale)
        print(f"{record.merchant_name} | {record.date} | {record.invoice_number}")
        print(f"Total: {total} ({status})")

    renderer = PrintRenderer(session.export_config)
    if args.html:
        print_document = renderer.render(session.view())
        args.html.write_text(print_document.html, encoding="utf-8")
        print(f"Wrote {args.html}")
    if args.open_print:
        session.export(PrintExporter(renderer, BrowserSurface()))
    return 0


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        return run_extract(args)
    except ReceiptReformError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
