"""Print export.

Turns the on-screen view into a standalone, inert HTML document that opens
the print dialog by itself, then hands it to a rendering surface.

The transformation is a pure function of the view and the live control
values, so the same input always yields the same bytes.
"""

import logging
import re
import tempfile
import webbrowser
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from jinja2 import Environment
from markupsafe import Markup

from receipt_reform.core.config import ExportConfig
from receipt_reform.core.exceptions import SnapshotNotFoundError, SurfaceBlockedError
from receipt_reform.export.view import (
    RECEIPT_CONTAINER_CLASS,
    ViewNode,
    render_html,
)

logger = logging.getLogger(__name__)

# Attributes that only make sense with the original interactive bindings
INTERACTIVE_ATTRS = frozenset({"contenteditable", "data-bind", "onclick", "onchange", "tabindex"})

PRINT_STYLESHEET = """\
/* Normalize page */
@page { margin: 0; size: auto; }

body {
  background: white;
  color: #0f172a;
  font-family: 'Inter', 'Helvetica Neue', Arial, sans-serif;
  -webkit-print-color-adjust: exact;
  print-color-adjust: exact;
  margin: 0;
  padding: 0;
  font-size: 12px;
}

/* The container acts as the page */
.receipt-container {
  width: 100% !important;
  max-width: 100% !important;
  box-shadow: none !important;
  border: none !important;
  margin: 0 !important;
  border-radius: 0 !important;
  min-height: auto !important;
  height: auto !important;
  break-inside: avoid;
  page-break-inside: avoid;
}

/* Screen-only elements never reach paper */
.no-print { display: none !important; }

.top-bar { height: 8px; background: #0f172a; }
.receipt-header, .merchant { display: flex; justify-content: space-between; align-items: flex-start; padding: 24px 32px 8px; }
.issuer-name { display: block; font-size: 28px; font-weight: 900; }
.issuer-tagline, .section-label { display: block; font-size: 10px; font-weight: 700; color: #94a3b8; text-transform: uppercase; letter-spacing: 0.2em; }
.date-block, .invoice-meta { display: flex; flex-direction: column; align-items: flex-end; }
.date-input { font-family: 'JetBrains Mono', monospace; font-weight: 700; }
.merchant-identity { display: flex; gap: 12px; align-items: center; }
.merchant-logo { width: 48px; height: 48px; background: #0f172a; color: white; display: flex; align-items: center; justify-content: center; font-weight: 800; }
.merchant-name { margin: 0; font-size: 20px; }
.report-header { padding: 16px 32px; }
.report-title { border-bottom: 2px solid #0f172a; margin-bottom: 16px; text-align: center; }
.report-title h1 { font-size: 22px; font-weight: 900; margin: 0 0 6px; }
.report-fields { display: flex; flex-direction: column; gap: 2px; font-size: 11px; font-weight: 700; }
.report-row { display: flex; justify-content: space-between; min-height: 1.25rem; }
.report-row.spaced { margin-top: 12px; }
.field-pair { display: flex; gap: 8px; }
.field-pair.right { justify-content: flex-end; }
.field-value { font-weight: 500; }
.clinical { padding: 0 40px 24px; }
.clinical h4 { font-size: 11px; font-weight: 900; letter-spacing: 0.1em; margin: 12px 0 4px; }
.narrative { text-transform: uppercase; color: #475569; margin: 0; }
.line-items { padding: 0 40px 16px; }
table.items { width: 100%; border-collapse: collapse; }
table.items th { text-align: left; border-bottom: 2px solid #0f172a; padding: 12px 0; }
table.items td { padding: 12px 0; border-bottom: 1px solid #f1f5f9; }
.center { text-align: center !important; }
.right { text-align: right !important; }
.mono { font-family: 'JetBrains Mono', monospace; }
.strong { font-weight: 700; }
.totals { display: flex; justify-content: flex-end; padding: 8px 40px 24px; }
.totals-box { width: 288px; }
.total-row { display: flex; justify-content: space-between; margin-top: 8px; color: #64748b; }
.total-row.discount { color: #dc2626; font-weight: 700; }
.total-row.grand { border-top: 2px solid #0f172a; padding-top: 12px; color: #0f172a; align-items: flex-end; }
.total-label { font-weight: 700; text-transform: uppercase; }
.grand-total { font-size: 28px; font-weight: 900; }
.bank-details, .issuer-footer { padding: 8px 40px; font-size: 10px; color: #002855; }
.signature { display: flex; justify-content: flex-end; padding: 24px 40px 40px; }
.signature-box { width: 288px; text-align: center; border-top: 1px solid #cbd5e1; padding-top: 4px; }

/* Compact print layout */
@media print {
  body { padding: 0; transform-origin: top left; }
  .receipt-container { padding: 20px 25px !important; }
  h1 { font-size: 18px !important; margin-bottom: 2px !important; line-height: 1 !important; }
  .merchant-logo { width: 36px !important; height: 36px !important; }
  .text-3xl, .grand-total { font-size: 16px !important; }
  .receipt-header, .merchant { padding: 8px 0 !important; }
  .report-header { padding: 5px 0 !important; }
  .report-title { margin-bottom: 8px !important; }
  .report-row.spaced { margin-top: 6px !important; }
  .clinical, .line-items, .bank-details, .issuer-footer { padding-left: 0 !important; padding-right: 0 !important; padding-bottom: 8px !important; }
  h4, .section-label { font-size: 9px !important; margin-bottom: 4px !important; letter-spacing: 0.05em !important; }
  .text-base, .text-sm { font-size: 10px !important; line-height: 1.2 !important; }
  .text-xs { font-size: 9px !important; line-height: 1.1 !important; }
  th { padding-top: 4px !important; padding-bottom: 4px !important; font-size: 9px !important; border-bottom-width: 1px !important; }
  td { padding-top: 2px !important; padding-bottom: 2px !important; font-size: 10px !important; }
  .totals { padding: 4px 0 0 !important; }
  .totals-box { width: 200px !important; }
  .total-row { margin-top: 2px !important; }
  .total-row.grand { padding-top: 4px !important; }
  .signature { padding: 10px 0 0 !important; }
  .top-bar { height: 4px !important; }
  * { -webkit-print-color-adjust: exact !important; print-color-adjust: exact !important; }
}
"""

DOCUMENT_TEMPLATE = """\
<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<title>{{ title }}</title>
<style>
{{ stylesheet }}
</style>
</head>
<body>
<div class="receipt-container">
{{ content }}
</div>
<script>
  window.onload = function () {
    setTimeout(function () {
      window.focus();
      window.print();
    }, {{ settle_delay_ms }});
  };
</script>
</body>
</html>
"""

_environment = Environment(autoescape=True, keep_trailing_newline=True)
_document_template = _environment.from_string(DOCUMENT_TEMPLATE)


@dataclass(frozen=True)
class PrintDocument:
    """A self-contained, print-triggering HTML document."""

    title: str
    html: str
    width: int
    height: int

    @property
    def filename(self) -> str:
        slug = re.sub(r"[^A-Za-z0-9_-]+", "-", self.title).strip("-").lower()
        return f"{slug or 'invoice'}.html"


class RenderingSurface(Protocol):
    """Somewhere a print document can be opened."""

    def open(self, document: PrintDocument) -> object:
        """Open the document; raise SurfaceBlockedError if that is not possible."""
        ...


class PrintRenderer:
    """Builds print documents from the on-screen view."""

    def __init__(self, config: ExportConfig | None = None) -> None:
        self.config = config or ExportConfig()

    def snapshot(
        self,
        view: ViewNode | None,
        live_values: Mapping[str, str] | None = None,
    ) -> ViewNode:
        """Return an inert copy of the receipt container.

        Live control values are baked in as literal text, screen-only
        elements are dropped and editable markers are removed. The input
        view is left untouched.

        Raises:
            SnapshotNotFoundError: If the view has no receipt container.
        """
        target = view.find(RECEIPT_CONTAINER_CLASS) if view is not None else None
        if target is None:
            raise SnapshotNotFoundError("Could not find receipt content.")
        static = _to_static(target, live_values or {})
        if static is None:
            raise SnapshotNotFoundError("The receipt content is screen-only.")
        return static

    def render(
        self,
        view: ViewNode | None,
        live_values: Mapping[str, str] | None = None,
    ) -> PrintDocument:
        """Assemble the standalone print document for ``view``."""
        snapshot = self.snapshot(view, live_values)
        invoice_number = snapshot.attrs.get("data-invoice-number") or "Generated"
        title = f"Invoice #{invoice_number}"
        content = Markup("".join(render_html(child) for child in snapshot.children))
        html = _document_template.render(
            title=title,
            stylesheet=Markup(PRINT_STYLESHEET),
            content=content,
            settle_delay_ms=self.config.settle_delay_ms,
        )
        logger.debug("Rendered print document %r (%d bytes)", title, len(html))
        return PrintDocument(
            title=title,
            html=html,
            width=self.config.width,
            height=self.config.height,
        )


def _to_static(node: ViewNode, live_values: Mapping[str, str]) -> ViewNode | None:
    if node.screen_only:
        return None

    if node.tag == "input":
        value = node.attrs.get("value", "")
        if node.binding and node.binding in live_values:
            value = live_values[node.binding]
        return ViewNode(tag="span", classes=list(node.classes), children=[value] if value else [])

    children: list[ViewNode | str] = []
    for child in node.children:
        if isinstance(child, str):
            children.append(child)
            continue
        static_child = _to_static(child, live_values)
        if static_child is not None:
            children.append(static_child)

    return ViewNode(
        tag=node.tag,
        classes=list(node.classes),
        attrs={name: value for name, value in node.attrs.items() if name not in INTERACTIVE_ATTRS},
        children=children,
    )


class BrowserSurface:
    """Writes the document to disk and opens it in the default browser.

    Without a directory, one temporary directory is created on first use and
    reused for every later document; a document with the same title
    overwrites the previous file. ``webbrowser`` cannot size windows, so the
    document's ``width`` and ``height`` are not applied here.
    """

    def __init__(self, directory: str | Path | None = None) -> None:
        self.directory = Path(directory) if directory else None

    def open(self, document: PrintDocument) -> Path:
        if self.directory is None:
            self.directory = Path(tempfile.mkdtemp(prefix="receipt-reform-"))
        directory = self.directory
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / document.filename
        path.write_text(document.html, encoding="utf-8")

        try:
            opened = webbrowser.open_new(path.as_uri())
        except webbrowser.Error as e:
            raise SurfaceBlockedError(f"Could not open the print view: {e}") from e
        if not opened:
            raise SurfaceBlockedError(
                "Print view blocked! Allow a browser to open so the document can be printed."
            )
        logger.info("Opened print view %s", path)
        return path


class PrintExporter:
    """Renders the current view and hands it to a rendering surface."""

    def __init__(
        self,
        renderer: PrintRenderer | None = None,
        surface: RenderingSurface | None = None,
    ) -> None:
        self.renderer = renderer or PrintRenderer()
        self.surface: RenderingSurface = surface or BrowserSurface()

    def export(
        self,
        view: ViewNode | None,
        live_values: Mapping[str, str] | None = None,
    ) -> PrintDocument:
        """Render and open the print document.

        Raises:
            SnapshotNotFoundError: If there is nothing to export.
            SurfaceBlockedError: If the surface could not be opened.
        """
        document = self.renderer.render(view, live_values)
        self.surface.open(document)
        return document
