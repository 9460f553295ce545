"""Print export of the displayed record."""

from receipt_reform.export.renderer import (
    BrowserSurface,
    PrintDocument,
    PrintExporter,
    PrintRenderer,
    RenderingSurface,
)
from receipt_reform.export.view import ViewNode, build_receipt_view, format_currency, render_html

__all__ = [
    "ViewNode",
    "build_receipt_view",
    "format_currency",
    "render_html",
    "PrintRenderer",
    "PrintDocument",
    "PrintExporter",
    "RenderingSurface",
    "BrowserSurface",
]
