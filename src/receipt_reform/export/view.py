"""On-screen presentation of a receipt record as a node tree.

The tree is what the user sees and edits: it carries a screen-only toolbar
and footer, editable text and an in-place date input bound to ``date``.
:mod:`receipt_reform.export.renderer` turns it into an inert print document.
"""

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field

from babel.numbers import format_currency as babel_format_currency
from babel.numbers import is_currency
from markupsafe import escape

from receipt_reform.core.config import ExportConfig
from receipt_reform.schemas.receipt import ReceiptRecord

logger = logging.getLogger(__name__)

RECEIPT_CONTAINER_CLASS = "receipt-container"
SCREEN_ONLY_CLASS = "no-print"
VOID_TAGS = frozenset({"br", "hr", "img", "input", "meta", "link"})


@dataclass
class ViewNode:
    """One element of the presentation tree."""

    tag: str
    classes: list[str] = field(default_factory=list)
    attrs: dict[str, str] = field(default_factory=dict)
    children: list["ViewNode | str"] = field(default_factory=list)
    editable: bool = False
    screen_only: bool = False
    binding: str | None = None

    def walk(self) -> Iterator["ViewNode"]:
        """Yield this node and all descendant elements, depth first."""
        yield self
        for child in self.children:
            if isinstance(child, ViewNode):
                yield from child.walk()

    def find(self, class_name: str) -> "ViewNode | None":
        """First node (self included) carrying ``class_name``."""
        return next((node for node in self.walk() if class_name in node.classes), None)

    def text(self) -> str:
        """Concatenated text content."""
        return "".join(
            child if isinstance(child, str) else child.text() for child in self.children
        )


def el(
    tag: str,
    *children: "ViewNode | str | None",
    cls: str = "",
    editable: bool = False,
    screen_only: bool = False,
    binding: str | None = None,
    **attrs: str,
) -> ViewNode:
    """Shorthand node constructor; ``None`` children are skipped."""
    return ViewNode(
        tag=tag,
        classes=cls.split(),
        attrs={key.rstrip("_").replace("_", "-"): value for key, value in attrs.items()},
        children=[child for child in children if child is not None],
        editable=editable,
        screen_only=screen_only,
        binding=binding,
    )


def render_html(node: "ViewNode | str") -> str:
    """Serialize a node to HTML, escaping text and attribute values."""
    if isinstance(node, str):
        return str(escape(node))

    attrs: dict[str, str] = {}
    classes = list(node.classes)
    if node.screen_only and SCREEN_ONLY_CLASS not in classes:
        classes.append(SCREEN_ONLY_CLASS)
    if classes:
        attrs["class"] = " ".join(classes)
    attrs.update(node.attrs)
    if node.editable:
        attrs["contenteditable"] = "true"
    if node.binding:
        attrs["data-bind"] = node.binding

    attr_text = "".join(f' {name}="{escape(value)}"' for name, value in attrs.items())
    if node.tag in VOID_TAGS:
        return f"<{node.tag}{attr_text}>"
    inner = "".join(render_html(child) for child in node.children)
    return f"<{node.tag}{attr_text}>{inner}</{node.tag}>"


def format_currency(amount: float, currency: str, locale: str = "en_US") -> str:
    """Format an amount in its currency.

    Known ISO 4217 codes get locale-aware formatting; anything else is
    rendered as ``"<CODE> <amount>"`` with two decimals.
    """
    if is_currency(currency):
        return babel_format_currency(amount, currency, locale=locale)
    return f"{currency} {amount:.2f}"


def _initials(name: str) -> str:
    return "".join(part[0] for part in name.split() if part)[:2].upper()


def _format_quantity(quantity: float) -> str:
    return str(int(quantity)) if float(quantity).is_integer() else f"{quantity:g}"


def _pair(label: str, value: str | None, placeholder: str = "", cls: str = "") -> ViewNode:
    return el(
        "div",
        el("span", label, cls="field-label"),
        el("span", value or placeholder, cls="field-value"),
        cls=f"field-pair {cls}".strip(),
    )


def _row(left: ViewNode | None, right: ViewNode | None, cls: str = "") -> ViewNode:
    return el("div", left or el("div", cls="field-pair"), right, cls=f"report-row {cls}".strip())


def _toolbar(record: ReceiptRecord, config: ExportConfig) -> ViewNode:
    needs_review = record.needs_review(config.review_threshold)
    return el(
        "div",
        el(
            "div",
            el("span", cls="status-dot review" if needs_review else "status-dot verified"),
            el("span", "Review Needed" if needs_review else "Verified", cls="status-label"),
            cls="status",
        ),
        el("button", "JSON", cls="action", type="button", title="Copy JSON to Clipboard"),
        el("button", "Download / Print", cls="action primary", type="button"),
        el("button", "New Scan", cls="action reset", type="button", title="Start New Scan"),
        cls="toolbar",
        screen_only=True,
    )


def _header(record: ReceiptRecord, config: ExportConfig) -> ViewNode:
    issuer = None
    if config.issuer_name:
        issuer = el(
            "div",
            el("span", config.issuer_name, cls="issuer-name"),
            el("span", config.issuer_tagline, cls="issuer-tagline") if config.issuer_tagline else None,
            cls="issuer",
        )
    date_block = el(
        "div",
        el("span", "Date", cls="section-label"),
        el("input", cls="date-input", binding="date", type="date", value=record.date),
        cls="date-block",
    )
    return el("div", issuer or el("div", cls="issuer"), date_block, cls="receipt-header")


def _merchant(record: ReceiptRecord) -> ViewNode:
    return el(
        "div",
        el(
            "div",
            el("div", _initials(record.merchant_name), cls="merchant-logo"),
            el(
                "div",
                el("h2", record.merchant_name, cls="merchant-name", editable=True),
                el("p", record.merchant_address, cls="text-sm", editable=True)
                if record.merchant_address
                else None,
                el("p", record.merchant_phone, cls="text-sm") if record.merchant_phone else None,
            ),
            cls="merchant-identity",
        ),
        el(
            "div",
            el("span", "Invoice No", cls="section-label"),
            el("span", record.invoice_number or "", cls="invoice-number text-3xl", editable=True),
            el("span", record.time, cls="text-sm") if record.time else None,
            cls="invoice-meta",
        ),
        cls="merchant",
    )


def _report_header(record: ReceiptRecord) -> ViewNode:
    medical = record.medical_details
    title = "INVOICE" if medical.is_empty() else "MEDICAL REPORT"
    rows = [
        _row(
            _pair("NAME&SURNAME :", record.client_name, placeholder="______________________"),
            _pair("OUR REF. NO :", medical.our_ref_no, cls="right"),
        ),
        _row(
            _pair("DATE OF BIRTH :", record.client_birth_date),
            _pair("YOUR REF. NO :", medical.your_ref_no, cls="right"),
        ),
        _row(
            _pair("HOME ADDRESS :", record.client_country),
            el(
                "div",
                el("span", "HOTEL :", cls="field-label"),
                el("span", medical.hotel or "", cls="field-value"),
                el("span", "ROOM NO :", cls="field-label"),
                el("span", medical.room_no or "", cls="field-value"),
                cls="field-pair right",
            ),
        ),
        _row(
            _pair("PASSPORT NO :", record.client_passport),
            None,
        ),
        _row(
            _pair("INSURANCE :", medical.insurance),
            _pair("PATIENT'S PHONE :", medical.patient_phone, cls="right"),
            cls="spaced",
        ),
        _row(
            _pair("TRAVEL DATES :", medical.travel_dates, placeholder="/"),
            _pair("POLICY NUMBER :", medical.policy_number, cls="right"),
        ),
        _row(
            None,
            _pair(
                "ADMISSION DATE / HOUR :",
                medical.admission_date or record.service_date,
                cls="right",
            ),
        ),
        _row(None, _pair("DISCHARGED DATE / HOUR :", medical.discharge_date, cls="right")),
    ]
    return el(
        "div",
        el("div", el("h1", title), cls="report-title"),
        el("div", *rows, cls="report-fields"),
        cls="report-header",
    )


CLINICAL_SECTIONS = (
    ("DIAGNOSIS", "diagnosis"),
    ("COMPLAINT", "complaint"),
    ("HISTORY", "history"),
    ("PHYSICAL EXAMINATION", "physical_examination"),
    ("TREATMENT", "treatment"),
    ("PROGNOSIS", "prognosis"),
)


def _clinical(record: ReceiptRecord) -> ViewNode | None:
    medical = record.medical_details
    if not (medical.diagnosis or medical.history):
        return None
    blocks: list[ViewNode] = []
    for heading, attr in CLINICAL_SECTIONS:
        text = getattr(medical, attr)
        if text:
            blocks.append(el("div", el("h4", heading), el("p", text, cls="text-sm narrative")))
    return el("div", *blocks, cls="clinical")


def _line_items(record: ReceiptRecord, locale: str) -> ViewNode:
    head = el(
        "thead",
        el(
            "tr",
            el("th", "Description", cls="description"),
            el("th", "Quantity", cls="center"),
            el("th", "Unit Price", cls="right"),
            el("th", "Total", cls="right"),
        ),
    )
    rows = [
        el(
            "tr",
            el("td", item.description, cls="description text-base", editable=True),
            el("td", _format_quantity(item.quantity), cls="center mono"),
            el("td", format_currency(item.unit_price, record.currency, locale), cls="right mono"),
            el(
                "td",
                format_currency(item.total_price, record.currency, locale),
                cls="right mono strong text-base",
            ),
        )
        for item in record.items
    ]
    return el("div", el("table", head, el("tbody", *rows), cls="items"), cls="line-items")


def _totals(record: ReceiptRecord, locale: str) -> ViewNode:
    def amount_row(label: str, amount: str, cls: str = "") -> ViewNode:
        return el(
            "div",
            el("span", label),
            el("span", amount, cls="mono"),
            cls=f"total-row {cls}".strip(),
        )

    rows = [amount_row("Subtotal", format_currency(record.subtotal, record.currency, locale))]
    if record.discount:
        rows.append(
            amount_row(
                "Discount",
                f"-{format_currency(record.discount, record.currency, locale)}",
                cls="discount",
            )
        )
    if record.tip:
        rows.append(amount_row("Tip", format_currency(record.tip, record.currency, locale)))
    rows.append(amount_row("Tax", format_currency(record.tax, record.currency, locale)))
    rows.append(
        el(
            "div",
            el("span", "Total Due", cls="total-label"),
            el("span", format_currency(record.total, record.currency, locale), cls="grand-total text-3xl mono"),
            cls="total-row grand",
        )
    )
    return el("div", el("div", *rows, cls="totals-box"), cls="totals")


BANK_ROWS = (
    ("Bank", "bank_name"),
    ("Location", "location"),
    ("Beneficiary", "account_name"),
    ("Account No", "account_number"),
    ("IBAN", "iban"),
    ("SWIFT", "swift"),
)


def _bank(record: ReceiptRecord) -> ViewNode | None:
    bank = record.bank_details
    if bank.is_empty():
        return None
    rows = [
        _pair(f"{label} :", getattr(bank, attr), cls="bank-row")
        for label, attr in BANK_ROWS
        if getattr(bank, attr)
    ]
    return el("div", el("h4", "Payment Details"), *rows, cls="bank-details")


def _issuer_footer(config: ExportConfig) -> ViewNode | None:
    if not config.issuer_footer_lines:
        return None
    return el(
        "div",
        *(el("div", line) for line in config.issuer_footer_lines),
        cls="issuer-footer",
    )


def _footer(record: ReceiptRecord) -> ViewNode:
    return el(
        "div",
        el("span", "Digitally extracted", cls="text-xs"),
        el("p", f'"{record.summary}"', cls="text-xs summary") if record.summary else None,
        cls="screen-footer",
        screen_only=True,
    )


def build_receipt_view(record: ReceiptRecord, config: ExportConfig | None = None) -> ViewNode:
    """Build the on-screen presentation of ``record``.

    Args:
        record: The displayed record, user edits already merged.
        config: Export configuration (locale, issuer block, review threshold).

    Returns:
        Root node carrying the ``receipt-container`` class.
    """
    config = config or ExportConfig()
    locale = config.locale
    logger.debug("Building view for %s (%d items)", record.invoice_number, len(record.items))
    return el(
        "div",
        _toolbar(record, config),
        el("div", cls="top-bar"),
        _header(record, config),
        _merchant(record),
        _report_header(record),
        _clinical(record),
        _line_items(record, locale),
        _totals(record, locale),
        _bank(record),
        _issuer_footer(config),
        el(
            "div",
            el("div", el("span", "Authorized Signature & Stamp", cls="section-label"), cls="signature-box"),
            cls="signature",
        ),
        _footer(record),
        cls=RECEIPT_CONTAINER_CLASS,
        style="min-height: 800px",
        data_invoice_number=record.invoice_number or "",
    )
