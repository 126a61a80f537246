"""Structural HTML fragments that enter the document as pre-sanitized Markup.

Every piece of text passed in is escaped while the fragment is built, so the
result can be inserted into a clause body or the page template verbatim.
"""
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from markupsafe import Markup

from clausewright.services.variables import format_value, to_variable_name

TABLE_STYLES = {
    "header_bg": "#2c3e50",
    "header_text": "#ffffff",
    "header_font": "font-weight: bold; font-size: 10pt; font-family: Arial, sans-serif;",
    "even_row_bg": "#ffffff",
    "odd_row_bg": "#f8f9fa",
    "total_row_bg": "#f0f0f0",
    "border": "1px solid #dee2e6",
    "header_border": "1px solid #2c3e50",
    "cell_padding": "padding: 8px 12px;",
    "table_base": "width: 100%; border-collapse: collapse; margin: 12px 0; font-size: 10pt; font-family: Arial, sans-serif;",
}

_ALIGNMENTS = ("left", "center", "right")


@dataclass
class StyledColumn:
    header: str
    width: str | None = None
    align: str = "left"

    def __post_init__(self):
        if self.align not in _ALIGNMENTS:
            raise ValueError(f"Unsupported column alignment: {self.align!r}")

    def cell_style(self) -> str:
        width = f" width: {self.width};" if self.width else ""
        return f"text-align: {self.align};{width}"


@dataclass
class StyledRow:
    cells: Sequence[Any]
    is_bold: bool = False
    is_total: bool = False


def build_styled_table(
    columns: Sequence[StyledColumn],
    rows: Sequence[StyledRow],
    caption: str | None = None,
) -> Markup:
    styles = TABLE_STYLES
    header_cells = Markup("").join(
        Markup(
            '<th style="background-color: {bg}; color: {fg}; {font} {pad} {cell} border: {border};">{text}</th>'
        ).format(
            bg=styles["header_bg"],
            fg=styles["header_text"],
            font=styles["header_font"],
            pad=styles["cell_padding"],
            cell=column.cell_style(),
            border=styles["header_border"],
            text=column.header,
        )
        for column in columns
    )

    body_rows = []
    for index, row in enumerate(rows):
        if row.is_total:
            background = styles["total_row_bg"]
        else:
            background = styles["even_row_bg"] if index % 2 == 0 else styles["odd_row_bg"]
        weight = "font-weight: bold;" if row.is_bold or row.is_total else ""
        border = styles["header_border"] if row.is_total else styles["border"]

        cells = []
        for position, cell in enumerate(row.cells):
            column_style = columns[position].cell_style() if position < len(columns) else "text-align: left;"
            cells.append(Markup(
                '<td style="background-color: {bg}; {pad} {weight} {cell} border: {border};">{text}</td>'
            ).format(
                bg=background,
                pad=styles["cell_padding"],
                weight=weight,
                cell=column_style,
                border=border,
                text=cell if isinstance(cell, Markup) else (format_value(cell) or ""),
            ))
        body_rows.append(Markup("<tr>{}</tr>").format(Markup("").join(cells)))

    html = Markup("")
    if caption:
        html += Markup('<p style="font-weight: bold; font-size: 11pt; margin-bottom: 4px;">{}</p>').format(caption)
    html += Markup('<table style="{}"><thead><tr>{}</tr></thead><tbody>{}</tbody></table>').format(
        styles["table_base"], header_cells, Markup("").join(body_rows)
    )
    return html


def _column_title(key: str) -> str:
    """paymentDue -> "Payment Due"."""
    return to_variable_name(key).replace("_", " ").title()


def table_from_records(records: Sequence[Mapping[str, Any]], caption: str | None = None) -> Markup:
    """Styled table for a list of row mappings; columns follow first-seen key order."""
    keys = list(dict.fromkeys(key for record in records for key in record))
    columns = [StyledColumn(header=_column_title(key)) for key in keys]
    rows = [StyledRow(cells=[record.get(key) for key in keys]) for record in records]
    return build_styled_table(columns, rows, caption=caption)


_SIGNATURE_LINE = "border-bottom: 1px solid #000; margin-bottom: 4pt; height: 20pt;"
_SIGNATURE_LABEL = "font-size: 9pt; color: #666; margin-bottom: 2pt;"


def _signature_column(title: str, party: str, signer: str | None, signer_title: str | None, padding: str) -> Markup:
    lines = [("Signature", None), ("Name (Print)", signer), ("Title", signer_title), ("Date", None)]
    fields = Markup("").join(
        Markup('<div style="{margin}{line}"></div><div style="{label_style}">{label}{value}</div>').format(
            margin="" if index == 0 else "margin-top: 16pt; ",
            line=_SIGNATURE_LINE,
            label_style=_SIGNATURE_LABEL,
            label=label,
            value=f": {value}" if value else "",
        )
        for index, (label, value) in enumerate(lines)
    )
    return Markup(
        '<td style="width: 47%; border: none; vertical-align: top; {padding}">'
        '<div style="font-weight: bold; margin-bottom: 8pt;">{title}</div>'
        '<div style="font-weight: bold; margin-bottom: 24pt;">{party}</div>'
        "{fields}</td>"
    ).format(padding=padding, title=title, party=party, fields=fields)


def build_signature_block(
    company_name: str,
    client_name: str | None = None,
    client_signer_name: str | None = None,
    client_title: str | None = None,
    left_title: str = "COMPANY",
    right_title: str = "CLIENT",
    compact: bool = False,
) -> Markup:
    padding = "padding: 8pt;" if compact else "padding: 12pt;"
    return Markup(
        '<div class="signature-section" style="margin-top: 48pt; page-break-inside: avoid;">'
        '<table style="width: 100%; border: none; margin-top: 24pt;"><tr>'
        '{left}<td style="width: 6%; border: none;"></td>{right}'
        "</tr></table></div>"
    ).format(
        left=_signature_column(left_title, company_name, None, None, padding),
        right=_signature_column(right_title, client_name or "", client_signer_name, client_title, padding),
    )
