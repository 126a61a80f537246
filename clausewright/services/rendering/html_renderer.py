"""Serialize a LogicalDocument to print-styled HTML or plain text.

HTML goes through a Jinja2 template with autoescaping on: headings, cover
metadata and labels are plain strings and get escaped, clause bodies and
fragments arrive as Markup and are emitted as-is.
"""
import html
import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape
from markupsafe import Markup

from clausewright.services.assembly_service import LogicalDocument, NodeKind
from clausewright.services.rendering.base import PageGeometry
from clausewright.services.variables import format_date, format_value

TEMPLATES_DIR = Path(__file__).resolve().parents[2] / "templates"

CONTRACT_TITLES = {
    "ONE": "ONE Agreement",
    "MANUFACTURING": "Manufacturing Subcontractor Agreement",
    "ONSITE": "On-Site Installation Subcontractor Agreement",
}

_OPENING_PARAGRAPH = re.compile(r"^\s*<p\b[^>]*>", re.IGNORECASE)
_BLOCK_END = re.compile(r"<br\s*/?>|</(?:p|div|tr|li|h[1-6]|table)>", re.IGNORECASE)
_CELL_END = re.compile(r"</t[dh]>", re.IGNORECASE)
_TAG = re.compile(r"<[^>]+>")


def contract_title(contract_type: str) -> str:
    key = contract_type.upper()
    return CONTRACT_TITLES.get(key, f"{key.replace('_', ' ').title()} Agreement")


def _display_date(value: Any) -> str | None:
    if isinstance(value, str):
        try:
            return format_date(date.fromisoformat(value))
        except ValueError:
            return value or None
    return format_value(value)


@dataclass(frozen=True)
class ContractMetadata:
    """Cover-page facts. Not a clause; synthesized from the contract type and project data."""

    contract_type: str
    title: str
    project_number: str | None = None
    project_name: str | None = None
    execution_date: str | None = None

    @classmethod
    def from_variables(cls, contract_type: str, variables: Mapping[str, Any]) -> "ContractMetadata":
        execution = variables.get("AGREEMENT_EXECUTION_DATE") or variables.get("EFFECTIVE_DATE")
        return cls(
            contract_type=contract_type,
            title=contract_title(contract_type),
            project_number=format_value(variables.get("PROJECT_NUMBER")),
            project_name=format_value(variables.get("PROJECT_NAME")),
            execution_date=_display_date(execution),
        )

    def cover_lines(self) -> list[str]:
        lines = []
        if self.project_number:
            lines.append(f"Project No. {self.project_number}")
        if self.project_name:
            lines.append(f"Project: {self.project_name}")
        if self.execution_date:
            lines.append(f"Dated: {self.execution_date}")
        return lines


def inline_label(body: Markup, label: str | None) -> Markup:
    """Prefix a paragraph body with its bold code, inside the opening <p> when there is one."""
    body = Markup(body)
    if not label:
        return body
    prefix = Markup('<strong class="clause-label">{}</strong> ').format(label)
    match = _OPENING_PARAGRAPH.match(body)
    if match is None:
        return prefix + body
    return Markup(body[: match.end()]) + prefix + Markup(body[match.end():])


def html_to_text(markup: str) -> str:
    text = _BLOCK_END.sub("\n", str(markup))
    text = _CELL_END.sub("\t", text)
    text = html.unescape(_TAG.sub("", text))
    lines = (line.strip() for line in text.splitlines())
    return "\n".join(line for line in lines if line)


def _create_env() -> Environment:
    env = Environment(
        loader=FileSystemLoader(TEMPLATES_DIR),
        autoescape=select_autoescape(["html"]),
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["inline_label"] = inline_label
    return env


_env = _create_env()


def render_html(
    document: LogicalDocument,
    metadata: ContractMetadata,
    geometry: PageGeometry | None = None,
    signature: Markup | None = None,
) -> str:
    template = _env.get_template("contract.html")
    return template.render(
        document=document,
        metadata=metadata,
        geometry=geometry or PageGeometry(),
        signature=signature,
        NodeKind=NodeKind,
    )


def render_text(document: LogicalDocument, metadata: ContractMetadata) -> str:
    parts = [metadata.title.upper(), *metadata.cover_lines()]
    for node in document.nodes:
        body = html_to_text(node.body)
        if node.kind is NodeKind.MAJOR_HEADING:
            parts.append(f"\n\n{node.heading}\n")
        elif node.kind is NodeKind.MINOR_HEADING:
            parts.append(f"\n{node.heading}\n")
        elif node.label:
            body = f"{node.label} {body}"
        if body:
            parts.append(body)
    return "\n".join(parts).strip() + "\n"
