import re
import time

import pytest

from clausewright.exceptions import RenderingError, RenderTimeoutError, TemplateNotFoundError, UnsupportedFormatError
from clausewright.services.generation_service import (
    FAILED,
    SUCCEEDED,
    ContractGenerationService,
    build_filename,
    sanitize_project_name,
)
from clausewright.services.rendering.base import RenderingDelegate
from tests.fakes import FakeRenderer


class SlowRenderer(RenderingDelegate):
    def render(self, html, geometry):
        time.sleep(0.5)
        return b"%PDF-late"


@pytest.fixture
def renderer():
    return FakeRenderer()


@pytest.fixture
def service(clause_repo, template_repo, renderer, settings):
    return ContractGenerationService(clause_repo, template_repo, renderer, settings)


def test_build_filename():
    assert build_filename("Harbor View #2", "ONE", "pdf", 1700000000000) == "Harbor_View__2_ONE_1700000000000.pdf"
    assert sanitize_project_name(None) == "Unnamed"
    assert sanitize_project_name("") == "Unnamed"


async def test_generate_html(service, renderer, project_data):
    result = await service.generate("ONE", project_data, "html")
    html = result.content.decode("utf-8")

    assert re.fullmatch(r"Harbor_View_Residences_ONE_\d+\.html", result.filename)
    assert result.media_type == "text/html; charset=utf-8"
    assert result.clause_count == 4
    assert result.unresolved_variables == []
    assert "This Agreement is made for Harbor View Residences." in html
    assert "The Company provides CRC services." in html
    assert "CMOS" not in html
    assert "Harbor View LLC" in html
    assert "Acme Modular Inc." in html
    assert renderer.calls == []


async def test_generate_pdf_uses_delegate(service, renderer, project_data):
    result = await service.generate("ONE", project_data, "pdf")

    assert result.content.startswith(b"%PDF")
    assert result.media_type == "application/pdf"
    assert result.filename.endswith(".pdf")
    (html, geometry), = renderer.calls
    assert "1. DEFINITIONS" in html
    assert (geometry.page_size, geometry.margin_pt) == ("letter", 72)


async def test_generate_defaults_to_configured_format(service, project_data):
    result = await service.generate("ONE", project_data)
    assert result.output_format == "pdf"


async def test_generate_text(service, project_data):
    result = await service.generate("ONE", project_data, "txt")
    text = result.content.decode("utf-8")

    assert text.startswith("ONE AGREEMENT")
    assert "1.1.1 Access is granted on 2025-01-15." in text


async def test_missing_variables_are_visible(service, project_data):
    del project_data["SITE_ADDRESS"]

    result = await service.generate("ONE", project_data, "html")

    assert result.unresolved_variables == ["SITE_ADDRESS"]
    assert "[SITE_ADDRESS]" in result.content.decode("utf-8")


async def test_nested_project_data_is_flattened(service):
    result = await service.generate(
        "ONE", {"projectName": "Nested", "serviceModel": "CMOS", "site": {"address": "1 Main St"}}, "html"
    )
    html = result.content.decode("utf-8")

    assert "made for Nested." in html
    assert "located at 1 Main St." in html
    assert "The Client operates under CMOS." in html


async def test_unsupported_format(service, project_data):
    with pytest.raises(UnsupportedFormatError):
        await service.generate("ONE", project_data, "docx")


async def test_unknown_contract_type(service, project_data):
    with pytest.raises(TemplateNotFoundError):
        await service.generate("NOPE", project_data, "html")


async def test_rendering_failure_is_distinct(clause_repo, template_repo, settings, project_data):
    service = ContractGenerationService(clause_repo, template_repo, FakeRenderer(fail_marker="ONE Agreement"), settings)

    with pytest.raises(RenderingError) as exc_info:
        await service.generate("ONE", project_data, "pdf")

    assert exc_info.value.to_dict()["stage"] == "render"
    assert "layout engine crashed" in str(exc_info.value)


async def test_render_timeout_is_a_hard_failure(clause_repo, template_repo, settings, project_data):
    settings.RENDER_TIMEOUT_SECONDS = 0.05
    service = ContractGenerationService(clause_repo, template_repo, SlowRenderer(), settings)

    with pytest.raises(RenderTimeoutError) as exc_info:
        await service.generate("ONE", project_data, "pdf")

    assert exc_info.value.timeout == 0.05


async def test_package_reports_each_document(clause_repo, template_repo, settings, project_data):
    renderer = FakeRenderer(fail_marker="Manufacturing Subcontractor Agreement")
    service = ContractGenerationService(clause_repo, template_repo, renderer, settings)

    package = await service.generate_package(project_data, output_format="pdf")

    assert [doc.contract_type for doc in package.documents] == ["ONE", "MANUFACTURING", "ONSITE"]
    assert [doc.status for doc in package.documents] == [SUCCEEDED, FAILED, SUCCEEDED]
    assert (package.succeeded, package.failed) == (2, 1)
    assert package.documents[1].error["stage"] == "render"
    assert package.documents[1].contract is None
    assert package.documents[2].contract.content.startswith(b"%PDF")


async def test_package_with_unknown_type(service, project_data):
    package = await service.generate_package(project_data, ["NOPE", "ONE"], "html")

    failed, succeeded = package.documents
    assert failed.status == FAILED
    assert failed.error == {
        "stage": "resolve",
        "error": "No active template found for contract type: NOPE",
        "contract_type": "NOPE",
    }
    assert succeeded.status == SUCCEEDED
    assert succeeded.contract.clause_count == 4


async def test_preview(service, renderer, project_data):
    preview = await service.preview("ONE", project_data)

    assert [c.clause_id for c in preview.clauses] == [1, 2, 3, 5]
    assert [c.source for c in preview.clauses] == ["base", "base", "base", "conditional"]
    assert preview.clauses[3].conditions_met is True
    assert preview.summary == {"total": 4, "sections": 2, "subsections": 1, "paragraphs": 1, "conditional": 1}
    assert preview.missing_variables == []
    assert preview.template_id == 1
    assert renderer.calls == []


async def test_preview_reports_missing_variables(service):
    preview = await service.preview("ONE", {"SERVICE_MODEL": "CMOS"})

    assert preview.missing_variables == ["PROJECT_NAME", "SITE_ADDRESS"]
    assert preview.clauses[3].clause_id == 6


async def test_required_variables(service):
    required = await service.required_variables("ONE", {"PROJECT_NAME": "Harbor"})

    assert [(v.name, v.provided, v.clause_ids) for v in required] == [
        ("PROJECT_NAME", True, [1]),
        ("SITE_ADDRESS", False, [2]),
        ("CONTRACT_DATE", True, [3]),
    ]


async def test_compare_service_models(service):
    comparison = await service.compare_service_models("ONE", {"PROJECT_NAME": "Harbor"})

    assert comparison.clause_ids == {"CRC": [1, 2, 3, 5], "CMOS": [1, 2, 3, 6]}
    assert comparison.unique == {"CRC": [5], "CMOS": [6]}
    assert comparison.shared == [1, 2, 3]
