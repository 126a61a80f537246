class ClausewrightError(Exception):
    """Base exception for all Clausewright errors."""
    pass


class GenerationError(ClausewrightError):
    """A fatal error for one document. `stage` names the pipeline step that failed."""

    stage: str = "generate"

    def __init__(self, message: str, contract_type: str | None = None):
        self.contract_type = contract_type
        super().__init__(message)

    def to_dict(self) -> dict:
        payload = {"stage": self.stage, "error": str(self)}
        if self.contract_type is not None:
            payload["contract_type"] = self.contract_type
        return payload


class TemplateNotFoundError(GenerationError):
    stage = "resolve"

    def __init__(self, contract_type: str):
        super().__init__(f"No active template found for contract type: {contract_type}", contract_type)


class ClausesNotFoundError(GenerationError):
    stage = "fetch"

    def __init__(self, contract_type: str, clause_ids: list[int]):
        self.clause_ids = clause_ids
        super().__init__(
            f"Template for {contract_type} resolved to no existing clauses (ids: {clause_ids})",
            contract_type,
        )

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["clause_ids"] = self.clause_ids
        return payload


class RenderingError(GenerationError):
    """Raised when the fixed-page rendering delegate fails."""

    stage = "render"

    def __init__(self, contract_type: str | None, reason: str):
        self.reason = reason
        super().__init__(f"Rendering failed for {contract_type or 'document'}: {reason}", contract_type)


class RenderTimeoutError(RenderingError):
    def __init__(self, contract_type: str | None, timeout: float):
        self.timeout = timeout
        super().__init__(contract_type, f"timed out after {timeout}s")


class UnsupportedFormatError(ClausewrightError):
    def __init__(self, output_format: str):
        self.output_format = output_format
        super().__init__(f"Unsupported output format: {output_format!r}. Use pdf, html or txt.")


class SourceDecodeError(ClausewrightError):
    """Raised when a source document cannot be decoded into a block stream at all."""

    stage = "ingest"

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Could not decode source document {source}: {reason}")


class SourceNotFoundError(ClausewrightError):
    def __init__(self, source: str):
        self.source = source
        super().__init__(f"Source document not found: {source}")
