"""Custom exceptions for flowpilot."""

from typing import Optional


class FlowpilotError(Exception):
    """Base exception for all flowpilot errors."""

    pass


class CatalogError(FlowpilotError):
    """Raised when the piece catalog cannot be read or parsed."""

    pass


class PieceNotFoundError(FlowpilotError):
    """Raised when a piece cannot be found in the catalog."""

    pass


class PlanningError(FlowpilotError):
    """Raised when a planning stage fails and the invocation must abort.

    Every planning failure is fatal: no flow document is returned and no
    further progress events are emitted. Events emitted before the failure
    remain valid.
    """

    stage = "planning"

    def __init__(self, reason: str, original_error: Optional[Exception] = None):
        self.reason = reason
        self.original_error = original_error

        message = f"{self.stage} failed: {reason}"
        if original_error:
            message = f"{message}\nOriginal error: {original_error!s}"

        super().__init__(message)


class RetrievalError(PlanningError):
    """Raised when the context retriever is unavailable or errored."""

    stage = "Context retrieval"


class GenerationError(PlanningError):
    """Raised when the generation provider exhausted its retries or returned invalid output."""

    stage = "Plan generation"


class MaterializationError(PlanningError):
    """Raised when a planned step intent cannot be resolved into a concrete step."""

    stage = "Step materialization"

    def __init__(
        self,
        reason: str,
        step_index: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ):
        self.step_index = step_index
        if step_index is not None:
            reason = f"step {step_index}: {reason}"
        super().__init__(reason, original_error=original_error)
