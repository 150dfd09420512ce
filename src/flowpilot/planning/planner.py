"""Planner entry point.

``Planner.plan()`` runs one invocation of the planner flow on a fresh shared
store and returns the assembled flow document. Progress events go to the
observer passed to that call only; nothing is shared between invocations
except the read-only collaborators.
"""

import logging
from typing import Any, Optional, Union

from flowpilot.core.exceptions import CatalogError
from flowpilot.core.llm_config import resolve_planner_model
from flowpilot.core.settings import FlowpilotSettings, LLMSettings
from flowpilot.pieces.catalog import PieceCatalog
from flowpilot.pieces.retriever import EmbeddingPieceRetriever, PieceRetriever
from flowpilot.planning.events import EventSink
from flowpilot.planning.flow import create_planner_flow
from flowpilot.planning.ir_models import FlowDocument, PlanOptions
from flowpilot.planning.materializer import CatalogStepMaterializer, StepMaterializer
from flowpilot.planning.utils.llm_helpers import LLMStructuredGenerator, StructuredGenerator

logger = logging.getLogger(__name__)


class Planner:
    """Turns a free-text automation request into a flow document."""

    def __init__(
        self,
        retriever: PieceRetriever,
        generator: StructuredGenerator,
        materializer: StepMaterializer,
        llm_settings: Optional[LLMSettings] = None,
    ) -> None:
        self.retriever = retriever
        self.generator = generator
        self.materializer = materializer
        self.llm_settings = llm_settings or LLMSettings()

    def plan(
        self,
        prompt: str,
        observer: Optional[EventSink] = None,
        options: Union[PlanOptions, dict[str, Any], None] = None,
    ) -> FlowDocument:
        """Plan a flow for the request.

        Args:
            prompt: Free-text automation request
            observer: Receives CONTEXT_FOUND, PLAN_GENERATED and STEP_CREATED events
            options: relevance_threshold, custom_prompt and step_sequence

        Returns:
            The flow document

        Raises:
            RetrievalError: If the retriever failed
            GenerationError: If the coarse plan could not be generated or validated
            MaterializationError: If a planned step could not be materialized
        """
        if not prompt or not prompt.strip():
            raise ValueError("Prompt must not be empty")

        if options is None:
            options = PlanOptions()
        elif not isinstance(options, PlanOptions):
            options = PlanOptions.model_validate(options)

        shared: dict[str, Any] = {
            "user_input": prompt,
            "options": options,
            "event_sink": observer,
            "retriever": self.retriever,
            "generator": self.generator,
            "materializer": self.materializer,
        }

        flow = create_planner_flow(
            temperature=self.llm_settings.temperature,
            max_output_tokens=self.llm_settings.max_output_tokens,
            max_retries=self.llm_settings.max_retries,
        )
        flow.run(shared)

        flow_document: FlowDocument = shared["flow_document"]
        return flow_document


def build_planner(
    settings: FlowpilotSettings,
    model: Optional[str] = None,
    catalog: Optional[PieceCatalog] = None,
) -> Planner:
    """Create a planner backed by the llm library and the piece catalog.

    Args:
        settings: Loaded flowpilot settings
        model: Generation model overriding settings and auto-detection
        catalog: Pieces to plan with; loaded from settings.retrieval.catalog_path when omitted

    Raises:
        CatalogError: If no catalog is given or configured, or it cannot be loaded
    """
    if catalog is None:
        if settings.retrieval.catalog_path is None:
            raise CatalogError("No piece catalog configured. Pass --catalog or set FLOWPILOT_CATALOG")
        catalog = PieceCatalog.load(settings.retrieval.catalog_path)

    llm_settings = settings.llm
    model_name = resolve_planner_model(settings, model)
    logger.debug(f"Building planner (model: {model_name}, embeddings: {llm_settings.embedding_model})")

    generator = LLMStructuredGenerator(model_name, wait=llm_settings.retry_wait)
    retriever = EmbeddingPieceRetriever(
        catalog,
        embedding_model=llm_settings.embedding_model,
        default_threshold=settings.retrieval.relevance_threshold,
        top_k=settings.retrieval.top_k,
    )
    materializer = CatalogStepMaterializer(
        catalog,
        generator=generator,
        temperature=llm_settings.temperature,
        max_output_tokens=llm_settings.max_output_tokens,
        max_retries=llm_settings.max_retries,
    )
    return Planner(retriever, generator, materializer, llm_settings=llm_settings)
