"""Step materialization: turn a planned step intent into a concrete flow step.

Each call sees the steps materialized so far in this invocation, in order,
so generated inputs can reference earlier outputs (``{{trigger.body}}``,
``{{step_1.id}}``). The previous steps are a read-only snapshot.
"""

import json
import logging
from collections.abc import Sequence
from typing import Optional, Protocol

from flowpilot.core.exceptions import GenerationError, MaterializationError, PieceNotFoundError
from flowpilot.pieces.catalog import Piece, PieceCapability, PieceCatalog
from flowpilot.planning.ir_models import MaterializedStep, PlannedStepIntent, StepConfiguration, StepKind
from flowpilot.planning.prompts.loader import format_prompt, load_prompt
from flowpilot.planning.utils.llm_helpers import StructuredGenerator

logger = logging.getLogger(__name__)


class StepMaterializer(Protocol):
    """Produces one fully specified step from an intent and the steps before it."""

    def create_step(
        self, intent: PlannedStepIntent, previous_steps: Sequence[MaterializedStep]
    ) -> MaterializedStep: ...


def step_name_for(kind: StepKind, previous_steps: Sequence[MaterializedStep]) -> str:
    """Name of the next step: ``trigger`` for the trigger, ``step_{n}`` otherwise.

    Non-trigger steps are numbered from 1 in flow order.
    """
    if kind == StepKind.TRIGGER:
        return "trigger"
    non_trigger_count = sum(1 for step in previous_steps if step.type != StepKind.TRIGGER)
    return f"step_{non_trigger_count + 1}"


class CatalogStepMaterializer:
    """Resolve intents against the piece catalog and generate step inputs."""

    def __init__(
        self,
        catalog: PieceCatalog,
        generator: Optional[StructuredGenerator] = None,
        temperature: float = 0.3,
        max_output_tokens: int = 1000,
        max_retries: int = 3,
    ) -> None:
        """Initialize the materializer.

        Args:
            catalog: Pieces that intents may reference
            generator: Generates step inputs; without one, steps get empty inputs
            temperature: Sampling temperature for input generation
            max_output_tokens: Output bound for input generation
            max_retries: Attempts per generation call on transient failures
        """
        self.catalog = catalog
        self.generator = generator
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.max_retries = max_retries

    def create_step(self, intent: PlannedStepIntent, previous_steps: Sequence[MaterializedStep]) -> MaterializedStep:
        """Materialize one step.

        Raises:
            MaterializationError: If the piece or trigger/action cannot be
                resolved, a ROUTER intent has no condition, or input
                generation fails
        """
        previous_steps = tuple(previous_steps)
        name = step_name_for(intent.type, previous_steps)

        if intent.type == StepKind.ROUTER:
            condition = (intent.condition or "").strip()
            if not condition:
                raise MaterializationError("ROUTER step requires a branch condition")
            return MaterializedStep(
                name=name,
                type=intent.type,
                display_name="Router",
                piece_name=intent.piece_name,
                condition=condition,
            )

        piece = self._resolve_piece(intent)
        capability_name, capability = self._resolve_capability(piece, intent)

        inputs: dict[str, str] = {}
        if self.generator is not None and capability.props:
            inputs = self._generate_inputs(
                self.generator, name, intent.type, piece, capability_name, capability, previous_steps
            )

        logger.debug(
            f"Materialized {name}: {piece.name}.{capability_name} with {len(inputs)} input(s)",
            extra={"phase": "exec", "step": name},
        )
        return MaterializedStep(
            name=name,
            type=intent.type,
            display_name=capability.display_name,
            piece_name=piece.name,
            action_or_trigger_name=capability_name,
            condition=intent.condition,
            input=inputs,
        )

    def _resolve_piece(self, intent: PlannedStepIntent) -> Piece:
        if not intent.piece_name:
            raise MaterializationError(f"{intent.type.value} step has no piece")
        try:
            return self.catalog.get(intent.piece_name)
        except PieceNotFoundError as e:
            raise MaterializationError(str(e), original_error=e) from e

    def _resolve_capability(self, piece: Piece, intent: PlannedStepIntent) -> tuple[str, PieceCapability]:
        if intent.type == StepKind.TRIGGER:
            kind, capabilities = "trigger", piece.triggers
        else:
            kind, capabilities = "action", piece.actions

        if intent.action_or_trigger_name:
            capability = capabilities.get(intent.action_or_trigger_name)
            if capability is None:
                raise MaterializationError(
                    f"Piece '{piece.name}' has no {kind} '{intent.action_or_trigger_name}'. "
                    f"Available: {sorted(capabilities)}"
                )
            return intent.action_or_trigger_name, capability

        if len(capabilities) == 1:
            return next(iter(capabilities.items()))

        raise MaterializationError(
            f"No {kind} named for piece '{piece.name}' and it offers {len(capabilities)} {kind}s to choose from"
        )

    def _generate_inputs(
        self,
        generator: StructuredGenerator,
        name: str,
        kind: StepKind,
        piece: Piece,
        capability_name: str,
        capability: PieceCapability,
        previous_steps: tuple[MaterializedStep, ...],
    ) -> dict[str, str]:
        capability_kind = "Trigger" if kind == StepKind.TRIGGER else "Action"
        prompt = format_prompt(
            load_prompt("step_configuration"),
            {
                "step_name": name,
                "step_type": kind.value,
                "piece_name": piece.name,
                "capability_kind": capability_kind,
                "capability_name": capability_name,
                "capability_description": capability.description or capability.display_name,
                "properties": "\n".join(f"- {prop}: {description}" for prop, description in capability.props.items()),
                "previous_steps": json.dumps(
                    [step.model_dump(mode="json", by_alias=True) for step in previous_steps], indent=2
                ),
            },
        )

        try:
            configuration = generator.generate_structured(
                prompt,
                StepConfiguration,
                max_retries=self.max_retries,
                temperature=self.temperature,
                max_output_tokens=self.max_output_tokens,
            )
        except GenerationError as e:
            raise MaterializationError(f"Input generation failed for {name}: {e.reason}", original_error=e) from e

        inputs = {}
        for field in configuration.inputs:
            if field.name not in capability.props:
                logger.debug(f"Dropping undeclared input '{field.name}' for {name}")
                continue
            inputs[field.name] = field.value
        return inputs
