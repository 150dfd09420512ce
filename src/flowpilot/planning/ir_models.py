"""Pydantic models for the planner's structured data and LLM output."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# Models delivered to observers serialize with camelCase keys (pieceName,
# actionOrTriggerName); snake_case names are accepted on input.
WIRE_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StepKind(str, Enum):
    """Kind of a flow step."""

    TRIGGER = "TRIGGER"
    ACTION = "ACTION"
    ROUTER = "ROUTER"


class ContextItem(BaseModel):
    """A piece returned by the retriever as relevant to the user request."""

    model_config = ConfigDict(frozen=True)

    piece_name: str
    content: str
    similarity: Optional[float] = None
    logo_url: Optional[str] = None

    @property
    def relevance_score(self) -> float:
        """Similarity reported to observers, 0 when the retriever supplied none."""
        return self.similarity or 0.0


class PlannedStepIntent(BaseModel):
    """High-level step intent produced by the coarse planner."""

    model_config = WIRE_CONFIG

    type: StepKind = Field(description="TRIGGER, ACTION or ROUTER")
    piece_name: Optional[str] = Field(None, description="Name of the piece providing the trigger or action")
    action_or_trigger_name: Optional[str] = Field(None, description="Name of the trigger or action to use")
    condition: Optional[str] = Field(None, description="Branch condition, only for ROUTER steps")


class CoarsePlan(BaseModel):
    """Coarse plan for a flow, before per-step materialization."""

    model_config = WIRE_CONFIG

    name: str = Field(description="Descriptive name summarizing what the flow does")
    description: str = Field(description="Clear description of the flow's purpose")
    steps: list[PlannedStepIntent] = Field(..., min_length=1, description="Ordered step intents")


class InputField(BaseModel):
    """One configured input value of a step."""

    name: str = Field(description="Input property name")
    value: str = Field(description="Value or reference to a previous step output, e.g. {{trigger.row}}")


class StepConfiguration(BaseModel):
    """Structured LLM output for a step's input configuration."""

    inputs: list[InputField] = Field(default_factory=list)


class MaterializedStep(BaseModel):
    """Fully specified flow step."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    name: str
    type: StepKind
    display_name: str
    piece_name: Optional[str] = None
    action_or_trigger_name: Optional[str] = None
    condition: Optional[str] = None
    input: dict[str, Any] = Field(default_factory=dict)


class FlowDocument(BaseModel):
    """Final artifact of a planner invocation."""

    model_config = WIRE_CONFIG

    name: str
    description: str
    steps: list[MaterializedStep]


class ExplicitStep(BaseModel):
    """Caller-supplied step of an explicit step sequence."""

    type: StepKind
    description: str = Field(..., min_length=1)


class ExplicitStepSequence(BaseModel):
    """Ordered steps the coarse plan must reproduce exactly."""

    steps: list[ExplicitStep] = Field(..., min_length=1)


class PlanOptions(BaseModel):
    """Per-invocation planner options."""

    relevance_threshold: Optional[float] = None
    custom_prompt: Optional[str] = None
    step_sequence: Optional[ExplicitStepSequence] = None

    @field_validator("custom_prompt")
    @classmethod
    def validate_custom_prompt(cls, v: Optional[str]) -> Optional[str]:
        """Treat a blank custom prompt as absent."""
        if v is not None and not v.strip():
            return None
        return v
