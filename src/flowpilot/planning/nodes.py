"""Planner nodes for the flow generation pipeline.

Each node owns one stage of the pipeline and follows the PocketFlow
prep/exec/post split:

- prep reads the stage's inputs from the shared store
- exec performs the single external call of the stage
- post commits the result to the shared store, then emits the progress event

Nodes never retry (max_retries=1): bounded retries on transient failures are
the generation provider's job. exec_fallback turns any failure into the
stage's PlanningError subclass, which aborts the flow.
"""

import logging
from typing import Any, Optional

from flowpilot.core.exceptions import GenerationError, MaterializationError, RetrievalError
from flowpilot.planning.events import (
    context_found_event,
    emit_event,
    plan_generated_event,
    step_created_event,
)
from flowpilot.planning.ir_models import (
    CoarsePlan,
    ExplicitStepSequence,
    FlowDocument,
    MaterializedStep,
    PlanOptions,
)
from flowpilot.planning.plan_prompt import build_plan_prompt
from pocketflow import Node

logger = logging.getLogger(__name__)


def _require(shared: dict[str, Any], key: str) -> Any:
    value = shared.get(key)
    if value is None:
        raise ValueError(f"Missing required '{key}' in shared store")
    return value


def _options(shared: dict[str, Any]) -> PlanOptions:
    return shared.get("options") or PlanOptions()


class ContextRetrievalNode(Node):
    """Find pieces relevant to the user request.

    Interface:
    - Reads: user_input (str), retriever (PieceRetriever), options (PlanOptions, optional),
      event_sink (EventSink, optional)
    - Writes: context_items (list[ContextItem])
    - Emits: CONTEXT_FOUND
    """

    name = "context-retrieval"

    def __init__(self) -> None:
        super().__init__(max_retries=1)

    def prep(self, shared: dict[str, Any]) -> dict[str, Any]:
        return {
            "user_input": _require(shared, "user_input"),
            "retriever": _require(shared, "retriever"),
            "threshold": _options(shared).relevance_threshold,
        }

    def exec(self, prep_res: dict[str, Any]) -> list[Any]:
        logger.debug(
            f"ContextRetrievalNode: Finding pieces for: {prep_res['user_input'][:100]}",
            extra={"phase": "exec"},
        )
        return list(prep_res["retriever"].find_relevant_pieces(prep_res["user_input"], prep_res["threshold"]))

    def exec_fallback(self, prep_res: dict[str, Any], exc: Exception) -> list[Any]:
        """Retrieval is critical - no steps can be planned without context."""
        if isinstance(exc, RetrievalError):
            raise exc
        raise RetrievalError("Context service unavailable or errored", original_error=exc) from exc

    def post(self, shared: dict[str, Any], prep_res: dict[str, Any], exec_res: list[Any]) -> str:
        shared["context_items"] = exec_res
        logger.info(
            f"ContextRetrievalNode: Found {len(exec_res)} relevant pieces",
            extra={"phase": "post", "pieces": [item.piece_name for item in exec_res]},
        )
        emit_event(shared.get("event_sink"), context_found_event(exec_res))
        return "default"


class PlanGenerationNode(Node):
    """Generate the coarse plan from the request and the retrieved pieces.

    Interface:
    - Reads: user_input (str), context_items (list[ContextItem]), generator (StructuredGenerator),
      options (PlanOptions, optional), event_sink (EventSink, optional)
    - Writes: plan_prompt (str), coarse_plan (CoarsePlan), steps (list, initialized empty)
    - Emits: PLAN_GENERATED

    When an explicit step sequence is supplied, the plan must reproduce it:
    same number of steps, same kinds in the same positions.
    """

    name = "plan-generation"

    def __init__(self, temperature: float = 0.3, max_output_tokens: int = 1000, max_retries: int = 3) -> None:
        """Initialize with generation settings.

        Args:
            temperature: Low temperature favors consistent plans
            max_output_tokens: Output bound for the plan
            max_retries: Attempts the provider may make on transient failures
        """
        super().__init__(max_retries=1)
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.generation_retries = max_retries

    def prep(self, shared: dict[str, Any]) -> dict[str, Any]:
        options = _options(shared)
        prompt = build_plan_prompt(
            _require(shared, "user_input"),
            shared.get("context_items") or [],
            custom_prompt=options.custom_prompt,
            step_sequence=options.step_sequence,
        )
        return {
            "prompt": prompt,
            "generator": _require(shared, "generator"),
            "step_sequence": options.step_sequence,
        }

    def exec(self, prep_res: dict[str, Any]) -> CoarsePlan:
        result = prep_res["generator"].generate_structured(
            prep_res["prompt"],
            CoarsePlan,
            max_retries=self.generation_retries,
            temperature=self.temperature,
            max_output_tokens=self.max_output_tokens,
        )
        plan = result if isinstance(result, CoarsePlan) else CoarsePlan.model_validate(result)

        if prep_res["step_sequence"] is not None:
            self._check_step_sequence(plan, prep_res["step_sequence"])

        logger.info(
            f"PlanGenerationNode: Generated '{plan.name}' with {len(plan.steps)} steps",
            extra={"phase": "exec", "steps": [step.type.value for step in plan.steps]},
        )
        return plan

    @staticmethod
    def _check_step_sequence(plan: CoarsePlan, sequence: ExplicitStepSequence) -> None:
        expected = [step.type for step in sequence.steps]
        actual = [step.type for step in plan.steps]
        if len(actual) != len(expected):
            raise GenerationError(
                f"Plan has {len(actual)} steps but the requested step sequence has {len(expected)}"
            )
        for position, (want, got) in enumerate(zip(expected, actual), start=1):
            if want != got:
                raise GenerationError(f"Plan step {position} is {got.value}, requested sequence expects {want.value}")

    def exec_fallback(self, prep_res: dict[str, Any], exc: Exception) -> CoarsePlan:
        """No partial plan is usable - abort the flow."""
        if isinstance(exc, GenerationError):
            raise exc
        raise GenerationError("Coarse plan could not be generated", original_error=exc) from exc

    def post(self, shared: dict[str, Any], prep_res: dict[str, Any], exec_res: CoarsePlan) -> str:
        shared["plan_prompt"] = prep_res["prompt"]
        shared["coarse_plan"] = exec_res
        shared["steps"] = []
        emit_event(shared.get("event_sink"), plan_generated_event(exec_res))
        return "default"


class StepMaterializationNode(Node):
    """Materialize the next planned step, one step per visit.

    The flow loops back to this node until every intent is materialized, so
    step i always sees exactly steps 0..i-1 of this invocation.

    Interface:
    - Reads: coarse_plan (CoarsePlan), steps (list[MaterializedStep]), materializer (StepMaterializer),
      event_sink (EventSink, optional)
    - Writes: steps (appends one step)
    - Emits: STEP_CREATED
    - Actions: next_step (intents remain), assemble (all steps created)
    """

    name = "step-materialization"

    def __init__(self) -> None:
        super().__init__(max_retries=1)

    def prep(self, shared: dict[str, Any]) -> dict[str, Any]:
        plan: CoarsePlan = _require(shared, "coarse_plan")
        steps: list[MaterializedStep] = shared.setdefault("steps", [])
        index = len(steps)
        return {
            "index": index,
            "intent": plan.steps[index],
            "previous_steps": tuple(steps),
            "materializer": _require(shared, "materializer"),
        }

    def exec(self, prep_res: dict[str, Any]) -> MaterializedStep:
        logger.debug(
            f"StepMaterializationNode: Materializing step {prep_res['index']} ({prep_res['intent'].type.value})",
            extra={"phase": "exec", "index": prep_res["index"]},
        )
        result = prep_res["materializer"].create_step(prep_res["intent"], prep_res["previous_steps"])
        return result if isinstance(result, MaterializedStep) else MaterializedStep.model_validate(result)

    def exec_fallback(self, prep_res: dict[str, Any], exc: Exception) -> MaterializedStep:
        """A step that cannot be materialized aborts the flow."""
        index = prep_res["index"]
        if isinstance(exc, MaterializationError):
            if exc.step_index is not None:
                raise exc
            raise MaterializationError(exc.reason, step_index=index, original_error=exc.original_error) from exc
        raise MaterializationError("Step intent could not be resolved", step_index=index, original_error=exc) from exc

    def post(self, shared: dict[str, Any], prep_res: dict[str, Any], exec_res: MaterializedStep) -> str:
        steps: list[MaterializedStep] = shared["steps"]
        steps.append(exec_res)
        emit_event(shared.get("event_sink"), step_created_event(exec_res))

        if len(steps) < len(shared["coarse_plan"].steps):
            return "next_step"
        return "assemble"


class FlowAssemblyNode(Node):
    """Assemble the final flow document.

    Interface:
    - Reads: coarse_plan (CoarsePlan), steps (list[MaterializedStep])
    - Writes: flow_document (FlowDocument)
    """

    name = "flow-assembly"

    def prep(self, shared: dict[str, Any]) -> dict[str, Any]:
        return {"plan": _require(shared, "coarse_plan"), "steps": list(shared.get("steps") or [])}

    def exec(self, prep_res: dict[str, Any]) -> FlowDocument:
        plan: CoarsePlan = prep_res["plan"]
        return FlowDocument(name=plan.name, description=plan.description, steps=prep_res["steps"])

    def post(self, shared: dict[str, Any], prep_res: dict[str, Any], exec_res: FlowDocument) -> Optional[str]:
        shared["flow_document"] = exec_res
        logger.info(
            f"FlowAssemblyNode: Flow '{exec_res.name}' ready with {len(exec_res.steps)} steps",
            extra={"phase": "post"},
        )
        return None
