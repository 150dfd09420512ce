"""Flow orchestration for the planner.

The planner is a strictly sequential pipeline:

    Retrieval → Plan Generation → Step Materialization (loops once per step) → Assembly

There is no branching back: each node either commits its result and hands
over to the next, or raises and ends the invocation.
"""

import logging

from flowpilot.planning.nodes import (
    ContextRetrievalNode,
    FlowAssemblyNode,
    PlanGenerationNode,
    StepMaterializationNode,
)
from pocketflow import Flow

logger = logging.getLogger(__name__)


def create_planner_flow(
    temperature: float = 0.3,
    max_output_tokens: int = 1000,
    max_retries: int = 3,
) -> Flow:
    """Create the planner flow.

    Args:
        temperature: Sampling temperature for the coarse plan
        max_output_tokens: Output bound for the coarse plan
        max_retries: Attempts the generation provider may make per call

    Returns:
        The planner flow, ready to run on a fresh shared store
    """
    retrieval = ContextRetrievalNode()
    plan_generation = PlanGenerationNode(
        temperature=temperature, max_output_tokens=max_output_tokens, max_retries=max_retries
    )
    materialization = StepMaterializationNode()
    assembly = FlowAssemblyNode()

    flow = Flow(start=retrieval)

    retrieval >> plan_generation
    plan_generation >> materialization

    # One visit per planned step, in plan order
    materialization - "next_step" >> materialization
    materialization - "assemble" >> assembly

    logger.debug("Planner flow created with 4 nodes")
    return flow
