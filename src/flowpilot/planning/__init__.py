"""Flow planner.

Turns a free-text automation request into an ordered sequence of typed flow
steps in two stages: a coarse plan, then one materialization call per planned
step. The shared store is created per invocation by
``flowpilot.planning.planner.Planner.plan()``.

Expected shared store keys:
- user_input: Natural language request
- options: PlanOptions (relevance_threshold, custom_prompt, step_sequence)
- event_sink: Optional EventSink observing this invocation
- retriever, generator, materializer: collaborators

Keys written during execution:
- context_items, plan_prompt, coarse_plan, steps, flow_document
"""

from flowpilot.planning.flow import create_planner_flow

__all__ = ["create_planner_flow"]
