"""Generation request for the coarse plan.

The default request is rendered from ``prompts/coarse_plan.md``. A custom
prompt replaces the default instructions entirely; the pieces, the user
request and the explicit step sequence are still appended after it, in the
same order the default template uses.
"""

from collections.abc import Sequence
from typing import Optional

from flowpilot.planning.ir_models import ContextItem, ExplicitStepSequence
from flowpilot.planning.prompts.loader import format_prompt, load_prompt

GENERIC_STEP_GUIDANCE = """Create a high-level plan that:
1. Starts with a trigger step
2. Includes necessary action steps
3. Uses router steps only when conditional logic is needed"""

SEQUENCE_HEADER = "Follow this exact step sequence:"

SEQUENCE_RULE = "\n- Follow the exact step sequence provided above"


def format_context_items(items: Sequence[ContextItem]) -> str:
    return "\n".join(f"- {item.piece_name}: {item.content}" for item in items)


def format_step_sequence(sequence: ExplicitStepSequence) -> str:
    return "\n".join(
        f"{index}. [{step.type.value}] {step.description}" for index, step in enumerate(sequence.steps, start=1)
    )


def build_plan_prompt(
    user_input: str,
    context_items: Sequence[ContextItem],
    custom_prompt: Optional[str] = None,
    step_sequence: Optional[ExplicitStepSequence] = None,
) -> str:
    """Render the coarse plan generation request.

    Args:
        user_input: The user's request, included verbatim
        context_items: Retrieved pieces
        custom_prompt: Instructions replacing the default template
        step_sequence: Steps the plan must reproduce exactly

    Returns:
        Prompt text for the generation provider
    """
    pieces_context = format_context_items(context_items)

    if custom_prompt:
        prompt = f"{custom_prompt}\n\nAvailable pieces:\n{pieces_context}\n\nUser request: {user_input}"
        if step_sequence:
            prompt = f"{prompt}\n\n{SEQUENCE_HEADER}\n{format_step_sequence(step_sequence)}"
        return prompt

    if step_sequence:
        step_guidance = f"{SEQUENCE_HEADER}\n{format_step_sequence(step_sequence)}"
        sequence_rule = SEQUENCE_RULE
    else:
        step_guidance = GENERIC_STEP_GUIDANCE
        sequence_rule = ""

    return format_prompt(
        load_prompt("coarse_plan"),
        {
            "pieces_context": pieces_context,
            "user_input": user_input,
            "step_guidance": step_guidance,
            "sequence_rule": sequence_rule,
        },
    )
