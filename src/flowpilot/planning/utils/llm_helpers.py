"""Utility functions for schema-constrained LLM calls.

The generation provider used by the planner: a prompt plus a pydantic output
schema go in, a validated model instance comes out. Transient provider
failures are retried a bounded number of times; a response that does not
satisfy the schema fails immediately.
"""

import json
import logging
import time
from typing import Any, Optional, Protocol, TypeVar

import llm
from pydantic import BaseModel, ValidationError

from flowpilot.core.exceptions import GenerationError
from flowpilot.planning.error_handler import classify_error

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

# Names llm plugins use for the output token limit, in preference order
TOKEN_LIMIT_OPTIONS = ("max_tokens", "max_output_tokens")


class StructuredGenerator(Protocol):
    """Turns a prompt and an output schema into a validated instance of the schema."""

    def generate_structured(
        self,
        prompt: str,
        schema: type[T],
        *,
        max_retries: int,
        temperature: float,
        max_output_tokens: int,
    ) -> T: ...


def parse_structured_response(response: Any, expected_type: type[T]) -> T:
    """Parse and validate a structured LLM response.

    The llm library normalizes every provider's response to a ``text()``
    method; for schema-constrained prompts that text is the JSON object.

    Raises:
        ValueError: If the response is empty, not JSON, or violates the schema
    """
    text_output = response.text() if callable(response.text) else response.text
    if not text_output:
        raise ValueError("LLM returned empty response")

    try:
        data = json.loads(text_output)
    except json.JSONDecodeError as e:
        raise ValueError(f"Response text is not valid JSON: {text_output[:200]}") from e

    try:
        result = expected_type.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Response does not satisfy {expected_type.__name__} schema: {e}") from e

    logger.debug(f"Parsed structured response for {expected_type.__name__}")
    return result


def token_limit_option(model: Any) -> Optional[str]:
    """Return the option name the model uses for its output token limit, if any.

    llm validates prompt options against each model's ``Options`` class and
    rejects names the model does not declare.
    """
    options = getattr(model, "Options", None)
    declared = getattr(options, "model_fields", None) or {}
    for name in TOKEN_LIMIT_OPTIONS:
        if name in declared:
            return name
    return None


class LLMStructuredGenerator:
    """Structured generation through Simon Willison's llm library."""

    def __init__(self, model_name: str, wait: float = 1.0) -> None:
        """Initialize the generator.

        Args:
            model_name: Any model known to llm (e.g. "gpt-4o", "anthropic/claude-sonnet-4-5")
            wait: Wait time between attempts in seconds (use 0 for tests)
        """
        self.model_name = model_name
        self.wait = wait

    def generate_structured(
        self,
        prompt: str,
        schema: type[T],
        *,
        max_retries: int = 3,
        temperature: float = 0.3,
        max_output_tokens: int = 1000,
    ) -> T:
        """Run a schema-constrained prompt.

        Raises:
            GenerationError: If the model is unknown, retries are exhausted,
                a failure is not transient, or the response violates the schema
        """
        # Lazy-load model at execution time
        try:
            model = llm.get_model(self.model_name)
        except llm.UnknownModelError as e:
            raise GenerationError(f"Unknown model '{self.model_name}'", original_error=e) from e

        options: dict[str, Any] = {"temperature": temperature}
        limit_option = token_limit_option(model)
        if limit_option:
            options[limit_option] = max_output_tokens
        else:
            logger.debug(f"Model {self.model_name} has no output token limit option, sending none")

        attempts = max(1, max_retries)
        for attempt in range(1, attempts + 1):
            try:
                response = model.prompt(prompt, schema=schema, **options)
                # text() performs the request, so provider errors surface here
                response.text()
                break
            except Exception as e:
                planner_error = classify_error(e, context=schema.__name__)
                if not planner_error.retry_suggestion or attempt == attempts:
                    raise GenerationError(
                        f"{planner_error.message} after {attempt} attempt(s)", original_error=e
                    ) from e
                logger.info(
                    f"Generation attempt {attempt}/{attempts} failed ({planner_error.category.value}), retrying",
                    extra={"phase": "exec", "schema": schema.__name__, "attempt": attempt},
                )
                if self.wait > 0:
                    time.sleep(self.wait)

        try:
            return parse_structured_response(response, schema)
        except ValueError as e:
            raise GenerationError(str(e), original_error=e) from e
