"""Error classification and user-friendly messaging for planning failures.

Raw exceptions from the retriever, the generation provider and the step
materializer are classified into categories. The category decides whether a
generation call is worth retrying and how the CLI explains the failure.
"""

import logging
import re
from enum import Enum
from typing import Any, Optional

from flowpilot.core.exceptions import PlanningError

logger = logging.getLogger(__name__)


class ErrorCategory(Enum):
    """Categories of errors for appropriate user messaging."""

    # User-fixable errors
    AUTHENTICATION = "authentication"  # API key issues
    QUOTA_LIMIT = "quota_limit"  # Rate limits, quota exceeded
    INVALID_INPUT = "invalid_input"  # Malformed requests, schema violations
    MISSING_RESOURCE = "missing_resource"  # Piece/action not found
    INVALID_PLAN = "invalid_plan"  # Plan or step rejected by the planner itself

    # System errors (retry may help)
    NETWORK = "network"  # Connection, timeout issues
    SERVICE_UNAVAILABLE = "service_unavailable"  # API down, 503 errors
    INTERNAL_ERROR = "internal_error"  # 500 errors, unexpected failures

    UNKNOWN = "unknown"


class PlannerError:
    """Structured error information for planning failures."""

    def __init__(
        self,
        category: ErrorCategory,
        message: str,
        user_action: str,
        technical_details: Optional[str] = None,
        retry_suggestion: bool = False,
    ):
        self.category = category
        self.message = message
        self.user_action = user_action
        self.technical_details = technical_details
        self.retry_suggestion = retry_suggestion

    def format_for_cli(self, verbose: bool = False) -> str:
        """Format error for CLI display.

        Args:
            verbose: Include technical details if True
        """
        lines = [
            f"❌ Planning failed: {self.message}",
            f"👉 {self.user_action}",
        ]

        if self.retry_suggestion:
            lines.append("🔄 This is likely temporary - please retry in a moment")

        if verbose and self.technical_details:
            lines.append(f"🔍 Technical details: {self.technical_details}")

        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "message": self.message,
            "user_action": self.user_action,
            "technical_details": self.technical_details,
            "retry_suggestion": self.retry_suggestion,
        }


# (category, terms, message, user_action, retry_suggestion), checked in order
_RULES: list[tuple[ErrorCategory, tuple[str, ...], str, str, bool]] = [
    (
        ErrorCategory.AUTHENTICATION,
        ("api key", "api_key", "unauthorized", "401", "authentication", "invalid key"),
        "LLM API authentication failed",
        "Configure your API key:\n  1. Run: llm keys set openai\n  2. Or export OPENAI_API_KEY=your-key",
        False,
    ),
    (
        ErrorCategory.QUOTA_LIMIT,
        ("rate limit", "rate_limit", "429", "quota", "too many requests"),
        "API rate limit or quota exceeded",
        "Wait a few minutes before retrying, or check your API plan limits",
        True,
    ),
    (
        ErrorCategory.NETWORK,
        ("timeout", "timed out", "connection", "network", "unreachable", "dns", "socket"),
        "Network connection issue",
        "Check your internet connection and try again",
        True,
    ),
    (
        ErrorCategory.SERVICE_UNAVAILABLE,
        ("overloaded", "overload", "503", "service unavailable", "maintenance"),
        "LLM service is temporarily unavailable",
        "Wait a few moments and try again",
        True,
    ),
    (
        ErrorCategory.INTERNAL_ERROR,
        ("500", "internal server", "server error"),
        "LLM service encountered an internal error",
        "This is a temporary issue with the service. Please retry",
        True,
    ),
    (
        ErrorCategory.MISSING_RESOURCE,
        ("not found", "404", "does not exist", "unknown piece", "no trigger", "no action"),
        "Required piece or capability not found",
        "Check that the piece catalog contains the pieces your request needs",
        False,
    ),
    (
        ErrorCategory.INVALID_INPUT,
        (
            "invalid",
            "malformed",
            "bad request",
            "400",
            "validation",
            "schema",
            "context length",
            "context_length",
            "context window",
            "too many tokens",
        ),
        "Invalid request or response format",
        "Try rephrasing your request or simplifying it",
        False,
    ),
]


def _matches(term: str, error_str: str) -> bool:
    # Status codes only match as whole numbers, so "1500 ms" is not a 500
    if term.isdigit():
        return re.search(rf"(?<!\d){term}(?!\d)", error_str) is not None
    return term in error_str


def _root_cause(exc: Exception) -> Exception:
    root = exc
    while isinstance(root, PlanningError) and root.original_error is not None:
        root = root.original_error
    return root


def classify_error(exc: Exception, context: Optional[str] = None) -> PlannerError:
    """Classify an exception into a structured PlannerError.

    Planning errors are classified by the error that caused them when one is
    attached, so the category reflects the underlying failure. A planning
    error with no cause was raised by the planner itself (a plan that breaks
    the requested step sequence, a router without a condition). Retrying the
    same request cannot fix those, so they never get a transient category.

    Args:
        exc: The exception to classify
        context: Optional context about where the error occurred
    """
    root = _root_cause(exc)
    raised_by_planner = isinstance(root, PlanningError)

    error_str = str(root).lower()
    logger.debug(f"Classifying error: {type(root).__name__}: {error_str[:200]}", extra={"context": context})

    for category, terms, message, user_action, retry in _RULES:
        if raised_by_planner and retry:
            continue
        if any(_matches(term, error_str) for term in terms):
            return PlannerError(
                category=category,
                message=message,
                user_action=user_action,
                technical_details=str(exc),
                retry_suggestion=retry,
            )

    if raised_by_planner:
        return PlannerError(
            category=ErrorCategory.INVALID_PLAN,
            message=root.reason if isinstance(root, PlanningError) else str(root),
            user_action="Rephrase the request, or check that any --step sequence matches what you asked for",
            technical_details=str(exc),
            retry_suggestion=False,
        )

    return PlannerError(
        category=ErrorCategory.UNKNOWN,
        message=f"Unexpected error in {context}" if context else "Unexpected planning error",
        user_action="Please report this issue if it persists:\n  Include the error details and your command",
        technical_details=str(exc),
        retry_suggestion=True,
    )
