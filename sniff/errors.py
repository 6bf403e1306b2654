"""Typed errors raised at the outbound API boundaries."""

from typing import Any


class ApiError(RuntimeError):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AnthropicApiError(ApiError):
    """The reasoning backend answered with a non-2xx status or could not be reached."""


class LinearApiError(ApiError):
    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        graphql_errors: list[dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(message, status_code)
        self.graphql_errors = graphql_errors or []


class ReasoningLoopError(RuntimeError):
    """The tool-use loop ran past its configured iteration ceiling."""
