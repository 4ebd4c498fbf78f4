"""Models for the kdbx_run_sql_query MCP tool."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

QueryErrorType = Literal[
    "unsafe_query",
    "sql_interface_not_loaded",
    "connection_error",
    "timeout",
    "error",
]


class QueryResult(BaseModel):
    """Structured response from the SQL query tool."""

    status: Literal["success", "error"] = Field(description="Overall status of the call")
    data: list[dict[str, Any]] | None = Field(
        default=None, description="Result rows, column order preserved"
    )
    message: str | None = Field(default=None, description="Summary or error message")
    error_type: QueryErrorType | None = Field(
        default=None, description="Error classification when status is error"
    )
    technical_details: str | None = Field(
        default=None, description="Raw error text kept for diagnostics"
    )
    assist_notes: list[str] | None = Field(
        default=None, description="Optional guidance when an error occurred"
    )

    def to_payload(self) -> dict[str, Any]:
        """Serialize for the MCP response, omitting unset optional fields."""
        return {key: value for key, value in self.model_dump().items() if value is not None}
