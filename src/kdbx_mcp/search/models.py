"""Models for the similarity and hybrid search MCP tools."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class SearchResult(BaseModel):
    """Structured response from a search tool."""

    model_config = ConfigDict(populate_by_name=True)

    status: Literal["success", "error"] = Field(description="Overall status of the call")
    table: str = Field(description="Table that was searched")
    records_count: int | None = Field(
        default=None, alias="recordsCount", description="Number of records returned"
    )
    records: list[dict[str, Any]] | None = Field(
        default=None, description="Matching rows with embedding columns removed"
    )
    message: str | None = Field(default=None, description="Explanation or error message")

    def to_payload(self) -> dict[str, Any]:
        """Serialize for the MCP response using wire names, omitting unset fields."""
        dumped = self.model_dump(by_alias=True)
        return {key: value for key, value in dumped.items() if value is not None}
