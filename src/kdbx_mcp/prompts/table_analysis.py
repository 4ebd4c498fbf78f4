"""Prompt template for an in-depth analysis of one table."""

from __future__ import annotations

from typing import Annotated, Final, Literal

from fastmcp import FastMCP
from pydantic import Field

AnalysisType = Literal["statistical", "data_quality"]

PROMPT_NAME: Final[str] = "kdbx_table_analysis"
DEFAULT_SAMPLE_SIZE: Final[int] = 100

ANALYSIS_INSTRUCTIONS: Final[dict[str, str]] = {
    "statistical": """
Focus on statistical analysis:
- Descriptive statistics for numerical columns
- Data patterns and distributions
- Temporal trends (if time-based data)
- Variance and data spread characteristics
""",
    "data_quality": """
Focus on data quality assessment:
- Completeness and missing data patterns
- Data consistency
- Duplicate detection and uniqueness
- Format issues
""",
}


def build_table_analysis_prompt(
    table_name: str,
    analysis_type: str = "statistical",
    sample_size: int = DEFAULT_SAMPLE_SIZE,
) -> str:
    """Fill the analysis template. Unknown analysis types fall back to statistical."""
    kind = analysis_type if analysis_type in ANALYSIS_INSTRUCTIONS else "statistical"
    instruction = ANALYSIS_INSTRUCTIONS[kind].strip()
    title = kind.replace("_", " ").title()

    return f"""
You are a data analyst conducting an in-depth analysis of the table: {table_name}

First, examine the table structure and sample data to understand its content and characteristics.
Use the kdbx://tables resource to get detailed information about this table.
Use kdbx_sql_query_guidance resource for query syntax.

{instruction}

Structure your analysis as follows:

1. **Table Overview**:
   - Business purpose and context of this table
   - Key entity or concept it represents per column
   - Total record count and data volume

2. **Data Profile**:
   - Sample data examination (suggest using LIMIT {sample_size})
   - Unique value counts for categorical fields
   - Range analysis for numerical fields

3. **Temporal Analysis** (if applicable):
   - Time range coverage
   - Data freshness and update patterns
   - Seasonal or trend patterns
   - Data gaps or irregularities

Focus on actionable insights that would help someone understand and effectively use this data for analysis or decision-making.

Table to analyze: {table_name}
Analysis type: {title}
""".strip()


def register_prompts(mcp: FastMCP) -> list[str]:
    """Register the table analysis prompt and return its name."""

    @mcp.prompt(name=PROMPT_NAME, description="Conduct detailed analysis of a specific table.")
    def kdbx_table_analysis(
        table_name: Annotated[str, Field(description="Name of the table to analyze")],
        analysis_type: Annotated[
            AnalysisType, Field(description="Type of analysis: statistical or data_quality")
        ] = "statistical",
        sample_size: Annotated[
            int, Field(ge=1, description="Suggested sample size for data exploration")
        ] = DEFAULT_SAMPLE_SIZE,
    ) -> str:  # pyright: ignore[reportUnusedFunction]
        return build_table_analysis_prompt(table_name, analysis_type, sample_size)

    _ = kdbx_table_analysis
    return [PROMPT_NAME]
