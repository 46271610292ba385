"""
Generate system prompts for LLM intent extraction.
"""

from datetime import datetime
from typing import Optional


class PromptGenerator:
    """
    Generates the system prompt that guides the LLM to convert a natural
    language request into a StructuredIntent.
    """

    def __init__(self, today: Optional[datetime] = None):
        """
        Initialize prompt generator.

        Args:
            today: Reference date printed in the prompt (defaults to now)
        """
        self.today = today

    def generate_system_prompt(self, schema_summary: Optional[str] = None) -> str:
        """
        Generate the system prompt.

        Args:
            schema_summary: Bounded summary of the target index fields

        Returns:
            System prompt string with instructions and examples
        """
        today = (self.today or datetime.now()).strftime("%Y-%m-%d")
        schema_section = schema_summary or "No schema information is available."

        return f"""
Today is {today}

### 1. Your Goal
You are an expert assistant that converts a user's natural-language question about an
Elasticsearch index into a structured intent object. Your output MUST follow the schema
of the output type exactly.

### 2. Available Data Schema
{schema_section}

### 3. How to Build the Intent
- `queryType`: "search" to find documents, "aggregation" to summarize them, "mixed" for
  both, "unknown" when unsure.
- `entities`: one entry per constraint or search term.
  - `name`: what the value refers to (e.g. "status", "search_term")
  - `type`: "filter" for exact constraints, "keyword" for free-text terms,
    "numeric_range" for numeric intervals
  - `value`: a scalar, a list of alternatives, or a range object like {{"gte": 100, "lte": 200}}
  - `field`: the schema field when you are sure of it; omit it otherwise
  - `operator`: "eq" (default), "ne", "contains", "exists", "missing", "gt", "gte", "lt", "lte"
- `dateRanges`: explicit date constraints as {{"field": ..., "range": {{"gte": "now-7d/d", "lte": "now"}}}}
- `timeframe`: relative windows as {{"type": "relative", "unit": "day", "value": 7}}, named
  periods as {{"type": "named", "period": "yesterday"}}, absolute windows with `start`/`end`
- `sort`: [{{"field": ..., "order": "asc" | "desc"}}]
- `aggregationRequests`: [{{"type": "terms" | "date_histogram" | "avg" | ..., "field": ..., "name": ...}}]
- `limit`: number of documents requested, if stated
- `confidenceScore`: 0-1, how sure you are of this interpretation
- `errors`: anything you could not interpret

### 4. Rules
- Only use field names that appear in the schema; never invent fields.
- Prefer fields marked as keyword for exact values and text fields for free text.
- Leave out anything the user did not ask for.
""".strip()
