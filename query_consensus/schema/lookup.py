"""
Read-only queries over a field index.
"""

from typing import Any, Dict, List, Optional, Union

from query_consensus.core.models import FieldDescriptor, SchemaAnalysis

FieldIndex = Dict[str, FieldDescriptor]


class FieldLookup:
    """
    Answers common questions about a field index.

    Never mutates the index it wraps; safe to share across threads.
    """

    def __init__(self, source: Union[SchemaAnalysis, FieldIndex, None] = None):
        if isinstance(source, SchemaAnalysis):
            self._index: FieldIndex = source.field_index
            self._fields: List[FieldDescriptor] = source.fields
        else:
            self._index = source or {}
            self._fields = list(self._index.values())

    def __contains__(self, path: str) -> bool:
        return path in self._index

    def __len__(self) -> int:
        return len(self._index)

    @property
    def is_empty(self) -> bool:
        return not self._index

    @property
    def index(self) -> FieldIndex:
        return self._index

    def get(self, path: str) -> Optional[FieldDescriptor]:
        return self._index.get(path)

    def family(self, path: str) -> Optional[str]:
        descriptor = self._index.get(path)
        return descriptor.family if descriptor else None

    def keyword_variant(self, path: str) -> Optional[str]:
        """
        Get the non-analyzed sibling of a text field.

        Args:
            path: Field path (e.g. "message")

        Returns:
            "message.keyword" (or another keyword multi-field) if indexed, else None
        """
        descriptor = self._index.get(path)
        if descriptor is None:
            return None
        preferred = f"{path}.keyword"
        if preferred in self._index and self._index[preferred].family == "keyword":
            return preferred
        for variant in descriptor.multi_fields:
            sub = self._index.get(variant)
            if sub is not None and sub.family == "keyword":
                return variant
        return None

    def exact_field(self, path: str) -> str:
        """Field to use for exact matching: keyword variant for text, the field itself otherwise."""
        descriptor = self._index.get(path)
        if descriptor is not None and descriptor.is_text:
            return self.keyword_variant(path) or path
        return path

    def fields_of_family(self, *families: str) -> List[str]:
        return [f.name for f in self._fields if f.family in families]

    def first_of_family(self, *families: str) -> Optional[str]:
        for field in self._fields:
            if field.family in families and not field.is_multi_field:
                return field.name
        return None

    @property
    def searchable_fields(self) -> List[str]:
        return [f.name for f in self._fields if f.searchable]

    @property
    def aggregatable_fields(self) -> List[str]:
        return [f.name for f in self._fields if f.aggregatable]

    @property
    def date_fields(self) -> List[str]:
        return self.fields_of_family("date")

    @property
    def text_fields(self) -> List[str]:
        return [f.name for f in self._fields if f.is_text and not f.is_multi_field]

    @property
    def geo_fields(self) -> List[str]:
        return self.fields_of_family("geo")

    @property
    def nested_fields(self) -> List[str]:
        return self.fields_of_family("nested")

    def find_by_name(self, name: str) -> Optional[str]:
        """
        Resolve a bare name to an indexed path.

        Exact path match wins; otherwise a unique path whose last segment
        equals the name (multi-field variants excluded).
        """
        if not name:
            return None
        if name in self._index:
            return name
        lowered = name.lower()
        matches = [
            f.name
            for f in self._fields
            if not f.is_multi_field and f.name.lower().rsplit(".", 1)[-1] == lowered
        ]
        if len(matches) == 1:
            return matches[0]
        return None

    def suggest_queries(self) -> List[Dict[str, Any]]:
        """
        Generate example requests the index can answer.

        Returns:
            List of {"type", "description", "example"} suggestions
        """
        suggestions = []

        searchable = [f for f in self.searchable_fields if not self._index[f].is_multi_field]
        if searchable:
            field = searchable[0]
            suggestions.append({
                "type": "search",
                "description": f"Try searching in the {field} field",
                "example": f"Find documents where {field} contains 'search term'",
            })

        if self.aggregatable_fields:
            field = self.aggregatable_fields[0]
            suggestions.append({
                "type": "aggregation",
                "description": f"You can aggregate by {field}",
                "example": f"Show me the count of documents by {field}",
            })

        if self.date_fields:
            field = self.date_fields[0]
            suggestions.append({
                "type": "date",
                "description": f"Filter by date using {field}",
                "example": f"Show me documents from last week based on {field}",
            })
            suggestions.append({
                "type": "timeseries",
                "description": f"Create a time series analysis using {field}",
                "example": f"Show me trends over time using {field} with daily intervals",
            })

        if self.geo_fields:
            field = self.geo_fields[0]
            suggestions.append({
                "type": "geo",
                "description": f"Filter by geographic location using {field}",
                "example": f"Find documents within 10km of latitude 40.7, longitude -74.0 using {field}",
            })

        return suggestions
