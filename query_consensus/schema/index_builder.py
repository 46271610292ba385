"""
Schema index builder.

Turns a raw Elasticsearch mapping tree into a flat field index with derived
capabilities (searchable, aggregatable, multi-field variants).
"""

import logging
from typing import Any, Dict, List, Optional

from query_consensus.core.models import FieldDescriptor, SchemaAnalysis
from query_consensus.schema.type_mappings import TypeMapper

logger = logging.getLogger(__name__)

MISSING_PROPERTIES_ERROR = (
    "Could not find a 'properties' object in the mapping or it is empty. "
    "Expected a structure like {'properties': {...}} or "
    "{'index_name': {'mappings': {'properties': {...}}}}."
)


class SchemaIndexBuilder:
    """
    Builds a SchemaAnalysis from any mapping shape Elasticsearch returns.

    The builder never raises on malformed input: problems are reported in
    SchemaAnalysis.errors and the field index is left empty or partial.
    """

    SEARCH_DEPTH = 3

    def __init__(self, summary_max_fields: int = 15):
        """
        Initialize schema index builder.

        Args:
            summary_max_fields: Maximum number of fields listed in the summary
        """
        self.summary_max_fields = summary_max_fields

    def build(self, raw_mapping: Any) -> SchemaAnalysis:
        """
        Index a raw mapping tree.

        Args:
            raw_mapping: Bare properties, {mappings: ...}, {index: {mappings: ...}}
                or any tree containing a properties map within three levels

        Returns:
            SchemaAnalysis with flat field list, index, top-level tree and summary
        """
        errors: List[str] = []

        if not isinstance(raw_mapping, dict):
            errors.append("Mapping must be a JSON object.")
            return SchemaAnalysis(summary=build_summary([], self.summary_max_fields), errors=errors)

        properties = self._locate_properties(raw_mapping)
        if not properties:
            errors.append(MISSING_PROPERTIES_ERROR)
            return SchemaAnalysis(summary=build_summary([], self.summary_max_fields), errors=errors)

        flat: List[Optional[FieldDescriptor]] = []
        index: Dict[str, FieldDescriptor] = {}
        tree = self._traverse(properties, "", flat, index, errors)
        fields = [f for f in flat if f is not None]

        logger.debug("Indexed %d fields (%d top-level)", len(fields), len(tree))

        return SchemaAnalysis(
            fields=fields,
            field_index=index,
            tree=tree,
            summary=build_summary(fields, self.summary_max_fields),
            errors=errors,
        )

    def _locate_properties(self, raw: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Find the properties map in the known mapping shapes."""
        if isinstance(raw.get("properties"), dict):
            return raw["properties"]

        mappings = raw.get("mappings")
        if isinstance(mappings, dict) and isinstance(mappings.get("properties"), dict):
            return mappings["properties"]

        wrapped = self._unwrap_single_index(raw)
        if wrapped is not None:
            return wrapped

        if self._looks_like_properties(raw):
            return raw

        if raw:
            first = raw[next(iter(raw))]
            if isinstance(first, dict):
                nested_mappings = first.get("mappings")
                if isinstance(nested_mappings, dict) and isinstance(
                    nested_mappings.get("properties"), dict
                ):
                    return nested_mappings["properties"]
                if isinstance(first.get("properties"), dict):
                    return first["properties"]

        return self._find_properties(raw, 0)

    @staticmethod
    def _unwrap_single_index(raw: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Properties of {index_name: {properties: ...}} or {index_name: {mappings: ...}}.

        A single untyped entry holding a properties map is read as an index
        name, not as an object field.
        """
        if len(raw) != 1:
            return None
        value = next(iter(raw.values()))
        if not isinstance(value, dict) or "type" in value:
            return None
        mappings = value.get("mappings")
        if isinstance(mappings, dict) and isinstance(mappings.get("properties"), dict):
            return mappings["properties"]
        if isinstance(value.get("properties"), dict):
            return value["properties"]
        return None

    @staticmethod
    def _looks_like_properties(raw: Dict[str, Any]) -> bool:
        return any(
            isinstance(value, dict) and ("type" in value or "properties" in value)
            for value in raw.values()
        )

    def _find_properties(self, node: Any, depth: int) -> Optional[Dict[str, Any]]:
        if depth > self.SEARCH_DEPTH or not isinstance(node, dict):
            return None
        if isinstance(node.get("properties"), dict):
            return node["properties"]
        for value in node.values():
            found = self._find_properties(value, depth + 1)
            if found:
                return found
        return None

    def _traverse(
        self,
        properties: Dict[str, Any],
        prefix: str,
        flat: List[Optional[FieldDescriptor]],
        index: Dict[str, FieldDescriptor],
        errors: List[str],
    ) -> List[FieldDescriptor]:
        """
        Walk one level of properties depth-first, pre-order.

        Each field reserves its slot in the flat list before its children are
        visited, so parents always precede their descendants.

        Returns:
            Descriptors of this level, with children attached
        """
        level: List[FieldDescriptor] = []

        for key, mapping in properties.items():
            path = f"{prefix}.{key}" if prefix else key

            if not isinstance(mapping, dict):
                errors.append(f"Skipping '{path}': mapping is not an object.")
                continue
            if not _has_valid_type(mapping):
                errors.append(f"Skipping '{path}': type must be a string.")
                continue
            if path in index:
                errors.append(f"Duplicate field path '{path}' ignored; keeping the first definition.")
                continue

            slot = len(flat)
            flat.append(None)
            index[path] = None  # type: ignore[assignment]  # claim the path

            multi_fields = self._register_multi_fields(path, mapping, flat, index, errors)

            children = None
            if isinstance(mapping.get("properties"), dict):
                children = self._traverse(mapping["properties"], path, flat, index, errors)

            descriptor = self._describe(
                path,
                mapping,
                children=children,
                multi_fields=[m.name for m in multi_fields],
            )
            flat[slot] = descriptor
            index[path] = descriptor
            level.append(descriptor)

        return level

    def _register_multi_fields(
        self,
        path: str,
        mapping: Dict[str, Any],
        flat: List[Optional[FieldDescriptor]],
        index: Dict[str, FieldDescriptor],
        errors: List[str],
    ) -> List[FieldDescriptor]:
        variants = mapping.get("fields")
        if not isinstance(variants, dict):
            return []

        registered = []
        for sub_name, sub_mapping in variants.items():
            sub_path = f"{path}.{sub_name}"
            if not isinstance(sub_mapping, dict):
                errors.append(f"Skipping multi-field '{sub_path}': mapping is not an object.")
                continue
            if not _has_valid_type(sub_mapping):
                errors.append(f"Skipping multi-field '{sub_path}': type must be a string.")
                continue
            if sub_path in index:
                errors.append(f"Duplicate field path '{sub_path}' ignored; keeping the first definition.")
                continue
            descriptor = self._describe(sub_path, sub_mapping, is_multi_field=True)
            flat.append(descriptor)
            index[sub_path] = descriptor
            registered.append(descriptor)
        return registered

    @staticmethod
    def _describe(
        path: str,
        mapping: Dict[str, Any],
        children: Optional[List[FieldDescriptor]] = None,
        multi_fields: Optional[List[str]] = None,
        is_multi_field: bool = False,
    ) -> FieldDescriptor:
        field_type = mapping.get("type") or "object"
        family = TypeMapper.get_family(field_type)

        analyzers = [
            mapping[key] for key in ("analyzer", "search_analyzer") if mapping.get(key)
        ]

        searchable = (
            TypeMapper.is_searchable_type(field_type) and mapping.get("index", True) is not False
        )

        if family == "text":
            has_keyword_variant = any(
                isinstance(sub, dict) and TypeMapper.is_keyword(sub.get("type"))
                for sub in (mapping.get("fields") or {}).values()
            )
            aggregatable = bool(mapping.get("fielddata")) and not has_keyword_variant
        else:
            aggregatable = (
                TypeMapper.is_aggregatable_type(field_type)
                and mapping.get("doc_values", True) is not False
            )

        return FieldDescriptor(
            name=path,
            type=field_type,
            searchable=searchable,
            aggregatable=aggregatable,
            analyzers=analyzers or None,
            children=children,
            multi_fields=multi_fields or [],
            is_multi_field=is_multi_field,
        )


def _has_valid_type(mapping: Dict[str, Any]) -> bool:
    field_type = mapping.get("type")
    return field_type is None or isinstance(field_type, str)


def build_summary(fields: List[FieldDescriptor], max_fields: int = 15) -> str:
    """
    Render a bounded, human-readable summary of the most relevant fields.

    Shallow fields (at most one dot) are preferred; multi-field variants are
    folded into their parent line.
    """
    if not fields:
        return "Schema is empty or could not be analyzed."

    primary = [f for f in fields if not f.is_multi_field]
    shallow = [f for f in primary if f.depth <= 1]
    candidates = shallow or primary

    lines = ["Key fields in schema:"]
    for field in candidates[:max_fields]:
        line = f"- {field.name} ({field.type})"
        if field.children:
            line += f" (object with {len(field.children)} sub-fields)"
        if field.multi_fields:
            line += f" (variants: {', '.join(field.multi_fields)})"
        if field.analyzers:
            line += f" (analyzers: {', '.join(field.analyzers)})"
        lines.append(line)

    if len(candidates) > max_fields:
        lines.append(f"... and {len(candidates) - max_fields} more fields.")

    return "\n".join(lines)
