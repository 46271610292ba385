"""
Field-role resolution: map intent entities onto index fields.
"""

from typing import Optional

from query_consensus.core.config import EngineConfig
from query_consensus.core.models import Entity, FieldResolution, StructuredIntent
from query_consensus.schema.lookup import FieldLookup

WILDCARD_FIELD = "*"


class FieldResolver:
    """
    Resolves the target field of each entity.

    Order: explicit field, schema name match, then (text-bearing entities
    only) a conventional text field, the first text field or the "*"
    wildcard; otherwise the entity name itself. Anything past the schema
    name match is recorded as a low-confidence resolution.
    """

    def __init__(self, lookup: FieldLookup, config: Optional[EngineConfig] = None):
        self.lookup = lookup
        self.config = config or EngineConfig()
        self._text_entity_types = {t.lower() for t in self.config.text_entity_types}

    def is_text_entity(self, entity: Entity, field: Optional[str] = None) -> bool:
        """True for free-text entities or entities resolved onto analyzed text."""
        if (entity.type or "").lower() in self._text_entity_types:
            return True
        if field and field != WILDCARD_FIELD:
            descriptor = self.lookup.get(field)
            return descriptor is not None and descriptor.is_text
        return False

    def resolve(self, entity: Entity) -> FieldResolution:
        name = entity.name or ""

        if entity.field:
            return FieldResolution(entity_name=name, field=entity.field, strategy="explicit")

        matched = self.lookup.find_by_name(name)
        if matched:
            return FieldResolution(entity_name=name, field=matched, strategy="schema_name")

        if self.is_text_entity(entity):
            for conventional in self.config.conventional_text_fields:
                path = self.lookup.find_by_name(conventional)
                if path and self.lookup.family(path) == "text":
                    return FieldResolution(
                        entity_name=name, field=path, strategy="convention", confident=False
                    )
            first_text = self.lookup.first_of_family("text")
            if first_text:
                return FieldResolution(
                    entity_name=name, field=first_text, strategy="first_text", confident=False
                )
            return FieldResolution(
                entity_name=name, field=WILDCARD_FIELD, strategy="wildcard", confident=False
            )

        return FieldResolution(
            entity_name=name,
            field=name or WILDCARD_FIELD,
            strategy="entity_name",
            confident=False,
        )

    def resolve_time_field(self, intent: StructuredIntent) -> FieldResolution:
        """Field carrying the event time of the index."""
        if intent.timeframe is not None and intent.timeframe.field:
            return FieldResolution(
                entity_name="timeframe", field=intent.timeframe.field, strategy="explicit"
            )
        if intent.date_ranges:
            return FieldResolution(
                entity_name="date_range", field=intent.date_ranges[0].field, strategy="explicit"
            )

        default = self.config.default_time_field
        if default in self.lookup:
            return FieldResolution(
                entity_name="time", field=default, strategy="time_field_default"
            )

        first_date = self.lookup.first_of_family("date")
        if first_date:
            return FieldResolution(
                entity_name="time", field=first_date, strategy="time_field_schema", confident=False
            )
        return FieldResolution(
            entity_name="time", field=default, strategy="time_field_default", confident=False
        )
