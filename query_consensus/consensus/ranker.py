"""
Consensus ranker.

Scores candidate query documents along five dimensions, orders them and
picks a recommendation, then describes what the best candidates agree on.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from query_consensus.core.config import EngineConfig
from query_consensus.core.models import (
    AlternativeApproach,
    Candidate,
    CandidateInput,
    ConsensusDescription,
    ConsensusElements,
    Evaluation,
    FieldDescriptor,
    QueryDocument,
    RankingResult,
    SchemaAnalysis,
    StructuredIntent,
    coerce_intent,
)
from query_consensus.consensus.heuristics import (
    extract_profile,
    score_complexity,
    score_performance,
    score_precision,
    score_recall,
    score_schema_alignment,
)
from query_consensus.schema.lookup import FieldLookup
from query_consensus.validation.validator import SemanticValidator

logger = logging.getLogger(__name__)

DIMENSION_LABELS = {
    "precision": "precision",
    "recall": "recall",
    "complexity": "simplicity",
    "performance": "performance",
    "schema_alignment": "schema alignment",
}

CANDIDATE_META_KEYS = {"id", "perspective", "perspective_id", "validation"}


def quality_level(score: float) -> str:
    if score >= 0.8:
        return "excellent"
    if score >= 0.6:
        return "good"
    if score >= 0.4:
        return "fair"
    return "poor"


class ConsensusRanker:
    """
    Ranks candidate query documents.

    Dimension weights are fixed (precision 0.30, recall 0.25, complexity
    0.15, performance 0.20, schema alignment 0.10). Sorting is stable, so
    ties keep their input order.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        validator: Optional[SemanticValidator] = None,
    ):
        self.config = config or EngineConfig()
        self.validator = validator or SemanticValidator(self.config)

    def rank(
        self,
        candidates: Sequence[CandidateInput],
        intent: Union[StructuredIntent, Dict[str, Any], None] = None,
        schema: Union[SchemaAnalysis, Dict[str, FieldDescriptor], None] = None,
    ) -> RankingResult:
        """
        Rank candidates and select a recommendation.

        Args:
            candidates: Candidate, QueryDocument or raw request-body dicts
            intent: Intent the candidates were built for
            schema: SchemaAnalysis or field index; alignment is neutral without one

        Returns:
            RankingResult with evaluations sorted best-first; `recommended`
            is None when no candidates were given
        """
        intent = coerce_intent(intent)

        normalized = self._normalize_candidates(candidates)
        if not normalized:
            return RankingResult(
                consensus=ConsensusDescription(description="No candidate queries were provided."),
                reasoning="No candidates to rank.",
            )

        lookup = FieldLookup(schema)
        evaluations = [self.evaluate(candidate, intent, lookup) for candidate in normalized]
        evaluations.sort(key=lambda e: e.overall_score, reverse=True)

        recommended = evaluations[0]
        logger.info(
            "Ranked %d candidates; recommending %s (%.2f)",
            len(evaluations),
            recommended.candidate_id,
            recommended.overall_score,
        )

        return RankingResult(
            recommended=recommended,
            evaluations=evaluations,
            consensus=self._describe_consensus(evaluations[: self.config.consensus_top_n]),
            reasoning=self._reasoning(recommended, len(evaluations)),
            alternative_approaches=self._alternatives(evaluations[1:]),
        )

    def evaluate(
        self,
        candidate: Candidate,
        intent: StructuredIntent,
        lookup: FieldLookup,
    ) -> Evaluation:
        """
        Score one candidate on every dimension.

        Args:
            candidate: Candidate to score; validated here if it carries no report
            intent: Intent the candidate was built for
            lookup: Field lookup over the target index

        Returns:
            Evaluation with strengths, weaknesses and explanation filled in
        """
        validation = candidate.validation
        if validation is None:
            validation = self.validator.validate(candidate.document, lookup.index)

        profile = extract_profile(candidate.document)
        evaluation = Evaluation(
            candidate_id=candidate.id,
            perspective_id=candidate.document.perspective_id,
            document=candidate.document,
            precision=score_precision(profile, candidate.document, intent, self.config),
            recall=score_recall(profile, intent, self.config),
            complexity=score_complexity(profile),
            performance=score_performance(profile, lookup, self.config),
            schema_alignment=score_schema_alignment(profile, validation, lookup),
        )

        strengths, weaknesses = self._strengths_and_weaknesses(evaluation)
        explanation = self._explain(evaluation, strengths, weaknesses, len(validation.errors))
        return evaluation.model_copy(
            update={"strengths": strengths, "weaknesses": weaknesses, "explanation": explanation}
        )

    def _normalize_candidates(self, candidates: Sequence[CandidateInput]) -> List[Candidate]:
        normalized: List[Candidate] = []
        used_ids = set()

        for position, item in enumerate(candidates or [], start=1):
            if isinstance(item, Candidate):
                candidate = item
            elif isinstance(item, QueryDocument):
                candidate = Candidate(id=item.perspective_id or f"option_{position}", document=item)
            elif isinstance(item, dict):
                candidate = self._candidate_from_dict(item, position)
            else:
                logger.warning("Ignoring candidate %d of unsupported type %s", position, type(item).__name__)
                continue

            if candidate.id in used_ids:
                candidate = candidate.model_copy(update={"id": f"{candidate.id}_{position}"})
            used_ids.add(candidate.id)
            normalized.append(candidate)

        return normalized

    @staticmethod
    def _candidate_from_dict(item: Dict[str, Any], position: int) -> Candidate:
        perspective = item.get("perspective")
        perspective_id = item.get("perspective_id")
        if perspective_id is None and isinstance(perspective, dict):
            perspective_id = perspective.get("id")
        elif perspective_id is None and isinstance(perspective, str):
            perspective_id = perspective

        body = item.get("body") or item.get("document") or item.get("dsl")
        if body is None:
            body = {k: v for k, v in item.items() if k not in CANDIDATE_META_KEYS}

        return Candidate(
            id=item.get("id") or perspective_id or f"option_{position}",
            document=QueryDocument(perspective_id=perspective_id, body=body),
            validation=item.get("validation"),
        )

    def _strengths_and_weaknesses(self, evaluation: Evaluation):
        scores = evaluation.dimension_scores()
        by_score = sorted(scores.items(), key=lambda kv: kv[1], reverse=True)

        strengths = [
            name for name, score in by_score[:2] if score >= self.config.strength_threshold
        ]
        weaknesses = [
            name
            for name, score in sorted(scores.items(), key=lambda kv: kv[1])[:2]
            if score <= self.config.weakness_threshold
        ]
        return strengths, weaknesses

    @staticmethod
    def _explain(evaluation: Evaluation, strengths: List[str], weaknesses: List[str], error_count: int) -> str:
        overall = evaluation.overall_score
        parts = [f"{quality_level(overall).capitalize()} overall quality ({overall:.2f})."]
        if strengths:
            parts.append("Strong " + " and ".join(DIMENSION_LABELS[s] for s in strengths) + ".")
        if weaknesses:
            parts.append("Weak " + " and ".join(DIMENSION_LABELS[w] for w in weaknesses) + ".")
        if error_count:
            parts.append(f"{error_count} validation error(s) may prevent execution.")
        return " ".join(parts)

    @staticmethod
    def _describe_consensus(top: List[Evaluation]) -> ConsensusDescription:
        profiles = [extract_profile(e.document) for e in top]

        def shared(attribute) -> List[str]:
            sets = [attribute(p) for p in profiles]
            return sorted(set.intersection(*sets)) if sets else []

        elements = ConsensusElements(
            query_types=shared(lambda p: set(p.leaf_types)),
            fields=shared(lambda p: p.fields),
            filters=shared(lambda p: set(p.filter_fields)),
            aggregations=shared(lambda p: set(p.agg_types)),
        )

        agreed = []
        if elements.query_types:
            agreed.append(f"query types {', '.join(elements.query_types)}")
        if elements.fields:
            agreed.append(f"fields {', '.join(elements.fields)}")
        if elements.filters:
            agreed.append(f"filters on {', '.join(elements.filters)}")
        if elements.aggregations:
            agreed.append(f"aggregations {', '.join(elements.aggregations)}")

        if len(top) == 1:
            description = "Only one candidate was evaluated"
            description += f"; it uses {'; '.join(agreed)}." if agreed else "."
        elif agreed:
            description = f"The top {len(top)} candidates agree on {'; '.join(agreed)}."
        else:
            description = f"The top {len(top)} candidates share no common query elements."

        return ConsensusDescription(description=description, key_elements=elements)

    def _reasoning(self, recommended: Evaluation, total: int) -> str:
        label = recommended.perspective_id or recommended.candidate_id
        reasoning = (
            f"Recommended '{label}' out of {total} candidate(s) with an overall score of "
            f"{recommended.overall_score:.2f}"
        )
        if recommended.strengths:
            reasoning += ", strongest in " + " and ".join(
                DIMENSION_LABELS[s] for s in recommended.strengths
            )
        reasoning += "."
        if recommended.overall_score < self.config.alternative_floor:
            reasoning += " No candidate scored well; review the query before running it."
        return reasoning

    def _alternatives(self, rest: List[Evaluation]) -> List[AlternativeApproach]:
        viable = [e for e in rest if e.overall_score >= self.config.alternative_floor]
        return [
            AlternativeApproach(
                id=e.candidate_id,
                perspective_id=e.perspective_id,
                score=e.overall_score,
                strengths=list(e.strengths),
                explanation=e.explanation,
            )
            for e in viable[: self.config.max_alternatives]
        ]

