"""
FastAPI REST API for the Query Consensus engine.

Analyzes index schemas, validates Elasticsearch queries and builds ranked
query candidates from structured or natural-language requests.
"""

import logging
import os
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field

from query_consensus import EngineConfig, PipelineResult, QueryOrchestrator
from query_consensus.core.config import configure_logging
from query_consensus.core.models import FieldDescriptor, SchemaAnalysis, ValidationReport
from query_consensus.schema.index_builder import SchemaIndexBuilder
from query_consensus.schema.lookup import FieldLookup

load_dotenv()

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Query Consensus API",
    description="Build, validate and rank Elasticsearch queries against an index schema",
    version="1.0.0",
)


class SchemaSource(BaseModel):
    """Where the schema comes from: an inline mapping or a live index pattern."""
    index_pattern: Optional[str] = Field(None, description="Index name or pattern to analyze")
    mapping: Optional[Dict[str, Any]] = Field(None, description="Raw mapping; takes precedence over index_pattern")


class AnalyzeSchemaRequest(SchemaSource):
    force_refresh: bool = Field(False, description="Bypass the schema cache")


class AnalyzeSchemaResponse(BaseModel):
    summary: str
    fields: List[FieldDescriptor]
    errors: List[str]
    suggestions: List[Dict[str, Any]]


class ValidateRequest(SchemaSource):
    query: Dict[str, Any] = Field(..., description="Request body or bare query clause")


class BuildRequest(SchemaSource):
    intent: Dict[str, Any] = Field(..., description="Structured intent (camelCase or snake_case)")
    perspectives: Optional[List[str]] = Field(None, description="Perspective ids; chosen from the intent if omitted")


class QueryRequest(BaseModel):
    """Request model for natural language query."""
    query: str = Field(..., description="Natural language query string")
    index_pattern: Optional[str] = Field(None, description="Index name or pattern")
    perspectives: Optional[List[str]] = Field(None, description="Perspective ids; chosen from the intent if omitted")


# Default configuration from environment
DEFAULT_ES_HOST = os.getenv("ES_HOST")
DEFAULT_INDEX = os.getenv("ES_INDEX")

_orchestrator: Optional[QueryOrchestrator] = None


def get_orchestrator() -> QueryOrchestrator:
    """Create or get cached orchestrator instance."""
    global _orchestrator
    if _orchestrator is None:
        config = EngineConfig.from_env()
        llm_settings = {
            "llm_model": os.getenv("LLM_MODEL"),
            "llm_api_key": os.getenv("LLM_API_KEY") or os.getenv("OPENAI_API_KEY"),
            "llm_base_url": os.getenv("LLM_BASE_URL"),
        }
        if DEFAULT_ES_HOST and DEFAULT_INDEX:
            _orchestrator = QueryOrchestrator.from_elasticsearch(
                es_host=DEFAULT_ES_HOST,
                index_name=DEFAULT_INDEX,
                config=config,
                **llm_settings,
            )
        else:
            _orchestrator = QueryOrchestrator(config=config, index_pattern=DEFAULT_INDEX, **llm_settings)
    return _orchestrator


def _resolve_analysis(orchestrator: QueryOrchestrator, source: SchemaSource) -> Optional[SchemaAnalysis]:
    if source.mapping is not None:
        builder = SchemaIndexBuilder(summary_max_fields=orchestrator.config.summary_max_fields)
        return builder.build(source.mapping)
    if source.index_pattern or orchestrator.index_pattern:
        return orchestrator.analyze_schema(source.index_pattern)
    return None


@app.get("/health")
async def health():
    return {"status": "healthy"}


@app.post("/analyze-schema", response_model=AnalyzeSchemaResponse)
async def analyze_schema(
    request: AnalyzeSchemaRequest,
    orchestrator: QueryOrchestrator = Depends(get_orchestrator),
):
    """Index a mapping and summarize the fields it defines."""
    try:
        if request.mapping is not None:
            analysis = _resolve_analysis(orchestrator, request)
        else:
            analysis = orchestrator.analyze_schema(request.index_pattern, force_refresh=request.force_refresh)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Schema analysis failed")
        raise HTTPException(status_code=500, detail=f"Schema analysis failed: {str(e)}")

    return AnalyzeSchemaResponse(
        summary=analysis.summary,
        fields=analysis.fields,
        errors=analysis.errors,
        suggestions=FieldLookup(analysis).suggest_queries(),
    )


@app.post("/validate", response_model=ValidationReport)
async def validate_query(
    request: ValidateRequest,
    orchestrator: QueryOrchestrator = Depends(get_orchestrator),
):
    """
    Validate an Elasticsearch query against the index schema.

    Field checks are skipped when no schema source is available.
    """
    try:
        analysis = _resolve_analysis(orchestrator, request)
        return orchestrator.validator.validate(request.query, analysis)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Validation failed")
        raise HTTPException(status_code=500, detail=f"Validation failed: {str(e)}")


@app.post("/build", response_model=PipelineResult)
async def build_queries(
    request: BuildRequest,
    orchestrator: QueryOrchestrator = Depends(get_orchestrator),
):
    """Build, validate and rank query candidates for a structured intent."""
    try:
        analysis = _resolve_analysis(orchestrator, request)
        return await orchestrator.run_async(request.intent, analysis, request.perspectives)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Query building failed")
        raise HTTPException(status_code=500, detail=f"Query building failed: {str(e)}")


@app.post("/query", response_model=PipelineResult)
async def convert_query(
    request: QueryRequest,
    orchestrator: QueryOrchestrator = Depends(get_orchestrator),
):
    """
    Convert a natural language query to ranked Elasticsearch queries.

    Returns the candidate queries without executing them.
    """
    try:
        return await orchestrator.query(request.query, request.index_pattern, request.perspectives)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Query conversion failed")
        raise HTTPException(status_code=500, detail=f"Query conversion failed: {str(e)}")


if __name__ == "__main__":
    import uvicorn

    configure_logging()

    port = int(os.getenv("API_PORT", "8000"))
    host = os.getenv("API_HOST", "0.0.0.0")

    uvicorn.run(app, host=host, port=port)
