"""Skill API routes.

Endpoints:
    GET  /v1/skills          List registered skills
    POST /v1/skills/detect   Rank skills against a request
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from lessonforge.api.dependencies import Runtime, get_runtime
from lessonforge.skills.registry import CHAIN_MIN_CONFIDENCE
from lessonforge.skills.schemas import DetectionResult, SkillMetadata

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/skills", tags=["skills"])


class DetectRequest(BaseModel):
    request: str = Field(..., min_length=1, description="Free-text user request")
    auto_select_threshold: Optional[float] = Field(default=None, ge=0, le=100)
    suggestion_threshold: Optional[float] = Field(default=None, ge=0, le=100)


class DetectResponse(BaseModel):
    results: list[DetectionResult]
    best_skill: Optional[str] = None
    chain: list[str] = Field(default_factory=list)


@router.get("", response_model=list[SkillMetadata])
async def list_skills(runtime: Runtime = Depends(get_runtime)) -> list[SkillMetadata]:
    """List metadata for every registered skill."""
    return runtime.registry.list_metadata()


@router.post("/detect", response_model=DetectResponse)
async def detect_skills(body: DetectRequest, runtime: Runtime = Depends(get_runtime)) -> DetectResponse:
    """Rank skills for a request without running any of them."""
    registry = runtime.registry
    overrides = {
        k: v
        for k, v in (
            ("auto_select_threshold", body.auto_select_threshold),
            ("suggestion_threshold", body.suggestion_threshold),
        )
        if v is not None
    }
    config = registry.config.model_copy(update=overrides)

    results = registry.detect_skills(body.request, config=config)
    best = None
    if results and results[0].confidence >= config.auto_select_threshold:
        best = results[0].skill_id
    chain = [r.skill_id for r in results[: config.max_chain_length] if r.confidence >= CHAIN_MIN_CONFIDENCE]
    return DetectResponse(results=results, best_skill=best, chain=chain)
