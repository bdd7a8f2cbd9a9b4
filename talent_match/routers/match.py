# routers/match.py
import logging
from typing import Any, Callable, List

from fastapi import APIRouter, Depends
from pydantic import Field

from talent_match.models.models import CamelModel, MatchReport
from talent_match.models.settings import CompletionSettings, ProcessingSettings
from talent_match.services.completion import CompletionClient, create_completion_client
from talent_match.services.graph import match_candidates

router = APIRouter(prefix="/match", tags=["match"])
logger = logging.getLogger(__name__)

ClientBuilder = Callable[[ProcessingSettings], CompletionClient]


class MatchRequest(CamelModel):
    job_description: str
    # entries are validated by the pipeline so bad profiles are dropped, not rejected
    profiles: List[Any] = Field(default_factory=list)


def get_processing_settings() -> ProcessingSettings:
    return ProcessingSettings.from_env()


def get_completion_client(processing: ProcessingSettings) -> CompletionClient:
    return create_completion_client(CompletionSettings.from_env(), max_concurrent=processing.max_concurrent)


def get_client_builder() -> ClientBuilder:
    """The provider client is built inside the endpoint, after the request body has validated"""
    return get_completion_client


@router.post("/", response_model=List[MatchReport])
async def run_match(
    payload: MatchRequest,
    build_client: ClientBuilder = Depends(get_client_builder),
    processing: ProcessingSettings = Depends(get_processing_settings),
):
    """Rank the submitted profiles against the job description"""
    logger.info(f"Match requested for {len(payload.profiles)} profile(s)")
    return await match_candidates(
        payload.job_description,
        payload.profiles,
        client=build_client(processing),
        processing=processing,
    )
