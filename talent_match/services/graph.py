import asyncio
import json
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional, TypedDict, Union

from langgraph.graph import StateGraph, END

from talent_match.helpers.parsing import (
    ProfilesSource, coerce_facets, flatten_profile, load_profiles, validate_profiles,
)
from talent_match.helpers.prompts import PROFILE_EXTRACT_PROMPT, REQUIREMENTS_PROMPT
from talent_match.models.models import (
    FacetResultTable, MatchReport, NormalizedProfile, RawProfile, RequirementSet,
)
from talent_match.models.settings import CompletionSettings, ProcessingSettings
from talent_match.services.completion import (
    BoundedCompletionClient, CompletionClient, create_completion_client,
)
from talent_match.services.matching import aggregate, match_all_facets, run_unit, with_retries
from talent_match.utils.exceptions import InvalidInputError
from talent_match.utils.logging_config import PerformanceMonitor, get_logger, log_function_call
from talent_match.utils.utils import extract_json

logger = get_logger(__name__)


def _require_job_description(job_description: Any) -> str:
    if not isinstance(job_description, str) or not job_description.strip():
        raise InvalidInputError(
            "Job description is required and must be a non-empty string",
            field="job_description",
            value=None if job_description is None else type(job_description).__name__,
        )
    return job_description.strip()


async def normalize_profile(
    client: CompletionClient,
    profile: RawProfile,
    processing: Optional[ProcessingSettings] = None,
) -> NormalizedProfile:
    processing = processing or ProcessingSettings()
    text = flatten_profile(profile)
    answer = await with_retries(client, processing)(
        [{"role": "user", "content": PROFILE_EXTRACT_PROMPT.format(profile=text)}]
    )
    return NormalizedProfile(
        id=profile.id,
        flattened_text=text,
        facet_extraction=coerce_facets(extract_json(answer)),
    )


async def process_profiles(
    client: CompletionClient,
    raw_profiles: List[Any],
    processing: Optional[ProcessingSettings] = None,
) -> List[NormalizedProfile]:
    """Normalize all profiles concurrently; profiles that fail are logged and left out."""
    profiles = validate_profiles(raw_profiles)
    outcomes = await asyncio.gather(*(
        run_unit(profile.id, normalize_profile(client, profile, processing)) for profile in profiles
    ))

    processed = []
    for outcome in outcomes:
        if outcome.ok:
            processed.append(outcome.value)
        else:
            logger.error(f"Error processing profile {outcome.key}: {outcome.error}")
    logger.info(f"Processed {len(processed)} of {len(raw_profiles)} profile(s)")
    return processed


async def extract_requirements(client: CompletionClient, job_description: str) -> RequirementSet:
    """Split the job description into per-facet requirements. Errors are not contained here."""
    job_description = _require_job_description(job_description)
    answer = await client.complete(
        [{"role": "user", "content": REQUIREMENTS_PROMPT.format(job_description=job_description)}]
    )
    return coerce_facets(extract_json(answer))


def write_report(results: List[MatchReport], report_dir: Union[str, Path]) -> Path:
    Path(report_dir).mkdir(parents=True, exist_ok=True)
    name = f"{datetime.now().strftime('%Y-%m-%d_%H-%M-%S')}_analysis_report.json"
    path = Path(report_dir) / name
    payload = [r.model_dump(mode="json", by_alias=True) for r in results]
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info(f"Matching results saved to {path}")
    return path


# LangGraph state and nodes
class MatchState(TypedDict, total=False):
    job_description: str
    raw_profiles: List[Any]
    processed_profiles: List[NormalizedProfile]
    requirements: RequirementSet
    facet_results: FacetResultTable
    analysis_results: List[MatchReport]
    current_step: str


def node_initialize(state: MatchState):
    logger.info("Initializing state")
    job_description = _require_job_description(state.get("job_description"))
    raw_profiles = state.get("raw_profiles")
    if not isinstance(raw_profiles, list):
        raise InvalidInputError("Raw profiles must be an array", field="raw_profiles", value=type(raw_profiles).__name__)

    return {
        "job_description": job_description,
        "raw_profiles": raw_profiles,
        "processed_profiles": [],
        "requirements": {},
        "facet_results": FacetResultTable(),
        "analysis_results": [],
        "current_step": "initialized",
    }


def node_aggregate(state: MatchState):
    with PerformanceMonitor("aggregate_results", logger):
        results = aggregate(state.get("processed_profiles"), state.get("facet_results"))
    return {"analysis_results": results, "current_step": "complete"}  # DELTA


def build_graph(client: CompletionClient, processing: Optional[ProcessingSettings] = None):
    """Compile the matching workflow: initialize -> profiles -> requirements + facets -> aggregate."""
    processing = processing or ProcessingSettings()

    async def node_process_profiles(state: MatchState):
        with PerformanceMonitor("process_profiles", logger):
            processed = await process_profiles(client, state.get("raw_profiles", []), processing)
        return {"processed_profiles": processed, "current_step": "profiles_processed"}  # DELTA

    async def node_extract_requirements(state: MatchState):
        with PerformanceMonitor("extract_requirements", logger):
            requirements = await extract_requirements(client, state.get("job_description"))
        profiles = state.get("processed_profiles", [])
        with PerformanceMonitor("match_facets", logger):
            table = await match_all_facets(client, requirements, profiles, processing)
        return {
            "requirements": requirements,
            "facet_results": table,
            "current_step": "requirements_extracted",
        }  # DELTA

    g = StateGraph(MatchState)
    g.add_node("initialize_state", node_initialize)
    g.add_node("process_profiles", node_process_profiles)
    g.add_node("extract_requirements", node_extract_requirements)
    g.add_node("aggregate_results", node_aggregate)
    g.set_entry_point("initialize_state")
    g.add_edge("initialize_state", "process_profiles")
    g.add_edge("process_profiles", "extract_requirements")
    g.add_edge("extract_requirements", "aggregate_results")
    g.add_edge("aggregate_results", END)
    return g.compile()


@log_function_call
async def match_candidates(
    job_description: str,
    profiles_source: ProfilesSource,
    *,
    client: Optional[CompletionClient] = None,
    settings: Optional[CompletionSettings] = None,
    processing: Optional[ProcessingSettings] = None,
    report_dir: Optional[Union[str, Path]] = None,
) -> List[MatchReport]:
    """
    Rank candidate profiles against a job description.

    Args:
        job_description: Non-empty job description text
        profiles_source: Path to a JSON array of profiles, or the list itself
        client: Completion backend; built from ``settings`` (or the environment) when omitted
        settings: Provider configuration used when no client is given
        processing: Concurrency / retry configuration
        report_dir: When set, the ranked results are written there after a successful run

    Returns:
        Match reports sorted by overall match, best first
    """
    job_description = _require_job_description(job_description)
    raw_profiles = load_profiles(profiles_source)
    processing = processing or ProcessingSettings.from_env()

    if client is None:
        client = create_completion_client(settings, max_concurrent=processing.max_concurrent)
    elif not isinstance(client, BoundedCompletionClient):
        client = BoundedCompletionClient(client, processing.max_concurrent)

    logger.info(f"Starting matching process for {len(raw_profiles)} profile(s)")
    workflow = build_graph(client, processing)
    state = await workflow.ainvoke({
        "job_description": job_description,
        "raw_profiles": raw_profiles,
        "current_step": "start",
    })
    results = state["analysis_results"]
    logger.info(f"Matching process completed with {len(results)} ranked profile(s)")

    if report_dir is not None:
        write_report(results, report_dir)
    return results
