import asyncio
import json
from typing import Awaitable, Dict, List, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from talent_match.helpers.prompts import FACET_COMPARE_PROMPT
from talent_match.models.models import (
    FACETS, Facet, FacetResult, FacetResultTable, MatchReport, NormalizedProfile, Outcome, RequirementSet,
)
from talent_match.models.settings import ProcessingSettings
from talent_match.services.completion import CompletionClient
from talent_match.utils.exceptions import (
    AggregationError, CompletionError, JSONExtractionError, retry_with_logging,
)
from talent_match.utils.logging_config import get_logger
from talent_match.utils.utils import extract_json

logger = get_logger(__name__)

# failures contained at the level of one profile / one facet comparison
RECOVERABLE = (CompletionError, JSONExtractionError)


async def run_unit(key: str, work: Awaitable) -> Outcome:
    """Await one unit of work and tag the result instead of raising recoverable errors."""
    try:
        return Outcome.success(key, await work)
    except RECOVERABLE as e:
        return Outcome.failure(key, e)


def with_retries(client: CompletionClient, processing: ProcessingSettings):
    return retry_with_logging(
        max_attempts=processing.retry_attempts,
        backoff_factor=processing.retry_delay,
        exceptions=(CompletionError,),
        logger=logger,
    )(client.complete)


async def compare_facet(
    client: CompletionClient,
    facet: Facet,
    requirements: RequirementSet,
    profile: NormalizedProfile,
    processing: Optional[ProcessingSettings] = None,
) -> FacetResult:
    processing = processing or ProcessingSettings()
    prompt = FACET_COMPARE_PROMPT.format(
        facet=facet.value,
        profile_content=json.dumps(profile.facet(facet), ensure_ascii=False),
        required_content=json.dumps(list(requirements.get(facet, [])), ensure_ascii=False),
    )
    text = await with_retries(client, processing)([{"role": "user", "content": prompt}])

    data = extract_json(text)
    if not isinstance(data, dict):
        raise JSONExtractionError("Comparison result is not a JSON object", text=text)
    try:
        return FacetResult.model_validate(data)
    except ValidationError as e:
        raise JSONExtractionError("Comparison result does not match the expected shape", text=text, cause=e) from e


async def match_facet(
    client: CompletionClient,
    facet: Facet,
    requirements: RequirementSet,
    profiles: Sequence[NormalizedProfile],
    processing: Optional[ProcessingSettings] = None,
) -> Dict[str, FacetResult]:
    """Score every profile on one facet; a failed comparison becomes a zero-score placeholder."""
    facet = Facet(facet)
    outcomes = await asyncio.gather(*(
        run_unit(profile.id, compare_facet(client, facet, requirements, profile, processing))
        for profile in profiles
    ))

    results: Dict[str, FacetResult] = {}
    for outcome in outcomes:
        if outcome.ok:
            results[outcome.key] = outcome.value
        else:
            logger.error(f"Error analyzing {facet.value} for profile {outcome.key}: {outcome.error}")
            results[outcome.key] = FacetResult.placeholder(f"Error analyzing {facet.value}")
    return results


async def match_all_facets(
    client: CompletionClient,
    requirements: RequirementSet,
    profiles: Sequence[NormalizedProfile],
    processing: Optional[ProcessingSettings] = None,
) -> FacetResultTable:
    """Run all facets concurrently and collect their results in one table."""
    table = FacetResultTable()

    async def run(facet: Facet) -> None:
        results = await match_facet(client, facet, requirements, profiles, processing)
        for profile_id, result in results.items():
            table.record(facet, profile_id, result)
        logger.info(f"Facet {facet.value} analyzed for {len(results)} profile(s)")

    await asyncio.gather(*(run(facet) for facet in FACETS))
    return table


def aggregate(
    profiles: Sequence[NormalizedProfile],
    table: Union[FacetResultTable, Mapping, None],
) -> List[MatchReport]:
    """
    Combine per-facet results into one report per profile, best match first.

    ``overallMatch`` is the sum of the six facet scores divided by six; a
    facet with no recorded result counts as zero.
    """
    if not isinstance(profiles, (list, tuple)):
        raise AggregationError("Invalid state or missing processed profiles")
    for profile in profiles:
        if not isinstance(profile, NormalizedProfile):
            raise AggregationError(
                "Processed profiles must be normalized profiles",
                details={"found": type(profile).__name__},
            )

    if table is None:
        table = FacetResultTable()
    elif not isinstance(table, FacetResultTable):
        if not isinstance(table, Mapping):
            raise AggregationError("Facet results must be a table or a mapping", details={"found": type(table).__name__})
        try:
            table = FacetResultTable.from_mapping(table)
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise AggregationError(f"Facet results could not be read: {e}", cause=e) from e

    reports = []
    for profile in profiles:
        section_matches = {facet: table.lookup(facet, profile.id) for facet in FACETS}
        total = sum(result.match_percentage for result in section_matches.values())
        reports.append(MatchReport(
            profile_id=profile.id,
            section_matches=section_matches,
            overall_match=total / len(FACETS),
        ))

    # sorted() is stable, ties keep input order
    return sorted(reports, key=lambda r: r.overall_match, reverse=True)
