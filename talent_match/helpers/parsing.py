import json
import os
from pathlib import Path
from typing import Any, Dict, List, Union

from pydantic import ValidationError

from talent_match.models.models import FACETS, Facet, RawProfile
from talent_match.utils.exceptions import InvalidInputError, JSONExtractionError
from talent_match.utils.logging_config import get_logger
from talent_match.utils.utils import _as_list

logger = get_logger(__name__)

ProfilesSource = Union[str, os.PathLike, List[Any]]


def _s(x: Any) -> str:
    return "" if x is None else str(x)


def load_profiles(source: ProfilesSource) -> List[Any]:
    """Resolve a profiles source: a path to a JSON array file, or the list itself."""
    if isinstance(source, (str, os.PathLike)):
        path = Path(source)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except OSError as e:
            raise InvalidInputError(f"Could not read profiles file: {path}", field="profiles_source", cause=e) from e
        except ValueError as e:
            raise InvalidInputError(f"Profiles file is not valid JSON: {path}", field="profiles_source", cause=e) from e
    elif isinstance(source, list):
        data = source
    else:
        raise InvalidInputError(
            "profiles source must be either a JSON file path or an array of profiles",
            field="profiles_source",
            value=type(source).__name__,
        )

    if not isinstance(data, list):
        raise InvalidInputError("Parsed profiles data must be an array", field="profiles_source", value=type(data).__name__)
    return data


def validate_profiles(raw_profiles: List[Any]) -> List[RawProfile]:
    """Keep well-formed profiles with unique ids; everything else is logged and dropped."""
    out = []
    seen = set()
    for i, raw in enumerate(raw_profiles):
        if not isinstance(raw, dict):
            logger.warning(f"Skipping invalid profile object at index {i}: {raw!r:.80}")
            continue
        try:
            profile = RawProfile.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Skipping malformed profile at index {i} (id={raw.get('id')!r}): {e.error_count()} validation error(s)")
            continue
        if profile.id in seen:
            logger.warning(f"Skipping duplicate profile id {profile.id} at index {i}")
            continue
        seen.add(profile.id)
        out.append(profile)
    return out


def flatten_profile(profile: RawProfile) -> str:
    """Render a profile as the labelled text block sent to the extractor."""
    name = f"{_s(profile.first_name)} {_s(profile.last_name)}".strip()
    location = (profile.geo.full if profile.geo and profile.geo.full else None) or profile.location
    languages = ", ".join(f"{_s(l.name)} ({_s(l.proficiency)})" for l in profile.languages)
    education = ", ".join(
        f"{_s(e.degree)} in {_s(e.field_of_study)} from {_s(e.school_name)}" for e in profile.educations
    )
    experience = ", ".join(
        f"{_s(p.title)} at {_s(p.company_name)} "
        f"({_s(p.start.year if p.start else None)} - {_s(p.end.year if p.end and p.end.year else 'Present')})"
        for p in profile.position
    )
    skills = ", ".join(_s(s.name) for s in profile.skills if s.name)

    lines = [
        f"Name: {name}",
        f"Current Position: {_s(profile.headline)}",
        f"Location: {_s(location)}",
        f"Languages: {languages}",
        f"Education: {education}",
        f"Experience: {experience}",
        f"Skills: {skills}",
        f"Summary: {_s(profile.summary)}",
    ]
    return "\n".join(lines)


def coerce_facets(data: Any) -> Dict[Facet, List[str]]:
    """Map an extractor answer onto the six facets, every value a list of strings."""
    if not isinstance(data, dict):
        raise JSONExtractionError(f"Expected a JSON object with facet keys, got {type(data).__name__}")
    out = {}
    for facet in FACETS:
        value = data.get(facet.value)
        if value is None and facet is Facet.LOCATION:
            value = data.get("geo")
        out[facet] = _as_list(value)
    return out
