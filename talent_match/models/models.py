from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from talent_match.utils.utils import _as_list, _as_text


class Facet(str, Enum):
    """Comparison dimensions shared by profiles and job requirements"""
    LOCATION = "location"
    LANGUAGE = "language"
    EDUCATION = "education"
    POSITION = "position"
    SKILLS = "skills"
    CERTIFICATIONS = "certifications"


FACETS: Tuple[Facet, ...] = tuple(Facet)

RequirementSet = Dict[Facet, List[str]]

NOT_AVAILABLE = "Analysis not available"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


# -------- Raw LinkedIn-style profiles --------
# Only ``id`` is required; every other field is read best-effort and a value
# of the wrong shape is coerced or ignored instead of rejecting the profile.
def _scalar_text(v: Any) -> Optional[str]:
    if v is None or isinstance(v, (dict, list, tuple)):
        return None
    return str(v)


class Geo(CamelModel):
    full: Optional[str] = None

    @field_validator("full", mode="before")
    @classmethod
    def validate_text(cls, v):
        return _scalar_text(v)


class LanguageEntry(CamelModel):
    name: Optional[str] = None
    proficiency: Optional[str] = None

    @field_validator("name", "proficiency", mode="before")
    @classmethod
    def validate_text(cls, v):
        return _scalar_text(v)


class EducationEntry(CamelModel):
    degree: Optional[str] = None
    field_of_study: Optional[str] = None
    school_name: Optional[str] = None

    @field_validator("degree", "field_of_study", "school_name", mode="before")
    @classmethod
    def validate_text(cls, v):
        return _scalar_text(v)


class YearRef(CamelModel):
    year: Optional[Union[int, str]] = None

    @field_validator("year", mode="before")
    @classmethod
    def validate_year(cls, v):
        if isinstance(v, int) and not isinstance(v, bool):
            return v
        return _scalar_text(v)


class PositionEntry(CamelModel):
    title: Optional[str] = None
    company_name: Optional[str] = None
    start: Optional[YearRef] = None
    end: Optional[YearRef] = None

    @field_validator("title", "company_name", mode="before")
    @classmethod
    def validate_text(cls, v):
        return _scalar_text(v)

    @field_validator("start", "end", mode="before")
    @classmethod
    def validate_year_ref(cls, v):
        if isinstance(v, dict):
            return v
        # a bare year, e.g. "start": 2019
        return {"year": v} if _scalar_text(v) else None


class SkillEntry(CamelModel):
    name: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def validate_text(cls, v):
        return _scalar_text(v)


class RawProfile(CamelModel):
    id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    headline: Optional[str] = None
    geo: Optional[Geo] = None
    location: Optional[str] = None
    languages: List[LanguageEntry] = Field(default_factory=list)
    educations: List[EducationEntry] = Field(default_factory=list)
    position: List[PositionEntry] = Field(default_factory=list)
    skills: List[SkillEntry] = Field(default_factory=list)
    summary: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def validate_id(cls, v):
        if isinstance(v, bool) or not isinstance(v, (str, int)):
            raise ValueError("Profile id must be a string or integer")
        v = str(v).strip()
        if not v:
            raise ValueError("Profile id must not be empty")
        return v

    @field_validator("first_name", "last_name", "headline", "location", "summary", mode="before")
    @classmethod
    def validate_text(cls, v):
        return _scalar_text(v)

    @field_validator("geo", mode="before")
    @classmethod
    def validate_geo(cls, v):
        if isinstance(v, dict):
            return v
        text = _scalar_text(v)
        return {"full": text} if text else None

    @field_validator("languages", "educations", "position", "skills", mode="before")
    @classmethod
    def validate_entries(cls, v):
        if isinstance(v, str):
            v = [v]
        if not isinstance(v, (list, tuple)):
            return []
        # bare strings are accepted as {"name": ...}; anything else that is not an object is dropped
        return [{"name": e} if isinstance(e, str) else e for e in v if isinstance(e, (str, dict))]


# -------- Pipeline products --------
class NormalizedProfile(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    flattened_text: str
    facet_extraction: Dict[Facet, List[str]]

    def facet(self, facet: Facet) -> List[str]:
        return list(self.facet_extraction.get(Facet(facet), []))


class FacetResult(CamelModel):
    match_percentage: float = Field(ge=0.0, le=100.0)
    relevant_content: List[str] = Field(default_factory=list)
    explanation: str = ""

    @field_validator("match_percentage", mode="before")
    @classmethod
    def validate_match_percentage(cls, v):
        if isinstance(v, bool) or v is None:
            raise ValueError("matchPercentage must be a number")
        if isinstance(v, str):
            v = v.strip().rstrip("%").strip()
        try:
            value = float(v)
        except TypeError as e:
            raise ValueError("matchPercentage must be a number") from e
        if value != value:  # NaN
            raise ValueError("matchPercentage must be a number")
        return max(0.0, min(100.0, value))

    @field_validator("relevant_content", mode="before")
    @classmethod
    def validate_relevant_content(cls, v):
        return _as_list(v)

    @field_validator("explanation", mode="before")
    @classmethod
    def validate_explanation(cls, v):
        return _as_text(v)

    @classmethod
    def placeholder(cls, explanation: str = NOT_AVAILABLE) -> "FacetResult":
        return cls(match_percentage=0, relevant_content=[], explanation=explanation)


class MatchReport(CamelModel):
    profile_id: str
    section_matches: Dict[Facet, FacetResult]
    overall_match: float


class Outcome(BaseModel):
    """Result of one unit of work: either a value or the error that stopped it"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    key: str
    value: Any = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, key: str, value: Any) -> "Outcome":
        return cls(key=key, value=value)

    @classmethod
    def failure(cls, key: str, error: Exception) -> "Outcome":
        return cls(key=key, error=error)


class FacetResultTable:
    """
    facet -> profile id -> FacetResult.

    Every (facet, profile id) key is written at most once; lookups of
    missing keys return a zero-score placeholder instead of raising.
    """

    def __init__(self):
        self._results: Dict[Facet, Dict[str, FacetResult]] = {facet: {} for facet in FACETS}

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Mapping[str, Any]]) -> "FacetResultTable":
        """Build a table from plain nested dicts, e.g. a previously serialized run"""
        table = cls()
        for facet, bucket in mapping.items():
            for profile_id, result in (bucket or {}).items():
                table.record(facet, str(profile_id), FacetResult.model_validate(result))
        return table

    def record(self, facet: Facet, profile_id: str, result: FacetResult) -> None:
        bucket = self._results[Facet(facet)]
        if profile_id in bucket:
            raise KeyError(f"Result for {Facet(facet).value}/{profile_id} already recorded")
        bucket[profile_id] = result

    def lookup(self, facet: Facet, profile_id: str) -> FacetResult:
        result = self._results[Facet(facet)].get(profile_id)
        return result if result is not None else FacetResult.placeholder()

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in self._results.values())
