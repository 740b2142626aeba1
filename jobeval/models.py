"""
Core data models for occupation matching.

Occupation data is reference data loaded once from the generated JSON
artifacts; the dataclasses are frozen so nothing mutates it at runtime.
JSON artifacts use camelCase keys; ``from_dict``/``to_dict`` translate.
"""

from dataclasses import dataclass
from typing import Optional, Tuple


MATCH_TYPES = ("primary", "alternate", "partial")


def _num(value, default: float = 0.0) -> float:
    try:
        return float(value) if value is not None else default
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class WagePercentiles:
    """Annual wage distribution points in dollars."""
    p10: float
    p25: float
    p50: float
    p75: float
    p90: float

    @property
    def median(self) -> float:
        return self.p50

    def anchors(self) -> Tuple[Tuple[float, float], ...]:
        """(percentile, salary) pairs in ascending order."""
        return ((10, self.p10), (25, self.p25), (50, self.p50), (75, self.p75), (90, self.p90))

    @classmethod
    def from_dict(cls, data: dict) -> "WagePercentiles":
        return cls(
            p10=_num(data.get("p10")),
            p25=_num(data.get("p25")),
            p50=_num(data.get("p50", data.get("median"))),
            p75=_num(data.get("p75")),
            p90=_num(data.get("p90")),
        )

    def to_dict(self) -> dict:
        return {"p10": self.p10, "p25": self.p25, "p50": self.p50, "p75": self.p75, "p90": self.p90}


@dataclass(frozen=True)
class WageData:
    employment: int
    hourly_mean: float
    hourly_median: float
    annual_mean: float
    annual_median: float
    percentiles: WagePercentiles
    data_date: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "WageData":
        hourly = data.get("hourly") or {}
        annual = data.get("annual") or {}
        return cls(
            employment=int(_num(data.get("employment"))),
            hourly_mean=_num(hourly.get("mean")),
            hourly_median=_num(hourly.get("median")),
            annual_mean=_num(annual.get("mean")),
            annual_median=_num(annual.get("median")),
            percentiles=WagePercentiles.from_dict(data.get("percentiles") or {}),
            data_date=data.get("dataDate"),
        )

    def to_dict(self) -> dict:
        return {
            "employment": self.employment,
            "hourly": {"mean": self.hourly_mean, "median": self.hourly_median},
            "annual": {"mean": self.annual_mean, "median": self.annual_median},
            "percentiles": self.percentiles.to_dict(),
            "dataDate": self.data_date,
        }


@dataclass(frozen=True)
class Attribute:
    """A rated O*NET skill or knowledge area."""
    name: str
    importance: float
    level: Optional[float] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Attribute":
        level = data.get("level")
        return cls(
            name=data.get("name", ""),
            importance=_num(data.get("importance")),
            level=_num(level) if level is not None else None,
        )

    def to_dict(self) -> dict:
        return {"name": self.name, "importance": self.importance, "level": self.level}


@dataclass(frozen=True)
class Occupation:
    """An occupation keyed by its SOC / O*NET-SOC code."""
    code: str
    title: str
    group: str = "Other"
    description: str = ""
    alternate_titles: Tuple[str, ...] = ()
    skills: Tuple[Attribute, ...] = ()
    knowledge: Tuple[Attribute, ...] = ()
    job_zone: Optional[int] = None
    education_level: Optional[str] = None
    wage_data: Optional[WageData] = None
    data_source: str = "onet-only"

    @property
    def has_wage_data(self) -> bool:
        return self.wage_data is not None

    @property
    def percentiles(self) -> Optional[WagePercentiles]:
        return self.wage_data.percentiles if self.wage_data else None

    @property
    def employment(self) -> int:
        return self.wage_data.employment if self.wage_data else 0

    @classmethod
    def from_dict(cls, data: dict) -> "Occupation":
        wage_data = data.get("wageData")
        # hasWageData false wins even if a stale wageData block is present
        if data.get("hasWageData") is False:
            wage_data = None
        return cls(
            code=data["code"],
            title=data.get("title", ""),
            group=data.get("group") or "Other",
            description=data.get("description") or "",
            alternate_titles=tuple(data.get("alternateTitles") or ()),
            skills=tuple(Attribute.from_dict(s) for s in data.get("skills") or ()),
            knowledge=tuple(Attribute.from_dict(k) for k in data.get("knowledge") or ()),
            job_zone=data.get("jobZone"),
            education_level=data.get("educationLevel"),
            wage_data=WageData.from_dict(wage_data) if wage_data else None,
            data_source=data.get("dataSource") or ("integrated" if wage_data else "onet-only"),
        )

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "title": self.title,
            "description": self.description,
            "group": self.group,
            "alternateTitles": list(self.alternate_titles),
            "skills": [s.to_dict() for s in self.skills],
            "knowledge": [k.to_dict() for k in self.knowledge],
            "jobZone": self.job_zone,
            "educationLevel": self.education_level,
            "wageData": self.wage_data.to_dict() if self.wage_data else None,
            "hasWageData": self.has_wage_data,
            "dataSource": self.data_source,
        }


@dataclass(frozen=True)
class TitleIndexEntry:
    code: str
    title: str
    match_type: str = "primary"

    @classmethod
    def from_dict(cls, data: dict) -> "TitleIndexEntry":
        match_type = data.get("matchType", "primary")
        if match_type not in MATCH_TYPES:
            match_type = "partial"
        return cls(code=data["code"], title=data.get("title", ""), match_type=match_type)

    def to_dict(self) -> dict:
        return {"code": self.code, "title": self.title, "matchType": self.match_type}


@dataclass
class MatchResult:
    """One ranked candidate for a query. Produced per call, never persisted."""
    code: str
    title: str
    confidence: float
    matched_on: str
    match_type: str

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "title": self.title,
            "confidence": round(self.confidence, 4),
            "matchedOn": self.matched_on,
            "matchType": self.match_type,
        }
