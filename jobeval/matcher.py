"""
Occupation matcher.

Maps a free-text job title to ranked SOC occupations using the title
index produced by the ETL. The lookup is an exact-key lookup followed by
an exhaustive approximate sweep over every index key; every candidate is
scored with the same layered confidence function.

The matcher is pure: it only reads the occupation table and the title
index it was constructed with, so one instance can serve concurrent
callers without locking.
"""

import functools
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from rapidfuzz.distance import Levenshtein

from .logger import get_logger
from .models import MatchResult, Occupation, TitleIndexEntry
from .normalize import normalize_title
from .storage import load_occupation_database, load_title_index

logger = get_logger()

DEFAULT_MAX_RESULTS = 5
DEFAULT_MIN_CONFIDENCE = 0.3

MATCH_TYPE_WEIGHTS = {
    "primary": 1.1,
    "alternate": 0.95,
    "partial": 0.7,
}
SUBSTRING_BONUS = 0.15
WORD_OVERLAP_WEIGHT = 0.8
# matches closer than this are treated as ties when preferred groups are given
TIE_TOLERANCE = 0.01


def calculate_similarity(a: str, b: str) -> float:
    """Edit-distance similarity in [0, 1]; 1.0 means identical."""
    if not a:
        return 1.0 if not b else 0.0
    if not b:
        return 0.0
    if a == b:
        return 1.0
    return 1.0 - Levenshtein.distance(a, b) / max(len(a), len(b))


def word_overlap(a: str, b: str) -> float:
    """Share of common words relative to the longer title."""
    words_a = a.split()
    words_b = b.split()
    if not words_a or not words_b:
        return 0.0
    common = [w for w in words_a if w in words_b]
    return len(common) / max(len(words_a), len(words_b))


def calculate_confidence(input_title: str, indexed_title: str, match_type: str) -> float:
    """
    Score how well ``input_title`` matches an indexed title.

    1. identical normalized forms score 1.0
    2. edit similarity weighted by match type (primary is boosted and capped)
    3. +0.15 when one title contains the other
    4. word overlap * 0.8 acts as a floor
    """
    query = normalize_title(input_title)
    candidate = normalize_title(indexed_title)

    if query == candidate:
        return 1.0

    similarity = calculate_similarity(query, candidate)

    if match_type == "primary":
        confidence = min(1.0, similarity * MATCH_TYPE_WEIGHTS["primary"])
    else:
        confidence = similarity * MATCH_TYPE_WEIGHTS.get(match_type, MATCH_TYPE_WEIGHTS["partial"])

    if query in candidate or candidate in query:
        confidence = min(1.0, confidence + SUBSTRING_BONUS)

    overlap = word_overlap(query, candidate)
    if overlap > 0:
        confidence = max(confidence, overlap * WORD_OVERLAP_WEIGHT)

    return min(1.0, max(0.0, confidence))


class OccupationMatcher:
    """Ranks occupations for a job title against a read-only title index."""

    def __init__(
        self,
        occupations: Dict[str, Occupation],
        title_index: Dict[str, List[TitleIndexEntry]],
    ):
        self.occupations = occupations
        self.title_index = title_index

    @classmethod
    def from_files(cls, occupations_path: Path, title_index_path: Path) -> "OccupationMatcher":
        occupations = load_occupation_database(occupations_path)
        title_index = load_title_index(title_index_path)
        logger.info(
            "Loaded matcher data",
            occupations=len(occupations),
            index_keys=len(title_index),
        )
        return cls(occupations, title_index)

    def _eligible(self, code: str, include_without_wages: bool) -> Optional[Occupation]:
        occupation = self.occupations.get(code)
        if occupation is None:
            logger.debug("Index references unknown occupation", code=code)
            return None
        if not include_without_wages and not occupation.has_wage_data:
            return None
        return occupation

    def match(
        self,
        query: str,
        max_results: int = DEFAULT_MAX_RESULTS,
        min_confidence: float = DEFAULT_MIN_CONFIDENCE,
        preferred_groups: Sequence[str] = (),
        include_without_wages: bool = False,
    ) -> List[MatchResult]:
        """
        Return up to ``max_results`` occupations for ``query``, best first.

        Empty queries and queries with nothing above ``min_confidence``
        return an empty list. Index entries pointing at unknown codes, or
        at occupations without wage data, are skipped.
        """
        if not isinstance(query, str) or not query.strip() or max_results <= 0:
            return []

        normalized = normalize_title(query)
        if not normalized:
            return []

        matches: List[MatchResult] = []
        seen = set()

        for entry in self.title_index.get(normalized, ()):
            if entry.code in seen or not self._eligible(entry.code, include_without_wages):
                continue
            matches.append(MatchResult(
                code=entry.code,
                title=entry.title,
                confidence=1.0,
                matched_on=query,
                match_type="exact",
            ))
            seen.add(entry.code)

        for indexed_title, entries in self.title_index.items():
            for entry in entries:
                if entry.code in seen or not self._eligible(entry.code, include_without_wages):
                    continue
                confidence = calculate_confidence(normalized, indexed_title, entry.match_type)
                if confidence >= min_confidence:
                    matches.append(MatchResult(
                        code=entry.code,
                        title=entry.title,
                        confidence=confidence,
                        matched_on=indexed_title,
                        match_type=entry.match_type,
                    ))
                    seen.add(entry.code)

        if preferred_groups:
            matches.sort(key=functools.cmp_to_key(self._group_comparator(preferred_groups)))
        else:
            matches.sort(key=lambda m: m.confidence, reverse=True)

        return matches[:max_results]

    def _group_comparator(self, preferred_groups: Iterable[str]):
        preferred = set(preferred_groups)

        def compare(a: MatchResult, b: MatchResult) -> int:
            if abs(a.confidence - b.confidence) > TIE_TOLERANCE:
                return -1 if a.confidence > b.confidence else 1
            a_pref = self.occupations[a.code].group in preferred
            b_pref = self.occupations[b.code].group in preferred
            if a_pref and not b_pref:
                return -1
            if b_pref and not a_pref:
                return 1
            return 0

        return compare

    def best_match(self, query: str, **kwargs) -> Optional[MatchResult]:
        results = self.match(query, max_results=1, **kwargs)
        return results[0] if results else None

    # Browsing helpers

    def get_occupation(self, code: str) -> Optional[Occupation]:
        return self.occupations.get(code)

    def get_all_occupations(
        self,
        include_without_wages: bool = True,
        group: Optional[str] = None,
    ) -> List[Occupation]:
        return [
            occ for occ in self.occupations.values()
            if (include_without_wages or occ.has_wage_data)
            and (group is None or occ.group == group)
        ]

    def get_occupation_groups(self) -> List[str]:
        return sorted({occ.group for occ in self.occupations.values()})

    def search_occupations(self, keyword: str, limit: int = 10) -> List[Occupation]:
        """
        Keyword search across titles, descriptions and alternate titles.

        Scoring: exact title +100 (or title contains keyword +50),
        description contains keyword +20, +15 per keyword word found in the
        title, +30 when any alternate title contains the keyword.
        """
        if not isinstance(keyword, str) or not keyword.strip():
            return []

        normalized_keyword = normalize_title(keyword)
        if not normalized_keyword:
            return []
        keyword_words = normalized_keyword.split()

        scored = []
        for occ in self.occupations.values():
            title = normalize_title(occ.title)
            score = 0

            if title == normalized_keyword:
                score += 100
            elif normalized_keyword in title:
                score += 50

            if normalized_keyword in normalize_title(occ.description):
                score += 20

            title_words = title.split()
            score += 15 * sum(1 for w in keyword_words if w in title_words)

            if any(normalized_keyword in normalize_title(alt) for alt in occ.alternate_titles):
                score += 30

            if score > 0:
                scored.append((score, occ))

        scored.sort(key=lambda item: item[0], reverse=True)
        return [occ for _, occ in scored[:limit]]

    def get_occupation_stats(self) -> dict:
        with_wages = sum(1 for occ in self.occupations.values() if occ.has_wage_data)
        return {
            "total": len(self.occupations),
            "with_wages": with_wages,
            "without_wages": len(self.occupations) - with_wages,
            "groups": len(self.get_occupation_groups()),
        }
