from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, Optional, Protocol

from backend.app.models import (
    DuplicateDetectionResult,
    DuplicateMatch,
    PersonRecord,
    SuggestedAction,
)
from backend.app.services.normalization import extract_name_parts, normalize_name
from backend.app.services.similarity import string_similarity

logger = logging.getLogger("family_tree.dedupe")

NICKNAMES: dict[str, frozenset[str]] = {
    "william": frozenset({"bill", "will", "billy"}),
    "robert": frozenset({"bob", "rob", "bobby"}),
    "richard": frozenset({"rick", "dick", "rich"}),
    "michael": frozenset({"mike", "mick"}),
    "elizabeth": frozenset({"liz", "beth", "betty"}),
    "margaret": frozenset({"meg", "maggie", "peggy"}),
    "catherine": frozenset({"cathy", "kate", "katie"}),
    "christopher": frozenset({"chris"}),
    "anthony": frozenset({"tony"}),
    "patricia": frozenset({"pat", "patty"}),
    "jennifer": frozenset({"jen", "jenny"}),
    "jonathan": frozenset({"jon", "john"}),
    "matthew": frozenset({"matt"}),
    "andrew": frozenset({"andy", "drew"}),
    "joshua": frozenset({"josh"}),
    "daniel": frozenset({"dan", "danny"}),
    "david": frozenset({"dave", "davy"}),
    "joseph": frozenset({"joe", "joey"}),
    "thomas": frozenset({"tom", "tommy"}),
    "james": frozenset({"jim", "jimmy"}),
    "samuel": frozenset({"sam", "sammy"}),
}

SIMILAR_NAME_THRESHOLD = 0.8
EXACT_PARTS_SCORE = 0.9
NICKNAME_SCORE = 0.85
SAME_FATHER_ID_BONUS = 0.3
SIMILAR_FATHER_NAME_BONUS = 0.2
SIMILAR_FATHER_NAME_THRESHOLD = 0.8

# Father-name dampening: (name similarity floor, multiplier, cap).
FATHER_SPELLING_THRESHOLD = 0.7
DIFFERENT_FATHER_STRONG = (0.8, 0.2, 0.3)
DIFFERENT_FATHER_MODERATE = (0.6, 0.4, 0.5)
FATHER_SPELLING_VARIATION = (0.8, 0.7)


class CandidateLike(Protocol):
    name: str
    father_name: Optional[str]
    father_id: Optional[str]


@dataclass(frozen=True)
class DuplicatePolicy:
    inclusion_threshold: float = 0.3
    review_threshold: float = 0.8
    block_threshold: float = 0.9

    def action_for(self, confidence: float) -> SuggestedAction:
        if confidence >= self.block_threshold:
            return SuggestedAction.block
        if confidence >= self.review_threshold:
            return SuggestedAction.review
        return SuggestedAction.proceed


DEFAULT_POLICY = DuplicatePolicy()


@dataclass
class ScoreResult:
    similarity: float = 0.0
    reasons: list[str] = field(default_factory=list)


def percent(value: float) -> int:
    return int(math.floor(value * 100 + 0.5))


def is_nickname_match(first_a: str, first_b: str) -> bool:
    for canonical, nicknames in NICKNAMES.items():
        if (
            (first_a == canonical and first_b in nicknames)
            or (first_b == canonical and first_a in nicknames)
            or (first_a in nicknames and first_b in nicknames)
        ):
            return True
    return False


def score_names(name_a: str, name_b: str) -> ScoreResult:
    parts_a = extract_name_parts(name_a)
    parts_b = extract_name_parts(name_b)

    if parts_a.full == parts_b.full:
        return ScoreResult(similarity=1.0, reasons=["Exact name match"])

    result = ScoreResult()

    full_similarity = string_similarity(parts_a.full, parts_b.full)
    result.similarity = full_similarity
    if full_similarity > SIMILAR_NAME_THRESHOLD:
        result.reasons.append(
            f"Very similar full name ({percent(full_similarity)}% match)"
        )

    has_parts = bool(parts_a.first and parts_a.last and parts_b.first and parts_b.last)
    if has_parts and parts_a.first == parts_b.first and parts_a.last == parts_b.last:
        result.similarity = max(result.similarity, EXACT_PARTS_SCORE)
        result.reasons.append("Same first and last name")

    if has_parts:
        first_similarity = string_similarity(parts_a.first, parts_b.first)
        last_similarity = string_similarity(parts_a.last, parts_b.last)
        if (
            first_similarity > SIMILAR_NAME_THRESHOLD
            and last_similarity > SIMILAR_NAME_THRESHOLD
        ):
            average = (first_similarity + last_similarity) / 2
            result.similarity = max(result.similarity, average)
            result.reasons.append(
                f"Similar first and last names ({percent(average)}% match)"
            )

    if is_nickname_match(parts_a.first, parts_b.first):
        result.similarity = max(result.similarity, NICKNAME_SCORE)
        result.reasons.append("Possible nickname match")

    return result


def score_relationship(candidate: CandidateLike, existing: PersonRecord) -> ScoreResult:
    result = ScoreResult()
    if candidate.father_id and candidate.father_id == existing.father_id:
        result.similarity += SAME_FATHER_ID_BONUS
        result.reasons.append("Same father ID")
    elif candidate.father_name and existing.father_name:
        father_similarity = string_similarity(candidate.father_name, existing.father_name)
        if father_similarity > SIMILAR_FATHER_NAME_THRESHOLD:
            result.similarity += SIMILAR_FATHER_NAME_BONUS
            result.reasons.append("Similar father name")
    return result


def _apply_father_dampening(
    total: float,
    name_similarity: float,
    candidate_father: str,
    existing_father: str,
) -> tuple[float, Optional[str]]:
    normalized_candidate = normalize_name(candidate_father)
    normalized_existing = normalize_name(existing_father)
    if normalized_candidate == normalized_existing:
        return total, None

    father_similarity = string_similarity(normalized_candidate, normalized_existing)
    if father_similarity > FATHER_SPELLING_THRESHOLD:
        multiplier, cap = FATHER_SPELLING_VARIATION
        return min(total * multiplier, cap), (
            f"Similar but different father names: {candidate_father} vs "
            f"{existing_father} (possible spelling variation)"
        )

    floor, multiplier, cap = DIFFERENT_FATHER_STRONG
    if name_similarity > floor:
        return min(total * multiplier, cap), (
            "Strong evidence of different people: different fathers "
            f"({candidate_father} ≠ {existing_father})"
        )
    floor, multiplier, cap = DIFFERENT_FATHER_MODERATE
    if name_similarity > floor:
        return min(total * multiplier, cap), (
            "Different fathers suggest different people: "
            f"{candidate_father} vs {existing_father}"
        )
    return total, None


def score_candidate(candidate: CandidateLike, existing: PersonRecord) -> DuplicateMatch:
    """Confidence that ``candidate`` and ``existing`` denote the same person.

    Name similarity plus the father bonus, capped at 1.0, then dampened when
    both sides name a father and the two father names disagree.
    """
    name_result = score_names(candidate.name, existing.name)
    relationship_result = score_relationship(candidate, existing)
    total = min(1.0, name_result.similarity + relationship_result.similarity)
    reasons = list(name_result.reasons)

    candidate_father = (candidate.father_name or "").strip()
    existing_father = (existing.father_name or "").strip()
    if candidate_father and existing_father:
        total, dampening_reason = _apply_father_dampening(
            total,
            name_result.similarity,
            candidate.father_name or "",
            existing.father_name or "",
        )
        if dampening_reason:
            reasons.append(dampening_reason)

    reasons.extend(relationship_result.reasons)
    return DuplicateMatch(person=existing, confidence=total, reasons=reasons)


def detect_duplicates(
    candidate: CandidateLike,
    existing_people: Iterable[PersonRecord],
    *,
    policy: DuplicatePolicy = DEFAULT_POLICY,
) -> DuplicateDetectionResult:
    people = list(existing_people)
    if not people:
        return DuplicateDetectionResult(
            is_duplicate=False, matches=[], suggested_action=SuggestedAction.proceed
        )

    matches: list[DuplicateMatch] = []
    for person in people:
        match = score_candidate(candidate, person)
        if match.confidence <= policy.inclusion_threshold:
            continue
        if not match.reasons:
            match.reasons.append(f"Similar name ({percent(match.confidence)}% match)")
        matches.append(match)

    matches.sort(key=lambda item: item.confidence, reverse=True)
    action = policy.action_for(matches[0].confidence) if matches else SuggestedAction.proceed
    logger.debug(
        "duplicate_check candidate=%r compared=%d matched=%d action=%s",
        candidate.name,
        len(people),
        len(matches),
        action.value,
    )
    return DuplicateDetectionResult(
        is_duplicate=bool(matches),
        matches=matches[:1],
        suggested_action=action,
    )


def describe_match(match: DuplicateMatch) -> str:
    main_reason = match.reasons[0] if match.reasons else "Similar information"
    return f"{percent(match.confidence)}% match - {main_reason}"
