"""
Query expansion driven by keyword intent rules.

Each rule is a (predicate, effect) pair. Rules are evaluated in a fixed order
and every matching rule's effect is applied to the bundle; an effect that sets
`structured` overwrites whatever an earlier rule set, so the last matching rule
wins.
"""

from collections.abc import Callable
from typing import NamedTuple

from ..schemas.hit import QueryBundle
from .entities import extract_student_id


class IntentRule(NamedTuple):
    name: str
    matches: Callable[[str], bool]
    apply: Callable[[QueryBundle, str | None], QueryBundle]


def _extend(
    bundle: QueryBundle,
    structured: str | None = None,
    keywords: tuple[str, ...] = (),
    expanded: tuple[str, ...] = (),
) -> QueryBundle:
    """Return a copy of `bundle` with extra keywords/phrases and, optionally, a new structured query."""
    return bundle._replace(
        structured=bundle.structured if structured is None else structured,
        keywords=bundle.keywords | frozenset(keywords),
        expanded=bundle.expanded + tuple(expanded),
    )


def _has_all(*words: str) -> Callable[[str], bool]:
    return lambda query: all(word in query for word in words)


def _has_any(*words: str) -> Callable[[str], bool]:
    return lambda query: any(word in query for word in words)


def _is_quiz_score(query: str) -> bool:
    # "quiz average" asks for the same figure as "quiz score"
    return "quiz" in query and _has_any("score", "average", "avg")(query)


def _quiz_score(bundle: QueryBundle, student_id: str | None) -> QueryBundle:
    return _extend(
        bundle,
        structured=f"Student ID {student_id} quiz score" if student_id else "quiz score average performance data",
        keywords=("quiz", "score", "average", "Avg Quiz Score"),
        expanded=("quiz performance", "test score", "assessment score", "Avg Quiz Score", "quiz data"),
    )


def _chart_request(bundle: QueryBundle, student_id: str | None) -> QueryBundle:
    return _extend(
        bundle,
        keywords=("data", "scores", "performance", "student"),
        expanded=("student data", "performance metrics", "score data", "quiz results"),
    )


def _attendance(bundle: QueryBundle, student_id: str | None) -> QueryBundle:
    return _extend(
        bundle,
        structured=f"Student ID {student_id} attendance" if student_id else "student attendance",
        keywords=("attendance", "present", "absent"),
        expanded=("attendance rate", "presence", "participation"),
    )


def _safety_violations(bundle: QueryBundle, student_id: str | None) -> QueryBundle:
    return _extend(
        bundle,
        structured=f"Student ID {student_id} safety violations" if student_id else "safety violations",
        keywords=("safety", "violation", "incident"),
        expanded=("safety record", "violations count", "safety incidents"),
    )


def _average(bundle: QueryBundle, student_id: str | None) -> QueryBundle:
    return _extend(bundle, keywords=("average", "mean"), expanded=("average score", "mean value"))


INTENT_RULES: tuple[IntentRule, ...] = (
    IntentRule("quiz_score", _is_quiz_score, _quiz_score),
    IntentRule("chart_request", _has_any("plot", "chart", "graph"), _chart_request),
    IntentRule("attendance", _has_all("attendance"), _attendance),
    IntentRule("safety_violations", _has_all("safety", "violation"), _safety_violations),
    IntentRule("average", _has_any("average", "avg"), _average),
)


def entity_bundle(original: str, student_id: str | None) -> QueryBundle:
    """Seed bundle: the entity ID as a keyword plus three entity-scoped phrases."""
    bundle = QueryBundle(original=original)
    if not student_id:
        return bundle
    return _extend(
        bundle,
        keywords=(student_id,),
        expanded=(f"student {student_id}", f"id {student_id}", f"student id {student_id}"),
    )


def expand_query(
    query: str,
    student_id: str | None = None,
    rules: tuple[IntentRule, ...] = INTENT_RULES,
) -> QueryBundle:
    """
    Build the query bundle for a question.

    Args:
        query: Raw user question
        student_id: Entity ID already extracted from the question; extracted here when omitted
        rules: Ordered intent rules to apply

    Returns:
        Fully populated QueryBundle
    """
    lowered = (query or "").lower()
    if student_id is None:
        student_id = extract_student_id(lowered)

    bundle = entity_bundle(query, student_id)
    for rule in rules:
        if rule.matches(lowered):
            bundle = rule.apply(bundle, student_id)
    return bundle
