"""
Automated submission scoring.

Text answers are graded on length and four grammar heuristics; quiz answers
on the share of correct, index-aligned answers. The overall score decides
the approve/reject/review recommendation.
"""
import math
import re
from typing import Any, Dict, List, Mapping, Optional, Tuple

import structlog

from app.core.config import settings
from app.domain.schemas.forms import (
    FieldType,
    FormField,
    FormTemplate,
    Recommendation,
    SubmissionEvaluation,
    TextValidation,
)

logger = structlog.get_logger(__name__)

SENTENCE_SPLIT = re.compile(r"[.!?]+")
WHITESPACE = re.compile(r"\s+")
TERMINAL_PUNCTUATION = (".", "!", "?")
GRAMMAR_CHECK_POINTS = 25
MIN_WORDS_PER_SENTENCE = 5
FIELD_MAX_SCORE = 100


def grammar_score(text: str) -> int:
    """Sum of four 25-point checks."""
    stripped = text.strip()
    sentences = [s for s in SENTENCE_SPLIT.split(text) if s.strip()]
    words = len(WHITESPACE.split(text))
    avg_words = words / max(len(sentences), 1)

    score = 0
    if avg_words >= MIN_WORDS_PER_SENTENCE:
        score += GRAMMAR_CHECK_POINTS
    if stripped[:1].isupper() and stripped[:1].isascii():
        score += GRAMMAR_CHECK_POINTS
    if stripped.endswith(TERMINAL_PUNCTUATION):
        score += GRAMMAR_CHECK_POINTS
    if len(sentences) >= 2:
        score += GRAMMAR_CHECK_POINTS
    return score


def length_score(text: str, min_length: int) -> float:
    if len(text) >= min_length:
        return 100.0
    return min(100.0, 100.0 * len(text) / min_length)


def score_text(response: Any, validation: TextValidation) -> Tuple[float, float, float]:
    """
    Score one text answer.

    Returns:
        (grammar, length, total); a missing or non-string answer scores 0
    """
    if not isinstance(response, str) or not response:
        return 0.0, 0.0, 0.0

    length = length_score(response, validation.min_length)
    grammar = float(grammar_score(response)) if validation.grammar_check else 0.0
    return grammar, length, (grammar + length) / 2


def quiz_answers(response: Any) -> Optional[List[Any]]:
    """Accept ``{"answers": [...]}`` or a bare list."""
    if isinstance(response, Mapping):
        response = response.get("answers")
    return response if isinstance(response, list) else None


def score_quiz(response: Any, field: FormField) -> float:
    """Percentage of correct answers; the field must have questions."""
    answers = quiz_answers(response) or []
    correct = sum(
        1
        for index, question in enumerate(field.questions)
        if index < len(answers) and answers[index] == question.correct
    )
    return 100.0 * correct / len(field.questions)


def recommend(
    overall: int,
    auto_approve: Optional[int] = None,
    auto_reject: Optional[int] = None,
) -> Recommendation:
    approve_at = settings.AUTO_APPROVE_THRESHOLD if auto_approve is None else auto_approve
    reject_at = settings.AUTO_REJECT_THRESHOLD if auto_reject is None else auto_reject
    if overall >= approve_at:
        return Recommendation.APPROVE
    if overall <= reject_at:
        return Recommendation.REJECT
    return Recommendation.REVIEW


def _average(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def score_submission(template: FormTemplate, responses: Dict[str, Any]) -> SubmissionEvaluation:
    """
    Grade a set of responses against a form template.

    Args:
        template: Form template with field definitions and thresholds
        responses: Answers keyed by field ID

    Returns:
        SubmissionEvaluation with per-kind averages, overall score and
        recommendation
    """
    responses = responses or {}
    grammar_scores: List[float] = []
    length_scores: List[float] = []
    quiz_scores: List[float] = []
    total = 0.0
    max_score = 0

    for field in template.fields:
        response = responses.get(field.id)

        if field.type == FieldType.TEXT.value:
            grammar, length, field_total = score_text(response, field.validation)
            grammar_scores.append(grammar)
            length_scores.append(length)
            total += field_total
            max_score += FIELD_MAX_SCORE

        elif field.type == FieldType.QUIZ.value and field.questions:
            quiz = score_quiz(response, field)
            quiz_scores.append(quiz)
            total += quiz
            max_score += FIELD_MAX_SCORE

    # Halves round up
    overall = math.floor(100 * total / max_score + 0.5) if max_score else 0
    evaluation = SubmissionEvaluation(
        grammar_score=_average(grammar_scores),
        length_score=_average(length_scores),
        quiz_score=_average(quiz_scores),
        overall_score=overall,
        recommendation=recommend(
            overall,
            template.auto_approve_threshold,
            template.auto_reject_threshold,
        ),
    )

    logger.debug(
        "submission_scored",
        form_id=template.id,
        overall_score=overall,
        recommendation=evaluation.recommendation.value,
    )
    return evaluation
