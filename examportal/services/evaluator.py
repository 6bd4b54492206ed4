"""
Attempt submission: per-question scoring, aggregation and idempotent persistence.

Multiple-choice, true/false and integer items are graded by rule, the latter
two by exact comparison with the stored reference answer. Short and
subjective items are graded through the grading delegate; when that is
impossible the item scores zero and its correctness is recorded as
undetermined rather than wrong.

A submission always recomputes the whole attempt from the answers it carries.
Scoring runs outside any transaction. Answer rows are then upserted per
(attempt, question), the attempt row and its single result row are
overwritten, and all of it commits as one unit while the attempt row is
locked, so overlapping submissions cannot interleave.
"""
import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, List, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from examportal.core.database import atomic
from examportal.core.errors import DelegateUnavailable
from examportal.core.normalize import clean_str, quantize
from examportal.models.orm import (
    Answer, Attempt, AttemptStatus, EvaluationType, QuestionBankItem, QuestionType, Result, ResultStatus, Student,
)
from examportal.services.attempt_reader import load_owned_attempt
from examportal.services.grading import GradeOutcome

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

EXACT_MATCH_TYPES = frozenset({QuestionType.TRUE_FALSE, QuestionType.INTEGER})


class Grader(Protocol):
    def grade(self, reference: str, candidate: str, max_marks: Decimal) -> GradeOutcome: ...


class Correctness(enum.Enum):
    CORRECT = "correct"
    INCORRECT = "incorrect"
    UNDETERMINED = "undetermined"

    def as_flag(self) -> Optional[bool]:
        if self is Correctness.UNDETERMINED:
            return None
        return self is Correctness.CORRECT


@dataclass(frozen=True)
class SubmittedAnswer:
    question_id: int
    selected_option_id: Optional[int] = None
    answer_text: Optional[str] = None


@dataclass
class ScoredAnswer:
    question_id: int
    selected_option_id: Optional[int]
    answer_text: Optional[str]
    marks: Decimal
    correctness: Correctness
    similarity: Optional[Decimal]
    evaluation_type: EvaluationType


@dataclass
class SubmissionResult:
    attempt_id: int
    test_id: int
    subject: str
    total_marks: Decimal
    obtained_marks: Decimal
    percentage: Decimal
    status: ResultStatus


def score_mcq(q: QuestionBankItem, submitted: Optional[SubmittedAnswer]) -> ScoredAnswer:
    selected = submitted.selected_option_id if submitted else None
    option = next((o for o in q.options if o.id == selected), None) if selected is not None else None
    correct = bool(option and option.is_correct)
    return ScoredAnswer(
        question_id=q.id,
        selected_option_id=option.id if option else None,
        answer_text=None,
        marks=Decimal(q.marks) if correct else ZERO,
        correctness=Correctness.CORRECT if correct else Correctness.INCORRECT,
        similarity=None,
        evaluation_type=EvaluationType.RULE,
    )


def score_free_text(q: QuestionBankItem, submitted: Optional[SubmittedAnswer], grader: Grader) -> ScoredAnswer:
    text = submitted.answer_text if submitted else None
    reference = q.correct_answer.correct if q.correct_answer else None
    scored = ScoredAnswer(
        question_id=q.id,
        selected_option_id=None,
        answer_text=text,
        marks=ZERO,
        correctness=Correctness.UNDETERMINED,
        similarity=None,
        evaluation_type=EvaluationType.UNGRADED,
    )
    if not text or not text.strip() or not reference or not reference.strip():
        return scored

    try:
        outcome = grader.grade(reference, text, Decimal(q.marks))
    except DelegateUnavailable as e:
        logger.warning(f"Grading delegate unavailable for question {q.id}: {e}")
        return scored

    scored.marks = outcome.marks
    scored.similarity = outcome.similarity
    scored.correctness = Correctness.CORRECT if outcome.marks > 0 else Correctness.INCORRECT
    scored.evaluation_type = EvaluationType.AUTO
    return scored


def _normalize_exact(question_type: QuestionType, value: Optional[str]) -> Optional[str]:
    text = clean_str(value)
    if text is None:
        return None
    if question_type == QuestionType.INTEGER:
        try:
            return str(int(text))
        except ValueError:
            return text
    return text.casefold()


def score_exact(q: QuestionBankItem, submitted: Optional[SubmittedAnswer]) -> ScoredAnswer:
    """True/false and integer items: the answer must equal the reference answer."""
    text = submitted.answer_text if submitted else None
    reference = _normalize_exact(q.question_type, q.correct_answer.correct if q.correct_answer else None)
    scored = ScoredAnswer(
        question_id=q.id,
        selected_option_id=None,
        answer_text=text,
        marks=ZERO,
        correctness=Correctness.UNDETERMINED,
        similarity=None,
        evaluation_type=EvaluationType.UNGRADED,
    )
    if reference is None:
        return scored

    correct = _normalize_exact(q.question_type, text) == reference
    scored.marks = Decimal(q.marks) if correct else ZERO
    scored.correctness = Correctness.CORRECT if correct else Correctness.INCORRECT
    scored.evaluation_type = EvaluationType.RULE
    return scored


def score_question(q: QuestionBankItem, submitted: Optional[SubmittedAnswer], grader: Grader) -> ScoredAnswer:
    if q.is_mcq:
        return score_mcq(q, submitted)
    if q.question_type in EXACT_MATCH_TYPES:
        return score_exact(q, submitted)
    return score_free_text(q, submitted, grader)


def percentage_of(obtained: Decimal, total: Decimal) -> Decimal:
    if total <= 0:
        return quantize(ZERO)
    return quantize(obtained / total * 100)


def _upsert_answers(db: Session, attempt_id: int, scored: Iterable[ScoredAnswer]) -> None:
    existing = {
        a.question_id: a
        for a in db.scalars(
            select(Answer).where(Answer.attempt_id == attempt_id).execution_options(populate_existing=True)
        )
    }
    for s in scored:
        row = existing.get(s.question_id)
        if row is None:
            row = Answer(attempt_id=attempt_id, question_id=s.question_id)
            db.add(row)
        row.selected_option_id = s.selected_option_id
        row.answer_text = s.answer_text
        row.marks_obtained = s.marks
        row.is_correct = s.correctness.as_flag()
        row.similarity_score = s.similarity
        row.evaluation_type = s.evaluation_type


def _upsert_result(db: Session, attempt_id: int, total: Decimal, obtained: Decimal,
                   percentage: Decimal, status: ResultStatus) -> Result:
    result = db.scalar(
        select(Result).where(Result.attempt_id == attempt_id).execution_options(populate_existing=True)
    )
    if result is None:
        result = Result(attempt_id=attempt_id)
        db.add(result)
    result.total_marks = total
    result.obtained_marks = obtained
    result.percentage = percentage
    result.status = status
    result.published = True
    return result


def submit(db: Session, grader: Grader, attempt_id: int, student: Student,
           answers: List[SubmittedAnswer]) -> SubmissionResult:
    attempt = load_owned_attempt(db, attempt_id, student)
    test = attempt.test
    test_id, subject = test.id, test.subject.subject_name
    total, passing = Decimal(test.total_marks), Decimal(test.passing_marks)
    questions = [tq.question for tq in test.test_questions]
    # Detached questions keep their loaded options and reference answers
    # once the read transaction ends; no connection is held while grading.
    for q in questions:
        db.expunge(q)
    db.rollback()

    by_question = {a.question_id: a for a in answers}
    scored = [score_question(q, by_question.get(q.id), grader) for q in questions]

    obtained = sum((s.marks for s in scored), ZERO)
    percentage = percentage_of(obtained, total)
    status = ResultStatus.PASS if obtained >= passing else ResultStatus.FAIL

    with atomic(db):
        locked = db.scalars(
            select(Attempt).where(Attempt.id == attempt_id).with_for_update().execution_options(populate_existing=True)
        ).one()
        _upsert_answers(db, locked.id, scored)
        locked.status = AttemptStatus.SUBMITTED
        locked.submitted_at = datetime.now(timezone.utc)
        locked.total_score = obtained
        locked.percentage = percentage
        _upsert_result(db, locked.id, total, obtained, percentage, status)

    logger.info(f"Attempt {attempt_id} submitted: {obtained}/{total} ({percentage}%) {status.value}")
    return SubmissionResult(
        attempt_id=attempt_id,
        test_id=test_id,
        subject=subject,
        total_marks=total,
        obtained_marks=obtained,
        percentage=percentage,
        status=status,
    )
