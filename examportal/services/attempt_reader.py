from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from examportal.core.errors import AuthorizationError, NotFoundError
from examportal.models.orm import (
    Answer, Attempt, EvaluationType, QuestionBankItem, QuestionType, Student, TestDefinition, TestQuestionLink,
)


@dataclass
class OptionView:
    id: int
    text: str


@dataclass
class QuestionView:
    order_no: int
    question_id: int
    question_type: QuestionType
    type: str
    question_text: str
    marks: Decimal
    image_url: Optional[str]
    options: List[OptionView] = field(default_factory=list)


@dataclass
class AttemptView:
    attempt_id: int
    test_id: int
    subject: str
    class_name: str
    total_questions: int
    duration_min: int
    counts: Dict[str, int]
    questions: List[QuestionView]


@dataclass
class ResponseView:
    order_no: int
    question_id: int
    question_type: QuestionType
    question_text: str
    marks: Decimal
    correct_answer: Optional[str]
    student_answer: Optional[str]
    marks_obtained: Optional[Decimal]
    similarity_score: Optional[Decimal]
    evaluation_type: Optional[EvaluationType]


@dataclass
class ReviewView:
    attempt_id: int
    test_id: int
    subject: str
    responses: List[ResponseView]


def load_owned_attempt(db: Session, attempt_id: int, student: Student) -> Attempt:
    """Load an attempt with its test and ordered questions, if ``student`` owns it.

    Unknown and foreign attempts are rejected the same way so the response
    says nothing about which attempts exist.
    """
    stmt = select(Attempt).where(Attempt.id == attempt_id).options(
        selectinload(Attempt.test).options(
            selectinload(TestDefinition.subject),
            selectinload(TestDefinition.school_class),
            selectinload(TestDefinition.mock_config),
            selectinload(TestDefinition.test_questions).selectinload(TestQuestionLink.question).options(
                selectinload(QuestionBankItem.options), selectinload(QuestionBankItem.correct_answer)
            ),
        )
    )
    attempt = db.scalar(stmt)
    if attempt is None or attempt.student_id != student.id:
        raise AuthorizationError("Attempt not found or not accessible", reason="attempt_not_accessible")
    return attempt


def question_counts(attempt: Attempt) -> Dict[str, int]:
    mcq = sum(1 for tq in attempt.test.test_questions if tq.question.is_mcq)
    return {"mcq": mcq, "subjective": len(attempt.test.test_questions) - mcq}


def attempt_view(db: Session, attempt_id: int, student: Student) -> AttemptView:
    """Student-facing view: statements and option texts, never the answers."""
    attempt = load_owned_attempt(db, attempt_id, student)
    test = attempt.test
    questions = []
    for tq in test.test_questions:
        q = tq.question
        questions.append(QuestionView(
            order_no=tq.order_no,
            question_id=q.id,
            question_type=q.question_type,
            type="objective" if q.is_mcq else "subjective",
            question_text=q.question_text,
            marks=q.marks,
            image_url=q.image_url,
            options=[OptionView(id=o.id, text=o.option_text) for o in q.options] if q.is_mcq else [],
        ))
    return AttemptView(
        attempt_id=attempt.id,
        test_id=test.id,
        subject=test.subject.subject_name,
        class_name=test.school_class.class_name,
        total_questions=test.mock_config.number_of_questions if test.mock_config else len(questions),
        duration_min=test.duration_min,
        counts=question_counts(attempt),
        questions=questions,
    )


def _correct_answer_text(q: QuestionBankItem) -> Optional[str]:
    if q.is_mcq:
        correct = next((o for o in q.options if o.is_correct), None)
        return correct.option_text if correct else None
    return q.correct_answer.correct if q.correct_answer else None


def _student_answer_text(q: QuestionBankItem, ans: Optional[Answer]) -> Optional[str]:
    if ans is None:
        return None
    if q.is_mcq:
        return ans.selected_option.option_text if ans.selected_option else None
    return ans.answer_text


def review_view(db: Session, attempt_id: int, student: Student) -> ReviewView:
    """Post-submission review with correct answers next to the student's own."""
    attempt = load_owned_attempt(db, attempt_id, student)
    answers = db.scalars(
        select(Answer).where(Answer.attempt_id == attempt.id).options(selectinload(Answer.selected_option))
    ).all()
    if not answers:
        raise NotFoundError("No responses recorded for this attempt", reason="responses_not_found")
    by_question = {a.question_id: a for a in answers}

    responses = []
    for tq in attempt.test.test_questions:
        q = tq.question
        ans = by_question.get(q.id)
        responses.append(ResponseView(
            order_no=tq.order_no,
            question_id=q.id,
            question_type=q.question_type,
            question_text=q.question_text,
            marks=q.marks,
            correct_answer=_correct_answer_text(q),
            student_answer=_student_answer_text(q, ans),
            marks_obtained=ans.marks_obtained if ans else Decimal("0"),
            similarity_score=ans.similarity_score if ans else None,
            evaluation_type=ans.evaluation_type if ans else None,
        ))
    return ReviewView(
        attempt_id=attempt.id,
        test_id=attempt.test.id,
        subject=attempt.test.subject.subject_name,
        responses=responses,
    )
