import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Sequence

from sqlalchemy.orm import Session

from examportal.core.database import atomic
from examportal.core.errors import ValidationError
from examportal.core.normalize import quantize
from examportal.models.orm import (
    MOCK_TEST_TYPE, Attempt, AttemptStatus, MockTestConfig, PublishStatus, QuestionBankItem, Student, Subject,
    TestDefinition, TestQuestionLink,
)
from examportal.repositories.question_bank import find_by_ids

logger = logging.getLogger(__name__)

# Mock-test policy. Instructor-authored tests carry their own values.
PASS_RATIO = Decimal("0.33")
MCQ_MINUTES = 1
OTHER_MINUTES = 2
MOCK_DESCRIPTION = "Student Mock Test"


@dataclass
class MockShape:
    total_marks: Decimal
    duration_min: int
    passing_marks: Decimal
    mcq_count: int
    subjective_count: int


@dataclass
class MaterializedTest:
    test: TestDefinition
    attempt: Attempt
    shape: MockShape


def derive_shape(questions: Sequence[QuestionBankItem]) -> MockShape:
    """Totals, duration and pass mark follow from the question set alone."""
    total = Decimal("0")
    duration = mcq = subjective = 0
    for q in questions:
        if q.is_mcq:
            duration += MCQ_MINUTES
            mcq += 1
        else:
            duration += OTHER_MINUTES
            subjective += 1
        total += Decimal(q.marks)
    return MockShape(
        total_marks=total,
        duration_min=duration,
        passing_marks=quantize(total * PASS_RATIO),
        mcq_count=mcq,
        subjective_count=subjective,
    )


def materialize(db: Session, student: Student, subject: Subject, class_id: int,
                question_ids: List[int]) -> MaterializedTest:
    """Create a mock test from sampled ids and open the student's attempt.

    The test, its mock config, one link per question (in the given order)
    and the attempt are committed together.
    """
    if not question_ids:
        raise ValidationError("A mock test needs at least one question", reason="empty_question_set")
    if len(set(question_ids)) != len(question_ids):
        raise ValidationError("Question ids must be distinct", reason="duplicate_questions")

    by_id = find_by_ids(db, question_ids)
    missing = [qid for qid in question_ids if qid not in by_id]
    if missing:
        raise ValidationError(f"Unknown question ids: {missing}", reason="unknown_questions")
    ordered = [by_id[qid] for qid in question_ids]
    shape = derive_shape(ordered)

    with atomic(db):
        test = TestDefinition(
            title=f"{subject.subject_name} Mock Test",
            description=MOCK_DESCRIPTION,
            test_type=MOCK_TEST_TYPE,
            class_id=class_id,
            subject_id=subject.id,
            created_by_id=student.user_id,
            total_marks=shape.total_marks,
            duration_min=shape.duration_min,
            passing_marks=shape.passing_marks,
            status=PublishStatus.PUBLISHED,
            negative_marking=False,
            negative_marks_per_wrong=Decimal("0"),
            shuffle_questions=False,
            shuffle_options=False,
        )
        db.add(test)
        db.flush()
        db.add(MockTestConfig(test_id=test.id, number_of_questions=len(question_ids)))
        db.add_all(
            TestQuestionLink(test_id=test.id, question_id=qid, order_no=idx)
            for idx, qid in enumerate(question_ids, start=1)
        )
        attempt = Attempt(
            test_id=test.id,
            student_id=student.id,
            status=AttemptStatus.STARTED,
            total_score=Decimal("0"),
            percentage=Decimal("0"),
            is_result_published=True,
        )
        db.add(attempt)
        db.flush()

    logger.info(f"Mock test {test.id} materialized with {len(question_ids)} questions, attempt {attempt.id}")
    return MaterializedTest(test=test, attempt=attempt, shape=shape)
