"""
Instructor-authored tests. Unlike mock tests, totals, duration and pass mark
are whatever the author supplies; only the question order is assigned here.
"""
from decimal import Decimal
from typing import List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from examportal.core.database import atomic
from examportal.core.errors import ValidationError
from examportal.core.normalize import clean_str
from examportal.models.orm import PublishStatus, SchoolClass, Subject, TestDefinition, TestQuestionLink
from examportal.repositories.question_bank import find_by_ids


def create_authored_test(db: Session, *, author_id: Optional[int], title: str, description: Optional[str],
                         test_type: str, class_id: int, subject_id: int, total_marks: Decimal, duration_min: int,
                         passing_marks: Decimal, question_ids: Sequence[int] = (), negative_marking: bool = False,
                         negative_marks_per_wrong: Decimal = Decimal("0"), shuffle_questions: bool = True,
                         shuffle_options: bool = True,
                         status: PublishStatus = PublishStatus.DRAFT) -> TestDefinition:
    if not clean_str(title):
        raise ValidationError("title is required", reason="missing_title")
    if len(set(question_ids)) != len(question_ids):
        raise ValidationError("Question ids must be distinct", reason="duplicate_questions")
    known = find_by_ids(db, question_ids)
    missing = [qid for qid in question_ids if qid not in known]
    if missing:
        raise ValidationError(f"Unknown question ids: {missing}", reason="unknown_questions")

    with atomic(db):
        test = TestDefinition(
            title=clean_str(title),
            description=description,
            test_type=test_type,
            class_id=class_id,
            subject_id=subject_id,
            created_by_id=author_id,
            total_marks=total_marks,
            duration_min=duration_min,
            passing_marks=passing_marks,
            status=status,
            negative_marking=negative_marking,
            negative_marks_per_wrong=negative_marks_per_wrong,
            shuffle_questions=shuffle_questions,
            shuffle_options=shuffle_options,
        )
        db.add(test)
        db.flush()
        db.add_all(
            TestQuestionLink(test_id=test.id, question_id=qid, order_no=idx)
            for idx, qid in enumerate(question_ids, start=1)
        )
    return test


def list_tests(db: Session, class_name: Optional[str] = None, subject_name: Optional[str] = None,
               test_type: Optional[str] = None) -> List[TestDefinition]:
    stmt = select(TestDefinition).options(
        selectinload(TestDefinition.school_class),
        selectinload(TestDefinition.subject),
        selectinload(TestDefinition.created_by),
    )
    if class_name and class_name != "All":
        stmt = stmt.join(TestDefinition.school_class).where(SchoolClass.class_name == class_name)
    if subject_name and subject_name != "All":
        stmt = stmt.join(TestDefinition.subject).where(Subject.subject_name == subject_name)
    if test_type:
        stmt = stmt.where(TestDefinition.test_type == test_type)
    return list(db.scalars(stmt.order_by(TestDefinition.created_at.desc(), TestDefinition.id.desc())).all())
