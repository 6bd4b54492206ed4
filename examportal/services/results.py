import math
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from examportal.core.normalize import as_utc
from examportal.models.orm import Attempt, Result, ResultStatus, Student, TestDefinition


@dataclass
class ResultSummary:
    id: int
    attempt_id: int
    test_id: int
    subject: str
    test_type: str
    date: datetime
    total_questions: int
    duration_min: int
    time_taken_sec: Optional[int]
    time_taken_min: Optional[int]
    total_marks: Decimal
    obtained_marks: Decimal
    percentage: Decimal
    status: ResultStatus
    published: bool


def time_taken_seconds(started_at: Optional[datetime], submitted_at: Optional[datetime]) -> Optional[int]:
    started, submitted = as_utc(started_at), as_utc(submitted_at)
    if started is None or submitted is None:
        return None
    return max(0, int((submitted - started).total_seconds()))


def results_for_student(db: Session, student: Student) -> List[ResultSummary]:
    stmt = (
        select(Result)
        .join(Result.attempt)
        .where(Attempt.student_id == student.id)
        .options(
            selectinload(Result.attempt).selectinload(Attempt.test).options(
                selectinload(TestDefinition.subject),
                selectinload(TestDefinition.mock_config),
                selectinload(TestDefinition.test_questions),
            )
        )
        .order_by(Result.created_at.desc(), Result.id.desc())
    )
    summaries = []
    for r in db.scalars(stmt).all():
        test = r.attempt.test
        taken = time_taken_seconds(r.attempt.started_at, r.attempt.submitted_at)
        summaries.append(ResultSummary(
            id=r.id,
            attempt_id=r.attempt_id,
            test_id=test.id,
            subject=test.subject.subject_name,
            test_type=test.test_type,
            date=r.created_at,
            total_questions=test.mock_config.number_of_questions if test.mock_config else len(test.test_questions),
            duration_min=test.duration_min,
            time_taken_sec=taken,
            time_taken_min=math.ceil(taken / 60) if taken is not None else None,
            total_marks=r.total_marks,
            obtained_marks=r.obtained_marks,
            percentage=r.percentage,
            status=r.status,
            published=r.published,
        ))
    return summaries
