from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from examportal.core.auth import TokenData, require_roles
from examportal.core.database import get_db
from examportal.models.orm import PublishStatus, TestDefinition
from examportal.services.authored_tests import create_authored_test, list_tests

router = APIRouter()


class LinkedQuestionIn(BaseModel):
    question_id: int

class AuthoredTestCreate(BaseModel):
    title: str
    description: Optional[str] = None
    test_type: str = Field(min_length=1, max_length=30)
    class_id: int
    subject_id: int
    total_marks: Decimal = Field(ge=0)
    duration_min: int = Field(ge=1)
    passing_marks: Decimal = Field(ge=0)
    negative_marking: bool = False
    negative_marks_per_wrong: Decimal = Field(default=Decimal("0"), ge=0)
    shuffle_questions: bool = True
    shuffle_options: bool = True
    status: PublishStatus = PublishStatus.DRAFT
    questions: List[LinkedQuestionIn] = Field(default_factory=list)

class AuthoredTestRow(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    test_type: str
    class_id: int
    class_name: Optional[str] = None
    section: Optional[str] = None
    subject_id: int
    subject_name: Optional[str] = None
    created_by: Optional[str] = None
    total_marks: float
    duration_min: int
    passing_marks: float
    status: PublishStatus
    negative_marking: bool
    negative_marks_per_wrong: float
    shuffle_questions: bool
    shuffle_options: bool
    created_at: Optional[datetime] = None

    @classmethod
    def from_test(cls, t: TestDefinition) -> "AuthoredTestRow":
        return cls(
            id=t.id, title=t.title, description=t.description, test_type=t.test_type, class_id=t.class_id,
            class_name=t.school_class.class_name if t.school_class else None,
            section=t.school_class.section if t.school_class else None,
            subject_id=t.subject_id, subject_name=t.subject.subject_name if t.subject else None,
            created_by=t.created_by.name if t.created_by else None,
            total_marks=t.total_marks, duration_min=t.duration_min, passing_marks=t.passing_marks, status=t.status,
            negative_marking=t.negative_marking, negative_marks_per_wrong=t.negative_marks_per_wrong,
            shuffle_questions=t.shuffle_questions, shuffle_options=t.shuffle_options, created_at=t.created_at,
        )


@router.post("", response_model=AuthoredTestRow, status_code=201)
def create_test(payload: AuthoredTestCreate, user: TokenData = Depends(require_roles("teacher", "admin")),
                db: Session = Depends(get_db)):
    test = create_authored_test(
        db, author_id=user.user_id, title=payload.title, description=payload.description,
        test_type=payload.test_type, class_id=payload.class_id, subject_id=payload.subject_id,
        total_marks=payload.total_marks, duration_min=payload.duration_min, passing_marks=payload.passing_marks,
        question_ids=[q.question_id for q in payload.questions], negative_marking=payload.negative_marking,
        negative_marks_per_wrong=payload.negative_marks_per_wrong, shuffle_questions=payload.shuffle_questions,
        shuffle_options=payload.shuffle_options, status=payload.status,
    )
    return AuthoredTestRow.from_test(test)


@router.get("", response_model=List[AuthoredTestRow], dependencies=[Depends(require_roles("teacher", "admin", "student"))])
def get_tests(class_name: Optional[str] = None, subject_name: Optional[str] = None, test_type: Optional[str] = None,
              db: Session = Depends(get_db)):
    return [AuthoredTestRow.from_test(t) for t in list_tests(db, class_name=class_name, subject_name=subject_name, test_type=test_type)]
