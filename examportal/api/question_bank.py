from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from examportal.core.auth import require_roles
from examportal.core.database import get_db
from examportal.models.orm import Difficulty, QuestionBankItem, QuestionType
from examportal.services import question_bank
from examportal.services.question_bank import OptionInput

router = APIRouter()


class OptionIn(BaseModel):
    text: str
    is_correct: bool = False

class QuestionCreate(BaseModel):
    class_id: int
    subject_id: int
    source_id: Optional[int] = None
    question_text: str
    question_type: QuestionType
    marks: Decimal
    difficulty: Difficulty = Difficulty.MEDIUM
    image_url: Optional[str] = None
    options: List[OptionIn] = Field(default_factory=list)
    correct_answer: Optional[str] = None

class OptionRow(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    option_text: str
    is_correct: bool
    order_no: int

class SourceRow(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    board: str
    paper_name: str
    year: int

class QuestionRow(BaseModel):
    id: int
    class_id: int
    class_name: Optional[str] = None
    subject_id: int
    subject_name: Optional[str] = None
    source: Optional[SourceRow] = None
    question_text: str
    question_type: QuestionType
    marks: float
    difficulty: Difficulty
    image_url: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
    options: List[OptionRow]
    correct_answer: Optional[str] = None

    @classmethod
    def from_item(cls, q: QuestionBankItem) -> "QuestionRow":
        return cls(
            id=q.id, class_id=q.class_id, class_name=q.school_class.class_name if q.school_class else None,
            subject_id=q.subject_id, subject_name=q.subject.subject_name if q.subject else None,
            source=SourceRow.model_validate(q.source) if q.source else None,
            question_text=q.question_text, question_type=q.question_type, marks=q.marks, difficulty=q.difficulty,
            image_url=q.image_url, is_active=q.is_active, created_at=q.created_at,
            options=[OptionRow.model_validate(o) for o in q.options],
            correct_answer=q.correct_answer.correct if q.correct_answer else None,
        )


@router.post("", response_model=QuestionRow, status_code=201)
def create_question(payload: QuestionCreate, db: Session = Depends(get_db),
                    _=Depends(require_roles("teacher", "admin"))):
    item = question_bank.create_question(
        db, class_id=payload.class_id, subject_id=payload.subject_id, source_id=payload.source_id,
        question_text=payload.question_text, question_type=payload.question_type, marks=payload.marks,
        difficulty=payload.difficulty, image_url=payload.image_url,
        options=[OptionInput(o.text, o.is_correct) for o in payload.options], correct_answer=payload.correct_answer,
    )
    return QuestionRow.from_item(item)


@router.get("", response_model=List[QuestionRow], dependencies=[Depends(require_roles("teacher", "admin"))])
def list_questions(board: Optional[str] = None, class_name: Optional[str] = None, subject_name: Optional[str] = None,
                   year: Optional[int] = None, db: Session = Depends(get_db)):
    items = question_bank.list_questions(db, board=board, class_name=class_name, subject_name=subject_name, year=year)
    return [QuestionRow.from_item(q) for q in items]


@router.delete("/{question_id}", dependencies=[Depends(require_roles("teacher", "admin"))])
def deactivate_question(question_id: int, db: Session = Depends(get_db)):
    question_bank.deactivate_question(db, question_id)
    return {"message": "Question deactivated", "id": question_id}
