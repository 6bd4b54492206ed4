import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from examportal.core.database import atomic
from examportal.core.errors import NotFoundError, ValidationError
from examportal.core.normalize import clean_str
from examportal.models.orm import (
    Difficulty, QuestionBankCorrectAnswer, QuestionBankItem, QuestionBankOption, QuestionSource, QuestionType,
    SchoolClass, Subject,
)
from examportal.services.sequence import insert_with_sequence_repair

logger = logging.getLogger(__name__)


@dataclass
class OptionInput:
    text: str
    is_correct: bool = False


def validate_question(question_text: Optional[str], question_type: QuestionType, marks: Optional[Decimal],
                      options: Sequence[OptionInput], correct_answer: Optional[str]) -> None:
    if not clean_str(question_text):
        raise ValidationError("questionText is required", reason="missing_question_text")
    if marks is None or marks <= 0:
        raise ValidationError("Invalid marks", reason="invalid_marks")
    if question_type == QuestionType.MCQ:
        if not options:
            raise ValidationError("options are required for MCQ", reason="missing_options")
        if any(not clean_str(o.text) for o in options):
            raise ValidationError("option text must not be blank", reason="blank_option")
        if not any(o.is_correct for o in options):
            raise ValidationError("At least one option must be correct", reason="no_correct_option")
    elif not clean_str(correct_answer):
        raise ValidationError("correctAnswer is required for non-MCQ questions", reason="missing_correct_answer")


def create_question(db: Session, *, class_id: int, subject_id: int, question_text: str,
                    question_type: QuestionType, marks: Decimal, source_id: Optional[int] = None,
                    difficulty: Difficulty = Difficulty.MEDIUM, image_url: Optional[str] = None,
                    options: Sequence[OptionInput] = (), correct_answer: Optional[str] = None) -> QuestionBankItem:
    if not class_id or not subject_id:
        raise ValidationError("classId and subjectId are required", reason="missing_class_or_subject")
    validate_question(question_text, question_type, marks, options, correct_answer)
    if source_id and db.get(QuestionSource, source_id) is None:
        raise ValidationError("Invalid sourceId", reason="invalid_source")

    def insert() -> QuestionBankItem:
        item = QuestionBankItem(
            class_id=class_id,
            subject_id=subject_id,
            source_id=source_id or None,
            question_text=question_text,
            question_type=question_type,
            marks=marks,
            difficulty=difficulty,
            image_url=clean_str(image_url),
            is_active=True,
        )
        db.add(item)
        db.flush()
        if question_type == QuestionType.MCQ:
            db.add_all(
                QuestionBankOption(question_id=item.id, option_text=o.text, is_correct=o.is_correct, order_no=i)
                for i, o in enumerate(options, start=1)
            )
        else:
            db.add(QuestionBankCorrectAnswer(question_id=item.id, correct=correct_answer))
        db.flush()
        return item

    with atomic(db):
        item = insert_with_sequence_repair(db, "question_bank", "qb_question_id", insert)
    logger.info(f"Question {item.id} ({question_type.value}) added for class={class_id} subject={subject_id}")
    return item


def deactivate_question(db: Session, question_id: int) -> QuestionBankItem:
    """Soft-exclude a question; referenced rows are never hard-deleted."""
    item = db.get(QuestionBankItem, question_id)
    if item is None:
        raise NotFoundError("Question not found", reason="question_not_found")
    with atomic(db):
        item.is_active = False
    return item


def upsert_question_source(db: Session, board: Optional[str], paper_name: Optional[str],
                           year: Optional[int]) -> QuestionSource:
    board, paper_name = clean_str(board), clean_str(paper_name)
    if not board or not paper_name or not year:
        raise ValidationError("board, paperName and year are required", reason="missing_source_fields")

    existing = db.scalar(select(QuestionSource).where(
        QuestionSource.board == board, QuestionSource.paper_name == paper_name, QuestionSource.year == year
    ))
    if existing:
        return existing

    def insert() -> QuestionSource:
        source = QuestionSource(board=board, paper_name=paper_name, year=year)
        db.add(source)
        db.flush()
        return source

    with atomic(db):
        source = insert_with_sequence_repair(db, "question_sources", "source_id", insert)
    return source


def list_question_sources(db: Session, board: Optional[str] = None, year: Optional[int] = None) -> List[QuestionSource]:
    stmt = select(QuestionSource)
    if clean_str(board):
        stmt = stmt.where(QuestionSource.board == clean_str(board))
    if year is not None:
        stmt = stmt.where(QuestionSource.year == year)
    stmt = stmt.order_by(QuestionSource.year.desc(), QuestionSource.paper_name.asc(), QuestionSource.created_at.desc())
    return list(db.scalars(stmt).all())


def list_questions(db: Session, board: Optional[str] = None, class_name: Optional[str] = None,
                   subject_name: Optional[str] = None, year: Optional[int] = None) -> List[QuestionBankItem]:
    stmt = select(QuestionBankItem).options(
        selectinload(QuestionBankItem.school_class),
        selectinload(QuestionBankItem.subject),
        selectinload(QuestionBankItem.source),
        selectinload(QuestionBankItem.options),
        selectinload(QuestionBankItem.correct_answer),
    )
    if clean_str(class_name):
        stmt = stmt.join(QuestionBankItem.school_class).where(SchoolClass.class_name == clean_str(class_name))
    if clean_str(subject_name):
        stmt = stmt.join(QuestionBankItem.subject).where(Subject.subject_name == clean_str(subject_name))
    if clean_str(board) or year is not None:
        stmt = stmt.join(QuestionBankItem.source)
        if clean_str(board):
            stmt = stmt.where(QuestionSource.board == clean_str(board))
        if year is not None:
            stmt = stmt.where(QuestionSource.year == year)
    stmt = stmt.order_by(QuestionBankItem.created_at.desc(), QuestionBankItem.id.desc())
    return list(db.scalars(stmt).all())
