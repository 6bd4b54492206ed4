from typing import Dict, List, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from examportal.models.orm import QuestionBankItem


def find_active_ids_by_class_subject(db: Session, class_id: int, subject_id: int) -> List[int]:
    """Ids of the active pool for a class/subject pair."""
    stmt = select(QuestionBankItem.id).where(
        QuestionBankItem.class_id == class_id,
        QuestionBankItem.subject_id == subject_id,
        QuestionBankItem.is_active.is_(True),
    ).order_by(QuestionBankItem.id)
    return list(db.scalars(stmt).all())


def find_by_ids(db: Session, ids: Sequence[int]) -> Dict[int, QuestionBankItem]:
    """Questions keyed by id, with options and reference answer attached."""
    if not ids:
        return {}
    stmt = select(QuestionBankItem).where(QuestionBankItem.id.in_(list(ids))).options(
        selectinload(QuestionBankItem.options), selectinload(QuestionBankItem.correct_answer)
    )
    return {q.id: q for q in db.scalars(stmt).all()}
