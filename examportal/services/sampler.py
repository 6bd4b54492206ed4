import logging
import random
from typing import List, Optional

from sqlalchemy.orm import Session

from examportal.core.errors import DeficitError, ValidationError
from examportal.repositories.question_bank import find_active_ids_by_class_subject

logger = logging.getLogger(__name__)

_rng = random.SystemRandom()


def sample(db: Session, class_id: int, subject_id: int, n: int, rng: Optional[random.Random] = None) -> List[int]:
    """Draw exactly ``n`` distinct active question ids for a class/subject.

    The draw is uniform without replacement and unseeded, so two calls
    rarely agree. The returned order is the draw order. Raises
    ``DeficitError`` when the active pool holds fewer than ``n`` questions.
    """
    if not isinstance(n, int) or isinstance(n, bool) or n <= 0:
        raise ValidationError("numberOfQuestions must be a positive integer", reason="invalid_question_count")
    if not class_id or not subject_id:
        raise ValidationError("class and subject are required", reason="missing_class_or_subject")

    pool = find_active_ids_by_class_subject(db, class_id, subject_id)
    if len(pool) < n:
        logger.info(f"Question deficit for class={class_id} subject={subject_id}: requested {n}, available {len(pool)}")
        raise DeficitError(available=len(pool), requested=n)
    return (rng or _rng).sample(pool, n)
