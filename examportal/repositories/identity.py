import re
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from examportal.core.errors import AuthorizationError
from examportal.models.orm import Student, Subject, User, UserRole

MATH_ALIASES = frozenset({"math", "maths", "mathematics"})


def find_user_with_student_profile(db: Session, user_id: int) -> Optional[User]:
    stmt = select(User).where(User.id == user_id).options(
        selectinload(User.student).selectinload(Student.school_class)
    )
    return db.scalar(stmt)


def require_student(db: Session, user_id: int, action: str = "access this resource") -> Student:
    """Return the caller's student profile, or reject if the caller is not an active student."""
    user = find_user_with_student_profile(db, user_id)
    if not user or user.role != UserRole.STUDENT or not user.student:
        raise AuthorizationError(f"Only students can {action}", reason="not_a_student")
    return user.student


def subject_aliases(name: str) -> set:
    normalized = name.strip().lower()
    aliases = {normalized, re.sub(r"\s+", "", normalized)}
    if aliases & MATH_ALIASES:
        aliases |= MATH_ALIASES
    aliases.discard("")
    return aliases


def find_subject_by_fuzzy_name(db: Session, name: str) -> Optional[Subject]:
    """Resolve a requested subject name.

    Case-insensitive equality against the name and its whitespace-free form;
    for the mathematics family, any subject whose name contains "math" also
    matches. Equality matches win over substring matches, then lowest id.
    """
    aliases = subject_aliases(name)
    if not aliases:
        return None
    lowered = func.lower(Subject.subject_name)
    exact = db.scalar(select(Subject).where(lowered.in_(sorted(aliases))).order_by(Subject.id).limit(1))
    if exact or not (aliases & MATH_ALIASES):
        return exact
    return db.scalar(select(Subject).where(lowered.contains("math")).order_by(Subject.id).limit(1))
