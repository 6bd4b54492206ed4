from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

from examportal.core.auth import create_token
from examportal.core.database import Database
from examportal.main import create_app
from examportal.models.orm import (
    QuestionBankCorrectAnswer, QuestionBankItem, QuestionBankOption, QuestionType, SchoolClass, Student, Subject,
    User, UserRole,
)
from examportal.services.grading import GradeOutcome


class FakeGrader:
    """Stands in for the grading service; full marks unless told otherwise."""

    def __init__(self, outcome: Optional[GradeOutcome] = None, error: Optional[Exception] = None):
        self.outcome = outcome
        self.error = error
        self.calls = []

    def grade(self, reference, candidate, max_marks):
        self.calls.append((reference, candidate, max_marks))
        if self.error is not None:
            raise self.error
        return self.outcome or GradeOutcome(marks=Decimal(max_marks), similarity=Decimal("0.9500"))

    def close(self):
        pass


@dataclass
class Seed:
    class_id: int
    physics_id: int
    maths_id: int
    english_id: int
    student_user_id: int
    student_id: int
    other_user_id: int
    other_student_id: int
    teacher_user_id: int
    # (question id, correct option id, wrong option id)
    maths_mcq: List[Tuple[int, int, int]] = field(default_factory=list)
    inactive_maths_id: int = 0
    english_mcq: Tuple[int, int, int] = (0, 0, 0)
    english_text: Dict[int, str] = field(default_factory=dict)


@pytest.fixture
def database():
    db = Database("sqlite://", poolclass=StaticPool, connect_args={"check_same_thread": False})
    db.connect()
    db.create_all()
    yield db
    db.disconnect()


def _mcq(session, class_id, subject_id, text, marks, is_active=True):
    q = QuestionBankItem(class_id=class_id, subject_id=subject_id, question_text=text,
                         question_type=QuestionType.MCQ, marks=Decimal(marks), is_active=is_active)
    session.add(q)
    session.flush()
    wrong = QuestionBankOption(question_id=q.id, option_text="wrong", is_correct=False, order_no=1)
    right = QuestionBankOption(question_id=q.id, option_text="right", is_correct=True, order_no=2)
    session.add_all([wrong, right])
    session.flush()
    return q.id, right.id, wrong.id


def _free_text(session, class_id, subject_id, text, marks, reference, qtype=QuestionType.SUBJECTIVE):
    q = QuestionBankItem(class_id=class_id, subject_id=subject_id, question_text=text, question_type=qtype,
                         marks=Decimal(marks))
    session.add(q)
    session.flush()
    session.add(QuestionBankCorrectAnswer(question_id=q.id, correct=reference))
    session.flush()
    return q.id


@pytest.fixture
def seed(database) -> Seed:
    with database.session() as s:
        cls = SchoolClass(class_name="Class 10", section="A")
        physics, maths, english = Subject(subject_name="Physics"), Subject(subject_name="Maths (Advanced)"), \
            Subject(subject_name="English")
        student_user = User(name="Asha", email="asha@example.com", role=UserRole.STUDENT)
        other_user = User(name="Ravi", email="ravi@example.com", role=UserRole.STUDENT)
        teacher = User(name="Mrs. Iyer", email="iyer@example.com", role=UserRole.TEACHER)
        s.add_all([cls, physics, maths, english, student_user, other_user, teacher])
        s.flush()
        student = Student(user_id=student_user.id, class_id=cls.id, roll_no="10A-01")
        other = Student(user_id=other_user.id, class_id=cls.id, roll_no="10A-02")
        s.add_all([student, other])
        s.flush()

        out = Seed(
            class_id=cls.id, physics_id=physics.id, maths_id=maths.id, english_id=english.id,
            student_user_id=student_user.id, student_id=student.id, other_user_id=other_user.id,
            other_student_id=other.id, teacher_user_id=teacher.id,
        )
        out.maths_mcq = [_mcq(s, cls.id, maths.id, f"What is {i} + {i}?", "2") for i in range(1, 6)]
        out.inactive_maths_id = _mcq(s, cls.id, maths.id, "Retired question", "2", is_active=False)[0]
        out.english_mcq = _mcq(s, cls.id, english.id, "Pick the noun", "1")
        out.english_text = {
            _free_text(s, cls.id, english.id, "Define a noun", "5", "A word that names a thing"): "A word that names a thing",
            _free_text(s, cls.id, english.id, "Define a verb", "5", "A word that describes an action",
                       qtype=QuestionType.SHORT): "A word that describes an action",
        }
        s.commit()
    return out


@pytest.fixture
def session(database, seed):
    s = database.session()
    yield s
    s.close()


@pytest.fixture
def grader():
    return FakeGrader()


@pytest.fixture
def client(database, seed, grader):
    app = create_app(database=database, grader=grader)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def headers():
    def make(user_id, *roles):
        return {"Authorization": f"Bearer {create_token(user_id, list(roles) or ['student'])}"}
    return make


@pytest.fixture
def grader_factory():
    return FakeGrader
