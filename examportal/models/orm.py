import enum
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import (
    BigInteger, Boolean, Date, DateTime, Enum as SQLEnum, ForeignKey, Index, Integer,
    Numeric, String, Text, UniqueConstraint, func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# BIGINT primary keys do not autoincrement on SQLite.
BigId = BigInteger().with_variant(Integer, "sqlite")


class Base(DeclarativeBase): pass


def _enum(cls):
    return SQLEnum(cls, native_enum=False, length=20, values_callable=lambda e: [m.value for m in e])


class UserRole(str, enum.Enum):
    STUDENT = "STUDENT"
    TEACHER = "TEACHER"
    ADMIN = "ADMIN"


class QuestionType(str, enum.Enum):
    MCQ = "MCQ"
    TRUE_FALSE = "TRUE_FALSE"
    INTEGER = "INTEGER"
    SHORT = "SHORT"
    SUBJECTIVE = "SUBJECTIVE"


class Difficulty(str, enum.Enum):
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"


class PublishStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    ARCHIVED = "ARCHIVED"


class AttemptStatus(str, enum.Enum):
    STARTED = "STARTED"
    SUBMITTED = "SUBMITTED"


class EvaluationType(str, enum.Enum):
    RULE = "RULE"
    AUTO = "AUTO"
    UNGRADED = "UNGRADED"


class ResultStatus(str, enum.Enum):
    PASS = "Pass"
    FAIL = "Fail"


MOCK_TEST_TYPE = "MOCK"

# ========== Identity / class / subject ==========

class User(Base):
    __tablename__ = "users"
    id: Mapped[int] = mapped_column(BigId, primary_key=True)
    name: Mapped[str] = mapped_column(String(255))
    email: Mapped[str] = mapped_column(String(255), unique=True)
    role: Mapped[UserRole] = mapped_column(_enum(UserRole))
    password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    student: Mapped[Optional["Student"]] = relationship(back_populates="user", uselist=False)


class SchoolClass(Base):
    __tablename__ = "classes"
    id: Mapped[int] = mapped_column(BigId, primary_key=True)
    class_name: Mapped[str] = mapped_column(String(100))
    section: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)


class Subject(Base):
    __tablename__ = "subjects"
    id: Mapped[int] = mapped_column(BigId, primary_key=True)
    subject_name: Mapped[str] = mapped_column(String(255))


class Student(Base):
    __tablename__ = "students"
    id: Mapped[int] = mapped_column(BigId, primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), unique=True)
    class_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("classes.id"))
    roll_no: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    admission_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    guardian_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    user: Mapped["User"] = relationship(back_populates="student")
    school_class: Mapped["SchoolClass"] = relationship()

# ========== Question bank ==========

class QuestionSource(Base):
    __tablename__ = "question_sources"
    __table_args__ = (UniqueConstraint("board", "paper_name", "year", name="uq_question_source"),)

    id: Mapped[int] = mapped_column("source_id", BigId, primary_key=True)
    board: Mapped[str] = mapped_column(String(100))
    paper_name: Mapped[str] = mapped_column(String(255))
    year: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class QuestionBankItem(Base):
    __tablename__ = "question_bank"
    __table_args__ = (Index("idx_qb_class_subject_active", "class_id", "subject_id", "is_active"),)

    id: Mapped[int] = mapped_column("qb_question_id", BigId, primary_key=True)
    class_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("classes.id"))
    subject_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("subjects.id"))
    source_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("question_sources.source_id"), nullable=True)
    question_text: Mapped[str] = mapped_column(Text)
    question_type: Mapped[QuestionType] = mapped_column(_enum(QuestionType))
    marks: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    difficulty: Mapped[Difficulty] = mapped_column(_enum(Difficulty), default=Difficulty.MEDIUM)
    image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    school_class: Mapped["SchoolClass"] = relationship()
    subject: Mapped["Subject"] = relationship()
    source: Mapped[Optional["QuestionSource"]] = relationship()
    options: Mapped[List["QuestionBankOption"]] = relationship(
        back_populates="question", order_by="QuestionBankOption.order_no", cascade="all, delete-orphan"
    )
    correct_answer: Mapped[Optional["QuestionBankCorrectAnswer"]] = relationship(
        back_populates="question", uselist=False, cascade="all, delete-orphan"
    )

    @property
    def is_mcq(self) -> bool:
        return self.question_type == QuestionType.MCQ


class QuestionBankOption(Base):
    __tablename__ = "question_bank_options"
    id: Mapped[int] = mapped_column(BigId, primary_key=True)
    question_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("question_bank.qb_question_id", ondelete="CASCADE"))
    option_text: Mapped[str] = mapped_column(Text)
    is_correct: Mapped[bool] = mapped_column(Boolean, default=False)
    order_no: Mapped[int] = mapped_column(Integer)

    question: Mapped["QuestionBankItem"] = relationship(back_populates="options")


class QuestionBankCorrectAnswer(Base):
    __tablename__ = "question_bank_correct_answers"
    id: Mapped[int] = mapped_column(BigId, primary_key=True)
    question_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("question_bank.qb_question_id", ondelete="CASCADE"), unique=True
    )
    correct: Mapped[str] = mapped_column(Text)

    question: Mapped["QuestionBankItem"] = relationship(back_populates="correct_answer")

# ========== Tests and attempts ==========

class TestDefinition(Base):
    __test__ = False
    __tablename__ = "tests"
    id: Mapped[int] = mapped_column(BigId, primary_key=True)
    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    test_type: Mapped[str] = mapped_column(String(30))
    class_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("classes.id"))
    subject_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("subjects.id"))
    created_by_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=True)
    total_marks: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    duration_min: Mapped[int] = mapped_column(Integer)
    passing_marks: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    status: Mapped[PublishStatus] = mapped_column(_enum(PublishStatus), default=PublishStatus.DRAFT)
    negative_marking: Mapped[bool] = mapped_column(Boolean, default=False)
    negative_marks_per_wrong: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    shuffle_questions: Mapped[bool] = mapped_column(Boolean, default=False)
    shuffle_options: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    school_class: Mapped["SchoolClass"] = relationship()
    subject: Mapped["Subject"] = relationship()
    created_by: Mapped[Optional["User"]] = relationship()
    test_questions: Mapped[List["TestQuestionLink"]] = relationship(
        back_populates="test", order_by="TestQuestionLink.order_no", cascade="all, delete-orphan"
    )
    mock_config: Mapped[Optional["MockTestConfig"]] = relationship(back_populates="test", uselist=False)


class MockTestConfig(Base):
    __tablename__ = "mock_test_configs"
    id: Mapped[int] = mapped_column(BigId, primary_key=True)
    test_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("tests.id", ondelete="CASCADE"), unique=True)
    number_of_questions: Mapped[int] = mapped_column(Integer)

    test: Mapped["TestDefinition"] = relationship(back_populates="mock_config")


class TestQuestionLink(Base):
    __test__ = False
    __tablename__ = "test_questions"
    __table_args__ = (
        UniqueConstraint("test_id", "order_no", name="uq_test_question_order"),
        UniqueConstraint("test_id", "question_id", name="uq_test_question"),
    )

    id: Mapped[int] = mapped_column(BigId, primary_key=True)
    test_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("tests.id", ondelete="CASCADE"))
    question_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("question_bank.qb_question_id"))
    order_no: Mapped[int] = mapped_column(Integer)

    test: Mapped["TestDefinition"] = relationship(back_populates="test_questions")
    question: Mapped["QuestionBankItem"] = relationship()


class Attempt(Base):
    __tablename__ = "attempts"
    __table_args__ = (Index("idx_attempts_student", "student_id"),)

    id: Mapped[int] = mapped_column(BigId, primary_key=True)
    test_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("tests.id"))
    student_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("students.id"))
    status: Mapped[AttemptStatus] = mapped_column(_enum(AttemptStatus), default=AttemptStatus.STARTED)
    total_score: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    percentage: Mapped[Decimal] = mapped_column(Numeric(6, 2), default=Decimal("0"))
    is_result_published: Mapped[bool] = mapped_column(Boolean, default=True)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    test: Mapped["TestDefinition"] = relationship()
    student: Mapped["Student"] = relationship()
    answers: Mapped[List["Answer"]] = relationship(back_populates="attempt", cascade="all, delete-orphan")
    result: Mapped[Optional["Result"]] = relationship(back_populates="attempt", uselist=False)


class Answer(Base):
    __tablename__ = "answers"
    __table_args__ = (UniqueConstraint("attempt_id", "question_id", name="uq_answer_attempt_question"),)

    id: Mapped[int] = mapped_column(BigId, primary_key=True)
    attempt_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("attempts.id", ondelete="CASCADE"))
    question_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("question_bank.qb_question_id"))
    selected_option_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("question_bank_options.id"), nullable=True
    )
    answer_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    marks_obtained: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    is_correct: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    similarity_score: Mapped[Optional[Decimal]] = mapped_column(Numeric(6, 4), nullable=True)
    evaluation_type: Mapped[Optional[EvaluationType]] = mapped_column(_enum(EvaluationType), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    attempt: Mapped["Attempt"] = relationship(back_populates="answers")
    selected_option: Mapped[Optional["QuestionBankOption"]] = relationship()


class Result(Base):
    __tablename__ = "results"
    id: Mapped[int] = mapped_column(BigId, primary_key=True)
    attempt_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("attempts.id", ondelete="CASCADE"), unique=True)
    total_marks: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    obtained_marks: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    percentage: Mapped[Decimal] = mapped_column(Numeric(6, 2))
    status: Mapped[ResultStatus] = mapped_column(_enum(ResultStatus))
    published: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    attempt: Mapped["Attempt"] = relationship(back_populates="result")
