from decimal import Decimal

import pytest
from sqlalchemy import func, select

from examportal.core.errors import ValidationError
from examportal.models.orm import (
    MOCK_TEST_TYPE, Attempt, AttemptStatus, MockTestConfig, PublishStatus, Student, Subject, TestDefinition,
    TestQuestionLink,
)
from examportal.services import materializer
from examportal.services.materializer import derive_shape, materialize
from examportal.repositories.question_bank import find_by_ids


def _student_and_subject(session, seed, subject_id):
    return session.get(Student, seed.student_id), session.get(Subject, subject_id)


def test_shape_for_mixed_questions(session, seed):
    ids = [seed.english_mcq[0], *seed.english_text]
    by_id = find_by_ids(session, ids)
    shape = derive_shape([by_id[i] for i in ids])
    assert shape.total_marks == Decimal("11.00")
    assert shape.duration_min == 5
    assert shape.passing_marks == Decimal("3.63")
    assert (shape.mcq_count, shape.subjective_count) == (1, 2)


def test_materialize_creates_test_links_and_attempt(session, seed):
    student, subject = _student_and_subject(session, seed, seed.maths_id)
    ids = [q[0] for q in seed.maths_mcq[:3]][::-1]

    created = materialize(session, student, subject, seed.class_id, ids)

    test = session.get(TestDefinition, created.test.id)
    assert test.title == "Maths (Advanced) Mock Test"
    assert test.test_type == MOCK_TEST_TYPE
    assert test.status == PublishStatus.PUBLISHED
    assert test.total_marks == Decimal("6.00")
    assert test.duration_min == 3
    assert test.passing_marks == Decimal("1.98")
    assert test.created_by_id == seed.student_user_id
    assert [tq.question_id for tq in test.test_questions] == ids
    assert [tq.order_no for tq in test.test_questions] == [1, 2, 3]
    assert test.mock_config.number_of_questions == 3

    attempt = session.get(Attempt, created.attempt.id)
    assert attempt.student_id == seed.student_id
    assert attempt.status == AttemptStatus.STARTED
    assert attempt.total_score == Decimal("0")
    assert attempt.submitted_at is None


@pytest.mark.parametrize("ids_of", [
    lambda seed: [],
    lambda seed: [seed.maths_mcq[0][0], seed.maths_mcq[0][0]],
    lambda seed: [seed.maths_mcq[0][0], 99999],
])
def test_materialize_rejects_bad_question_sets_without_writing(session, seed, ids_of):
    student, subject = _student_and_subject(session, seed, seed.maths_id)
    with pytest.raises(ValidationError):
        materialize(session, student, subject, seed.class_id, ids_of(seed))
    for model in (TestDefinition, MockTestConfig, TestQuestionLink, Attempt):
        assert session.scalar(select(func.count()).select_from(model)) == 0


def test_failure_before_attempt_rolls_back_the_test(session, seed, monkeypatch):
    student, subject = _student_and_subject(session, seed, seed.maths_id)

    def broken_attempt(**kwargs):
        raise RuntimeError("attempts table unavailable")

    monkeypatch.setattr(materializer, "Attempt", broken_attempt)
    with pytest.raises(RuntimeError):
        materialize(session, student, subject, seed.class_id, [q[0] for q in seed.maths_mcq[:2]])

    for model in (TestDefinition, MockTestConfig, TestQuestionLink, Attempt):
        assert session.scalar(select(func.count()).select_from(model)) == 0
