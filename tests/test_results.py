from datetime import datetime, timedelta, timezone
from decimal import Decimal

from examportal.models.orm import ResultStatus, Student, Subject
from examportal.services.evaluator import SubmittedAnswer, submit
from examportal.services.materializer import materialize
from examportal.services.results import results_for_student, time_taken_seconds


def test_time_taken_seconds():
    start = datetime(2024, 3, 1, 10, 0, 0)
    assert time_taken_seconds(start, start + timedelta(seconds=95)) == 95
    assert time_taken_seconds(start.replace(tzinfo=timezone.utc), start + timedelta(seconds=30)) == 30
    assert time_taken_seconds(start, start - timedelta(seconds=5)) == 0
    assert time_taken_seconds(start, None) is None


def test_results_only_list_the_callers_attempts(session, seed, grader_factory):
    student = session.get(Student, seed.student_id)
    other = session.get(Student, seed.other_student_id)
    maths = session.get(Subject, seed.maths_id)
    q, right, _ = seed.maths_mcq[0]

    mine = materialize(session, student, maths, seed.class_id, [q]).attempt.id
    theirs = materialize(session, other, maths, seed.class_id, [q]).attempt.id
    submit(session, grader_factory(), mine, student, [SubmittedAnswer(q, selected_option_id=right)])
    submit(session, grader_factory(), theirs, other, [])

    rows = results_for_student(session, student)
    assert [r.attempt_id for r in rows] == [mine]
    assert rows[0].obtained_marks == Decimal("2")
    assert rows[0].percentage == Decimal("100")
    assert rows[0].status == ResultStatus.PASS
    assert rows[0].total_questions == 1
    assert rows[0].subject == "Maths (Advanced)"
