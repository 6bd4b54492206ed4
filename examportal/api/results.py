from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from examportal.core.auth import TokenData, get_current_user
from examportal.core.database import get_db
from examportal.models.orm import ResultStatus
from examportal.repositories.identity import require_student
from examportal.services.results import results_for_student

router = APIRouter()


class ResultRow(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    attempt_id: int
    test_id: int
    subject: str
    test_type: str
    date: datetime
    total_questions: int
    duration_min: int
    time_taken_sec: Optional[int] = None
    time_taken_min: Optional[int] = None
    total_marks: float
    obtained_marks: float
    percentage: float
    status: ResultStatus
    published: bool


@router.get("", response_model=List[ResultRow])
def list_results(user: TokenData = Depends(get_current_user), db: Session = Depends(get_db)):
    student = require_student(db, user.user_id, "view results")
    return [ResultRow.model_validate(r) for r in results_for_student(db, student)]
