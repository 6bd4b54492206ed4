from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from examportal.core.auth import require_roles
from examportal.core.database import get_db
from examportal.core.errors import ValidationError
from examportal.core.normalize import parse_optional_int
from examportal.services import question_bank

router = APIRouter()


class SourceUpsert(BaseModel):
    board: Optional[str] = None
    paper_name: Optional[str] = None
    year: Optional[int] = None

class SourceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    board: str
    paper_name: str
    year: int
    created_at: Optional[datetime] = None


@router.post("/upsert", response_model=SourceOut, dependencies=[Depends(require_roles("teacher", "admin"))])
def upsert_source(payload: SourceUpsert, db: Session = Depends(get_db)):
    return SourceOut.model_validate(question_bank.upsert_question_source(db, payload.board, payload.paper_name, payload.year))


@router.get("", response_model=List[SourceOut], dependencies=[Depends(require_roles("teacher", "admin"))])
def list_sources(board: Optional[str] = None, year: Optional[str] = None, db: Session = Depends(get_db)):
    try:
        year_int = parse_optional_int(year)
    except ValueError:
        raise ValidationError("Invalid year", reason="invalid_year")
    return [SourceOut.model_validate(s) for s in question_bank.list_question_sources(db, board=board, year=year_int)]
