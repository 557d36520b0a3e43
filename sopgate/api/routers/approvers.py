from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from sopgate.api.deps import get_db
from sopgate.api.schemas.approvers import ApproverResponse
from sopgate.core.auth import ApproverDirectory

router = APIRouter(prefix="/approvers", tags=["approvers"])


@router.get("", response_model=List[ApproverResponse])
def list_approvers(db: Session = Depends(get_db)):
    """Active approvers a request can be routed to."""
    return [ApproverResponse.model_validate(a) for a in ApproverDirectory(db).list_active()]
