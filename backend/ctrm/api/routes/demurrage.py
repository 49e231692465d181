from fastapi import APIRouter

from ctrm.schemas import (
    DemurrageCalculateRequest,
    DemurrageCalculateResponse,
    DemurrageTablesResponse,
)
from ctrm.services.demurrage import LAYTIME_TABLE, RATE_TABLE, calculate_demurrage

router = APIRouter(prefix="/demurrage", tags=["demurrage"])


@router.post("/calculate", response_model=DemurrageCalculateResponse)
def calculate(payload: DemurrageCalculateRequest):
    result = calculate_demurrage(payload.to_domain())
    return DemurrageCalculateResponse.from_result(result, barge_name=payload.barge_name)


@router.get("/tables", response_model=DemurrageTablesResponse)
def tables():
    return DemurrageTablesResponse(
        laytime=[{"minimum": m, "value": v} for m, v in LAYTIME_TABLE],
        rate=[{"minimum": m, "value": v} for m, v in RATE_TABLE],
    )
