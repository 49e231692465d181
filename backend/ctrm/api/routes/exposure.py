from typing import Optional

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import Response

from ctrm.config import settings
from ctrm.schemas import (
    ExposureCalculateRequest,
    ExposureCalculateResponse,
    ExposureExportRequest,
    ExposureExportResponse,
    ExposurePeriodsResponse,
    PrepareLegsRequest,
    PrepareLegsResponse,
)
from ctrm.services.exposure_aggregation import ExposureCalculationResult
from ctrm.services.exposure_engine import calculate_exposure
from ctrm.services.exposure_export import (
    export_columns,
    export_rows_to_csv,
    format_date_range_for_export,
    format_exposure_for_export,
)
from ctrm.services.month_codes import next_month_codes
from ctrm.services.paper_exposure import build_paper_daily_distribution
from ctrm.services.pricing_formula import prepare_physical_formula
from ctrm.services.working_days import DistributionRangeError

router = APIRouter(prefix="/exposure", tags=["exposure"])


def _calculate(payload: ExposureCalculateRequest) -> ExposureCalculationResult:
    try:
        return calculate_exposure(
            payload.physical_legs,
            payload.paper_legs,
            payload.resolved_periods(),
            payload.resolved_allowed_products(),
            date_range=payload.date_range.to_domain() if payload.date_range else None,
        )
    except DistributionRangeError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.post("/calculate", response_model=ExposureCalculateResponse)
def calculate(payload: ExposureCalculateRequest):
    result = _calculate(payload)
    return ExposureCalculateResponse.from_result(
        result, format_date_range_for_export(result.date_range)
    )


@router.post("/export")
def export(
    payload: ExposureExportRequest,
    format: str = Query("json", description="json or csv"),
):
    result = _calculate(payload)
    products = payload.products or list(result.allowed_products)
    try:
        records = format_exposure_for_export(result.rows, payload.categories, products)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    columns = export_columns(payload.categories, products)
    label = format_date_range_for_export(result.date_range)

    if format.lower() != "csv":
        return ExposureExportResponse(date_range_label=label, columns=columns, rows=records)

    filename = f"exposure_{label.replace(' ', '_')}.csv"
    return Response(
        content=export_rows_to_csv(records, columns),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/periods", response_model=ExposurePeriodsResponse)
def periods(count: Optional[int] = Query(None, ge=1, le=120, description="Number of months")):
    return ExposurePeriodsResponse(periods=next_month_codes(count or settings.default_period_count))


@router.post("/prepare", response_model=PrepareLegsResponse)
def prepare(payload: PrepareLegsRequest):
    """Fill in derived exposures and distributions before trades are stored."""
    try:
        physical = [
            leg.model_copy(update={"pricing_formula": prepare_physical_formula(leg)})
            for leg in payload.physical_legs
        ]
        paper = [build_paper_daily_distribution(leg) for leg in payload.paper_legs]
    except DistributionRangeError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return PrepareLegsResponse(physical_legs=physical, paper_legs=paper)
