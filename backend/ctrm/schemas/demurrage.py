from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ctrm.services.demurrage import (
    CalculationRate,
    DemurrageForm,
    DemurrageResult,
    ManualOverride,
    PortTimes,
)


class PortTimesInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    start: Optional[datetime] = None
    finish: Optional[datetime] = None
    rounding: Literal["Y", "N"] = "N"
    is_manual: bool = Field(False, alias="isManual")
    manual_hours: Optional[float] = Field(None, alias="manualHours", ge=0)
    override_comment: Optional[str] = Field(None, alias="overrideComment")

    @model_validator(mode="after")
    def _manual_requires_hours(self):
        if self.is_manual and self.manual_hours is None:
            raise ValueError("manualHours is required when isManual is set")
        return self

    def to_domain(self) -> PortTimes:
        override = None
        if self.is_manual and self.manual_hours is not None:
            override = ManualOverride(value=self.manual_hours, comment=self.override_comment or "")
        return PortTimes(
            start=self.start,
            finish=self.finish,
            rounding=self.rounding == "Y",
            override=override,
        )


class DemurrageCalculateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    barge_name: Optional[str] = Field(None, alias="bargeName")
    barge_vessel_id: Optional[str] = Field(None, alias="bargeVesselId")
    bl_date: Optional[date] = Field(None, alias="blDate")
    deadweight: Optional[float] = Field(None, alias="deadWeight", ge=0)
    quantity_loaded: Optional[float] = Field(None, alias="quantityLoaded", ge=0)
    calculation_rate: CalculationRate = Field(CalculationRate.TTB, alias="calculationRate")
    nomination_sent: Optional[datetime] = Field(None, alias="nominationSent")
    nomination_valid: Optional[datetime] = Field(None, alias="nominationValid")
    barge_arrived: Optional[datetime] = Field(None, alias="bargeArrived")
    time_starts_to_run: Optional[datetime] = Field(None, alias="timeStartsToRun")
    load_port: PortTimesInput = Field(default_factory=PortTimesInput, alias="loadPort")
    discharge_port: PortTimesInput = Field(default_factory=PortTimesInput, alias="dischargePort")
    free_time: Optional[float] = Field(None, alias="freeTime", ge=0)
    rate: Optional[float] = Field(None, ge=0)
    comments: Optional[str] = None

    def to_domain(self) -> DemurrageForm:
        return DemurrageForm(
            barge_name=self.barge_name,
            barge_vessel_id=self.barge_vessel_id,
            bl_date=self.bl_date,
            deadweight=self.deadweight,
            quantity_loaded=self.quantity_loaded,
            calculation_rate=self.calculation_rate,
            nomination_sent=self.nomination_sent,
            nomination_valid=self.nomination_valid,
            barge_arrived=self.barge_arrived,
            time_starts_to_run=self.time_starts_to_run,
            load_port=self.load_port.to_domain(),
            discharge_port=self.discharge_port.to_domain(),
            free_time=self.free_time,
            rate=self.rate,
            comments=self.comments,
        )


class DemurrageCalculateResponse(BaseModel):
    barge_name: Optional[str] = None
    load_port_hours: float
    discharge_port_hours: float
    load_time_saved: float
    discharge_time_saved: float
    total_time_used: float
    free_time: float
    rate: float
    demurrage_hours: float
    demurrage_due: float
    free_time_source: str
    rate_source: str
    load_port_overridden: bool = False
    discharge_port_overridden: bool = False

    @classmethod
    def from_result(
        cls, result: DemurrageResult, barge_name: Optional[str] = None
    ) -> "DemurrageCalculateResponse":
        return cls(
            barge_name=barge_name,
            load_port_hours=result.load_port_hours,
            discharge_port_hours=result.discharge_port_hours,
            load_time_saved=result.load_time_saved,
            discharge_time_saved=result.discharge_time_saved,
            total_time_used=result.total_time_used,
            free_time=result.free_time,
            rate=result.rate,
            demurrage_hours=result.demurrage_hours,
            demurrage_due=result.demurrage_due,
            free_time_source=result.free_time_source,
            rate_source=result.rate_source,
            load_port_overridden=result.load_port_overridden,
            discharge_port_overridden=result.discharge_port_overridden,
        )


class LookupTableEntry(BaseModel):
    minimum: float
    value: float


class DemurrageTablesResponse(BaseModel):
    laytime: List[LookupTableEntry]
    rate: List[LookupTableEntry]
