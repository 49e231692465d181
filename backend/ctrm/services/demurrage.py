from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional

logger = logging.getLogger("ctrm.demurrage")

# (minimum loaded quantity in MT, total laytime hours)
LAYTIME_TABLE: tuple[tuple[float, float], ...] = (
    (0, 24),
    (500, 26),
    (1000, 28),
    (1500, 30),
    (2000, 34),
    (2500, 40),
    (3000, 44),
    (3500, 48),
)

# (minimum deadweight or loaded quantity, EUR per hour)
RATE_TABLE: tuple[tuple[float, float], ...] = (
    (0, 100),
    (1000, 120),
    (2000, 140),
    (3000, 160),
    (4000, 180),
    (5000, 200),
)


class CalculationRate(str, Enum):
    TTB = "TTB"  # rate looked up by barge deadweight
    BP = "BP"  # rate looked up by loaded quantity


def _lookup(table: tuple[tuple[float, float], ...], value: Optional[float]) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        v = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(v) or v < 0:
        return 0.0
    for minimum, result in reversed(table):
        if v >= minimum:
            return float(result)
    return float(table[0][1])


def calculate_total_laytime(loaded_quantity: Optional[float]) -> float:
    return _lookup(LAYTIME_TABLE, loaded_quantity)


def calculate_rate(
    calculation_rate: CalculationRate,
    deadweight: Optional[float],
    loaded_quantity: Optional[float],
) -> float:
    value = deadweight if CalculationRate(calculation_rate) == CalculationRate.TTB else loaded_quantity
    return _lookup(RATE_TABLE, value)


def _round_half_up(value: float) -> float:
    return float(math.floor(value + 0.5))


def port_hours(
    start: Optional[datetime], finish: Optional[datetime], rounding: bool = False
) -> float:
    """Hours between ``start`` and ``finish``; 0 when either is missing.

    Whole hours when ``rounding`` is set, otherwise 2 decimals.
    """
    if start is None or finish is None:
        return 0.0
    try:
        seconds = (finish - start).total_seconds()
    except TypeError:
        logger.warning("port_hours_mixed_timezones", extra={"start": str(start), "finish": str(finish)})
        return 0.0
    if seconds < 0:
        logger.warning(
            "port_hours_finish_before_start",
            extra={"start": start.isoformat(), "finish": finish.isoformat()},
        )
        return 0.0
    hours = seconds / 3600.0
    return _round_half_up(hours) if rounding else round(hours, 2)


def calculate_time_saved(hours_used: float, free_time: Optional[float]) -> float:
    """Unused share of the half free time each port is allotted."""
    if not free_time:
        return 0.0
    return round(max(0.0, free_time / 2 - hours_used), 2)


@dataclass(frozen=True)
class ManualOverride:
    value: float
    comment: str = ""


@dataclass(frozen=True)
class PortTimes:
    start: Optional[datetime] = None
    finish: Optional[datetime] = None
    rounding: bool = False
    override: Optional[ManualOverride] = None

    def hours(self) -> float:
        if self.override is not None:
            return round(float(self.override.value), 2)
        return port_hours(self.start, self.finish, self.rounding)


@dataclass(frozen=True)
class DemurrageForm:
    barge_name: Optional[str] = None
    barge_vessel_id: Optional[str] = None
    bl_date: Optional[date] = None
    deadweight: Optional[float] = None
    quantity_loaded: Optional[float] = None
    calculation_rate: CalculationRate = CalculationRate.TTB
    nomination_sent: Optional[datetime] = None
    nomination_valid: Optional[datetime] = None
    barge_arrived: Optional[datetime] = None
    time_starts_to_run: Optional[datetime] = None
    load_port: PortTimes = field(default_factory=PortTimes)
    discharge_port: PortTimes = field(default_factory=PortTimes)
    free_time: Optional[float] = None
    rate: Optional[float] = None
    comments: Optional[str] = None


@dataclass(frozen=True)
class DemurrageResult:
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


def _resolve_free_time(form: DemurrageForm) -> tuple[float, str]:
    if form.free_time is not None:
        return float(form.free_time), "form"
    if form.quantity_loaded is not None:
        return calculate_total_laytime(form.quantity_loaded), "laytime_table"
    return 0.0, "none"


def _resolve_rate(form: DemurrageForm) -> tuple[float, str]:
    if form.rate is not None:
        return float(form.rate), "form"
    lookup = form.deadweight if form.calculation_rate == CalculationRate.TTB else form.quantity_loaded
    if lookup is not None:
        return calculate_rate(form.calculation_rate, form.deadweight, form.quantity_loaded), "rate_table"
    return 0.0, "none"


def calculate_demurrage(form: DemurrageForm) -> DemurrageResult:
    """Port time, time saved and demurrage owed for one barge movement.

    Free time and rate come from the form, falling back to the laytime and
    rate tables. Without any free time no demurrage is computed.
    """
    free_time, free_time_source = _resolve_free_time(form)
    rate, rate_source = _resolve_rate(form)

    load_hours = form.load_port.hours()
    discharge_hours = form.discharge_port.hours()
    total = load_hours + discharge_hours

    demurrage_hours = max(0.0, total - free_time) if free_time else 0.0

    return DemurrageResult(
        load_port_hours=round(load_hours, 2),
        discharge_port_hours=round(discharge_hours, 2),
        load_time_saved=calculate_time_saved(load_hours, free_time),
        discharge_time_saved=calculate_time_saved(discharge_hours, free_time),
        total_time_used=round(total, 2),
        free_time=round(free_time, 2),
        rate=round(rate, 2),
        demurrage_hours=round(demurrage_hours, 2),
        demurrage_due=round(demurrage_hours * rate, 2),
        free_time_source=free_time_source,
        rate_source=rate_source,
        load_port_overridden=form.load_port.override is not None,
        discharge_port_overridden=form.discharge_port.override is not None,
    )
