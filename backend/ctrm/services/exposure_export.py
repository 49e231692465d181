from __future__ import annotations

import csv
import io
from typing import Any, Dict, List, Optional, Sequence

from ctrm.services.exposure_aggregation import ZERO_EXPOSURE, MonthlyExposure
from ctrm.services.month_codes import DateRange, format_month_code

EXPOSURE_CATEGORIES: tuple[str, ...] = ("Physical", "Pricing", "Paper", "Exposure")

_CATEGORY_FIELDS = {
    "Physical": "physical",
    "Pricing": "pricing",
    "Paper": "paper",
    "Exposure": "net_exposure",
}


def export_columns(categories: Sequence[str], products: Sequence[str]) -> List[str]:
    columns = ["Month"]
    for product in products:
        for category in EXPOSURE_CATEGORIES:
            if category in categories:
                columns.append(f"{category} {product}")
    return columns


def format_exposure_for_export(
    rows: Sequence[MonthlyExposure],
    categories: Sequence[str],
    products: Sequence[str],
) -> List[Dict[str, Any]]:
    """Flat export rows: ``Month`` plus ``"<Category> <product>"`` columns."""
    unknown = [c for c in categories if c not in _CATEGORY_FIELDS]
    if unknown:
        raise ValueError(f"unknown exposure categories: {', '.join(unknown)}")

    out: List[Dict[str, Any]] = []
    for row in rows:
        record: Dict[str, Any] = {"Month": row.month}
        for product in products:
            data = row.products.get(product, ZERO_EXPOSURE)
            for category in EXPOSURE_CATEGORIES:
                if category in categories:
                    record[f"{category} {product}"] = getattr(data, _CATEGORY_FIELDS[category])
        out.append(record)
    return out


def format_date_range_for_export(date_range: Optional[DateRange]) -> str:
    if date_range is None:
        return "All Dates"
    start = format_month_code(date_range.start)
    end = format_month_code(date_range.end)
    if start == end:
        return start
    return f"{start} to {end}"


def export_rows_to_csv(records: Sequence[Dict[str, Any]], columns: Sequence[str]) -> str:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(columns)
    for record in records:
        writer.writerow([record.get(c, "") for c in columns])
    return output.getvalue()
