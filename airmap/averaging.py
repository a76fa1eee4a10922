"""Collapse overlapping station reports into one reading per pollutant."""
from __future__ import annotations

from dataclasses import replace
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Dict, List, Sequence, Tuple

from .entities import StationObservation


class Parameter(str, Enum):
    PM2_5 = "PM2.5"
    O3 = "O3"


# (upper bound inclusive, AirNow category number, name); anything above the
# last bound is Hazardous.
AQI_BREAKPOINTS: Tuple[Tuple[int, int, str], ...] = (
    (50, 1, "Good"),
    (100, 2, "Moderate"),
    (150, 3, "Unhealthy for Sensitive Groups"),
    (200, 4, "Unhealthy"),
    (300, 5, "Very Unhealthy"),
)
HAZARDOUS: Tuple[int, str] = (6, "Hazardous")


def aqi_category(aqi_value: int) -> Tuple[int, str]:
    for upper, number, name in AQI_BREAKPOINTS:
        if aqi_value <= upper:
            return number, name
    return HAZARDOUS


def get_category_name(aqi_value: int) -> str:
    return aqi_category(aqi_value)[1]


def round_half_up(total: int, count: int) -> int:
    """Mean of ``total / count`` rounded half away from zero (``2.5 -> 3``)."""
    mean = Decimal(total) / Decimal(count)
    return int(mean.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def average_by_parameter(observations: Sequence[StationObservation]) -> List[StationObservation]:
    """One averaged observation per recognised pollutant, in first-seen order.

    Parameters other than PM2.5 and O3 are dropped, as are reports with a
    negative AQI. Location and timestamp fields come from the first report
    of each group.
    """
    recognised = {p.value for p in Parameter}
    groups: Dict[str, List[StationObservation]] = {}
    for observation in observations:
        # AirNow reports AQI -1 for a station without a valid reading.
        if observation.parameter in recognised and observation.aqi >= 0:
            groups.setdefault(observation.parameter, []).append(observation)

    averaged = []
    for members in groups.values():
        average_aqi = round_half_up(sum(o.aqi for o in members), len(members))
        number, name = aqi_category(average_aqi)
        averaged.append(
            replace(
                members[0],
                aqi=average_aqi,
                category_number=number,
                category_name=name,
                reporting_area=f"Average of {len(members)} stations",
            )
        )
    return averaged


def reduce_observations(observations: Sequence[StationObservation]) -> List[StationObservation]:
    """Averaged set when there is one, otherwise the raw input unchanged."""
    averaged = average_by_parameter(observations)
    return averaged if averaged else list(observations)


__all__ = [
    "AQI_BREAKPOINTS",
    "Parameter",
    "aqi_category",
    "average_by_parameter",
    "get_category_name",
    "reduce_observations",
    "round_half_up",
]
