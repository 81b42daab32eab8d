"""
statistics.py - Per-variable distribution statistics

Order statistics drive the quantile-banded color policy. They are always
computed from scratch for a freshly loaded dataset; nothing is updated
incrementally.
"""

from dataclasses import asdict, dataclass
from typing import Dict, Iterable, List, Optional

import numpy as np
from loguru import logger

from .data_utils import Record

QUANTILES = (0.05, 0.25, 0.50, 0.75, 0.95)


@dataclass(frozen=True)
class VariableStatistics:
    """Min, max and the 5/25/50/75/95th percentiles of one variable."""

    min: float
    max: float
    p05: float
    p25: float
    p50: float
    p75: float
    p95: float

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


def compute_stats(values: Iterable[Optional[float]]) -> Optional[VariableStatistics]:
    """
    Compute order statistics over the non-null values of a series.

    Quantiles use the linear estimator: position q * (n - 1), interpolating
    between the floor and ceil ranked elements when the position is
    fractional.

    Args:
        values: Observations; None and NaN are ignored

    Returns:
        VariableStatistics, or None when there are no observations
    """
    observed = np.sort(
        np.array([v for v in values if v is not None], dtype=float)
    )
    observed = observed[~np.isnan(observed)]
    if observed.size == 0:
        return None

    p05, p25, p50, p75, p95 = np.quantile(observed, QUANTILES, method="linear")
    return VariableStatistics(
        min=float(observed[0]),
        max=float(observed[-1]),
        p05=float(p05),
        p25=float(p25),
        p50=float(p50),
        p75=float(p75),
        p95=float(p95),
    )


def compute_all_stats(
    records: Iterable[Record], variables: List[str]
) -> Dict[str, VariableStatistics]:
    """
    Compute statistics for every variable over all parsed records.

    Every observation counts, including rows later overwritten in the lookup
    store. Variables with no observations are left out of the result.
    """
    series: Dict[str, List[float]] = {variable: [] for variable in variables}
    for record in records:
        for variable in variables:
            value = record.values.get(variable)
            if value is not None:
                series[variable].append(value)

    stats: Dict[str, VariableStatistics] = {}
    for variable, observed in series.items():
        result = compute_stats(observed)
        if result is None:
            logger.debug(f"  📐 {variable}: no observations, statistics undefined")
            continue
        stats[variable] = result
        logger.debug(f"  📐 {variable}: {result}")
    return stats
