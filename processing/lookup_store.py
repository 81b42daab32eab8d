"""
lookup_store.py - In-memory join of municipality codes to variable values

A LookupStore maps canonical identifier -> secondary key -> variable ->
value. It is built in one forward pass over parsed Records and is read-only
afterwards; a new dataset load builds a new store rather than mutating the
current one.

A DatasetSnapshot pairs a store with the statistics computed from the same
parse, so readers never see a store from one load with statistics from
another.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional

import pandas as pd
from loguru import logger

from .data_utils import Record
from .statistics import VariableStatistics, compute_all_stats

ValueRow = Mapping[str, Optional[float]]


class LookupStore:
    """Read-only lookup of values by (identifier, secondary key, variable)."""

    def __init__(self, data: Optional[Dict[str, Dict[Optional[str], ValueRow]]] = None):
        self._data: Mapping[str, Mapping[Optional[str], ValueRow]] = MappingProxyType(
            {
                identifier: MappingProxyType(
                    {key: MappingProxyType(dict(row)) for key, row in by_key.items()}
                )
                for identifier, by_key in (data or {}).items()
            }
        )

    @classmethod
    def empty(cls) -> "LookupStore":
        return cls()

    @classmethod
    def from_records(cls, records: Iterable[Record]) -> "LookupStore":
        """Build a store; a later row for the same (identifier, key) replaces an earlier one."""
        data: Dict[str, Dict[Optional[str], ValueRow]] = {}
        overwritten = 0
        for record in records:
            by_key = data.setdefault(record.identifier, {})
            if record.secondary_key in by_key:
                overwritten += 1
            by_key[record.secondary_key] = record.values

        if overwritten:
            logger.debug(f"  🔁 {overwritten} rows replaced earlier rows for the same key")
        return cls(data)

    def get(
        self, identifier: str, variable: str, secondary_key: Optional[str] = None
    ) -> Optional[float]:
        """Value for one cell, or None for any kind of miss."""
        row = self._data.get(identifier, {}).get(secondary_key)
        if row is None:
            return None
        value = row.get(variable)
        if value is None or (isinstance(value, float) and math.isnan(value)):
            return None
        return value

    def values_for(self, variable: str, secondary_key: Optional[str] = None) -> Dict[str, float]:
        """{identifier: value} for one variable and secondary key, misses left out."""
        values = {}
        for identifier in self._data:
            value = self.get(identifier, variable, secondary_key)
            if value is not None:
                values[identifier] = value
        return values

    @property
    def identifiers(self) -> List[str]:
        return list(self._data)

    @property
    def secondary_keys(self) -> List[Optional[str]]:
        keys: Dict[Optional[str], None] = {}
        for by_key in self._data.values():
            keys.update(dict.fromkeys(by_key))
        return list(keys)

    def to_frame(self) -> pd.DataFrame:
        """Long-format frame: one row per (identifier, secondary_key)."""
        rows = [
            {"cod_mun": identifier, "secondary_key": key, **row}
            for identifier, by_key in self._data.items()
            for key, row in by_key.items()
        ]
        return pd.DataFrame(rows, columns=None if rows else ["cod_mun", "secondary_key"])

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._data

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"LookupStore({len(self)} municipalities)"


@dataclass(frozen=True)
class DatasetSnapshot:
    """A store and its statistics, published together after a complete parse."""

    dataset_id: Optional[str]
    store: LookupStore
    stats: Mapping[str, VariableStatistics] = field(default_factory=dict)
    loaded_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def empty(cls, dataset_id: Optional[str] = None) -> "DatasetSnapshot":
        return cls(dataset_id=dataset_id, store=LookupStore.empty())

    @classmethod
    def build(
        cls, dataset_id: str, records: List[Record], variables: List[str]
    ) -> "DatasetSnapshot":
        store = LookupStore.from_records(records)
        stats = compute_all_stats(records, variables)
        logger.info(
            f"📊 Built snapshot '{dataset_id}': {len(store):,} municipalities, "
            f"{len(records):,} records, stats for {len(stats)}/{len(variables)} variables"
        )
        return cls(dataset_id=dataset_id, store=store, stats=MappingProxyType(dict(stats)))

    def get(
        self, identifier: str, variable: str, secondary_key: Optional[str] = None
    ) -> Optional[float]:
        return self.store.get(identifier, variable, secondary_key)

    @property
    def is_empty(self) -> bool:
        return len(self.store) == 0
