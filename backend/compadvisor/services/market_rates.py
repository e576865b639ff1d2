"""
Market Salary Bands

Maps (role, experience band) to a market salary band (min / mid / max).
The table is organizational policy data: the rule engine receives it as an
injected object and never hard-codes any figure from it. Deployments can
replace the defaults with a JSON file (settings.MARKET_RATES_PATH) shaped as

    {"software engineer": {"junior": [600000, 800000, 1000000], ...},
     "*": {"junior": [...], "mid": [...], "senior": [...], "principal": [...]}}

The "*" role is the fallback for roles the table does not list and must
define every experience band, so a partial table fails at load time.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional, Sequence

from compadvisor.schemas.employee import ExperienceBand

logger = logging.getLogger(__name__)

FALLBACK_ROLE = "*"


@dataclass(frozen=True)
class MarketBand:
    """Market salary band for one role/experience combination"""
    min: float
    mid: float
    max: float

    def __post_init__(self):
        if not (0 <= self.min <= self.mid <= self.max):
            raise ValueError(
                f"Market band must satisfy 0 <= min <= mid <= max, got {self.min}/{self.mid}/{self.max}"
            )

    def to_dict(self) -> Dict[str, float]:
        return {"min": self.min, "mid": self.mid, "max": self.max}


# Annual INR figures
DEFAULT_MARKET_RATES: Dict[str, Dict[str, Sequence[float]]] = {
    FALLBACK_ROLE: {
        "junior": (400_000, 600_000, 800_000),
        "mid": (800_000, 1_100_000, 1_400_000),
        "senior": (1_400_000, 1_900_000, 2_400_000),
        "principal": (2_400_000, 3_200_000, 4_000_000),
    },
    "software engineer": {
        "junior": (600_000, 900_000, 1_200_000),
        "mid": (1_200_000, 1_600_000, 2_000_000),
        "senior": (2_000_000, 2_700_000, 3_400_000),
        "principal": (3_400_000, 4_500_000, 5_600_000),
    },
    "data scientist": {
        "junior": (700_000, 1_000_000, 1_300_000),
        "mid": (1_300_000, 1_700_000, 2_100_000),
        "senior": (2_100_000, 2_800_000, 3_500_000),
        "principal": (3_500_000, 4_600_000, 5_700_000),
    },
    "product manager": {
        "junior": (800_000, 1_100_000, 1_400_000),
        "mid": (1_400_000, 1_900_000, 2_400_000),
        "senior": (2_400_000, 3_100_000, 3_800_000),
        "principal": (3_800_000, 4_800_000, 5_800_000),
    },
    "sales executive": {
        "junior": (350_000, 500_000, 650_000),
        "mid": (650_000, 900_000, 1_150_000),
        "senior": (1_150_000, 1_500_000, 1_850_000),
        "principal": (1_850_000, 2_400_000, 2_950_000),
    },
    "support engineer": {
        "junior": (300_000, 420_000, 540_000),
        "mid": (540_000, 720_000, 900_000),
        "senior": (900_000, 1_150_000, 1_400_000),
        "principal": (1_400_000, 1_800_000, 2_200_000),
    },
}


def _normalize_role(role: str) -> str:
    return " ".join((role or "").lower().split())


class MarketRateTable:
    """Immutable role x experience -> MarketBand lookup"""

    def __init__(self, rates: Mapping[str, Mapping[str, Sequence[float]]]):
        table: Dict[str, Dict[str, MarketBand]] = {}
        for role, bands in rates.items():
            table[_normalize_role(role) or FALLBACK_ROLE] = {
                experience.lower(): MarketBand(*[float(v) for v in values])
                for experience, values in bands.items()
            }
        if FALLBACK_ROLE not in table:
            raise ValueError(f"Market rate table needs a '{FALLBACK_ROLE}' fallback role")
        missing = [b.value for b in ExperienceBand if b.value not in table[FALLBACK_ROLE]]
        if missing:
            raise ValueError(
                f"Fallback role '{FALLBACK_ROLE}' must define every experience band, missing: {missing}"
            )
        self._table = table

    def lookup(self, role: str, experience: str) -> MarketBand:
        """
        Resolve the band for a role/experience pair.

        Falls back to the "*" role when the role is unknown or does not
        define the requested experience band.
        """
        experience = (experience or "").lower()
        role_bands = self._table.get(_normalize_role(role))
        if role_bands and experience in role_bands:
            return role_bands[experience]

        fallback = self._table[FALLBACK_ROLE]
        if experience not in fallback:
            raise KeyError(f"No market band for experience '{experience}'")
        return fallback[experience]

    @property
    def roles(self) -> Sequence[str]:
        return sorted(self._table)

    @classmethod
    def from_json_file(cls, path: str) -> "MarketRateTable":
        with Path(path).open("r", encoding="utf-8") as fh:
            data = json.load(fh)
        return cls(data)


default_market_rates = MarketRateTable(DEFAULT_MARKET_RATES)


def load_market_rates(path: Optional[str] = None) -> MarketRateTable:
    """Load the configured table, or the built-in defaults when no path is set"""
    if not path:
        return default_market_rates
    table = MarketRateTable.from_json_file(path)
    logger.info(f"Loaded market rate table from {path} ({len(table.roles)} roles)")
    return table
