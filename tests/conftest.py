from __future__ import annotations

import sys
from pathlib import Path

import pandas as pd
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def monthly_records(values, start: str = "2015-01") -> list[dict]:
    months = pd.period_range(start=start, periods=len(values), freq="M").strftime("%Y-%m")
    return [{"date": d, "value": float(v)} for d, v in zip(months, values)]


@pytest.fixture()
def make_returns():
    return monthly_records
