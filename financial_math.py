import logging
import math
import re
from dataclasses import dataclass, field
from typing import Optional

import numpy as np
import pandas as pd

from config import ROLLING_WINDOW_MONTHS

logger = logging.getLogger(__name__)

# ============================================================
# CONFIG / CONSTANTS
# ============================================================
MONTHS_PER_YEAR = 12

# Bisection settings for the money-weighted return
IRR_MIN_RATE = -0.99
IRR_MAX_RATE = 1.0
IRR_TOLERANCE = 1e-7
IRR_MAX_ITER = 100

_MONTH_RE = re.compile(r"^\d{4}-\d{2}$")


# ------------------------------------------------------------
# Return series helpers
# ------------------------------------------------------------

def _empty_series() -> pd.Series:
    return pd.Series(dtype=float, name="value")


def _month_label(value) -> str:
    if isinstance(value, (pd.Timestamp, pd.Period)):
        return value.strftime("%Y-%m")
    label = str(value)[:7]
    if not _MONTH_RE.match(label):
        raise ValueError(f"Return date must be formatted YYYY-MM, got {value!r}")
    return label


def previous_month(date: str) -> str:
    """'2020-01' -> '2019-12'."""
    return (pd.Period(date, freq="M") - 1).strftime("%Y-%m")


def to_return_series(returns) -> pd.Series:
    """
    Normalize monthly returns into a float Series indexed by 'YYYY-MM'.

    Accepts:
      - a pd.Series (index of month strings, Timestamps or Periods)
      - a list of {"date": "YYYY-MM", "value": float} records
      - a list of (date, value) pairs

    The result is sorted ascending by month. Gaps are left as-is.
    """
    if returns is None:
        return _empty_series()

    if isinstance(returns, pd.Series):
        if returns.empty:
            return _empty_series()
        series = returns.astype(float).copy()
        series.index = [_month_label(d) for d in series.index]
        series.name = "value"
        return series.sort_index()

    dates = []
    values = []
    for rec in returns:
        if isinstance(rec, dict):
            if "date" not in rec or "value" not in rec:
                raise ValueError(f"Return record missing 'date' or 'value': {rec!r}")
            d, v = rec["date"], rec["value"]
        else:
            d, v = rec
        dates.append(_month_label(d))
        values.append(float(v))

    if not dates:
        return _empty_series()

    return pd.Series(values, index=dates, dtype=float, name="value").sort_index()


def series_to_records(series: pd.Series) -> list:
    """Convert a month-indexed Series back to [{"date", "value"}, ...]."""
    return [{"date": str(d), "value": float(v)} for d, v in series.items()]


# ------------------------------------------------------------
# Fee adjustment & blending
# ------------------------------------------------------------

@dataclass
class WeightedComponent:
    """One strategy (or benchmark) inside a blend. Weight is fractional (0.6 = 60%)."""

    returns: object
    weight: float
    name: Optional[str] = None
    asset_allocation: Optional[dict] = field(default=None)


def as_component(item) -> WeightedComponent:
    if isinstance(item, WeightedComponent):
        return item
    if isinstance(item, dict):
        return WeightedComponent(
            returns=item.get("returns"),
            weight=float(item.get("weight", 0.0)),
            name=item.get("name"),
            asset_allocation=item.get("assetAllocation", item.get("asset_allocation")),
        )
    returns, weight = item
    return WeightedComponent(returns=returns, weight=float(weight))


def adjust_returns_by_fee(returns, annual_fee_percent) -> pd.Series:
    """
    Deduct an annual adviser fee pro-rata from every monthly return.

    A 1% annual fee reduces each month by 1/12 of a percent (0.000833...).
    The deduction is simple, not compounded. Zero, negative or missing fees
    leave the values untouched.
    """
    series = to_return_series(returns)
    if not annual_fee_percent or annual_fee_percent <= 0:
        return series

    monthly_fee = annual_fee_percent / 100.0 / MONTHS_PER_YEAR
    return (series - monthly_fee).rename("value")


def blend_portfolios(components, annual_fee_percent=None) -> pd.Series:
    """
    Combine weighted return series into one composite series.

    Alignment:
      - The FIRST component's months define the date axis.
      - Other components contribute weight * value on matching months only;
        a month they do not cover contributes 0 (no error, no union of dates).

    The fee, if any, is deducted after blending.
    """
    components = [as_component(c) for c in components or []]
    if not components:
        return _empty_series()

    axis = to_return_series(components[0].returns).index

    blended = None
    for comp in components:
        aligned = to_return_series(comp.returns).reindex(axis)

        missing = int(aligned.isna().sum())
        if missing:
            logger.debug(
                "Component %s missing %d of %d months on the blend axis; contributing 0",
                comp.name or "<unnamed>", missing, len(axis),
            )

        contribution = aligned.fillna(0.0) * float(comp.weight)
        blended = contribution if blended is None else blended + contribution

    blended = blended.rename("value")

    if annual_fee_percent and annual_fee_percent > 0:
        return adjust_returns_by_fee(blended, annual_fee_percent)

    return blended


# ------------------------------------------------------------
# Time-weighted & money-weighted returns
# ------------------------------------------------------------

def calculate_annualized_return(returns, years: int) -> Optional[float]:
    """
    Trailing annualized TWR over the most recent `years * 12` months.

    Returns None ("insufficient data") when the series is shorter than
    the window. A zero return is a real 0.0, never a stand-in for None.
    """
    series = to_return_series(returns)
    months = years * MONTHS_PER_YEAR
    if months <= 0 or len(series) < months:
        return None

    window = series.iloc[-months:]
    product = float(np.prod(1.0 + window.to_numpy()))
    if product < 0:
        # A month below -100% leaves no real-valued annualization
        return None

    return product ** (MONTHS_PER_YEAR / months) - 1.0


def npv(rate: float, cashflows) -> float:
    flows = np.asarray(cashflows, dtype=float)
    periods = np.arange(len(flows))
    return float(np.sum(flows / (1.0 + rate) ** periods))


def irr(
    cashflows,
    min_rate: float = IRR_MIN_RATE,
    max_rate: float = IRR_MAX_RATE,
    tolerance: float = IRR_TOLERANCE,
    max_iter: int = IRR_MAX_ITER,
) -> Optional[float]:
    """
    Per-period internal rate of return by bisection on NPV.

    Returns None if there are no flows, the first flow is an inflow, the
    bounds do not bracket a sign change, or the search does not converge.
    """
    flows = list(cashflows)
    if not flows or flows[0] > 0:
        return None

    lower = min_rate
    upper = max_rate

    npv_lower = npv(lower, flows)
    npv_upper = npv(upper, flows)
    if npv_lower * npv_upper >= 0:
        return None

    guess = (lower + upper) / 2.0
    for _ in range(max_iter):
        npv_guess = npv(guess, flows)
        if abs(npv_guess) < tolerance:
            return guess

        if npv(lower, flows) * npv_guess < 0:
            upper = guess
        else:
            lower = guess
        guess = (lower + upper) / 2.0

    return None


def build_distribution_cashflows(returns, initial_investment: float, monthly_distribution: float) -> list:
    """
    Investor cash flows for a portfolio paying a fixed monthly distribution.

      - t=0: -initial_investment
      - each month: value grows by that month's return, then the
        distribution is withdrawn, clamped to what is left
      - the final month also receives the remaining value (liquidation)
    """
    values = to_return_series(returns).to_numpy()

    portfolio_value = float(initial_investment)
    cashflows = [-float(initial_investment)]

    for r in values:
        portfolio_value *= 1.0 + r
        withdrawal = min(portfolio_value, monthly_distribution)
        cashflows.append(withdrawal)
        portfolio_value -= withdrawal

    cashflows[-1] += portfolio_value
    return cashflows


def calculate_irr_for_period(
    returns,
    years: int,
    initial_investment: float,
    monthly_distribution: float,
) -> Optional[float]:
    """Annualized money-weighted return over the trailing `years` window."""
    series = to_return_series(returns)
    months = years * MONTHS_PER_YEAR
    if len(series) < months or initial_investment <= 0 or monthly_distribution <= 0:
        return None

    cashflows = build_distribution_cashflows(series.iloc[-months:], initial_investment, monthly_distribution)

    monthly_irr = irr(cashflows)
    if monthly_irr is None:
        logger.debug("IRR did not converge for %d-year window", years)
        return None

    return (1.0 + monthly_irr) ** MONTHS_PER_YEAR - 1.0


# ------------------------------------------------------------
# Risk
# ------------------------------------------------------------

def calculate_annualized_volatility(returns) -> Optional[float]:
    """
    Sample standard deviation (n - 1) of ALL monthly returns, times sqrt(12).

    Note: volatility always uses the full history, unlike the trailing
    return windows.
    """
    series = to_return_series(returns)
    if len(series) < 2:
        return None
    return float(series.std(ddof=1)) * math.sqrt(MONTHS_PER_YEAR)


@dataclass(frozen=True)
class Drawdown:
    peak_date: str
    trough_date: str
    recovery_date: Optional[str]
    drawdown: float

    def to_dict(self) -> dict:
        return {
            "peakDate": self.peak_date,
            "troughDate": self.trough_date,
            "recoveryDate": self.recovery_date,
            "drawdown": self.drawdown,
        }


def calculate_drawdowns(returns, top_n: int = 3) -> list:
    """
    Peak-to-trough episodes on the cumulative wealth curve (Growth of $1).

    Walk:
      - wealth starts at 1.0 the month before the first return
      - a new high closes any open episode; recovery_date is that month
      - while below the peak, the lowest wealth seen is the trough
      - an episode still open at the end has recovery_date = None

    Returns the `top_n` most severe episodes, worst first.
    """
    series = to_return_series(returns)
    if series.empty:
        return []

    wealth = (1.0 + series).cumprod()

    peak_wealth = 1.0
    peak_date = previous_month(series.index[0])
    trough_wealth = peak_wealth
    trough_date = peak_date
    in_drawdown = False

    episodes = []

    for current_date, current_wealth in wealth.items():
        if current_wealth > peak_wealth:
            if in_drawdown:
                episodes.append(Drawdown(
                    peak_date=peak_date,
                    trough_date=trough_date,
                    recovery_date=current_date,
                    drawdown=(trough_wealth - peak_wealth) / peak_wealth,
                ))
                in_drawdown = False
            peak_wealth = current_wealth
            peak_date = current_date
        elif current_wealth < peak_wealth:
            if not in_drawdown or current_wealth < trough_wealth:
                trough_wealth = current_wealth
                trough_date = current_date
            in_drawdown = True

    if in_drawdown:
        episodes.append(Drawdown(
            peak_date=peak_date,
            trough_date=trough_date,
            recovery_date=None,
            drawdown=(trough_wealth - peak_wealth) / peak_wealth,
        ))

    episodes.sort(key=lambda d: d.drawdown)
    return episodes[:top_n]


# ------------------------------------------------------------
# Rolling returns
# ------------------------------------------------------------

def calculate_rolling_returns(returns, window_months: int = ROLLING_WINDOW_MONTHS) -> pd.Series:
    """Compounded trailing-window returns, indexed by each window's last month."""
    series = to_return_series(returns)
    if window_months <= 0 or len(series) < window_months:
        return _empty_series()

    growth = (1.0 + series).rolling(window=window_months).apply(np.prod, raw=True)
    return (growth.dropna() - 1.0).rename("value")


@dataclass(frozen=True)
class RollingReturnBin:
    name: str
    value: int
    lower_bound: float

    def to_dict(self) -> dict:
        return {"name": self.name, "value": self.value, "lowerBound": self.lower_bound}


@dataclass(frozen=True)
class RollingReturnsAnalysis:
    percent_positive: float
    percent_negative: float
    distribution: list


def build_rolling_return_histogram(rolling) -> list:
    """
    Bucket rolling returns into ~10 equal-width bins labelled in percent.

    Width = max(1%, (ceil(max) - floor(min)) / 10), with min/max rounded
    outward to the nearest 10%. Bins are ordered by numeric lower bound.
    """
    values = np.asarray(rolling, dtype=float)
    if values.size == 0:
        return []

    low = math.floor(values.min() * 10) / 10
    high = math.ceil(values.max() * 10) / 10
    bin_size = max(0.01, (high - low) / 10)

    bucket_idx = pd.Series(np.floor(values / bin_size).astype(int))
    counts = bucket_idx.value_counts().sort_index()

    bins = []
    for idx, count in counts.items():
        start = idx * bin_size
        name = f"{start * 100:.0f}% to {(start + bin_size) * 100:.0f}%"
        bins.append(RollingReturnBin(name=name, value=int(count), lower_bound=float(start)))

    return bins


def analyze_rolling_returns(rolling) -> RollingReturnsAnalysis:
    """
    Positive / negative frequency of rolling returns plus their histogram.

    Zero counts as non-positive. An empty input gives 0 / 0 and no bins.
    """
    values = np.asarray(rolling, dtype=float)
    if values.size == 0:
        return RollingReturnsAnalysis(percent_positive=0.0, percent_negative=0.0, distribution=[])

    percent_positive = float((values > 0).sum()) / values.size * 100.0

    return RollingReturnsAnalysis(
        percent_positive=percent_positive,
        percent_negative=100.0 - percent_positive,
        distribution=build_rolling_return_histogram(values),
    )


# ------------------------------------------------------------
# Growth of $1
# ------------------------------------------------------------

def calculate_growth_of_dollar(returns) -> pd.Series:
    """
    Cumulative wealth of $1, starting at 1.0 one month before the first
    return and compounding by (1 + r) each month after.
    """
    series = to_return_series(returns)
    if series.empty:
        return _empty_series()

    wealth = (1.0 + series).cumprod()
    baseline = pd.Series([1.0], index=[previous_month(series.index[0])], dtype=float)
    return pd.concat([baseline, wealth]).rename("value")


def scale_growth_series(growth: pd.Series, amount: float) -> pd.Series:
    """Growth of $1 expressed in dollars of an initial investment."""
    return (growth * float(amount)).rename("value")
