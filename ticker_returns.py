import logging

import pandas as pd

from financial_math import to_return_series

logger = logging.getLogger(__name__)

WEIGHT_TOLERANCE_PCT = 0.01


class TickerDataError(ValueError):
    """Raised when ticker data cannot be turned into a composite return stream."""


# ------------------------------------------------------------
# Prices -> monthly returns
# ------------------------------------------------------------

def monthly_returns_from_prices(prices: pd.Series) -> pd.Series:
    """
    Month-over-month returns from month-end adjusted closes.

    Each return is dated by the month in which it is realized, so N
    prices give N - 1 returns. Missing closes are dropped first.
    """
    px = prices.dropna().astype(float)
    if px.empty:
        return to_return_series([])

    px.index = pd.to_datetime(px.index)
    px = px.sort_index()

    rets = px.pct_change().dropna()
    return to_return_series(rets)


# ------------------------------------------------------------
# Range normalization
# ------------------------------------------------------------

def month_range(start: str, end: str) -> list:
    return list(pd.period_range(start=start, end=end, freq="M").strftime("%Y-%m"))


def normalize_ticker_returns(ticker_returns: dict, primary_start: str, primary_end: str) -> dict:
    """
    Align every ticker onto one contiguous month range.

    Range:
      - start from the primary strategy's range
      - narrow to the intersection with each ticker's own history
      - if the intersection is empty, fall back to the primary range

    Months a ticker does not cover are padded with a 0 return.
    """
    if not ticker_returns:
        raise TickerDataError("No tickers provided")
    if not primary_start or not primary_end:
        raise TickerDataError("Primary returns date range is required for normalization")

    series_by_ticker = {
        str(t).upper().strip(): to_return_series(r) for t, r in ticker_returns.items()
    }

    common_start, common_end = primary_start, primary_end
    for s in series_by_ticker.values():
        if s.empty:
            continue
        common_start = max(common_start, s.index[0])
        common_end = min(common_end, s.index[-1])

    if common_start > common_end:
        logger.warning(
            "Invalid common date range %s..%s, using primary range %s..%s",
            common_start, common_end, primary_start, primary_end,
        )
        common_start, common_end = primary_start, primary_end

    months = month_range(common_start, common_end)

    normalized = {}
    for ticker, s in series_by_ticker.items():
        aligned = s.reindex(months)
        missing = aligned.index[aligned.isna()]
        if len(missing):
            logger.warning(
                "Missing data for %s on %d month(s) (%s..%s), using 0 return",
                ticker, len(missing), missing[0], missing[-1],
            )
        normalized[ticker] = aligned.fillna(0.0).rename("value")

    return normalized


def build_ticker_composite(
    ticker_returns: dict,
    weights_percent: dict,
    primary_start: str,
    primary_end: str,
) -> pd.Series:
    """
    Weighted composite return stream for a list of tickers.

    Weights are percentages keyed by ticker and must total 100%.
    """
    weights = {str(t).upper().strip(): float(w) for t, w in (weights_percent or {}).items()}

    total = sum(weights.values())
    if abs(total - 100.0) > WEIGHT_TOLERANCE_PCT:
        raise TickerDataError(f"Ticker weights must sum to 100% (current: {total:.2f}%)")

    normalized = normalize_ticker_returns(ticker_returns, primary_start, primary_end)

    unknown = set(normalized) - set(weights)
    if unknown:
        raise TickerDataError(f"No weight given for ticker(s): {', '.join(sorted(unknown))}")

    # Every weighted ticker needs returns, or its share of the allocation vanishes
    unfetched = set(weights) - set(normalized)
    if unfetched:
        raise TickerDataError(f"No return data for weighted ticker(s): {', '.join(sorted(unfetched))}")

    composite = None
    for ticker, s in normalized.items():
        contribution = s * (weights[ticker] / 100.0)
        composite = contribution if composite is None else composite + contribution

    logger.info(
        "Composite built from %d ticker(s): %d months (%s..%s)",
        len(normalized), len(composite),
        composite.index[0] if len(composite) else None,
        composite.index[-1] if len(composite) else None,
    )
    return composite.rename("value")
