import pandas as pd
import pytest

from ticker_returns import (
    TickerDataError,
    build_ticker_composite,
    month_range,
    monthly_returns_from_prices,
    normalize_ticker_returns,
)


def test_monthly_returns_from_month_end_closes() -> None:
    prices = pd.Series(
        [100.0, 110.0, None, 99.0],
        index=pd.to_datetime(["2020-01-31", "2020-02-29", "2020-03-31", "2020-04-30"]),
    )
    rets = monthly_returns_from_prices(prices)

    assert list(rets.index) == ["2020-02", "2020-04"]
    assert rets.iloc[0] == pytest.approx(0.10)
    assert rets.iloc[1] == pytest.approx(-0.10)


def test_monthly_returns_from_empty_prices() -> None:
    assert monthly_returns_from_prices(pd.Series(dtype=float)).empty


def test_month_range_is_inclusive() -> None:
    assert month_range("2019-11", "2020-02") == ["2019-11", "2019-12", "2020-01", "2020-02"]


def test_normalize_uses_common_range(make_returns) -> None:
    out = normalize_ticker_returns(
        {
            "spy": make_returns([0.01] * 12, start="2015-01"),
            "AGG": make_returns([0.002] * 16, start="2015-03"),
        },
        primary_start="2014-01",
        primary_end="2016-12",
    )

    assert set(out) == {"SPY", "AGG"}
    assert list(out["SPY"].index) == month_range("2015-03", "2015-12")
    assert list(out["AGG"].index) == month_range("2015-03", "2015-12")
    assert not out["SPY"].isna().any()


def test_normalize_falls_back_to_primary_range_and_pads(make_returns, caplog) -> None:
    with caplog.at_level("WARNING"):
        out = normalize_ticker_returns(
            {
                "AAA": make_returns([0.01, 0.02, 0.03], start="2015-01"),
                "BBB": make_returns([0.04, 0.05, 0.06], start="2016-01"),
            },
            primary_start="2015-01",
            primary_end="2016-06",
        )

    assert len(out["AAA"]) == 18
    assert out["AAA"].loc["2015-02"] == pytest.approx(0.02)
    assert out["AAA"].loc["2016-01"] == 0.0
    assert out["BBB"].loc["2015-01"] == 0.0
    assert out["BBB"].loc["2016-03"] == pytest.approx(0.06)
    assert "using primary range" in caplog.text
    assert "Missing data for AAA" in caplog.text


@pytest.mark.parametrize(
    "tickers, start, end",
    [
        ({}, "2015-01", "2015-12"),
        ({"SPY": [("2015-01", 0.01)]}, None, "2015-12"),
        ({"SPY": [("2015-01", 0.01)]}, "2015-01", ""),
    ],
)
def test_normalize_rejects_missing_inputs(tickers, start, end) -> None:
    with pytest.raises(TickerDataError):
        normalize_ticker_returns(tickers, start, end)


def test_composite_is_weighted_sum(make_returns) -> None:
    composite = build_ticker_composite(
        {
            "SPY": make_returns([0.02] * 6, start="2020-01"),
            "AGG": make_returns([-0.01] * 6, start="2020-01"),
        },
        {"spy": 60, "agg": 40},
        "2020-01",
        "2020-06",
    )

    assert len(composite) == 6
    assert composite.name == "value"
    assert composite.tolist() == pytest.approx([0.6 * 0.02 + 0.4 * -0.01] * 6)


def test_composite_rejects_bad_weights(make_returns) -> None:
    tickers = {"SPY": make_returns([0.01] * 3, start="2020-01")}
    with pytest.raises(TickerDataError, match="sum to 100%"):
        build_ticker_composite(tickers, {"SPY": 90}, "2020-01", "2020-03")


def test_composite_rejects_weight_for_missing_ticker(make_returns) -> None:
    tickers = {"SPY": make_returns([0.02] * 3, start="2020-01")}
    with pytest.raises(TickerDataError, match="AGG"):
        build_ticker_composite(tickers, {"SPY": 50, "AGG": 50}, "2020-01", "2020-03")


def test_composite_requires_weight_for_every_ticker(make_returns) -> None:
    tickers = {
        "SPY": make_returns([0.01] * 3, start="2020-01"),
        "QQQ": make_returns([0.02] * 3, start="2020-01"),
    }
    with pytest.raises(TickerDataError, match="QQQ"):
        build_ticker_composite(tickers, {"SPY": 100}, "2020-01", "2020-03")
