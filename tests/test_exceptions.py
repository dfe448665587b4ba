"""Tests for custom exception hierarchy."""

from paperbull.core.exceptions import (
    BacktestNotFoundError,
    DataUnavailableError,
    InsufficientDataError,
    InvalidStrategyError,
    InvalidSymbolError,
    MarketDataError,
    PaperBullError,
)
from paperbull.main import status_for


class TestExceptionHierarchy:
    def test_all_inherit_from_base(self):
        for exc_cls in (
            MarketDataError,
            DataUnavailableError,
            InvalidSymbolError,
            InsufficientDataError,
            InvalidStrategyError,
            BacktestNotFoundError,
        ):
            assert issubclass(exc_cls, PaperBullError)
            assert issubclass(exc_cls, Exception)

    def test_base_has_message_and_code(self):
        e = PaperBullError("test msg", "TEST_CODE")
        assert e.message == "test msg"
        assert e.code == "TEST_CODE"
        assert str(e) == "test msg"

    def test_insufficient_data_defaults(self):
        e = InsufficientDataError()
        assert "50 data points" in e.message
        assert e.code == "INSUFFICIENT_DATA"

    def test_custom_message(self):
        e = InvalidStrategyError("Unknown strategy: foo")
        assert e.message == "Unknown strategy: foo"
        assert e.code == "INVALID_STRATEGY"

    def test_data_unavailable_is_market_data_error(self):
        try:
            raise DataUnavailableError("no source")
        except MarketDataError as e:
            assert e.code == "DATA_UNAVAILABLE"


class TestStatusMapping:
    def test_client_errors(self):
        assert status_for(InvalidStrategyError()) == 400
        assert status_for(InvalidSymbolError()) == 400
        assert status_for(InsufficientDataError()) == 400

    def test_not_found(self):
        assert status_for(DataUnavailableError()) == 404
        assert status_for(BacktestNotFoundError()) == 404

    def test_everything_else_is_500(self):
        assert status_for(MarketDataError()) == 500
        assert status_for(PaperBullError("x", "X")) == 500
