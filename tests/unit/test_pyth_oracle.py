"""Unit tests for the Pyth oracle: response parsing and error handling."""
from __future__ import annotations

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from redbank.config import PythConfig
from redbank.oracles.pyth import PythOracle


@pytest.fixture()
def oracle(sample_pyth_config: PythConfig) -> PythOracle:
    return PythOracle(sample_pyth_config)


def _make_pyth_response(items: list[dict]) -> dict:
    return {"parsed": items}


def _mock_session(status: int = 200, data: dict | None = None) -> AsyncMock:
    mock_response = AsyncMock()
    mock_response.status = status
    mock_response.json = AsyncMock(return_value=data or {})
    mock_response.__aenter__ = AsyncMock(return_value=mock_response)
    mock_response.__aexit__ = AsyncMock(return_value=None)

    mock_session = AsyncMock()
    mock_session.get = MagicMock(return_value=mock_response)
    mock_session.__aenter__ = AsyncMock(return_value=mock_session)
    mock_session.__aexit__ = AsyncMock(return_value=None)
    return mock_session


class TestPythOracleFetchPrices:
    @pytest.mark.asyncio
    async def test_parses_response_correctly(self, oracle: PythOracle) -> None:
        mock_session = _mock_session(
            data=_make_pyth_response(
                [
                    {"id": "aaa111", "price": {"price": "8012345678", "expo": "-8"}},
                    {"id": "bbb222", "price": {"price": "100000000", "expo": "-8"}},
                ]
            )
        )

        with patch("redbank.oracles.pyth.aiohttp.ClientSession", return_value=mock_session):
            with patch("redbank.oracles.pyth.aiohttp.TCPConnector"):
                prices = await oracle.fetch_prices()

        assert prices["LUNA"] == Decimal("80.12345678")
        assert prices["UST"] == Decimal("1")

    @pytest.mark.asyncio
    async def test_prefixed_feed_ids_match(self) -> None:
        oracle = PythOracle(PythConfig(hermes_url="https://x.com", feeds={"LUNA": "0xAAA111"}))
        mock_session = _mock_session(
            data=_make_pyth_response(
                [{"id": "aaa111", "price": {"price": "6000", "expo": "-2"}}]
            )
        )

        with patch("redbank.oracles.pyth.aiohttp.ClientSession", return_value=mock_session):
            with patch("redbank.oracles.pyth.aiohttp.TCPConnector"):
                prices = await oracle.fetch_prices()

        assert prices == {"LUNA": Decimal("60")}

    @pytest.mark.asyncio
    async def test_handles_http_error(self, oracle: PythOracle) -> None:
        mock_session = _mock_session(status=500)

        with patch("redbank.oracles.pyth.aiohttp.ClientSession", return_value=mock_session):
            with patch("redbank.oracles.pyth.aiohttp.TCPConnector"):
                prices = await oracle.fetch_prices()

        assert prices == {}

    @pytest.mark.asyncio
    async def test_handles_network_error(self, oracle: PythOracle) -> None:
        mock_session = _mock_session()
        mock_session.get = MagicMock(side_effect=aiohttp.ClientConnectionError("timeout"))

        with patch("redbank.oracles.pyth.aiohttp.ClientSession", return_value=mock_session):
            with patch("redbank.oracles.pyth.aiohttp.TCPConnector"):
                prices = await oracle.fetch_prices()

        assert prices == {}

    @pytest.mark.asyncio
    async def test_malformed_price_returns_empty(self, oracle: PythOracle) -> None:
        mock_session = _mock_session(
            data=_make_pyth_response(
                [
                    {"id": "aaa111", "price": {"price": "8000000000", "expo": "-8"}},
                    {"id": "bbb222", "price": {"price": "n/a", "expo": "-8"}},
                ]
            )
        )

        with patch("redbank.oracles.pyth.aiohttp.ClientSession", return_value=mock_session):
            with patch("redbank.oracles.pyth.aiohttp.TCPConnector"):
                prices = await oracle.fetch_prices()

        assert prices == {}

    @pytest.mark.asyncio
    async def test_symbol_filter(self, oracle: PythOracle) -> None:
        mock_session = _mock_session(
            data=_make_pyth_response(
                [{"id": "aaa111", "price": {"price": "8000000000", "expo": "-8"}}]
            )
        )

        with patch("redbank.oracles.pyth.aiohttp.ClientSession", return_value=mock_session):
            with patch("redbank.oracles.pyth.aiohttp.TCPConnector"):
                prices = await oracle.fetch_prices(symbols=["LUNA"])

        assert "LUNA" in prices
        # UST not requested
        assert "UST" not in prices
        url = mock_session.get.call_args.args[0]
        assert "ids[]=aaa111" in url
        assert "bbb222" not in url

    @pytest.mark.asyncio
    async def test_empty_feeds_returns_empty(self) -> None:
        oracle = PythOracle(PythConfig(hermes_url="https://x.com", feeds={}))
        prices = await oracle.fetch_prices()
        assert prices == {}
