from __future__ import annotations

from dataclasses import dataclass, field
from http.client import HTTPException
import json
import logging
import math
import time
from typing import Any, Callable, Sequence, TypeVar
from urllib.parse import urlencode
from urllib.request import urlopen

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 15.0
DEFAULT_STOCK_SYMBOLS: tuple[str, ...] = ("AAPL", "GOOGL", "MSFT", "TSLA", "AMZN")
INDEX_SYMBOL = "SPX"

FALLBACK_BITCOIN_PRICE = 45000.0
FALLBACK_SP500_PRICE = 4500.0

CRYPTO_SOURCE = "crypto"
STOCKS_SOURCE = "stocks"

T = TypeVar("T")


@dataclass(frozen=True)
class CryptoQuote:
    symbol: str
    name: str
    price: float
    change_24h: float = 0.0
    market_cap: float = 0.0
    volume_24h: float = 0.0


@dataclass(frozen=True)
class StockQuote:
    symbol: str
    price: float
    change: float = 0.0
    change_percent: float = 0.0
    volume: int = 0


@dataclass(frozen=True)
class QuoteBundle:
    cryptos: list[CryptoQuote] = field(default_factory=list)
    stocks: list[StockQuote] = field(default_factory=list)
    degraded_sources: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class MarketPrices:
    bitcoin: float
    sp500: float
    degraded_sources: list[str] = field(default_factory=list)


class QuoteProviderUnavailable(RuntimeError):
    """Raised when a quote provider cannot return live data."""


def _get_json(url: str, timeout: float, provider_name: str) -> Any:
    try:
        with urlopen(url, timeout=timeout) as response:
            return json.load(response)
    except (OSError, ValueError, HTTPException) as exc:
        raise QuoteProviderUnavailable(f"{provider_name} unavailable") from exc


@dataclass
class CoinGeckoQuoteProvider:
    base_url: str = "https://api.coingecko.com/api/v3"
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    per_page: int = 10

    def get_crypto_quotes(self) -> list[CryptoQuote]:
        query = urlencode(
            {
                "vs_currency": "usd",
                "order": "market_cap_desc",
                "per_page": self.per_page,
                "page": 1,
                "sparkline": "false",
            }
        )
        payload = _get_json(f"{self.base_url}/coins/markets?{query}", self.timeout, "CoinGecko")
        if not isinstance(payload, list):
            raise QuoteProviderUnavailable("CoinGecko response is not a list of coins")
        quotes = [_parse_crypto_quote(item) for item in payload if isinstance(item, dict)]
        if not quotes:
            raise QuoteProviderUnavailable("CoinGecko returned no coins")
        return quotes

    def get_bitcoin_price(self) -> float:
        query = urlencode({"ids": "bitcoin", "vs_currencies": "usd"})
        payload = _get_json(f"{self.base_url}/simple/price?{query}", self.timeout, "CoinGecko")
        try:
            return float(payload["bitcoin"]["usd"])
        except (KeyError, TypeError, ValueError) as exc:
            raise QuoteProviderUnavailable("CoinGecko response missing bitcoin price") from exc


@dataclass
class AlphaVantageQuoteProvider:
    api_key: str = "demo"
    base_url: str = "https://www.alphavantage.co/query"
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    request_delay: float = 0.2
    sleep: Callable[[float], None] = time.sleep

    def get_stock_quotes(self, symbols: Sequence[str] | None = None) -> list[StockQuote]:
        requested = [symbol.strip().upper() for symbol in (symbols or DEFAULT_STOCK_SYMBOLS) if symbol.strip()]
        quotes: list[StockQuote] = []
        for index, symbol in enumerate(requested):
            if index and self.request_delay:
                self.sleep(self.request_delay)
            try:
                quote = self._fetch_global_quote(symbol)
            except QuoteProviderUnavailable as exc:
                logger.debug("Skipping %s: %s", symbol, exc)
                continue
            quotes.append(_parse_stock_quote(symbol, quote))
        if not quotes:
            raise QuoteProviderUnavailable("Alpha Vantage returned no quotes")
        return quotes

    def get_index_price(self) -> float:
        quote = self._fetch_global_quote(INDEX_SYMBOL)
        price = _parse_float(quote.get("05. price"))
        if price is None:
            raise QuoteProviderUnavailable("Alpha Vantage response missing index price")
        return price

    def _fetch_global_quote(self, symbol: str) -> dict:
        query = urlencode({"function": "GLOBAL_QUOTE", "symbol": symbol, "apikey": self.api_key})
        payload = _get_json(f"{self.base_url}?{query}", self.timeout, "Alpha Vantage")
        quote = payload.get("Global Quote") if isinstance(payload, dict) else None
        if not isinstance(quote, dict) or not quote:
            raise QuoteProviderUnavailable(f"Alpha Vantage returned no quote for {symbol}")
        return quote


@dataclass(frozen=True)
class StaticQuoteProvider:
    """Deterministic baseline quotes used when live providers fail."""

    bitcoin_price: float = FALLBACK_BITCOIN_PRICE
    sp500_price: float = FALLBACK_SP500_PRICE

    def get_crypto_quotes(self) -> list[CryptoQuote]:
        return [CryptoQuote(symbol="btc", name="Bitcoin", price=self.bitcoin_price)]

    def get_bitcoin_price(self) -> float:
        return self.bitcoin_price

    def get_stock_quotes(self, symbols: Sequence[str] | None = None) -> list[StockQuote]:
        return [StockQuote(symbol=INDEX_SYMBOL, price=self.sp500_price)]

    def get_index_price(self) -> float:
        return self.sp500_price


@dataclass
class CompositeQuoteProvider:
    crypto: CoinGeckoQuoteProvider | StaticQuoteProvider
    stocks: AlphaVantageQuoteProvider | StaticQuoteProvider
    fallback: StaticQuoteProvider = field(default_factory=StaticQuoteProvider)

    def fetch_crypto_quotes(self) -> QuoteBundle:
        degraded: list[str] = []
        cryptos = self._with_fallback(
            CRYPTO_SOURCE,
            self.crypto.get_crypto_quotes,
            self.fallback.get_crypto_quotes,
            degraded,
        )
        return QuoteBundle(cryptos=cryptos, degraded_sources=degraded)

    def fetch_stock_quotes(self, symbols: Sequence[str] | None = None) -> QuoteBundle:
        degraded: list[str] = []
        stocks = self._with_fallback(
            STOCKS_SOURCE,
            lambda: self.stocks.get_stock_quotes(symbols),
            lambda: self.fallback.get_stock_quotes(symbols),
            degraded,
        )
        return QuoteBundle(stocks=stocks, degraded_sources=degraded)

    def fetch_quotes(self, symbols: Sequence[str] | None = None) -> QuoteBundle:
        crypto_bundle = self.fetch_crypto_quotes()
        stock_bundle = self.fetch_stock_quotes(symbols)
        return QuoteBundle(
            cryptos=crypto_bundle.cryptos,
            stocks=stock_bundle.stocks,
            degraded_sources=crypto_bundle.degraded_sources + stock_bundle.degraded_sources,
        )

    def fetch_prices(self) -> MarketPrices:
        degraded: list[str] = []
        bitcoin = self._with_fallback(
            CRYPTO_SOURCE,
            self.crypto.get_bitcoin_price,
            self.fallback.get_bitcoin_price,
            degraded,
        )
        sp500 = self._with_fallback(
            STOCKS_SOURCE,
            self.stocks.get_index_price,
            self.fallback.get_index_price,
            degraded,
        )
        return MarketPrices(bitcoin=bitcoin, sp500=sp500, degraded_sources=degraded)

    @staticmethod
    def _with_fallback(
        source: str,
        primary: Callable[[], T],
        fallback: Callable[[], T],
        degraded: list[str],
    ) -> T:
        try:
            return primary()
        except QuoteProviderUnavailable as exc:
            logger.warning("Live %s quotes unavailable, using fallback: %s", source, exc)
            degraded.append(source)
            return fallback()


def build_default_provider(
    alpha_vantage_api_key: str = "demo",
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> CompositeQuoteProvider:
    return CompositeQuoteProvider(
        crypto=CoinGeckoQuoteProvider(timeout=timeout),
        stocks=AlphaVantageQuoteProvider(api_key=alpha_vantage_api_key, timeout=timeout),
    )


def fetch_market_prices(provider: CompositeQuoteProvider | None = None) -> MarketPrices:
    """Current bitcoin and S&P 500 prices, never raising on provider failure."""
    return (provider or build_default_provider()).fetch_prices()


def _parse_crypto_quote(item: dict) -> CryptoQuote:
    return CryptoQuote(
        symbol=str(item.get("symbol") or ""),
        name=str(item.get("name") or ""),
        price=_parse_float(item.get("current_price")) or 0.0,
        change_24h=_parse_float(item.get("price_change_percentage_24h")) or 0.0,
        market_cap=_parse_float(item.get("market_cap")) or 0.0,
        volume_24h=_parse_float(item.get("total_volume")) or 0.0,
    )


def _parse_stock_quote(symbol: str, quote: dict) -> StockQuote:
    volume = _parse_float(quote.get("06. volume"))
    return StockQuote(
        symbol=symbol,
        price=_parse_float(quote.get("05. price")) or 0.0,
        change=_parse_float(quote.get("09. change")) or 0.0,
        change_percent=_parse_float(quote.get("10. change percent")) or 0.0,
        volume=int(volume) if volume is not None and math.isfinite(volume) else 0,
    )


def _parse_float(value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip().rstrip("%")
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
