"""
Frankfurter FX API integration.

Frankfurter publishes ECB reference rates. A dated request returns the rate
for that day, or for the closest preceding business day on weekends and
holidays.
"""

import logging
from datetime import date
from decimal import Decimal

import httpx
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from src.ledger.config import FxConfig
from src.ledger.errors import UpstreamError

logger = logging.getLogger(__name__)


class FrankfurterQuote(BaseModel):
    """
    Frankfurter response body.

    Example: {"amount": 1.0, "base": "GBP", "date": "2024-05-01",
    "rates": {"ZAR": 23.41}}
    """

    amount: Decimal = Field(default=Decimal("1"))
    base: str
    quote_date: date = Field(alias="date")
    rates: dict[str, Decimal] = Field(default_factory=dict)

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def rate_for(self, symbol: str) -> Decimal | None:
        """Rate per one unit of the base currency, or None if not quoted."""
        rate = self.rates.get(symbol)
        if rate is None or self.amount == 0:
            return None
        return rate / self.amount


class FrankfurterClient:
    """
    GBP to ZAR rate source backed by the Frankfurter HTTP API.

    Satisfies FxRateProviderProtocol. Failures are raised as UpstreamError and
    never retried here.
    """

    base_currency = "GBP"
    quote_currency = "ZAR"

    def __init__(
        self,
        config: FxConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            config: FX configuration (defaults from environment)
            http_client: Pre-built HTTP client, mainly for tests

        """
        self.config = config or FxConfig()
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=self.config.timeout_seconds,
        )

    async def rate_on(self, day: date) -> Decimal:
        """
        Fetch the GBP to ZAR rate for a civil date.

        Raises:
            UpstreamError: On transport failure, error status or missing rate

        """
        path = f"/{day.isoformat()}"
        params = {"from": self.base_currency, "to": self.quote_currency}
        logger.info(f"Fetching {self.base_currency}/{self.quote_currency} for {day}")

        try:
            response = await self._http.get(path, params=params)
            response.raise_for_status()
            quote = FrankfurterQuote.model_validate_json(response.content)
        except httpx.HTTPStatusError as e:
            logger.error(f"Frankfurter returned {e.response.status_code} for {day}")
            raise UpstreamError(
                f"FX provider returned {e.response.status_code} for {day}"
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Frankfurter request failed for {day}: {e}")
            raise UpstreamError(f"FX provider unreachable: {e}") from e
        except PydanticValidationError as e:
            logger.error(f"Unparseable Frankfurter response for {day}: {e}")
            raise UpstreamError(f"FX provider sent an invalid response for {day}") from e

        rate = quote.rate_for(self.quote_currency)
        if rate is None or rate <= 0:
            raise UpstreamError(f"FX provider has no {self.quote_currency} rate for {day}")
        return rate

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self._http.aclose()
