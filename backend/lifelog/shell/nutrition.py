"""Nutrition Lookup - External nutrition providers with a local fallback.

Providers are tried in order (Edamam, then Nutritionix) when their credentials
are configured. Any provider failure or timeout is logged and the next one is
tried; the local per-100g table always answers last. `lookup()` never raises.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol, Sequence

import httpx

from ..core.estimators import estimate_food, round_half_up, round_places
from ..core.models import NutritionEstimate
from ..core.tables import DEFAULT_FOOD_TABLE, LookupTable, NutrientProfile


logger = logging.getLogger(__name__)

EDAMAM_URL = "https://api.edamam.com/api/food-database/v2/parser"
NUTRITIONIX_URL = "https://trackapi.nutritionix.com/v2/natural/nutrients"


def _amount(value: Any, factor: float = 1.0, places: int = 1) -> float:
    try:
        return round_places(float(value or 0) * factor, places)
    except (TypeError, ValueError):
        return 0.0


class NutritionProvider(Protocol):
    name: str

    async def fetch(
        self, client: httpx.AsyncClient, food_name: str, quantity: float, unit: str
    ) -> Optional[NutritionEstimate]:
        """Return an estimate, or None if the provider knows no match."""
        ...


@dataclass
class EdamamProvider:
    """Edamam Food Database parser. Nutrients come back per 100g."""

    app_id: str
    app_key: str
    url: str = EDAMAM_URL
    name: str = "edamam"

    async def fetch(
        self, client: httpx.AsyncClient, food_name: str, quantity: float, unit: str
    ) -> Optional[NutritionEstimate]:
        response = await client.get(self.url, params={
            "app_id": self.app_id,
            "app_key": self.app_key,
            "ingr": f"{quantity}{unit} {food_name}",
            "nutrition-type": "logging",
        })
        response.raise_for_status()

        hints = response.json().get("hints") or []
        if not hints:
            return None
        nutrients = hints[0]["food"]["nutrients"]
        factor = quantity / 100

        return NutritionEstimate(
            calories=round_half_up(float(nutrients.get("ENERC_KCAL") or 0) * factor),
            protein=_amount(nutrients.get("PROCNT"), factor),
            carbs=_amount(nutrients.get("CHOCDF"), factor),
            fat=_amount(nutrients.get("FAT"), factor),
            fiber=_amount(nutrients.get("FIBTG"), factor),
            sugar=_amount(nutrients.get("SUGAR"), factor),
            source=self.name,
        )


@dataclass
class NutritionixProvider:
    """Nutritionix natural-language endpoint. Values are for the whole query."""

    app_id: str
    api_key: str
    url: str = NUTRITIONIX_URL
    name: str = "nutritionix"

    async def fetch(
        self, client: httpx.AsyncClient, food_name: str, quantity: float, unit: str
    ) -> Optional[NutritionEstimate]:
        response = await client.post(
            self.url,
            json={"query": f"{quantity}g {food_name}"},
            headers={"x-app-id": self.app_id, "x-app-key": self.api_key},
        )
        response.raise_for_status()

        foods = response.json().get("foods") or []
        if not foods:
            return None
        food = foods[0]

        return NutritionEstimate(
            calories=round_half_up(float(food.get("nf_calories") or 0)),
            protein=_amount(food.get("nf_protein")),
            carbs=_amount(food.get("nf_total_carbohydrate")),
            fat=_amount(food.get("nf_total_fat")),
            fiber=_amount(food.get("nf_dietary_fiber")),
            sugar=_amount(food.get("nf_sugars")),
            source=self.name,
        )


class NutritionLookup:
    """Resolve nutrition for a food name, failing soft.

    Args:
        providers: External providers, tried in order
        table: Local per-100g table used when every provider fails
        timeout: Seconds allowed per provider call
        transport: Optional httpx transport (tests use httpx.MockTransport)
    """

    def __init__(
        self,
        providers: Sequence[NutritionProvider] = (),
        table: LookupTable[NutrientProfile] = DEFAULT_FOOD_TABLE,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.providers = list(providers)
        self.table = table
        self.timeout = timeout
        self._transport = transport

    async def lookup(self, food_name: str, quantity: float = 100, unit: str = "g") -> NutritionEstimate:
        """Look up nutrition for `quantity` `unit` of `food_name`.

        Returns:
            The first provider's estimate, or the local table estimate
            tagged "estimated"
        """
        if self.providers:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                for provider in self.providers:
                    result = await self._try_provider(provider, client, food_name, quantity, unit)
                    if result is not None:
                        return result

        logger.debug("Using local estimate for %s", food_name)
        return estimate_food(food_name, quantity, unit, self.table)

    async def _try_provider(
        self,
        provider: NutritionProvider,
        client: httpx.AsyncClient,
        food_name: str,
        quantity: float,
        unit: str,
    ) -> Optional[NutritionEstimate]:
        try:
            return await asyncio.wait_for(
                provider.fetch(client, food_name, quantity, unit), self.timeout
            )
        except asyncio.TimeoutError:
            logger.warning("%s lookup timed out for %s", provider.name, food_name)
        except Exception as e:
            logger.warning("%s lookup failed for %s: %s", provider.name, food_name, str(e))
        return None


def build_providers(
    edamam_app_id: str | None = None,
    edamam_app_key: str | None = None,
    nutritionix_app_id: str | None = None,
    nutritionix_api_key: str | None = None,
) -> list[NutritionProvider]:
    """Providers for whichever credentials are present, Edamam first."""
    providers: list[NutritionProvider] = []
    if edamam_app_id and edamam_app_key:
        providers.append(EdamamProvider(app_id=edamam_app_id, app_key=edamam_app_key))
    if nutritionix_app_id and nutritionix_api_key:
        providers.append(NutritionixProvider(app_id=nutritionix_app_id, api_key=nutritionix_api_key))
    return providers
