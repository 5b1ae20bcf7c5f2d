"""
Search intent extraction via a forced OpenAI function call.

One call per new search, temperature 0, ``tool_choice="required"``. Any
response that is not a parsable ``search_venues`` call fails closed with
``IntentExtractionError``; there is no retry.
"""

import json
import logging
from datetime import date
from typing import Any, Optional

from openai import AsyncOpenAI
from pydantic import ValidationError

from resy_bot.errors import IntentExtractionError
from resy_bot.prompts.system_prompts import (
    SEARCH_TOOL,
    SEARCH_TOOL_NAME,
    build_extraction_prompt,
)
from resy_bot.schemas.reservation_schema import SearchParams

logger = logging.getLogger(__name__)

EXTRACTION_HINT = "Couldn't understand that. Try something like: \"Italian in NYC tomorrow for 4\""
DEFAULT_PARTY_SIZE = 2
DEFAULT_LOCATION = "New York"


class IntentExtractor:
    """Turns a free-text request into ``SearchParams``."""

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = "gpt-4o-mini",
        default_geo: tuple[float, float] = (40.7128, -74.006),
    ) -> None:
        self.client = client
        self.model = model
        self.default_geo = default_geo

    async def extract(self, text: str, today: Optional[date] = None) -> SearchParams:
        today = today or date.today()
        completion = await self.client.chat.completions.create(
            model=self.model,
            temperature=0,
            tools=[SEARCH_TOOL],
            tool_choice="required",
            messages=[
                {"role": "system", "content": build_extraction_prompt(today)},
                {"role": "user", "content": text},
            ],
        )

        tool_call = _first_tool_call(completion)
        if tool_call is None or getattr(tool_call, "type", None) != "function":
            logger.warning("Model returned no function call")
            raise IntentExtractionError(EXTRACTION_HINT)
        if tool_call.function.name != SEARCH_TOOL_NAME:
            logger.warning("Model called unexpected function %r", tool_call.function.name)
            raise IntentExtractionError(EXTRACTION_HINT)

        try:
            args = json.loads(tool_call.function.arguments or "{}")
        except json.JSONDecodeError:
            logger.warning("Unparseable function arguments: %r", tool_call.function.arguments)
            raise IntentExtractionError(EXTRACTION_HINT) from None

        search = self._to_search_params(args)
        logger.info(
            "Extracted %r in %s (%s, %s) on %s for %d",
            search.query, search.location, search.latitude, search.longitude,
            search.day, search.party_size,
        )
        return search

    def _to_search_params(self, args: dict[str, Any]) -> SearchParams:
        if not isinstance(args, dict) or not args.get("query"):
            raise IntentExtractionError(EXTRACTION_HINT)
        try:
            return SearchParams(
                query=args["query"],
                location=args.get("location") or DEFAULT_LOCATION,
                latitude=args.get("latitude") or self.default_geo[0],
                longitude=args.get("longitude") or self.default_geo[1],
                day=args.get("day"),
                party_size=args.get("party_size") or DEFAULT_PARTY_SIZE,
            )
        except ValidationError as exc:
            logger.warning("Function arguments failed validation: %s", exc)
            raise IntentExtractionError(EXTRACTION_HINT) from None


def _first_tool_call(completion: Any) -> Optional[Any]:
    choices = getattr(completion, "choices", None) or []
    if not choices:
        return None
    tool_calls = getattr(choices[0].message, "tool_calls", None) or []
    return tool_calls[0] if tool_calls else None
