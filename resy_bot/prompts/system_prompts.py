"""
System prompt and function schema for search intent extraction.

The model is only used to turn the first free-text request into search
parameters; every later turn is handled by the booking conversation.
"""

from datetime import date

EXTRACTION_SYSTEM_PROMPT = " ".join([
    "You are a restaurant reservation assistant.",
    "Today's date is {today}.",
    "Extract the search parameters from the user's message.",
    'If they say "tomorrow", compute the correct YYYY-MM-DD.',
    "Default party_size to 2 if not specified.",
    'Default location to "New York" if not specified.',
    "You MUST provide accurate latitude and longitude for the location.",
    "Examples: NYC -> 40.7128, -74.006 | Williamsburg Brooklyn -> 40.7081, -73.9571"
    " | downtown LA -> 34.0407, -118.2468",
])

SEARCH_TOOL_NAME = "search_venues"

SEARCH_TOOL = {
    "type": "function",
    "function": {
        "name": SEARCH_TOOL_NAME,
        "description": "Search for restaurants on Resy.",
        "parameters": {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Restaurant name or cuisine keyword",
                },
                "location": {
                    "type": "string",
                    "description": "Human-readable location (e.g. 'Williamsburg, Brooklyn')",
                },
                "latitude": {"type": "number", "description": "Latitude of the location"},
                "longitude": {"type": "number", "description": "Longitude of the location"},
                "day": {"type": "string", "description": "Date as YYYY-MM-DD"},
                "party_size": {"type": "integer", "description": "Number of guests"},
            },
            "required": ["query", "location", "latitude", "longitude", "day", "party_size"],
        },
    },
}


def build_extraction_prompt(today: date) -> str:
    return EXTRACTION_SYSTEM_PROMPT.format(today=today.isoformat())
