"""Transport message records."""

from pydantic import BaseModel


class InboundMessage(BaseModel):
    """One event delivered by a message transport."""

    guid: str
    sender: str = ""
    chat_id: str = ""
    text: str = ""
    is_from_me: bool = False
    is_reaction: bool = False
