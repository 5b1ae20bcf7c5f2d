from resy_bot.conversation.booking_flow import BookingConversation
from resy_bot.conversation.gateway import MessageGateway
from resy_bot.conversation.state_machine import (
    BookingStateMachine,
    InvalidTransitionError,
    TransitionTrigger,
)

__all__ = [
    "BookingConversation",
    "BookingStateMachine",
    "InvalidTransitionError",
    "MessageGateway",
    "TransitionTrigger",
]
