"""Message creators accepted by :meth:`courier.client.CourierClient.send`.

Handlers can return one of these instead of calling a specific send method;
``send`` picks the API method from the creator's type and merges its
``options`` into the call.
"""

from __future__ import annotations

from typing import Any, Dict, Protocol, Union, runtime_checkable

from pydantic import BaseModel, Field

from courier.media import Media, MediaGroup


@runtime_checkable
class MarkupBuilder(Protocol):
    """Anything that can render itself as a ``reply_markup`` object."""

    def build_markup(self) -> Any:
        ...


class MessageCreator(BaseModel):
    """Base class of every creator; ``options`` are extra API parameters."""

    options: Dict[str, Any] = Field(default_factory=dict)

    model_config = {"arbitrary_types_allowed": True}


class MessageSend(MessageCreator):
    """Text or media sent with options attached."""

    content: Union[str, Media, MediaGroup, None] = None


class Alert(MessageCreator):
    """Text message whose content came from a callback alert."""

    text: str


class Toast(MessageCreator):
    """Text message whose content came from a callback toast."""

    text: str


class LocationMessage(MessageCreator):
    """A point on the map, sent with sendLocation."""

    latitude: float
    longitude: float


