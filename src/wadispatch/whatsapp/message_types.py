"""Message kinds delivered by the WhatsApp Cloud API."""

from enum import Enum


class MessageType(str, Enum):
    """Closed set of inbound message kinds.

    Values are the upstream ``type`` discriminators. ``UNRECOGNIZED`` is
    the empty string and stands for any discriminator not listed here.
    """

    TEXT = "text"
    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"
    DOCUMENT = "document"
    STICKER = "sticker"
    LOCATION = "location"
    CONTACTS = "contacts"
    ORDER = "order"
    BUTTON = "button"
    INTERACTIVE = "interactive"
    REACTION = "reaction"
    REFERRAL = "referral"
    SYSTEM = "system"
    PRODUCT_ENQUIRY = "product_enquiry"
    UNKNOWN = "unknown"
    UNRECOGNIZED = ""

    @property
    def is_media(self) -> bool:
        return self in MEDIA_TYPES


MEDIA_TYPES = frozenset(
    {
        MessageType.IMAGE,
        MessageType.AUDIO,
        MessageType.VIDEO,
        MessageType.DOCUMENT,
        MessageType.STICKER,
    }
)

_BY_DISCRIMINATOR = {t.value: t for t in MessageType if t is not MessageType.UNRECOGNIZED}


def classify(discriminator: str | None) -> MessageType:
    """Map an upstream ``type`` string to a ``MessageType``.

    Matching is exact and case-sensitive. Anything else, including
    ``None`` and the empty string, is ``MessageType.UNRECOGNIZED``.
    """
    if not discriminator:
        return MessageType.UNRECOGNIZED
    return _BY_DISCRIMINATOR.get(discriminator, MessageType.UNRECOGNIZED)
