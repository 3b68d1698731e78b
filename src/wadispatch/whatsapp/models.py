"""WhatsApp Cloud API webhook notification models.

Mirrors the payload Meta posts to the webhook:

    {
      "object": "whatsapp_business_account",
      "entry": [{
        "id": "WABA_ID",
        "changes": [{
          "field": "messages",
          "value": {
            "messaging_product": "whatsapp",
            "metadata": {"display_phone_number": "...", "phone_number_id": "..."},
            "contacts": [{"profile": {"name": "..."}, "wa_id": "..."}],
            "messages": [...] | "statuses": [...] | "errors": [...]
          }
        }]
      }]
    }

Unknown fields are ignored so new upstream additions never break decoding.
"""

from __future__ import annotations

from typing import Annotated, Any, TypeVar

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator

from .message_types import MessageType, classify


class WebhookModel(BaseModel):
    """Base for every payload model: tolerant of extra fields, aliases allowed."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


T = TypeVar("T")


def _none_to_list(value: Any) -> Any:
    return [] if value is None else value


# Meta occasionally sends `null` for empty arrays
NullableList = Annotated[list[T], BeforeValidator(_none_to_list)]


# ── Message sub-payloads ──────────────────────────────────────────────────────


class Text(WebhookModel):
    body: str = ""


class Media(WebhookModel):
    """Image, audio, video, document or sticker attachment."""

    id: str = ""
    mime_type: str = ""
    sha256: str = ""
    caption: str | None = None
    filename: str | None = None
    animated: bool | None = None
    voice: bool | None = None


class Location(WebhookModel):
    latitude: float | None = None
    longitude: float | None = None
    name: str | None = None
    address: str | None = None
    url: str | None = None


class ContactName(WebhookModel):
    formatted_name: str = ""
    first_name: str | None = None
    last_name: str | None = None
    middle_name: str | None = None
    suffix: str | None = None
    prefix: str | None = None


class ContactPhone(WebhookModel):
    phone: str = ""
    type: str | None = None
    wa_id: str | None = None


class ContactEmail(WebhookModel):
    email: str = ""
    type: str | None = None


class ContactUrl(WebhookModel):
    url: str = ""
    type: str | None = None


class ContactAddress(WebhookModel):
    street: str | None = None
    city: str | None = None
    state: str | None = None
    zip: str | None = None
    country: str | None = None
    country_code: str | None = None
    type: str | None = None


class ContactOrg(WebhookModel):
    company: str | None = None
    department: str | None = None
    title: str | None = None


class SharedContact(WebhookModel):
    """A contact card shared by the user in a ``contacts`` message."""

    name: ContactName | None = None
    phones: NullableList[ContactPhone] = Field(default_factory=list)
    emails: NullableList[ContactEmail] = Field(default_factory=list)
    urls: NullableList[ContactUrl] = Field(default_factory=list)
    addresses: NullableList[ContactAddress] = Field(default_factory=list)
    org: ContactOrg | None = None
    birthday: str | None = None


class ProductItem(WebhookModel):
    product_retailer_id: str = ""
    quantity: int = 0
    item_price: float = 0
    currency: str = ""


class Order(WebhookModel):
    catalog_id: str = ""
    text: str | None = None
    product_items: NullableList[ProductItem] = Field(default_factory=list)


class Button(WebhookModel):
    """Quick-reply button press on a template message."""

    payload: str | None = None
    text: str | None = None


class ButtonReply(WebhookModel):
    id: str = ""
    title: str = ""


class ListReply(WebhookModel):
    id: str = ""
    title: str = ""
    description: str | None = None


class FlowReply(WebhookModel):
    name: str | None = None
    body: str | None = None
    response_json: str | None = None


class Interactive(WebhookModel):
    type: str = ""
    button_reply: ButtonReply | None = None
    list_reply: ListReply | None = None
    nfm_reply: FlowReply | None = None


class Reaction(WebhookModel):
    message_id: str = ""
    # Absent when the user removes a reaction
    emoji: str | None = None


class Referral(WebhookModel):
    """Click-to-WhatsApp ad that led the user to write."""

    source_url: str | None = None
    source_id: str | None = None
    source_type: str | None = None
    headline: str | None = None
    body: str | None = None
    media_type: str | None = None
    image_url: str | None = None
    video_url: str | None = None
    thumbnail_url: str | None = None
    ctwa_clid: str | None = None


class System(WebhookModel):
    """Number change or identity change notice."""

    body: str | None = None
    identity: str | None = None
    new_wa_id: str | None = None
    wa_id: str | None = None
    type: str | None = None
    customer: str | None = None


class ReferredProduct(WebhookModel):
    catalog_id: str = ""
    product_retailer_id: str = ""


class Context(WebhookModel):
    """Reply, forward and product enquiry context of a message."""

    from_: str | None = Field(default=None, alias="from")
    id: str | None = None
    forwarded: bool | None = None
    frequently_forwarded: bool | None = None
    referred_product: ReferredProduct | None = None


# ── Errors ────────────────────────────────────────────────────────────────────


class ErrorData(WebhookModel):
    details: str = ""


class NotificationError(WebhookModel):
    """Error reported by the platform inside the payload."""

    code: int = 0
    title: str = ""
    message: str = ""
    error_data: ErrorData | None = None
    href: str | None = None

    @property
    def details(self) -> str:
        return self.error_data.details if self.error_data else ""


# ── Message ───────────────────────────────────────────────────────────────────


# Keys that hold a type-specific sub-payload; only the one named by ``type``
# is decoded.
_SUB_PAYLOAD_KEYS = frozenset(
    {
        "text",
        "image",
        "audio",
        "video",
        "document",
        "sticker",
        "location",
        "contacts",
        "order",
        "button",
        "interactive",
        "reaction",
        "system",
    }
)


class Message(WebhookModel):
    """A single inbound user message."""

    from_: str = Field(default="", alias="from")
    id: str = ""
    timestamp: str = ""
    type: str = ""
    context: Context | None = None
    referral: Referral | None = None
    errors: NullableList[NotificationError] = Field(default_factory=list)

    text: Text | None = None
    image: Media | None = None
    audio: Media | None = None
    video: Media | None = None
    document: Media | None = None
    sticker: Media | None = None
    location: Location | None = None
    contacts: list[SharedContact] | None = None
    order: Order | None = None
    button: Button | None = None
    interactive: Interactive | None = None
    reaction: Reaction | None = None
    system: System | None = None

    @model_validator(mode="before")
    @classmethod
    def select_sub_payload(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        selected = data.get("type")
        return {k: v for k, v in data.items() if k not in _SUB_PAYLOAD_KEYS or k == selected}

    @property
    def message_type(self) -> MessageType:
        """Classification of the raw ``type`` discriminator."""
        return classify(self.type)

    @property
    def kind(self) -> MessageType:
        """Kind used for dispatch.

        Text messages that quote a catalog product are product enquiries and
        text messages carrying an ad referral are referrals.
        """
        message_type = self.message_type
        if message_type is MessageType.TEXT:
            if self.context is not None and self.context.referred_product is not None:
                return MessageType.PRODUCT_ENQUIRY
            if self.referral is not None:
                return MessageType.REFERRAL
        return message_type

    @property
    def media(self) -> Media | None:
        """Attachment of a media message, if any."""
        if self.message_type.is_media:
            return getattr(self, self.message_type.value)
        return None


# ── Statuses ──────────────────────────────────────────────────────────────────


class ConversationOrigin(WebhookModel):
    type: str = ""


class Conversation(WebhookModel):
    id: str = ""
    origin: ConversationOrigin | None = None
    expiration_timestamp: str | None = None


class Pricing(WebhookModel):
    billable: bool | None = None
    pricing_model: str | None = None
    category: str | None = None


class StatusChange(WebhookModel):
    """Delivery status of a message previously sent by the business."""

    id: str = ""
    recipient_id: str = ""
    status: str = ""
    timestamp: str = ""
    conversation: Conversation | None = None
    pricing: Pricing | None = None
    errors: NullableList[NotificationError] = Field(default_factory=list)
    biz_opaque_callback_data: str | None = None


# ── Envelope ──────────────────────────────────────────────────────────────────


class Profile(WebhookModel):
    name: str = ""


class Contact(WebhookModel):
    """Sender of the messages in a value."""

    wa_id: str = ""
    profile: Profile | None = None


class Metadata(WebhookModel):
    display_phone_number: str = ""
    phone_number_id: str = ""


class Value(WebhookModel):
    messaging_product: str = ""
    metadata: Metadata | None = None
    contacts: NullableList[Contact] = Field(default_factory=list)
    messages: NullableList[Message] = Field(default_factory=list)
    statuses: NullableList[StatusChange] = Field(default_factory=list)
    errors: NullableList[NotificationError] = Field(default_factory=list)

    def contact_name(self, wa_id: str) -> str | None:
        """Profile name of the contact with ``wa_id``, if present."""
        for contact in self.contacts:
            if contact.wa_id == wa_id and contact.profile is not None:
                return contact.profile.name
        return None


class Change(WebhookModel):
    field: str = ""
    value: Value = Field(default_factory=Value)


class Entry(WebhookModel):
    id: str = ""
    changes: NullableList[Change] = Field(default_factory=list)


class Notification(WebhookModel):
    """Top-level webhook envelope."""

    object: str = ""
    entries: NullableList[Entry] = Field(default_factory=list, alias="entry")

