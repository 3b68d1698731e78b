"""Shared test helper functions for wadispatch tests.

This module contains helper functions that can be imported by both conftest.py
and individual test files. These are NOT fixtures - they are regular functions.
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
from typing import Any

TEST_SECRET = "test_app_secret_for_hmac"

# Payloads captured from the WhatsApp Cloud API (ids shortened)
MINIMAL_BODY = b'{"object":"whatsapp_business_account","entry":[]}'

TEXT_BODY = (
    b'{"object":"whatsapp_business_account","entry":[{"id":"144509515401993","changes":[{"value":'
    b'{"messaging_product":"whatsapp","metadata":{"display_phone_number":"15550416043",'
    b'"phone_number_id":"121720824363144"},"contacts":[{"profile":{"name":"Ahmad Saekoni"},'
    b'"wa_id":"6281272128270"}],"messages":[{"from":"6281272128270","id":"wamid.TEXT001",'
    b'"timestamp":"1706461964","text":{"body":"a"},"type":"text"}]},"field":"messages"}]}]}'
)

ORDER_BODY = (
    b'{"object":"whatsapp_business_account","entry":[{"id":"130363306827170","changes":[{"value":'
    b'{"messaging_product":"whatsapp","metadata":{"display_phone_number":"6281388288202",'
    b'"phone_number_id":"175174709002390"},"contacts":[{"profile":{"name":"Ahmad Saekoni"},'
    b'"wa_id":"6281272128270"}],"messages":[{"from":"6281272128270","id":"wamid.ORDER001",'
    b'"timestamp":"1706460409","type":"order","order":{"catalog_id":"363547682948433","text":"",'
    b'"product_items":[{"product_retailer_id":"1710","quantity":1,"item_price":11000,'
    b'"currency":"IDR"}]}}]},"field":"messages"}]}]}'
)

DOCUMENT_BODY = (
    b'{"object":"whatsapp_business_account","entry":[{"id":"144509515401993","changes":[{"value":'
    b'{"messaging_product":"whatsapp","metadata":{"display_phone_number":"15550416043",'
    b'"phone_number_id":"121720824363144"},"contacts":[{"profile":{"name":"Ahmad Saekoni"},'
    b'"wa_id":"6281272128270"}],"messages":[{"from":"6281272128270","id":"wamid.DOC001",'
    b'"timestamp":"1706462002","type":"document","document":{"filename":"data_product (2).csv",'
    b'"mime_type":"text\\/csv","sha256":"iIiDLz5Lp5qtydahqNdzk5z\\/zXUpwJ68J\\/b3Wkwhoos=",'
    b'"id":"1726124224580101"}}]},"field":"messages"}]}]}'
)


def message(
    message_type: str,
    message_id: str = "wamid.TEST",
    sender: str = "5511888888888",
    **extra: Any,
) -> dict[str, Any]:
    """Build a message dict. ``extra`` holds the type-specific payload."""
    msg: dict[str, Any] = {
        "from": sender,
        "id": message_id,
        "timestamp": "1704067200",
        "type": message_type,
    }
    msg.update(extra)
    return msg


def status(message_id: str = "wamid.OUT", value: str = "delivered", **extra: Any) -> dict[str, Any]:
    st: dict[str, Any] = {
        "id": message_id,
        "recipient_id": "5511888888888",
        "status": value,
        "timestamp": "1704067300",
    }
    st.update(extra)
    return st


def platform_error(code: int = 131051, title: str = "Message type unknown") -> dict[str, Any]:
    return {
        "code": code,
        "title": title,
        "message": title,
        "error_data": {"details": "Message type is currently not supported."},
    }


def change(
    messages: list[dict] | None = None,
    statuses: list[dict] | None = None,
    errors: list[dict] | None = None,
    field: str = "messages",
) -> dict[str, Any]:
    value: dict[str, Any] = {
        "messaging_product": "whatsapp",
        "metadata": {"display_phone_number": "5511999999999", "phone_number_id": "123456789"},
        "contacts": [{"profile": {"name": "Test User"}, "wa_id": "5511888888888"}],
    }
    if messages is not None:
        value["messages"] = messages
    if statuses is not None:
        value["statuses"] = statuses
    if errors is not None:
        value["errors"] = errors
    return {"value": value, "field": field}


def entry(*changes: dict, entry_id: str = "WABA_ID") -> dict[str, Any]:
    return {"id": entry_id, "changes": list(changes)}


def notification(*entries: dict) -> dict[str, Any]:
    return {"object": "whatsapp_business_account", "entry": list(entries)}


def to_body(payload: dict[str, Any]) -> bytes:
    return json.dumps(payload).encode()


def signature_header(body: bytes, secret: str = TEST_SECRET) -> str:
    digest = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


def run(coro):
    """Run a coroutine from a sync test."""
    return asyncio.run(coro)


class Recorder:
    """Callable that records every call; optionally raises."""

    def __init__(self, name: str = "hook", calls: list | None = None, raises: Exception | None = None):
        self.name = name
        self.calls = calls if calls is not None else []
        self.raises = raises

    def __call__(self, *args):
        self.calls.append((self.name, args))
        if self.raises is not None:
            raise self.raises

    @property
    def count(self) -> int:
        return sum(1 for name, _ in self.calls if name == self.name)

    def args(self, index: int = 0) -> tuple:
        mine = [args for name, args in self.calls if name == self.name]
        return mine[index]
