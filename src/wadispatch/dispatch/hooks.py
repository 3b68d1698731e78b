"""Hook registry and error reporter contracts.

Hooks may be plain functions or coroutine functions. Plain functions run
in the threadpool so blocking I/O does not stall the event loop. A hook
signals failure by raising.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Union

from fastapi.concurrency import run_in_threadpool

from wadispatch.errors import ConfigurationError, DeadlineExceeded, HookError
from wadispatch.whatsapp.message_types import MessageType
from wadispatch.whatsapp.models import (
    Contact,
    Message,
    Metadata,
    Notification,
    NotificationError,
    StatusChange,
)

from .context import RequestContext


@dataclass(frozen=True)
class Source:
    """Where a dispatched unit came from inside the notification."""

    entry_id: str
    change_field: str
    metadata: Metadata | None = None
    contacts: tuple[Contact, ...] = ()

    def contact(self, wa_id: str) -> Contact | None:
        for contact in self.contacts:
            if contact.wa_id == wa_id:
                return contact
        return None


_Result = Union[Awaitable[None], None]

MessageHook = Callable[[RequestContext, Message, Source], _Result]
StatusHook = Callable[[RequestContext, StatusChange, Source], _Result]
NotificationErrorHook = Callable[[RequestContext, NotificationError, Source], _Result]
NotificationHook = Callable[[RequestContext, Notification], _Result]

BeforeHook = Callable[[RequestContext], _Result]
AfterHook = Callable[
    [RequestContext, Union[Notification, None], Union[BaseException, None]], _Result
]

HooksErrorReporter = Callable[[RequestContext, Union[HookError, DeadlineExceeded]], _Result]
NotificationErrorReporter = Callable[[RequestContext, NotificationError, Source], _Result]


def noop_hooks_error_reporter(ctx: RequestContext, error: HookError | DeadlineExceeded) -> None:
    """Default hooks error reporter: does nothing."""


def noop_notification_error_reporter(
    ctx: RequestContext, error: NotificationError, source: Source
) -> None:
    """Default notification error reporter: does nothing."""


def is_async_callable(obj: Any) -> bool:
    return inspect.iscoroutinefunction(obj) or (
        callable(obj) and inspect.iscoroutinefunction(getattr(obj, "__call__", None))
    )


async def call_hook(hook: Callable[..., Any], *args: Any) -> Any:
    """Invoke ``hook`` with ``args``, awaiting it or running it in the threadpool."""
    if is_async_callable(hook):
        return await hook(*args)
    result = await run_in_threadpool(hook, *args)
    if inspect.isawaitable(result):
        return await result
    return result


@dataclass(frozen=True)
class Hooks:
    """Registered handlers, one optional slot per event kind.

    Attributes:
        messages: Handler per ``MessageType``. The ``MessageType.UNKNOWN``
            slot doubles as fallback for kinds without their own handler.
            Refined kinds (``PRODUCT_ENQUIRY``, ``REFERRAL``) fall back to
            the ``TEXT`` slot first. Number changes arrive as ``SYSTEM``
            messages with ``system.type == "customer_changed_number"``.
            Errors attached to a message go to the notification error
            reporter and then to the message's own handler.
        on_status_change: Handler for delivery status updates.
        on_notification_error: Handler for platform-reported errors.
        on_notification: Called once with the whole notification before any
            per-unit handler. Raising skips the per-unit handlers.
    """

    messages: Mapping[MessageType, MessageHook] = field(default_factory=dict)
    on_status_change: StatusHook | None = None
    on_notification_error: NotificationErrorHook | None = None
    on_notification: NotificationHook | None = None

    def __post_init__(self) -> None:
        table: dict[MessageType, MessageHook] = {}
        for key, hook in self.messages.items():
            try:
                kind = MessageType(key)
            except ValueError as e:
                raise ConfigurationError(f"unknown message type: {key!r}") from e
            if kind is MessageType.UNRECOGNIZED:
                raise ConfigurationError(
                    "register the fallback handler under MessageType.UNKNOWN"
                )
            if not callable(hook):
                raise ConfigurationError(f"handler for {kind.value!r} is not callable")
            table[kind] = hook
        # Shared by concurrent requests; never mutated after construction
        object.__setattr__(self, "messages", MappingProxyType(table))

    def message_hook(
        self, kind: MessageType, base: MessageType | None = None
    ) -> tuple[str, MessageHook | None]:
        """Resolve the handler for ``kind`` and the slot name it came from.

        ``base`` is the classified wire type when ``kind`` is a refinement
        of it (a product enquiry is a text message). Lookup order is
        ``kind``, then ``base``, then the ``UNKNOWN`` fallback.
        """
        for candidate in (kind, base):
            if candidate is None:
                continue
            hook = self.messages.get(candidate)
            if hook is not None:
                return candidate.value, hook
        fallback = self.messages.get(MessageType.UNKNOWN)
        if fallback is not None:
            return MessageType.UNKNOWN.value, fallback
        return kind.value or "unrecognized", None

    @property
    def empty(self) -> bool:
        return not (
            self.messages
            or self.on_status_change
            or self.on_notification_error
            or self.on_notification
        )


class HookRegistry:
    """Decorator-style builder for ``Hooks``.

    Example:
        registry = HookRegistry()

        @registry.message(MessageType.TEXT)
        async def on_text(ctx, message, source):
            ...

        hooks = registry.build()
    """

    def __init__(self) -> None:
        self._messages: dict[MessageType, MessageHook] = {}
        self._status: StatusHook | None = None
        self._error: NotificationErrorHook | None = None
        self._notification: NotificationHook | None = None

    def message(self, *kinds: MessageType | str) -> Callable[[MessageHook], MessageHook]:
        if not kinds:
            raise ConfigurationError("at least one message type is required")

        def decorator(func: MessageHook) -> MessageHook:
            for kind in kinds:
                try:
                    self._messages[MessageType(kind)] = func
                except ValueError as e:
                    raise ConfigurationError(f"unknown message type: {kind!r}") from e
            return func

        return decorator

    def media(self) -> Callable[[MessageHook], MessageHook]:
        """Register one handler for every media kind."""
        return self.message(
            MessageType.IMAGE,
            MessageType.AUDIO,
            MessageType.VIDEO,
            MessageType.DOCUMENT,
            MessageType.STICKER,
        )

    def status_change(self, func: StatusHook) -> StatusHook:
        self._status = func
        return func

    def notification_error(self, func: NotificationErrorHook) -> NotificationErrorHook:
        self._error = func
        return func

    def notification(self, func: NotificationHook) -> NotificationHook:
        self._notification = func
        return func

    def build(self) -> Hooks:
        return Hooks(
            messages=dict(self._messages),
            on_status_change=self._status,
            on_notification_error=self._error,
            on_notification=self._notification,
        )
