"""Route each unit of a decoded notification to its registered hook.

Dispatch runs sequentially in document order: entries, then changes, then
messages, statuses and errors of each value. A failing hook is reported
and dispatch moves on to the next unit.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from wadispatch.errors import DeadlineExceeded, HookError
from wadispatch.observability.logging import get_logger
from wadispatch.observability.redaction import id_prefix, safe_log_context
from wadispatch.whatsapp.models import Change, Entry, Notification, NotificationError

from .context import RequestContext
from .hooks import (
    Hooks,
    HooksErrorReporter,
    NotificationErrorReporter,
    Source,
    call_hook,
    noop_hooks_error_reporter,
    noop_notification_error_reporter,
)

logger = get_logger(__name__)


@dataclass
class DispatchReport:
    """Outcome of dispatching one notification.

    Attributes:
        dispatched: Hook invocations that completed.
        skipped: Units with no matching hook.
        platform_errors: Errors reported by the platform inside the payload.
        failures: One ``HookError`` per failed hook invocation.
        vetoed: True when the notification hook raised and per-unit
            dispatch was skipped.
        deadline_exceeded: Set when the request deadline cut dispatch short.
    """

    dispatched: int = 0
    skipped: int = 0
    platform_errors: int = 0
    failures: list[HookError] = field(default_factory=list)
    vetoed: bool = False
    deadline_exceeded: DeadlineExceeded | None = None

    @property
    def terminal_error(self) -> BaseException | None:
        """Error handed to the after-hook, if dispatch ended early."""
        if self.deadline_exceeded is not None:
            return self.deadline_exceeded
        if self.vetoed and self.failures:
            return self.failures[0]
        return None


class _DeadlineReached(Exception):
    pass


class Dispatcher:
    """Dispatch engine bound to one immutable hook registry."""

    def __init__(
        self,
        hooks: Hooks | None = None,
        hooks_error_reporter: HooksErrorReporter | None = None,
        notification_error_reporter: NotificationErrorReporter | None = None,
    ) -> None:
        self.hooks = hooks or Hooks()
        self.hooks_error_reporter = hooks_error_reporter or noop_hooks_error_reporter
        self.notification_error_reporter = (
            notification_error_reporter or noop_notification_error_reporter
        )

    async def dispatch(self, ctx: RequestContext, notification: Notification) -> DispatchReport:
        report = DispatchReport()
        if not notification.entries:
            return report

        try:
            if self.hooks.on_notification is not None:
                self._check_deadline(ctx)
                ok = await self._invoke(
                    ctx, report, "notification", self.hooks.on_notification, (notification,)
                )
                if not ok:
                    report.vetoed = True
                    return report

            for entry in notification.entries:
                for change in entry.changes:
                    await self._dispatch_change(ctx, report, entry, change)
        except _DeadlineReached:
            error = DeadlineExceeded("request deadline exceeded during dispatch")
            report.deadline_exceeded = error
            logger.warning(
                "dispatch stopped at deadline",
                extra={
                    "extra_fields": safe_log_context(
                        dispatched=report.dispatched,
                        failed=len(report.failures),
                    )
                },
            )
            await self._report_hook_error(ctx, error)

        return report

    async def _dispatch_change(
        self, ctx: RequestContext, report: DispatchReport, entry: Entry, change: Change
    ) -> None:
        value = change.value
        source = Source(
            entry_id=entry.id,
            change_field=change.field,
            metadata=value.metadata,
            contacts=tuple(value.contacts),
        )

        for message in value.messages:
            self._check_deadline(ctx)
            for error in message.errors:
                await self._report_platform_error(ctx, report, error, source)
            slot, hook = self.hooks.message_hook(message.kind, message.message_type)
            if hook is None:
                report.skipped += 1
                continue
            await self._invoke(ctx, report, slot, hook, (message, source), source, message.id)

        for status in value.statuses:
            self._check_deadline(ctx)
            for error in status.errors:
                await self._report_platform_error(ctx, report, error, source)
            if self.hooks.on_status_change is None:
                report.skipped += 1
                continue
            await self._invoke(
                ctx,
                report,
                "status",
                self.hooks.on_status_change,
                (status, source),
                source,
                status.id,
            )

        for error in value.errors:
            self._check_deadline(ctx)
            await self._report_platform_error(ctx, report, error, source)
            if self.hooks.on_notification_error is None:
                report.skipped += 1
                continue
            await self._invoke(
                ctx,
                report,
                "notification_error",
                self.hooks.on_notification_error,
                (error, source),
                source,
            )

    async def _invoke(
        self,
        ctx: RequestContext,
        report: DispatchReport,
        slot: str,
        hook,
        args: tuple,
        source: Source | None = None,
        unit_id: str | None = None,
    ) -> bool:
        try:
            await call_hook(hook, ctx, *args)
        except Exception as e:
            error = HookError(
                e,
                hook=slot,
                entry_id=source.entry_id if source else None,
                change_field=source.change_field if source else None,
                message_id=unit_id,
            )
            report.failures.append(error)
            logger.error(
                "hook failed",
                exc_info=e,
                extra={
                    "extra_fields": safe_log_context(
                        hook=slot,
                        entry_id=error.entry_id,
                        change_field=error.change_field,
                        message_id_prefix=id_prefix(unit_id) if unit_id else None,
                        error_type=type(e).__name__,
                    )
                },
            )
            await self._report_hook_error(ctx, error)
            return False

        report.dispatched += 1
        return True

    async def _report_hook_error(
        self, ctx: RequestContext, error: HookError | DeadlineExceeded
    ) -> None:
        try:
            await call_hook(self.hooks_error_reporter, ctx, error)
        except Exception:
            logger.exception(
                "hooks error reporter failed",
                extra={"extra_fields": safe_log_context(error_type=type(error).__name__)},
            )

    async def _report_platform_error(
        self, ctx: RequestContext, report: DispatchReport, error: NotificationError, source: Source
    ) -> None:
        report.platform_errors += 1
        logger.info(
            "platform reported error",
            extra={
                "extra_fields": safe_log_context(
                    entry_id=source.entry_id,
                    code=error.code,
                    title=error.title,
                )
            },
        )
        try:
            await call_hook(self.notification_error_reporter, ctx, error, source)
        except Exception:
            logger.exception(
                "notification error reporter failed",
                extra={"extra_fields": safe_log_context(code=error.code)},
            )

    @staticmethod
    def _check_deadline(ctx: RequestContext) -> None:
        if ctx.expired():
            raise _DeadlineReached
