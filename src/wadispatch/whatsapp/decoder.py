"""Decode raw webhook bodies into ``Notification`` trees."""

from __future__ import annotations

from pydantic import ValidationError

from wadispatch.errors import PayloadDecodeError

from .models import Notification


def decode_notification(payload_bytes: bytes) -> Notification:
    """Parse and validate a webhook body.

    Unknown fields are ignored. A message's type-specific payload is only
    decoded for the kind named by its ``type``.

    Raises:
        PayloadDecodeError: If the body is not JSON or a known field has an
            incompatible shape.
    """
    try:
        return Notification.model_validate_json(payload_bytes)
    except ValidationError as e:
        # Only the location and error type of each problem; never input values
        problems = ", ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['type']}"
            for err in e.errors(include_input=False, include_url=False)
        )
        raise PayloadDecodeError(f"invalid notification payload ({problems})") from e
