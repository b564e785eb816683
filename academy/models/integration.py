from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class WebhookIntegration:
    """A user's link to an external system that receives progress webhooks.

    external_user_id is the id the receiving system knows the user by; it is
    what goes into the envelope, never our internal user id.
    """

    user_id: str
    external_user_id: str
    webhook_url: str | None
    webhook_secret: str | None
    is_active: bool = True
