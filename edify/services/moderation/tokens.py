"""Signed approve/decline links embedded in moderator emails."""
import hashlib
import hmac
from typing import Optional
from urllib.parse import urlencode

from edify.config import get_settings


def generate_action_token(content_id: str, action: str, moderator_id: str, secret: Optional[str] = None) -> str:
    """Hex HMAC-SHA256 of ``"{content_id}:{action}:{moderator_id}"``."""
    key = (secret or get_settings().email_action_secret).encode("utf-8")
    message = f"{content_id}:{action}:{moderator_id}".encode("utf-8")
    return hmac.new(key, message, hashlib.sha256).hexdigest()


def verify_action_token(
        token: str,
        content_id: str,
        action: str,
        moderator_id: str,
        secret: Optional[str] = None,
) -> bool:
    expected = generate_action_token(content_id, action, moderator_id, secret)
    return hmac.compare_digest(token.encode("utf-8"), expected.encode("utf-8"))


def build_action_url(content_id: str, action: str, moderator_id: str, base_url: Optional[str] = None) -> str:
    """Absolute URL of the email-action endpoint for one decision."""
    base = (base_url or get_settings().app_url).rstrip("/")
    query = urlencode({
        "id": content_id,
        "action": action,
        "moderatorId": moderator_id,
        "token": generate_action_token(content_id, action, moderator_id),
    })
    return f"{base}/api/moderator/email-action?{query}"
