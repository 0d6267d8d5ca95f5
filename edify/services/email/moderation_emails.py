"""Moderation review request and status update emails."""
import logging
from dataclasses import dataclass, field
from datetime import datetime, UTC
from html import escape
from typing import Optional

from edify.config import get_settings
from edify.schemas.content_flags import ViolationDetail
from edify.services.email.email_service import get_email_service
from edify.services.moderation.tokens import build_action_url

logger = logging.getLogger(__name__)

SEVERITY_COLORS = {
    "critical": "#FF4444",
    "high": "#FF8C00",
    "medium": "#FFD700",
    "low": "#90EE90",
}


@dataclass
class ModerationRequestEmail:
    """Sent to a moderator when an educator asks for a review."""
    content_id: str
    moderator_id: str
    username: str
    user_id: str
    tool_type: str
    input_summary: str
    violations: list[ViolationDetail] = field(default_factory=list)
    requested_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def subject(self) -> str:
        return f"Content Review Required: {self.tool_type} Content from {self.username}"


@dataclass
class StatusUpdateEmail:
    """Sent to the content owner once a moderator resolves the review."""
    content_id: str
    username: str
    status: str
    tool_type: str
    input_summary: str
    notes: Optional[str] = None
    violations: list[ViolationDetail] = field(default_factory=list)

    @property
    def subject(self) -> str:
        status_text = "Approved" if self.status == "approved" else "Declined"
        return f"Content {status_text}: {self.tool_type} Content Review Complete"


def severity_badge(severity: str) -> str:
    color = SEVERITY_COLORS.get(severity.lower(), "#808080")
    text_color = "#000" if severity.lower() == "low" else "#fff"
    return (
        f'<span style="background-color:{color};color:{text_color};padding:2px 8px;'
        f'border-radius:12px;font-size:12px;font-weight:bold;display:inline-block;margin-left:8px">'
        f"{escape(severity.upper())}</span>"
    )


def _violations_html(violations: list[ViolationDetail]) -> str:
    if not violations:
        return '<p style="color:#5f6368">No violations recorded.</p>'
    rows = "".join(
        f'<div style="padding:8px 12px;background-color:#f8f9fa;border-radius:4px;margin-bottom:8px">'
        f'<span style="font-size:14px;color:#202124">{escape(v.type)}</span>{severity_badge(v.severity)}</div>'
        for v in violations
    )
    return f'<h2 style="font-size:18px;font-weight:bold;color:#1a73e8">Detected Violations</h2>{rows}'


def _layout(title: str, body: str) -> str:
    return (
        '<!DOCTYPE html><html><body style="background-color:#f8f9fa;margin:0;padding:24px">'
        '<div style="max-width:600px;margin:0 auto;background-color:#ffffff;padding:40px;border-radius:8px;'
        'box-shadow:0 2px 4px rgba(0,0,0,0.1);font-family:Arial, sans-serif">'
        f'<h1 style="color:#1a73e8;font-size:24px;text-align:center">{escape(title)}</h1>'
        f"{body}</div></body></html>"
    )


def _line(label: str, value: str) -> str:
    return (
        f'<p style="font-size:15px;line-height:1.8;color:#202124;margin-bottom:8px">'
        f"<strong>{escape(label)}:</strong> {escape(value)}</p>"
    )


def render_moderation_request(email: ModerationRequestEmail) -> str:
    approve_url = build_action_url(email.content_id, "approved", email.moderator_id)
    decline_url = build_action_url(email.content_id, "declined", email.moderator_id)
    button = "color:#fff;padding:12px 24px;border-radius:4px;text-decoration:none;font-weight:bold;margin-right:16px"
    body = (
        '<p style="color:#5f6368;font-size:16px;text-align:center">'
        "A user has requested review of content that was flagged by the safety checks.</p>"
        + _line("User", email.username)
        + _line("Tool", email.tool_type)
        + _line("Request", email.input_summary)
        + _line("Request ID", email.content_id)
        + _line("Requested at", email.requested_at.isoformat())
        + _violations_html(email.violations)
        + '<div style="margin-top:16px">'
        f'<a href="{escape(approve_url)}" style="background-color:#34A853;{button}">Approve</a>'
        f'<a href="{escape(decline_url)}" style="background-color:#EA4335;{button}">Decline</a>'
        "</div>"
    )
    return _layout("Content Review Required", body)


def render_status_update(email: StatusUpdateEmail) -> str:
    dashboard_url = f"{get_settings().app_url.rstrip('/')}/dashboard"
    body = (
        _line("Hello", email.username)
        + '<p style="font-size:15px;color:#202124">'
        f"Your flagged request has been <strong>{escape(email.status)}</strong> by a moderator.</p>"
        + _line("Tool", email.tool_type)
        + _line("Request", email.input_summary)
        + _line("Request ID", email.content_id)
        + (_line("Moderator notes", email.notes) if email.notes else "")
        + _violations_html(email.violations)
        + f'<p><a href="{escape(dashboard_url)}" style="color:#1a73e8">Return to Dashboard</a></p>'
    )
    return _layout("Content Review Complete", body)


async def send_moderation_request_email(to: str, email: ModerationRequestEmail) -> bool:
    return await get_email_service().send_email(to, email.subject, render_moderation_request(email))


async def send_status_update_email(to: str, email: StatusUpdateEmail) -> bool:
    return await get_email_service().send_email(to, email.subject, render_status_update(email))
