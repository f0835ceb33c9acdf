"""Push, SMS and email templates for booking events."""

from __future__ import annotations

import html
from dataclasses import dataclass
from typing import Any

from app.notifications.contracts import EmailContent, EventKind, PushContent


@dataclass(frozen=True)
class EventTemplate:
  """Title/body/SMS text for one event kind and audience."""

  title_template: str
  body_template: str
  sms_template: str
  required_keys: frozenset[str]


_JOB_KEYS = frozenset({"job_id", "from_language", "to_language", "due", "duration_minutes"})

TEMPLATES: dict[tuple[EventKind, str], EventTemplate] = {
  (EventKind.OFFER, "translator"): EventTemplate(
    title_template="New booking {{from_language}} > {{to_language}}",
    body_template="{{due}}, {{duration_minutes}} min, {{location}}. Open the app to accept.",
    sms_template="New booking {{from_language}} > {{to_language}} {{due}} ({{duration_minutes}} min, {{location}}). Reply in the app. Ref {{job_id}}",
    required_keys=_JOB_KEYS | {"location"},
  ),
  (EventKind.REOFFER, "translator"): EventTemplate(
    title_template="Still open: {{from_language}} > {{to_language}}",
    body_template="{{due}}, {{duration_minutes}} min, {{location}} still needs a translator.",
    sms_template="Still open: {{from_language}} > {{to_language}} {{due}} ({{duration_minutes}} min, {{location}}). Ref {{job_id}}",
    required_keys=_JOB_KEYS | {"location"},
  ),
  (EventKind.ACCEPTED, "customer"): EventTemplate(
    title_template="Booking confirmed",
    body_template="A translator accepted your booking on {{due}}.",
    sms_template="Your booking on {{due}} is confirmed. Ref {{job_id}}",
    required_keys=_JOB_KEYS,
  ),
  (EventKind.ACCEPTED, "translator"): EventTemplate(
    title_template="Booking taken",
    body_template="The booking {{from_language}} > {{to_language}} on {{due}} has been accepted by another translator.",
    sms_template="Booking {{job_id}} on {{due}} has been taken.",
    required_keys=_JOB_KEYS,
  ),
  (EventKind.CANCELLED, "customer"): EventTemplate(
    title_template="Booking cancelled",
    body_template="Your booking on {{due}} was cancelled.",
    sms_template="Your booking on {{due}} was cancelled. Ref {{job_id}}",
    required_keys=_JOB_KEYS,
  ),
  (EventKind.CANCELLED, "translator"): EventTemplate(
    title_template="Booking cancelled",
    body_template="The booking {{from_language}} > {{to_language}} on {{due}} was cancelled.",
    sms_template="Booking {{job_id}} on {{due}} was cancelled.",
    required_keys=_JOB_KEYS,
  ),
  (EventKind.ENDED, "customer"): EventTemplate(
    title_template="Booking completed",
    body_template="Your booking on {{due}} is complete. Session time {{session_time}}.",
    sms_template="Booking {{job_id}} is complete.",
    required_keys=_JOB_KEYS | {"session_time"},
  ),
  (EventKind.ENDED, "translator"): EventTemplate(
    title_template="Booking completed",
    body_template="Booking {{job_id}} has been marked complete. Session time {{session_time}}.",
    sms_template="Booking {{job_id}} is complete.",
    required_keys=_JOB_KEYS | {"session_time"},
  ),
  (EventKind.REOPENED, "customer"): EventTemplate(
    title_template="Booking reopened",
    body_template="Your booking on {{due}} is open again and is being offered to translators.",
    sms_template="Booking {{job_id}} on {{due}} has been reopened.",
    required_keys=_JOB_KEYS,
  ),
  (EventKind.REMINDER, "translator"): EventTemplate(
    title_template="Reminder: {{from_language}} > {{to_language}}",
    body_template="You are booked on {{due}}, {{duration_minutes}} min, {{location}}.",
    sms_template="Reminder: you are booked {{from_language}} > {{to_language}} on {{due}} ({{duration_minutes}} min, {{location}}). Ref {{job_id}}",
    required_keys=_JOB_KEYS | {"location"},
  ),
}


@dataclass(frozen=True)
class EmailTemplate:
  """Subject and text/HTML bodies for one emailed event kind."""

  subject_template: str
  text_template: str
  html_template: str
  required_keys: frozenset[str]


EMAIL_TEMPLATES: dict[EventKind, EmailTemplate] = {
  EventKind.CONFIRMATION: EmailTemplate(
    subject_template="Booking received: {{from_language}} > {{to_language}} ({{job_id}})",
    text_template=(
      "Hello {{recipient_name}},\n\n"
      "We have received your immediate booking {{from_language}} > {{to_language}} on {{due}} "
      "({{duration_minutes}} min, {{location}}). We are contacting translators now and will notify you "
      "as soon as one accepts.\n\nBooking reference: {{job_id}}\n"
    ),
    html_template=(
      '<table role="presentation" width="100%" cellpadding="0" cellspacing="0">'
      '<tr><td style="font-family:Arial,sans-serif;font-size:15px;color:#222;">'
      "<p>Hello {{recipient_name}},</p>"
      "<p>We have received your immediate booking <strong>{{from_language}} &gt; {{to_language}}</strong> on {{due}} "
      "({{duration_minutes}} min, {{location}}). We are contacting translators now and will notify you as soon as one accepts.</p>"
      '<p style="color:#666;">Booking reference: {{job_id}}</p>'
      "</td></tr></table>"
    ),
    required_keys=_JOB_KEYS | {"location", "recipient_name"},
  ),
}


def _get_template(kind: EventKind, role: str) -> EventTemplate:
  template = TEMPLATES.get((kind, role))
  if template is None:
    raise ValueError(f"No template for event={kind.value} audience={role}")
  return template


def _render(text: str, data: dict[str, Any], *, escape_html: bool = False) -> str:
  for key, value in data.items():
    rendered = "" if value is None else str(value)
    text = text.replace(f"{{{{{key}}}}}", html.escape(rendered) if escape_html else rendered)
  return text


def _validate(kind: EventKind, required_keys: frozenset[str], data: dict[str, Any]) -> None:
  missing = sorted(required_keys - set(data.keys()))
  if missing:
    raise ValueError(f"Missing placeholders for event '{kind.value}': {', '.join(missing)}")


def render_push(*, kind: EventKind, role: str, data: dict[str, Any]) -> PushContent:
  """Render push title/body plus the navigation data the apps expect."""
  template = _get_template(kind, role)
  _validate(kind, template.required_keys, data)
  return PushContent(title=_render(template.title_template, data), body=_render(template.body_template, data), data={"job_id": str(data["job_id"]), "event": kind.value})


def render_sms(*, kind: EventKind, role: str, data: dict[str, Any]) -> str:
  """Render the SMS text for an event."""
  template = _get_template(kind, role)
  _validate(kind, template.required_keys, data)
  return _render(template.sms_template, data)


def render_email(*, kind: EventKind, data: dict[str, Any]) -> EmailContent:
  """Render subject/text/html for an emailed event; HTML placeholders are escaped."""
  template = EMAIL_TEMPLATES.get(kind)
  if template is None:
    raise ValueError(f"No email template for event={kind.value}")
  _validate(kind, template.required_keys, data)
  return EmailContent(subject=_render(template.subject_template, data), text=_render(template.text_template, data), html=_render(template.html_template, data, escape_html=True))
