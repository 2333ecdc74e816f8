"""
Notification sinks for match events
v1.0.0

Sends notifications for:
- New breeding requests (to the requested owner)
- Status changes (to the other party)
- Recorded outcomes (to the other party)

Every sink exposes send(event) -> bool. Delivery is best-effort: a match
transition is already committed by the time its event is sent, so a
failed delivery is reported on the console and never undoes it.
"""
import hashlib
import hmac
import json
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Callable, Dict, List, Optional, Tuple

import requests

from config import EMAIL_CONFIG, WEBHOOK_CONFIG, IN_APP_NOTIFICATIONS, USER_AGENT, REQUEST_TIMEOUT
from schema import MatchEvent, EventType


# ============================================
# In-app
# ============================================

class InAppNotifier:
  """Stores events in the notifications table"""

  def __init__(self, dal):
    self.dal = dal

  def send(self, event: MatchEvent) -> bool:
    self.dal.save_notification(event)
    return True


# ============================================
# Email
# ============================================

def format_notification_email(event: MatchEvent) -> Tuple[str, str]:
  """Format an event into email subject and HTML body"""
  icons = {
    EventType.REQUEST_CREATED.value: "🆕",
    EventType.STATUS_CHANGE.value: "📢",
    EventType.OUTCOME_RECORDED.value: "🏁",
  }
  icon = icons.get(event.event_type, "🐕")
  subject = f"{icon} {event.title}"

  html = """
  <html>
  <head>
    <style>
      body {{ font-family: Arial, sans-serif; line-height: 1.6; }}
      .card {{ margin: 20px 0; padding: 15px; border-radius: 8px; background: #f4f8ff; border: 1px solid #007bff; }}
      .meta {{ color: #666; font-size: 0.9em; }}
    </style>
  </head>
  <body>
    <h1>{icon} {title}</h1>
    <div class="card">
      <p>{message}</p>
      <p class="meta">Match: {match_id}<br>{timestamp}</p>
    </div>
    <hr>
    <p class="meta">
      This is an automated notification from the Breeding Matchmaker.
    </p>
  </body>
  </html>
  """.format(
    icon=icon,
    title=event.title,
    message=event.message,
    match_id=event.match_id,
    timestamp=event.timestamp,
  )

  return subject, html


class EmailNotifier:
  """
  Sends one HTML email per event over SMTP.

  recipient_lookup maps a user id to an email address; by default the
  "recipients" mapping from EMAIL_CONFIG is used.
  """

  def __init__(self, config: Optional[Dict] = None, recipient_lookup: Optional[Callable[[str], Optional[str]]] = None):
    self.config = config if config is not None else EMAIL_CONFIG
    self.recipient_lookup = recipient_lookup or self._lookup_from_config

  def _lookup_from_config(self, user_id: str) -> Optional[str]:
    return (self.config.get("recipients") or {}).get(str(user_id))

  def is_configured(self) -> bool:
    """Check if email is properly configured"""
    return bool(self.config.get("sender_email") and self.config.get("sender_password"))

  def send(self, event: MatchEvent) -> bool:
    if not self.is_configured():
      print("  ⚠️ Email not configured - skipping notification")
      return False

    recipient = self.recipient_lookup(event.recipient_user_id)
    if not recipient:
      print(f"  ℹ️ No email address for user {event.recipient_user_id}")
      return False

    subject, html_body = format_notification_email(event)

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = self.config["sender_email"]
    msg["To"] = recipient
    msg.attach(MIMEText(html_body, "html"))

    try:
      with smtplib.SMTP(self.config["smtp_server"], self.config["smtp_port"]) as server:
        server.starttls()
        server.login(self.config["sender_email"], self.config["sender_password"])
        server.send_message(msg)

      print(f"  ✅ Email sent to {recipient}: {event.title}")
      return True

    except (smtplib.SMTPException, OSError) as e:
      print(f"  ❌ Failed to send email: {e}")
      return False


# ============================================
# Webhook
# ============================================

def sign_payload(body: bytes, secret: str) -> str:
  """Hex HMAC-SHA256 of the request body"""
  return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


class WebhookNotifier:
  """POSTs each event as JSON to a configured URL"""

  def __init__(self, url: str, secret: Optional[str] = None, session: Optional[requests.Session] = None):
    self.url = url
    self.secret = secret or ""
    self.session = session or requests.Session()
    self.session.headers.update({"User-Agent": USER_AGENT})

  def send(self, event: MatchEvent) -> bool:
    body = json.dumps(event.to_dict(), sort_keys=True).encode("utf-8")
    headers = {"Content-Type": "application/json"}
    if self.secret:
      headers["X-Match-Signature"] = sign_payload(body, self.secret)

    try:
      response = self.session.post(self.url, data=body, headers=headers, timeout=REQUEST_TIMEOUT)
      response.raise_for_status()
    except requests.RequestException as e:
      print(f"  ❌ Webhook delivery failed for {event.event_id}: {e}")
      return False

    print(f"  ✅ Webhook delivered: {event.event_type} → {event.recipient_user_id}")
    return True


# ============================================
# Fan-out
# ============================================

class FanoutNotifier:
  """Delivers an event to every sink; one failing sink does not stop the rest"""

  def __init__(self, sinks: List):
    self.sinks = list(sinks)

  def send(self, event: MatchEvent) -> bool:
    delivered = True
    for sink in self.sinks:
      try:
        ok = sink.send(event)
      except Exception as e:
        print(f"  ⚠️ {type(sink).__name__} failed: {e}")
        ok = False
      delivered = delivered and bool(ok)
    return delivered


def get_notifier(dal=None) -> FanoutNotifier:
  """Build the default sink set from config"""
  sinks = []

  if IN_APP_NOTIFICATIONS and dal is not None:
    sinks.append(InAppNotifier(dal))

  if EMAIL_CONFIG.get("enabled"):
    sinks.append(EmailNotifier(EMAIL_CONFIG))

  if WEBHOOK_CONFIG.get("url"):
    sinks.append(WebhookNotifier(WEBHOOK_CONFIG["url"], secret=WEBHOOK_CONFIG.get("secret")))

  return FanoutNotifier(sinks)
