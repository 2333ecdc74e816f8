"""
Match Notification Events

Every lifecycle action raises one event addressed to the party who did
NOT act. Events carry enough text to render a notice directly; delivery
(in-app, email, webhook) is handled by notifications.py.

Event Types:
- request_created: someone asked to breed with your dog
- status_change: the other party accepted / declined / cancelled / moved
  the match to awaiting confirmation
- outcome_recorded: the outcome was verified and the match is closed
"""
from dataclasses import dataclass, asdict
from typing import Optional, Dict, Any, List
from datetime import datetime
from enum import Enum
import hashlib


class EventType(str, Enum):
  """Types of match events"""
  REQUEST_CREATED = "request_created"
  STATUS_CHANGE = "status_change"
  OUTCOME_RECORDED = "outcome_recorded"


@dataclass
class MatchEvent:
  """
  A single notification-worthy event for a match.

  Events are immutable once created.
  """
  # Required fields
  event_id: str
  match_id: str
  event_type: str            # EventType value
  recipient_user_id: str
  title: str
  message: str
  timestamp: str

  # Context
  actor_user_id: Optional[str] = None
  old_status: Optional[str] = None
  new_status: Optional[str] = None
  details: Optional[Dict[str, Any]] = None

  def to_dict(self) -> Dict:
    """Convert to dictionary, dropping empty context fields"""
    return {k: v for k, v in asdict(self).items() if v is not None}

  @classmethod
  def from_dict(cls, data: Dict) -> "MatchEvent":
    valid_fields = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
    return cls(**valid_fields)


def generate_event_id(match_id: str, event_type: str, timestamp: str) -> str:
  """Generate a unique event ID"""
  content = f"{match_id}_{event_type}_{timestamp}"
  hash_suffix = hashlib.md5(content.encode()).hexdigest()[:8]
  return f"{match_id}_{event_type}_{hash_suffix}"


def get_timestamp() -> str:
  return datetime.now().isoformat()


def _dog_label(dog_name: Optional[str]) -> str:
  return dog_name or "your dog"


# ============================================
# Event Factory Functions
# ============================================

def create_request_event(
  match_id: str,
  recipient_user_id: str,
  requester_user_id: str,
  requester_dog_name: Optional[str] = None,
  requested_dog_name: Optional[str] = None,
  timestamp: Optional[str] = None
) -> MatchEvent:
  """Create event for a new breeding request"""
  timestamp = timestamp or get_timestamp()
  requester = requester_dog_name or "Another dog"

  return MatchEvent(
    event_id=generate_event_id(match_id, EventType.REQUEST_CREATED.value, timestamp),
    match_id=match_id,
    event_type=EventType.REQUEST_CREATED.value,
    recipient_user_id=recipient_user_id,
    title="New breeding request",
    message=f"{requester} would like to match with {_dog_label(requested_dog_name)}.",
    timestamp=timestamp,
    actor_user_id=requester_user_id,
    new_status="pending",
    details={
      'requester_dog_name': requester_dog_name,
      'requested_dog_name': requested_dog_name,
    }
  )


def create_status_change_event(
  match_id: str,
  recipient_user_id: str,
  actor_user_id: str,
  old_status: str,
  new_status: str,
  partner_dog_name: Optional[str] = None,
  timestamp: Optional[str] = None
) -> MatchEvent:
  """Create event for a status transition made by the other party"""
  timestamp = timestamp or get_timestamp()
  partner = partner_dog_name or "your partner's dog"

  # Create descriptive summary
  if new_status == "accepted":
    title = "Breeding request accepted"
    message = f"Your request with {partner} was accepted. Coordinate the meetup."
  elif new_status == "declined":
    title = "Breeding request declined"
    message = f"Your request with {partner} was declined."
  elif new_status == "cancelled":
    title = "Breeding request cancelled"
    message = f"The request with {partner} was cancelled by the requester."
  elif new_status == "awaiting_confirmation":
    title = "Awaiting breeding outcome"
    message = f"The match with {partner} is awaiting confirmation of the outcome."
  else:
    title = "Match updated"
    message = f"Match status: {old_status} → {new_status}"

  return MatchEvent(
    event_id=generate_event_id(match_id, EventType.STATUS_CHANGE.value, timestamp),
    match_id=match_id,
    event_type=EventType.STATUS_CHANGE.value,
    recipient_user_id=recipient_user_id,
    title=title,
    message=message,
    timestamp=timestamp,
    actor_user_id=actor_user_id,
    old_status=old_status,
    new_status=new_status,
  )


def create_outcome_event(
  match_id: str,
  recipient_user_id: str,
  actor_user_id: str,
  outcome: str,
  final_status: str,
  litter_size: Optional[int] = None,
  partner_dog_name: Optional[str] = None,
  timestamp: Optional[str] = None
) -> MatchEvent:
  """Create event for a recorded outcome"""
  timestamp = timestamp or get_timestamp()
  partner = partner_dog_name or "your partner's dog"

  if outcome == "success":
    title = "Breeding successful"
    message = f"The breeding with {partner} was marked successful."
    if litter_size is not None:
      message += f" Litter size: {litter_size}."
  elif outcome == "no_show":
    title = "Breeding marked as no-show"
    message = f"The meeting with {partner} was recorded as a no-show."
  else:
    title = "Breeding unsuccessful"
    message = f"The breeding with {partner} was marked unsuccessful."

  return MatchEvent(
    event_id=generate_event_id(match_id, EventType.OUTCOME_RECORDED.value, timestamp),
    match_id=match_id,
    event_type=EventType.OUTCOME_RECORDED.value,
    recipient_user_id=recipient_user_id,
    title=title,
    message=message,
    timestamp=timestamp,
    actor_user_id=actor_user_id,
    old_status="awaiting_confirmation",
    new_status=final_status,
    details={
      'outcome': outcome,
      'litter_size': litter_size,
    }
  )


def events_to_timeline(events: List[MatchEvent], limit: int = 20) -> List[Dict]:
  """
  Convert events to a display-friendly timeline format.
  Returns most recent events first.
  """
  sorted_events = sorted(events, key=lambda e: e.timestamp, reverse=True)

  timeline = []
  for event in sorted_events[:limit]:
    timeline.append({
      'id': event.event_id,
      'match_id': event.match_id,
      'date': event.timestamp,
      'type': event.event_type,
      'icon': _get_event_icon(event),
      'title': event.title,
      'message': event.message,
    })

  return timeline


def _get_event_icon(event: MatchEvent) -> str:
  """Get emoji icon for an event"""
  if event.event_type == EventType.REQUEST_CREATED.value:
    return "🆕"
  if event.event_type == EventType.OUTCOME_RECORDED.value:
    return "🎉" if event.new_status == "completed_success" else "📋"
  icons = {
    "accepted": "✅",
    "declined": "🚫",
    "cancelled": "↩️",
    "awaiting_confirmation": "⏳",
  }
  return icons.get(event.new_status or "", "📢")
