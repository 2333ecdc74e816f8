"""
Match Request Schema

A match request pairs a requester's dog with another owner's dog and
moves through a fixed set of statuses. A request is never deleted;
cancelling is a status.

Statuses:
- pending: created, waiting for the requested owner
- accepted: requested owner agreed
- awaiting_confirmation: the meeting happened, waiting for the outcome
- declined / cancelled: closed without a breeding
- completed_success / completed_failed: closed by a recorded outcome
"""
from dataclasses import dataclass, asdict
from typing import Optional, Dict, Any
from enum import Enum

from .dog_schema import DogProfile


class MatchStatus(str, Enum):
  """Match request status values"""
  PENDING = "pending"
  ACCEPTED = "accepted"
  DECLINED = "declined"
  CANCELLED = "cancelled"
  AWAITING_CONFIRMATION = "awaiting_confirmation"
  COMPLETED_SUCCESS = "completed_success"
  COMPLETED_FAILED = "completed_failed"

  @classmethod
  def from_string(cls, value: Any) -> Optional["MatchStatus"]:
    """Exact lookup; returns None for anything outside the enumerated set"""
    if isinstance(value, cls):
      return value
    if not isinstance(value, str):
      return None
    try:
      return cls(value)
    except ValueError:
      return None

  @property
  def is_terminal(self) -> bool:
    return self in TERMINAL_STATUSES

  @property
  def is_active(self) -> bool:
    return self in ACTIVE_STATUSES


TERMINAL_STATUSES = frozenset({
  MatchStatus.DECLINED,
  MatchStatus.CANCELLED,
  MatchStatus.COMPLETED_SUCCESS,
  MatchStatus.COMPLETED_FAILED,
})

ACTIVE_STATUSES = frozenset({
  MatchStatus.PENDING,
  MatchStatus.ACCEPTED,
  MatchStatus.AWAITING_CONFIRMATION,
})

COMPLETED_STATUSES = frozenset({
  MatchStatus.COMPLETED_SUCCESS,
  MatchStatus.COMPLETED_FAILED,
})

# Timestamp column stamped when a request enters each status
STATUS_TIMESTAMP_FIELDS = {
  MatchStatus.ACCEPTED: "accepted_at",
  MatchStatus.DECLINED: "declined_at",
  MatchStatus.CANCELLED: "cancelled_at",
  MatchStatus.AWAITING_CONFIRMATION: "awaiting_confirmation_at",
  MatchStatus.COMPLETED_SUCCESS: "completed_at",
  MatchStatus.COMPLETED_FAILED: "completed_at",
}

STATUS_LABELS = {
  MatchStatus.PENDING: "Pending response",
  MatchStatus.ACCEPTED: "Accepted",
  MatchStatus.DECLINED: "Declined",
  MatchStatus.CANCELLED: "Cancelled",
  MatchStatus.AWAITING_CONFIRMATION: "Awaiting confirmation",
  MatchStatus.COMPLETED_SUCCESS: "Successful",
  MatchStatus.COMPLETED_FAILED: "Unsuccessful",
}


class OutcomeType(str, Enum):
  """Result reported by the verifying owner"""
  SUCCESS = "success"
  FAILED = "failed"
  NO_SHOW = "no_show"

  @classmethod
  def from_string(cls, value: Any) -> Optional["OutcomeType"]:
    if isinstance(value, cls):
      return value
    if not isinstance(value, str):
      return None
    try:
      return cls(value)
    except ValueError:
      return None

  @property
  def final_status(self) -> MatchStatus:
    """Status the parent request moves to once this outcome is recorded"""
    if self == OutcomeType.SUCCESS:
      return MatchStatus.COMPLETED_SUCCESS
    return MatchStatus.COMPLETED_FAILED


@dataclass
class MatchRequest:
  """A breeding request between two owners"""

  # Identity & parties
  id: str
  requester_user_id: str
  requested_user_id: str
  requester_dog_id: str
  requested_dog_id: str
  contact_id: Optional[str] = None  # Chat thread the request was made from

  status: str = MatchStatus.PENDING.value

  # Timestamps
  requested_at: Optional[str] = None
  accepted_at: Optional[str] = None
  declined_at: Optional[str] = None
  cancelled_at: Optional[str] = None
  awaiting_confirmation_at: Optional[str] = None
  completed_at: Optional[str] = None
  last_status_changed_at: Optional[str] = None

  # Notes
  requester_notes: Optional[str] = None
  responder_notes: Optional[str] = None

  @property
  def status_enum(self) -> Optional[MatchStatus]:
    return MatchStatus.from_string(self.status)

  @property
  def is_terminal(self) -> bool:
    status = self.status_enum
    return status is not None and status.is_terminal

  def party_dog_id(self, user_id: str) -> Optional[str]:
    """Dog contributed by the given user, None if they are not a party"""
    if str(user_id) == str(self.requester_user_id):
      return self.requester_dog_id
    if str(user_id) == str(self.requested_user_id):
      return self.requested_dog_id
    return None

  def other_party(self, user_id: str) -> Optional[str]:
    if str(user_id) == str(self.requester_user_id):
      return self.requested_user_id
    if str(user_id) == str(self.requested_user_id):
      return self.requester_user_id
    return None

  def to_dict(self) -> Dict:
    return asdict(self)

  @classmethod
  def from_dict(cls, data: Dict) -> "MatchRequest":
    valid_fields = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
    return cls(**valid_fields)


@dataclass
class MatchOutcome:
  """
  The verified result of a match. At most one per request; immutable once
  written.
  """
  id: str
  match_id: str
  verified_by_user_id: str
  verified_by_dog_id: str
  outcome: str                           # OutcomeType value
  litter_size: Optional[int] = None      # Only kept for "success"
  notes: Optional[str] = None
  verified_at: Optional[str] = None

  def to_dict(self) -> Dict:
    return asdict(self)

  @classmethod
  def from_dict(cls, data: Dict) -> "MatchOutcome":
    valid_fields = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
    return cls(**valid_fields)


@dataclass
class MatchView:
  """
  A match request seen from one owner's side.

  Storage is symmetric (requester / requested columns); presentation is
  relative to the viewer.
  """
  match: MatchRequest
  viewer_user_id: str
  my_dog: Optional[DogProfile] = None
  partner_dog: Optional[DogProfile] = None
  outcome: Optional[MatchOutcome] = None

  direction: str = "received"            # "sent" or "received"
  i_am_requester: bool = False
  requires_response: bool = False
  can_cancel: bool = False
  awaiting_my_outcome: bool = False
  is_completed: bool = False
  is_history: bool = False

  @property
  def id(self) -> str:
    return self.match.id

  @property
  def status(self) -> str:
    return self.match.status

  def to_dict(self) -> Dict:
    result = self.match.to_dict()
    result.update({
      'my_dog': self.my_dog.to_dict() if self.my_dog else None,
      'partner_dog': self.partner_dog.to_dict() if self.partner_dog else None,
      'outcome': self.outcome.to_dict() if self.outcome else None,
      'direction': self.direction,
      'i_am_requester': self.i_am_requester,
      'requires_response': self.requires_response,
      'can_cancel': self.can_cancel,
      'awaiting_my_outcome': self.awaiting_my_outcome,
      'is_completed': self.is_completed,
      'is_history': self.is_history,
    })
    return result


@dataclass
class MatchSummary:
  """Counts shown at the top of "my matches" """
  total: int = 0
  pending: int = 0
  accepted: int = 0
  awaiting_confirmation: int = 0
  successes: int = 0
  failures: int = 0
  declines: int = 0                      # declined + cancelled

  def to_dict(self) -> Dict:
    return asdict(self)
