"""
Match Request Lifecycle

State machine for breeding requests between two owners.

  pending ──accept──> accepted ──either party──> awaiting_confirmation
     │                   │                               │
     ├─decline─> declined │                               ├─outcome─> completed_success
     └─cancel──> cancelled <────────cancel────────────────┤           completed_failed
                                                          └─cancel──> cancelled

- Only the requested owner may accept or decline, and only while pending.
- Only the requester may cancel (pending, accepted, awaiting_confirmation).
- completed_* is reached only by submitting an outcome, and only the owner
  of the female dog on the match may submit it.
- declined, cancelled, completed_success and completed_failed are final.

Usage:
  lifecycle = MatchLifecycle(DAL("matches.db"), notifier=get_notifier(dal))
  match = lifecycle.create_request("u1", "dog_a", "dog_b")
  lifecycle.accept(match.id, "u2")
"""
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Union

from cache import TTLCache
from dal import DAL
from errors import AuthorizationError, NotFoundError, StateConflictError, ValidationError
from schema import (
  DogProfile, MatchRequest, MatchOutcome, MatchView, MatchSummary, MatchStatus, OutcomeType,
  MatchEvent, COMPLETED_STATUSES, STATUS_TIMESTAMP_FIELDS,
  create_request_event, create_status_change_event, create_outcome_event,
  get_current_timestamp,
)


class Actor(str, Enum):
  """Which party may perform a transition"""
  REQUESTER = "requester"
  REQUESTED = "requested"
  EITHER = "either"


# (from, to) -> who may do it. Anything missing is rejected.
TRANSITIONS = {
  (MatchStatus.PENDING, MatchStatus.ACCEPTED): Actor.REQUESTED,
  (MatchStatus.PENDING, MatchStatus.DECLINED): Actor.REQUESTED,
  (MatchStatus.PENDING, MatchStatus.CANCELLED): Actor.REQUESTER,
  (MatchStatus.ACCEPTED, MatchStatus.CANCELLED): Actor.REQUESTER,
  (MatchStatus.ACCEPTED, MatchStatus.AWAITING_CONFIRMATION): Actor.EITHER,
  (MatchStatus.AWAITING_CONFIRMATION, MatchStatus.CANCELLED): Actor.REQUESTER,
}

CANCELLABLE_STATUSES = frozenset({
  MatchStatus.PENDING,
  MatchStatus.ACCEPTED,
  MatchStatus.AWAITING_CONFIRMATION,
})


def is_terminal(status: Union[str, MatchStatus]) -> bool:
  status = MatchStatus.from_string(status)
  return status is not None and status.is_terminal


def _same_user(a, b) -> bool:
  return a is not None and b is not None and str(a) == str(b)


def check_transition(match: MatchRequest, target: Union[str, MatchStatus], actor_user_id: str) -> MatchStatus:
  """
  Raise unless actor_user_id may move match to target.
  Returns the target as a MatchStatus.
  """
  target_status = MatchStatus.from_string(target)
  if target_status is None:
    raise ValidationError(f"Unsupported match status: {target!r}")

  is_requester = _same_user(actor_user_id, match.requester_user_id)
  is_requested = _same_user(actor_user_id, match.requested_user_id)
  if not (is_requester or is_requested):
    raise AuthorizationError("You are not part of this match.", code="NOT_A_PARTY")

  current = match.status_enum
  if current is None or current.is_terminal:
    raise StateConflictError("This match has already been resolved.", code="TERMINAL_STATE")

  if target_status in COMPLETED_STATUSES:
    raise StateConflictError(
      "A match is completed by recording its outcome.", code="OUTCOME_REQUIRED"
    )

  allowed = TRANSITIONS.get((current, target_status))
  if allowed is None:
    raise StateConflictError(
      f"A {current.value} match cannot be moved to {target_status.value}.",
      code="INVALID_TRANSITION"
    )

  if allowed == Actor.REQUESTED and not is_requested:
    if target_status == MatchStatus.ACCEPTED:
      raise AuthorizationError("You cannot accept your own request.", code="OWN_REQUEST")
    raise AuthorizationError("You cannot respond to your own request.", code="OWN_REQUEST")
  if allowed == Actor.REQUESTER and not is_requester:
    raise AuthorizationError("Only the requester can cancel this request.", code="NOT_REQUESTER")

  return target_status


def can_transition(match: MatchRequest, target: Union[str, MatchStatus], actor_user_id: str) -> bool:
  try:
    check_transition(match, target, actor_user_id)
  except (ValidationError, AuthorizationError, StateConflictError):
    return False
  return True


# ============================================
# Viewer-relative views
# ============================================

def map_match_record(
  match: MatchRequest,
  viewer_user_id: str,
  requester_dog: Optional[DogProfile] = None,
  requested_dog: Optional[DogProfile] = None,
  outcome: Optional[MatchOutcome] = None
) -> MatchView:
  """Present a stored match from the viewer's side"""
  i_am_requester = _same_user(viewer_user_id, match.requester_user_id)
  my_dog = requester_dog if i_am_requester else requested_dog
  partner_dog = requested_dog if i_am_requester else requester_dog

  status = match.status_enum
  is_completed = status in COMPLETED_STATUSES
  is_history = status is not None and status.is_terminal

  return MatchView(
    match=match,
    viewer_user_id=viewer_user_id,
    my_dog=my_dog,
    partner_dog=partner_dog,
    outcome=outcome,
    direction="sent" if i_am_requester else "received",
    i_am_requester=i_am_requester,
    requires_response=status == MatchStatus.PENDING and not i_am_requester,
    can_cancel=i_am_requester and status in CANCELLABLE_STATUSES,
    awaiting_my_outcome=(
      status == MatchStatus.AWAITING_CONFIRMATION
      and my_dog is not None
      and my_dog.is_female
    ),
    is_completed=is_completed,
    is_history=is_history,
  )


def group_matches(views: Iterable[MatchView]) -> Dict[str, List[MatchView]]:
  """Split views into the "my matches" tabs"""
  grouped = {
    "all": [],
    "pending": [],
    "accepted": [],
    "awaiting_confirmation": [],
    "history": [],
  }

  for view in views:
    grouped["all"].append(view)
    status = MatchStatus.from_string(view.status)
    if status == MatchStatus.PENDING:
      grouped["pending"].append(view)
    elif status == MatchStatus.ACCEPTED:
      grouped["accepted"].append(view)
    elif status == MatchStatus.AWAITING_CONFIRMATION:
      grouped["awaiting_confirmation"].append(view)
    else:
      grouped["history"].append(view)

  return grouped


def summarize_matches(matches: Iterable[Union[MatchView, MatchRequest]]) -> MatchSummary:
  """Count matches per bucket; declined and cancelled both count as declines"""
  summary = MatchSummary()

  for match in matches:
    summary.total += 1
    status = MatchStatus.from_string(match.status)
    if status == MatchStatus.PENDING:
      summary.pending += 1
    elif status == MatchStatus.ACCEPTED:
      summary.accepted += 1
    elif status == MatchStatus.AWAITING_CONFIRMATION:
      summary.awaiting_confirmation += 1
    elif status == MatchStatus.COMPLETED_SUCCESS:
      summary.successes += 1
    elif status == MatchStatus.COMPLETED_FAILED:
      summary.failures += 1
    elif status in (MatchStatus.DECLINED, MatchStatus.CANCELLED):
      summary.declines += 1

  return summary


def progress_message(view: MatchView) -> str:
  """One-line explanation of where the match stands, for the viewer"""
  status = MatchStatus.from_string(view.status)

  if status == MatchStatus.PENDING:
    return "Waiting for your decision." if view.requires_response else "Awaiting partner's response."
  if status == MatchStatus.ACCEPTED:
    if view.i_am_requester:
      return "Request accepted. Coordinate the meetup and wait for the outcome."
    return "You accepted this request. Record the outcome once breeding is finished."
  if status == MatchStatus.AWAITING_CONFIRMATION:
    if view.awaiting_my_outcome:
      return "Please confirm whether the breeding was successful."
    return "Waiting for your partner to report the outcome."
  if status == MatchStatus.COMPLETED_SUCCESS:
    return "Breeding marked as successful."
  if status == MatchStatus.COMPLETED_FAILED:
    return "Breeding marked as unsuccessful."
  if status == MatchStatus.DECLINED:
    return "Request was declined."
  if status == MatchStatus.CANCELLED:
    return "Request was cancelled."
  return "Status updated."


# ============================================
# Lifecycle service
# ============================================

class MatchLifecycle:
  """
  Validates and applies match actions on top of the DAL.

  Every write either fully applies or raises one of the errors in
  errors.py; store failures propagate unchanged. After a successful write
  one event is sent to the notifier (if any) and cached "my matches"
  lists for both parties are dropped.
  """

  def __init__(
    self,
    dal: DAL,
    notifier=None,
    cache: Optional[TTLCache] = None,
    clock: Optional[Callable[[], str]] = None
  ):
    self.dal = dal
    self.notifier = notifier
    self.cache = cache
    self._clock = clock or get_current_timestamp

  def _now(self) -> str:
    return self._clock()

  def _emit(self, event: MatchEvent):
    if self.notifier is None:
      return
    try:
      self.notifier.send(event)
    except Exception as e:
      print(f"  ⚠️ Notification for {event.match_id} not delivered: {e}")

  def _invalidate(self, *user_ids: str):
    if self.cache is None:
      return
    for user_id in user_ids:
      self.cache.delete(("matches", str(user_id)))

  def _require_match(self, match_id: str) -> MatchRequest:
    match = self.dal.get_match(match_id)
    if match is None:
      raise NotFoundError(f"Match {match_id} not found")
    return match

  def _require_dog(self, dog_id: str) -> DogProfile:
    dog = self.dal.get_dog(dog_id)
    if dog is None:
      raise NotFoundError(f"Dog {dog_id} not found")
    return dog

  # ---------- create ----------

  def create_request(
    self,
    requester_user_id: str,
    requester_dog_id: str,
    requested_dog_id: str,
    requested_user_id: Optional[str] = None,
    contact_id: Optional[str] = None,
    notes: Optional[str] = None
  ) -> MatchRequest:
    """Ask the owner of requested_dog_id to breed with requester_dog_id"""
    if not requester_user_id:
      raise ValidationError("Not authenticated")
    if not requester_dog_id or not requested_dog_id:
      raise ValidationError("Both dogs must be provided to request breeding")
    if str(requester_dog_id) == str(requested_dog_id):
      raise ValidationError("Dogs must be different")

    requester_dog = self._require_dog(requester_dog_id)
    requested_dog = self._require_dog(requested_dog_id)

    if not _same_user(requester_dog.user_id, requester_user_id):
      raise AuthorizationError("You can only send requests for your own dog.", code="NOT_OWNER")
    if requested_dog.hidden:
      raise NotFoundError(f"Dog {requested_dog_id} not found")

    owner_id = requested_dog.user_id
    if requested_user_id and not _same_user(requested_user_id, owner_id):
      raise ValidationError("The requested user does not own the requested dog.")
    if not owner_id:
      raise ValidationError("Unable to determine the other owner.")
    if _same_user(owner_id, requester_user_id):
      raise ValidationError("You cannot request a match between your own dogs.")

    match = self.dal.create_match_request(
      requester_dog_id=requester_dog.id,
      requested_dog_id=requested_dog.id,
      requester_user_id=str(requester_user_id),
      requested_user_id=str(owner_id),
      contact_id=contact_id,
      notes=notes,
      now=self._now()
    )

    self._invalidate(match.requester_user_id, match.requested_user_id)
    self._emit(create_request_event(
      match_id=match.id,
      recipient_user_id=match.requested_user_id,
      requester_user_id=match.requester_user_id,
      requester_dog_name=requester_dog.name,
      requested_dog_name=requested_dog.name,
      timestamp=match.requested_at
    ))
    return match

  # ---------- status changes ----------

  def update_status(
    self,
    match_id: str,
    status: Union[str, MatchStatus],
    actor_user_id: str,
    notes: Optional[str] = None
  ) -> MatchRequest:
    """
    Move a match to a new status on behalf of actor_user_id.

    Stamps the status-specific timestamp and last_status_changed_at.
    """
    if not match_id:
      raise ValidationError("A match id is required")
    if MatchStatus.from_string(status) is None:
      raise ValidationError("Unsupported match status")
    if not actor_user_id:
      raise ValidationError("Not authenticated")

    match = self._require_match(match_id)
    target = check_transition(match, status, actor_user_id)

    now = self._now()
    stamps = {STATUS_TIMESTAMP_FIELDS[target]: now, "last_status_changed_at": now}
    responder_notes = notes if _same_user(actor_user_id, match.requested_user_id) else None

    updated = self.dal.update_match_status(
      match.id,
      expected_status=match.status,
      new_status=target.value,
      stamps=stamps,
      responder_notes=responder_notes
    )

    self._invalidate(match.requester_user_id, match.requested_user_id)

    actor_dog = self.dal.get_dog(match.party_dog_id(actor_user_id))
    self._emit(create_status_change_event(
      match_id=match.id,
      recipient_user_id=match.other_party(actor_user_id),
      actor_user_id=str(actor_user_id),
      old_status=match.status,
      new_status=target.value,
      partner_dog_name=actor_dog.name if actor_dog else None,
      timestamp=now
    ))
    return updated

  def accept(self, match_id: str, actor_user_id: str, notes: Optional[str] = None) -> MatchRequest:
    return self.update_status(match_id, MatchStatus.ACCEPTED, actor_user_id, notes=notes)

  def decline(self, match_id: str, actor_user_id: str, notes: Optional[str] = None) -> MatchRequest:
    return self.update_status(match_id, MatchStatus.DECLINED, actor_user_id, notes=notes)

  def cancel(self, match_id: str, actor_user_id: str) -> MatchRequest:
    return self.update_status(match_id, MatchStatus.CANCELLED, actor_user_id)

  def mark_awaiting_confirmation(self, match_id: str, actor_user_id: str) -> MatchRequest:
    return self.update_status(match_id, MatchStatus.AWAITING_CONFIRMATION, actor_user_id)

  # ---------- outcome ----------

  def submit_outcome(
    self,
    match_id: str,
    actor_user_id: str,
    verified_dog_id: str,
    outcome: Union[str, OutcomeType],
    litter_size: Optional[int] = None,
    notes: Optional[str] = None
  ) -> MatchOutcome:
    """
    Record the result of a match and close it.

    Only valid while the match is awaiting_confirmation, and only for the
    owner of the female dog on the match. success closes the match as
    completed_success; failed and no_show close it as completed_failed.
    """
    if not match_id:
      raise ValidationError("A match id is required")
    if not verified_dog_id:
      raise ValidationError("Select the dog that took part in the breeding")
    outcome_type = OutcomeType.from_string(outcome)
    if outcome_type is None:
      raise ValidationError("Invalid outcome")
    if not actor_user_id:
      raise ValidationError("Not authenticated")
    if litter_size is not None and (
      isinstance(litter_size, bool) or not isinstance(litter_size, int) or litter_size < 0
    ):
      raise ValidationError("Please enter a valid litter size")

    match = self._require_match(match_id)

    if not (_same_user(actor_user_id, match.requester_user_id)
            or _same_user(actor_user_id, match.requested_user_id)):
      raise AuthorizationError("You are not part of this match.", code="NOT_A_PARTY")

    if match.status_enum != MatchStatus.AWAITING_CONFIRMATION:
      if match.status_enum in COMPLETED_STATUSES:
        raise StateConflictError("This match has already been resolved.", code="OUTCOME_EXISTS")
      raise StateConflictError(
        "Outcomes can only be recorded while the match is awaiting confirmation.",
        code="OUTCOME_NOT_ALLOWED"
      )

    if str(verified_dog_id) not in (str(match.requester_dog_id), str(match.requested_dog_id)):
      raise AuthorizationError("That dog is not part of this match.", code="DOG_NOT_ON_MATCH")

    dog = self._require_dog(verified_dog_id)
    if not _same_user(dog.user_id, actor_user_id) or str(match.party_dog_id(actor_user_id)) != str(dog.id):
      raise AuthorizationError("You can only verify a match with your own dog.", code="NOT_OWNER")
    if not dog.is_female:
      raise AuthorizationError(
        "Only the female dog's owner can record the outcome.", code="NOT_FEMALE_OWNER"
      )

    final_status = outcome_type.final_status
    now = self._now()
    record = MatchOutcome(
      id="",
      match_id=match.id,
      verified_by_user_id=str(actor_user_id),
      verified_by_dog_id=dog.id,
      outcome=outcome_type.value,
      litter_size=litter_size if outcome_type == OutcomeType.SUCCESS else None,
      notes=notes or None,
      verified_at=now,
    )

    saved = self.dal.insert_outcome_and_finalize(record, final_status.value, now=now)

    self._invalidate(match.requester_user_id, match.requested_user_id)
    self._emit(create_outcome_event(
      match_id=match.id,
      recipient_user_id=match.other_party(actor_user_id),
      actor_user_id=str(actor_user_id),
      outcome=outcome_type.value,
      final_status=final_status.value,
      litter_size=saved.litter_size,
      partner_dog_name=dog.name,
      timestamp=now
    ))
    return saved

  # ---------- views ----------

  def _load_views(self, viewer_user_id: str) -> List[MatchView]:
    matches = self.dal.list_matches_for_user(viewer_user_id)
    dog_ids = [m.requester_dog_id for m in matches] + [m.requested_dog_id for m in matches]
    dogs = self.dal.get_dogs(dog_ids)
    outcomes = self.dal.get_outcomes(m.id for m in matches)

    return [
      map_match_record(
        m,
        viewer_user_id,
        requester_dog=dogs.get(str(m.requester_dog_id)),
        requested_dog=dogs.get(str(m.requested_dog_id)),
        outcome=outcomes.get(m.id)
      )
      for m in matches
    ]

  def list_matches(self, viewer_user_id: str) -> List[MatchView]:
    """Every match the viewer is part of, newest first, from their side"""
    if not viewer_user_id:
      return []
    if self.cache is None:
      return self._load_views(viewer_user_id)
    return self.cache.get_or_load(
      ("matches", str(viewer_user_id)),
      lambda: self._load_views(viewer_user_id)
    )

  def my_matches(self, viewer_user_id: str) -> Dict:
    """Grouped views plus summary counts for the "my matches" screen"""
    views = self.list_matches(viewer_user_id)
    result = group_matches(views)
    result["summary"] = summarize_matches(views)
    return result
