"""Tests for the match request lifecycle."""
import pytest

from cache import TTLCache
from errors import AuthorizationError, NotFoundError, StateConflictError, StoreError, ValidationError
from lifecycle import (
  MatchLifecycle,
  can_transition,
  check_transition,
  is_terminal,
  map_match_record,
  group_matches,
  summarize_matches,
  progress_message,
)
from schema import MatchRequest, MatchStatus, TERMINAL_STATUSES
from tests.conftest import StepClock, make_dog


def request_in(status):
  return MatchRequest(
    id="m1",
    requester_user_id="alice",
    requested_user_id="bob",
    requester_dog_id="rex",
    requested_dog_id="bella",
    status=status,
  )


def drive_to(lifecycle, status):
  """Create rex -> bella and walk it to the given status"""
  match = lifecycle.create_request("alice", "rex", "bella")
  steps = {
    "pending": [],
    "accepted": [("accept", "bob")],
    "awaiting_confirmation": [("accept", "bob"), ("mark_awaiting_confirmation", "alice")],
    "declined": [("decline", "bob")],
    "cancelled": [("cancel", "alice")],
  }
  if status in ("completed_success", "completed_failed"):
    drive_to_awaiting = steps["awaiting_confirmation"]
    for action, actor in drive_to_awaiting:
      getattr(lifecycle, action)(match.id, actor)
    result = "success" if status == "completed_success" else "failed"
    lifecycle.submit_outcome(match.id, "bob", "bella", result)
  else:
    for action, actor in steps[status]:
      getattr(lifecycle, action)(match.id, actor)
  return lifecycle.dal.get_match(match.id)


class TestTransitionRules:
  """Pure permission and transition checks"""

  @pytest.mark.parametrize("current,target,actor,allowed", [
    ("pending", "accepted", "bob", True),
    ("pending", "accepted", "alice", False),
    ("pending", "declined", "bob", True),
    ("pending", "declined", "alice", False),
    ("pending", "cancelled", "alice", True),
    ("pending", "cancelled", "bob", False),
    ("pending", "awaiting_confirmation", "bob", False),
    ("accepted", "awaiting_confirmation", "alice", True),
    ("accepted", "awaiting_confirmation", "bob", True),
    ("accepted", "cancelled", "alice", True),
    ("accepted", "declined", "bob", False),
    ("awaiting_confirmation", "cancelled", "alice", True),
    ("awaiting_confirmation", "accepted", "bob", False),
    ("accepted", "completed_success", "bob", False),
    ("awaiting_confirmation", "completed_failed", "bob", False),
  ])
  def test_can_transition(self, current, target, actor, allowed):
    assert can_transition(request_in(current), target, actor) is allowed

  def test_own_request_cannot_be_answered(self):
    with pytest.raises(AuthorizationError) as exc:
      check_transition(request_in("pending"), "declined", "alice")
    assert "your own request" in exc.value.message

  def test_only_requester_can_cancel(self):
    with pytest.raises(AuthorizationError):
      check_transition(request_in("accepted"), "cancelled", "bob")

  def test_outsider_is_rejected(self):
    with pytest.raises(AuthorizationError):
      check_transition(request_in("pending"), "accepted", "mallory")

  def test_unknown_status_is_a_validation_error(self):
    with pytest.raises(ValidationError):
      check_transition(request_in("pending"), "approved", "bob")

  def test_completed_is_reserved_for_outcomes(self):
    with pytest.raises(StateConflictError) as exc:
      check_transition(request_in("awaiting_confirmation"), "completed_success", "bob")
    assert exc.value.code == "OUTCOME_REQUIRED"

  @pytest.mark.parametrize("terminal", sorted(s.value for s in TERMINAL_STATUSES))
  @pytest.mark.parametrize("actor", ["alice", "bob"])
  def test_terminal_states_accept_nothing(self, terminal, actor):
    for target in MatchStatus:
      with pytest.raises(StateConflictError) as exc:
        check_transition(request_in(terminal), target, actor)
      assert exc.value.message == "This match has already been resolved."

  def test_is_terminal(self):
    assert is_terminal("declined")
    assert is_terminal(MatchStatus.COMPLETED_FAILED)
    assert not is_terminal("pending")
    assert not is_terminal("bogus")


class TestCreateRequest:
  """Creating breeding requests"""

  def test_creates_pending_request(self, lifecycle, dal, notifier, pair):
    match = lifecycle.create_request("alice", "rex", "bella", notes="Hi!")

    assert match.status == "pending"
    assert match.requester_user_id == "alice"
    assert match.requested_user_id == "bob"
    assert match.requested_at == "2024-01-01T09:00:00"
    assert match.last_status_changed_at == match.requested_at
    assert match.requester_notes == "Hi!"

    assert dal.get_dog("rex").match_requests_count == 1
    assert dal.get_dog("bella").match_requests_count == 1

    assert len(notifier.events) == 1
    event = notifier.events[0]
    assert event.recipient_user_id == "bob"
    assert event.event_type == "request_created"
    assert "Rex" in event.message

  def test_same_dog_is_rejected(self, lifecycle, pair):
    with pytest.raises(ValidationError):
      lifecycle.create_request("alice", "rex", "rex")

  def test_missing_ids_are_rejected_before_lookup(self, lifecycle):
    with pytest.raises(ValidationError):
      lifecycle.create_request("", "rex", "bella")
    with pytest.raises(ValidationError):
      lifecycle.create_request("alice", "rex", None)

  def test_unknown_dog(self, lifecycle, pair):
    with pytest.raises(NotFoundError):
      lifecycle.create_request("alice", "rex", "nobody")

  def test_requester_must_own_dog(self, lifecycle, pair):
    with pytest.raises(AuthorizationError):
      lifecycle.create_request("carol", "rex", "bella")

  def test_cannot_request_own_dogs(self, lifecycle, dal, pair):
    dal.save_dog(make_dog("luna", "alice", gender="female"))

    with pytest.raises(ValidationError):
      lifecycle.create_request("alice", "rex", "luna")

  def test_hidden_dog_cannot_be_requested(self, lifecycle, dal, pair):
    dal.save_dog(make_dog("ghost", "carol", gender="female", hidden=True))

    with pytest.raises(NotFoundError):
      lifecycle.create_request("alice", "rex", "ghost")

  def test_requested_user_must_own_requested_dog(self, lifecycle, pair):
    with pytest.raises(ValidationError):
      lifecycle.create_request("alice", "rex", "bella", requested_user_id="carol")

  def test_one_active_request_per_chat(self, lifecycle, dal, pair):
    first = lifecycle.create_request("alice", "rex", "bella", contact_id="chat-1")

    with pytest.raises(StateConflictError) as exc:
      lifecycle.create_request("alice", "rex", "bella", contact_id="chat-1")
    assert exc.value.code == "MATCH_REQUEST_EXISTS"

    lifecycle.decline(first.id, "bob")
    second = lifecycle.create_request("alice", "rex", "bella", contact_id="chat-1")
    assert second.status == "pending"
    assert dal.get_active_request_for_contact("chat-1").id == second.id


class TestUpdateStatus:
  """Accept, decline, cancel and awaiting confirmation"""

  def test_accept(self, lifecycle, dal, notifier, pair):
    match = lifecycle.create_request("alice", "rex", "bella")

    accepted = lifecycle.accept(match.id, "bob")

    assert accepted.status == "accepted"
    assert accepted.accepted_at == "2024-01-01T09:01:00"
    assert accepted.last_status_changed_at == accepted.accepted_at
    assert dal.get_dog("rex").match_accept_count == 1
    assert dal.get_dog("bella").match_accept_count == 1

    event = notifier.events[-1]
    assert event.recipient_user_id == "alice"
    assert event.old_status == "pending"
    assert event.new_status == "accepted"

  def test_decline_path(self, lifecycle, dal, pair):
    match = lifecycle.create_request("alice", "rex", "bella")

    with pytest.raises(AuthorizationError):
      lifecycle.accept(match.id, "alice")
    assert dal.get_match(match.id).status == "pending"

    declined = lifecycle.decline(match.id, "bob", notes="Not this season")
    assert declined.status == "declined"
    assert declined.declined_at is not None
    assert declined.responder_notes == "Not this season"
    assert declined.is_terminal

    with pytest.raises(StateConflictError):
      lifecycle.cancel(match.id, "alice")
    assert dal.get_match(match.id).status == "declined"

  @pytest.mark.parametrize("status", ["pending", "accepted", "awaiting_confirmation"])
  def test_requester_can_cancel_active_match(self, lifecycle, pair, status):
    match = drive_to(lifecycle, status)

    cancelled = lifecycle.cancel(match.id, "alice")

    assert cancelled.status == "cancelled"
    assert cancelled.cancelled_at is not None

  @pytest.mark.parametrize("actor", ["alice", "bob"])
  def test_either_party_marks_awaiting(self, lifecycle, pair, actor):
    match = drive_to(lifecycle, "accepted")

    updated = lifecycle.mark_awaiting_confirmation(match.id, actor)

    assert updated.status == "awaiting_confirmation"
    assert updated.awaiting_confirmation_at is not None

  def test_cannot_complete_directly(self, lifecycle, dal, pair):
    match = drive_to(lifecycle, "awaiting_confirmation")

    with pytest.raises(StateConflictError):
      lifecycle.update_status(match.id, "completed_success", "bob")
    assert dal.get_match(match.id).status == "awaiting_confirmation"

  def test_unknown_status(self, lifecycle, pair):
    match = lifecycle.create_request("alice", "rex", "bella")
    with pytest.raises(ValidationError):
      lifecycle.update_status(match.id, "approved", "bob")

  def test_unknown_match(self, lifecycle):
    with pytest.raises(NotFoundError):
      lifecycle.accept("missing", "bob")

  def test_stale_status_is_rejected(self, lifecycle, dal, pair):
    match = lifecycle.create_request("alice", "rex", "bella")
    lifecycle.cancel(match.id, "alice")

    with pytest.raises(StateConflictError) as exc:
      dal.update_match_status(match.id, "pending", "accepted", {"accepted_at": "2024-01-02T00:00:00"})
    assert exc.value.code == "STALE_STATUS"
    assert dal.get_match(match.id).status == "cancelled"

  @pytest.mark.parametrize("terminal", ["declined", "cancelled", "completed_success", "completed_failed"])
  def test_no_transition_leaves_a_terminal_state(self, lifecycle, dal, pair, terminal):
    match = drive_to(lifecycle, terminal)
    assert match.status == terminal

    for target in ("pending", "accepted", "declined", "cancelled", "awaiting_confirmation"):
      for actor in ("alice", "bob"):
        with pytest.raises(StateConflictError):
          lifecycle.update_status(match.id, target, actor)

    assert dal.get_match(match.id).status == terminal


class TestSubmitOutcome:
  """Recording the breeding outcome"""

  def test_happy_path(self, lifecycle, dal, notifier, pair):
    match = lifecycle.create_request("alice", "rex", "bella")
    assert match.status == "pending"

    assert lifecycle.accept(match.id, "bob").accepted_at is not None
    assert lifecycle.mark_awaiting_confirmation(match.id, "alice").status == "awaiting_confirmation"

    outcome = lifecycle.submit_outcome(match.id, "bob", "bella", "success", litter_size=4)

    assert outcome.outcome == "success"
    assert outcome.litter_size == 4
    assert outcome.verified_by_user_id == "bob"
    assert outcome.verified_by_dog_id == "bella"

    closed = dal.get_match(match.id)
    assert closed.status == "completed_success"
    assert closed.completed_at is not None
    assert closed.last_status_changed_at == closed.completed_at
    assert dal.get_outcome(match.id).litter_size == 4

    rex = dal.get_dog("rex")
    bella = dal.get_dog("bella")
    assert rex.match_completed_count == 1
    assert rex.match_success_count == 1
    assert rex.male_success_rate == 100.0
    assert bella.female_successful_matings == 1

    event = notifier.events[-1]
    assert event.event_type == "outcome_recorded"
    assert event.recipient_user_id == "alice"
    assert event.details["litter_size"] == 4

  def test_second_outcome_is_rejected(self, lifecycle, dal, pair):
    match = drive_to(lifecycle, "awaiting_confirmation")
    lifecycle.submit_outcome(match.id, "bob", "bella", "failed")

    with pytest.raises(StateConflictError):
      lifecycle.submit_outcome(match.id, "bob", "bella", "success", litter_size=3)

    assert dal.get_match(match.id).status == "completed_failed"
    assert dal.get_outcome(match.id).outcome == "failed"

  @pytest.mark.parametrize("result", ["failed", "no_show"])
  def test_unsuccessful_outcomes(self, lifecycle, dal, pair, result):
    match = drive_to(lifecycle, "awaiting_confirmation")

    outcome = lifecycle.submit_outcome(match.id, "bob", "bella", result, litter_size=2)

    assert outcome.litter_size is None
    assert dal.get_match(match.id).status == "completed_failed"
    assert dal.get_dog("rex").match_failure_count == 1
    assert dal.get_dog("rex").male_success_rate == 0.0
    assert dal.get_dog("bella").female_successful_matings == 0

  @pytest.mark.parametrize("status", ["pending", "accepted"])
  def test_requires_awaiting_confirmation(self, lifecycle, dal, pair, status):
    match = drive_to(lifecycle, status)

    with pytest.raises(StateConflictError):
      lifecycle.submit_outcome(match.id, "bob", "bella", "success")
    assert dal.get_outcome(match.id) is None

  def test_male_owner_cannot_record(self, lifecycle, pair):
    match = drive_to(lifecycle, "awaiting_confirmation")

    with pytest.raises(AuthorizationError):
      lifecycle.submit_outcome(match.id, "alice", "rex", "success")

  def test_must_use_own_dog(self, lifecycle, pair):
    match = drive_to(lifecycle, "awaiting_confirmation")

    with pytest.raises(AuthorizationError):
      lifecycle.submit_outcome(match.id, "alice", "bella", "success")

  def test_dog_must_be_on_match(self, lifecycle, dal, pair):
    dal.save_dog(make_dog("luna", "bob", gender="female"))
    match = drive_to(lifecycle, "awaiting_confirmation")

    with pytest.raises(AuthorizationError):
      lifecycle.submit_outcome(match.id, "bob", "luna", "success")

  @pytest.mark.parametrize("kwargs", [
    {"outcome": "maybe"},
    {"outcome": "success", "litter_size": -1},
    {"outcome": "success", "litter_size": 2.5},
    {"outcome": "success", "litter_size": True},
    {"outcome": "success", "verified_dog_id": ""},
  ])
  def test_invalid_input(self, lifecycle, pair, kwargs):
    match = drive_to(lifecycle, "awaiting_confirmation")
    args = {"match_id": match.id, "actor_user_id": "bob", "verified_dog_id": "bella"}
    args.update(kwargs)

    with pytest.raises(ValidationError):
      lifecycle.submit_outcome(**args)


class TestMatchViews:
  """Viewer-relative presentation, grouping and summaries"""

  def test_direction_depends_on_viewer(self, lifecycle, pair):
    rex, bella = pair
    lifecycle.create_request("alice", "rex", "bella")

    [as_alice] = lifecycle.list_matches("alice")
    [as_bob] = lifecycle.list_matches("bob")

    assert as_alice.direction == "sent"
    assert as_alice.my_dog.id == "rex"
    assert as_alice.partner_dog.id == "bella"
    assert as_alice.can_cancel
    assert not as_alice.requires_response

    assert as_bob.direction == "received"
    assert as_bob.my_dog.id == "bella"
    assert as_bob.partner_dog.id == "rex"
    assert as_bob.requires_response
    assert not as_bob.can_cancel

  def test_map_match_record_is_pure(self):
    rex = make_dog("rex", "alice", gender="male")
    bella = make_dog("bella", "bob", gender="female")
    match = request_in("awaiting_confirmation")

    view = map_match_record(match, "bob", requester_dog=rex, requested_dog=bella)

    assert view.awaiting_my_outcome
    assert not view.is_history
    assert progress_message(view) == "Please confirm whether the breeding was successful."

    other = map_match_record(match, "alice", requester_dog=rex, requested_dog=bella)
    assert not other.awaiting_my_outcome
    assert progress_message(other) == "Waiting for your partner to report the outcome."

  def test_my_matches_groups_and_summary(self, lifecycle, dal, pair):
    dal.save_dog(make_dog("daisy", "carol", gender="female"))
    dal.save_dog(make_dog("milo", "dave", gender="female"))
    dal.save_dog(make_dog("nala", "erin", gender="female"))

    lifecycle.create_request("alice", "rex", "bella")
    declined = lifecycle.create_request("alice", "rex", "daisy")
    lifecycle.decline(declined.id, "carol")
    accepted = lifecycle.create_request("alice", "rex", "milo")
    lifecycle.accept(accepted.id, "dave")
    done = lifecycle.create_request("alice", "rex", "nala")
    lifecycle.accept(done.id, "erin")
    lifecycle.mark_awaiting_confirmation(done.id, "erin")
    lifecycle.submit_outcome(done.id, "erin", "nala", "success", litter_size=5)

    result = lifecycle.my_matches("alice")

    assert len(result["all"]) == 4
    assert [v.partner_dog.id for v in result["pending"]] == ["bella"]
    assert [v.partner_dog.id for v in result["accepted"]] == ["milo"]
    assert result["awaiting_confirmation"] == []
    assert {v.partner_dog.id for v in result["history"]} == {"daisy", "nala"}

    # newest first
    assert result["all"][0].partner_dog.id == "nala"
    assert result["all"][0].outcome.litter_size == 5

    summary = result["summary"]
    assert summary.total == 4
    assert summary.pending == 1
    assert summary.accepted == 1
    assert summary.successes == 1
    assert summary.failures == 0
    assert summary.declines == 1

  def test_summary_counts_cancelled_as_declines(self):
    matches = [request_in(s) for s in ("declined", "cancelled", "completed_failed", "pending")]

    summary = summarize_matches(matches)

    assert summary.declines == 2
    assert summary.failures == 1
    assert summary.pending == 1
    assert summary.total == 4

  def test_group_matches_empty(self):
    grouped = group_matches([])
    assert grouped == {"all": [], "pending": [], "accepted": [], "awaiting_confirmation": [], "history": []}

  def test_list_matches_without_viewer(self, lifecycle):
    assert lifecycle.list_matches("") == []


class TestMatchCache:
  """Lifecycle writes drop cached lists for both parties"""

  def test_cache_is_invalidated_on_write(self, dal, notifier, pair):
    cache = TTLCache(default_ttl=120)
    lifecycle = MatchLifecycle(dal, notifier=notifier, cache=cache, clock=StepClock())
    match = lifecycle.create_request("alice", "rex", "bella")

    assert lifecycle.list_matches("bob")[0].status == "pending"
    assert ("matches", "bob") in cache

    lifecycle.accept(match.id, "bob")

    assert ("matches", "bob") not in cache
    assert ("matches", "alice") not in cache
    assert lifecycle.list_matches("bob")[0].status == "accepted"

  def test_cached_list_is_reused(self, dal, notifier, pair):
    cache = TTLCache(default_ttl=120)
    lifecycle = MatchLifecycle(dal, notifier=notifier, cache=cache, clock=StepClock())
    lifecycle.create_request("alice", "rex", "bella")

    first = lifecycle.list_matches("alice")
    second = lifecycle.list_matches("alice")

    assert first is second


class TestNotifierFailures:
  """A committed write stands even when the notifier raises"""

  class ExplodingNotifier:
    def send(self, event):
      raise StoreError("notifications table is locked")

  def test_status_change_survives_notifier_error(self, dal, pair, capsys):
    lifecycle = MatchLifecycle(dal, notifier=self.ExplodingNotifier(), clock=StepClock())
    match = lifecycle.create_request("alice", "rex", "bella")

    accepted = lifecycle.accept(match.id, "bob")

    assert accepted.status == "accepted"
    assert dal.get_match(match.id).status == "accepted"
    assert "not delivered" in capsys.readouterr().out

  def test_outcome_survives_notifier_error(self, dal, pair):
    lifecycle = MatchLifecycle(dal, notifier=self.ExplodingNotifier(), clock=StepClock())
    match = drive_to(lifecycle, "awaiting_confirmation")

    outcome = lifecycle.submit_outcome(match.id, "bob", "bella", "success", litter_size=3)

    assert outcome.litter_size == 3
    assert dal.get_match(match.id).status == "completed_success"
