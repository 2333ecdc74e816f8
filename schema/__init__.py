"""
Schema Package

Contains all data models for the breeding matchmaker.

Modules:
- dog_schema: Dog profile consumed by the scorer and lifecycle
- match_schema: Match requests, outcomes, viewer-relative views
- events: Notification events raised by lifecycle actions
"""

from .dog_schema import (
  DogProfile,
  DogSize,
  Gender,
  get_current_timestamp,
)

from .match_schema import (
  MatchStatus,
  OutcomeType,
  MatchRequest,
  MatchOutcome,
  MatchView,
  MatchSummary,
  ACTIVE_STATUSES,
  COMPLETED_STATUSES,
  TERMINAL_STATUSES,
  STATUS_LABELS,
  STATUS_TIMESTAMP_FIELDS,
)

from .events import (
  MatchEvent,
  EventType,
  create_request_event,
  create_status_change_event,
  create_outcome_event,
  events_to_timeline,
)

__all__ = [
  # Dog schema
  'DogProfile',
  'DogSize',
  'Gender',
  'get_current_timestamp',

  # Match schema
  'MatchStatus',
  'OutcomeType',
  'MatchRequest',
  'MatchOutcome',
  'MatchView',
  'MatchSummary',
  'ACTIVE_STATUSES',
  'COMPLETED_STATUSES',
  'TERMINAL_STATUSES',
  'STATUS_LABELS',
  'STATUS_TIMESTAMP_FIELDS',

  # Events
  'MatchEvent',
  'EventType',
  'create_request_event',
  'create_status_change_event',
  'create_outcome_event',
  'events_to_timeline',
]
