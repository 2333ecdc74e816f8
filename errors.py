"""
Error types raised by the match lifecycle and data access layer

Messages are written to be shown to the person who attempted the action.
"""
from typing import Optional


class MatchError(Exception):
  """Base class for all matchmaker errors"""

  def __init__(self, message: str, code: Optional[str] = None):
    super().__init__(message)
    self.message = message
    self.code = code


class ValidationError(MatchError):
  """Missing or malformed input. Raised before any I/O."""
  pass


class AuthorizationError(MatchError):
  """The actor is not allowed to perform this transition"""
  pass


class StateConflictError(MatchError):
  """The match is not in a state that allows the requested action"""
  pass


class NotFoundError(MatchError):
  """A referenced match or dog does not exist"""
  pass


class StoreError(MatchError):
  """The underlying database failed. The original exception is chained."""
  pass
