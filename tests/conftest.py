"""Shared fixtures: temporary database, dog factory, recording notifier."""
from datetime import datetime, timedelta

import pytest

from dal import DAL
from lifecycle import MatchLifecycle
from schema import DogProfile


class RecordingNotifier:
  """Collects every event sent to it"""

  def __init__(self):
    self.events = []

  def send(self, event):
    self.events.append(event)
    return True

  def for_user(self, user_id):
    return [e for e in self.events if e.recipient_user_id == user_id]


class StepClock:
  """ISO timestamps one minute apart, starting 2024-01-01"""

  def __init__(self, start=None):
    self.current = start or datetime(2024, 1, 1, 9, 0, 0)

  def __call__(self):
    value = self.current.isoformat()
    self.current += timedelta(minutes=1)
    return value


def make_dog(dog_id, user_id, **attrs):
  data = {
    "id": dog_id,
    "user_id": user_id,
    "name": dog_id.title(),
  }
  data.update(attrs)
  return DogProfile.from_dict(data)


@pytest.fixture
def dal(tmp_path):
  store = DAL(str(tmp_path / "matches.db"))
  store.init_database()
  return store


@pytest.fixture
def notifier():
  return RecordingNotifier()


@pytest.fixture
def lifecycle(dal, notifier):
  return MatchLifecycle(dal, notifier=notifier, clock=StepClock())


@pytest.fixture
def pair(dal):
  """A male dog owned by alice and a female dog owned by bob"""
  rex = dal.save_dog(make_dog("rex", "alice", gender="male", breed="Labrador Retriever", age_years=3))
  bella = dal.save_dog(make_dog("bella", "bob", gender="female", breed="Labrador Retriever", age_years=4))
  return rex, bella
