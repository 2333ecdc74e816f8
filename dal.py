"""
Data Access Layer (DAL)

Central API for all matchmaker storage. The lifecycle reads and writes
dogs, match requests, outcomes and notifications only through this layer.

Design Principles:
- Storage implementation is abstracted (SQLite here)
- Every status write is a compare-and-swap on the current status
- Outcome insert + parent finalisation + dog counters run in one transaction
- sqlite3 failures surface as StoreError, never retried

Usage:
  from dal import DAL

  dal = DAL("matches.db")
  dal.init_database()
  dog = dal.get_dog("dog_1")
  matches = dal.list_matches_for_user("user_1")
"""
import sqlite3
import json
import uuid
from typing import List, Optional, Dict, Iterable, Set
from contextlib import contextmanager

from errors import NotFoundError, StateConflictError, StoreError
from schema import (
  DogProfile, Gender,
  MatchRequest, MatchOutcome, MatchStatus, MatchEvent,
  ACTIVE_STATUSES, STATUS_TIMESTAMP_FIELDS,
  get_current_timestamp,
)


DOG_COLUMNS = [
  "id", "user_id", "name", "gender", "breed", "age_years", "size", "weight_kg",
  "coat_type", "color", "activity_level", "sociability", "trainability", "hidden",
  "created_at", "updated_at",
]

# Columns update_match_status is allowed to stamp
STAMPABLE_COLUMNS = set(STATUS_TIMESTAMP_FIELDS.values()) | {"last_status_changed_at"}

STATUS_VALUES_SQL = ", ".join(f"'{s.value}'" for s in MatchStatus)


class DAL:
  """
  Data Access Layer - The single gateway for all data operations.

  Responsibilities:
  - Dog repository (profiles, visibility, aggregate counters)
  - Match repository (requests, status transitions, outcomes)
  - In-app notification storage
  """

  def __init__(self, db_path: str = "matches.db"):
    self.db_path = db_path

  # ============================================
  # Database Connection Management
  # ============================================

  @contextmanager
  def _get_connection(self, immediate: bool = False):
    """
    Get database connection with automatic cleanup.

    immediate=True takes the write lock up front (BEGIN IMMEDIATE) so a
    read-check-write sequence cannot interleave with another writer.
    """
    try:
      conn = sqlite3.connect(self.db_path, timeout=10)
    except sqlite3.Error as e:
      raise StoreError(f"Could not open database {self.db_path}: {e}") from e

    conn.row_factory = sqlite3.Row
    try:
      conn.execute("PRAGMA foreign_keys = ON")
      if immediate:
        conn.execute("BEGIN IMMEDIATE")
      yield conn
      conn.commit()
    except sqlite3.Error as e:
      conn.rollback()
      raise StoreError(f"Database error: {e}") from e
    except Exception:
      conn.rollback()
      raise
    finally:
      conn.close()

  def init_database(self):
    """Initialize database schema"""
    with self._get_connection() as conn:
      cursor = conn.cursor()

      cursor.execute("""
        CREATE TABLE IF NOT EXISTS dogs (
          id TEXT PRIMARY KEY,
          user_id TEXT NOT NULL,
          name TEXT,
          gender TEXT,
          breed TEXT,
          age_years REAL,
          size TEXT,
          weight_kg REAL,
          coat_type TEXT,
          color TEXT,
          activity_level TEXT,
          sociability TEXT,
          trainability TEXT,
          hidden INTEGER DEFAULT 0,
          match_requests_count INTEGER DEFAULT 0,
          match_accept_count INTEGER DEFAULT 0,
          match_completed_count INTEGER DEFAULT 0,
          match_success_count INTEGER DEFAULT 0,
          match_failure_count INTEGER DEFAULT 0,
          female_successful_matings INTEGER DEFAULT 0,
          male_success_rate REAL,
          created_at TEXT,
          updated_at TEXT
        )
      """)

      cursor.execute(f"""
        CREATE TABLE IF NOT EXISTS match_requests (
          id TEXT PRIMARY KEY,
          requester_user_id TEXT NOT NULL,
          requested_user_id TEXT NOT NULL,
          requester_dog_id TEXT NOT NULL,
          requested_dog_id TEXT NOT NULL,
          contact_id TEXT,
          status TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ({STATUS_VALUES_SQL})),
          requested_at TEXT NOT NULL,
          accepted_at TEXT,
          declined_at TEXT,
          cancelled_at TEXT,
          awaiting_confirmation_at TEXT,
          completed_at TEXT,
          last_status_changed_at TEXT,
          requester_notes TEXT,
          responder_notes TEXT,
          CHECK (requester_dog_id <> requested_dog_id),
          CHECK (requester_user_id <> requested_user_id),
          FOREIGN KEY (requester_dog_id) REFERENCES dogs(id),
          FOREIGN KEY (requested_dog_id) REFERENCES dogs(id)
        )
      """)

      cursor.execute("""
        CREATE TABLE IF NOT EXISTS match_outcomes (
          id TEXT PRIMARY KEY,
          match_id TEXT NOT NULL UNIQUE,
          verified_by_user_id TEXT NOT NULL,
          verified_by_dog_id TEXT NOT NULL,
          outcome TEXT NOT NULL CHECK (outcome IN ('success', 'failed', 'no_show')),
          litter_size INTEGER CHECK (litter_size IS NULL OR litter_size >= 0),
          notes TEXT,
          verified_at TEXT NOT NULL,
          FOREIGN KEY (match_id) REFERENCES match_requests(id)
        )
      """)

      cursor.execute("""
        CREATE TABLE IF NOT EXISTS notifications (
          id INTEGER PRIMARY KEY AUTOINCREMENT,
          user_id TEXT NOT NULL,
          title TEXT,
          message TEXT,
          type TEXT DEFAULT 'general',
          match_id TEXT,
          metadata_json TEXT,
          status TEXT DEFAULT 'unread',
          created_at TEXT NOT NULL,
          read_at TEXT
        )
      """)

      # Indexes
      cursor.execute("CREATE INDEX IF NOT EXISTS idx_dogs_owner ON dogs(user_id)")
      cursor.execute("CREATE INDEX IF NOT EXISTS idx_dogs_hidden ON dogs(hidden)")
      cursor.execute("CREATE INDEX IF NOT EXISTS idx_matches_status ON match_requests(status)")
      cursor.execute("CREATE INDEX IF NOT EXISTS idx_matches_contact ON match_requests(contact_id)")
      cursor.execute("CREATE INDEX IF NOT EXISTS idx_matches_requester ON match_requests(requester_user_id)")
      cursor.execute("CREATE INDEX IF NOT EXISTS idx_matches_requested ON match_requests(requested_user_id)")
      cursor.execute("CREATE INDEX IF NOT EXISTS idx_notifications_user ON notifications(user_id)")

  # ============================================
  # Dog Repository
  # ============================================

  def save_dog(self, dog: DogProfile) -> DogProfile:
    """
    Insert or update a dog's profile.
    Aggregate counters are never overwritten here.
    """
    now = get_current_timestamp()
    existing = self.get_dog(dog.id)

    values = {
      "id": dog.id,
      "user_id": dog.user_id,
      "name": dog.name,
      "gender": dog.gender,
      "breed": dog.breed,
      "age_years": dog.age_years,
      "size": dog.size,
      "weight_kg": dog.weight_kg,
      "coat_type": dog.coat_type,
      "color": dog.color,
      "activity_level": dog.activity_level,
      "sociability": dog.sociability,
      "trainability": dog.trainability,
      "hidden": 1 if dog.hidden else 0,
      "created_at": existing.created_at if existing else (dog.created_at or now),
      "updated_at": now,
    }

    with self._get_connection() as conn:
      cursor = conn.cursor()

      if existing:
        assignments = ", ".join(f"{col} = ?" for col in DOG_COLUMNS if col != "id")
        cursor.execute(
          f"UPDATE dogs SET {assignments} WHERE id = ?",
          [values[col] for col in DOG_COLUMNS if col != "id"] + [dog.id]
        )
      else:
        placeholders = ", ".join("?" * len(DOG_COLUMNS))
        cursor.execute(
          f"INSERT INTO dogs ({', '.join(DOG_COLUMNS)}) VALUES ({placeholders})",
          [values[col] for col in DOG_COLUMNS]
        )
        print(f"  🆕 New dog: {dog.name or dog.id} ({dog.breed or '?'}, {dog.gender or '?'})")

    return self.get_dog(dog.id)

  def get_dog(self, dog_id: str) -> Optional[DogProfile]:
    """Get a single dog by ID"""
    with self._get_connection() as conn:
      cursor = conn.cursor()
      cursor.execute("SELECT * FROM dogs WHERE id = ?", (str(dog_id),))
      row = cursor.fetchone()

      if not row:
        return None

      return self._row_to_dog(row)

  def get_dogs(self, dog_ids: Iterable[str]) -> Dict[str, DogProfile]:
    """Get several dogs at once, keyed by id"""
    ids = sorted({str(d) for d in dog_ids if d})
    if not ids:
      return {}

    with self._get_connection() as conn:
      cursor = conn.cursor()
      placeholders = ",".join("?" * len(ids))
      cursor.execute(f"SELECT * FROM dogs WHERE id IN ({placeholders})", ids)
      return {row["id"]: self._row_to_dog(row) for row in cursor.fetchall()}

  def get_dogs_visible_to(self, viewer_user_id: str) -> List[DogProfile]:
    """Visible dogs owned by anyone except the viewer"""
    with self._get_connection() as conn:
      cursor = conn.cursor()
      cursor.execute(
        "SELECT * FROM dogs WHERE hidden = 0 AND user_id != ? ORDER BY id",
        (str(viewer_user_id),)
      )
      return [self._row_to_dog(row) for row in cursor.fetchall()]

  def get_dogs_by_owner(self, user_id: str) -> List[DogProfile]:
    """All dogs owned by a user, hidden ones included"""
    with self._get_connection() as conn:
      cursor = conn.cursor()
      cursor.execute("SELECT * FROM dogs WHERE user_id = ? ORDER BY id", (str(user_id),))
      return [self._row_to_dog(row) for row in cursor.fetchall()]

  def _row_to_dog(self, row: sqlite3.Row) -> DogProfile:
    return DogProfile.from_dict(dict(row))

  # ============================================
  # Match Repository
  # ============================================

  def create_match_request(
    self,
    requester_dog_id: str,
    requested_dog_id: str,
    requester_user_id: str,
    requested_user_id: str,
    contact_id: Optional[str] = None,
    notes: Optional[str] = None,
    now: Optional[str] = None
  ) -> MatchRequest:
    """
    Store a new pending request and bump both dogs' request counters.

    Raises StateConflictError when the chat thread (contact_id) already has
    an active request.
    """
    now = now or get_current_timestamp()
    match_id = uuid.uuid4().hex

    with self._get_connection(immediate=True) as conn:
      cursor = conn.cursor()

      if contact_id:
        active = self._active_request_for_contact(cursor, contact_id)
        if active:
          raise StateConflictError(
            "A breeding request is already awaiting a response in this chat.",
            code="MATCH_REQUEST_EXISTS"
          )

      cursor.execute("""
        INSERT INTO match_requests (
          id, requester_user_id, requested_user_id, requester_dog_id, requested_dog_id,
          contact_id, status, requested_at, last_status_changed_at, requester_notes
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
      """, (
        match_id, str(requester_user_id), str(requested_user_id),
        str(requester_dog_id), str(requested_dog_id),
        contact_id, MatchStatus.PENDING.value, now, now, notes or None
      ))

      cursor.execute(
        "UPDATE dogs SET match_requests_count = match_requests_count + 1 WHERE id IN (?, ?)",
        (str(requester_dog_id), str(requested_dog_id))
      )

    print(f"  🆕 Match request: {requester_dog_id} → {requested_dog_id} ({match_id[:8]})")
    return self.get_match(match_id)

  def get_match(self, match_id: str) -> Optional[MatchRequest]:
    """Get a single match request by ID"""
    with self._get_connection() as conn:
      cursor = conn.cursor()
      cursor.execute("SELECT * FROM match_requests WHERE id = ?", (str(match_id),))
      row = cursor.fetchone()
      return MatchRequest.from_dict(dict(row)) if row else None

  def update_match_status(
    self,
    match_id: str,
    expected_status: str,
    new_status: str,
    stamps: Dict[str, str],
    responder_notes: Optional[str] = None
  ) -> MatchRequest:
    """
    Move a match from expected_status to new_status.

    The write only applies if the row is still in expected_status; if
    another writer got there first this raises StateConflictError.
    """
    bad_columns = set(stamps) - STAMPABLE_COLUMNS
    if bad_columns:
      raise ValueError(f"Cannot stamp columns: {sorted(bad_columns)}")

    assignments = ["status = ?"] + [f"{col} = ?" for col in stamps]
    params = [new_status] + list(stamps.values())
    if responder_notes is not None:
      assignments.append("responder_notes = ?")
      params.append(responder_notes)

    with self._get_connection(immediate=True) as conn:
      cursor = conn.cursor()
      cursor.execute(
        f"UPDATE match_requests SET {', '.join(assignments)} WHERE id = ? AND status = ?",
        params + [str(match_id), expected_status]
      )

      if cursor.rowcount == 0:
        cursor.execute("SELECT status FROM match_requests WHERE id = ?", (str(match_id),))
        row = cursor.fetchone()
        if not row:
          raise NotFoundError(f"Match {match_id} not found")
        raise StateConflictError(
          f"This match changed to '{row['status']}' before your update was saved.",
          code="STALE_STATUS"
        )

      if new_status == MatchStatus.ACCEPTED.value:
        cursor.execute("""
          UPDATE dogs SET match_accept_count = match_accept_count + 1
          WHERE id IN (SELECT requester_dog_id FROM match_requests WHERE id = ?)
             OR id IN (SELECT requested_dog_id FROM match_requests WHERE id = ?)
        """, (str(match_id), str(match_id)))

    print(f"  📢 Status change: {str(match_id)[:8]} | {expected_status} → {new_status}")
    return self.get_match(match_id)

  def insert_outcome_and_finalize(
    self,
    outcome: MatchOutcome,
    final_status: str,
    now: Optional[str] = None
  ) -> MatchOutcome:
    """
    Record an outcome and close the parent match in one transaction.

    Steps (all or nothing):
    1. re-check the match is awaiting_confirmation
    2. insert the outcome row
    3. move the match to final_status, stamping completed_at
    4. update both dogs' counters
    """
    now = now or get_current_timestamp()
    if not outcome.id:
      outcome.id = uuid.uuid4().hex
    outcome.verified_at = outcome.verified_at or now

    with self._get_connection(immediate=True) as conn:
      cursor = conn.cursor()

      cursor.execute("SELECT * FROM match_requests WHERE id = ?", (str(outcome.match_id),))
      row = cursor.fetchone()
      if not row:
        raise NotFoundError(f"Match {outcome.match_id} not found")
      if row["status"] != MatchStatus.AWAITING_CONFIRMATION.value:
        raise StateConflictError(
          _outcome_rejection_message(row["status"]), code="OUTCOME_NOT_ALLOWED"
        )

      try:
        cursor.execute("""
          INSERT INTO match_outcomes (
            id, match_id, verified_by_user_id, verified_by_dog_id,
            outcome, litter_size, notes, verified_at
          ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """, (
          outcome.id, str(outcome.match_id), str(outcome.verified_by_user_id),
          str(outcome.verified_by_dog_id), outcome.outcome, outcome.litter_size,
          outcome.notes, outcome.verified_at
        ))
      except sqlite3.IntegrityError as e:
        if "UNIQUE" not in str(e).upper():
          raise
        raise StateConflictError(
          "This match has already been resolved.", code="OUTCOME_EXISTS"
        ) from e

      cursor.execute("""
        UPDATE match_requests
        SET status = ?, completed_at = ?, last_status_changed_at = ?
        WHERE id = ? AND status = ?
      """, (
        final_status, now, now,
        str(outcome.match_id), MatchStatus.AWAITING_CONFIRMATION.value
      ))

      self._apply_outcome_counters(
        cursor,
        dog_ids=[row["requester_dog_id"], row["requested_dog_id"]],
        success=final_status == MatchStatus.COMPLETED_SUCCESS.value
      )

    print(f"  🏁 Outcome recorded: {str(outcome.match_id)[:8]} | {outcome.outcome} → {final_status}")
    return self.get_outcome(outcome.match_id)

  def _apply_outcome_counters(self, cursor, dog_ids: List[str], success: bool):
    """Update completed / success / failure counters for both dogs"""
    result_column = "match_success_count" if success else "match_failure_count"

    for dog_id in dog_ids:
      cursor.execute(f"""
        UPDATE dogs SET
          match_completed_count = match_completed_count + 1,
          {result_column} = {result_column} + 1
        WHERE id = ?
      """, (dog_id,))

      cursor.execute("SELECT gender, match_success_count, match_completed_count FROM dogs WHERE id = ?", (dog_id,))
      dog_row = cursor.fetchone()
      if not dog_row:
        continue

      gender = Gender.from_string(dog_row["gender"])
      if gender == Gender.FEMALE and success:
        cursor.execute(
          "UPDATE dogs SET female_successful_matings = female_successful_matings + 1 WHERE id = ?",
          (dog_id,)
        )
      elif gender == Gender.MALE and dog_row["match_completed_count"]:
        rate = round(dog_row["match_success_count"] / dog_row["match_completed_count"] * 100, 2)
        cursor.execute("UPDATE dogs SET male_success_rate = ? WHERE id = ?", (rate, dog_id))

  def get_outcome(self, match_id: str) -> Optional[MatchOutcome]:
    """Get the outcome recorded for a match, if any"""
    with self._get_connection() as conn:
      cursor = conn.cursor()
      cursor.execute("SELECT * FROM match_outcomes WHERE match_id = ?", (str(match_id),))
      row = cursor.fetchone()
      return MatchOutcome.from_dict(dict(row)) if row else None

  def get_outcomes(self, match_ids: Iterable[str]) -> Dict[str, MatchOutcome]:
    """Outcomes for several matches, keyed by match id"""
    ids = sorted({str(m) for m in match_ids if m})
    if not ids:
      return {}

    with self._get_connection() as conn:
      cursor = conn.cursor()
      placeholders = ",".join("?" * len(ids))
      cursor.execute(f"SELECT * FROM match_outcomes WHERE match_id IN ({placeholders})", ids)
      return {row["match_id"]: MatchOutcome.from_dict(dict(row)) for row in cursor.fetchall()}

  def list_matches_for_user(self, user_id: str) -> List[MatchRequest]:
    """Every request the user sent or received, newest first"""
    with self._get_connection() as conn:
      cursor = conn.cursor()
      cursor.execute("""
        SELECT * FROM match_requests
        WHERE requester_user_id = ? OR requested_user_id = ?
        ORDER BY requested_at DESC, rowid DESC
      """, (str(user_id), str(user_id)))
      return [MatchRequest.from_dict(dict(row)) for row in cursor.fetchall()]

  def get_active_request_for_contact(self, contact_id: str) -> Optional[MatchRequest]:
    """Most recent active request made in a chat thread"""
    if not contact_id:
      return None
    with self._get_connection() as conn:
      return self._active_request_for_contact(conn.cursor(), contact_id)

  def _active_request_for_contact(self, cursor, contact_id: str) -> Optional[MatchRequest]:
    placeholders = ",".join("?" * len(ACTIVE_STATUSES))
    cursor.execute(f"""
      SELECT * FROM match_requests
      WHERE contact_id = ? AND status IN ({placeholders})
      ORDER BY requested_at DESC LIMIT 1
    """, [contact_id] + [s.value for s in ACTIVE_STATUSES])
    row = cursor.fetchone()
    return MatchRequest.from_dict(dict(row)) if row else None

  def get_awaiting_dog_ids(self, dog_ids: Iterable[str]) -> Set[str]:
    """Of the given dogs, those currently tied up in an awaiting_confirmation match"""
    ids = sorted({str(d) for d in dog_ids if d})
    if not ids:
      return set()

    with self._get_connection() as conn:
      cursor = conn.cursor()
      placeholders = ",".join("?" * len(ids))
      cursor.execute(f"""
        SELECT requester_dog_id, requested_dog_id FROM match_requests
        WHERE status = ?
          AND (requester_dog_id IN ({placeholders}) OR requested_dog_id IN ({placeholders}))
      """, [MatchStatus.AWAITING_CONFIRMATION.value] + ids + ids)

      awaiting = set()
      for row in cursor.fetchall():
        awaiting.add(row["requester_dog_id"])
        awaiting.add(row["requested_dog_id"])
      return awaiting & set(ids)

  def get_open_partner_ids(self, dog_id: str) -> Set[str]:
    """Dogs that already have a pending or awaiting request with dog_id"""
    with self._get_connection() as conn:
      cursor = conn.cursor()
      cursor.execute("""
        SELECT requester_dog_id, requested_dog_id FROM match_requests
        WHERE status IN (?, ?) AND (requester_dog_id = ? OR requested_dog_id = ?)
      """, (
        MatchStatus.PENDING.value, MatchStatus.AWAITING_CONFIRMATION.value,
        str(dog_id), str(dog_id)
      ))

      partners = set()
      for row in cursor.fetchall():
        partners.add(row["requester_dog_id"])
        partners.add(row["requested_dog_id"])
      partners.discard(str(dog_id))
      return partners

  # ============================================
  # Notification Operations
  # ============================================

  def save_notification(self, event: MatchEvent) -> int:
    """Store an event as an unread in-app notification"""
    metadata = {
      'event_id': event.event_id,
      'event_type': event.event_type,
      'old_status': event.old_status,
      'new_status': event.new_status,
    }
    if event.details:
      metadata['details'] = event.details

    with self._get_connection() as conn:
      cursor = conn.cursor()
      cursor.execute("""
        INSERT INTO notifications (user_id, title, message, type, match_id, metadata_json, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)
      """, (
        str(event.recipient_user_id), event.title, event.message,
        "match", event.match_id, json.dumps(metadata), event.timestamp
      ))
      return cursor.lastrowid

  def list_notifications(self, user_id: str, status: Optional[str] = None) -> List[Dict]:
    """Notifications for a user, newest first"""
    with self._get_connection() as conn:
      cursor = conn.cursor()

      if status:
        cursor.execute("""
          SELECT * FROM notifications WHERE user_id = ? AND status = ?
          ORDER BY created_at DESC, id DESC
        """, (str(user_id), status))
      else:
        cursor.execute("""
          SELECT * FROM notifications WHERE user_id = ?
          ORDER BY created_at DESC, id DESC
        """, (str(user_id),))

      notifications = []
      for row in cursor.fetchall():
        row_dict = dict(row)
        row_dict['metadata'] = json.loads(row_dict['metadata_json']) if row_dict.get('metadata_json') else None
        del row_dict['metadata_json']
        notifications.append(row_dict)

      return notifications

  def mark_notification_read(self, notification_id: int) -> bool:
    """Mark a notification read; False if it does not exist"""
    with self._get_connection() as conn:
      cursor = conn.cursor()
      cursor.execute(
        "UPDATE notifications SET status = 'read', read_at = ? WHERE id = ?",
        (get_current_timestamp(), notification_id)
      )
      return cursor.rowcount > 0


def _outcome_rejection_message(status: str) -> str:
  if status in (MatchStatus.COMPLETED_SUCCESS.value, MatchStatus.COMPLETED_FAILED.value):
    return "This match has already been resolved."
  return f"Outcomes can only be recorded while awaiting confirmation (status is '{status}')."
