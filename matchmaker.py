#!/usr/bin/env python3
"""
Breeding Matchmaker - command line
v1.0.0

Operator front end for the matchmaker core: load dog profiles, find
compatible partners, and drive match requests through their lifecycle.

Usage:
  python matchmaker.py init
  python matchmaker.py add-dog dogs.json
  python matchmaker.py find dog_1 --user user_1 --limit 5
  python matchmaker.py request --user user_1 --dog dog_1 --with dog_2
  python matchmaker.py accept MATCH_ID --user user_2
  python matchmaker.py awaiting MATCH_ID --user user_2
  python matchmaker.py outcome MATCH_ID --user user_2 --dog dog_2 --result success --litter 6
  python matchmaker.py matches user_1
  python matchmaker.py notifications user_1 --unread
"""
import argparse
import json
import sys
from typing import List, Optional

from cache import TTLCache
from config import DB_PATH, CANDIDATE_LIMIT, MATCHES_CACHE_TTL_SECONDS
from dal import DAL
from errors import MatchError, AuthorizationError, NotFoundError
from lifecycle import MatchLifecycle, progress_message
from notifications import get_notifier
from schema import DogProfile, MatchStatus, OutcomeType, STATUS_LABELS
from scoring import rank_candidates, score_breakdown, ScoredCandidate


def build_lifecycle(dal: DAL) -> MatchLifecycle:
  return MatchLifecycle(
    dal,
    notifier=get_notifier(dal),
    cache=TTLCache(default_ttl=MATCHES_CACHE_TTL_SECONDS)
  )


def find_candidates(dal: DAL, dog_id: str, viewer_user_id: str, limit: Optional[int] = CANDIDATE_LIMIT) -> List[ScoredCandidate]:
  """
  Best partners for one of the viewer's dogs.

  Dogs tied up in an awaiting_confirmation match, and dogs that already
  have an open request with this dog, are left out.
  """
  my_dog = dal.get_dog(dog_id)
  if my_dog is None:
    raise NotFoundError(f"Dog {dog_id} not found")
  if str(my_dog.user_id) != str(viewer_user_id):
    raise AuthorizationError("You can only find matches for your own dog.", code="NOT_OWNER")

  candidates = dal.get_dogs_visible_to(viewer_user_id)
  unavailable = dal.get_awaiting_dog_ids(d.id for d in candidates)
  unavailable |= dal.get_open_partner_ids(my_dog.id)

  return rank_candidates(
    my_dog,
    candidates,
    viewer_user_id=viewer_user_id,
    unavailable_dog_ids=unavailable,
    limit=limit
  )


# ============================================
# Commands
# ============================================

def cmd_init(dal: DAL, args) -> int:
  dal.init_database()
  print(f"✅ Database ready: {dal.db_path}")
  return 0


def cmd_add_dog(dal: DAL, args) -> int:
  with open(args.file, "r", encoding="utf-8") as f:
    data = json.load(f)

  records = data if isinstance(data, list) else [data]
  saved = 0
  for record in records:
    try:
      dog = DogProfile.from_dict(record)
    except (TypeError, ValueError) as e:
      print(f"  ⚠️ Skipping invalid dog record: {e}")
      continue
    if not dog.id or not dog.user_id:
      print("  ⚠️ Skipping dog record without id or user_id")
      continue
    dal.save_dog(dog)
    saved += 1

  print(f"✅ Saved {saved} of {len(records)} dogs")
  return 0 if saved == len(records) else 1


def cmd_find(dal: DAL, args) -> int:
  matches = find_candidates(dal, args.dog_id, args.user, limit=args.limit)
  my_dog = dal.get_dog(args.dog_id)

  print("\n" + "=" * 60)
  print(f"💞 BEST MATCHES FOR {my_dog.name or my_dog.id}")
  print("=" * 60)

  if not matches:
    print("  No compatible dogs found")
    return 0

  for candidate in matches:
    dog = candidate.dog
    print(f"  {candidate.score:>3} | {dog.name or dog.id} ({dog.id}) | {dog.breed or '?'} | {dog.gender or '?'}")
    if args.breakdown:
      factors = score_breakdown(my_dog, dog)
      parts = ", ".join(f"{k} {v:g}" for k, v in factors.items() if k != "total")
      print(f"        {parts}")
  return 0


def cmd_request(dal: DAL, args) -> int:
  match = build_lifecycle(dal).create_request(
    requester_user_id=args.user,
    requester_dog_id=args.dog,
    requested_dog_id=args.partner,
    contact_id=args.contact,
    notes=args.notes
  )
  print(f"✅ Request sent: {match.id}")
  return 0


def cmd_status(dal: DAL, args) -> int:
  lifecycle = build_lifecycle(dal)
  actions = {
    "accept": lambda: lifecycle.accept(args.match_id, args.user, notes=args.notes),
    "decline": lambda: lifecycle.decline(args.match_id, args.user, notes=args.notes),
    "cancel": lambda: lifecycle.cancel(args.match_id, args.user),
    "awaiting": lambda: lifecycle.mark_awaiting_confirmation(args.match_id, args.user),
  }
  match = actions[args.command]()
  print(f"✅ Match {match.id[:8]} is now {STATUS_LABELS[MatchStatus(match.status)].lower()}")
  return 0


def cmd_outcome(dal: DAL, args) -> int:
  outcome = build_lifecycle(dal).submit_outcome(
    match_id=args.match_id,
    actor_user_id=args.user,
    verified_dog_id=args.dog,
    outcome=args.result,
    litter_size=args.litter,
    notes=args.notes
  )
  print(f"✅ Outcome recorded: {outcome.outcome}")
  return 0


def cmd_matches(dal: DAL, args) -> int:
  result = build_lifecycle(dal).my_matches(args.user)
  summary = result["summary"]

  print("\n" + "=" * 60)
  print(f"🐕 MATCHES FOR {args.user}")
  print("=" * 60)
  print(f"   Total: {summary.total} | Pending: {summary.pending} | Accepted: {summary.accepted} "
        f"| Awaiting: {summary.awaiting_confirmation}")
  print(f"   Successes: {summary.successes} | Failures: {summary.failures} | Declines: {summary.declines}")

  sections = [
    ("⏳ PENDING", "pending"),
    ("🤝 ACCEPTED", "accepted"),
    ("📋 AWAITING CONFIRMATION", "awaiting_confirmation"),
    ("📚 HISTORY", "history"),
  ]
  for title, key in sections:
    views = result[key]
    if not views:
      continue
    print(f"\n{title} ({len(views)})")
    print("-" * 40)
    for view in views:
      mine = view.my_dog.name if view.my_dog else "?"
      partner = view.partner_dog.name if view.partner_dog else "?"
      arrow = "→" if view.direction == "sent" else "←"
      print(f"  {view.id[:8]} | {mine} {arrow} {partner} | {STATUS_LABELS[MatchStatus(view.status)]}")
      print(f"    {progress_message(view)}")
  return 0


def cmd_notifications(dal: DAL, args) -> int:
  notifications = dal.list_notifications(args.user, status="unread" if args.unread else None)

  print(f"\n🔔 NOTIFICATIONS ({len(notifications)})")
  print("-" * 40)
  if not notifications:
    print("  No notifications")
  for n in notifications:
    marker = "•" if n["status"] == "unread" else " "
    print(f"  {marker} [{(n['created_at'] or '')[:16]}] {n['title']}")
    print(f"      {n['message']}")
  return 0


# ============================================
# Entry point
# ============================================

def build_parser() -> argparse.ArgumentParser:
  parser = argparse.ArgumentParser(description="Breeding Matchmaker v1.0")
  parser.add_argument("--db", type=str, default=DB_PATH, help="SQLite database path")
  sub = parser.add_subparsers(dest="command", required=True)

  sub.add_parser("init", help="Create database tables")

  p = sub.add_parser("add-dog", help="Load dog profiles from a JSON file")
  p.add_argument("file", help="JSON object or list of objects")

  p = sub.add_parser("find", help="Rank compatible partners for a dog")
  p.add_argument("dog_id")
  p.add_argument("--user", required=True, help="Owner of the dog")
  p.add_argument("--limit", type=int, default=CANDIDATE_LIMIT)
  p.add_argument("--breakdown", action="store_true", help="Show points per factor")

  p = sub.add_parser("request", help="Send a breeding request")
  p.add_argument("--user", required=True)
  p.add_argument("--dog", required=True, help="Your dog")
  p.add_argument("--with", dest="partner", required=True, help="The other owner's dog")
  p.add_argument("--contact", help="Chat thread id")
  p.add_argument("--notes")

  for name, help_text in (
    ("accept", "Accept a pending request"),
    ("decline", "Decline a pending request"),
    ("cancel", "Cancel a request you sent"),
    ("awaiting", "Mark an accepted match as awaiting the outcome"),
  ):
    p = sub.add_parser(name, help=help_text)
    p.add_argument("match_id")
    p.add_argument("--user", required=True)
    if name in ("accept", "decline"):
      p.add_argument("--notes")

  p = sub.add_parser("outcome", help="Record the breeding outcome")
  p.add_argument("match_id")
  p.add_argument("--user", required=True)
  p.add_argument("--dog", required=True, help="Your (female) dog on the match")
  p.add_argument("--result", required=True, choices=[o.value for o in OutcomeType])
  p.add_argument("--litter", type=int)
  p.add_argument("--notes")

  p = sub.add_parser("matches", help="Show a user's matches")
  p.add_argument("user")

  p = sub.add_parser("notifications", help="Show a user's notifications")
  p.add_argument("user")
  p.add_argument("--unread", action="store_true")

  return parser


COMMANDS = {
  "init": cmd_init,
  "add-dog": cmd_add_dog,
  "find": cmd_find,
  "request": cmd_request,
  "accept": cmd_status,
  "decline": cmd_status,
  "cancel": cmd_status,
  "awaiting": cmd_status,
  "outcome": cmd_outcome,
  "matches": cmd_matches,
  "notifications": cmd_notifications,
}


def main(argv: Optional[List[str]] = None) -> int:
  args = build_parser().parse_args(argv)
  dal = DAL(args.db)

  try:
    if args.command != "init":
      dal.init_database()
    return COMMANDS[args.command](dal, args)
  except MatchError as e:
    print(f"❌ {e.message}")
    return 1
  except (OSError, json.JSONDecodeError) as e:
    print(f"❌ {e}")
    return 1


if __name__ == "__main__":
  sys.exit(main())
