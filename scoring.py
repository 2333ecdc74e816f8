"""
Calculate breeding compatibility between two dogs

Pure functions only: no I/O, no mutation of the dogs passed in, and no
exceptions. Missing or malformed attributes degrade to zero points;
a missing gender excludes the pair.
"""
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Set

from breeds import get_breed_group
from config import SCORING_WEIGHTS, SIZE_SCALE
from schema import DogProfile, Gender


@dataclass
class ScoredCandidate:
  """A candidate dog with its score against the reference dog"""
  dog: DogProfile
  score: int

  @property
  def id(self) -> str:
    return self.dog.id


def _field(dog: Any, name: str) -> Any:
  """Read an attribute from a DogProfile or a plain dict row"""
  if dog is None:
    return None
  if isinstance(dog, dict):
    return dog.get(name)
  return getattr(dog, name, None)


def _normalize(value: Any) -> Optional[str]:
  if value is None:
    return None
  text = str(value).strip().lower()
  return text or None


def _number(value: Any) -> float:
  """Numeric value or 0 when missing / unparseable"""
  if value is None or isinstance(value, bool):
    return 0.0
  try:
    number = float(value)
  except (TypeError, ValueError):
    return 0.0
  if number != number or number in (float("inf"), float("-inf")):
    return 0.0
  return number


def _same(a: Any, b: Any) -> bool:
  """Case-insensitive equality; unset values never match"""
  na = _normalize(a)
  nb = _normalize(b)
  return na is not None and na == nb


def _round_half_up(value: float) -> int:
  return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


def genders_compatible(gender_a: Any, gender_b: Any) -> bool:
  """Opposite, recognised genders ("male"/"female" or "m"/"f") are required for any pairing"""
  ga = Gender.from_string(gender_a)
  gb = Gender.from_string(gender_b)
  if ga is None or gb is None:
    return False
  return ga != gb


def breed_compatibility_score(breed_a: Any, breed_b: Any) -> int:
  """
  Breed points (max 20)

  - exact breed match: +20
  - same breed group: +10
  - otherwise: 0
  """
  a = _normalize(breed_a)
  b = _normalize(breed_b)
  if a is None or b is None:
    return 0

  if a == b:
    return SCORING_WEIGHTS["breed_exact"]

  group_a = get_breed_group(a)
  group_b = get_breed_group(b)
  if group_a and group_a == group_b:
    return SCORING_WEIGHTS["breed_group"]

  return 0


def age_score(age_a: Any, age_b: Any) -> float:
  """15 points, minus 2 per year apart, floored at 0"""
  diff = abs(_number(age_a) - _number(age_b))
  return max(0.0, SCORING_WEIGHTS["age_max"] - SCORING_WEIGHTS["age_penalty_per_year"] * diff)


def size_score(size_a: Any, size_b: Any) -> int:
  """Same size: 15, adjacent sizes: 7, anything else: 0"""
  a = _normalize(size_a)
  b = _normalize(size_b)
  if a not in SIZE_SCALE or b not in SIZE_SCALE:
    return 0

  gap = abs(SIZE_SCALE.index(a) - SIZE_SCALE.index(b))
  if gap == 0:
    return SCORING_WEIGHTS["size_exact"]
  elif gap == 1:
    return SCORING_WEIGHTS["size_adjacent"]
  return 0


def weight_score(weight_a: Any, weight_b: Any) -> float:
  """15 points, minus 1 per kg apart, floored at 0"""
  diff = abs(_number(weight_a) - _number(weight_b))
  return max(0.0, SCORING_WEIGHTS["weight_max"] - diff)


def coat_color_score(dog_a: Any, dog_b: Any) -> int:
  """Coat type match +7, color match +3"""
  score = 0
  if _same(_field(dog_a, "coat_type"), _field(dog_b, "coat_type")):
    score += SCORING_WEIGHTS["coat_type"]
  if _same(_field(dog_a, "color"), _field(dog_b, "color")):
    score += SCORING_WEIGHTS["color"]
  return score


def temperament_score(dog_a: Any, dog_b: Any) -> int:
  """Activity +7, sociability +4, trainability +4"""
  score = 0
  for trait in ("activity_level", "sociability", "trainability"):
    if _same(_field(dog_a, trait), _field(dog_b, trait)):
      score += SCORING_WEIGHTS[trait]
  return score


def score_breakdown(dog_a: Any, dog_b: Any) -> Dict[str, float]:
  """
  Points earned per factor.

  When the gender gate fails every factor is 0 and "total" is 0.
  """
  factors = {
    "gender": 0,
    "breed": 0,
    "age": 0,
    "size": 0,
    "weight": 0,
    "coat_color": 0,
    "temperament": 0,
  }

  if not genders_compatible(_field(dog_a, "gender"), _field(dog_b, "gender")):
    factors["total"] = 0
    return factors

  factors["gender"] = SCORING_WEIGHTS["gender_gate"]
  factors["breed"] = breed_compatibility_score(_field(dog_a, "breed"), _field(dog_b, "breed"))
  factors["age"] = age_score(_field(dog_a, "age_years"), _field(dog_b, "age_years"))
  factors["size"] = size_score(_field(dog_a, "size"), _field(dog_b, "size"))
  factors["weight"] = weight_score(_field(dog_a, "weight_kg"), _field(dog_b, "weight_kg"))
  factors["coat_color"] = coat_color_score(dog_a, dog_b)
  factors["temperament"] = temperament_score(dog_a, dog_b)

  total = sum(factors.values())
  factors["total"] = _round_half_up(min(total, SCORING_WEIGHTS["max_score"]))
  return factors


def calculate_match_score(dog_a: Any, dog_b: Any) -> int:
  """
  Calculate breeding compatibility between a reference dog and a candidate.

  Scoring (additive, case-insensitive comparisons):
  - Opposite genders: +10 (same or missing gender: whole score is 0)
  - Breed: exact +20, same group +10
  - Age: up to +15, -2 per year apart
  - Size: same +15, adjacent +7
  - Weight: up to +15, -1 per kg apart
  - Coat +7, color +3
  - Activity +7, sociability +4, trainability +4

  Returns an integer from 0 to 100. 0 means "do not show this pair".
  """
  return int(score_breakdown(dog_a, dog_b)["total"])


def rank_candidates(
  my_dog: DogProfile,
  candidates: Iterable[DogProfile],
  viewer_user_id: Optional[str] = None,
  unavailable_dog_ids: Optional[Set[str]] = None,
  limit: Optional[int] = None
) -> List[ScoredCandidate]:
  """
  Score candidates against my_dog, best first.

  Skips the reference dog itself, dogs owned by the viewer (or by my_dog's
  owner), hidden dogs, dogs listed in unavailable_dog_ids, and any pair
  that scores 0.
  """
  owners = {str(o) for o in (viewer_user_id, my_dog.user_id) if o}
  unavailable = {str(d) for d in (unavailable_dog_ids or set())}

  scored = []
  for dog in candidates:
    if str(dog.id) == str(my_dog.id):
      continue
    if str(dog.user_id) in owners:
      continue
    if dog.hidden:
      continue
    if str(dog.id) in unavailable:
      continue

    score = calculate_match_score(my_dog, dog)
    if score <= 0:
      continue
    scored.append(ScoredCandidate(dog=dog, score=score))

  scored.sort(key=lambda c: (-c.score, str(c.dog.id)))

  if limit is not None:
    return scored[:limit]
  return scored
