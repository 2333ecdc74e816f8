"""
Dog Profile Schema

The dog record that the scorer reads and the lifecycle looks up.
Profiles are created and edited by their owners elsewhere; nothing in
this project mutates breeding attributes.

Defaulting rules (applied by the scorer, not here):
- missing age_years / weight_kg count as 0
- missing or unrecognised size earns no size points
- missing gender excludes the dog from every pairing
"""
from dataclasses import dataclass, asdict
from typing import Optional, Dict, Any
from datetime import datetime
from enum import Enum


class Gender(str, Enum):
  """Dog gender"""
  MALE = "male"
  FEMALE = "female"

  @classmethod
  def from_string(cls, value: Any) -> Optional["Gender"]:
    """Convert string to Gender, None if missing or unknown"""
    if not value or not isinstance(value, str):
      return None

    value_lower = value.lower().strip()

    if value_lower in ["male", "m"]:
      return cls.MALE
    elif value_lower in ["female", "f"]:
      return cls.FEMALE
    return None


class DogSize(str, Enum):
  """Ordered size classes"""
  SMALL = "small"
  MEDIUM = "medium"
  LARGE = "large"
  GIANT = "giant"


def _to_number(value: Any) -> Optional[float]:
  """Coerce numeric-looking input to float; anything else becomes None"""
  if value is None or isinstance(value, bool):
    return None
  if isinstance(value, (int, float)):
    return float(value)
  if isinstance(value, str) and value.strip():
    try:
      return float(value.strip())
    except ValueError:
      return None
  return None


def _to_int(value: Any, default: int = 0) -> int:
  number = _to_number(value)
  return int(number) if number is not None else default


def _to_text(value: Any) -> Optional[str]:
  if value is None:
    return None
  text = str(value).strip()
  return text or None


@dataclass
class DogProfile:
  """
  A dog as seen by the matchmaker.

  gender is kept as the raw string so the scorer can compare it
  case-insensitively; use gender_enum for a normalised value.
  """

  # ===== IDENTITY =====
  id: str
  user_id: str                           # Owner
  name: str = ""

  # ===== BREEDING ATTRIBUTES =====
  gender: Optional[str] = None           # "male" / "female"
  breed: Optional[str] = None
  age_years: Optional[float] = None      # Validated elsewhere to 2-7
  size: Optional[str] = None             # small / medium / large / giant
  weight_kg: Optional[float] = None
  coat_type: Optional[str] = None
  color: Optional[str] = None
  activity_level: Optional[str] = None
  sociability: Optional[str] = None
  trainability: Optional[str] = None

  # ===== VISIBILITY =====
  hidden: bool = False

  # ===== AGGREGATE COUNTERS (maintained by the DAL) =====
  match_requests_count: int = 0
  match_accept_count: int = 0
  match_completed_count: int = 0
  match_success_count: int = 0
  match_failure_count: int = 0
  female_successful_matings: int = 0
  male_success_rate: Optional[float] = None

  # ===== TIMESTAMPS =====
  created_at: Optional[str] = None
  updated_at: Optional[str] = None

  @property
  def is_visible(self) -> bool:
    return not self.hidden

  @property
  def gender_enum(self) -> Optional[Gender]:
    return Gender.from_string(self.gender)

  @property
  def is_female(self) -> bool:
    return self.gender_enum == Gender.FEMALE

  @property
  def is_male(self) -> bool:
    return self.gender_enum == Gender.MALE

  def to_dict(self) -> Dict:
    """Convert to dictionary, dropping unset optional fields"""
    result = {k: v for k, v in asdict(self).items() if v is not None}
    result['is_visible'] = self.is_visible
    return result

  @classmethod
  def from_dict(cls, data: Dict) -> "DogProfile":
    """
    Create a profile from loosely typed input (JSON, database rows).

    Accepts "is_visible" as the inverse of "hidden" and "sex" as an alias
    for "gender". Numeric fields that cannot be parsed become None.
    """
    if not data:
      raise ValueError("Cannot create DogProfile from empty data")

    data = dict(data)

    if 'gender' not in data and 'sex' in data:
      data['gender'] = data.get('sex')

    if 'hidden' in data:
      hidden = bool(data['hidden'])
    elif 'is_visible' in data:
      hidden = not bool(data['is_visible'])
    else:
      hidden = False

    return cls(
      id=str(data.get('id', '')),
      user_id=str(data.get('user_id', '')),
      name=data.get('name') or '',
      gender=_to_text(data.get('gender')),
      breed=_to_text(data.get('breed')),
      age_years=_to_number(data.get('age_years')),
      size=_to_text(data.get('size')),
      weight_kg=_to_number(data.get('weight_kg')),
      coat_type=_to_text(data.get('coat_type')),
      color=_to_text(data.get('color')),
      activity_level=_to_text(data.get('activity_level')),
      sociability=_to_text(data.get('sociability')),
      trainability=_to_text(data.get('trainability')),
      hidden=hidden,
      match_requests_count=_to_int(data.get('match_requests_count')),
      match_accept_count=_to_int(data.get('match_accept_count')),
      match_completed_count=_to_int(data.get('match_completed_count')),
      match_success_count=_to_int(data.get('match_success_count')),
      match_failure_count=_to_int(data.get('match_failure_count')),
      female_successful_matings=_to_int(data.get('female_successful_matings')),
      male_success_rate=_to_number(data.get('male_success_rate')),
      created_at=data.get('created_at'),
      updated_at=data.get('updated_at'),
    )


def get_current_timestamp() -> str:
  """Returns current timestamp in ISO format"""
  return datetime.now().isoformat()
