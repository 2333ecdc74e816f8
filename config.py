"""
Configuration for the breeding matchmaker
"""
import os

from schema import DogSize

# Database configuration
DB_PATH = os.environ.get("MATCH_DB_PATH", "matches.db")

# Compatibility score weights
# Every factor is additive; the total is capped at "max_score".
SCORING_WEIGHTS = {
  "gender_gate": 10,  # Awarded once the opposite-gender gate passes

  # Breed
  "breed_exact": 20,
  "breed_group": 10,  # Same group in breeds.BREED_GROUPS

  # Age - lose "age_penalty_per_year" for every year apart
  "age_max": 15,
  "age_penalty_per_year": 2,

  # Size - ordered scale, see SIZE_SCALE
  "size_exact": 15,
  "size_adjacent": 7,

  # Weight - lose 1 point per kg apart
  "weight_max": 15,

  # Coat & color
  "coat_type": 7,
  "color": 3,

  # Temperament
  "activity_level": 7,
  "sociability": 4,
  "trainability": 4,

  "max_score": 100
}

# Ordered from smallest to largest
SIZE_SCALE = [size.value for size in DogSize]

# How many candidates the "find a match" view shows
CANDIDATE_LIMIT = 3

# "My matches" list cache lifetime
MATCHES_CACHE_TTL_SECONDS = 120

# Email notification settings - set these as environment variables
EMAIL_CONFIG = {
  "enabled": os.environ.get("MATCH_EMAIL_ENABLED", "").lower() in ("1", "true", "yes"),
  "smtp_server": os.environ.get("SMTP_SERVER", "smtp.gmail.com"),
  "smtp_port": int(os.environ.get("SMTP_PORT", 587)),
  "sender_email": os.environ.get("SENDER_EMAIL", ""),
  "sender_password": os.environ.get("SENDER_PASSWORD", ""),  # App password for Gmail
  # "user_1=alice@example.com,user_2=bob@example.com"
  "recipients": dict(
    pair.split("=", 1) for pair in os.environ.get("MATCH_EMAIL_RECIPIENTS", "").split(",") if "=" in pair
  ),
}

# Webhook notification settings (push gateway, chat bot, etc.)
WEBHOOK_CONFIG = {
  "url": os.environ.get("MATCH_WEBHOOK_URL", ""),
  "secret": os.environ.get("MATCH_WEBHOOK_SECRET", ""),
}

# In-app notifications are stored in the database
IN_APP_NOTIFICATIONS = True

# User agent for outgoing HTTP requests
USER_AGENT = "BreedingMatchmaker/1.0 (+notifications)"
REQUEST_TIMEOUT = 30
