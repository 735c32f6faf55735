# config/settings.py
import os

# Pattern Compilation Limits
# User-supplied pattern lists are compiled into one alternation per heuristic.
MAX_PATTERN_ENTRIES = 250  # Maximum entries in a single pattern list
MAX_PATTERN_BODY_CHARS = 4000  # Maximum combined regex body length of a single pattern list
ALLOWED_PATTERN_FLAGS = "gimsuy"  # Flags accepted in /body/flags entries
COMPILED_SET_CACHE_ENABLED = True  # Reuse compiled heuristic sets for identical configurations
COMPILED_SET_CACHE_MAX_SIZE = 32  # Maximum number of cached compiled heuristic sets
COMPILED_SET_HASH_LENGTH = 16  # Length of configuration signature (hex characters)

# Match Finding Limits
MATCH_TIME_BUDGET_MS = 250.0  # Wall-clock budget for all heuristic scans of one evaluation
MAX_MATCHES_PER_HEURISTIC = 500  # Stop collecting matches for a heuristic past this count
MAX_MIDDLE_NAME_WORDS = 3  # Capitalized words tolerated between a name and its verb
MAX_VERB_GAP_WORDS = 2  # Words tolerated between a name (or pronoun) and its action verb
MAX_VOICE_GAP_WORDS = 3  # Words tolerated between a possessive name and "voice"
MAX_QUOTED_SPAN_CHARS = 400  # Longest quoted span the post-quote attribution looks across

# Heuristic Priorities (higher wins at equal score)
HEURISTIC_PRIORITIES = {
    "speaker": 5,
    "attribution": 4,
    "action": 3,
    "pronoun": 3,
    "vocative": 2,
    "possessive": 1,
    "name": 0,
}
HIGH_CONFIDENCE_PRIORITY = 3  # Detection bias only applies at or above this priority

# Character focus points used by the tester report
FOCUS_POINTS = {
    "speaker": 3,
    "attribution": 3,
    "pronoun": 3,
    "action": 2,
    "vocative": 1,
    "possessive": 1,
    "name": 1,
}

# Scene Roster Configuration
ROSTER_BONUS = 40.0  # Score bonus for candidates already in the active roster

# Turn Registry Configuration
MAX_MESSAGE_BUFFERS = 60  # Maximum number of live turn buffers before FIFO eviction
LIVE_TURN_KEY = "live"  # Turn key used while a message has no identifier yet
MESSAGE_TURN_KEY_PREFIX = "m"  # Prefix for message-id based turn keys

# Fuzzy Name Resolution Configuration
FUZZY_MAX_SCORE = 0.45  # Maximum fuzzy distance (0 = identical, 1 = unrelated)
MIN_FUZZY_CHARACTER_OVERLAP_RATIO = 0.5  # Minimum shared-character ratio for a fuzzy hit
MAX_NORMALIZED_FUZZY_EDIT_DISTANCE = 0.34  # Maximum edit distance relative to the longer name
MAX_FUZZY_AFFIX_OVERHANG = 4  # Extra characters allowed when a token extends a roster name
LOW_CONFIDENCE_PRIORITY_THRESHOLD = 2  # Heuristic priority at or below which fuzzy matching may trigger

# Heuristic Vocabulary
PRONOUNS = ["he", "she", "they"]

HONORIFIC_SUFFIXES = ["sama", "san", "chan", "kun"]

DEFAULT_ATTRIBUTION_VERBS = [
    "admitted", "agreed", "announced", "answered", "asked", "bellowed",
    "called", "commented", "complained", "concluded", "confessed", "continued",
    "cried", "declared", "demanded", "denied", "exclaimed", "explained",
    "gasped", "insisted", "interrupted", "mumbled", "murmured", "mused",
    "muttered", "objected", "ordered", "pleaded", "promised", "protested",
    "queried", "questioned", "replied", "responded", "retorted", "roared",
    "said", "scolded", "screamed", "shouted", "snapped", "spoke", "stated",
    "suggested", "threatened", "warned", "whispered", "wondered", "yelled",
]

DEFAULT_ACTION_VERBS = [
    "blinked", "bowed", "crouched", "frowned", "gestured", "glanced",
    "grinned", "laughed", "leaned", "looked", "nodded", "paused", "ran",
    "shrugged", "sighed", "smiled", "smirked", "stared", "stepped", "turned",
    "walked", "waved", "winked",
]

# Detection Profile Defaults - Used when a profile omits a setting
PROFILE_DEFAULTS = {
    "patterns": [],
    "ignore_patterns": [],
    "veto_patterns": ["OOC:", "(OOC)"],
    "attribution_verbs": list(DEFAULT_ATTRIBUTION_VERBS),
    "action_verbs": list(DEFAULT_ACTION_VERBS),
    "default_costume": "",
    "debug": False,
    "global_cooldown_ms": 1200,
    "per_trigger_cooldown_ms": 250,
    "failed_trigger_cooldown_ms": 10000,
    "max_buffer_chars": 2000,
    "repeat_suppress_ms": 800,
    "token_process_threshold": 60,
    "detection_bias": 0.0,
    "mappings": [],
    "aliases": {},
    "detect_speaker": True,
    "detect_attribution": True,
    "detect_action": True,
    "detect_vocative": True,
    "detect_possessive": True,
    "detect_pronoun": True,
    "detect_general": False,
    "enable_scene_roster": True,
    "scene_roster_ttl": 5,
    "fuzzy_tolerance": "auto",
}

DEFAULT_PROFILE_NAME = "Default"

# Logging Configuration
LOG_DIR = os.getenv("COSTUME_SWITCH_LOG_DIR", "logs")
LOG_FILE = "costume_switch.log"
LOG_LEVEL = "INFO"
CONSOLE_LOG_LEVEL = os.getenv("COSTUME_SWITCH_CONSOLE_LOG_LEVEL", "INFO")  # Level for console output
FILE_LOG_LEVEL = os.getenv("COSTUME_SWITCH_FILE_LOG_LEVEL", "DEBUG")  # Level for file output (more detailed)
LOG_PREFIX = "[CostumeSwitch]"
