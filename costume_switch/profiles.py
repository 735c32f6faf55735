import re
import copy
import json
import logging
from dataclasses import dataclass, field, fields, asdict
from typing import Any, Dict, List, Mapping, Optional

from config import settings
from .attribution.match_finder import MatchKind
from .attribution.pattern_compiler import parse_pattern_entry
from .errors import CostumeSwitchError
from .text_processing import normalize_costume_name

logger = logging.getLogger(__name__)

_CAMEL_RE = re.compile(r'(?<!^)(?=[A-Z])')
_LIST_SPLIT_RE = re.compile(r"[\r\n]+")
_VERB_SPLIT_RE = re.compile(r"[\r\n|,]+")

_LIST_FIELDS = ('patterns', 'ignore_patterns', 'veto_patterns', 'attribution_verbs', 'action_verbs')
_INT_FIELDS = ('global_cooldown_ms', 'per_trigger_cooldown_ms', 'failed_trigger_cooldown_ms',
               'max_buffer_chars', 'repeat_suppress_ms', 'token_process_threshold', 'scene_roster_ttl')
_DETECT_FLAGS = {
    MatchKind.SPEAKER: 'detect_speaker',
    MatchKind.ATTRIBUTION: 'detect_attribution',
    MatchKind.ACTION: 'detect_action',
    MatchKind.PRONOUN: 'detect_pronoun',
    MatchKind.VOCATIVE: 'detect_vocative',
    MatchKind.POSSESSIVE: 'detect_possessive',
    MatchKind.NAME: 'detect_general',
}


class ProfileImportError(CostumeSwitchError):
    """An exported profile document could not be read."""


def _default(key: str):
    return lambda: copy.deepcopy(settings.PROFILE_DEFAULTS[key])


def _snake_case(key: str) -> str:
    return _CAMEL_RE.sub('_', str(key)).lower()


def _as_list(value: Any, splitter=_LIST_SPLIT_RE) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = splitter.split(value)
    return [str(item).strip() for item in value if str(item or '').strip()]


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
    return bool(value)


@dataclass
class DetectionProfile:
    """
    User-tunable detection settings, consumed read-only by the engine.

    Defaults come from settings.PROFILE_DEFAULTS. Cooldowns are in
    milliseconds; scene_roster_ttl is counted in turns.
    """
    patterns: List[str] = field(default_factory=_default('patterns'))
    ignore_patterns: List[str] = field(default_factory=_default('ignore_patterns'))
    veto_patterns: List[str] = field(default_factory=_default('veto_patterns'))
    attribution_verbs: List[str] = field(default_factory=_default('attribution_verbs'))
    action_verbs: List[str] = field(default_factory=_default('action_verbs'))
    default_costume: str = settings.PROFILE_DEFAULTS['default_costume']
    debug: bool = settings.PROFILE_DEFAULTS['debug']
    global_cooldown_ms: int = settings.PROFILE_DEFAULTS['global_cooldown_ms']
    per_trigger_cooldown_ms: int = settings.PROFILE_DEFAULTS['per_trigger_cooldown_ms']
    failed_trigger_cooldown_ms: int = settings.PROFILE_DEFAULTS['failed_trigger_cooldown_ms']
    max_buffer_chars: int = settings.PROFILE_DEFAULTS['max_buffer_chars']
    repeat_suppress_ms: int = settings.PROFILE_DEFAULTS['repeat_suppress_ms']
    token_process_threshold: int = settings.PROFILE_DEFAULTS['token_process_threshold']
    detection_bias: float = settings.PROFILE_DEFAULTS['detection_bias']
    mappings: List[Dict[str, str]] = field(default_factory=_default('mappings'))
    aliases: Dict[str, str] = field(default_factory=_default('aliases'))
    detect_speaker: bool = settings.PROFILE_DEFAULTS['detect_speaker']
    detect_attribution: bool = settings.PROFILE_DEFAULTS['detect_attribution']
    detect_action: bool = settings.PROFILE_DEFAULTS['detect_action']
    detect_vocative: bool = settings.PROFILE_DEFAULTS['detect_vocative']
    detect_possessive: bool = settings.PROFILE_DEFAULTS['detect_possessive']
    detect_pronoun: bool = settings.PROFILE_DEFAULTS['detect_pronoun']
    detect_general: bool = settings.PROFILE_DEFAULTS['detect_general']
    enable_scene_roster: bool = settings.PROFILE_DEFAULTS['enable_scene_roster']
    scene_roster_ttl: int = settings.PROFILE_DEFAULTS['scene_roster_ttl']
    fuzzy_tolerance: Any = settings.PROFILE_DEFAULTS['fuzzy_tolerance']

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "DetectionProfile":
        """
        Build a profile from stored settings.

        Keys may be snake_case or camelCase; unknown keys are ignored and
        values that cannot be coerced fall back to their defaults.
        """
        profile = cls()
        known = {f.name for f in fields(cls)}
        for raw_key, value in (data or {}).items():
            key = _snake_case(raw_key)
            if key not in known or value is None:
                continue
            try:
                setattr(profile, key, cls._coerce(key, value))
            except (TypeError, ValueError, AttributeError) as e:
                logger.warning(f"Ignoring invalid profile value for '{raw_key}': {e}")
        return profile

    @staticmethod
    def _coerce(key: str, value: Any) -> Any:
        if key in ('attribution_verbs', 'action_verbs'):
            return _as_list(value, _VERB_SPLIT_RE)
        if key in _LIST_FIELDS:
            return _as_list(value)
        if key in _INT_FIELDS:
            return max(0, int(value))
        if key == 'detection_bias':
            return float(value)
        if key.startswith('detect_') or key in ('debug', 'enable_scene_roster'):
            return _as_bool(value)
        if key == 'default_costume':
            return str(value).strip()
        if key == 'mappings':
            mappings = []
            for item in value:
                name = str(item.get('name') or '').strip()
                folder = str(item.get('folder') or '').strip()
                if name and folder:
                    mappings.append({'name': name, 'folder': folder})
            return mappings
        if key == 'aliases':
            return {str(k).strip(): str(v).strip() for k, v in dict(value).items() if str(k).strip() and str(v).strip()}
        return value

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(asdict(self))

    def copy(self, **changes) -> "DetectionProfile":
        data = self.to_dict()
        data.update(changes)
        return DetectionProfile.from_dict(data)

    def effective_patterns(self) -> List[str]:
        """Name patterns minus the ignore list (case-insensitive)."""
        ignored = {entry.strip().lower() for entry in self.ignore_patterns}
        return [entry for entry in self.patterns if entry.strip().lower() not in ignored]

    def enabled_kinds(self) -> List[MatchKind]:
        return [kind for kind, flag in _DETECT_FLAGS.items() if getattr(self, flag)]

    def folder_for(self, name: str) -> str:
        """Costume folder for a resolved name; the name itself when unmapped."""
        key = normalize_costume_name(name).lower()
        for mapping in self.mappings:
            if normalize_costume_name(mapping['name']).lower() == key or mapping['name'].lower() == str(name).lower():
                return mapping['folder'].strip() or name
        return name

    def alias_map(self) -> Dict[str, str]:
        return {alias.lower(): canonical for alias, canonical in self.aliases.items()}

    def resolver_candidates(self) -> List[str]:
        """Canonical spellings the name resolver may map detections onto."""
        candidates: List[str] = []
        for raw in self.effective_patterns():
            entry = parse_pattern_entry(raw)
            if entry is not None and entry.body == re.escape(entry.raw):
                candidates.append(entry.raw)
        candidates.extend(mapping['name'] for mapping in self.mappings)
        candidates.extend(self.aliases.values())

        unique: List[str] = []
        for candidate in candidates:
            if candidate and candidate not in unique:
                unique.append(candidate)
        return unique


class ProfileStore:
    """
    Named detection profiles plus the active-profile selection and the
    master enable switch.

    Settings written before profiles existed (one flat dictionary of
    profile keys) are migrated into a profile named 'Default'.
    """

    def __init__(self, profiles: Optional[Dict[str, DetectionProfile]] = None,
                 active_profile: str = settings.DEFAULT_PROFILE_NAME, enabled: bool = True):
        self.profiles: Dict[str, DetectionProfile] = profiles or {settings.DEFAULT_PROFILE_NAME: DetectionProfile()}
        self.active_profile = active_profile if active_profile in self.profiles else next(iter(self.profiles))
        self.enabled = enabled
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_settings(cls, stored: Optional[Mapping[str, Any]]) -> "ProfileStore":
        stored = dict(stored or {})
        enabled = _as_bool(stored.get('enabled', True))

        if not isinstance(stored.get('profiles'), Mapping):
            legacy = {key: value for key, value in stored.items() if key not in ('enabled', 'profiles', 'activeProfile', 'active_profile')}
            if legacy:
                logger.info(f"Migrating {len(legacy)} legacy settings into profile '{settings.DEFAULT_PROFILE_NAME}'")
            return cls({settings.DEFAULT_PROFILE_NAME: DetectionProfile.from_dict(legacy)}, enabled=enabled)

        profiles = {str(name): DetectionProfile.from_dict(data) for name, data in stored['profiles'].items()}
        if not profiles:
            profiles = {settings.DEFAULT_PROFILE_NAME: DetectionProfile()}
        active = stored.get('active_profile', stored.get('activeProfile', settings.DEFAULT_PROFILE_NAME))
        return cls(profiles, active_profile=str(active), enabled=enabled)

    def to_settings(self) -> Dict[str, Any]:
        return {
            'enabled': self.enabled,
            'active_profile': self.active_profile,
            'profiles': {name: profile.to_dict() for name, profile in self.profiles.items()},
        }

    @property
    def active(self) -> DetectionProfile:
        return self.profiles[self.active_profile]

    def select(self, name: str) -> DetectionProfile:
        if name not in self.profiles:
            raise KeyError(f"Unknown profile: {name}")
        self.active_profile = name
        return self.active

    def save(self, name: str, profile: DetectionProfile) -> None:
        self.profiles[name] = profile

    def rename(self, old_name: str, new_name: str) -> None:
        if old_name not in self.profiles:
            raise KeyError(f"Unknown profile: {old_name}")
        if new_name != old_name and new_name in self.profiles:
            raise ValueError(f"A profile named '{new_name}' already exists")
        self.profiles[new_name] = self.profiles.pop(old_name)
        if self.active_profile == old_name:
            self.active_profile = new_name

    def delete(self, name: str) -> None:
        if len(self.profiles) <= 1:
            raise ValueError("Cannot delete the last profile")
        self.profiles.pop(name, None)
        if self.active_profile == name:
            self.active_profile = next(iter(self.profiles))

    def export_profile(self, name: Optional[str] = None) -> str:
        """Serialize one profile as {"name": ..., "data": {...}} JSON."""
        name = name or self.active_profile
        return json.dumps({'name': name, 'data': self.profiles[name].to_dict()}, indent=2)

    def import_profile(self, document: str) -> str:
        """
        Import an exported profile and make it active.

        A name collision gets an ' (Imported)' suffix.

        Returns:
            Name the profile was stored under

        Raises:
            ProfileImportError: If the document is not a valid export
        """
        try:
            content = json.loads(document)
        except (TypeError, ValueError) as e:
            raise ProfileImportError(f"Import failed: {e}") from e
        if not isinstance(content, Mapping) or not content.get('name') or not isinstance(content.get('data'), Mapping):
            raise ProfileImportError("Import failed: Invalid profile format.")

        name = str(content['name'])
        if name in self.profiles:
            name = f"{name} (Imported)"
        self.profiles[name] = DetectionProfile.from_dict(content['data'])
        self.active_profile = name
        self.logger.info(f"Imported profile as '{name}'")
        return name
