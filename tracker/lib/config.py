"""
Configuration loaders for the tracker.

Loads the civil timezone and undo window from a tracker.env file (with
process environment overrides) and the experience offsets table from YAML.
"""

import logging
from dataclasses import dataclass, field
from functools import cached_property
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from tracker.lib import envparse
from tracker.lib import validate
from tracker.lib.errors import ConfigError
from tracker.lib.types import MONTHLY_KIND

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "America/New_York"
DEFAULT_UNDO_WINDOW_SECONDS = 10

ENV_KEYS = ["TRACKER_TIMEZONE", "TRACKER_OFFSETS_FILE", "UNDO_WINDOW_SECONDS"]


@dataclass(frozen=True)
class KindOffset:
    """One initial experience kind and its whole-day offset from sign-on."""
    kind: str
    days: int
    label: str


# Canonical onboarding sequence, in order.
DEFAULT_INITIAL_KINDS = (
    KindOffset("hour24", 1, "24-Hour"),
    KindOffset("day10", 10, "10-Day"),
    KindOffset("day30", 30, "30-Day"),
)

DEFAULT_MONTHLY_MIN = 2
DEFAULT_MONTHLY_MAX = 18


@dataclass(frozen=True)
class TrackerConfig:
    """Static engine configuration: timezone, offsets table, undo window."""
    timezone: str = DEFAULT_TIMEZONE
    initial_kinds: tuple[KindOffset, ...] = DEFAULT_INITIAL_KINDS
    monthly_min: int = DEFAULT_MONTHLY_MIN
    monthly_max: int = DEFAULT_MONTHLY_MAX
    undo_window_seconds: int = DEFAULT_UNDO_WINDOW_SECONDS
    _offsets: dict = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self):
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError, OSError) as e:
            raise ConfigError(f"Unknown timezone '{self.timezone}'") from e

        offsets = {}
        for entry in self.initial_kinds:
            if entry.kind == MONTHLY_KIND:
                raise ConfigError(f"'{MONTHLY_KIND}' cannot be an initial kind")
            if entry.kind in offsets:
                raise ConfigError(f"Duplicate initial kind '{entry.kind}'")
            offsets[entry.kind] = entry
        if not offsets:
            raise ConfigError("At least one initial kind is required")
        if self.monthly_min > self.monthly_max:
            raise ConfigError(
                f"Monthly range is empty: min {self.monthly_min} > max {self.monthly_max}"
            )
        if self.undo_window_seconds < 0:
            raise ConfigError("UNDO_WINDOW_SECONDS must not be negative")
        object.__setattr__(self, "_offsets", offsets)

    @cached_property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @property
    def kind_order(self) -> list[str]:
        """Initial kinds in sequence order."""
        return [entry.kind for entry in self.initial_kinds]

    @property
    def last_initial_kind(self) -> str:
        return self.initial_kinds[-1].kind

    @property
    def month_numbers(self) -> range:
        return range(self.monthly_min, self.monthly_max + 1)

    def is_initial(self, kind: str) -> bool:
        return kind in self._offsets

    def is_known_kind(self, kind: str) -> bool:
        return kind == MONTHLY_KIND or kind in self._offsets

    def day_offset(self, kind: str) -> int:
        """Whole-day offset for an initial kind.

        Raises:
            ConfigError: If the kind is not in the offsets table
        """
        entry = self._offsets.get(kind)
        if entry is None:
            raise ConfigError(f"No offset configured for kind '{kind}'")
        return entry.days

    def label(self, kind: str, month_number: Optional[int] = None) -> str:
        """Human-readable label, e.g. '24-Hour' or 'Month 3'."""
        if kind == MONTHLY_KIND:
            return f"Month {month_number}" if month_number is not None else "Monthly"
        entry = self._offsets.get(kind)
        return entry.label if entry else kind


def load_offsets(path: Path) -> dict:
    """Load and validate an offsets YAML file.

    Returns keyword arguments for TrackerConfig (initial_kinds, monthly range).

    Raises:
        ConfigError: If the file is missing, unparsable or fails schema validation
    """
    if not path.exists():
        raise ConfigError(f"Offsets file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    try:
        validate.validate(data, validate.OFFSETS)
    except validate.ValidationError as e:
        raise ConfigError(str(e)) from e

    kwargs = {
        "initial_kinds": tuple(
            KindOffset(
                kind=item["kind"],
                days=item["days"],
                label=item.get("label", item["kind"]),
            )
            for item in data["initial"]
        ),
    }
    monthly = data.get("monthly")
    if monthly:
        kwargs["monthly_min"] = monthly["min"]
        kwargs["monthly_max"] = monthly["max"]
    return kwargs


def load_config(env_path: Optional[Path] = None) -> TrackerConfig:
    """Load tracker.env (if given) plus environment overrides into TrackerConfig.

    Raises:
        ConfigError: On any invalid setting. Configuration errors are fatal.
    """
    env: dict[str, str] = {}
    base_dir = Path.cwd()
    if env_path is not None:
        try:
            env = envparse.load_env(env_path)
        except (FileNotFoundError, ValueError) as e:
            raise ConfigError(str(e)) from e
        base_dir = Path(env_path).parent

    env = envparse.overlay_environ(env, ENV_KEYS)

    kwargs = {"timezone": env.get("TRACKER_TIMEZONE", DEFAULT_TIMEZONE)}

    undo_raw = env.get("UNDO_WINDOW_SECONDS", str(DEFAULT_UNDO_WINDOW_SECONDS))
    try:
        kwargs["undo_window_seconds"] = int(undo_raw)
    except ValueError:
        raise ConfigError(f"UNDO_WINDOW_SECONDS must be an integer, got '{undo_raw}'") from None

    offsets_file = env.get("TRACKER_OFFSETS_FILE")
    if offsets_file:
        offsets_path = Path(offsets_file)
        if not offsets_path.is_absolute():
            offsets_path = base_dir / offsets_path
        kwargs.update(load_offsets(offsets_path))

    config = TrackerConfig(**kwargs)
    logger.debug(
        f"[CONFIG] timezone={config.timezone} kinds={config.kind_order} "
        f"monthly={config.monthly_min}..{config.monthly_max}"
    )
    return config
