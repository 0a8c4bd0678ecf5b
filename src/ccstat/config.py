import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

import orjson
import structlog

logger = structlog.get_logger()

CONFIG_FILE_NAME = "ccstat.json"


@dataclass
class Config:
    """
    process level settings taken from the command line.
    """

    # None defers to DEBUG_OUTPUT from the preferences file
    log_level: "str | None" = None
    # empty disables the metrics endpoint
    listen_address: "str" = ""
    # overrides REFRESH_INTERVAL_MS from the preferences file
    refresh_interval_ms: "int | None" = None
    config_path: "Path | None" = None

    @property
    def metrics_enabled(self) -> "bool":
        return bool(self.listen_address)


@dataclass(frozen=True)
class Preferences:
    """
    user preferences stored in ccstat.json. Field names map to the
    upper case keys of the file, e.g. token_limit <-> TOKEN_LIMIT.
    """

    token_limit: "int" = 60_000_000
    use_observed_if_higher: "bool" = True
    # tokens/min, input + output only
    burn_rate_high_threshold: "int" = 1000
    burn_rate_moderate_threshold: "int" = 500
    refresh_interval_ms: "int" = 1000
    default_session_duration_hours: "float" = 5.0
    max_context_tokens: "int" = 200_000
    # percentages
    time_warning_threshold: "float" = 80.0
    time_critical_threshold: "float" = 90.0
    usage_warning_threshold: "float" = 80.0
    usage_critical_threshold: "float" = 90.0
    context_warning_threshold: "float" = 60.0
    context_critical_threshold: "float" = 80.0
    debug_output: "bool" = False

    @classmethod
    def from_dict(cls, data: "dict[str, Any]") -> "Preferences":
        """
        builds preferences from a parsed file. Missing or mistyped
        keys keep their defaults and unknown keys are ignored.
        """
        # older files spelled this key without underscores
        if "USE_OBSERVED_IF_HIGHER" not in data and "USEOBSERVED" in data:
            data = {**data, "USE_OBSERVED_IF_HIGHER": data["USEOBSERVED"]}

        defaults = cls()
        values: "dict[str, Any]" = {}
        for field in fields(cls):
            key = field.name.upper()
            if key not in data:
                continue

            value = data[key]
            default = getattr(defaults, field.name)
            if _matches_type(value, default):
                values[field.name] = type(default)(value)
            else:
                logger.warning("preference_ignored", key=key, value=value)

        return cls(**values)

    def to_dict(self) -> "dict[str, Any]":
        return {name.upper(): value for name, value in asdict(self).items()}

    @property
    def window_minutes(self) -> "float":
        return self.default_session_duration_hours * 60


def _matches_type(value: "Any", default: "Any") -> "bool":
    if isinstance(default, bool):
        return isinstance(value, bool)
    # bool is an int subclass, reject it for numeric fields
    if isinstance(value, bool):
        return False
    if isinstance(default, int):
        return isinstance(value, int) or (
            isinstance(value, float) and value.is_integer()
        )
    return isinstance(value, (int, float))


def xdg_config_dir() -> "Path":
    return Path(os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config")


def config_file_path() -> "Path":
    return xdg_config_dir() / CONFIG_FILE_NAME


def legacy_config_file_path() -> "Path":
    return Path.home() / CONFIG_FILE_NAME


def save_preferences(preferences: "Preferences", path: "Path") -> "None":
    """
    writes preferences as indented JSON. Failures are logged
    and otherwise ignored.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(orjson.dumps(preferences.to_dict(), option=orjson.OPT_INDENT_2))
    except OSError as exc:
        logger.warning("preferences_save_failed", path=str(path), error=str(exc))


def load_preferences(
    path: "Path | None" = None,
    legacy_path: "Path | None" = None,
) -> "Preferences":
    """
    loads preferences from path, falling back to legacy_path.

    When neither file exists the defaults are written to path.
    A file found only at the legacy location is migrated to path.
    Unreadable or malformed files yield the defaults.
    """
    if path is None:
        path = config_file_path()
    if legacy_path is None:
        legacy_path = legacy_config_file_path()

    source = path
    migrate = False
    if not path.exists():
        if not legacy_path.exists():
            preferences = Preferences()
            save_preferences(preferences, path)
            logger.info("preferences_created", path=str(path))
            return preferences

        source = legacy_path
        migrate = True

    try:
        data = orjson.loads(source.read_bytes())
    except (OSError, orjson.JSONDecodeError) as exc:
        logger.warning("preferences_load_failed", path=str(source), error=str(exc))
        return Preferences()

    if not isinstance(data, dict):
        logger.warning("preferences_load_failed", path=str(source), error="not an object")
        return Preferences()

    preferences = Preferences.from_dict(data)

    if migrate:
        save_preferences(preferences, path)
        logger.info("preferences_migrated", source=str(legacy_path), path=str(path))

    return preferences


def effective_token_limit(preferences: "Preferences", high_water_mark: "int") -> "int":
    """
    returns the token limit used for percentages. The observed
    high-water mark replaces the configured limit when it is
    higher and use_observed_if_higher is set.
    """
    if preferences.use_observed_if_higher and high_water_mark > preferences.token_limit:
        return high_water_mark
    return preferences.token_limit
