"""
Configuration loader for routing profiles and environment variables.

A profile is a YAML mapping of sections (``eta``, ``geocode``, ``notice``,
``runs_api``, ``sessions``). Unknown sections or keys are rejected so a typo
never silently falls back to the built-in defaults.
"""

import os
from pathlib import Path
from typing import Dict, Any, Optional
import yaml


DEFAULT_PROFILE = "default"

NUMERIC = (int, float)

# section -> key -> accepted value types
PROFILE_SCHEMA: Dict[str, Dict[str, tuple]] = {
    "eta": {
        "limit": (int,),
        "window_seconds": NUMERIC,
        "backoff_base": NUMERIC,
        "backoff_max": NUMERIC,
        "backoff_jitter": NUMERIC,
        "travel_mode": (str,),
        "routing_preference": (str,),
    },
    "geocode": {
        "backoff_base": NUMERIC,
        "backoff_max": NUMERIC,
        "backoff_jitter": NUMERIC,
        "cache_size": (int,),
        "language": (str,),
    },
    "notice": {
        "after_seconds": NUMERIC,
    },
    "runs_api": {
        "base_url": (str,),
        "timeout_seconds": NUMERIC,
    },
    "sessions": {
        "max_sessions": (int,),
        "ttl_seconds": NUMERIC,
    },
}


class ConfigLoader:
    """Load and manage configuration from YAML files and environment."""

    CONFIG_DIR = Path(__file__).parent.parent.parent / "configs"

    @classmethod
    def load_profile(cls, profile_name: str = DEFAULT_PROFILE) -> Dict[str, Any]:
        """
        Load and validate a routing profile.

        Args:
            profile_name: Name of the profile (default, conservative)

        Returns:
            Dictionary with configuration values

        Raises:
            FileNotFoundError: If profile doesn't exist
            ValueError: If the profile has unknown sections, keys or bad values
        """
        profile_path = cls.CONFIG_DIR / f"{profile_name}.yaml"

        if not profile_path.exists():
            available = sorted(f.stem for f in cls.CONFIG_DIR.glob("*.yaml"))
            raise FileNotFoundError(
                f"Profile '{profile_name}' not found. Available profiles: {', '.join(available)}"
            )

        with open(profile_path, "r") as f:
            profile = yaml.safe_load(f) or {}
        return cls.validate_profile(profile, source=profile_path.name)

    @classmethod
    def validate_profile(cls, profile: Dict[str, Any], source: str = "profile") -> Dict[str, Any]:
        """Check every section and key against ``PROFILE_SCHEMA``; returns the profile unchanged."""
        if not isinstance(profile, dict):
            raise ValueError(f"{source}: expected a mapping of sections, got {type(profile).__name__}")

        for section, values in profile.items():
            keys = PROFILE_SCHEMA.get(section)
            if keys is None:
                raise ValueError(
                    f"{source}: unknown section '{section}'. Known sections: {', '.join(sorted(PROFILE_SCHEMA))}"
                )
            if values is None:
                continue
            if not isinstance(values, dict):
                raise ValueError(f"{source}: section '{section}' must be a mapping")

            for key, value in values.items():
                accepted = keys.get(key)
                if accepted is None:
                    raise ValueError(
                        f"{source}: unknown key '{section}.{key}'. Known keys: {', '.join(sorted(keys))}"
                    )
                # bool is an int subclass; never a valid number here
                if isinstance(value, bool) or not isinstance(value, accepted):
                    raise ValueError(f"{source}: '{section}.{key}' has invalid value {value!r}")
                if isinstance(value, NUMERIC) and value < 0:
                    raise ValueError(f"{source}: '{section}.{key}' must not be negative")

        return profile

    @classmethod
    def get_profile_from_env(cls) -> Optional[str]:
        """Get profile name from ROUTING_PROFILE environment variable."""
        return os.getenv("ROUTING_PROFILE")

    @classmethod
    def load_default_or_env_profile(cls) -> Dict[str, Any]:
        """
        Load profile from environment variable or use the default profile.

        Returns:
            Configuration dictionary
        """
        profile = cls.get_profile_from_env() or DEFAULT_PROFILE
        return cls.load_profile(profile)


def get_config() -> Dict[str, Any]:
    """Convenience function to get current configuration."""
    return ConfigLoader.load_default_or_env_profile()
