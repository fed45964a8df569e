"""
Reader for tracker.env files.

Values are taken literally: no shell evaluation, no variable expansion.
Anything that looks like shell syntax in a value is rejected outright so a
settings file can never smuggle in a command.
"""

import os
import re
from pathlib import Path
from typing import Optional

# Backticks, $( ), ${ }, ; and | in a value
SHELL_SYNTAX = re.compile(r'`|\$[({]|;|\|')

KEY_PATTERN = re.compile(r'^[A-Z][A-Z0-9_]*$')

QUOTES = ('"', "'")


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] in QUOTES and value[-1] == value[0]:
        return value[1:-1]
    return value


def parse_line(line: str, where: str) -> Optional[tuple[str, str]]:
    """
    Parse one settings line into (key, value).

    Returns None for blank lines and comments. `where` prefixes error messages.

    Raises:
        ValueError: On a malformed line or a value containing shell syntax
    """
    line = line.strip()
    if not line or line.startswith('#'):
        return None

    if line.startswith('export '):
        line = line[len('export '):].lstrip()

    key, sep, value = line.partition('=')
    if not sep:
        raise ValueError(f"{where}: Invalid syntax (no '=')")

    key = key.strip()
    if not KEY_PATTERN.match(key):
        raise ValueError(f"{where}: Invalid key '{key}'")

    value = _unquote(value.strip())
    if SHELL_SYNTAX.search(value):
        raise ValueError(f"{where}: Forbidden pattern in value for {key}")
    return key, value


def parse_env_text(text: str, source: str = "<string>") -> dict[str, str]:
    """Parse settings text; later keys win. Raises ValueError like parse_line."""
    settings = {}
    for lineno, line in enumerate(text.splitlines(), 1):
        parsed = parse_line(line, f"{source}:{lineno}")
        if parsed is not None:
            key, value = parsed
            settings[key] = value
    return settings


def load_env(filepath: str | Path) -> dict[str, str]:
    """
    Read and parse a settings file.

    Raises:
        FileNotFoundError: if file doesn't exist
        ValueError: if syntax invalid or forbidden pattern found
    """
    path = Path(filepath)
    if not path.is_file():
        raise FileNotFoundError(f"Env file not found: {filepath}")
    return parse_env_text(path.read_text(), source=str(path))


def overlay_environ(env: dict[str, str], keys: list[str]) -> dict[str, str]:
    """Copy of env where any of `keys` set (non-empty) in os.environ take precedence."""
    merged = dict(env)
    merged.update({key: os.environ[key] for key in keys if os.environ.get(key)})
    return merged
