"""Environment variable resolution for app containers."""

import os
from typing import Dict, Iterable, List, Tuple


def parse_env_pair(pair: str) -> Tuple[str, str]:
    """Split a NAME=VALUE token on the first '='.

    A bare NAME yields an empty value.
    """
    name, _, value = pair.partition("=")
    return name, value


def inherited_from_os() -> List[str]:
    """Render the current process environment as NAME=VALUE entries."""
    return [f"{name}={value}" for name, value in os.environ.items()]


def lookup_inherited(name: str, inherited: Iterable[str]) -> str:
    """Return the value of the first inherited entry named `name`, or ''."""
    for entry in inherited:
        entry_name, value = parse_env_pair(entry)
        if entry_name == name:
            return value
    return ""


def build_environment(tokens: Iterable[str], inherited: Iterable[str]) -> Dict[str, str]:
    """Layer explicit NAME=VALUE tokens over inherited environment entries.

    Args:
        tokens: `NAME=VALUE` or bare `NAME` tokens, in flag order
        inherited: `NAME=VALUE` entries of the invoking process

    Returns:
        Mapping of variable name to value; later tokens win
    """
    inherited = list(inherited)
    environment = {}

    for token in tokens:
        if "=" in token:
            name, value = parse_env_pair(token)
        else:
            name, value = token, lookup_inherited(token, inherited)
        environment[name] = value

    return environment
