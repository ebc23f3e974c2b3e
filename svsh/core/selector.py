"""Service selection by name or wildcard pattern.

Patterns are matched with an explicit glob matcher, never a regex:
- ""          selects every known service
- "nginx"     selects nginx if it is known
- "worker*"   selects names starting with "worker"
- "*-db"      selects names ending with "-db"
- "*cache*"   selects names containing "cache"
- "*"         selects every known service

Only leading and trailing asterisks are wildcards; an asterisk anywhere else
is matched literally. All functions are pure so the same resolution serves
both command execution and tab completion.
"""

from collections.abc import Iterable, Sequence

WILDCARD = "*"


def is_pattern(text: str) -> bool:
    """Return True if text uses a leading or trailing wildcard."""
    return text.startswith(WILDCARD) or text.endswith(WILDCARD)


def matches(pattern: str, name: str) -> bool:
    """Check a single name against a pattern."""
    if not pattern:
        return True
    if not is_pattern(pattern):
        return pattern == name

    leading = pattern.startswith(WILDCARD)
    trailing = pattern.endswith(WILDCARD) and len(pattern) > 1
    core = pattern[1 if leading else 0 : len(pattern) - 1 if trailing else len(pattern)]

    if leading and trailing:
        return core in name
    if leading:
        return name.endswith(core)
    return name.startswith(core)


def resolve(pattern: str, known_names: Sequence[str]) -> list[str]:
    """Resolve one pattern against the known service names.

    Args:
        pattern: Service name or wildcard pattern
        known_names: Ordered service names from the current snapshot

    Returns:
        Matching names in known_names order. Empty when nothing matches;
        callers report that as a no-match condition.
    """
    return [name for name in known_names if matches(pattern, name)]


def resolve_many(patterns: Iterable[str], known_names: Sequence[str]) -> list[str]:
    """Resolve several patterns and union the results.

    Order follows the first pattern that selected each name.
    """
    selected: dict[str, None] = {}
    for pattern in patterns:
        for name in resolve(pattern, known_names):
            selected.setdefault(name, None)
    return list(selected)


def complete(text: str, known_names: Sequence[str]) -> list[str]:
    """Completion candidates for a partially typed service argument.

    A partial name completes to names it prefixes. A wildcard pattern
    completes to the names it would select.
    """
    if is_pattern(text):
        return resolve(text, known_names)
    return [name for name in known_names if name.startswith(text)]
