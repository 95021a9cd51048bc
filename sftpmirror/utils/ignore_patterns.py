"""
Ignore pattern handling (the profile's "ignore" list)

Each pattern is a regular expression searched anywhere in the root-relative,
'/'-separated path, so a plain name like "node_modules" works as a substring
match. A pattern that is not a valid regex is matched literally.
"""
import re
from typing import Iterable, Pattern, Union

PatternLike = Union[str, Pattern]


def compile_patterns(raw: Iterable[str]) -> list[Pattern]:
    """Compile the profile's ignore strings, skipping blanks"""
    patterns = []
    for p in raw or ():
        if not p:
            continue
        try:
            patterns.append(re.compile(p))
        except re.error:
            patterns.append(re.compile(re.escape(p)))
    return patterns


def is_ignored(rel_path: str, patterns: Iterable[PatternLike]) -> bool:
    """True if any pattern matches the path"""
    norm = rel_path.replace("\\", "/")
    for p in patterns:
        if isinstance(p, str):
            compiled = compile_patterns([p])
            if compiled and compiled[0].search(norm):
                return True
        elif p.search(norm):
            return True
    return False
