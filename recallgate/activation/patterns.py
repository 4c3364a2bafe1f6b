"""Pattern compilation for triggers and pattern rules.

A pattern is either a literal substring or a `/body/flags` regex. Regexes
are screened before use:
- length limit
- syntax (compile errors)
- ReDoS heuristics (quantified groups that already repeat inside)

Any regex that fails a check is matched as a literal string instead, so a
typo in a user's trigger never breaks a turn.
"""

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Tuple

from loguru import logger


# =============================================================================
# CONFIGURATION CONSTANTS
# =============================================================================

MAX_REGEX_LENGTH: int = 1000

# Flags accepted after the closing slash; only i/m/s change Python behavior
REGEX_LITERAL = re.compile(r"^/(?P<body>.+)/(?P<flags>[dgimsuy]*)$", re.DOTALL)

FLAG_MAP = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
}

# Regex shapes that indicate catastrophic backtracking
REDOS_PATTERNS: Tuple[Tuple[str, str], ...] = (
    (r'\(\?:[^()]*[\+\*][^()]*\)[\+\*\{]', 'quantified group with quantifier'),
    (r'\([^()]*[\+\*][^()]*\)[\+\*\{]', 'nested quantifiers'),
    (r'[\+\*]\s*[\+\*]', 'consecutive quantifiers'),
    (r'\\[1-9].*[\+\*]', 'backreference with quantifier'),
)


# =============================================================================
# VALIDATION
# =============================================================================

def check_redos_vulnerability(pattern: str) -> Tuple[bool, str]:
    """Check if a regex pattern is likely to backtrack catastrophically.

    Returns:
        Tuple of (is_safe, vulnerability_description).
    """
    for vuln_pattern, description in REDOS_PATTERNS:
        if re.search(vuln_pattern, pattern):
            return False, f"ReDoS risk: {description}"

    depth = 0
    max_depth = 0
    i = 0
    while i < len(pattern):
        if pattern[i] == '\\':
            i += 2
            continue
        if pattern[i] == '(':
            depth += 1
            max_depth = max(max_depth, depth)
        elif pattern[i] == ')':
            depth = max(0, depth - 1)
        i += 1
    if max_depth > 5:
        return False, f"Group nesting too deep ({max_depth})"

    return True, ""


def validate_regex(
    pattern: str,
    flags: int = 0,
    max_length: int = MAX_REGEX_LENGTH,
    check_redos: bool = True,
) -> Tuple[bool, str]:
    """Validate a regex body before it is used against chat text.

    Returns:
        Tuple of (is_valid, error_message).
    """
    if not pattern:
        return False, "Empty regex pattern"

    if '\x00' in pattern:
        return False, "Null byte in regex pattern"

    if len(pattern) > max_length:
        return False, f"Regex pattern too long ({len(pattern)} > {max_length})"

    try:
        re.compile(pattern, flags)
    except re.error as e:
        return False, f"Invalid regex syntax: {e}"

    if check_redos:
        return check_redos_vulnerability(pattern)

    return True, ""


# =============================================================================
# COMPILED PATTERNS
# =============================================================================

@dataclass(frozen=True)
class CompiledPattern:
    """A ready-to-use trigger/pattern: regex when valid, literal otherwise."""
    source: str
    case_sensitive: bool
    regex: re.Pattern | None = None

    @property
    def is_regex(self) -> bool:
        return self.regex is not None

    @property
    def literal(self) -> str:
        return self.source if self.case_sensitive else self.source.casefold()

    def search(self, text: str) -> bool:
        if not text:
            return False
        if self.regex is not None:
            return self.regex.search(text) is not None
        haystack = text if self.case_sensitive else text.casefold()
        return self.literal in haystack


def parse_regex_literal(raw: str) -> tuple[str, str] | None:
    """Split `/body/flags` into (body, flags); None when `raw` is not that form."""
    match = REGEX_LITERAL.match(raw)
    if not match:
        return None
    return match.group("body"), match.group("flags")


@lru_cache(maxsize=512)
def compile_pattern(
    raw: str,
    case_sensitive: bool = False,
    max_length: int = MAX_REGEX_LENGTH,
    check_redos: bool = True,
) -> CompiledPattern:
    """Compile one trigger or pattern string.

    Regex form is case-insensitive when it carries the `i` flag or the
    owning rule is not case-sensitive.
    """
    raw = raw.strip()
    parsed = parse_regex_literal(raw)
    if parsed is None:
        return CompiledPattern(source=raw, case_sensitive=case_sensitive)

    body, flag_chars = parsed
    flags = 0
    for ch in flag_chars:
        flags |= FLAG_MAP.get(ch, 0)
    if not case_sensitive:
        flags |= re.IGNORECASE

    is_valid, error = validate_regex(body, flags, max_length=max_length, check_redos=check_redos)
    if not is_valid:
        logger.warning(f"Pattern {raw!r} rejected ({error}); matching it as literal text")
        return CompiledPattern(source=raw, case_sensitive=case_sensitive)

    return CompiledPattern(
        source=raw,
        case_sensitive=case_sensitive,
        regex=re.compile(body, flags),
    )


def compile_patterns(
    raws: list[str] | tuple[str, ...],
    case_sensitive: bool = False,
    max_length: int = MAX_REGEX_LENGTH,
    check_redos: bool = True,
) -> list[CompiledPattern]:
    """Compile every non-blank entry, preserving order."""
    return [
        compile_pattern(r, case_sensitive, max_length, check_redos)
        for r in raws
        if isinstance(r, str) and r.strip()
    ]


@dataclass(frozen=True)
class MatchOptions:
    """Regex limits shared by triggers and pattern rules."""
    max_regex_length: int = MAX_REGEX_LENGTH
    check_redos: bool = True

    def compile(self, raws: list[str] | tuple[str, ...], case_sensitive: bool) -> list[CompiledPattern]:
        return compile_patterns(raws, case_sensitive, self.max_regex_length, self.check_redos)


DEFAULT_MATCH_OPTIONS = MatchOptions()
