"""
Field cleanup rules.

Each rule is a pure `str -> str` function. Data analysis runs every enabled
rule against the *current* value of a field, so two rules on one field give
two independent proposals instead of one combined value.

Rule order is fixed: trim, title case, truncate, US phone, https prefix,
lowercase.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable

Rule = Callable[[str], str]

# Word starts: beginning of string, after whitespace, after a hyphen.
# Apostrophes are not boundaries ("joe's" -> "Joe's").
_WORD_START = re.compile(r"(^|[\s-])(\w)")
_NON_DIGITS = re.compile(r"\D")


def trim(value: str) -> str:
    return value.strip()


def title_case(value: str) -> str:
    """
    "joe's pizza" -> "Joe's Pizza", "123 main st" -> "123 Main St".

    Anything containing "@" is treated as an email and returned unchanged.
    """
    if not value:
        return ""
    if "@" in value:
        return value
    return _WORD_START.sub(lambda m: m.group(1) + m.group(2).upper(), value.lower())


def truncate(value: str, max_length: int) -> str:
    """
    Cut to exactly `max_length` characters, the last three being "...".
    """
    if len(value) <= max_length:
        return value
    if max_length <= 3:
        return value[:max_length]
    return value[: max_length - 3] + "..."


def format_us_phone(value: str) -> str:
    """
    10 digits, or 11 starting with 1 -> "(XXX) XXX-XXXX". Anything else is
    returned unchanged.
    """
    digits = _NON_DIGITS.sub("", value)
    if len(digits) == 11 and digits.startswith("1"):
        digits = digits[1:]
    if len(digits) != 10:
        return value
    return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"


def prefix_https(value: str) -> str:
    trimmed = value.strip()
    if not trimmed:
        return value
    if trimmed.lower().startswith(("http://", "https://")):
        return trimmed
    return f"https://{trimmed}"


def lowercase(value: str) -> str:
    return value.lower()


@dataclass(frozen=True)
class CleanupRules:
    trim: bool = False
    title_case: bool = False
    truncate: int | None = None
    us_phone: bool = False
    https_prefix: bool = False
    lowercase: bool = False

    def steps(self) -> list[tuple[str, str, Rule]]:
        """
        Enabled rules as (change_type, reason, rule), in application order.
        """
        steps: list[tuple[str, str, Rule]] = []
        if self.trim:
            steps.append(("trim", "Removed leading/trailing whitespace", trim))
        if self.title_case:
            steps.append(("title_case", "Applied title case formatting", title_case))
        if self.truncate:
            max_length = self.truncate
            steps.append(
                (
                    "truncate",
                    f"Truncated to {max_length} characters",
                    lambda value: truncate(value, max_length),
                )
            )
        if self.us_phone:
            steps.append(("phone_format", "Formatted phone number to US standard", format_us_phone))
        if self.https_prefix:
            steps.append(("website_format", "Added protocol prefix to website URL", prefix_https))
        if self.lowercase:
            steps.append(("lowercase", "Converted to lowercase", lowercase))
        return steps
