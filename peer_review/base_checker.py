#!/usr/bin/env python3
"""
Base Checker Contract
=====================
Rule tables and the uniform scan loop shared by the heuristics engines.

A checker owns immutable tables of `Rule` entries. `BaseChecker.scan_rules`
runs every rule across the whole text independently; the same substring may
be reported by more than one rule.
"""

import re
from typing import List, Dict, Any, Optional, Sequence, Tuple, Iterator
from dataclasses import dataclass

__version__ = "1.1.0"

# Regex cost is linear in input size for the rule tables below; the cap keeps
# it bounded for pathological uploads.
MAX_ANALYSIS_CHARS = 500_000

WORD_PATTERN = re.compile(r'\b\w+\b')
PARAGRAPH_BREAK = re.compile(r'\n\s*\n')

SEVERITY_ERROR = 'error'
SEVERITY_WARNING = 'warning'
SEVERITY_SUGGESTION = 'suggestion'


@dataclass(frozen=True)
class Rule:
    """One entry of a rule set: a pattern plus what to report for each match."""
    rule_id: str
    pattern: re.Pattern
    category: str
    severity: str
    message: str
    correction: Optional[str] = None  # regex expansion template, e.g. r'an \2'
    suggestion: Optional[str] = None

    def expand_correction(self, match: 're.Match') -> Optional[str]:
        if self.correction is None:
            return None
        return match.expand(self.correction)


def rule(rule_id: str, pattern: str, category: str, severity: str, message: str,
         correction: Optional[str] = None, suggestion: Optional[str] = None,
         flags: int = 0) -> Rule:
    """Build a Rule with a compiled pattern."""
    return Rule(
        rule_id=rule_id,
        pattern=re.compile(pattern, flags),
        category=category,
        severity=severity,
        message=message,
        correction=correction,
        suggestion=suggestion,
    )


@dataclass
class GrammarError:
    """A single diagnostic located by character offset in the scanned text."""
    offset: int
    length: int
    message: str
    severity: str  # error, warning, suggestion
    correction: Optional[str] = None
    suggestion: Optional[str] = None
    rule_id: str = ""
    category: str = ""
    flagged_text: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            'offset': self.offset,
            'length': self.length,
            'message': self.message,
            'severity': self.severity,
            'correction': self.correction,
            'suggestion': self.suggestion,
            'rule_id': self.rule_id,
            'category': self.category,
            'flagged_text': self.flagged_text,
        }


def count_words(text: str) -> int:
    return sum(1 for _ in WORD_PATTERN.finditer(text))


def split_paragraphs(text: str) -> List[str]:
    """Blank-line separated paragraphs, skipping whitespace-only chunks."""
    return [p for p in PARAGRAPH_BREAK.split(text) if p.strip()]


def count_phrases(lower_text: str, phrases: Sequence[str]) -> int:
    """Count word-bounded occurrences of each phrase in already-lowercased text."""
    total = 0
    for phrase in phrases:
        total += len(re.findall(r'\b' + re.escape(phrase) + r'\b', lower_text))
    return total


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


class BaseChecker:
    """
    Base class for the text heuristics engines.

    Subclasses implement check() and return their own report type. Checkers
    hold no per-call state, so one instance can serve concurrent callers.
    """

    CHECKER_NAME = "Base"
    CHECKER_VERSION = "1.0.0"

    def __init__(self, max_chars: int = MAX_ANALYSIS_CHARS):
        self.max_chars = max_chars

    def prepare(self, text: Optional[str]) -> Tuple[str, bool]:
        """Normalise input to a string and apply the length cap.

        Returns (text, truncated).
        """
        if not text:
            return "", False
        if len(text) > self.max_chars:
            return text[:self.max_chars], True
        return text, False

    def check(self, text: str):
        raise NotImplementedError("Subclasses must implement check()")

    @staticmethod
    def iter_matches(rules: Sequence[Rule], text: str) -> Iterator[Tuple[Rule, 're.Match']]:
        """Yield (rule, match) for every non-overlapping match of every rule."""
        for r in rules:
            for match in r.pattern.finditer(text):
                yield r, match

    def scan_rules(self, rules: Sequence[Rule], text: str) -> List[GrammarError]:
        """Run a rule table over the text and build one error per match."""
        errors = []
        for r, match in self.iter_matches(rules, text):
            correction = r.expand_correction(match)
            errors.append(GrammarError(
                offset=match.start(),
                length=match.end() - match.start(),
                message=r.message,
                severity=r.severity,
                correction=correction,
                suggestion=None if correction is not None else r.suggestion,
                rule_id=r.rule_id,
                category=r.category,
                flagged_text=match.group(),
            ))
        return errors
