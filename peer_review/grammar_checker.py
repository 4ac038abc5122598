#!/usr/bin/env python3
"""
Grammar Checker
===============
Pattern-based grammar and academic style heuristics:
- Common grammar errors (articles, capitalisation, confusable words)
- Academic style issues (intensifiers, absolutes, opinion phrases)
- Passive voice constructions

Scores are a deterministic proxy for quality, not a language model.
"""

import re
from typing import List, Dict, Any
from dataclasses import dataclass, field

from .base_checker import (
    BaseChecker, GrammarError, Rule, rule, count_words, clamp,
    SEVERITY_ERROR, SEVERITY_WARNING, SEVERITY_SUGGESTION,
)

__version__ = "1.1.0"

_I = re.IGNORECASE

# Ordered; each rule scans the whole text independently.
COMMON_ERROR_RULES = (
    rule('GRM001', r'\s\s+', 'Spacing', SEVERITY_ERROR,
         'Remove multiple spaces', correction=' '),
    rule('GRM002', r'\b(a)\s+([aeiou])', 'Articles', SEVERITY_ERROR,
         'Use "an" before vowels', correction=r'an \2', flags=_I),
    rule('GRM003', r'\b(i)\b', 'Capitalization', SEVERITY_ERROR,
         'Capitalize the pronoun "I"', correction='I'),
    rule('GRM004', r'\b(its)\s+(\w+ing)\b', 'Contractions', SEVERITY_ERROR,
         'Use "it\'s" as contraction of "it is"', correction=r"it's \2", flags=_I),
    rule('GRM005', r'\b(effect)\b', 'Word Choice', SEVERITY_ERROR,
         'Verify correct usage of "effect" vs "affect"', suggestion='effect/affect', flags=_I),
    rule('GRM006', r"\b(their|they're|there)\b", 'Word Choice', SEVERITY_ERROR,
         'Verify correct usage of "their/they\'re/there"', suggestion="their/they're/there", flags=_I),
    rule('GRM007', r"\b(your|you're)\b", 'Word Choice', SEVERITY_ERROR,
         'Verify correct usage of "your/you\'re"', suggestion="your/you're", flags=_I),
    rule('GRM008', r'\b(then|than)\b', 'Word Choice', SEVERITY_ERROR,
         'Verify correct usage of "then/than"', suggestion='then/than', flags=_I),
    rule('GRM009', r'\b(\w+)\s\1\b', 'Repetition', SEVERITY_ERROR,
         'Possible repeated word', suggestion='repeated word', flags=_I),
    rule('GRM010', r'\b(data)\s+(is)\b', 'Agreement', SEVERITY_ERROR,
         'Data is plural and should use "are"', suggestion='data are', flags=_I),
    rule('GRM011', r'\b(this|that)\s+(?!is|was|has|have|will|would|could|should)', 'Clarity',
         SEVERITY_ERROR, 'Consider adding a noun after "this" or "that"',
         suggestion='missing noun', flags=_I),
)

ACADEMIC_STYLE_RULES = (
    rule('ACD001', r'\b(very|really|extremely)\b', 'Academic Style', SEVERITY_WARNING,
         'Consider using a more precise term instead of intensifiers',
         suggestion='more precise term', flags=_I),
    rule('ACD002', r'\b(many|several|some)\s+(researchers|studies|experiments)\b', 'Academic Style',
         SEVERITY_WARNING, 'Consider using a specific number instead of vague quantifiers',
         suggestion='specific number', flags=_I),
    rule('ACD003', r'\b(proves|prove|proven)\b', 'Academic Style', SEVERITY_WARNING,
         'Scientific research "suggests" or "indicates" rather than "proves"',
         suggestion='suggests/indicates/demonstrates', flags=_I),
    rule('ACD004', r'\b(always|never|all|none)\b', 'Academic Style', SEVERITY_WARNING,
         'Avoid absolutes in academic writing', suggestion='more nuanced term', flags=_I),
    rule('ACD005', r'\b(obvious|obviously|clearly)\b', 'Academic Style', SEVERITY_WARNING,
         'What seems "obvious" may not be to all readers', suggestion='omit or rephrase', flags=_I),
    rule('ACD006', r'\b(I think|I believe|in my opinion)\b', 'Academic Style', SEVERITY_WARNING,
         'Avoid personal opinions in formal academic writing', suggestion='omit or rephrase', flags=_I),
)

PASSIVE_VOICE_RULE = rule(
    'PAS001', r'\b(is|are|was|were|be|been|being)\s+(\w+ed)\b', 'Passive Voice',
    SEVERITY_SUGGESTION, 'Consider using active voice', flags=_I,
)

PASSIVE_RATIO_THRESHOLD = 0.1       # passive constructions per word
MANUAL_REVIEW_ERROR_THRESHOLD = 5   # error-severity entries
RECOMMENDED_MIN_WORDS = 2000
POINTS_PER_ERROR_DENSITY = 5        # points lost per error per 100 words


@dataclass
class GrammarReport:
    """Result of one grammar check."""
    errors: List[GrammarError] = field(default_factory=list)
    passive_voice_count: int = 0
    total_word_count: int = 0
    score: float = 100.0
    suggestions: List[str] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return sum(1 for e in self.errors if e.severity == SEVERITY_ERROR)

    @property
    def warning_count(self) -> int:
        return sum(1 for e in self.errors if e.severity == SEVERITY_WARNING)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'errors': [e.to_dict() for e in self.errors],
            'passive_voice_count': self.passive_voice_count,
            'total_word_count': self.total_word_count,
            'score': self.score,
            'suggestions': list(self.suggestions),
            'by_severity': {
                SEVERITY_ERROR: self.error_count,
                SEVERITY_WARNING: self.warning_count,
                SEVERITY_SUGGESTION: self.passive_voice_count,
            },
        }


def compute_score(error_total: int, word_count: int) -> float:
    """100 minus 5 points per error per 100 words, clamped to [0, 100]."""
    errors_per_hundred = error_total / max(word_count / 100, 1)
    return clamp(100 - POINTS_PER_ERROR_DENSITY * errors_per_hundred)


class GrammarChecker(BaseChecker):
    """Scans text against the common-error, academic-style and passive voice rules."""

    CHECKER_NAME = "Grammar"
    CHECKER_VERSION = "1.1.0"

    def __init__(self, common_rules=COMMON_ERROR_RULES, academic_rules=ACADEMIC_STYLE_RULES,
                 passive_rule: Rule = PASSIVE_VOICE_RULE, **kwargs):
        super().__init__(**kwargs)
        self.common_rules = tuple(common_rules)
        self.academic_rules = tuple(academic_rules)
        self.passive_rule = passive_rule

    def check(self, text: str) -> GrammarReport:
        text, truncated = self.prepare(text)
        report = GrammarReport(total_word_count=count_words(text))

        report.errors.extend(self.scan_rules(self.common_rules, text))
        report.errors.extend(self.scan_rules(self.academic_rules, text))

        passive = self.scan_rules((self.passive_rule,), text)
        report.passive_voice_count = len(passive)
        report.errors.extend(passive)

        report.score = compute_score(len(report.errors), report.total_word_count)
        report.suggestions = self._build_suggestions(report, truncated)
        return report

    def _build_suggestions(self, report: GrammarReport, truncated: bool) -> List[str]:
        suggestions = []

        if report.passive_voice_count > report.total_word_count * PASSIVE_RATIO_THRESHOLD:
            suggestions.append('Consider reducing passive voice usage')

        if report.error_count > MANUAL_REVIEW_ERROR_THRESHOLD:
            suggestions.append('Consider having your paper reviewed for grammatical errors')

        if report.total_word_count < RECOMMENDED_MIN_WORDS:
            suggestions.append('Consider expanding your research paper - typical papers are 3000+ words')

        if truncated:
            suggestions.append(f'Only the first {self.max_chars} characters were analysed')

        return suggestions


_default_checker = GrammarChecker()


def check_grammar(text: str) -> GrammarReport:
    """Check `text` with the default rule sets."""
    return _default_checker.check(text)
