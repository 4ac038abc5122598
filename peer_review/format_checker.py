#!/usr/bin/env python3
"""
Research Paper Format Checker
=============================
Checks academic structure of extracted paper text:
- Presence of the expected sections (Abstract ... References)
- Section lengths against typical word ranges
- Citation style (APA, MLA, Chicago, Harvard)
- Figures and tables
- Qualitative tone and organization scores with strengths/weaknesses

All results come from fixed pattern tables and thresholds.
"""

import re
from typing import List, Dict, Any, Optional, Tuple
from dataclasses import dataclass, field

from .base_checker import (
    BaseChecker, count_words, count_phrases, split_paragraphs, clamp,
)

__version__ = "1.1.0"

_I = re.IGNORECASE


@dataclass(frozen=True)
class SectionSpec:
    """An expected section of a research paper."""
    name: str
    required: bool
    detection_patterns: Tuple[re.Pattern, ...]
    description: str
    expected_word_range: Optional[Tuple[int, int]] = None


def _patterns(*sources: str) -> Tuple[re.Pattern, ...]:
    return tuple(re.compile(s, _I) for s in sources)


RESEARCH_PAPER_SECTIONS = (
    SectionSpec(
        name="Abstract", required=True, expected_word_range=(150, 300),
        detection_patterns=_patterns(r'summariz(e|es|ed|ing)', r'this (paper|research|study)'),
        description="Concise summary of the research question, method and findings",
    ),
    SectionSpec(
        name="Introduction", required=True, expected_word_range=(500, 1000),
        detection_patterns=_patterns(r'introduc(e|es|ed|ing)', r'background', r'purpose'),
        description="Context, motivation and the research question",
    ),
    SectionSpec(
        name="Literature Review", required=True, expected_word_range=(800, 2000),
        detection_patterns=_patterns(r'literature', r'review', r'previous (research|studies|work)'),
        description="Survey of prior work the paper builds on",
    ),
    SectionSpec(
        name="Methodology", required=True, expected_word_range=(600, 1500),
        detection_patterns=_patterns(r'method(s|ology)?', r'approach', r'data collection', r'experiment'),
        description="How the data was collected and analysed",
    ),
    SectionSpec(
        name="Results", required=True, expected_word_range=(600, 1500),
        detection_patterns=_patterns(r'result(s)?', r'finding(s)?', r'analysis', r'data'),
        description="Findings presented without interpretation",
    ),
    SectionSpec(
        name="Discussion", required=True, expected_word_range=(800, 1800),
        detection_patterns=_patterns(r'discuss(ion)?', r'interpret(ation)?', r'implic(ation|ations)'),
        description="Interpretation of the results and their implications",
    ),
    SectionSpec(
        name="Conclusion", required=True, expected_word_range=(300, 800),
        detection_patterns=_patterns(r'conclu(de|sion)', r'summary', r'future (work|research)'),
        description="Summary of contributions and future work",
    ),
    SectionSpec(
        name="References", required=True,
        detection_patterns=_patterns(r'reference(s)?', r'bibliograph(y|ies)', r'citation(s)?'),
        description="Full list of cited sources",
    ),
)

# Enumeration order breaks ties between styles.
CITATION_STYLE_PATTERNS = (
    ('apa', (re.compile(r'\(\w+,\s+\d{4}\)'), re.compile(r'\w+\s+\(\d{4}\)'))),
    ('mla', (re.compile(r'\(\w+\s+\d+\)'), re.compile(r'\w+\s+\d+'))),
    ('chicago', (re.compile(r'\d+\.\s+'), re.compile(r'\[\d+\]'))),
    ('harvard', (re.compile(r'\(\w+\s+\d{4}\)'), re.compile(r'\w+\s+\d{4}'))),
)

FIGURE_PATTERN = re.compile(r'figure \d+|fig\. \d+', _I)
TABLE_PATTERN = re.compile(r'table \d+', _I)

ACADEMIC_PHRASES = (
    'furthermore', 'moreover', 'consequently', 'therefore', 'thus', 'hence',
    'in contrast', 'in addition', 'on the other hand', 'et al',
    'this study', 'this paper', 'the results indicate', 'the findings suggest',
    'evidence suggests', 'hypothesis', 'empirical', 'framework', 'methodology',
    'significant', 'correlation', 'analysis', 'theoretical', 'literature',
)

TRANSITION_WORDS = (
    'however', 'therefore', 'furthermore', 'moreover', 'consequently',
    'additionally', 'nevertheless', 'similarly', 'in contrast', 'in addition',
    'as a result', 'for example', 'for instance', 'in particular', 'finally',
    'first', 'second', 'third', 'meanwhile', 'subsequently', 'thus',
)

FIRST_PERSON_PATTERN = re.compile(r'\b(i|me|my|mine|we|us|our|ours)\b')

RECOMMENDED_MIN_WORDS = 3000

TONE_BASE = 60
TONE_MAX_PHRASE_BONUS = 20
TONE_PHRASE_POINTS = 4              # per academic phrase per 500 words
TONE_MAX_FIRST_PERSON_PENALTY = 20
TONE_FIRST_PERSON_POINTS = 2        # per first-person pronoun
TONE_PARAGRAPH_BONUS = 10
PARAGRAPH_WORDS_RANGE = (4, 8)
LONG_PARAGRAPH_WORDS = 200

ORGANIZATION_BASE = 50
ORGANIZATION_SECTION_POINTS = 5
ORGANIZATION_TRANSITION_POINTS = 10  # per transition word per 1000 words

# (quality, min format score, min academic tone score), first match wins
QUALITY_TIERS = (
    ('Excellent', 90, 85),
    ('Good', 75, 70),
    ('Average', 60, 60),
)
LOWEST_QUALITY = 'Needs Improvement'


@dataclass
class SectionLengthIssue:
    section: str
    word_count: int
    expected_range: Tuple[int, int]
    issue: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'section': self.section,
            'word_count': self.word_count,
            'expected_range': list(self.expected_range),
            'issue': self.issue,
        }


@dataclass
class QualitativeAnalysis:
    overall_quality: str = LOWEST_QUALITY
    strengths: List[str] = field(default_factory=list)
    weaknesses: List[str] = field(default_factory=list)
    academic_tone_score: int = 0
    organization_score: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'overall_quality': self.overall_quality,
            'strengths': list(self.strengths),
            'weaknesses': list(self.weaknesses),
            'academic_tone_score': self.academic_tone_score,
            'organization_score': self.organization_score,
        }


@dataclass
class FormatReport:
    """Result of one format check."""
    missing_required_sections: List[str] = field(default_factory=list)
    detected_sections: List[str] = field(default_factory=list)
    section_length_issues: List[SectionLengthIssue] = field(default_factory=list)
    format_score: int = 0
    suggestions: List[str] = field(default_factory=list)
    citation_style: Optional[str] = None
    has_figures: bool = False
    has_tables: bool = False
    total_word_count: int = 0
    qualitative_analysis: QualitativeAnalysis = field(default_factory=QualitativeAnalysis)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'missing_required_sections': list(self.missing_required_sections),
            'detected_sections': list(self.detected_sections),
            'section_length_issues': [i.to_dict() for i in self.section_length_issues],
            'format_score': self.format_score,
            'suggestions': list(self.suggestions),
            'citation_style': self.citation_style,
            'has_figures': self.has_figures,
            'has_tables': self.has_tables,
            'total_word_count': self.total_word_count,
            'qualitative_analysis': self.qualitative_analysis.to_dict(),
        }


@dataclass
class _TextMetrics:
    """Measurements feeding the qualitative analysis."""
    word_count: int
    academic_phrases_per_500: float
    first_person_count: int
    mean_paragraph_words: float
    transitions_per_1000: float


def detect_citation_style(text: str) -> Optional[str]:
    """Style with the strictly highest non-zero match count, or None."""
    best_style, best_count = None, 0
    for style, patterns in CITATION_STYLE_PATTERNS:
        count = sum(len(p.findall(text)) for p in patterns)
        if count > best_count:
            best_style, best_count = style, count
    return best_style


def rate_overall_quality(format_score: float, academic_tone_score: float) -> str:
    for quality, min_format, min_tone in QUALITY_TIERS:
        if format_score >= min_format and academic_tone_score >= min_tone:
            return quality
    return LOWEST_QUALITY


def _heading_pattern(section: SectionSpec) -> re.Pattern:
    # A heading stands on its own line, optionally numbered ("2.1 methodology:")
    return re.compile(
        r'^[ \t]*(?:\d+(?:\.\d+)*\.?[ \t]+)?' + re.escape(section.name.lower()) + r'[ \t]*:?[ \t]*$',
        re.MULTILINE,
    )


class FormatChecker(BaseChecker):
    """Scores the academic structure of a research paper."""

    CHECKER_NAME = "Format"
    CHECKER_VERSION = "1.1.0"

    def __init__(self, sections=RESEARCH_PAPER_SECTIONS, **kwargs):
        super().__init__(**kwargs)
        self.sections = tuple(sections)
        self._name_patterns = {
            s.name: re.compile(r'\b' + re.escape(s.name.lower()) + r'\b') for s in self.sections
        }
        self._heading_patterns = {s.name: _heading_pattern(s) for s in self.sections}

    def check(self, text: str) -> FormatReport:
        text, truncated = self.prepare(text)
        lower_text = text.lower()
        report = FormatReport(total_word_count=count_words(text))

        self._detect_sections(lower_text, report)
        report.format_score = self._format_score(report)
        report.section_length_issues = self._check_section_lengths(lower_text, report.detected_sections)

        analysis = report.qualitative_analysis
        suggestions = report.suggestions

        if report.missing_required_sections:
            suggestions.append(
                f"Add the missing required sections: {', '.join(report.missing_required_sections)}"
            )
            analysis.weaknesses.append(
                f"Missing required sections: {', '.join(report.missing_required_sections)}"
            )
        else:
            analysis.strengths.append("All required sections are present")

        if report.total_word_count < RECOMMENDED_MIN_WORDS:
            suggestions.append("Paper appears to be shorter than the recommended length (3000+ words)")
        else:
            analysis.strengths.append("Paper meets the recommended length (3000+ words)")

        report.citation_style = detect_citation_style(text)
        if report.citation_style:
            suggestions.append(f"Detected citation style appears to be {report.citation_style}")
            analysis.strengths.append(f"Citations follow a consistent {report.citation_style.upper()} style")
        else:
            suggestions.append("No consistent citation style detected. "
                               "Consider using APA, MLA, or Chicago style consistently")
            analysis.weaknesses.append("No consistent citation style detected")

        report.has_figures = bool(FIGURE_PATTERN.search(text))
        report.has_tables = bool(TABLE_PATTERN.search(text))
        if report.has_figures or report.has_tables:
            analysis.strengths.append("Uses figures or tables to present findings")
        else:
            suggestions.append("Consider adding figures or tables to illustrate your findings")

        for issue in report.section_length_issues:
            suggestions.append(f"{issue.section}: {issue.issue}")

        if truncated:
            suggestions.append(f"Only the first {self.max_chars} characters were analysed")

        metrics = self._measure(text, lower_text, report.total_word_count)
        self._score_qualitative(metrics, report)
        return report

    def _detect_sections(self, lower_text: str, report: FormatReport):
        for section in self.sections:
            found = bool(self._name_patterns[section.name].search(lower_text)) or any(
                p.search(lower_text) for p in section.detection_patterns
            )
            if found:
                report.detected_sections.append(section.name)
            elif section.required:
                report.missing_required_sections.append(section.name)

    def _format_score(self, report: FormatReport) -> int:
        required = [s.name for s in self.sections if s.required]
        if not required:
            return 100
        detected = set(report.detected_sections)
        found = sum(1 for name in required if name in detected)
        return round(100 * found / len(required))

    def _check_section_lengths(self, lower_text: str, detected: List[str]) -> List[SectionLengthIssue]:
        """Estimate section lengths from stand-alone heading lines."""
        headings = []
        for section in self.sections:
            if section.name not in detected:
                continue
            match = self._heading_patterns[section.name].search(lower_text)
            if match:
                headings.append((match.start(), match.end(), section))
        headings.sort(key=lambda h: h[0])

        issues = []
        for i, (_, body_start, section) in enumerate(headings):
            if not section.expected_word_range:
                continue
            body_end = headings[i + 1][0] if i + 1 < len(headings) else len(lower_text)
            words = count_words(lower_text[body_start:body_end])
            low, high = section.expected_word_range
            if words < low:
                issue = f"Section appears short ({words} words; expected {low}-{high})"
            elif words > high:
                issue = f"Section appears long ({words} words; expected {low}-{high})"
            else:
                continue
            issues.append(SectionLengthIssue(section.name, words, (low, high), issue))
        return issues

    def _measure(self, text: str, lower_text: str, word_count: int) -> _TextMetrics:
        paragraphs = split_paragraphs(text)
        paragraph_count = max(len(paragraphs), 1)
        return _TextMetrics(
            word_count=word_count,
            academic_phrases_per_500=count_phrases(lower_text, ACADEMIC_PHRASES) / max(word_count / 500, 1),
            first_person_count=len(FIRST_PERSON_PATTERN.findall(lower_text)),
            mean_paragraph_words=word_count / paragraph_count,
            transitions_per_1000=count_phrases(lower_text, TRANSITION_WORDS) / max(word_count / 1000, 1),
        )

    def _score_qualitative(self, metrics: _TextMetrics, report: FormatReport):
        analysis = report.qualitative_analysis
        low, high = PARAGRAPH_WORDS_RANGE
        balanced_paragraphs = low <= metrics.mean_paragraph_words <= high

        tone = TONE_BASE
        tone += min(TONE_MAX_PHRASE_BONUS, TONE_PHRASE_POINTS * metrics.academic_phrases_per_500)
        tone -= min(TONE_MAX_FIRST_PERSON_PENALTY, TONE_FIRST_PERSON_POINTS * metrics.first_person_count)
        if balanced_paragraphs:
            tone += TONE_PARAGRAPH_BONUS
        analysis.academic_tone_score = round(clamp(tone))

        organization = ORGANIZATION_BASE
        organization += ORGANIZATION_SECTION_POINTS * len(report.detected_sections)
        organization += ORGANIZATION_TRANSITION_POINTS * metrics.transitions_per_1000
        analysis.organization_score = round(clamp(organization))

        if metrics.academic_phrases_per_500 >= 3:
            analysis.strengths.append("Good use of academic vocabulary and phrasing")
        elif metrics.academic_phrases_per_500 < 1:
            analysis.weaknesses.append("Limited academic vocabulary; consider more formal scholarly phrasing")

        if metrics.word_count and metrics.first_person_count == 0:
            analysis.strengths.append("Maintains an objective, impersonal voice")
        elif metrics.first_person_count > 5:
            analysis.weaknesses.append("Frequent first-person pronouns reduce objectivity")

        if balanced_paragraphs:
            analysis.strengths.append("Paragraphs are short and focused")
        elif metrics.mean_paragraph_words > LONG_PARAGRAPH_WORDS:
            analysis.weaknesses.append("Paragraphs are very long; consider splitting them")

        if metrics.transitions_per_1000 >= 5:
            analysis.strengths.append("Effective use of transition words to connect ideas")
        elif metrics.transitions_per_1000 < 2:
            analysis.weaknesses.append("Few transition words; ideas may feel disconnected")

        analysis.overall_quality = rate_overall_quality(report.format_score, analysis.academic_tone_score)


_default_checker = FormatChecker()


def check_format(text: str) -> FormatReport:
    """Check `text` against the standard research paper structure."""
    return _default_checker.check(text)
