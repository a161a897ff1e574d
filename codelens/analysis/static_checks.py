"""
Deterministic line-based checks run before (and independently of) the LLM.

The rules are intentionally shallow regexes: they catch obvious leftovers
(debug statements, eval, hard-coded secrets) that a review should always
mention, even when the LLM is unavailable.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from codelens.analysis.models import Category, CodeMetrics, Severity, StaticFinding
from codelens.config import STATIC_MAX_FINDINGS_PER_RULE, STATIC_MAX_LINE_LENGTH
from codelens.observability.logging import get_logger
from codelens.observability.telemetry import counter

logger = get_logger(__name__)


@dataclass(frozen=True)
class PatternRule:
    name: str
    pattern: re.Pattern[str]
    category: Category
    severity: Severity
    title: str
    description: str
    suggestion: str
    languages: frozenset[str] | None = None  # None = every language


_PY = frozenset({"Python"})
_JS = frozenset({"JavaScript", "TypeScript"})
_CODE = frozenset(
    {"JavaScript", "TypeScript", "Python", "Java", "C++", "C", "Go", "Ruby", "PHP", "SQL"}
)

RULES: tuple[PatternRule, ...] = (
    PatternRule(
        name="console-log",
        pattern=re.compile(r"\bconsole\.(log|debug|trace)\s*\("),
        category=Category.DEBUG_CODE,
        severity=Severity.LOW,
        title="Debug Logging Left in Code",
        description="console output is left in the code and will be shipped to users.",
        suggestion="Remove the statement or replace it with a proper logger.",
        languages=_JS,
    ),
    PatternRule(
        name="debugger",
        pattern=re.compile(r"^\s*debugger\s*;?\s*$"),
        category=Category.DEBUG_CODE,
        severity=Severity.MEDIUM,
        title="Debugger Statement",
        description="A debugger statement pauses execution whenever dev tools are open.",
        suggestion="Remove the debugger statement before committing.",
        languages=_JS,
    ),
    PatternRule(
        name="breakpoint",
        pattern=re.compile(r"\bbreakpoint\s*\(\s*\)|\bpdb\.set_trace\s*\("),
        category=Category.DEBUG_CODE,
        severity=Severity.MEDIUM,
        title="Breakpoint Left in Code",
        description="An interactive breakpoint will block the program at runtime.",
        suggestion="Remove the breakpoint call.",
        languages=_PY,
    ),
    PatternRule(
        name="eval",
        pattern=re.compile(r"(?<![\w.])(eval|exec)\s*\(|\bnew\s+Function\s*\("),
        category=Category.SECURITY,
        severity=Severity.HIGH,
        title="Dynamic Code Evaluation",
        description="Evaluating strings as code can execute attacker-controlled input.",
        suggestion="Replace eval/exec with explicit parsing or a lookup table.",
        languages=_CODE,
    ),
    PatternRule(
        name="os-system",
        pattern=re.compile(
            r"\bos\.system\s*\(|subprocess\.(Popen|call|run|check_output)\s*\(.*shell\s*=\s*True"
        ),
        category=Category.SECURITY,
        severity=Severity.HIGH,
        title="Shell Command Execution",
        description="Commands run through a shell are open to injection.",
        suggestion="Use subprocess.run with an argument list and shell=False.",
        languages=_PY,
    ),
    PatternRule(
        name="hardcoded-secret",
        pattern=re.compile(
            r"""(?i)\b(password|passwd|secret|api_?key|access_?token|auth_?token)\b\s*[:=]\s*['"][^'"\s]{4,}['"]"""
        ),
        category=Category.SECURITY,
        severity=Severity.HIGH,
        title="Hard-coded Credential",
        description="A credential appears to be stored in source code.",
        suggestion="Load secrets from environment variables or a secret manager.",
    ),
    PatternRule(
        name="sql-concatenation",
        pattern=re.compile(
            r"""(?i)['"][^'"]*\b(select\s.+\sfrom|insert\s+into|update\s+\w+\s+set|delete\s+from)\b[^'"]*['"]\s*(\+|%\s*[\w(]|\.format\s*\()"""
            r"""|\bf['"][^'"]*\b(select\s.+\sfrom|insert\s+into|update\s+\w+\s+set|delete\s+from)\b[^'"]*\{"""
        ),
        category=Category.SECURITY,
        severity=Severity.HIGH,
        title="SQL Built by String Concatenation",
        description="Building SQL from strings allows SQL injection.",
        suggestion="Use parameterized queries / prepared statements.",
        languages=_CODE,
    ),
    PatternRule(
        name="bare-except",
        pattern=re.compile(r"^\s*except\s*:"),
        category=Category.BUGS,
        severity=Severity.MEDIUM,
        title="Bare except Clause",
        description="A bare except also catches KeyboardInterrupt and SystemExit and hides bugs.",
        suggestion="Catch the specific exceptions you expect (or at least Exception).",
        languages=_PY,
    ),
    PatternRule(
        name="empty-catch",
        pattern=re.compile(r"\bcatch\s*(\([^)]*\))?\s*\{\s*\}"),
        category=Category.BUGS,
        severity=Severity.MEDIUM,
        title="Empty catch Block",
        description="Errors are silently swallowed.",
        suggestion="Log or handle the error, or let it propagate.",
        languages=_CODE,
    ),
    PatternRule(
        name="todo",
        pattern=re.compile(r"(#|//|/\*|<!--|--)\s*(TODO|FIXME|XXX|HACK)\b"),
        category=Category.MAINTAINABILITY,
        severity=Severity.LOW,
        title="Unresolved TODO",
        description="A TODO/FIXME marker indicates unfinished work.",
        suggestion="Resolve the item or track it in the issue tracker.",
    ),
)


def compute_metrics(content: str) -> CodeMetrics:
    """Line count plus the substring heuristics used by the fallback report."""
    return CodeMetrics(
        line_count=len(content.split("\n")),
        has_functions=any(token in content for token in ("function ", "def ", "class ")),
        has_comments=any(token in content for token in ("//", "/*", "#")),
        has_error_handling=any(token in content for token in ("try", "catch", "except")),
    )


def _applies(rule: PatternRule, language: str) -> bool:
    return rule.languages is None or language in rule.languages


def run_static_checks(content: str, language: str) -> list[StaticFinding]:
    """
    Run every applicable rule over `content`.

    Findings are ordered by line, then by rule order. Each rule reports at
    most STATIC_MAX_FINDINGS_PER_RULE lines.
    """
    if not content:
        return []

    rules = [rule for rule in RULES if _applies(rule, language)]
    per_rule: dict[str, int] = {}
    findings: list[StaticFinding] = []

    for line_number, line in enumerate(content.split("\n"), start=1):
        for rule in rules:
            if per_rule.get(rule.name, 0) >= STATIC_MAX_FINDINGS_PER_RULE:
                continue
            if rule.pattern.search(line):
                per_rule[rule.name] = per_rule.get(rule.name, 0) + 1
                findings.append(_finding(rule, line_number, line))

        if (
            len(line) > STATIC_MAX_LINE_LENGTH
            and language in _CODE
            and per_rule.get("long-line", 0) < STATIC_MAX_FINDINGS_PER_RULE
        ):
            per_rule["long-line"] = per_rule.get("long-line", 0) + 1
            findings.append(
                StaticFinding(
                    rule="long-line",
                    category=Category.READABILITY,
                    severity=Severity.LOW,
                    title="Line Too Long",
                    description=(
                        f"Line is {len(line)} characters long "
                        f"(limit {STATIC_MAX_LINE_LENGTH})."
                    ),
                    line_number=line_number,
                    code_snippet=_snippet(line),
                    suggestion="Break the expression across several lines.",
                )
            )

    if findings:
        counter("static_checks.findings", len(findings))
    logger.debug("Static checks: %d findings for language=%s", len(findings), language)
    return findings


def _finding(rule: PatternRule, line_number: int, line: str) -> StaticFinding:
    return StaticFinding(
        rule=rule.name,
        category=rule.category,
        severity=rule.severity,
        title=rule.title,
        description=rule.description,
        line_number=line_number,
        code_snippet=_snippet(line),
        suggestion=rule.suggestion,
    )


def _snippet(line: str, limit: int = 200) -> str:
    stripped = line.strip()
    return stripped if len(stripped) <= limit else stripped[:limit] + "..."
