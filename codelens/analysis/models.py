"""
Domain models for code analysis reports and explanations.

API payloads use camelCase keys (the dashboard client's format); Python code
uses snake_case attribute names. Both spellings are accepted on input.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class Severity(str, Enum):
    """Issue severity, ordered low < medium < high."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.LOW: 0, Severity.MEDIUM: 1, Severity.HIGH: 2}


class Category(str, Enum):
    """Known suggestion categories."""

    READABILITY = "readability"
    BUGS = "bugs"
    PERFORMANCE = "performance"
    SECURITY = "security"
    MODULARITY = "modularity"
    LOGIC = "logic"
    SYNTAX = "syntax"
    STRUCTURE = "structure"
    MAINTAINABILITY = "maintainability"
    BEST_PRACTICE = "best_practice"
    DEBUG_CODE = "debug_code"
    DESIGN_ISSUE = "design_issue"


class ReportSource(str, Enum):
    """Where the suggestions of a report came from."""

    LLM = "llm"  # Parsed from the model's JSON
    FALLBACK = "fallback"  # Deterministic heuristics, LLM unavailable or unusable


class SuggestionOrigin(str, Enum):
    LLM = "llm"
    STATIC = "static"
    HEURISTIC = "heuristic"


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )


class Suggestion(CamelModel):
    """One finding, pinned to a line of the reviewed file."""

    id: str
    category: Category = Category.READABILITY
    severity: Severity = Severity.MEDIUM
    title: str
    description: str
    line_number: int = Field(..., ge=1)
    code_snippet: str
    suggestion: str
    error_type: str | None = None
    potential_impact: str | None = None
    origin: SuggestionOrigin = SuggestionOrigin.LLM


class ReportSummary(CamelModel):
    total_issues: int = Field(default=0, ge=0)
    overall_severity: Severity = Severity.LOW
    main_categories: list[str] = Field(default_factory=lambda: ["analysis"])
    overall_score: int = Field(default=50, ge=0, le=100)
    has_critical_errors: bool = False
    has_runtime_errors: bool = False
    has_logical_errors: bool = False


class CodeQuality(CamelModel):
    """Per-dimension quality ratings out of 10."""

    readability: int = Field(default=5, ge=0, le=10)
    maintainability: int = Field(default=5, ge=0, le=10)
    efficiency: int = Field(default=5, ge=0, le=10)
    security: int = Field(default=5, ge=0, le=10)


class ExecutionAnalysis(CamelModel):
    will_compile: bool = True
    will_run: bool = True
    has_infinite_loops: bool = False
    has_memory_issues: bool = False
    potential_output: str = ""


class AnalysisReport(CamelModel):
    """
    Validated review report as stored on a document and returned by the API.

    `summary.total_issues` always equals `len(suggestions)`.
    """

    summary: ReportSummary
    suggestions: list[Suggestion] = Field(default_factory=list)
    code_quality: CodeQuality | None = None
    execution_analysis: ExecutionAnalysis | None = None
    source: ReportSource = ReportSource.LLM

    @model_validator(mode="after")
    def validate_total_issues(self) -> AnalysisReport:
        if self.summary.total_issues != len(self.suggestions):
            raise ValueError(
                f"summary.totalIssues ({self.summary.total_issues}) does not match "
                f"number of suggestions ({len(self.suggestions)})"
            )
        return self

    def to_api_dict(self) -> dict:
        """camelCase JSON-ready dict (optional sections omitted when absent)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class StaticFinding(BaseModel):
    """Result of one deterministic pattern rule on one line."""

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    rule: str
    category: Category
    severity: Severity
    title: str
    description: str
    line_number: int = Field(..., ge=1)
    code_snippet: str
    suggestion: str

    def to_suggestion(self) -> Suggestion:
        return Suggestion(
            id=f"static-{self.rule}-{self.line_number}",
            category=self.category,
            severity=self.severity,
            title=self.title,
            description=self.description,
            line_number=self.line_number,
            code_snippet=self.code_snippet,
            suggestion=self.suggestion,
            origin=SuggestionOrigin.STATIC,
        )


class CodeMetrics(BaseModel):
    """Cheap textual metrics used by the fallback heuristics."""

    line_count: int
    has_functions: bool
    has_comments: bool
    has_error_handling: bool


# ============================================================================
# Code explanation
# ============================================================================


class Difficulty(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class BreakdownSection(CamelModel):
    section: str = "Code Section"
    line_numbers: str = ""
    what_it_does: str = ""
    why_it_matters: str = ""
    concepts_used: list[str] = Field(default_factory=list)
    code_snippet: str = ""


class KeyConcept(CamelModel):
    name: str = "Concept"
    simple_definition: str = ""
    technical_definition: str = ""
    why_important: str = ""
    real_world_analogy: str = ""
    examples_in_code: list[str] = Field(default_factory=list)


class PotentialIssue(CamelModel):
    issue: str = ""
    impact: str = ""
    suggestion: str = ""


class GlossaryItem(CamelModel):
    term: str
    simple_definition: str = ""


class CodeExplanation(CamelModel):
    """Learning-oriented walkthrough of a file. Not persisted."""

    high_level_overview: str
    detailed_breakdown: list[BreakdownSection] = Field(default_factory=list)
    key_concepts: list[KeyConcept] = Field(default_factory=list)
    pipeline_stages: list[str] | None = None
    program_flow: list[str] | None = None
    potential_issues: list[PotentialIssue] = Field(default_factory=list)
    key_takeaways: list[str] = Field(default_factory=list)
    difficulty: Difficulty = Difficulty.BEGINNER
    estimated_learning_time: str = "10-20 minutes"
    glossary: list[GlossaryItem] = Field(default_factory=list)
    is_ml_code: bool = False
    source: ReportSource = ReportSource.LLM

    def to_api_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
