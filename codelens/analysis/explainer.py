"""
Code explainer: a learning-oriented walkthrough of one file.

Unlike reviews, explanations are not persisted. Any LLM or parsing failure
yields a deterministic fallback explanation.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Any

from codelens.analysis.json_extraction import JSONExtractionError, extract_json
from codelens.analysis.models import (
    BreakdownSection,
    CodeExplanation,
    Difficulty,
    GlossaryItem,
    KeyConcept,
    PotentialIssue,
    ReportSource,
)
from codelens.analysis.reviewer import LLMNotConfiguredError
from codelens.infrastructure import settings
from codelens.llm.gemini import GeminiInitializationError
from codelens.llm.prompts import get_explain_prompt
from codelens.llm.retry import call_llm
from codelens.observability.logging import get_logger
from codelens.observability.telemetry import counter, time_block
from codelens.utils.redaction import redact

logger = get_logger(__name__)

ML_KEYWORDS = (
    "import tensorflow",
    "import torch",
    "import sklearn",
    "import keras",
    "from sklearn",
    "from tensorflow",
    "from torch",
    "import xgboost",
    "import lightgbm",
    "import catboost",
    "import transformers",
    "import datasets",
    "model.fit",
    "model.predict",
    "neural network",
    "deep learning",
    "machine learning",
    "random forest",
    "gradient boosting",
    "convolutional",
    "recurrent",
    "epoch",
    "batch_size",
    "loss function",
    "optimizer",
    "feature importance",
    "train_test_split",
)
# Whole-word matching so "epoch" does not fire on "epochs_since_unix" style names
_ML_REGEX = re.compile(
    r"(?<![\w])(" + "|".join(re.escape(k) for k in ML_KEYWORDS) + r")(?![\w])",
    re.IGNORECASE,
)


def is_ml_code(content: str) -> bool:
    return bool(content) and _ML_REGEX.search(content) is not None


def estimate_difficulty(content: str) -> str:
    """Keyword heuristic: classes/types → advanced, async code → intermediate."""
    if any(token in content for token in ("class ", "interface ", "type ")):
        return Difficulty.ADVANCED.value
    if any(token in content for token in ("async", "await", "Promise")):
        return Difficulty.INTERMEDIATE.value
    return Difficulty.BEGINNER.value


def _str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def _dict_items(value: Any) -> list[dict]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _text(value: Any, default: str = "") -> str:
    return value.strip() if isinstance(value, str) and value.strip() else default


def normalize_explanation(raw: dict[str, Any], content: str, is_ml: bool) -> CodeExplanation:
    """Coerce an LLM explanation payload into a CodeExplanation."""
    difficulty = _text(raw.get("difficulty")).lower()
    if difficulty not in {d.value for d in Difficulty}:
        difficulty = estimate_difficulty(content)

    breakdown = [
        BreakdownSection(
            section=_text(item.get("section"), "Code Section"),
            line_numbers=_text(item.get("lineNumbers")),
            what_it_does=_text(item.get("whatItDoes")),
            why_it_matters=_text(item.get("whyItMatters")),
            concepts_used=_str_list(item.get("conceptsUsed")),
            code_snippet=_text(item.get("codeSnippet")),
        )
        for item in _dict_items(raw.get("detailedBreakdown"))
    ]
    concepts = [
        KeyConcept(
            name=_text(item.get("name"), "Concept"),
            simple_definition=_text(item.get("simpleDefinition")),
            technical_definition=_text(item.get("technicalDefinition")),
            why_important=_text(item.get("whyImportant")),
            real_world_analogy=_text(item.get("realWorldAnalogy")),
            examples_in_code=_str_list(item.get("examplesInCode")),
        )
        for item in _dict_items(raw.get("keyConcepts"))
    ]
    issues = [
        PotentialIssue(
            issue=_text(item.get("issue")),
            impact=_text(item.get("impact")),
            suggestion=_text(item.get("suggestion")),
        )
        for item in _dict_items(raw.get("potentialIssues"))
        if _text(item.get("issue"))
    ]
    glossary = [
        GlossaryItem(term=_text(item.get("term")), simple_definition=_text(item.get("simpleDefinition")))
        for item in _dict_items(raw.get("glossary"))
        if _text(item.get("term"))
    ]

    pipeline = _str_list(raw.get("pipelineStages"))
    flow = _str_list(raw.get("programFlow"))

    return CodeExplanation(
        high_level_overview=_text(
            raw.get("highLevelOverview"), "No overview was provided for this code."
        ),
        detailed_breakdown=breakdown,
        key_concepts=concepts,
        pipeline_stages=pipeline or None,
        program_flow=flow or None,
        potential_issues=issues,
        key_takeaways=_str_list(raw.get("keyTakeaways")),
        difficulty=difficulty,
        estimated_learning_time=_text(raw.get("estimatedLearningTime"), "10-20 minutes"),
        glossary=glossary,
        is_ml_code=is_ml,
        source=ReportSource.LLM,
    )


def fallback_explanation(
    content: str, language: str, file_name: str, is_ml: bool
) -> CodeExplanation:
    """Deterministic explanation built from simple textual features."""
    lines = content.split("\n")
    n = len(lines)
    has_functions = any(t in content for t in ("function", "def ", "class "))
    has_imports = any(t in content for t in ("import ", "from "))
    has_variables = any(t in content for t in ("let ", "const ", "var ", "="))
    difficulty = estimate_difficulty(content)

    features = []
    if has_functions:
        features.append("function definitions")
    if has_variables:
        features.append("variable declarations")
    features.append("library imports" if has_imports else "basic programming structures")

    kind = "a machine learning pipeline" if is_ml else "a software program"
    overview = (
        f'This {language} code file "{file_name}" contains {n} lines and implements {kind}. '
        f"The code demonstrates {difficulty}-level programming concepts including "
        f"{', '.join(features)}."
    )

    stages = (
        ["data_loading", "preprocessing", "model_training", "evaluation"]
        if is_ml
        else ["initialization", "processing", "output"]
    )

    return CodeExplanation(
        high_level_overview=overview,
        detailed_breakdown=[
            BreakdownSection(
                section="File Structure & Imports",
                line_numbers=f"1-{min(10, n)}",
                what_it_does="Sets up the libraries and dependencies the program needs",
                why_it_matters=(
                    "Imports provide pre-built functionality so you don't have to "
                    "write everything from scratch"
                ),
                concepts_used=["Module imports", "Dependency management"],
                code_snippet="\n".join(lines[:5]),
            ),
            BreakdownSection(
                section="Main Program Logic",
                line_numbers=f"{min(11, n)}-{n}",
                what_it_does="Contains the core functionality of the program",
                why_it_matters="This is where the actual work happens",
                concepts_used=["Programming logic", "Algorithms", "Data processing"],
                code_snippet="\n".join(lines[5:15]),
            ),
        ],
        key_concepts=[
            KeyConcept(
                name="Basic Programming Structure",
                simple_definition="How code is organized into parts that work together",
                technical_definition="The organization of code components and their dependencies",
                why_important="Good structure makes code easier to understand and change",
                real_world_analogy=(
                    "Like organizing a kitchen: ingredients (variables) go in cabinets, "
                    "recipes (functions) tell you what to do"
                ),
                examples_in_code=["Function definitions", "Variable declarations", "Imports"],
            )
        ],
        pipeline_stages=stages if is_ml else None,
        program_flow=None if is_ml else stages,
        potential_issues=[
            PotentialIssue(
                issue="Basic analysis only: the AI explanation service was unavailable",
                impact="Limited insight into specific code patterns",
                suggestion="Try again later or with a smaller file",
            )
        ],
        key_takeaways=[
            "Read code from top to bottom to understand execution flow",
            "Look for function definitions to understand available operations",
            "Variable names often indicate their purpose",
            "Comments and documentation provide valuable context",
        ],
        difficulty=difficulty,
        estimated_learning_time="15-25 minutes",
        glossary=[
            GlossaryItem(
                term="Function",
                simple_definition="A reusable block of code that performs a specific task",
            ),
            GlossaryItem(term="Variable", simple_definition="A named container that stores data"),
        ],
        is_ml_code=is_ml,
        source=ReportSource.FALLBACK,
    )


class CodeExplainer:
    """Explains one source file; never raises except when the LLM is unconfigured."""

    def explain(self, content: str, language: str, file_name: str) -> CodeExplanation:
        """
        Side Effects:
            - Calls Gemini API
            - Increments telemetry counters

        Raises:
            LLMNotConfiguredError: If no Gemini backend is configured
        """
        ml = is_ml_code(content)
        prompt = get_explain_prompt(content, language, file_name, is_ml=ml)

        try:
            with time_block("explainer.llm"):
                response_text = call_llm(
                    prompt,
                    counter_prefix="explainer",
                    temperature=settings.EXPLAIN_TEMPERATURE,
                    max_output_tokens=settings.EXPLAIN_MAX_TOKENS,
                )
        except GeminiInitializationError as e:
            raise LLMNotConfiguredError(str(e)) from e
        except Exception as e:
            counter("explainer.fallback.llm_error")
            logger.error(
                "LLM explanation failed for file=%s (%s), using fallback",
                redact(file_name),
                type(e).__name__,
            )
            return fallback_explanation(content, language, file_name, ml)

        try:
            raw = extract_json(response_text)
        except JSONExtractionError as e:
            counter("explainer.fallback.parse_error")
            logger.warning("Unusable explanation response (%s), using fallback", e)
            return fallback_explanation(content, language, file_name, ml)

        try:
            explanation = normalize_explanation(raw, content, ml)
        except Exception as e:
            counter("explainer.fallback.normalize_error")
            logger.error(
                "Explanation normalization failed (%s), using fallback", type(e).__name__
            )
            return fallback_explanation(content, language, file_name, ml)

        counter("explainer.success")
        return explanation


@lru_cache(maxsize=1)
def get_explainer() -> CodeExplainer:
    return CodeExplainer()
