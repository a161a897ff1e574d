"""CodeLens - AI code review and code explanation service"""

from __future__ import annotations

__version__ = "1.0.0"


# Lazy imports keep `import codelens.config` free of the LLM/FastAPI stack
def __getattr__(name: str):
    if name in ("AnalysisReport", "CodeExplanation", "Suggestion"):
        from codelens.analysis import models

        return getattr(models, name)

    if name == "CodeReviewer":
        from codelens.analysis.reviewer import CodeReviewer

        return CodeReviewer

    if name == "CodeExplainer":
        from codelens.analysis.explainer import CodeExplainer

        return CodeExplainer

    if name in ("Document", "DocumentService"):
        from codelens import documents

        return getattr(documents, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)


__all__ = [
    "AnalysisReport",
    "CodeExplainer",
    "CodeExplanation",
    "CodeReviewer",
    "Document",
    "DocumentService",
    "Suggestion",
]
