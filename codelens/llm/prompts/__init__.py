"""
Prompt Management Module

Loads review and explanation prompts from the text files in this directory.
Templates use str.format placeholders; literal JSON braces are doubled.
"""

from __future__ import annotations

import os
from pathlib import Path

from codelens.utils.redaction import sanitize_for_prompt

PROMPTS_DIR = Path(__file__).parent

# Set CODELENS_REVIEW_PROMPT to try an alternate review template
REVIEW_PROMPT_NAME = os.getenv("CODELENS_REVIEW_PROMPT", "review_prompt")


class PromptLoader:
    """Load and cache prompt templates from files"""

    def __init__(self):
        self._cache: dict[str, str] = {}

    def load_prompt(self, prompt_name: str) -> str:
        """
        Load a prompt template from file.

        Args:
            prompt_name: Name of the prompt file (without .txt extension)

        Raises:
            FileNotFoundError: If no such template exists
        """
        if prompt_name not in self._cache:
            prompt_path = PROMPTS_DIR / f"{prompt_name}.txt"

            if not prompt_path.exists():
                raise FileNotFoundError(f"Prompt file not found: {prompt_path}")

            self._cache[prompt_name] = prompt_path.read_text(encoding="utf-8")

        return self._cache[prompt_name]

    def get_review_prompt(self, content: str, language: str, file_name: str) -> str:
        """
        Review prompt for one source file.

        The code is embedded verbatim; only the file name and language label
        are sanitized.
        """
        template = self.load_prompt(REVIEW_PROMPT_NAME)
        return template.format(
            content=content,
            language=sanitize_for_prompt(language, max_length=40) or "Unknown",
            file_name=sanitize_for_prompt(file_name) or "untitled",
            line_count=max(1, len(content.split("\n"))),
        )

    def get_explain_prompt(
        self, content: str, language: str, file_name: str, is_ml: bool = False
    ) -> str:
        template = self.load_prompt("explain_prompt_ml" if is_ml else "explain_prompt")
        return template.format(
            content=content,
            language=sanitize_for_prompt(language, max_length=40) or "Unknown",
            file_name=sanitize_for_prompt(file_name) or "untitled",
        )


# Global instance
_loader = PromptLoader()


def get_review_prompt(content: str, language: str, file_name: str) -> str:
    """Get review prompt (convenience function)"""
    return _loader.get_review_prompt(content, language, file_name)


def get_explain_prompt(content: str, language: str, file_name: str, is_ml: bool = False) -> str:
    """Get explanation prompt (convenience function)"""
    return _loader.get_explain_prompt(content, language, file_name, is_ml=is_ml)
