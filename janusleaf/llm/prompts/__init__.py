"""
Prompt Management Module

Loads the mood and quote prompts from the text files next to this module so
wording can change without touching code. Templates use ``str.format``
placeholders; literal braces in the files are doubled.
"""

from __future__ import annotations

from pathlib import Path

PROMPTS_DIR = Path(__file__).parent


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
            FileNotFoundError: If the template file is missing
        """
        if prompt_name not in self._cache:
            prompt_path = PROMPTS_DIR / f"{prompt_name}.txt"
            if not prompt_path.exists():
                raise FileNotFoundError(f"Prompt file not found: {prompt_path}")

            with open(prompt_path, encoding="utf-8") as f:
                self._cache[prompt_name] = f.read().strip()

        return self._cache[prompt_name]

    def get_mood_prompt(self, journal_entry: str) -> str:
        return self.load_prompt("mood_prompt").format(journal_entry=journal_entry)

    def get_quote_prompt(self, journal_content: str) -> str:
        """Personalized quote prompt, or the generic one when there is no content."""
        if not journal_content.strip():
            return self.load_prompt("default_quote_prompt").format()
        return self.load_prompt("quote_prompt").format(journal_content=journal_content)


_loader = PromptLoader()


def get_mood_prompt(journal_entry: str) -> str:
    return _loader.get_mood_prompt(journal_entry)


def get_quote_prompt(journal_content: str) -> str:
    return _loader.get_quote_prompt(journal_content)
