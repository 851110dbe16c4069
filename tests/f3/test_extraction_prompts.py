"""Tests for the Markdown prompt registry."""

import pytest

from examadmin.prompts.registry import clear_cache, get_prompt, list_prompts


class TestPromptRegistry:
    """Tests for loading prompts."""

    def test_lists_extraction_prompts(self):
        prompts = list_prompts()

        assert "extraction/system_scholarship" in prompts
        assert "extraction/system_generic" in prompts
        assert "extraction/user" in prompts
        assert "extraction/answer_key" in prompts

    def test_substitutes_variables(self):
        prompt = get_prompt("extraction/user", pdf_text="1. Question", mode_note="", answer_key_section="")

        assert "1. Question" in prompt
        assert "{pdf_text}" not in prompt

    def test_unknown_placeholders_survive(self):
        prompt = get_prompt("extraction/user", pdf_text="text")

        assert "{answer_key_section}" in prompt

    def test_missing_prompt(self):
        with pytest.raises(FileNotFoundError, match="Prompt not found"):
            get_prompt("extraction/does_not_exist")

    def test_clear_cache(self):
        get_prompt("extraction/answer_key", answer_key_text="1-A")
        clear_cache()

        assert "1-A" in get_prompt("extraction/answer_key", answer_key_text="1-A")
