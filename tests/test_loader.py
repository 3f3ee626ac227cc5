"""
Tests for prompt template loading.
"""
import pytest

from reply_assist.llm.loader import PROMPTS_DIR, load_prompt, parse_prompt_file


@pytest.mark.unit
class TestBundledPrompts:

    @pytest.mark.parametrize("name", ["suggest_replies", "analyze_style"])
    def test_bundled_prompt_loads(self, name):
        template = load_prompt(name)
        assert template.name == name
        assert template.body
        assert template.temperature is not None

    def test_suggestion_template_formats(self):
        body = load_prompt("suggest_replies").body.format(contact_name="Alice")
        assert "Alice" in body
        assert '{"suggestions":' in body

    def test_style_template_formats(self):
        body = load_prompt("analyze_style").body.format()
        assert '{"formality":' in body

    def test_prompts_dir_exists(self):
        assert (PROMPTS_DIR / "suggest_replies.md").is_file()


@pytest.mark.unit
class TestParsePromptFile:

    def test_parses_frontmatter(self, tmp_path):
        path = tmp_path / "greet.md"
        path.write_text(
            "---\nprompt_name: greet\ndescription: Say hi\nmodel_params:\n  temperature: 0.5\n---\nHello {name}\n"
        )
        template = parse_prompt_file(path)
        assert template.name == "greet"
        assert template.description == "Say hi"
        assert template.body == "Hello {name}"
        assert template.temperature == 0.5

    def test_name_defaults_to_stem(self, tmp_path):
        path = tmp_path / "fallback.md"
        path.write_text("---\ndescription: x\n---\nbody")
        template = parse_prompt_file(path)
        assert template.name == "fallback"
        assert template.temperature is None

    def test_missing_frontmatter(self, tmp_path):
        path = tmp_path / "bare.md"
        path.write_text("just a body")
        with pytest.raises(ValueError, match="frontmatter"):
            parse_prompt_file(path)

    def test_bad_yaml(self, tmp_path):
        path = tmp_path / "bad.md"
        path.write_text("---\nmodel_params: [unclosed\n---\nbody")
        with pytest.raises(ValueError, match="YAML"):
            parse_prompt_file(path)

    def test_non_mapping_frontmatter(self, tmp_path):
        path = tmp_path / "list.md"
        path.write_text("---\n- a\n- b\n---\nbody")
        with pytest.raises(ValueError, match="mapping"):
            parse_prompt_file(path)
