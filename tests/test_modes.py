from lapnotes.services.modes import DEFAULT_CUSTOM_INSTRUCTIONS, ModeRegistry


def test_builtin_modes_resolve_to_fixed_templates():
    registry = ModeRegistry()
    assert registry.ids() == ["journal", "action", "technical", "learning", "custom"]
    action = registry.lookup("action")
    assert action.name == "Action Plan"
    assert "# Action Plan" in action.instructions


def test_unknown_mode_falls_back_to_journal():
    assert ModeRegistry().lookup("poetry").id == "journal"


def test_custom_mode_reads_instructions_at_call_time():
    edits = ["first draft"]
    registry = ModeRegistry(custom_source=lambda: edits[-1])
    assert registry.lookup("custom").instructions == "first draft"
    edits.append("second draft")
    assert registry.lookup("custom").instructions == "second draft"


def test_custom_mode_defaults_when_nothing_saved(monkeypatch):
    monkeypatch.delenv("CUSTOM_PROMPT_INSTRUCTIONS", raising=False)
    assert ModeRegistry().lookup("custom").instructions == DEFAULT_CUSTOM_INSTRUCTIONS


def test_custom_mode_reads_environment(monkeypatch):
    monkeypatch.setenv("CUSTOM_PROMPT_INSTRUCTIONS", "Write a haiku.")
    assert ModeRegistry().lookup("custom").instructions == "Write a haiku."
