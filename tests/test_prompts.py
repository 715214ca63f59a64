from relay.app.services.prompts import (
    CHILD_STYLE,
    DEVELOPER_STYLE,
    NO_CODE_REPLY,
    build_messages,
    build_system_prompt,
)


def test_system_prompt_developer_style():
    prompt = build_system_prompt(False)

    assert DEVELOPER_STYLE in prompt
    assert CHILD_STYLE not in prompt
    assert NO_CODE_REPLY in prompt


def test_system_prompt_child_style():
    prompt = build_system_prompt(True)

    assert CHILD_STYLE in prompt
    assert DEVELOPER_STYLE not in prompt


def test_build_messages_embeds_code_in_user_turn():
    messages = build_messages("x = 1", explain_to_child=False)

    assert [m["role"] for m in messages] == ["system", "user"]
    assert messages[1]["content"].endswith("x = 1")
    assert "x = 1" not in messages[0]["content"]
