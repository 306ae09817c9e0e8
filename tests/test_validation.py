from __future__ import annotations

import pytest

from canvasgate.exceptions import ValidationError
from canvasgate.types import Message
from canvasgate.validation import (
    MAX_CONTENT_LENGTH,
    clamp_max_tokens,
    contains_dangerous_pattern,
    sanitize_html,
    sanitize_text,
    validate_content,
    validate_email,
    validate_max_tokens,
    validate_messages,
    validate_model_name,
    validate_nickname,
    validate_position,
    validate_provider_name,
    validate_resource_id,
    validate_share_token,
    validate_temperature,
    validate_title,
)


def test_content_at_limit_is_accepted_and_trimmed():
    assert validate_content("  hello  ") == "hello"
    assert len(validate_content("a" * MAX_CONTENT_LENGTH)) == MAX_CONTENT_LENGTH


def test_oversized_content_is_rejected_not_truncated():
    with pytest.raises(ValidationError) as exc_info:
        validate_content("a" * (MAX_CONTENT_LENGTH + 1))
    assert exc_info.value.field == "content"
    assert "50000" in exc_info.value.public_message


@pytest.mark.parametrize(
    "payload",
    [
        "<script>alert(1)</script>",
        "<IFRAME src=x>",
        "click javascript:void(0)",
        "data:text/html;base64,AAAA",
        "vbscript: msgbox",
        '<img src=x onerror="boom">',
        "<form action=/steal>",
    ],
)
def test_dangerous_patterns_are_rejected(payload):
    assert contains_dangerous_pattern(payload)
    with pytest.raises(ValidationError):
        validate_content(payload)


def test_plain_prose_mentioning_scripts_is_allowed():
    assert validate_content("How do I write a python script?") == "How do I write a python script?"


def test_title_and_nickname_must_not_be_empty():
    with pytest.raises(ValidationError):
        validate_title("   ")
    with pytest.raises(ValidationError):
        validate_nickname("")
    assert validate_title(" Plan ") == "Plan"


def test_email_is_normalized():
    assert validate_email("Ada@Example.COM") == "ada@example.com"
    with pytest.raises(ValidationError):
        validate_email("not-an-email")


def test_model_name_charset_and_length():
    assert validate_model_name("gpt-4o-mini") == "gpt-4o-mini"
    assert validate_model_name("claude-3.5_sonnet") == "claude-3.5_sonnet"
    with pytest.raises(ValidationError):
        validate_model_name("gpt 4")
    with pytest.raises(ValidationError):
        validate_model_name("a" * 101)
    with pytest.raises(ValidationError):
        validate_model_name(None)


def test_provider_must_be_supported():
    assert validate_provider_name("anthropic") == "anthropic"
    with pytest.raises(ValidationError):
        validate_provider_name("OpenAI")
    with pytest.raises(ValidationError):
        validate_provider_name("mistral")
    with pytest.raises(ValidationError):
        validate_provider_name("openai", allowed=("google",))


def test_temperature_is_clamped_and_rounded():
    assert validate_temperature(None) == 0.7
    assert validate_temperature(0) == 0.0
    assert validate_temperature(2) == 2.0
    assert validate_temperature(0.123) == 0.12
    assert validate_temperature(-0.1) == 0.0
    assert validate_temperature(3) == 2.0
    for bad in ("hot", True, float("nan"), float("inf")):
        with pytest.raises(ValidationError):
            validate_temperature(bad)


def test_max_tokens_range_and_default():
    assert validate_max_tokens(None) == 4000
    assert validate_max_tokens(100_000) == 100_000
    assert validate_max_tokens(12.6) == 13
    with pytest.raises(ValidationError):
        validate_max_tokens(0)
    with pytest.raises(ValidationError):
        validate_max_tokens(100_001)


def test_clamp_max_tokens_clamps_instead_of_rejecting():
    assert clamp_max_tokens(100_000, 600) == 600
    assert clamp_max_tokens(250, 600) == 250
    with pytest.raises(ValidationError):
        clamp_max_tokens(0, 600)
    with pytest.raises(ValidationError):
        clamp_max_tokens("many", 600)


def test_share_token_format():
    token = "A" * 16 + "b1" * 8
    assert validate_share_token(token) == token
    with pytest.raises(ValidationError):
        validate_share_token("short")
    with pytest.raises(ValidationError):
        validate_share_token("-" * 32)


def test_position_is_rounded_and_bounded():
    assert validate_position(10.4, -3.6) == (10, -4)
    with pytest.raises(ValidationError):
        validate_position(1_000_001, 0)


def test_resource_id():
    assert validate_resource_id("board_1-a") == "board_1-a"
    with pytest.raises(ValidationError):
        validate_resource_id("../etc/passwd")
    with pytest.raises(ValidationError):
        validate_resource_id("")


def test_messages_are_validated_in_order():
    messages = validate_messages(
        [
            {"role": "system", "content": " be brief "},
            Message.user("hi"),
        ]
    )
    assert [m.role for m in messages] == ["system", "user"]
    assert messages[0].content == "be brief"


def test_messages_reject_bad_roles_and_content():
    with pytest.raises(ValidationError):
        validate_messages([])
    with pytest.raises(ValidationError):
        validate_messages([{"role": "tool", "content": "x"}])
    with pytest.raises(ValidationError):
        validate_messages([{"role": "user", "content": "<script>x</script>"}])
    with pytest.raises(ValidationError):
        validate_messages(["hello"])


def test_sanitize_html_keeps_allow_listed_markup():
    html = '<p class="lead" onclick="steal()">Hi <strong>there</strong><script>alert(1)</script></p>'
    assert sanitize_html(html) == '<p class="lead">Hi <strong>there</strong></p>'


def test_sanitize_html_drops_unknown_tags_but_keeps_text():
    assert sanitize_html('<a href="javascript:x">link</a><br/>') == "link<br>"
    assert sanitize_html("1 < 2 & 3") == "1 &lt; 2 &amp; 3"
    assert sanitize_html("") == ""


def test_sanitize_text_strips_every_tag():
    assert sanitize_text("<div><em>Hello</em> <style>p{}</style>world</div>") == "Hello world"
