"""Tests for the signed approve/decline links."""
from urllib.parse import parse_qs, urlparse

import pytest

from edify.services.moderation.tokens import build_action_url, generate_action_token, verify_action_token

CONTENT_ID = "3f1c2d9e-0000-4000-8000-000000000001"
MODERATOR_ID = "user_mod_1"


def test_token_is_hex_hmac_sha256_of_id_action_moderator():
    assert generate_action_token(CONTENT_ID, "approved", MODERATOR_ID) == (
        "9a6ddc19044a5ed0292c207e11803e16b75db22dc5707319971534d29921e3ee"
    )
    assert generate_action_token(CONTENT_ID, "declined", MODERATOR_ID) == (
        "11f3db334acc3e0a5fbab07a15a51ca5e8b14c1131050f126dfd37ae2c1ba272"
    )


def test_valid_token_verifies():
    token = generate_action_token(CONTENT_ID, "approved", MODERATOR_ID)
    assert verify_action_token(token, CONTENT_ID, "approved", MODERATOR_ID)


@pytest.mark.parametrize(
    "content_id,action,moderator_id",
    [
        (CONTENT_ID[:-1] + "2", "approved", MODERATOR_ID),
        (CONTENT_ID, "approvee", MODERATOR_ID),
        (CONTENT_ID, "declined", MODERATOR_ID),
        (CONTENT_ID, "approved", MODERATOR_ID + "x"),
    ],
)
def test_any_changed_field_fails_verification(content_id, action, moderator_id):
    token = generate_action_token(CONTENT_ID, "approved", MODERATOR_ID)
    assert not verify_action_token(token, content_id, action, moderator_id)


def test_token_depends_on_secret():
    token = generate_action_token(CONTENT_ID, "approved", MODERATOR_ID, secret="other-secret")
    assert not verify_action_token(token, CONTENT_ID, "approved", MODERATOR_ID)
    assert verify_action_token(token, CONTENT_ID, "approved", MODERATOR_ID, secret="other-secret")


def test_action_url_carries_all_parameters():
    url = build_action_url(CONTENT_ID, "declined", MODERATOR_ID, base_url="https://app.example.com/")
    parsed = urlparse(url)
    query = {key: values[0] for key, values in parse_qs(parsed.query).items()}

    assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == "https://app.example.com/api/moderator/email-action"
    assert query == {
        "id": CONTENT_ID,
        "action": "declined",
        "moderatorId": MODERATOR_ID,
        "token": "11f3db334acc3e0a5fbab07a15a51ca5e8b14c1131050f126dfd37ae2c1ba272",
    }
