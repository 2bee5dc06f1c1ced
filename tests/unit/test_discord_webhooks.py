from datetime import datetime, UTC
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import requests

from boxhub.services.discord_service import (
    BOT_USERNAME,
    COLORS,
    build_achievement_embed,
    build_class_reminder_embed,
    build_wod_embed,
    is_valid_webhook_url,
    post_webhook,
)

VALID_URL = "https://discord.com/api/webhooks/123456789/abc-DEF_123"


@pytest.mark.parametrize(
    "url",
    [
        VALID_URL,
        "https://discordapp.com/api/webhooks/1/token",
        "https://canary.discord.com/api/webhooks/42/x_y-z",
    ],
)
def test_valid_webhook_urls(url):
    assert is_valid_webhook_url(url)


@pytest.mark.parametrize(
    "url",
    [
        None,
        "",
        "http://discord.com/api/webhooks/1/token",
        "https://example.com/api/webhooks/1/token",
        "https://discord.com/api/webhooks/abc/token",
        "https://discord.com/api/webhooks/1/",
    ],
)
def test_invalid_webhook_urls(url):
    assert not is_valid_webhook_url(url)


def test_post_webhook_refuses_invalid_url_without_calling_out(discord_post):
    result = post_webhook("https://example.com/hook", content="hi")
    assert result == {'success': False, 'error': 'Invalid Discord webhook URL'}
    discord_post.assert_not_called()


def test_post_webhook_success_returns_message_id(discord_post):
    result = post_webhook(VALID_URL, content="Hello box")

    assert result == {'success': True, 'message_id': 'discord-1'}
    args, kwargs = discord_post.call_args
    assert args[0] == VALID_URL
    assert kwargs['params'] == {'wait': 'true'}
    assert kwargs['json']['username'] == BOT_USERNAME
    assert kwargs['json']['content'] == "Hello box"
    assert kwargs['json']['embeds'] == []


def test_post_webhook_reports_discord_error_message(discord_post):
    response = MagicMock(ok=False, status_code=404)
    response.json.return_value = {'message': 'Unknown Webhook'}
    discord_post.return_value = response

    result = post_webhook(VALID_URL, content="x")
    assert result == {'success': False, 'error': 'Unknown Webhook'}


def test_post_webhook_network_failure_does_not_raise(discord_post):
    discord_post.side_effect = requests.ConnectionError("boom")
    result = post_webhook(VALID_URL, content="x")
    assert result['success'] is False
    assert 'boom' in result['error']


def _exercise(name, reps=None, male=None, female=None, unit=None):
    return SimpleNamespace(
        display_name=name, reps=reps, reps_unit=None,
        weight_male=male, weight_female=female, weight_unit=unit,
    )


def test_wod_embed_lists_blocks_and_loads():
    workout = SimpleNamespace(
        name="Fran",
        description="Classic benchmark",
        blocks=[
            SimpleNamespace(
                name=None, block_type='wod', wod_type='for_time', time_cap=10, rounds=None, notes=None,
                exercises=[_exercise('Thrusters', 21, 43, 29, 'kg'), _exercise('Pull-ups', 21)],
            ),
        ],
    )
    embed = build_wod_embed(workout, "CrossFit Test")

    assert embed['title'] == "Fran"
    assert embed['description'] == "Classic benchmark"
    assert embed['color'] == COLORS['for_time']
    assert embed['footer']['text'].startswith("CrossFit Test")
    field = embed['fields'][0]
    assert field['name'] == 'WOD'
    assert field['value'].splitlines() == [
        "**FOR TIME** - 10 min",
        "- 21 Thrusters (H 43kg / F 29kg)",
        "- 21 Pull-ups",
    ]


def test_class_reminder_embed_uses_local_time_and_spots():
    gym_class = SimpleNamespace(
        name="WOD 18h",
        start_time=datetime(2025, 1, 10, 17, 0, tzinfo=UTC),
        max_participants=12,
        current_participants=10,
    )
    embed = build_class_reminder_embed(gym_class, None, coach_name="Coach Sam")

    values = {f['name']: f['value'] for f in embed['fields']}
    assert values['Horaire'] == "10/01/2025 18:00"
    assert values['Coach'] == "Coach Sam"
    assert values['Places restantes'] == "2"


def test_achievement_embed_title_depends_on_type():
    assert build_achievement_embed("Jamie", 'personal_record', "a battu son record")['title'] == 'Nouveau PR !'
    assert build_achievement_embed("Jamie", 'streak', "10 cours")['title'] == 'Achievement !'
