import json
from pathlib import Path

import pytest

from notehub.config import Settings
from notehub.resolver import (
    DEFAULT_CONFIG,
    BakedConfig,
    JsonPropertyStore,
    MappingPropertyStore,
    extract_id,
    is_placeholder,
    load_baked_defaults,
    normalize_channel_ids,
    resolve_config,
    resolve_from_settings,
    sanitize_placeholder,
)


def _props(**data: str) -> MappingPropertyStore:
    return MappingPropertyStore(data)


def test_merges_properties_and_splits_channel_ids():
    cfg = resolve_config(
        _props(
            SPREADSHEET_ID="sheet123",
            ARTICLES_SHEET_NAME="Art",
            SLACK_SHEET_NAME="Slack",
            DRIVE_IMAGES_FOLDER="folder",
            SLACK_BOT_TOKEN="xoxb-123",
            SLACK_CHANNEL_IDS="C1 , C2,,",
        )
    )
    assert cfg.spreadsheet_id == "sheet123"
    assert cfg.articles_sheet == "Art"
    assert cfg.messages_sheet == "Slack"
    assert cfg.images_folder == "folder"
    assert cfg.bot_token == "xoxb-123"
    assert cfg.channel_ids == ("C1", "C2")


def test_falls_back_to_defaults_when_properties_are_missing():
    cfg = resolve_config(_props())
    assert cfg.spreadsheet_id == ""
    assert cfg.articles_sheet == "Articles"
    assert cfg.messages_sheet == "SlackMessages"
    assert cfg.images_folder == "notehub-images"
    assert cfg.channel_ids == ()
    assert cfg.notification_channel_ids == ()
    assert not cfg.slack_configured


def test_no_overrides_returns_baked_defaults_exactly():
    baked = BakedConfig.model_validate(
        {
            "spreadsheet_id": "baked-sheet",
            "sheets": {"articles": "Posts", "slack_messages": "Chat"},
            "drive": {"images_folder_name": "pics"},
            "slack": {
                "bot_token": "xoxb-baked",
                "channel_ids": ["C9", "C8"],
                "notification_channel_ids": "N1",
            },
            "web_app_url": "https://example.test/app",
        }
    )
    cfg = resolve_config(_props(), baked)
    assert cfg.spreadsheet_id == "baked-sheet"
    assert (cfg.articles_sheet, cfg.messages_sheet) == ("Posts", "Chat")
    assert cfg.images_folder == "pics"
    assert cfg.bot_token == "xoxb-baked"
    assert cfg.channel_ids == ("C9", "C8")
    assert cfg.notification_channel_ids == ("N1",)
    assert cfg.web_app_url == "https://example.test/app"


def test_partial_override_keeps_other_defaults():
    cfg = resolve_config(_props(SPREADSHEET_ID="only-this"))
    assert cfg.spreadsheet_id == "only-this"
    assert cfg.articles_sheet == "Articles"
    assert cfg.bot_token == ""


def test_empty_property_counts_as_unset():
    baked = BakedConfig(spreadsheet_id="baked")
    cfg = resolve_config(_props(SPREADSHEET_ID="", ARTICLES_SHEET_NAME=""), baked)
    assert cfg.spreadsheet_id == "baked"
    assert cfg.articles_sheet == "Articles"


def test_placeholders_are_treated_as_unset():
    cfg = resolve_config(
        _props(
            SLACK_BOT_TOKEN="PUT_YOUR_SLACK_BOT_TOKEN_HERE",
            SLACK_CHANNEL_IDS="PUT_COMMA_SEPARATED_CHANNEL_IDS_HERE",
            SLACK_NOTIFICATION_CHANNEL_IDS="PUT_COMMA_SEPARATED_NOTIFY_CHANNEL_IDS_HERE",
        )
    )
    assert cfg.bot_token == ""
    assert cfg.channel_ids == ()
    assert cfg.notification_channel_ids == ()


def test_baked_placeholders_are_cleared_too():
    baked = BakedConfig.model_validate(
        {"slack": {"bot_token": "xoxb-YOUR_SLACK_TOKEN", "channel_ids": ["C1", "PUT_ID"]}}
    )
    cfg = resolve_config(_props(), baked)
    assert cfg.bot_token == ""
    assert cfg.channel_ids == ("C1",)


def test_notification_channels_parse_separately():
    cfg = resolve_config(
        _props(SLACK_CHANNEL_IDS="C01, C02", SLACK_NOTIFICATION_CHANNEL_IDS="N01 ,N02,,")
    )
    assert cfg.channel_ids == ("C01", "C02")
    assert cfg.notification_channel_ids == ("N01", "N02")


def test_custom_property_keys_from_baked_config():
    baked = BakedConfig.model_validate(
        {"slack": {"bot_token_property_key": "TEAM_TOKEN", "channel_ids_property_key": "TEAM_CHANNELS"}}
    )
    cfg = resolve_config(_props(TEAM_TOKEN="xoxb-9", TEAM_CHANNELS="C7"), baked)
    assert cfg.bot_token == "xoxb-9"
    assert cfg.channel_ids == ("C7",)
    assert cfg.slack_configured


def test_spreadsheet_url_is_reduced_to_its_id():
    cfg = resolve_config(
        _props(SPREADSHEET_ID="https://docs.google.com/spreadsheets/d/abc123-def456/edit#gid=0")
    )
    assert cfg.spreadsheet_id == "abc123-def456"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("https://docs.google.com/spreadsheets/d/abc123-def456/edit#gid=0", "abc123-def456"),
        ("https://script.google.com/macros/s/AKfy_cb-1/exec", "AKfy_cb-1"),
        ("https://script.google.com/home/projects/proj_9/edit", "proj_9"),
        ("https://script.google.com/d/scr1pt/edit", "scr1pt"),
        ("  bare-id  ", "bare-id"),
        ("", ""),
        (None, ""),
    ],
)
def test_extract_id(raw, expected):
    assert extract_id(raw) == expected


def test_placeholder_detection():
    assert is_placeholder("PUT_TOKEN")
    assert is_placeholder("xx YOUR_SLACK xx")
    assert is_placeholder("C1,COMMA_SEPARATED")
    assert not is_placeholder("xoxb-real")
    assert not is_placeholder("")
    assert not is_placeholder(None)
    assert sanitize_placeholder(["C1", "PUT_C2", "C3"]) == ["C1", "C3"]
    assert sanitize_placeholder("PUT_X") == ""


def test_normalize_channel_ids():
    assert normalize_channel_ids("C1 , C2,,") == ["C1", "C2"]
    assert normalize_channel_ids(" C1 ,C1") == ["C1", "C1"]
    assert normalize_channel_ids([" C1", "", "C2 "]) == ["C1", "C2"]
    assert normalize_channel_ids("") == []
    assert normalize_channel_ids(None) == []


def test_resolved_config_is_immutable():
    cfg = resolve_config(_props())
    with pytest.raises(Exception):
        cfg.bot_token = "changed"


def test_json_property_store_and_baked_file(tmp_path: Path):
    props_path = tmp_path / "props.json"
    props_path.write_text(json.dumps({"SLACK_BOT_TOKEN": "xoxb-file", "SLACK_CHANNEL_IDS": "C5"}))
    baked_path = tmp_path / "config.generated.json"
    baked_path.write_text(json.dumps({"sheets": {"articles": "FromFile"}}))

    cfg = resolve_from_settings(
        Settings(PROPERTIES_PATH=str(props_path), BAKED_CONFIG_PATH=str(baked_path))
    )

    assert cfg.bot_token == "xoxb-file"
    assert cfg.channel_ids == ("C5",)
    assert cfg.articles_sheet == "FromFile"
    assert cfg.messages_sheet == "SlackMessages"


def test_missing_or_broken_files_degrade_to_defaults(tmp_path: Path):
    assert JsonPropertyStore(str(tmp_path / "absent.json")).get_property("X") is None
    broken = tmp_path / "broken.json"
    broken.write_text("{not json")
    assert load_baked_defaults(str(broken)) is DEFAULT_CONFIG
    assert JsonPropertyStore(str(broken)).get_property("X") is None
