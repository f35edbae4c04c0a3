"""
Configuration loading, clamping and option resolution.
"""

import json

from contest_entry.config import EngineConfig, EntryOptions, Settings


def test_settings_defaults():
    settings = Settings()
    assert settings.entry_timeout_ms == 120_000
    assert settings.max_steps == 10
    assert settings.max_redirects == 5
    assert settings.humanize is True


def test_settings_clamp_out_of_range_values():
    settings = Settings(entry_timeout_ms=100, max_steps=99, max_redirects=-3, min_field_confidence=2)
    assert settings.entry_timeout_ms == 5_000
    assert settings.max_steps == 25
    assert settings.max_redirects == 0
    assert settings.min_field_confidence == 1.0

    assert Settings(entry_timeout_ms=10_000_000).entry_timeout_ms == 600_000
    assert Settings(max_steps=0).max_steps == 1


def test_settings_accept_camel_case():
    settings = Settings(**{"entryTimeoutMs": 60_000, "maxSteps": 4, "detailedLogs": True})
    assert settings.entry_timeout_ms == 60_000
    assert settings.max_steps == 4
    assert settings.detailed_logs


def test_resolved_paths_prefer_explicit_values(tmp_path):
    settings = Settings(database_url="sqlite:///:memory:", screenshots_dir=str(tmp_path))
    assert settings.resolved_database_url() == "sqlite:///:memory:"
    assert settings.resolved_screenshots_dir() == str(tmp_path)

    defaults = Settings()
    assert defaults.resolved_database_url().startswith("sqlite:///")
    assert defaults.resolved_database_url().endswith("entries.db")


def test_entry_options_resolve_fills_default_timeout():
    settings = Settings(entry_timeout_ms=45_000)
    assert EntryOptions().resolve(settings).timeout_ms == 45_000
    assert EntryOptions(timeout_ms=1_500).resolve(settings).timeout_ms == 1_500
    assert EntryOptions(timeout_ms=0).resolve(settings).timeout_ms == 45_000


def test_entry_options_defaults():
    options = EntryOptions()
    assert options.take_screenshots
    assert options.check_newsletter_for_bonus
    assert not options.share_data_with_partners
    assert options.proxy_id is None


def test_engine_config_round_trip(tmp_path):
    path = tmp_path / "config.json"
    config = EngineConfig(
        settings=Settings(max_steps=7, headless=False),
        api_keys={"captcha": "abc"},
        proxies={"us-1": "http://proxy.local:8080"},
    )
    config.save(str(path))

    raw = json.loads(path.read_text())
    assert raw["apiKeys"]["captcha"] == "abc"
    assert raw["settings"]["maxSteps"] == 7

    loaded = EngineConfig.from_file(str(path))
    assert loaded.settings.max_steps == 7
    assert loaded.settings.headless is False
    assert loaded.api_keys.captcha == "abc"
    assert loaded.proxies == {"us-1": "http://proxy.local:8080"}
