from live_screensaver.settings import (
    DEFAULT_URL,
    clear_stream_start,
    load_language_setting,
    load_source_url,
    load_stream_start,
    save_language_setting,
    save_source_url,
    save_stream_start,
)


def test_default_source_when_unset(settings):
    assert load_source_url(settings) == DEFAULT_URL


def test_source_round_trip(settings):
    save_source_url("  https://stream.place/alice  ", settings)
    assert load_source_url(settings) == "https://stream.place/alice"


def test_empty_source_saves_default(settings):
    save_source_url("", settings)
    assert load_source_url(settings) == DEFAULT_URL


def test_new_source_clears_anchor(settings):
    save_stream_start(100.0, settings)
    save_source_url("https://example.com/a.m3u8", settings)
    assert load_stream_start(settings) is None


def test_clear_stream_start(settings):
    save_stream_start(100.0, settings)
    clear_stream_start(settings)
    assert load_stream_start(settings) is None


def test_settings_file_lives_in_user_data_dir(qapp, isolated_home):
    from live_screensaver.settings import get_settings

    settings = get_settings()
    assert settings.fileName() == str(isolated_home / "settings.ini")


def test_language_override_round_trip(settings):
    assert load_language_setting(settings=settings) == ""

    save_language_setting(" DE ", settings)
    assert load_language_setting(settings=settings) == "de"

    save_language_setting("auto", settings)
    assert load_language_setting(settings=settings) == ""
