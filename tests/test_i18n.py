import json

from live_screensaver import i18n
from live_screensaver.settings import save_language_setting


def test_tr_falls_back_to_english(monkeypatch):
    monkeypatch.setattr(i18n, "_translations", {})
    assert i18n.tr("Server error (HTTP {}). The stream service may be down.", 502) == (
        "Server error (HTTP 502). The stream service may be down."
    )
    assert i18n.tr("Some unknown text") == "Some unknown text"


def test_load_language_from_locales_dir(monkeypatch, tmp_path):
    locales = tmp_path / "locales"
    locales.mkdir()
    (locales / "de.json").write_text(json.dumps({"Loading stream...": "Stream wird geladen..."}), encoding="utf-8")
    monkeypatch.setattr(i18n, "get_resource_path", lambda name: tmp_path / name)
    monkeypatch.setattr(i18n, "_translations", {})

    i18n.load_language("de")
    assert i18n.tr("Loading stream...") == "Stream wird geladen..."

    i18n.load_language("xx")
    assert i18n.tr("Loading stream...") == "Loading stream..."


def test_broken_locale_file_is_ignored(monkeypatch, tmp_path):
    locales = tmp_path / "locales"
    locales.mkdir()
    (locales / "fr.json").write_text("{not json", encoding="utf-8")
    monkeypatch.setattr(i18n, "get_resource_path", lambda name: tmp_path / name)

    i18n.load_language("fr")
    assert i18n.tr("OK") == "OK"


def test_saved_language_wins_over_system_locale(qapp, monkeypatch, tmp_path):
    locales = tmp_path / "locales"
    locales.mkdir()
    (locales / "de.json").write_text(json.dumps({"Cancel": "Abbrechen"}), encoding="utf-8")
    monkeypatch.setattr(i18n, "get_resource_path", lambda name: tmp_path / name)
    monkeypatch.setattr(i18n, "get_system_language", lambda: "fr")
    monkeypatch.setattr(i18n, "_translations", {})

    save_language_setting("de")
    i18n.setup_i18n()

    assert i18n.tr("Cancel") == "Abbrechen"
