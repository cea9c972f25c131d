# tests/packshift/app/test_settings.py
from packshift.app import settings as settings_module
from packshift.app.settings import deepMerge, settings, settingsBool


def test_defaults_cover_engine_knobs():
    assert settings("resolve.maxConcurrency") == 6
    assert settings("registry.apiBase") == "https://api.modrinth.com"
    assert settings("loaderMeta.fabric.dependency") == "fabric-loader"
    assert settings("fallback.sources.TQTTVgYE.repo") == "gnembon/fabric-carpet"
    assert settings("no.such.key", "dflt") == "dflt"


def test_user_settings_file_overrides_defaults(tmp_path, monkeypatch):
    path = tmp_path / "settings.json5"
    path.write_text("{ resolve: { maxConcurrency: 2 }, logging: { devMode: true } // comment\n}", encoding="utf-8")
    monkeypatch.setenv("PACKSHIFT_SETTINGS", str(path))
    settings_module.loadSettings.cache_clear()

    assert settings("resolve.maxConcurrency") == 2
    assert settingsBool("logging.devMode") is True
    # untouched siblings survive the merge
    assert settings("registry.userAgent")


def test_unparsable_user_settings_fall_back_to_defaults(tmp_path, monkeypatch):
    path = tmp_path / "settings.json5"
    path.write_text("{ not json5 at all", encoding="utf-8")
    monkeypatch.setenv("PACKSHIFT_SETTINGS", str(path))
    settings_module.loadSettings.cache_clear()

    assert settings("resolve.maxConcurrency") == 6


def test_deepMerge_only_recurses_into_dicts():
    left = {"a": {"x": 1, "y": 2}, "b": [1, 2]}
    right = {"a": {"y": 3}, "b": [9]}
    assert deepMerge(left, right) == {"a": {"x": 1, "y": 3}, "b": [9]}
    assert left == {"a": {"x": 1, "y": 2}, "b": [1, 2]}
