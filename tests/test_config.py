from targeting.config import Settings


def test_settings_read_prefixed_environment(monkeypatch):
    monkeypatch.setenv("TARGETING_ENVIRONMENT", "production")
    monkeypatch.setenv("TARGETING_AD_SELECTION_POLICY", "round_robin")
    monkeypatch.setenv("TARGETING_CATALOG_PATH", "/srv/catalog.yaml")

    settings = Settings(_env_file=None)

    assert settings.environment == "production"
    assert settings.ad_selection_policy == "round_robin"
    assert settings.catalog_path == "/srv/catalog.yaml"
    assert settings.sponsor_selection_policy == "sticky"
