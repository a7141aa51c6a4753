import pytest

from painel_beneficiarios.config.settings import Settings


@pytest.fixture(autouse=True)
def no_dotenv(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)


def test_defaults():
    settings = Settings()
    assert settings.ENTITY_LISTING_PLAN_DENYLIST == ["DENT", "AESP"]
    assert settings.DETAILED_REPORT_PLAN_DENYLIST == ["DENT", "AESP", "STANDARD"]
    assert settings.WINDOW_MONTHS == 12


def test_lists_are_read_as_comma_separated_values(monkeypatch):
    monkeypatch.setenv("ENTITY_LISTING_PLAN_DENYLIST", "DENT, AESP,ODONTO")
    monkeypatch.setenv("DETAILED_REPORT_PLAN_DENYLIST", "STANDARD")
    monkeypatch.setenv("CORS_ORIGINS", "http://localhost:3000,https://painel.example.com")

    settings = Settings()

    assert settings.ENTITY_LISTING_PLAN_DENYLIST == ["DENT", "AESP", "ODONTO"]
    assert settings.DETAILED_REPORT_PLAN_DENYLIST == ["STANDARD"]
    assert settings.CORS_ORIGINS == ["http://localhost:3000", "https://painel.example.com"]


def test_scalar_settings_from_environment(monkeypatch):
    monkeypatch.setenv("DEFAULT_OPERADORA", "OUTRA")
    monkeypatch.setenv("MAX_PAGE_SIZE", "50")
    settings = Settings()
    assert settings.DEFAULT_OPERADORA == "OUTRA"
    assert settings.MAX_PAGE_SIZE == 50
