"""Tests for settings loading and service wiring."""

import pytest
from pydantic import ValidationError

import mentortrust.config
from mentortrust.config import MentorTrustSettings, get_config, reload_config
from mentortrust.service import build_service, build_store
from mentortrust.store import InMemoryStore, SQLiteStore
from mentortrust.verifiers import GitHubVerifier


@pytest.fixture(autouse=True)
def _reset_config():
    mentortrust.config._config = None
    yield
    mentortrust.config._config = None


class TestSettings:
    def test_defaults(self):
        cfg = MentorTrustSettings()
        assert cfg.weights_version == "2026-10"
        assert (cfg.weight_source, cfg.weight_documents, cfg.weight_identity) == (0.5, 0.3, 0.2)
        assert cfg.verified_threshold == 70.0
        assert cfg.user_header == "X-User-ID"

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("MENTORTRUST_VERIFIED_THRESHOLD", "85")
        monkeypatch.setenv("MENTORTRUST_MIN_FOLLOWERS", "3")
        cfg = MentorTrustSettings()
        assert cfg.verified_threshold == 85.0
        assert cfg.min_followers == 3

    def test_cors_origins_list(self, monkeypatch):
        monkeypatch.setenv("MENTORTRUST_CORS_ORIGINS", "http://a.test, http://b.test,")
        assert MentorTrustSettings().cors_origins_list == ["http://a.test", "http://b.test"]

    def test_invalid_backend_rejected(self, monkeypatch):
        monkeypatch.setenv("MENTORTRUST_STORE_BACKEND", "postgres")
        with pytest.raises(ValidationError):
            MentorTrustSettings()

    def test_yaml_overlay(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("weights_version: '2027-01'\nmax_conflict_retries: 5\n")
        cfg = MentorTrustSettings.from_yaml(path)
        assert cfg.weights_version == "2027-01"
        assert cfg.max_conflict_retries == 5

    def test_missing_yaml_falls_back(self, tmp_path):
        cfg = MentorTrustSettings.from_yaml(tmp_path / "absent.yaml")
        assert cfg.api_port == 8000

    def test_singleton_and_reload(self, tmp_path):
        assert get_config() is get_config()
        path = tmp_path / "config.yaml"
        path.write_text("api_port: 9001\n")
        assert reload_config(path).api_port == 9001
        assert get_config().api_port == 9001


class TestBuildService:
    def test_memory_store_by_default(self):
        assert isinstance(build_store(MentorTrustSettings(store_backend="memory")), InMemoryStore)

    def test_sqlite_store(self, tmp_path):
        store = build_store(MentorTrustSettings(store_backend="sqlite", sqlite_path=str(tmp_path / "m.db")))
        assert isinstance(store, SQLiteStore)
        store.close()

    def test_weights_and_requirements_from_settings(self):
        cfg = MentorTrustSettings(
            weights_version="custom",
            weight_source=0.4,
            weight_documents=0.4,
            weight_identity=0.2,
            min_repositories=2,
        )
        service = build_service(cfg)
        assert service.weights.version == "custom"
        assert service.health() == {"store_connected": True, "weights_version": "custom"}
        source = service.orchestrator._source
        assert isinstance(source, GitHubVerifier)
        assert source.requirements.repositories == 2

    def test_inconsistent_weights_fail_fast(self):
        cfg = MentorTrustSettings(weight_source=0.9, weight_documents=0.3, weight_identity=0.2)
        with pytest.raises(ValueError, match="sum to 1"):
            build_service(cfg)
