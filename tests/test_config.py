"""Tests for configuration schemas and Hydra config conversion."""

from __future__ import annotations

from omegaconf import OmegaConf
import pytest

from main import build_app_config, build_request
from zotero_readwise_sync.domain.config import (
    AppConfig,
    ConfigError,
    ReadwiseConfig,
    RetryConfig,
    SyncConfig,
    ZoteroConfig,
)


class TestZoteroConfig:
    def test_library_id_required(self):
        with pytest.raises(ConfigError):
            ZoteroConfig(library_id="  ", api_key="k")

    def test_library_type_validated(self):
        with pytest.raises(ConfigError):
            ZoteroConfig(library_id="1", library_type="team", api_key="k")

    def test_api_key_required_for_web_api(self):
        with pytest.raises(ConfigError):
            ZoteroConfig(library_id="1")

    def test_local_api_needs_no_key(self):
        assert ZoteroConfig(library_id="1", local=True).api_key == ""


class TestReadwiseConfig:
    @pytest.mark.parametrize("batch_size", [0, 101])
    def test_batch_size_bounds(self, batch_size):
        with pytest.raises(ConfigError):
            ReadwiseConfig(batch_size=batch_size)

    def test_require_token_strips(self):
        assert ReadwiseConfig(api_token="  abc  ").require_token() == "abc"

    @pytest.mark.parametrize("token", ["", "   "])
    def test_require_token_missing(self, token):
        with pytest.raises(ConfigError):
            ReadwiseConfig(api_token=token).require_token()


class TestRetryConfig:
    def test_defaults(self):
        config = RetryConfig()
        assert config.max_attempts == 5
        assert config.default_retry_after == 60.0

    def test_max_delay_below_initial(self):
        with pytest.raises(ConfigError):
            RetryConfig(initial_delay=5, max_delay=1)

    def test_attempts_positive(self):
        with pytest.raises(ConfigError):
            RetryConfig(max_attempts=0)


class TestSyncConfig:
    def test_unknown_scope(self):
        with pytest.raises(ConfigError):
            SyncConfig(scope="everything")

    def test_collection_needs_target(self):
        with pytest.raises(ConfigError):
            SyncConfig(scope="collection")

    def test_items_need_keys(self):
        with pytest.raises(ConfigError):
            SyncConfig(scope="items")

    def test_mapping_workers_positive(self):
        with pytest.raises(ConfigError):
            SyncConfig(mapping_workers=0)


def _raw_config(**sync) -> dict:
    return {
        "zotero": {"library_id": "42", "api_key": "zk"},
        "readwise": {
            "api_token": "rw",
            "batch_size": 50,
            "retry": {"max_attempts": 3},
        },
        "sync": {"scope": "library", **sync},
        "state": {"state_dir": "/tmp/state"},
    }


class TestBuildAppConfig:
    def test_builds_nested_dataclasses(self):
        app_cfg = build_app_config(OmegaConf.create(_raw_config()))

        assert isinstance(app_cfg, AppConfig)
        assert app_cfg.zotero.library_id == "42"
        assert app_cfg.readwise.batch_size == 50
        assert isinstance(app_cfg.readwise.retry, RetryConfig)
        assert app_cfg.readwise.retry.max_attempts == 3
        assert app_cfg.state.state_dir == "/tmp/state"

    def test_env_interpolation(self, monkeypatch):
        monkeypatch.setenv("READWISE_TOKEN", "from-env")
        raw = _raw_config()
        raw["readwise"]["api_token"] = "${oc.env:READWISE_TOKEN,''}"

        app_cfg = build_app_config(OmegaConf.create(raw))

        assert app_cfg.readwise.require_token() == "from-env"

    def test_unknown_key_is_config_error(self):
        raw = _raw_config()
        raw["sync"]["unknown_option"] = True
        with pytest.raises(ConfigError):
            build_app_config(OmegaConf.create(raw))

    def test_missing_zotero_group(self):
        with pytest.raises(ConfigError):
            build_app_config(OmegaConf.create({"readwise": {}}))


class TestBuildRequest:
    def test_collection_scope(self):
        raw = _raw_config(scope="collection", scope_target="COL1")
        request = build_request(build_app_config(OmegaConf.create(raw)), "tok")
        assert request.scope.kind == "collection"
        assert request.scope.collection_key == "COL1"
        assert request.token == "tok"

    def test_items_scope(self):
        raw = _raw_config(scope="items", item_keys=["A", "B"])
        request = build_request(build_app_config(OmegaConf.create(raw)), "tok")
        assert request.scope.item_keys == ("A", "B")
