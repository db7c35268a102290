"""Tests for configuration loading and the command line entry point."""

from __future__ import annotations

import dataclasses
import json

import pytest

from gaia.config import AppConfig, load_config, with_overrides
from gaia.main import main
from tests.conftest import make_segment


class TestLoadConfig:
    def test_missing_file_gives_defaults(self, tmp_path, monkeypatch):
        monkeypatch.delenv("GAIA_WORKERS", raising=False)
        monkeypatch.delenv("GAIA_STORAGE_ROOT", raising=False)
        monkeypatch.delenv("GAIA_BUCKET", raising=False)
        assert load_config(tmp_path / "absent.yaml") == AppConfig()

    def test_yaml_sections_override_defaults(self, tmp_path, monkeypatch):
        monkeypatch.delenv("GAIA_WORKERS", raising=False)
        path = tmp_path / "gaia.yaml"
        path.write_text(
            "products:\n"
            "  fill_samelc: false\n"
            "  unknown_key: 1\n"
            "pipeline:\n"
            "  worker_count: 8\n"
            "  retry_delays: [0.5, 2.0]\n"
        )
        config = load_config(path)
        assert config.products.fill_samelc is False
        assert config.products.fill_difflc is True
        assert config.pipeline.worker_count == 8
        assert config.pipeline.retry_delays == (0.5, 2.0)

    def test_environment_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("GAIA_WORKERS", "2")
        monkeypatch.setenv("GAIA_BUCKET", "products")
        config = load_config(tmp_path / "absent.yaml")
        assert config.pipeline.worker_count == 2
        assert config.storage.backend == "s3"
        assert config.storage.bucket == "products"

    def test_config_is_immutable(self):
        config = AppConfig()
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.pipeline.worker_count = 10
        updated = with_overrides(config, "pipeline", worker_count=10)
        assert updated.pipeline.worker_count == 10
        assert config.pipeline.worker_count == 4


class TestMain:
    def write_config(self, tmp_path, backend: str = "file"):
        path = tmp_path / "gaia.yaml"
        path.write_text(
            "storage:\n"
            f"  backend: {backend}\n"
            f"  root: {tmp_path / 'data'}\n"
            "logging:\n"
            f"  log_dir: {tmp_path / 'logs'}\n"
        )
        return path

    def test_generates_change_products(self, tmp_path, monkeypatch):
        monkeypatch.delenv("GAIA_BUCKET", raising=False)
        monkeypatch.delenv("GAIA_STORAGE_ROOT", raising=False)
        config_path = self.write_config(tmp_path)
        segments_dir = tmp_path / "data" / "segments"
        segments_dir.mkdir(parents=True)
        records = [dict(make_segment(bday="2005-05-01", chprob=1.0), px=0, py=0)]
        (segments_dir / "1_2.json").write_text(json.dumps(records))

        code = main(["change", "--cx", "1", "--cy", "2", "--tile", "t",
                     "--dates", "2005-07-01", "-c", str(config_path), "-w", "2"])

        assert code == 0
        output = tmp_path / "data" / "products" / "t" / "1" / "2" / "change-t-1-2-2005-07-01.json"
        [record] = json.loads(output.read_text())
        assert record["values"]["time-of-change"] == 121

    def test_unknown_backend_fails(self, tmp_path, monkeypatch):
        monkeypatch.delenv("GAIA_BUCKET", raising=False)
        config_path = self.write_config(tmp_path, backend="ftp")
        code = main(["cover", "--cx", "1", "--cy", "2", "--tile", "t",
                     "--dates", "2005-07-01", "-c", str(config_path)])
        assert code == 1
