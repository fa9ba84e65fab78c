"""
Source Registry Tests
"""

import json

import pytest

from harm_catalog.contracts import Dataset, ErrorCode, ParseError
from harm_catalog.registry import DEFAULT_BUNDLED_DIR, SourceRegistry


class TestDefaultRegistry:

    @pytest.fixture
    def registry(self):
        return SourceRegistry.load()

    def test_every_dataset_configured(self, registry):
        for dataset in Dataset:
            source = registry.get(dataset)
            assert source.url.startswith("https://")
            assert source.bundled_path.parent == DEFAULT_BUNDLED_DIR

    def test_groups(self, registry):
        assert registry.groups() == [Dataset.SUBSTANCES, Dataset.INTERACTIONS]
        assert registry.group_of(Dataset.DEFINITIONS) == Dataset.INTERACTIONS
        assert registry.group_of(Dataset.SUBSTANCES) == Dataset.SUBSTANCES

    def test_members_in_enum_order(self, registry):
        members = [m.dataset for m in registry.members(Dataset.INTERACTIONS)]
        assert members == [Dataset.INTERACTIONS, Dataset.DEFINITIONS]

    def test_bundled_assets_readable(self, registry):
        assert isinstance(registry.load_bundled(Dataset.SUBSTANCES), dict)
        assert isinstance(registry.load_bundled(Dataset.INTERACTIONS), dict)
        assert isinstance(registry.load_bundled(Dataset.DEFINITIONS), list)

    def test_connectivity(self, registry):
        assert registry.connectivity_url == "https://tripsit.me"
        assert registry.connectivity_timeout == 5.0

    def test_stats(self, registry):
        stats = registry.stats()
        assert stats["definitions"]["group"] == "interactions"


class TestCustomRegistry:

    def _write(self, tmp_path, datasets):
        path = tmp_path / "sources.json"
        path.write_text(json.dumps({"datasets": datasets}), encoding="utf-8")
        return path

    def test_missing_dataset_rejected(self, tmp_path):
        path = self._write(tmp_path, {"substances": {"url": "https://x.test/s"}})
        with pytest.raises(ValueError, match="missing datasets"):
            SourceRegistry.load(path)

    def test_custom_bundled_dir(self, tmp_path):
        path = self._write(tmp_path, {
            "substances": {"url": "https://x.test/s"},
            "interactions": {"url": "https://x.test/i"},
            "definitions": {"url": "https://x.test/d", "group": "interactions"},
        })
        (tmp_path / "substances.json").write_text("{broken", encoding="utf-8")
        registry = SourceRegistry.load(path, bundled_dir=tmp_path)

        assert registry.groups() == [Dataset.SUBSTANCES, Dataset.INTERACTIONS]
        assert registry.connectivity_url is None
        with pytest.raises(ParseError):
            registry.load_bundled(Dataset.SUBSTANCES)
        with pytest.raises(ParseError):
            registry.load_bundled(Dataset.DEFINITIONS)

    def test_undecodable_bundled_asset_rejected(self, tmp_path):
        (tmp_path / "substances.json").write_bytes(b'{"lsd": {"pretty_name": "\xff\xfe"}}')
        registry = SourceRegistry.load(bundled_dir=tmp_path)
        with pytest.raises(ParseError) as exc_info:
            registry.load_bundled(Dataset.SUBSTANCES)
        assert exc_info.value.code == ErrorCode.MALFORMED_PAYLOAD
