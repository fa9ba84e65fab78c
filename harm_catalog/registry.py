"""
Source Registry

Loads dataset endpoints and bundled asset locations from sources.json.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import json
from pathlib import Path

from .contracts import Dataset, ErrorCode, ParseError


PACKAGE_ROOT = Path(__file__).parent
DEFAULT_SOURCES_PATH = PACKAGE_ROOT / 'sources.json'
DEFAULT_BUNDLED_DIR = PACKAGE_ROOT / 'data'


@dataclass(frozen=True)
class DatasetSource:
    """Where one dataset comes from."""
    dataset: Dataset
    url: str
    bundled_path: Path
    group: Dataset  # Datasets sharing a group are fetched and written together


@dataclass
class SourceRegistry:
    """
    Registry of all configured datasets.

    Loads from sources.json and provides query methods.
    """

    _sources: Dict[Dataset, DatasetSource]
    connectivity_url: Optional[str] = None
    connectivity_timeout: float = 5.0

    @classmethod
    def load(
        cls,
        config_path: Optional[Path] = None,
        bundled_dir: Optional[Path] = None
    ) -> 'SourceRegistry':
        """Load registry from sources.json."""
        config_path = Path(config_path) if config_path else DEFAULT_SOURCES_PATH
        bundled_dir = Path(bundled_dir) if bundled_dir else DEFAULT_BUNDLED_DIR

        with open(config_path, 'r', encoding='utf-8') as f:
            config = json.load(f)

        sources = {}
        for dataset_name, source_data in config.get('datasets', {}).items():
            try:
                dataset = Dataset(dataset_name)
                group = Dataset(source_data.get('group', dataset_name))
            except ValueError:
                continue
            sources[dataset] = DatasetSource(
                dataset=dataset,
                url=source_data['url'],
                bundled_path=bundled_dir / source_data.get('bundled', f"{dataset_name}.json"),
                group=group,
            )

        missing = [d.value for d in Dataset if d not in sources]
        if missing:
            raise ValueError(f"sources.json is missing datasets: {', '.join(missing)}")

        connectivity = config.get('connectivity', {})
        return cls(
            _sources=sources,
            connectivity_url=connectivity.get('url'),
            connectivity_timeout=float(connectivity.get('timeout_seconds', 5.0)),
        )

    def get(self, dataset: Dataset) -> DatasetSource:
        return self._sources[dataset]

    def group_of(self, dataset: Dataset) -> Dataset:
        return self._sources[dataset].group

    def members(self, group: Dataset) -> List[DatasetSource]:
        """Datasets refreshed together with `group`, in enum order."""
        return [self._sources[d] for d in Dataset if self._sources[d].group == group]

    def groups(self) -> List[Dataset]:
        seen: List[Dataset] = []
        for dataset in Dataset:
            group = self._sources[dataset].group
            if group not in seen:
                seen.append(group)
        return seen

    def load_bundled(self, dataset: Dataset) -> Any:
        """Read the bundled read-only asset for a dataset."""
        path = self._sources[dataset].bundled_path
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            raise ParseError(
                ErrorCode.MALFORMED_PAYLOAD,
                f"Bundled asset {path} unreadable: {e}"
            ) from e

    def stats(self) -> dict:
        return {
            dataset.value: {'url': source.url, 'group': source.group.value}
            for dataset, source in self._sources.items()
        }
