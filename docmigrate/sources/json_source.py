import json
import logging
from pathlib import Path
from typing import Any, Iterator, List, Union

from .base import ContainerMetadata, SampleSource

logger = logging.getLogger(__name__)


class JsonFileSampleSource(SampleSource):
    """
    Reads samples exported to disk, one file per container:

        <directory>/<container>.json    → JSON array of documents
        <directory>/<container>.jsonl   → one document per line

    Lines that are not valid JSON are yielded as raw strings so the
    inferencer counts them as skipped documents instead of failing the
    whole container.
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def list_containers(self) -> List[str]:
        names = {path.stem for path in self.directory.glob("*.json")}
        names |= {path.stem for path in self.directory.glob("*.jsonl")}
        return sorted(names)

    def fetch_sample(self, container: str, max_count: int) -> Iterator[Any]:
        jsonl_path = self.directory / f"{container}.jsonl"
        json_path = self.directory / f"{container}.json"

        if jsonl_path.exists():
            yield from self._read_lines(jsonl_path, max_count)
        elif json_path.exists():
            with open(json_path, "r", encoding="utf-8") as f:
                payload = json.load(f)
            if not isinstance(payload, list):
                raise ValueError(f"{json_path} must contain a JSON array of documents")
            yield from payload[:max_count]
        else:
            raise FileNotFoundError(f"No sample file for container '{container}' in {self.directory}")

    def describe_container(self, container: str) -> ContainerMetadata:
        path = self.directory / f"{container}.jsonl"
        if not path.exists():
            path = self.directory / f"{container}.json"
        size = path.stat().st_size if path.exists() else None
        return ContainerMetadata(name=container, size_bytes=size)

    def _read_lines(self, path: Path, max_count: int) -> Iterator[Any]:
        produced = 0
        with open(path, "r", encoding="utf-8") as f:
            for line_number, line in enumerate(f, start=1):
                if produced >= max_count:
                    return
                line = line.strip()
                if not line:
                    continue
                try:
                    yield json.loads(line)
                except json.JSONDecodeError as e:
                    logger.debug("%s:%d is not valid JSON (%s)", path.name, line_number, e)
                    yield line
                produced += 1
