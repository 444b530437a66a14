"""Output manager for run datasets, the key-value store and the JSONL export."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator, Optional, Union

from arrestwatch.constants import DEFAULT_STORAGE_DIR, OUTPUT_KEY

logger = logging.getLogger(__name__)


JSONL_CONTENT_TYPE = "application/jsonl"
JSON_CONTENT_TYPE = "application/json"


class DateTimeEncoder(json.JSONEncoder):
    """JSON encoder that handles datetime objects."""

    def default(self, obj):
        if isinstance(obj, datetime):
            return obj.isoformat()
        return super().default(obj)


def to_json_line(item: dict) -> str:
    return json.dumps(item, ensure_ascii=False, cls=DateTimeEncoder) + "\n"


class Dataset:
    """Append-only JSONL file of records."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._count = 0

    def push(self, item: dict) -> None:
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(to_json_line(item))
        self._count += 1

    def iter_items(self) -> Iterator[dict]:
        if not self.path.exists():
            return
        with open(self.path, encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if line:
                    yield json.loads(line)

    def items(self) -> list[dict]:
        return list(self.iter_items())

    def __len__(self) -> int:
        return self._count


class KeyValueStore:
    """Directory of named values.

    Keys without an extension that hold JSON are stored as ``<key>.json``.
    Keys that already carry an extension (``OUTPUT.jsonl``,
    ``debug_html_3.html``) are stored under their own name.
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path_for(self, key: str, content_type: str) -> Path:
        if "." not in key and content_type == JSON_CONTENT_TYPE:
            return self.directory / f"{key}.json"
        return self.directory / key

    def set_value(
        self,
        key: str,
        value: Union[bytes, str, dict, list],
        content_type: Optional[str] = None,
    ) -> Path:
        """
        Store a value, overwriting any previous one.

        Args:
            key: Record key
            value: bytes and str are written as-is, anything else as JSON
            content_type: Overrides the content type inferred from value

        Returns:
            Path the value was written to
        """
        if content_type is None:
            if isinstance(value, bytes):
                content_type = "application/octet-stream"
            elif isinstance(value, str):
                content_type = "text/plain"
            else:
                content_type = JSON_CONTENT_TYPE

        path = self._path_for(key, content_type)
        if isinstance(value, bytes):
            path.write_bytes(value)
        elif isinstance(value, str):
            path.write_text(value, encoding="utf-8")
        else:
            with open(path, "w", encoding="utf-8") as f:
                json.dump(value, f, indent=2, ensure_ascii=False, cls=DateTimeEncoder)

        logger.debug(f"Stored {key} ({content_type}) at {path}")
        return path

    def get_value(self, key: str, default: Any = None) -> Any:
        """JSON values are decoded, everything else is returned as bytes."""
        for path in (self.directory / f"{key}.json", self.directory / key):
            if path.is_file():
                if path.suffix == ".json":
                    with open(path, encoding="utf-8") as f:
                        return json.load(f)
                return path.read_bytes()
        return default

    def has(self, key: str) -> bool:
        return (self.directory / key).is_file() or (self.directory / f"{key}.json").is_file()


class OutputManager:
    """Owns the storage of one run.

    Layout:
        storage/
        ├── datasets/
        │   └── 2025-11-23_143022.jsonl     one line per record, pushed as found
        ├── key_value_store/                shared across runs (STATE survives)
        │   ├── OUTPUT.jsonl
        │   ├── STATE.json
        │   ├── debug_screenshot_4.png
        │   └── debug_html_4.html
        └── runs/
            └── 2025-11-23_143022/
                └── OUTPUT.jsonl            local buffer, copied to the store on finalize()
    """

    def __init__(self, storage_dir: str = DEFAULT_STORAGE_DIR, run_id: Optional[str] = None):
        """Initialize output manager.

        Args:
            storage_dir: Root directory for all storage
            run_id: Identifier for this run (defaults to a timestamp)
        """
        self.storage_dir = Path(storage_dir)
        self.run_id = run_id or datetime.now().strftime("%Y-%m-%d_%H%M%S")

        self.dataset = Dataset(self.storage_dir / "datasets" / f"{self.run_id}.jsonl")
        self.key_value_store = KeyValueStore(self.storage_dir / "key_value_store")
        self.run_dir = self.storage_dir / "runs" / self.run_id
        self.run_dir.mkdir(parents=True, exist_ok=True)
        self.buffer_path = self.run_dir / OUTPUT_KEY

    def push_record(self, record: dict) -> None:
        """Append a record to the dataset and the local JSONL buffer."""
        self.dataset.push(record)
        with open(self.buffer_path, "a", encoding="utf-8") as f:
            f.write(to_json_line(record))

    def save_debug_artifacts(self, page_number: int, screenshot: bytes, html: str) -> list[str]:
        """Store a screenshot and the markup of a page that yielded nothing."""
        screenshot_key = f"debug_screenshot_{page_number}.png"
        html_key = f"debug_html_{page_number}.html"
        self.key_value_store.set_value(screenshot_key, screenshot, content_type="image/png")
        self.key_value_store.set_value(html_key, html, content_type="text/html")
        logger.info(f"Saved debug artifacts for page {page_number}")
        return [screenshot_key, html_key]

    def finalize(self) -> Optional[Path]:
        """Copy the local buffer into the key-value store as OUTPUT.jsonl."""
        if not self.buffer_path.exists():
            logger.info("No records buffered; OUTPUT.jsonl not written")
            return None
        path = self.key_value_store.set_value(
            OUTPUT_KEY, self.buffer_path.read_bytes(), content_type=JSONL_CONTENT_TYPE
        )
        logger.info(f"Wrote {len(self.dataset)} record(s) to {path}")
        return path

    def records(self) -> list[dict]:
        return self.dataset.items()

    @property
    def record_count(self) -> int:
        return len(self.dataset)
