# services/content_store.py
"""File-backed content repository for course data.

Every stored path is relative to the storage root and starts with ``courses/``.
JSON and YAML files are two spellings of the same logical resource: lookups try
the JSON name first, then the YAML names, following :data:`DESCRIPTOR_FILENAMES`
for course descriptors and ``<stem>.json|.yaml|.yml`` for everything else.
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml

from ..logging_config import LogConfig

logger = logging.getLogger(__name__)

BASE_PATH = "courses"

JSON_EXTENSION = ".json"
YAML_EXTENSION = ".yaml"
YAML_SHORT_EXTENSION = ".yml"
DATA_EXTENSIONS = (JSON_EXTENSION, YAML_EXTENSION, YAML_SHORT_EXTENSION)

# logical slot -> candidate file names, in lookup order
DESCRIPTOR_FILENAMES = ("chapters.json", "chapters.yaml", "course.yaml", "course.yml")
# names that declare a course directory; chapters.yaml is reachable only through the data API
COURSE_DECLARATION_FILENAMES = ("chapters.json", "course.yaml", "course.yml")
TOPIC_INDEX_FILENAME = "topics.json"
COURSE_INDEX_STEM = "index"


class ContentError(Exception):
    """Base class for content repository failures."""


class NotFound(ContentError):
    def __init__(self, path: str = ""):
        super().__init__(f"Not found: {path}" if path else "Not found")
        self.path = path


class AlreadyExists(ContentError):
    def __init__(self, path: str = ""):
        super().__init__("File already exists.")
        self.path = path


def is_json_path(path: str) -> bool:
    return path.endswith(JSON_EXTENSION)


def is_yaml_path(path: str) -> bool:
    return path.endswith(YAML_EXTENSION) or path.endswith(YAML_SHORT_EXTENSION)


def is_data_path(path: str) -> bool:
    return is_json_path(path) or is_yaml_path(path)


def _strip_extension(name: str) -> str:
    for ext in DATA_EXTENSIONS:
        if name.endswith(ext):
            return name[: -len(ext)]
    return name


def slot_filenames(name: str) -> tuple[str, ...]:
    """Candidate file names that share a logical slot with ``name``."""
    if name in DESCRIPTOR_FILENAMES:
        return DESCRIPTOR_FILENAMES
    stem = _strip_extension(name)
    return tuple(stem + ext for ext in DATA_EXTENSIONS)


def slot_candidates(storage_path: str) -> list[str]:
    directory, _, name = storage_path.rpartition("/")
    prefix = f"{directory}/" if directory else ""
    return [prefix + candidate for candidate in slot_filenames(name)]


def write_target(storage_path: str) -> str:
    """First slot candidate in the same format family as the requested path."""
    want_yaml = is_yaml_path(storage_path)
    for candidate in slot_candidates(storage_path):
        if is_yaml_path(candidate) == want_yaml:
            return candidate
    return storage_path


def decode_payload(storage_path: str, contents: bytes | str) -> Any:
    """Parse JSON or YAML text; corrupt input decodes to ``None``."""
    if isinstance(contents, (bytes, bytearray)):
        try:
            contents = contents.decode("utf-8")
        except UnicodeDecodeError:
            return None
    if is_yaml_path(storage_path):
        try:
            return yaml.safe_load(contents)
        except yaml.YAMLError:
            logger.debug("Unparseable YAML at %s", storage_path)
            return None
    try:
        return json.loads(contents)
    except ValueError:
        logger.debug("Unparseable JSON at %s", storage_path)
        return None


def encode_payload(storage_path: str, data: Any) -> str:
    if is_json_path(storage_path):
        return json.dumps(data, indent=4, ensure_ascii=False)
    return yaml.safe_dump(
        data,
        indent=2,
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
    )


class ContentStore:
    def __init__(self, root: str | os.PathLike, log_config: Optional[LogConfig] = None):
        self.root = Path(root)
        self.log = log_config or LogConfig()

    # ---------- low level ----------

    def _abs(self, storage_path: str) -> Path:
        return self.root / storage_path

    def exists(self, storage_path: str) -> bool:
        return self._abs(storage_path).is_file()

    def read(self, storage_path: str) -> bytes:
        target = self._abs(storage_path)
        if not target.is_file():
            raise NotFound(storage_path)
        return target.read_bytes()

    def read_text(self, storage_path: str) -> str:
        return self.read(storage_path).decode("utf-8", errors="replace")

    def delete(self, storage_path: str) -> None:
        target = self._abs(storage_path)
        if not target.is_file():
            raise NotFound(storage_path)
        target.unlink()

    # ---------- path resolution ----------

    def resolve_path(self, raw: str) -> str:
        """Turn a request path into a storage path under ``courses/``.

        Rejects traversal, empty paths and non-data extensions with NotFound.
        """
        normalized = (raw or "").replace("\\", "/").lstrip("/")
        if not normalized or ".." in normalized:
            raise NotFound(raw)
        if normalized.startswith(f"{BASE_PATH}/"):
            normalized = normalized[len(BASE_PATH) + 1:]
        if not normalized or not is_data_path(normalized):
            raise NotFound(raw)
        return f"{BASE_PATH}/{normalized}"

    def resolve_existing(self, storage_path: str) -> Optional[str]:
        candidates = slot_candidates(storage_path)
        if storage_path not in candidates:
            candidates.append(storage_path)
        json_first = [c for c in candidates if is_json_path(c)] + [c for c in candidates if is_yaml_path(c)]
        for candidate in json_first:
            if self.exists(candidate):
                return candidate
        return None

    def is_course_index(self, storage_path: str) -> bool:
        return storage_path in slot_candidates(f"{BASE_PATH}/{COURSE_INDEX_STEM}{JSON_EXTENSION}")

    # ---------- structured access ----------

    def load(self, storage_path: str) -> Any:
        """Decoded payload of the existing twin of ``storage_path`` or None."""
        target = self.resolve_existing(storage_path)
        if target is None:
            return None
        return decode_payload(target, self.read(target))

    def write(self, storage_path: str, data: Any, preserve_path: bool = False) -> str:
        target_path = storage_path if preserve_path else write_target(storage_path)
        target = self._abs(target_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(encode_payload(target_path, data), encoding="utf-8")
        self.log.debug("Data file written.", path=target_path)
        return target_path

    def create(self, storage_path: str, data: Any) -> str:
        existing = self.resolve_existing(storage_path)
        if existing:
            raise AlreadyExists(existing)
        return self.write(storage_path, data)

    def update(self, storage_path: str, data: Any) -> str:
        existing = self.resolve_existing(storage_path)
        if not existing:
            raise NotFound(storage_path)
        return self.write(existing, data, preserve_path=True)

    # ---------- listings ----------

    def list_data_files(self) -> list[str]:
        base = self._abs(BASE_PATH)
        if not base.is_dir():
            return []
        files = sorted(
            p.relative_to(self.root).as_posix()
            for p in base.rglob("*")
            if p.is_file() and is_data_path(p.name)
        )
        self.log.debug("Data files loaded.", count=len(files), files=files)
        return files

    def list_course_directories(self) -> list[str]:
        base = self._abs(BASE_PATH)
        if not base.is_dir():
            return []
        return sorted(p.name for p in base.iterdir() if p.is_dir())

    def course_descriptor_path(self, slug: str) -> Optional[str]:
        for name in COURSE_DECLARATION_FILENAMES:
            candidate = f"{BASE_PATH}/{slug}/{name}"
            if self.exists(candidate):
                return candidate
        return None

    def list_course_slugs(self) -> list[str]:
        slugs: list[str] = []
        directories = self.list_course_directories()
        for slug in directories:
            descriptor = self.course_descriptor_path(slug)
            if descriptor is None:
                self.log.info(
                    "Course index entry evaluated.",
                    slug=slug, included=False, detail="missing chapters.json or course.yaml",
                )
                continue
            slugs.append(slug)
            self.log.info("Course index entry evaluated.", slug=slug, included=True, detail=descriptor)
        slugs.sort()
        self.log.debug("listCourseSlugs", directories=directories, slugs=slugs)
        return slugs

    def course_index(self) -> list[dict[str, str]]:
        return [{"slug": slug} for slug in self.list_course_slugs()]

    # ---------- course layout helpers ----------

    def course_descriptor(self, slug: str) -> Any:
        path = self.course_descriptor_path(slug)
        if path is None:
            return None
        return decode_payload(path, self.read(path))

    def topic_index(self, course_slug: str, chapter_slug: str) -> Any:
        return self.load(f"{BASE_PATH}/{course_slug}/{chapter_slug}/{TOPIC_INDEX_FILENAME}")

    def topic_path(self, course_slug: str, chapter_slug: str, topic_file: str) -> str:
        return f"{BASE_PATH}/{course_slug}/{chapter_slug}/{topic_file}"

    def log_payload_details(self, storage_path: str, payload: Any) -> None:
        if not isinstance(payload, (dict, list)):
            return
        if self.is_course_index(storage_path):
            self.log.debug("Courses found.", count=len(payload), courses=payload)
        name = storage_path.rpartition("/")[2]
        if name in DESCRIPTOR_FILENAMES and isinstance(payload, dict):
            chapters = payload.get("chapters")
            self.log.debug(
                "Course metadata loaded.",
                title=payload.get("title"),
                chapters=len(chapters) if isinstance(chapters, list) else None,
            )
        if name in slot_filenames(TOPIC_INDEX_FILENAME):
            self.log.debug("Topics found.", count=len(payload), topics=payload)
