"""Load and persist the room registry JSON file."""
from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Union

from pydantic import ValidationError

from seatmap.errors import RegistryUnreadable
from seatmap.models.schemas import Registry
from seatmap.utils.logging import get_logger

logger = get_logger(__name__)


class RegistryStore:
    """Registry file access. Saves go through a temp file and ``os.replace``."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> Registry:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise RegistryUnreadable(f"cannot read registry {self.path}: {exc}") from exc
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise RegistryUnreadable(f"registry {self.path} is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise RegistryUnreadable(f"registry {self.path} must be a JSON object")
        try:
            registry = Registry.model_validate(data)
        except ValidationError as exc:
            raise RegistryUnreadable(f"registry {self.path} failed validation: {exc}") from exc
        logger.debug("Registry loaded", path=str(self.path), rooms=len(registry.rooms))
        return registry

    def save(self, registry: Registry) -> None:
        # fields never present in the file stay absent
        payload = registry.model_dump(mode="json", exclude_unset=True)
        text = json.dumps(payload, ensure_ascii=False, indent=2) + "\n"
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        logger.info("Registry saved", path=str(self.path), rooms=len(registry.rooms))
