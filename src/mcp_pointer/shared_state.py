"""File-backed store for the current element selection."""

import json
import logging
import os
import uuid
from pathlib import Path
from typing import Any, Optional, Union

import aiofiles
import aiofiles.os
from pydantic import ValidationError

from .exceptions import StateWriteError
from .models.element import SELECTION_ADAPTER, Selection

logger = logging.getLogger(__name__)


class SharedStateStore:
    """
    Holds the most recently pointed element(s) in a single JSON file.

    Features:
    - Atomic replace (temp file + rename), readers never see a torn write
    - Corrupt or missing file reads as "no selection"
    - Last write wins; no cross-process locking

    read() distinguishes a store that was never written (None) from an
    explicitly cleared one ([]). Both are falsy.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    async def write(self, selection: Optional[Selection]) -> None:
        """
        Replace the stored selection.

        Args:
            selection: Elements to store; None or [] clears the selection

        Raises:
            StateWriteError: If the state file cannot be replaced
        """
        if selection:
            payload: Any = [element.to_payload() for element in selection]
        else:
            payload = None
        data = json.dumps(payload, indent=2)

        tmp_path = self.path.with_name(
            f".{self.path.name}.{os.getpid()}.{uuid.uuid4().hex[:8]}.tmp"
        )
        try:
            await aiofiles.os.makedirs(self.path.parent, exist_ok=True)
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(data)
            await aiofiles.os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error(f"Failed to save current selection to {self.path}: {e}")
            try:
                await aiofiles.os.remove(tmp_path)
            except OSError:
                pass
            raise StateWriteError(str(self.path), detail=str(e)) from e

        count = len(selection) if selection else 0
        logger.debug(f"Saved {count} element(s) to shared state file")

    async def read(self) -> Optional[Selection]:
        """
        Return the stored selection.

        Returns:
            None if nothing usable is stored (never written, missing file,
            corrupt content), [] if the selection was cleared, else the
            elements in selection order
        """
        try:
            async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
                raw = await f.read()
        except FileNotFoundError:
            logger.debug("Shared state file does not exist")
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Failed to load current selection: {e}")
            return None

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"Shared state file is corrupted, ignoring it: {e}")
            return None

        if data is None:
            return []

        # Older single-element layout stores one object
        items = data if isinstance(data, list) else [data]
        try:
            return SELECTION_ADAPTER.validate_python(items)
        except ValidationError as e:
            logger.error(f"Shared state file holds an invalid selection: {e}")
            return None
