"""
File-backed artifact store: one base58 text file per slot.

    <root>/unsigned.json
    <root>/signed.json

base58 keeps the bytes binary-safe in a text file and round-trips exactly.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Union

import base58
from loguru import logger

from ..domain.errors import MalformedArtifact
from ..domain.models import ArtifactSlot
from ..ports import ArtifactStore


class FileArtifactStore(ArtifactStore):
    def __init__(self, root: Union[str, Path] = "."):
        self.root = Path(root).expanduser()

    def path_for(self, slot: ArtifactSlot) -> Path:
        return self.root / f"{ArtifactSlot(slot).value}.json"

    def write(self, slot: ArtifactSlot, raw: bytes) -> str:
        path = self.path_for(slot)
        path.parent.mkdir(parents=True, exist_ok=True)
        encoded = base58.b58encode(raw).decode("ascii")

        # readers never see a half-written slot
        fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(encoded)
            os.replace(tmp, path)
        except BaseException:
            os.unlink(tmp)
            raise

        logger.debug(f"ARTIFACT_WRITE | slot={slot.value} | path={path} | bytes={len(raw)}")
        return encoded

    def read(self, slot: ArtifactSlot) -> bytes:
        path = self.path_for(slot)
        if not path.exists():
            raise MalformedArtifact(slot.value, f"nothing written at {path}")

        text = path.read_text(encoding="utf-8").strip()
        if not text:
            raise MalformedArtifact(slot.value, f"{path} is empty")
        try:
            return base58.b58decode(text)
        except ValueError as e:
            raise MalformedArtifact(slot.value, f"{path} is not base58: {e}") from e

    def exists(self, slot: ArtifactSlot) -> bool:
        return self.path_for(slot).exists()
