"""Content-addressed prompt storage for staged captures."""

from __future__ import annotations

import hashlib
import os
from pathlib import Path
from uuid import uuid4


def prompt_digest(text: str) -> str:
    """SHA-256 hex digest identifying a prompt body."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class PromptStore:
    """Write-once, digest-keyed prompt files under ``<staging>/prompts``.

    Orphaned prompt files are left in place; nothing here garbage-collects.
    """

    def __init__(self, root: Path):
        self.root = Path(root)

    def _path(self, digest: str) -> Path:
        return self.root / digest[:2] / digest[2:]

    def put(self, text: str) -> str:
        digest = prompt_digest(text)
        path = self._path(digest)
        if path.exists():
            return digest
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(f".{path.name}.{uuid4().hex}.tmp")
        tmp.write_text(text, encoding="utf-8")
        os.replace(tmp, path)
        return digest

    def get(self, digest: str | None) -> str | None:
        if not digest:
            return None
        path = self._path(digest)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def resolve(self, digests) -> dict[str, str]:
        """Map each known digest to its text, skipping unknown ones."""
        found: dict[str, str] = {}
        for digest in digests:
            text = self.get(digest)
            if text is not None:
                found[digest] = text
        return found
