"""Subgroup membership store — one JSON document per deployment.

Layout on disk:

    {
      "1203630xxxx@g.us": {"friends": ["9112...@s.whatsapp.net", ...]},
      "global": {"oncall": [...]}
    }

Every operation re-reads the document so edits made by hand (or by another
process) are picked up. Every mutation writes the whole document back via
a temp file + rename. Mutations inside this process are serialized by a
lock; a concurrent external writer can still win the race.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Iterable

from .errors import StoreCorrupted, SubgroupExists, SubgroupNotFound
from .models import GLOBAL_SCOPE

logger = logging.getLogger("jarvis.store")

Document = dict[str, dict[str, list[str]]]


def _clean_name(name: str) -> str:
    return (name or "").strip().lower()


class MembershipStore:
    """Durable (scope, name) → member set mapping."""

    def __init__(self, path: str | Path):
        self.path = Path(path).expanduser()
        self._lock = asyncio.Lock()

    # ── Raw document I/O ──────────────────────────────────

    def _read(self, strict: bool = False) -> Document:
        if not self.path.exists():
            return {}
        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to read store {self.path}: {e}")
            if strict:
                raise StoreCorrupted(str(e)) from e
            return {}
        if not raw.strip():
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"Store {self.path} is not valid JSON: {e}")
            if strict:
                raise StoreCorrupted(f"{self.path}: {e}") from e
            return {}
        if not isinstance(data, dict):
            logger.error(f"Store {self.path} root is {type(data).__name__}, expected object")
            if strict:
                raise StoreCorrupted(f"{self.path}: root is not an object")
            return {}

        doc: Document = {}
        for scope, groups in data.items():
            if not isinstance(groups, dict):
                logger.warning(f"Ignoring malformed scope entry: {scope}")
                continue
            doc[scope] = {}
            for name, members in groups.items():
                if not isinstance(members, list):
                    logger.warning(f"Ignoring malformed subgroup entry: {scope}/{name}")
                    continue
                doc[scope][_clean_name(name)] = sorted({str(m) for m in members if m})
        return doc

    def _write(self, doc: Document):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            scope: {name: sorted(set(members)) for name, members in sorted(groups.items())}
            for scope, groups in sorted(doc.items())
        }
        fd, tmp = tempfile.mkstemp(prefix=".store-", suffix=".json", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
                f.write("\n")
            os.replace(tmp, self.path)
        except BaseException:
            try:
                os.unlink(tmp)
            except FileNotFoundError:
                pass
            raise

    async def load(self) -> Document:
        """Fresh copy of the whole document (missing file → empty)."""
        return await asyncio.to_thread(self._read)

    async def save(self, doc: Document):
        """Replace the whole document on disk."""
        async with self._lock:
            await asyncio.to_thread(self._write, doc)

    async def _mutate(self, fn):
        """Read-modify-write cycle. `fn(doc)` mutates in place and returns a result."""
        async with self._lock:
            doc = await asyncio.to_thread(self._read, True)
            result = fn(doc)
            await asyncio.to_thread(self._write, doc)
            return result

    # ── Operations ────────────────────────────────────────

    async def create(self, scope: str, name: str):
        name = _clean_name(name)

        def op(doc: Document):
            groups = doc.setdefault(scope, {})
            if name in groups:
                raise SubgroupExists(scope, name)
            groups[name] = []

        await self._mutate(op)
        logger.info(f"Created subgroup {name} in {scope}")

    async def add(self, scope: str, name: str, identifiers: Iterable[str]) -> list[str]:
        """Union identifiers into a subgroup. Returns the ones that were new."""
        name = _clean_name(name)
        incoming = [i for i in dict.fromkeys(identifiers) if i]

        def op(doc: Document):
            groups = doc.setdefault(scope, {})
            if name not in groups:
                raise SubgroupNotFound(scope, name)
            current = set(groups[name])
            added = [i for i in incoming if i not in current]
            groups[name] = sorted(current.union(added))
            return added

        added = await self._mutate(op)
        logger.info(f"Added {len(added)} member(s) to {scope}/{name}")
        return added

    async def remove(self, scope: str, name: str, identifiers: Iterable[str]) -> list[str]:
        """Subtract identifiers from a subgroup. Returns the ones that were present."""
        name = _clean_name(name)
        outgoing = [i for i in dict.fromkeys(identifiers) if i]

        def op(doc: Document):
            groups = doc.setdefault(scope, {})
            if name not in groups:
                raise SubgroupNotFound(scope, name)
            current = set(groups[name])
            removed = [i for i in outgoing if i in current]
            groups[name] = sorted(current.difference(removed))
            return removed

        removed = await self._mutate(op)
        logger.info(f"Removed {len(removed)} member(s) from {scope}/{name}")
        return removed

    async def delete(self, scope: str, name: str):
        name = _clean_name(name)

        def op(doc: Document):
            groups = doc.setdefault(scope, {})
            if name not in groups:
                raise SubgroupNotFound(scope, name)
            del groups[name]

        await self._mutate(op)
        logger.info(f"Deleted subgroup {name} from {scope}")

    async def list(self, scope: str) -> list[tuple[str, int]]:
        doc = await self.load()
        groups = doc.get(scope, {})
        return [(name, len(members)) for name, members in sorted(groups.items())]

    async def show(self, scope: str, name: str) -> list[str]:
        name = _clean_name(name)
        doc = await self.load()
        members = doc.get(scope, {}).get(name)
        if not members:
            raise SubgroupNotFound(scope, name)
        return sorted(members)

    async def lookup(self, scope: str, name: str) -> tuple[str, list[str]]:
        """Members of `name` in `scope`, falling back to the global scope.

        Returns (scope the subgroup was found in, members).
        """
        name = _clean_name(name)
        doc = await self.load()
        if name in doc.get(scope, {}):
            members = doc[scope][name]
            if not members:
                raise SubgroupNotFound(scope, name)
            return scope, sorted(members)
        if scope != GLOBAL_SCOPE and doc.get(GLOBAL_SCOPE, {}).get(name):
            return GLOBAL_SCOPE, sorted(doc[GLOBAL_SCOPE][name])
        raise SubgroupNotFound(scope, name)
