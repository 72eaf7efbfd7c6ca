"""JSON file persistence for roadmaps, one document per identifier."""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
import logging
import os
import re
import secrets
from pathlib import Path
from typing import Protocol

from roadmapr.errors import BackendError, NotFound, Unauthorized
from roadmapr.models import Roadmap

log = logging.getLogger(__name__)

DEFAULT_STORE_DIR = "roadmaps"
STORE_ENV_VAR = "ROADMAPR_HOME"

_IDENTIFIER_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")
_HASH_ROUNDS = 200_000


class RoadmapBackend(Protocol):
    """Remote side of the session: fetch and persist whole documents."""

    async def fetch(self, identifier: str, password: str | None = None) -> Roadmap: ...

    async def commit(
        self, identifier: str, roadmap: Roadmap, password: str | None = None
    ) -> None: ...


def default_store_dir() -> Path:
    return Path(os.environ.get(STORE_ENV_VAR, DEFAULT_STORE_DIR))


def _hash_password(password: str, salt: bytes) -> str:
    return hashlib.pbkdf2_hmac("sha256", password.encode(), salt, _HASH_ROUNDS).hex()


def _make_auth(password: str) -> dict:
    salt = secrets.token_bytes(16)
    return {"salt": salt.hex(), "hash": _hash_password(password, salt)}


class Store:
    """Reads and writes roadmap documents under a directory.

    Each file holds ``{"roadmap": {...}}`` plus an ``"auth"`` entry when the
    roadmap is password protected.
    """

    def __init__(self, root: str | Path | None = None):
        self.root = Path(root) if root is not None else default_store_dir()

    def _path(self, identifier: str) -> Path:
        if not _IDENTIFIER_RE.match(identifier or ""):
            raise NotFound(identifier)
        return self.root / f"{identifier}.json"

    def _read(self, identifier: str) -> dict:
        path = self._path(identifier)
        if not path.exists():
            raise NotFound(identifier)
        try:
            return json.loads(path.read_text())
        except json.JSONDecodeError as e:
            raise BackendError(f"Corrupt roadmap document {path}: {e}") from e
        except OSError as e:
            raise BackendError(f"Cannot read {path}: {e}") from e

    def _write(self, identifier: str, raw: dict) -> None:
        path = self._path(identifier)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(raw, indent=4))
        except OSError as e:
            raise BackendError(f"Cannot write {path}: {e}") from e

    @staticmethod
    def _authorize(identifier: str, raw: dict, password: str | None) -> None:
        auth = raw.get("auth")
        if not auth:
            return
        if password is None:
            raise Unauthorized(identifier)
        expected = _hash_password(password, bytes.fromhex(auth["salt"]))
        if not hmac.compare_digest(expected, auth["hash"]):
            raise Unauthorized(identifier)

    def exists(self, identifier: str) -> bool:
        try:
            return self._path(identifier).exists()
        except NotFound:
            return False

    def is_protected(self, identifier: str) -> bool:
        return bool(self._read(identifier).get("auth"))

    def load(self, identifier: str, password: str | None = None) -> Roadmap:
        raw = self._read(identifier)
        self._authorize(identifier, raw, password)
        try:
            return Roadmap.from_dict(raw["roadmap"])
        except (KeyError, TypeError) as e:
            raise BackendError(f"Malformed roadmap document '{identifier}': {e}") from e

    def save(self, identifier: str, roadmap: Roadmap, password: str | None = None) -> None:
        """Replace an existing document; the password must match."""
        raw = self._read(identifier)
        self._authorize(identifier, raw, password)
        raw["roadmap"] = roadmap.to_dict()
        self._write(identifier, raw)
        log.info("Saved roadmap %s (%d items)", identifier, len(roadmap.items))

    def create(self, identifier: str, roadmap: Roadmap, password: str | None = None) -> None:
        if self.exists(identifier):
            raise ValueError(f"Roadmap '{identifier}' already exists")
        raw: dict = {"roadmap": roadmap.to_dict()}
        if password:
            raw["auth"] = _make_auth(password)
        self._write(identifier, raw)
        log.info("Created roadmap %s", identifier)

    def delete(self, identifier: str, password: str | None = None) -> None:
        raw = self._read(identifier)
        self._authorize(identifier, raw, password)
        self._path(identifier).unlink()
        log.info("Deleted roadmap %s", identifier)

    def list_identifiers(self) -> list[str]:
        if not self.root.exists():
            return []
        return sorted(p.stem for p in self.root.glob("*.json"))

    def generate_identifier(self, name: str) -> str:
        """Slug of *name*, suffixed -2, -3, ... until unused."""
        base = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-") or "roadmap"
        candidate = base
        n = 1
        while self.exists(candidate):
            n += 1
            candidate = f"{base}-{n}"
        return candidate

    # Backend protocol: the file I/O runs off the event loop.

    async def fetch(self, identifier: str, password: str | None = None) -> Roadmap:
        return await asyncio.to_thread(self.load, identifier, password)

    async def commit(
        self, identifier: str, roadmap: Roadmap, password: str | None = None
    ) -> None:
        await asyncio.to_thread(self.save, identifier, roadmap, password)
