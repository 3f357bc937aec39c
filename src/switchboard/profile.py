"""Per-identity profile persisted between turns."""

from __future__ import annotations

import json
import os
import threading
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import quote, unquote

from loguru import logger

PROFILE_FILE_SUFFIX = ".json"


@dataclass
class SessionProfile:
    """Everything remembered about one identity across sessions.

    ``answers`` holds collected input keyed by answer key; ``items`` holds
    counts and flags (session counts, timeouts, registration markers).
    """

    identity: str
    current_state: str | None = None
    lang: str | None = None
    answers: dict[str, Any] = field(default_factory=dict)
    items: dict[str, Any] = field(default_factory=dict)

    @property
    def is_new(self) -> bool:
        return self.current_state is None

    def get(self, item: str, default: Any = None) -> Any:
        return self.items.get(item, default)

    def set(self, item: str, value: Any) -> None:
        self.items[item] = value

    def increment(self, item: str) -> int:
        value = int(self.get(item, 0)) + 1
        self.set(item, value)
        return value

    def answer(self, key: str, default: Any = None) -> Any:
        return self.answers.get(key, default)

    def set_answer(self, key: str, value: Any) -> None:
        self.answers[key] = value

    def to_payload(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_payload(cls, identity: str, payload: object) -> SessionProfile:
        if not isinstance(payload, dict):
            return cls(identity=identity)
        current_state = payload.get("current_state")
        lang = payload.get("lang")
        answers = payload.get("answers")
        items = payload.get("items")
        return cls(
            identity=identity,
            current_state=current_state if isinstance(current_state, str) else None,
            lang=lang if isinstance(lang, str) else None,
            answers=dict(answers) if isinstance(answers, dict) else {},
            items=dict(items) if isinstance(items, dict) else {},
        )


class ProfileStore(Protocol):
    """Persistence contract for profiles."""

    def load(self, identity: str) -> SessionProfile: ...

    def save(self, profile: SessionProfile) -> None: ...

    def reset(self, identity: str) -> None: ...


class InMemoryProfileStore:
    """Process-local profile store."""

    def __init__(self) -> None:
        self._payloads: dict[str, dict[str, Any]] = {}

    def load(self, identity: str) -> SessionProfile:
        return SessionProfile.from_payload(identity, self._payloads.get(identity))

    def save(self, profile: SessionProfile) -> None:
        # Stored as a payload copy so callers cannot mutate persisted state in place.
        self._payloads[profile.identity] = json.loads(json.dumps(profile.to_payload()))

    def reset(self, identity: str) -> None:
        self._payloads.pop(identity, None)

    def list_identities(self) -> list[str]:
        return sorted(self._payloads)


class FileProfileStore:
    """One JSON document per identity under ``home/profiles``."""

    def __init__(self, home: Path) -> None:
        self._root = (home / "profiles").resolve()
        self._root.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def load(self, identity: str) -> SessionProfile:
        path = self._path(identity)
        with self._lock:
            if not path.exists():
                return SessionProfile(identity=identity)
            try:
                payload = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError):
                logger.opt(exception=True).warning("profile.load_failed path={}", path)
                return SessionProfile(identity=identity)
        return SessionProfile.from_payload(identity, payload)

    def save(self, profile: SessionProfile) -> None:
        path = self._path(profile.identity)
        tmp_path = path.with_suffix(f"{PROFILE_FILE_SUFFIX}.tmp")
        with self._lock:
            tmp_path.write_text(json.dumps(profile.to_payload(), ensure_ascii=False), encoding="utf-8")
            os.replace(tmp_path, path)

    def reset(self, identity: str) -> None:
        with self._lock:
            self._path(identity).unlink(missing_ok=True)

    def list_identities(self) -> list[str]:
        with self._lock:
            names = [path.name.removesuffix(PROFILE_FILE_SUFFIX) for path in self._root.glob(f"*{PROFILE_FILE_SUFFIX}")]
        return sorted(unquote(name) for name in names if name)

    def _path(self, identity: str) -> Path:
        return self._root / f"{quote(identity, safe='')}{PROFILE_FILE_SUFFIX}"
