"""Persistence and validation of sync pairs (sync-config.json)."""

import json
import logging
import os
from typing import Any, Dict, List

from ..core.errors import DuplicateError, NotFoundError, ValidationError
from ..core.models import SyncDirection, SyncPair

VALID_DIRECTIONS = [d.value for d in SyncDirection]


def validate_sync_pair(pair: SyncPair) -> SyncPair:
    """Validate a sync pair and normalise its local path.

    ``~`` is expanded and the local path made absolute in place.

    Args:
        pair: Pair to validate.

    Returns:
        The same pair, normalised.

    Raises:
        ValidationError: If a field is empty or the direction is unknown.
    """
    if not pair.name:
        raise ValidationError("sync pair name cannot be empty")

    if not pair.local_path:
        raise ValidationError("local path cannot be empty")

    pair.local_path = os.path.abspath(os.path.expanduser(pair.local_path))

    if not pair.remote_name:
        raise ValidationError("remote name cannot be empty")

    if not pair.remote_path:
        raise ValidationError("remote path cannot be empty")

    if pair.direction not in VALID_DIRECTIONS:
        raise ValidationError(
            f"invalid direction '{pair.direction}', must be 'upload', 'download', or 'bidirectional'"
        )

    return pair


def validate_local_path(path: str) -> None:
    """Check that ``path`` is an existing, readable directory.

    Raises:
        ValidationError: If the path is missing, not a directory or unreadable.
    """
    if not os.path.exists(path):
        raise ValidationError(f"path does not exist: {path}")
    if not os.path.isdir(path):
        raise ValidationError(f"path is not a directory: {path}")
    try:
        os.listdir(path)
    except OSError as e:
        raise ValidationError(f"cannot read directory: {e}")


class SyncPairManager:
    """CRUD over the sync pairs file with save-after-mutate semantics."""

    CONFIG_FILENAME = "sync-config.json"

    def __init__(self, config_dir: str):
        self.config_path = os.path.join(config_dir, self.CONFIG_FILENAME)
        self.logger = logging.getLogger(__name__)

    def config_exists(self) -> bool:
        return os.path.exists(self.config_path)

    def get_config_path(self) -> str:
        return self.config_path

    def load(self) -> List[SyncPair]:
        """Load every sync pair.

        Returns:
            The stored pairs, empty when the file does not exist.

        Raises:
            ValueError: If the file is not valid JSON.
        """
        if not self.config_exists():
            return []

        with open(self.config_path, 'r', encoding='utf-8') as f:
            try:
                data: Dict[str, Any] = json.load(f)
            except json.JSONDecodeError as e:
                raise ValueError(f"failed to parse config file {self.config_path}: {e}")

        return [SyncPair.from_dict(p) for p in data.get('sync_pairs') or []]

    def save(self, pairs: List[SyncPair]) -> None:
        os.makedirs(os.path.dirname(self.config_path), mode=0o755, exist_ok=True)
        data = {'sync_pairs': [p.to_dict() for p in pairs], 'version': "1.0"}
        with open(self.config_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)
        os.chmod(self.config_path, 0o644)

    def add(self, pair: SyncPair) -> None:
        """Validate and append a sync pair.

        Raises:
            ValidationError: If the pair is invalid.
            DuplicateError: If the name or local path is already configured.
        """
        pairs = self.load()
        validate_sync_pair(pair)

        for existing in pairs:
            if existing.name == pair.name:
                raise DuplicateError(f"sync pair with name '{pair.name}' already exists")
            if existing.local_path == pair.local_path:
                raise DuplicateError(f"local path '{pair.local_path}' is already configured")

        pairs.append(pair)
        self.save(pairs)
        self.logger.info(f"Added sync pair {pair.name}: {pair.local_path} -> {pair.remote_spec}")

    def remove(self, name: str) -> None:
        pairs = self.load()
        remaining = [p for p in pairs if p.name != name]
        if len(remaining) == len(pairs):
            raise NotFoundError(f"sync pair '{name}' not found")
        self.save(remaining)
        self.logger.info(f"Removed sync pair {name}")

    def update(self, name: str, updated: SyncPair) -> None:
        """Replace the pair called ``name`` after validating the new value.

        Raises:
            ValidationError: If the new pair is invalid.
            NotFoundError: If no pair has that name.
        """
        pairs = self.load()
        validate_sync_pair(updated)

        for i, pair in enumerate(pairs):
            if pair.name == name:
                pairs[i] = updated
                self.save(pairs)
                return
        raise NotFoundError(f"sync pair '{name}' not found")

    def get(self, name: str) -> SyncPair:
        for pair in self.load():
            if pair.name == name:
                return pair
        raise NotFoundError(f"sync pair '{name}' not found")

    def list(self) -> List[SyncPair]:
        return self.load()

    def list_enabled(self) -> List[SyncPair]:
        return [p for p in self.load() if p.enabled]

    def toggle_enabled(self, name: str) -> bool:
        """Flip the enabled flag of a pair.

        Returns:
            The new value of the flag.

        Raises:
            NotFoundError: If no pair has that name.
        """
        pairs = self.load()
        for pair in pairs:
            if pair.name == name:
                pair.enabled = not pair.enabled
                self.save(pairs)
                return pair.enabled
        raise NotFoundError(f"sync pair '{name}' not found")
