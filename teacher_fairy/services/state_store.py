"""
Local persistence for the whole application state.

The state document is always read and written as one value, so every field
edit is a read-modify-write of the full ``AppState``.
"""
import copy
import json
import logging
import os
import tempfile

from ..models import AppState

logger = logging.getLogger(__name__)


class StateStore:
    """Persistence port: ``load() -> AppState`` and ``save(AppState)``."""

    def load(self) -> AppState:
        raise NotImplementedError

    def save(self, state: AppState):
        raise NotImplementedError

    def update(self, mutate):
        """Load, apply ``mutate(state)`` and save. Returns the saved state."""
        state = self.load()
        mutate(state)
        self.save(state)
        return state


class JsonFileStateStore(StateStore):
    """State kept in one JSON file, replaced atomically on every save."""

    def __init__(self, path):
        self.path = str(path)

    def load(self) -> AppState:
        if not os.path.exists(self.path):
            return AppState()
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Could not read saved state %s, starting fresh: %s", self.path, e)
            return AppState()
        if not isinstance(data, dict):
            logger.warning("Saved state %s is not a JSON object, starting fresh", self.path)
            return AppState()
        return AppState.from_dict(data)

    def save(self, state: AppState):
        directory = os.path.dirname(self.path) or "."
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=".teacher_fairy_", suffix=".json", dir=directory)
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(state.to_dict(), f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except Exception:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise


class InMemoryStateStore(StateStore):
    """Keeps a private copy of the state; used by tests and embedding code."""

    def __init__(self, state=None):
        self._data = (state or AppState()).to_dict()

    def load(self) -> AppState:
        return AppState.from_dict(copy.deepcopy(self._data))

    def save(self, state: AppState):
        self._data = state.to_dict()
