"""
Desired-state document storage.

The document is a small JSON file shared with the browser UI: a list of
ports plus layout metadata the server never looks at.
"""

import json
import logging
from pathlib import Path

from serialmon.core.errors import ConfigParseError
from serialmon.core.models import DesiredState

logger = logging.getLogger(__name__)


class ConfigStore:
    """Loads and saves the desired-state document."""

    def __init__(self, path: Path):
        self.path = path

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> DesiredState:
        """
        Load the desired state from disk.

        Returns:
            The stored DesiredState, or an empty one if no document exists

        Raises:
            ConfigParseError: If the document is not valid JSON or does not
                describe a desired state
        """
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return DesiredState()
        except OSError as e:
            raise ConfigParseError(f"Cannot read {self.path}: {e}")

        if not raw.strip():
            return DesiredState()

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigParseError(f"Malformed config document {self.path}: {e}")

        return DesiredState.from_dict(data)

    def save(self, state: DesiredState) -> None:
        """Write the desired state, replacing the previous document."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(state.to_dict(), indent=2) + "\n", encoding="utf-8")
        tmp.replace(self.path)
        logger.debug(f"Saved desired state with {len(state.ports)} port(s) to {self.path}")
