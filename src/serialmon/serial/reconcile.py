"""
Reconciliation of the desired state against live sessions.

Only opens are driven from here. Sessions whose path has been dropped from
the desired state stay open until an operator closes them.
"""

import logging
from dataclasses import dataclass

from serialmon.core.errors import OpenError
from serialmon.core.models import DesiredState
from serialmon.serial.registry import PortRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconcileFailure:
    """A port from the desired state that could not be opened."""

    path: str
    message: str


class Reconciler:
    """Opens every port in a desired state that is not already live."""

    def __init__(self, registry: PortRegistry):
        self.registry = registry

    def reconcile(self, desired: DesiredState) -> list[ReconcileFailure]:
        """
        Bring live sessions in line with a desired state.

        Ports are opened in document order. A port that fails to open is
        recorded and the rest are still attempted.

        Args:
            desired: Document listing the ports that should be open

        Returns:
            One failure per port that could not be opened
        """
        failures: list[ReconcileFailure] = []
        opened = 0

        for spec in desired.ports:
            if self.registry.is_live(spec.path):
                continue
            try:
                self.registry.open(spec)
                opened += 1
            except OpenError as e:
                failures.append(ReconcileFailure(spec.path, e.message))

        stale = set(self.registry.paths()) - set(desired.paths)
        if stale:
            logger.debug(f"Leaving {len(stale)} session(s) not in desired state open")

        logger.info(
            f"Reconciled {len(desired.ports)} port(s): "
            f"{opened} opened, {len(failures)} failed"
        )
        return failures
