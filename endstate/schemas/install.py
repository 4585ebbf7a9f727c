"""
Install reconciliation schemas.

Results of reconciling package identifiers against the active driver.
"""

from __future__ import annotations

from collections.abc import Sequence

from endstate.base_model import StrictModel
from endstate.types import InstallOutcome


class InstallResult(StrictModel):
    """Outcome of reconciling one package identifier."""

    package_id: str
    outcome: InstallOutcome
    version: str | None  # Installed version after reconciliation, when the driver reports one
    message: str | None  # Installer output excerpt or error text


class InstallSummary(StrictModel):
    """Outcome of reconciling a batch of package identifiers."""

    driver: str
    results: Sequence[InstallResult]  # Same order as the requested identifiers
    succeeded: int
    already_installed: int
    user_denied: int
    errors: int

    @property
    def ok(self) -> bool:
        """True when nothing errored or was denied."""
        return self.errors == 0 and self.user_denied == 0


class InstallOptions(StrictModel):
    """Options passed through to a driver's install operation."""

    version: str | None = None  # Pin a specific version when the driver supports it
    silent: bool = True
    source: str | None = None  # Driver-specific package source (e.g. winget source name)
    extra_args: Sequence[str] = ()
