"""
Installer outcome classification.

Maps an installer's exit code and output to exactly one of:
success, already_installed, user_denied, error.

This is heuristic. Package managers do not expose a reliable signal for
"the user declined the elevation prompt"; user_denied is detected from known
cancellation exit codes and message text and can be wrong in both directions.
"""

from __future__ import annotations

from endstate.types import InstallOutcome

__all__ = [
    'ALREADY_INSTALLED_CODES',
    'USER_DENIED_CODES',
    'classify_install_outcome',
    'normalize_exit_code',
]

# winget: APPINSTALLER_CLI_ERROR_UPDATE_NOT_APPLICABLE, APPINSTALLER_CLI_ERROR_PACKAGE_ALREADY_INSTALLED
ALREADY_INSTALLED_CODES = frozenset({0x8A15002B, 0x8A150061})

# ERROR_CANCELLED (UAC prompt dismissed) and its HRESULT form
USER_DENIED_CODES = frozenset({1223, 0x800704C7})

_ALREADY_INSTALLED_MARKERS = (
    'already installed',
    'is already the newest version',
    'no applicable upgrade found',
    'no newer package versions are available',
    'found an existing package already installed',
)

_USER_DENIED_MARKERS = (
    'cancelled by the user',
    'canceled by the user',
    'operation was canceled',
    'operation was cancelled',
    'user declined',
    'user denied',
    'access is denied',
    'a password is required',
    'are you root?',
    'permission denied',
)


def normalize_exit_code(exit_code: int) -> int:
    """Fold signed 32-bit Windows exit codes into their unsigned form."""
    return exit_code & 0xFFFFFFFF if exit_code < 0 else exit_code


def classify_install_outcome(exit_code: int | None, output: str) -> InstallOutcome:
    """
    Classify an installer run.

    Args:
        exit_code: Process exit code (None when the process could not start)
        output: Combined stdout/stderr text

    Returns:
        One of 'success', 'already_installed', 'user_denied', 'error'

    Examples:
        >>> classify_install_outcome(0, 'Successfully installed')
        'success'
        >>> classify_install_outcome(-1978335135, '')
        'already_installed'
        >>> classify_install_outcome(1223, '')
        'user_denied'
    """
    if exit_code is None:
        return 'error'

    text = output.lower()
    code = normalize_exit_code(exit_code)

    if code in ALREADY_INSTALLED_CODES or any(marker in text for marker in _ALREADY_INSTALLED_MARKERS):
        return 'already_installed'
    if code == 0:
        return 'success'
    if code in USER_DENIED_CODES or any(marker in text for marker in _USER_DENIED_MARKERS):
        return 'user_denied'
    return 'error'
