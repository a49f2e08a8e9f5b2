"""
Ledgerline Bootstrap — System Errors
====================================
If the wiring is inconsistent at startup, the platform must refuse
to start rather than fail on the first unlucky request.
"""


class SystemBootstrapError(Exception):
    """
    Raised when a startup invariant is violated.

    If this exception is raised:
    - The platform MUST NOT start
    - No fallback
    - No warning-only mode
    - Error message must name the invariant
    """

    def __init__(self, invariant: str, detail: str):
        self.invariant = invariant
        self.detail = detail
        super().__init__(f"LEDGERLINE BOOTSTRAP FAILURE — {invariant}: {detail}")

    def to_dict(self) -> dict:
        return {
            "error": "SystemBootstrapError",
            "invariant": self.invariant,
            "detail": self.detail,
        }
