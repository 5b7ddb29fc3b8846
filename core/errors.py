"""
Error taxonomy for the scanner.

Only session-level failures are raised to callers. Screenshot failures are
reported through the EMPTY_CAPTURE sentinel and an exhausted engagement is a
normal EngagementResult, so neither has an exception class here.
"""


class ScannerError(Exception):
    """Base class for every error raised by the scanner."""


class VendorRegistryError(ScannerError):
    """The vendor signature file is missing or malformed."""


class BrowserLaunchError(ScannerError):
    """Playwright or Chromium could not be started."""


class NavigationError(ScannerError):
    """The target page could not be loaded."""


class NavigationTimeout(NavigationError, TimeoutError):
    """The target page did not settle within the navigation timeout."""


class OracleError(ScannerError):
    """The vision oracle failed, timed out or returned nothing usable."""
