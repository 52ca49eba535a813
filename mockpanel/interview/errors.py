"""
Exception types for the mock interview panel.

Only MediaDeviceError is fatal to a session; everything else is caught at the
component boundary and logged.
"""


class MockPanelError(Exception):
    """Base class for all panel errors."""


class SessionHandshakeError(MockPanelError):
    """The live speech provider refused or failed to open a persona session."""


class MediaDeviceError(MockPanelError):
    """Microphone permission or device failure. Unrecoverable at session start."""


class AdvisoryProtocolError(MockPanelError):
    """A message on the advisory channel could not be parsed or validated."""
