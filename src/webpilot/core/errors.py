"""Exception types raised by the WebPilot core."""


class WebPilotError(Exception):
    """Base class for WebPilot errors."""


class BrowserNotStartedError(WebPilotError):
    """The browser session has not been launched (or was closed)."""


class InvalidTabError(WebPilotError):
    """A tab index outside the open tabs was requested."""


class ElementNotFoundError(WebPilotError):
    """An element id is not part of the snapshot it was looked up in."""

    def __init__(self, element_id: int):
        super().__init__(f"Element id not found in snapshot: {element_id}")
        self.element_id = element_id


class OracleUnavailableError(WebPilotError):
    """The decision oracle returned no usable response."""
