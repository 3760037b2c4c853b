class ViewerError(Exception):
    pass


class ConfigError(ViewerError):
    """Invalid or missing startup configuration. Fatal."""


class FrameRejectedError(ViewerError):
    """A frame that can never enter a stream slot (no stamp, unknown stream)."""


class ConversionError(ViewerError):
    pass


class SaveUnavailableError(ViewerError):
    def __init__(self, stream):
        super().__init__(f"{stream.label} image not available")
        self.stream = stream


class SnapshotError(ViewerError):
    pass
