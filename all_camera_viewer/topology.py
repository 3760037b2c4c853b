from enum import Enum

from all_camera_viewer.errors import ConfigError


class StreamId(Enum):
    LEFT = 'left'
    RIGHT = 'right'
    TOF = 'tof'

    @property
    def label(self):
        return _LABELS[self]

    @property
    def image_topic(self):
        return _IMAGE_TOPICS[self]

    @property
    def info_topic(self):
        # The tof camera publishes no calibration alongside its grey image
        return _INFO_TOPICS.get(self)


_LABELS = {
    StreamId.LEFT: 'Left color',
    StreamId.RIGHT: 'Right color',
    StreamId.TOF: 'TOF grey',
}

_IMAGE_TOPICS = {
    StreamId.LEFT: 'left/image_color',
    StreamId.RIGHT: 'right/image_color',
    StreamId.TOF: 'image_grey',
}

_INFO_TOPICS = {
    StreamId.LEFT: 'left/camera_info',
    StreamId.RIGHT: 'right/camera_info',
}


class Topology(Enum):
    """Which cameras have to be jointly present for one fused frame set."""

    SHARED = (StreamId.RIGHT, StreamId.TOF)
    STEREO = (StreamId.LEFT, StreamId.RIGHT)
    ALL = (StreamId.LEFT, StreamId.RIGHT, StreamId.TOF)

    @property
    def streams(self):
        return self.value

    @property
    def arity(self):
        return len(self.value)

    def __contains__(self, stream):
        return stream in self.value


def resolve(use_left, use_right, use_tof):
    """Pick the topology for a combination of camera flags.

    Left and right are expressed when facing the back of the camera in
    horizontal orientation. Raises ConfigError for any combination that has
    no topology (left only, tof only, no camera at all, ...).
    """
    if use_right and use_tof and not use_left:
        return Topology.SHARED
    if use_right and use_left and not use_tof:
        return Topology.STEREO
    if use_right and use_left and use_tof:
        return Topology.ALL
    raise ConfigError(
        "Specified camera configuration not available "
        f"(left={use_left}, right={use_right}, tof={use_tof})")
