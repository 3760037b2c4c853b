from all_camera_viewer.errors import (
    ConfigError,
    ConversionError,
    FrameRejectedError,
    SaveUnavailableError,
    SnapshotError,
    ViewerError,
)
from all_camera_viewer.frames import Frame, MatchGroup
from all_camera_viewer.subscription import StreamSubscription, SubscriptionRefCounter
from all_camera_viewer.synchronizer import StreamSlot, TimestampSynchronizer
from all_camera_viewer.topology import StreamId, Topology, resolve
