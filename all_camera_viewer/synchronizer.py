import logging
from collections import deque
from itertools import count

from all_camera_viewer.errors import ConfigError, FrameRejectedError
from all_camera_viewer.frames import MatchGroup
from all_camera_viewer.topology import Topology


DEFAULT_QUEUE_SIZE = 3


class StreamSlot:
    """Bounded FIFO of the unmatched frames of one stream, in arrival order."""

    def __init__(self, stream, depth):
        self.stream = stream
        self.depth = depth
        self.entries_ = deque()  # (arrival sequence, frame)
        self.dropped = 0

    def push(self, seq, frame):
        """Append a frame; returns the evicted oldest frame, if any."""
        evicted = None
        if len(self.entries_) >= self.depth:
            _, evicted = self.entries_.popleft()
            self.dropped += 1
        self.entries_.append((seq, frame))
        return evicted

    def closest(self, stamp, tolerance):
        best = None
        best_diff = None
        for seq, frame in self.entries_:
            diff = abs(frame.stamp - stamp)
            if diff > tolerance:
                continue
            # strict comparison keeps the earliest arrival on ties
            if best is None or diff < best_diff:
                best, best_diff = (seq, frame), diff
        return best

    def take(self, seq):
        for i, (entry_seq, frame) in enumerate(self.entries_):
            if entry_seq == seq:
                del self.entries_[i]
                return frame
        raise KeyError(seq)

    def entries(self):
        return list(self.entries_)

    def frames(self):
        return [frame for _, frame in self.entries_]

    def clear(self):
        self.entries_.clear()

    def __len__(self):
        return len(self.entries_)


class TimestampSynchronizer:
    """Joins the streams of a topology into time aligned MatchGroups.

    Every buffered frame is a candidate anchor, oldest arrival first. An
    anchor completes a group when every other stream of the topology holds
    a frame within ``tolerance`` nanoseconds of it; per stream the closest
    frame is taken (earliest arrival on ties). At most one group is emitted
    per arrival, so the emission order follows anchor arrival order.

    Not thread-safe: the owner serializes calls.
    """

    def __init__(self, on_match=None, on_drop=None, logger=None):
        self.on_match = on_match
        self.on_drop = on_drop
        self.logger_ = logger or logging.getLogger(__name__)
        self.topology = None
        self.queue_depth = DEFAULT_QUEUE_SIZE
        self.tolerance = 0
        self.slots_ = {}
        self.seq_ = count()
        self.arrivals = {}
        self.matches = 0

    def configure(self, topology, queue_depth=DEFAULT_QUEUE_SIZE, tolerance=0):
        """``tolerance`` is a whole number of nanoseconds."""
        if not isinstance(topology, Topology):
            raise ConfigError(f"Unsupported topology: {topology!r}")
        if int(queue_depth) < 1:
            raise ConfigError(f"queue_depth must be at least 1, got {queue_depth}")
        if not isinstance(tolerance, int) or isinstance(tolerance, bool):
            raise ConfigError(f"tolerance must be integer nanoseconds, got {tolerance!r}")
        if tolerance < 0:
            raise ConfigError(f"tolerance must not be negative, got {tolerance}")

        self.topology = topology
        self.queue_depth = int(queue_depth)
        self.tolerance = tolerance
        self.slots_ = {stream: StreamSlot(stream, self.queue_depth)
                       for stream in topology.streams}
        self.arrivals = {stream: 0 for stream in topology.streams}
        self.matches = 0

    def slot(self, stream):
        return self.slots_[stream]

    def on_frame_arrived(self, stream, frame):
        """Buffer one frame and try to complete a group.

        Returns the emitted MatchGroup or None.
        """
        if self.topology is None:
            raise ConfigError("Synchronizer used before configure()")
        if stream not in self.topology:
            raise FrameRejectedError(
                f"Stream {stream} is not part of topology {self.topology.name}")
        if frame.stamp is None:
            raise FrameRejectedError(f"Frame of stream {stream.value} has no timestamp")

        self.arrivals[stream] += 1
        evicted = self.slots_[stream].push(next(self.seq_), frame)
        if evicted is not None:
            self.logger_.debug(
                f"Dropped unmatched {stream.value} frame stamped {evicted.stamp}")
            if self.on_drop is not None:
                self.on_drop(stream, evicted)

        group = self._find_match()
        if group is not None:
            self.matches += 1
            self._emit(group)
        return group

    def _find_match(self):
        anchors = sorted(
            ((seq, stream, frame)
             for stream, slot in self.slots_.items()
             for seq, frame in slot.entries()),
            key=lambda entry: entry[0])

        for seq, stream, anchor in anchors:
            picks = {stream: seq}
            for other in self.topology.streams:
                if other is stream:
                    continue
                entry = self.slots_[other].closest(anchor.stamp, self.tolerance)
                if entry is None:
                    break
                picks[other] = entry[0]
            else:
                frames = {s: self.slots_[s].take(q) for s, q in picks.items()}
                return MatchGroup(self.topology, frames, anchor)
        return None

    def _emit(self, group):
        if self.on_match is None:
            return
        try:
            self.on_match(group)
        except Exception as e:
            # The frames are already consumed; delivery is at most once
            self.logger_.error(f"Match handler failed for {group!r}: {e}")

    def clear(self):
        for slot in self.slots_.values():
            slot.clear()

    def buffered(self):
        return {stream: len(slot) for stream, slot in self.slots_.items()}

    @property
    def stats(self):
        return {
            'matches': self.matches,
            'arrivals': {s.value: n for s, n in self.arrivals.items()},
            'dropped': {s.value: slot.dropped for s, slot in self.slots_.items()},
        }
