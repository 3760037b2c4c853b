from collections import namedtuple


Frame = namedtuple('Frame', ['stream', 'stamp', 'payload', 'info', 'image'])
Frame.__new__.__defaults__ = (None, None)
Frame.__doc__ = """One timestamped image of one stream.

stamp is the capture time in integer nanoseconds, payload the raw image
message, info the optional calibration that arrived with it and image the
decoded OpenCV image, filled in before the frame is buffered.
"""


def stamp_to_nanoseconds(stamp):
    if stamp is None:
        return None
    return stamp.sec * 1_000_000_000 + stamp.nanosec


def frame_from_msg(stream, msg, info=None):
    header = getattr(msg, 'header', None)
    stamp = stamp_to_nanoseconds(header.stamp) if header is not None else None
    return Frame(stream, stamp, msg, info)


class MatchGroup:
    """Exactly one frame per stream of the topology, aligned in time."""

    def __init__(self, topology, frames, anchor):
        self.topology = topology
        self.frames_ = dict(frames)
        self.anchor = anchor

    @property
    def stamp(self):
        return self.anchor.stamp

    def __getitem__(self, stream):
        return self.frames_[stream]

    def __iter__(self):
        return (self.frames_[stream] for stream in self.topology.streams)

    def __len__(self):
        return len(self.frames_)

    def items(self):
        return [(stream, self.frames_[stream]) for stream in self.topology.streams]

    def images(self):
        return {stream: frame.image for stream, frame in self.items()}

    def spread(self):
        """Largest stamp distance between the anchor and any member, in ns."""
        return max(abs(frame.stamp - self.anchor.stamp) for frame in self)

    def __repr__(self):
        members = ', '.join(f'{s.value}@{f.stamp}' for s, f in self.items())
        return f'MatchGroup({self.topology.name}: {members})'
