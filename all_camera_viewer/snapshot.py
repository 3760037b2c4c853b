import logging
import os
from collections import namedtuple

import cv2

from all_camera_viewer.errors import SaveUnavailableError, SnapshotError
from all_camera_viewer.topology import StreamId


FILE_PREFIXES = {
    StreamId.RIGHT: 'right_color_image_',
    StreamId.LEFT: 'left_color_image_',
    StreamId.TOF: 'tof_grey_image_',
}

# order in which one save request writes the streams
SAVE_ORDER = (StreamId.RIGHT, StreamId.LEFT, StreamId.TOF)


class SaveResult(namedtuple('SaveResult', ['sequence', 'saved', 'missing', 'failed'])):
    """Outcome of one save request.

    saved maps streams to written paths, missing lists streams without a
    matched image and failed lists streams OpenCV could not write.
    """

    @property
    def success(self):
        return not self.missing and not self.failed

    def describe(self):
        if self.success:
            return f"Saved image set {self.sequence:04d}"
        parts = []
        if self.missing:
            parts.append("unavailable: " + ', '.join(s.value for s in self.missing))
        if self.failed:
            parts.append("write failed: " + ', '.join(s.value for s in self.failed))
        return f"Image set {self.sequence:04d} incomplete ({'; '.join(parts)})"


class SnapshotStore:
    def __init__(self, output_dir='.', extension='.bmp', logger=None):
        self.output_dir = output_dir
        self.extension = extension if extension.startswith('.') else '.' + extension
        self.logger_ = logger or logging.getLogger(__name__)
        self.sequence = 0

    def path_for(self, label, sequence_number):
        return os.path.join(self.output_dir, f"{label}{sequence_number:04d}{self.extension}")

    def save(self, label, sequence_number, image):
        if not os.path.exists(self.output_dir):
            os.makedirs(self.output_dir)
        path = self.path_for(label, sequence_number)
        try:
            ok = cv2.imwrite(path, image)
        except cv2.error as e:
            raise SnapshotError(f"Could not write {path}: {e}") from e
        if not ok:
            raise SnapshotError(f"Could not write {path}")
        return path

    def save_frame_set(self, images, streams):
        """Write the latest matched image of every stream in ``streams``.

        A stream without an image does not stop the others, and nothing
        already written is removed. The sequence number advances once per
        call whatever the outcome.
        """
        sequence = self.sequence
        self.sequence += 1

        saved = {}
        missing = []
        failed = []
        for stream in SAVE_ORDER:
            if stream not in streams:
                continue
            image = images.get(stream)
            try:
                if image is None or getattr(image, 'size', 0) == 0:
                    raise SaveUnavailableError(stream)
                saved[stream] = self.save(FILE_PREFIXES[stream], sequence, image)
                self.logger_.info(f"Saved {stream.label.lower()} image {sequence}")
            except SaveUnavailableError as e:
                self.logger_.warning(str(e))
                missing.append(stream)
            except SnapshotError as e:
                self.logger_.error(str(e))
                failed.append(stream)
        return SaveResult(sequence, saved, missing, failed)
