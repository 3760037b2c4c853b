import cv2

from all_camera_viewer.conversion import downscale
from all_camera_viewer.topology import StreamId


WINDOW_NAMES = {
    StreamId.LEFT: 'Left color data',
    StreamId.RIGHT: 'Right color data',
    StreamId.TOF: 'TOF grey data',
}


class ImageDisplay:
    """Shows the images of one matched group in OpenCV windows."""

    def __init__(self, scale=0.5, wait_ms=1):
        self.scale = scale
        self.wait_ms = wait_ms
        self.windows_ = set()

    def show(self, images):
        for stream, image in images.items():
            if stream is StreamId.TOF:
                # already an 8 bit show image
                view = image
            else:
                view = downscale(image, self.scale)
            cv2.imshow(WINDOW_NAMES[stream], view)
            self.windows_.add(WINDOW_NAMES[stream])
        cv2.waitKey(self.wait_ms)

    def close(self):
        for name in self.windows_:
            cv2.destroyWindow(name)
        self.windows_.clear()
