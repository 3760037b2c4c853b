import cv2
import numpy as np

from all_camera_viewer.errors import ConversionError


class FrameConverter:
    """Turns raw image messages into owned OpenCV images.

    ``bridge`` is a cv_bridge.CvBridge, or anything with the same
    ``imgmsg_to_cv2`` method.
    """

    def __init__(self, bridge, encoding='passthrough'):
        self.bridge_ = bridge
        self.encoding = encoding

    def convert(self, frame):
        try:
            image = self.bridge_.imgmsg_to_cv2(frame.payload, self.encoding)
        except Exception as e:
            raise ConversionError(
                f"Could not convert {frame.stream.value} image: {e}") from e
        if image is None:
            raise ConversionError(f"Could not convert {frame.stream.value} image: empty result")
        # the bridge may hand out a view on the message buffer
        return np.array(image, copy=True)

    def decode(self, frame):
        """Return ``frame`` carrying its decoded image; raises ConversionError."""
        return frame._replace(image=self.convert(frame))


def to_show_image(image):
    """Scale an intensity image into an 8 bit, 3 channel image for display.

    Float and 16 bit images are stretched between their finite min and max;
    8 bit images keep their values.
    """
    img = np.asarray(image)
    if img.ndim == 3 and img.shape[2] == 1:
        img = img[:, :, 0]

    if img.dtype != np.uint8:
        img = img.astype(np.float64)
        finite = np.isfinite(img)
        if finite.any():
            mn, mx = float(img[finite].min()), float(img[finite].max())
            if mx > mn:
                img = np.where(finite, img, mn)
                img = np.clip((img - mn) / (mx - mn) * 255.0, 0, 255).astype(np.uint8)
            else:
                img = np.zeros(img.shape, dtype=np.uint8)
        else:
            img = np.zeros(img.shape, dtype=np.uint8)

    if img.ndim == 2:
        img = cv2.cvtColor(img, cv2.COLOR_GRAY2BGR)
    return img


def downscale(image, factor=0.5):
    if factor == 1.0:
        return image
    return cv2.resize(image, None, fx=factor, fy=factor)
