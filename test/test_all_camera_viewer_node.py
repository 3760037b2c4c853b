from unittest.mock import MagicMock, patch

import numpy as np
import pytest

rclpy = pytest.importorskip("rclpy")
pytest.importorskip("cv_bridge")
pytest.importorskip("message_filters")
pytest.importorskip("std_srvs")

from cv_bridge import CvBridge  # noqa: E402
from rclpy.parameter import Parameter  # noqa: E402
from sensor_msgs.msg import CameraInfo  # noqa: E402
from std_srvs.srv import Trigger  # noqa: E402

from all_camera_viewer.all_camera_viewer_node import AllCameraViewer  # noqa: E402
from all_camera_viewer.conversion import FrameConverter  # noqa: E402
from all_camera_viewer.errors import ConfigError  # noqa: E402
from all_camera_viewer.frames import frame_from_msg  # noqa: E402
from all_camera_viewer.subscription import RefCountState  # noqa: E402
from all_camera_viewer.topology import StreamId, Topology  # noqa: E402


@pytest.fixture(scope="module", autouse=True)
def ros_context():
    rclpy.init()
    yield
    rclpy.shutdown()


@pytest.fixture(name="stereo_node")
def stereo_node_fixture(tmp_path):
    node = make_node(use_tof_camera=False, use_right_color_camera=True,
                     use_left_color_camera=True, show_images=False,
                     output_dir=str(tmp_path))
    yield node
    node.destroy_node()


def make_node(**params):
    overrides = [Parameter(name, value=value) for name, value in params.items()]
    return AllCameraViewer(parameter_overrides=overrides)


def image_msg(sec, nanosec, frame_id="camera"):
    msg = CvBridge().cv2_to_imgmsg(np.full((8, 8, 3), 50, dtype=np.uint8), 'bgr8')
    msg.header.stamp.sec = sec
    msg.header.stamp.nanosec = nanosec
    msg.header.frame_id = frame_id
    return msg


def test_missing_flag_fails_fast():
    with pytest.raises(ConfigError, match='use_left_color_camera'):
        make_node(use_tof_camera=True, use_right_color_camera=True)


def test_left_only_fails_fast():
    with pytest.raises(ConfigError):
        make_node(use_tof_camera=False, use_right_color_camera=False,
                  use_left_color_camera=True)


def test_subscribes_only_with_consumers(stereo_node):
    assert stereo_node.config_.topology is Topology.STEREO
    assert list(stereo_node.subscriptions) == []

    stereo_node.ref_counter_.on_consumer_connect()
    topics = sorted(sub.topic_name for sub in stereo_node.subscriptions)
    assert topics == ['/left/image_color', '/right/image_color']

    stereo_node.ref_counter_.on_consumer_disconnect()
    assert list(stereo_node.subscriptions) == []


def test_matched_images_are_saved(stereo_node, tmp_path):
    stereo_node.ref_counter_.on_consumer_connect()
    left, right = stereo_node.stream_subscriptions_
    assert (left.stream, right.stream) == (StreamId.LEFT, StreamId.RIGHT)

    left.image_callback(image_msg(1, 100_000_000))
    right.image_callback(image_msg(1, 120_000_000))
    assert stereo_node.synchronizer_.matches == 1

    response = stereo_node.save_camera_images_callback(Trigger.Request(), Trigger.Response())
    assert response.success
    assert (tmp_path / 'left_color_image_0000.bmp').exists()
    assert (tmp_path / 'right_color_image_0000.bmp').exists()


def test_save_without_match_fails(stereo_node):
    response = stereo_node.save_camera_images_callback(Trigger.Request(), Trigger.Response())
    assert not response.success
    assert 'left' in response.message
    assert 'right' in response.message


@pytest.fixture(name="all_node")
def all_node_fixture(tmp_path):
    node = make_node(use_tof_camera=True, use_right_color_camera=True,
                     use_left_color_camera=True, show_images=False,
                     output_dir=str(tmp_path))
    yield node
    node.destroy_node()


def failing_bridge(broken_frame_id):
    real = CvBridge()

    def imgmsg_to_cv2(msg, encoding):
        if msg.header.frame_id == broken_frame_id:
            raise ValueError("unsupported encoding")
        return real.imgmsg_to_cv2(msg, encoding)

    bridge = MagicMock()
    bridge.imgmsg_to_cv2.side_effect = imgmsg_to_cv2
    return bridge


def test_undecodable_frame_leaves_partners_buffered(all_node):
    all_node.converter_ = FrameConverter(failing_bridge('broken'))
    all_node.ref_counter_.on_consumer_connect()
    left, right, tof = all_node.stream_subscriptions_

    left.image_callback(image_msg(1, 100_000_000))
    right.image_callback(image_msg(1, 100_000_000))
    tof.image_callback(image_msg(1, 100_000_000, frame_id='broken'))

    assert all_node.synchronizer_.matches == 0
    assert all_node.synchronizer_.buffered() == {
        StreamId.LEFT: 1, StreamId.RIGHT: 1, StreamId.TOF: 0}

    tof.image_callback(image_msg(1, 101_000_000))
    assert all_node.synchronizer_.matches == 1
    assert set(all_node.latest_images_) == {StreamId.LEFT, StreamId.RIGHT, StreamId.TOF}
    assert all_node.latest_images_[StreamId.TOF].dtype == np.uint8


def set_listeners(node, count):
    return [patch.object(pub, 'get_subscription_count', return_value=count)
            for pub in node.synced_pubs_.values()]


def poll_with_listeners(node, count):
    patches = set_listeners(node, count)
    for p in patches:
        p.start()
    try:
        node.poll_consumers()
    finally:
        for p in patches:
            p.stop()


def test_listener_count_drives_ref_counter(stereo_node):
    counter = stereo_node.ref_counter_
    assert counter.state is RefCountState.IDLE

    poll_with_listeners(stereo_node, 1)
    assert counter.count == 1
    assert counter.state is RefCountState.ACTIVE
    assert len(list(stereo_node.subscriptions)) == 2

    poll_with_listeners(stereo_node, 3)
    assert counter.count == 3
    assert len(list(stereo_node.subscriptions)) == 2

    poll_with_listeners(stereo_node, 1)
    assert counter.count == 1
    assert counter.active

    poll_with_listeners(stereo_node, 0)
    assert counter.count == 0
    assert counter.state is RefCountState.IDLE
    assert list(stereo_node.subscriptions) == []


def test_jump_to_zero_releases_every_consumer(stereo_node):
    poll_with_listeners(stereo_node, 4)
    poll_with_listeners(stereo_node, 0)
    assert stereo_node.ref_counter_.count == 0
    assert stereo_node.remote_consumers_ == 0
    assert not stereo_node.ref_counter_.active


def test_frames_ignored_while_idle(stereo_node):
    frame = frame_from_msg(StreamId.LEFT, image_msg(1, 0))
    stereo_node.on_frame(StreamId.LEFT, frame)
    assert stereo_node.synchronizer_.buffered() == {StreamId.LEFT: 0, StreamId.RIGHT: 0}
    assert stereo_node.synchronizer_.stats['arrivals'] == {'left': 0, 'right': 0}


def test_camera_info_subscribed_and_passed_through(tmp_path):
    node = make_node(use_tof_camera=False, use_right_color_camera=True,
                     use_left_color_camera=True, show_images=False,
                     use_camera_info=True, output_dir=str(tmp_path))
    try:
        node.ref_counter_.on_consumer_connect()
        topics = sorted(sub.topic_name for sub in node.subscriptions)
        assert topics == ['/left/camera_info', '/left/image_color',
                          '/right/camera_info', '/right/image_color']
        left = node.stream_subscriptions_[0]
        assert left.info_sync_ is not None

        info = CameraInfo()
        left.image_callback(image_msg(2, 0), info)
        buffered = node.synchronizer_.slot(StreamId.LEFT).frames()
        assert len(buffered) == 1
        assert buffered[0].info is info
        assert buffered[0].image.shape == (8, 8, 3)

        node.ref_counter_.on_consumer_disconnect()
        assert list(node.subscriptions) == []
        assert left.info_sync_ is None
    finally:
        node.destroy_node()
