#!/usr/bin/env python3

import sys
import threading

import message_filters
import rclpy
from rclpy.callback_groups import ReentrantCallbackGroup
from rclpy.exceptions import InvalidParameterTypeException, ParameterUninitializedException
from rclpy.logging import get_logger
from rclpy.node import Node
from sensor_msgs.msg import CameraInfo, Image
from std_srvs.srv import Trigger
from cv_bridge import CvBridge

from all_camera_viewer.config import DEFAULTS, REQUIRED_FLAGS, parse_parameters, tolerance_ns
from all_camera_viewer.conversion import FrameConverter, to_show_image
from all_camera_viewer.display import ImageDisplay
from all_camera_viewer.errors import ConfigError, ConversionError, FrameRejectedError
from all_camera_viewer.frames import frame_from_msg
from all_camera_viewer.snapshot import SnapshotStore
from all_camera_viewer.subscription import StreamSubscription, SubscriptionRefCounter
from all_camera_viewer.synchronizer import TimestampSynchronizer
from all_camera_viewer.topology import StreamId


class RosImageSubscription(StreamSubscription):
    """Image topic of one camera, optionally paired with its camera_info."""

    def __init__(self, node, stream, sink, use_camera_info=False, queue_size=3,
                 callback_group=None):
        super().__init__(stream, sink, node.get_logger())
        self.node_ = node
        self.use_camera_info_ = use_camera_info and stream.info_topic is not None
        self.queue_size_ = queue_size
        self.callback_group_ = callback_group
        self.filters_ = []
        self.info_sync_ = None

    def _subscribe(self):
        image_sub = message_filters.Subscriber(
            self.node_, Image, self.stream.image_topic,
            qos_profile=1, callback_group=self.callback_group_)
        self.filters_ = [image_sub]
        if self.use_camera_info_:
            info_sub = message_filters.Subscriber(
                self.node_, CameraInfo, self.stream.info_topic,
                qos_profile=1, callback_group=self.callback_group_)
            self.filters_.append(info_sub)
            self.info_sync_ = message_filters.TimeSynchronizer(
                [image_sub, info_sub], self.queue_size_)
            self.info_sync_.registerCallback(self.image_callback)
        else:
            image_sub.registerCallback(self.image_callback)

    def _unsubscribe(self):
        for sub in self.filters_:
            self.node_.destroy_subscription(sub.sub)
        self.filters_ = []
        self.info_sync_ = None

    def image_callback(self, msg, info=None):
        self.deliver(frame_from_msg(self.stream, msg, info))


class AllCameraViewer(Node):
    """Shows time aligned images of two or three cameras and saves them on request.

    Supported setups: right color + tof camera, left + right color camera,
    left + right color + tof camera.
    """

    def __init__(self, **kwargs):
        super().__init__('all_camera_viewer', **kwargs)
        self.config_ = self.load_parameters()
        topology = self.config_.topology

        self.lock_ = threading.Lock()
        self.callback_group_ = ReentrantCallbackGroup()
        self.converter_ = FrameConverter(CvBridge())
        self.snapshots_ = SnapshotStore(self.config_.output_dir, self.config_.image_extension,
                                        logger=self.get_logger())
        self.display_ = None
        if self.config_.show_images:
            self.display_ = ImageDisplay(self.config_.display_scale)
        self.latest_images_ = {}

        self.synchronizer_ = TimestampSynchronizer(
            on_match=self.on_match, on_drop=self.on_drop, logger=self.get_logger())
        self.synchronizer_.configure(topology, self.config_.queue_size, tolerance_ns(self.config_))

        names = ', '.join(stream.label.lower() for stream in topology.streams)
        self.get_logger().info(f"Setting up subscribers for {names} camera")
        self.stream_subscriptions_ = [
            RosImageSubscription(self, stream, self.on_frame,
                                 use_camera_info=self.config_.use_camera_info,
                                 queue_size=self.config_.queue_size,
                                 callback_group=self.callback_group_)
            for stream in topology.streams
        ]
        # Topic subscriptions happen on demand, driven by the consumer count
        self.ref_counter_ = SubscriptionRefCounter(
            self.stream_subscriptions_, on_idle=self.synchronizer_.clear,
            logger=self.get_logger())

        self.synced_pubs_ = {
            stream: self.create_publisher(Image, f'synced/{stream.value}/image', 1)
            for stream in topology.streams
        }
        self.remote_consumers_ = 0

        self.save_camera_images_service_ = self.create_service(
            Trigger, 'save_camera_images', self.save_camera_images_callback,
            callback_group=self.callback_group_)
        self.consumer_timer_ = self.create_timer(
            self.config_.consumer_poll_period, self.poll_consumers,
            callback_group=self.callback_group_)

        if self.display_ is not None:
            # the local display is a consumer for the whole node lifetime
            with self.lock_:
                self.ref_counter_.on_consumer_connect()

        self.get_logger().info("Initializing [OK]")

    def load_parameters(self):
        """Parameters are set within the launch file."""
        try:
            self.declare_parameters(
                namespace='',
                parameters=[(name, rclpy.Parameter.Type.BOOL) for name in REQUIRED_FLAGS]
                + list(DEFAULTS.items()))
        except InvalidParameterTypeException as e:
            raise ConfigError(str(e)) from e

        values = {}
        for name in REQUIRED_FLAGS + tuple(DEFAULTS):
            try:
                values[name] = self.get_parameter(name).value
            except ParameterUninitializedException:
                values[name] = None

        config = parse_parameters(values)
        for name in REQUIRED_FLAGS:
            self.get_logger().info(f"{name.replace('_', ' ')}: {getattr(config, name)}")
        return config

    def on_frame(self, stream, frame):
        # a frame that cannot be decoded never enters a slot
        try:
            frame = self.converter_.decode(frame)
        except ConversionError as e:
            self.get_logger().error(str(e))
            return
        with self.lock_:
            if not self.ref_counter_.active:
                return
            try:
                self.synchronizer_.on_frame_arrived(stream, frame)
            except FrameRejectedError as e:
                self.get_logger().warning(str(e))

    def on_drop(self, stream, frame):
        self.get_logger().debug(
            f"{stream.label} queue full, {self.synchronizer_.slot(stream).dropped} frames dropped")

    def on_match(self, group):
        images = group.images()
        if StreamId.TOF in images:
            images[StreamId.TOF] = to_show_image(images[StreamId.TOF])
        self.latest_images_ = images

        for stream, frame in group.items():
            self.synced_pubs_[stream].publish(frame.payload)
        if self.display_ is not None:
            self.display_.show(images)

        if self.synchronizer_.matches % self.config_.log_every == 0:
            stats = self.synchronizer_.stats
            self.get_logger().info(
                f"Matched {stats['matches']} image sets | arrivals={stats['arrivals']} "
                f"dropped={stats['dropped']}")

    def poll_consumers(self):
        # rclpy has no subscriber status callbacks, count listeners instead
        listeners = max(pub.get_subscription_count() for pub in self.synced_pubs_.values())
        with self.lock_:
            while self.remote_consumers_ < listeners:
                self.remote_consumers_ += 1
                self.ref_counter_.on_consumer_connect()
            while self.remote_consumers_ > listeners:
                self.remote_consumers_ -= 1
                self.ref_counter_.on_consumer_disconnect()

    def save_camera_images_callback(self, request, response):
        with self.lock_:
            self.get_logger().info("Service Callback")
            result = self.snapshots_.save_frame_set(
                self.latest_images_, self.config_.topology.streams)
        response.success = result.success
        response.message = result.describe()
        self.get_logger().info(response.message)
        return response

    def destroy_node(self):
        with self.lock_:
            for subscription in self.stream_subscriptions_:
                subscription.deactivate()
            self.synchronizer_.clear()
        if self.display_ is not None:
            self.display_.close()
        return super().destroy_node()


def main(args=None):
    rclpy.init(args=args)
    try:
        node = AllCameraViewer()
    except ConfigError as e:
        get_logger('all_camera_viewer').error(str(e))
        rclpy.shutdown()
        return 1

    try:
        rclpy.spin(node)
    except KeyboardInterrupt:
        pass
    finally:
        node.destroy_node()
        if rclpy.ok():
            rclpy.shutdown()
    return 0


if __name__ == '__main__':
    sys.exit(main())
