import logging
from enum import Enum


class StreamSubscription:
    """One logical input stream.

    Arriving frames are pushed to ``sink(stream, frame)`` while the
    subscription is active. Transport specific subclasses override
    ``_subscribe`` and ``_unsubscribe``.
    """

    def __init__(self, stream, sink, logger=None):
        self.stream = stream
        self.sink = sink
        self.logger_ = logger or logging.getLogger(__name__)
        self.active = False

    def activate(self):
        if self.active:
            return
        self.logger_.debug(f"Subscribing to {self.stream.value} camera topics")
        self._subscribe()
        self.active = True

    def deactivate(self):
        if not self.active:
            return
        self.logger_.debug(f"Unsubscribing from {self.stream.value} camera topics")
        self._unsubscribe()
        self.active = False

    def deliver(self, frame):
        # Messages already in flight when unsubscribing are ignored
        if not self.active:
            return False
        self.sink(self.stream, frame)
        return True

    def _subscribe(self):
        pass

    def _unsubscribe(self):
        pass


class RefCountState(Enum):
    IDLE = 'idle'
    ACTIVE = 'active'


class SubscriptionRefCounter:
    """Keeps the upstream subscriptions active while anyone consumes output.

    IDLE -> ACTIVE on the first connect, ACTIVE -> IDLE when the last
    consumer disconnects. Not thread-safe: the owner serializes calls.
    """

    def __init__(self, subscriptions, on_idle=None, logger=None):
        self.subscriptions = list(subscriptions)
        self.on_idle = on_idle
        self.logger_ = logger or logging.getLogger(__name__)
        self.count = 0
        self.state = RefCountState.IDLE

    @property
    def active(self):
        return self.state is RefCountState.ACTIVE

    def on_consumer_connect(self):
        self.count += 1
        if self.count == 1:
            self._transition(RefCountState.ACTIVE)
        return self.count

    def on_consumer_disconnect(self):
        if self.count == 0:
            self.logger_.warning("Consumer disconnected without a prior connect, ignoring")
            return self.count
        self.count -= 1
        if self.count == 0:
            self._transition(RefCountState.IDLE)
        return self.count

    def _transition(self, state):
        if state is self.state:
            return
        if state is RefCountState.ACTIVE:
            for subscription in self.subscriptions:
                subscription.activate()
        else:
            for subscription in self.subscriptions:
                subscription.deactivate()
            if self.on_idle is not None:
                self.on_idle()
        self.logger_.debug(f"Camera subscriptions {self.state.value} -> {state.value}")
        self.state = state
