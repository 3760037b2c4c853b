"""
Pytest configuration and fixtures.

Makes the package importable from a source checkout and provides frame
helpers. Nothing here needs ROS.
"""

import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

root_path = Path(__file__).parent.parent
if str(root_path) not in sys.path:
    sys.path.insert(0, str(root_path))

from all_camera_viewer.frames import Frame  # noqa: E402
from all_camera_viewer.synchronizer import TimestampSynchronizer  # noqa: E402

MS = 1_000_000


def make_frame(stream, ms, payload=None):
    return Frame(stream, ms * MS, payload if payload is not None else f'{stream.value}@{ms}')


def make_msg(sec, nanosec, frame_id='camera'):
    stamp = SimpleNamespace(sec=sec, nanosec=nanosec)
    return SimpleNamespace(header=SimpleNamespace(stamp=stamp, frame_id=frame_id))


@pytest.fixture(name="matches")
def matches_fixture():
    return []


@pytest.fixture(name="sync")
def sync_fixture(matches):
    return TimestampSynchronizer(on_match=matches.append)
