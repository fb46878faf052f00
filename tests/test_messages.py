import sys, os
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))
import numpy as np
import pytest

from middleware.messages import Header, Image, Imu, Time


def test_time_from_nanoseconds():
    t = Time.from_nanoseconds(3_250_000_000)
    assert (t.sec, t.nanosec) == (3, 250_000_000)
    assert t.nanoseconds == 3_250_000_000
    assert t.seconds() == pytest.approx(3.25)
    assert Time(1, 999) < Time(2, 0)


def test_image_from_array_copies_pixels():
    array = np.zeros((4, 5, 3), dtype=np.uint8)
    img = Image.from_array(array, "rgb8", Header(frame_id="cam"))
    array[:] = 255
    assert (img.height, img.width, img.step) == (4, 5, 15)
    assert img.header.frame_id == "cam"
    assert img.data == bytes(60)


def test_image_depth_round_trip():
    depth = np.arange(12, dtype=np.uint16).reshape(3, 4)
    img = Image.from_array(depth, "16UC1")
    assert img.step == 8
    assert np.array_equal(img.to_array(), depth)


def test_image_rejects_mismatched_array():
    with pytest.raises(ValueError):
        Image.from_array(np.zeros((2, 2), dtype=np.uint16), "mono8")
    with pytest.raises(ValueError):
        Image.from_array(np.zeros((2, 2), dtype=np.uint8), "rgb8")


def test_imu_orientation_unknown_by_default():
    assert Imu().orientation_covariance[0] == -1.0
