import pytest

from nhlaunch.devices import Device, LauncherOptions, Mode, VMode


def test_metadata_device_defaults_to_self():
    device = Device("mass0:", Mode.USB)
    assert device.metadata_device() is device


def test_metadata_device_uses_metadev():
    meta = Device("mass1:", Mode.USB)
    device = Device("hdl0:", Mode.HDL, metadev=meta)
    assert device.metadata_device() is meta


def test_device_number_index_points_at_digit():
    device = Device("mass0:", Mode.USB)
    idx = device.device_number_index()
    assert device.mountpoint[idx] == "0"
    assert device.mountpoint[idx + 1] == ":"


@pytest.mark.parametrize(
    "mountpoint, mode",
    [("mmce1:", Mode.MMCE), ("hdl0:", Mode.HDL), ("ata0:", Mode.ATA)],
)
def test_device_number_index_precedes_colon(mountpoint, mode):
    device = Device(mountpoint, mode)
    assert device.device_number_index() == mountpoint.index(":") - 1


def test_device_number_index_without_colon():
    with pytest.raises(ValueError):
        Device("nocolon", Mode.USB).device_number_index()


def test_device_number_index_without_mountpoint():
    with pytest.raises(ValueError):
        Device(None, Mode.USB).device_number_index()


def test_launcher_options_defaults():
    options = LauncherOptions()
    assert options.vmode is VMode.NONE
    assert options.mode == Mode.NONE
    assert options.udpbd_ip == ""