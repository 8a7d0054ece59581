import pytest

from nhlaunch.devices import LauncherOptions, Mode
from nhlaunch.modules import (
    InitType,
    ModuleEntry,
    ModuleError,
    ModuleLoader,
    parse_ip_config,
    ps2fs_arguments,
    ps2hdd_arguments,
    smap_arguments,
)

BASE = ["iomanX", "fileXio", "sio2man", "mcman", "mcserv"]


class Recorder:
    def __init__(self, failing=(), result=(0, 0)):
        self.calls = []
        self.failing = set(failing)
        self.result = result

    def __call__(self, name, arguments):
        self.calls.append((name, arguments))
        if name in self.failing:
            return (-1, 0)
        return self.result

    @property
    def names(self):
        return [name for name, _ in self.calls]


def make_loader(mode, recorder, **kwargs):
    options = LauncherOptions(mode=mode)
    resets = []
    sleeps = []
    loader = ModuleLoader(
        options,
        recorder,
        reset=lambda: resets.append(True),
        sleep=sleeps.append,
        ip_config_paths=(),
        **kwargs,
    )
    return loader, resets, sleeps


def test_basic_init_loads_base_modules_only():
    recorder = Recorder()
    loader, resets, _ = make_loader(Mode.ATA, recorder)
    loader.init_modules(InitType.BASIC)
    assert recorder.names == BASE
    assert len(resets) == 1


def test_extended_init_continues_without_reset():
    recorder = Recorder()
    loader, resets, _ = make_loader(Mode.ATA, recorder)
    loader.init_modules(InitType.BASIC)
    loader.init_modules(InitType.EXTENDED)
    assert recorder.names == BASE + ["freepad", "mmceman"]
    assert len(resets) == 1


def test_mx4sio_mode_skips_mmceman():
    recorder = Recorder()
    loader, _, _ = make_loader(Mode.MX4SIO, recorder)
    loader.init_modules(InitType.FULL)
    assert "mmceman" not in recorder.names
    assert recorder.names[-1] == "mx4sio_bd_mini"


def test_full_init_for_ata():
    recorder = Recorder()
    loader, _, sleeps = make_loader(Mode.ATA, recorder)
    loader.init_modules(InitType.FULL)
    assert recorder.names == BASE + ["freepad", "mmceman", "ps2dev9", "bdm", "bdmfs_fatfs", "ata_bd"]
    assert sleeps == []


def test_full_init_for_hdl_passes_arguments_and_pauses():
    recorder = Recorder()
    loader, _, sleeps = make_loader(Mode.HDL, recorder)
    loader.init_modules(InitType.FULL)
    assert recorder.names[-4:] == ["ps2dev9", "ata_bd", "ps2hdd", "ps2fs"]
    assert dict(recorder.calls)["ps2hdd"] == ps2hdd_arguments()
    assert dict(recorder.calls)["ps2fs"] == ps2fs_arguments()
    assert sleeps == [1]


def test_loaded_modules_are_not_loaded_again():
    recorder = Recorder()
    loader, _, _ = make_loader(Mode.USB, recorder)
    loader.init_modules(InitType.FULL)
    first = list(recorder.names)
    loader.init_modules(InitType.FULL)
    assert recorder.names == first
    assert all(entry.loaded for entry in loader.modules if entry.name in first)


def test_required_module_failure_raises():
    recorder = Recorder(failing={"mcman"})
    loader, _, _ = make_loader(Mode.ATA, recorder)
    with pytest.raises(ModuleError) as info:
        loader.init_modules(InitType.BASIC)
    assert info.value.code == -1


def test_optional_module_failure_drops_its_mode():
    recorder = Recorder(failing={"usbdrv"})
    modules = [ModuleEntry("usbdrv", Mode.USB, InitType.FULL)]
    loader, _, _ = make_loader(Mode.ATA | Mode.USB, recorder, modules=modules)
    loader.init_modules(InitType.FULL)
    assert loader.options.mode == Mode.ATA


def test_failure_of_only_enabled_mode_raises():
    recorder = Recorder(failing={"usbdrv"})
    modules = [ModuleEntry("usbdrv", Mode.USB, InitType.FULL)]
    loader, _, _ = make_loader(Mode.USB, recorder, modules=modules)
    with pytest.raises(ModuleError):
        loader.init_modules(InitType.FULL)
    assert loader.options.mode == Mode.USB


def test_module_result_one_counts_as_failure():
    recorder = Recorder(result=(5, 1))
    modules = [ModuleEntry("core", Mode.ALL, InitType.BASIC)]
    loader, _, _ = make_loader(Mode.ATA, recorder, modules=modules)
    with pytest.raises(ModuleError) as info:
        loader.init_modules(InitType.BASIC)
    assert info.value.code == 1


def test_smap_without_ip_drops_udpbd_mode():
    recorder = Recorder()
    loader, _, _ = make_loader(Mode.UDPBD | Mode.USB, recorder)
    loader.init_modules(InitType.FULL)
    assert "smap_udpbd" not in recorder.names
    assert not loader.options.mode & Mode.UDPBD
    assert "usbd_mini" in recorder.names


def test_smap_arguments_with_configured_ip():
    options = LauncherOptions(mode=Mode.UDPBD, udpbd_ip="192.168.0.10")
    arguments = smap_arguments(options, ())
    assert len(arguments) == 19
    assert arguments.rstrip(b"\0") == b"ip=192.168.0.10"


def test_smap_arguments_without_ip_raises():
    with pytest.raises(ModuleError):
        smap_arguments(LauncherOptions(mode=Mode.UDPBD), ())


def test_parse_ip_config_reads_first_file(tmp_path):
    config = tmp_path / "IPCONFIG.DAT"
    config.write_bytes(b"192.168.0.10 255.255.255.0 192.168.0.1")
    options = LauncherOptions()
    assert parse_ip_config(options, [str(tmp_path / "missing"), str(config)]) == "192.168.0.10"
    assert options.udpbd_ip == "192.168.0.10"
    assert smap_arguments(options, ()).rstrip(b"\0") == b"ip=192.168.0.10"


def test_parse_ip_config_short_file_raises(tmp_path):
    config = tmp_path / "IPCONFIG.DAT"
    config.write_bytes(b"10.0.0.2")
    options = LauncherOptions(mode=Mode.UDPBD)
    with pytest.raises(ModuleError):
        parse_ip_config(options, [str(config)])
    assert options.udpbd_ip == ""


def test_hdd_argument_blocks():
    assert ps2hdd_arguments() == b"-o\x004\x00-n\x0020\x00"
    assert ps2fs_arguments() == b"-o\x0010\x00-n\x0040\x00"