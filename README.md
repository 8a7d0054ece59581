# nhlaunch

`nhlaunch` is a library holding the logic behind a launcher for disc images
stored on block devices and APA hard drives. It keeps launch candidates in
order, reads title IDs from ISO images, manages global and per-title launch
options kept in simple `name: value` files, and builds the argument vector
handed to the loader. It also covers the layout side of an on-screen
interface: bitmap-font text measurement, aligned text and icon placement,
and PNG texture decoding.

## Installation

```
pip install .
```

To run the test suite:

```
pip install .[test]
pytest
```

## Modules

- `nhlaunch.devices`: the `Mode` flags (`ATA`, `MX4SIO`, `UDPBD`, `USB`,
  `ILINK`, `MMCE`, `HDL`, plus the `BDM` and `ALL` combinations), `VMode`,
  `LauncherOptions`, and `Device`, a storage device with its mountpoint,
  mode, index, optional `sync` and `scan` callables and an optional metadata
  device (`Device.metadata_device()`, `Device.device_number_index()`).
- `nhlaunch.target`: `Target` (one launch candidate) and `TargetList`, which
  keeps targets in ASCII case-insensitive alphabetical order of their names
  and offers `insert`, `by_index`, `remove`, `len()` and iteration.
- `nhlaunch.title_id`: `get_title_id(path)` reads `SYSTEM.CNF` from the root
  directory of an ISO 9660 image and returns the title ID from its `BOOT2`
  line, raising `TitleIDError` on failure.
- `nhlaunch.options`: `Argument` and `ArgumentList` (`append`,
  `append_copy`, `get`, `insert`, `merge`), the options-file parser
  (`parse_options`, `load_argument_list`), `build_config_path`,
  `relative_path_index`, global and per-title argument loading and saving
  (`get_global_launch_arguments`, `get_title_launch_arguments`,
  `update_title_launch_arguments`, `load_launch_arguments`), last launched
  title records (`get_last_launched_title`, `update_last_launched_title`)
  and `pack_timestamp`. Errors are raised as `OptionsError`.
- `nhlaunch.modules`: `InitType`, `ModuleEntry` and `ModuleLoader`, which
  walks the ordered driver module table for the enabled modes and hands each
  module to an executor callable you supply; optional modules that fail have
  their modes dropped, required ones raise `ModuleError`. Also
  `parse_ip_config`, `smap_arguments`, `ps2hdd_arguments` and
  `ps2fs_arguments`.
- `nhlaunch.launcher`: `bsd_value` maps a device mode to the loader's `bsd`
  value, `build_launch_arguments` records the last launched title, syncs the
  device and appends the `bsd`, `dvd`, `bsdfs` and `qb` arguments,
  `assemble_argv` builds the argv list, and `load_elf_segments` parses a
  32-bit ELF into its entry point and `ElfSegment` load segments. Errors are
  raised as `LaunchError`.
- `nhlaunch.controller`: `Gamepad`, which turns raw active-low button words
  from a reader callable into newly pressed (`read`, `wait_for_input`) or
  held (`poll`, `poll_input`) buttons on two ports.
- `nhlaunch.settings`: `parse_mode`, `parse_filename`, `parse_vmode`,
  `apply_argv` for `-name=value` arguments, `load_options` for the
  `nhddl.yaml` options file, `find_neutrino_elf` for locating the loader in
  the working directory or fallback paths, and `get_neutrino_version`.
  Errors are raised as `SettingsError`.
- `nhlaunch.graphics`: `rgba`, `Align`, `IconType`, `Icon`, `Kerning`,
  `Glyph`, `GlyphPlacement`, `Font` (`glyph`, `line_width`, `layout_text`,
  `layout_text_window`), `icon_position`, and `Texture` with
  `load_png_texture`, which accepts 32-bit RGBA PNG data only.

## Example

```python
from nhlaunch.launcher import assemble_argv
from nhlaunch.options import parse_options

args = parse_options(["gc: 23\n", "$mt: dvd  # disabled\n", "dbc:\n"])
for arg in args:
    print(arg.arg, repr(arg.value), arg.is_disabled)
# gc '23' False
# mt 'dvd' True
# dbc '' False

print(assemble_argv(args, "mc0:/APPS/neutrino/neutrino.elf"))
# ['mc0:/APPS/neutrino/neutrino.elf', '-gc=23', '-dbc']
```

## Options file format

Each line is `name: value`. A `$` before the name marks the argument as
disabled, `#` starts a comment, and an empty value means the argument is
passed without a value. When a file is read for a device, values starting
with `/` or `\` are prefixed with the device mountpoint, its device number
replaced by the device index.

## What the package does not do

`nhlaunch` provides no command and no user interface of its own. It does
not scan devices for images: `Device.scan` is a callable you provide. It
does not load driver modules or start the loader itself: `ModuleLoader`
calls the executor you pass in, and `load_elf_segments` only parses an ELF
image. It does not read gamepad hardware (`Gamepad` takes a reader
callable) and it does not draw: the graphics functions return positions and
pixel data for a renderer to use.