"""End-to-end tests for snapshot capture and launch plan resolution."""

import os
from pathlib import Path
from types import SimpleNamespace

from retroshelf.launch.models import (
    EmulatorConfig,
    LaunchWrapper,
    MediaFileKind,
    MediaFileRef,
    MediaItem,
    MediaNode,
    MediaType,
)
from retroshelf.launch.plan import LaunchSnapshot, find_effective_emulator, parse_wine_arch, recompute
from retroshelf.launch.runtime import RuntimeKind
from retroshelf.launch.tristate import Override


def _settings(*emulators: EmulatorConfig, defaults: Override = None) -> SimpleNamespace:
    return SimpleNamespace(
        emulators=list(emulators),
        default_native_wrappers=defaults if defaults is not None else Override.inherit(),
    )


def _library(item: MediaItem, **node_kwargs) -> list[MediaNode]:
    leaf = MediaNode(id="leaf", name="Leaf", items=[item], **node_kwargs)
    return [MediaNode(id="root", name="Root", children=[leaf])]


def _capture(item, roots, settings, tmp_path: Path) -> LaunchSnapshot:
    return LaunchSnapshot.capture(
        item,
        roots,
        settings,
        library_root=str(tmp_path / "Library"),
        data_root=str(tmp_path),
        base_environ={"PATH": "/usr/bin"},
    )


class TestNative:
    def test_wrapped_native_launch(self, tmp_path: Path) -> None:
        game = tmp_path / "games" / "run.sh"
        game.parent.mkdir()
        game.touch()
        item = MediaItem(
            id="n1", title="Native", files=[MediaFileRef(path=str(game))],
            launcher_args="{file} --fullscreen",
        )
        roots = _library(item, native_wrappers_override=Override.value([LaunchWrapper(path="gamemoderun")]))

        plan = recompute(_capture(item, roots, _settings(), tmp_path))

        assert plan.runtime is RuntimeKind.NATIVE
        assert plan.argv == ("gamemoderun", str(game), "--fullscreen")
        assert plan.working_dir == str(game.parent)
        assert plan.preview == f"> gamemoderun {game} --fullscreen"
        assert plan.launchable

    def test_native_without_file_is_not_launchable(self, tmp_path: Path) -> None:
        item = MediaItem(id="n2", title="Nothing")
        plan = recompute(_capture(item, _library(item), _settings(), tmp_path))
        assert not plan.launchable
        assert plan.preview == ""


class TestEmulator:
    def test_profile_args_combined_with_item_args(self, tmp_path: Path) -> None:
        rom = tmp_path / "my roms" / "Mario.smc"
        rom.parent.mkdir()
        rom.touch()
        emulator = EmulatorConfig(id="ra", path="/opt/ra/retroarch", arguments="-L core.so {file}")
        item = MediaItem(
            id="e1", title="Mario", media_type=MediaType.EMULATOR, emulator_id="ra",
            files=[MediaFileRef(path=str(rom))], launcher_args="--verbose",
        )

        plan = recompute(_capture(item, _library(item), _settings(emulator), tmp_path))

        assert plan.argv == ("/opt/ra/retroarch", "-L", "core.so", str(rom), "--verbose")
        assert plan.command_line == f'/opt/ra/retroarch -L core.so "{rom}" --verbose'
        # emulator binary does not exist, so we run from the ROM's directory
        assert plan.working_dir == str(rom.parent)
        assert plan.preview == f"> {plan.command_line}"

    def test_trivial_item_args_leave_profile_template_alone(self, tmp_path: Path) -> None:
        emulator = EmulatorConfig(id="mame", path="flatpak", arguments="run org.mamedev.MAME {fileBase}")
        item = MediaItem(id="e6", title="SF2", media_type=MediaType.EMULATOR, emulator_id="mame",
                         files=[MediaFileRef(path="/roms/sf2.zip")], launcher_args=' "{file}" ')

        plan = recompute(_capture(item, _library(item), _settings(emulator), tmp_path))

        assert plan.argv == ("flatpak", "run", "org.mamedev.MAME", "sf2")

    def test_existing_emulator_dir_adds_cd(self, tmp_path: Path) -> None:
        emu = tmp_path / "emu" / "mednafen"
        emu.parent.mkdir()
        emu.touch()
        rom = tmp_path / "roms" / "game.pce"
        rom.parent.mkdir()
        rom.touch()
        emulator = EmulatorConfig(id="m", path=str(emu), environment_overrides={"MEDNAFEN_HOME": "/cfg"})
        item = MediaItem(id="e2", title="PCE", media_type=MediaType.EMULATOR, emulator_id="m",
                         files=[MediaFileRef(path=str(rom))])

        plan = recompute(_capture(item, _library(item), _settings(emulator), tmp_path))

        assert plan.working_dir == str(emu.parent)
        assert plan.preview == f"> cd {emu.parent} && MEDNAFEN_HOME=/cfg {emu} {rom}"

    def test_unknown_emulator_id_falls_back_to_manual(self, tmp_path: Path) -> None:
        item = MediaItem(
            id="e3", title="Manual", media_type=MediaType.EMULATOR, emulator_id="missing",
            launcher_path="/usr/bin/dosbox", launcher_args="-conf x.conf {file}",
            files=[MediaFileRef(path="/games/doom.exe")],
        )
        plan = recompute(_capture(item, _library(item), _settings(), tmp_path))
        assert plan.argv == ("/usr/bin/dosbox", "-conf", "x.conf", "/games/doom.exe")

    def test_manual_without_launcher_uses_args_as_command(self, tmp_path: Path) -> None:
        item = MediaItem(
            id="e4", title="Script", media_type=MediaType.EMULATOR,
            launcher_args="flatpak run org.ppsspp.PPSSPP {file}",
            files=[MediaFileRef(path="/roms/a.iso")],
        )
        plan = recompute(_capture(item, _library(item), _settings(), tmp_path))
        assert plan.executable == "flatpak"
        assert plan.argv == ("flatpak", "run", "org.ppsspp.PPSSPP", "/roms/a.iso")

    def test_node_default_emulator(self, tmp_path: Path) -> None:
        emulator = EmulatorConfig(id="snes", path="/usr/bin/snes9x")
        item = MediaItem(id="e5", title="Zelda", media_type=MediaType.EMULATOR,
                         files=[MediaFileRef(path="/roms/zelda.sfc")])
        roots = _library(item, default_emulator_id="snes")

        plan = recompute(_capture(item, roots, _settings(emulator), tmp_path))

        assert plan.argv == ("/usr/bin/snes9x", "/roms/zelda.sfc")

    def test_multi_disc_playlist(self, tmp_path: Path) -> None:
        emulator = EmulatorConfig(id="ds", path="/usr/bin/duckstation", use_playlist_for_multi_disc=True)
        item = MediaItem(
            id="ff7", title="Final Fantasy VII", media_type=MediaType.EMULATOR, emulator_id="ds",
            files=[
                MediaFileRef(path="/roms/ff7-d2.chd", index=2),
                MediaFileRef(path="/roms/ff7-d1.chd", index=1),
            ],
        )

        plan = recompute(_capture(item, _library(item), _settings(emulator), tmp_path))

        expected_path = os.path.join(str(tmp_path / "Library"), "Playlists", "ff7_Final_Fantasy_VII.m3u")
        assert plan.playlist is not None
        assert plan.playlist.path == expected_path
        assert plan.playlist.entries == ("/roms/ff7-d1.chd", "/roms/ff7-d2.chd")
        assert plan.argv == ("/usr/bin/duckstation", expected_path)
        assert plan.primary_file == "/roms/ff7-d1.chd"


class TestCompatibility:
    def test_proton_prefix_layout(self, tmp_path: Path) -> None:
        emulator = EmulatorConfig(id="p", path="/opt/GE-Proton9/proton", arguments="run {file}")
        item = MediaItem(
            id="g1", title="Game", media_type=MediaType.EMULATOR, emulator_id="p",
            files=[MediaFileRef(path="/games/g1/game.exe")], prefix_path="Prefixes/g1",
        )

        plan = recompute(_capture(item, _library(item), _settings(emulator), tmp_path))

        root = os.path.join(str(tmp_path / "Library"), "Prefixes", "g1")
        assert plan.runtime is RuntimeKind.PROTON
        assert plan.environment["STEAM_COMPAT_DATA_PATH"] == root
        assert plan.environment["WINEPREFIX"] == os.path.join(root, "pfx")
        assert not os.path.exists(root)

    def test_umu_wine_arch_only_for_fresh_prefix(self, tmp_path: Path) -> None:
        item = MediaItem(
            id="g2", title="Old Game", files=[MediaFileRef(path="/games/old.exe")],
            prefix_path=str(tmp_path / "pfx-root"), wine_arch_override="WIN32",
            native_wrappers_override=Override.value([LaunchWrapper(path="umu-run")]),
        )
        fresh = recompute(_capture(item, _library(item), _settings(), tmp_path))
        assert fresh.runtime is RuntimeKind.UMU
        assert fresh.environment["WINEARCH"] == "win32"
        assert fresh.environment["WINEPREFIX"] == str(tmp_path / "pfx-root")
        assert fresh.argv == ("umu-run", "/games/old.exe")

        (tmp_path / "pfx-root" / "drive_c").mkdir(parents=True)
        existing = recompute(_capture(item, _library(item), _settings(), tmp_path))
        assert "WINEARCH" not in existing.environment
        assert existing.prefix_initialized

    def test_generated_prefix_for_prefix_profiles(self, tmp_path: Path) -> None:
        emulator = EmulatorConfig(id="w", path="/usr/bin/wine", uses_wine_prefix=True)
        item = MediaItem(id="7", title="Some Game", media_type=MediaType.EMULATOR, emulator_id="w",
                         files=[MediaFileRef(path="/games/setup.exe")])

        plan = recompute(_capture(item, _library(item), _settings(emulator), tmp_path))

        assert plan.runtime is RuntimeKind.WINE
        assert plan.generated_prefix_path == os.path.join("Prefixes", "7_Some_Game")
        assert plan.environment["WINEPREFIX"] == os.path.join(str(tmp_path / "Library"), "Prefixes", "7_Some_Game")
        assert item.prefix_path is None

    def test_proton_without_prefix_path_gets_generated_prefix(self, tmp_path: Path) -> None:
        emulator = EmulatorConfig(id="p", path="/opt/proton-run")
        item = MediaItem(id="9", title="No Prefix", media_type=MediaType.EMULATOR, emulator_id="p",
                         files=[MediaFileRef(path="/games/game.exe")])

        plan = recompute(_capture(item, _library(item), _settings(emulator), tmp_path))

        root = os.path.join(str(tmp_path / "Library"), "Prefixes", "9_No_Prefix")
        assert plan.runtime is RuntimeKind.PROTON
        assert plan.environment["STEAM_COMPAT_DATA_PATH"] == root
        assert plan.environment["WINEPREFIX"] == os.path.join(root, "pfx")
        assert plan.generated_prefix_path == os.path.join("Prefixes", "9_No_Prefix")

    def test_umu_wrapper_without_prefix_path_gets_generated_prefix(self, tmp_path: Path) -> None:
        item = MediaItem(id="10", title="Umu", files=[MediaFileRef(path="/games/game.exe")],
                         native_wrappers_override=Override.value([LaunchWrapper(path="umu-run")]))

        plan = recompute(_capture(item, _library(item), _settings(), tmp_path))

        root = os.path.join(str(tmp_path / "Library"), "Prefixes", "10_Umu")
        assert plan.runtime is RuntimeKind.UMU
        assert plan.environment["WINEPREFIX"] == root
        assert plan.environment["STEAM_COMPAT_DATA_PATH"] == root

    def test_native_item_detects_runtime_from_node_emulator(self, tmp_path: Path) -> None:
        emulator = EmulatorConfig(id="umu", path="/usr/bin/umu-run")
        item = MediaItem(id="11", title="Native", files=[MediaFileRef(path="/games/game.exe")],
                         prefix_path=str(tmp_path / "pfx-root"))
        roots = _library(item, default_emulator_id="umu")

        plan = recompute(_capture(item, roots, _settings(emulator), tmp_path))

        assert plan.runtime is RuntimeKind.UMU
        assert plan.environment["STEAM_COMPAT_DATA_PATH"] == str(tmp_path / "pfx-root")
        assert plan.argv == ("/games/game.exe",)

    def test_relative_protonpath_resolved_against_data_root(self, tmp_path: Path) -> None:
        item = MediaItem(id="g3", title="G", files=[MediaFileRef(path="/g/a.exe")],
                         environment_overrides={"PROTONPATH": "Runtimes/GE"})
        plan = recompute(_capture(item, _library(item), _settings(), tmp_path))
        assert plan.runtime is RuntimeKind.PROTON
        assert plan.environment["PROTONPATH"] == os.path.join(str(tmp_path), "Runtimes", "GE")


class TestCommand:
    def test_url_opened_with_xdg_open(self, tmp_path: Path) -> None:
        item = MediaItem(id="c1", title="Steam", media_type=MediaType.COMMAND,
                         launcher_args="steam://rungameid/620")
        roots = _library(item, native_wrappers_override=Override.value([LaunchWrapper(path="mangohud")]))

        plan = recompute(_capture(item, roots, _settings(), tmp_path))

        assert plan.argv == ("xdg-open", "steam://rungameid/620")
        assert plan.preview == "> xdg-open steam://rungameid/620"
        assert plan.wrappers == ()


class TestSnapshot:
    def test_live_edits_do_not_leak(self, tmp_path: Path) -> None:
        item = MediaItem(id="s1", title="Snap", files=[MediaFileRef(path="/g/run")],
                         environment_overrides={"A": "1"})
        roots = _library(item)
        snapshot = _capture(item, roots, _settings(), tmp_path)

        item.environment_overrides["A"] = "2"
        roots[0].children[0].environment_overrides["B"] = "x"

        assert recompute(snapshot).environment == {"A": "1"}

    def test_recompute_is_idempotent(self, tmp_path: Path) -> None:
        item = MediaItem(id="s2", title="Idem", files=[MediaFileRef(path="/g/run")],
                         environment_overrides={"X": "1"})
        snapshot = _capture(item, _library(item), _settings(), tmp_path)
        assert recompute(snapshot) == recompute(snapshot)

    def test_library_relative_file(self, tmp_path: Path) -> None:
        item = MediaItem(id="s3", title="Portable",
                         files=[MediaFileRef(path="Games/run.sh", kind=MediaFileKind.LIBRARY_RELATIVE)])
        plan = recompute(_capture(item, _library(item), _settings(), tmp_path))
        assert plan.primary_file == os.path.join(str(tmp_path), "Games", "run.sh")


class TestHelpers:
    def test_item_emulator_beats_node_default(self) -> None:
        a = EmulatorConfig(id="a")
        b = EmulatorConfig(id="b")
        item = MediaItem(emulator_id="a")
        node = MediaNode(default_emulator_id="b")
        assert find_effective_emulator(item, [node], [a, b]) is a

    def test_unknown_node_default_skipped(self) -> None:
        a = EmulatorConfig(id="a")
        root = MediaNode(default_emulator_id="a")
        leaf = MediaNode(default_emulator_id="gone")
        assert find_effective_emulator(MediaItem(), [root, leaf], [a]) is a

    def test_parse_wine_arch(self) -> None:
        assert parse_wine_arch(" Win64 ") == "win64"
        assert parse_wine_arch("auto") is None
        assert parse_wine_arch(None) is None
