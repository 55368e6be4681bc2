"""Tests for placeholder expansion and argument template handling."""

import pytest

from retroshelf.launch.templates import (
    Placeholder,
    combine,
    expand,
    expand_argv,
    is_trivial_args,
    native_args,
    normalize_whitespace,
    split_args,
)


class TestExpand:
    def test_file_base(self) -> None:
        assert expand("{fileBase}.sav", "/games/Mario.smc") == "Mario.sav"

    def test_all_placeholders(self) -> None:
        result = expand("-d {fileDir} -n {fileName} -b {fileBase} {file}", "/games/snes/Mario.smc")
        assert result == "-d /games/snes -n Mario.smc -b Mario /games/snes/Mario.smc"

    def test_path_with_space_is_quoted(self) -> None:
        assert expand("-f {file}", "/my games/Mario.smc") == '-f "/my games/Mario.smc"'

    def test_user_quotes_are_respected(self) -> None:
        assert expand('-f "{file}"', "/my games/Mario.smc") == '-f "/my games/Mario.smc"'

    def test_unknown_placeholder_left_verbatim(self) -> None:
        assert expand("{rom} {file}", "/g/a.bin") == "{rom} /g/a.bin"

    def test_empty_template(self) -> None:
        assert expand("", "/g/a.bin") == ""
        assert expand(None, "/g/a.bin") == ""

    def test_placeholder_values(self) -> None:
        assert Placeholder.FILE_DIR.value_for("/a/b.c") == "/a"
        assert Placeholder.FILE_BASE.value_for("") == ""


class TestCombine:
    def test_appends_when_item_has_no_file(self) -> None:
        assert combine("mame {file} -rompath x", "-video opengl") == "mame {file} -rompath x -video opengl"

    def test_nests_when_both_have_file(self) -> None:
        assert combine("-L core.so {file}", "--subsystem sgb {file}") == "-L core.so --subsystem sgb {file}"

    def test_empty_item_keeps_base(self) -> None:
        assert combine("-f {file}", "   ") == "-f {file}"
        assert combine("-f {file}", None) == "-f {file}"

    def test_empty_base(self) -> None:
        assert combine("", "-x") == "-x"


class TestNativeArgs:
    @pytest.mark.parametrize(
        "template,expected",
        [
            ("prefix {file} --arg", "--arg"),
            ('wine "{file}"   -windowed  -nosound', "-windowed -nosound"),
            ("--fullscreen", "--fullscreen"),
            ("{file}", ""),
            ("", ""),
        ],
    )
    def test_strips_leftover_file(self, template: str, expected: str) -> None:
        assert native_args(template) == expected


class TestHelpers:
    def test_normalize_whitespace(self) -> None:
        assert normalize_whitespace("  a \t b\n c  ") == "a b c"
        assert normalize_whitespace(None) == ""

    def test_trivial_args(self) -> None:
        assert is_trivial_args(None)
        assert is_trivial_args(' "{file}" ')
        assert not is_trivial_args("-f {file}")

    def test_split_args_handles_quotes(self) -> None:
        assert split_args('-f "a b" c') == ["-f", "a b", "c"]

    def test_split_args_degrades_on_unbalanced_quote(self) -> None:
        assert split_args('-f "a b') == ["-f", '"a', "b"]


class TestExpandArgv:
    def test_paths_become_single_arguments(self) -> None:
        argv = expand_argv('-L "{fileDir}/core.so" {file}', "/my games/Mario.smc")
        assert argv == ["-L", "/my games/core.so", "/my games/Mario.smc"]

    def test_empty_expansion_dropped(self) -> None:
        assert expand_argv("-f {file}", "") == ["-f"]
