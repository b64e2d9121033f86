"""Tests for dahualight.commands."""

import pytest

from dahualight.commands import Command, LightMode, parse_command


class TestNumericCommands:
    @pytest.mark.parametrize("raw", ["0", "1", "42", "100", "007", "250"])
    def test_digits_are_manual(self, raw):
        assert parse_command(raw) == Command(LightMode.MANUAL, int(raw))

    def test_surrounding_whitespace(self):
        assert parse_command("  75\n") == Command(LightMode.MANUAL, 75)

    def test_integer_payload(self):
        assert parse_command(30) == Command(LightMode.MANUAL, 30)

    def test_negative_is_not_numeric(self):
        assert parse_command("-5") == Command(LightMode.OFF, 0)

    def test_overlong_number_turns_light_off(self):
        assert parse_command("1" * 5000) == Command(LightMode.OFF, 0)

    def test_overlong_auto_brightness_uses_default(self):
        assert parse_command("auto " + "9" * 5000) == Command(LightMode.AUTO, 100)

    def test_non_ascii_digits_are_not_numeric(self):
        assert parse_command("٣٠") == Command(LightMode.OFF, 0)


class TestNamedCommands:
    @pytest.mark.parametrize("raw", ["on", "ON", " On "])
    def test_on(self, raw):
        assert parse_command(raw) == Command(LightMode.MANUAL, 100)

    @pytest.mark.parametrize("raw", ["off", "OFF", "", "   ", None, "blink", "onn"])
    def test_off_and_unrecognised(self, raw):
        assert parse_command(raw) == Command(LightMode.OFF, 0)


class TestAutoCommands:
    def test_auto_default_brightness(self):
        assert parse_command("auto") == Command(LightMode.AUTO, 100)

    def test_auto_with_brightness(self):
        assert parse_command("auto 60") == Command(LightMode.AUTO, 60)

    def test_case_insensitive(self):
        assert parse_command("AUTO 40") == Command(LightMode.AUTO, 40)

    def test_extra_whitespace(self):
        assert parse_command("auto    25") == Command(LightMode.AUTO, 25)

    def test_unparseable_brightness(self):
        assert parse_command("auto bright") == Command(LightMode.AUTO, 100)

    def test_zero_brightness_kept(self):
        assert parse_command("auto 0") == Command(LightMode.AUTO, 0)

    def test_prefix_match(self):
        assert parse_command("automatic") == Command(LightMode.AUTO, 100)


class TestLightMode:
    def test_wire_values(self):
        assert [m.value for m in LightMode] == ["Off", "Manual", "Auto"]

    def test_str_compares_to_wire_value(self):
        assert LightMode.MANUAL == "Manual"
