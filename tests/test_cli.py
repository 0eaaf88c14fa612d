from unittest.mock import patch

import pytest

from battery_calculator.cli import _format_payback, prompt_file_path, prompt_settings, run
from battery_calculator.config import SimulationSettings
from battery_calculator.errors import InputError


FLUVIUS_CSV = (
    "Van (datum);Van (tijdstip);Tot (datum);Tot (tijdstip);EAN;Register;Volume;Eenheid\n"
    "06-01-2025;12:00:00;06-01-2025;12:15:00;5414;Afname Dag;0,150;kWh\n"
    "06-01-2025;12:00:00;06-01-2025;12:15:00;5414;Injectie Dag;0,400;kWh\n"
    "13-01-2025;12:00:00;13-01-2025;12:15:00;5414;Afname Dag;0,250;kWh\n"
    "13-01-2025;12:00:00;13-01-2025;12:15:00;5414;Injectie Dag;0,200;kWh\n"
)


def _use_default(*args, **kwargs):
    return kwargs["default"]


# ── prompt_settings ──────────────────────────────────────────────────────────


class TestPromptSettings:
    @patch("battery_calculator.cli.FloatPrompt.ask", side_effect=_use_default)
    def test_defaults(self, mock_ask):
        settings = prompt_settings()
        defaults = SimulationSettings()
        assert settings.battery.capacity_kwh == defaults.battery.capacity_kwh
        assert settings.battery.max_power_kw == defaults.battery.max_power_kw
        assert settings.tariff == defaults.tariff
        assert mock_ask.call_count == 5

    @patch("battery_calculator.cli.FloatPrompt.ask",
           side_effect=[12.0, 6000.0, 8000.0, 0.30, 0.01])
    def test_entered_values(self, mock_ask):
        settings = prompt_settings()
        assert settings.battery.capacity_kwh == 12.0
        assert settings.battery.max_power_kw == 6.0
        assert settings.battery_price_eur == 6000.0
        assert settings.annual_pv_kwh == 8000.0
        assert settings.tariff.import_eur_per_kwh == 0.30
        assert settings.tariff.export_eur_per_kwh == 0.01

    @patch("battery_calculator.cli.FloatPrompt.ask",
           side_effect=[-1.0, 6000.0, 8000.0, 0.30, 0.01])
    def test_negative_capacity_rejected(self, mock_ask):
        with pytest.raises(InputError):
            prompt_settings()


# ── prompt_file_path ─────────────────────────────────────────────────────────


class TestPromptFilePath:
    def test_retries_until_file_exists(self, tmp_path):
        existing = tmp_path / "export.csv"
        existing.write_text(FLUVIUS_CSV, encoding="utf-8")
        answers = [str(tmp_path / "missing.csv"), f'"{existing}"']
        with patch("battery_calculator.cli.Prompt.ask", side_effect=answers):
            assert prompt_file_path() == str(existing)


# ── _format_payback ──────────────────────────────────────────────────────────


class TestFormatPayback:
    def test_finite(self):
        assert _format_payback(7.25) == "7.2 years"

    def test_infinite(self):
        assert _format_payback(float("inf")) == "never"


# ── run ──────────────────────────────────────────────────────────────────────


class TestRun:
    def test_full_session_writes_xlsx(self, tmp_path):
        path = tmp_path / "export.csv"
        path.write_text(FLUVIUS_CSV, encoding="utf-8")
        with patch("battery_calculator.cli.FloatPrompt.ask", side_effect=_use_default), \
                patch("battery_calculator.cli.Confirm.ask", return_value=True), \
                patch("battery_calculator.cli.Prompt.ask", side_effect=_use_default):
            run(str(path))
        assert (tmp_path / "export_battery_2025.xlsx").is_file()

    def test_error_exits_1(self, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            run(str(tmp_path / "missing.csv"))
        assert exc_info.value.code == 1

    def test_unknown_layout_exits_1(self, tmp_path):
        path = tmp_path / "other.csv"
        path.write_text("Date;kWh\n2025-01-01;1\n", encoding="utf-8")
        with pytest.raises(SystemExit) as exc_info:
            run(str(path))
        assert exc_info.value.code == 1

    def test_keyboard_interrupt_exits_0(self):
        with patch("battery_calculator.cli.Prompt.ask", side_effect=KeyboardInterrupt):
            with pytest.raises(SystemExit) as exc_info:
                run()
        assert exc_info.value.code == 0
