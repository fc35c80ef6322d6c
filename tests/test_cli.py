"""
Tests for the command-line interface, run against the mock backend.
"""

import pendulum
import pytest
from typer.testing import CliRunner

from salonbook import __version__
from salonbook.cli import app as cli_app
from salonbook.cli.app import app, parse_cart_entry, resolve_service, resolve_staff
from salonbook.domain.models import Service, Staff


runner = CliRunner()

TZ = "Europe/Berlin"

STAFF = [
    Staff(id="staff_01", name="Jessica Miller"),
    Staff(id="staff_03", name="Emily Rodriguez"),
]
SERVICES = [
    Service(id="svc_04", name="Luxury Manicure", price=45.0, duration_minutes=45),
    Service(id="deal_01", name="Mani-Pedi Combo", price=95.0, category="Deal"),
]


@pytest.fixture(autouse=True)
def wide_console(monkeypatch):
    monkeypatch.setattr(cli_app.console, "width", 200)


@pytest.fixture
def config_args(tmp_path):
    return ["--config", str(tmp_path / "config.yaml"), "--mock"]


class TestResolution:
    """Tests for the cart entry helpers."""

    def test_resolve_service_by_name_or_id(self):
        assert resolve_service("luxury manicure", SERVICES).id == "svc_04"
        assert resolve_service("deal_01", SERVICES).name == "Mani-Pedi Combo"

        with pytest.raises(ValueError):
            resolve_service("Massage", SERVICES)

    def test_resolve_staff_by_first_name(self):
        assert resolve_staff("Emily", STAFF).id == "staff_03"
        assert resolve_staff("staff_01", STAFF).name == "Jessica Miller"

        with pytest.raises(ValueError):
            resolve_staff("Bob", STAFF)

    def test_resolve_staff_skips_blank_names(self):
        staff = [Staff(id="staff_09", name="   "), *STAFF]

        assert resolve_staff("Jessica", staff).id == "staff_01"
        with pytest.raises(ValueError):
            resolve_staff("Bob", staff)

    def test_parse_cart_entry(self):
        service, member = parse_cart_entry("Luxury Manicure@Emily", SERVICES, STAFF)
        assert service.id == "svc_04"
        assert member.id == "staff_03"

        service, member = parse_cart_entry("Mani-Pedi Combo", SERVICES, STAFF)
        assert service.id == "deal_01"
        assert member is None


class TestCommands:
    """Tests for the CLI commands in mock mode."""

    def test_version(self):
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_list_staff(self, config_args):
        result = runner.invoke(app, ["list-staff", *config_args])

        assert result.exit_code == 0
        assert "Jessica Miller" in result.output
        assert "staff_04" in result.output

    def test_list_services_shows_default_duration(self, config_args):
        result = runner.invoke(app, ["list-services", *config_args])

        assert result.exit_code == 0
        assert "Mani-Pedi Combo" in result.output
        assert "(30 min)" in result.output
        assert "Summer Glow Promotion" not in result.output

    def test_schedule_today(self, config_args):
        result = runner.invoke(app, ["schedule", *config_args])

        assert result.exit_code == 0
        assert "sch_apt_01" in result.output
        assert "Balayage / Ombre - Sophia Davis" in result.output

    def test_book_across_two_staff(self, config_args):
        day = pendulum.today(TZ).add(days=3).to_date_string()

        result = runner.invoke(
            app,
            [
                "book",
                "sophia@example.com",
                "-s", "Luxury Manicure@Emily",
                "-s", "Spa Pedicure@Emily",
                "-s", "svc_01@Jessica",
                "--at", f"{day} 09:00",
                "--yes",
                *config_args,
            ],
        )

        assert result.exit_code == 0, result.output
        assert "2 appointment(s) booked" in result.output
        assert "(165 min of services)" in result.output
        assert "09:00 - 10:45" in result.output
        assert "09:00 - 10:00" in result.output

    def test_book_reports_conflicts(self, config_args):
        day = pendulum.today(TZ).to_date_string()

        result = runner.invoke(
            app,
            ["book", "liam@example.com", "-s", "svc_06@Jessica", "--at", f"{day} 09:30", "--yes", *config_args],
        )

        assert result.exit_code == 0, result.output
        assert "overlaps" in result.output

    def test_book_declined_does_not_persist(self, config_args):
        day = pendulum.today(TZ).add(days=3).to_date_string()

        result = runner.invoke(
            app,
            ["book", "liam@example.com", "-s", "svc_06", "--at", f"{day} 10:00", *config_args],
            input="n\n",
        )

        assert result.exit_code == 0
        assert "Booking cancelled" in result.output

    def test_book_unknown_client(self, config_args):
        day = pendulum.today(TZ).to_date_string()

        result = runner.invoke(
            app,
            ["book", "nobody@example.com", "-s", "svc_01", "--at", f"{day} 09:00", "--yes", *config_args],
        )

        assert result.exit_code == 1
        assert "No client found" in result.output

    def test_book_unknown_service(self, config_args):
        day = pendulum.today(TZ).to_date_string()

        result = runner.invoke(
            app,
            ["book", "sophia@example.com", "-s", "Massage", "--at", f"{day} 09:00", "--yes", *config_args],
        )

        assert result.exit_code == 1
        assert "Unknown service" in result.output

    def test_book_invalid_start(self, config_args):
        result = runner.invoke(
            app,
            ["book", "sophia@example.com", "-s", "svc_01", "--at", "tomorrow", "--yes", *config_args],
        )

        assert result.exit_code == 1
        assert "Invalid start" in result.output

    def test_slots_on_a_fixed_day(self, config_args):
        result = runner.invoke(app, ["slots", "Jessica", "--date", "2024-11-25", *config_args])

        assert result.exit_code == 0
        assert "09:00" in result.output
        assert "19:30" in result.output
        assert "free" in result.output

    def test_slots_on_closed_day(self, config_args):
        result = runner.invoke(app, ["slots", "Jessica", "--date", "2024-11-24", *config_args])

        assert result.exit_code == 0
        assert "closed" in result.output

    def test_cancel_seeded_appointment(self, config_args):
        result = runner.invoke(app, ["cancel", "sch_apt_01", *config_args])

        assert result.exit_code == 0
        assert "deleted" in result.output

    def test_cancel_unknown_appointment(self, config_args):
        result = runner.invoke(app, ["cancel", "nope", *config_args])

        assert result.exit_code == 1
        assert "Appointment not found" in result.output
