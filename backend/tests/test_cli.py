"""
CLI bootstrap commands.
"""

from riverline.extensions import db
from riverline.models import Route, User, Vessel
from riverline.models.enums import OperatorStatus, Role
from riverline.services import settings_service


class TestSystemInit:
    def test_init_creates_admin_and_settings(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["system", "init", "--admin-password", "Admin123!"])

        assert result.exit_code == 0, result.output
        assert "DONE System initialized" in result.output
        admin = db.session.query(User).filter_by(username="admin").one()
        assert admin.role == Role.ADMINISTRADOR
        assert settings_service.get_tax_rate_bps() == 1800
        assert settings_service.all_settings()["PAGO_TARJETA_HABILITADO"] is False

    def test_init_is_idempotent(self, app, db_session):
        runner = app.test_cli_runner()
        runner.invoke(args=["system", "init"])
        settings_service.set_setting(settings_service.TAX_RATE_KEY, "10")

        result = runner.invoke(args=["system", "init"])

        assert "Using existing administrator" in result.output
        assert db.session.query(User).count() == 1
        assert settings_service.get_tax_rate_bps() == 1000

    def test_weak_admin_password(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["system", "init", "--admin-password", "weak"])
        assert "FAIL" in result.output
        assert db.session.query(User).count() == 0


class TestSeedDemo:
    def test_seed_demo(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["system", "seed-demo"])

        assert result.exit_code == 0, result.output
        assert db.session.query(Route).count() == 3
        assert db.session.query(Vessel).count() == 3
        operator = db.session.query(User).filter_by(username="operador").one()
        assert operator.operator_status == OperatorStatus.ACTIVO
        assert operator.assigned_vessel_id is not None

    def test_seed_demo_twice_skips_existing(self, app, db_session):
        runner = app.test_cli_runner()
        runner.invoke(args=["system", "seed-demo"])
        result = runner.invoke(args=["system", "seed-demo"])

        assert result.exit_code == 0, result.output
        assert "SKIP" in result.output
        assert db.session.query(Route).count() == 3


class TestUsersCommands:
    def test_create_and_list(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            "users", "create",
            "--username", "vendedor5",
            "--email", "v5@riverline.test",
            "--password", "Password123!",
            "--role", "VENDEDOR",
        ])
        assert "PASS Created user: vendedor5" in result.output

        result = runner.invoke(args=["users", "list", "--role", "VENDEDOR"])
        assert "vendedor5" in result.output
