# Overview: Pytest coverage for the flask CLI command groups.

from datetime import datetime

from cashdesk.models import Branch, CashRegister
from cashdesk.services import shift_service


class TestBootstrapCommands:

    def test_create_branch_and_register(self, app, db_session):
        runner = app.test_cli_runner()

        result = runner.invoke(args=["branches", "create", "--name", "Sur", "--code", "SUR"])
        assert result.exit_code == 0, result.output
        assert "PASS Created branch: Sur" in result.output

        branch = db_session.query(Branch).filter_by(code="SUR").one()
        result = runner.invoke(args=[
            "registers", "create", "--branch-id", str(branch.id),
            "--name", "Caja Fuerte", "--kind", "vault",
        ])
        assert result.exit_code == 0, result.output
        assert db_session.query(CashRegister).filter_by(branch_id=branch.id, kind="vault").count() == 1

    def test_invalid_kind_rejected(self, app, branch):
        result = app.test_cli_runner().invoke(args=[
            "registers", "create", "--branch-id", str(branch.id), "--name", "X", "--kind", "bank",
        ])
        assert result.exit_code != 0

    def test_duplicate_branch(self, app, branch):
        result = app.test_cli_runner().invoke(args=["branches", "create", "--name", branch.name])
        assert result.exit_code != 0
        assert "already exists" in result.output


class TestInspectionCommands:

    def test_registers_list_shows_open_shift(self, app, sales_shift):
        result = app.test_cli_runner().invoke(args=["registers", "list"])
        assert result.exit_code == 0
        assert "Caja 1" in result.output
        assert f"OPEN (shift {sales_shift.id})" in result.output

    def test_deactivate_refused_while_open(self, app, sales_shift, sales_register):
        result = app.test_cli_runner().invoke(args=["registers", "deactivate", str(sales_register.id)])
        assert result.exit_code != 0
        assert "open shift" in result.output

    def test_shifts_list(self, app, sales_register):
        shift = shift_service.open_shift(sales_register.id, 7, "250.00", now=datetime(2026, 3, 14, 12))
        shift_service.close_shift(shift.id, 7, "240.00", now=datetime(2026, 3, 14, 23))

        result = app.test_cli_runner().invoke(args=["shifts", "list", "--register-id", str(sales_register.id)])
        assert result.exit_code == 0
        assert "-10.00" in result.output

    def test_shifts_list_limit_bounds(self, app, sales_register):
        result = app.test_cli_runner().invoke(
            args=["shifts", "list", "--register-id", str(sales_register.id), "--limit", "0"]
        )
        assert result.exit_code != 0

    def test_cashier_report(self, app, sales_shift, branch):
        shift_service.close_shift(sales_shift.id, 7, "1000.00")

        result = app.test_cli_runner().invoke(args=["reports", "cashier", "7", "--branch-id", str(branch.id)])
        assert result.exit_code == 0
        assert "Precision:          100%" in result.output
