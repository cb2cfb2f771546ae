"""CLI bootstrap commands."""

from app.extensions import db
from app.models import Payment, Product, Receipt, Sale, SaleItem, StockMovement, User


class TestSystemCommands:

    def test_seed_is_idempotent(self, app, db_session):
        runner = app.test_cli_runner()

        first = runner.invoke(args=["system", "seed"])
        second = runner.invoke(args=["system", "seed"])

        assert first.exit_code == 0, first.output
        assert second.exit_code == 0, second.output
        assert "already exists" in second.output

        db.session.expire_all()
        assert db.session.query(User).count() == 3
        assert db.session.query(Product).count() == 2
        assert db.session.query(Sale).count() == 1
        assert db.session.query(SaleItem).count() == 2

        sale = db.session.query(Sale).one()
        # laptop 1500.00 + t-shirt 25.00 + tax 150.00
        assert sale.total_cents == 167500
        assert sale.status == "completed"
        assert db.session.query(Payment).filter_by(sale_id=sale.id).one().amount_cents == 167500
        assert db.session.query(Receipt).filter_by(sale_id=sale.id).one().method == "Cash"

        laptop = db.session.query(Product).filter_by(sku="ELEC-001").one()
        assert laptop.stock_level == 9
        assert db.session.query(StockMovement).filter_by(product_id=laptop.id).count() == 2

    def test_reset_requires_confirmation(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["system", "reset-db"])
        assert result.exit_code == 1
        assert "FAIL" in result.output


class TestUserCommands:

    def test_create_and_list(self, app, setup_roles):
        runner = app.test_cli_runner()

        result = runner.invoke(args=[
            "users", "create",
            "--email", "New.Cashier@Test.com",
            "--first-name", "New",
            "--last-name", "Cashier",
            "--role", "Cashier",
            "--password", "Password123",
        ])
        assert result.exit_code == 0, result.output

        listing = runner.invoke(args=["users", "list"])
        assert "new.cashier@test.com" in listing.output
        assert "Cashier" in listing.output

    def test_weak_password_rejected(self, app, setup_roles):
        result = app.test_cli_runner().invoke(args=[
            "users", "create",
            "--email", "weak@test.com",
            "--first-name", "Weak",
            "--last-name", "Password",
            "--role", "Cashier",
            "--password", "short",
        ])
        assert result.exit_code == 1
        assert "Password validation failed" in result.output
