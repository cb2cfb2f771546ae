"""
Payment tests: recording tender against a sale, access scoping, and the
paid-versus-total summary.
"""

import pytest

from app.models import Payment
from app.services import payment_service, sale_item_service, sales_service
from app.services.errors import (
    AccessDenied,
    ConflictError,
    InvalidArgument,
    PaymentNotFound,
    SaleNotFound,
)
from conftest import reload, total_of


@pytest.fixture
def priced_sale(actor_a, sale_1, product_p):
    """sale_1 with 5 units of P at 2.00 (total 1000)."""
    sale_item_service.create_sale_item(sale_1.id, product_p.id, 5, 200, actor_a)
    return sale_1


@pytest.fixture
def payment_1(actor_a, priced_sale):
    return payment_service.create_payment(priced_sale.id, "CASH", 400, actor_a)


class TestCreatePayment:

    def test_owner_records_payment(self, actor_a, payment_1, priced_sale):
        assert payment_1.sale_id == priced_sale.id
        assert payment_1.method == "CASH"
        assert payment_1.amount_cents == 400
        assert payment_1.status == "completed"
        assert payment_1.created_by_user_id == actor_a.id

    def test_method_is_normalized(self, actor_a, priced_sale):
        payment = payment_service.create_payment(priced_sale.id, "gift card", 100, actor_a)
        assert payment.method == "GIFT_CARD"

    def test_payment_leaves_total_alone(self, payment_1, priced_sale):
        assert total_of(priced_sale.id) == 1000

    def test_other_cashier_denied(self, actor_b, priced_sale):
        with pytest.raises(AccessDenied):
            payment_service.create_payment(priced_sale.id, "CARD", 100, actor_b)

    def test_unknown_sale(self, actor_a):
        with pytest.raises(SaleNotFound):
            payment_service.create_payment(999, "CASH", 100, actor_a)

    def test_cancelled_sale_rejected(self, manager, actor_a, priced_sale):
        sales_service.cancel_sale(priced_sale.id, manager)

        with pytest.raises(ConflictError):
            payment_service.create_payment(priced_sale.id, "CASH", 100, actor_a)

    @pytest.mark.parametrize(
        "method,amount",
        [
            ("BITCOIN", 100),
            ("", 100),
            ("CASH", 0),
            ("CASH", -5),
            ("CASH", "1.50"),
        ],
    )
    def test_invalid_input(self, actor_a, priced_sale, method, amount):
        with pytest.raises(InvalidArgument):
            payment_service.create_payment(priced_sale.id, method, amount, actor_a)


class TestPaymentSummary:

    def test_unpaid(self, actor_a, priced_sale):
        summary = payment_service.get_payment_summary(priced_sale.id, actor_a)

        assert summary["paid_cents"] == 0
        assert summary["remaining_cents"] == 1000
        assert summary["payment_status"] == "UNPAID"

    def test_split_tender_until_paid(self, actor_a, payment_1, priced_sale):
        assert payment_service.get_payment_summary(priced_sale.id, actor_a)["payment_status"] == "PARTIAL"

        payment_service.create_payment(priced_sale.id, "CARD", 600, actor_a, transaction_id="AUTH-1")
        summary = payment_service.get_payment_summary(priced_sale.id, actor_a)

        assert summary["paid_cents"] == 1000
        assert summary["remaining_cents"] == 0
        assert summary["payment_count"] == 2
        assert summary["payment_status"] == "PAID"

    def test_overpaid(self, actor_a, priced_sale):
        payment_service.create_payment(priced_sale.id, "CASH", 1200, actor_a)

        summary = payment_service.get_payment_summary(priced_sale.id, actor_a)
        assert summary["remaining_cents"] == -200
        assert summary["payment_status"] == "OVERPAID"

    def test_voided_payments_do_not_count(self, manager, actor_a, payment_1, priced_sale):
        payment_service.update_payment(payment_1.id, {"status": "voided"}, manager)

        assert payment_service.get_payment_summary(priced_sale.id, actor_a)["paid_cents"] == 0

    def test_other_cashier_denied(self, actor_b, priced_sale):
        with pytest.raises(AccessDenied):
            payment_service.get_payment_summary(priced_sale.id, actor_b)


class TestReadPayments:

    def test_get_scoped_to_owner(self, actor_a, actor_b, payment_1):
        assert payment_service.get_payment(payment_1.id, actor_a).id == payment_1.id
        with pytest.raises(AccessDenied):
            payment_service.get_payment(payment_1.id, actor_b)

    def test_list_scoped_to_cashier(self, actor_a, actor_b, admin, payment_1, sale_2):
        foreign = payment_service.create_payment(sale_2.id, "CASH", 50, actor_b)

        assert [p.id for p in payment_service.list_payments(actor_a)] == [payment_1.id]
        assert [p.id for p in payment_service.list_payments(admin)] == [foreign.id, payment_1.id]

    def test_list_filters(self, admin, actor_a, payment_1, priced_sale, sale_2, actor_b):
        payment_service.create_payment(sale_2.id, "CASH", 50, actor_b)

        assert [p.id for p in payment_service.list_payments(admin, sale_id=priced_sale.id)] == [payment_1.id]
        assert payment_service.list_payments(admin, status="voided") == []

    def test_cashier_filtering_foreign_sale_denied(self, actor_b, payment_1, priced_sale):
        with pytest.raises(AccessDenied):
            payment_service.list_payments(actor_b, sale_id=priced_sale.id)

    def test_unknown_payment(self, admin):
        with pytest.raises(PaymentNotFound):
            payment_service.get_payment(999, admin)


class TestChangePayments:

    def test_manager_corrects_amount(self, manager, payment_1):
        payment = payment_service.update_payment(payment_1.id, {"amount_cents": 450, "method": "card"}, manager)

        assert payment.amount_cents == 450
        assert payment.method == "CARD"

    def test_owning_cashier_cannot_update(self, actor_a, payment_1):
        with pytest.raises(AccessDenied):
            payment_service.update_payment(payment_1.id, {"amount_cents": 1}, actor_a)

        assert reload(Payment, payment_1.id).amount_cents == 400

    def test_move_to_cancelled_sale_rejected(self, manager, payment_1, sale_2):
        sales_service.cancel_sale(sale_2.id, manager)

        with pytest.raises(ConflictError):
            payment_service.update_payment(payment_1.id, {"sale_id": sale_2.id}, manager)

    def test_unknown_field_rejected(self, manager, payment_1):
        with pytest.raises(InvalidArgument):
            payment_service.update_payment(payment_1.id, {"created_by_user_id": 1}, manager)

    def test_admin_deletes(self, admin, payment_1):
        result = payment_service.delete_payment(payment_1.id, admin)

        assert result["deleted"] is True
        assert result["payment"]["amount_cents"] == 400
        assert reload(Payment, payment_1.id) is None

    def test_cashier_cannot_delete(self, actor_a, payment_1):
        with pytest.raises(AccessDenied):
            payment_service.delete_payment(payment_1.id, actor_a)


class TestPaymentRoutes:

    def test_create_returns_summary(self, client, cashier_a_headers, priced_sale):
        resp = client.post(
            "/api/payments",
            json={"sale_id": priced_sale.id, "method": "CASH", "amount_cents": 1000},
            headers=cashier_a_headers,
        )

        assert resp.status_code == 201
        assert resp.json["payment"]["amount_cents"] == 1000
        assert resp.json["summary"]["payment_status"] == "PAID"

    def test_foreign_sale_is_403(self, client, cashier_b_headers, priced_sale):
        resp = client.post(
            "/api/payments",
            json={"sale_id": priced_sale.id, "method": "CASH", "amount_cents": 100},
            headers=cashier_b_headers,
        )
        assert resp.status_code == 403

    def test_summary_route(self, client, cashier_a_headers, payment_1, priced_sale):
        resp = client.get(f"/api/payments/sales/{priced_sale.id}/summary", headers=cashier_a_headers)

        assert resp.status_code == 200
        assert resp.json["remaining_cents"] == 600

    def test_cashier_cannot_delete(self, client, cashier_a_headers, payment_1):
        resp = client.delete(f"/api/payments/{payment_1.id}", headers=cashier_a_headers)
        assert resp.status_code == 403

    def test_unknown_payment_is_404(self, client, admin_headers):
        resp = client.get("/api/payments/999", headers=admin_headers)

        assert resp.status_code == 404
        assert resp.json["code"] == "PAYMENT_NOT_FOUND"
