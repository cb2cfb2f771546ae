"""
Receipt tests.
"""

import pytest

from app.models import Receipt
from app.services import receipt_service
from app.services.errors import AccessDenied, InvalidArgument, ReceiptNotFound, SaleNotFound
from conftest import reload


@pytest.fixture
def receipt_1(actor_a, sale_1):
    return receipt_service.create_receipt(sale_1.id, "email", actor_a, url="https://receipts.test/r/1")


class TestReceipts:

    def test_owner_issues_receipt(self, actor_a, receipt_1, sale_1):
        assert receipt_1.sale_id == sale_1.id
        assert receipt_1.method == "email"
        assert receipt_1.status == "issued"
        assert receipt_1.created_by_user_id == actor_a.id

    def test_url_is_optional(self, actor_a, sale_1):
        assert receipt_service.create_receipt(sale_1.id, "print", actor_a).url is None

    def test_other_cashier_cannot_issue(self, actor_b, sale_1):
        with pytest.raises(AccessDenied):
            receipt_service.create_receipt(sale_1.id, "print", actor_b)

    def test_unknown_sale(self, actor_a):
        with pytest.raises(SaleNotFound):
            receipt_service.create_receipt(999, "print", actor_a)

    @pytest.mark.parametrize("method,status", [("", "issued"), ("print", "lost"), (None, "issued")])
    def test_invalid_input(self, actor_a, sale_1, method, status):
        with pytest.raises(InvalidArgument):
            receipt_service.create_receipt(sale_1.id, method, actor_a, status=status)

    def test_reads_scoped_to_owner(self, actor_a, actor_b, admin, receipt_1):
        assert receipt_service.get_receipt(receipt_1.id, actor_a).id == receipt_1.id
        assert receipt_service.list_receipts(actor_b) == []
        assert [r.id for r in receipt_service.list_receipts(admin)] == [receipt_1.id]
        with pytest.raises(AccessDenied):
            receipt_service.get_receipt(receipt_1.id, actor_b)

    def test_manager_marks_sent(self, manager, receipt_1):
        assert receipt_service.update_receipt(receipt_1.id, {"status": "sent"}, manager).status == "sent"

    def test_cashier_cannot_update(self, actor_a, receipt_1):
        with pytest.raises(AccessDenied):
            receipt_service.update_receipt(receipt_1.id, {"status": "voided"}, actor_a)

    def test_admin_deletes(self, admin, receipt_1):
        result = receipt_service.delete_receipt(receipt_1.id, admin)

        assert result["receipt"]["id"] == receipt_1.id
        assert reload(Receipt, receipt_1.id) is None

    def test_unknown_receipt(self, admin):
        with pytest.raises(ReceiptNotFound):
            receipt_service.get_receipt(999, admin)


class TestReceiptRoutes:

    def test_create_and_list(self, client, cashier_a_headers, sale_1):
        created = client.post(
            "/api/receipts",
            json={"sale_id": sale_1.id, "method": "print"},
            headers=cashier_a_headers,
        )
        assert created.status_code == 201

        listing = client.get(f"/api/receipts?sale_id={sale_1.id}", headers=cashier_a_headers)
        assert listing.status_code == 200
        assert listing.json["count"] == 1

    def test_cashier_cannot_delete(self, client, cashier_a_headers, receipt_1):
        resp = client.delete(f"/api/receipts/{receipt_1.id}", headers=cashier_a_headers)
        assert resp.status_code == 403

    def test_manager_updates(self, client, manager_headers, receipt_1):
        resp = client.put(f"/api/receipts/{receipt_1.id}", json={"status": "voided"}, headers=manager_headers)

        assert resp.status_code == 200
        assert resp.json["receipt"]["status"] == "voided"
