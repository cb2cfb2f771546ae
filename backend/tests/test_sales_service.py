"""
Sale header tests: derived totals, ownership, cancellation.
"""

import pytest

from app.models import Customer, StockMovement
from app.services import sale_item_service, sales_service
from app.services.errors import AccessDenied, CustomerNotFound, InsufficientStock, InvalidArgument, SaleNotFound
from conftest import item_count, stock_of, total_of


class TestCreateSale:

    def test_defaults(self, actor_a):
        sale = sales_service.create_sale(actor_a)

        assert sale.user_id == actor_a.id
        assert sale.status == "pending"
        assert sale.total_cents == 0

    def test_initial_items_reserve_stock_and_price_defaults_to_product(self, actor_a, product_p, product_q):
        sale = sales_service.create_sale(
            actor_a,
            tax_cents=100,
            items=[
                {"product_id": product_p.id, "quantity": 2},
                {"product_id": product_q.id, "quantity": 1, "price_cents": 450},
            ],
        )

        assert stock_of(product_p.id) == 8
        assert stock_of(product_q.id) == 2
        assert item_count(sale.id) == 2
        # 2 * 200 + 1 * 450 + 100 tax
        assert total_of(sale.id) == 950

    def test_initial_items_are_all_or_nothing(self, db_session, actor_a, product_p, product_q):
        with pytest.raises(InsufficientStock):
            sales_service.create_sale(
                actor_a,
                items=[
                    {"product_id": product_p.id, "quantity": 2},
                    {"product_id": product_q.id, "quantity": 4},
                ],
            )

        assert stock_of(product_p.id) == 10
        assert stock_of(product_q.id) == 3
        assert sales_service.list_sales(actor_a) == []
        assert db_session.query(StockMovement).count() == 0

    def test_cashier_cannot_create_for_someone_else(self, actor_a, cashier_b):
        with pytest.raises(AccessDenied):
            sales_service.create_sale(actor_a, user_id=cashier_b.id)

    def test_manager_can_create_for_cashier(self, manager, cashier_b):
        sale = sales_service.create_sale(manager, user_id=cashier_b.id)
        assert sale.user_id == cashier_b.id

    def test_unknown_customer(self, actor_a):
        with pytest.raises(CustomerNotFound):
            sales_service.create_sale(actor_a, customer_id=999)

    def test_with_customer(self, db_session, actor_a):
        customer = Customer(first_name="Alice", last_name="Johnson", email="alice@test.com")
        db_session.add(customer)
        db_session.commit()

        sale = sales_service.create_sale(actor_a, customer_id=customer.id, payment_type="Cash")

        assert sale.customer_id == customer.id
        assert sale.payment_type == "Cash"

    @pytest.mark.parametrize("kwargs", [
        {"status": "refunded"},
        {"tax_cents": -1},
        {"discount_cents": "1.5"},
        {"payment_type": "   "},
        {"items": [{"product_id": 1, "quantity": 0}]},
        {"items": "not-a-list"},
    ])
    def test_invalid_input(self, actor_a, kwargs):
        with pytest.raises(InvalidArgument):
            sales_service.create_sale(actor_a, **kwargs)


class TestTotals:

    def test_discount_larger_than_subtotal_gives_negative_total(self, actor_a, sale_1, product_p):
        sale_item_service.create_sale_item(sale_1.id, product_p.id, 1, 200, actor_a)

        sales_service.update_sale(sale_1.id, {"discount_cents": 500, "tax_cents": 50}, actor_a)

        assert total_of(sale_1.id) == 200 + 50 - 500

    def test_tax_change_recomputes_total(self, actor_a, sale_1, product_p):
        sale_item_service.create_sale_item(sale_1.id, product_p.id, 3, 200, actor_a)

        sale = sales_service.update_sale(sale_1.id, {"tax_cents": 60}, actor_a)

        assert sale.total_cents == 660

    def test_recalculate_total_matches_items(self, db_session, actor_a, sale_1, product_p, product_q):
        sale_item_service.create_sale_item(sale_1.id, product_p.id, 2, 200, actor_a)
        sale_item_service.create_sale_item(sale_1.id, product_q.id, 1, 500, actor_a)

        sale = sales_service.recalculate_total(sale_1.id)
        db_session.commit()

        assert sale.total_cents == 900
        assert sales_service.compute_subtotal_cents(sale_1.id) == 900

    def test_recalculate_unknown_sale(self, db_session):
        with pytest.raises(SaleNotFound):
            sales_service.recalculate_total(999)


class TestUpdateSale:

    def test_total_is_not_writable(self, actor_a, sale_1):
        with pytest.raises(InvalidArgument):
            sales_service.update_sale(sale_1.id, {"total_cents": 1}, actor_a)

    def test_empty_patch(self, actor_a, sale_1):
        with pytest.raises(InvalidArgument):
            sales_service.update_sale(sale_1.id, {}, actor_a)

    def test_other_cashier_denied(self, actor_b, sale_1):
        with pytest.raises(AccessDenied):
            sales_service.update_sale(sale_1.id, {"payment_type": "Card"}, actor_b)

    def test_cashier_can_complete_own_sale(self, actor_a, sale_1):
        sale = sales_service.update_sale(sale_1.id, {"status": "completed"}, actor_a)
        assert sale.status == "completed"

    def test_cashier_cannot_cancel_through_update(self, actor_a, sale_1):
        with pytest.raises(AccessDenied):
            sales_service.update_sale(sale_1.id, {"status": "cancelled"}, actor_a)


class TestCancelSale:

    def test_manager_cancels_and_reservations_stay(self, manager, actor_a, sale_1, product_p):
        sale_item_service.create_sale_item(sale_1.id, product_p.id, 4, 200, actor_a)

        sale = sales_service.cancel_sale(sale_1.id, manager)

        assert sale.status == "cancelled"
        assert item_count(sale_1.id) == 1
        assert stock_of(product_p.id) == 6

    def test_owner_cashier_cannot_cancel(self, actor_a, sale_1):
        with pytest.raises(AccessDenied):
            sales_service.cancel_sale(sale_1.id, actor_a)

    def test_unknown_sale(self, admin):
        with pytest.raises(SaleNotFound):
            sales_service.cancel_sale(999, admin)


class TestReadSales:

    def test_cashier_sees_only_own_sales(self, actor_a, admin, sale_1, sale_2):
        assert [s.id for s in sales_service.list_sales(actor_a)] == [sale_1.id]
        assert {s.id for s in sales_service.list_sales(admin)} == {sale_1.id, sale_2.id}

    def test_status_filter(self, admin, sale_1, sale_2):
        sales_service.update_sale(sale_2.id, {"status": "completed"}, admin)

        assert [s.id for s in sales_service.list_sales(admin, status="completed")] == [sale_2.id]

    def test_get_sale_of_other_cashier_denied(self, actor_b, sale_1):
        with pytest.raises(AccessDenied):
            sales_service.get_sale(sale_1.id, actor_b)

    def test_get_sale_rejects_bad_id(self, actor_a):
        with pytest.raises(InvalidArgument):
            sales_service.get_sale("abc", actor_a)

    def test_paging(self, admin, sale_1, sale_2):
        everything = [s.id for s in sales_service.list_sales(admin)]

        assert [s.id for s in sales_service.list_sales(admin, limit="1")] == everything[:1]
        assert [s.id for s in sales_service.list_sales(admin, offset=1)] == everything[1:]

    @pytest.mark.parametrize("paging", [{"limit": "abc"}, {"limit": -3}, {"offset": -1}, {"offset": "1e2"}])
    def test_malformed_paging_rejected(self, admin, sale_1, paging):
        with pytest.raises(InvalidArgument):
            sales_service.list_sales(admin, **paging)
