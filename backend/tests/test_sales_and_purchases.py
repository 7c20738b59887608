# Overview: Pytest coverage for sales, voids, purchases and expenses.

"""
Sales & Purchase Tests

Verifies:
- A sale deducts BOM consumption for the whole cart, or nothing
- The BOM is snapshotted on the line so later recipe edits do not rewrite history
- Voiding restores stock and is allowed once
- A purchase credits stock and books an AUTO_PURCHASE expense under BELANJA STOK
- Cashiers may only buy items flagged for cashier purchase
"""

from decimal import Decimal

import pytest

from app.errors import (
    AuthorizationFailedError, InsufficientStockError, InvalidStateError, NotFoundError,
)
from app.models import Expense, Transaction
from app.services import event_store, purchase_service, sales_service


def D(value) -> Decimal:
    return Decimal(str(value))


@pytest.fixture
def es_teh(db_session, outlet, make_item):
    syrup = make_item(outlet, "Syrup", quantity=100, unit="ml", cost_per_unit=20)
    tea = make_item(outlet, "Teh Seduh", quantity=1000, unit="ml", cost_per_unit=2)
    product = sales_service.create_product(
        "Es Teh Manis", 8000,
        [
            {"inventory_item_id": syrup.id, "quantity": 30},
            {"inventory_item_id": tea.id, "quantity": 200},
        ],
        category="Minuman",
    )
    db_session.commit()
    return product, syrup, tea


class TestRecordSale:

    def test_deducts_bom_and_totals(self, db_session, outlet, cashier, es_teh, at):
        product, syrup, tea = es_teh

        tx = sales_service.record_sale(
            outlet.id, cashier.id, [{"product_id": product.id, "quantity": 3}], "cash", now=at(9),
        )
        db_session.commit()

        assert syrup.quantity == D(10)
        assert tea.quantity == D(400)
        assert tx.payment_method == "CASH"
        assert tx.status == "CLOSED"
        assert tx.subtotal == tx.total == 24000
        assert tx.total_cost == 90 * 20 + 600 * 2
        assert tx.lines[0].bom_snapshot[0]["item_name"] == "Syrup"

    def test_cart_is_all_or_nothing(self, db_session, outlet, cashier, es_teh, at):
        product, syrup, tea = es_teh

        with pytest.raises(InsufficientStockError) as exc:
            sales_service.record_sale(
                outlet.id, cashier.id,
                [
                    {"product_id": product.id, "quantity": 2},
                    {"product_id": product.id, "quantity": 2},
                ],
                "CASH", now=at(9),
            )

        assert exc.value.item_name == "Syrup"
        db_session.rollback()
        assert syrup.quantity == D(100)
        assert tea.quantity == D(1000)
        assert db_session.query(Transaction).count() == 0

    def test_missing_local_item_is_skipped(self, db_session, second_outlet, second_cashier, es_teh, make_item, at):
        """Outlet without a Teh Seduh row still sells; only Syrup is deducted there."""
        product, _, _ = es_teh
        local_syrup = make_item(second_outlet, "Syrup", quantity=50, unit="ml")

        sales_service.record_sale(
            second_outlet.id, second_cashier.id, [{"product_id": product.id, "quantity": 1}], "QRIS",
            now=at(9),
        )
        db_session.commit()

        assert local_syrup.quantity == D(20)

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, "2"])
    def test_line_quantity_must_be_positive_int(self, db_session, outlet, cashier, es_teh, quantity, at):
        product, _, _ = es_teh

        with pytest.raises(ValueError):
            sales_service.record_sale(
                outlet.id, cashier.id, [{"product_id": product.id, "quantity": quantity}], "CASH", now=at(9),
            )

    def test_unknown_payment_method(self, db_session, outlet, cashier, es_teh, at):
        product, _, _ = es_teh

        with pytest.raises(ValueError):
            sales_service.record_sale(
                outlet.id, cashier.id, [{"product_id": product.id, "quantity": 1}], "DEBIT", now=at(9),
            )

    def test_unknown_product(self, db_session, outlet, cashier, at):
        with pytest.raises(NotFoundError):
            sales_service.record_sale(outlet.id, cashier.id, [{"product_id": 999, "quantity": 1}], "CASH", now=at(9))


class TestVoidSale:

    def test_void_restores_stock_once(self, db_session, outlet, cashier, manager, es_teh, at):
        product, syrup, tea = es_teh
        tx = sales_service.record_sale(
            outlet.id, cashier.id, [{"product_id": product.id, "quantity": 2}], "CASH", now=at(9),
        )
        db_session.commit()

        voided = sales_service.void_sale(tx.id, outlet.id, manager.id, "Salah input", now=at(9, 5))
        db_session.commit()

        assert voided.status == "VOIDED"
        assert voided.void_reason == "Salah input"
        assert syrup.quantity == D(100)
        assert tea.quantity == D(1000)

        with pytest.raises(InvalidStateError):
            sales_service.void_sale(tx.id, outlet.id, manager.id, now=at(9, 10))

    def test_void_from_other_outlet_not_found(self, db_session, outlet, second_outlet, cashier, manager, es_teh, at):
        product, _, _ = es_teh
        tx = sales_service.record_sale(
            outlet.id, cashier.id, [{"product_id": product.id, "quantity": 1}], "CASH", now=at(9),
        )
        db_session.commit()

        with pytest.raises(NotFoundError):
            sales_service.void_sale(tx.id, second_outlet.id, manager.id, now=at(9, 5))


class TestPurchases:

    def test_purchase_credits_stock_and_books_expense(self, db_session, outlet, manager, make_item, at):
        syrup = make_item(outlet, "Syrup", quantity=10, unit="ml")

        purchase = purchase_service.record_purchase(
            outlet.id, manager.id, manager.role, syrup.id, "500.5", 42000, now=at(9),
        )
        db_session.commit()

        assert syrup.quantity == D("510.5")
        assert purchase.item_name == "Syrup"
        expense = purchase.expense
        assert expense.source == "AUTO_PURCHASE"
        assert expense.category == "BELANJA STOK"
        assert expense.amount == 42000
        assert expense.occurred_at == at(9)

        auto = event_store.list_expenses(outlet_id=outlet.id, source="AUTO_PURCHASE")
        assert [e.id for e in auto] == [expense.id]

    def test_cashier_needs_purchase_flag(self, db_session, outlet, cashier, make_item, at):
        syrup = make_item(outlet, "Syrup", quantity=10, unit="ml", can_cashier_purchase=False)

        with pytest.raises(AuthorizationFailedError):
            purchase_service.record_purchase(
                outlet.id, cashier.id, cashier.role, syrup.id, 5, 1000, now=at(9),
            )
        db_session.rollback()
        assert syrup.quantity == D(10)
        assert db_session.query(Expense).count() == 0

    def test_purchase_item_must_belong_to_outlet(self, db_session, outlet, second_outlet, manager, make_item, at):
        remote = make_item(second_outlet, "Syrup", quantity=10, unit="ml")

        with pytest.raises(NotFoundError):
            purchase_service.record_purchase(
                outlet.id, manager.id, manager.role, remote.id, 5, 1000, now=at(9),
            )

    @pytest.mark.parametrize("price", [-1, 10.5, "1000"])
    def test_price_must_be_rupiah_int(self, db_session, outlet, manager, make_item, price, at):
        syrup = make_item(outlet, "Syrup", quantity=10, unit="ml")

        with pytest.raises(ValueError):
            purchase_service.record_purchase(outlet.id, manager.id, manager.role, syrup.id, 5, price, now=at(9))


class TestExpenses:

    def test_manual_expense(self, db_session, outlet, cashier, at):
        expense_type = purchase_service.create_expense_type("  gas ")

        expense = purchase_service.record_expense(outlet.id, cashier.id, expense_type.id, 25000, "Tabung", now=at(9))
        db_session.commit()

        assert expense_type.name == "GAS"
        assert expense.source == "MANUAL"
        assert expense.category == "GAS"
        assert expense.purchase_id is None

    def test_amount_must_be_positive(self, db_session, outlet, cashier, at):
        expense_type = purchase_service.create_expense_type("Gas")

        with pytest.raises(ValueError):
            purchase_service.record_expense(outlet.id, cashier.id, expense_type.id, 0, now=at(9))

    def test_duplicate_type_rejected(self, db_session):
        purchase_service.create_expense_type("Gas")

        with pytest.raises(ValueError):
            purchase_service.create_expense_type("GAS")
