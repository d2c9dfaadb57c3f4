# Overview: Pytest coverage for purchases and the stock they feed.

"""
Purchase / Stock Tests

- A purchase line restocks the traditional item and always creates a lot
- Editing a purchase reverses the original quantities before reapplying
- Deleting a purchase reverses stock, drops its lots and its payments
- Sale lines sold from a deleted lot keep the sale and lose the lot link
- Initial payment is validated against the computed total
- Manual stock screen: duplicates, version conflicts, lot sync
"""

from datetime import date

import pytest

from officine.models import Payment, Sale, StockItem, StockLot
from officine.services import payment_service, purchase_service, sales_service, stock_service, totals
from officine.services.payment_service import PaymentError
from officine.services.policy_service import PermissionDeniedError
from officine.validation import ConflictError, ValidationError


def _line(product="Doliprane 1g", quantity=10, unit=1500, sale=2200, **extra):
    return {"product_name": product, "quantity": quantity, "unit_price_cents": unit, "sale_price_cents": sale, **extra}


def _purchase(identity, *lines, **header):
    payload = {"supplier": "Cooper Pharma", "date": "2026-03-02", "lines": list(lines) or [_line()]}
    payload.update(header)
    return purchase_service.create_purchase(identity, payload)


def _item(db_session, societe_id, product="Doliprane 1g"):
    return db_session.query(StockItem).filter_by(societe_id=societe_id, name_key=product.lower()).one()


class TestRestock:

    def test_new_product_creates_item_and_lot(self, db_session, tenant_a, ident):
        purchase = _purchase(ident(tenant_a.docteur), _line(expiry_date="2027-06-30", lot_number="L-2401"))

        item = _item(db_session, tenant_a.societe.id)
        assert item.quantity == 10
        assert item.purchase_price_cents == 1500
        assert item.sale_price_cents == 2200
        assert item.threshold == 5
        assert item.expiry_date == date(2027, 6, 30)

        lot = db_session.query(StockLot).filter_by(purchase_id=purchase.id).one()
        assert lot.lot_number == "L-2401"
        assert lot.quantity == lot.initial_quantity == 10
        assert lot.supplier == "Cooper Pharma"
        assert lot.received_on == date(2026, 3, 2)

    def test_existing_product_adds_quantity(self, db_session, tenant_a, ident):
        identity = ident(tenant_a.docteur)
        _purchase(identity, _line(quantity=10, unit=1500))
        _purchase(identity, _line(product="  DOLIPRANE 1g ", quantity=4, unit=1600, sale=None))

        item = _item(db_session, tenant_a.societe.id)
        assert item.quantity == 14
        assert item.purchase_price_cents == 1600
        assert item.sale_price_cents == 2200
        assert db_session.query(StockLot).filter_by(societe_id=tenant_a.societe.id).count() == 2

    def test_lot_number_is_generated(self, db_session, tenant_a, ident):
        purchase = _purchase(ident(tenant_a.docteur))
        lot = db_session.query(StockLot).filter_by(purchase_id=purchase.id).one()
        assert lot.lot_number.startswith("LOT")
        assert len(lot.lot_number) == 9

    def test_totals_and_status(self, tenant_a, ident):
        purchase = _purchase(
            ident(tenant_a.docteur),
            _line(quantity=2, unit=1000),
            _line(product="Smecta", quantity=1, unit=500, discount_cents=100),
            global_discount_cents=400,
        )
        assert purchase.total_cents == 2000
        assert purchase.payment_status == totals.PAYMENT_STATUS_UNPAID

    def test_empty_lines_rejected(self, tenant_a, ident):
        with pytest.raises(ValidationError):
            purchase_service.create_purchase(ident(tenant_a.docteur), {"supplier": "X", "lines": []})

    def test_zero_quantity_rejected(self, db_session, tenant_a, ident):
        with pytest.raises(ValidationError):
            _purchase(ident(tenant_a.docteur), _line(quantity=0))
        assert db_session.query(StockItem).count() == 0

    def test_vendeuse_cannot_purchase(self, tenant_a, ident):
        with pytest.raises(PermissionDeniedError):
            _purchase(ident(tenant_a.vendeuse))


class TestInitialPayment:

    def test_partial_initial_payment(self, db_session, tenant_a, ident):
        purchase = _purchase(ident(tenant_a.docteur), initial_payment={"amount_cents": 5000, "mode": "Chèque"})

        assert purchase.paid_cents == 5000
        assert purchase.payment_status == totals.PAYMENT_STATUS_PARTIAL
        payment = db_session.query(Payment).filter_by(kind="purchase", document_id=purchase.id).one()
        assert payment.mode == "Chèque"

    def test_full_initial_payment(self, tenant_a, ident):
        purchase = _purchase(ident(tenant_a.docteur), initial_payment={"amount_cents": 15000})
        assert purchase.payment_status == totals.PAYMENT_STATUS_PAID

    def test_overpaying_initial_payment_writes_nothing(self, db_session, tenant_a, ident):
        with pytest.raises(PaymentError):
            _purchase(ident(tenant_a.docteur), initial_payment={"amount_cents": 15001})
        assert db_session.query(StockItem).count() == 0
        assert db_session.query(Payment).count() == 0


class TestEditAndDelete:

    def test_edit_reverses_then_reapplies(self, db_session, tenant_a, ident):
        identity = ident(tenant_a.docteur)
        purchase = _purchase(identity, _line(quantity=10))

        purchase_service.update_purchase(identity, purchase.id, {"lines": [_line(quantity=6)]})

        assert _item(db_session, tenant_a.societe.id).quantity == 6
        lots = db_session.query(StockLot).filter_by(purchase_id=purchase.id).all()
        assert [lot.quantity for lot in lots] == [6]

    def test_edit_header_only_keeps_stock(self, db_session, tenant_a, ident):
        identity = ident(tenant_a.docteur)
        purchase = _purchase(identity)

        updated = purchase_service.update_purchase(identity, purchase.id, {"supplier": "Sothema"})

        assert updated.supplier == "Sothema"
        assert _item(db_session, tenant_a.societe.id).quantity == 10

    def test_edit_below_paid_amount_rejected(self, tenant_a, ident):
        identity = ident(tenant_a.docteur)
        purchase = _purchase(identity, initial_payment={"amount_cents": 12000})

        with pytest.raises(ValidationError):
            purchase_service.update_purchase(identity, purchase.id, {"lines": [_line(quantity=1)]})

    def test_delete_reverses_stock_and_drops_payments(self, db_session, tenant_a, ident):
        identity = ident(tenant_a.docteur)
        purchase = _purchase(identity, initial_payment={"amount_cents": 1000})
        purchase_id = purchase.id

        purchase_service.delete_purchase(identity, purchase_id)

        assert _item(db_session, tenant_a.societe.id).quantity == 0
        assert db_session.query(StockLot).filter_by(purchase_id=purchase_id).count() == 0
        assert db_session.query(Payment).filter_by(kind="purchase", document_id=purchase_id).count() == 0

    def test_delete_floors_stock_at_zero(self, db_session, tenant_a, ident):
        identity = ident(tenant_a.docteur)
        purchase = _purchase(identity, _line(quantity=5))
        sales_service.create_sale(identity, {"lines": [{"product_name": "Doliprane 1g", "quantity": 3}]})

        purchase_service.delete_purchase(identity, purchase.id)
        assert _item(db_session, tenant_a.societe.id).quantity == 0

    def test_list_filters(self, tenant_a, ident):
        identity = ident(tenant_a.docteur)
        _purchase(identity, supplier="Cooper Pharma", date="2026-01-10")
        _purchase(identity, supplier="Sothema", date="2026-02-10", initial_payment={"amount_cents": 15000})

        assert [p.supplier for p in purchase_service.list_purchases(identity, supplier="coop")] == ["Cooper Pharma"]
        assert len(purchase_service.list_purchases(identity, date_from=date(2026, 2, 1))) == 1
        paid = purchase_service.list_purchases(identity, payment_status=totals.PAYMENT_STATUS_PAID)
        assert [p.supplier for p in paid] == ["Sothema"]


class TestLotsSoldFrom:
    """Lots referenced by sale lines, with foreign keys enforced."""

    @staticmethod
    def _sell_from_purchase_lot(db_session, identity, purchase, quantity=2):
        lot = db_session.query(StockLot).filter_by(purchase_id=purchase.id).one()
        sale = sales_service.create_sale(identity, {
            "lines": [{"product_name": "Doliprane 1g", "quantity": quantity, "stock_lot_id": lot.id}],
        })
        return lot.id, sale.id

    def test_delete_purchase_after_lot_sale(self, db_session, strict_tenant_a, ident):
        identity = ident(strict_tenant_a.docteur)
        purchase = _purchase(identity, _line(quantity=10))
        lot_id, sale_id = self._sell_from_purchase_lot(db_session, identity, purchase)

        purchase_service.delete_purchase(identity, purchase.id)

        assert db_session.get(StockLot, lot_id) is None
        sale = db_session.get(Sale, sale_id)
        assert sale.lines[0].stock_lot_id is None
        assert sale.lines[0].quantity == 2
        assert _item(db_session, strict_tenant_a.societe.id).quantity == 0

    def test_edit_purchase_after_lot_sale(self, db_session, strict_tenant_a, ident):
        identity = ident(strict_tenant_a.docteur)
        purchase = _purchase(identity, _line(quantity=10))
        lot_id, sale_id = self._sell_from_purchase_lot(db_session, identity, purchase)

        purchase_service.update_purchase(identity, purchase.id, {"lines": [_line(quantity=12)]})

        assert db_session.get(StockLot, lot_id) is None
        assert db_session.get(Sale, sale_id).lines[0].stock_lot_id is None
        # 8 left after the sale, 10 reversed (floored at 0), 12 restocked
        assert _item(db_session, strict_tenant_a.societe.id).quantity == 12
        lots = db_session.query(StockLot).filter_by(purchase_id=purchase.id).all()
        assert [lot.quantity for lot in lots] == [12]

    def test_delete_manual_lot_after_sale(self, db_session, strict_tenant_a, ident):
        identity = ident(strict_tenant_a.docteur)
        stock_service.create_item(identity, {"product_name": "Smecta", "quantity": 4})
        lot = stock_service.create_lot(identity, {"product_name": "Smecta", "quantity": 4, "lot_number": "SM-01"})
        lot_id = lot.id
        sale = sales_service.create_sale(identity, {
            "lines": [{"product_name": "Smecta", "quantity": 1, "stock_lot_id": lot_id}],
        })
        sale_id = sale.id

        stock_service.delete_lot(identity, lot_id)

        assert db_session.get(StockLot, lot_id) is None
        assert db_session.get(Sale, sale_id).lines[0].stock_lot_id is None


class TestStockScreen:

    def test_create_item_uses_default_threshold(self, tenant_a, ident):
        item = stock_service.create_item(ident(tenant_a.docteur), {"product_name": "Smecta", "quantity": 3})
        assert item.threshold == 5
        assert item.is_low_stock
        assert not item.is_out_of_stock

    def test_duplicate_product_rejected(self, tenant_a, ident):
        identity = ident(tenant_a.docteur)
        stock_service.create_item(identity, {"product_name": "Smecta"})
        with pytest.raises(ConflictError):
            stock_service.create_item(identity, {"product_name": " SMECTA "})

    def test_negative_quantity_rejected(self, tenant_a, ident):
        with pytest.raises(ValidationError):
            stock_service.create_item(ident(tenant_a.docteur), {"product_name": "Smecta", "quantity": -1})

    def test_stale_version_conflicts(self, tenant_a, ident):
        identity = ident(tenant_a.docteur)
        item = stock_service.create_item(identity, {"product_name": "Smecta", "quantity": 3})
        version = item.version_id

        stock_service.update_item(identity, item.id, {"quantity": 8, "version_id": version})
        with pytest.raises(ConflictError):
            stock_service.update_item(identity, item.id, {"quantity": 1, "version_id": version})
        assert item.quantity == 8

    def test_low_and_out_of_stock_filters(self, tenant_a, ident):
        identity = ident(tenant_a.docteur)
        stock_service.create_item(identity, {"product_name": "Smecta", "quantity": 3})
        stock_service.create_item(identity, {"product_name": "Spasfon", "quantity": 0})
        stock_service.create_item(identity, {"product_name": "Voltarene", "quantity": 40})

        low = stock_service.list_items(identity, low_stock_only=True)
        out = stock_service.list_items(identity, out_of_stock_only=True)
        assert [i.product_name for i in low] == ["Smecta"]
        assert [i.product_name for i in out] == ["Spasfon"]

    def test_sync_from_lots(self, db_session, tenant_a, ident):
        identity = ident(tenant_a.docteur)
        _purchase(identity, _line(quantity=10))
        stock_service.create_lot(identity, {"product_name": "Doliprane 1g", "quantity": 7})
        item = _item(db_session, tenant_a.societe.id)
        assert item.quantity == 10

        synced = stock_service.sync_from_lots(identity, "doliprane 1g")
        assert synced.quantity == 17

    def test_sync_without_lots(self, tenant_a, ident):
        with pytest.raises(ValidationError):
            stock_service.sync_from_lots(ident(tenant_a.docteur), "Inconnu")

    def test_lots_listed_earliest_expiry_first(self, tenant_a, ident):
        identity = ident(tenant_a.docteur)
        stock_service.create_lot(identity, {"product_name": "Smecta", "quantity": 2, "expiry_date": "2027-05-01"})
        stock_service.create_lot(identity, {"product_name": "Smecta", "quantity": 2, "expiry_date": "2026-11-01"})
        stock_service.create_lot(identity, {"product_name": "Smecta", "quantity": 2})

        expiries = [lot.expiry_date for lot in stock_service.list_lots(identity, product_name="smecta")]
        assert expiries == [date(2026, 11, 1), date(2027, 5, 1), None]

    def test_vendeuse_reads_but_cannot_edit_stock(self, tenant_a, ident):
        item = stock_service.create_item(ident(tenant_a.docteur), {"product_name": "Smecta"})
        vendeuse = ident(tenant_a.vendeuse)

        assert stock_service.get_item(vendeuse, item.id).id == item.id
        with pytest.raises(PermissionDeniedError):
            stock_service.delete_item(vendeuse, item.id)


def test_payment_modes_are_fixed():
    assert payment_service.PAYMENT_MODES == ("Espèces", "Carte", "Chèque", "Virement", "Autre")


def test_stock_invariants_are_the_module_docstring():
    assert "Stock invariants" in stock_service.__doc__
