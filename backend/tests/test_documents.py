# Overview: Pytest coverage for quotes, invoices and grouped invoices.

import pytest

from officine.models import Document, Payment
from officine.services import document_service, payment_service, sales_service, stock_service
from officine.services.policy_service import PermissionDeniedError
from officine.validation import ConflictError, ValidationError


def _doc(identity, doc_type="FACT", client="Clinique Atlas", **extra):
    payload = {
        "type": doc_type,
        "client": client,
        "lines": [{"product_name": "Smecta", "quantity": 2, "unit_price_cents": 3100}],
    }
    payload.update(extra)
    return document_service.create_document(identity, payload)


@pytest.fixture
def two_sales(tenant_a, ident):
    """Two counter sales of tenant A, each with its own global discount."""
    docteur = ident(tenant_a.docteur)
    stock_service.create_item(docteur, {"product_name": "Smecta", "quantity": 20})
    stock_service.create_item(docteur, {"product_name": "Spasfon", "quantity": 20})
    first = sales_service.create_sale(docteur, {
        "client": "Mme Alaoui",
        "global_discount_cents": 100,
        "lines": [{"product_name": "Smecta", "quantity": 2, "unit_price_cents": 3100}],
    })
    second = sales_service.create_sale(docteur, {
        "client": "Mme Alaoui",
        "global_discount_cents": 50,
        "lines": [{"product_name": "Spasfon", "quantity": 1, "unit_price_cents": 2500, "discount_cents": 200}],
    })
    return first, second


class TestNumbering:

    def test_sequences_per_type(self, tenant_a, ident):
        docteur = ident(tenant_a.docteur)
        assert _doc(docteur).number == "FACT0001"
        assert _doc(docteur).number == "FACT0002"
        assert _doc(docteur, doc_type="DEV").number == "DEV0001"
        assert document_service.next_document_number(tenant_a.societe.id, "FACT") == "FACT0003"

    def test_sequences_per_societe(self, tenant_a, tenant_b, ident):
        _doc(ident(tenant_a.docteur))
        assert _doc(ident(tenant_b.docteur)).number == "FACT0001"

    def test_deleted_number_is_not_reused_below_max(self, tenant_a, ident):
        docteur = ident(tenant_a.docteur)
        first = _doc(docteur)
        _doc(docteur)
        document_service.delete_document(docteur, first.id)
        assert _doc(docteur).number == "FACT0003"

    def test_unknown_type_rejected(self, tenant_a, ident):
        with pytest.raises(ValidationError):
            _doc(ident(tenant_a.docteur), doc_type="BL")

    def test_client_required(self, tenant_a, ident):
        with pytest.raises(ValidationError):
            _doc(ident(tenant_a.docteur), client="")


class TestGroupedInvoice:

    def test_lines_and_discount_are_merged(self, tenant_a, ident, two_sales):
        first, second = two_sales
        invoice = document_service.create_grouped_invoice(
            ident(tenant_a.docteur), {"sale_ids": [first.id, second.id]}
        )

        assert invoice.doc_type == "FACT"
        assert invoice.client == "Mme Alaoui"
        assert [line.product_name for line in invoice.lines] == ["Smecta", "Spasfon"]
        assert invoice.global_discount_cents == 150
        assert invoice.total_cents == first.total_cents + second.total_cents
        assert {s.id for s in invoice.sales} == {first.id, second.id}

    def test_already_invoiced_sale_rejected(self, tenant_a, ident, two_sales):
        first, second = two_sales
        docteur = ident(tenant_a.docteur)
        document_service.create_grouped_invoice(docteur, {"sale_ids": [first.id]})

        with pytest.raises(ConflictError):
            document_service.create_grouped_invoice(docteur, {"sale_ids": [first.id, second.id]})

    def test_cancelling_releases_sales(self, tenant_a, ident, two_sales):
        first, _ = two_sales
        docteur = ident(tenant_a.docteur)
        invoice = document_service.create_grouped_invoice(docteur, {"sale_ids": [first.id]})

        document_service.cancel_document(docteur, invoice.id)
        again = document_service.create_grouped_invoice(docteur, {"sale_ids": [first.id]})
        assert again.number == "FACT0002"

    def test_empty_selection_rejected(self, tenant_a, ident):
        with pytest.raises(ValidationError):
            document_service.create_grouped_invoice(ident(tenant_a.docteur), {"sale_ids": []})


class TestLifecycle:

    def test_update_lines(self, tenant_a, ident):
        docteur = ident(tenant_a.docteur)
        doc = _doc(docteur)

        updated = document_service.update_document(docteur, doc.id, {
            "lines": [{"product_name": "Smecta", "quantity": 5, "unit_price_cents": 3100}],
        })
        assert updated.total_cents == 15500
        assert updated.number == "FACT0001"

    def test_type_is_immutable(self, tenant_a, ident):
        docteur = ident(tenant_a.docteur)
        doc = _doc(docteur)
        with pytest.raises(ValidationError):
            document_service.update_document(docteur, doc.id, {"type": "DEV"})

    def test_cancelled_document_is_frozen(self, tenant_a, ident):
        docteur = ident(tenant_a.docteur)
        doc = _doc(docteur)
        document_service.cancel_document(docteur, doc.id)

        with pytest.raises(ConflictError):
            document_service.update_document(docteur, doc.id, {"client": "Autre"})
        with pytest.raises(ConflictError):
            document_service.cancel_document(docteur, doc.id)

    def test_delete_drops_payments(self, db_session, tenant_a, ident):
        docteur = ident(tenant_a.docteur)
        doc_id = _doc(docteur).id
        payment_service.add_payment(docteur, "document", doc_id, {"amount_cents": 1000})

        document_service.delete_document(docteur, doc_id)
        assert db_session.get(Document, doc_id) is None
        assert db_session.query(Payment).filter_by(kind="document").count() == 0

    def test_vendeuse_cannot_delete(self, tenant_a, ident):
        doc = _doc(ident(tenant_a.vendeuse))
        with pytest.raises(PermissionDeniedError):
            document_service.delete_document(ident(tenant_a.vendeuse), doc.id)

    def test_list_excludes_cancelled_on_request(self, tenant_a, ident):
        docteur = ident(tenant_a.docteur)
        kept = _doc(docteur)
        cancelled = _doc(docteur)
        document_service.cancel_document(docteur, cancelled.id)

        ids = [d.id for d in document_service.list_documents(docteur, include_cancelled=False)]
        assert ids == [kept.id]
        assert len(document_service.list_documents(docteur, doc_type="FACT")) == 2
