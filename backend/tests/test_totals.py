# Overview: Pytest coverage for money arithmetic, document numbering and amounts in words.

from types import SimpleNamespace

import pytest

from officine.services import totals
from officine.services.document_service import next_number_from
from officine.services.print_service import amount_in_words, format_money, number_in_words


def _line(unit, qty, discount=0):
    return SimpleNamespace(unit_price_cents=unit, quantity=qty, discount_cents=discount)


class TestTotals:

    def test_line_total(self):
        assert totals.line_total(1250, 3, 150) == 3600
        assert totals.line_total(None, 2) == 0

    def test_document_total_with_global_discount(self):
        lines = [_line(1000, 2), _line(500, 1, 100)]
        assert totals.document_total(lines, 400) == 2000

    def test_document_total_floored_at_zero(self):
        assert totals.document_total([_line(100, 1)], 5000) == 0

    def test_balance(self):
        assert totals.balance(10000, 2500) == 7500
        assert totals.balance(10000, None) == 10000

    @pytest.mark.parametrize("total,paid,expected", [
        (10000, 0, totals.PAYMENT_STATUS_UNPAID),
        (10000, 1, totals.PAYMENT_STATUS_PARTIAL),
        (10000, 9999, totals.PAYMENT_STATUS_PARTIAL),
        (10000, 10000, totals.PAYMENT_STATUS_PAID),
        (0, 0, totals.PAYMENT_STATUS_UNPAID),
    ])
    def test_payment_status(self, total, paid, expected):
        assert totals.payment_status(total, paid) == expected


class TestNumbering:

    def test_first_number(self):
        assert next_number_from([], "FACT") == "FACT0001"

    def test_uses_max_suffix_not_count(self):
        assert next_number_from(["FACT0001", "FACT0007", "FACT0003"], "FACT") == "FACT0008"

    def test_ignores_unparseable_numbers(self):
        assert next_number_from(["FACT0002", "FACT-old", None, ""], "FACT") == "FACT0003"

    def test_quotes_have_their_own_prefix(self):
        assert next_number_from(["DEV0009"], "DEV") == "DEV0010"

    def test_grows_past_padding(self):
        assert next_number_from(["FACT9999"], "FACT") == "FACT10000"


class TestAmountInWords:

    @pytest.mark.parametrize("n,words", [
        (0, "zéro"),
        (1, "un"),
        (17, "dix-sept"),
        (21, "vingt et un"),
        (71, "soixante et onze"),
        (80, "quatre-vingts"),
        (81, "quatre-vingt-un"),
        (99, "quatre-vingt-dix-neuf"),
        (100, "cent"),
        (200, "deux cents"),
        (201, "deux cent un"),
        (1000, "mille"),
        (2500, "deux mille cinq cents"),
        (80000, "quatre-vingt mille"),
        (200000, "deux cent mille"),
        (1000000, "un million"),
    ])
    def test_number_in_words(self, n, words):
        assert number_in_words(n) == words

    def test_amount_in_words(self):
        assert amount_in_words(12345) == "cent vingt-trois dirhams et quarante-cinq centimes"
        assert amount_in_words(100) == "un dirham"
        assert amount_in_words(0) == "zéro dirham"

    def test_format_money(self):
        assert format_money(123456) == "1 234.56"
        assert format_money(None) == "0.00"
