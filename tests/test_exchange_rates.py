from datetime import date

import pytest

from ledger_engine import models
from ledger_engine.core.errors import NotFoundError, ValidationError
from ledger_engine.services import exchange_rates

from conftest import USD_RATE


def test_base_currency_account_resolves_to_one_without_rate_rows(db_session, ledger):
    assert exchange_rates.resolve_rate(db_session, ledger.aed_bank.id, date(2020, 1, 1)) == 1.0


def test_account_without_currency_is_treated_as_base(db_session, ledger):
    petty = models.BankAccount(bank_name="Petty cash box")
    db_session.add(petty)
    db_session.commit()

    assert exchange_rates.resolve_rate(db_session, petty.id, date(2026, 6, 1)) == 1.0


def test_latest_rate_on_or_before_date_wins(db_session, ledger):
    exchange_rates.add_rate(
        db_session, account_id=ledger.usd_bank.id, effective_from=date(2026, 3, 1), rate_to_base=3.70, actor_id=7
    )
    db_session.commit()

    assert exchange_rates.resolve_rate(db_session, ledger.usd_bank.id, date(2026, 2, 28)) == pytest.approx(USD_RATE)
    assert exchange_rates.resolve_rate(db_session, ledger.usd_bank.id, date(2026, 3, 1)) == pytest.approx(3.70)
    assert exchange_rates.resolve_rate(db_session, ledger.usd_bank.id, date(2027, 1, 1)) == pytest.approx(3.70)


def test_no_rate_before_first_entry(db_session, ledger):
    assert exchange_rates.resolve_rate(db_session, ledger.usd_bank.id, date(2025, 12, 31)) is None

    with pytest.raises(ValidationError) as exc:
        exchange_rates.require_rate(db_session, ledger.usd_bank.id, date(2025, 12, 31), currency_code="USD")
    assert "USD" in exc.value.message
    assert exc.value.details["date"] == "2025-12-31"


def test_add_rate_rejects_duplicates_and_non_positive_rates(db_session, ledger):
    with pytest.raises(ValidationError):
        exchange_rates.add_rate(
            db_session, account_id=ledger.usd_bank.id, effective_from=date(2026, 1, 1), rate_to_base=3.8, actor_id=None
        )
    with pytest.raises(ValidationError):
        exchange_rates.add_rate(
            db_session, account_id=ledger.usd_bank.id, effective_from=date(2026, 5, 1), rate_to_base=0, actor_id=None
        )


def test_unknown_account_and_rate_are_not_found(db_session, ledger):
    with pytest.raises(NotFoundError):
        exchange_rates.resolve_rate(db_session, 9999, date(2026, 1, 1))
    with pytest.raises(NotFoundError):
        exchange_rates.delete_rate(db_session, account_id=ledger.aed_bank.id, rate_id=1)


def test_list_rates_newest_first(db_session, ledger):
    exchange_rates.add_rate(
        db_session, account_id=ledger.usd_bank.id, effective_from=date(2026, 4, 1), rate_to_base=3.68, actor_id=None
    )
    db_session.commit()

    rows = exchange_rates.list_rates(db_session, ledger.usd_bank.id)
    assert [r.effective_from for r in rows] == [date(2026, 4, 1), date(2026, 1, 1)]


def test_account_with_dangling_currency_id_skips_lookup(db_session, ledger):
    orphan = models.BankAccount(bank_name="Orphan account", currency_id=4242)
    db_session.add(orphan)
    db_session.commit()
    db_session.add(
        models.BankExchangeRate(bank_account_id=orphan.id, effective_from=date(2026, 1, 1), rate_to_base=3.9)
    )
    db_session.commit()

    assert exchange_rates.resolve_rate(db_session, orphan.id, date(2026, 6, 1)) == 1.0
