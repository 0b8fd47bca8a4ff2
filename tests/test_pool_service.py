import pytest

from splitvault.extensions import db
from splitvault.models import LedgerEvent
from splitvault.services.errors import (
    InsufficientBalanceError, InvalidAmountError, ReentrancyDetectedError,
    TransferFailedError
)
from splitvault.services.guard import pool_guard
from splitvault.services.pool_service import (
    accrued_yield, get_user_batches, get_user_principal, get_user_yield, supply, withdraw
)

DAY = 24 * 60 * 60


@pytest.fixture
def supply_from(app, port):
    def _supply(user, amount):
        port.mint(user, amount)
        port.approve(user, app.config['POOL_ADDRESS'], amount)
        batch = supply(amount, on_behalf_of=user, source=user)
        db.session.commit()
        return batch
    return _supply


def pool_balance(app, port):
    return port.balance_of(app.config['POOL_ADDRESS'])


def test_supply_records_batch_and_takes_custody(app, port, clock, supply_from):
    batch = supply_from('alice', 1000)

    assert batch.slot == 0
    assert batch.amount == 1000
    assert batch.principal == 1000
    assert batch.deposited_at == clock.now
    assert port.balance_of('alice') == 0
    assert pool_balance(app, port) == 1000


def test_supply_without_allowance_fails(app, port):
    port.mint('alice', 100)
    db.session.commit()

    with pytest.raises(TransferFailedError):
        supply(100, on_behalf_of='alice', source='alice')
    db.session.rollback()
    assert get_user_batches('alice') == []


def test_supply_rejects_zero(app):
    with pytest.raises(InvalidAmountError):
        supply(0, on_behalf_of='alice', source='alice')


def test_round_trip_without_elapsed_time_returns_principal(app, port, supply_from):
    supply_from('alice', 1000)

    total = withdraw(1000, owner='alice', to='bob')
    db.session.commit()

    assert total == 1000
    assert port.balance_of('bob') == 1000
    assert get_user_batches('alice') == []
    assert pool_balance(app, port) == 0


def test_one_year_accrual_at_five_percent(app, port, clock, year, supply_from):
    supply_from('alice', 1234)
    clock.advance(year)

    total = withdraw(1234, owner='alice', to='alice')
    db.session.commit()

    assert total == 1234 + (1234 * 5 // 100)
    assert port.balance_of('alice') == total


def test_partial_withdrawal_across_batches(app, port, clock, year, supply_from):
    start = clock.now
    supply_from('alice', 1000)
    clock.advance(100 * DAY)
    supply_from('alice', 500)
    clock.now = start + year

    total = withdraw(1200, owner='alice', to='bob')
    db.session.commit()

    first_yield = 1000 * 5 // 100
    second_yield = 200 * 5 * (year - 100 * DAY) // (100 * year)
    assert total == 1200 + first_yield + second_yield

    batches = get_user_batches('alice')
    assert len(batches) == 1
    remaining = batches[0]
    assert remaining.slot == 0
    assert remaining.amount == 300
    assert remaining.principal == 500
    assert remaining.deposited_at == start + 100 * DAY

    assert pool_balance(app, port) == get_user_principal('alice') == 300


def test_drained_batch_is_replaced_by_last(app, supply_from):
    supply_from('alice', 100)
    supply_from('alice', 200)
    supply_from('alice', 300)

    withdraw(100, owner='alice', to='alice')
    db.session.commit()

    batches = get_user_batches('alice')
    assert [(b.slot, b.amount) for b in batches] == [(0, 300), (1, 200)]


def test_withdraw_without_deposit_fails_and_transfers_nothing(app, port):
    with pytest.raises(InsufficientBalanceError):
        withdraw(10, owner='mallory', to='mallory')
    db.session.rollback()

    assert port.balance_of('mallory') == 0
    assert LedgerEvent.query.filter_by(event_type='PoolWithdrawn').count() == 0


def test_shortfall_leaves_batches_untouched(app, port, clock, year, supply_from):
    supply_from('alice', 100)
    clock.advance(year)

    with pytest.raises(InsufficientBalanceError):
        withdraw(150, owner='alice', to='alice')
    db.session.rollback()

    assert get_user_principal('alice') == 100
    assert port.balance_of('alice') == 0
    assert pool_balance(app, port) == 100


def test_get_user_yield_is_read_only(app, clock, year, supply_from):
    supply_from('alice', 1000)
    clock.advance(year // 2)
    supply_from('alice', 2000)
    clock.advance(year // 2)

    expected = accrued_yield(1000, clock.now - year) + accrued_yield(2000, clock.now - year // 2)
    assert get_user_yield('alice') == expected
    assert get_user_yield('alice') == expected
    assert get_user_principal('alice') == 3000


def test_accrued_yield_floors(app, year):
    assert accrued_yield(19, 0, year) == 0
    assert accrued_yield(20, 0, year) == 1
    assert accrued_yield(1000, 100, 50) == 0


def test_nested_pool_call_is_rejected(app, supply_from):
    supply_from('alice', 100)

    with pool_guard.hold():
        with pytest.raises(ReentrancyDetectedError):
            withdraw(100, owner='alice', to='alice')

    assert get_user_principal('alice') == 100
