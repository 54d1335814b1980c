import pytest

from staking_deployment.nonce import NonceManager


def test_refresh_reads_pending_count(fake_chain, nonces):
    fake_chain.nonce = 7
    assert nonces.is_stale
    assert nonces.refresh() == 7
    assert nonces.current == 7
    assert not nonces.is_stale


def test_next_is_strictly_increasing(fake_chain, nonces):
    fake_chain.nonce = 3
    nonces.refresh()
    assert [nonces.next() for _ in range(4)] == [3, 4, 5, 6]
    assert nonces.issued == [3, 4, 5, 6]
    assert nonces.current == 7


def test_next_requires_refresh(nonces):
    with pytest.raises(NonceManager.Stale):
        nonces.next()


def test_invalidate_forces_refresh(fake_chain, nonces):
    nonces.refresh()
    nonces.next()
    nonces.invalidate()
    assert nonces.is_stale
    with pytest.raises(NonceManager.Stale):
        nonces.next()

    fake_chain.nonce = 5
    nonces.refresh()
    assert nonces.next() == 5


def test_refresh_picks_up_external_transactions(fake_chain, nonces):
    nonces.refresh()
    assert nonces.next() == 0
    # another tool sent two transactions from the same account
    fake_chain.nonce = 3
    assert nonces.refresh() == 3
