import pytest


def funded(login, address, amount):
    """Log in, take `amount` from the faucet and deposit all of it"""
    client = login(address)
    client.post('/asset/faucet', json={'amount': amount})
    client.post('/asset/approve', json={'amount': amount})
    resp = client.post('/wallet/deposit', json={'amount': amount})
    assert resp.status_code == 200
    return client


@pytest.fixture
def trip(login):
    alice = login('alice')
    resp = alice.post('/groups', json={'name': 'Trip', 'members': ['bob', 'carol']})
    assert resp.status_code == 201
    return alice, resp.get_json()['id']


# ============== AUTH ==============

def test_register_login_and_me(web_app):
    client = web_app.test_client()

    resp = client.post('/register', json={'address': 'alice', 'name': 'Alice', 'password': 'secret123'})
    assert resp.status_code == 201

    resp = client.post('/login', json={'address': 'alice', 'password': 'wrong-pass'})
    assert resp.status_code == 401

    client.post('/login', json={'address': 'alice', 'password': 'secret123'})
    assert client.get('/me').get_json()['name'] == 'Alice'

    client.post('/logout')
    assert client.get('/me').status_code == 401


def test_register_validation(web_app):
    client = web_app.test_client()

    assert client.post('/register', json={'address': 'a', 'name': 'A', 'password': '123'}).status_code == 400
    assert client.post('/register', json={'address': 'a'}).status_code == 400

    client.post('/register', json={'address': 'a', 'name': 'A', 'password': 'secret123'})
    resp = client.post('/register', json={'address': 'a', 'name': 'B', 'password': 'secret123'})
    assert resp.status_code == 409


def test_ledger_requires_login(web_app):
    resp = web_app.test_client().post('/groups', json={'name': 'Trip'})
    assert resp.status_code == 401
    assert resp.get_json()['error'] == 'Unauthorized'


# ============== GROUPS ==============

def test_create_and_view_group(login, trip):
    alice, group_id = trip

    body = alice.get(f'/groups/{group_id}').get_json()
    assert body['members'] == ['alice', 'bob', 'carol']
    assert body['admin'] == 'alice'

    bob = login('bob')
    assert [g['id'] for g in bob.get('/groups/mine').get_json()] == [group_id]


def test_outsider_cannot_view_group(login, trip):
    _, group_id = trip
    resp = login('dave').get(f'/groups/{group_id}')

    assert resp.status_code == 403
    assert resp.get_json()['error'] == 'Unauthorized'


def test_missing_group_is_404(login):
    resp = login('alice').get('/groups/42')

    assert resp.status_code == 404
    assert resp.get_json()['error'] == 'NotFound'


# ============== EXPENSES ==============

def test_add_and_settle_group_expense(login, trip):
    alice, group_id = trip

    resp = alice.post(f'/groups/{group_id}/expenses', json={
        'amount': 300, 'description': 'Dinner',
        'members': ['alice', 'bob', 'carol'], 'amounts': [100, 100, 100],
    })
    assert resp.status_code == 201
    expense = resp.get_json()
    assert expense['id'] == 1
    assert expense['group_id'] == group_id
    assert expense['settled_amount'] == 100
    assert expense['status'] == 'partially_settled'

    bob = funded(login, 'bob', 1000)
    resp = bob.post(f'/groups/{group_id}/expenses/1/settle')
    assert resp.status_code == 200
    assert resp.get_json()['settled_amount'] == 200

    assert bob.get('/wallet').get_json()['available'] == 900
    assert alice.get('/wallet').get_json()['available'] == 100

    resp = bob.post(f'/groups/{group_id}/expenses/1/settle')
    assert resp.status_code == 409
    assert resp.get_json()['error'] == 'AlreadySettled'


def test_split_mismatch_is_400(trip):
    alice, group_id = trip

    resp = alice.post(f'/groups/{group_id}/expenses', json={
        'amount': 300, 'members': ['bob'], 'amounts': [200],
    })
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'SplitMismatch'


def test_outsider_cannot_add_expense(login, trip):
    _, group_id = trip

    resp = login('dave').post(f'/groups/{group_id}/expenses', json={
        'amount': 10, 'members': ['alice'], 'amounts': [10],
    })
    assert resp.status_code == 403


def test_settle_without_share_is_409(login, trip):
    alice, group_id = trip
    alice.post(f'/groups/{group_id}/expenses', json={
        'amount': 100, 'members': ['bob'], 'amounts': [100],
    })

    resp = login('carol').post(f'/groups/{group_id}/expenses/1/settle')
    assert resp.status_code == 409
    assert resp.get_json()['error'] == 'NothingOwed'


def test_instant_expense_flow(login, web_app):
    web_app.config['SETTLEMENT_MODE'] = 'direct'
    alice = login('alice')
    resp = alice.post('/instant-expenses', json={
        'amount': 40, 'description': 'Cab', 'members': ['bob'], 'amounts': [40],
    })
    assert resp.status_code == 201
    assert resp.get_json()['group_id'] == 0
    assert resp.get_json()['instant'] is True

    bob = login('bob')
    bob.post('/asset/faucet', json={'amount': 40})
    bob.post('/asset/approve', json={'amount': 40})

    resp = bob.post('/instant-expenses/1/settle')
    assert resp.status_code == 200
    assert resp.get_json()['fully_settled'] is True

    assert alice.get('/asset/balance').get_json()['balance'] == 40
    assert [e['id'] for e in bob.get('/instant-expenses/mine').get_json()] == [1]


def test_settlement_mode_comes_from_config(login, trip):
    alice, group_id = trip
    alice.post(f'/groups/{group_id}/expenses', json={
        'amount': 300, 'members': ['alice', 'bob', 'carol'], 'amounts': [100, 100, 100],
    })

    bob = funded(login, 'bob', 100)
    bob.post('/asset/faucet', json={'amount': 100})
    bob.post('/asset/approve', json={'amount': 100})

    resp = bob.post(f'/groups/{group_id}/expenses/1/settle', json={'mode': 'direct'})
    assert resp.status_code == 200

    # escrowed: credited to the ledger balance, no raw asset to the payer
    assert alice.get('/wallet').get_json()['available'] == 100
    assert alice.get('/asset/balance').get_json()['balance'] == 0
    assert bob.get('/wallet').get_json()['available'] == 0
    assert bob.get('/asset/balance').get_json()['balance'] == 100


def test_instant_expense_visible_to_participants_only(login):
    alice = login('alice')
    alice.post('/instant-expenses', json={
        'amount': 40, 'description': 'Cab', 'members': ['bob'], 'amounts': [40],
    })

    assert alice.get('/instant-expenses/1').status_code == 200
    assert login('bob').get('/instant-expenses/1').status_code == 200

    resp = login('mallory').get('/instant-expenses/1')
    assert resp.status_code == 403
    assert resp.get_json()['error'] == 'Unauthorized'

    assert alice.get('/instant-expenses/2').status_code == 404


# ============== WALLET ==============

def test_deposit_and_withdraw(login, clock, web_app):
    alice = funded(login, 'alice', 1000)

    wallet = alice.get('/wallet').get_json()
    assert wallet['available'] == 1000
    assert wallet['escrowed_principal'] == 1000
    assert len(wallet['batches']) == 1

    clock.advance(web_app.config['SECONDS_PER_YEAR'])
    assert alice.get('/wallet').get_json()['accruable_yield'] == 50

    resp = alice.post('/wallet/withdraw', json={'amount': 1000})
    assert resp.get_json() == {'paid_out': 1050, 'available': 0}
    assert alice.get('/asset/balance').get_json()['balance'] == 1050


def test_deposit_without_approval_is_502(login):
    alice = login('alice')
    alice.post('/asset/faucet', json={'amount': 100})

    resp = alice.post('/wallet/deposit', json={'amount': 100})
    assert resp.status_code == 502
    assert resp.get_json()['error'] == 'TransferFailed'


def test_invalid_amount_is_400(login):
    resp = login('alice').post('/wallet/deposit', json={'amount': -1})

    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'InvalidAmount'


@pytest.mark.parametrize('path', ['/wallet/deposit', '/asset/approve'])
@pytest.mark.parametrize('body', ['{"amount": 1e400}', '{"amount": NaN}', '{"amount": "\u00b2"}'])
def test_non_finite_amount_is_400(login, path, body):
    resp = login('alice').post(path, data=body, content_type='application/json')

    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'InvalidAmount'


def test_faucet_can_be_disabled(login, web_app):
    web_app.config['ASSET_FAUCET_ENABLED'] = False
    resp = login('alice').post('/asset/faucet', json={'amount': 5})
    assert resp.status_code == 403


# ============== ADMIN ==============

def test_pause_blocks_mutations(login, trip):
    alice, group_id = trip

    assert alice.post('/admin/pause').status_code == 403

    owner = login('owner')
    assert owner.post('/admin/pause').get_json() == {'paused': True}
    assert alice.get('/admin/status').get_json() == {'paused': True}

    resp = alice.post(f'/groups/{group_id}/expenses', json={
        'amount': 10, 'members': ['bob'], 'amounts': [10],
    })
    assert resp.status_code == 403

    # reads still work
    assert alice.get(f'/groups/{group_id}').status_code == 200

    owner.post('/admin/unpause')
    resp = alice.post(f'/groups/{group_id}/expenses', json={
        'amount': 10, 'members': ['bob'], 'amounts': [10],
    })
    assert resp.status_code == 201


def test_event_log(trip, web_app):
    alice, group_id = trip
    alice.post(f'/groups/{group_id}/expenses', json={
        'amount': 10, 'members': ['bob'], 'amounts': [10],
    })

    events = web_app.test_client().get('/admin/events').get_json()
    assert [e['event'] for e in events] == ['GroupCreated', 'ExpenseAdded', 'ExpenseSplit']

    added = web_app.test_client().get('/admin/events?type=ExpenseAdded').get_json()
    assert len(added) == 1
    assert added[0]['args']['amount'] == 10
