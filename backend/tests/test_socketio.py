from froggyhub import socketio


def _events(client, name):
    return [pkt['args'][0] for pkt in client.get_received('/ws') if pkt['name'] == name]


def test_socket_connect_and_ping(sio_client):
    # Ensure we are connected to /ws
    if not sio_client.is_connected('/ws'):
        sio_client.connect(namespace='/ws')
    assert sio_client.is_connected('/ws')

    sio_client.emit('ping', {'n': 1}, namespace='/ws')
    received = sio_client.get_received('/ws')
    assert any(pkt['name'] == 'connected' for pkt in received)
    assert any(pkt['name'] == 'pong' and pkt['args'][0] == {'n': 1} for pkt in received)


def test_subscribe_requires_auth(sio_client, party):
    sio_client.get_received('/ws')  # flush
    sio_client.emit('subscribe_event', {'event_id': party['event']['id']}, namespace='/ws')
    errors = _events(sio_client, 'error')
    assert errors == [{'message': 'auth_required'}]


def test_subscribe_forbidden_for_outsider(flask_app, make_member, party):
    outsider = make_member('Outsider')
    sio = socketio.test_client(flask_app, namespace='/ws')
    sio.emit('subscribe_event', {'event_id': party['event']['id'], 'token': outsider.token}, namespace='/ws')
    assert _events(sio, 'error') == [{'message': 'forbidden'}]
    sio.disconnect(namespace='/ws')


def test_owner_and_guest_feeds(flask_app, host, joined_guest, party):
    event_id = party['event']['id']
    owner_sio = socketio.test_client(flask_app, namespace='/ws')
    guest_sio = socketio.test_client(flask_app, namespace='/ws', auth={'token': joined_guest.token})

    owner_sio.emit('subscribe_event', {'event_id': event_id, 'token': host.token}, namespace='/ws')
    guest_sio.emit('subscribe_event', {'event_id': event_id}, namespace='/ws')
    assert _events(owner_sio, 'subscribed') == [{'event_id': event_id, 'role': 'owner'}]
    assert _events(guest_sio, 'subscribed') == [{'event_id': event_id, 'role': 'guest'}]

    gift = party['wishlist'][0]['id']
    assert joined_guest.client.post(f'/api/events/{event_id}/wishlist/{gift}/claim').status_code == 200

    owner_change = _events(owner_sio, 'wishlist_change')
    guest_change = _events(guest_sio, 'wishlist_change')
    assert owner_change[-1]['event_type'] == 'UPDATE'
    assert owner_change[-1]['new']['claimed_by_name'] == 'Guest'
    assert 'event_id' in owner_change[-1]['new']
    assert guest_change[-1]['new'] == {
        'id': gift, 'title': 'Lily pad', 'url': 'https://shop.test/pad', 'claimed_by': 'Guest'
    }
    assert guest_change[-1]['old']['claimed_by'] is None

    joined_guest.client.post(f'/api/events/{event_id}/rsvp', json={'rsvp': 'yes'})
    assert _events(guest_sio, 'guests_change')[-1]['new'] == {'name': 'Guest', 'rsvp': 'yes'}
    assert _events(owner_sio, 'guests_change')[-1]['new']['user_id'] == joined_guest.user['id']

    owner_sio.disconnect(namespace='/ws')
    guest_sio.disconnect(namespace='/ws')


def test_unsubscribe_stops_feed(flask_app, host, joined_guest, party):
    event_id = party['event']['id']
    owner_sio = socketio.test_client(flask_app, namespace='/ws')
    owner_sio.emit('subscribe_event', {'event_id': event_id, 'token': host.token}, namespace='/ws')
    owner_sio.emit('unsubscribe_event', {'event_id': event_id}, namespace='/ws')
    assert _events(owner_sio, 'unsubscribed') == [{'event_id': event_id}]

    joined_guest.client.post(f'/api/events/{event_id}/rsvp', json={'rsvp': 'maybe'})
    assert _events(owner_sio, 'guests_change') == []
    owner_sio.disconnect(namespace='/ws')


def test_bare_events_without_payload(sio_client):
    sio_client.get_received('/ws')  # flush
    sio_client.emit('ping', namespace='/ws')
    assert _events(sio_client, 'pong') == [{}]

    sio_client.emit('subscribe_event', namespace='/ws')
    sio_client.emit('unsubscribe_event', namespace='/ws')
    assert _events(sio_client, 'error') == [
        {'message': 'event_id is required'}, {'message': 'event_id is required'}
    ]
    assert sio_client.is_connected('/ws')


def _feeds(flask_app, host, joined_guest, event_id):
    owner_sio = socketio.test_client(flask_app, namespace='/ws', auth={'token': host.token})
    guest_sio = socketio.test_client(flask_app, namespace='/ws', auth={'token': joined_guest.token})
    owner_sio.emit('subscribe_event', {'event_id': event_id}, namespace='/ws')
    guest_sio.emit('subscribe_event', {'event_id': event_id}, namespace='/ws')
    owner_sio.get_received('/ws')
    guest_sio.get_received('/ws')
    return owner_sio, guest_sio


def test_event_change_on_update_and_code_rotation(flask_app, host, joined_guest, party):
    event_id = party['event']['id']
    owner_sio, guest_sio = _feeds(flask_app, host, joined_guest, event_id)

    assert host.client.patch(f'/api/events/{event_id}', json={'title': 'Pond party'}).status_code == 200
    owner_change = _events(owner_sio, 'event_change')
    guest_change = _events(guest_sio, 'event_change')
    assert [c['event_type'] for c in owner_change] == ['UPDATE']
    assert owner_change[0]['new']['title'] == 'Pond party'
    assert owner_change[0]['old']['title'] == 'Frog birthday'
    assert owner_change[0]['new']['owner_id'] == host.user['id']
    assert guest_change[0]['new']['title'] == 'Pond party'
    assert 'owner_id' not in guest_change[0]['new']
    assert 'code_expires_at' not in guest_change[0]['new']

    body = host.client.post(f'/api/events/{event_id}/code').get_json()
    owner_change = _events(owner_sio, 'event_change')
    guest_change = _events(guest_sio, 'event_change')
    assert owner_change[-1]['new']['join_code'] == body['join_code']
    assert owner_change[-1]['old']['join_code'] == party['event']['join_code']
    assert guest_change[-1]['new']['join_code'] == body['join_code']

    owner_sio.disconnect(namespace='/ws')
    guest_sio.disconnect(namespace='/ws')


def test_wishlist_changes_broadcast(flask_app, host, joined_guest, party):
    event_id = party['event']['id']
    owner_sio, guest_sio = _feeds(flask_app, host, joined_guest, event_id)
    base = f'/api/events/{event_id}/wishlist'

    added = host.client.post(base, json={'title': 'Pond map'}).get_json()
    change = _events(guest_sio, 'wishlist_change')[-1]
    assert change['event_type'] == 'INSERT'
    assert change['new'] == {'id': added['id'], 'title': 'Pond map', 'url': '', 'claimed_by': None}
    assert change['old'] is None

    host.client.put(f"{base}/{added['id']}", json={'title': 'Pond atlas'})
    change = _events(owner_sio, 'wishlist_change')[-1]
    assert change['event_type'] == 'UPDATE'
    assert (change['old']['title'], change['new']['title']) == ('Pond map', 'Pond atlas')

    host.client.delete(f"{base}/{added['id']}")
    change = _events(guest_sio, 'wishlist_change')[-1]
    assert change['event_type'] == 'DELETE'
    assert change['new'] is None
    assert change['old']['id'] == added['id']

    gift = party['wishlist'][0]['id']
    joined_guest.client.post(f'{base}/{gift}/claim')
    owner_sio.get_received('/ws')
    guest_sio.get_received('/ws')
    joined_guest.client.post(f'{base}/{gift}/release')
    change = _events(guest_sio, 'wishlist_change')[-1]
    assert change['event_type'] == 'UPDATE'
    assert (change['old']['claimed_by'], change['new']['claimed_by']) == ('Guest', None)

    owner_sio.get_received('/ws')
    host.client.delete(base)
    cleared = _events(owner_sio, 'wishlist_change')
    assert [c['event_type'] for c in cleared] == ['DELETE'] * 3
    assert sorted(c['old']['id'] for c in cleared) == sorted(i['id'] for i in party['wishlist'])

    owner_sio.disconnect(namespace='/ws')
    guest_sio.disconnect(namespace='/ws')
