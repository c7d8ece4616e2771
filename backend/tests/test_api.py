def _create(client, device_id=None):
    body = {'audience_band': 'family'}
    if device_id:
        body['device_id'] = device_id
    res = client.post('/api/rooms', json=body)
    assert res.status_code == 201
    return res.get_json()


def test_index_lists_bands(client):
    data = client.get('/').get_json()
    assert 'family' in data['audience_bands']


def test_create_room(client, clock, seeded):
    data = _create(client)
    assert len(data['code']) == 6
    assert data['room']['round_number'] == 1
    assert data['round_ends_at'] == clock.now + 20
    assert data['question']['id'] == data['room']['current_question_id']
    assert data['player'] is None


def test_create_room_with_host_device(client, seeded):
    data = _create(client, device_id='host-tablet')
    assert data['player']['label']
    assert data['player']['score'] == 0


def test_create_room_errors(client, flask_app):
    res = client.post('/api/rooms', json={'audience_band': 'nope'})
    assert res.status_code == 400
    res = client.post('/api/rooms', json={'audience_band': 'family'})
    assert res.status_code == 503
    assert 'Seed questions first' in res.get_json()['error']


def test_join_and_state(client, seeded):
    code = _create(client)['code']
    res = client.post('/api/rooms/join', json={'code': code}, headers={'X-Device-Id': 'phone-1'})
    assert res.status_code == 200
    player = res.get_json()['player']

    state = client.get(f'/api/rooms/{code}').get_json()
    assert state['code'] == code
    assert [p['id'] for p in state['players']] == [player['id']]
    assert state['durations'] == {'question': 20, 'reveal': 10, 'advanced_round': 31}
    assert state['heartbeat_interval'] == 2


def test_join_errors(client, seeded):
    assert client.post('/api/rooms/join', json={'code': 'ZZZZZZ', 'device_id': 'x'}).status_code == 404
    code = _create(client)['code']
    assert client.post('/api/rooms/join', json={'code': code}).status_code == 400
    assert client.get('/api/rooms/ZZZZZZ').status_code == 404


def test_answer_flow(client, seeded):
    code = _create(client)['code']
    player = client.post('/api/rooms/join', json={'code': code, 'device_id': 'p1'}).get_json()['player']

    res = client.post(f'/api/rooms/{code}/answer', json={'player_id': player['id']})
    assert res.status_code == 400

    res = client.post(f'/api/rooms/{code}/answer',
                      json={'player_id': player['id'], 'round_number': 2, 'choice_index': 0})
    assert res.status_code == 400

    payload = {'player_id': player['id'], 'round_number': 1, 'choice_index': 1}
    assert client.post(f'/api/rooms/{code}/answer', json=payload).get_json() == {'ok': True}
    dup = client.post(f'/api/rooms/{code}/answer', json=payload)
    assert dup.status_code == 200
    assert dup.get_json()['message'] == 'Answer already submitted'


def test_tick_endpoint(client, clock, seeded):
    code = _create(client)['code']
    client.post('/api/rooms/join', json={'code': code, 'device_id': 'p1'})

    res = client.post(f'/api/rooms/{code}/tick').get_json()
    assert res['ok'] is True
    assert res['advanced'] is False

    clock.advance(20)
    res = client.post(f'/api/rooms/{code}/tick').get_json()
    assert res['advanced'] is True
    assert res['room']['round_number'] == 2
    assert res['room']['round_ends_at'] == clock.now + 31


def test_skip_endpoint(client, seeded):
    data = _create(client, device_id='host')
    code = data['code']
    assert client.post(f'/api/rooms/{code}/skip', json={}).status_code == 400
    assert client.post(f'/api/rooms/{code}/skip', json={'feedback_type': 'meh'}).status_code == 400

    res = client.post(f'/api/rooms/{code}/skip',
                      json={'player_id': data['player']['id'], 'feedback_type': 'inappropriate'}).get_json()
    assert res['skipped'] is True
    assert res['room']['round_number'] == 1
    assert res['room']['current_question_id'] != data['room']['current_question_id']


def test_reset_endpoint(client, clock, seeded):
    data = _create(client, device_id='host')
    code = data['code']
    clock.advance(20)
    client.post(f'/api/rooms/{code}/tick')

    res = client.post(f'/api/rooms/{code}/reset').get_json()
    assert res['ok'] is True
    assert res['room']['round_number'] == 1
    assert res['room']['version'] == 3


def test_question_endpoint(client, seeded):
    question_id = _create(client)['question']['id']
    question = client.get(f'/api/questions/{question_id}').get_json()
    assert len(question['choices']) == 3
    assert question['correct_index'] == 0
    assert client.get('/api/questions/9999').status_code == 404
