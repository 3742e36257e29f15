import sqlite3
from datetime import datetime, timedelta

from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from quizcraft.main import app
from conftest import register_and_login

client = TestClient(app)


def _quiz_payload(name='Q1', options=None):
    return {
        'name': name,
        'description': 'd',
        'questions': [
            {'question': '2+2?', 'answer': '4', 'options': options or ['3', '4', '5']},
            {'question': 'Capital of France?', 'answer': 'Paris', 'options': ['Paris', 'Rome']},
        ],
    }


def test_register_login_create_and_fetch_scenario(fresh_client):
    r = fresh_client.post('/api/register', json={'username': 'alice', 'password': 'pw1'})
    assert r.status_code == 201
    r = fresh_client.post('/api/login', json={'username': 'alice', 'password': 'pw1'})
    assert r.status_code == 200
    headers = {'Authorization': r.json()['token']}
    body = {'name': 'Q1', 'description': 'd', 'questions': [{'question': '2+2?', 'answer': '4', 'options': ['3', '4', '5']}]}
    r = fresh_client.post('/api/quizzes', json=body, headers=headers)
    assert r.status_code == 201
    assert r.json() == {'id': 1}
    r = fresh_client.get('/api/quizzes/1', headers=headers)
    assert r.status_code == 200
    quiz = r.json()
    assert quiz['id'] == 1
    assert quiz['name'] == 'Q1'
    assert quiz['description'] == 'd'
    assert quiz['created_by']['username'] == 'alice'
    assert 'password_hash' not in quiz['created_by']
    assert quiz['created_at']
    assert len(quiz['questions']) == 1
    q = quiz['questions'][0]
    assert (q['question'], q['answer'], q['options']) == ('2+2?', '4', ['3', '4', '5'])


def test_options_keep_order_and_delimiters():
    _, headers = register_and_login(client)
    options = ['A', 'B', 'C']
    quiz_id = client.post('/api/quizzes', json=_quiz_payload(options=options), headers=headers).json()['id']
    quiz = client.get(f'/api/quizzes/{quiz_id}', headers=headers).json()
    assert quiz['questions'][0]['options'] == ['A', 'B', 'C']

    tricky = ['a;b', 'c,d', '"quoted"', '']
    quiz_id = client.post('/api/quizzes', json=_quiz_payload(options=tricky), headers=headers).json()['id']
    quiz = client.get(f'/api/quizzes/{quiz_id}', headers=headers).json()
    assert quiz['questions'][0]['options'] == tricky
    assert [q['question'] for q in quiz['questions']] == ['2+2?', 'Capital of France?']


def test_create_quiz_missing_fields_is_bad_request(monkeypatch):
    _, headers = register_and_login(client)

    def _fail(*_args, **_kwargs):
        raise AssertionError('persistence must not be reached')

    monkeypatch.setattr('quizcraft.services.QuizService.create_quiz', _fail)
    for missing in ('name', 'description', 'questions'):
        payload = _quiz_payload()
        del payload[missing]
        r = client.post('/api/quizzes', json=payload, headers=headers)
        assert r.status_code == 400
        assert r.json()['fields'] == [missing]
    payload = _quiz_payload()
    payload['questions'] = []
    assert client.post('/api/quizzes', json=payload, headers=headers).status_code == 400


def test_create_quiz_question_without_answer_is_bad_request():
    _, headers = register_and_login(client)
    payload = _quiz_payload()
    del payload['questions'][1]['answer']
    r = client.post('/api/quizzes', json=payload, headers=headers)
    assert r.status_code == 400
    assert r.json()['fields'] == ['questions[1].answer']


def test_create_quiz_requires_token():
    assert client.post('/api/quizzes', json=_quiz_payload()).status_code == 401


def test_list_quizzes_includes_created_quiz():
    username, headers = register_and_login(client)
    quiz_id = client.post('/api/quizzes', json=_quiz_payload(name='listed'), headers=headers).json()['id']
    r = client.get('/api/quizzes', headers=headers)
    assert r.status_code == 200
    listed = {q['id']: q for q in r.json()}
    assert listed[quiz_id]['name'] == 'listed'
    assert listed[quiz_id]['created_by']['username'] == username
    assert len(listed[quiz_id]['questions']) == 2


def test_unknown_quiz_is_not_found():
    _, headers = register_and_login(client)
    assert client.get('/api/quizzes/999999', headers=headers).status_code == 404
    update = {'title': 't', 'description': 'd', 'questions': [{'question': 'q', 'answer': 'a'}]}
    assert client.put('/api/quizzes/999999', json=update, headers=headers).status_code == 404
    assert client.delete('/api/quizzes/999999', headers=headers).status_code == 404


def test_quiz_id_beyond_integer_range_is_not_found():
    _, headers = register_and_login(client)
    huge = 99999999999999999999
    assert client.get(f'/api/quizzes/{huge}', headers=headers).status_code == 404
    update = {'title': 't', 'description': 'd', 'questions': [{'question': 'q', 'answer': 'a'}]}
    assert client.put(f'/api/quizzes/{huge}', json=update, headers=headers).status_code == 404
    assert client.delete(f'/api/quizzes/{huge}', headers=headers).status_code == 404


def test_non_numeric_quiz_id_is_bad_request():
    _, headers = register_and_login(client)
    assert client.get('/api/quizzes/abc', headers=headers).status_code == 400


def test_only_creator_may_update_or_delete():
    _, owner = register_and_login(client)
    _, other = register_and_login(client)
    quiz_id = client.post('/api/quizzes', json=_quiz_payload(), headers=owner).json()['id']
    update = {'title': 'hijacked', 'description': 'x', 'questions': [{'question': 'q', 'answer': 'a'}]}
    assert client.put(f'/api/quizzes/{quiz_id}', json=update, headers=other).status_code == 403
    assert client.delete(f'/api/quizzes/{quiz_id}', headers=other).status_code == 403
    quiz = client.get(f'/api/quizzes/{quiz_id}', headers=other).json()
    assert quiz['name'] == 'Q1'


def test_update_replaces_questions():
    _, headers = register_and_login(client)
    quiz_id = client.post('/api/quizzes', json=_quiz_payload(), headers=headers).json()['id']
    before = client.get(f'/api/quizzes/{quiz_id}', headers=headers).json()
    kept, dropped = before['questions']
    update = {
        'title': 'Q1 v2',
        'description': 'd2',
        'questions': [
            {'question': 'New one?', 'answer': 'yes', 'options': ['yes', 'no']},
            {'id': kept['id'], 'question': '2+3?', 'answer': '5', 'options': ['5', '6']},
        ],
    }
    r = client.put(f'/api/quizzes/{quiz_id}', json=update, headers=headers)
    assert r.status_code == 200
    after = client.get(f'/api/quizzes/{quiz_id}', headers=headers).json()
    assert after['name'] == 'Q1 v2'
    assert after['description'] == 'd2'
    assert after['created_at'] == before['created_at']
    assert [q['question'] for q in after['questions']] == ['New one?', '2+3?']
    assert after['questions'][1]['id'] == kept['id']
    assert after['questions'][1]['options'] == ['5', '6']
    assert dropped['id'] not in {q['id'] for q in after['questions']}


def test_update_accepts_name_alias_and_validates_fields():
    _, headers = register_and_login(client)
    quiz_id = client.post('/api/quizzes', json=_quiz_payload(), headers=headers).json()['id']
    r = client.put(f'/api/quizzes/{quiz_id}', json={'description': 'd'}, headers=headers)
    assert r.status_code == 400
    assert r.json()['fields'] == ['title', 'questions']
    r = client.put(f'/api/quizzes/{quiz_id}', json=_quiz_payload(name='renamed'), headers=headers)
    assert r.status_code == 200
    assert client.get(f'/api/quizzes/{quiz_id}', headers=headers).json()['name'] == 'renamed'


def test_delete_removes_quiz():
    _, headers = register_and_login(client)
    quiz_id = client.post('/api/quizzes', json=_quiz_payload(), headers=headers).json()['id']
    r = client.delete(f'/api/quizzes/{quiz_id}', headers=headers)
    assert r.status_code == 200
    assert client.get(f'/api/quizzes/{quiz_id}', headers=headers).status_code == 404
    assert client.delete(f'/api/quizzes/{quiz_id}', headers=headers).status_code == 404


def test_health_and_frontend():
    assert client.get('/health').json() == {'status': 'ok'}
    r = client.get('/')
    assert r.status_code == 200
    assert 'QuizCraft' in r.text


def test_created_at_carries_utc_offset():
    _, headers = register_and_login(client)
    quiz_id = client.post('/api/quizzes', json=_quiz_payload(), headers=headers).json()['id']
    created_at = client.get(f'/api/quizzes/{quiz_id}', headers=headers).json()['created_at']
    assert datetime.fromisoformat(created_at).utcoffset() == timedelta(0)


def _raise_datastore_error(message):
    def _fail(*_args, **_kwargs):
        raise OperationalError('SELECT * FROM quizz', {}, sqlite3.OperationalError(message))
    return _fail


def test_locked_datastore_is_retryable(monkeypatch):
    _, headers = register_and_login(client)
    monkeypatch.setattr('quizcraft.services.QuizService.list_quizzes', _raise_datastore_error('database is locked'))
    r = client.get('/api/quizzes', headers=headers)
    assert r.status_code == 503
    assert r.headers['Retry-After'] == '1'
    assert r.json() == {'error': 'datastore unavailable, retry later'}


def test_other_datastore_errors_are_internal(monkeypatch):
    _, headers = register_and_login(client)
    monkeypatch.setattr('quizcraft.services.QuizService.list_quizzes', _raise_datastore_error('no such table: question'))
    r = client.get('/api/quizzes', headers=headers)
    assert r.status_code == 500
    assert 'Retry-After' not in r.headers
    assert r.json() == {'error': 'Internal server error'}
