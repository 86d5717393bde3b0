from base64 import b64encode
from datetime import timedelta
from flask_jwt_extended import create_access_token
from duochat import db
from duochat.models import Message, User
from conftest import PASSWORD, new_messages, signup


def png_uri(size):
    return 'data:image/png;base64,' + b64encode(b'\x01' * size).decode()


def message_count(app):
    with app.app_context():
        return db.session.query(Message).count()


def test_index_and_health(client):
    assert client.get('/api/health').get_json() == {'status': 'ok'}
    assert 'POST /api/messages/send/<user_id>' in client.get('/api/').get_json()['endpoints']


def test_security_headers_on_every_response(client):
    for response in (client.get('/api/health'), client.get('/api/auth/check')):
        assert response.headers['X-Frame-Options'] == 'DENY'
        assert response.headers['X-Content-Type-Options'] == 'nosniff'
        assert response.headers['X-XSS-Protection'] == '1; mode=block'
        assert response.headers['Referrer-Policy'] == 'strict-origin-when-cross-origin'
        assert response.headers['Permissions-Policy'] == 'camera=(), microphone=(), geolocation=()'


class TestSignupAndLogin:
    def test_signup_sets_session_and_hides_hash(self, client):
        user = signup(client, '  Ann@Example.com ', 'Ann Lee')
        assert user['email'] == 'ann@example.com'
        assert user['fullName'] == 'Ann Lee'
        assert 'password' not in user and 'password_hash' not in user
        assert client.get_cookie('jwt') is not None
        assert client.get('/api/auth/check').get_json()['id'] == user['id']

    def test_duplicate_email_rejected(self, client, app):
        signup(client, 'ann@example.com', 'Ann Lee')
        response = app.test_client().post('/api/auth/signup', json={
            'fullName': 'Other Ann', 'email': 'ANN@example.com', 'password': PASSWORD,
        })
        assert response.status_code == 400
        assert response.get_json()['message'] == 'Email already exists'

    def test_field_level_errors(self, client):
        response = client.post('/api/auth/signup', json={
            'fullName': 'A', 'email': 'not-an-email', 'password': 'weak',
        })
        assert response.status_code == 400
        body = response.get_json()
        assert body['message'] == 'Validation failed'
        fields = {error['field'] for error in body['errors']}
        assert fields == {'fullName', 'email', 'password'}

    def test_missing_body(self, client):
        response = client.post('/api/auth/signup', data='nope', content_type='text/plain')
        assert response.status_code == 400

    def test_login_and_generic_failure(self, app, client):
        signup(client, 'ann@example.com', 'Ann Lee')
        fresh = app.test_client()
        ok = fresh.post('/api/auth/login', json={'email': 'ANN@example.com', 'password': PASSWORD})
        assert ok.status_code == 200
        assert fresh.get_cookie('jwt') is not None

        wrong_password = app.test_client().post(
            '/api/auth/login', json={'email': 'ann@example.com', 'password': 'Wrong123'})
        unknown_email = app.test_client().post(
            '/api/auth/login', json={'email': 'bob@example.com', 'password': PASSWORD})
        assert wrong_password.status_code == unknown_email.status_code == 401
        assert wrong_password.get_json() == unknown_email.get_json() == {'message': 'Invalid credentials'}

    def test_logout_clears_session(self, client):
        signup(client, 'ann@example.com', 'Ann Lee')
        assert client.post('/api/auth/logout').status_code == 200
        assert client.get('/api/auth/check').status_code == 401

    def test_auth_routes_are_rate_limited(self, app, client):
        attempts = int(app.config['RATELIMIT_AUTH'].split()[0])
        credentials = {'email': 'nobody@example.com', 'password': PASSWORD}
        for _ in range(attempts):
            assert client.post('/api/auth/login', json=credentials).status_code == 401

        blocked = client.post('/api/auth/login', json=credentials)
        assert blocked.status_code == 429
        assert blocked.get_json() == {
            'message': 'Too many authentication attempts, please try again later.'}
        # The window is shared by every auth route, other routes are untouched
        assert client.post('/api/auth/logout').status_code == 429
        assert client.get('/api/health').status_code == 200


class TestAuthentication:
    PROTECTED = [
        ('get', '/api/auth/check'),
        ('put', '/api/auth/update-profile'),
        ('get', '/api/messages/contacts'),
        ('get', '/api/messages/chats'),
        ('get', '/api/messages/1'),
        ('get', '/api/messages/image/1'),
        ('post', '/api/messages/send/2'),
    ]

    def test_every_protected_route_needs_a_session(self, app, client):
        signup(app.test_client(), 'ann@example.com', 'Ann Lee')
        signup(app.test_client(), 'bob@example.com', 'Bob Ray')
        for method, url in self.PROTECTED:
            response = getattr(client, method)(url, json={'text': 'hi'})
            assert response.status_code == 401, url
        assert message_count(app) == 0

    def test_tampered_token(self, client):
        response = client.get('/api/auth/check', headers={'Authorization': 'Bearer abc.def.ghi'})
        assert response.status_code == 401

    def test_expired_token(self, app, client):
        user = signup(app.test_client(), 'ann@example.com', 'Ann Lee')
        with app.app_context():
            token = create_access_token(identity=str(user['id']), expires_delta=timedelta(seconds=-5))
        response = client.get('/api/auth/check', headers={'Authorization': f'Bearer {token}'})
        assert response.status_code == 401

    def test_token_for_deleted_user(self, app, client):
        user = signup(client, 'ann@example.com', 'Ann Lee')
        with app.app_context():
            db.session.delete(db.session.get(User, user['id']))
            db.session.commit()
        assert client.get('/api/auth/check').status_code == 401
        assert client.post('/api/messages/send/2', json={'text': 'hi'}).status_code == 401


class TestMessaging:
    def test_example_conversation(self, make_user):
        ann_client, ann = make_user('ann@example.com', 'Ann Lee')
        bob_client, bob = make_user('bob@example.com', 'Bob Ray')

        sent = ann_client.post(f'/api/messages/send/{bob["id"]}', json={'text': 'hi'})
        assert sent.status_code == 201
        record = sent.get_json()
        assert record['id'] and record['createdAt']
        assert record['senderId'] == ann['id'] and record['receiverId'] == bob['id']

        history = bob_client.get(f'/api/messages/{ann["id"]}').get_json()
        assert [m['text'] for m in history] == ['hi']
        assert history[0]['id'] == record['id']

    def test_history_only_contains_the_pair_in_order(self, make_user):
        a_client, a = make_user('a@example.com', 'Ann Lee')
        b_client, b = make_user('b@example.com', 'Bob Ray')
        c_client, c = make_user('c@example.com', 'Cat Moe')

        a_client.post(f'/api/messages/send/{b["id"]}', json={'text': 'one'})
        c_client.post(f'/api/messages/send/{a["id"]}', json={'text': 'noise'})
        b_client.post(f'/api/messages/send/{a["id"]}', json={'text': 'two'})
        c_client.post(f'/api/messages/send/{b["id"]}', json={'text': 'more noise'})
        a_client.post(f'/api/messages/send/{b["id"]}', json={'text': 'three'})

        history = a_client.get(f'/api/messages/{b["id"]}').get_json()
        assert [m['text'] for m in history] == ['one', 'two', 'three']
        assert all({m['senderId'], m['receiverId']} == {a['id'], b['id']} for m in history)
        assert [m['id'] for m in history] == sorted(m['id'] for m in history)

    def test_self_send_rejected(self, app, make_user):
        ann_client, ann = make_user('ann@example.com', 'Ann Lee')
        response = ann_client.post(f'/api/messages/send/{ann["id"]}', json={'text': 'me'})
        assert response.status_code == 400
        assert response.get_json()['message'] == 'Cannot send messages to yourself.'
        assert message_count(app) == 0

    def test_empty_send_rejected(self, app, make_user):
        ann_client, _ = make_user('ann@example.com', 'Ann Lee')
        _, bob = make_user('bob@example.com', 'Bob Ray')
        response = ann_client.post(f'/api/messages/send/{bob["id"]}', json={})
        assert response.status_code == 400
        assert message_count(app) == 0

    def test_unknown_receiver(self, make_user):
        ann_client, _ = make_user('ann@example.com', 'Ann Lee')
        response = ann_client.post('/api/messages/send/999', json={'text': 'hello?'})
        assert response.status_code == 404

    def test_store_failure_is_a_generic_500(self, app, make_user, connect):
        ann_client, _ = make_user('ann@example.com', 'Ann Lee')
        bob_client, bob = make_user('bob@example.com', 'Bob Ray')
        bob_live = connect(bob_client)
        bob_live.get_received()
        with app.app_context():
            Message.__table__.drop(db.engine)

        response = ann_client.post(f'/api/messages/send/{bob["id"]}', json={'text': 'hi'})
        assert response.status_code == 500
        assert response.get_json() == {'message': 'Internal server error'}
        assert new_messages(bob_live) == []

    def test_text_is_sanitized_and_truncated(self, make_user):
        ann_client, _ = make_user('ann@example.com', 'Ann Lee')
        _, bob = make_user('bob@example.com', 'Bob Ray')
        record = ann_client.post(f'/api/messages/send/{bob["id"]}', json={
            'text': '<b>hey</b><script>steal()</script> ' + 'x' * 3000,
        }).get_json()
        assert record['text'].startswith('hey ')
        assert len(record['text']) == 2000

    def test_image_round_trip_and_access(self, app, make_user):
        ann_client, ann = make_user('ann@example.com', 'Ann Lee')
        bob_client, bob = make_user('bob@example.com', 'Bob Ray')
        cat_client, _ = make_user('cat@example.com', 'Cat Moe')

        record = ann_client.post(f'/api/messages/send/{bob["id"]}', json={
            'image': png_uri(32),
        }).get_json()
        assert record['text'] is None
        assert record['image'] == f'/api/messages/image/{record["id"]}'

        response = bob_client.get(record['image'])
        assert response.status_code == 200
        assert response.mimetype == 'image/png'
        assert response.data == b'\x01' * 32

        assert cat_client.get(record['image']).status_code == 404
        assert bob_client.get('/api/messages/image/999').status_code == 404

    def test_text_only_message_has_no_attachment(self, make_user):
        ann_client, _ = make_user('ann@example.com', 'Ann Lee')
        bob_client, bob = make_user('bob@example.com', 'Bob Ray')
        record = ann_client.post(f'/api/messages/send/{bob["id"]}', json={'text': 'hi'}).get_json()
        assert 'image' not in record
        assert bob_client.get(f'/api/messages/image/{record["id"]}').status_code == 404

    def test_image_size_ceiling(self, app, make_user):
        ann_client, _ = make_user('ann@example.com', 'Ann Lee')
        _, bob = make_user('bob@example.com', 'Bob Ray')
        ceiling = app.config['MAX_IMAGE_BYTES']

        under = ann_client.post(f'/api/messages/send/{bob["id"]}', json={'image': png_uri(ceiling - 1)})
        assert under.status_code == 201

        over = ann_client.post(f'/api/messages/send/{bob["id"]}', json={'image': png_uri(ceiling + 1)})
        assert over.status_code == 400
        assert over.get_json()['message'] == 'Image size too large'
        assert message_count(app) == 1

    def test_disallowed_image_type(self, app, make_user):
        ann_client, _ = make_user('ann@example.com', 'Ann Lee')
        _, bob = make_user('bob@example.com', 'Bob Ray')
        response = ann_client.post(f'/api/messages/send/{bob["id"]}', json={
            'image': 'data:image/svg+xml;base64,PHN2Zz4=',
        })
        assert response.status_code == 400
        assert message_count(app) == 0


class TestContacts:
    def test_contacts_exclude_caller(self, make_user):
        ann_client, ann = make_user('ann@example.com', 'Ann Lee')
        make_user('bob@example.com', 'Bob Ray')
        make_user('cat@example.com', 'Cat Moe')
        contacts = ann_client.get('/api/messages/contacts').get_json()
        assert [c['fullName'] for c in contacts] == ['Bob Ray', 'Cat Moe']
        assert ann['id'] not in [c['id'] for c in contacts]

    def test_chat_partners_are_distinct(self, make_user):
        ann_client, ann = make_user('ann@example.com', 'Ann Lee')
        bob_client, bob = make_user('bob@example.com', 'Bob Ray')
        make_user('cat@example.com', 'Cat Moe')
        ann_client.post(f'/api/messages/send/{bob["id"]}', json={'text': '1'})
        bob_client.post(f'/api/messages/send/{ann["id"]}', json={'text': '2'})
        ann_client.post(f'/api/messages/send/{bob["id"]}', json={'text': '3'})

        partners = ann_client.get('/api/messages/chats').get_json()
        assert [p['id'] for p in partners] == [bob['id']]
        assert 'password_hash' not in partners[0]


class TestProfile:
    def test_update_profile_picture(self, app, make_user):
        ann_client, _ = make_user('ann@example.com', 'Ann Lee')
        picture = png_uri(100)
        response = ann_client.put('/api/auth/update-profile', json={'profilePic': picture})
        assert response.status_code == 200
        assert response.get_json()['profilePic'] == picture
        assert ann_client.get('/api/auth/check').get_json()['profilePic'] == picture

    def test_profile_picture_has_stricter_ceiling(self, app, make_user):
        ann_client, _ = make_user('ann@example.com', 'Ann Lee')
        too_big = png_uri(app.config['MAX_PROFILE_PIC_BYTES'] + 1)
        response = ann_client.put('/api/auth/update-profile', json={'profilePic': too_big})
        assert response.status_code == 400
        assert response.get_json()['message'] == 'Image size too large'

    def test_profile_picture_required(self, make_user):
        ann_client, _ = make_user('ann@example.com', 'Ann Lee')
        response = ann_client.put('/api/auth/update-profile', json={'profilePic': ''})
        assert response.status_code == 400
