"""
HTTP tests for project chats and polling message reads
"""
import pytest

from models import Chat


@pytest.fixture
def chat_id(client, project, owner, freelancer, headers_for):
    res = client.post(
        '/api/chat/create',
        json={'project_id': project.id, 'freelancer_id': freelancer.id},
        headers=headers_for(owner),
    )
    assert res.status_code == 201
    return res.get_json()['chat']['id']


def send(client, chat_id, user, headers_for, text):
    return client.post(f'/api/chat/{chat_id}/messages', json={'text': text}, headers=headers_for(user))


def test_create_chat_is_idempotent(client, chat_id, project, owner, freelancer, headers_for):
    res = client.post(
        '/api/chat/create',
        json={'project_id': project.id, 'freelancer_id': freelancer.id},
        headers=headers_for(owner),
    )

    assert res.status_code == 200
    assert res.get_json()['chat']['id'] == chat_id
    assert Chat.query.count() == 1


def test_only_owner_can_create_chat(client, project, other_client, freelancer, headers_for):
    res = client.post(
        '/api/chat/create',
        json={'project_id': project.id, 'freelancer_id': freelancer.id},
        headers=headers_for(other_client),
    )

    assert res.status_code == 403


def test_chat_partner_must_be_freelancer(client, project, owner, other_client, headers_for):
    res = client.post(
        '/api/chat/create',
        json={'project_id': project.id, 'freelancer_id': other_client.id},
        headers=headers_for(owner),
    )

    assert res.status_code == 404
    assert res.get_json()['error']['message'] == 'Freelancer not found'


def test_messages_and_unread_counts(client, chat_id, owner, freelancer, headers_for):
    assert send(client, chat_id, owner, headers_for, 'Hi! Can you start on Monday?').status_code == 201
    send(client, chat_id, owner, headers_for, 'Budget is flexible.')

    chats = client.get('/api/chat/my', headers=headers_for(freelancer)).get_json()['chats']
    assert chats[0]['unread_count'] == 2
    assert chats[0]['last_message'] == 'Budget is flexible.'

    messages = client.get(f'/api/chat/{chat_id}/messages', headers=headers_for(freelancer)).get_json()['messages']
    assert [m['text'] for m in messages] == ['Hi! Can you start on Monday?', 'Budget is flexible.']
    assert all(m['is_read'] for m in messages)

    chats = client.get('/api/chat/my', headers=headers_for(freelancer)).get_json()['chats']
    assert chats[0]['unread_count'] == 0

    owner_view = client.get('/api/chat/my', headers=headers_for(owner)).get_json()['chats']
    assert owner_view[0]['unread_count'] == 0


def test_poll_with_after_id(client, chat_id, owner, freelancer, headers_for):
    first = send(client, chat_id, owner, headers_for, 'first').get_json()['message']
    send(client, chat_id, freelancer, headers_for, 'second')

    res = client.get(f"/api/chat/{chat_id}/messages?after_id={first['id']}", headers=headers_for(owner))

    assert [m['text'] for m in res.get_json()['messages']] == ['second']


def test_reading_does_not_mark_own_messages(client, chat_id, owner, headers_for):
    send(client, chat_id, owner, headers_for, 'hello')

    messages = client.get(f'/api/chat/{chat_id}/messages', headers=headers_for(owner)).get_json()['messages']

    assert messages[0]['is_read'] is False


def test_outsider_cannot_read_or_write(client, chat_id, second_freelancer, headers_for):
    assert client.get(f'/api/chat/{chat_id}/messages', headers=headers_for(second_freelancer)).status_code == 403
    assert send(client, chat_id, second_freelancer, headers_for, 'hey').status_code == 403


def test_message_validation(client, chat_id, owner, headers_for):
    assert send(client, chat_id, owner, headers_for, '').status_code == 400
    assert send(client, chat_id, owner, headers_for, 'x' * 2001).status_code == 400


def test_missing_chat(client, owner, headers_for):
    assert client.get('/api/chat/999/messages', headers=headers_for(owner)).status_code == 404


def test_messages_carry_sender_summary(client, chat_id, owner, freelancer, headers_for):
    sent = send(client, chat_id, owner, headers_for, 'Hi!').get_json()['message']
    send(client, chat_id, freelancer, headers_for, 'Hello')

    assert sent['sender'] == {'id': owner.id, 'full_name': 'Project Owner', 'avatar': None, 'rating': owner.rating}

    messages = client.get(f'/api/chat/{chat_id}/messages', headers=headers_for(owner)).get_json()['messages']
    assert [m['sender']['full_name'] for m in messages] == ['Project Owner', 'Alice Freelancer']
    assert [m['sender']['id'] for m in messages] == [owner.id, freelancer.id]
