"""
Tests for direct messaging between marketplace users.
"""

import pytest
from django.core.exceptions import ValidationError
from django.urls import reverse
from rest_framework import status

from marketplace.models import Message, User


@pytest.fixture
def conversation(mine, mine_owner, investor, make_user):
    """A short thread about the mine plus an unrelated message."""
    outsider = make_user(User.ROLE_INVESTOR)
    first = Message.objects.create(sender=investor, receiver=mine_owner, mine=mine,
                                   content='Is the resource statement SAMREC compliant?')
    reply = Message.objects.create(sender=mine_owner, receiver=investor, mine=mine,
                                   content='Yes, the competent person report is attached.')
    other = Message.objects.create(sender=outsider, receiver=mine_owner, mine=mine,
                                   content='Any water use licence issues?')
    return {'first': first, 'reply': reply, 'other': other, 'outsider': outsider}


@pytest.mark.django_db
class TestSendMessage:

    def test_send(self, client_for, investor, mine_owner, mine):
        response = client_for(investor).post(reverse('message_list'), {
            'receiver': mine_owner.id,
            'mine': mine.id,
            'content': '  Can we arrange a site visit?  ',
        }, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['sender']['id'] == investor.id
        assert response.data['content'] == 'Can we arrange a site visit?'
        assert response.data['seen'] is False

    def test_send_without_mine(self, client_for, investor, mine_owner):
        response = client_for(investor).post(reverse('message_list'), {
            'receiver': mine_owner.id, 'content': 'Hello',
        }, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['mine'] is None

    def test_cannot_message_self(self, client_for, investor):
        response = client_for(investor).post(reverse('message_list'), {
            'receiver': investor.id, 'content': 'Note to self',
        }, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'receiver' in response.data['details']

    @pytest.mark.parametrize('payload', [
        {'receiver': 9999, 'content': 'Hi'},
        {'content': 'Hi'},
    ])
    def test_invalid_receiver(self, client_for, investor, payload):
        response = client_for(investor).post(reverse('message_list'), payload, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_blank_content(self, client_for, investor, mine_owner):
        response = client_for(investor).post(reverse('message_list'), {
            'receiver': mine_owner.id, 'content': '   ',
        }, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_requires_authentication(self, api_client, mine_owner):
        response = api_client.post(reverse('message_list'), {'receiver': mine_owner.id, 'content': 'Hi'},
                                   format='json')
        assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.django_db
class TestReadMessages:

    def test_inbox_and_sent_oldest_first(self, client_for, investor, conversation):
        response = client_for(investor).get(reverse('message_list'))

        assert [m['id'] for m in response.data] == [conversation['first'].id, conversation['reply'].id]

    def test_unseen_only_received(self, client_for, mine_owner, conversation):
        conversation['first'].seen = True
        conversation['first'].save()

        response = client_for(mine_owner).get(reverse('message_list'), {'unseen': 'true'})

        assert [m['id'] for m in response.data] == [conversation['other'].id]

    def test_thread_with_user(self, client_for, mine_owner, investor, conversation):
        response = client_for(mine_owner).get(reverse('message_thread', args=[investor.id]))

        assert response.status_code == status.HTTP_200_OK
        assert [m['id'] for m in response.data] == [conversation['first'].id, conversation['reply'].id]

    def test_thread_with_unknown_user(self, client_for, mine_owner):
        response = client_for(mine_owner).get(reverse('message_thread', args=[9999]))
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_mine_owner_sees_all_mine_messages(self, client_for, mine_owner, mine, conversation):
        response = client_for(mine_owner).get(reverse('mine_messages', args=[mine.id]))
        assert len(response.data) == 3

    def test_admin_sees_all_mine_messages(self, client_for, admin_user, mine, conversation):
        response = client_for(admin_user).get(reverse('mine_messages', args=[mine.id]))
        assert len(response.data) == 3

    def test_other_users_see_only_their_own(self, client_for, mine, conversation):
        response = client_for(conversation['outsider']).get(reverse('mine_messages', args=[mine.id]))
        assert [m['id'] for m in response.data] == [conversation['other'].id]

    def test_mine_messages_unknown_mine(self, client_for, investor):
        response = client_for(investor).get(reverse('mine_messages', args=[9999]))
        assert response.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.django_db
class TestMarkSeen:

    def test_receiver_marks_seen(self, client_for, mine_owner, conversation):
        message = conversation['first']

        response = client_for(mine_owner).patch(reverse('message_seen', args=[message.id]))

        assert response.status_code == status.HTTP_200_OK
        assert response.data['seen'] is True
        message.refresh_from_db()
        assert message.seen is True

    def test_sender_cannot_mark_seen(self, client_for, investor, conversation):
        response = client_for(investor).patch(reverse('message_seen', args=[conversation['first'].id]))

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data['message'] == 'Only the receiver can mark a message as seen.'

    def test_unknown_message(self, client_for, investor):
        response = client_for(investor).patch(reverse('message_seen', args=[9999]))
        assert response.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.django_db
class TestMessageModel:

    def test_self_message_rejected(self, investor):
        with pytest.raises(ValidationError):
            Message.objects.create(sender=investor, receiver=investor, content='Hi')

    def test_mine_deletion_keeps_messages(self, mine, conversation):
        mine.delete()

        conversation['first'].refresh_from_db()
        assert conversation['first'].mine is None
