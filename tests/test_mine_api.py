"""
Tests for mine listing endpoints and mine documents.

Test Coverage:
- Public listing, filtering, owner listing and search
- Creation by mine owners, with an optional single PDF
- Owner-only updates; owner is immutable
- Attachment upload, metadata append and media append
"""

import json

import pytest
from decimal import Decimal
from django.core.files.uploadedfile import SimpleUploadedFile
from rest_framework import status

from marketplace.models import Mine, MineAttachment, User


PDF_BYTES = b'%PDF-1.4\n1 0 obj\n<<>>\nendobj\ntrailer\n<<>>\n%%EOF\n'


def pdf_upload(name='report.pdf', content=PDF_BYTES, content_type='application/pdf'):
    return SimpleUploadedFile(name, content, content_type=content_type)


MINE_PAYLOAD = {
    'name': 'Bushveld Platinum',
    'location': 'Rustenburg, North West',
    'commodity_type': 'Platinum',
    'status': 'Development',
    'price': '12000000.00',
    'geology_resource': {'reserves_moz': 3.2},
}


@pytest.mark.django_db
class TestMineListing:

    def test_listing_is_public(self, api_client, mine):
        response = api_client.get('/api/mines/')

        assert response.status_code == status.HTTP_200_OK
        assert response.data[0]['name'] == 'Witbank Colliery'
        assert response.data[0]['owner']['email'] == mine.owner.email

    def test_filters(self, api_client, mine, mine_owner):
        gold = Mine.objects.create(
            owner=mine_owner, name='Rand Gold', location='Gauteng',
            commodity_type='Gold', price=Decimal('100.00'),
        )

        response = api_client.get('/api/mines/', {'commodity_type': 'gold'})
        assert [item['id'] for item in response.data] == [gold.id]

        response = api_client.get('/api/mines/', {'status': 'Active'})
        assert [item['id'] for item in response.data] == [mine.id]

        response = api_client.get('/api/mines/', {'max_price': '1000'})
        assert [item['id'] for item in response.data] == [gold.id]

    @pytest.mark.parametrize('params', [
        {'status': 'Closed'},
        {'min_price': 'abc'},
        {'min_price': '10', 'max_price': '5'},
        {'owner': 'me'},
    ])
    def test_invalid_filters(self, api_client, params):
        response = api_client.get('/api/mines/', params)
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['status'] == 'fail'

    def test_mines_by_owner(self, api_client, mine, make_user):
        other_owner = make_user(User.ROLE_MINE_OWNER)
        Mine.objects.create(owner=other_owner, name='Other', location='X', commodity_type='Coal', price=Decimal('1.00'))

        response = api_client.get(f'/api/mines/owner/{mine.owner.id}/')

        assert [item['id'] for item in response.data] == [mine.id]

    def test_search_matches_name_and_location(self, api_client, mine):
        assert len(api_client.get('/api/mines/search/witbank/').data) == 1
        assert len(api_client.get('/api/mines/search/MPUMA/').data) == 1
        assert api_client.get('/api/mines/search/uranium/').data == []

    def test_unknown_mine(self, api_client):
        response = api_client.get('/api/mines/99999/')
        assert response.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.django_db
class TestMineCreation:

    def test_owner_creates_mine_with_json(self, client_for, mine_owner):
        response = client_for(mine_owner).post('/api/mines/', MINE_PAYLOAD, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['owner']['id'] == mine_owner.id
        assert response.data['geology_resource'] == {'reserves_moz': 3.2}
        assert response.data['attachments'] == []

    def test_status_defaults_to_exploration(self, client_for, mine_owner):
        payload = {key: value for key, value in MINE_PAYLOAD.items() if key != 'status'}
        response = client_for(mine_owner).post('/api/mines/', payload, format='json')
        assert response.data['status'] == 'Exploration'

    def test_create_with_pdf_and_encoded_sections(self, client_for, mine_owner):
        payload = {
            'name': 'Sishen Iron',
            'location': 'Northern Cape',
            'commodity_type': 'Iron Ore',
            'price': '500.00',
            'financials': json.dumps({'annual_revenue': 1000000}),
            'file': pdf_upload(),
        }
        response = client_for(mine_owner).post('/api/mines/', payload, format='multipart')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['financials'] == {'annual_revenue': 1000000}
        attachment = response.data['attachments'][0]
        assert attachment['filename'] == 'report.pdf'
        assert attachment['mimetype'] == 'application/pdf'
        assert attachment['url']

    def test_non_pdf_upload_creates_nothing(self, client_for, mine_owner):
        payload = {
            'name': 'Sishen Iron',
            'location': 'Northern Cape',
            'commodity_type': 'Iron Ore',
            'price': '500.00',
            'file': pdf_upload('photo.png', b'\x89PNG', 'image/png'),
        }
        response = client_for(mine_owner).post('/api/mines/', payload, format='multipart')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert Mine.objects.count() == 0

    def test_two_files_are_rejected(self, client_for, mine_owner):
        payload = {
            'name': 'Sishen Iron',
            'location': 'Northern Cape',
            'commodity_type': 'Iron Ore',
            'price': '500.00',
            'file': pdf_upload('a.pdf'),
            'file2': pdf_upload('b.pdf'),
        }
        response = client_for(mine_owner).post('/api/mines/', payload, format='multipart')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['message'] == 'Only one PDF file can be uploaded.'
        assert Mine.objects.count() == 0

    def test_oversized_pdf_is_rejected(self, client_for, mine_owner, settings):
        settings.ATTACHMENT_MAX_BYTES = 10
        payload = {
            'name': 'Sishen Iron',
            'location': 'Northern Cape',
            'commodity_type': 'Iron Ore',
            'price': '500.00',
            'file': pdf_upload(),
        }
        response = client_for(mine_owner).post('/api/mines/', payload, format='multipart')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert Mine.objects.count() == 0

    def test_investor_cannot_create_mine(self, client_for, investor):
        response = client_for(investor).post('/api/mines/', MINE_PAYLOAD, format='json')
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_blank_name_is_rejected(self, client_for, mine_owner):
        response = client_for(mine_owner).post('/api/mines/', {**MINE_PAYLOAD, 'name': ' '}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'name' in response.data['details']

    def test_negative_price_is_rejected(self, client_for, mine_owner):
        response = client_for(mine_owner).post('/api/mines/', {**MINE_PAYLOAD, 'price': '-1'}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.django_db
class TestMineModification:

    def test_owner_updates_mine(self, client_for, mine):
        response = client_for(mine.owner).patch(f'/api/mines/{mine.id}/', {'status': 'Idle'}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['status'] == 'Idle'

    def test_owner_field_is_ignored_on_update(self, client_for, mine, investor):
        response = client_for(mine.owner).patch(
            f'/api/mines/{mine.id}/', {'owner': investor.id}, format='json'
        )
        assert response.status_code == status.HTTP_200_OK
        mine.refresh_from_db()
        assert mine.owner_id != investor.id

    def test_other_user_cannot_update(self, client_for, mine, investor):
        response = client_for(investor).patch(f'/api/mines/{mine.id}/', {'status': 'Idle'}, format='json')
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_admin_deletes_mine(self, client_for, mine, admin_user):
        response = client_for(admin_user).delete(f'/api/mines/{mine.id}/')

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {'message': 'Mine deleted'}
        assert not Mine.objects.filter(pk=mine.pk).exists()

    def test_attachment_upload(self, client_for, mine):
        response = client_for(mine.owner).post(
            f'/api/mines/{mine.id}/attachment/', {'file': pdf_upload('survey.pdf')}, format='multipart'
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['filename'] == 'survey.pdf'
        assert MineAttachment.objects.filter(mine=mine).count() == 1

    def test_attachment_upload_requires_a_file(self, client_for, mine):
        response = client_for(mine.owner).post(f'/api/mines/{mine.id}/attachment/', {}, format='multipart')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_attachment_upload_by_stranger(self, client_for, mine, investor):
        response = client_for(investor).post(
            f'/api/mines/{mine.id}/attachment/', {'file': pdf_upload()}, format='multipart'
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_attachment_metadata_is_appended(self, client_for, mine):
        client = client_for(mine.owner)
        client.post(f'/api/mines/{mine.id}/attachment/', {'file': pdf_upload('first.pdf')}, format='multipart')

        response = client.patch(f'/api/mines/{mine.id}/attachments/', {'attachments': [
            {'filename': 'permit.pdf', 'url': 'https://docs.example.com/permit.pdf', 'size': 2048},
        ]}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert [item['filename'] for item in response.data['attachments']] == ['first.pdf', 'permit.pdf']

    def test_attachment_metadata_must_be_a_list(self, client_for, mine):
        response = client_for(mine.owner).patch(
            f'/api/mines/{mine.id}/attachments/', {'attachments': {'filename': 'x'}}, format='json'
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_media_is_appended(self, client_for, mine):
        client = client_for(mine.owner)
        client.patch(f'/api/mines/{mine.id}/media/', {'media': ['https://img/1.jpg']}, format='json')
        response = client.patch(f'/api/mines/{mine.id}/media/', {'media': ['https://img/2.jpg']}, format='json')

        assert response.data['media'] == ['https://img/1.jpg', 'https://img/2.jpg']
