"""
Login and token endpoint security tests.

Tests cover:
- Successful login returns a token pair and the user record
- Generic "Invalid credentials" for unknown emails, wrong passwords and
  inactive accounts (no user enumeration)
- Case-insensitive email lookup
- The role claim carried by access tokens
- Rate limiting of the login endpoint
"""

import jwt
import pytest
from django.conf import settings
from django.urls import reverse
from rest_framework import status

from marketplace.models import User


@pytest.fixture
def investor_account(make_user):
    return make_user(User.ROLE_INVESTOR, email='lerato@capital.test', first_name='Lerato')


def decode(token):
    return jwt.decode(token, settings.SIMPLE_JWT['SIGNING_KEY'], algorithms=['HS256'])


@pytest.mark.django_db
class TestLogin:

    def test_valid_credentials(self, api_client, investor_account, password):
        response = api_client.post(
            reverse('user_login'),
            {'email': 'lerato@capital.test', 'password': password},
            format='json'
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data['user']['id'] == investor_account.id
        assert response.data['user']['role'] == 'investor'
        assert decode(response.data['access'])['token_type'] == 'access'
        assert decode(response.data['refresh'])['token_type'] == 'refresh'

    def test_email_is_case_insensitive(self, api_client, investor_account, password):
        response = api_client.post(
            reverse('user_login'),
            {'email': '  LERATO@Capital.TEST ', 'password': password},
            format='json'
        )
        assert response.status_code == status.HTTP_200_OK

    def test_wrong_password(self, api_client, investor_account):
        response = api_client.post(
            reverse('user_login'),
            {'email': 'lerato@capital.test', 'password': 'Wrong!Pass2024'},
            format='json'
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.data == {'status': 'fail', 'message': 'Invalid credentials'}

    def test_unknown_email_looks_the_same(self, api_client, password):
        response = api_client.post(
            reverse('user_login'),
            {'email': 'nobody@capital.test', 'password': password},
            format='json'
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.data['message'] == 'Invalid credentials'

    def test_inactive_account_refused(self, api_client, investor_account, password):
        investor_account.is_active = False
        investor_account.save()

        response = api_client.post(
            reverse('user_login'),
            {'email': 'lerato@capital.test', 'password': password},
            format='json'
        )
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    @pytest.mark.parametrize('payload', [
        {},
        {'email': 'lerato@capital.test'},
        {'email': 'not-an-email', 'password': 'x'},
    ])
    def test_malformed_request(self, api_client, payload):
        response = api_client.post(reverse('user_login'), payload, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_sql_injection_attempt(self, api_client, investor_account):
        response = api_client.post(
            reverse('user_login'),
            {'email': "lerato@capital.test' OR '1'='1", 'password': "' OR '1'='1"},
            format='json'
        )
        assert response.status_code in (status.HTTP_400_BAD_REQUEST, status.HTTP_401_UNAUTHORIZED)

    def test_login_is_rate_limited(self, api_client, investor_account):
        payload = {'email': 'lerato@capital.test', 'password': 'Wrong!Pass2024'}
        codes = [
            api_client.post(reverse('user_login'), payload, format='json').status_code
            for _ in range(11)
        ]

        assert codes[:10] == [status.HTTP_401_UNAUTHORIZED] * 10
        assert codes[10] == status.HTTP_429_TOO_MANY_REQUESTS


@pytest.mark.django_db
class TestTokenObtainPair:

    def test_token_carries_role_claim(self, api_client, investor_account, password):
        response = api_client.post(
            reverse('token_obtain_pair'),
            {'email': 'lerato@capital.test', 'password': password},
            format='json'
        )

        assert response.status_code == status.HTTP_200_OK
        claims = decode(response.data['access'])
        assert claims['role'] == 'investor'
        assert str(claims['user_id']) == str(investor_account.id)

    def test_bad_credentials(self, api_client, investor_account):
        response = api_client.post(
            reverse('token_obtain_pair'),
            {'email': 'lerato@capital.test', 'password': 'nope'},
            format='json'
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.data['status'] == 'fail'


@pytest.mark.django_db
class TestAuthenticatedAccess:

    def test_me_requires_token(self, api_client):
        response = api_client.get(reverse('current_user'))

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.data['status'] == 'fail'

    def test_me_returns_caller(self, client_for, investor_account):
        response = client_for(investor_account).get(reverse('current_user'))

        assert response.status_code == status.HTTP_200_OK
        assert response.data['email'] == 'lerato@capital.test'
        assert 'password' not in response.data

    def test_tampered_token_rejected(self, api_client, investor_account, password):
        login = api_client.post(
            reverse('user_login'),
            {'email': 'lerato@capital.test', 'password': password},
            format='json'
        )
        header, payload, signature = login.data['access'].split('.')
        forged = f"{header}.{payload}.{signature[::-1]}"

        api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {forged}')
        response = api_client.get(reverse('current_user'))
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
