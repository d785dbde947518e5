import pytest
from django.urls import reverse
from rest_framework import status
from rest_framework_simplejwt.tokens import AccessToken
from apps.accounts.models import User
from apps.accounts.services import (
    register_user,
    authenticate_user,
    UserRegistrationError,
    InvalidCredentialsError,
    InactiveAccountError,
)


def bearer_token(response):
    """Extract the access token from the Authorization response header."""
    header = response['Authorization']
    assert header.startswith('Bearer ')
    return header.split(' ', 1)[1]


# =============================================================================
# Signup Tests
# =============================================================================

@pytest.mark.django_db
class TestSignup:
    """Tests for POST /auth/signup"""

    def test_signup_success(self, api_client):
        """Successfully register a new user."""
        url = reverse('users:signup')
        data = {
            'email': 'newuser@example.com',
            'password': 'SecurePass123!',
            'name': 'New User',
        }
        response = api_client.post(url, data, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['email'] == 'newuser@example.com'
        assert response.data['name'] == 'New User'
        assert 'password' not in response.data
        assert User.objects.filter(email='newuser@example.com').exists()

    def test_signup_returns_usable_token(self, api_client):
        url = reverse('users:signup')
        response = api_client.post(url, {
            'email': 'token@example.com',
            'password': 'SecurePass123!',
            'name': 'Token User',
        }, format='json')

        token = AccessToken(bearer_token(response))
        assert str(token['user_id']) == response.data['id']

    def test_signup_without_name(self, api_client):
        """Register without name (optional field)."""
        url = reverse('users:signup')
        data = {
            'email': 'minimal@example.com',
            'password': 'SecurePass123!',
        }
        response = api_client.post(url, data, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert User.objects.filter(email='minimal@example.com').exists()

    def test_signup_duplicate_email(self, api_client, user):
        """Cannot register with existing email."""
        url = reverse('users:signup')
        data = {
            'email': user.email.upper(),
            'password': 'SecurePass123!',
        }
        response = api_client.post(url, data, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == 'validation_error'
        assert 'email' in response.data['detail']

    def test_signup_weak_password(self, api_client):
        """Registration fails with weak password."""
        url = reverse('users:signup')
        data = {
            'email': 'weak@example.com',
            'password': '123',
        }
        response = api_client.post(url, data, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'password' in response.data['detail']

    def test_signup_invalid_email(self, api_client):
        url = reverse('users:signup')
        data = {
            'email': 'not-an-email',
            'password': 'SecurePass123!',
        }
        response = api_client.post(url, data, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'email' in response.data['detail']


# =============================================================================
# Login Tests
# =============================================================================

@pytest.mark.django_db
class TestLogin:
    """Tests for POST /auth/login"""

    def test_login_success(self, api_client, user):
        url = reverse('users:login')
        response = api_client.post(url, {
            'email': 'testuser@example.com',
            'password': 'TestPass123!',
        }, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['id'] == str(user.id)
        assert bearer_token(response)

    def test_login_wrong_password(self, api_client, user):
        url = reverse('users:login')
        response = api_client.post(url, {
            'email': 'testuser@example.com',
            'password': 'WrongPass123!',
        }, format='json')

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.data == {
            'error': 'Invalid email or password',
            'code': 'auth_error',
            'status': 401,
        }

    def test_login_nonexistent_user(self, api_client):
        url = reverse('users:login')
        response = api_client.post(url, {
            'email': 'nobody@example.com',
            'password': 'TestPass123!',
        }, format='json')

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_login_inactive_user(self, api_client, user_inactive):
        url = reverse('users:login')
        response = api_client.post(url, {
            'email': 'inactive@example.com',
            'password': 'TestPass123!',
        }, format='json')

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_login_missing_password(self, api_client):
        url = reverse('users:login')
        response = api_client.post(url, {'email': 'testuser@example.com'}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_login_token_authenticates(self, api_client, user):
        response = api_client.post(reverse('users:login'), {
            'email': 'testuser@example.com',
            'password': 'TestPass123!',
        }, format='json')

        api_client.credentials(HTTP_AUTHORIZATION=response['Authorization'])
        me = api_client.get(reverse('users:me'))

        assert me.status_code == status.HTTP_200_OK
        assert me.data['email'] == 'testuser@example.com'


# =============================================================================
# Current User Tests
# =============================================================================

@pytest.mark.django_db
class TestMe:
    """Tests for GET /auth/me"""

    def test_get_current_user(self, authenticated_client, user):
        response = authenticated_client.get(reverse('users:me'))

        assert response.status_code == status.HTTP_200_OK
        assert response.data['id'] == str(user.id)
        assert response.data['name'] == 'Test User'

    def test_get_current_user_unauthenticated(self, api_client):
        response = api_client.get(reverse('users:me'))

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.data['code'] == 'auth_error'


# =============================================================================
# Service Tests
# =============================================================================

@pytest.mark.django_db
class TestAccountServices:
    """Tests for registration and authentication services."""

    def test_register_normalizes_email(self):
        user = register_user(email='Mixed@Example.COM', password='SecurePass123!')
        assert user.email == 'mixed@example.com'

    def test_register_duplicate(self, user):
        with pytest.raises(UserRegistrationError):
            register_user(email='testuser@example.com', password='SecurePass123!')

    def test_authenticate_is_case_insensitive(self, user):
        assert authenticate_user(email='TestUser@Example.com', password='TestPass123!') == user

    def test_authenticate_updates_last_login(self, user):
        authenticate_user(email='testuser@example.com', password='TestPass123!')
        user.refresh_from_db()
        assert user.last_login is not None

    def test_authenticate_wrong_password(self, user):
        with pytest.raises(InvalidCredentialsError):
            authenticate_user(email='testuser@example.com', password='nope')

    def test_authenticate_strips_whitespace(self, user):
        assert authenticate_user(email='  testuser@example.com ', password='TestPass123!') == user

    def test_authenticate_unknown_email_same_message(self, user):
        with pytest.raises(InvalidCredentialsError) as unknown:
            authenticate_user(email='nobody@example.com', password='TestPass123!')
        with pytest.raises(InvalidCredentialsError) as wrong:
            authenticate_user(email='testuser@example.com', password='nope')
        assert str(unknown.value) == str(wrong.value)

    def test_authenticate_inactive_wrong_password(self, user_inactive):
        """Wrong password on a deactivated account doesn't reveal the account state."""
        with pytest.raises(InvalidCredentialsError):
            authenticate_user(email='inactive@example.com', password='nope')

    def test_authenticate_inactive(self, user_inactive):
        with pytest.raises(InactiveAccountError):
            authenticate_user(email='inactive@example.com', password='TestPass123!')
