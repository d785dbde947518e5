"""
Tests for transactions permission classes and authentication.
"""
import pytest
from unittest.mock import Mock
from django.urls import reverse
from rest_framework import status
from rest_framework_simplejwt.tokens import AccessToken
from apps.transactions.permissions import IsTransactionOwner


@pytest.mark.django_db
class TestIsTransactionOwner:
    """Test IsTransactionOwner permission class."""

    def test_owner_allowed(self, finance_user, expense):
        permission = IsTransactionOwner()

        request = Mock()
        request.user = finance_user

        assert permission.has_object_permission(request, Mock(), expense) is True

    def test_other_user_denied(self, finance_other_user, expense):
        permission = IsTransactionOwner()

        request = Mock()
        request.user = finance_other_user

        assert permission.has_object_permission(request, Mock(), expense) is False


@pytest.mark.django_db
class TestAuthentication:
    """Every transaction endpoint requires a valid bearer token."""

    def test_missing_token(self, api_client):
        response = api_client.get(reverse('transactions:transaction-list'))

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.data['code'] == 'auth_error'
        assert response.data['status'] == 401

    def test_invalid_token(self, api_client):
        api_client.credentials(HTTP_AUTHORIZATION='Bearer not-a-token')

        response = api_client.get(reverse('transactions:transaction-list'))

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_expired_token(self, api_client, finance_user):
        token = AccessToken.for_user(finance_user)
        token.set_exp(lifetime=-token.lifetime)
        api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')

        response = api_client.get(reverse('transactions:transaction-list'))

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.data['code'] == 'auth_error'

    def test_installments_require_auth(self, api_client, installment_purchase):
        anchor, _ = installment_purchase
        url = reverse('transactions:installment-detail', kwargs={'pk': str(anchor.id)})

        assert api_client.get(url).status_code == status.HTTP_401_UNAUTHORIZED
        assert api_client.delete(url).status_code == status.HTTP_401_UNAUTHORIZED

    def test_other_users_transaction_is_not_found(self, finance_other_client, expense):
        url = reverse('transactions:transaction-detail', kwargs={'pk': str(expense.id)})

        assert finance_other_client.get(url).status_code == status.HTTP_404_NOT_FOUND
        assert finance_other_client.delete(url).status_code == status.HTTP_404_NOT_FOUND
