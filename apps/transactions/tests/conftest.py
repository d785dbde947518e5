import pytest
from datetime import date
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from apps.accounts.models import User
from apps.transactions.services import (
    create_transaction,
    create_installment_purchase,
    create_recurring_transaction,
)


@pytest.fixture
def api_client():
    """Return an unauthenticated API client."""
    return APIClient()


@pytest.fixture
def finance_user(db):
    """Create and return a test user owning transactions."""
    return User.objects.create_user(
        email='planner@example.com',
        password='TestPass123!',
        name='Planner User',
    )


@pytest.fixture
def finance_other_user(db):
    """Create and return another test user."""
    return User.objects.create_user(
        email='planner_other@example.com',
        password='TestPass123!',
        name='Other Planner',
    )


@pytest.fixture
def finance_auth_client(api_client, finance_user):
    """Return API client authenticated as the finance user."""
    refresh = RefreshToken.for_user(finance_user)
    api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return api_client


@pytest.fixture
def finance_other_client(finance_other_user):
    """Return a separate API client authenticated as the other user."""
    client = APIClient()
    refresh = RefreshToken.for_user(finance_other_user)
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return client


@pytest.fixture
def expense(finance_user):
    """A pending expense in February 2024."""
    return create_transaction(
        user=finance_user,
        description='Electricity bill',
        amount_in_cents=12990,
        date=date(2024, 2, 10),
        due_date=date(2024, 2, 15),
        type='EXPENSE',
    )


@pytest.fixture
def income(finance_user):
    """A pending income in February 2024."""
    return create_transaction(
        user=finance_user,
        description='Salary',
        amount_in_cents=500000,
        date=date(2024, 2, 5),
        type='INCOME',
    )


@pytest.fixture
def transfer(finance_user):
    """A pending transfer in February 2024."""
    return create_transaction(
        user=finance_user,
        description='Move to savings',
        amount_in_cents=100000,
        date=date(2024, 2, 20),
        type='TRANSFER',
    )


@pytest.fixture
def installment_purchase(finance_user):
    """Notebook bought in 10 installments of 500.00, returns (anchor, installments)."""
    return create_installment_purchase(
        user=finance_user,
        description='Notebook',
        amount_in_cents=50000,
        date=date(2024, 1, 10),
        total_installments=10,
    )


@pytest.fixture
def recurring_template(finance_user):
    """Monthly rent template starting on the last day of January 2024."""
    return create_recurring_transaction(
        user=finance_user,
        description='Rent',
        amount_in_cents=150000,
        date=date(2024, 1, 31),
        recurrence_pattern='MONTHLY',
    )
