import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from apps.accounts.models import User
from apps.groups.models import Group, GroupMembership, GroupRole
from apps.settlements.services import create_split_bill


def _client_for(user):
    client = APIClient()
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return client


@pytest.fixture
def api_client():
    """Return an unauthenticated API client."""
    return APIClient()


@pytest.fixture
def alice(db):
    """Group owner who pays most bills."""
    return User.objects.create_user(
        email='alice@example.com',
        password='TestPass123!',
        display_name='Alice',
        upi_id='alice@upi',
    )


@pytest.fixture
def bob(db):
    return User.objects.create_user(
        email='bob@example.com',
        password='TestPass123!',
        display_name='Bob',
    )


@pytest.fixture
def carol(db):
    return User.objects.create_user(
        email='carol@example.com',
        password='TestPass123!',
        display_name='Carol',
    )


@pytest.fixture
def outsider(db):
    """Create and return a user not in any group."""
    return User.objects.create_user(
        email='outsider@example.com',
        password='TestPass123!',
        display_name='Outsider',
    )


@pytest.fixture
def alice_client(alice):
    return _client_for(alice)


@pytest.fixture
def bob_client(bob):
    return _client_for(bob)


@pytest.fixture
def carol_client(carol):
    return _client_for(carol)


@pytest.fixture
def outsider_client(outsider):
    return _client_for(outsider)


@pytest.fixture
def trip_group(db, alice, bob, carol):
    """Group with alice as admin and bob, carol as members."""
    group = Group.objects.create(
        name='Goa Trip',
        description='Shared costs for the trip',
        owner=alice,
    )
    GroupMembership.objects.create(user=alice, group=group, role=GroupRole.ADMIN)
    GroupMembership.objects.create(user=bob, group=group, role=GroupRole.MEMBER)
    GroupMembership.objects.create(user=carol, group=group, role=GroupRole.MEMBER)
    return group


@pytest.fixture
def other_group(db, outsider):
    group = Group.objects.create(name='Office Lunch', owner=outsider)
    GroupMembership.objects.create(user=outsider, group=group, role=GroupRole.ADMIN)
    return group


@pytest.fixture
def dinner_bill(trip_group, alice, bob, carol):
    """900.00 paid by alice, split equally: bob and carol owe 30000 each."""
    return create_split_bill(
        group_id=trip_group.id,
        created_by=alice,
        description='Dinner',
        total_amount_minor=90000,
        participants=[
            {'user_id': alice.id},
            {'user_id': bob.id},
            {'user_id': carol.id},
        ],
    )
