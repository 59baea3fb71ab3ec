from datetime import timedelta
from io import StringIO
from unittest.mock import patch

from django.core.management import call_command
from django.core.management.base import CommandError
from django.db import connection
from django.test import SimpleTestCase, TestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from common.security import EncryptionError, decrypt, encrypt
from users.models import OAuthToken, User


class UserAuthTestCase(APITestCase):

    def setUp(self):
        self.user_data = {
            'email': 'owner@example.com',
            'name': 'Ada Owner',
            'password': 'StrongPass123!',
        }
        self.user = User.objects.create_user(**self.user_data)

    # ================= Register =================
    def test_register_user(self):
        data = {'email': 'newuser@example.com', 'name': 'New User', 'password': 'An0ther-Pass!'}
        response = self.client.post(reverse('users:register'), data, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn('access', response.data['tokens'])
        self.assertIn('refresh', response.data['tokens'])
        self.assertEqual(response.data['user']['email'], 'newuser@example.com')
        self.assertNotIn('password', response.data['user'])
        self.assertTrue(User.objects.get(email='newuser@example.com').check_password('An0ther-Pass!'))

    def test_register_duplicate_email(self):
        data = {'email': 'OWNER@example.com', 'password': 'An0ther-Pass!'}
        response = self.client.post(reverse('users:register'), data, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('email', response.data)

    def test_register_short_password(self):
        data = {'email': 'short@example.com', 'password': 'abc'}
        response = self.client.post(reverse('users:register'), data, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('password', response.data)

    # ================= JWT =================
    def test_obtain_and_use_token(self):
        response = self.client.post(
            reverse('users:token-obtain'),
            {'email': self.user_data['email'], 'password': self.user_data['password']},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")
        me = self.client.get(reverse('users:me'))
        self.assertEqual(me.status_code, status.HTTP_200_OK)
        self.assertEqual(me.data['email'], 'owner@example.com')

    def test_me_requires_authentication(self):
        response = self.client.get(reverse('users:me'))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_update_profile_name(self):
        self.client.force_authenticate(user=self.user)
        response = self.client.patch(reverse('users:me'), {'name': 'Ada Lovelace', 'email': 'x@example.com'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertEqual(self.user.name, 'Ada Lovelace')
        self.assertEqual(self.user.email, 'owner@example.com')


class OAuthTokenModelTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(email='owner@example.com', password='StrongPass123!')
        self.now = timezone.now()
        self.token = OAuthToken.objects.create(
            user=self.user,
            provider='google',
            access_token='access-1',
            refresh_token='refresh-1',
            expires_at=self.now + timedelta(hours=1),
        )

    def test_tokens_are_encrypted_at_rest(self):
        with connection.cursor() as cursor:
            cursor.execute(
                'SELECT access_token, refresh_token FROM users_oauthtoken WHERE id = %s', [self.token.pk]
            )
            access_raw, refresh_raw = cursor.fetchone()

        for raw, plain in ((access_raw, 'access-1'), (refresh_raw, 'refresh-1')):
            self.assertTrue(raw.startswith('enc::'))
            self.assertNotIn(plain, raw)
        self.assertEqual(OAuthToken.objects.get(pk=self.token.pk).access_token, 'access-1')

    def test_needs_refresh_margin(self):
        self.token.expires_at = self.now + timedelta(minutes=4)
        self.assertTrue(self.token.needs_refresh(now=self.now))
        self.token.expires_at = self.now + timedelta(minutes=6)
        self.assertFalse(self.token.needs_refresh(now=self.now))
        self.token.expires_at = None
        self.assertTrue(self.token.needs_refresh(now=self.now))

    def test_mark_refreshed_keeps_refresh_token_when_none_is_returned(self):
        self.token.mark_refreshed(expires_in=3600, access_token='access-2', refresh_token=None, now=self.now)

        self.token.refresh_from_db()
        self.assertEqual(self.token.access_token, 'access-2')
        self.assertEqual(self.token.refresh_token, 'refresh-1')
        self.assertEqual(self.token.expires_at, self.now + timedelta(seconds=3600))

    def test_disconnect_nulls_credentials(self):
        self.token.disconnect()

        self.token.refresh_from_db()
        self.assertIsNone(self.token.access_token)
        self.assertIsNone(self.token.refresh_token)
        self.assertIsNone(self.token.expires_at)
        self.assertFalse(self.token.is_connected)


class EncryptionTests(SimpleTestCase):
    def test_encrypt_round_trip(self):
        token = encrypt('secret value')
        self.assertNotEqual(token, 'secret value')
        self.assertEqual(decrypt(token), 'secret value')

    def test_tampered_value(self):
        with self.assertRaises(EncryptionError):
            decrypt('not-a-fernet-token')


@override_settings(GOOGLE_OAUTH_CLIENT_ID='')
class CheckEnvCommandTests(SimpleTestCase):
    @patch.dict('os.environ', {'SECRET_KEY': 'x'}, clear=True)
    def test_reports_optional_groups(self):
        out = StringIO()
        call_command('check_env', stdout=out)

        output = out.getvalue()
        self.assertIn('Google', output)
        self.assertIn('OPENAI_API_KEY', output)
        self.assertIn('All required environment variables are set.', output)

    @patch.dict('os.environ', {}, clear=True)
    def test_missing_secret_key_fails(self):
        with self.assertRaises(CommandError):
            call_command('check_env', stdout=StringIO())
