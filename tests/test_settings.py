"""
Tests for the admin settings store
"""


class TestSettings:
    def test_update_and_read_back(self, admin_client):
        response = admin_client.put('/api/settings', json={
            'site_name': 'Saigon Rentals',
            'contact_email': 'hello@example.com',
            'smtp_enabled': True,
            'auto_approve_bookings': False,
            'smtp_port': 587,
        })
        assert response.status_code == 200

        settings = admin_client.get('/api/settings').get_json()['settings']

        assert settings['site_name'] == 'Saigon Rentals'
        assert settings['contact_email'] == 'hello@example.com'
        assert settings['smtp_enabled'] == 'true'
        assert settings['auto_approve_bookings'] == 'false'
        assert settings['smtp_port'] == '587'
        assert settings['configured'] == 'true'

    def test_only_supplied_keys_change(self, admin_client):
        admin_client.put('/api/settings', json={'site_name': 'First', 'contact_phone': '0900000000'})
        admin_client.put('/api/settings', json={'site_name': 'Second'})

        settings = admin_client.get('/api/settings').get_json()['settings']

        assert settings['site_name'] == 'Second'
        assert settings['contact_phone'] == '0900000000'
        assert 'smtp_enabled' not in settings

    def test_single_setting(self, admin_client):
        admin_client.put('/api/settings', json={'session_timeout': '30'})

        assert admin_client.get('/api/settings/session_timeout').get_json() == {'key': 'session_timeout', 'value': '30'}

    def test_unknown_setting(self, admin_client):
        response = admin_client.get('/api/settings/does_not_exist')

        assert response.status_code == 404
        assert response.get_json()['error'] == 'Setting not found'

    def test_invalid_email(self, admin_client):
        response = admin_client.put('/api/settings', json={'contact_email': 'nope'})

        assert response.status_code == 400
        assert 'contact_email' in response.get_json()['details']

    def test_admin_only(self, user_client):
        assert user_client.get('/api/settings').status_code == 403
        assert user_client.put('/api/settings', json={'site_name': 'x'}).status_code == 403
