"""
Tests for the booking lifecycle: creation, status changes, charges and payments
"""
import pytest

from booking_rules import BOOKING_STATUSES
from models import Booking, db


class TestCreateBooking:
    def test_price_breakdown(self, user_client, booking_payload, user_id):
        response = user_client.post('/api/bookings', json=booking_payload)

        assert response.status_code == 201
        booking = response.get_json()['booking']
        assert booking['basePrice'] == 1500000
        assert booking['driverPrice'] == 600000
        assert booking['totalPrice'] == 2100000
        assert booking['depositAmount'] == 630000
        assert booking['paidAmount'] == 0
        assert booking['status'] == 'pending'
        assert booking['nextStatus'] == 'verified'
        assert booking['paymentStatus'] == 'unpaid'
        assert booking['userId'] == user_id
        assert booking['car']['name'] == 'Toyota Fortuner'

    def test_without_driver(self, user_client, booking_payload):
        booking = user_client.post(
            '/api/bookings', json=dict(booking_payload, withDriver=False)).get_json()['booking']

        assert booking['driverPrice'] == 0
        assert booking['totalPrice'] == 1500000

    def test_user_id_comes_from_session(self, user_client, booking_payload, user_id, other_user_id):
        response = user_client.post('/api/bookings', json=dict(booking_payload, userId=other_user_id))

        assert response.get_json()['booking']['userId'] == user_id

    def test_partial_day_rounds_up(self, user_client, booking_payload):
        data = dict(booking_payload, withDriver=False, endDate='2025-03-02T09:00:00Z')

        booking = user_client.post('/api/bookings', json=data).get_json()['booking']

        assert booking['basePrice'] == 1000000

    @pytest.mark.parametrize('end_date', ['2025-03-01T08:00:00.000Z', '2025-02-27T08:00:00.000Z'])
    def test_end_must_be_after_start(self, user_client, booking_payload, end_date):
        response = user_client.post('/api/bookings', json=dict(booking_payload, endDate=end_date))

        assert response.status_code == 400

    def test_unknown_car(self, user_client, booking_payload):
        response = user_client.post('/api/bookings', json=dict(booking_payload, carId=9999))

        assert response.status_code == 404
        assert response.get_json()['error'] == 'Car not found'

    def test_missing_fields(self, user_client):
        response = user_client.post('/api/bookings', json={'withDriver': True})

        assert response.status_code == 400
        details = response.get_json()['details']
        assert {'carId', 'startDate', 'endDate', 'customerName', 'customerEmail', 'customerPhone'} <= set(details)

    def test_anonymous_rejected_after_setup(self, client, configured, booking_payload):
        assert client.get('/api/bookings').status_code == 401
        assert client.post('/api/bookings', json=booking_payload).status_code == 401


class TestReadBookings:
    def test_user_lists_only_own_bookings(self, user_client, other_client, booking_payload, booking_id):
        other_client.post('/api/bookings', json=booking_payload)

        bookings = user_client.get('/api/bookings').get_json()['bookings']

        assert [b['id'] for b in bookings] == [booking_id]

    def test_admin_lists_all_bookings(self, admin_client, other_client, booking_payload, booking_id):
        other_client.post('/api/bookings', json=booking_payload)

        body = admin_client.get('/api/bookings').get_json()

        assert body['pagination']['total'] == 2
        assert body['bookings'][0]['carName'] == 'Toyota Fortuner'

    def test_admin_filters_by_status(self, admin_client, booking_id):
        admin_client.patch(f'/api/bookings/{booking_id}/status', json={'status': 'cancelled'})

        assert admin_client.get('/api/bookings?status=cancelled').get_json()['pagination']['total'] == 1
        assert admin_client.get('/api/bookings?status=pending').get_json()['pagination']['total'] == 0
        assert admin_client.get('/api/bookings?status=archived').status_code == 400

    def test_owner_reads_booking(self, user_client, booking_id):
        assert user_client.get(f'/api/bookings/{booking_id}').status_code == 200

    def test_other_user_forbidden(self, other_client, booking_id):
        assert other_client.get(f'/api/bookings/{booking_id}').status_code == 403

    def test_missing_booking(self, admin_client):
        assert admin_client.get('/api/bookings/4242').status_code == 404


class TestStatusUpdates:
    def test_regular_user_cannot_change_status(self, user_client, booking_id):
        response = user_client.patch(f'/api/bookings/{booking_id}/status', json={'status': 'verified'})

        assert response.status_code == 403

    def test_verified_and_confirmed_stamps(self, admin_client, booking_id):
        booking = admin_client.patch(
            f'/api/bookings/{booking_id}/status', json={'status': 'verified'}).get_json()['booking']
        assert booking['verifiedAt'] is not None
        assert booking['confirmedAt'] is None

        booking = admin_client.patch(
            f'/api/bookings/{booking_id}/status', json={'status': 'confirmed'}).get_json()['booking']
        assert booking['confirmedAt'] is not None
        assert booking['nextStatus'] == 'delivered'

    def test_delivery_stamps_and_notes(self, admin_client, booking_id):
        booking = admin_client.patch(f'/api/bookings/{booking_id}/status', json={
            'status': 'delivered', 'notes': 'Delivered at hotel lobby',
        }).get_json()['booking']

        assert booking['deliveredAt'] is not None
        assert booking['deliveredAt'] == booking['deliveryDate']
        assert booking['deliveryNotes'] == 'Delivered at hotel lobby'

    def test_completion_stamps_and_notes(self, admin_client, booking_id):
        booking = admin_client.patch(f'/api/bookings/{booking_id}/status', json={
            'status': 'completed', 'notes': 'Returned with scratches',
        }).get_json()['booking']

        assert booking['completedAt'] == booking['actualReturnDate']
        assert booking['completedAt'] is not None
        assert booking['returnNotes'] == 'Returned with scratches'
        assert booking['nextStatus'] is None

    def test_active_stores_status_only(self, admin_client, booking_id):
        booking = admin_client.patch(
            f'/api/bookings/{booking_id}/status', json={'status': 'active'}).get_json()['booking']

        assert booking['status'] == 'active'
        assert booking['deliveredAt'] is None
        assert booking['verifiedAt'] is None

    def test_any_status_accepted_by_default(self, admin_client, booking_id):
        for status in ('completed',) + BOOKING_STATUSES:
            response = admin_client.patch(f'/api/bookings/{booking_id}/status', json={'status': status})
            assert response.status_code == 200
            assert response.get_json()['booking']['status'] == status

    def test_unknown_status_rejected(self, admin_client, booking_id):
        response = admin_client.patch(f'/api/bookings/{booking_id}/status', json={'status': 'archived'})

        assert response.status_code == 400
        assert 'status' in response.get_json()['details']

    def test_strict_mode_enforces_forward_or_cancel(self, app, admin_client, booking_id):
        app.config['STRICT_STATUS_TRANSITIONS'] = True
        url = f'/api/bookings/{booking_id}/status'

        assert admin_client.patch(url, json={'status': 'delivered'}).status_code == 400
        assert admin_client.patch(url, json={'status': 'verified'}).status_code == 200
        assert admin_client.patch(url, json={'status': 'pending'}).status_code == 400
        assert admin_client.patch(url, json={'status': 'cancelled'}).status_code == 200
        assert admin_client.patch(url, json={'status': 'confirmed'}).status_code == 400


class TestCharges:
    def test_fees_added_to_total(self, admin_client, booking_id):
        booking = admin_client.patch(f'/api/bookings/{booking_id}/charges', json={
            'cleaningFee': 100000,
            'damageFee': 250000,
            'overtimeFee': 50000,
            'fuelFee': 30000,
            'otherFees': 20000,
            'feesNotes': 'Scratch on rear bumper',
        }).get_json()['booking']

        assert booking['totalPrice'] == 2100000 + 450000
        assert booking['feesNotes'] == 'Scratch on rear bumper'
        assert booking['depositAmount'] == 630000

    def test_same_fees_twice_do_not_accumulate(self, admin_client, booking_id):
        fees = {'cleaningFee': 100000, 'fuelFee': 30000}
        first = admin_client.patch(f'/api/bookings/{booking_id}/charges', json=fees).get_json()['booking']
        second = admin_client.patch(f'/api/bookings/{booking_id}/charges', json=fees).get_json()['booking']

        assert first['totalPrice'] == second['totalPrice'] == 2230000

    def test_partial_update_merges_with_stored_fees(self, admin_client, booking_id):
        admin_client.patch(f'/api/bookings/{booking_id}/charges', json={'cleaningFee': 100000})
        booking = admin_client.patch(
            f'/api/bookings/{booking_id}/charges', json={'damageFee': 200000}).get_json()['booking']

        assert booking['cleaningFee'] == 100000
        assert booking['damageFee'] == 200000
        assert booking['totalPrice'] == 2400000

    def test_fees_can_be_reset_to_zero(self, admin_client, booking_id):
        admin_client.patch(f'/api/bookings/{booking_id}/charges', json={'damageFee': 200000})
        booking = admin_client.patch(
            f'/api/bookings/{booking_id}/charges', json={'damageFee': 0}).get_json()['booking']

        assert booking['totalPrice'] == 2100000

    def test_negative_fee_rejected(self, app, admin_client, booking_id):
        response = admin_client.patch(f'/api/bookings/{booking_id}/charges', json={'fuelFee': -10})

        assert response.status_code == 400
        with app.app_context():
            assert db.session.get(Booking, booking_id).total_price == 2100000

    @pytest.mark.parametrize('fee', ['1e999', 'inf', 'nan'])
    def test_non_finite_fee_rejected(self, app, admin_client, booking_id, fee):
        response = admin_client.patch(f'/api/bookings/{booking_id}/charges', json={'damageFee': fee})

        assert response.status_code == 400
        assert 'damageFee' in response.get_json()['details']
        with app.app_context():
            assert db.session.get(Booking, booking_id).total_price == 2100000

    def test_missing_booking(self, admin_client):
        assert admin_client.patch('/api/bookings/999/charges', json={'fuelFee': 1}).status_code == 404


class TestPayment:
    def test_paid_amount_is_overwritten(self, admin_client, booking_id):
        url = f'/api/bookings/{booking_id}/payment'
        admin_client.patch(url, json={'paidAmount': 630000})
        booking = admin_client.patch(url, json={'paidAmount': 100000, 'paymentNotes': 'Refund'}).get_json()['booking']

        assert booking['paidAmount'] == 100000
        assert booking['paymentNotes'] == 'Refund'
        assert booking['paymentStatus'] == 'partial'

    @pytest.mark.parametrize('paid, label', [
        (0, 'unpaid'),
        (630000, 'deposit_paid'),
        (2100000, 'fully_paid'),
        (2500000, 'fully_paid'),
    ])
    def test_payment_status_label(self, admin_client, booking_id, paid, label):
        booking = admin_client.patch(
            f'/api/bookings/{booking_id}/payment', json={'paidAmount': paid}).get_json()['booking']

        assert booking['paymentStatus'] == label

    def test_paid_amount_required(self, admin_client, booking_id):
        response = admin_client.patch(f'/api/bookings/{booking_id}/payment', json={'paymentNotes': 'cash'})

        assert response.status_code == 400
        assert 'paidAmount' in response.get_json()['details']

    @pytest.mark.parametrize('paid', ['inf', '-inf', '1e999'])
    def test_non_finite_amount_rejected(self, app, admin_client, booking_id, paid):
        response = admin_client.patch(f'/api/bookings/{booking_id}/payment', json={'paidAmount': paid})

        assert response.status_code == 400
        assert 'paidAmount' in response.get_json()['details']
        with app.app_context():
            assert db.session.get(Booking, booking_id).paid_amount == 0

    def test_user_cannot_record_payment(self, user_client, booking_id):
        response = user_client.patch(f'/api/bookings/{booking_id}/payment', json={'paidAmount': 1})

        assert response.status_code == 403


class TestAdminBookingManagement:
    def test_update_contact_details(self, admin_client, booking_id):
        booking = admin_client.patch(f'/api/bookings/{booking_id}', json={
            'customerPhone': '0988888888', 'notes': 'Child seat',
        }).get_json()['booking']

        assert booking['customerPhone'] == '0988888888'
        assert booking['notes'] == 'Child seat'
        assert booking['customerName'] == 'Nguyen Van A'

    def test_delete_booking(self, app, admin_client, booking_id):
        assert admin_client.delete(f'/api/bookings/{booking_id}').status_code == 200
        with app.app_context():
            assert db.session.get(Booking, booking_id) is None

    def test_stats(self, admin_client, user_client, booking_payload, booking_id):
        second = user_client.post('/api/bookings', json=booking_payload).get_json()['booking']['id']
        admin_client.patch(f'/api/bookings/{booking_id}/status', json={'status': 'confirmed'})
        admin_client.patch(f'/api/bookings/{booking_id}/payment', json={'paidAmount': 630000})
        admin_client.patch(f'/api/bookings/{second}/status', json={'status': 'cancelled'})

        stats = admin_client.get('/api/bookings/stats').get_json()

        assert stats['totalBookings'] == 2
        assert stats['confirmedBookings'] == 1
        assert stats['cancelledBookings'] == 1
        assert stats['byStatus']['pending'] == 0
        assert stats['totalRevenue'] == 2100000
        assert stats['totalPaid'] == 630000
        assert sum(stats['revenueByMonth'].values()) == 2100000

    def test_stats_admin_only(self, user_client):
        assert user_client.get('/api/bookings/stats').status_code == 403
