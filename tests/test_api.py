from datetime import timedelta
from decimal import Decimal


def booking_payload(stay, **overrides):
    body = {
        "guest": {"firstName": "Otieno", "lastName": "Odhiambo", "email": "otieno@example.com",
                  "phone": "0722000111", "country": "Kenya"},
        "checkIn": stay[0].isoformat(),
        "checkOut": stay[1].isoformat(),
        "adults": 2,
    }
    body.update(overrides)
    return body


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_room_types(client, room_types):
    names = [rt["name"] for rt in client.get("/api/v1/public/room-types").json()]
    assert names == ["Standard", "Superior"]


def test_availability(client, rooms, room_types, stay):
    r = client.get("/api/v1/public/availability", params={
        "checkIn": stay[0].isoformat(), "checkOut": stay[1].isoformat(), "adults": 1, "country": "Germany",
        "roomTypeId": room_types["superior"].id,
    })
    assert r.status_code == 200
    data = r.json()
    assert (data["region"], data["occupancy"]) == ("INTERNATIONAL", "SINGLE")
    assert [room["roomNumber"] for room in data["rooms"]] == ["201", "202"]
    assert data["rooms"][0]["totalPrice"] == 120


def test_price_check(client, room_types, stay):
    r = client.post("/api/v1/public/price-check", json={
        "roomTypeId": room_types["superior"].id, "checkIn": stay[0].isoformat(), "checkOut": stay[1].isoformat(),
        "region": "DOMESTIC", "occupancy": "DOUBLE",
    })
    assert r.status_code == 200
    assert r.json()["totalPrice"] == 14000


def test_public_booking_and_lookup(client, rooms, room_types, stay):
    r = client.post("/api/v1/public/bookings", json=booking_payload(
        stay, roomTypes=[{"roomTypeId": room_types["superior"].id, "quantity": 1}]))
    assert r.status_code == 200, r.text
    created = r.json()
    assert created["status"] == "PENDING"
    assert Decimal(created["totalAmount"]) == Decimal("14000")
    assert created["rooms"][0]["roomNumber"] == "201"

    number = created["bookingNumber"]
    assert client.get(f"/api/v1/public/bookings/{number}").json()["id"] == created["id"]
    by_email = client.get("/api/v1/public/bookings", params={"email": "OTIENO@example.com"}).json()
    assert [b["bookingNumber"] for b in by_email] == [number]
    assert client.get(f"/api/v1/public/bookings/{number.lower()}").status_code == 404


def test_not_enough_rooms(client, rooms, room_types, stay):
    r = client.post("/api/v1/public/bookings", json=booking_payload(
        stay, adults=2, roomTypes=[{"roomTypeId": room_types["superior"].id, "quantity": 3}]))
    assert r.status_code == 409
    body = r.json()
    assert body["code"] == "INSUFFICIENT_AVAILABILITY"
    assert body["available"] == 2
    assert body["requested"] == 3


def test_validation_error_shape(client, rooms, stay):
    r = client.post("/api/v1/public/bookings", json=booking_payload(stay, roomIds=[rooms["201"].id], adults=0))
    assert r.status_code == 400
    assert r.json()["code"] == "VALIDATION_ERROR"
    assert r.json()["rule"] == "min_adults"


def test_guest_change_flow(client, rooms, stay):
    created = client.post("/api/v1/public/bookings", json=booking_payload(stay, roomIds=[rooms["201"].id])).json()
    number = created["bookingNumber"]
    change = {"checkOut": (stay[1] + timedelta(days=1)).isoformat()}

    preview = client.post(f"/api/v1/public/bookings/{number}/preview-change", json=change).json()
    assert preview["newTotal"] == 21000
    assert preview["difference"] == 7000

    r = client.post(f"/api/v1/public/bookings/{number}/change", json=change)
    assert r.status_code == 409
    assert r.json()["code"] == "PRICE_CHANGE_NOT_CONFIRMED"

    r = client.post(f"/api/v1/public/bookings/{number}/change", json={**change, "acceptedTotal": "21000"})
    assert r.status_code == 200
    assert Decimal(r.json()["totalAmount"]) == Decimal("21000")


def test_staff_endpoints_need_token(client, rooms):
    assert client.get("/api/v1/bookings").status_code == 401


def test_housekeeping_cannot_take_bookings(client, rooms, housekeeper, stay):
    from hippobuck.core.security import create_access_token
    headers = {"Authorization": f"Bearer {create_access_token(housekeeper.id, housekeeper.role)}"}
    r = client.post("/api/v1/bookings", json=booking_payload(stay, roomIds=[rooms["201"].id]), headers=headers)
    assert r.status_code == 403
    r = client.patch(f"/api/v1/admin/rooms/{rooms['103'].id}/status", json={"status": "CLEANING"}, headers=headers)
    assert r.status_code == 200


def test_login(client, staff_user):
    r = client.post("/api/v1/auth/login", json={"email": "FRONTDESK@hippobuck.local", "password": "frontdesk12345"})
    assert r.status_code == 200
    token = r.json()["access_token"]
    me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"}).json()
    assert me["role"] == "STAFF"
    bad = client.post("/api/v1/auth/login", json={"email": "frontdesk@hippobuck.local", "password": "nope"})
    assert bad.status_code == 401


def test_front_desk_flow(client, rooms, stay, staff_headers):
    r = client.post("/api/v1/bookings", headers=staff_headers, json=booking_payload(
        stay, roomIds=[rooms["202"].id], paidAmount="4000", paymentMethod="CASH", confirm=True))
    assert r.status_code == 200, r.text
    booking = r.json()
    assert booking["status"] == "CONFIRMED"
    assert Decimal(booking["balance"]) == Decimal("10000")

    r = client.post(f"/api/v1/bookings/{booking['id']}/payments", headers=staff_headers,
                    json={"amount": "10001", "paymentMethod": "CASH"})
    assert r.status_code == 400
    assert r.json()["code"] == "OVERPAYMENT"

    r = client.post(f"/api/v1/bookings/{booking['id']}/payments", headers=staff_headers,
                    json={"amount": "10000", "paymentMethod": "CREDIT_CARD", "transactionId": "TX-1"})
    assert r.status_code == 200
    detail = client.get(f"/api/v1/bookings/{booking['id']}", headers=staff_headers).json()
    assert Decimal(detail["paidAmount"]) == Decimal("14000")
    assert len(detail["payments"]) == 2

    r = client.post(f"/api/v1/bookings/{booking['id']}/cancel", headers=staff_headers, json={"reason": "test"})
    assert r.json()["status"] == "CANCELLED"
    r = client.post(f"/api/v1/bookings/{booking['id']}/cancel", headers=staff_headers, json={})
    assert r.status_code == 400
    assert r.json()["code"] == "INVALID_STATUS_TRANSITION"


def test_mpesa_flow(client, rooms, stay):
    created = client.post("/api/v1/public/bookings", json=booking_payload(stay, roomIds=[rooms["201"].id])).json()
    r = client.post("/api/v1/public/payments/mpesa", json={"bookingNumber": created["bookingNumber"],
                                                           "phone": "0712345678"})
    assert r.status_code == 200, r.text
    payment = r.json()
    assert payment["status"] == "PENDING"
    assert Decimal(payment["amount"]) == Decimal("14000")

    callback = {"Body": {"stkCallback": {
        "MerchantRequestID": "29115-34620561-1",
        "CheckoutRequestID": payment["gatewayReference"],
        "ResultCode": 0,
        "ResultDesc": "The service request is processed successfully.",
        "CallbackMetadata": {"Item": [
            {"Name": "Amount", "Value": 14000.0},
            {"Name": "MpesaReceiptNumber", "Value": "NLJ7RT61SV"},
            {"Name": "PhoneNumber", "Value": 254712345678},
        ]},
    }}}
    ack = {"ResultCode": 0, "ResultDesc": "Accepted"}
    assert client.post("/api/v1/webhooks/mpesa", json=callback).json() == ack
    assert client.post("/api/v1/webhooks/mpesa", json=callback).json() == ack

    booking = client.get(f"/api/v1/public/bookings/{created['bookingNumber']}").json()
    assert booking["status"] == "CONFIRMED"
    assert Decimal(booking["paidAmount"]) == Decimal("14000")


def test_mpesa_webhook_acknowledges_unknown_reference(client):
    body = {"Body": {"stkCallback": {"CheckoutRequestID": "ws_CO_UNKNOWN", "ResultCode": 1032,
                                     "ResultDesc": "Request cancelled by user"}}}
    r = client.post("/api/v1/webhooks/mpesa", json=body)
    assert r.status_code == 200
    assert r.json() == {"ResultCode": 0, "ResultDesc": "Accepted"}


def test_seasonal_pricing_admin(client, room_types, stay, manager_headers):
    headers = manager_headers
    r = client.post("/api/v1/admin/seasonal-pricing", headers=headers, json={
        "roomTypeId": room_types["superior"].id, "name": "Easter", "startDate": stay[0].isoformat(),
        "endDate": stay[1].isoformat(), "priceMultiplier": "1.50",
    })
    assert r.status_code == 200, r.text
    quote = client.post("/api/v1/public/price-check", json={
        "roomTypeId": room_types["superior"].id, "checkIn": stay[0].isoformat(), "checkOut": stay[1].isoformat(),
    }).json()
    assert quote["totalPrice"] == 21000

    client.delete(f"/api/v1/admin/seasonal-pricing/{r.json()['id']}", headers=headers)
    quote = client.post("/api/v1/public/price-check", json={
        "roomTypeId": room_types["superior"].id, "checkIn": stay[0].isoformat(), "checkOut": stay[1].isoformat(),
    }).json()
    assert quote["totalPrice"] == 14000


def stk_callback(reference, amount, receipt="QKT1AB2CD3"):
    return {"Body": {"stkCallback": {
        "CheckoutRequestID": reference,
        "ResultCode": 0,
        "ResultDesc": "The service request is processed successfully.",
        "CallbackMetadata": {"Item": [
            {"Name": "Amount", "Value": amount},
            {"Name": "MpesaReceiptNumber", "Value": receipt},
        ]},
    }}}


def test_mpesa_webhook_with_unreadable_amount(client, rooms, stay):
    created = client.post("/api/v1/public/bookings", json=booking_payload(stay, roomIds=[rooms["201"].id])).json()
    r = client.post("/api/v1/public/payments/mpesa", json={"bookingNumber": created["bookingNumber"],
                                                           "phone": "0712345678", "amount": "1000",
                                                           "checkoutRequestId": "ws_CO_COMMA"})
    assert r.json()["gatewayReference"] == "ws_CO_COMMA"

    r = client.post("/api/v1/webhooks/mpesa", json=stk_callback("ws_CO_COMMA", "1,000.00"))
    assert r.status_code == 200
    assert r.json() == {"ResultCode": 0, "ResultDesc": "Accepted"}
    booking = client.get(f"/api/v1/public/bookings/{created['bookingNumber']}").json()
    assert Decimal(booking["paidAmount"]) == Decimal("1000")


def test_mpesa_webhook_acknowledges_when_settlement_fails(client, monkeypatch):
    from hippobuck.api.v1.routes import payments

    def broken(*args, **kwargs):
        raise RuntimeError("lost connection")

    monkeypatch.setattr(payments, "apply_gateway_callback", broken)
    r = client.post("/api/v1/webhooks/mpesa", json=stk_callback("ws_CO_BROKEN", 500))
    assert r.status_code == 200
    assert r.json() == {"ResultCode": 0, "ResultDesc": "Accepted"}


def test_mpesa_webhook_with_unexpected_body(client):
    for body in ([1, 2, 3], {"Body": {"stkCallback": "oops"}}):
        r = client.post("/api/v1/webhooks/mpesa", json=body)
        assert r.status_code == 200
        assert r.json() == {"ResultCode": 0, "ResultDesc": "Accepted"}


def test_room_catalogue_management(client, rooms, room_types, stay, manager_headers, staff_headers):
    new_type = {
        "name": "Lake View Suite", "slug": "Lake-View", "maxOccupancy": 3, "bedType": "King Bed",
        "singleDomesticPrice": "9000", "doubleDomesticPrice": "11000",
        "singleInternationalPrice": "120", "doubleInternationalPrice": "150",
        "amenities": ["Balcony", " Lake View "],
    }
    assert client.post("/api/v1/admin/room-types", json=new_type, headers=staff_headers).status_code == 403
    r = client.post("/api/v1/admin/room-types", json=new_type, headers=manager_headers)
    assert r.status_code == 200, r.text
    suite = r.json()
    assert suite["slug"] == "lake-view"
    assert suite["amenities"] == ["Balcony", "Lake View"]
    assert client.post("/api/v1/admin/room-types", json=new_type, headers=manager_headers).status_code == 409

    r = client.post("/api/v1/admin/rooms", json={"roomNumber": "401", "roomTypeId": suite["id"]},
                    headers=manager_headers)
    assert r.status_code == 200, r.text
    room = r.json()
    assert (room["floor"], room["status"], room["roomType"]) == (4, "AVAILABLE", "Lake View Suite")
    r = client.post("/api/v1/admin/rooms", json={"roomNumber": "401", "roomTypeId": suite["id"]},
                    headers=manager_headers)
    assert r.status_code == 409

    free = client.get("/api/v1/public/availability", params={
        "checkIn": stay[0].isoformat(), "checkOut": stay[1].isoformat(), "adults": 2, "roomTypeId": suite["id"],
    }).json()
    assert [x["roomNumber"] for x in free["rooms"]] == ["401"]
    assert free["rooms"][0]["totalPrice"] == 22000

    r = client.patch(f"/api/v1/admin/room-types/{suite['id']}", json={"doubleDomesticPrice": "12000"},
                     headers=manager_headers)
    assert Decimal(r.json()["doubleDomesticPrice"]) == Decimal("12000")
    assert r.json()["maxOccupancy"] == 3

    r = client.patch(f"/api/v1/admin/rooms/{room['id']}", json={"roomNumber": "402", "isActive": False},
                     headers=manager_headers)
    assert (r.json()["roomNumber"], r.json()["isActive"]) == ("402", False)
    free = client.get("/api/v1/public/availability", params={
        "checkIn": stay[0].isoformat(), "checkOut": stay[1].isoformat(), "roomTypeId": suite["id"],
    }).json()
    assert free["rooms"] == []


def test_room_type_price_update_keeps_booked_rate(client, db, rooms, room_types, stay, manager_headers):
    created = client.post("/api/v1/public/bookings", json=booking_payload(stay, roomIds=[rooms["201"].id])).json()
    r = client.patch(f"/api/v1/admin/room-types/{room_types['superior'].id}",
                     json={"doubleDomesticPrice": "8000"}, headers=manager_headers)
    assert r.status_code == 200
    booking = client.get(f"/api/v1/public/bookings/{created['bookingNumber']}").json()
    assert Decimal(booking["totalAmount"]) == Decimal("14000")
    quote = client.post("/api/v1/public/price-check", json={
        "roomTypeId": room_types["superior"].id, "checkIn": stay[0].isoformat(), "checkOut": stay[1].isoformat(),
    }).json()
    assert quote["totalPrice"] == 16000


def test_guest_chooses_payment_method(client, rooms, stay, staff_headers):
    created = client.post("/api/v1/public/bookings", json=booking_payload(stay, roomIds=[rooms["201"].id])).json()
    url = f"/api/v1/public/bookings/{created['bookingNumber']}/payment-method"
    r = client.patch(url, json={"paymentMethod": "MPESA"})
    assert r.status_code == 200
    assert r.json()["paymentMethod"] == "MPESA"
    assert client.patch(url, json={"paymentMethod": "BITCOIN"}).json()["rule"] == "payment_method"

    client.post(f"/api/v1/bookings/{created['id']}/payments", headers=staff_headers,
                json={"amount": "14000", "paymentMethod": "CASH"})
    r = client.patch(url, json={"paymentMethod": "CREDIT_CARD"})
    assert r.status_code == 400
    assert r.json()["rule"] == "booking_status"
