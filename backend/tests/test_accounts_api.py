"""
Company profile and console credential API tests.
"""

import bcrypt

from billing.models import AdminCredential, CashierUser


COMPANY = {
    "companyName": "Sharma General Store",
    "fullName": "R. Sharma",
    "email": "owner@sharma.example",
    "mobile": "9876543210",
    "gstNumber": "27ABCDE1234F1Z5",
    "businessAddress": "12 Market Road",
    "city": "Pune",
    "state": "Maharashtra",
    "zip": "411001",
    "country": "India",
}


class TestCompanies:

    def test_register_and_fetch(self, client, db_session):
        resp = client.post("/api/companies/register", json=COMPANY)
        assert resp.status_code == 201
        company = resp.json["company"]
        assert company["businessName"] == "Sharma General Store"
        assert company["phoneNumber"] == "9876543210"
        assert company["gstin"] == "27ABCDE1234F1Z5"
        assert company["pincode"] == "411001"

        fetched = client.get(f"/api/companies/{company['id']}")
        assert fetched.status_code == 200
        assert fetched.json["address"] == "12 Market Road"

        listing = client.get("/api/companies").json
        assert listing["count"] == 1

    def test_register_validation(self, client, db_session):
        assert client.post("/api/companies/register", json={"city": "Pune"}).status_code == 400
        assert client.post(
            "/api/companies/register", json={**COMPANY, "email": "not-an-email"}
        ).status_code == 400

    def test_unknown_company(self, client, db_session):
        assert client.get("/api/companies/42").status_code == 404


class TestAdminCredentials:

    def test_create_then_overwrite(self, client, db_session):
        assert client.get("/api/credentials/admin").status_code == 404

        resp = client.post("/api/credentials/admin", json={
            "username": "owner", "password": "counter123", "contactNumber": "99999",
        })
        assert resp.status_code == 201
        assert resp.json["admin"]["username"] == "owner"
        assert "passwordHash" not in resp.json["admin"]

        resp = client.post("/api/credentials/admin", json={"username": "manager", "password": "newpass456"})
        assert resp.status_code == 200
        assert resp.json["message"] == "Admin credentials updated"

        assert db_session.query(AdminCredential).count() == 1
        admin = db_session.query(AdminCredential).one()
        assert admin.username == "manager"
        assert bcrypt.checkpw(b"newpass456", admin.password_hash.encode("utf-8"))

    def test_weak_password(self, client, db_session):
        for password in ("short1", "lettersonly", "12345678", None):
            resp = client.post("/api/credentials/admin", json={"username": "owner", "password": password})
            assert resp.status_code == 400
        assert client.post("/api/credentials/admin", json={"password": "counter123"}).status_code == 400


class TestCashiers:

    def test_add_list_delete(self, client, db_session):
        resp = client.post("/api/credentials/users", json={
            "cashierName": "Priya",
            "cashierId": "C-01",
            "counterNum": "1",
            "password": "till0001",
        })
        assert resp.status_code == 201
        user = resp.json["user"]
        assert user["cashierId"] == "C-01"
        assert "password" not in user

        stored = db_session.query(CashierUser).one()
        assert stored.password_hash != "till0001"

        assert client.get("/api/credentials/users").json["count"] == 1

        assert client.delete(f"/api/credentials/users/{user['id']}").status_code == 200
        assert client.get("/api/credentials/users").json["count"] == 0
        assert client.delete(f"/api/credentials/users/{user['id']}").status_code == 404

    def test_duplicate_cashier_id(self, client, db_session):
        payload = {"cashierName": "Priya", "cashierId": "C-01", "password": "till0001"}
        assert client.post("/api/credentials/users", json=payload).status_code == 201
        assert client.post("/api/credentials/users", json=payload).status_code == 409

    def test_cashier_validation(self, client, db_session):
        assert client.post(
            "/api/credentials/users", json={"cashierId": "C-02", "password": "till0001"}
        ).status_code == 400
        assert client.post(
            "/api/credentials/users", json={"cashierName": "A", "cashierId": "C-02", "password": "x"}
        ).status_code == 400
