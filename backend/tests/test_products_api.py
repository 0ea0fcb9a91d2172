"""
Product catalogue API tests.

Verifies:
- Registration derives prices, profit and the ledger on the server
- Validation failures return 400, duplicates 409, unknown records 404
- Lookup, search, profit summary and seller info endpoints
- Price calculation across base, secondary and gram/ml units
"""

import pytest


MILK = {
    "productCode": "MILK-1L",
    "productName": "Amul Milk",
    "category": "Dairy",
    "brand": "Amul",
    "mrp": 60,
    "sellerPrice": "50.00",
    "gstCategory": "Non-GST",
    "baseUnit": "liter",
    "stockQuantity": 20,
    "supplierName": "Amul Dairy",
    "batchNumber": "M-1",
    "expiryDate": "2026-11-30",
}


# =============================================================================
# REGISTRATION
# =============================================================================


class TestCreateProduct:

    def test_create_derives_server_side_fields(self, client, db_session):
        resp = client.post("/api/products", json={**MILK, "profit": 999, "updatedBy": "admin"})
        assert resp.status_code == 201

        body = resp.json
        assert body["productCode"] == "MILK-1L"
        assert body["profit"] == 10.0
        assert body["basePrice"] == 60.0
        assert body["unitPrices"]["liter"] == 60.0
        assert body["unitPrices"]["ml"] == 0.06
        assert body["unitPrices"]["box"] == 0.0
        assert body["stockQuantity"] == 20.0
        assert body["overallQuantity"] == 20.0
        assert body["expiryDate"] == "2026-11-30T00:00:00Z"

        stock = client.get("/api/products/stock/MILK-1L").json
        assert stock["stock"]["availableQuantity"] == 20.0
        assert stock["stockHistory"][0]["notes"] == "Initial stock"
        assert stock["stockHistory"][0]["updatedBy"] == "admin"

    @pytest.mark.parametrize(
        "override,message",
        [
            ({"gstCategory": None}, "Missing required fields: gst_category"),
            ({"gstCategory": "VAT"}, 'GST Category must be either "GST" or "Non-GST"'),
            ({"baseUnit": "crate"}, "base_unit must be one of"),
            ({"secondaryUnit": "liter"}, "secondary_unit must differ from base_unit"),
            ({"mrp": "abc"}, "mrp must be a number"),
            ({"sellerPrice": -1}, "seller_price must be >= 0"),
            ({"conversionRate": 0}, "conversion_rate must be greater than 0"),
            ({"unknownField": 1}, "Field not allowed: unknownField"),
            ({"manufactureDate": "2026-12-01"}, "expiry_date cannot be before manufacture_date"),
            ({"stockQuantity": "0.0000001"}, "cannot be tracked exactly"),
        ],
    )
    def test_validation_errors(self, client, db_session, override, message):
        resp = client.post("/api/products", json={**MILK, **override})
        assert resp.status_code == 400
        assert message in resp.json["error"]

    def test_duplicate_code(self, client, db_session, rice):
        resp = client.post("/api/products", json={**MILK, "productCode": "RICE-5KG"})
        assert resp.status_code == 409


# =============================================================================
# LOOKUPS
# =============================================================================


class TestLookups:

    def test_list_products(self, client, rice, soap):
        resp = client.get("/api/products")
        assert resp.status_code == 200
        assert resp.json["count"] == 2

        paged = client.get("/api/products?page=1&per_page=1").json
        assert paged["count"] == 1
        assert paged["total"] == 2
        assert paged["pages"] == 2

    def test_get_by_code(self, client, rice):
        assert client.get("/api/products/code/RICE-5KG").json["productName"] == "Basmati Rice"
        assert client.get("/api/products/code/NOPE").status_code == 404

    def test_get_by_name_is_case_insensitive(self, client, rice):
        resp = client.get("/api/products/name/basmati")
        assert resp.status_code == 200
        assert resp.json["productCode"] == "RICE-5KG"
        assert client.get("/api/products/name/caviar").status_code == 404

    def test_search(self, client, rice, soap):
        assert client.get("/api/products/search?query=r").status_code == 400

        resp = client.get("/api/products/search?query=soap")
        assert resp.status_code == 200
        assert [p["productCode"] for p in resp.json] == ["SOAP-BOX"]

        by_code = client.get("/api/products/search?query=RICE").json
        assert [p["productCode"] for p in by_code] == ["RICE-5KG"]

    def test_profit_summary(self, client, rice, soap):
        body = client.get("/api/products/profit-summary").json
        assert body == {"totalProducts": 2, "totalProfit": 80.0, "averageProfit": 40.0}

    def test_seller_info(self, client, rice):
        resp = client.get("/api/products/seller-info?supplierName=acme&brand=daawat")
        assert resp.status_code == 200
        assert resp.json == {"sellerId": rice.id, "supplierName": "Acme Traders", "brand": "Daawat"}

        assert client.get("/api/products/seller-info?supplierName=acme").status_code == 400
        assert client.get("/api/products/seller-info?supplierName=x&brand=y").status_code == 404


# =============================================================================
# PRICE CALCULATION
# =============================================================================


class TestCalculatePrice:

    @pytest.mark.parametrize(
        "code,unit,quantity,price",
        [
            ("RICE-5KG", "kg", "2", 200.0),
            ("RICE-5KG", "gram", "500", 50.0),
            ("SOAP-BOX", "box", "1", 240.0),
            ("SOAP-BOX", "piece", "3", 60.0),
        ],
    )
    def test_prices(self, client, rice, soap, code, unit, quantity, price):
        resp = client.get(f"/api/products/calculate-price/{code}?unit={unit}&quantity={quantity}")
        assert resp.status_code == 200
        assert resp.json["price"] == price

    def test_unsupported_unit(self, client, soap):
        resp = client.get("/api/products/calculate-price/SOAP-BOX?unit=liter&quantity=1")
        assert resp.status_code == 400
        assert resp.json["error"] == "Invalid unit conversion: liter -> box"

    def test_bad_input(self, client, rice):
        assert client.get("/api/products/calculate-price/RICE-5KG?quantity=1").status_code == 400
        assert client.get("/api/products/calculate-price/RICE-5KG?unit=kg&quantity=0").status_code == 400
        assert client.get("/api/products/calculate-price/NOPE?unit=kg&quantity=1").status_code == 404


# =============================================================================
# UPDATE / DELETE
# =============================================================================


class TestUpdateDelete:

    def test_update_rederives_profit(self, client, rice):
        resp = client.put(f"/api/products/{rice.id}", json={"mrp": 120, "category": "Staples"})
        assert resp.status_code == 200
        assert resp.json["profit"] == 40.0
        assert resp.json["category"] == "Staples"
        assert resp.json["stockQuantity"] == 100.0

    def test_update_rederives_unit_prices(self, client, rice):
        resp = client.put(f"/api/products/{rice.id}", json={"basePrice": 90})
        assert resp.json["unitPrices"]["gram"] == 0.09

    def test_update_cannot_move_stock(self, client, rice):
        resp = client.put(f"/api/products/{rice.id}", json={"stockQuantity": 5})
        assert resp.status_code == 400

    def test_update_rejects_secondary_equal_to_base(self, client, rice):
        resp = client.put(f"/api/products/{rice.id}", json={"secondaryUnit": "kg"})
        assert resp.status_code == 400
        assert client.get("/api/products/code/RICE-5KG").json["secondaryUnit"] is None

    def test_update_rejects_expiry_before_manufacture(self, client, rice):
        resp = client.put(
            f"/api/products/{rice.id}",
            json={"manufactureDate": "2026-05-01", "expiryDate": "2026-04-01"},
        )
        assert resp.status_code == 400

        assert client.put(f"/api/products/{rice.id}", json={"manufactureDate": "2026-05-01"}).status_code == 200
        resp = client.put(f"/api/products/{rice.id}", json={"expiryDate": "2026-04-01"})
        assert resp.status_code == 400
        assert resp.json["error"] == "expiry_date cannot be before manufacture_date"
        assert client.get("/api/products/code/RICE-5KG").json["expiryDate"] is None

    def test_update_unknown(self, client, db_session):
        assert client.put("/api/products/999", json={"mrp": 1}).status_code == 404

    def test_delete(self, client, rice):
        product_id = rice.id
        resp = client.delete(f"/api/products/{product_id}")
        assert resp.status_code == 200
        assert resp.json["success"] is True

        assert client.get("/api/products/code/RICE-5KG").status_code == 404
        history = client.get("/api/products/stock-history?productCode=RICE-5KG").json["items"]
        assert history[0]["action"] == "DELETE"

        assert client.delete(f"/api/products/{product_id}").status_code == 404
