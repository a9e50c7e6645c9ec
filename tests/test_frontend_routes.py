"""
Tests for the HTML frontend routes.

GET / renders the dashboard page; the POST form handlers redirect back to /
with a msg or err query parameter.
"""
import pytest

pytest.importorskip("fastapi")
pytest.importorskip("httpx")


def _location(resp) -> str:
    assert resp.status_code == 303
    return resp.headers["location"]


class TestIndexPage:
    def test_unconfigured(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert "text/html" in resp.headers["content-type"]
        assert "Enter a MotherDuck token" in resp.text
        assert "Add expense" not in resp.text

    def test_regular_view(self, ready_client):
        html = ready_client.get("/").text
        assert "Electric Company" in html
        assert "1,850.50" in html
        assert "12 Jan 2024, 10:30 AM" in html
        assert "Expense table is ready." in html
        # stats panel: whole numbers with the currency symbol
        assert "₹27,850" in html

    def test_summary_view_highlights_top_month(self, ready_client):
        html = ready_client.get("/", params={"view": "summary"}).text
        assert "Total Amount" in html
        assert '<tr class="bg-blue-100">' in html
        assert "26,850.50" in html
        assert "Electric Company" not in html

    def test_currency_switch(self, ready_client):
        html = ready_client.get("/", params={"view": "summary", "currency": "USD"}).text
        assert "Stats (USD)" in html
        assert "$40" in html

    def test_month_defaults_to_current(self, ready_client):
        from datetime import datetime
        from utils.formatting import month_name

        month = datetime.now().month
        html = ready_client.get("/").text
        assert f'<option value="{month}" selected>{month_name(month)}</option>' in html

    def test_missing_table_offers_setup(self, client, fake_db):
        client.post("/token", data={"token": "good-token"}, follow_redirects=False)
        html = client.get("/").text
        assert "Create database and table" in html
        assert "Failed to fetch data" in html

    def test_flash_messages(self, client):
        html = client.get("/", params={"msg": "Saved!", "err": "Oops"}).text
        assert "Saved!" in html
        assert "Oops" in html

    def test_bad_currency_is_reported(self, ready_client):
        html = ready_client.get("/", params={"currency": "XYZ"}).text
        assert "Unsupported currency" in html


class TestForms:
    def test_token_form(self, client, seeded_db):
        resp = client.post("/token", data={"token": "good-token"}, follow_redirects=False)
        assert _location(resp) == "/?msg=Token+saved"
        assert client.get("/api/v1/session").json()["configured"] is True

    def test_token_form_clear(self, ready_client):
        resp = ready_client.post("/token", data={"token": ""}, follow_redirects=False)
        assert _location(resp) == "/?msg=Token+cleared"
        assert ready_client.get("/api/v1/session").json()["state"] == "unconfigured"

    def test_token_upload_form(self, client, seeded_db):
        resp = client.post("/token/upload",
                           files={"file": ("t.txt", b"good-token", "text/plain")},
                           follow_redirects=False)
        assert _location(resp) == "/?msg=Token+loaded+from+file"

    def test_token_upload_form_error(self, client):
        resp = client.post("/token/upload",
                           files={"file": ("t.txt", b"", "text/plain")},
                           follow_redirects=False)
        assert "err=Token+file+is+empty" in _location(resp)

    def test_expense_form_recurring(self, ready_client, seeded_db):
        resp = ready_client.post("/expenses", data={
            "ef_month": "3", "category": "Insurance", "biller": "Acme",
            "amount": "5000", "currency": "INR", "recurring": "true",
            "frequency": "Half Yearly",
        }, follow_redirects=False)
        assert "msg=Added+2+expenses" in _location(resp)
        assert seeded_db.count() == 6

    def test_expense_form_invalid_amount(self, ready_client, seeded_db):
        resp = ready_client.post("/expenses", data={
            "ef_month": "3", "category": "Rent", "biller": "Landlord", "amount": "abc",
        }, follow_redirects=False)
        assert "err=Please+fill+in+all+required+fields" in _location(resp)
        assert seeded_db.count() == 4

    @pytest.mark.parametrize("amount", ["nan", "inf", "-inf", "0"])
    def test_expense_form_rejects_non_finite_amount(self, ready_client, seeded_db, amount):
        resp = ready_client.post("/expenses", data={
            "ef_month": "3", "category": "Rent", "biller": "Landlord", "amount": amount,
        }, follow_redirects=False)
        assert "err=Please+fill+in+all+required+fields" in _location(resp)
        assert seeded_db.count() == 4

    def test_expense_form_unconfigured(self, client):
        resp = client.post("/expenses", data={
            "ef_month": "3", "category": "Rent", "biller": "Landlord", "amount": "10",
        }, follow_redirects=False)
        assert "err=Please+enter+a+MotherDuck+token+first" in _location(resp)

    def test_setup_forms(self, client, fake_db):
        client.post("/token", data={"token": "good-token"}, follow_redirects=False)
        checked = client.post("/setup/check", follow_redirects=False)
        assert _location(checked) == "/?msg=Expense+table+not+found"
        created = client.post("/setup/create", follow_redirects=False)
        assert _location(created) == "/?msg=Database+and+table+created"
        assert "Expense table is ready." in client.get("/").text

    def test_setup_form_unconfigured(self, client):
        resp = client.post("/setup/create", follow_redirects=False)
        assert "err=Failed+to+create+tables" in _location(resp)
