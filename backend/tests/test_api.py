import csv
import io

PHYSICAL_LEG = {
    "id": 1,
    "leg_reference": "T-001-A",
    "buy_sell": "buy",
    "product": "UCOME",
    "quantity": 1000,
    "loading_period_start": "2024-03-10",
    "pricing_period_start": "2024-03-01",
    "pricing_period_end": "2024-03-31",
    "pricing_formula": {
        "tokens": [{"type": "instrument", "value": "Argus UCOME"}],
        "exposures": {"physical": {"Argus UCOME": 1000}, "pricing": {"Argus UCOME": -1000}},
    },
}

PAPER_LEG = {
    "id": 2,
    "buy_sell": "buy",
    "product": "UCOME",
    "quantity": 500,
    "period": "Mar-24",
    "relationshipType": "DIFF",
    "rightSide": {"product": "LSGO", "quantity": -500},
}


def _calculate_payload(**overrides):
    payload = {
        "physical_legs": [PHYSICAL_LEG],
        "paper_legs": [PAPER_LEG],
        "periods": ["Mar-24", "Apr 24"],
        "allowed_products": ["Argus UCOME", "Platts LSGO"],
    }
    payload.update(overrides)
    return payload


# =============================================================================
# Meta
# =============================================================================


def test_health_endpoints(client):
    for path in ("/health", "/healthz", "/api/health"):
        resp = client.get(path)
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["environment"] == "test"


def test_request_id_is_propagated(client):
    resp = client.get("/api/health", headers={"X-Request-ID": "abc-123"})
    assert resp.headers["X-Request-ID"] == "abc-123"


def test_root_points_to_docs(client):
    assert client.get("/").json()["docs"] == "/api/openapi.json"


# =============================================================================
# Exposure
# =============================================================================


def test_calculate_exposure(client):
    resp = client.post("/api/exposure/calculate", json=_calculate_payload())
    assert resp.status_code == 200
    body = resp.json()
    assert body["periods"] == ["Mar-24", "Apr-24"]
    assert body["date_range_label"] == "All Dates"
    mar = body["rows"][0]
    assert mar["month"] == "Mar-24"
    assert mar["products"]["Argus UCOME"] == {
        "physical": 1000,
        "pricing": -500,
        "paper": 500,
        "net_exposure": 500,
    }
    assert mar["products"]["Platts LSGO"]["paper"] == -500
    assert body["rows"][1]["totals"]["net_exposure"] == 0
    assert body["group_totals"]["total"] == 0


def test_calculate_exposure_with_date_range(client):
    resp = client.post(
        "/api/exposure/calculate",
        json=_calculate_payload(date_range={"from": "2024-03-01", "to": "2024-03-15"}),
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["date_range_label"] == "Mar-24"
    ucome = body["rows"][0]["products"]["Argus UCOME"]
    # paper without a daily breakdown is dropped in filtered mode
    assert ucome["paper"] == 0
    assert ucome["physical"] == 1000


def test_calculate_accepts_dirty_leg_values(client):
    dirty = dict(PHYSICAL_LEG, id=3, pricing_type="formula", buy_sell="long")
    paper = dict(PAPER_LEG, rightSide={"quantity": -500, "price": "n/a"})
    resp = client.post(
        "/api/exposure/calculate",
        json=_calculate_payload(physical_legs=[PHYSICAL_LEG, dirty], paper_legs=[paper]),
    )
    assert resp.status_code == 200
    ucome = resp.json()["rows"][0]["products"]["Argus UCOME"]
    assert ucome["physical"] == 2000
    assert ucome["paper"] == 500


def test_calculate_rejects_bad_period(client):
    resp = client.post("/api/exposure/calculate", json=_calculate_payload(periods=["Foo-24"]))
    assert resp.status_code == 422


def test_calculate_rejects_inverted_range(client):
    resp = client.post(
        "/api/exposure/calculate",
        json=_calculate_payload(date_range={"from": "2024-03-15", "to": "2024-03-01"}),
    )
    assert resp.status_code == 422


def test_calculate_defaults_periods_and_products(client):
    resp = client.post("/api/exposure/calculate", json={})
    assert resp.status_code == 200
    body = resp.json()
    assert len(body["periods"]) == 12
    assert "ICE GASOIL FUTURES (EFP)" in body["allowed_products"]


def test_export_json(client):
    resp = client.post(
        "/api/exposure/export",
        json=_calculate_payload(categories=["Physical", "Exposure"], products=["Argus UCOME"]),
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["columns"] == ["Month", "Physical Argus UCOME", "Exposure Argus UCOME"]
    assert body["rows"][0] == {
        "Month": "Mar-24",
        "Physical Argus UCOME": 1000,
        "Exposure Argus UCOME": 500,
    }


def test_export_csv(client):
    resp = client.post(
        "/api/exposure/export?format=csv",
        json=_calculate_payload(categories=["Paper"]),
    )
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert 'filename="exposure_All_Dates.csv"' in resp.headers["content-disposition"]
    rows = list(csv.reader(io.StringIO(resp.text)))
    assert rows[0] == ["Month", "Paper Argus UCOME", "Paper Platts LSGO"]
    assert rows[1] == ["Mar-24", "500.0", "-500.0"]


def test_export_rejects_unknown_category(client):
    resp = client.post("/api/exposure/export", json=_calculate_payload(categories=["Gross"]))
    assert resp.status_code == 422


def test_periods_endpoint(client):
    resp = client.get("/api/exposure/periods", params={"count": 3})
    assert resp.status_code == 200
    assert len(resp.json()["periods"]) == 3


def test_prepare_legs(client):
    leg = {
        "buy_sell": "buy",
        "product": "UCOME",
        "quantity": 700,
        "pricing_formula": {"tokens": [{"type": "instrument", "value": "Argus UCOME"}]},
        "pricing_period_start": "2024-02-26",
        "pricing_period_end": "2024-03-04",
    }
    resp = client.post("/api/exposure/prepare", json={"physical_legs": [leg], "paper_legs": [PAPER_LEG]})
    assert resp.status_code == 200
    body = resp.json()
    formula = body["physical_legs"][0]["pricing_formula"]
    assert formula["monthlyDistribution"] == {"Argus UCOME": {"Feb-24": -466.67, "Mar-24": -233.33}}
    paper = body["paper_legs"][0]["exposures"]
    assert set(paper["paperDailyDistribution"]) == {"Argus UCOME", "Platts LSGO"}


# =============================================================================
# Demurrage
# =============================================================================


def test_demurrage_calculate(client):
    payload = {
        "bargeName": "Rhine Star",
        "loadPort": {"start": "2024-03-01T06:00:00", "finish": "2024-03-01T16:00:00"},
        "dischargePort": {"start": "2024-03-03T06:00:00", "finish": "2024-03-04T02:00:00"},
        "freeTime": 24,
        "rate": 1000,
    }
    resp = client.post("/api/demurrage/calculate", json=payload)
    assert resp.status_code == 200
    body = resp.json()
    assert body["barge_name"] == "Rhine Star"
    assert body["total_time_used"] == 30
    assert body["demurrage_hours"] == 6
    assert body["demurrage_due"] == 6000


def test_demurrage_manual_override_requires_hours(client):
    payload = {"loadPort": {"isManual": True}}
    resp = client.post("/api/demurrage/calculate", json=payload)
    assert resp.status_code == 422


def test_demurrage_tables(client):
    resp = client.get("/api/demurrage/tables")
    assert resp.status_code == 200
    body = resp.json()
    assert body["laytime"][0] == {"minimum": 0, "value": 24}
    assert body["rate"][-1] == {"minimum": 5000, "value": 200}
