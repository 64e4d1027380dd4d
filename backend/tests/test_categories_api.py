CATS = "/admin/aapi/licence-categories"


def test_list_categories(client):
    r = client.get(CATS)
    assert r.status_code == 200
    rows = r.json()
    assert len(rows) == 8
    assert rows[0] == {
        "id": "A",
        "label": "A",
        "description": "Motor Cycle (above 125cc)",
        "fee": 1500.0,
        "min_age": 18,
        "vehicle_type": "Motorcycle",
        "is_active": True,
    }


def test_get_category(client):
    assert client.get(f"{CATS}/D1").json()["vehicle_type"] == "Passenger Vehicle"
    r = client.get(f"{CATS}/ZZ")
    assert r.status_code == 404
    assert r.json() == {"error": "Failed to get licence category: Licence category 'ZZ' not found"}


def test_create_category(client):
    body = {"category_code": "G", "category_label": "G", "description": "Land vehicle", "fee": 1200, "min_age": 18}
    r = client.post(CATS, json=body)
    assert r.status_code == 201
    assert r.json()["category_code"] == "G"
    dup = client.post(CATS, json=body)
    assert dup.status_code == 400
    assert "Duplicate entry" in dup.json()["error"]
    bad = client.post(CATS, json={**body, "category_code": "H", "fee": 0})
    assert bad.status_code == 400
    assert bad.json()["error"].endswith("Fee must be a positive number")


def test_update_category(client):
    r = client.put(f"{CATS}/B", json={"fee": 2600, "min_age": 17})
    assert r.status_code == 200
    assert r.json()["fee"] == 2600.0
    assert r.json()["min_age"] == 17
    assert r.json()["description"] == "Light Motor Car (up to 3500 kg)"
    assert client.put(f"{CATS}/B", json={"min_age": 120}).status_code == 400
    assert client.put(f"{CATS}/ZZ", json={"fee": 1}).status_code == 404


def test_delete_is_soft(client):
    r = client.delete(f"{CATS}/C1")
    assert r.status_code == 200
    assert r.json()["category"]["is_active"] is False
    assert "C1" not in [c["id"] for c in client.get(CATS).json()]
    assert "C1" in [c["id"] for c in client.get(CATS, params={"includeInactive": "true"}).json()]
    assert client.get(f"{CATS}/C1").status_code == 200
    assert client.delete(f"{CATS}/ZZ").status_code == 404
