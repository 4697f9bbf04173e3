import pytest


@pytest.mark.anyio("asyncio")
async def test_create_and_fetch_school(client):
    resp = await client.post("/admin/schools", json={"name": "SMA Negeri 8", "city": "Jakarta", "province": "DKI"})
    assert resp.status_code == 201
    created = resp.json()["data"]
    assert created["name"] == "SMA Negeri 8"

    resp = await client.get(f"/admin/schools/{created['id']}")
    detail = resp.json()["data"]
    assert detail["city"] == "Jakarta"
    assert detail["userCount"] == 0


@pytest.mark.anyio("asyncio")
async def test_create_school_requires_name(client):
    resp = await client.post("/admin/schools", json={"city": "Bogor"})
    assert resp.status_code == 400
    fields = [item["field"] for item in resp.json()["error"]["details"]]
    assert any(field.endswith("name") for field in fields)


@pytest.mark.anyio("asyncio")
async def test_search_spans_name_city_and_province(client, make_school):
    make_school("SMA Cendekia", city="Surabaya", province="Jawa Timur")
    make_school("SMK Teknik", city="Malang", province="Jawa Timur")
    make_school("SMA Bintang", city="Medan", province="Sumatera Utara")

    resp = await client.get("/admin/schools", params={"search": "jawa timur", "sort_by": "name", "sort_order": "asc"})
    names = [school["name"] for school in resp.json()["data"]["schools"]]
    assert names == ["SMA Cendekia", "SMK Teknik"]

    resp = await client.get("/admin/schools", params={"city": "Medan"})
    assert resp.json()["data"]["pagination"]["total"] == 1


@pytest.mark.anyio("asyncio")
async def test_update_school(client, make_school):
    school = make_school("Old Name")
    resp = await client.put(f"/admin/schools/{school.id}", json={"name": "New Name"})
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["name"] == "New Name"
    assert data["city"] == school.city


@pytest.mark.anyio("asyncio")
async def test_delete_school_refused_while_referenced(client, make_school, make_user):
    school = make_school("Busy School")
    make_user(school_id=school.id)
    make_user(school_id=school.id)

    resp = await client.delete(f"/admin/schools/{school.id}")

    assert resp.status_code == 400
    error = resp.json()["error"]
    assert "2 user(s)" in error["message"]
    assert (await client.get(f"/admin/schools/{school.id}")).json()["data"]["userCount"] == 2


@pytest.mark.anyio("asyncio")
async def test_delete_school(client, make_school):
    school = make_school("Empty School")
    resp = await client.delete(f"/admin/schools/{school.id}")
    assert resp.status_code == 200
    assert resp.json()["data"] is None
    assert (await client.get(f"/admin/schools/{school.id}")).status_code == 404
