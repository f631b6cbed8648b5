"""
Single record endpoints over HTTP - Create, Read, Update, Delete
"""

import pytest


class TestCreate:

    @pytest.mark.asyncio
    async def test_create(self, client, book_dal):
        response = await client.post("/1.0/Book", json={"Title": "Parable of the Sower", "PublicationYear": 1993})

        assert response.status_code == 200
        created = response.json()
        assert created["IDBook"] == 7
        assert created["Title"] == "Parable of the Sower"
        assert created["CreatingIDUser"] == 1
        assert await book_dal.do_count(book_dal.query) == 7

    @pytest.mark.asyncio
    async def test_create_needs_a_record(self, client, book_dal):
        response = await client.post("/1.0/Book", json=[{"Title": "One"}, {"Title": "Two"}])

        assert response.status_code == 400
        body = response.json()
        assert body["Error"] == "You must pass a valid record to create."
        assert body["Message"] == "Error creating a record."
        assert await book_dal.do_count(book_dal.query) == 6

    @pytest.mark.asyncio
    async def test_create_without_body(self, client):
        response = await client.post("/1.0/Book")

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_pre_operation_edits_record(self, client, book_endpoints):
        def default_type(context):
            context.record.setdefault("Type", "Hardcover")
            context.record["Type"] = context.record["Type"].title()

        book_endpoints.behaviors.set_behavior("Create-PreOperation", default_type)

        response = await client.post("/1.0/Book", json={"Title": "Kindred", "Type": "ebook"})

        assert response.json()["Type"] == "Ebook"

    @pytest.mark.asyncio
    async def test_post_operation_adds_field(self, client, book_endpoints):
        async def add_link(context):
            context.record["Link"] = f"/1.0/Book/{context.record['IDBook']}"

        book_endpoints.behaviors.set_behavior("Create-PostOperation", add_link)

        response = await client.post("/1.0/Book", json={"Title": "Lilith's Brood"})

        assert response.json()["Link"] == "/1.0/Book/7"

    @pytest.mark.asyncio
    async def test_pre_operation_error_prevents_write(self, client, book_endpoints, book_dal):
        book_endpoints.behaviors.set_behavior("Create-PreOperation", lambda context: {"Code": 409, "Message": "Duplicate"})

        response = await client.post("/1.0/Book", json={"Title": "Dune"})

        assert response.status_code == 409
        assert await book_dal.do_count(book_dal.query) == 6

    @pytest.mark.asyncio
    @pytest.mark.parametrize("authorization_mode", ["SimpleOwnership"])
    async def test_denied_create_never_writes(self, client, book_dal):
        book_dal.set_authorizer_table({"User": {"Create": "Deny"}})

        response = await client.post("/1.0/Book", json={"Title": "Forbidden"})

        assert response.status_code == 405
        assert await book_dal.do_count(book_dal.query) == 6


class TestRead:

    @pytest.mark.asyncio
    async def test_read(self, client):
        response = await client.get("/1.0/Book/1")

        assert response.status_code == 200
        assert response.json()["Title"] == "Dune"

    @pytest.mark.asyncio
    async def test_read_missing_is_empty(self, client):
        response = await client.get("/1.0/Book/999")

        assert response.status_code == 200
        assert response.json() == {}

    @pytest.mark.asyncio
    async def test_read_by_guid(self, client, book_dal):
        stored = await book_dal.do_read(book_dal.query.add_filter("IDBook", 5))

        response = await client.get(f"/1.0/Book/{stored['GUIDBook']}")

        assert response.json()["Title"] == "Kindred"

    @pytest.mark.asyncio
    async def test_post_operation_adds_field(self, client, book_endpoints):
        def add_age(context):
            context.record["Age"] = 2000 - context.record["PublicationYear"]

        book_endpoints.behaviors.set_behavior("Read-PostOperation", add_age)

        response = await client.get("/1.0/Book/4")

        assert response.json()["Age"] == 75

    @pytest.mark.asyncio
    async def test_query_configuration_can_redirect(self, client, book_endpoints):
        def only_hardcovers(context):
            context.query.add_filter("Type", "Hardcover")

        book_endpoints.behaviors.set_behavior("Read-QueryConfiguration", only_hardcovers)

        assert (await client.get("/1.0/Book/1")).json() == {}
        assert (await client.get("/1.0/Book/2")).json()["IDBook"] == 2

    @pytest.mark.asyncio
    async def test_missing_record_skips_post_operation(self, client, book_endpoints):
        book_endpoints.behaviors.set_behavior(
            "Read-PostOperation",
            lambda context: context.record.__setitem__("Age", 2000 - context.record["PublicationYear"])
        )

        response = await client.get("/1.0/Book/999")

        assert response.status_code == 200
        assert response.json() == {}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("authorization_mode", ["SimpleOwnership"])
    async def test_missing_record_skips_authorizers(self, client, book_endpoints, book_dal):
        checked = []

        def has_title(context):
            checked.append(context.record["IDBook"])
            if not context.record["Title"]:
                context.deny()

        book_endpoints.authorizers.set_authorizer("HasTitle", has_title)
        book_dal.set_authorizer_table({"User": {"Read": "HasTitle"}})

        missing = await client.get("/1.0/Book/999")
        found = await client.get("/1.0/Book/1")

        assert missing.status_code == 200
        assert missing.json() == {}
        assert found.json()["Title"] == "Dune"
        assert checked == [1]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("authorization_mode", ["SimpleOwnership"])
    async def test_mine(self, client, book_dal):
        book_dal.set_authorizer_table({"User": {"Read": ["Mine"]}})

        assert (await client.get("/1.0/Book/1")).status_code == 200
        denied = await client.get("/1.0/Book/3")
        assert denied.status_code == 405
        assert "Title" not in denied.json()


class TestUpdate:

    @pytest.mark.asyncio
    async def test_update(self, client):
        response = await client.put("/1.0/Book", json={"IDBook": 2, "Title": "The Dispossessed"})

        assert response.status_code == 200
        updated = response.json()
        assert updated["Title"] == "The Dispossessed"
        assert updated["UpdatingIDUser"] == 1
        assert updated["CreatingIDUser"] == 1

    @pytest.mark.asyncio
    async def test_update_missing_record(self, client):
        response = await client.put("/1.0/Book", json={"IDBook": 99, "Title": "Nowhere"})

        assert response.status_code == 404
        assert response.json()["Message"] == "Error updating a record."

    @pytest.mark.asyncio
    async def test_update_needs_identifier(self, client):
        response = await client.put("/1.0/Book", json={"Title": "No ID"})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_hooks_see_stored_and_submitted_record(self, client, book_endpoints):
        seen = {}

        def capture(context):
            seen["stored"] = context.state["OriginalRecord"]["Title"]
            seen["submitted"] = context.record["Title"]

        book_endpoints.behaviors.set_behavior("Update-PreOperation", capture)

        await client.put("/1.0/Book", json={"IDBook": 1, "Title": "Children of Dune"})

        assert seen == {"stored": "Dune", "submitted": "Children of Dune"}

    @pytest.mark.asyncio
    async def test_query_configuration_selects_the_stored_record(self, client, book_endpoints, book_dal):
        def only_hardcovers(context):
            context.query.add_filter("Type", "Hardcover")

        book_endpoints.behaviors.set_behavior("Update-QueryConfiguration", only_hardcovers)

        # Book 1 is a paperback, book 2 a hardcover
        missed = await client.put("/1.0/Book", json={"IDBook": 1, "Title": "Changed"})
        updated = await client.put("/1.0/Book", json={"IDBook": 2, "Title": "Changed"})

        assert missed.status_code == 404
        stored = await book_dal.do_read(book_dal.query.add_filter("IDBook", 1))
        assert stored["Title"] == "Dune"
        assert updated.status_code == 200
        assert updated.json()["Title"] == "Changed"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("authorization_mode", ["SimpleOwnership"])
    async def test_authorized_against_stored_record(self, client, book_dal):
        book_dal.set_authorizer_table({"User": {"Update": "Mine"}})

        # The body claims ownership; the stored record belongs to user 2
        response = await client.put("/1.0/Book", json={"IDBook": 3, "Title": "Hijacked", "CreatingIDUser": 1})

        assert response.status_code == 405
        stored = await book_dal.do_read(book_dal.query.add_filter("IDBook", 3))
        assert stored["Title"] == "Neuromancer"


class TestDelete:

    @pytest.mark.asyncio
    async def test_delete(self, client):
        response = await client.delete("/1.0/Book/1")

        assert response.status_code == 200
        assert response.json() == {"Count": 1}
        assert (await client.get("/1.0/Book/1")).json() == {}

    @pytest.mark.asyncio
    async def test_delete_with_body(self, client, book_dal):
        response = await client.request("DELETE", "/1.0/Book", json={"IDBook": 2})

        assert response.json() == {"Count": 1}
        assert await book_dal.do_count(book_dal.query) == 5

    @pytest.mark.asyncio
    async def test_delete_missing_record(self, client):
        response = await client.delete("/1.0/Book/999")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_needs_identifier(self, client):
        response = await client.request("DELETE", "/1.0/Book", json={"Title": "Dune"})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_delete_hooks(self, client, book_endpoints):
        calls = []
        book_endpoints.behaviors.set_behavior("Delete-PreOperation", lambda context: calls.append("pre"))
        book_endpoints.behaviors.set_behavior("Delete-PostOperation", lambda context: calls.append("post"))

        await client.delete("/1.0/Book/6")

        assert calls == ["pre", "post"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("authorization_mode", ["SimpleOwnership"])
    async def test_denied_delete_keeps_record(self, client, book_dal):
        book_dal.set_authorizer_table({"User": {"Delete": "Mine"}})

        response = await client.delete("/1.0/Book/4")

        assert response.status_code == 405
        assert await book_dal.do_count(book_dal.query) == 6
