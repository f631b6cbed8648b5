"""
Authorizer registry, role table resolution and built-in authorizers
"""

import pytest

from meadow_endpoints.services.authorizer_service import MeadowAuthorizers
from meadow_endpoints.utils.error_handling import AuthorizerError


class TestAuthorizationModes:

    @pytest.mark.asyncio
    async def test_disabled_mode_skips_every_authorizer(self, context, book_dal):
        book_dal.set_authorizer_table({"User": {"Reads": ["Deny"]}})
        context.authorizers.set_authorizer("Deny", lambda ctx: ctx.deny())

        await context.authorizers.authorize_request("Reads", context)

        assert context.meadow_authorization is True

    def test_simple_ownership_registers_builtins(self):
        authorizers = MeadowAuthorizers("SimpleOwnership")

        for name in ("Allow", "Deny", "Mine", "MyCustomer"):
            assert authorizers.get_authorizer(name) is not None
        assert authorizers.enabled is True

    def test_other_modes_enabled_without_builtins(self):
        authorizers = MeadowAuthorizers("Custom")

        assert authorizers.enabled is True
        assert authorizers.get_authorizer("Mine") is None


@pytest.mark.parametrize("authorization_mode", ["SimpleOwnership"])
class TestAuthorizeRequest:
    """Role table lookups and authorizer execution"""

    @pytest.mark.asyncio
    async def test_role_entry_denies(self, context, book_dal):
        book_dal.set_authorizer_table({"User": {"Reads": ["Deny"]}})

        await context.authorizers.authorize_request("Reads", context)

        assert context.meadow_authorization is False
        assert context.endpoint_hash == "Reads"

    @pytest.mark.asyncio
    async def test_other_endpoint_untouched(self, context, book_dal):
        book_dal.set_authorizer_table({"User": {"Reads": ["Deny"]}})

        await context.authorizers.authorize_request("Count", context)

        assert context.meadow_authorization is True

    @pytest.mark.asyncio
    async def test_default_role_entry_used_when_role_missing(self, context, book_dal):
        book_dal.set_authorizer_table({"__DefaultAPISecurity": {"Read": "Deny"}})
        context.user_session.user_role_index = 2

        await context.authorizers.authorize_request("Read", context)

        assert context.meadow_authorization is False

    @pytest.mark.asyncio
    async def test_names_run_in_order(self, context, book_dal):
        calls = []
        context.authorizers.set_authorizer("First", lambda ctx: calls.append("First"))
        context.authorizers.set_authorizer("Second", lambda ctx: calls.append("Second"))
        book_dal.set_authorizer_table({"User": {"Read": ["First", "Missing", "Second"]}})
        context.record = {"IDBook": 1}

        await context.authorizers.authorize_request("Read", context)

        assert calls == ["First", "Second"]
        assert context.meadow_authorization is True

    @pytest.mark.asyncio
    async def test_override_skips_predicates(self, context, book_dal):
        book_dal.set_authorizer_table({"User": {"Reads": ["Deny"]}})
        context.authorize_override = True

        await context.authorizers.authorize_request("Reads", context)

        assert context.meadow_authorization is True

    @pytest.mark.asyncio
    async def test_record_set_stops_at_first_denial(self, context):
        seen = []

        def deny_second(ctx):
            seen.append(ctx.record["IDBook"])
            if ctx.record["IDBook"] == 2:
                ctx.meadow_authorization = False

        context.authorizers.set_authorizer("DenySecond", deny_second)
        context.records = [{"IDBook": 1}, {"IDBook": 2}, {"IDBook": 3}]

        await context.authorizers.authorize("DenySecond", context)

        assert seen == [1, 2]
        assert context.meadow_authorization is False
        assert context.record is None

    @pytest.mark.asyncio
    async def test_truthy_return_is_an_error(self, context):
        context.authorizers.set_authorizer("Broken", lambda ctx: "lookup failed")
        context.record = {"IDBook": 1}

        with pytest.raises(AuthorizerError) as excinfo:
            await context.authorizers.authorize("Broken", context)

        assert excinfo.value.message == "lookup failed"

    @pytest.mark.asyncio
    async def test_denial_is_sticky(self, context):
        context.deny()
        context.meadow_authorization = True

        assert context.meadow_authorization is False


@pytest.mark.parametrize("authorization_mode", ["SimpleOwnership"])
class TestBuiltinAuthorizers:

    @pytest.mark.asyncio
    async def test_mine_denies_other_users_record(self, context):
        context.record = {"IDBook": 3, "CreatingIDUser": 2}

        await context.authorizers.authorize("Mine", context)

        assert context.meadow_authorization is False

    @pytest.mark.asyncio
    async def test_mine_allows_own_record(self, context):
        context.record = {"IDBook": 1, "CreatingIDUser": 1}

        await context.authorizers.authorize("Mine", context)

        assert context.meadow_authorization is True

    @pytest.mark.asyncio
    async def test_unstamped_record_passes(self, context):
        context.record = {"Title": "Unsaved"}

        await context.authorizers.authorize("Mine", context)
        await context.authorizers.authorize("MyCustomer", context)

        assert context.meadow_authorization is True

    @pytest.mark.asyncio
    async def test_my_customer(self, context):
        context.records = [{"IDCustomer": 1}, {"IDCustomer": 2}]

        await context.authorizers.authorize("MyCustomer", context)

        assert context.meadow_authorization is False
