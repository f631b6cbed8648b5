"""
Authorizer registry - named record authorization predicates and the
per-role endpoint authorizer lookup
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from meadow_endpoints.config.endpoint_permissions import (
    AUTHORIZATION_MODE_SIMPLE_OWNERSHIP,
    DEFAULT_ROLE_AUTHORIZER_KEY,
    is_authorization_enabled,
)
from meadow_endpoints.utils.error_handling import AuthorizerError, coerce_error

logger = logging.getLogger(__name__)

# An authorizer inspects context.record (and the session) and denies by
# setting context.meadow_authorization = False.  A truthy return value (or a
# raised exception) is an error, not a denial.
Authorizer = Callable[[Any], Union[Any, Awaitable[Any]]]


# Built-in authorizers for SimpleOwnership mode

async def allow_authorizer(context) -> None:
    return None


async def deny_authorizer(context) -> None:
    context.deny()


async def mine_authorizer(context) -> None:
    """Only the user who created a record may touch it"""
    if context.record is None:
        return None
    owner = context.record.get("CreatingIDUser")
    if owner is not None and owner != context.user_session.user_id:
        context.meadow_authorization = False


async def my_customer_authorizer(context) -> None:
    """Only users of the record's customer may touch it"""
    if context.record is None:
        return None
    customer = context.record.get("IDCustomer")
    if customer is not None and customer != context.user_session.customer_id:
        context.meadow_authorization = False


SIMPLE_OWNERSHIP_AUTHORIZERS: Dict[str, Authorizer] = {
    "Allow": allow_authorizer,
    "Deny": deny_authorizer,
    "Mine": mine_authorizer,
    "MyCustomer": my_customer_authorizer
}


class MeadowAuthorizers:
    """
    Authorizer table for one endpoint set.

    The authorization mode is fixed at construction. ``Disabled`` turns
    every check into a success; ``SimpleOwnership`` pre-populates the
    built-in Allow / Deny / Mine / MyCustomer authorizers; any other mode
    is enabled with an empty table for the embedding application to fill.
    """

    def __init__(self, authorization_mode: str = "Disabled"):
        self.authorization_mode = authorization_mode
        self._authorizers: Dict[str, Authorizer] = {}

        if authorization_mode == AUTHORIZATION_MODE_SIMPLE_OWNERSHIP:
            for name, authorizer in SIMPLE_OWNERSHIP_AUTHORIZERS.items():
                self.set_authorizer(name, authorizer)

        logger.info(f"Authorizers initialized in {authorization_mode} mode")

    @property
    def enabled(self) -> bool:
        return is_authorization_enabled(self.authorization_mode)

    def set_authorizer(self, name: str, authorizer: Authorizer) -> None:
        """Register (or replace) the authorizer for ``name``"""
        if not callable(authorizer):
            raise TypeError(f"Authorizer '{name}' must be callable")
        self._authorizers[name] = authorizer

    def get_authorizer(self, name: str) -> Optional[Authorizer]:
        return self._authorizers.get(name)

    async def authorize(self, name: str, context) -> None:
        """
        Run the authorizer ``name`` against the context's record(s)

        A single active record is checked once. A record set (with no single
        active record) is checked one record at a time, in order, stopping at
        the first error or the first denial; ``context.record`` is cleared
        afterwards. Missing authorizers grant access.

        Args:
            name: Authorizer name, e.g. ``Mine``
            context: RequestContext to authorize

        Raises:
            AuthorizerError: If the authorizer reports an error
        """
        if not self.enabled:
            return

        if context.authorize_override:
            # Privileged callers skip every predicate
            logger.info(f"Authorization override set - skipping authorizer {name}")
            return

        authorizer = self._authorizers.get(name)
        if authorizer is None:
            return

        if context.record is None and context.records is not None:
            try:
                for record in context.records:
                    context.record = record
                    await self._run(name, authorizer, context)
                    if not context.meadow_authorization:
                        break
            finally:
                context.record = None
            return

        await self._run(name, authorizer, context)

    async def _run(self, name: str, authorizer: Authorizer, context) -> None:
        try:
            result = authorizer(context)
            if inspect.isawaitable(result):
                result = await result
        except AuthorizerError:
            raise
        except Exception as e:
            logger.warning(f"Authorizer {name} raised: {e}")
            raise coerce_error(e, AuthorizerError) from e

        if result:
            raise coerce_error(result, AuthorizerError)

    def resolve_authorizer_names(self, endpoint_hash: str, context) -> Any:
        """Look up the authorizer entry for the caller's role and this endpoint"""
        dal = context.dal
        role_table = (dal.schema_full or {}).get("authorizer") or {}
        role_name = dal.get_role_name(context.user_session.user_role_index)

        role_authorizers = role_table.get(role_name)
        if not role_authorizers:
            role_authorizers = role_table.get(DEFAULT_ROLE_AUTHORIZER_KEY)

        if isinstance(role_authorizers, dict):
            return role_authorizers.get(endpoint_hash)
        return None

    async def authorize_request(self, endpoint_hash: str, context) -> None:
        """
        Run every authorizer configured for the caller's role on an endpoint

        Args:
            endpoint_hash: Endpoint operation name, e.g. ``Reads``
            context: RequestContext to authorize

        Raises:
            AuthorizerError: On the first authorizer error
        """
        if not self.enabled:
            return

        # Authorizers that need the endpoint can read it from the context
        context.endpoint_hash = endpoint_hash

        names = self.resolve_authorizer_names(endpoint_hash, context)
        if not names:
            return

        if isinstance(names, str):
            names = [names]

        for name in names:
            await self.authorize(name, context)
