"""
Behavior modification registry - named hook slots and named templates
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from jinja2 import Environment, Template

from meadow_endpoints.utils.error_handling import BehaviorError, coerce_error

logger = logging.getLogger(__name__)

# A behavior receives the request context; a truthy return value (or a raised
# exception) is a failure that aborts the endpoint pipeline.
Behavior = Callable[[Any], Union[Any, Awaitable[Any]]]


class BehaviorModifications:
    """
    Hook table consulted at fixed points of every endpoint pipeline.

    One function per hook name (last write wins) and one template per
    template name. Unregistered names are a pass-through.

    A behavior looks like this:

        async def add_author_name(context):
            context.record["AuthorName"] = "Ursula"
            return None
    """

    def __init__(self):
        self._behaviors: Dict[str, Behavior] = {}
        self._templates: Dict[str, str] = {}
        self._compiled: Dict[str, Template] = {}
        self._environment = Environment(autoescape=False)

    def set_behavior(self, name: str, behavior: Behavior) -> None:
        """Register (or replace) the hook for ``name``"""
        if not callable(behavior):
            raise TypeError(f"Behavior '{name}' must be callable")
        self._behaviors[name] = behavior

    def get_behavior(self, name: str) -> Optional[Behavior]:
        return self._behaviors.get(name)

    async def run_behavior(self, name: str, context) -> None:
        """
        Run the hook registered for ``name`` against the request context

        Args:
            name: Hook name, e.g. ``Reads-QueryConfiguration``
            context: RequestContext the hook may mutate

        Raises:
            BehaviorError: If the hook returns a truthy value or raises
        """
        behavior = self._behaviors.get(name)
        if behavior is None:
            # Nothing injected here
            return

        try:
            result = behavior(context)
            if inspect.isawaitable(result):
                result = await result
        except BehaviorError:
            raise
        except Exception as e:
            logger.warning(f"Behavior {name} raised: {e}")
            raise coerce_error(e, BehaviorError) from e

        if result:
            logger.info(f"Behavior {name} reported an error: {result}")
            raise coerce_error(result, BehaviorError)

    def set_template(self, name: str, template_string: str) -> None:
        """Register (or replace) a template; compiled on first use"""
        self._templates[name] = template_string
        self._compiled.pop(name, None)

    def get_template(self, name: str) -> Optional[str]:
        """Get the template source registered for ``name`` (None when unset)"""
        return self._templates.get(name)

    def process_template(self, name: str, data: Dict[str, Any], fallback: Optional[str] = None) -> str:
        """
        Render the template registered under ``name`` with ``data``

        Falls back to rendering ``fallback`` when no template is registered
        (or it fails to render), and to an empty string when there is
        nothing renderable.
        """
        if name in self._templates:
            rendered = self._render_registered(name, data)
            if rendered is not None:
                return rendered

        if fallback:
            rendered = self._render_source(fallback, data)
            if rendered is not None:
                return rendered

        return ""

    def _render_registered(self, name: str, data: Dict[str, Any]) -> Optional[str]:
        try:
            if name not in self._compiled:
                self._compiled[name] = self._environment.from_string(self._templates[name])
            return self._compiled[name].render(**data)
        except Exception as e:
            logger.warning(f"Template {name} failed to render: {e}")
            return None

    def _render_source(self, source: str, data: Dict[str, Any]) -> Optional[str]:
        try:
            return self._environment.from_string(source).render(**data)
        except Exception as e:
            logger.warning(f"Fallback template failed to render: {e}")
            return None
