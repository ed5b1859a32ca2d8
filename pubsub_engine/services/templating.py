"""
Template rendering for message payloads.

Message templates are arbitrary JSON-like values. Every string inside them
(keys included) may contain ``{{ expression }}`` placeholders evaluated with
jinja2 against the execution context's variables. A string that consists of
exactly one placeholder evaluates to the expression's raw value, so
``{"n": "{{ count }}"}`` keeps ``count`` as a number.
"""

import re
import logging
from typing import Any, Dict, Mapping

from jinja2 import Environment, StrictUndefined, TemplateError

from ..exceptions import TemplateRenderException

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"{{(.*?)}}", re.DOTALL)
_WHOLE_PLACEHOLDER = re.compile(r"^\s*{{(.*?)}}\s*$", re.DOTALL)
# jinja2 identifiers cannot start with "$", so "$loopCount" is looked up as "loopCount"
_DOLLAR_NAME = re.compile(r"\$(?=[A-Za-z_])")


class TemplateRenderer:
    """Render JSON-like templates with jinja2 expressions"""

    def __init__(self, environment: Environment = None):
        self.environment = environment or Environment(undefined=StrictUndefined, autoescape=False)
        self._expression_cache: Dict[str, Any] = {}
        self._template_cache: Dict[str, Any] = {}

    def __call__(self, template: Any, context: Any) -> Any:
        return self.render(template, context)

    def render(self, template: Any, context: Any) -> Any:
        """
        Substitute placeholders throughout ``template``.

        Args:
            template: JSON-like value (dict, list, str, number, bool, None)
            context: ExecutionContext or a plain mapping of variables

        Raises:
            TemplateRenderException: when an expression is invalid or
                references an undefined variable
        """
        scope = self._scope(context)
        try:
            return self._render_value(template, scope)
        except TemplateError as e:
            raise TemplateRenderException(
                f"Failed to render template: {e}",
                template=template,
                original_exception=e
            ) from e

    def _scope(self, context: Any) -> Dict[str, Any]:
        if hasattr(context, 'template_scope'):
            variables = context.template_scope()
        elif isinstance(context, Mapping):
            variables = dict(context.get('vars', context))
        else:
            variables = {}

        scope = dict(variables)
        for name, value in variables.items():
            if isinstance(name, str) and name.startswith('$'):
                scope.setdefault(name[1:], value)
        return scope

    def _render_value(self, value: Any, scope: Dict[str, Any]) -> Any:
        if isinstance(value, str):
            return self._render_string(value, scope)
        if isinstance(value, Mapping):
            return {
                self._render_string(k, scope) if isinstance(k, str) else k: self._render_value(v, scope)
                for k, v in value.items()
            }
        if isinstance(value, (list, tuple)):
            return [self._render_value(item, scope) for item in value]
        return value

    def _render_string(self, text: str, scope: Dict[str, Any]) -> Any:
        if '{{' not in text:
            return text

        whole = _WHOLE_PLACEHOLDER.match(text)
        if whole and len(_PLACEHOLDER.findall(text)) == 1:
            return self._evaluate(whole.group(1), scope)

        source = _PLACEHOLDER.sub(lambda m: "{{" + _DOLLAR_NAME.sub("", m.group(1)) + "}}", text)
        template = self._template_cache.get(source)
        if template is None:
            template = self.environment.from_string(source)
            self._template_cache[source] = template
        return template.render(scope)

    def _evaluate(self, expression: str, scope: Dict[str, Any]) -> Any:
        expression = _DOLLAR_NAME.sub("", expression.strip())
        compiled = self._expression_cache.get(expression)
        if compiled is None:
            compiled = self.environment.compile_expression(expression, undefined_to_none=False)
            self._expression_cache[expression] = compiled
        result = compiled(scope)
        # StrictUndefined only raises when used; force it for bare lookups
        if self.environment.undefined is StrictUndefined and isinstance(result, StrictUndefined):
            str(result)
        return result


_default_renderer = TemplateRenderer()


def render_template(template: Any, context: Any) -> Any:
    """Render ``template`` with the shared default renderer"""
    return _default_renderer.render(template, context)
