"""Resolution of user-facing success and error messages."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

from ..commons.constants import DEFAULT_ERROR_MESSAGE, DEFAULT_SUCCESS_MESSAGE, MessageKind
from ..commons.exceptions import Failure
from .handlers import HandlerRegistry, MessageRule, invoke


def exception_message(exception: BaseException) -> str:
    message = getattr(exception, "message", None)
    return message if isinstance(message, str) else str(exception)


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class MessageResolver:
    """Pick the message for one channel of a finished run.

    Rules are evaluated newest first. The first rule whose condition matches and
    whose content is non-blank wins; its prefix is prepended. A rule declaring only a
    prefix borrows its content from the triggering exception, or for success messages
    from the newest unconditional rule.
    """

    def __init__(
        self,
        registry: HandlerRegistry,
        kind: MessageKind,
        action: Any,
        exception: BaseException | None,
    ) -> None:
        self.registry = registry
        self.kind = kind
        self.action = action
        self.exception = exception

    def resolve(self) -> str:
        for rule in self._matching_rules():
            message = self._message_from(rule)
            if message is not None:
                return message
        return self._fallback()

    def resolve_default(self) -> str:
        """The message used when no conditional rule applies."""
        return self._message_from(self._default_rule()) or self._hard_default()

    def _candidates(self) -> tuple[MessageRule, ...]:
        return self.registry.for_event(self.kind)

    def _matching_rules(self) -> Iterator[MessageRule]:
        for rule in self._candidates():
            if rule.matches(self.action, self.exception):
                yield rule

    def _default_rule(self) -> MessageRule | None:
        # skip prefix-only rules, they borrow content from this lookup
        for rule in self._candidates():
            if rule.static and rule.handler is not None and self._message_from(rule):
                return rule
        return None

    def _message_from(self, rule: MessageRule | None) -> str | None:
        body = self._body(rule)
        if is_blank(body):
            return None
        body = str(body)
        if rule is not None and rule.prefix is not None:
            prefix = invoke(
                rule.prefix, self.action, self.exception, operation="determining message prefix", literal_fallback=True
            )
            if not is_blank(prefix):
                return f"{prefix}{body}"
        return body

    def _body(self, rule: MessageRule | None) -> Any:
        if rule is None:
            return None
        if rule.handler is not None:
            return invoke(
                rule.handler,
                self.action,
                self.exception,
                operation="determining message callable",
                literal_fallback=True,
            )
        if self.exception is not None:
            return exception_message(self.exception)
        if rule.prefix is not None:
            default = self._default_rule()
            return self._body(default)
        return None

    def _fallback(self) -> str:
        if (
            self.kind is MessageKind.ERROR
            and isinstance(self.exception, Failure)
            and not self.exception.default_message
        ):
            return self.exception.message
        return self.resolve_default()

    def _hard_default(self) -> str:
        return DEFAULT_SUCCESS_MESSAGE if self.kind is MessageKind.SUCCESS else DEFAULT_ERROR_MESSAGE
