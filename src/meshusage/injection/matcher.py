"""Sidecar injection decision.

A trimmed-down port of the webhook-selector analysis behind
``istioctl experimental check-inject``: it predicts whether the Istio
mutating webhooks would add a proxy to a pod, without calling admission.
"""

import enum
from typing import Any, Iterable, List, Mapping, Optional

import structlog

from meshusage.core.constants import INJECTION_ENABLED, INJECTION_LABEL, WEBHOOK_NAME_SUFFIX
from meshusage.injection import selectors
from meshusage.injection.cache import SelectorMatch, SelectorMatchCache

logger = structlog.get_logger(__name__)


class WebhookDecision(enum.Enum):
    INJECT = "inject"
    VETO = "veto"
    NO_MATCH = "no_match"


def _webhooks(configuration: Any) -> List[Any]:
    if isinstance(configuration, Mapping):
        return list(configuration.get("webhooks") or [])
    return list(getattr(configuration, "webhooks", None) or [])


def _selector(webhook: Any, snake: str, camel: str) -> Optional[Any]:
    if isinstance(webhook, Mapping):
        return webhook.get(camel, webhook.get(snake))
    return getattr(webhook, snake, None)


def _name(webhook: Any) -> str:
    if isinstance(webhook, Mapping):
        return webhook.get("name") or ""
    return getattr(webhook, "name", None) or ""


def is_injection_disabled(namespace_labels: Optional[Mapping[str, str]]) -> bool:
    """A namespace opts out when it carries the injection label with any value but ``enabled``."""
    labels = namespace_labels or {}
    return INJECTION_LABEL in labels and labels[INJECTION_LABEL] != INJECTION_ENABLED


class InjectionMatcher:
    def __init__(self, cache: Optional[SelectorMatchCache] = None):
        self.cache = cache if cache is not None else SelectorMatchCache()
        self.logger = logger.bind(component="injection")

    @staticmethod
    def filter_sidecar_webhooks(configurations: Iterable[Any]) -> List[Any]:
        """Keep configurations with at least one webhook named ``*istio.io``."""
        return [
            configuration for configuration in configurations
            if any(_name(wh).endswith(WEBHOOK_NAME_SUFFIX) for wh in _webhooks(configuration))
        ]

    def extract_matched_selector_info(self, selector: Optional[Any],
                                      labels: Optional[Mapping[str, str]]) -> SelectorMatch:
        """Evaluate ``selector`` against ``labels``, remembering the result."""
        if selector is None:
            return SelectorMatch(True, "")

        cached = self.cache.get(selector, labels)
        if cached is not None:
            return cached

        result = self._evaluate(selector, labels or {})
        self.cache.set(selector, labels, result)
        return result

    @staticmethod
    def _evaluate(selector: Any, labels: Mapping[str, str]) -> SelectorMatch:
        if not selectors.matches(selector, labels):
            return SelectorMatch(False, "")

        for key, operator, _ in selectors.match_expressions(selector):
            if operator in selectors.VALUE_OPERATORS and key in labels:
                return SelectorMatch(True, f"{key}={labels[key]}")
        return SelectorMatch(True, "")

    def evaluate_webhook(self, webhook: Any,
                         pod_labels: Mapping[str, str],
                         namespace_labels: Mapping[str, str]) -> WebhookDecision:
        """Decide one webhook entry on its own."""
        namespace_selector = _selector(webhook, "namespace_selector", "namespaceSelector")
        object_selector = _selector(webhook, "object_selector", "objectSelector")

        ns_match = self.extract_matched_selector_info(namespace_selector, namespace_labels)
        pod_match = self.extract_matched_selector_info(object_selector, pod_labels)

        if ns_match.matched and pod_match.matched:
            self.logger.debug(
                "Webhook selects pod",
                webhook=_name(webhook),
                namespace_label=ns_match.label,
                pod_label=pod_match.label
            )
            return WebhookDecision.INJECT

        if ns_match.matched:
            return self._pod_opt_out(object_selector, pod_labels)

        if pod_match.matched and is_injection_disabled(namespace_labels):
            return WebhookDecision.VETO

        return WebhookDecision.NO_MATCH

    @staticmethod
    def _pod_opt_out(object_selector: Optional[Any], pod_labels: Mapping[str, str]) -> WebhookDecision:
        if object_selector is None:
            return WebhookDecision.NO_MATCH

        for key, operator, values in selectors.match_expressions(object_selector):
            if operator == selectors.OP_DOES_NOT_EXIST and key in pod_labels:
                return WebhookDecision.VETO
            if operator == selectors.OP_NOT_IN and key in pod_labels and pod_labels[key] in values:
                return WebhookDecision.VETO
        return WebhookDecision.NO_MATCH

    def would_inject(self, configurations: Iterable[Any],
                     pod_labels: Optional[Mapping[str, str]],
                     namespace_labels: Optional[Mapping[str, str]]) -> bool:
        """Whether any sidecar webhook entry would inject a pod with these labels.

        Entries are independent: a veto from one entry only rules that entry
        out. The scan stops at the first entry that injects.
        """
        pod_labels = pod_labels or {}
        namespace_labels = namespace_labels or {}

        if is_injection_disabled(namespace_labels):
            return False

        for configuration in configurations:
            for webhook in _webhooks(configuration):
                if self.evaluate_webhook(webhook, pod_labels, namespace_labels) is WebhookDecision.INJECT:
                    return True
        return False
