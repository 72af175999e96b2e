from .cache import SelectorMatch, SelectorMatchCache, fingerprint
from .matcher import InjectionMatcher, WebhookDecision, is_injection_disabled
from .selectors import matches

__all__ = [
    "InjectionMatcher",
    "SelectorMatch",
    "SelectorMatchCache",
    "WebhookDecision",
    "fingerprint",
    "is_injection_disabled",
    "matches",
]
