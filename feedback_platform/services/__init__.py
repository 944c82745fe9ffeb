"""Service package public API definitions.

Service classes are resolved on first attribute access, so importing a
submodule such as ``services.exceptions`` or ``services.ports`` stays cheap
and the route and dependency modules only load the services they name.
"""

from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING, Any

__all__ = [
    "FeedbackIngestionService",
    "FollowUpConsumer",
    "FollowUpWorker",
    "LedgerAppender",
    "PriceOverviewCalculator",
]

_SERVICE_MODULES = {
    "FeedbackIngestionService": "feedback",
    "FollowUpConsumer": "follow_up",
    "FollowUpWorker": "follow_up",
    "LedgerAppender": "ledger",
    "PriceOverviewCalculator": "pricing",
}


def __getattr__(name: str) -> Any:
    if name not in _SERVICE_MODULES:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

    module = import_module(f".{_SERVICE_MODULES[name]}", __name__)
    attr = getattr(module, name)
    globals()[name] = attr
    return attr


if TYPE_CHECKING:  # pragma: no cover - import for static analysis only
    from .feedback import FeedbackIngestionService as FeedbackIngestionService
    from .follow_up import FollowUpConsumer as FollowUpConsumer
    from .follow_up import FollowUpWorker as FollowUpWorker
    from .ledger import LedgerAppender as LedgerAppender
    from .pricing import PriceOverviewCalculator as PriceOverviewCalculator
