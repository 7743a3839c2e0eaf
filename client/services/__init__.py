from importlib import import_module

__all__ = [
    "prism_api",
    "PrismAPIClient",
    "ProfileAcquisitionEngine",
    "IdentityResolver",
    "LivePricePoller",
    "FeedReconciler",
    "InsightsLoader",
    "SubscriptionManager",
    "DashboardSession",
    "normalize",
]

_LAZY_EXPORTS = {
    "prism_api": ("services.prism_api", "prism_api"),
    "PrismAPIClient": ("services.prism_api", "PrismAPIClient"),
    "ProfileAcquisitionEngine": ("services.profile_acquisition", "ProfileAcquisitionEngine"),
    "IdentityResolver": ("services.identity_resolver", "IdentityResolver"),
    "LivePricePoller": ("services.price_poller", "LivePricePoller"),
    "FeedReconciler": ("services.feed_reconciler", "FeedReconciler"),
    "InsightsLoader": ("services.insights_loader", "InsightsLoader"),
    "SubscriptionManager": ("services.subscriptions", "SubscriptionManager"),
    "DashboardSession": ("services.dashboard_session", "DashboardSession"),
    "normalize": ("services.text_normalizer", "normalize"),
}


def __getattr__(name):
    if name not in _LAZY_EXPORTS:
        raise AttributeError(f"module 'services' has no attribute {name!r}")

    module_name, attr_name = _LAZY_EXPORTS[name]
    module = import_module(module_name)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value
