"""Pure domain logic: caching, catalog, classification, navigation, error display."""
