"""Knowledge entries: models, storage, service and expiration tracking."""
