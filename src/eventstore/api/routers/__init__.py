"""Route modules mounted by ``eventstore.api.app.create_app``."""
