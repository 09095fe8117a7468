"""Bundle store, fetching and provisioning."""
