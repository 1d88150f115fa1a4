"""Services behind the API routers."""
