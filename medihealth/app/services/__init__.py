"""Services backing the MediHealth API."""
