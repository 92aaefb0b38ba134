"""MediHealth clinic website and appointment booking."""
