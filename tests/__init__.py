"""Test suite for the MediHealth site."""
