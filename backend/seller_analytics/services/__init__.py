"""Services built on the analytics core."""
