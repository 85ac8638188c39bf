"""Test package marker so pytest can import ``tests.unit`` helpers by path."""
