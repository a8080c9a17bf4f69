"""Guided problem/solution drafting for patent applications."""
