"""Subscriptions and ratings kept alongside the dataset index."""
