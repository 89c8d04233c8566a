"""Drupal site audit: probe orchestration and report aggregation."""
