"""Test suite for the todo datastore.

This package contains tests for the codecs, the persisted store primitive,
both storage backends, the repository and the reactive coordinator.
"""
