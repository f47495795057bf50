"""Tests for probabilistic scene recognition."""
