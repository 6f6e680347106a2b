"""Test suite for claude-relay."""
