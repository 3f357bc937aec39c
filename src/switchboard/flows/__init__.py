"""Conversation flows shipped with Switchboard."""
