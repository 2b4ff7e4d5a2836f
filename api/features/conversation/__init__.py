"""Conversation feature package: chat turn repository, store, and DTOs.

Turns are stored in the ``chat_turn`` table with plain SQL (no ORM entities);
the chatbot feature exposes them over HTTP.
"""
