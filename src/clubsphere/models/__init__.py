"""
Pydantic models for ClubSphere documents, requests and responses.

Stored documents and JSON payloads use camelCase keys (`userId`, `expiryDate`);
Python attributes are snake_case. Every model derives from `CamelModel`, which
wires the alias generator and accepts either spelling on input.
"""
