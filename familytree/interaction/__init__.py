"""Gesture handling for an interactive diagram session."""

from familytree.interaction.client import TreeApiClient
from familytree.interaction.controller import InteractionController, State

__all__ = ["InteractionController", "State", "TreeApiClient"]
