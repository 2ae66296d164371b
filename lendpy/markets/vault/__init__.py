"""Collect classes up one level"""

from .vault import Vault
from .vault_deltas import VaultDeltas
from .vault_state import VaultState
